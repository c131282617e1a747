# app/models/shipment.py
import uuid
from sqlalchemy import Column, String, DateTime, Uuid
from app.db.base_class import Base


class Shipment(Base):
    __tablename__ = "shipments"

    shipping_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # At most one shipment per order; concurrent creators collide here.
    order_id = Column(Uuid, nullable=False, unique=True, index=True)
    user_id = Column(Uuid, nullable=False)

    # Postal address (embedded)
    line1 = Column(String, nullable=False)
    line2 = Column(String, nullable=True)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    postal_code = Column(String, nullable=False)
    country = Column(String, nullable=False)

    shipping_method = Column(String, nullable=False)
    carrier = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    @property
    def address(self) -> dict:
        return {
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
        }
