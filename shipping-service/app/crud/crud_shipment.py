# app/crud/crud_shipment.py
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.shipment import Shipment
from app.schemas.events import Address


class CRUDShipment(CRUDBase[Shipment]):
    def get_first_by_order_id(
        self, db: Session, *, order_id: uuid.UUID
    ) -> Optional[Shipment]:
        return (
            db.query(self.model)
            .filter(self.model.order_id == order_id)
            .order_by(self.model.created_at.asc())
            .first()
        )

    def create_for_order(
        self,
        db: Session,
        *,
        order_id: uuid.UUID,
        user_id: uuid.UUID,
        address: Address,
        shipping_method: str,
        carrier: str,
        created_at: datetime,
    ) -> Shipment:
        """
        Stages a new shipment and flushes it.

        Flushing surfaces the one-shipment-per-order constraint immediately
        (as an IntegrityError) instead of at commit time.
        """
        db_obj = self.model(
            shipping_id=uuid.uuid4(),
            order_id=order_id,
            user_id=user_id,
            line1=address.line1,
            line2=address.line2,
            city=address.city,
            state=address.state,
            postal_code=address.postalCode,
            country=address.country,
            shipping_method=shipping_method,
            carrier=carrier,
            created_at=created_at,
        )
        db.add(db_obj)
        db.flush()
        return db_obj


shipment = CRUDShipment(Shipment)
