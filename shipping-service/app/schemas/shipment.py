from pydantic import BaseModel
from datetime import datetime
from uuid import UUID

from app.schemas.events import Address


class Shipment(BaseModel):
    shipping_id: UUID
    order_id: UUID
    user_id: UUID
    address: Address
    shipping_method: str
    carrier: str
    created_at: datetime

    class Config:
        from_attributes = True
