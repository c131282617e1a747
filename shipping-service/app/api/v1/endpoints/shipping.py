# app/api/v1/endpoints/shipping.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import crud
from app.db.session import get_db
from app.schemas.shipment import Shipment

router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.get("/by-order/{order_id}", response_model=Shipment)
def get_shipment_by_order(order_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Get the shipment created for an order.
    """
    shipment = crud.shipment.get_first_by_order_id(db, order_id=order_id)
    if shipment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No shipment found for order {order_id}",
        )
    return shipment


@router.get("/{shipping_id}", response_model=Shipment)
def get_shipment(shipping_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Get a shipment by ID.
    """
    shipment = crud.shipment.get(db, id=shipping_id)
    if shipment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Shipment not found"
        )
    return shipment
