from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..services import sales_ledger

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# DELIVERY ORDER ENDPOINTS
# ============================================================================

@router.get("/sales/do", response_model=List[schemas.DeliveryOrder], tags=["Sales"])
def get_delivery_orders(
    customer_id: Optional[int] = None,
    page: Pagination = Depends(),
    db: Session = Depends(get_db)
):
    try:
        return sales_ledger.list_delivery_orders(db, skip=page.skip, limit=page.limit, customer_id=customer_id)
    except Exception as e:
        logger.error(f"Error getting delivery orders: {e}")
        raise InternalError("Failed to get delivery orders")

@router.get("/sales/do/validate-barcode", response_model=schemas.BarcodeSummary, tags=["Sales"])
def validate_sale_barcode(
    barcode: str,
    exclude_order_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Check a scanned complete item before it goes on a delivery order"""
    try:
        return sales_ledger.validate_barcode_for_sale(db, barcode, exclude_order_id=exclude_order_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error validating barcode {barcode} for sale: {e}")
        raise InternalError("Failed to validate barcode")

@router.get("/sales/do-numbers", response_model=List[schemas.DoNumber], tags=["Sales"])
def get_do_numbers(customer_id: Optional[int] = None, db: Session = Depends(get_db)):
    try:
        return sales_ledger.list_do_numbers(db, customer_id=customer_id)
    except Exception as e:
        logger.error(f"Error getting DO numbers: {e}")
        raise InternalError("Failed to get DO numbers")

@router.post("/sales/do", response_model=schemas.DeliveryOrder, tags=["Sales"])
def create_delivery_order(
    order: schemas.DeliveryOrderCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Claim scanned complete items for a customer; they leave finished goods stock"""
    try:
        with atomic(db):
            db_order = sales_ledger.create_delivery_order(
                db, customer_id=order.customer_id, items=order.items, actor_id=actor.id
            )
        return sales_ledger.get_delivery_order(db, db_order.id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating delivery order: {e}")
        raise InternalError("Failed to create delivery order")

@router.get("/sales/do/{order_id}", response_model=schemas.DeliveryOrder, tags=["Sales"])
def get_delivery_order(order_id: int, db: Session = Depends(get_db)):
    try:
        return sales_ledger.get_delivery_order(db, order_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting delivery order {order_id}: {e}")
        raise InternalError("Failed to get delivery order")

@router.get("/sales/do/{order_id}/bag-types", response_model=List[schemas.DoBagType], tags=["Sales"])
def get_delivery_order_bag_types(order_id: int, db: Session = Depends(get_db)):
    """Order lines summed per bag type, used to prepare an invoice"""
    try:
        return sales_ledger.bag_types_for_do(db, order_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting bag types for delivery order {order_id}: {e}")
        raise InternalError("Failed to get delivery order bag types")

@router.put("/sales/do/{order_id}", response_model=schemas.DeliveryOrder, tags=["Sales"])
def update_delivery_order(
    order_id: int,
    order_update: schemas.DeliveryOrderUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            sales_ledger.update_delivery_order(
                db,
                order_id=order_id,
                items=order_update.items,
                actor_id=actor.id,
                customer_id=order_update.customer_id,
            )
        return sales_ledger.get_delivery_order(db, order_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating delivery order {order_id}: {e}")
        raise InternalError("Failed to update delivery order")

@router.delete("/sales/do/{order_id}", tags=["Sales"])
def delete_delivery_order(
    order_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Delete an order; its items become sellable again"""
    try:
        with atomic(db):
            result = sales_ledger.delete_delivery_order(db, order_id=order_id, actor_id=actor.id)
        return {"message": "Delivery order deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting delivery order {order_id}: {e}")
        raise InternalError("Failed to delete delivery order")
