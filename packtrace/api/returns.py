from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..services import sales_ledger

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# RETURN ENDPOINTS
# ============================================================================

@router.get("/sales/returns", response_model=List[schemas.ReturnNote], tags=["Returns"])
def get_returns(page: Pagination = Depends(), db: Session = Depends(get_db)):
    try:
        return sales_ledger.list_returns(db, skip=page.skip, limit=page.limit)
    except Exception as e:
        logger.error(f"Error getting return notes: {e}")
        raise InternalError("Failed to get return notes")

@router.get("/sales/returns/validate-barcode", response_model=schemas.BarcodeSummary, tags=["Returns"])
def validate_return_barcode(barcode: str, db: Session = Depends(get_db)):
    """Check that a scanned item was sold and is not already on an open return"""
    try:
        return sales_ledger.validate_barcode_for_return(db, barcode)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error validating barcode {barcode} for return: {e}")
        raise InternalError("Failed to validate barcode")

@router.post("/sales/returns", response_model=schemas.ReturnNote, tags=["Returns"])
def create_return(
    return_in: schemas.ReturnCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            return_info = sales_ledger.create_return(
                db, customer_id=return_in.customer_id, items=return_in.items, actor_id=actor.id
            )
        return sales_ledger.get_return(db, return_info.id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating return note: {e}")
        raise InternalError("Failed to create return note")

@router.get("/sales/returns/{return_id}", response_model=schemas.ReturnNote, tags=["Returns"])
def get_return(return_id: int, db: Session = Depends(get_db)):
    try:
        return sales_ledger.get_return(db, return_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting return note {return_id}: {e}")
        raise InternalError("Failed to get return note")

@router.put("/sales/returns/{return_id}", response_model=schemas.ReturnNote, tags=["Returns"])
def update_return(
    return_id: int,
    return_update: schemas.ReturnUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Replace the returned barcodes of a note"""
    try:
        with atomic(db):
            sales_ledger.update_return(
                db,
                return_id=return_id,
                items=return_update.items,
                actor_id=actor.id,
                customer_id=return_update.customer_id,
            )
        return sales_ledger.get_return(db, return_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating return note {return_id}: {e}")
        raise InternalError("Failed to update return note")

@router.delete("/sales/returns/{return_id}", tags=["Returns"])
def delete_return(
    return_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            result = sales_ledger.delete_return(db, return_id=return_id, actor_id=actor.id)
        return {"message": "Return note deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting return note {return_id}: {e}")
        raise InternalError("Failed to delete return note")
