from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..services.stock_state import StockStateMachine, list_stock, stock_summary

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# STOCK ENDPOINTS
# ============================================================================

@router.get("/stock", response_model=List[schemas.StockUnit], tags=["Stock"])
def get_stock(
    status: Optional[schemas.StockStatus] = None,
    source_type: Optional[models.StockSource] = None,
    page: Pagination = Depends(),
    db: Session = Depends(get_db)
):
    try:
        return list_stock(
            db,
            status=status.value if status else None,
            source_type=source_type.value if source_type else None,
            skip=page.skip,
            limit=page.limit,
        )
    except Exception as e:
        logger.error(f"Error getting stock: {e}")
        raise InternalError("Failed to get stock")

@router.get("/stock/summary", response_model=List[schemas.StockSummaryRow], tags=["Stock"])
def get_stock_summary(db: Session = Depends(get_db)):
    """Unit count and weight per source and status"""
    try:
        return stock_summary(db)
    except Exception as e:
        logger.error(f"Error getting stock summary: {e}")
        raise InternalError("Failed to get stock summary")

@router.get("/stock/{barcode}", response_model=schemas.StockUnit, tags=["Stock"])
def get_stock_unit(barcode: str, db: Session = Depends(get_db)):
    try:
        return StockStateMachine(db).get(barcode)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting stock unit {barcode}: {e}")
        raise InternalError("Failed to get stock unit")

@router.post("/stock/{barcode}/consume", response_model=schemas.StockUnit, tags=["Stock"])
def consume_stock_unit(
    barcode: str,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Mark a stock unit as used outside of a stage record"""
    try:
        with atomic(db):
            unit = StockStateMachine(db, actor.id).consume(barcode)
        db.refresh(unit)
        return unit
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error consuming stock unit {barcode}: {e}")
        raise InternalError("Failed to consume stock unit")
