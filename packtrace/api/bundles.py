from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..crud import bundles

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# BUNDLE ENDPOINTS
# ============================================================================

@router.get("/bundles", response_model=List[schemas.BundleSummary], tags=["Bundles"])
def get_bundles(
    job_card_id: Optional[int] = None,
    page: Pagination = Depends(),
    db: Session = Depends(get_db)
):
    try:
        return bundles.get_bundles(db, skip=page.skip, limit=page.limit, job_card_id=job_card_id)
    except Exception as e:
        logger.error(f"Error getting bundles: {e}")
        raise InternalError("Failed to get bundles")

@router.get("/bundles/cutting-roll/{cutting_roll_id}", response_model=schemas.WastageTrace, tags=["Bundles"])
def get_cutting_roll_wastage(cutting_roll_id: int, db: Session = Depends(get_db)):
    """Wastage traced back from a cutting roll through printing and slitting"""
    try:
        return bundles.trace_wastage(db, cutting_roll_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error tracing wastage for cutting roll {cutting_roll_id}: {e}")
        raise InternalError("Failed to trace wastage")

@router.post("/bundles/finalize", response_model=schemas.Bundle, tags=["Bundles"])
def finalize_bundle(
    bundle_in: schemas.BundleFinalize,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            bundle = bundles.finalize_bundle(db, bundle_in=bundle_in, actor_id=actor.id)
        return bundles.get_bundle(db, bundle.id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error finalizing bundle: {e}")
        raise InternalError("Failed to finalize bundle")

@router.get("/bundles/{bundle_id}", response_model=schemas.Bundle, tags=["Bundles"])
def get_bundle(bundle_id: int, db: Session = Depends(get_db)):
    try:
        return bundles.get_bundle(db, bundle_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting bundle {bundle_id}: {e}")
        raise InternalError("Failed to get bundle")

@router.post("/bundles/{bundle_id}/recompute", response_model=schemas.RecomputeResult, tags=["Bundles"])
def recompute_bundle(
    bundle_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Rebuild a bundle's totals from its items"""
    try:
        with atomic(db):
            result = bundles.recompute_bundle(db, bundle_id=bundle_id)
        logger.info(f"Bundle {bundle_id} recomputed by user {actor.id}, drifted={result['drifted']}")
        return result
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error recomputing bundle {bundle_id}: {e}")
        raise InternalError("Failed to recompute bundle")

# ============================================================================
# COMPLETE / NON-COMPLETE ITEM ENDPOINTS
# ============================================================================

@router.get("/complete-items", response_model=List[schemas.CompleteItem], tags=["Finished Goods"])
def get_complete_items(
    staged_only: bool = True,
    bundle_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    try:
        return bundles.get_complete_items(db, staged_only=staged_only, bundle_id=bundle_id)
    except Exception as e:
        logger.error(f"Error getting complete items: {e}")
        raise InternalError("Failed to get complete items")

@router.post("/complete-items", response_model=schemas.CompleteItem, tags=["Finished Goods"])
def create_complete_item(
    item: schemas.CompleteItemCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            db_item = bundles.create_complete_item(db, item=item, actor_id=actor.id)
        db.refresh(db_item)
        return db_item
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating complete item: {e}")
        raise InternalError("Failed to create complete item")

@router.delete("/complete-items/{item_id}", tags=["Finished Goods"])
def delete_complete_item(
    item_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            result = bundles.delete_complete_item(db, item_id=item_id, actor_id=actor.id)
        return {"message": "Complete item deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting complete item {item_id}: {e}")
        raise InternalError("Failed to delete complete item")

@router.get("/non-complete-items", response_model=List[schemas.NonCompleteItem], tags=["Finished Goods"])
def get_non_complete_items(
    staged_only: bool = True,
    bundle_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    try:
        return bundles.get_non_complete_items(db, staged_only=staged_only, bundle_id=bundle_id)
    except Exception as e:
        logger.error(f"Error getting non-complete items: {e}")
        raise InternalError("Failed to get non-complete items")

@router.post("/non-complete-items", response_model=schemas.NonCompleteItem, tags=["Finished Goods"])
def create_non_complete_item(
    item: schemas.NonCompleteItemCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            db_item = bundles.create_non_complete_item(db, item=item, actor_id=actor.id)
        db.refresh(db_item)
        return db_item
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating non-complete item: {e}")
        raise InternalError("Failed to create non-complete item")

@router.delete("/non-complete-items/{item_id}", tags=["Finished Goods"])
def delete_non_complete_item(
    item_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            result = bundles.delete_non_complete_item(db, item_id=item_id, actor_id=actor.id)
        return {"message": "Non-complete item deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting non-complete item {item_id}: {e}")
        raise InternalError("Failed to delete non-complete item")

# ============================================================================
# FINISHED GOODS REPORTS
# ============================================================================

@router.get("/finished-goods", response_model=List[schemas.CompleteItem], tags=["Finished Goods"])
def get_finished_goods(
    bundle_type: Optional[str] = None,
    status: schemas.FinishedGoodsStatus = schemas.FinishedGoodsStatus.ALL,
    db: Session = Depends(get_db)
):
    """Complete items by bundle type; status "in" is unsold stock, "out" is sold"""
    try:
        return bundles.get_finished_goods(db, bundle_type=bundle_type, status=status.value)
    except Exception as e:
        logger.error(f"Error getting finished goods: {e}")
        raise InternalError("Failed to get finished goods")

@router.get("/finished-goods/stock-in-hand", response_model=List[schemas.StockInHand], tags=["Finished Goods"])
def get_stock_in_hand(db: Session = Depends(get_db)):
    try:
        return bundles.get_stock_in_hand(db)
    except Exception as e:
        logger.error(f"Error getting stock in hand: {e}")
        raise InternalError("Failed to get stock in hand")
