from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..crud import material_management

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# MATERIAL BATCH ENDPOINTS
# ============================================================================

@router.get("/material-batches", response_model=List[schemas.MaterialBatchSummary], tags=["Material Batches"])
def get_material_batches(
    supplier_id: Optional[int] = None,
    page: Pagination = Depends(),
    db: Session = Depends(get_db)
):
    """Material batches, newest first"""
    try:
        return material_management.get_batches(db=db, skip=page.skip, limit=page.limit, supplier_id=supplier_id)
    except Exception as e:
        logger.error(f"Error getting material batches: {e}")
        raise InternalError("Failed to get material batches")

@router.post("/material-batches", response_model=schemas.MaterialBatch, tags=["Material Batches"])
def create_material_batch(
    batch: schemas.MaterialBatchCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Create a material batch together with its reels"""
    try:
        with atomic(db):
            db_batch = material_management.create_batch(
                db, supplier_id=batch.supplier_id, items=batch.items, actor_id=actor.id
            )
        return material_management.get_batch(db, db_batch.id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating material batch: {e}")
        raise InternalError("Failed to create material batch")

@router.post("/material-batches/finalize", response_model=schemas.MaterialBatch, tags=["Material Batches"])
def finalize_material_batch(
    finalize: schemas.MaterialBatchFinalize,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Move staged reels into a new batch and put them into stock"""
    try:
        with atomic(db):
            db_batch = material_management.finalize_batch(
                db, item_ids=finalize.item_ids, supplier_id=finalize.supplier_id, actor_id=actor.id
            )
        return material_management.get_batch(db, db_batch.id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error finalizing material batch: {e}")
        raise InternalError("Failed to finalize material batch")

@router.get("/material-batches/{batch_id}", response_model=schemas.MaterialBatch, tags=["Material Batches"])
def get_material_batch(batch_id: int, db: Session = Depends(get_db)):
    try:
        return material_management.get_batch(db, batch_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting material batch {batch_id}: {e}")
        raise InternalError("Failed to get material batch")

@router.delete("/material-batches/{batch_id}", tags=["Material Batches"])
def delete_material_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Delete a batch with its reels, refused once a reel is in production"""
    try:
        with atomic(db):
            result = material_management.delete_batch(db, batch_id=batch_id, actor_id=actor.id)
        return {"message": "Material batch deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting material batch {batch_id}: {e}")
        raise InternalError("Failed to delete material batch")

@router.post("/material-batches/{batch_id}/recompute", response_model=schemas.RecomputeResult, tags=["Material Batches"])
def recompute_material_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Rebuild a batch's totals from its reels"""
    try:
        with atomic(db):
            result = material_management.recompute_batch(db, batch_id=batch_id)
        logger.info(f"Batch {batch_id} recomputed by user {actor.id}, drifted={result['drifted']}")
        return result
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error recomputing material batch {batch_id}: {e}")
        raise InternalError("Failed to recompute material batch")

# ============================================================================
# MATERIAL ITEM ENDPOINTS
# ============================================================================

@router.get("/material-items/staged", response_model=List[schemas.MaterialItem], tags=["Material Items"])
def get_staged_material_items(created_by_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Reels received but not yet finalized into a batch"""
    try:
        return material_management.get_staged_items(db, created_by_id=created_by_id)
    except Exception as e:
        logger.error(f"Error getting staged material items: {e}")
        raise InternalError("Failed to get staged material items")

@router.post("/material-items", response_model=schemas.MaterialItem, tags=["Material Items"])
def add_material_item(
    item: schemas.MaterialItemAdd,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Receive one reel into a batch, or stage it when no batch is given"""
    try:
        item_data = schemas.MaterialItemCreate(**item.model_dump(exclude={"batch_id"}))
        with atomic(db):
            db_item = material_management.add_item(
                db, item_data=item_data, actor_id=actor.id, batch_id=item.batch_id
            )
        db.refresh(db_item)
        return db_item
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding material item: {e}")
        raise InternalError("Failed to add material item")

@router.put("/material-items/{item_id}", response_model=schemas.MaterialItem, tags=["Material Items"])
def update_material_item(
    item_id: int,
    item_update: schemas.MaterialItemUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            db_item = material_management.update_item(
                db, item_id=item_id, item_update=item_update, actor_id=actor.id
            )
        db.refresh(db_item)
        return db_item
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating material item {item_id}: {e}")
        raise InternalError("Failed to update material item")

@router.delete("/material-items/{item_id}", tags=["Material Items"])
def delete_material_item(
    item_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Delete a reel and take it off its batch totals"""
    try:
        with atomic(db):
            result = material_management.delete_item(db, item_id=item_id, actor_id=actor.id)
        return {"message": "Material item deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting material item {item_id}: {e}")
        raise InternalError("Failed to delete material item")
