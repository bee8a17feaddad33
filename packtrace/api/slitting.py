from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from .base import InternalError, LedgerError, atomic, get_current_actor, get_db
from .. import models, schemas
from ..services.production import ProductionService, get_stage_records, list_stage_job_cards
from ..services.stage_linker import complete_stage

router = APIRouter()
logger = logging.getLogger(__name__)

STAGE = models.StageTag.SLITTING

# ============================================================================
# SLITTING ENDPOINTS
# ============================================================================

@router.get("/slitting", response_model=List[schemas.JobCard], tags=["Slitting"])
def get_slitting_job_cards(db: Session = Depends(get_db)):
    """Job cards that go through slitting"""
    try:
        return list_stage_job_cards(db, STAGE)
    except Exception as e:
        logger.error(f"Error getting slitting job cards: {e}")
        raise InternalError("Failed to get slitting job cards")

@router.get("/slitting/{job_card_id}", response_model=schemas.SlittingView, tags=["Slitting"])
def get_slitting(job_card_id: int, db: Session = Depends(get_db)):
    try:
        return get_stage_records(db, job_card_id, STAGE)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting slitting for job card {job_card_id}: {e}")
        raise InternalError("Failed to get slitting records")

@router.post("/slitting/{job_card_id}/add-barcode", response_model=schemas.SlittingRecord, tags=["Slitting"])
def add_slitting_barcode(
    job_card_id: int,
    slitting_input: schemas.SlittingInput,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Pick a roll from stock for slitting"""
    try:
        with atomic(db):
            record = ProductionService(db, actor.id).add_slitting_input(
                job_card_id,
                slitting_input.barcode,
                wastage=slitting_input.wastage,
                wastage_width=slitting_input.wastage_width,
            )
        db.refresh(record)
        return record
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding slitting barcode on job card {job_card_id}: {e}")
        raise InternalError("Failed to add slitting barcode")

@router.delete("/slitting/{job_card_id}/records/{slitting_id}", tags=["Slitting"])
def delete_slitting_record(
    job_card_id: int,
    slitting_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Delete a slitting record; its input roll goes back to stock"""
    try:
        with atomic(db):
            ProductionService(db, actor.id).delete_slitting_record(job_card_id, slitting_id)
        return {"message": "Slitting record deleted successfully"}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting slitting record {slitting_id}: {e}")
        raise InternalError("Failed to delete slitting record")

@router.post("/slitting/{job_card_id}/add-roll", response_model=schemas.SlittingRoll, tags=["Slitting"])
def add_slitting_roll(
    job_card_id: int,
    roll: schemas.SlittingRollCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Record a slit roll; it gets a barcode and goes into stock"""
    try:
        with atomic(db):
            db_roll = ProductionService(db, actor.id).add_slitting_roll(
                job_card_id, roll.slitting_id, roll.weight, roll.width
            )
        db.refresh(db_roll)
        return db_roll
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding slitting roll on job card {job_card_id}: {e}")
        raise InternalError("Failed to add slitting roll")

@router.delete("/slitting/rolls/{roll_id}", tags=["Slitting"])
def delete_slitting_roll(
    roll_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            ProductionService(db, actor.id).delete_slitting_roll(roll_id)
        return {"message": "Slitting roll deleted successfully"}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting slitting roll {roll_id}: {e}")
        raise InternalError("Failed to delete slitting roll")

@router.put("/slitting/{job_card_id}/wastage", response_model=schemas.SlittingRecord, tags=["Slitting"])
def update_slitting_wastage(
    job_card_id: int,
    wastage: schemas.SlittingWastageUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            record = ProductionService(db, actor.id).update_slitting_wastage(
                job_card_id, wastage.slitting_id, wastage.wastage, wastage.wastage_width
            )
        db.refresh(record)
        return record
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating slitting wastage on job card {job_card_id}: {e}")
        raise InternalError("Failed to update slitting wastage")

@router.post("/slitting/{job_card_id}/complete", response_model=schemas.JobCard, tags=["Slitting"])
def complete_slitting(
    job_card_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            job_card = complete_stage(db, job_card_id, STAGE, actor.id)
        db.refresh(job_card)
        return job_card
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error completing slitting on job card {job_card_id}: {e}")
        raise InternalError("Failed to complete slitting")
