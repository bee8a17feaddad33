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

STAGE = models.StageTag.CUTTING

# ============================================================================
# CUTTING ENDPOINTS
# ============================================================================

@router.get("/cutting", response_model=List[schemas.JobCard], tags=["Cutting"])
def get_cutting_job_cards(db: Session = Depends(get_db)):
    try:
        return list_stage_job_cards(db, STAGE)
    except Exception as e:
        logger.error(f"Error getting cutting job cards: {e}")
        raise InternalError("Failed to get cutting job cards")

@router.get("/cutting/{job_card_id}", response_model=schemas.CuttingView, tags=["Cutting"])
def get_cutting(job_card_id: int, db: Session = Depends(get_db)):
    try:
        return get_stage_records(db, job_card_id, STAGE)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting cutting for job card {job_card_id}: {e}")
        raise InternalError("Failed to get cutting records")

@router.post("/cutting/{job_card_id}/add-barcode", response_model=schemas.CuttingRecord, tags=["Cutting"])
def add_cutting_barcode(
    job_card_id: int,
    cutting_input: schemas.CuttingInput,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Pick a roll or printed pack from stock for cutting"""
    try:
        with atomic(db):
            record = ProductionService(db, actor.id).add_cutting_input(
                job_card_id, cutting_input.barcode, cutting_weight=cutting_input.cutting_weight
            )
        db.refresh(record)
        return record
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding cutting barcode on job card {job_card_id}: {e}")
        raise InternalError("Failed to add cutting barcode")

@router.delete("/cutting/{job_card_id}/records/{cutting_id}", tags=["Cutting"])
def delete_cutting_record(
    job_card_id: int,
    cutting_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            ProductionService(db, actor.id).delete_cutting_record(job_card_id, cutting_id)
        return {"message": "Cutting record deleted successfully"}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting cutting record {cutting_id}: {e}")
        raise InternalError("Failed to delete cutting record")

@router.post("/cutting/{job_card_id}/add-roll", response_model=schemas.CuttingRoll, tags=["Cutting"])
def add_cutting_roll(
    job_card_id: int,
    roll: schemas.CuttingRollCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Record a roll of cut bags; it gets a barcode and goes into stock"""
    try:
        with atomic(db):
            db_roll = ProductionService(db, actor.id).add_cutting_roll(
                job_card_id, roll.cutting_id, roll.weight, roll.no_of_bags, roll.cutting_wastage
            )
        db.refresh(db_roll)
        return db_roll
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding cutting roll on job card {job_card_id}: {e}")
        raise InternalError("Failed to add cutting roll")

@router.delete("/cutting/rolls/{roll_id}", tags=["Cutting"])
def delete_cutting_roll(
    roll_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            ProductionService(db, actor.id).delete_cutting_roll(roll_id)
        return {"message": "Cutting roll deleted successfully"}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting cutting roll {roll_id}: {e}")
        raise InternalError("Failed to delete cutting roll")

@router.put("/cutting/{job_card_id}/wastage", response_model=schemas.CuttingRecord, tags=["Cutting"])
def update_cutting_wastage(
    job_card_id: int,
    wastage: schemas.CuttingWastageUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            record = ProductionService(db, actor.id).update_cutting_wastage(
                job_card_id, wastage.cutting_id, wastage.wastage
            )
        db.refresh(record)
        return record
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating cutting wastage on job card {job_card_id}: {e}")
        raise InternalError("Failed to update cutting wastage")

@router.post("/cutting/{job_card_id}/complete", response_model=schemas.JobCard, tags=["Cutting"])
def complete_cutting(
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
        logger.error(f"Error completing cutting on job card {job_card_id}: {e}")
        raise InternalError("Failed to complete cutting")
