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

STAGE = models.StageTag.PRINTING

# ============================================================================
# PRINTING ENDPOINTS
# ============================================================================

@router.get("/printing", response_model=List[schemas.JobCard], tags=["Printing"])
def get_printing_job_cards(db: Session = Depends(get_db)):
    try:
        return list_stage_job_cards(db, STAGE)
    except Exception as e:
        logger.error(f"Error getting printing job cards: {e}")
        raise InternalError("Failed to get printing job cards")

@router.get("/printing/{job_card_id}", response_model=schemas.PrintingView, tags=["Printing"])
def get_printing(job_card_id: int, db: Session = Depends(get_db)):
    try:
        return get_stage_records(db, job_card_id, STAGE)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting printing for job card {job_card_id}: {e}")
        raise InternalError("Failed to get printing records")

@router.post("/printing/{job_card_id}/add-barcode", response_model=schemas.PrintRecord, tags=["Printing"])
def add_printing_barcode(
    job_card_id: int,
    print_input: schemas.PrintInput,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Pick a roll from stock for printing"""
    try:
        with atomic(db):
            record = ProductionService(db, actor.id).add_print_input(job_card_id, print_input.barcode)
        db.refresh(record)
        return record
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding printing barcode on job card {job_card_id}: {e}")
        raise InternalError("Failed to add printing barcode")

@router.delete("/printing/{job_card_id}/records/{print_id}", tags=["Printing"])
def delete_print_record(
    job_card_id: int,
    print_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            ProductionService(db, actor.id).delete_print_record(job_card_id, print_id)
        return {"message": "Print record deleted successfully"}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting print record {print_id}: {e}")
        raise InternalError("Failed to delete print record")

@router.post("/printing/{job_card_id}/add-pack", response_model=schemas.PrintPack, tags=["Printing"])
def add_print_pack(
    job_card_id: int,
    pack: schemas.PrintPackCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Record a printed pack; it gets a barcode and goes into stock"""
    try:
        with atomic(db):
            db_pack = ProductionService(db, actor.id).add_print_pack(
                job_card_id, pack.print_id, pack.weight, pack.bag_count
            )
        db.refresh(db_pack)
        return db_pack
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adding print pack on job card {job_card_id}: {e}")
        raise InternalError("Failed to add print pack")

@router.delete("/printing/packs/{pack_id}", tags=["Printing"])
def delete_print_pack(
    pack_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            ProductionService(db, actor.id).delete_print_pack(pack_id)
        return {"message": "Print pack deleted successfully"}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting print pack {pack_id}: {e}")
        raise InternalError("Failed to delete print pack")

@router.put("/printing/{job_card_id}/wastage", response_model=schemas.PrintRecord, tags=["Printing"])
def update_printing_wastage(
    job_card_id: int,
    wastage: schemas.PrintWastageUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            record = ProductionService(db, actor.id).update_print_wastage(
                job_card_id,
                wastage.print_id,
                wastage.print_wastage,
                balance_weight=wastage.balance_weight,
                balance_width=wastage.balance_width,
            )
        db.refresh(record)
        return record
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating printing wastage on job card {job_card_id}: {e}")
        raise InternalError("Failed to update printing wastage")

@router.post("/printing/{job_card_id}/complete", response_model=schemas.JobCard, tags=["Printing"])
def complete_printing(
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
        logger.error(f"Error completing printing on job card {job_card_id}: {e}")
        raise InternalError("Failed to complete printing")
