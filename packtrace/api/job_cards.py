from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import database, models, schemas
from ..crud import job_cards
from ..services.stage_linker import related_stages, to_stage_tag

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# JOB CARD ENDPOINTS
# ============================================================================

@router.get("/job-cards", response_model=List[schemas.JobCard], tags=["Job Cards"])
def get_job_cards(
    customer_id: Optional[int] = None,
    stage: Optional[schemas.StageName] = None,
    page: Pagination = Depends(),
    db: Session = Depends(get_db)
):
    """Active job cards, optionally only those going through one stage"""
    try:
        return job_cards.get_job_cards(
            db,
            skip=page.skip,
            limit=page.limit,
            customer_id=customer_id,
            stage=to_stage_tag(stage.value) if stage else None,
        )
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting job cards: {e}")
        raise InternalError("Failed to get job cards")

@router.get("/job-cards/stock/{particular_id}", response_model=schemas.JobCardStockOptions, tags=["Job Cards"])
def get_job_card_stock_options(particular_id: int, db: Session = Depends(get_db)):
    """GSM and size combinations in stock for a particular"""
    try:
        return {"particular_id": particular_id, "options": job_cards.get_stock_options(db, particular_id)}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting stock options for particular {particular_id}: {e}")
        raise InternalError("Failed to get stock options")

@router.post("/job-cards", response_model=schemas.JobCard, tags=["Job Cards"])
def create_job_card(
    job_card: schemas.JobCardCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            db_job_card = job_cards.create_job_card(db, job_card=job_card, actor_id=actor.id)
        db.refresh(db_job_card)
        return db_job_card
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating job card: {e}")
        raise InternalError("Failed to create job card")

@router.get("/job-cards/{job_card_id}", response_model=schemas.JobCard, tags=["Job Cards"])
def get_job_card(job_card_id: int, db: Session = Depends(get_db)):
    try:
        return job_cards.get_job_card(db, job_card_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting job card {job_card_id}: {e}")
        raise InternalError("Failed to get job card")

@router.put("/job-cards/{job_card_id}", response_model=schemas.JobCard, tags=["Job Cards"])
def update_job_card(
    job_card_id: int,
    job_card_update: schemas.JobCardUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            db_job_card = job_cards.update_job_card(
                db, job_card_id=job_card_id, job_card_update=job_card_update, actor_id=actor.id
            )
        db.refresh(db_job_card)
        return db_job_card
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating job card {job_card_id}: {e}")
        raise InternalError("Failed to update job card")

@router.get("/job-cards/{job_card_id}/related-stages", response_model=schemas.RelatedStages, tags=["Job Cards"])
async def get_related_stages(job_card_id: int, current: Optional[schemas.StageName] = None):
    """Which other stages this job card also goes through, for stage-to-stage navigation"""
    try:
        stages = await related_stages(database.SessionLocal, job_card_id, current.value if current else None)
        return {"job_card_id": job_card_id, "current": current, "stages": stages}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error probing related stages for job card {job_card_id}: {e}")
        raise InternalError("Failed to get related stages")
