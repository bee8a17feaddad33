from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc, func
import logging

from .. import models, schemas
from ..exceptions import ConflictError, NotFound, ValidationError
from ..services.stage_linker import STAGE_RECORD_MODELS, STAGE_NAMES, encode_stages, parse_stages, stage_filter
from .base import column_values
from .masters import customers

logger = logging.getLogger(__name__)

StageTag = models.StageTag

PRINTING_COLOUR_SLOTS = 4

STAGE_FLAGS = {
    "slitting": StageTag.SLITTING,
    "printing": StageTag.PRINTING,
    "cutting": StageTag.CUTTING,
}


def _stages_from_flags(data: dict) -> List[StageTag]:
    return [tag for flag, tag in STAGE_FLAGS.items() if data.get(flag)]


def _colour_slots(colours: Optional[List[str]]):
    """Printing colours are kept as four comma separated slots, blanks padded."""
    colours = [c.strip() for c in (colours or []) if c and c.strip()]
    if len(colours) > PRINTING_COLOUR_SLOTS:
        raise ValidationError(f"At most {PRINTING_COLOUR_SLOTS} printing colours are supported")
    padded = colours + [""] * (PRINTING_COLOUR_SLOTS - len(colours))
    return ",".join(padded), len(colours)


def _check_references(db: Session, data: dict) -> None:
    if data.get("customer_id") is not None:
        customers.get_active(db, data["customer_id"])
    for field, model in (
        ("particular_id", models.Particular),
        ("cutting_type_id", models.CuttingType),
        ("bag_type_id", models.BagType),
    ):
        value = data.get(field)
        if value is not None and not db.get(model, value):
            raise NotFound(f"{model.__name__} {value} not found", **{field: value})


def get_job_card(db: Session, job_card_id: int) -> models.JobCard:
    job_card = (
        db.query(models.JobCard)
        .options(joinedload(models.JobCard.customer))
        .filter(models.JobCard.id == job_card_id)
        .first()
    )
    if not job_card:
        raise NotFound(f"Job card {job_card_id} not found", job_card_id=job_card_id)
    return job_card


def get_job_cards(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    customer_id: Optional[int] = None,
    stage: Optional[StageTag] = None,
    status: Optional[str] = models.RecordStatus.ACTIVE.value
) -> List[models.JobCard]:
    query = db.query(models.JobCard)
    if status:
        query = query.filter(models.JobCard.status == status)
    if customer_id:
        query = query.filter(models.JobCard.customer_id == customer_id)
    if stage is not None:
        query = query.filter(stage_filter(stage))
    return query.order_by(desc(models.JobCard.id)).offset(skip).limit(limit).all()


def create_job_card(db: Session, *, job_card: schemas.JobCardCreate, actor_id: int) -> models.JobCard:
    """Create a job card; its stage list comes from the stage flags that are switched on"""
    data = job_card.model_dump()
    _check_references(db, data)

    stages = _stages_from_flags(data)
    if not stages:
        raise ValidationError("A job card needs at least one of slitting, printing or cutting")

    for flag in STAGE_FLAGS:
        data.pop(flag, None)
    data["printing_colours"], colour_count = _colour_slots(data.pop("printing_colours", None))
    if data.get("printing_colour_count") is None:
        data["printing_colour_count"] = colour_count

    db_job_card = models.JobCard(
        **data,
        stage_list=encode_stages(stages),
        created_by_id=actor_id,
    )
    db.add(db_job_card)
    db.flush()
    logger.info(f"Created job card {db_job_card.id} for customer {db_job_card.customer_id} with stages '{db_job_card.stage_list}'")
    return db_job_card


def update_job_card(
    db: Session,
    *,
    job_card_id: int,
    job_card_update: schemas.JobCardUpdate,
    actor_id: int
) -> models.JobCard:
    """
    Update instructions and stage membership.

    A stage that already has production records on this job card cannot be
    switched off.
    """
    db_job_card = get_job_card(db, job_card_id)
    data = column_values(job_card_update.model_dump(exclude_unset=True))
    _check_references(db, data)

    if any(flag in data for flag in STAGE_FLAGS):
        stages = parse_stages(db_job_card.stage_list)
        for flag, tag in STAGE_FLAGS.items():
            if flag not in data:
                continue
            if data.pop(flag):
                stages.add(tag)
            elif tag in stages:
                model = STAGE_RECORD_MODELS[tag]
                in_use = db.query(model.id).filter(model.job_card_id == job_card_id).first()
                if in_use:
                    raise ConflictError(
                        f"Job card {job_card_id} already has {STAGE_NAMES[tag]} records",
                        job_card_id=job_card_id,
                    )
                stages.discard(tag)
        if not stages:
            raise ValidationError("A job card needs at least one of slitting, printing or cutting")
        db_job_card.stage_list = encode_stages(stages)

    if "printing_colours" in data:
        data["printing_colours"], colour_count = _colour_slots(data["printing_colours"])
        data.setdefault("printing_colour_count", colour_count)

    for field, value in data.items():
        setattr(db_job_card, field, value)

    db.flush()
    logger.info(f"Updated job card {job_card_id} by user {actor_id}")
    return db_job_card


def get_stock_options(db: Session, particular_id: int) -> List[Dict[str, Any]]:
    """Distinct gsm/size pairs of available stock for a particular, to fill in a new job card."""
    if not db.get(models.Particular, particular_id):
        raise NotFound(f"Particular {particular_id} not found", particular_id=particular_id)

    rows = (
        db.query(models.StockUnit.gsm, models.StockUnit.size, func.count(models.StockUnit.id))
        .filter(
            models.StockUnit.particular_id == particular_id,
            models.StockUnit.status == models.StockStatus.AVAILABLE.value,
        )
        .group_by(models.StockUnit.gsm, models.StockUnit.size)
        .order_by(models.StockUnit.gsm, models.StockUnit.size)
        .all()
    )
    return [{"gsm": gsm, "size": size, "units": units} for gsm, size, units in rows]
