"""
Job card stage membership.

A job card lists the production stages it goes through as comma-joined tags
("1" slitting, "2" printing, "3" cutting), e.g. "1,3". Membership is tested
on delimiter boundaries: "13" is not a member list containing "3".
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional, Set, Union

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from ..exceptions import NotFound, ValidationError

logger = logging.getLogger(__name__)

StageTag = models.StageTag

STAGE_NAMES: Dict[StageTag, str] = {
    StageTag.SLITTING: "slitting",
    StageTag.PRINTING: "printing",
    StageTag.CUTTING: "cutting",
}

COMPLETION_FLAGS: Dict[StageTag, str] = {
    StageTag.SLITTING: "slitting_done",
    StageTag.PRINTING: "printing_done",
    StageTag.CUTTING: "cutting_done",
}

STAGE_RECORD_MODELS = {
    StageTag.SLITTING: models.SlittingRecord,
    StageTag.PRINTING: models.PrintRecord,
    StageTag.CUTTING: models.CuttingRecord,
}


def to_stage_tag(value: Union[StageTag, str, int]) -> StageTag:
    if isinstance(value, StageTag):
        return value
    text = str(value).strip().lower()
    for tag, name in STAGE_NAMES.items():
        if text == tag.value or text == name:
            return tag
    raise ValidationError(f"Unknown stage: '{value}'")


def has_stage(stage_list: Optional[str], tag: Union[StageTag, str, int]) -> bool:
    """True when ``tag`` is one of the comma-separated entries of ``stage_list``."""
    if not stage_list:
        return False
    value = to_stage_tag(tag).value if isinstance(tag, StageTag) else str(tag)
    return (
        stage_list == value
        or stage_list.startswith(f"{value},")
        or stage_list.endswith(f",{value}")
        or f",{value}," in stage_list
    )


def parse_stages(stage_list: Optional[str]) -> Set[StageTag]:
    stages = set()
    for part in (stage_list or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            stages.add(StageTag(part))
        except ValueError:
            logger.warning(f"Ignoring unknown stage tag '{part}' in stage list '{stage_list}'")
    return stages


def encode_stages(tags: Iterable[Union[StageTag, str, int]]) -> str:
    """Sorted, de-duplicated comma string for the stage_list column."""
    unique = {to_stage_tag(tag) for tag in tags}
    return ",".join(tag.value for tag in sorted(unique, key=lambda t: t.value))


def stage_filter(tag: Union[StageTag, str, int]):
    """SQL equivalent of has_stage for querying job cards."""
    value = to_stage_tag(tag).value
    column = models.JobCard.stage_list
    return or_(
        column == value,
        column.like(f"{value},%"),
        column.like(f"%,{value}"),
        column.like(f"%,{value},%"),
    )


def job_cards_in_stage(db: Session, tag: Union[StageTag, str, int]):
    return (
        db.query(models.JobCard)
        .filter(stage_filter(tag), models.JobCard.status == models.RecordStatus.ACTIVE.value)
        .order_by(models.JobCard.id.desc())
        .all()
    )


def complete_stage(db: Session, job_card_id: int, tag: Union[StageTag, str, int], actor_id: int) -> models.JobCard:
    """
    Mark a stage done on a job card. The stage stays in stage_list.
    Does not commit.
    """
    stage = to_stage_tag(tag)
    job_card = db.get(models.JobCard, job_card_id)
    if not job_card:
        raise NotFound(f"Job card {job_card_id} not found", job_card_id=job_card_id)

    setattr(job_card, COMPLETION_FLAGS[stage], True)
    logger.info(f"Job card {job_card_id}: {STAGE_NAMES[stage]} marked complete by user {actor_id}")
    return job_card


def stage_exists(db: Session, job_card_id: int, tag: Union[StageTag, str, int]) -> bool:
    """Whether the job card lists the stage and is visible on that stage's page."""
    stage = to_stage_tag(tag)
    job_card = db.get(models.JobCard, job_card_id)
    if not job_card:
        raise NotFound(f"Job card {job_card_id} not found", job_card_id=job_card_id)
    return has_stage(job_card.stage_list, stage)


async def related_stages(
    session_factory: Callable[[], Session],
    job_card_id: int,
    current: Optional[Union[StageTag, str, int]] = None,
) -> Dict[str, bool]:
    """
    Check every stage other than ``current`` for the job card.

    Checks run concurrently in the thread pool, each on its own session.
    A check that fails counts as "stage does not exist".
    """
    current_tag = to_stage_tag(current) if current is not None else None
    targets = [tag for tag in STAGE_NAMES if tag != current_tag]

    def exists(tag: StageTag) -> bool:
        db = session_factory()
        try:
            return stage_exists(db, job_card_id, tag)
        finally:
            db.close()

    results = await asyncio.gather(
        *(run_in_threadpool(exists, tag) for tag in targets),
        return_exceptions=True,
    )

    related = {}
    for tag, result in zip(targets, results):
        if isinstance(result, Exception):
            logger.warning(f"Stage check {STAGE_NAMES[tag]} failed for job card {job_card_id}: {result}")
            related[STAGE_NAMES[tag]] = False
        else:
            related[STAGE_NAMES[tag]] = bool(result)
    return related
