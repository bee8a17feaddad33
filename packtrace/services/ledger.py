"""
Aggregate ledger for parent records that carry running totals.

Material batches total their reels, bundles total their finished items and
stage records count their output rolls. Totals move by deltas in the same
transaction as the child row they describe; none of the functions here
commit. ``recompute_*`` rebuilds totals from a full scan of the children and
is the repair path when stored totals have drifted.
"""

from decimal import Decimal
from typing import Any, Dict, Union
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from .. import models
from ..exceptions import NotFound

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal, None]


def to_decimal(value: Number) -> Decimal:
    """Decimal from whatever the API or the database handed us."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ============================================================================
# MATERIAL BATCH
# ============================================================================

def apply_delta(
    db: Session,
    batch_id: int,
    reel_delta: int = 0,
    net_weight_delta: Number = 0,
    gross_weight_delta: Number = 0,
) -> models.MaterialBatch:
    """
    Add signed deltas to a batch's running totals.

    Runs as a single UPDATE ... SET total = total + delta so the database's
    row lock serialises concurrent writers to the same batch.
    """
    net_delta = to_decimal(net_weight_delta)
    gross_delta = to_decimal(gross_weight_delta)

    updated = (
        db.query(models.MaterialBatch)
        .filter(models.MaterialBatch.id == batch_id)
        .update(
            {
                models.MaterialBatch.total_reels: models.MaterialBatch.total_reels + reel_delta,
                models.MaterialBatch.total_net_weight: models.MaterialBatch.total_net_weight + net_delta,
                models.MaterialBatch.total_gross_weight: models.MaterialBatch.total_gross_weight + gross_delta,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise NotFound(f"Material batch {batch_id} not found", batch_id=batch_id)

    batch = db.get(models.MaterialBatch, batch_id)
    db.refresh(batch)
    logger.info(
        f"Batch totals updated for batch {batch_id}: reels {reel_delta:+d}, "
        f"net {net_delta:+}, gross {gross_delta:+} -> "
        f"{batch.total_reels} reels, {batch.total_net_weight} net"
    )
    return batch


def item_delta(item: models.MaterialItem, sign: int = 1) -> Dict[str, Any]:
    """Contribution of one reel to its batch, positive or negative."""
    return {
        "reel_delta": sign,
        "net_weight_delta": to_decimal(item.net_weight) * sign,
        "gross_weight_delta": to_decimal(item.gross_weight) * sign,
    }


def recompute_batch(db: Session, batch_id: int) -> Dict[str, Any]:
    """Overwrite a batch's totals with a fresh sum over its items."""
    db.flush()
    batch = db.get(models.MaterialBatch, batch_id)
    if not batch:
        raise NotFound(f"Material batch {batch_id} not found", batch_id=batch_id)

    reels, net, gross = (
        db.query(
            func.count(models.MaterialItem.id),
            func.coalesce(func.sum(models.MaterialItem.net_weight), 0),
            func.coalesce(func.sum(models.MaterialItem.gross_weight), 0),
        )
        .filter(models.MaterialItem.batch_id == batch_id)
        .one()
    )

    before = {
        "total_reels": batch.total_reels,
        "total_net_weight": to_decimal(batch.total_net_weight),
        "total_gross_weight": to_decimal(batch.total_gross_weight),
    }
    after = {
        "total_reels": int(reels),
        "total_net_weight": to_decimal(net),
        "total_gross_weight": to_decimal(gross),
    }

    batch.total_reels = after["total_reels"]
    batch.total_net_weight = after["total_net_weight"]
    batch.total_gross_weight = after["total_gross_weight"]

    drifted = before != after
    if drifted:
        logger.warning(f"Batch {batch_id} totals drifted, repaired: {before} -> {after}")
    else:
        logger.info(f"Batch {batch_id} totals verified, no drift")

    return {"batch_id": batch_id, "before": before, "after": after, "drifted": drifted}


# ============================================================================
# BUNDLE
# ============================================================================

def apply_bundle_delta(
    db: Session,
    bundle_id: int,
    weight_delta: Number = 0,
    bag_delta: int = 0,
    complete_delta: int = 0,
    non_complete_delta: int = 0,
) -> models.Bundle:
    """Add signed deltas to a bundle's weight/bag totals and item counts."""
    weight = to_decimal(weight_delta)

    updated = (
        db.query(models.Bundle)
        .filter(models.Bundle.id == bundle_id)
        .update(
            {
                models.Bundle.total_weight: models.Bundle.total_weight + weight,
                models.Bundle.total_bags: models.Bundle.total_bags + bag_delta,
                models.Bundle.complete_count: models.Bundle.complete_count + complete_delta,
                models.Bundle.non_complete_count: models.Bundle.non_complete_count + non_complete_delta,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise NotFound(f"Bundle {bundle_id} not found", bundle_id=bundle_id)

    bundle = db.get(models.Bundle, bundle_id)
    db.refresh(bundle)
    logger.info(
        f"Bundle totals updated for bundle {bundle_id}: weight {weight:+}, bags {bag_delta:+d} -> "
        f"{bundle.total_weight} kg, {bundle.total_bags} bags"
    )
    return bundle


def bundle_item_delta(item, sign: int = 1) -> Dict[str, Any]:
    delta = {
        "weight_delta": to_decimal(item.weight) * sign,
        "bag_delta": int(item.bags or 0) * sign,
    }
    if isinstance(item, models.CompleteItem):
        delta["complete_delta"] = sign
    else:
        delta["non_complete_delta"] = sign
    return delta


def recompute_bundle(db: Session, bundle_id: int) -> Dict[str, Any]:
    """Overwrite a bundle's totals with a fresh sum over its items."""
    db.flush()
    bundle = db.get(models.Bundle, bundle_id)
    if not bundle:
        raise NotFound(f"Bundle {bundle_id} not found", bundle_id=bundle_id)

    complete_count, complete_weight, complete_bags = (
        db.query(
            func.count(models.CompleteItem.id),
            func.coalesce(func.sum(models.CompleteItem.weight), 0),
            func.coalesce(func.sum(models.CompleteItem.bags), 0),
        )
        .filter(models.CompleteItem.bundle_id == bundle_id)
        .one()
    )
    non_complete_count, non_complete_weight, non_complete_bags = (
        db.query(
            func.count(models.NonCompleteItem.id),
            func.coalesce(func.sum(models.NonCompleteItem.weight), 0),
            func.coalesce(func.sum(models.NonCompleteItem.bags), 0),
        )
        .filter(models.NonCompleteItem.bundle_id == bundle_id)
        .one()
    )

    before = {
        "total_weight": to_decimal(bundle.total_weight),
        "total_bags": bundle.total_bags,
        "complete_count": bundle.complete_count,
        "non_complete_count": bundle.non_complete_count,
    }
    after = {
        "total_weight": to_decimal(complete_weight) + to_decimal(non_complete_weight),
        "total_bags": int(complete_bags) + int(non_complete_bags),
        "complete_count": int(complete_count),
        "non_complete_count": int(non_complete_count),
    }
    for field, value in after.items():
        setattr(bundle, field, value)

    drifted = before != after
    if drifted:
        logger.warning(f"Bundle {bundle_id} totals drifted, repaired: {before} -> {after}")

    return {"bundle_id": bundle_id, "before": before, "after": after, "drifted": drifted}


# ============================================================================
# STAGE RECORDS
# ============================================================================

def recount_stage_outputs(db: Session, record) -> int:
    """Reset a stage record's output counter from its children."""
    db.flush()
    if isinstance(record, models.SlittingRecord):
        record.number_of_roll = db.query(models.SlittingRoll).filter(
            models.SlittingRoll.slitting_id == record.id
        ).count()
        return record.number_of_roll
    if isinstance(record, models.CuttingRecord):
        record.number_of_roll = db.query(models.CuttingRoll).filter(
            models.CuttingRoll.cutting_id == record.id
        ).count()
        return record.number_of_roll
    if isinstance(record, models.PrintRecord):
        record.number_of_bag = int(
            db.query(func.coalesce(func.sum(models.PrintPack.bag_count), 0))
            .filter(models.PrintPack.print_id == record.id)
            .scalar()
        )
        return record.number_of_bag
    raise ValueError(f"Unsupported stage record: {record.__class__.__name__}")
