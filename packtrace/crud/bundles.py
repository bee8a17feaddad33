from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc, func
import logging

from .. import models, schemas
from ..exceptions import ConflictError, NotFound, ValidationError
from ..services import ledger
from ..services.barcode_generator import BarcodeGenerator
from ..services.stock_state import StockStateMachine

logger = logging.getLogger(__name__)

# ============================================================================
# COMPLETE / NON-COMPLETE ITEMS
# ============================================================================

def _require_bundle(db: Session, bundle_id: Optional[int]) -> Optional[models.Bundle]:
    if bundle_id is None:
        return None
    bundle = db.get(models.Bundle, bundle_id)
    if not bundle:
        raise NotFound(f"Bundle {bundle_id} not found", bundle_id=bundle_id)
    return bundle

def create_complete_item(
    db: Session,
    *,
    item: schemas.CompleteItemCreate,
    actor_id: int,
    moment: Optional[datetime] = None
) -> models.CompleteItem:
    """
    Weigh in a finished, sellable item. Without a bundle it is staged until
    a bundle is finalized; with one it counts into that bundle's totals.
    """
    _require_bundle(db, item.bundle_id)

    db_item = models.CompleteItem(
        bundle_id=item.bundle_id,
        bundle_type=item.bundle_type,
        weight=ledger.to_decimal(item.weight),
        bags=item.bags,
        is_active=True,
        created_by_id=actor_id,
    )
    db.add(db_item)
    db.flush()
    BarcodeGenerator.assign_timestamp_barcode(db, db_item, moment)
    db.flush()

    if db_item.bundle_id is not None:
        ledger.apply_bundle_delta(db, db_item.bundle_id, **ledger.bundle_item_delta(db_item, +1))

    logger.info(f"Created complete item {db_item.barcode} ({db_item.bundle_type}, {db_item.bags} bags)")
    return db_item

def create_non_complete_item(
    db: Session,
    *,
    item: schemas.NonCompleteItemCreate,
    actor_id: int,
    moment: Optional[datetime] = None
) -> models.NonCompleteItem:
    _require_bundle(db, item.bundle_id)

    db_item = models.NonCompleteItem(
        bundle_id=item.bundle_id,
        weight=ledger.to_decimal(item.weight),
        bags=item.bags,
        is_active=True,
        created_by_id=actor_id,
    )
    db.add(db_item)
    db.flush()
    BarcodeGenerator.assign_timestamp_barcode(db, db_item, moment)
    db.flush()

    if db_item.bundle_id is not None:
        ledger.apply_bundle_delta(db, db_item.bundle_id, **ledger.bundle_item_delta(db_item, +1))

    logger.info(f"Created non-complete item {db_item.barcode} ({db_item.bags} bags)")
    return db_item

def get_complete_items(db: Session, staged_only: bool = True, bundle_id: Optional[int] = None) -> List[models.CompleteItem]:
    query = db.query(models.CompleteItem).filter(models.CompleteItem.is_active.is_(True))
    if bundle_id is not None:
        query = query.filter(models.CompleteItem.bundle_id == bundle_id)
    elif staged_only:
        query = query.filter(models.CompleteItem.bundle_id.is_(None))
    return query.order_by(desc(models.CompleteItem.id)).all()

def get_non_complete_items(db: Session, staged_only: bool = True, bundle_id: Optional[int] = None) -> List[models.NonCompleteItem]:
    query = db.query(models.NonCompleteItem).filter(models.NonCompleteItem.is_active.is_(True))
    if bundle_id is not None:
        query = query.filter(models.NonCompleteItem.bundle_id == bundle_id)
    elif staged_only:
        query = query.filter(models.NonCompleteItem.bundle_id.is_(None))
    return query.order_by(desc(models.NonCompleteItem.id)).all()

def delete_complete_item(db: Session, *, item_id: int, actor_id: int) -> Dict[str, Any]:
    """Remove an unsold item and take it off its bundle's totals"""
    item = db.get(models.CompleteItem, item_id)
    if not item:
        raise NotFound(f"Complete item {item_id} not found", item_id=item_id)
    if not item.is_active:
        raise ConflictError(f"Complete item {item.barcode} has been sold and cannot be deleted", item_id=item_id)

    bundle_id = item.bundle_id
    delta = ledger.bundle_item_delta(item, -1)
    db.delete(item)
    db.flush()
    if bundle_id is not None:
        ledger.apply_bundle_delta(db, bundle_id, **delta)

    logger.info(f"Deleted complete item {item_id} by user {actor_id}")
    return {"item_id": item_id, "bundle_id": bundle_id}

def delete_non_complete_item(db: Session, *, item_id: int, actor_id: int) -> Dict[str, Any]:
    item = db.get(models.NonCompleteItem, item_id)
    if not item:
        raise NotFound(f"Non-complete item {item_id} not found", item_id=item_id)

    bundle_id = item.bundle_id
    delta = ledger.bundle_item_delta(item, -1)
    db.delete(item)
    db.flush()
    if bundle_id is not None:
        ledger.apply_bundle_delta(db, bundle_id, **delta)

    logger.info(f"Deleted non-complete item {item_id} by user {actor_id}")
    return {"item_id": item_id, "bundle_id": bundle_id}

# ============================================================================
# WASTAGE TRACE
# ============================================================================

def trace_wastage(db: Session, cutting_roll_id: int) -> Dict[str, Any]:
    """
    Follow a cutting roll back through the stages that fed it.

    cutting roll -> cutting record input -> print pack -> print record input
    -> slitting roll -> slitting record. When the cutting input was a
    slitting roll (no printing), slitting wastage is read from it directly.
    Missing links contribute zero wastage.
    """
    roll = db.get(models.CuttingRoll, cutting_roll_id)
    if not roll:
        raise NotFound(f"Cutting roll {cutting_roll_id} not found", cutting_roll_id=cutting_roll_id)

    job_card = db.get(models.JobCard, roll.job_card_id)
    bag_type = job_card.bag_type.bag_type if job_card and job_card.bag_type else ""

    slitting_wastage = Decimal("0")
    printing_wastage = Decimal("0")

    cutting = roll.cutting
    if cutting and cutting.input_barcode:
        pack = db.query(models.PrintPack).filter(models.PrintPack.barcode == cutting.input_barcode).first()
        slitting_source = cutting.input_barcode
        if pack:
            print_record = pack.print_record
            printing_wastage = ledger.to_decimal(print_record.print_wastage)
            slitting_source = print_record.input_barcode

        slitting_roll = (
            db.query(models.SlittingRoll).filter(models.SlittingRoll.barcode == slitting_source).first()
            if slitting_source
            else None
        )
        if slitting_roll:
            slitting_wastage = ledger.to_decimal(slitting_roll.slitting.wastage)

    return {
        "cutting_roll_id": roll.id,
        "job_card_id": roll.job_card_id,
        "no_of_bags": roll.no_of_bags,
        "bag_type": bag_type,
        "slitting_wastage": slitting_wastage,
        "printing_wastage": printing_wastage,
        "cutting_wastage": ledger.to_decimal(roll.cutting_wastage),
    }

# ============================================================================
# BUNDLES
# ============================================================================

def get_bundle(db: Session, bundle_id: int) -> models.Bundle:
    bundle = (
        db.query(models.Bundle)
        .options(
            joinedload(models.Bundle.complete_items),
            joinedload(models.Bundle.non_complete_items),
            joinedload(models.Bundle.cutting_roll),
        )
        .filter(models.Bundle.id == bundle_id)
        .first()
    )
    if not bundle:
        raise NotFound(f"Bundle {bundle_id} not found", bundle_id=bundle_id)
    return bundle

def get_bundles(db: Session, skip: int = 0, limit: int = 100, job_card_id: Optional[int] = None) -> List[models.Bundle]:
    query = db.query(models.Bundle).options(joinedload(models.Bundle.cutting_roll))
    if job_card_id:
        query = query.filter(models.Bundle.job_card_id == job_card_id)
    return query.order_by(desc(models.Bundle.id)).offset(skip).limit(limit).all()

def _staged(db: Session, model, ids: List[int], label: str) -> list:
    ids = list(dict.fromkeys(ids or []))
    if not ids:
        return []
    rows = (
        db.query(model)
        .filter(model.id.in_(ids), model.bundle_id.is_(None), model.is_active.is_(True))
        .all()
    )
    if len(rows) != len(ids):
        missing = sorted(set(ids) - {row.id for row in rows})
        raise ConflictError(
            f"Expected {len(ids)} staged {label} items, found {len(rows)}",
            expected=len(ids),
            found=len(rows),
            missing=missing,
        )
    return rows

def finalize_bundle(db: Session, *, bundle_in: schemas.BundleFinalize, actor_id: int) -> models.Bundle:
    """
    Pack staged items from one cutting roll into a new bundle.

    The cutting roll's stock unit is consumed, the bundle takes the wastage
    traced back from the roll, and the items' weights and bags become the
    bundle totals.
    """
    if not bundle_in.complete_item_ids and not bundle_in.non_complete_item_ids:
        raise ValidationError("A bundle needs at least one complete or non-complete item")

    trace = trace_wastage(db, bundle_in.cutting_roll_id)
    roll = db.get(models.CuttingRoll, bundle_in.cutting_roll_id)

    complete = _staged(db, models.CompleteItem, bundle_in.complete_item_ids, "complete")
    non_complete = _staged(db, models.NonCompleteItem, bundle_in.non_complete_item_ids, "non-complete")

    StockStateMachine(db, actor_id).consume(roll.barcode)

    bundle_type = bundle_in.bundle_type or trace["bag_type"] or (complete[0].bundle_type if complete else None)
    bundle = models.Bundle(
        cutting_roll_id=roll.id,
        job_card_id=roll.job_card_id,
        bundle_type=bundle_type,
        total_weight=0,
        total_bags=0,
        complete_count=0,
        non_complete_count=0,
        slitting_wastage=trace["slitting_wastage"],
        printing_wastage=trace["printing_wastage"],
        cutting_wastage=trace["cutting_wastage"],
        created_by_id=actor_id,
    )
    db.add(bundle)
    db.flush()

    weight = Decimal("0")
    bags = 0
    for item in complete + non_complete:
        item.bundle_id = bundle.id
        weight += ledger.to_decimal(item.weight)
        bags += int(item.bags or 0)
    db.flush()

    ledger.apply_bundle_delta(
        db,
        bundle.id,
        weight_delta=weight,
        bag_delta=bags,
        complete_delta=len(complete),
        non_complete_delta=len(non_complete),
    )
    logger.info(
        f"Finalized bundle {bundle.id} from cutting roll {roll.barcode}: "
        f"{len(complete)} complete, {len(non_complete)} non-complete, {bundle.total_bags} bags"
    )
    return bundle

def recompute_bundle(db: Session, *, bundle_id: int) -> Dict[str, Any]:
    return ledger.recompute_bundle(db, bundle_id)

# ============================================================================
# FINISHED GOODS
# ============================================================================

def get_finished_goods(
    db: Session,
    bundle_type: Optional[str] = None,
    status: str = "all"
) -> List[models.CompleteItem]:
    """Complete items, filtered by bundle type and by "in" (in stock) or "out" (sold)"""
    query = db.query(models.CompleteItem)
    if bundle_type and bundle_type != "all":
        query = query.filter(models.CompleteItem.bundle_type == bundle_type)
    if status == "in":
        query = query.filter(models.CompleteItem.is_active.is_(True))
    elif status == "out":
        query = query.filter(models.CompleteItem.is_active.is_(False))
    return query.order_by(desc(models.CompleteItem.id)).all()

def get_stock_in_hand(db: Session) -> List[Dict[str, Any]]:
    """In-stock complete items grouped by bundle type, in bag type order"""
    rows = (
        db.query(
            models.CompleteItem.bundle_type,
            func.count(models.CompleteItem.id),
            func.coalesce(func.sum(models.CompleteItem.weight), 0),
            func.coalesce(func.sum(models.CompleteItem.bags), 0),
        )
        .filter(models.CompleteItem.is_active.is_(True))
        .group_by(models.CompleteItem.bundle_type)
        .all()
    )
    bag_ids = {
        bag.bag_type: bag.id
        for bag in db.query(models.BagType).filter(models.BagType.bag_type.in_([row[0] for row in rows])).all()
    } if rows else {}

    result = [
        {
            "bag_type_id": bag_ids.get(bundle_type),
            "bundle_type": bundle_type,
            "item_count": int(count),
            "total_weight": ledger.to_decimal(weight),
            "total_bags": int(bags),
        }
        for bundle_type, count, weight, bags in rows
    ]
    result.sort(key=lambda row: (row["bag_type_id"] is None, row["bag_type_id"] or 0, row["bundle_type"]))
    return result
