from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
import logging

from .. import models, schemas
from ..config import settings
from ..exceptions import ConflictError, NotFound, ValidationError
from ..services import ledger
from ..services.barcode_generator import BarcodeGenerator
from ..services.id_generator import FrontendIDGenerator
from ..services.stock_state import StockStateMachine

logger = logging.getLogger(__name__)

# ============================================================================
# LOOKUPS
# ============================================================================

def get_batch(db: Session, batch_id: int) -> models.MaterialBatch:
    batch = (
        db.query(models.MaterialBatch)
        .options(joinedload(models.MaterialBatch.items), joinedload(models.MaterialBatch.supplier))
        .filter(models.MaterialBatch.id == batch_id)
        .first()
    )
    if not batch:
        raise NotFound(f"Material batch {batch_id} not found", batch_id=batch_id)
    return batch

def get_batches(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    supplier_id: Optional[int] = None
) -> List[models.MaterialBatch]:
    """Batches, newest first, optionally for one supplier"""
    query = db.query(models.MaterialBatch).order_by(desc(models.MaterialBatch.created_at), desc(models.MaterialBatch.id))
    if supplier_id:
        query = query.filter(models.MaterialBatch.supplier_id == supplier_id)
    return query.offset(skip).limit(limit).all()

def get_staged_items(db: Session, created_by_id: Optional[int] = None) -> List[models.MaterialItem]:
    """Reels received but not yet finalized into a batch"""
    query = db.query(models.MaterialItem).filter(models.MaterialItem.batch_id.is_(None))
    if created_by_id:
        query = query.filter(models.MaterialItem.created_by_id == created_by_id)
    return query.order_by(models.MaterialItem.id).all()

def get_item(db: Session, item_id: int) -> models.MaterialItem:
    item = db.get(models.MaterialItem, item_id)
    if not item:
        raise NotFound(f"Material item {item_id} not found", item_id=item_id)
    return item

def _require_supplier(db: Session, supplier_id: int) -> models.Supplier:
    supplier = db.get(models.Supplier, supplier_id)
    if not supplier or supplier.status != models.RecordStatus.ACTIVE.value:
        raise NotFound(f"Supplier {supplier_id} not found", supplier_id=supplier_id)
    return supplier

def _require_particular(db: Session, particular_id: Optional[int]) -> None:
    if particular_id is not None and not db.get(models.Particular, particular_id):
        raise NotFound(f"Particular {particular_id} not found", particular_id=particular_id)

def _stock_in(db: Session, item: models.MaterialItem, actor_id: int) -> models.StockUnit:
    """A reel that belongs to a batch is available to production."""
    return StockStateMachine(db, actor_id).create(
        barcode=item.barcode,
        source_type=models.StockSource.MATERIAL,
        source_id=item.id,
        net_weight=item.net_weight,
        batch_id=item.batch_id,
        particular_id=item.particular_id,
        gsm=item.gsm,
        size=item.size,
    )

# ============================================================================
# MATERIAL ITEMS
# ============================================================================

def add_item(
    db: Session,
    *,
    item_data: schemas.MaterialItemCreate,
    actor_id: int,
    batch_id: Optional[int] = None
) -> models.MaterialItem:
    """
    Receive one reel, either into an existing batch or as a staged item.

    The reel's barcode is its id followed by the digits of its reel number.
    Reels in a batch move the batch totals and enter stock straight away,
    staged reels do both when their batch is finalized.
    """
    if batch_id is not None and not db.get(models.MaterialBatch, batch_id):
        raise NotFound(f"Material batch {batch_id} not found", batch_id=batch_id)
    _require_particular(db, item_data.particular_id)

    if not BarcodeGenerator.digits_only(item_data.reel_no):
        raise ValidationError(f"Reel number '{item_data.reel_no}' has no digits to build a barcode from")

    item = models.MaterialItem(
        **item_data.model_dump(),
        batch_id=batch_id,
        created_by_id=actor_id,
    )
    db.add(item)
    db.flush()

    barcode = BarcodeGenerator.compose(item.id, item.reel_no)
    clash = db.query(models.MaterialItem.id).filter(models.MaterialItem.barcode == barcode).first()
    if clash:
        raise ConflictError(
            f"Barcode {barcode} already belongs to material item {clash[0]}",
            barcode=barcode,
        )
    BarcodeGenerator.assign_reel_barcode(db, item)
    db.flush()

    if batch_id is not None:
        ledger.apply_delta(db, batch_id, **ledger.item_delta(item, +1))
        _stock_in(db, item, actor_id)

    logger.info(f"Received reel {item.reel_no} as item {item.id} ({'batch ' + str(batch_id) if batch_id else 'staged'})")
    return item

def update_item(
    db: Session,
    *,
    item_id: int,
    item_update: schemas.MaterialItemUpdate,
    actor_id: int
) -> models.MaterialItem:
    """Edit a reel; a weight change moves its batch totals by the difference"""
    item = get_item(db, item_id)
    update_data = item_update.model_dump(exclude_unset=True)
    _require_particular(db, update_data.get("particular_id"))

    old_net = ledger.to_decimal(item.net_weight)
    old_gross = ledger.to_decimal(item.gross_weight)

    for field, value in update_data.items():
        setattr(item, field, value)

    net_diff = ledger.to_decimal(item.net_weight) - old_net
    gross_diff = ledger.to_decimal(item.gross_weight) - old_gross

    if item.batch_id is not None:
        unit = StockStateMachine(db, actor_id).find(item.barcode)
        if unit:
            if net_diff and not unit.is_available:
                raise ConflictError(
                    f"Reel {item.barcode} is already in production, its weight can no longer change",
                    barcode=item.barcode,
                )
            unit.net_weight = item.net_weight
            unit.particular_id = item.particular_id
            unit.gsm = item.gsm
            unit.size = item.size
        db.flush()
        if net_diff or gross_diff:
            ledger.apply_delta(db, item.batch_id, net_weight_delta=net_diff, gross_weight_delta=gross_diff)
    else:
        db.flush()

    logger.info(f"Updated material item {item_id} by user {actor_id}")
    return item

def delete_item(db: Session, *, item_id: int, actor_id: int) -> Dict[str, Any]:
    """Remove a reel and take it off its batch totals"""
    item = get_item(db, item_id)
    batch_id = item.batch_id

    if batch_id is not None:
        stock = StockStateMachine(db, actor_id)
        unit = stock.find(item.barcode)
        if unit and not unit.is_available:
            raise ConflictError(
                f"Reel {item.barcode} has been consumed by production and cannot be deleted",
                barcode=item.barcode,
            )
        delta = ledger.item_delta(item, -1)
        if unit:
            stock.reverse_output(unit.barcode, mode="delete")
        db.delete(item)
        db.flush()
        ledger.apply_delta(db, batch_id, **delta)
    else:
        db.delete(item)
        db.flush()

    logger.info(f"Deleted material item {item_id} by user {actor_id}")
    return {"item_id": item_id, "batch_id": batch_id}

# ============================================================================
# MATERIAL BATCHES
# ============================================================================

def create_batch(
    db: Session,
    *,
    supplier_id: int,
    items: List[schemas.MaterialItemCreate],
    actor_id: int
) -> models.MaterialBatch:
    """Create a batch together with its reels"""
    _require_supplier(db, supplier_id)
    for item_data in items:
        _require_particular(db, item_data.particular_id)

    batch = models.MaterialBatch(
        frontend_id=FrontendIDGenerator.generate_frontend_id("material_batch", db),
        supplier_id=supplier_id,
        total_reels=0,
        total_net_weight=0,
        total_gross_weight=0,
        created_by_id=actor_id,
    )
    db.add(batch)
    db.flush()

    for item_data in items:
        add_item(db, item_data=item_data, actor_id=actor_id, batch_id=batch.id)

    db.refresh(batch)
    logger.info(f"Created material batch {batch.frontend_id} with {batch.total_reels} reels")
    return batch

def finalize_batch(
    db: Session,
    *,
    item_ids: List[int],
    supplier_id: int,
    actor_id: int,
    allow_partial: Optional[bool] = None
) -> models.MaterialBatch:
    """
    Move staged reels into a new batch and put them into stock.

    Only staged reels match. When some of the requested ids are not staged
    (already finalized, deleted or never existed) the request is rejected
    unless partial finalize is allowed, in which case the matched subset is
    finalized and a warning is logged.
    """
    if allow_partial is None:
        allow_partial = settings.FINALIZE_ALLOW_PARTIAL

    requested = list(dict.fromkeys(item_ids))
    if not requested:
        raise ValidationError("No staged items given to finalize")
    _require_supplier(db, supplier_id)

    staged = (
        db.query(models.MaterialItem)
        .filter(models.MaterialItem.id.in_(requested), models.MaterialItem.batch_id.is_(None))
        .order_by(models.MaterialItem.id)
        .all()
    )

    if not staged:
        raise ConflictError(
            f"Expected {len(requested)} staged items, found 0",
            expected=len(requested),
            found=0,
        )
    if len(staged) != len(requested):
        missing = sorted(set(requested) - {item.id for item in staged})
        if not allow_partial:
            raise ConflictError(
                f"Expected {len(requested)} staged items, found {len(staged)}",
                expected=len(requested),
                found=len(staged),
                missing=missing,
            )
        logger.warning(
            f"Finalizing {len(staged)} of {len(requested)} requested staged items, "
            f"not staged: {missing}"
        )

    batch = models.MaterialBatch(
        frontend_id=FrontendIDGenerator.generate_frontend_id("material_batch", db),
        supplier_id=supplier_id,
        total_reels=0,
        total_net_weight=0,
        total_gross_weight=0,
        created_by_id=actor_id,
    )
    db.add(batch)
    db.flush()

    reels = 0
    net = ledger.to_decimal(0)
    gross = ledger.to_decimal(0)
    for item in staged:
        item.batch_id = batch.id
        reels += 1
        net += ledger.to_decimal(item.net_weight)
        gross += ledger.to_decimal(item.gross_weight)
    db.flush()

    ledger.apply_delta(db, batch.id, reel_delta=reels, net_weight_delta=net, gross_weight_delta=gross)
    for item in staged:
        _stock_in(db, item, actor_id)

    logger.info(f"Finalized {reels} staged reels into batch {batch.frontend_id} by user {actor_id}")
    return batch

def delete_batch(db: Session, *, batch_id: int, actor_id: int) -> Dict[str, Any]:
    """Delete a batch with its reels; refused once any reel has gone into production"""
    batch = get_batch(db, batch_id)
    barcodes = [int(item.barcode) for item in batch.items if item.barcode]

    units = []
    if barcodes:
        units = db.query(models.StockUnit).filter(models.StockUnit.barcode.in_(barcodes)).all()
    consumed = [unit.barcode for unit in units if not unit.is_available]
    if consumed:
        raise ConflictError(
            f"Batch {batch.frontend_id} has reels in production: {consumed}",
            batch_id=batch_id,
        )

    for unit in units:
        db.delete(unit)
    reel_count = len(batch.items)
    db.delete(batch)
    db.flush()

    logger.info(f"Deleted material batch {batch_id} and {reel_count} reels by user {actor_id}")
    return {"batch_id": batch_id, "deleted_items": reel_count}

def recompute_batch(db: Session, *, batch_id: int) -> Dict[str, Any]:
    return ledger.recompute_batch(db, batch_id)
