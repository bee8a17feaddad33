from typing import Any, Dict, List, Optional, Union
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import datetime
import logging

from .. import models
from ..config import settings
from ..exceptions import ConflictError, NotFound
from .barcode_generator import BarcodeGenerator

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    models.StockStatus.AVAILABLE.value: [models.StockStatus.CONSUMED.value],
    models.StockStatus.CONSUMED.value: [models.StockStatus.AVAILABLE.value],
}


def validate_stock_transition(current_status: str, new_status: str) -> bool:
    return new_status in VALID_TRANSITIONS.get(current_status, [])


class StockStateMachine:
    """
    Moves stock units between available and consumed.

    A unit is created available when a reel is received or a stage produces
    an output. A stage that picks the unit consumes it; deleting that stage
    record releases it again. Deleting the output that created the unit
    reverses it, by removing the row or by leaving it consumed, depending on
    STOCK_REVERSAL_MODE.

    Nothing here commits, the caller owns the transaction.
    """

    def __init__(self, db: Session, actor_id: Optional[int] = None):
        self.db = db
        self.actor_id = actor_id

    def find(self, barcode: Union[str, int]) -> Optional[models.StockUnit]:
        """Exact match on the integer barcode."""
        value = BarcodeGenerator.to_stock_barcode(barcode)
        return self.db.query(models.StockUnit).filter(models.StockUnit.barcode == value).first()

    def get(self, barcode: Union[str, int]) -> models.StockUnit:
        unit = self.find(barcode)
        if not unit:
            raise NotFound(f"Barcode {barcode} not found in stock", barcode=str(barcode))
        return unit

    def create(
        self,
        *,
        barcode: Union[str, int],
        source_type: models.StockSource,
        source_id: int,
        net_weight,
        batch_id: Optional[int] = None,
        particular_id: Optional[int] = None,
        gsm: Optional[int] = None,
        size: Optional[int] = None,
    ) -> models.StockUnit:
        value = BarcodeGenerator.to_stock_barcode(barcode)
        if self.db.query(models.StockUnit.id).filter(models.StockUnit.barcode == value).first():
            raise ConflictError(f"Barcode {value} is already in stock", barcode=str(value))

        unit = models.StockUnit(
            barcode=value,
            source_type=source_type.value,
            source_id=source_id,
            batch_id=batch_id,
            particular_id=particular_id,
            gsm=gsm,
            size=size,
            net_weight=net_weight,
            status=models.StockStatus.AVAILABLE.value,
            created_by_id=self.actor_id,
        )
        self.db.add(unit)
        self.db.flush()
        logger.info(f"Stock unit {value} created from {source_type.value} {source_id}")
        return unit

    def _transition(self, unit: models.StockUnit, new_status: str) -> models.StockUnit:
        old_status = unit.status
        if not validate_stock_transition(old_status, new_status):
            if new_status == models.StockStatus.CONSUMED.value:
                raise ConflictError(f"Barcode {unit.barcode} has already been consumed", barcode=str(unit.barcode))
            raise ConflictError(
                f"Barcode {unit.barcode} cannot move from {old_status} to {new_status}",
                barcode=str(unit.barcode),
            )

        unit.status = new_status
        if new_status == models.StockStatus.CONSUMED.value:
            unit.consumed_at = datetime.utcnow()
            unit.consumed_by_id = self.actor_id
        else:
            unit.consumed_at = None
            unit.consumed_by_id = None
        logger.info(f"Stock unit {unit.barcode} status changed from '{old_status}' to '{new_status}'")
        return unit

    def consume(self, barcode: Union[str, int]) -> models.StockUnit:
        unit = self.get(barcode)
        self._transition(unit, models.StockStatus.CONSUMED.value)
        logger.info(f"Stock unit consumed: {unit.barcode} by user {self.actor_id}")
        return unit

    def release(self, barcode: Union[str, int]) -> Optional[models.StockUnit]:
        """
        Make a consumed unit available again after the record that picked it
        is deleted. A missing unit is logged, not raised, so the deletion of
        the stage record can still go through.
        """
        unit = self.find(barcode)
        if not unit:
            logger.warning(f"Stock unit {barcode} not found while releasing, nothing to restore")
            return None
        if unit.status == models.StockStatus.AVAILABLE.value:
            logger.warning(f"Stock unit {unit.barcode} was already available")
            return unit
        self._transition(unit, models.StockStatus.AVAILABLE.value)
        logger.info(f"Stock unit released: {unit.barcode}")
        return unit

    def reverse_output(self, barcode: Union[str, int], mode: Optional[str] = None) -> Optional[models.StockUnit]:
        """
        Undo the stock entry of an output that is being deleted.

        mode "delete" removes the stock unit, mode "flag" keeps it marked
        consumed. Defaults to STOCK_REVERSAL_MODE.
        """
        mode = mode or settings.STOCK_REVERSAL_MODE
        unit = self.find(barcode)
        if not unit:
            logger.warning(f"Stock unit {barcode} not found while reversing output")
            return None

        if mode == "flag":
            if unit.status != models.StockStatus.CONSUMED.value:
                self._transition(unit, models.StockStatus.CONSUMED.value)
            logger.info(f"Stock unit {unit.barcode} retained as consumed after output deletion")
            return unit

        self.db.delete(unit)
        self.db.flush()
        logger.info(f"Stock unit {unit.barcode} deleted with its output")
        return None


def list_stock(
    db: Session,
    status: Optional[str] = None,
    source_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.StockUnit]:
    query = db.query(models.StockUnit)
    if status:
        query = query.filter(models.StockUnit.status == status)
    if source_type:
        query = query.filter(models.StockUnit.source_type == source_type)
    return query.order_by(models.StockUnit.id.desc()).offset(skip).limit(limit).all()


def stock_summary(db: Session) -> List[Dict[str, Any]]:
    """Unit count and net weight per source and status."""
    rows = (
        db.query(
            models.StockUnit.source_type,
            models.StockUnit.status,
            func.count(models.StockUnit.id),
            func.coalesce(func.sum(models.StockUnit.net_weight), 0),
        )
        .group_by(models.StockUnit.source_type, models.StockUnit.status)
        .order_by(models.StockUnit.source_type, models.StockUnit.status)
        .all()
    )
    return [
        {"source_type": source_type, "status": status, "units": int(units), "net_weight": net_weight}
        for source_type, status, units, net_weight in rows
    ]
