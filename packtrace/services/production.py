from typing import Any, Dict, List, Optional
from datetime import timedelta
from sqlalchemy.orm import Session, selectinload
import logging

from .. import models
from ..exceptions import ConflictError, NotFound, ValidationError
from .barcode_generator import BarcodeGenerator
from .ledger import recount_stage_outputs, to_decimal
from .stage_linker import STAGE_NAMES, STAGE_RECORD_MODELS, has_stage, job_cards_in_stage, to_stage_tag
from .stock_state import StockStateMachine

logger = logging.getLogger(__name__)

StageTag = models.StageTag

STAGE_OUTPUTS = {
    StageTag.SLITTING: "rolls",
    StageTag.PRINTING: "packs",
    StageTag.CUTTING: "rolls",
}

MAX_BARCODE_SHIFT = 60


class ProductionService:
    """
    Slitting, printing and cutting on a job card.

    Each stage record picks one input unit from stock and produces output
    units (slitting rolls, print packs, cutting rolls) that go back into
    stock under their own barcodes. Input records consume their stock unit,
    deleting them releases it. Outputs create a stock unit, deleting them
    reverses it and recounts the record's outputs. An output whose unit was
    already picked by a later stage or a bundle cannot be deleted.

    Methods flush but never commit; wrap calls in ``database.atomic``.
    """

    def __init__(self, db: Session, actor_id: Optional[int] = None):
        self.db = db
        self.actor_id = actor_id
        self.stock = StockStateMachine(db, actor_id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _job_card(self, job_card_id: int, tag: StageTag) -> models.JobCard:
        job_card = self.db.get(models.JobCard, job_card_id)
        if not job_card:
            raise NotFound(f"Job card {job_card_id} not found", job_card_id=job_card_id)
        if not has_stage(job_card.stage_list, tag):
            raise ValidationError(
                f"Job card {job_card_id} does not go through {STAGE_NAMES[tag]}",
                job_card_id=job_card_id,
            )
        return job_card

    def _record(self, model, record_id: int, job_card_id: Optional[int] = None):
        record = self.db.get(model, record_id)
        if not record or (job_card_id is not None and record.job_card_id != job_card_id):
            raise NotFound(f"{model.__name__} {record_id} not found", record_id=record_id)
        return record

    def _stock_output(self, row, source: models.StockSource, job_card: models.JobCard, weight) -> models.StockUnit:
        # Outputs of different stages can share an id and a second, step the
        # timestamp until the barcode is free in stock
        moment = BarcodeGenerator.plant_now()
        BarcodeGenerator.assign_timestamp_barcode(self.db, row, moment)
        for _ in range(MAX_BARCODE_SHIFT):
            if self.stock.find(row.barcode) is None:
                break
            logger.warning(f"Barcode {row.barcode} already in stock, shifting {source.value} {row.id} by one second")
            moment += timedelta(seconds=1)
            BarcodeGenerator.assign_timestamp_barcode(self.db, row, moment)
        else:
            raise ConflictError(f"No free barcode for {source.value} {row.id}", barcode=row.barcode)

        return self.stock.create(
            barcode=row.barcode,
            source_type=source,
            source_id=row.id,
            net_weight=to_decimal(weight),
            particular_id=job_card.particular_id,
            gsm=job_card.gsm,
            size=job_card.size,
        )

    def _check_output_unused(self, output) -> None:
        """An output whose unit was picked downstream stays as the audit trail."""
        if not output.barcode:
            return
        unit = self.stock.find(output.barcode)
        if unit is not None and not unit.is_available:
            raise ConflictError(
                f"Output {output.barcode} has already been used downstream and cannot be deleted",
                barcode=output.barcode,
            )

    def _release_record(self, record, outputs) -> None:
        """Give the input back to stock and reverse every output of a record."""
        outputs = list(outputs)
        for output in outputs:
            self._check_output_unused(output)
        for output in outputs:
            if output.barcode:
                self.stock.reverse_output(output.barcode)
        self.stock.release(record.input_barcode)
        self.db.delete(record)
        self.db.flush()

    # ------------------------------------------------------------------
    # Slitting
    # ------------------------------------------------------------------

    def add_slitting_input(self, job_card_id: int, barcode, wastage=0, wastage_width=0) -> models.SlittingRecord:
        self._job_card(job_card_id, StageTag.SLITTING)
        unit = self.stock.consume(barcode)

        record = models.SlittingRecord(
            job_card_id=job_card_id,
            input_barcode=str(unit.barcode),
            number_of_roll=0,
            wastage=to_decimal(wastage),
            wastage_width=to_decimal(wastage_width),
            created_by_id=self.actor_id,
        )
        self.db.add(record)
        self.db.flush()
        logger.info(f"Slitting record {record.id} on job card {job_card_id} picked {unit.barcode}")
        return record

    def delete_slitting_record(self, job_card_id: int, slitting_id: int) -> None:
        record = self._record(models.SlittingRecord, slitting_id, job_card_id)
        self._release_record(record, record.rolls)
        logger.info(f"Deleted slitting record {slitting_id} from job card {job_card_id}")

    def add_slitting_roll(self, job_card_id: int, slitting_id: int, weight, width) -> models.SlittingRoll:
        job_card = self._job_card(job_card_id, StageTag.SLITTING)
        record = self._record(models.SlittingRecord, slitting_id, job_card_id)

        roll = models.SlittingRoll(
            job_card_id=job_card_id,
            slitting_id=record.id,
            weight=to_decimal(weight),
            width=to_decimal(width),
            created_by_id=self.actor_id,
        )
        self.db.add(roll)
        self.db.flush()
        self._stock_output(roll, models.StockSource.SLITTING_ROLL, job_card, weight)

        record.number_of_roll = (record.number_of_roll or 0) + 1
        logger.info(f"Slitting roll {roll.barcode} added to record {slitting_id}, {record.number_of_roll} rolls")
        return roll

    def delete_slitting_roll(self, roll_id: int) -> None:
        roll = self._record(models.SlittingRoll, roll_id)
        record = roll.slitting
        self._check_output_unused(roll)
        self.stock.reverse_output(roll.barcode)
        self.db.delete(roll)
        recount_stage_outputs(self.db, record)
        self.db.flush()
        logger.info(f"Slitting roll {roll_id} deleted, record {record.id} now has {record.number_of_roll} rolls")

    def update_slitting_wastage(self, job_card_id: int, slitting_id: int, wastage, wastage_width=None) -> models.SlittingRecord:
        record = self._record(models.SlittingRecord, slitting_id, job_card_id)
        record.wastage = to_decimal(wastage)
        if wastage_width is not None:
            record.wastage_width = to_decimal(wastage_width)
        self.db.flush()
        return record

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def add_print_input(self, job_card_id: int, barcode) -> models.PrintRecord:
        self._job_card(job_card_id, StageTag.PRINTING)
        unit = self.stock.consume(barcode)

        record = models.PrintRecord(
            job_card_id=job_card_id,
            input_barcode=str(unit.barcode),
            number_of_bag=0,
            created_by_id=self.actor_id,
        )
        self.db.add(record)
        self.db.flush()
        logger.info(f"Print record {record.id} on job card {job_card_id} picked {unit.barcode}")
        return record

    def delete_print_record(self, job_card_id: int, print_id: int) -> None:
        record = self._record(models.PrintRecord, print_id, job_card_id)
        self._release_record(record, record.packs)
        logger.info(f"Deleted print record {print_id} from job card {job_card_id}")

    def add_print_pack(self, job_card_id: int, print_id: int, weight, bag_count: int) -> models.PrintPack:
        job_card = self._job_card(job_card_id, StageTag.PRINTING)
        record = self._record(models.PrintRecord, print_id, job_card_id)

        pack = models.PrintPack(
            job_card_id=job_card_id,
            print_id=record.id,
            weight=to_decimal(weight),
            bag_count=int(bag_count or 0),
            created_by_id=self.actor_id,
        )
        self.db.add(pack)
        self.db.flush()
        self._stock_output(pack, models.StockSource.PRINT_PACK, job_card, weight)

        record.number_of_bag = (record.number_of_bag or 0) + pack.bag_count
        logger.info(f"Print pack {pack.barcode} added to record {print_id}, {record.number_of_bag} bags")
        return pack

    def delete_print_pack(self, pack_id: int) -> None:
        pack = self._record(models.PrintPack, pack_id)
        record = pack.print_record
        self._check_output_unused(pack)
        self.stock.reverse_output(pack.barcode)
        self.db.delete(pack)
        recount_stage_outputs(self.db, record)
        self.db.flush()
        logger.info(f"Print pack {pack_id} deleted, record {record.id} now has {record.number_of_bag} bags")

    def update_print_wastage(
        self,
        job_card_id: int,
        print_id: int,
        print_wastage,
        balance_weight=None,
        balance_width=None,
    ) -> models.PrintRecord:
        record = self._record(models.PrintRecord, print_id, job_card_id)
        record.print_wastage = to_decimal(print_wastage)
        if balance_weight is not None:
            record.balance_weight = to_decimal(balance_weight)
        if balance_width is not None:
            record.balance_width = to_decimal(balance_width)
        self.db.flush()
        return record

    # ------------------------------------------------------------------
    # Cutting
    # ------------------------------------------------------------------

    def add_cutting_input(self, job_card_id: int, barcode, cutting_weight=None) -> models.CuttingRecord:
        self._job_card(job_card_id, StageTag.CUTTING)
        unit = self.stock.consume(barcode)

        record = models.CuttingRecord(
            job_card_id=job_card_id,
            input_barcode=str(unit.barcode),
            cutting_weight=to_decimal(cutting_weight if cutting_weight is not None else unit.net_weight),
            number_of_roll=0,
            created_by_id=self.actor_id,
        )
        self.db.add(record)
        self.db.flush()
        logger.info(f"Cutting record {record.id} on job card {job_card_id} picked {unit.barcode}")
        return record

    def delete_cutting_record(self, job_card_id: int, cutting_id: int) -> None:
        record = self._record(models.CuttingRecord, cutting_id, job_card_id)
        self._release_record(record, record.rolls)
        logger.info(f"Deleted cutting record {cutting_id} from job card {job_card_id}")

    def add_cutting_roll(
        self,
        job_card_id: int,
        cutting_id: int,
        weight,
        no_of_bags: int,
        cutting_wastage=0,
    ) -> models.CuttingRoll:
        job_card = self._job_card(job_card_id, StageTag.CUTTING)
        record = self._record(models.CuttingRecord, cutting_id, job_card_id)

        roll = models.CuttingRoll(
            job_card_id=job_card_id,
            cutting_id=record.id,
            weight=to_decimal(weight),
            no_of_bags=int(no_of_bags or 0),
            cutting_wastage=to_decimal(cutting_wastage),
            created_by_id=self.actor_id,
        )
        self.db.add(roll)
        self.db.flush()
        self._stock_output(roll, models.StockSource.CUTTING_ROLL, job_card, weight)

        record.number_of_roll = (record.number_of_roll or 0) + 1
        logger.info(f"Cutting roll {roll.barcode} added to record {cutting_id}, {record.number_of_roll} rolls")
        return roll

    def delete_cutting_roll(self, roll_id: int) -> None:
        roll = self._record(models.CuttingRoll, roll_id)
        record = roll.cutting
        self._check_output_unused(roll)
        self.stock.reverse_output(roll.barcode)
        self.db.delete(roll)
        recount_stage_outputs(self.db, record)
        self.db.flush()
        logger.info(f"Cutting roll {roll_id} deleted, record {record.id} now has {record.number_of_roll} rolls")

    def update_cutting_wastage(self, job_card_id: int, cutting_id: int, wastage) -> models.CuttingRecord:
        record = self._record(models.CuttingRecord, cutting_id, job_card_id)
        record.wastage = to_decimal(wastage)
        self.db.flush()
        return record


# ----------------------------------------------------------------------
# Read side
# ----------------------------------------------------------------------

def list_stage_job_cards(db: Session, tag) -> List[models.JobCard]:
    """Job cards shown on a stage page."""
    return job_cards_in_stage(db, to_stage_tag(tag))


def get_stage_records(db: Session, job_card_id: int, tag) -> Dict[str, Any]:
    """A job card with its records and their outputs for one stage."""
    stage = to_stage_tag(tag)
    job_card = db.get(models.JobCard, job_card_id)
    if not job_card:
        raise NotFound(f"Job card {job_card_id} not found", job_card_id=job_card_id)

    model = STAGE_RECORD_MODELS[stage]
    records = (
        db.query(model)
        .options(selectinload(getattr(model, STAGE_OUTPUTS[stage])))
        .filter(model.job_card_id == job_card_id)
        .order_by(model.id)
        .all()
    )
    return {
        "job_card": job_card,
        "stage": STAGE_NAMES[stage],
        "in_stage": has_stage(job_card.stage_list, stage),
        "records": records,
    }
