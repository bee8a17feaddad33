from typing import Optional, Union
from sqlalchemy.orm import Session
from datetime import datetime
from zoneinfo import ZoneInfo
import re
import logging

from ..config import settings
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"[^0-9]")


class BarcodeGenerator:
    """
    Service for generating numeric barcodes for physical units.

    Format: {primary key}{suffix}
    The suffix is either the reel number of a material reel, or the creation
    time as DDMMYYHHMMSS for stage outputs and finished goods.
    Barcodes are unique because primary keys are unique; suffixes may repeat.

    A barcode embeds its own row's primary key, so assignment is two-phase:
    insert and flush the row to obtain the key, then write the barcode.
    Both phases run in the caller's transaction and are committed together.
    """

    @staticmethod
    def plant_now() -> datetime:
        """Current wall-clock time at the plant."""
        return datetime.now(ZoneInfo(settings.PLANT_TIMEZONE))

    @staticmethod
    def digits_only(value: object) -> str:
        return _NON_DIGITS.sub("", str(value if value is not None else ""))

    @staticmethod
    def timestamp_suffix(moment: datetime) -> str:
        """
        Format a moment as DDMMYYHHMMSS.

        Every field is zero padded to two digits and anything that is not a
        digit is stripped, so the result does not depend on locale formatting.
        """
        formatted = (
            f"{moment.day:02d}-{moment.month:02d}-{moment.year % 100:02d}"
            f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        )
        return BarcodeGenerator.digits_only(formatted)

    @staticmethod
    def compose(primary_key: int, suffix: str) -> str:
        if primary_key is None:
            raise ValueError("Cannot compose a barcode before the row has a primary key")
        return f"{int(primary_key)}{BarcodeGenerator.digits_only(suffix)}"

    @staticmethod
    def assign_reel_barcode(db: Session, item) -> str:
        """Give a material reel its barcode: item id followed by its reel number."""
        if item.id is None:
            db.flush()
        item.barcode = BarcodeGenerator.compose(item.id, item.reel_no)
        logger.info(f"Assigned reel barcode {item.barcode} to material item {item.id}")
        return item.barcode

    @staticmethod
    def assign_timestamp_barcode(db: Session, row, moment: Optional[datetime] = None) -> str:
        """
        Give a stage output or finished good its barcode: row id followed by
        DDMMYYHHMMSS of ``moment`` (defaults to now at the plant).

        Calling this again with the same row and moment yields the same code.
        """
        if row.id is None:
            db.flush()
        moment = moment or BarcodeGenerator.plant_now()
        row.barcode = BarcodeGenerator.compose(row.id, BarcodeGenerator.timestamp_suffix(moment))
        logger.info(f"Assigned barcode {row.barcode} to {row.__class__.__name__} {row.id}")
        return row.barcode

    @staticmethod
    def to_stock_barcode(value: Union[str, int]) -> int:
        """
        Coerce a scanned barcode to the integer stored on stock units.
        Barcodes are longer than 32-bit range, the column is a BigInteger.
        """
        text = str(value).strip() if value is not None else ""
        if not text or not text.isdigit():
            raise ValidationError(f"Invalid barcode format: '{value}'")
        return int(text)
