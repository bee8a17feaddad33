from sqlalchemy.orm import Session
from typing import Dict, Any
from datetime import datetime
from zoneinfo import ZoneInfo
import logging

from .. import models
from ..config import settings

logger = logging.getLogger(__name__)


class FrontendIDGenerator:
    """
    Service for generating human-readable document numbers.
    Uses year-based sequential format with automatic counter reset.

    Format: PREFIX-00001-26 (where 26 is the year)
    Counter resets to 00001 on January 1st of each year.
    """

    ID_PATTERNS: Dict[str, Dict[str, Any]] = {
        "material_batch": {
            "prefix": "MRN",
            "model": models.MaterialBatch,
            "description": "Material Receiving Notes (MRN-00001-26, MRN-00002-26, etc.)"
        },
        "sales_info": {
            "prefix": "DO",
            "model": models.SalesInfo,
            "description": "Delivery Orders (DO-00001-26, DO-00002-26, etc.)"
        },
        "return_info": {
            "prefix": "RN",
            "model": models.ReturnInfo,
            "description": "Return Notes (RN-00001-26, RN-00002-26, etc.)"
        },
        "invoice_info": {
            "prefix": "INV",
            "model": models.InvoiceInfo,
            "description": "Invoices (INV-00001-26, INV-00002-26, etc.)"
        },
    }

    @classmethod
    def current_year(cls) -> str:
        return datetime.now(ZoneInfo(settings.PLANT_TIMEZONE)).strftime("%y")

    @classmethod
    def generate_frontend_id(cls, table_name: str, db: Session) -> str:
        """
        Generate the next document number for a table.

        Args:
            table_name: Key into ID_PATTERNS
            db: SQLAlchemy database session

        Returns:
            Generated document number (e.g., "DO-00001-26")

        Raises:
            ValueError: If table_name is not supported
        """
        if table_name not in cls.ID_PATTERNS:
            raise ValueError(f"Unsupported table name: {table_name}. Supported tables: {list(cls.ID_PATTERNS.keys())}")

        config = cls.ID_PATTERNS[table_name]
        prefix = config["prefix"]
        model = config["model"]
        current_year = cls.current_year()

        pattern = f"{prefix}-%-{current_year}"
        result = db.query(model.frontend_id).filter(model.frontend_id.like(pattern)).all()

        # Extract counter values and find max
        max_counter = 0
        for row in result:
            id_value = row[0]
            if id_value:
                try:
                    # Extract counter from format: PREFIX-00123-26
                    parts = id_value.split("-")
                    if len(parts) >= 3:
                        max_counter = max(max_counter, int(parts[-2]))
                except (ValueError, IndexError):
                    continue

        next_counter = max_counter + 1
        generated_id = f"{prefix}-{next_counter:05d}-{current_year}"

        logger.debug(f"Generated ID for {table_name}: {generated_id} (year: {current_year}, counter: {next_counter})")
        return generated_id

    @classmethod
    def validate_frontend_id(cls, table_name: str, frontend_id: str) -> bool:
        """
        Validate if a document number matches the expected pattern for a table.

        Returns:
            True if valid, False otherwise
        """
        if table_name not in cls.ID_PATTERNS:
            return False

        prefix = cls.ID_PATTERNS[table_name]["prefix"]
        parts = frontend_id.split("-") if frontend_id else []
        if len(parts) != 3 or parts[0] != prefix:
            return False
        counter, year = parts[1], parts[2]
        return len(counter) == 5 and counter.isdigit() and len(year) == 2 and year.isdigit()
