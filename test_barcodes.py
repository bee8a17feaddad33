"""
Tests for barcode and document number generation.
"""
from datetime import datetime

import pytest

from packtrace import database, models, schemas
from packtrace.crud import bundles, material_management
from packtrace.exceptions import ValidationError
from packtrace.services.barcode_generator import BarcodeGenerator
from packtrace.services.id_generator import FrontendIDGenerator

from conftest import reel

MOMENT = datetime(2024, 3, 5, 7, 8, 9)


def test_timestamp_suffix_is_zero_padded_ddmmyyhhmmss():
    assert BarcodeGenerator.timestamp_suffix(MOMENT) == "050324070809"
    assert BarcodeGenerator.timestamp_suffix(datetime(2031, 12, 31, 23, 59, 58)) == "311231235958"


def test_compose_keeps_only_suffix_digits():
    assert BarcodeGenerator.compose(12, "R-23") == "1223"
    assert BarcodeGenerator.compose(7, "") == "7"
    with pytest.raises(ValueError):
        BarcodeGenerator.compose(None, "23")


def test_to_stock_barcode():
    assert BarcodeGenerator.to_stock_barcode(" 1050324070809 ") == 1050324070809
    assert BarcodeGenerator.to_stock_barcode(42) == 42
    for bad in ("", "12a", None, "-5"):
        with pytest.raises(ValidationError):
            BarcodeGenerator.to_stock_barcode(bad)


def test_reel_barcode_is_id_then_reel_digits(db, actor, supplier):
    with database.atomic(db):
        batch = material_management.create_batch(
            db, supplier_id=supplier.id, items=[reel("R-101"), reel("55/B")], actor_id=actor.id
        )

    items = sorted(batch.items, key=lambda item: item.id)
    assert items[0].barcode == f"{items[0].id}101"
    assert items[1].barcode == f"{items[1].id}55"


def test_reel_number_without_digits_is_rejected(db, actor):
    with pytest.raises(ValidationError):
        with database.atomic(db):
            material_management.add_item(db, item_data=reel("ABC"), actor_id=actor.id)
    assert db.query(models.MaterialItem).count() == 0


def test_barcodes_unique_within_the_same_second(db, actor):
    """Rows created in the same second differ by their primary key prefix"""
    with database.atomic(db):
        items = [
            bundles.create_complete_item(
                db,
                item=schemas.CompleteItemCreate(bundle_type="W-Cut", weight=2.5, bags=50),
                actor_id=actor.id,
                moment=MOMENT,
            )
            for _ in range(5)
        ]

    barcodes = [item.barcode for item in items]
    assert len(set(barcodes)) == 5
    for item in items:
        assert item.barcode == f"{item.id}050324070809"


def test_timestamp_assignment_is_idempotent(db, actor):
    with database.atomic(db):
        item = bundles.create_non_complete_item(
            db,
            item=schemas.NonCompleteItemCreate(weight=1.2, bags=10),
            actor_id=actor.id,
            moment=MOMENT,
        )
        first = item.barcode
        second = BarcodeGenerator.assign_timestamp_barcode(db, item, MOMENT)

    assert first == second == f"{item.id}050324070809"


def test_document_numbers_count_up_per_year(db, actor, supplier):
    year = FrontendIDGenerator.current_year()
    with database.atomic(db):
        first = material_management.create_batch(db, supplier_id=supplier.id, items=[], actor_id=actor.id)
        second = material_management.create_batch(db, supplier_id=supplier.id, items=[], actor_id=actor.id)

    assert first.frontend_id == f"MRN-00001-{year}"
    assert second.frontend_id == f"MRN-00002-{year}"
    assert FrontendIDGenerator.validate_frontend_id("material_batch", second.frontend_id)
    assert not FrontendIDGenerator.validate_frontend_id("sales_info", second.frontend_id)


def test_unknown_document_table_is_rejected(db):
    with pytest.raises(ValueError):
        FrontendIDGenerator.generate_frontend_id("nope", db)
