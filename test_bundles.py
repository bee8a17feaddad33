"""
Tests for finished goods: complete items, bundles and the wastage trace.
"""
from datetime import datetime

import pytest

from packtrace import database, models, schemas
from packtrace.crud import bundles, material_management
from packtrace.exceptions import ConflictError, NotFound, ValidationError
from packtrace.services.production import ProductionService
from packtrace.services.stock_state import StockStateMachine

from conftest import make_job_card, reel


@pytest.fixture
def job_card(db, customer, actor, bag_type):
    return make_job_card(
        db, customer, actor, slitting=True, printing=True, cutting=True, bag_type_id=bag_type.id
    )


@pytest.fixture
def cut_roll(db, actor, supplier, job_card):
    """A cutting roll made from a printed pack of a slit reel."""
    service = ProductionService(db, actor.id)
    with database.atomic(db):
        batch = material_management.create_batch(
            db, supplier_id=supplier.id, items=[reel("601", net=40, gross=41)], actor_id=actor.id
        )
        slitting = service.add_slitting_input(job_card.id, batch.items[0].barcode, wastage=0.5)
        roll = service.add_slitting_roll(job_card.id, slitting.id, weight=39, width=18)
        printing = service.add_print_input(job_card.id, roll.barcode)
        service.update_print_wastage(job_card.id, printing.id, 0.25)
        pack = service.add_print_pack(job_card.id, printing.id, weight=38, bag_count=500)
        cutting = service.add_cutting_input(job_card.id, pack.barcode)
        cut = service.add_cutting_roll(job_card.id, cutting.id, weight=36, no_of_bags=480, cutting_wastage=1.5)
    return cut


def _complete(db, actor, weight=12.5, bags=100, bundle_type="W-Cut 14x18", **kwargs):
    with database.atomic(db):
        return bundles.create_complete_item(
            db,
            item=schemas.CompleteItemCreate(bundle_type=bundle_type, weight=weight, bags=bags, **kwargs),
            actor_id=actor.id,
        )


def _non_complete(db, actor, weight=1.5, bags=10):
    with database.atomic(db):
        return bundles.create_non_complete_item(
            db, item=schemas.NonCompleteItemCreate(weight=weight, bags=bags), actor_id=actor.id
        )


def _finalize(db, actor, cut_roll, complete=(), non_complete=()):
    with database.atomic(db):
        return bundles.finalize_bundle(
            db,
            bundle_in=schemas.BundleFinalize(
                cutting_roll_id=cut_roll.id,
                complete_item_ids=list(complete),
                non_complete_item_ids=list(non_complete),
            ),
            actor_id=actor.id,
        )

# ============================================================================
# ITEMS AND BUNDLES
# ============================================================================

def test_staged_item_moves_into_new_bundle(db, actor, cut_roll):
    """A staged item's barcode is its id and timestamp, finalize assigns it to the bundle"""
    moment = datetime(2024, 3, 5, 7, 8, 9)
    with database.atomic(db):
        item = bundles.create_complete_item(
            db,
            item=schemas.CompleteItemCreate(bundle_type="W-Cut 14x18", weight=12.5, bags=100),
            actor_id=actor.id,
            moment=moment,
        )
    assert item.barcode == f"{item.id}050324070809"
    assert item.bundle_id is None
    assert [staged.id for staged in bundles.get_complete_items(db)] == [item.id]

    bundle = _finalize(db, actor, cut_roll, complete=[item.id])

    db.expire_all()
    assert db.get(models.CompleteItem, item.id).bundle_id == bundle.id
    assert bundles.get_complete_items(db) == []
    assert [i.id for i in bundles.get_complete_items(db, bundle_id=bundle.id)] == [item.id]


def test_bundle_totals_and_wastage(db, actor, cut_roll):
    first = _complete(db, actor, weight=12.5, bags=100)
    second = _complete(db, actor, weight=12.25, bags=100)
    loose = _non_complete(db, actor, weight=1.5, bags=10)

    bundle = _finalize(db, actor, cut_roll, complete=[first.id, second.id], non_complete=[loose.id])

    db.expire_all()
    bundle = bundles.get_bundle(db, bundle.id)
    assert float(bundle.total_weight) == pytest.approx(26.25)
    assert bundle.total_bags == 210
    assert bundle.complete_count == 2
    assert bundle.non_complete_count == 1
    assert bundle.bundle_type == "W-Cut 14x18"
    assert bundle.job_card_id == cut_roll.job_card_id
    assert float(bundle.slitting_wastage) == pytest.approx(0.5)
    assert float(bundle.printing_wastage) == pytest.approx(0.25)
    assert float(bundle.cutting_wastage) == pytest.approx(1.5)
    assert float(bundle.total_wastage) == pytest.approx(2.25)

    assert StockStateMachine(db).get(cut_roll.barcode).status == "consumed"


def test_finalize_needs_items(db, actor, cut_roll):
    with pytest.raises(ValidationError):
        _finalize(db, actor, cut_roll)


def test_finalize_rejects_items_already_bundled(db, actor, cut_roll, job_card):
    item = _complete(db, actor)
    _finalize(db, actor, cut_roll, complete=[item.id])

    with pytest.raises(ConflictError) as exc:
        _finalize(db, actor, cut_roll, complete=[item.id])
    assert "found 0" in exc.value.message
    assert db.query(models.Bundle).count() == 1


def test_cutting_roll_is_bundled_once(db, actor, cut_roll):
    _finalize(db, actor, cut_roll, complete=[_complete(db, actor).id])
    with pytest.raises(ConflictError):
        _finalize(db, actor, cut_roll, complete=[_complete(db, actor).id])


def test_bundled_cutting_roll_cannot_be_deleted(db, actor, cut_roll):
    bundle = _finalize(db, actor, cut_roll, complete=[_complete(db, actor).id])
    roll_id, roll_barcode = cut_roll.id, cut_roll.barcode
    service = ProductionService(db, actor.id)

    with pytest.raises(ConflictError):
        with database.atomic(db):
            service.delete_cutting_roll(roll_id)
    with pytest.raises(ConflictError):
        with database.atomic(db):
            service.delete_cutting_record(cut_roll.job_card_id, cut_roll.cutting_id)

    db.expire_all()
    assert db.get(models.CuttingRoll, roll_id) is not None
    assert db.get(models.Bundle, bundle.id).cutting_roll_id == roll_id
    assert StockStateMachine(db).get(roll_barcode).status == "consumed"


def test_finalize_unknown_cutting_roll(db, actor):
    item = _complete(db, actor)
    with pytest.raises(NotFound):
        with database.atomic(db):
            bundles.finalize_bundle(
                db,
                bundle_in=schemas.BundleFinalize(cutting_roll_id=404, complete_item_ids=[item.id]),
                actor_id=actor.id,
            )


def test_item_changes_keep_bundle_totals(db, actor, cut_roll):
    item = _complete(db, actor, weight=10, bags=80)
    bundle = _finalize(db, actor, cut_roll, complete=[item.id])

    extra = _complete(db, actor, weight=5.5, bags=40, bundle_id=bundle.id)
    with database.atomic(db):
        bundles.delete_complete_item(db, item_id=item.id, actor_id=actor.id)

    db.expire_all()
    bundle = db.get(models.Bundle, bundle.id)
    assert float(bundle.total_weight) == pytest.approx(5.5)
    assert bundle.total_bags == 40
    assert bundle.complete_count == 1
    with database.atomic(db):
        assert bundles.recompute_bundle(db, bundle_id=bundle.id)["drifted"] is False
    assert extra.bundle_id == bundle.id


def test_sold_item_cannot_be_deleted(db, actor):
    item = _complete(db, actor)
    with database.atomic(db):
        item.is_active = False

    with pytest.raises(ConflictError):
        bundles.delete_complete_item(db, item_id=item.id, actor_id=actor.id)

# ============================================================================
# WASTAGE TRACE
# ============================================================================

def test_wastage_trace_follows_the_chain(db, cut_roll, job_card):
    trace = bundles.trace_wastage(db, cut_roll.id)
    assert trace["job_card_id"] == job_card.id
    assert trace["no_of_bags"] == 480
    assert trace["bag_type"] == "W-Cut 14x18"
    assert float(trace["slitting_wastage"]) == pytest.approx(0.5)
    assert float(trace["printing_wastage"]) == pytest.approx(0.25)
    assert float(trace["cutting_wastage"]) == pytest.approx(1.5)


def test_wastage_trace_without_printing(db, actor, supplier, customer):
    job_card = make_job_card(db, customer, actor, slitting=True, cutting=True)
    service = ProductionService(db, actor.id)
    with database.atomic(db):
        batch = material_management.create_batch(db, supplier_id=supplier.id, items=[reel("77")], actor_id=actor.id)
        slitting = service.add_slitting_input(job_card.id, batch.items[0].barcode, wastage=0.75)
        roll = service.add_slitting_roll(job_card.id, slitting.id, weight=9, width=9)
        cutting = service.add_cutting_input(job_card.id, roll.barcode)
        cut = service.add_cutting_roll(job_card.id, cutting.id, weight=8, no_of_bags=60)

    trace = bundles.trace_wastage(db, cut.id)
    assert float(trace["slitting_wastage"]) == pytest.approx(0.75)
    assert float(trace["printing_wastage"]) == 0
    assert trace["bag_type"] == ""


def test_wastage_trace_missing_roll(db):
    with pytest.raises(NotFound):
        bundles.trace_wastage(db, 404)

# ============================================================================
# FINISHED GOODS
# ============================================================================

def test_stock_in_hand_groups_unsold_items(db, actor, bag_type):
    _complete(db, actor, weight=10, bags=100)
    _complete(db, actor, weight=11, bags=100)
    sold = _complete(db, actor, weight=9, bags=90)
    _complete(db, actor, weight=4, bags=50, bundle_type="Loop 10x12")
    with database.atomic(db):
        sold.is_active = False

    rows = bundles.get_stock_in_hand(db)

    assert [row["bundle_type"] for row in rows] == ["W-Cut 14x18", "Loop 10x12"]
    assert rows[0]["bag_type_id"] == bag_type.id
    assert rows[0]["item_count"] == 2
    assert float(rows[0]["total_weight"]) == pytest.approx(21)
    assert rows[0]["total_bags"] == 200
    assert rows[1]["bag_type_id"] is None


def test_finished_goods_filters(db, actor):
    kept = _complete(db, actor)
    sold = _complete(db, actor)
    other = _complete(db, actor, bundle_type="Loop 10x12")
    with database.atomic(db):
        sold.is_active = False

    def ids(**kwargs):
        return {item.id for item in bundles.get_finished_goods(db, **kwargs)}

    assert ids() == {kept.id, sold.id, other.id}
    assert ids(status="in") == {kept.id, other.id}
    assert ids(status="out") == {sold.id}
    assert ids(bundle_type="Loop 10x12") == {other.id}
    assert ids(bundle_type="all", status="in") == {kept.id, other.id}

# ============================================================================
# API
# ============================================================================

def test_bundle_endpoints(client, headers, cut_roll):
    response = client.post(
        "/api/complete-items", json={"bundle_type": "W-Cut 14x18", "weight": 12.5, "bags": 100}, headers=headers
    )
    assert response.status_code == 200
    item = response.json()
    assert item["bundle_id"] is None
    assert item["barcode"].startswith(str(item["id"]))

    response = client.post("/api/non-complete-items", json={"weight": 1.5, "bags": 12}, headers=headers)
    loose = response.json()

    staged = client.get("/api/complete-items").json()
    assert [i["id"] for i in staged] == [item["id"]]

    response = client.get(f"/api/bundles/cutting-roll/{cut_roll.id}")
    assert response.status_code == 200
    assert response.json()["no_of_bags"] == 480

    response = client.post(
        "/api/bundles/finalize",
        json={
            "cutting_roll_id": cut_roll.id,
            "complete_item_ids": [item["id"]],
            "non_complete_item_ids": [loose["id"]],
        },
        headers=headers,
    )
    assert response.status_code == 200
    bundle = response.json()
    assert bundle["total_bags"] == 112
    assert bundle["total_weight"] == pytest.approx(14.0)
    assert bundle["total_wastage"] == pytest.approx(2.25)
    assert [i["id"] for i in bundle["complete_items"]] == [item["id"]]

    assert client.get("/api/complete-items").json() == []
    assert client.get(f"/api/bundles/{bundle['id']}").json()["complete_count"] == 1

    in_hand = client.get("/api/finished-goods/stock-in-hand").json()
    assert in_hand[0]["total_bags"] == 100

    response = client.get("/api/finished-goods", params={"status": "in"})
    assert [i["id"] for i in response.json()] == [item["id"]]

    response = client.post(f"/api/bundles/{bundle['id']}/recompute", headers=headers)
    assert response.json()["drifted"] is False
