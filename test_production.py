"""
Tests for slitting, printing and cutting on a job card.

A reel is received into stock, slit into rolls, a roll is printed into packs
and a pack is cut into cutting rolls. Each pick consumes the input unit and
each output enters stock under its own barcode.
"""
import pytest

from packtrace import database, models
from packtrace.crud import material_management
from packtrace.exceptions import ConflictError, NotFound, ValidationError
from packtrace.services.production import ProductionService, get_stage_records, list_stage_job_cards
from packtrace.services.stock_state import StockStateMachine

from conftest import make_job_card, reel


@pytest.fixture
def reel_barcode(db, actor, supplier):
    with database.atomic(db):
        batch = material_management.create_batch(
            db, supplier_id=supplier.id, items=[reel("501", net=50, gross=52)], actor_id=actor.id
        )
    return batch.items[0].barcode


@pytest.fixture
def job_card(db, customer, actor):
    return make_job_card(db, customer, actor, slitting=True, printing=True, cutting=True)


@pytest.fixture
def service(db, actor):
    return ProductionService(db, actor.id)


def _status(db, barcode):
    db.expire_all()
    unit = StockStateMachine(db).find(barcode)
    return unit.status if unit else None


def test_full_chain(db, service, job_card, reel_barcode):
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode, wastage=0.5)
        roll_a = service.add_slitting_roll(job_card.id, slitting.id, weight=24, width=18)
        roll_b = service.add_slitting_roll(job_card.id, slitting.id, weight=25, width=18)

    assert _status(db, reel_barcode) == "consumed"
    assert slitting.number_of_roll == 2
    assert roll_a.barcode != roll_b.barcode
    assert roll_a.barcode.startswith(str(roll_a.id))
    assert _status(db, roll_a.barcode) == "available"

    with database.atomic(db):
        printing = service.add_print_input(job_card.id, roll_a.barcode)
        pack = service.add_print_pack(job_card.id, printing.id, weight=23.5, bag_count=400)
        service.add_print_pack(job_card.id, printing.id, weight=0.4, bag_count=8)

    assert printing.number_of_bag == 408
    assert _status(db, roll_a.barcode) == "consumed"
    assert _status(db, pack.barcode) == "available"

    with database.atomic(db):
        cutting = service.add_cutting_input(job_card.id, pack.barcode)
        cut_roll = service.add_cutting_roll(job_card.id, cutting.id, weight=22, no_of_bags=380, cutting_wastage=1.5)

    assert float(cutting.cutting_weight) == pytest.approx(23.5)
    assert cutting.number_of_roll == 1
    assert _status(db, pack.barcode) == "consumed"

    unit = StockStateMachine(db).get(cut_roll.barcode)
    assert unit.source_type == models.StockSource.CUTTING_ROLL.value
    assert unit.source_id == cut_roll.id
    assert unit.gsm == 80


def test_outputs_of_different_stages_never_share_a_barcode(db, service, job_card, reel_barcode):
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode)
        roll = service.add_slitting_roll(job_card.id, slitting.id, weight=10, width=9)
        printing = service.add_print_input(job_card.id, roll.barcode)
        pack = service.add_print_pack(job_card.id, printing.id, weight=9, bag_count=100)
        cutting = service.add_cutting_input(job_card.id, pack.barcode)
        cut_roll = service.add_cutting_roll(job_card.id, cutting.id, weight=8, no_of_bags=90)

    barcodes = [roll.barcode, pack.barcode, cut_roll.barcode]
    assert len(set(barcodes)) == 3
    assert db.query(models.StockUnit).count() == 4


def test_unit_cannot_be_picked_twice(db, service, job_card, reel_barcode):
    with database.atomic(db):
        service.add_slitting_input(job_card.id, reel_barcode)

    with pytest.raises(ConflictError):
        with database.atomic(db):
            service.add_slitting_input(job_card.id, reel_barcode)
    assert db.query(models.SlittingRecord).count() == 1


def test_stage_must_be_on_the_job_card(db, service, customer, actor, reel_barcode):
    job_card = make_job_card(db, customer, actor, slitting=True)

    with pytest.raises(ValidationError):
        service.add_print_input(job_card.id, reel_barcode)
    with pytest.raises(NotFound):
        service.add_cutting_input(404, reel_barcode)
    assert _status(db, reel_barcode) == "available"


def test_unknown_barcode_is_not_found(service, job_card):
    with pytest.raises(NotFound):
        service.add_slitting_input(job_card.id, "123456")


def test_deleting_an_output_reverses_its_stock(db, service, job_card, reel_barcode):
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode)
        roll_a = service.add_slitting_roll(job_card.id, slitting.id, weight=24, width=18)
        service.add_slitting_roll(job_card.id, slitting.id, weight=25, width=18)

    barcode = roll_a.barcode
    with database.atomic(db):
        service.delete_slitting_roll(roll_a.id)

    assert _status(db, barcode) is None
    record = db.get(models.SlittingRecord, slitting.id)
    assert record.number_of_roll == 1
    assert len(record.rolls) == 1


def test_deleting_a_record_releases_its_input(db, service, job_card, reel_barcode):
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode)
        roll = service.add_slitting_roll(job_card.id, slitting.id, weight=24, width=18)
    roll_barcode = roll.barcode

    with database.atomic(db):
        service.delete_slitting_record(job_card.id, slitting.id)

    assert _status(db, reel_barcode) == "available"
    assert _status(db, roll_barcode) is None
    assert db.query(models.SlittingRoll).count() == 0


def test_print_pack_delete_adjusts_bag_count(db, service, job_card, reel_barcode):
    with database.atomic(db):
        printing = service.add_print_input(job_card.id, reel_barcode)
        first = service.add_print_pack(job_card.id, printing.id, weight=10, bag_count=150)
        service.add_print_pack(job_card.id, printing.id, weight=12, bag_count=200)

    with database.atomic(db):
        service.delete_print_pack(first.id)

    db.expire_all()
    assert db.get(models.PrintRecord, printing.id).number_of_bag == 200


def test_cutting_record_delete_releases_pack(db, service, job_card, reel_barcode):
    with database.atomic(db):
        printing = service.add_print_input(job_card.id, reel_barcode)
        pack = service.add_print_pack(job_card.id, printing.id, weight=10, bag_count=150)
        cutting = service.add_cutting_input(job_card.id, pack.barcode, cutting_weight=9.5)
        cut_roll = service.add_cutting_roll(job_card.id, cutting.id, weight=9, no_of_bags=140)
    pack_barcode, cut_barcode = pack.barcode, cut_roll.barcode

    with database.atomic(db):
        service.delete_cutting_record(job_card.id, cutting.id)

    assert _status(db, pack_barcode) == "available"
    assert _status(db, cut_barcode) is None


def test_output_picked_downstream_cannot_be_deleted(db, service, job_card, reel_barcode):
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode)
        roll = service.add_slitting_roll(job_card.id, slitting.id, weight=24, width=18)
        printing = service.add_print_input(job_card.id, roll.barcode)
    roll_id, roll_barcode = roll.id, roll.barcode

    with pytest.raises(ConflictError):
        with database.atomic(db):
            service.delete_slitting_roll(roll_id)
    with pytest.raises(ConflictError):
        with database.atomic(db):
            service.delete_slitting_record(job_card.id, slitting.id)

    assert _status(db, roll_barcode) == "consumed"
    assert _status(db, reel_barcode) == "consumed"
    assert db.get(models.SlittingRoll, roll_id) is not None
    assert db.get(models.PrintRecord, printing.id).input_barcode == roll_barcode

    with database.atomic(db):
        service.delete_print_record(job_card.id, printing.id)
        service.delete_slitting_roll(roll_id)
    assert _status(db, roll_barcode) is None


def test_pack_picked_by_cutting_cannot_be_deleted(db, service, job_card, reel_barcode):
    with database.atomic(db):
        printing = service.add_print_input(job_card.id, reel_barcode)
        pack = service.add_print_pack(job_card.id, printing.id, weight=10, bag_count=150)
        service.add_cutting_input(job_card.id, pack.barcode)
    pack_id = pack.id

    with pytest.raises(ConflictError):
        with database.atomic(db):
            service.delete_print_pack(pack_id)

    db.expire_all()
    assert db.get(models.PrintPack, pack_id) is not None
    assert db.get(models.PrintRecord, printing.id).number_of_bag == 150


def test_record_must_belong_to_the_job_card(db, service, customer, actor, job_card, reel_barcode):
    other = make_job_card(db, customer, actor, slitting=True)
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode)

    with pytest.raises(NotFound):
        service.add_slitting_roll(other.id, slitting.id, weight=5, width=5)


def test_wastage_updates(db, service, job_card, reel_barcode):
    with database.atomic(db):
        printing = service.add_print_input(job_card.id, reel_barcode)
        service.update_print_wastage(job_card.id, printing.id, 1.25, balance_weight=3, balance_width=12)

    db.expire_all()
    record = db.get(models.PrintRecord, printing.id)
    assert float(record.print_wastage) == pytest.approx(1.25)
    assert float(record.balance_weight) == pytest.approx(3)


def test_stage_views(db, service, job_card, customer, actor, reel_barcode):
    make_job_card(db, customer, actor, printing=True)
    with database.atomic(db):
        slitting = service.add_slitting_input(job_card.id, reel_barcode)
        service.add_slitting_roll(job_card.id, slitting.id, weight=24, width=18)

    view = get_stage_records(db, job_card.id, "slitting")
    assert view["stage"] == "slitting"
    assert view["in_stage"] is True
    assert [len(record.rolls) for record in view["records"]] == [1]

    assert [jc.id for jc in list_stage_job_cards(db, "slitting")] == [job_card.id]

# ============================================================================
# API
# ============================================================================

def test_stage_endpoints(client, headers, job_card, reel_barcode):
    response = client.post(
        f"/api/slitting/{job_card.id}/add-barcode",
        json={"barcode": reel_barcode, "wastage": 0.5},
        headers=headers,
    )
    assert response.status_code == 200
    record = response.json()
    assert record["input_barcode"] == reel_barcode
    assert record["number_of_roll"] == 0

    response = client.post(
        f"/api/slitting/{job_card.id}/add-barcode", json={"barcode": reel_barcode}, headers=headers
    )
    assert response.status_code == 409

    response = client.post(
        f"/api/slitting/{job_card.id}/add-roll",
        json={"slitting_id": record["id"], "weight": 24, "width": 18},
        headers=headers,
    )
    assert response.status_code == 200
    roll = response.json()

    view = client.get(f"/api/slitting/{job_card.id}").json()
    assert view["records"][0]["number_of_roll"] == 1
    assert view["records"][0]["rolls"][0]["barcode"] == roll["barcode"]

    response = client.put(
        f"/api/slitting/{job_card.id}/wastage",
        json={"slitting_id": record["id"], "wastage": 2.0},
        headers=headers,
    )
    assert response.json()["wastage"] == pytest.approx(2.0)

    response = client.post(
        f"/api/printing/{job_card.id}/add-barcode", json={"barcode": roll["barcode"]}, headers=headers
    )
    assert response.status_code == 200
    print_record = response.json()

    response = client.post(f"/api/slitting/{job_card.id}/complete", headers=headers)
    assert response.status_code == 200
    assert response.json()["slitting_done"] is True

    # Printing picked the roll, so it stays until the print record goes
    response = client.delete(f"/api/slitting/rolls/{roll['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "conflict"

    response = client.delete(f"/api/printing/{job_card.id}/records/{print_record['id']}", headers=headers)
    assert response.status_code == 200

    response = client.delete(f"/api/slitting/rolls/{roll['id']}", headers=headers)
    assert response.status_code == 200
    assert client.get(f"/api/slitting/{job_card.id}").json()["records"][0]["number_of_roll"] == 0


def test_stage_endpoints_require_an_actor(client, job_card, reel_barcode):
    response = client.post(f"/api/slitting/{job_card.id}/add-barcode", json={"barcode": reel_barcode})
    assert response.status_code == 401


def test_job_card_stage_with_records_cannot_be_removed(client, headers, job_card, reel_barcode):
    client.post(f"/api/slitting/{job_card.id}/add-barcode", json={"barcode": reel_barcode}, headers=headers)

    response = client.put(f"/api/job-cards/{job_card.id}", json={"slitting": False}, headers=headers)

    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "conflict"


def test_job_card_stock_options(client, db, actor, supplier, particular):
    with database.atomic(db):
        batch = material_management.create_batch(
            db,
            supplier_id=supplier.id,
            items=[
                reel("601", gsm=80, size=36, particular_id=particular.id),
                reel("602", gsm=80, size=36, particular_id=particular.id),
                reel("603", gsm=80, size=36, particular_id=particular.id),
                reel("604", gsm=90, size=40, particular_id=particular.id),
                reel("605", gsm=80, size=36),
            ],
            actor_id=actor.id,
        )
    with database.atomic(db):
        picked = next(item for item in batch.items if item.reel_no == "601")
        StockStateMachine(db).consume(picked.barcode)

    response = client.get(f"/api/job-cards/stock/{particular.id}")
    assert response.status_code == 200
    assert response.json() == {
        "particular_id": particular.id,
        "options": [{"gsm": 80, "size": 36, "units": 2}, {"gsm": 90, "size": 40, "units": 1}],
    }

    response = client.get("/api/job-cards/stock/404")
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"
