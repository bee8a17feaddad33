"""
Tests for delivery orders, returns and invoices.
"""
from decimal import Decimal

import pytest

from packtrace import database, models, schemas
from packtrace.crud import bundles
from packtrace.crud.masters import customers
from packtrace.exceptions import ConflictError, NotFound, ValidationError
from packtrace.services import sales_ledger


@pytest.fixture
def items(db, actor, bag_type):
    """Three unsold complete items of the bag type."""
    created = []
    for weight, bags in ((12.5, 100), (12.25, 100), (6.0, 50)):
        with database.atomic(db):
            created.append(bundles.create_complete_item(
                db,
                item=schemas.CompleteItemCreate(bundle_type=bag_type.bag_type, weight=weight, bags=bags),
                actor_id=actor.id,
            ))
    return created


def _lines(*items, price=None):
    return [schemas.SaleLine(barcode=item.barcode, price=price) for item in items]


def _order(db, actor, customer, *items, price=None):
    with database.atomic(db):
        return sales_ledger.create_delivery_order(
            db, customer_id=customer.id, items=_lines(*items, price=price), actor_id=actor.id
        )


def _active(db, item_id):
    db.expire_all()
    return db.get(models.CompleteItem, item_id).is_active


def test_line_total_is_price_per_kg():
    assert sales_ledger.line_total(120, 12.5) == Decimal("1500.00")
    assert sales_ledger.line_total("99.99", "0.333") == Decimal("33.30")
    assert sales_ledger.money(0.005) == Decimal("0.01")

# ============================================================================
# BARCODE VALIDATION
# ============================================================================

def test_sale_validation_outcomes(db, actor, customer, items):
    """Unknown barcode is not found, an unclaimed one returns the item's own figures"""
    with pytest.raises(NotFound):
        sales_ledger.validate_barcode_for_sale(db, "999999")
    with pytest.raises(ValidationError):
        sales_ledger.validate_barcode_for_sale(db, " ")

    summary = sales_ledger.validate_barcode_for_sale(db, items[0].barcode)
    assert summary["complete_item_id"] == items[0].id
    assert summary["weight"] == Decimal("12.5")
    assert summary["bags"] == 100
    assert summary["price"] == Decimal("120.00")

    _order(db, actor, customer, items[0])
    with pytest.raises(ConflictError):
        sales_ledger.validate_barcode_for_sale(db, items[0].barcode)


def test_return_validation_outcomes(db, actor, customer, items):
    with pytest.raises(NotFound):
        sales_ledger.validate_barcode_for_return(db, "999999")
    with pytest.raises(ConflictError):
        sales_ledger.validate_barcode_for_return(db, items[0].barcode)

    _order(db, actor, customer, items[0])
    summary = sales_ledger.validate_barcode_for_return(db, items[0].barcode)
    assert summary["weight"] == Decimal("12.5")
    assert summary["bags"] == 100

    with database.atomic(db):
        sales_ledger.create_return(db, customer_id=customer.id, items=_lines(items[0]), actor_id=actor.id)
    with pytest.raises(ConflictError):
        sales_ledger.validate_barcode_for_return(db, items[0].barcode)

# ============================================================================
# DELIVERY ORDERS
# ============================================================================

def test_delivery_order_claims_items(db, actor, customer, items):
    order = _order(db, actor, customer, *items)

    assert order.frontend_id.startswith("DO-00001-")
    assert order.total_bags == 250
    assert order.total_amount == Decimal("3690.00")
    assert order.customer_address == "Plot 4, GIDC"
    assert [line.total for line in sorted(order.items, key=lambda l: l.id)] == [
        Decimal("1500.00"), Decimal("1470.00"), Decimal("720.00")
    ]
    assert not any(_active(db, item.id) for item in items)


def test_explicit_price_overrides_bag_type(db, actor, customer, items):
    order = _order(db, actor, customer, items[0], price=100)
    assert order.total_amount == Decimal("1250.00")


def test_order_with_a_bad_line_writes_nothing(db, actor, customer, items):
    with pytest.raises(NotFound):
        with database.atomic(db):
            sales_ledger.create_delivery_order(
                db,
                customer_id=customer.id,
                items=_lines(items[0]) + [schemas.SaleLine(barcode="424242")],
                actor_id=actor.id,
            )
    assert db.query(models.SalesInfo).count() == 0
    assert _active(db, items[0].id)


def test_same_barcode_twice_on_one_order(db, actor, customer, items):
    with pytest.raises(ValidationError):
        sales_ledger.create_delivery_order(
            db, customer_id=customer.id, items=_lines(items[0], items[0]), actor_id=actor.id
        )


def test_deleting_an_order_restores_its_items(db, actor, customer, items):
    """3 lines are removed and all 3 items validate for sale again"""
    order = _order(db, actor, customer, *items)

    with database.atomic(db):
        result = sales_ledger.delete_delivery_order(db, order_id=order.id, actor_id=actor.id)

    assert result == {"order_id": order.id, "restored_items": 3}
    assert db.query(models.SalesItem).filter(models.SalesItem.sales_info_id == order.id).count() == 0
    for item in items:
        assert _active(db, item.id)
        assert sales_ledger.validate_barcode_for_sale(db, item.barcode)["complete_item_id"] == item.id
    with pytest.raises(NotFound):
        sales_ledger.get_delivery_order(db, order.id)


def test_update_swaps_lines(db, actor, customer, items):
    order = _order(db, actor, customer, items[0], items[1])

    with database.atomic(db):
        sales_ledger.update_delivery_order(
            db, order_id=order.id, items=_lines(items[1], items[2]), actor_id=actor.id
        )

    db.expire_all()
    order = sales_ledger.get_delivery_order(db, order.id)
    assert sorted(line.complete_item_id for line in order.items) == [items[1].id, items[2].id]
    assert order.total_bags == 150
    assert order.total_amount == Decimal("2190.00")
    assert _active(db, items[0].id)
    assert not _active(db, items[1].id)
    assert not _active(db, items[2].id)


def test_update_cannot_take_items_from_another_order(db, actor, customer, items):
    first = _order(db, actor, customer, items[0])
    _order(db, actor, customer, items[1])

    with pytest.raises(ConflictError):
        with database.atomic(db):
            sales_ledger.update_delivery_order(
                db, order_id=first.id, items=_lines(items[1]), actor_id=actor.id
            )
    assert not _active(db, items[0].id)


def test_bag_types_for_order(db, actor, customer, items, bag_type):
    order = _order(db, actor, customer, *items)

    groups = sales_ledger.bag_types_for_do(db, order.id)

    assert len(groups) == 1
    assert groups[0]["bag_type_id"] == bag_type.id
    assert groups[0]["quantity"] == 3
    assert groups[0]["bags"] == 250
    assert groups[0]["weight"] == Decimal("30.75")

# ============================================================================
# RETURNS
# ============================================================================

def test_return_lifecycle(db, actor, customer, items):
    _order(db, actor, customer, items[0], items[1])

    with database.atomic(db):
        note = sales_ledger.create_return(
            db, customer_id=customer.id, items=_lines(items[0], items[1]), actor_id=actor.id
        )
    assert note.frontend_id.startswith("RN-00001-")
    assert note.total_bags == 200
    assert note.total_amount == Decimal("2970.00")

    with database.atomic(db):
        result = sales_ledger.delete_return(db, return_id=note.id, actor_id=actor.id)
    assert result == {"return_id": note.id, "released_items": 2}

    db.expire_all()
    assert all(line.status == "released" for line in db.get(models.ReturnInfo, note.id).items)
    assert sales_ledger.validate_barcode_for_return(db, items[0].barcode)["complete_item_id"] == items[0].id
    assert sales_ledger.list_returns(db) == []


def test_return_update_swaps_lines(db, actor, customer, items):
    _order(db, actor, customer, *items)
    with database.atomic(db):
        note = sales_ledger.create_return(
            db, customer_id=customer.id, items=_lines(items[0], items[1]), actor_id=actor.id
        )

    with database.atomic(db):
        note = sales_ledger.update_return(
            db, return_id=note.id, items=_lines(items[1], items[2]), actor_id=actor.id
        )
    db.refresh(note)
    assert sorted(line.barcode for line in note.items) == sorted([items[1].barcode, items[2].barcode])
    assert note.total_bags == 150
    assert note.total_amount == Decimal("2190.00")

    # dropped from the note, so it can go on another return
    assert sales_ledger.validate_barcode_for_return(db, items[0].barcode)["complete_item_id"] == items[0].id
    with pytest.raises(ConflictError):
        sales_ledger.validate_barcode_for_return(db, items[2].barcode)


def test_return_update_cannot_take_lines_from_another_note(db, actor, customer, items):
    _order(db, actor, customer, *items)
    with database.atomic(db):
        first = sales_ledger.create_return(db, customer_id=customer.id, items=_lines(items[0]), actor_id=actor.id)
    with database.atomic(db):
        second = sales_ledger.create_return(db, customer_id=customer.id, items=_lines(items[1]), actor_id=actor.id)

    with pytest.raises(ConflictError):
        with database.atomic(db):
            sales_ledger.update_return(db, return_id=second.id, items=_lines(items[0]), actor_id=actor.id)

    db.expire_all()
    assert [line.barcode for line in db.get(models.ReturnInfo, second.id).items] == [items[1].barcode]
    assert [line.barcode for line in db.get(models.ReturnInfo, first.id).items] == [items[0].barcode]

    with pytest.raises(NotFound):
        sales_ledger.update_return(db, return_id=404, items=_lines(items[2]), actor_id=actor.id)

# ============================================================================
# INVOICES
# ============================================================================

def test_invoice_rules(db, actor, customer, items, bag_type):
    order = _order(db, actor, customer, *items)
    with database.atomic(db):
        other = customers.create(db, obj_in=schemas.CustomerCreate(full_name="Other Co", mobile="9800000003"))

    line = schemas.InvoiceLine(bag_type_id=bag_type.id, quantity=3, price=1230)
    with pytest.raises(ValidationError):
        sales_ledger.create_invoice(db, customer_id=other.id, do_id=order.id, items=[line], actor_id=actor.id)

    with database.atomic(db):
        invoice = sales_ledger.create_invoice(
            db, customer_id=customer.id, do_id=order.id, items=[line], actor_id=actor.id
        )
    assert invoice.total == Decimal("3690.00")
    assert invoice.items[0].do_number == order.frontend_id

    with pytest.raises(ConflictError):
        sales_ledger.create_invoice(db, customer_id=customer.id, do_id=order.id, items=[line], actor_id=actor.id)
    with pytest.raises(ConflictError):
        sales_ledger.delete_delivery_order(db, order_id=order.id, actor_id=actor.id)

    with database.atomic(db):
        sales_ledger.delete_invoice(db, invoice_id=invoice.id, actor_id=actor.id)
    with database.atomic(db):
        sales_ledger.delete_delivery_order(db, order_id=order.id, actor_id=actor.id)
    assert _active(db, items[0].id)


def test_invoice_unknown_bag_type(db, actor, customer, items):
    order = _order(db, actor, customer, items[0])
    with pytest.raises(NotFound):
        sales_ledger.create_invoice(
            db,
            customer_id=customer.id,
            do_id=order.id,
            items=[schemas.InvoiceLine(bag_type_id=404, quantity=1, price=10)],
            actor_id=actor.id,
        )


def test_invoice_update_rebills(db, actor, customer, items, bag_type):
    first_order = _order(db, actor, customer, items[0])
    second_order = _order(db, actor, customer, items[1])
    third_order = _order(db, actor, customer, items[2])

    line = schemas.InvoiceLine(bag_type_id=bag_type.id, quantity=3, price=1230)
    with database.atomic(db):
        invoice = sales_ledger.create_invoice(
            db, customer_id=customer.id, do_id=first_order.id, items=[line], actor_id=actor.id
        )
    with database.atomic(db):
        sales_ledger.create_invoice(
            db, customer_id=customer.id, do_id=third_order.id, items=[line], actor_id=actor.id
        )

    with database.atomic(db):
        invoice = sales_ledger.update_invoice(
            db,
            invoice_id=invoice.id,
            items=[schemas.InvoiceLine(bag_type_id=bag_type.id, quantity=2, price=1000)],
            actor_id=actor.id,
        )
    db.refresh(invoice)
    assert invoice.total == Decimal("2000.00")
    assert len(invoice.items) == 1
    assert invoice.sales_info_id == first_order.id

    with pytest.raises(ConflictError):
        sales_ledger.update_invoice(db, invoice_id=invoice.id, do_id=third_order.id, items=[line], actor_id=actor.id)
    with pytest.raises(ValidationError):
        sales_ledger.update_invoice(db, invoice_id=invoice.id, items=[], actor_id=actor.id)

    with database.atomic(db):
        invoice = sales_ledger.update_invoice(
            db, invoice_id=invoice.id, do_id=second_order.id, items=[line], actor_id=actor.id
        )
    db.refresh(invoice)
    assert invoice.sales_info_id == second_order.id
    assert invoice.items[0].do_number == second_order.frontend_id

    # the first order is no longer billed
    with database.atomic(db):
        sales_ledger.delete_delivery_order(db, order_id=first_order.id, actor_id=actor.id)
    assert _active(db, items[0].id)

# ============================================================================
# API
# ============================================================================

def test_delivery_order_endpoints(client, headers, customer, items):
    response = client.get("/api/sales/do/validate-barcode", params={"barcode": items[0].barcode})
    assert response.status_code == 200
    assert response.json()["weight"] == pytest.approx(12.5)

    response = client.post(
        "/api/sales/do",
        json={"customer_id": customer.id, "items": [{"barcode": item.barcode} for item in items]},
        headers=headers,
    )
    assert response.status_code == 200
    order = response.json()
    assert order["total_bags"] == 250
    assert order["total_amount"] == pytest.approx(3690.0)
    assert len(order["items"]) == 3

    response = client.get("/api/sales/do/validate-barcode", params={"barcode": items[0].barcode})
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "conflict"

    numbers = client.get("/api/sales/do-numbers").json()
    assert numbers == [{"id": order["id"], "do_number": order["frontend_id"], "customer_id": customer.id}]

    groups = client.get(f"/api/sales/do/{order['id']}/bag-types").json()
    assert groups[0]["quantity"] == 3

    response = client.delete(f"/api/sales/do/{order['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["restored_items"] == 3

    assert client.get(f"/api/sales/do/{order['id']}").status_code == 404
    response = client.get("/api/sales/do/validate-barcode", params={"barcode": items[0].barcode})
    assert response.status_code == 200


def test_return_and_invoice_endpoints(client, headers, customer, items, bag_type):
    order = client.post(
        "/api/sales/do", json={"customer_id": customer.id, "items": [{"barcode": items[0].barcode}]}, headers=headers
    ).json()

    response = client.get("/api/sales/returns/validate-barcode", params={"barcode": items[0].barcode})
    assert response.status_code == 200

    response = client.post(
        "/api/sales/returns", json={"customer_id": customer.id, "items": [{"barcode": items[0].barcode}]}, headers=headers
    )
    assert response.status_code == 200
    note = response.json()
    assert note["items"][0]["status"] == "active"

    response = client.get("/api/sales/returns/validate-barcode", params={"barcode": items[0].barcode})
    assert response.status_code == 409

    assert client.delete(f"/api/sales/returns/{note['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/sales/returns/{note['id']}").status_code == 404

    response = client.post(
        "/api/sales/invoices",
        json={
            "customer_id": customer.id,
            "do_id": order["id"],
            "items": [{"bag_type_id": bag_type.id, "quantity": 1, "price": 1500}],
        },
        headers=headers,
    )
    assert response.status_code == 200
    invoice = response.json()
    assert invoice["total"] == pytest.approx(1500.0)

    assert client.delete(f"/api/sales/do/{order['id']}", headers=headers).status_code == 409
    assert client.delete(f"/api/sales/invoices/{invoice['id']}", headers=headers).status_code == 200
    assert client.get("/api/sales/invoices").json() == []


def test_return_and_invoice_edit_endpoints(client, headers, customer, items, bag_type):
    order = client.post(
        "/api/sales/do",
        json={"customer_id": customer.id, "items": [{"barcode": item.barcode} for item in items]},
        headers=headers,
    ).json()

    note = client.post(
        "/api/sales/returns", json={"customer_id": customer.id, "items": [{"barcode": items[0].barcode}]}, headers=headers
    ).json()
    response = client.put(
        f"/api/sales/returns/{note['id']}",
        json={"items": [{"barcode": items[1].barcode}, {"barcode": items[2].barcode}]},
        headers=headers,
    )
    assert response.status_code == 200
    assert sorted(line["barcode"] for line in response.json()["items"]) == sorted([items[1].barcode, items[2].barcode])
    assert client.get("/api/sales/returns/validate-barcode", params={"barcode": items[0].barcode}).status_code == 200

    response = client.put(f"/api/sales/returns/{note['id']}", json={"items": []}, headers=headers)
    assert response.status_code == 422

    invoice = client.post(
        "/api/sales/invoices",
        json={"customer_id": customer.id, "do_id": order["id"], "items": [{"bag_type_id": bag_type.id, "quantity": 1, "price": 1500}]},
        headers=headers,
    ).json()
    response = client.put(
        f"/api/sales/invoices/{invoice['id']}",
        json={"items": [{"bag_type_id": bag_type.id, "quantity": 2, "price": 1500}]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["total"] == pytest.approx(3000.0)

    response = client.put(
        "/api/sales/invoices/404", json={"items": [{"bag_type_id": bag_type.id, "quantity": 1, "price": 1}]}, headers=headers
    )
    assert response.status_code == 404
