"""
Tests for the application shell: health, actor header, error envelope,
master data, authentication and the request deadline.
"""
import asyncio
import time

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from packtrace import database, main, models, schemas
from packtrace.config import settings
from packtrace.crud.users import users
from packtrace.exceptions import LedgerError, RequestTimeout

from conftest import make_job_card


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200


def test_mutation_needs_actor_header(client):
    response = client.post("/api/suppliers", json={"name": "Kraft Mills"})
    assert response.status_code == 401
    assert response.json()["error"]["kind"] == "unauthorized"

    response = client.post("/api/suppliers", json={"name": "Kraft Mills"}, headers={"X-User-Id": "404"})
    assert response.status_code == 401


def test_not_found_envelope(client):
    response = client.get("/api/job-cards/404")
    assert response.status_code == 404
    assert response.json() == {"error": {"kind": "not_found", "message": "Job card 404 not found"}}


def test_request_validation_envelope(client, headers):
    response = client.post("/api/material-items", json={"reel_no": "7"}, headers=headers)
    assert response.status_code == 422
    body = response.json()["error"]
    assert body["kind"] == "validation_error"
    assert {tuple(detail["loc"])[-1] for detail in body["details"]} >= {"gsm", "size", "net_weight"}


def test_master_data_lifecycle(client, headers):
    response = client.post("/api/customers", json={"full_name": "Sharma Traders", "mobile": "98000"}, headers=headers)
    assert response.status_code == 200
    customer = response.json()
    assert customer["status"] == "active"

    response = client.put(f"/api/customers/{customer['id']}", json={"address": "Plot 4"}, headers=headers)
    assert response.json()["address"] == "Plot 4"

    assert client.delete(f"/api/customers/{customer['id']}", headers=headers).status_code == 200
    assert client.get("/api/customers").json() == []
    inactive = client.get("/api/customers", params={"status": "inactive"}).json()
    assert [c["id"] for c in inactive] == [customer["id"]]

    assert client.delete("/api/customers/404", headers=headers).status_code == 404
    assert client.put("/api/customers/404", json={"address": "x"}, headers=headers).status_code == 404


def test_bag_type_names_are_unique(client, headers):
    payload = {"bag_type": "W-Cut 14x18", "bag_price": 120}
    assert client.post("/api/bag-types", json=payload, headers=headers).status_code == 200

    response = client.post("/api/bag-types", json=payload, headers=headers)
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "conflict"


def test_roll_type_and_print_size_masters(client, headers):
    response = client.post("/api/roll-types", json={"roll_type": "  Tube  "}, headers=headers)
    assert response.status_code == 200
    roll_type = response.json()
    assert roll_type["roll_type"] == "Tube"

    response = client.post("/api/print-sizes", json={"print_size": "14x18"}, headers=headers)
    assert response.status_code == 200
    print_size = response.json()

    response = client.put(f"/api/print-sizes/{print_size['id']}", json={"print_size": "16x20"}, headers=headers)
    assert response.json()["print_size"] == "16x20"

    assert client.post("/api/roll-types", json={"roll_type": " "}, headers=headers).status_code == 422

    assert client.delete(f"/api/roll-types/{roll_type['id']}", headers=headers).status_code == 200
    assert client.get("/api/roll-types").json() == []
    assert [p["print_size"] for p in client.get("/api/print-sizes").json()] == ["16x20"]


def test_dashboard_summary(client, db, customer, actor):
    from packtrace.crud import bundles

    make_job_card(db, customer, actor, slitting=True)
    with database.atomic(db):
        bundles.create_complete_item(
            db, item=schemas.CompleteItemCreate(bundle_type="W-Cut", weight=5, bags=10), actor_id=actor.id
        )

    response = client.get("/api/dashboard/summary")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    summary = body["summary"]
    assert summary["job_cards"] == 1
    assert summary["customers"] == 1
    assert summary["production"] == {"slitting_records": 0, "print_records": 0, "cutting_records": 0}
    assert summary["stock"]["unsold_items"] == 1
    assert summary["delivery_orders"] == 0


def test_register_and_login(client):
    payload = {"name": "Sales Desk", "username": "sales1", "password": "secret123", "role": "sales"}
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 200
    assert "password" not in response.json()
    assert "password_hash" not in response.json()

    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 409
    assert response.json()["error"]["message"] == "Username 'sales1' is already taken"

    response = client.post("/api/auth/login", json={"username": "sales1", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["role"] == "sales"
    assert response.json()["last_login"] is not None

    response = client.post("/api/auth/login", json={"username": "sales1", "password": "wrong"})
    assert response.status_code == 401

    listed = client.get("/api/users", params={"role": "sales"}).json()
    assert [u["username"] for u in listed] == ["sales1"]


def test_user_creation_rolls_back_with_its_transaction(db):
    new_user = schemas.UserMasterCreate(
        name="Night Shift", username="night1", password="secret123", role=schemas.UserRole.OPERATOR
    )
    with pytest.raises(RuntimeError):
        with database.atomic(db):
            users.create_user(db, user=new_user)
            raise RuntimeError("shift cancelled")

    assert users.get_user_by_username(db, "night1") is None


def test_slow_request_times_out(monkeypatch):
    monkeypatch.setattr(settings, "REQUEST_TIMEOUT_SECONDS", 0.05)

    app = FastAPI()
    app.middleware("http")(main.enforce_timeout)

    @app.get("/slow")
    async def slow():
        await asyncio.sleep(0.5)
        return {"done": True}

    @app.get("/fast")
    async def fast():
        return {"done": True}

    client = TestClient(app)
    response = client.get("/slow")
    assert response.status_code == 504
    assert response.json()["error"]["kind"] == "timeout"

    assert client.get("/fast").json() == {"done": True}


def test_timed_out_write_is_rolled_back(monkeypatch, db):
    monkeypatch.setattr(settings, "REQUEST_TIMEOUT_SECONDS", 0.05)

    app = FastAPI()
    app.add_exception_handler(LedgerError, main.ledger_exception_handler)
    app.middleware("http")(main.enforce_timeout)

    @app.post("/slow-write")
    def slow_write(session: Session = Depends(database.get_db)):
        with database.atomic(session):
            session.add(models.Supplier(name="Late Supplier"))
            session.flush()
            time.sleep(0.3)
        return {"done": True}

    client = TestClient(app)
    response = client.post("/slow-write")
    assert response.status_code == 504
    assert response.json()["error"]["kind"] == "timeout"

    # The worker thread may still be finishing its unit of work
    time.sleep(0.5)
    db.expire_all()
    assert db.query(models.Supplier).count() == 0


def test_unit_of_work_past_its_deadline_is_not_committed(db):
    db.info["deadline"] = time.monotonic() - 1
    with pytest.raises(RequestTimeout):
        with database.atomic(db):
            db.add(models.Supplier(name="Late Supplier"))

    db.info["deadline"] = None
    assert db.query(models.Supplier).count() == 0


def test_settings_validation(monkeypatch):
    monkeypatch.setattr(type(settings), "STOCK_REVERSAL_MODE", "archive")
    with pytest.raises(ValueError):
        settings.validate()
