"""
Shared fixtures for the test suite.

Tests run against a throwaway SQLite file so request handlers, worker
threads and the test's own session each get a real connection. The schema
is rebuilt before every test.
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="packtrace-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SEED_ADMIN"] = "false"

import pytest
from fastapi.testclient import TestClient

from packtrace import database, schemas
from packtrace.crud.masters import bag_types, customers, particulars, suppliers
from packtrace.crud.users import users
from packtrace.main import app


@pytest.fixture(autouse=True)
def fresh_schema():
    database.Base.metadata.drop_all(bind=database.engine)
    database.Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def actor(db):
    with database.atomic(db):
        user = users.create_user(
            db,
            user=schemas.UserMasterCreate(
                name="Floor Operator",
                username="operator1",
                password="secret123",
                role=schemas.UserRole.OPERATOR,
            ),
        )
    return user


@pytest.fixture
def headers(actor):
    return {"X-User-Id": str(actor.id)}


@pytest.fixture
def supplier(db):
    with database.atomic(db):
        return suppliers.create(db, obj_in=schemas.SupplierCreate(name="Kraft Mills", mobile="9800000001"))


@pytest.fixture
def customer(db):
    with database.atomic(db):
        return customers.create(
            db, obj_in=schemas.CustomerCreate(full_name="Sharma Traders", address="Plot 4, GIDC", mobile="9800000002")
        )


@pytest.fixture
def particular(db):
    with database.atomic(db):
        return particulars.create(db, obj_in=schemas.ParticularCreate(name="Kraft 80GSM"))


@pytest.fixture
def bag_type(db):
    with database.atomic(db):
        return bag_types.create(db, obj_in=schemas.BagTypeCreate(bag_type="W-Cut 14x18", bag_price=120))


def reel(reel_no="101", net=10.5, gross=11.0, gsm=80, size=36, particular_id=None):
    """MaterialItemCreate with sensible defaults."""
    return schemas.MaterialItemCreate(
        reel_no=reel_no,
        particular_id=particular_id,
        gsm=gsm,
        size=size,
        net_weight=net,
        gross_weight=gross,
    )


def make_job_card(db, customer, actor, **stages):
    """A job card committed through the crud layer."""
    from packtrace.crud import job_cards

    with database.atomic(db):
        job_card = job_cards.create_job_card(
            db,
            job_card=schemas.JobCardCreate(customer_id=customer.id, gsm=80, size=36, **stages),
            actor_id=actor.id,
        )
    return job_card
