import os

# every test runs against a private in-memory database
os.environ["DATABASE_URL"] = "sqlite://"

import datetime as dt

import pytest
from sqlmodel import Session

import routestock.models  # noqa: F401
from routestock.core.database import engine, SQLModel
from routestock.services import catalog, warehouse
from routestock.services.context import StockContext

DAY = dt.date(2025, 1, 15)


@pytest.fixture(autouse=True)
def create_test_db():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as ses:
        yield ses


@pytest.fixture
def cola(session):
    """24 pcs per box, 2400 per box -> 100 per piece."""
    return catalog.create_product(
        session, "Cola 500ml", pcs_per_box=24, box_price=2400.0, product_id="cola"
    )


@pytest.fixture
def soda(session):
    return catalog.create_product(
        session, "Soda 1L", pcs_per_box=12, box_price=1800.0, product_id="soda"
    )


@pytest.fixture
def stocked_cola(session, cola):
    """Cola with 10 boxes in the warehouse."""
    warehouse.set_stock(session, cola.id, 10, 0, note="opening stock")
    return cola


@pytest.fixture
def ctx():
    return StockContext(date=DAY, route_id="R1")


@pytest.fixture
def driver_ctx():
    return StockContext(date=DAY, route_id="R1", driver_id="D1", truck_id="T1")
