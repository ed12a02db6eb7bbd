"""
Shared fixtures: an in-memory SQLite database rebuilt for every test and a
TestClient that runs each API test once per data-access backend.
"""
import os

# must be set before db.py builds the engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REQUIRE_SESSION", None)
os.environ.pop("USE_ORM", None)

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from db import engine, seed_reference_data
from main import app
from models import (
    Area,
    Category,
    Citizen,
    Operator,
    Role,
    Route,
    User,
    Warehouse,
)
from security import hash_password
from services.factory import _BACKENDS

CITIZEN_CNIC = "35202-1234567-1"
NEIGHBOUR_CNIC = "35202-2222222-2"
OPERATOR_CNIC = "35202-7654321-3"
GOVERNMENT_CNIC = "61101-1111111-1"
PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def database():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        seed_reference_data(session)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(database):
    with Session(engine) as session:
        yield session


@pytest.fixture
def world(session):
    """
    One area with a route and a warehouse, two categories, two citizens,
    an operator working the route and a government account.
    """
    area = Area(area_name="Gulberg", city="Lahore")
    other_area = Area(area_name="Clifton", city="Karachi")
    session.add_all([area, other_area])
    session.flush()

    plastic = Category(category_name="Plastic", base_price_per_kg=Decimal("50.00"), description="PET bottles")
    paper = Category(category_name="Paper", base_price_per_kg=Decimal("12.50"))
    session.add_all([plastic, paper])
    session.flush()

    route = Route(route_name="Gulberg North", area_id=area.area_id)
    warehouse = Warehouse(
        warehouse_name="Central Depot", area_id=area.area_id, address="Main Boulevard", capacity=1000.0
    )
    session.add_all([route, warehouse])
    session.flush()

    for cnic, role_id in (
        (CITIZEN_CNIC, Role.CITIZEN),
        (NEIGHBOUR_CNIC, Role.CITIZEN),
        (OPERATOR_CNIC, Role.OPERATOR),
        (GOVERNMENT_CNIC, Role.GOVERNMENT),
    ):
        session.add(User(user_id=cnic, password_hash=hash_password(PASSWORD), role_id=role_id))
    session.flush()

    session.add_all(
        [
            Citizen(
                citizen_id=CITIZEN_CNIC,
                full_name="Ayesha Khan",
                phone_number="03001234567",
                area_id=area.area_id,
                address="12 Canal Road",
            ),
            Citizen(citizen_id=NEIGHBOUR_CNIC, full_name="Bilal Ahmed", area_id=other_area.area_id),
            Operator(
                operator_id=OPERATOR_CNIC,
                full_name="Imran Ali",
                phone_number="03111234567",
                route_id=route.route_id,
                warehouse_id=warehouse.warehouse_id,
            ),
        ]
    )
    session.commit()

    return SimpleNamespace(
        area_id=area.area_id,
        other_area_id=other_area.area_id,
        plastic_id=plastic.category_id,
        paper_id=paper.category_id,
        route_id=route.route_id,
        warehouse_id=warehouse.warehouse_id,
        citizen_id=CITIZEN_CNIC,
        neighbour_id=NEIGHBOUR_CNIC,
        operator_id=OPERATOR_CNIC,
        government_id=GOVERNMENT_CNIC,
    )


@pytest.fixture(params=["true", "false"], ids=["orm", "sql"])
def client(request):
    """TestClient pinned to one backend through the X-Use-EF header."""
    test_client = TestClient(app)
    test_client.headers.update({"X-Use-EF": request.param})
    return test_client


@pytest.fixture
def raw_client():
    return TestClient(app)


@pytest.fixture(params=["orm", "sql"])
def backend(request):
    return request.param


@pytest.fixture
def services(backend, session):
    """Service objects of one backend bound to a test session."""
    return SimpleNamespace(**{name: cls(session) for name, cls in _BACKENDS[backend].items()})


def create_listing(client, world, weight=10, category_id=None, citizen_id=None):
    response = client.post(
        "/api/citizen/listings",
        json={
            "citizenID": citizen_id or world.citizen_id,
            "categoryID": category_id or world.plastic_id,
            "weight": weight,
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["listingID"]
