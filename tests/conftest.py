import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["SEED_MENU"] = "false"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"
os.environ["ALLOW_REGISTRATION"] = "false"
os.environ["STRICT_STATUS_TRANSITIONS"] = "false"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from cafe import database  # noqa: E402
from cafe.main import app  # noqa: E402
from cafe.models import MenuItem  # noqa: E402
from cafe.service import OrderService  # noqa: E402
from tests.fakes import RecordingHub  # noqa: E402

MENU = [
    ("chai", "Chai", "25.00"),
    ("samosa", "Samosa", "15.00"),
    ("dosa", "Masala Dosa", "80.00"),
]


def add_menu(session: Session) -> None:
    for slug, name, price in MENU:
        session.add(MenuItem(slug=slug, name=name, price=Decimal(price)))
    session.commit()


@pytest.fixture(autouse=True)
def fresh_db():
    database.drop_db()
    database.init_db()
    yield


@pytest.fixture
def session():
    with Session(database.engine) as session:
        add_menu(session)
        yield session


@pytest.fixture
def hub():
    return RecordingHub()


@pytest.fixture
def service(session, hub):
    return OrderService(session, hub)


@pytest.fixture
def client(session):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def staff_client(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    return client
