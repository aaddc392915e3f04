"""
Fixtures comunes de los tests.

- Base de datos SQLite en memoria (StaticPool: una sola conexión compartida
  entre la sesión del test y las peticiones del TestClient).
- `client`: TestClient con `get_db` sustituido por la base de datos de test.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from stockroom.main import app
from stockroom.models.database import get_db
from stockroom.models.product import Product
from stockroom.schemas.movement import MovementCreate
from stockroom.services.notifications import NotificationService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def notifier():
    service = NotificationService(low_stock_threshold=5)
    service.initialize()
    yield service
    service.shutdown()


@pytest.fixture
def client(engine, notifier):
    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        app.state.notifier = notifier
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def add_products(db):
    """Crea productos en la base de datos de test: add_products(("p1", "Flour", 5), ...)."""

    def _add(*rows):
        products = []
        for product_id, name, quantity in rows:
            product = Product(id=product_id, name=name, quantity=quantity, unit="kg")
            db.add(product)
            products.append(product)
        db.commit()
        return products

    return _add


def make_movement(type="stock_in", lines=None, **fields) -> MovementCreate:
    """Movimiento de prueba. `lines` es una lista de (product_id, quantity)."""
    if type == "stock_in":
        fields.setdefault("supplier", "Acme")
    else:
        fields.setdefault("department", "kitchen")
    fields.setdefault("stock_manager", "Ana")
    return MovementCreate(
        type=type,
        lines=[
            {
                "product_id": product_id,
                "product_name": f"Product {product_id}",
                "quantity": quantity,
                "unit": "kg",
            }
            for product_id, quantity in (lines or [])
        ],
        **fields,
    )
