from decimal import Decimal
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ordermgmt import models
from ordermgmt.auth import Actor
from ordermgmt.db import Base, enable_sqlite_foreign_keys
from ordermgmt.main import app, get_db
from ordermgmt.models import UserRole


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return Actor(user_id=None, role=UserRole.ADMIN)


@pytest.fixture
def employee():
    return Actor(user_id=None, role=UserRole.EMPLOYEE)


@pytest.fixture
def customer(db_session):
    user = models.User(name="Carla Customer", email="carla@example.com", role=UserRole.CUSTOMER)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def make_product(db_session):
    def _make(name="Widget", price="10.00", stock=10, is_active=True, sku=None):
        product = models.Product(name=name, price=Decimal(price), stock=stock, is_active=is_active, sku=sku)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def admin_user(db_session):
    user = models.User(name="Ada Admin", email="ada@example.com", role=UserRole.ADMIN)
    db_session.add(user)
    db_session.commit()
    return user
