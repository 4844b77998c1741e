"""Pytest fixtures for testing"""

import uuid
import pytest
from decimal import Decimal
from typing import Callable, Generator
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from loyalty_gateway.api.main import create_app
from loyalty_gateway.config import Settings
from loyalty_gateway.domain.models import Balance, Order, OrderStatus
from loyalty_gateway.infrastructure.database.models import Base
from loyalty_gateway.infrastructure.database.repositories import (
    BalanceRepository,
    OrderRepository,
    balance_from_record,
    order_from_record,
)


@pytest.fixture
def settings() -> Settings:
    """In-memory database, cheap bcrypt, no background loops"""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        secret_key="test-secret",
        bcrypt_rounds=4,
        enable_workers=False,
        accrual_system_address="http://accrual.test",
    )


@pytest.fixture
def app(settings: Settings) -> Generator[FastAPI, None, None]:
    """Application with a fresh schema"""
    app = create_app(settings)
    Base.metadata.create_all(bind=app.state.engine)
    try:
        yield app
    finally:
        Base.metadata.drop_all(bind=app.state.engine)
        app.state.engine.dispose()


@pytest.fixture
def session_factory(app: FastAPI) -> sessionmaker:
    return app.state.session_factory


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """FastAPI test client bound to the test database"""
    return TestClient(app)


@pytest.fixture
def owner_id(db: Session) -> uuid.UUID:
    """A user id with an empty balance row, as registration would leave it"""
    user_id = uuid.uuid4()
    BalanceRepository(db).create_balance(user_id)
    db.commit()
    return user_id


@pytest.fixture
def make_order(session_factory: sessionmaker) -> Callable[..., str]:
    """Insert an order directly in any lifecycle state"""

    def _make_order(
        number: str,
        owner: uuid.UUID,
        status: OrderStatus = OrderStatus.NEW,
        accrual: Decimal = Decimal("0"),
        credited: bool = False,
    ) -> str:
        with session_factory() as db:
            record = OrderRepository(db).create_order(number, owner)
            record.status = status.value
            record.accrual = accrual
            record.credited = credited
            db.commit()
        return number

    return _make_order


@pytest.fixture
def register(client: TestClient) -> Callable[[str], dict]:
    """Register a user through the API and return auth headers"""

    def _register(login: str, password: str = "secret") -> dict:
        response = client.post("/api/user/register", json={"login": login, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register


@pytest.fixture
def fetch_order(session_factory: sessionmaker) -> Callable[[str], Order]:
    """Read an order through a fresh session"""

    def _fetch(number: str) -> Order:
        with session_factory() as db:
            return order_from_record(OrderRepository(db).get_order_by_id(number))

    return _fetch


@pytest.fixture
def fetch_balance(session_factory: sessionmaker) -> Callable[[uuid.UUID], Balance]:
    """Read a balance through a fresh session"""

    def _fetch(user_id: uuid.UUID) -> Balance:
        with session_factory() as db:
            return balance_from_record(BalanceRepository(db).get_balance_by_user(user_id))

    return _fetch
