"""Integration tests for API endpoints"""

import uuid
import jwt
import pytest
from datetime import timedelta
from decimal import Decimal
from fastapi.testclient import TestClient
from loyalty_gateway.domain.models import OrderStatus
from loyalty_gateway.infrastructure.database.repositories import BalanceRepository, UserRepository
from loyalty_gateway.utils.date_utils import utcnow

ORDER = "6231543915765652"
OTHER_ORDER = "79927398713"
SPEND_TAG = "2377225624"


def submit(client: TestClient, headers: dict, number: str):
    return client.post("/api/user/orders", content=number, headers={**headers, "Content-Type": "text/plain"})


def owner_of(client: TestClient, headers: dict) -> uuid.UUID:
    token = headers["Authorization"].split(" ", 1)[1]
    return client.app.state.token_service.resolve(token)


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ping_checks_database(client: TestClient):
    response = client.get("/api/user/ping")
    assert response.status_code == 200


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "loyalty_order_submissions_total" in response.text
    assert "loyalty_ledger_orders_credited_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


# Accounts


def test_register_returns_token_header_and_cookie(client: TestClient):
    response = client.post("/api/user/register", json={"login": "alice", "password": "secret"})

    assert response.status_code == 200
    token = response.json()["token"]
    assert response.headers["Authorization"] == f"Bearer {token}"
    assert "access_token=" in response.headers["set-cookie"]
    assert "HttpOnly" in response.headers["set-cookie"]


def test_register_creates_empty_balance(client: TestClient, register):
    headers = register("alice")

    response = client.get("/api/user/balance", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"current": 0, "withdrawn": 0}


def test_register_stores_hashed_credentials_only(client: TestClient, register, session_factory):
    register("alice", password="secret")

    with session_factory() as db:
        user = UserRepository(db).get_user_by_login("alice")

    assert set(user.__table__.columns.keys()) == {"id", "login", "password_hash", "created_at"}
    assert user.password_hash != "secret"


def test_duplicate_login_conflicts(client: TestClient, register):
    register("alice")

    response = client.post("/api/user/register", json={"login": "alice", "password": "other"})

    assert response.status_code == 409


@pytest.mark.parametrize(
    "body",
    [{"login": "alice"}, {"login": "", "password": "secret"}, {"password": "secret"}],
)
def test_register_rejects_bad_body(client: TestClient, body):
    response = client.post("/api/user/register", json=body)
    assert response.status_code == 400


def test_login_success_and_failure(client: TestClient, register):
    register("alice", password="secret")

    ok = client.post("/api/user/login", json={"login": "alice", "password": "secret"})
    wrong = client.post("/api/user/login", json={"login": "alice", "password": "nope"})
    unknown = client.post("/api/user/login", json={"login": "bob", "password": "secret"})

    assert ok.status_code == 200
    assert ok.headers["Authorization"].startswith("Bearer ")
    assert wrong.status_code == 401
    assert unknown.status_code == 401


def test_protected_endpoints_require_token(client: TestClient):
    assert client.get("/api/user/orders").status_code == 401
    assert client.get("/api/user/balance").status_code == 401
    assert client.get("/api/user/withdrawals").status_code == 401
    assert client.post("/api/user/orders", content=ORDER).status_code == 401


def test_malformed_authorization_header(client: TestClient):
    response = client.get("/api/user/balance", headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_expired_token_is_rejected(client: TestClient, settings):
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "exp": utcnow() - timedelta(seconds=5)},
        settings.secret_key,
        algorithm="HS256",
    )

    response = client.get("/api/user/balance", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_cookie_authenticates(client: TestClient, register):
    token = register("alice")["Authorization"].split(" ", 1)[1]

    response = client.get("/api/user/balance", headers={"Cookie": f"access_token={token}"})

    assert response.status_code == 200


# Orders


def test_order_submission_lifecycle(client: TestClient, register):
    alice = register("alice")
    bob = register("bob")

    assert submit(client, alice, ORDER).status_code == 202
    assert submit(client, alice, ORDER).status_code == 200
    assert submit(client, bob, ORDER).status_code == 409


def test_order_submission_validation(client: TestClient, register):
    headers = register("alice")

    assert submit(client, headers, "6231543915765653").status_code == 422
    assert submit(client, headers, "12ab").status_code == 422
    assert submit(client, headers, "").status_code == 400
    assert submit(client, headers, "   ").status_code == 422


def test_order_number_is_not_trimmed(client: TestClient, register):
    headers = register("alice")

    assert submit(client, headers, f" {ORDER}\n").status_code == 422
    assert client.get("/api/user/orders", headers=headers).status_code == 204


def test_order_list_empty_is_no_content(client: TestClient, register):
    response = client.get("/api/user/orders", headers=register("alice"))
    assert response.status_code == 204


def test_order_list_shape(client: TestClient, register, make_order):
    headers = register("alice")
    owner = owner_of(client, headers)
    submit(client, headers, OTHER_ORDER)
    make_order(ORDER, owner, status=OrderStatus.PROCESSED, accrual=Decimal("500"))

    response = client.get("/api/user/orders", headers=headers)

    assert response.status_code == 200
    items = {item["number"]: item for item in response.json()}
    assert items[ORDER]["status"] == "PROCESSED"
    assert items[ORDER]["accrual"] == 500
    assert items[OTHER_ORDER]["status"] == "NEW"
    assert "accrual" not in items[OTHER_ORDER]
    assert items[OTHER_ORDER]["uploaded_at"].endswith("+00:00")


def test_orders_are_private(client: TestClient, register):
    alice = register("alice")
    bob = register("bob")
    submit(client, alice, ORDER)

    assert client.get("/api/user/orders", headers=bob).status_code == 204


# Balance and withdrawals


@pytest.fixture
def funded(client: TestClient, register, session_factory):
    """Registered user holding 500 points"""
    headers = register("alice")
    with session_factory() as db:
        BalanceRepository(db).credit(owner_of(client, headers), Decimal("500"))
        db.commit()
    return headers


def test_withdraw_updates_balance_and_history(client: TestClient, funded):
    response = client.post("/api/user/balance/withdraw", json={"order": SPEND_TAG, "sum": 200}, headers=funded)

    assert response.status_code == 200
    assert client.get("/api/user/balance", headers=funded).json() == {"current": 300, "withdrawn": 200}

    history = client.get("/api/user/withdrawals", headers=funded)
    assert history.status_code == 200
    [item] = history.json()
    assert item["order"] == SPEND_TAG
    assert item["sum"] == 200
    assert "processed_at" in item


def test_withdraw_insufficient_funds(client: TestClient, funded):
    response = client.post("/api/user/balance/withdraw", json={"order": SPEND_TAG, "sum": 751}, headers=funded)

    assert response.status_code == 402
    assert client.get("/api/user/balance", headers=funded).json() == {"current": 500, "withdrawn": 0}


def test_withdraw_invalid_order_number(client: TestClient, funded):
    response = client.post("/api/user/balance/withdraw", json={"order": "2377225625", "sum": 1}, headers=funded)
    assert response.status_code == 422


def test_withdraw_reused_order_number(client: TestClient, funded):
    body = {"order": SPEND_TAG, "sum": 10}
    assert client.post("/api/user/balance/withdraw", json=body, headers=funded).status_code == 200

    response = client.post("/api/user/balance/withdraw", json=body, headers=funded)

    assert response.status_code == 409
    assert client.get("/api/user/balance", headers=funded).json()["withdrawn"] == 10


@pytest.mark.parametrize("body", [{"order": SPEND_TAG, "sum": -1}, {"order": SPEND_TAG}, {"sum": 5}])
def test_withdraw_bad_body(client: TestClient, funded, body):
    response = client.post("/api/user/balance/withdraw", json=body, headers=funded)
    assert response.status_code == 400


def test_withdrawals_empty_is_no_content(client: TestClient, register):
    response = client.get("/api/user/withdrawals", headers=register("alice"))
    assert response.status_code == 204


def test_withdraw_unrepresentable_sum(client: TestClient, funded):
    response = client.post("/api/user/balance/withdraw", json={"order": SPEND_TAG, "sum": 1e30}, headers=funded)

    assert response.status_code == 400
    assert client.get("/api/user/balance", headers=funded).json() == {"current": 500, "withdrawn": 0}
