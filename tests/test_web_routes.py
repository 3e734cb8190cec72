"""Tests for the JSON API routes."""

import base64

import pytest
from fastapi.testclient import TestClient

from ledger.core.database import create_store_engine, make_session_factory
from ledger.services.schema_service import create_schema
from ledger.web.app import create_app


@pytest.fixture
def client(tmp_path):
    """Create a test client backed by a fresh SQLite file."""
    engine = create_store_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_schema(engine)
    app = create_app(make_session_factory(engine))
    with TestClient(app) as client:
        yield client
    engine.dispose()


@pytest.fixture
def accounts(client):
    for path, increase_on in [
        ("Assets.Bank.Checking", "on_debit"),
        ("Expenses.Food", "on_debit"),
        ("Income.Salary", "on_credit"),
    ]:
        response = client.post("/accounts", json={"path": path, "increase_on": increase_on})
        assert response.status_code == 201


def _post(client, **overrides):
    payload = {
        "amount": "42.50",
        "currency": "USD",
        "date": "2024-01-15T10:00:00",
        "description": "Dinner",
        "debit_account": "Food",
        "credit_account": "Checking",
        "tags": ["food"],
        "attachments": [],
    }
    payload.update(overrides)
    return client.post("/transactions", json=payload)


def test_register_account_path(client):
    response = client.post("/accounts", json={"path": "Assets.Bank.Checking"})

    assert response.status_code == 201
    assert [a["name"] for a in response.json()] == ["Assets", "Bank", "Checking"]
    assert all(a["increase_on"] == "on_debit" for a in response.json())

    detail = client.get("/accounts/Assets").json()
    assert detail["descendants"] == ["Bank", "Checking"]
    assert detail["ancestors"] == []


def test_register_malformed_path(client):
    response = client.post("/accounts", json={"path": "Assets..Cash"})

    assert response.status_code == 422
    assert response.json()["error"] == "MalformedPathError"
    assert client.get("/accounts").json() == []


def test_post_and_read_transaction(client, accounts):
    receipt = base64.b64encode(b"receipt-bytes").decode()
    response = _post(client, attachments=[{"name": "receipt.txt", "data": receipt}])

    assert response.status_code == 201
    body = response.json()
    assert body["amount"] == "42.50"
    assert body["debit_account"] == "Food"
    assert body["credit_account"] == "Checking"
    assert body["tags"] == ["food"]
    assert body["attachments"] == ["receipt.txt"]

    fetched = client.get(f"/transactions/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == body

    download = client.get(f"/transactions/{body['id']}/attachments/receipt.txt")
    assert download.status_code == 200
    assert download.content == b"receipt-bytes"

    food = client.get("/accounts/Food").json()
    checking = client.get("/accounts/Checking").json()
    assert food["balance"] == "42.50"
    assert checking["balance"] == "-42.50"
    assert client.get("/accounts/Assets").json()["subtree_balance"] == "-42.50"


def test_list_and_range(client, accounts):
    _post(client, date="2024-02-01T00:00:00", description="feb")
    _post(client, date="2024-01-15T00:00:00", description="mid")
    _post(client, date="2024-01-01T00:00:00", description="jan")

    everything = client.get("/transactions").json()
    assert [t["description"] for t in everything] == ["feb", "mid", "jan"]

    ranged = client.get(
        "/transactions",
        params={"start": "2024-01-01T00:00:00", "end": "2024-01-31T23:59:59"},
    ).json()
    assert [t["description"] for t in ranged] == ["jan", "mid"]


def test_account_transactions_rollup(client, accounts):
    _post(client, debit_account="Checking", credit_account="Salary", description="pay")
    _post(client, description="dinner")

    response = client.get("/accounts/Assets/transactions")

    assert response.status_code == 200
    assert [t["description"] for t in response.json()] == ["pay", "dinner"]


def test_post_rejects_same_account(client, accounts):
    response = _post(client, credit_account="Food")

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidTransaction"
    assert client.get("/transactions").json() == []


def test_post_rejects_non_positive_amount(client, accounts):
    response = _post(client, amount="0")

    assert response.status_code == 422
    assert client.get("/transactions").json() == []


def test_post_unknown_account(client, accounts):
    response = _post(client, debit_account="Nowhere")

    assert response.status_code == 404
    assert response.json()["error"] == "AccountNotFound"


def test_missing_transaction(client):
    response = client.get("/transactions/999")

    assert response.status_code == 404
    assert response.json()["error"] == "TransactionNotFound"


def test_delete_transaction(client, accounts):
    tx_id = _post(client).json()["id"]

    response = client.delete(f"/transactions/{tx_id}")

    assert response.status_code == 204
    assert client.get(f"/transactions/{tx_id}").status_code == 404
    assert client.get("/accounts/Food").json()["balance"] == "0.00"


def test_add_and_remove_tags(client, accounts):
    tx_id = _post(client).json()["id"]

    tagged = client.post(f"/transactions/{tx_id}/tags", json={"tags": ["work", "food"]})
    assert tagged.status_code == 200
    assert tagged.json()["tags"] == ["food", "work"]

    untagged = client.delete(f"/transactions/{tx_id}/tags/food")
    assert untagged.json()["tags"] == ["work"]


def test_list_by_tag(client, accounts):
    _post(client, description="tagged", tags=["trip"])
    _post(client, description="plain", tags=[])

    response = client.get("/transactions", params={"tag": "trip"})

    assert [t["description"] for t in response.json()] == ["tagged"]


def test_range_with_date_only_bounds_covers_whole_day(client, accounts):
    _post(client, date="2024-01-31T18:30:00", description="evening")

    response = client.get("/transactions", params={"start": "2024-01-31", "end": "2024-01-31"})

    assert response.status_code == 200
    assert [t["description"] for t in response.json()] == ["evening"]


def test_range_with_single_bound(client, accounts):
    _post(client, date="2024-01-31T18:30:00", description="january")
    _post(client, date="2024-03-01T00:00:00", description="march")

    since = client.get("/transactions", params={"start": "2024-02-01"}).json()
    until = client.get("/transactions", params={"end": "2024-02-01"}).json()

    assert [t["description"] for t in since] == ["march"]
    assert [t["description"] for t in until] == ["january"]


def test_range_with_mixed_timezone_bounds(client, accounts):
    _post(client, date="2024-06-01T12:00:00+02:00", description="summer")

    response = client.get(
        "/transactions",
        params={"start": "2024-01-01T00:00:00Z", "end": "2024-12-31T00:00:00"},
    )

    assert response.status_code == 200
    assert [t["date"] for t in response.json()] == ["2024-06-01T10:00:00"]


def test_range_rejects_unparseable_bound(client):
    response = client.get("/transactions", params={"start": "yesterday"})

    assert response.status_code == 422
