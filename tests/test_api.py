from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN, ORACLE, ENGINE
from database import get_db
from main import app


def as_admin():
    return {"X-Caller": ADMIN}


def as_user(name):
    return {"X-Caller": name}


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # 不使用 with：lifespan 會對預設資料庫做 bootstrap，測試已經自己 bootstrap
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def funded(client):
    client.post("/api/asset/mint", json={"account": ENGINE, "amount": "20000"}, headers=as_admin())
    for player in ("alice", "bob"):
        client.post("/api/asset/mint", json={"account": player, "amount": "1000"}, headers=as_admin())
        client.post("/api/asset/approve", json={"spender": ENGINE, "amount": "1000"}, headers=as_user(player))
    client.post("/api/admin/config/max-bet", json={"max_bet": "500"}, headers=as_admin())
    return client


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/health").json() == {"status": "healthy"}


def test_current_round(client):
    response = client.get("/api/rounds/current")

    assert response.status_code == 200
    assert response.json()["round_id"] == 0
    assert response.json()["status"] == "NOT_STARTED"
    assert response.json()["winning_number"] is None


def test_unknown_round(client):
    response = client.get("/api/rounds/42")

    assert response.status_code == 404
    assert response.json()["error"] == "ROUND_NOT_FOUND"
    assert set(response.json()) == {"error", "detail"}


def test_error_model_in_openapi(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    conflict = schema["paths"]["/api/bets"]["post"]["responses"]["409"]
    assert conflict["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


def test_admin_only(client):
    response = client.post("/api/admin/rounds/open", headers=as_user("alice"))

    assert response.status_code == 403
    assert response.json()["error"] == "UNAUTHORIZED"
    assert client.get("/api/rounds/current").json()["status"] == "NOT_STARTED"


def test_missing_caller_header(client):
    response = client.post("/api/admin/rounds/open")
    assert response.status_code == 422


def test_bet_before_open(funded):
    response = funded.post(
        "/api/bets",
        json={"entries": [{"number": 24, "amount": "100"}], "tag": "Custom"},
        headers=as_user("alice"),
    )

    assert response.status_code == 409
    assert response.json()["error"] == "ROUND_NOT_OPEN"
    assert response.json()["detail"] == "Round is not open"


def test_invalid_number_code(funded):
    funded.post("/api/admin/rounds/open", headers=as_admin())

    response = funded.post(
        "/api/bets",
        json={"entries": [{"number": 37, "amount": "100"}]},
        headers=as_user("alice"),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "INVALID_NUMBER"


def test_max_bet_exceeded_keeps_stake(funded):
    funded.post("/api/admin/rounds/open", headers=as_admin())

    first = funded.post("/api/bets", json={"entries": [{"number": 7, "amount": "400"}]}, headers=as_user("alice"))
    second = funded.post("/api/bets", json={"entries": [{"number": 7, "amount": "101"}]}, headers=as_user("alice"))

    assert first.status_code == 200
    assert Decimal(first.json()["bets"][0]["total"]) == Decimal("400")
    assert second.status_code == 400
    assert second.json()["error"] == "MAX_BET_EXCEEDED"

    stake = funded.get("/api/rounds/0/bets/alice/7").json()
    assert Decimal(stake["amount"]) == Decimal("400")


def test_full_round_over_http(funded):
    client = funded

    assert client.post("/api/admin/rounds/open", headers=as_admin()).json()["status"] == "OPEN"

    bet = client.post(
        "/api/bets",
        json={"entries": [{"number": 24, "amount": "100"}, {"number": 5, "amount": "10"}], "tag": "Custom"},
        headers=as_user("alice"),
    )
    assert bet.status_code == 200
    assert bet.json()["round_id"] == 0
    client.post("/api/bets", json={"entries": [{"number": 0, "amount": "100"}]}, headers=as_user("bob"))

    stakes = client.get("/api/rounds/0/bets/alice").json()["stakes"]
    assert {int(k): Decimal(v) for k, v in stakes.items()} == {5: Decimal("10"), 24: Decimal("100")}

    locked = client.post("/api/admin/rounds/spin", json={"nonce": 1}, headers=as_admin()).json()
    assert locked["status"] == "LOCKED"
    request_id = locked["random_request_id"]

    # 還沒收到亂數
    early = client.post("/api/admin/rounds/result", headers=as_admin())
    assert early.status_code == 409
    assert early.json()["error"] == "NO_SPIN_RESULT"
    assert client.get("/api/admin/health/oracle").json()["status"] == "waiting_for_randomness"

    forged = client.post(
        "/api/oracle/callback", json={"request_id": request_id, "value": 0}, headers=as_user("mallory")
    )
    assert forged.status_code == 403

    delivered = client.post(
        "/api/oracle/callback",
        json={"request_id": request_id, "value": 37 * 1000 + 24},
        headers=as_user(ORACLE),
    )
    assert delivered.status_code == 200
    assert client.get("/api/admin/config").json()["randomness_pending"] is True

    closed = client.post("/api/admin/rounds/result", headers=as_admin()).json()
    assert closed["status"] == "CLOSED"
    assert closed["winning_number"] == 24

    paid = client.post("/api/rounds/0/collect", json={"bettor": "alice"}, headers=as_user("relayer"))
    assert paid.status_code == 200
    assert Decimal(paid.json()["payout"]) == Decimal("3600")

    again = client.post("/api/rounds/0/collect", json={"bettor": "alice"}, headers=as_user("alice"))
    assert again.json()["error"] == "NO_WINNINGS"

    loser = client.post("/api/rounds/0/collect", json={"bettor": "bob"}, headers=as_user("bob"))
    assert loser.json()["error"] == "NO_WINNINGS"

    balance = client.get("/api/asset/balances/alice").json()["balance"]
    assert Decimal(balance) == Decimal("1000") - Decimal("110") + Decimal("3600")

    events = client.get("/api/rounds/0/events").json()
    bet_events = [event for event in events if event["event_type"] == "BET_PLACED"]
    assert [event["data"]["tag"] for event in bet_events] == ["Custom", "Custom", ""]

    history = client.get("/api/bettors/alice/history").json()
    assert history[0]["claimed"] is True
    assert Decimal(history[0]["payout"]) == Decimal("3600")

    nxt = client.post("/api/admin/rounds/next", headers=as_admin()).json()
    assert nxt == {"round_id": 1, "status": "NOT_STARTED", "winning_number": None, "random_request_id": None}


def test_admin_funds_endpoints(funded):
    client = funded

    withdrawn = client.post("/api/admin/withdraw", json={"to": "treasury", "amount": "500"}, headers=as_admin())
    assert Decimal(withdrawn.json()["balance"]) == Decimal("19500")

    deposit = client.post("/api/admin/randomizer/deposit", json={"amount": "3"}, headers=as_user("alice"))
    assert Decimal(deposit.json()["balance"]) == Decimal("3")
    assert Decimal(client.get("/api/asset/balances/alice").json()["balance"]) == Decimal("997")

    unfunded = client.post("/api/admin/randomizer/deposit", json={"amount": "3"}, headers=as_user("anyone"))
    assert unfunded.json()["error"] == "TRANSFER_FAILED"

    denied = client.post(
        "/api/admin/randomizer/withdraw", json={"to": "anyone", "amount": "1"}, headers=as_user("anyone")
    )
    assert denied.status_code == 403

    refused = client.post("/api/admin/randomizer/withdraw", json={"to": "ops", "amount": "4"}, headers=as_admin())
    assert refused.json()["error"] == "TRANSFER_FAILED"


def test_config_endpoints(funded):
    client = funded

    config = client.get("/api/admin/config").json()
    assert Decimal(config["max_bet_per_number"]) == Decimal("500")
    assert Decimal(config["engine_balance"]) == Decimal("20000")

    client.post("/api/admin/config/randomizer", json={"address": "oracle-2"}, headers=as_admin())
    client.post("/api/admin/config/betting-token", json={"address": "OTHER"}, headers=as_admin())
    config = client.post("/api/admin/config/owner", json={"address": "carol"}, headers=as_admin()).json()

    assert config["randomness_oracle"] == "oracle-2"
    assert config["staking_asset"] == "OTHER"
    assert config["administrator"] == "carol"
    assert Decimal(config["engine_balance"]) == Decimal("0")

    assert client.post("/api/admin/rounds/open", headers=as_admin()).status_code == 403
    assert client.post("/api/admin/rounds/open", headers=as_user("carol")).status_code == 200
