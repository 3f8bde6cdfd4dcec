"""API tests through the FastAPI test client."""
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from meme_exchange.core.database import get_db
from meme_exchange.core.security import issue_access_token
from meme_exchange.main import app

from conftest import make_user


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not entered as a context manager: startup would create the default database and scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(user) -> dict:
    token, _ = issue_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bob_headers(bob):
    return auth_header(bob)


@pytest.fixture
def admin_headers(db):
    return auth_header(make_user(db, "root", is_admin=True))


class TestAuth:

    def test_register_login_me(self, client):
        response = client.post("/auth/register", json={
            "email": "carol@example.com",
            "username": "carol",
            "password": "correct-horse"
        })
        assert response.status_code == 201
        assert response.json()["username"] == "carol"

        response = client.post("/auth/login", json={"username": "carol", "password": "correct-horse"})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] > 0

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert response.status_code == 200
        assert response.json()["email"] == "carol@example.com"

    def test_duplicate_username(self, client, alice):
        response = client.post("/auth/register", json={
            "email": "other@example.com",
            "username": "alice",
            "password": "whatever123"
        })
        assert response.status_code == 409
        assert response.json() == {"error": "Username already registered", "kind": "UserExists"}

    def test_duplicate_email_ignores_case(self, client, alice):
        response = client.post("/auth/register", json={
            "email": "ALICE@example.com",
            "username": "alice2",
            "password": "whatever123"
        })
        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered"

    def test_wrong_password(self, client):
        client.post("/auth/register", json={
            "email": "dave@example.com",
            "username": "dave",
            "password": "right-password"
        })
        response = client.post("/auth/login", json={"username": "dave", "password": "wrong-password"})
        assert response.status_code == 401
        assert response.json()["kind"] == "Unauthorized"

    def test_bad_token(self, client, coin):
        response = client.post(
            f"/coins/{coin.id}/buy",
            json={"token_amount": 1},
            headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    def test_expired_token(self, client, bob):
        token, _ = issue_access_token(bob, expires_delta=timedelta(seconds=-5))
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["error"] == "Access token has expired"

    def test_disabled_account(self, client, db, bob, bob_headers):
        bob.is_active = False
        db.commit()
        assert client.get("/auth/me", headers=bob_headers).status_code == 401


class TestCoins:

    def test_create_coin(self, client, bob, bob_headers):
        response = client.post("/coins", json={"name": "Pepe Rocket", "symbol": "prock"}, headers=bob_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["token_symbol"] == "PROCK"
        assert body["creator_id"] == bob.id
        assert Decimal(body["initial_price"]) == Decimal("0.0001")
        assert Decimal(body["market_cap"]) == Decimal("100000")
        assert body["tokens_sold"] == 0

    def test_create_requires_auth(self, client):
        response = client.post("/coins", json={"name": "Nope", "symbol": "NOPE"})
        assert response.status_code == 401
        assert response.json()["kind"] == "Unauthorized"

    def test_create_invalid_symbol(self, client, bob_headers):
        response = client.post("/coins", json={"name": "Bad", "symbol": "B"}, headers=bob_headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidCoin"

    def test_get_and_list(self, client, coin):
        assert client.get(f"/coins/{coin.id}").json()["token_symbol"] == "DMOON"
        assert [c["id"] for c in client.get("/coins").json()] == [coin.id]

    def test_unknown_coin(self, client):
        response = client.get("/coins/4242")
        assert response.status_code == 404
        assert response.json() == {"error": "Meme coin not found", "kind": "NotFound"}

    def test_patch_requires_admin(self, client, coin, bob_headers):
        response = client.patch(f"/coins/{coin.id}", json={"is_featured": True}, headers=bob_headers)
        assert response.status_code == 403
        assert response.json()["kind"] == "Forbidden"

    def test_admin_deactivation_stops_trading(self, client, coin, admin_headers, bob_headers):
        response = client.patch(f"/coins/{coin.id}", json={"is_active": False}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get("/coins").json() == []

        response = client.post(f"/coins/{coin.id}/buy", json={"token_amount": 10}, headers=bob_headers)
        assert response.status_code == 409
        assert response.json()["kind"] == "CoinInactive"

    def test_patch_rejects_null_flags(self, client, coin, admin_headers):
        response = client.patch(f"/coins/{coin.id}", json={"is_active": None}, headers=admin_headers)
        assert response.status_code == 422

        response = client.get(f"/coins/{coin.id}")
        assert response.status_code == 200
        assert response.json()["is_active"] is True

        response = client.patch(f"/coins/{coin.id}", json={"description": None}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["description"] is None


class TestTrading:

    def test_buy_then_sell(self, client, coin, bob_headers):
        response = client.post(f"/coins/{coin.id}/buy", json={"token_amount": 100}, headers=bob_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["trade_type"] == "buy"
        assert body["status"] == "confirmed"
        assert Decimal(body["quote_amount"]) == Decimal("0.0100495")
        assert body["tokens_sold"] == 100
        assert body["tx_signature"]

        response = client.post(f"/coins/{coin.id}/sell", json={"token_amount": 40}, headers=bob_headers)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["quote_amount"]) == Decimal("0.00383021")
        assert Decimal(body["realized_profit"]) == Decimal("-0.00018959")
        assert body["tokens_sold"] == 60

    def test_buy_with_quote_amount(self, client, coin, bob_headers):
        response = client.post(f"/coins/{coin.id}/buy", json={"quote_amount": "0.0100495"}, headers=bob_headers)
        assert response.status_code == 200
        assert response.json()["token_amount"] == 100

    def test_buy_needs_exactly_one_amount(self, client, coin, bob_headers):
        response = client.post(
            f"/coins/{coin.id}/buy",
            json={"token_amount": 1, "quote_amount": "1"},
            headers=bob_headers
        )
        assert response.status_code == 422
        assert client.post(f"/coins/{coin.id}/buy", json={}, headers=bob_headers).status_code == 422

    def test_buy_requires_auth(self, client, coin):
        response = client.post(f"/coins/{coin.id}/buy", json={"token_amount": 1})
        assert response.status_code == 401
        assert response.json()["kind"] == "Unauthorized"

    @pytest.mark.parametrize("amount", [0, -3])
    def test_non_positive_amount(self, client, coin, bob_headers, amount):
        response = client.post(f"/coins/{coin.id}/buy", json={"token_amount": amount}, headers=bob_headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidAmount"

    def test_sell_without_position(self, client, coin, bob_headers):
        response = client.post(f"/coins/{coin.id}/sell", json={"token_amount": 1}, headers=bob_headers)
        assert response.status_code == 404
        assert response.json()["kind"] == "NotFound"

    def test_sell_more_than_held(self, client, coin, bob_headers):
        client.post(f"/coins/{coin.id}/buy", json={"token_amount": 5}, headers=bob_headers)
        response = client.post(f"/coins/{coin.id}/sell", json={"token_amount": 6}, headers=bob_headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "InsufficientBalance"

    def test_graduated_coin(self, client, db, small_coin, bob_headers):
        client.post(f"/coins/{small_coin.id}/buy", json={"token_amount": 850}, headers=bob_headers)
        response = client.post(f"/coins/{small_coin.id}/buy", json={"token_amount": 1}, headers=bob_headers)
        assert response.status_code == 409
        assert response.json()["kind"] == "CoinGraduated"

    def test_quote(self, client, coin):
        response = client.get(f"/coins/{coin.id}/quote", params={"side": "buy", "amount": 100})
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["total"]) == Decimal("0.0100495")
        assert body["new_tokens_sold"] == 100
        assert client.get(f"/coins/{coin.id}").json()["tokens_sold"] == 0

    def test_sell_quote_checks_caller_balance(self, client, coin, bob_headers):
        client.post(f"/coins/{coin.id}/buy", json={"token_amount": 5}, headers=bob_headers)
        response = client.get(
            f"/coins/{coin.id}/quote",
            params={"side": "sell", "amount": 6},
            headers=bob_headers
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidAmount"


class TestReporting:

    def test_portfolio(self, client, coin, bob_headers):
        client.post(f"/coins/{coin.id}/buy", json={"token_amount": 100}, headers=bob_headers)

        holdings = client.get("/portfolio", headers=bob_headers).json()
        assert len(holdings) == 1
        assert holdings[0]["coin_id"] == coin.id
        assert holdings[0]["token_balance"] == 100
        assert Decimal(holdings[0]["cost_basis"]) == Decimal("0.0100495")
        assert Decimal(holdings[0]["current_value"]) == Decimal("0.000101") * 100

        trades = client.get("/portfolio/trades", headers=bob_headers).json()
        assert [t["trade_type"] for t in trades] == ["buy"]

    def test_coin_holders_trades_stats(self, client, coin, bob, bob_headers):
        client.post(f"/coins/{coin.id}/buy", json={"token_amount": 100}, headers=bob_headers)
        client.post(f"/coins/{coin.id}/sell", json={"token_amount": 40}, headers=bob_headers)

        holders = client.get(f"/coins/{coin.id}/holders").json()
        assert [(h["user_id"], h["token_balance"]) for h in holders] == [(bob.id, 60)]

        trades = client.get(f"/coins/{coin.id}/trades").json()
        assert [t["trade_type"] for t in trades] == ["sell", "buy"]

        stats = client.get(f"/coins/{coin.id}/stats").json()
        assert stats["trade_count"] == 2
        assert Decimal(stats["price_change_percentage"]) == Decimal("0.6")

        assert client.get(f"/coins/{coin.id}/price-history").json() == []

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/api").status_code == 200
