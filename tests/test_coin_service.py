"""Tests for coin creation, listing, statistics and price snapshots."""
from decimal import Decimal

import pytest

from meme_exchange.core.exceptions import CoinValidationError, NotFound
from meme_exchange.models.database import TradeStatus
from meme_exchange.services import coin_service
from meme_exchange.services.scheduler import SnapshotScheduler
from meme_exchange.services.trading_engine import TradingEngine


@pytest.fixture
def trader(db):
    return TradingEngine(db, max_attempts=1, retry_base_delay=0)


class TestCreateCoin:

    def test_defaults(self, coin, alice):
        assert coin.creator_id == alice.id
        assert coin.token_symbol == "DMOON"
        assert coin.token_name == "Doge Moon"
        assert coin.initial_price == Decimal("0.0001")
        assert coin.price_increment == Decimal("0.00000001")
        assert coin.total_supply == 1_000_000_000
        assert coin.graduation_threshold == 85
        assert coin.tokens_sold == 0
        assert coin.current_price == coin.initial_price
        assert coin.market_cap == Decimal("100000")
        assert coin.liquidity_raised == 0
        assert coin.holder_count == 0
        assert coin.is_active and not coin.graduated
        assert coin.token_mint

    def test_mints_are_unique(self, db, alice, coin):
        other = coin_service.create_coin(db, alice, name="Other", symbol="OTH")
        assert other.token_mint != coin.token_mint

    @pytest.mark.parametrize("name,symbol", [
        ("", "GOOD"),
        ("Good", ""),
        ("Good", "X"),
        ("Good", "TOOLONGSYMBOL"),
        ("Good", "BAD-SYM"),
    ])
    def test_invalid_input(self, db, alice, name, symbol):
        with pytest.raises(CoinValidationError):
            coin_service.create_coin(db, alice, name=name, symbol=symbol)


class TestQueries:

    def test_get_coin_missing(self, db):
        with pytest.raises(NotFound):
            coin_service.get_coin(db, 12345)

    def test_listing_order(self, db, alice, coin, trader):
        second = coin_service.create_coin(db, alice, name="Second", symbol="SEC")
        third = coin_service.create_coin(db, alice, name="Third", symbol="THR")
        trader.buy(second.id, alice, 1000)
        coin_service.update_coin(db, third.id, {"is_featured": True})

        ids = [c.id for c in coin_service.get_coins(db)]
        assert ids == [third.id, second.id, coin.id]

    def test_inactive_hidden_by_default(self, db, coin):
        coin_service.update_coin(db, coin.id, {"is_active": False})
        assert coin_service.get_coins(db) == []
        assert [c.id for c in coin_service.get_coins(db, active_only=False)] == [coin.id]

    def test_update_rejects_curve_fields(self, db, coin):
        with pytest.raises(CoinValidationError):
            coin_service.update_coin(db, coin.id, {"initial_price": Decimal("1")})
        db.refresh(coin)
        assert coin.initial_price == Decimal("0.0001")

    @pytest.mark.parametrize("field", ["token_name", "is_featured", "is_active"])
    def test_update_rejects_null_required_field(self, db, coin, field):
        with pytest.raises(CoinValidationError):
            coin_service.update_coin(db, coin.id, {field: None})
        db.refresh(coin)
        assert coin.is_active is True
        assert coin.token_name == "Doge Moon"

        updated = coin_service.update_coin(db, coin.id, {"is_featured": True})
        assert updated.is_featured is True

    def test_holders_sorted_by_balance(self, db, coin, alice, bob, trader):
        trader.buy(coin.id, alice, 10)
        trader.buy(coin.id, bob, 30)
        holders = coin_service.get_holders(db, coin.id)
        assert [h.user_id for h in holders] == [bob.id, alice.id]

    def test_user_holdings_valuation(self, db, coin, bob, trader):
        result = trader.buy(coin.id, bob, 100)
        holdings = coin_service.get_user_holdings(db, bob.id)

        assert len(holdings) == 1
        item = holdings[0]
        assert item["coin"].id == coin.id
        assert item["current_value"] == result.new_price * 100
        assert item["unrealized_profit"] == result.new_price * 100 - result.quote_amount

    def test_trades_exclude_failed_by_default(self, db, coin, bob, trader):
        trader.buy(coin.id, bob, 10)
        trader.sell(coin.id, bob, 5)
        trades = coin_service.get_trades(db, coin_id=coin.id)
        assert len(trades) == 2
        assert all(t.status == TradeStatus.CONFIRMED for t in trades)
        assert coin_service.get_trades(db, coin_id=coin.id, user_id=9999) == []


class TestStats:

    def test_no_trades(self, db, coin):
        stats = coin_service.get_coin_stats(db, coin.id)
        assert stats["trade_count"] == 0
        assert stats["volume"] == 0
        assert stats["price_change_percentage"] == 0

    def test_volume_and_change(self, db, coin, bob, trader):
        trader.buy(coin.id, bob, 100)
        trader.sell(coin.id, bob, 40)

        stats = coin_service.get_coin_stats(db, coin.id)

        assert stats["trade_count"] == 2
        assert stats["buy_count"] == 1
        assert stats["sell_count"] == 1
        assert stats["volume"] == Decimal("0.0100495") + Decimal("0.00383021")
        assert stats["current_price"] == Decimal("0.0001006")
        assert stats["price_change_percentage"] == Decimal("0.6")
        assert stats["holder_count"] == 1


class TestPriceSnapshots:

    def test_snapshot_per_tradable_coin(self, db, session_factory, alice, coin, trader):
        graduated = coin_service.create_coin(db, alice, name="Done", symbol="DONE")
        graduated.graduated = True
        db.commit()
        result = trader.buy(coin.id, alice, 100)

        assert SnapshotScheduler(session_factory).run_snapshots() == 1

        history = coin_service.get_price_history(db, coin.id)
        assert len(history) == 1
        assert history[0].price == result.new_price
        assert history[0].volume == result.quote_amount
        assert coin_service.get_price_history(db, graduated.id) == []

    def test_volume_since_previous_snapshot(self, db, session_factory, coin, bob, trader):
        trader.buy(coin.id, bob, 100)
        scheduler = SnapshotScheduler(session_factory)
        scheduler.run_snapshots()
        scheduler.run_snapshots()

        history = coin_service.get_price_history(db, coin.id)
        assert [s.volume for s in history] == [Decimal("0.0100495"), Decimal("0")]

    def test_scheduler_disabled_does_not_start(self, session_factory):
        scheduler = SnapshotScheduler(session_factory)
        scheduler.start()
        assert scheduler.scheduler is None
        scheduler.stop()
