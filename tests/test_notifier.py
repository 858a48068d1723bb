import pytest
from telegram.error import TelegramError

import cryptotrendbot.config as config
import cryptotrendbot.notifier as notifier
from cryptotrendbot.analysis import AdvancedAnalysis, TradeSetup
from cryptotrendbot.api import Candle
from cryptotrendbot.handlers import global_messages, user_messages
from cryptotrendbot.policy import any_change, strong_signal_change
from cryptotrendbot.services import Services
from cryptotrendbot.stores import MemorySignalStore, MemorySubscriptionStore

SERIES = (Candle(2, 1.0, 2.0, 0.5, 1.5, 10.0), Candle(1, 1.0, 2.0, 0.5, 1.5, 10.0))


def make_analysis(verdict):
    return AdvancedAnalysis(
        overall_trend="bullish",
        confidence=0.8,
        comprehensive_analysis="analysis",
        market_sentiment="bullish",
        risk_level="medium",
        price_prediction="up",
        ai_recommendation=verdict,
        reasoning_summary=f"why {verdict}",
        trade_setup=TradeSetup(
            support_zone="90",
            resistance_zone="110",
            entry_price="100",
            stop_loss="95",
            take_profit="120",
        ),
    )


class FakeMarket:
    def __init__(self, missing=(), failing=()):
        self.missing = set(missing)
        self.failing = set(failing)

    async def get_multi_timeframe(self, symbol, timeframes, user=None):
        if symbol in self.failing:
            raise RuntimeError("upstream exploded")
        if symbol in self.missing:
            return {}
        return {tf: SERIES for tf in timeframes}


class FakeGateway:
    def __init__(self, verdicts):
        self.verdicts = verdicts
        self.calls = []

    async def advanced_analyze(self, symbol, candles):
        self.calls.append((symbol, sorted(candles)))
        return make_analysis(self.verdicts[symbol])


class DummyBot:
    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    async def send_message(self, chat_id, text):
        if chat_id in self.failing:
            raise TelegramError("bot was blocked by the user")
        self.sent.append((chat_id, text))


class DummyApp:
    def __init__(self, bot, services):
        self.bot = bot
        self.bot_data = {"services": services}


async def make_app(verdicts, subs, market=None, policy=strong_signal_change, bot=None):
    user_messages.clear()
    global_messages.clear()
    subscriptions = MemorySubscriptionStore()
    for chat_id, symbol in subs:
        await subscriptions.subscribe(chat_id, symbol)
    services = Services(
        market=market or FakeMarket(),
        gateway=FakeGateway(verdicts),
        signals=MemorySignalStore(),
        subscriptions=subscriptions,
        policy=policy,
    )
    return DummyApp(bot or DummyBot(), services)


@pytest.mark.asyncio
async def test_repeated_verdict_not_notified():
    app = await make_app({"BTC": "buy"}, [(1, "BTC")])
    services = app.bot_data["services"]
    await services.signals.set_last("BTC", "buy")
    result = await notifier.check_signals(app)
    assert app.bot.sent == []
    assert result == {"status": "ok", "evaluated": 1, "notified": 0}


@pytest.mark.asyncio
async def test_strong_change_notifies_subscribers_only():
    app = await make_app(
        {"BTC": "strong sell", "ETH": "hold"},
        [(1, "BTC"), (2, "BTC"), (3, "ETH")],
    )
    services = app.bot_data["services"]
    await services.signals.set_last("BTC", "buy")
    result = await notifier.check_signals(app)
    recipients = sorted(chat_id for chat_id, _ in app.bot.sent)
    assert recipients == [1, 2]
    assert all("STRONG SELL" in text for _, text in app.bot.sent)
    assert all("Stop-loss: 95" in text for _, text in app.bot.sent)
    assert result["notified"] == 1


@pytest.mark.asyncio
async def test_store_updated_without_notification():
    app = await make_app({"BTC": "hold"}, [(1, "BTC")])
    services = app.bot_data["services"]
    await services.signals.set_last("BTC", "buy")
    await notifier.check_signals(app)
    assert app.bot.sent == []
    assert await services.signals.get_last("BTC") == "hold"


@pytest.mark.asyncio
async def test_first_strong_signal_notifies():
    app = await make_app({"SOL": "strong buy"}, [(1, "sol")])
    await notifier.check_signals(app)
    assert [chat_id for chat_id, _ in app.bot.sent] == [1]
    assert await app.bot_data["services"].signals.get_last("SOL") == "strong buy"


@pytest.mark.asyncio
async def test_any_change_policy_notifies_weak_change():
    app = await make_app({"BTC": "hold"}, [(1, "BTC")], policy=any_change)
    await app.bot_data["services"].signals.set_last("BTC", "buy")
    await notifier.check_signals(app)
    assert len(app.bot.sent) == 1


@pytest.mark.asyncio
async def test_failing_instrument_does_not_abort_cycle():
    market = FakeMarket(failing={"BTC"})
    app = await make_app(
        {"BTC": "strong buy", "ETH": "strong sell"},
        [(1, "BTC"), (1, "ETH")],
        market=market,
    )
    services = app.bot_data["services"]
    result = await notifier.check_signals(app)
    assert len(app.bot.sent) == 1
    assert "ETH" in app.bot.sent[0][1]
    assert await services.signals.get_last("ETH") == "strong sell"
    assert await services.signals.get_last("BTC") is None
    assert result == {"status": "ok", "evaluated": 1, "notified": 1}


@pytest.mark.asyncio
async def test_missing_data_skips_analysis():
    market = FakeMarket(missing={"BTC"})
    app = await make_app({"BTC": "strong buy"}, [(1, "BTC")], market=market)
    services = app.bot_data["services"]
    result = await notifier.check_signals(app)
    assert services.gateway.calls == []
    assert await services.signals.get_last("BTC") is None
    assert result["evaluated"] == 0


@pytest.mark.asyncio
async def test_delivery_failure_isolated_per_recipient():
    bot = DummyBot(failing={2})
    app = await make_app(
        {"BTC": "strong buy"}, [(1, "BTC"), (2, "BTC"), (3, "BTC")], bot=bot
    )
    await notifier.check_signals(app)
    assert sorted(chat_id for chat_id, _ in bot.sent) == [1, 3]
    assert await app.bot_data["services"].signals.get_last("BTC") == "strong buy"


@pytest.mark.asyncio
async def test_unsubscribed_symbols_not_evaluated():
    app = await make_app({"BTC": "strong buy"}, [])
    result = await notifier.check_signals(app)
    assert app.bot_data["services"].gateway.calls == []
    assert result["evaluated"] == 0


@pytest.mark.asyncio
async def test_uses_signal_timeframes(monkeypatch):
    monkeypatch.setattr(config, "SIGNAL_TIMEFRAMES", ["5m", "1hr"])
    app = await make_app({"BTC": "hold"}, [(1, "BTC")])
    await notifier.check_signals(app)
    assert app.bot_data["services"].gateway.calls == [("BTC", ["1hr", "5m"])]


@pytest.mark.asyncio
async def test_seed_admin_subscriptions(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_CHAT_ID", -100)
    monkeypatch.setattr(config, "ADMIN_SYMBOLS", ["SOL", "BTC"])
    store = MemorySubscriptionStore()
    await notifier.seed_admin_subscriptions(store)
    assert await store.list_symbols(-100) == ["BTC", "SOL"]


@pytest.mark.asyncio
async def test_seed_admin_subscriptions_disabled(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_CHAT_ID", None)
    store = MemorySubscriptionStore()
    await notifier.seed_admin_subscriptions(store)
    assert await store.all_symbols() == []
