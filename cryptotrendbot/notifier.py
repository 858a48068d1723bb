"""Scheduled signal analysis and change notifications.

Each cycle analyzes every subscribed instrument and alerts its subscribers
when the notification policy accepts the change from the last stored
verdict. The stored verdict is updated whether or not an alert fired.
"""

import asyncio
from typing import Optional

from telegram.error import TelegramError

from . import config
from .analysis import serialize_candles
from .formatting import format_signal_alert, verdict_emoji
from .handlers import send_rate_limited
from .services import Services, get_services
from .stores import SubscriptionStore


async def notify_subscribers(
    bot, services: Services, symbol: str, text: str, emoji: str
) -> int:
    """Send ``text`` to every subscriber of ``symbol``; return the delivered count."""
    delivered = 0
    for chat_id in await services.subscriptions.subscribers(symbol):
        try:
            await send_rate_limited(bot, chat_id, text, emoji=emoji)
        except TelegramError as exc:
            config.logger.error(
                "failed to notify chat %s about %s: %s", chat_id, symbol, exc
            )
            continue
        delivered += 1
    return delivered


async def evaluate_symbol(bot, services: Services, symbol: str) -> Optional[bool]:
    """Analyze ``symbol`` and notify on a qualifying change.

    Returns ``None`` when no data was available, otherwise whether an alert
    was sent.
    """
    candles = await services.market.get_multi_timeframe(
        symbol, config.SIGNAL_TIMEFRAMES
    )
    if not candles:
        config.logger.warning("could not fetch any candlestick data for %s", symbol)
        return None

    payload = {tf: serialize_candles(series) for tf, series in candles.items()}
    analysis = await services.gateway.advanced_analyze(symbol, payload)
    current = analysis.verdict
    last = await services.signals.get_last(symbol)
    config.logger.info(
        "analyzed %s: last signal %r, current signal %r", symbol, last, current
    )

    notified = False
    if services.policy(last, current):
        config.logger.info("signal change for %s to %s, notifying", symbol, current)
        text = format_signal_alert(symbol, analysis)
        await notify_subscribers(bot, services, symbol, text, verdict_emoji(current))
        notified = True

    await services.signals.set_last(symbol, current)
    return notified


async def check_signals(app) -> dict:
    """Run one notification cycle over all subscribed instruments."""
    services = get_services(app.bot_data)
    symbols = await services.subscriptions.all_symbols()
    if not symbols:
        config.logger.info("no subscriptions found, skipping analysis")
        return {"status": "ok", "evaluated": 0, "notified": 0}

    async def guarded(symbol: str) -> Optional[bool]:
        try:
            return await evaluate_symbol(app.bot, services, symbol)
        except Exception:
            config.logger.exception("error processing signal for %s", symbol)
            return None

    config.logger.info("signal cycle started for %s", ", ".join(symbols))
    results = await asyncio.gather(*(guarded(s) for s in symbols))
    evaluated = sum(1 for r in results if r is not None)
    notified = sum(1 for r in results if r)
    config.logger.info(
        "signal cycle finished: %s/%s evaluated, %s notified",
        evaluated,
        len(symbols),
        notified,
    )
    return {"status": "ok", "evaluated": evaluated, "notified": notified}


async def seed_admin_subscriptions(store: SubscriptionStore) -> None:
    """Subscribe the configured operator chat to its tracked symbols."""
    if config.ADMIN_CHAT_ID is None:
        return
    for symbol in config.ADMIN_SYMBOLS:
        await store.subscribe(config.ADMIN_CHAT_ID, symbol)
    config.logger.info(
        "admin chat %s tracking %s",
        config.ADMIN_CHAT_ID,
        ", ".join(config.ADMIN_SYMBOLS),
    )
