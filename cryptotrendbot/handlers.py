"""Telegram command handlers used by the bot."""

import asyncio
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from telegram import Bot, Update
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from . import config
from .analysis import AnalysisError, serialize_candles, serialize_ticker
from .formatting import (
    format_advanced,
    format_sentiment,
    format_subscriptions,
    format_trend,
)
from .services import get_services
from .stores import normalize_symbol

DEFAULT_ALERT_EMOJI = "\U0001f514"
WELCOME_EMOJI = "\U0001f916"
INFO_EMOJI = "ℹ️"
SUCCESS_EMOJI = "✅"
UNSUB_EMOJI = "\U0001f6ab"
ERROR_EMOJI = "⚠️"

user_messages: Dict[int, Deque[float]] = defaultdict(deque)
global_messages: Deque[float] = deque()

COMMANDS: list[tuple[str, str]] = [
    ("start", "Show welcome message"),
    ("subscribe", "Get trend updates for a coin"),
    ("unsubscribe", "Stop updates for a coin"),
    ("list", "List subscriptions"),
    ("analyze", "Quick AI trend analysis"),
    ("advanced_analyze", "Multi-timeframe AI analysis"),
    ("sentiment", "Market sentiment summary"),
    ("help", "Show help"),
]

USAGE = {
    "subscribe": "/subscribe <COIN>",
    "unsubscribe": "/unsubscribe <COIN>",
    "analyze": "/analyze <COIN>",
    "advanced_analyze": "/advanced_analyze <COIN> [timeframe]",
    "sentiment": "/sentiment <COIN>",
}


def help_text() -> str:
    lines = [f"/{name} - {desc}" for name, desc in COMMANDS]
    lines.append(f"Timeframes: {', '.join(config.TIMEFRAMES)}")
    return "\n".join(lines)


async def send_rate_limited(
    bot: Bot,
    chat_id: int,
    text: str,
    emoji: str = DEFAULT_ALERT_EMOJI,
) -> None:
    """Send a message while enforcing per-user and global rate limits."""
    now = time.time()
    user_q = user_messages[chat_id]
    while user_q and now - user_q[0] > 60:
        user_q.popleft()
    while global_messages and now - global_messages[0] > 1:
        global_messages.popleft()
    if len(user_q) >= 20:
        wait = max(0, 60 - (now - user_q[0]))
        await asyncio.sleep(wait)
    if len(global_messages) >= 30:
        wait = max(0, 1 - (now - global_messages[0]))
        await asyncio.sleep(wait)
    await bot.send_message(chat_id=chat_id, text=f"{emoji} {text}")
    user_q.append(time.time())
    global_messages.append(time.time())


async def _symbol_arg(update: Update, context: ContextTypes.DEFAULT_TYPE, cmd: str):
    """Return the normalized symbol argument or reply with usage."""
    if not context.args or not context.args[0].strip():
        await update.message.reply_text(
            f"{ERROR_EMOJI} Please specify a coin symbol. Usage: {USAGE[cmd]}"
        )
        return None
    return normalize_symbol(context.args[0])


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a welcome message listing the commands."""
    await update.message.reply_text(
        f"{WELCOME_EMOJI} Welcome to {config.BOT_NAME}! "
        "I track crypto market trends using AI.\n\n" + help_text()
    )


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(f"{INFO_EMOJI} Commands\n" + help_text())


async def subscribe_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Subscribe the chat to scheduled signal alerts for a coin."""
    symbol = await _symbol_arg(update, context, "subscribe")
    if not symbol:
        return
    services = get_services(context.bot_data)
    await services.subscriptions.subscribe(update.effective_chat.id, symbol)
    await update.message.reply_text(
        f"{SUCCESS_EMOJI} Subscribed to {symbol}! You'll now receive trend updates."
    )


async def unsubscribe_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    symbol = await _symbol_arg(update, context, "unsubscribe")
    if not symbol:
        return
    services = get_services(context.bot_data)
    await services.subscriptions.unsubscribe(update.effective_chat.id, symbol)
    await update.message.reply_text(f"{UNSUB_EMOJI} Unsubscribed from {symbol}.")


async def list_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    services = get_services(context.bot_data)
    symbols = await services.subscriptions.list_symbols(update.effective_chat.id)
    await update.message.reply_text(format_subscriptions(symbols))


async def analyze_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Classify the current trend of a coin from its ticker."""
    symbol = await _symbol_arg(update, context, "analyze")
    if not symbol:
        return
    chat_id = update.effective_chat.id
    services = get_services(context.bot_data)
    await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
    ticker = await services.market.get_ticker(symbol, user=chat_id)
    if ticker is None:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Could not fetch market data for {symbol}."
        )
        return
    try:
        result = await services.gateway.analyze_trend(symbol, serialize_ticker(ticker))
    except AnalysisError as exc:
        config.logger.error("analyze %s failed: %s", symbol, exc)
        await update.message.reply_text(
            f"{ERROR_EMOJI} Sorry, I couldn't analyze {symbol} right now."
        )
        return
    await update.message.reply_text(format_trend(symbol, result))


async def advanced_analyze_cmd(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Run a multi-timeframe analysis, optionally for a single timeframe."""
    symbol = await _symbol_arg(update, context, "advanced_analyze")
    if not symbol:
        return
    timeframes = list(config.SIGNAL_TIMEFRAMES)
    if len(context.args) > 1:
        timeframe = context.args[1].lower()
        if timeframe not in config.TIMEFRAMES:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Unknown timeframe. "
                f"Use one of: {', '.join(config.TIMEFRAMES)}"
            )
            return
        timeframes = [timeframe]
    chat_id = update.effective_chat.id
    services = get_services(context.bot_data)
    await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
    candles = await services.market.get_multi_timeframe(
        symbol, timeframes, user=chat_id
    )
    if not candles:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Could not fetch candlestick data for {symbol}."
        )
        return
    payload = {tf: serialize_candles(series) for tf, series in candles.items()}
    try:
        result = await services.gateway.advanced_analyze(symbol, payload)
    except AnalysisError as exc:
        config.logger.error("advanced analyze %s failed: %s", symbol, exc)
        await update.message.reply_text(
            f"{ERROR_EMOJI} Sorry, I couldn't analyze {symbol} right now."
        )
        return
    await update.message.reply_text(format_advanced(symbol, list(candles), result))


async def sentiment_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    symbol = await _symbol_arg(update, context, "sentiment")
    if not symbol:
        return
    services = get_services(context.bot_data)
    await context.bot.send_chat_action(
        chat_id=update.effective_chat.id, action=ChatAction.TYPING
    )
    try:
        result = await services.gateway.summarize_sentiment(symbol)
    except AnalysisError as exc:
        config.logger.error("sentiment %s failed: %s", symbol, exc)
        await update.message.reply_text(
            f"{ERROR_EMOJI} Sorry, I couldn't summarize sentiment for {symbol}."
        )
        return
    await update.message.reply_text(format_sentiment(symbol, result))
