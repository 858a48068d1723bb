"""Main entry point for starting the Telegram bot."""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from telegram import BotCommand
from telegram.ext import Application, ApplicationBuilder, CommandHandler

from . import config, db, handlers, notifier
from .analysis import AnalysisGateway
from .api import MarketDataClient
from .policy import get_policy
from .services import Services
from .stores import build_stores


def build_application(token: str, services: Services) -> Application:
    """Return an application with all command handlers registered."""
    app = ApplicationBuilder().token(token).build()
    app.bot_data["services"] = services

    app.add_handler(CommandHandler("start", handlers.start))
    app.add_handler(CommandHandler("help", handlers.help_cmd))
    app.add_handler(CommandHandler("subscribe", handlers.subscribe_cmd))
    app.add_handler(CommandHandler("unsubscribe", handlers.unsubscribe_cmd))
    app.add_handler(CommandHandler("list", handlers.list_cmd))
    app.add_handler(CommandHandler("analyze", handlers.analyze_cmd))
    app.add_handler(
        CommandHandler("advanced_analyze", handlers.advanced_analyze_cmd)
    )
    app.add_handler(CommandHandler("sentiment", handlers.sentiment_cmd))
    return app


async def main() -> None:
    """Run the Telegram bot until the process receives a stop signal."""
    token = config.TELEGRAM_TOKEN
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN not set")

    policy = get_policy(config.NOTIFY_POLICY)
    if config.STORE_BACKEND == "sqlite":
        await db.init_db()
    signals, subscriptions = build_stores(config.STORE_BACKEND)
    services = Services(
        market=MarketDataClient(),
        gateway=AnalysisGateway(),
        signals=signals,
        subscriptions=subscriptions,
        policy=policy,
    )
    await notifier.seed_admin_subscriptions(subscriptions)

    app = build_application(token, services)

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        notifier.check_signals,
        "interval",
        seconds=config.NOTIFY_INTERVAL,
        args=(app,),
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()

    await app.initialize()
    await app.bot.set_my_commands(
        [BotCommand(name, desc) for name, desc in handlers.COMMANDS]
    )
    await app.start()
    if config.WEBHOOK_URL:
        await app.updater.start_webhook(
            listen="0.0.0.0",
            port=config.WEBHOOK_PORT,
            url_path=token,
            webhook_url=f"{config.WEBHOOK_URL.rstrip('/')}/{token}",
        )
    else:
        await app.updater.start_polling()
    config.logger.info(
        "%s started (store=%s, policy=%s, every %s)",
        config.BOT_NAME,
        config.STORE_BACKEND,
        config.NOTIFY_POLICY,
        config.format_interval(config.NOTIFY_INTERVAL),
    )

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        asyncio.get_running_loop().add_signal_handler(sig, stop_event.set)

    await stop_event.wait()
    await app.updater.stop()
    await app.stop()
    await app.shutdown()
    scheduler.shutdown()
    await services.market.close()
    config.logger.info("%s stopped", config.BOT_NAME)
