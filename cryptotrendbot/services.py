"""Collaborators shared by the command handlers and the notifier."""

from dataclasses import dataclass, field

from . import config
from .analysis import AnalysisGateway
from .api import MarketDataClient
from .policy import NotificationPolicy, get_policy
from .stores import SignalStore, SubscriptionStore


@dataclass
class Services:
    market: MarketDataClient
    gateway: AnalysisGateway
    signals: SignalStore
    subscriptions: SubscriptionStore
    policy: NotificationPolicy = field(
        default_factory=lambda: get_policy(config.NOTIFY_POLICY)
    )


def get_services(bot_data) -> Services:
    """Return the :class:`Services` stored in an application's ``bot_data``."""
    return bot_data["services"]
