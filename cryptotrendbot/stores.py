"""Signal and subscription store contracts with in-memory implementations.

The notifier and the command handlers only talk to the abstract classes.
The in-memory stores lose everything on restart; :mod:`cryptotrendbot.db`
provides SQLite backed versions of the same contracts.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set, Tuple


def normalize_symbol(symbol: str) -> str:
    """Return the canonical upper-case form of ``symbol``."""
    return symbol.strip().upper()


class SignalStore(ABC):
    """Last observed verdict per instrument, used to suppress duplicates."""

    @abstractmethod
    async def get_last(self, symbol: str) -> Optional[str]:
        """Return the last recorded verdict or ``None`` if never set."""

    @abstractmethod
    async def set_last(self, symbol: str, verdict: str) -> None:
        """Overwrite the stored verdict for ``symbol``."""


class SubscriptionStore(ABC):
    """Instruments of interest per chat."""

    @abstractmethod
    async def subscribe(self, chat_id: int, symbol: str) -> None:
        ...

    @abstractmethod
    async def unsubscribe(self, chat_id: int, symbol: str) -> None:
        ...

    @abstractmethod
    async def list_symbols(self, chat_id: int) -> List[str]:
        ...

    @abstractmethod
    async def subscribers(self, symbol: str) -> List[int]:
        ...

    @abstractmethod
    async def all_symbols(self) -> List[str]:
        """Return every symbol with at least one subscriber."""


class MemorySignalStore(SignalStore):
    def __init__(self) -> None:
        self._signals: Dict[str, str] = {}

    async def get_last(self, symbol: str) -> Optional[str]:
        return self._signals.get(normalize_symbol(symbol))

    async def set_last(self, symbol: str, verdict: str) -> None:
        self._signals[normalize_symbol(symbol)] = verdict


class MemorySubscriptionStore(SubscriptionStore):
    def __init__(self) -> None:
        self._subs: Dict[int, Set[str]] = {}

    async def subscribe(self, chat_id: int, symbol: str) -> None:
        self._subs.setdefault(chat_id, set()).add(normalize_symbol(symbol))

    async def unsubscribe(self, chat_id: int, symbol: str) -> None:
        if chat_id in self._subs:
            self._subs[chat_id].discard(normalize_symbol(symbol))

    async def list_symbols(self, chat_id: int) -> List[str]:
        return sorted(self._subs.get(chat_id, ()))

    async def subscribers(self, symbol: str) -> List[int]:
        symbol = normalize_symbol(symbol)
        return sorted(chat for chat, subs in self._subs.items() if symbol in subs)

    async def all_symbols(self) -> List[str]:
        return sorted(set().union(*self._subs.values()))


def build_stores(backend: str) -> Tuple[SignalStore, SubscriptionStore]:
    """Return signal and subscription stores for ``backend``."""
    if backend == "memory":
        return MemorySignalStore(), MemorySubscriptionStore()
    if backend == "sqlite":
        from . import db

        return db.SQLiteSignalStore(), db.SQLiteSubscriptionStore()
    raise ValueError(f"unknown store backend: {backend}")
