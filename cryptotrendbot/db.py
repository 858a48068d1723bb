"""Asynchronous SQLite implementations of the signal and subscription stores."""

import time
from typing import List, Optional

import aiosqlite

from . import config
from .stores import SignalStore, SubscriptionStore, normalize_symbol


async def init_db(path: Optional[str] = None) -> None:
    """Create database tables if they do not already exist."""
    async with aiosqlite.connect(path or config.DB_FILE) as db:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS signals (
                symbol TEXT PRIMARY KEY,
                verdict TEXT NOT NULL,
                updated_at REAL
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS subscriptions (
                chat_id INTEGER NOT NULL,
                symbol TEXT NOT NULL,
                PRIMARY KEY (chat_id, symbol)
            )
            """
        )
        await db.commit()


class SQLiteSignalStore(SignalStore):
    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path

    @property
    def db_file(self) -> str:
        return self.path or config.DB_FILE

    async def get_last(self, symbol: str) -> Optional[str]:
        async with aiosqlite.connect(self.db_file) as db:
            cursor = await db.execute(
                "SELECT verdict FROM signals WHERE symbol=?",
                (normalize_symbol(symbol),),
            )
            row = await cursor.fetchone()
            await cursor.close()
        return row[0] if row else None

    async def set_last(self, symbol: str, verdict: str) -> None:
        async with aiosqlite.connect(self.db_file) as db:
            await db.execute(
                "REPLACE INTO signals (symbol, verdict, updated_at) VALUES (?, ?, ?)",
                (normalize_symbol(symbol), verdict, time.time()),
            )
            await db.commit()


class SQLiteSubscriptionStore(SubscriptionStore):
    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path

    @property
    def db_file(self) -> str:
        return self.path or config.DB_FILE

    async def subscribe(self, chat_id: int, symbol: str) -> None:
        async with aiosqlite.connect(self.db_file) as db:
            await db.execute(
                "INSERT OR IGNORE INTO subscriptions (chat_id, symbol) VALUES (?, ?)",
                (chat_id, normalize_symbol(symbol)),
            )
            await db.commit()
        config.logger.info("chat %s subscribed to %s", chat_id, symbol)

    async def unsubscribe(self, chat_id: int, symbol: str) -> None:
        async with aiosqlite.connect(self.db_file) as db:
            await db.execute(
                "DELETE FROM subscriptions WHERE chat_id=? AND symbol=?",
                (chat_id, normalize_symbol(symbol)),
            )
            await db.commit()
        config.logger.info("chat %s unsubscribed from %s", chat_id, symbol)

    async def list_symbols(self, chat_id: int) -> List[str]:
        async with aiosqlite.connect(self.db_file) as db:
            cursor = await db.execute(
                "SELECT symbol FROM subscriptions WHERE chat_id=? ORDER BY symbol",
                (chat_id,),
            )
            rows = await cursor.fetchall()
            await cursor.close()
        return [row[0] for row in rows]

    async def subscribers(self, symbol: str) -> List[int]:
        async with aiosqlite.connect(self.db_file) as db:
            cursor = await db.execute(
                "SELECT chat_id FROM subscriptions WHERE symbol=? ORDER BY chat_id",
                (normalize_symbol(symbol),),
            )
            rows = await cursor.fetchall()
            await cursor.close()
        return [row[0] for row in rows]

    async def all_symbols(self) -> List[str]:
        async with aiosqlite.connect(self.db_file) as db:
            cursor = await db.execute(
                "SELECT DISTINCT symbol FROM subscriptions ORDER BY symbol"
            )
            rows = await cursor.fetchall()
            await cursor.close()
        return [row[0] for row in rows]
