"""PostgreSQL LISTEN/NOTIFY helpers for score insertion and leaderboard events.

Usage:
    # publish
    from qurify_node.db.pg_notify import notify
    notify("leaderboard_refreshed", payload='{"window": "weekly"}')

    # subscribe (async), runs until the consumer stops iterating
    async for channel, payload in listen("score_inserted"):
        print(f"got {channel}: {payload}")
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
import select as _select
from typing import Any, AsyncIterator

import psycopg2
from qurify_node.db.session import database_url

logger = logging.getLogger(__name__)

SCORE_INSERTED_CHANNEL = "score_inserted"

_CHANNEL_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _checked(channel: str) -> str:
    # LISTEN/NOTIFY take an identifier, not a bind parameter.
    if not _CHANNEL_NAME.match(channel):
        raise ValueError(f"Invalid notification channel name: {channel!r}")
    return channel


def notify(channel: str = SCORE_INSERTED_CHANNEL, payload: str = "", connection: Any = None) -> None:
    """Send a NOTIFY on the given channel with an optional payload string."""
    channel = _checked(channel)
    own_conn = connection is None
    if own_conn:
        connection = _raw_connection()
    try:
        connection.autocommit = True
        with connection.cursor() as cur:
            if payload:
                cur.execute("SELECT pg_notify(%s, %s)", (channel, payload))
            else:
                cur.execute(f"NOTIFY {channel}")
    finally:
        if own_conn:
            connection.close()


def notify_json(channel: str, data: dict[str, Any], connection: Any = None) -> None:
    notify(channel, payload=json.dumps(data, default=str, separators=(",", ":")), connection=connection)


async def listen(*channels: str, timeout: float = 30.0) -> AsyncIterator[tuple[str, str]]:
    """Async generator yielding (channel, payload) tuples as notifications arrive.

    `timeout` bounds a single poll cycle so cancellation is noticed promptly;
    the generator itself runs until the consumer stops or cancels it.
    """
    if not channels:
        channels = (SCORE_INSERTED_CHANNEL,)
    channels = tuple(_checked(ch) for ch in channels)

    conn = _raw_connection()
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            for ch in channels:
                cur.execute(f"LISTEN {ch}")
        logger.debug("listening on %s", ", ".join(channels))

        loop = asyncio.get_running_loop()
        while True:
            notified = await loop.run_in_executor(None, _poll_notify, conn, timeout)
            if notified:
                while conn.notifies:
                    n = conn.notifies.pop(0)
                    yield (n.channel, n.payload or "")
    finally:
        conn.close()


def _poll_notify(conn: Any, timeout: float) -> bool:
    """Synchronous poll, runs in an executor thread."""
    if _select.select([conn], [], [], timeout) == ([], [], []):
        return False
    conn.poll()
    return bool(conn.notifies)


def _raw_connection():
    """Create a raw psycopg2 connection from the same DB URL."""
    dsn = database_url().replace("+psycopg2", "")
    return psycopg2.connect(dsn)
