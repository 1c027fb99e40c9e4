"""Score insertion feed backed by the `score_records` NOTIFY trigger."""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any

from qurify_node.db.pg_notify import SCORE_INSERTED_CHANNEL, listen
from qurify_node.interfaces.insertion_source import InsertionCallback

logger = logging.getLogger(__name__)


class _ListenerHandle:
    def __init__(self, task: asyncio.Task[None]):
        self._task = task

    async def stop(self) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


def decode_payload(payload: str) -> dict[str, Any]:
    if not payload:
        return {}
    try:
        data = json.loads(payload)
    except ValueError:
        logger.warning("ignoring non-JSON insertion payload: %r", payload[:200])
        return {}
    return data if isinstance(data, dict) else {}


class PgInsertionSource:
    def __init__(self, channel: str = SCORE_INSERTED_CHANNEL, poll_timeout_seconds: float = 30.0):
        self.channel = channel
        self.poll_timeout_seconds = poll_timeout_seconds

    async def subscribe_to_insertions(self, callback: InsertionCallback) -> _ListenerHandle:
        async def _loop() -> None:
            async for _channel, payload in listen(self.channel, timeout=self.poll_timeout_seconds):
                try:
                    result = callback(decode_payload(payload))
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.exception("insertion callback failed: %s", exc)

        task = asyncio.create_task(_loop())
        logger.info("subscribed to score insertions on channel=%s", self.channel)
        return _ListenerHandle(task)
