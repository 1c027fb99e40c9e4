from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

InsertionCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


class SubscriptionHandle(Protocol):
    async def stop(self) -> None: ...


class InsertionSource(Protocol):
    """Push notification of newly appended score records."""

    async def subscribe_to_insertions(self, callback: InsertionCallback) -> SubscriptionHandle: ...
