"""Transport capability the status bridge is written against."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

MessageHandler = Callable[[Any, str], Awaitable[None]]


class Transport(ABC):
    """Publish/subscribe connection that delivers decoded payloads."""

    @abstractmethod
    async def connect(self, server: str) -> None:
        """Open the connection, raising ConnectionError on failure."""

    @abstractmethod
    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Call ``handler(payload, topic)`` for every message matching ``topic``."""

    @abstractmethod
    async def publish(self, topic: str, payload: Any, retain: bool = False) -> None:
        """Publish a JSON payload."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Request disconnection."""

    @abstractmethod
    async def wait_offline(self) -> None:
        """Resolve once the current connection has gone offline."""
