import asyncio
import os
import sys

import pytest

# Make the top-level packages importable from the repo root during tests
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from turtle_connectors.base import Transport  # noqa: E402


class FakeTransport(Transport):
    """In-memory transport that records calls and lets tests deliver messages."""

    def __init__(self):
        self.servers = []
        self.handlers = {}
        self.published = []
        self.disconnects = 0
        self.connected = asyncio.Event()
        self._offline = asyncio.Event()
        self._offline.set()

    async def connect(self, server):
        self.servers.append(server)
        self._offline.clear()
        self.connected.set()

    async def subscribe(self, topic, handler):
        self.handlers[topic] = handler

    async def publish(self, topic, payload, retain=False):
        self.published.append((topic, payload, retain))

    async def disconnect(self):
        self.disconnects += 1
        self.connected.clear()
        self._offline.set()

    async def wait_offline(self):
        await self._offline.wait()

    def drop(self):
        """Simulate the broker going away."""
        self.connected.clear()
        self._offline.set()

    async def deliver(self, topic, payload):
        for handler in self.handlers.values():
            await handler(payload, topic)


@pytest.fixture
def fake_transport():
    return FakeTransport()
