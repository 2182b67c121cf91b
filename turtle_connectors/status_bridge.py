# turtle_connectors/status_bridge.py

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Optional

from turtle_connectors.base import Transport
from turtles.turtle_manager import TurtleManager
from turtles.validators import InvalidStatusError, sanitize_status


logger = logging.getLogger(__name__)

DEFAULT_SERVER = "mqtt://test.mosquitto.org"
DEFAULT_BASE_TOPIC = "quayos/turtles"


class StatusClient:
    """Feeds turtle status updates from the broker into the turtle registry."""

    def __init__(
        self,
        transport: Transport,
        turtles: TurtleManager,
        server: str = DEFAULT_SERVER,
        base_topic: str = DEFAULT_BASE_TOPIC,
    ):
        self.transport = transport
        self.turtles = turtles
        self.server = server or DEFAULT_SERVER
        self.base_topic = (base_topic or DEFAULT_BASE_TOPIC).rstrip("/")
        self.status_topic = f"{self.base_topic}/+/status"
        self._status_re = re.compile(rf"^{re.escape(self.base_topic)}/([^/]+)/status$")

    # ------------------------------------------------------------------ lifecycle
    async def run(self):
        """Connect, subscribe and wait until the connection goes offline."""
        logger.info("Connecting to MQTT server %s", self.server)
        await self.transport.connect(self.server)

        logger.info("Registering status handler on %s", self.status_topic)
        await self.transport.subscribe(self.status_topic, self.handle)

        await self.transport.wait_offline()
        logger.info("Shut down MQTT client")

    async def stop(self):
        logger.info("Stopping client")
        await asyncio.gather(self.transport.disconnect(), self.transport.wait_offline())
        logger.info("Client stopped")

    # ---------------------------------------------------------------- handling
    def extract_turtle_id(self, topic: str) -> Optional[str]:
        match = self._status_re.match(topic)
        if not match:
            return None
        return match.group(1)

    async def handle(self, payload: Any, topic: str) -> None:
        turtle_id = self.extract_turtle_id(topic)
        if turtle_id is None:
            logger.error("Could not extract turtle id from topic=%s", topic)
            return

        logger.debug("Received status update turtle=%s topic=%s status=%s", turtle_id, topic, payload)

        try:
            if payload is None:
                self.turtles.delete_turtle(turtle_id)
            else:
                status = sanitize_status(payload)
                await self.turtles.get_turtle(turtle_id).update_status(status)
        except InvalidStatusError as exc:
            logger.warning("Invalid turtle status turtle=%s topic=%s: %s", turtle_id, topic, exc)
        except Exception as exc:
            logger.warning("Failed to update turtle status turtle=%s: %s", turtle_id, exc, exc_info=True)
