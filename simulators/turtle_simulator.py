"""Local turtle simulator that publishes status updates the way turtles report them."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, List, Optional, Sequence

from dispatcher.settings import BridgeSettings
from turtle_connectors.base import Transport
from turtle_connectors.mqtt_client import MqttTransport
from turtle_connectors.status_bridge import DEFAULT_BASE_TOPIC, DEFAULT_SERVER

INVENTORY_SLOTS = 16
ITEMS = ("minecraft:cobblestone", "minecraft:coal", "minecraft:oak_log", "minecraft:iron_ore", "minecraft:torch")


logger = logging.getLogger(__name__)


def build_status(online: bool = True, rng: Optional[random.Random] = None) -> dict:
    """Random status; empty slots are ``[]`` like a serialized empty table."""
    rng = rng or random.Random()
    inventory: List[object] = []
    for _ in range(INVENTORY_SLOTS):
        if rng.random() < 0.5:
            inventory.append([])
        else:
            inventory.append({"name": rng.choice(ITEMS), "count": rng.randint(1, 64)})
    return {"online": online, "inventory": inventory, "fuel": rng.randint(0, 20000)}


class TurtleSimulator:
    def __init__(
        self,
        transport: Transport,
        turtle_ids: Sequence[str],
        server: str = DEFAULT_SERVER,
        base_topic: str = DEFAULT_BASE_TOPIC,
        loop_sec: int = 10,
    ):
        self.transport = transport
        self.turtle_ids = list(turtle_ids)
        self.server = server
        self.base_topic = base_topic.rstrip("/")
        self.loop_sec = loop_sec
        self._rng = random.Random()
        self._online: Dict[str, bool] = {tid: True for tid in self.turtle_ids}
        self._stop = asyncio.Event()

    def topic_for(self, turtle_id: str) -> str:
        return f"{self.base_topic}/{turtle_id}/status"

    # ------------------------------------------------------------------ setup
    async def start(self):
        logging.getLogger("paho").setLevel(logging.WARNING)
        await self.transport.connect(self.server)
        logger.info("Simulator connected to %s with turtles=%s", self.server, self.turtle_ids)

    # ------------------------------------------------------------------ simulation loop
    async def publish_once(self):
        for turtle_id in self.turtle_ids:
            # Occasionally flip a turtle offline so offline payloads pass through too
            if self._rng.random() < 0.1:
                self._online[turtle_id] = not self._online[turtle_id]
            status = build_status(self._online[turtle_id], self._rng)
            await self.transport.publish(self.topic_for(turtle_id), status, retain=True)
            logger.info("Published status turtle=%s online=%s", turtle_id, status["online"])

    async def run_forever(self):
        while not self._stop.is_set():
            await self.publish_once()
            sleep_for = max(1.0, self.loop_sec + self._rng.uniform(-1.0, 1.0))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=sleep_for)
            except asyncio.TimeoutError:
                continue

    async def stop(self):
        self._stop.set()
        for turtle_id in self.turtle_ids:
            try:
                await self.transport.publish(self.topic_for(turtle_id), None, retain=True)
            except ConnectionError as exc:
                logger.warning("Deregister failed turtle=%s: %s", turtle_id, exc)
                continue
            logger.info("Deregistered turtle=%s", turtle_id)
        await self.transport.disconnect()


async def _main():
    settings = BridgeSettings.from_env()
    simulator = TurtleSimulator(
        MqttTransport(),
        settings.sim_turtles,
        server=settings.server,
        base_topic=settings.base_topic,
        loop_sec=settings.sim_loop_sec,
    )
    await simulator.start()
    try:
        await simulator.run_forever()
    finally:
        await simulator.stop()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
