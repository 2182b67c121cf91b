# dispatcher/bridge_manager.py

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from dispatcher.settings import BridgeSettings
from logging_setup import configure_logging
from simulators.turtle_simulator import TurtleSimulator
from turtle_api import registry_api
from turtle_connectors.base import Transport
from turtle_connectors.mqtt_client import MqttTransport
from turtle_connectors.status_bridge import StatusClient
from turtles.turtle_manager import TurtleManager


class BridgeManager:
    """Own the turtle registry, MQTT transport, status client and optional extras."""

    def __init__(self, settings: BridgeSettings, transport: Optional[Transport] = None):
        self.logger = logging.getLogger("BridgeManager")
        self.settings = settings
        self.turtles = TurtleManager()
        self.transport = transport or MqttTransport(client_id=settings.client_id, keepalive=settings.keepalive)
        self.client = StatusClient(
            self.transport,
            self.turtles,
            server=settings.server,
            base_topic=settings.base_topic,
        )
        self._stopping: Optional[asyncio.Event] = None
        self._api_started = False
        self._simulator: Optional[TurtleSimulator] = None
        self._sim_task: Optional[asyncio.Task] = None
        self._stop_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ startup
    async def serve(self):
        """Run the status client until stop() is called, restarting it after drops."""
        self._stopping = asyncio.Event()
        self._start_api_if_enabled()
        await self._start_simulator_if_enabled()
        try:
            while not self._stopping.is_set():
                try:
                    await self.client.run()
                except ConnectionError as exc:
                    self.logger.error("MQTT connection failed: %s", exc)
                if self._stopping.is_set():
                    break
                self.logger.warning("MQTT offline; retrying in %ss", self.settings.reconnect_delay_sec)
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.settings.reconnect_delay_sec)
                except asyncio.TimeoutError:
                    continue
        finally:
            self._stop_api()
        self.logger.info("Bridge manager stopped")

    # ------------------------------------------------------------------ helpers
    def _start_api_if_enabled(self):
        if not self.settings.api_enabled or self._api_started:
            return
        registry_api.start(self.turtles, host=self.settings.api_host, port=self.settings.api_port)
        self._api_started = True

    def _stop_api(self):
        if self._api_started:
            registry_api.stop()
            self._api_started = False

    async def _start_simulator_if_enabled(self):
        if not self.settings.mock_turtles or self._simulator:
            return
        simulator = TurtleSimulator(
            MqttTransport(client_id=f"{self.settings.client_id}_sim" if self.settings.client_id else ""),
            self.settings.sim_turtles,
            server=self.settings.server,
            base_topic=self.settings.base_topic,
            loop_sec=self.settings.sim_loop_sec,
        )
        try:
            await simulator.start()
        except ConnectionError as exc:
            self.logger.error("Simulator start failed: %s", exc)
            return
        self._simulator = simulator
        self._sim_task = asyncio.ensure_future(simulator.run_forever())
        self.logger.info("Mock turtle simulator started (interval=%ss)", self.settings.sim_loop_sec)

    # ------------------------------------------------------------------ teardown
    def request_stop(self) -> asyncio.Task:
        """Schedule stop() once; repeated requests return the same task."""
        if self._stop_task is None:
            self._stop_task = asyncio.ensure_future(self.stop())
        return self._stop_task

    async def stop(self):
        if self._stopping is not None:
            self._stopping.set()
        if self._simulator:
            await self._simulator.stop()
            if self._sim_task:
                await self._sim_task
            self._simulator = None
            self._sim_task = None
        await self.client.stop()


async def _serve(manager: BridgeManager):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, manager.request_stop)
        except NotImplementedError:
            pass
    await manager.serve()
    if manager._stop_task is not None:
        await manager._stop_task


def main():
    configure_logging()
    manager = BridgeManager(BridgeSettings.from_env())
    manager.logger.info(
        "Starting turtle bridge server=%s base_topic=%s", manager.settings.server, manager.settings.base_topic
    )
    asyncio.run(_serve(manager))


if __name__ == "__main__":
    main()
