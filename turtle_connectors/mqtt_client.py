"""paho-mqtt transport with JSON payloads, wildcard subscriptions and asyncio hand-off."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set
from urllib.parse import unquote, urlparse

import paho.mqtt.client as mqtt

from turtle_connectors.base import MessageHandler, Transport


logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883}
_TLS_SCHEMES = {"mqtts", "ssl"}


def _is_success(reason_code) -> bool:
    """Paho/MQTT result code helper (0 is success)."""

    return getattr(reason_code, "value", reason_code) == 0


@dataclass(frozen=True)
class BrokerAddress:
    host: str
    port: int
    tls: bool = False
    username: str = ""
    password: str = ""

    @classmethod
    def from_uri(cls, server: str) -> "BrokerAddress":
        url = urlparse(server)
        scheme = (url.scheme or "").lower()
        if scheme not in _DEFAULT_PORTS:
            raise ValueError(f"unsupported MQTT scheme in {server!r}")
        if not url.hostname:
            raise ValueError(f"MQTT server {server!r} missing host")
        return cls(
            host=url.hostname,
            port=url.port or _DEFAULT_PORTS[scheme],
            tls=scheme in _TLS_SCHEMES,
            username=unquote(url.username or ""),
            password=unquote(url.password or ""),
        )


class MqttTransport(Transport):
    """Single paho client whose callbacks are handed over to the asyncio loop."""

    def __init__(self, client_id: str = "", keepalive: int = 60):
        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message
        self.client.enable_logger(logging.getLogger("paho"))
        self.keepalive = keepalive
        self.dropped_messages = 0
        self._subs: Dict[str, MessageHandler] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connect_waiter: Optional[asyncio.Future] = None
        self._connected = asyncio.Event()
        self._offline = asyncio.Event()
        self._offline.set()
        self._loop_running = False
        self._loop_stopper: Optional[asyncio.Future] = None
        self._tls_configured = False

    # --------------------------------------------------------------------- #
    # paho callbacks (network thread)
    # --------------------------------------------------------------------- #
    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if not _is_success(reason_code):
            code = getattr(reason_code, "value", reason_code)
            logger.warning("MQTT connect refused code=%s", code)
            self._call_soon(self._resolve_connect, ConnectionError(f"MQTT connect refused: {reason_code}"))
            return
        # resubscribe on reconnect
        for topic in list(self._subs):
            client.subscribe(topic, qos=1)
        self._call_soon(self._mark_online)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        code = getattr(reason_code, "value", reason_code)
        logger.info("MQTT disconnected code=%s", code)
        self._call_soon(self._mark_offline)

    def _on_message(self, _client, _userdata, msg):
        try:
            payload = json.loads(msg.payload.decode("utf-8")) if msg.payload else None
        except (UnicodeDecodeError, ValueError, RecursionError):
            self.dropped_messages += 1
            logger.warning("MQTT dropped malformed payloads=%s topic=%s", self.dropped_messages, msg.topic)
            return
        self._call_soon(self._dispatch, msg.topic, payload)

    def _call_soon(self, callback, *args):
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(callback, *args)

    # --------------------------------------------------------------------- #
    # loop-side state changes
    # --------------------------------------------------------------------- #
    def _resolve_connect(self, exc: Optional[BaseException] = None):
        waiter = self._connect_waiter
        if waiter is None or waiter.done():
            return
        if exc is None:
            waiter.set_result(None)
        else:
            waiter.set_exception(exc)

    def _mark_online(self):
        self._connected.set()
        self._resolve_connect()

    def _mark_offline(self):
        if self._offline.is_set():
            return
        self._connected.clear()
        self._resolve_connect(ConnectionError("MQTT connection closed before CONNACK"))
        self._offline.set()
        if self._loop_running:
            self._loop_running = False
            self._loop_stopper = asyncio.get_running_loop().run_in_executor(None, self.client.loop_stop)

    def _dispatch(self, topic: str, payload: Any):
        handlers = [handler for pattern, handler in self._subs.items() if mqtt.topic_matches_sub(pattern, topic)]
        if not handlers:
            return
        logger.debug("MQTT message topic=%s matched_callbacks=%s", topic, len(handlers))
        for handler in handlers:
            task = asyncio.ensure_future(handler(payload, topic))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("MQTT callback error: %s", exc, exc_info=exc)

    # ------------------------------------------------------------------ API
    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    async def connect(self, server: str) -> None:
        address = BrokerAddress.from_uri(server)
        self._loop = asyncio.get_running_loop()
        # the previous network thread must be gone before loop_start
        if self._loop_stopper is not None:
            await self._loop_stopper
            self._loop_stopper = None
        self._connect_waiter = self._loop.create_future()
        self._connected.clear()
        self._offline.clear()

        if address.username:
            self.client.username_pw_set(address.username, address.password or None)
        if address.tls and not self._tls_configured:
            self.client.tls_set()
            self._tls_configured = True

        logger.info("Connecting to MQTT broker at %s:%s", address.host, address.port)
        try:
            await self._loop.run_in_executor(None, self.client.connect, address.host, address.port, self.keepalive)
        except OSError as exc:
            self._offline.set()
            raise ConnectionError(f"MQTT connect to {address.host}:{address.port} failed: {exc}") from exc
        rc = self.client.loop_start()
        if rc != mqtt.MQTT_ERR_SUCCESS:
            self.client.disconnect()
            self._offline.set()
            raise ConnectionError(f"MQTT network loop failed to start: {mqtt.error_string(rc)}")
        self._loop_running = True
        try:
            await self._connect_waiter
        except ConnectionError:
            await self.disconnect()
            raise
        logger.info("Connected to MQTT broker at %s:%s", address.host, address.port)

    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Subscribe to a topic pattern (`+`/`#` supported) with a coroutine handler."""
        self._subs[topic] = handler
        if self.connected:
            result, _mid = self.client.subscribe(topic, qos=1)
            if result != mqtt.MQTT_ERR_SUCCESS:
                raise ConnectionError(f"MQTT subscribe to {topic} failed: {mqtt.error_string(result)}")
        logger.info("Subscribed to %s", topic)

    async def publish(self, topic: str, payload: Any, retain: bool = False) -> None:
        data = json.dumps(payload)
        logger.debug("Publishing to %s payload=%s", topic, data)
        info = self.client.publish(topic, data, qos=1, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(f"MQTT publish to {topic} failed: {mqtt.error_string(info.rc)}")

    async def disconnect(self) -> None:
        if self.client.is_connected():
            self.client.disconnect()
        else:
            self._mark_offline()

    async def wait_offline(self) -> None:
        await self._offline.wait()
