"""Environment configuration for the turtle bridge process."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Tuple

from turtle_connectors.status_bridge import DEFAULT_BASE_TOPIC, DEFAULT_SERVER


logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using %s", name, raw, default)
        return default


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class BridgeSettings:
    server: str = DEFAULT_SERVER
    base_topic: str = DEFAULT_BASE_TOPIC
    client_id: str = ""
    keepalive: int = 60
    reconnect_delay_sec: int = 5
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8082
    mock_turtles: bool = False
    sim_turtles: Tuple[str, ...] = ("turtle_1", "turtle_2")
    sim_loop_sec: int = 5

    @classmethod
    def from_env(cls) -> "BridgeSettings":
        sim_turtles = tuple(t.strip() for t in os.getenv("SIM_TURTLES", "turtle_1,turtle_2").split(",") if t.strip())
        return cls(
            server=os.getenv("MQTT_SERVER", DEFAULT_SERVER),
            base_topic=os.getenv("MQTT_BASE_TOPIC", DEFAULT_BASE_TOPIC),
            client_id=os.getenv("MQTT_CLIENT_ID", ""),
            keepalive=_env_int("MQTT_KEEPALIVE", 60),
            reconnect_delay_sec=_env_int("RECONNECT_DELAY_SEC", 5),
            api_enabled=_env_flag("API_ENABLED", "1"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=_env_int("API_PORT", 8082),
            mock_turtles=_env_flag("MOCK_TURTLES", "0"),
            sim_turtles=sim_turtles,
            sim_loop_sec=_env_int("SIM_LOOP_SEC", 5),
        )
