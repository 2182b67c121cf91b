"""Central logging configuration for the turtle bridge.

Routes status ingestion, MQTT transport, and HTTP API logs to separate files while keeping stdout output.
"""

from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

_CONFIGURED = False


def configure_logging() -> None:
    """Set up log handlers only once."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    log_dir = os.environ.get("LOG_DIR", "/tmp/logs")
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        log_dir = "/tmp"
        os.makedirs(log_dir, exist_ok=True)

    def _file(name: str) -> Dict[str, Any]:
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": os.path.join(log_dir, f"{name}.log"),
            "maxBytes": 1_000_000,
            "backupCount": 3,
            "encoding": "utf-8",
            "formatter": "detailed",
        }

    def _route(file_handler: str, level: str = "INFO") -> Dict[str, Any]:
        return {"handlers": [file_handler, "console"], "level": level, "propagate": False}

    ingest_level = os.environ.get("LOG_LEVEL_INGEST", "INFO")

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
            },
            "detailed": {
                "format": "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d]: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": os.environ.get("LOG_LEVEL", "WARNING"),
            },
            "status_file": _file("status"),
            "transport_file": _file("transport"),
            "api_file": _file("api"),
        },
        "root": {
            "handlers": ["console"],
            "level": os.environ.get("LOG_LEVEL_ROOT", "WARNING"),
        },
        "loggers": {
            # Status ingestion
            "turtle_connectors.status_bridge": _route("status_file", ingest_level),
            "turtles.turtle_manager": _route("status_file", ingest_level),
            "BridgeManager": _route("status_file"),
            # Transport
            "turtle_connectors.mqtt_client": _route("transport_file"),
            "simulators.turtle_simulator": _route("transport_file"),
            "paho": _route("transport_file", "WARNING"),
            # HTTP API
            "turtle_api.registry_api": _route("api_file"),
            "cherrypy.error": _route("api_file"),
        },
    }

    dictConfig(config)
    _CONFIGURED = True
