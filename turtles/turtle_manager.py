# turtles/turtle_manager.py
from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from turtles.validators import check_status, is_turtle_id

logger = logging.getLogger(__name__)


class Turtle:
    """Latest known status of a single turtle."""

    def __init__(self, turtle_id: str):
        self.turtle_id = turtle_id
        self._lock = threading.Lock()
        self._status: Optional[Dict[str, Any]] = None
        self._last_update = 0
        self._updates = 0

    @property
    def status(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._status)

    async def update_status(self, status: Dict[str, Any]) -> None:
        check_status(status)
        with self._lock:
            self._status = copy.deepcopy(status)
            self._last_update = int(time.time())
            self._updates += 1
        logger.info(
            "Status update turtle=%s online=%s slots=%s",
            self.turtle_id,
            status["online"],
            len(status["inventory"]),
        )

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "turtle_id": self.turtle_id,
                "status": copy.deepcopy(self._status),
                "last_update": self._last_update,
                "updates": self._updates,
            }


class TurtleManager:
    """In-memory registry of turtles keyed by turtle id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._turtles: Dict[str, Turtle] = {}

    def get_turtle(self, turtle_id: str) -> Turtle:
        if not is_turtle_id(turtle_id):
            raise ValueError(f"invalid turtle id: {turtle_id!r}")
        with self._lock:
            turtle = self._turtles.get(turtle_id)
            if turtle is None:
                turtle = Turtle(turtle_id)
                self._turtles[turtle_id] = turtle
                logger.info("Turtle registered turtle=%s", turtle_id)
            return turtle

    def delete_turtle(self, turtle_id: str) -> bool:
        with self._lock:
            removed = self._turtles.pop(turtle_id, None)
        if removed is None:
            logger.debug("Delete for unknown turtle=%s ignored", turtle_id)
            return False
        logger.info("Turtle removed turtle=%s", turtle_id)
        return True

    def find(self, turtle_id: str) -> Optional[Turtle]:
        with self._lock:
            return self._turtles.get(turtle_id)

    def turtle_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._turtles)

    def snapshot(self) -> dict:
        with self._lock:
            turtles = list(self._turtles.values())
        return {turtle.turtle_id: turtle.to_dict() for turtle in turtles}
