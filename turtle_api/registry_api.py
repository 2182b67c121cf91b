"""Registry API: read-only HTTP view of the turtles known to the bridge."""

from __future__ import annotations

import logging
from datetime import datetime

import cherrypy

from turtles.turtle_manager import TurtleManager


logger = logging.getLogger(__name__)


def _ts() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class TurtleAPI:
    exposed = True

    def __init__(self, turtles: TurtleManager):
        self.turtles = turtles

    @cherrypy.tools.json_out()
    def GET(self, *uri, **_params):
        if not uri:
            return {"ok": True, "endpoints": ["/health", "/turtles", "/turtle/{turtle_id}"]}
        path = uri[0].lower()
        if path == "health":
            return {"ok": True, "ts": _ts(), "turtles": len(self.turtles.turtle_ids())}
        if path == "turtles":
            return self.turtles.snapshot()
        if path == "turtle":
            if len(uri) < 2:
                return {"error": "turtle_id missing"}
            turtle = self.turtles.find(uri[1])
            return turtle.to_dict() if turtle else {"error": f"turtle '{uri[1]}' not found"}
        return {"error": "invalid endpoint"}


def start(turtles: TurtleManager, host: str = "0.0.0.0", port: int = 8082):
    """Mount the API and start CherryPy's engine threads without blocking."""
    cherrypy.config.update(
        {
            "server.socket_host": host,
            "server.socket_port": port,
            "engine.autoreload.on": False,
            "log.screen": False,
        }
    )
    conf = {"/": {"request.dispatch": cherrypy.dispatch.MethodDispatcher()}}
    cherrypy.tree.mount(TurtleAPI(turtles), "/", conf)
    cherrypy.engine.start()
    logger.info("Turtle API listening on %s:%s", host, port)


def stop():
    cherrypy.engine.exit()
    logger.info("Turtle API stopped")
