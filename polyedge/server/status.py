"""
HTTP status/control surface.

GET  /sync    full snapshot (alias: /status)
POST /config  merge a partial config object into the live config
POST /engine  set or toggle the engine enabled flag
"""

import json
from typing import Any, Optional, TYPE_CHECKING

from aiohttp import web

from ..config import to_bool

if TYPE_CHECKING:
    from ..bot import ArbitrageEngine
    from ..monitor import Logger


ENGINE_KEY = web.AppKey("engine", object)
CORS_ORIGIN_KEY = web.AppKey("cors_origin", str)


def _cors_headers(origin: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Allow any display client; answer preflight requests directly."""
    if request.method == "OPTIONS":
        response = web.Response(status=200)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            response = web.json_response({"error": exc.reason}, status=exc.status)
    response.headers.update(_cors_headers(request.app[CORS_ORIGIN_KEY]))
    return response


async def _read_json(request: web.Request) -> dict[str, Any]:
    """Request body as a JSON object. Empty body reads as {}."""
    if not request.can_read_body:
        return {}
    raw = await request.text()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise web.HTTPBadRequest(reason="body is not valid JSON")
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(reason="body must be a JSON object")
    return body


async def handle_sync(request: web.Request) -> web.Response:
    engine: "ArbitrageEngine" = request.app[ENGINE_KEY]
    return web.json_response(engine.snapshot())


async def handle_config(request: web.Request) -> web.Response:
    engine: "ArbitrageEngine" = request.app[ENGINE_KEY]
    body = await _read_json(request)
    changed = engine.update_config(body)
    return web.json_response({
        "ok": True,
        "changed": changed,
        "config": engine.config.trading.to_dict(),
    })


async def handle_engine(request: web.Request) -> web.Response:
    engine: "ArbitrageEngine" = request.app[ENGINE_KEY]
    body = await _read_json(request)
    if "enabled" in body:
        enabled = to_bool(body["enabled"])
    else:
        enabled = not engine.enabled
    engine.set_enabled(enabled)
    return web.json_response({"ok": True, "enabled": engine.enabled})


def create_app(engine: "ArbitrageEngine", cors_origin: str = "*") -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app[ENGINE_KEY] = engine
    app[CORS_ORIGIN_KEY] = cors_origin
    app.router.add_get("/sync", handle_sync)
    app.router.add_get("/status", handle_sync)
    app.router.add_post("/config", handle_config)
    app.router.add_post("/engine", handle_engine)
    return app


class StatusServer:
    """Runs the status app on its own TCP site inside the engine's event loop."""

    def __init__(
        self,
        engine: "ArbitrageEngine",
        host: str = "0.0.0.0",
        port: int = 3001,
        cors_origin: str = "*",
        logger: Optional["Logger"] = None,
    ):
        self.app = create_app(engine, cors_origin)
        self.host = host
        self.port = port
        self.logger = logger
        self._runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        if self.logger:
            self.logger.info("status_server_started", host=self.host, port=self.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
