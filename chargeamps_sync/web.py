import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger

from .engine import DeviceSyncEngine
from .exceptions import ValidationError


class DebugAccessLogger(AbstractAccessLogger):
    """Log HTTP access lines at DEBUG level instead of INFO."""

    def log(
        self, request: web.BaseRequest, response: web.StreamResponse, time: float
    ) -> None:  # noqa: D401
        try:
            remote = request.remote or "-"
            method = request.method
            path = str(request.rel_url)
            status = getattr(response, "status", 0)
            ua = request.headers.get("User-Agent", "-")
            self.logger.debug(
                '%s "%s %s" %s %.3f %s', remote, method, path, status, time, ua
            )
        except Exception as exc:  # pragma: no cover
            self.logger.debug("access log failed: %s", exc)


def _parse_bool(data: Dict[str, Any], field: str) -> bool:
    value = data.get(field)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("on", "1", "true"):
        return True
    if isinstance(value, str) and value.lower() in ("off", "0", "false"):
        return False
    raise ValidationError(field, value, "must be a boolean or On/Off")


class WebServer:
    """Local HTTP surface for status and commands.

    The server shares the event loop with the engines, so handlers call the
    engine and port controllers directly. Commands address a device with the
    ``device`` query parameter, which may be omitted when only one device is
    configured.
    """

    def __init__(
        self,
        engines: List[DeviceSyncEngine],
        host: str = "127.0.0.1",
        port: int = 8088,
    ) -> None:
        self.engines: Dict[str, DeviceSyncEngine] = {e.device_id: e for e in engines}
        self.host = host
        self.port = port
        self.runner: Optional[web.AppRunner] = None
        self.logger = logging.getLogger("chargeamps_sync.web")
        self.access_logger = logging.getLogger("chargeamps_sync.http")

    def _engine_for(self, request: web.Request) -> DeviceSyncEngine:
        device_id = request.query.get("device")
        if device_id is None:
            if len(self.engines) != 1:
                raise ValidationError(
                    "device", None, f"required, one of {sorted(self.engines)}"
                )
            return next(iter(self.engines.values()))
        if device_id not in self.engines:
            raise web.HTTPNotFound(
                text=json.dumps({"ok": False, "error": f"Unknown device {device_id}"}),
                content_type="application/json",
            )
        return self.engines[device_id]

    async def _json_body(self, request: web.Request) -> Dict[str, Any]:
        try:
            data = await request.json()
        except json.JSONDecodeError as e:
            raise ValidationError("body", None, "must be valid JSON") from e
        if not isinstance(data, dict):
            raise ValidationError("body", data, "must be a JSON object")
        return data

    async def handle_status(self, request: web.Request) -> web.Response:
        if "device" in request.query:
            return web.json_response(self._engine_for(request).snapshot())
        return web.json_response(
            {device_id: e.snapshot() for device_id, e in self.engines.items()}
        )

    async def handle_refresh(self, request: web.Request) -> web.Response:
        started = await self._engine_for(request).refresh()
        return web.json_response({"ok": started, "busy": not started})

    async def handle_port_command(self, request: web.Request) -> web.Response:
        engine = self._engine_for(request)
        try:
            index = int(request.match_info["port"])
        except ValueError as e:
            raise ValidationError("port", request.match_info["port"], "must be a number") from e
        port = engine.port(index)
        command = request.match_info["command"]
        data = await self._json_body(request)

        if command == "current":
            result = await port.set_current(data.get("amps"))
        elif command == "mode":
            result = await port.set_mode(data.get("mode"))
        elif command == "rfid":
            result = await port.set_rfid(_parse_bool(data, "enabled"))
        elif command == "cable_lock":
            result = await port.set_cable_lock(_parse_bool(data, "enabled"))
        else:
            raise web.HTTPNotFound()
        return web.json_response({"ok": bool(result)})

    async def handle_light(self, request: web.Request) -> web.Response:
        engine = self._engine_for(request)
        data = await self._json_body(request)
        light = _parse_bool(data, "light") if "light" in data else None
        result = await engine.aux.set_light_and_dimmer(light, data.get("dimmer"))
        return web.json_response({"ok": bool(result)})

    async def handle_outlet(self, request: web.Request) -> web.Response:
        engine = self._engine_for(request)
        data = await self._json_body(request)
        result = await engine.aux.set_outlet(_parse_bool(data, "enabled"))
        return web.json_response({"ok": bool(result)})

    async def index(self, request: web.Request) -> web.Response:
        return web.Response(
            text="ChargeAmps sync engine. See /api/status", content_type="text/plain"
        )

    def create_app(self) -> web.Application:
        app = web.Application()

        # Simple CORS for JSON endpoints (local dashboard usage)
        @web.middleware
        async def cors_mw(
            request: web.Request,
            handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
        ) -> web.StreamResponse:
            response: web.StreamResponse = await handler(request)
            if request.path.startswith("/api/"):
                response.headers["Access-Control-Allow-Origin"] = "*"
                response.headers["Access-Control-Allow-Headers"] = "Content-Type"
                response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
            return response

        @web.middleware
        async def validation_mw(
            request: web.Request,
            handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
        ) -> web.StreamResponse:
            try:
                return await handler(request)
            except ValidationError as e:
                self.logger.warning(f"Rejected {request.method} {request.path}: {e}")
                return web.json_response({"ok": False, "error": str(e)}, status=400)

        app.middlewares.append(cors_mw)
        app.middlewares.append(validation_mw)

        app.add_routes(
            [
                web.get("/", self.index),
                web.get("/api/status", self.handle_status),
                web.post("/api/refresh", self.handle_refresh),
                web.post("/api/ports/{port}/{command}", self.handle_port_command),
                web.post("/api/light", self.handle_light),
                web.post("/api/outlet", self.handle_outlet),
            ]
        )
        return app

    async def start(self) -> None:
        if self.runner is not None:
            return
        self.runner = web.AppRunner(
            self.create_app(),
            access_log_class=DebugAccessLogger,
            access_log=self.access_logger,
        )
        await self.runner.setup()
        site = web.TCPSite(self.runner, host=self.host, port=self.port)
        await site.start()
        self.logger.info(f"Web server listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None


async def start_web_server(
    engines: List[DeviceSyncEngine], host: str = "127.0.0.1", port: int = 8088
) -> WebServer:
    server = WebServer(engines, host=host, port=port)
    await server.start()
    return server
