"""HTTP endpoints for the counter service.

Routes:
    GET  /api/clicks   current count
    POST /api/clicks   increment (no request body allowed)
    GET  /api/health   liveness and backend status
    GET  /api/stats    in-memory and durable log statistics
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web

from shared_counter.service import CounterService

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024


class MalformedRequestError(Exception):
    """Raised when a write request carries a payload."""

    pass


def ensure_empty_payload(body: bytes) -> None:
    """Reject any request body other than nothing or an empty JSON value.

    Args:
        body: Raw request body.

    Raises:
        MalformedRequestError: If the body carries data.
    """
    if not body.strip():
        return
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise MalformedRequestError("No body expected") from exc
    if payload in ({}, [], None):
        return
    raise MalformedRequestError("No body expected")


@dataclass
class CounterServer:
    """aiohttp server exposing a :class:`CounterService`.

    The service lifecycle (start and shutdown) is owned by the caller; this
    class only binds and unbinds the HTTP listener.

    Example:
        ```python
        service = CounterService(ServiceConfig.from_env())
        await service.start()
        async with CounterServer(service, port=3000) as server:
            print(f"Listening on {server.base_url}")
            await stop_event.wait()
        await service.shutdown()
        ```
    """

    service: CounterService
    host: str = "127.0.0.1"
    port: int = 3000
    _runner: web.AppRunner | None = field(default=None, init=False)
    _site: web.TCPSite | None = field(default=None, init=False)
    _bound_port: int | None = field(default=None, init=False)

    @property
    def base_url(self) -> str:
        """Get the base URL of the server."""
        port = self._bound_port or self.port
        return f"http://{self.host}:{port}"

    async def handle_get_clicks(self, request: web.Request) -> web.Response:
        reading = await self.service.read()
        return web.json_response(reading.to_dict())

    async def handle_post_clicks(self, request: web.Request) -> web.Response:
        try:
            ensure_empty_payload(await request.read())
        except MalformedRequestError as exc:
            return web.json_response({"error": str(exc)}, status=400)

        reading = await self.service.increment()
        return web.json_response(reading.to_dict())

    async def handle_health(self, request: web.Request) -> web.Response:
        report = await self.service.health()
        return web.json_response(report.to_dict())

    async def handle_stats(self, request: web.Request) -> web.Response:
        try:
            report = await self.service.stats()
        except Exception as exc:
            logger.error(f"Stats query error: {exc}")
            return web.json_response({"error": "Database error"}, status=500)
        return web.json_response(report.to_dict())

    def create_app(self) -> web.Application:
        """Create the aiohttp application with routes.

        Returns:
            Configured aiohttp web application.
        """
        app = web.Application(client_max_size=MAX_BODY_BYTES)
        app.router.add_get("/api/clicks", self.handle_get_clicks)
        app.router.add_post("/api/clicks", self.handle_post_clicks)
        app.router.add_get("/api/health", self.handle_health)
        app.router.add_get("/api/stats", self.handle_stats)
        return app

    async def start(self) -> None:
        """Bind the HTTP listener.

        Raises:
            RuntimeError: If the server is already running.
        """
        if self._runner is not None:
            raise RuntimeError("Server is already running")

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._bound_port = self.port
        if self._runner.addresses:
            address = self._runner.addresses[0]
            if isinstance(address, tuple) and len(address) >= 2:
                self._bound_port = address[1]
        logger.info(f"Counter server listening on {self.base_url}")

    async def stop(self) -> None:
        """Unbind the HTTP listener.

        Raises:
            RuntimeError: If the server is not running.
        """
        if self._runner is None:
            raise RuntimeError("Server is not running")

        await self._runner.cleanup()
        self._runner = None
        self._site = None
        self._bound_port = None

    async def __aenter__(self) -> CounterServer:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()
