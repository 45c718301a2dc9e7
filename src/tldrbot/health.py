"""Liveness endpoint for hosting platforms."""

from __future__ import annotations

import logging

from aiohttp import web

_LOG = logging.getLogger(__name__)

SERVICE_NAME = "tldrbot"


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "healthy", "service": SERVICE_NAME})


def create_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/", health)
    app.router.add_get("/health", health)
    return app


class HealthServer:
    """Runs the liveness app alongside the bot on the same event loop."""

    def __init__(self, port: int, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        _LOG.info("Health check server listening on port %s", self.port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        _LOG.info("Health check server stopped")
