"""Minimal HTTP health endpoint on asyncio streams."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Optional

from collector.config.settings import settings
from collector.orchestrator import JobStatusRegistry
from collector.utils.helpers import utc_now

logger = logging.getLogger(__name__)

_REASONS = {200: "OK", 400: "Bad Request", 404: "Not Found"}


class HealthServer:
    """Serves ``GET /health`` with job statuses; every other request gets 404."""

    def __init__(
        self,
        registry: JobStatusRegistry,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.host = host or settings.HEALTH_HOST
        self.port = settings.HEALTH_PORT if port is None else port
        self._monotonic = monotonic
        self._started = monotonic()
        self._server: Optional[asyncio.AbstractServer] = None

    def payload(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "uptime": round(self._monotonic() - self._started, 3),
            "timestamp": utc_now().isoformat(),
            "jobs": self.registry.to_dict(),
        }

    def respond(self, method: str, path: str) -> tuple[int, str, bytes]:
        """Status code, content type and body for one request line"""
        if method == "GET" and path.split("?", 1)[0] == "/health":
            return 200, "application/json", json.dumps(self.payload()).encode("utf-8")
        return 404, "text/plain", b"Not Found"

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, self.host, self.port)
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info(f"Health check server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = await reader.readline()
            # Drain headers; bodies are not expected.
            while True:
                line = await reader.readline()
                if not line or line in (b"\r\n", b"\n"):
                    break

            parts = request_line.decode("latin-1").split()
            if len(parts) < 2:
                status, content_type, body = 400, "text/plain", b"Bad Request"
            else:
                status, content_type, body = self.respond(parts[0].upper(), parts[1])

            head = (
                f"HTTP/1.1 {status} {_REASONS[status]}\r\n"
                f"Content-Type: {content_type}\r\n"
                f"Content-Length: {len(body)}\r\n"
                "Connection: close\r\n\r\n"
            )
            writer.write(head.encode("latin-1") + body)
            await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            logger.debug(f"Health connection dropped: {exc}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass


__all__ = ["HealthServer"]
