"""Uvicorn server run as a task on the application's event loop."""

from __future__ import annotations

import asyncio
from typing import Any

import uvicorn
from fastapi import FastAPI

from reply_tracker.log import get_logger
from reply_tracker.services.base import Service

logger = get_logger(__name__)


class WebServerService(Service):
    def __init__(self, app: FastAPI, host: str, port: int, log_level: str = "info"):
        self._config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=log_level.lower(),
            log_config=None,  # keep the root logging configured by setup_logging
            lifespan="off",
        )
        self._server = uvicorn.Server(self._config)
        self._task: asyncio.Task[Any] | None = None

    @property
    def service_name(self) -> str:
        return "web"

    async def start(self) -> None:
        self._task = asyncio.create_task(self._server.serve())
        logger.info("web_server_started", host=self._config.host, port=self._config.port)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._server.should_exit = True
        try:
            await asyncio.wait_for(self._task, timeout=10)
        except asyncio.TimeoutError:
            logger.warning("web_server_stop_timeout")
            self._task.cancel()
        self._task = None
        logger.info("web_server_stopped")

    def status(self) -> dict[str, Any]:
        return {"running": self._task is not None and not self._task.done()}
