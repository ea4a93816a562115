"""Service lifecycle manager."""

from __future__ import annotations

from typing import Any

from reply_tracker.log import get_logger
from reply_tracker.services.base import Service

logger = get_logger(__name__)


class ServiceManager:
    """Starts services in registration order and stops them in reverse."""

    def __init__(self) -> None:
        self._services: list[Service] = []

    def add(self, service: Service) -> None:
        self._services.append(service)

    async def start_all(self) -> None:
        for service in self._services:
            await service.start()
        logger.info("all_services_started", services=[s.service_name for s in self._services])

    async def stop_all(self) -> None:
        """Stop all services; one failing to stop does not keep the others running."""
        for service in reversed(self._services):
            try:
                await service.stop()
            except Exception as e:
                logger.error("service_stop_error", service=service.service_name, error=str(e))
        logger.info("all_services_stopped")

    def status_all(self) -> dict[str, dict[str, Any]]:
        return {s.service_name: s.status() for s in self._services}
