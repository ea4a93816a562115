"""Abstract service lifecycle interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Service(ABC):
    """A long-running component started and stopped by the ServiceManager."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    def status(self) -> dict[str, Any]:
        """Snapshot for the /health endpoint; must include a boolean ``running``."""
        ...
