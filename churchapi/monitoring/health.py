"""
Health Checks

Reports per-module database health. Without `ping` the check is purely
diagnostic (configuration state only) and performs no I/O.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import text

from churchapi import __version__
from churchapi.db.config_store import ConnectionConfigStore, ModuleConfigState
from churchapi.db.context import run_as
from churchapi.db.modules import CRITICAL_MODULES, PRIMARY_MODULES, ModuleKey
from churchapi.db.registry import RepositoryRegistry, get_registry

logger = structlog.get_logger()


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


def _worst(statuses) -> HealthStatus:
    return max(statuses, key=_SEVERITY.__getitem__, default=HealthStatus.HEALTHY)


@dataclass
class ModuleHealth:
    """Configuration state and, when pinged, reachability of one module database."""

    module: ModuleKey
    state: ModuleConfigState
    status: HealthStatus
    message: str | None = None
    host: str | None = None
    database: str | None = None
    latency_ms: float | None = None

    @property
    def critical(self) -> bool:
        return self.module in CRITICAL_MODULES

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module.value,
            "state": self.state.value,
            "critical": self.critical,
            "status": self.status.value,
            "message": self.message,
            "host": self.host,
            "database": self.database,
            "latency_ms": self.latency_ms,
        }


@dataclass
class RouterHealth:
    """Health of every primary module; the worst module sets the overall status."""

    modules: list[ModuleHealth]
    version: str = __version__
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> HealthStatus:
        return _worst(m.status for m in self.modules)

    @property
    def loaded(self) -> list[ModuleKey]:
        return [m.module for m in self.modules if m.state is ModuleConfigState.LOADED]

    def get(self, module: ModuleKey | str) -> ModuleHealth:
        key = ModuleKey.parse(module)
        return next(m for m in self.modules if m.module is key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "loaded": len(self.loaded),
            "total": len(self.modules),
            "modules": [m.to_dict() for m in self.modules],
            "version": self.version,
            "checked_at": self.checked_at.isoformat(),
        }


class ModuleHealthCheck:
    """
    Module database health checker.

    Example usage:
        health = await ModuleHealthCheck().check(ping=True)
        print(health.to_dict())
    """

    def __init__(self, registry: RepositoryRegistry | None = None) -> None:
        self._registry = registry if registry is not None else get_registry()

    @property
    def store(self) -> ConnectionConfigStore:
        return self._registry.store

    async def check(self, ping: bool = False) -> RouterHealth:
        modules = await asyncio.gather(
            *(self.check_module(module, ping=ping) for module in PRIMARY_MODULES)
        )
        return RouterHealth(modules=list(modules))

    async def check_module(self, module: ModuleKey, ping: bool = False) -> ModuleHealth:
        failing = HealthStatus.UNHEALTHY if module in CRITICAL_MODULES else HealthStatus.DEGRADED
        state = self.store.state(module)
        if state is not ModuleConfigState.LOADED:
            return ModuleHealth(
                module=module,
                state=state,
                status=failing,
                message=self.store.absence_reason(module) or "Not configured",
            )

        descriptor = self.store.get(module)
        health = ModuleHealth(
            module=module,
            state=state,
            status=HealthStatus.HEALTHY,
            host=descriptor.host,
            database=descriptor.database,
        )
        if not ping:
            return health

        start = time.perf_counter()
        try:
            result = await run_as(module, self._ping, module)
        except Exception as e:
            logger.warning("Module database ping failed", module=module.value, error=str(e))
            health.status = failing
            health.message = str(e)
        else:
            if result != 1:
                health.status = HealthStatus.DEGRADED
                health.message = "Unexpected query result"
        health.latency_ms = (time.perf_counter() - start) * 1000
        return health

    async def _ping(self, module: ModuleKey) -> Any:
        async with self._registry.database(module).session() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar()
