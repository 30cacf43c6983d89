"""
Process Bootstrap

Idempotent once-per-process initialization. Every entry point (request
handler, timer, CLI) calls ``ensure_initialized()`` first; on a warm process
the call returns the cached result without re-reading configuration.

The first call:
1. validates hardened-mode configuration (prod only)
2. loads one connection string per module into the ConnectionConfigStore
3. fails fatally if a critical module could not be loaded

Optional modules that fail are recorded as absent; using them later raises
ModuleUnavailableError instead of crashing the process.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from churchapi.config import Settings, get_settings
from churchapi.db.config_store import ConnectionConfigStore, get_config_store
from churchapi.db.modules import ALIAS_MODULES, CRITICAL_MODULES, PRIMARY_MODULES, ModuleKey
from churchapi.kernel.errors import ConnectionStringParseError, FatalConfigError
from churchapi.readiness import find_hardened_config_problems

logger = structlog.get_logger()


@dataclass(frozen=True)
class BootstrapResult:
    """Outcome of the one bootstrap pass of this process."""

    environment: str
    loaded: tuple[ModuleKey, ...]
    failed: dict[ModuleKey, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "environment": self.environment,
            "loaded": [k.value for k in self.loaded],
            "failed": {k.value: v for k, v in self.failed.items()},
        }


class ProcessBootstrap:
    """
    Runs the expensive configuration load exactly once per process.

    Concurrent first callers block on the same lock and all observe the one
    result. A fatal failure is cached as well, so a broken process keeps
    refusing work instead of retrying a half-finished load.
    """

    def __init__(self, store: ConnectionConfigStore | None = None) -> None:
        self._store = store if store is not None else get_config_store()
        self._lock = threading.Lock()
        self._result: BootstrapResult | None = None
        self._error: FatalConfigError | None = None
        self.load_count = 0

    @property
    def initialized(self) -> bool:
        return self._result is not None

    def ensure_initialized(self, settings: Settings | None = None) -> BootstrapResult:
        """
        Initialize the process on first call; cheap no-op afterwards.

        Raises:
            FatalConfigError: hardened-mode validation failed or a critical
                module's connection string is missing or malformed.
        """
        result = self._result
        if result is not None:
            return result

        with self._lock:
            if self._result is not None:
                return self._result
            if self._error is not None:
                raise self._error
            try:
                self._result = self._load(settings or _read_settings())
            except FatalConfigError as exc:
                self._error = exc
                raise
            return self._result

    def _load(self, settings: Settings) -> BootstrapResult:
        self.load_count += 1
        logger.info(
            "Bootstrapping process configuration",
            environment=settings.environment,
            hardened=settings.hardened,
        )

        if settings.hardened:
            problems = find_hardened_config_problems(settings.as_env(provided_only=True))
            if problems:
                keys = sorted({p.key for p in problems})
                logger.error("Hardened configuration rejected", keys=keys)
                raise FatalConfigError(
                    message="Invalid production configuration: " + "; ".join(p.message for p in problems),
                    meta={"keys": keys},
                )

        loaded: list[ModuleKey] = []
        failed: dict[ModuleKey, str] = {}
        for module in (*PRIMARY_MODULES, *ALIAS_MODULES):
            raw = settings.connection_string_for(module)
            if not raw or not raw.strip():
                reason = f"{module.env_var} is not set"
                self._store.mark_absent(module, reason)
                if module.is_alias:
                    continue
                failed[module] = reason
                logger.warning("Module database config missing", module=module.value, env_var=module.env_var)
                continue
            try:
                descriptor = self._store.load(module, raw)
            except ConnectionStringParseError as exc:
                failed[module] = exc.message
                logger.error(
                    "Module database config invalid",
                    module=module.value,
                    env_var=module.env_var,
                    error=exc.message,
                )
                continue
            loaded.append(module)
            logger.info(
                "Module database config loaded",
                module=module.value,
                host=descriptor.host,
                database=descriptor.database,
            )

        logger.info(
            "Database connections summary",
            loaded=[k.value for k in loaded],
            failed=[k.value for k in failed],
        )

        critical = sorted(k.value for k in failed if k in CRITICAL_MODULES)
        if critical:
            raise FatalConfigError(
                message=f"Critical database module(s) failed to load: {', '.join(critical)}",
                meta={
                    "modules": critical,
                    "reasons": {k.value: failed[k] for k in failed if k in CRITICAL_MODULES},
                },
            )

        return BootstrapResult(
            environment=settings.environment,
            loaded=tuple(loaded),
            failed=failed,
        )

    def reset(self) -> None:
        """Forget the bootstrap outcome and the loaded store. Tests only."""
        with self._lock:
            self._result = None
            self._error = None
            self.load_count = 0
            self._store.reset()


def _read_settings() -> Settings:
    """Load settings, turning a malformed value into a fatal config error."""
    try:
        return get_settings()
    except ValidationError as exc:
        keys = sorted({str(err["loc"][0]).upper() for err in exc.errors() if err.get("loc")})
        logger.error("Configuration could not be parsed", keys=keys)
        raise FatalConfigError(
            message="Invalid configuration: " + ", ".join(keys),
            meta={"keys": keys},
        ) from exc


_bootstrap = ProcessBootstrap()


def get_bootstrap() -> ProcessBootstrap:
    return _bootstrap


def ensure_initialized(settings: Settings | None = None) -> BootstrapResult:
    """Initialize the process once; safe to call at the start of every invocation."""
    return _bootstrap.ensure_initialized(settings)


def get_connection_status(store: ConnectionConfigStore | None = None) -> dict[str, Any]:
    """Loaded and missing primary modules; aliases are not counted."""
    status = (store if store is not None else get_config_store()).status(PRIMARY_MODULES)
    loaded = [k.value for k in PRIMARY_MODULES if k in status.present]
    return {
        "loaded": loaded,
        "missing": [k.value for k in PRIMARY_MODULES if k not in status.present],
        "total": len(PRIMARY_MODULES),
    }
