"""
Repository Registry

Lazily builds and caches one RepositoryBundle per module for the process
lifetime. Construction is guarded by a per-module lock, so concurrent first
requests for the same module build exactly one bundle; lookups for other
modules are never blocked by it.
"""

from __future__ import annotations

import threading
from typing import Callable, TypeVar, overload

import structlog

from churchapi.config import Settings
from churchapi.db.client import ModuleDatabase
from churchapi.db.config_store import ConnectionConfigStore, get_config_store
from churchapi.db.context import require_current_module
from churchapi.db.descriptors import ConnectionDescriptor
from churchapi.db.modules import ModuleKey
from churchapi.kernel.errors import ModuleUnavailableError
from churchapi.repositories import RepositoryBundle, bundle_type_for

logger = structlog.get_logger()

B = TypeVar("B", bound=RepositoryBundle)

DatabaseFactory = Callable[[ModuleKey, ConnectionDescriptor, Settings | None], ModuleDatabase]


class RepositoryRegistry:
    """
    Process-wide cache of repository bundles keyed by module.

    Example usage:
        registry = RepositoryRegistry(store)
        repos = registry.get(ModuleKey.CONTENT)

        # inside run_as(...)
        repos = registry.get_for_current_context()
    """

    def __init__(
        self,
        store: ConnectionConfigStore | None = None,
        *,
        settings: Settings | None = None,
        database_factory: DatabaseFactory = ModuleDatabase,
    ) -> None:
        self._store = store if store is not None else get_config_store()
        self._settings = settings
        self._database_factory = database_factory
        self._bundles: dict[ModuleKey, RepositoryBundle] = {}
        self._databases: dict[ModuleKey, ModuleDatabase] = {}
        self._locks: dict[ModuleKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> ConnectionConfigStore:
        return self._store

    def _lock_for(self, key: ModuleKey) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get(self, module: ModuleKey | str) -> RepositoryBundle:
        """
        Get the bundle for `module`, building it on first request.

        Raises:
            ModuleUnavailableError: the module has no usable configuration.
        """
        key = ModuleKey.parse(module)
        bundle = self._bundles.get(key)
        if bundle is not None:
            return bundle

        with self._lock_for(key):
            bundle = self._bundles.get(key)
            if bundle is not None:
                return bundle

            descriptor = self._store.get(key)
            if descriptor is None:
                raise ModuleUnavailableError(
                    message=f"Database for module {key.value!r} is not configured",
                    meta={
                        "module": key.value,
                        "state": self._store.state(key).value,
                        "env_var": key.env_var,
                    },
                )

            db = self._database_factory(key, descriptor, self._settings)
            bundle = bundle_type_for(key).build(key, db)
            self._databases[key] = db
            self._bundles[key] = bundle

        logger.info(
            "Repository bundle built",
            module=key.value,
            repositories=list(bundle.repository_names()),
            database=descriptor.database,
        )
        return bundle

    def get_for_current_context(self) -> RepositoryBundle:
        """
        Get the bundle for the module active in the current scope.

        Raises:
            NoActiveContextError: called outside any run_as scope.
            ModuleUnavailableError: the active module has no usable configuration.
        """
        return self.get(require_current_module())

    def cached_modules(self) -> frozenset[ModuleKey]:
        return frozenset(self._bundles)

    def database(self, module: ModuleKey | str) -> ModuleDatabase:
        """The database the module's bundle is bound to."""
        key = ModuleKey.parse(module)
        self.get(key)
        return self._databases[key]

    def reset(self) -> None:
        """Drop every cached bundle without closing engines. Tests only."""
        with self._locks_guard:
            self._bundles.clear()
            self._databases.clear()
            self._locks.clear()

    async def aclose(self) -> None:
        """Dispose every engine and drop the cache."""
        databases = list(self._databases.values())
        self.reset()
        for db in databases:
            await db.dispose()


_registry = RepositoryRegistry()


def get_registry() -> RepositoryRegistry:
    """Get the process-wide repository registry."""
    return _registry


@overload
def get_repos() -> RepositoryBundle: ...


@overload
def get_repos(expected: type[B]) -> B: ...


def get_repos(expected: type[RepositoryBundle] | None = None) -> RepositoryBundle:
    """
    Get the repository bundle for the current module scope.

    Usage:
        async def escalate():
            repos = get_repos(MessagingRepos)
            rows = await repos.notification.load_undelivered()

        await run_as(ModuleKey.MESSAGING, escalate)
    """
    bundle = _registry.get_for_current_context()
    if expected is not None and not isinstance(bundle, expected):
        raise TypeError(
            f"Active module {bundle.module.value!r} provides {type(bundle).__name__}, "
            f"not {expected.__name__}"
        )
    return bundle
