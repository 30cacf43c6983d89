"""
Connection Config Store

Holds one validated ConnectionDescriptor per module for the process lifetime.
Entries are append-only: once a module is loaded its descriptor never changes,
and re-loading it (for example on a warm-start bootstrap pass) is a no-op.
A module that failed to load is recorded as absent, which is distinct from a
module nobody has tried to load yet.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from churchapi.db.descriptors import ConnectionDescriptor, parse_connection_string
from churchapi.db.modules import ModuleKey
from churchapi.kernel.errors import ConnectionStringParseError


class ModuleConfigState(str, Enum):
    """Load state of one module's configuration."""

    PENDING = "pending"
    LOADED = "loaded"
    ABSENT = "absent"


@dataclass(frozen=True)
class ConfigStoreStatus:
    """Diagnostic snapshot of the store."""

    present: frozenset[ModuleKey]
    absent: frozenset[ModuleKey]
    reasons: dict[ModuleKey, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "present": sorted(k.value for k in self.present),
            "absent": sorted(k.value for k in self.absent),
            "reasons": {k.value: v for k, v in sorted(self.reasons.items())},
        }


class ConnectionConfigStore:
    """
    Thread-safe mapping of ModuleKey to ConnectionDescriptor.

    Example usage:
        store = ConnectionConfigStore()
        store.load(ModuleKey.CONTENT, "mysql://u:p@db/content")
        descriptor = store.get(ModuleKey.CONTENT)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._descriptors: dict[ModuleKey, ConnectionDescriptor] = {}
        self._absent: dict[ModuleKey, str] = {}

    def load(self, module: ModuleKey | str, raw: str) -> ConnectionDescriptor:
        """
        Parse `raw` and store it for `module`.

        Loading an already loaded module returns the original descriptor
        unchanged. A parse failure records the module as absent and raises,
        leaving every other module's entry untouched.

        Raises:
            ConnectionStringParseError: `raw` is malformed.
        """
        key = ModuleKey.parse(module)
        with self._lock:
            existing = self._descriptors.get(key)
            if existing is not None:
                return existing

        try:
            descriptor = parse_connection_string(raw)
        except ConnectionStringParseError as exc:
            exc.meta.setdefault("module", key.value)
            with self._lock:
                if key not in self._descriptors:
                    self._absent[key] = exc.message
            raise

        with self._lock:
            # First writer wins if two loads of the same key race.
            stored = self._descriptors.setdefault(key, descriptor)
            self._absent.pop(key, None)
        return stored

    def mark_absent(self, module: ModuleKey | str, reason: str) -> None:
        """Record that `module` has no usable configuration."""
        key = ModuleKey.parse(module)
        with self._lock:
            if key in self._descriptors:
                return
            self._absent[key] = reason

    def get(self, module: ModuleKey | str) -> ConnectionDescriptor | None:
        """Pure lookup; never parses or performs I/O."""
        return self._descriptors.get(ModuleKey.parse(module))

    def state(self, module: ModuleKey | str) -> ModuleConfigState:
        key = ModuleKey.parse(module)
        with self._lock:
            if key in self._descriptors:
                return ModuleConfigState.LOADED
            if key in self._absent:
                return ModuleConfigState.ABSENT
        return ModuleConfigState.PENDING

    def absence_reason(self, module: ModuleKey | str) -> str | None:
        return self._absent.get(ModuleKey.parse(module))

    def status(self, modules: Iterable[ModuleKey] | None = None) -> ConfigStoreStatus:
        with self._lock:
            present = set(self._descriptors)
            absent = dict(self._absent)
        if modules is not None:
            wanted = set(modules)
            present &= wanted
            absent = {k: v for k, v in absent.items() if k in wanted}
        return ConfigStoreStatus(
            present=frozenset(present),
            absent=frozenset(absent),
            reasons=absent,
        )

    def reset(self) -> None:
        """Forget every entry. Tests only."""
        with self._lock:
            self._descriptors.clear()
            self._absent.clear()


_store = ConnectionConfigStore()


def get_config_store() -> ConnectionConfigStore:
    """Get the process-wide config store."""
    return _store
