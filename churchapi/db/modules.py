"""Module keys: the closed set of databases the API routes between."""

from __future__ import annotations

from enum import Enum

from churchapi.kernel.errors import UnknownModuleError


class ModuleKey(str, Enum):
    """Identifier of one physically separate module database."""

    MEMBERSHIP = "membership"
    ATTENDANCE = "attendance"
    CONTENT = "content"
    GIVING = "giving"
    MESSAGING = "messaging"
    DOING = "doing"
    REPORTING = "reporting"

    # Cross-module aliases: a module reading another module's database
    # through a separately configured connection.
    MEMBERSHIP_FOR_DOING = "membership-for-doing"

    @property
    def is_alias(self) -> bool:
        return self in _ALIAS_TARGETS

    @property
    def target(self) -> "ModuleKey":
        """The module whose schema this key's database holds."""
        return _ALIAS_TARGETS.get(self, self)

    @property
    def env_var(self) -> str:
        """The one environment variable holding this module's connection string."""
        if self is ModuleKey.MEMBERSHIP_FOR_DOING:
            return "DOING_MEMBERSHIP_CONNECTION_STRING"
        return f"{self.value.upper()}_CONNECTION_STRING"

    @classmethod
    def parse(cls, value: "ModuleKey | str") -> "ModuleKey":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownModuleError(
                message=f"Unknown module {value!r}",
                meta={"module": str(value), "known": [k.value for k in cls]},
            ) from None

    def __str__(self) -> str:
        return self.value


_ALIAS_TARGETS: dict[ModuleKey, ModuleKey] = {
    ModuleKey.MEMBERSHIP_FOR_DOING: ModuleKey.MEMBERSHIP,
}

PRIMARY_MODULES: tuple[ModuleKey, ...] = tuple(k for k in ModuleKey if not k.is_alias)
ALIAS_MODULES: tuple[ModuleKey, ...] = tuple(k for k in ModuleKey if k.is_alias)

# Without these the process must not serve traffic.
CRITICAL_MODULES: frozenset[ModuleKey] = frozenset({ModuleKey.MEMBERSHIP})
