from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class ApiError(Exception):
    """Base error for module routing and configuration.

    `code` is a stable dotted identifier; `meta` carries safe-to-expose
    context, including the affected `module` when there is one.
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int = 500,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = int(status_code)
        self.meta = dict(meta or {})

    @property
    def module(self) -> str | None:
        """The module this error concerns, if known."""
        value = self.meta.get("module")
        return None if value is None else str(value)

    def log_fields(self) -> dict[str, Any]:
        """Keyword arguments for a structured log line."""
        fields: dict[str, Any] = {"error": self.message, "error_code": self.code}
        if self.meta:
            fields["error_meta"] = self.meta
        return fields

    def to_public_dict(self, *, request_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "detail": self.message,
            "code": self.code,
        }
        if request_id:
            payload["request_id"] = request_id
        if self.meta:
            payload["meta"] = self.meta
        return payload


class FatalConfigError(ApiError):
    """Startup configuration is unusable; the process must not serve work."""

    def __init__(
        self,
        *,
        message: str = "Fatal configuration error",
        code: str = "config.fatal",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=500, meta=meta)


class ConnectionStringParseError(ApiError):
    def __init__(
        self,
        *,
        message: str = "Connection string could not be parsed",
        code: str = "config.connection_string_invalid",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=500, meta=meta)


class ModuleUnavailableError(ApiError):
    def __init__(
        self,
        *,
        message: str = "Module database is not configured",
        code: str = "module.unavailable",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=503, meta=meta)


class NoActiveContextError(ApiError):
    """Data access was requested outside any module scope.

    This is a programming error: callers must wrap work in ``run_as``.
    """

    def __init__(
        self,
        *,
        message: str = "No active module context",
        code: str = "module.no_active_context",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=500, meta=meta)


class UnknownModuleError(ApiError):
    def __init__(
        self,
        *,
        message: str = "Unknown module",
        code: str = "module.unknown",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=400, meta=meta)
