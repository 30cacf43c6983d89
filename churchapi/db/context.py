"""Module context helpers.

The active module is carried in a ContextVar, so it follows each asyncio
task's own continuation. Tasks spawned inside a scope start with a copy of
the binding; changes they make never leak back to the parent or siblings.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Iterator, TypeVar

import structlog

from churchapi.db.modules import ModuleKey
from churchapi.kernel.errors import NoActiveContextError

T = TypeVar("T")

_active_module_var: ContextVar[ModuleKey | None] = ContextVar("active_module", default=None)


def current_module() -> ModuleKey | None:
    """Get the module the current unit of work is operating as."""
    return _active_module_var.get()


def require_current_module() -> ModuleKey:
    """Like `current_module`, but raise when called outside any scope."""
    module = _active_module_var.get()
    if module is None:
        raise NoActiveContextError(
            message="Data access requested outside a module scope; wrap the work in run_as()",
        )
    return module


@contextmanager
def module_scope(module: ModuleKey | str) -> Iterator[ModuleKey]:
    """Context manager to set and restore the active module."""
    key = ModuleKey.parse(module)
    token = _active_module_var.set(key)
    log_tokens = structlog.contextvars.bind_contextvars(module=key.value)
    try:
        yield key
    finally:
        structlog.contextvars.reset_contextvars(**log_tokens)
        _active_module_var.reset(token)


async def run_as(
    module: ModuleKey | str,
    unit_of_work: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Run `unit_of_work` with `module` as the active module.

    The binding covers the whole dynamic extent of the call, across every
    suspension point. The previous binding is restored when it returns,
    raises or is cancelled.

    Usage:
        async def escalate():
            repos = get_repos()
            ...

        await run_as(ModuleKey.MESSAGING, escalate)
    """
    with module_scope(module):
        return await unit_of_work(*args, **kwargs)
