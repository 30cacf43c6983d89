"""
Timer Handlers

Scheduled entry points (15-minute, midnight and general scheduled tasks).
Each handler bootstraps the process, then runs the steps registered for its
timer, each inside a run_as scope for the step's module. Steps receive the
module's repository bundle and never pick a connection themselves.

The midnight timer advances recurring streaming services (content) out of
the box; other steps are registered by the modules that own them.

Registering a step:

    @register_step(Timer.FIFTEEN_MINUTE, ModuleKey.MESSAGING, "escalate_notifications")
    async def escalate(repos: MessagingRepos) -> dict:
        ...
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from churchapi.bootstrap import ensure_initialized
from churchapi.db.context import run_as
from churchapi.db.modules import ModuleKey
from churchapi.db.registry import get_registry
from churchapi.jobs.steps import advance_recurring_services
from churchapi.kernel.errors import ApiError
from churchapi.repositories import RepositoryBundle

logger = structlog.get_logger()

StepHandler = Callable[[RepositoryBundle], Awaitable[Any]]


class Timer(str, Enum):
    FIFTEEN_MINUTE = "15min"
    MIDNIGHT = "midnight"
    SCHEDULED_TASKS = "scheduled"


@dataclass(frozen=True)
class TimerStep:
    timer: Timer
    module: ModuleKey
    name: str
    handler: StepHandler


@dataclass
class StepResult:
    name: str
    module: ModuleKey
    duration_ms: float
    result: Any = None


@dataclass
class TimerRun:
    timer: Timer
    started_at: datetime
    steps: list[StepResult] = field(default_factory=list)
    duration_ms: float = 0.0


BUILTIN_STEPS: tuple[TimerStep, ...] = (
    TimerStep(
        timer=Timer.MIDNIGHT,
        module=ModuleKey.CONTENT,
        name="advance_recurring_services",
        handler=advance_recurring_services,
    ),
)

_steps: dict[Timer, list[TimerStep]] = {timer: [] for timer in Timer}


def register_step(timer: Timer, module: ModuleKey | str, name: str | None = None):
    """Decorator registering `handler` to run on `timer` as `module`."""
    key = ModuleKey.parse(module)

    def decorator(handler: StepHandler) -> StepHandler:
        step_name = name or handler.__name__
        steps = _steps[Timer(timer)]
        if any(s.name == step_name for s in steps):
            raise ValueError(f"Step {step_name!r} already registered for timer {timer}")
        steps.append(TimerStep(timer=Timer(timer), module=key, name=step_name, handler=handler))
        return handler

    return decorator


def registered_steps(timer: Timer) -> list[TimerStep]:
    return list(_steps[Timer(timer)])


def clear_steps() -> None:
    """Remove every registered step, built-ins included. Tests only."""
    for steps in _steps.values():
        steps.clear()


def reset_steps() -> None:
    """Restore the built-in steps and drop everything else."""
    clear_steps()
    for step in BUILTIN_STEPS:
        _steps[step.timer].append(step)


reset_steps()


async def _run_step(step: TimerStep) -> Any:
    repos = get_registry().get_for_current_context()
    return await step.handler(repos)


async def run_timer(timer: Timer) -> TimerRun:
    """
    Run every step registered for `timer`, in registration order.

    The first failing step stops the run and its error is re-raised after
    being logged; retries are left to the scheduler that invoked the timer.
    """
    timer = Timer(timer)
    start = time.monotonic()
    run = TimerRun(timer=timer, started_at=datetime.now(timezone.utc))
    logger.info("Timer start", timer=timer.value)

    ensure_initialized()
    logger.info("Timer environment ready", timer=timer.value, elapsed_ms=_elapsed_ms(start))

    for step in registered_steps(timer):
        step_start = time.monotonic()
        try:
            result = await run_as(step.module, _run_step, step)
        except Exception as exc:
            logger.error(
                "Timer step failed",
                timer=timer.value,
                step=step.name,
                module=step.module.value,
                **(exc.log_fields() if isinstance(exc, ApiError) else {"error": str(exc)}),
                elapsed_ms=_elapsed_ms(start),
                exc_info=True,
            )
            raise
        run.steps.append(StepResult(step.name, step.module, _elapsed_ms(step_start), result=result))
        logger.info(
            "Timer step complete",
            timer=timer.value,
            step=step.name,
            module=step.module.value,
            duration_ms=run.steps[-1].duration_ms,
        )

    run.duration_ms = _elapsed_ms(start)
    logger.info("Timer complete", timer=timer.value, steps=len(run.steps), duration_ms=run.duration_ms)
    return run


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


async def handle_15min_timer() -> TimerRun:
    return await run_timer(Timer.FIFTEEN_MINUTE)


async def handle_midnight_timer() -> TimerRun:
    return await run_timer(Timer.MIDNIGHT)


async def handle_scheduled_tasks() -> TimerRun:
    return await run_timer(Timer.SCHEDULED_TASKS)


TIMER_HANDLERS: dict[Timer, Callable[[], Awaitable[TimerRun]]] = {
    Timer.FIFTEEN_MINUTE: handle_15min_timer,
    Timer.MIDNIGHT: handle_midnight_timer,
    Timer.SCHEDULED_TASKS: handle_scheduled_tasks,
}
