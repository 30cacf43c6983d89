"""
Run one timer once and exit; the entry point for external cron.

    python -m churchapi.jobs.cron 15min
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

import structlog

from churchapi.db.registry import get_registry
from churchapi.jobs.timers import TIMER_HANDLERS, Timer
from churchapi.kernel.errors import ApiError
from churchapi.logs import configure_logging

logger = structlog.get_logger()


async def _run(timer: Timer) -> None:
    try:
        await TIMER_HANDLERS[timer]()
    finally:
        await get_registry().aclose()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run a scheduled timer once")
    parser.add_argument("timer", choices=[t.value for t in Timer])
    args = parser.parse_args(argv)

    configure_logging()
    try:
        asyncio.run(_run(Timer(args.timer)))
    except Exception as exc:
        fields = exc.log_fields() if isinstance(exc, ApiError) else {"error": str(exc)}
        logger.error("Cron timer failed", timer=args.timer, **fields)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
