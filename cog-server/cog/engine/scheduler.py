"""Cron scheduling: one asyncio task per cron-enabled script."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from croniter import croniter  # type: ignore[import-untyped]

from cog.domain.scripts.exceptions import InvalidCronExpressionError
from cog.domain.scripts.models import ScriptDescriptor
from cog.domain.scripts.registry import ScriptRegistry

from .executor import ScriptExecutor

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class CronScheduler:
    """Keeps the cron task side table, keyed by script id.

    Each task looks its script up in the registry when it fires and hands it
    to the executor; the scheduler never changes the registry itself.
    """

    def __init__(
        self,
        registry: ScriptRegistry,
        executor: ScriptExecutor,
        *,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._executor = executor
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}

    @staticmethod
    def validate(expression: Optional[str]) -> str:
        candidate = (expression or "").strip()
        if len(candidate.split()) != 5 or not croniter.is_valid(candidate):
            raise InvalidCronExpressionError(f"Invalid cron expression: {expression!r}")
        return candidate

    def schedule(self, descriptor: ScriptDescriptor) -> None:
        expression = self.validate(descriptor.cron_schedule)
        self.unschedule(descriptor.id)
        self._tasks[descriptor.id] = asyncio.create_task(
            self._cron_loop(descriptor.id, expression), name=f"cron-{descriptor.id}"
        )
        logger.info("Script %s scheduled with cron expression %r", descriptor.id, expression)

    def unschedule(self, script_id: str) -> bool:
        task = self._tasks.pop(script_id, None)
        if task is None:
            return False
        task.cancel()
        logger.info("Cron task for script %s destroyed", script_id)
        return True

    def reschedule(self, descriptor: ScriptDescriptor) -> None:
        self.unschedule(descriptor.id)
        if descriptor.cron_enabled:
            self.schedule(descriptor)

    def is_scheduled(self, script_id: str) -> bool:
        task = self._tasks.get(script_id)
        return task is not None and not task.done()

    def scheduled_ids(self) -> list[str]:
        return list(self._tasks)

    def next_run(self, script_id: str) -> Optional[datetime]:
        descriptor = self._registry.get(script_id)
        if descriptor is None or not self.is_scheduled(script_id) or not descriptor.cron_schedule:
            return None
        return croniter(descriptor.cron_schedule, datetime.now().astimezone()).get_next(datetime)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _cron_loop(self, script_id: str, expression: str) -> None:
        iterator = croniter(expression, datetime.now().astimezone())
        try:
            while True:
                fire_at = iterator.get_next(float)
                # skip fire times missed while the loop was stalled
                while fire_at < time.time() - 1:
                    fire_at = iterator.get_next(float)
                delay = fire_at - time.time()
                if delay > 0:
                    await self._sleep(delay)
                if not self._fire(script_id):
                    return
        finally:
            if self._tasks.get(script_id) is asyncio.current_task():
                self._tasks.pop(script_id, None)

    def _fire(self, script_id: str) -> bool:
        descriptor = self._registry.get(script_id)
        if descriptor is None or not descriptor.cron_enabled:
            logger.warning("Script %s is no longer cron enabled, stopping its cron task", script_id)
            return False
        logger.info("Running script %s from cron schedule", script_id)
        try:
            self._executor.dispatch(descriptor, [f"--time={int(time.time())}"], None)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Cron fire for script %s failed", script_id)
        return True
