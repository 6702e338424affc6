"""Domain service for script lifecycle and invocation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from .exceptions import (
    DuplicateScriptError,
    InvalidCronExpressionError,
    ScriptError,
    ScriptNotFoundError,
    StorageError,
    WebhookDisabledError,
)
from .models import InvocationOutcome, ScriptDescriptor, ScriptSummary, now_epoch
from .registry import ScriptRegistry
from .repository import ScriptStore

if TYPE_CHECKING:
    from cog.engine.executor import ScriptExecutor
    from cog.engine.scheduler import CronScheduler

logger = logging.getLogger(__name__)


def generate_script_id() -> str:
    return uuid.uuid4().hex


def format_argument(key: str, value: str) -> str:
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'--{key}="{escaped}"'


def format_arguments(pairs: Iterable[Tuple[str, str]]) -> list[str]:
    """Render query parameters as ``--key="value"`` tokens, one per pair."""
    return [format_argument(key, value) for key, value in pairs]


@dataclass(slots=True)
class ScriptService:
    store: ScriptStore
    registry: ScriptRegistry
    executor: ScriptExecutor
    scheduler: CronScheduler
    default_timeout_ms: int = 30000

    def load_all(self) -> int:
        """Register every stored script; bad records are skipped, not fatal."""
        loaded = 0
        for descriptor in self.store.load_all():
            if not self.executor.launchers.supports(descriptor.runtime):
                logger.warning(
                    "Script %s uses unsupported runtime %r, skipping", descriptor.id, descriptor.runtime
                )
                continue
            if descriptor.cron_enabled:
                try:
                    descriptor.cron_schedule = self.scheduler.validate(descriptor.cron_schedule)
                except InvalidCronExpressionError as exc:
                    logger.warning("Script %s skipped: %s", descriptor.id, exc)
                    continue
            try:
                self.registry.register(descriptor)
            except DuplicateScriptError as exc:
                logger.warning("Script %s skipped: %s", descriptor.id, exc)
                continue
            if descriptor.cron_enabled:
                self.scheduler.schedule(descriptor)
            loaded += 1
            logger.info("Script %s loaded into runtime", descriptor.id)
        return loaded

    def list_scripts(self) -> list[ScriptSummary]:
        return self.registry.list()

    def get_script(self, script_id: str) -> ScriptDescriptor:
        return self.registry.find(script_id)

    def read_source(self, script_id: str) -> str:
        return self.store.read_entrypoint(self.registry.find(script_id))

    def register(
        self,
        *,
        name: str,
        runtime: str,
        source: str,
        webhook_enabled: bool = False,
        cron_enabled: bool = False,
        cron_schedule: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> ScriptDescriptor:
        launcher = self.executor.launchers.resolve(runtime)
        if cron_enabled:
            cron_schedule = self.scheduler.validate(cron_schedule)

        now = now_epoch()
        descriptor = ScriptDescriptor(
            id=generate_script_id(),
            name=name,
            runtime=launcher.runtime.value,
            entrypoint=launcher.entrypoint,
            created=now,
            updated=now,
            webhook_enabled=webhook_enabled,
            cron_enabled=cron_enabled,
            cron_schedule=cron_schedule or None,
            timeout_ms=timeout_ms or self.default_timeout_ms,
        )
        if descriptor.id in self.registry:
            raise DuplicateScriptError(f"Script {descriptor.id} is already registered")

        self.store.create(descriptor, source)
        try:
            self.registry.register(descriptor)
            if descriptor.cron_enabled:
                self.scheduler.schedule(descriptor)
        except ScriptError:
            self.scheduler.unschedule(descriptor.id)
            if self.registry.get(descriptor.id) is descriptor:
                self.registry.remove(descriptor.id)
            self.store.remove_all(descriptor.id)
            raise
        logger.info("Script %s (%s) registered with runtime %s", descriptor.id, name, descriptor.runtime)
        return descriptor

    def update(
        self,
        script_id: str,
        *,
        source: Optional[str] = None,
        name: Optional[str] = None,
        webhook_enabled: Optional[bool] = None,
        cron_enabled: Optional[bool] = None,
        cron_schedule: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> ScriptDescriptor:
        current = self.registry.find(script_id)
        will_cron = current.cron_enabled if cron_enabled is None else cron_enabled
        schedule = current.cron_schedule if cron_schedule is None else cron_schedule
        if will_cron:
            schedule = self.scheduler.validate(schedule)

        previous_source = None
        if source is not None:
            try:
                previous_source = self.store.read_entrypoint(current)
            except StorageError:
                logger.warning("Script %s has no readable source, it will be replaced", script_id)
            self.store.write_entrypoint(current, source)

        def mutate(descriptor: ScriptDescriptor) -> None:
            if name is not None:
                descriptor.name = name
            if webhook_enabled is not None:
                descriptor.webhook_enabled = webhook_enabled
            if cron_enabled is not None:
                descriptor.cron_enabled = cron_enabled
            descriptor.cron_schedule = schedule or None
            if timeout_ms is not None:
                descriptor.timeout_ms = timeout_ms

        try:
            updated = self.registry.update(script_id, mutate)
        except StorageError:
            if previous_source is not None:
                self.store.write_entrypoint(current, previous_source)
            raise
        schedule_changed = (
            updated.cron_enabled != current.cron_enabled
            or updated.cron_schedule != current.cron_schedule
        )
        if schedule_changed or (updated.cron_enabled and not self.scheduler.is_scheduled(script_id)):
            self.scheduler.reschedule(updated)
        logger.info("Script %s updated", script_id)
        return updated

    def delete(self, script_id: str) -> ScriptDescriptor:
        """Remove storage, cron task and registry entry together.

        Nothing here awaits, so no cron fire can run between the steps. A
        storage failure aborts before anything else changes.
        """
        descriptor = self.registry.find(script_id)
        self.store.remove_all(script_id)
        self.scheduler.unschedule(script_id)
        self.registry.remove(script_id)
        logger.info("Script %s deleted", script_id)
        return descriptor

    def trigger(
        self,
        script_id: str,
        arguments: Iterable[str] = (),
        payload: Optional[str] = None,
    ) -> asyncio.Task:
        descriptor = self._webhook_target(script_id)
        return self.executor.dispatch(descriptor, list(arguments), payload)

    async def run(
        self,
        script_id: str,
        arguments: Iterable[str] = (),
        payload: Optional[str] = None,
    ) -> InvocationOutcome:
        descriptor = self._webhook_target(script_id)
        return await self.executor.run(descriptor, list(arguments), payload)

    def runtimes(self) -> list[str]:
        return self.executor.launchers.runtimes()

    def _webhook_target(self, script_id: str) -> ScriptDescriptor:
        descriptor = self.registry.get(script_id)
        if descriptor is None:
            logger.error("Could not locate script %s in runtime", script_id)
            raise ScriptNotFoundError("The requested script could not be found.")
        if not descriptor.webhook_enabled:
            raise WebhookDisabledError("The requested script does not have webhooks enabled.")
        return descriptor
