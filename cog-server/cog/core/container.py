"""Simple dependency container for wiring core services."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cog.core.config import Settings
from cog.domain.scripts import ScriptRegistry, ScriptService
from cog.engine import CronScheduler, ScriptExecutor
from cog.infrastructure.storage import FileScriptStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    store: FileScriptStore
    registry: ScriptRegistry
    executor: ScriptExecutor
    scheduler: CronScheduler
    service: ScriptService

    async def startup(self) -> None:
        """Create storage and load every persisted script into the runtime."""
        self.store.ensure_storage()
        loaded = self.service.load_all()
        logger.info("Loaded %s script(s) from %s", loaded, self.store.root)

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        await self.executor.shutdown()
        self.registry.clear()


def build_container(settings: Settings) -> ApplicationContainer:
    store = FileScriptStore(settings.data_dir)
    registry = ScriptRegistry(store)
    executor = ScriptExecutor.from_settings(store, settings.execution)
    scheduler = CronScheduler(registry, executor)
    service = ScriptService(
        store=store,
        registry=registry,
        executor=executor,
        scheduler=scheduler,
        default_timeout_ms=settings.default_timeout_ms,
    )
    return ApplicationContainer(
        settings=settings,
        store=store,
        registry=registry,
        executor=executor,
        scheduler=scheduler,
        service=service,
    )


__all__ = ["ApplicationContainer", "build_container"]
