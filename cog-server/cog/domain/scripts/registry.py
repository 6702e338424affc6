"""In-memory index of every registered script."""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Optional

from .exceptions import DuplicateScriptError, ScriptNotFoundError
from .models import ScriptDescriptor, ScriptSummary, now_epoch
from .repository import ScriptStore

logger = logging.getLogger(__name__)


class ScriptRegistry:
    """Single owner of the descriptors the engine may execute or schedule.

    Mutations happen on the event loop only, one request at a time; the
    scheduler and the HTTP layer look descriptors up by id and never keep
    their own copies.
    """

    def __init__(self, store: ScriptStore) -> None:
        self._store = store
        self._scripts: dict[str, ScriptDescriptor] = {}

    def __contains__(self, script_id: object) -> bool:
        return script_id in self._scripts

    def __len__(self) -> int:
        return len(self._scripts)

    def register(self, descriptor: ScriptDescriptor) -> None:
        if descriptor.id in self._scripts:
            raise DuplicateScriptError(f"Script {descriptor.id} is already registered")
        self._scripts[descriptor.id] = descriptor
        logger.debug("Script %s added to registry", descriptor.id)

    def get(self, script_id: str) -> Optional[ScriptDescriptor]:
        return self._scripts.get(script_id)

    def find(self, script_id: str) -> ScriptDescriptor:
        descriptor = self._scripts.get(script_id)
        if descriptor is None:
            raise ScriptNotFoundError("The requested script could not be found.")
        return descriptor

    def list(self) -> list[ScriptSummary]:
        return [
            ScriptSummary(id=item.id, name=item.name, runtime=item.runtime)
            for item in self._scripts.values()
        ]

    def remove(self, script_id: str) -> ScriptDescriptor:
        descriptor = self._scripts.pop(script_id, None)
        if descriptor is None:
            raise ScriptNotFoundError("The requested script could not be found.")
        logger.debug("Script %s removed from registry", script_id)
        return descriptor

    def update(
        self,
        script_id: str,
        mutator: Callable[[ScriptDescriptor], None],
    ) -> ScriptDescriptor:
        current = self.find(script_id)
        candidate = dataclasses.replace(current)
        mutator(candidate)
        candidate.id = current.id
        candidate.updated = now_epoch()
        # persist before swapping so a failed write leaves the old record in place
        self._store.write_descriptor(candidate)
        self._scripts[script_id] = candidate
        return candidate

    def clear(self) -> None:
        self._scripts.clear()
