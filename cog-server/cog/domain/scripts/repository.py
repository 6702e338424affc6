"""Protocol for script persistence"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from .models import ScriptDescriptor


class ScriptStore(Protocol):
    def load_all(self) -> Sequence[ScriptDescriptor]:
        ...

    def create(self, descriptor: ScriptDescriptor, source: str) -> None:
        ...

    def write_descriptor(self, descriptor: ScriptDescriptor) -> None:
        ...

    def write_entrypoint(self, descriptor: ScriptDescriptor, source: str) -> None:
        ...

    def read_entrypoint(self, descriptor: ScriptDescriptor) -> str:
        ...

    def entrypoint_path(self, descriptor: ScriptDescriptor) -> Path:
        ...

    def remove_all(self, script_id: str) -> None:
        ...
