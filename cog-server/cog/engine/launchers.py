"""Runtime launchers: which command starts a script and what its entrypoint is called."""

from __future__ import annotations

from dataclasses import dataclass

from cog.core.config import ExecutionSettings
from cog.domain.scripts.exceptions import UnsupportedRuntimeError
from cog.domain.scripts.models import RuntimeKind


@dataclass(frozen=True, slots=True)
class Launcher:
    runtime: RuntimeKind
    command: tuple[str, ...]
    entrypoint: str

    def argv(self, entrypoint_path: str, arguments: list[str]) -> list[str]:
        return [*self.command, entrypoint_path, *arguments]


class LauncherTable:
    def __init__(self, launchers: dict[str, Launcher]) -> None:
        self._launchers = launchers

    @classmethod
    def from_settings(cls, settings: ExecutionSettings) -> "LauncherTable":
        return cls(
            {
                RuntimeKind.NODEJS.value: Launcher(RuntimeKind.NODEJS, (settings.node_binary,), "app.js"),
                # -u keeps the child's stdout unbuffered so prompts reach the signal scanner
                RuntimeKind.PYTHON.value: Launcher(RuntimeKind.PYTHON, (settings.python_binary, "-u"), "main.py"),
            }
        )

    def supports(self, runtime: str) -> bool:
        return runtime in self._launchers

    def resolve(self, runtime: str) -> Launcher:
        launcher = self._launchers.get(runtime)
        if launcher is None:
            raise UnsupportedRuntimeError(f"Runtime {runtime!r} is not supported")
        return launcher

    def runtimes(self) -> list[str]:
        return list(self._launchers)
