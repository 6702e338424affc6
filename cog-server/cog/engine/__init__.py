"""Script execution engine: launchers, executor and cron scheduler."""

from .executor import Invocation, ScriptExecutor, SignalScanner
from .launchers import Launcher, LauncherTable
from .scheduler import CronScheduler

__all__ = [
    "CronScheduler",
    "Invocation",
    "Launcher",
    "LauncherTable",
    "ScriptExecutor",
    "SignalScanner",
]
