"""Domain representations for scripts and their invocations."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

DEFAULT_TIMEOUT_MS = 30000
DESCRIPTOR_FILE_NAME = ".cog"

_TRUTHY = {"1", "true", "on", "yes"}


class RuntimeKind(str, Enum):
    """Process launchers a script can be registered with."""

    NODEJS = "nodejs"
    PYTHON = "python"


def now_epoch() -> int:
    return int(time.time())


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in _TRUTHY


@dataclass(slots=True)
class ScriptDescriptor:
    id: str
    name: str
    runtime: str
    entrypoint: str
    created: int
    updated: int
    webhook_enabled: bool = False
    cron_enabled: bool = False
    cron_schedule: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_mapping(cls, payload: dict[str, Any]) -> "ScriptDescriptor":
        """Build a descriptor from its persisted JSON form.

        Raises KeyError, TypeError or ValueError when required fields are
        missing or malformed; callers treat those as an unreadable record.
        """
        script_id = str(payload["id"])
        entrypoint = payload["entrypoint"]
        if not script_id or not entrypoint:
            raise ValueError("descriptor requires id and entrypoint")
        cron_schedule = payload.get("cronSchedule")
        created = int(payload.get("created") or now_epoch())
        return cls(
            id=script_id,
            name=str(payload.get("name") or ""),
            runtime=str(payload["runtime"]),
            entrypoint=str(entrypoint),
            created=created,
            updated=int(payload.get("updated") or created),
            webhook_enabled=parse_flag(payload.get("webhook")),
            cron_enabled=parse_flag(payload.get("cron")),
            cron_schedule=str(cron_schedule).strip() if cron_schedule else None,
            timeout_ms=int(payload.get("timeout") or DEFAULT_TIMEOUT_MS),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created": self.created,
            "updated": self.updated,
            "name": self.name,
            "runtime": self.runtime,
            "webhook": self.webhook_enabled,
            "cron": self.cron_enabled,
            "cronSchedule": self.cron_schedule,
            "entrypoint": self.entrypoint,
            "timeout": self.timeout_ms,
        }


@dataclass(slots=True, frozen=True)
class ScriptSummary:
    id: str
    name: str
    runtime: str


class InvocationState(str, Enum):
    SPAWNED = "spawned"
    AWAITING_SIGNAL = "awaiting_signal"
    SIGNAL_SENT = "signal_sent"
    EXITED = "exited"
    TIMED_OUT = "timed_out"


class OutcomeStatus(str, Enum):
    EXITED = "exited"
    KILLED = "killed"


@dataclass(slots=True)
class InvocationOutcome:
    """Terminal result of one invocation."""

    script_id: str
    exit_code: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool
    signal_sent: bool
    started_at: float
    finished_at: float

    @property
    def status(self) -> OutcomeStatus:
        return OutcomeStatus.KILLED if self.timed_out else OutcomeStatus.EXITED

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at) * 1000)
