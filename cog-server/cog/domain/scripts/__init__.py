"""Domain layer for registered scripts."""

from .exceptions import (
    ConcurrencyLimitError,
    DuplicateScriptError,
    InvalidCronExpressionError,
    ScriptError,
    ScriptNotFoundError,
    SpawnError,
    StorageError,
    UnsupportedRuntimeError,
    WebhookDisabledError,
)
from .models import (
    InvocationOutcome,
    InvocationState,
    OutcomeStatus,
    RuntimeKind,
    ScriptDescriptor,
    ScriptSummary,
)
from .registry import ScriptRegistry
from .service import ScriptService, format_arguments

__all__ = [
    "ScriptDescriptor",
    "ScriptSummary",
    "RuntimeKind",
    "InvocationOutcome",
    "InvocationState",
    "OutcomeStatus",
    "ScriptRegistry",
    "ScriptService",
    "format_arguments",
    "ScriptError",
    "ScriptNotFoundError",
    "DuplicateScriptError",
    "WebhookDisabledError",
    "UnsupportedRuntimeError",
    "InvalidCronExpressionError",
    "SpawnError",
    "ConcurrencyLimitError",
    "StorageError",
]
