"""Script domain specific exceptions."""


class ScriptError(Exception):
    """Base class for script related domain errors."""


class ScriptNotFoundError(ScriptError):
    """Raised when the requested script is not in the registry."""


class DuplicateScriptError(ScriptError):
    """Raised when registering a script whose id is already registered."""


class WebhookDisabledError(ScriptError):
    """Raised when an external trigger targets a script without webhooks enabled."""


class UnsupportedRuntimeError(ScriptError):
    """Raised when a script names a runtime that has no launcher."""


class InvalidCronExpressionError(ScriptError):
    """Raised when a cron schedule cannot be parsed."""


class SpawnError(ScriptError):
    """Raised when the child process for an invocation could not be started."""


class ConcurrencyLimitError(ScriptError):
    """Raised when a script already has the maximum number of running invocations."""


class StorageError(ScriptError):
    """Raised when script files cannot be read from or written to disk."""
