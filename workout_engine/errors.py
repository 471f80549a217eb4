"""
Error types surfaced to callers of the workout engine.

Provider failures and safety violations never appear here: they are absorbed
by the deterministic fallback. Only configuration and input problems are
raised.
"""


class WorkoutEngineError(Exception):
    """Base class for errors the engine reports to its caller."""

    code = "ENGINE_ERROR"

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class ConfigurationError(WorkoutEngineError):
    """Missing credentials, unreadable config, or incomplete limit tables."""

    code = "CONFIG_ERROR"


class InputError(WorkoutEngineError):
    """Malformed request rejected before any provider call."""

    code = "INVALID_INPUT"
