"""Error types raised by the session engine.

None of these are fatal to the host process. ``SessionAlreadyRunningError``
and ``InvalidSessionDefinitionError`` are raised back to the caller of
``SessionController.start``; the other two are caught inside the engine,
logged, and surfaced through events or the controller's restore report.
"""

from __future__ import annotations

from typing import Any, Optional


class SessionError(RuntimeError):
    """Base class for session engine errors."""


class SessionAlreadyRunningError(SessionError):
    """``start`` was called while a session is active. Stop it first."""

    def __init__(self, running_id: Optional[str] = None):
        self.running_id = running_id
        if running_id:
            super().__init__(f"A session is already running ({running_id}). Stop it first.")
        else:
            super().__init__("A session is already running. Stop it first.")


class InvalidSessionDefinitionError(SessionError, ValueError):
    """Definition failed validation; nothing was mutated."""


class EffectCollaboratorUnavailable(SessionError):
    """The presentation layer cannot provide the resource an effect needs."""

    def __init__(self, effect: Any, reason: str = ""):
        self.effect = effect
        self.reason = reason
        name = getattr(effect, "value", effect)
        msg = f"Effect '{name}' unavailable"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class RestoreWriteFailure(SessionError):
    """A single ambient field could not be written back after a session."""

    def __init__(self, field_name: str, value: Any, cause: BaseException):
        self.field_name = field_name
        self.value = value
        self.cause = cause
        super().__init__(f"Failed to restore {field_name}={value!r}: {cause}")
