"""
Error taxonomy for the interview core.
"""
from enum import Enum


class InterviewError(Exception):
    """Base class for all interview core errors."""


class StateErrorKind(str, Enum):
    TURN_ALREADY_PENDING = "turn_already_pending"
    NO_PENDING_TURN = "no_pending_turn"
    INTERVIEW_COMPLETED = "interview_completed"
    SESSION_CLOSED = "session_closed"
    CALL_IN_PROGRESS = "call_in_progress"


class StateError(InterviewError):
    """Invalid call sequence. Indicates caller misuse; never retried."""

    def __init__(self, kind: StateErrorKind, message: str = ""):
        self.kind = kind
        super().__init__(message or kind.value.replace("_", " "))


class GenerationError(InterviewError):
    """Transport, timeout or credential failure from the generation service."""


class RetrievalError(InterviewError):
    """Knowledge index failure. Treated as zero results by the retriever."""


class ParseError(InterviewError):
    """Structured output from the generation service did not match its schema."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(message)


class ConfigurationError(InterviewError):
    """Invalid phase table, agent set or service settings."""


class SessionNotFound(KeyError):
    """No session registered under the given id."""
