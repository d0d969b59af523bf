# Models module
from .schemas import InterviewPhase, InterviewerRole, PHASE_ORDER
from .errors import (
    InterviewError,
    StateError,
    StateErrorKind,
    GenerationError,
    RetrievalError,
    ParseError,
    ConfigurationError,
    SessionNotFound,
)
