"""
Pydantic models shared across the panel interview system.
Covers phases, personas, conversation turns, analysis and comparison results,
and the request/response envelopes used by the API.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InterviewPhase(str, Enum):
    WARM_UP = "warm_up"
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    BUSINESS = "business"
    QUESTIONS = "questions"
    COMPLETED = "completed"

    @classmethod
    def get_order(cls) -> List["InterviewPhase"]:
        return list(PHASE_ORDER)


# Phase order for progression (Completed is terminal)
PHASE_ORDER = [
    InterviewPhase.WARM_UP,
    InterviewPhase.TECHNICAL,
    InterviewPhase.BEHAVIORAL,
    InterviewPhase.BUSINESS,
    InterviewPhase.QUESTIONS,
    InterviewPhase.COMPLETED,
]


class InterviewerRole(str, Enum):
    TECHNICAL = "technical"
    HR = "hr"
    BUSINESS = "business"


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One message of the conversation sent to the generation service."""
    speaker: Speaker
    text: str


class AnalysisResult(BaseModel):
    """Grading of a single answer. Immutable once produced."""
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=10.0)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    summary: str = ""
    degraded: bool = False  # parse-failure fallback


class ConversationTurn(BaseModel):
    """One question/answer/analysis unit. Who asked what, and in which phase, never changes."""
    role: InterviewerRole = Field(frozen=True)
    role_name: str = Field(frozen=True)
    question: str = Field(frozen=True)
    phase: InterviewPhase = Field(frozen=True)
    answer: Optional[str] = None
    analysis: Optional[AnalysisResult] = None
    degraded: bool = False

    @property
    def is_pending(self) -> bool:
        return self.answer is None


class InterviewContext(BaseModel):
    """Everything known about one session's interview."""
    resume: str
    job_description: str
    conversation_history: List[ConversationTurn] = Field(default_factory=list)
    current_phase: InterviewPhase = InterviewPhase.WARM_UP

    def pending_turn(self) -> Optional[ConversationTurn]:
        if self.conversation_history and self.conversation_history[-1].is_pending:
            return self.conversation_history[-1]
        return None

    def answered_turns(self) -> List[ConversationTurn]:
        return [t for t in self.conversation_history if not t.is_pending]


class InterviewProgress(BaseModel):
    current_phase: InterviewPhase
    phase_question_count: int
    total_question_count: int
    is_completed: bool


class TurnOutcome(BaseModel):
    """Result of processing an answer: the grade plus any phase change."""
    analysis: AnalysisResult
    phase_transition: Optional[InterviewPhase] = None


class MatchStatus(str, Enum):
    MATCHED = "matched"
    PARTIAL = "partial"
    MISSING = "missing"


class PointComparison(BaseModel):
    aspect: str
    reference_point: str = ""
    candidate_point: str = ""
    match_status: MatchStatus
    suggestion: str = ""


class ComparisonResult(BaseModel):
    overall_match: float = Field(ge=0.0, le=1.0)
    comparisons: List[PointComparison] = Field(default_factory=list)
    missing_points: List[str] = Field(default_factory=list)
    extra_points: List[str] = Field(default_factory=list)


class RetrievedItem(BaseModel):
    score: float
    id: str
    payload: str
    content_type: Optional[str] = None


class KnowledgeItem(BaseModel):
    content_type: str  # question | answer | jd
    content: str
    metadata: Optional[str] = None


class KnowledgeImportResult(BaseModel):
    success_count: int = 0
    fail_count: int = 0
    errors: List[str] = Field(default_factory=list)


class BootstrapProgress(BaseModel):
    current: int
    total: int
    status: str
    category: str


class BootstrapResult(BaseModel):
    total_questions: int = 0
    total_answers: int = 0
    total_templates: int = 0
    success: bool = True
    message: str = ""
    failed_items: List[str] = Field(default_factory=list)


class KnowledgeStatus(BaseModel):
    is_empty: bool
    question_count: int = 0
    answer_count: int = 0


# ============================================================
# API envelopes
# ============================================================

class StartSessionRequest(BaseModel):
    resume: str = Field(min_length=1)
    job_description: str = Field(min_length=1)


class StartSessionResponse(BaseModel):
    session_id: str
    phase: InterviewPhase
    phases: List[InterviewPhase]


class QuestionResponse(BaseModel):
    role: InterviewerRole
    display_name: str
    question_text: str
    phase: InterviewPhase


class AnswerRequest(BaseModel):
    answer_text: str = Field(min_length=1)


class AnswerResponse(BaseModel):
    analysis: AnalysisResult
    phase_transition: Optional[InterviewPhase] = None


class CompareRequest(BaseModel):
    question: str
    candidate_answer: str
    reference_answer: str
