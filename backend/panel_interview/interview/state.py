"""
Interview sessions and the registry exposing the session operations.
Each session owns one InterviewContext and one AgentScheduler; sessions
share no mutable state.
"""
import logging
import random
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..models.errors import SessionNotFound, StateError, StateErrorKind
from ..models.schemas import (
    AnswerResponse,
    ComparisonResult,
    ConversationTurn,
    InterviewContext,
    InterviewProgress,
    QuestionResponse,
)
from ..utils.config import config
from .agents import InterviewerAgent, build_panel
from .comparison import ComparisonEngine
from .phases import PhaseStateMachine
from .scheduler import AgentScheduler, RotationPolicy

logger = logging.getLogger(__name__)

AgentFactory = Callable[[], List[InterviewerAgent]]


class LockedStream:
    """
    Fragment iterator that holds a session's call lock.

    The lock is released exactly once: when the fragments run out, when
    iteration raises, or on close(), including a close() before the first
    fragment was pulled.
    """

    def __init__(self, fragments: Iterator[str], lock: threading.Lock):
        self._fragments = fragments
        self._lock = lock
        self._released = False
        self._guard = threading.Lock()

    def __iter__(self) -> "LockedStream":
        return self

    def __next__(self) -> str:
        if self._released:
            raise StopIteration
        try:
            return next(self._fragments)
        except BaseException:
            self.close()
            raise

    def close(self):
        with self._guard:
            if self._released:
                return
            self._released = True
        try:
            close = getattr(self._fragments, "close", None)
            if close is not None:
                close()
        finally:
            self._lock.release()

    def __del__(self):
        self.close()


class InterviewSession:
    """
    One interview: its context, its scheduler and a non-blocking call lock.
    Overlapping calls are rejected, not queued.
    """

    def __init__(self, context: InterviewContext, scheduler: AgentScheduler, session_id: Optional[str] = None):
        self.session_id = session_id or f"session-{uuid.uuid4().hex[:12]}"
        self.context = context
        self.scheduler = scheduler
        self.start_time = datetime.now()
        self.end_time: Optional[datetime] = None
        self._call_lock = threading.Lock()

    @contextmanager
    def _exclusive(self):
        if not self._call_lock.acquire(blocking=False):
            raise StateError(StateErrorKind.CALL_IN_PROGRESS, "Another call is in progress for this session")
        try:
            yield
        finally:
            self._call_lock.release()

    def next_question(self) -> QuestionResponse:
        with self._exclusive():
            turn = self.scheduler.execute_turn(self.context)
        return QuestionResponse(
            role=turn.role,
            display_name=turn.role_name,
            question_text=turn.question,
            phase=turn.phase,
        )

    def stream_question(self) -> Tuple[InterviewerAgent, LockedStream]:
        """
        Start a streamed question. The call lock is held until the returned
        stream is exhausted or closed.
        """
        if not self._call_lock.acquire(blocking=False):
            raise StateError(StateErrorKind.CALL_IN_PROGRESS, "Another call is in progress for this session")
        try:
            agent, fragments = self.scheduler.stream_turn(self.context)
        except Exception:
            self._call_lock.release()
            raise
        return agent, LockedStream(fragments, self._call_lock)

    def submit_answer(self, answer: str, retry_degraded: Optional[bool] = None) -> AnswerResponse:
        if retry_degraded is None:
            retry_degraded = config.interview.retry_degraded_analysis
        with self._exclusive():
            outcome = self.scheduler.process_answer(self.context, answer, retry_degraded=retry_degraded)
        if self.scheduler.progress().is_completed and self.end_time is None:
            self.end_time = datetime.now()
        return AnswerResponse(analysis=outcome.analysis, phase_transition=outcome.phase_transition)

    def progress(self) -> InterviewProgress:
        return self.scheduler.progress()

    def history(self) -> List[ConversationTurn]:
        return list(self.context.conversation_history)

    def close(self):
        self.scheduler.close()
        self.end_time = self.end_time or datetime.now()

    def get_status(self) -> Dict[str, Any]:
        """Get current interview status."""
        progress = self.progress()
        end = self.end_time or datetime.now()
        return {
            "session_id": self.session_id,
            "phase": progress.current_phase.value,
            "turn_state": self.scheduler.state.value,
            "phase_question_count": progress.phase_question_count,
            "total_question_count": progress.total_question_count,
            "duration_minutes": round((end - self.start_time).total_seconds() / 60, 1),
            "is_completed": progress.is_completed,
        }


class SessionRegistry:
    """
    Creates sessions and routes the exposed operations to them.
    """

    def __init__(
        self,
        agent_factory: Optional[AgentFactory] = None,
        comparison_engine: Optional[ComparisonEngine] = None,
        policy: Optional[RotationPolicy] = None,
        strict_roles: Optional[bool] = None,
    ):
        self.agent_factory = agent_factory or build_panel
        self.comparison_engine = comparison_engine or ComparisonEngine()
        self.policy = RotationPolicy(policy or config.interview.rotation_policy)
        self.strict_roles = config.interview.strict_roles if strict_roles is None else strict_roles
        self._sessions: Dict[str, InterviewSession] = {}
        self._lock = threading.Lock()

    def _new_scheduler(self) -> AgentScheduler:
        phase_machine = PhaseStateMachine(
            phase_configs=config.interview.phases,
            advance_threshold=config.interview.advance_threshold,
        )
        rng = None
        if config.interview.random_seed is not None:
            rng = random.Random(config.interview.random_seed)
        return AgentScheduler(
            self.agent_factory(),
            phase_machine=phase_machine,
            policy=self.policy,
            strict_roles=self.strict_roles,
            rng=rng,
        )

    def start_session(self, resume: str, job_description: str) -> str:
        """Create a session and return its handle."""
        session = InterviewSession(
            context=InterviewContext(resume=resume, job_description=job_description),
            scheduler=self._new_scheduler(),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Session started: {session.session_id} (policy={self.policy.value})")
        return session.session_id

    def get(self, session_id: str) -> InterviewSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def next_question(self, session_id: str) -> QuestionResponse:
        return self.get(session_id).next_question()

    def stream_question(self, session_id: str) -> Tuple[InterviewerAgent, LockedStream]:
        return self.get(session_id).stream_question()

    def submit_answer(self, session_id: str, answer_text: str, retry_degraded: Optional[bool] = None) -> AnswerResponse:
        return self.get(session_id).submit_answer(answer_text, retry_degraded=retry_degraded)

    def progress(self, session_id: str) -> InterviewProgress:
        return self.get(session_id).progress()

    def history(self, session_id: str) -> List[ConversationTurn]:
        return self.get(session_id).history()

    def end_session(self, session_id: str) -> InterviewSession:
        """Close and forget a session. In-flight results for it are discarded."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(session_id)
        session.close()
        logger.info(f"Session ended: {session_id}")
        return session

    def compare_answer(self, question: str, candidate_answer: str, reference_answer: str) -> ComparisonResult:
        return self.comparison_engine.compare(question, candidate_answer, reference_answer)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
