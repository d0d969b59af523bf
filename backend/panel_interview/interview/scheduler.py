"""
Agent scheduler for multi-persona interview rotation.
Decides whose turn it is and drives the question/answer protocol.
"""
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from ..models.errors import ConfigurationError, StateError, StateErrorKind
from ..models.schemas import (
    AnalysisResult,
    ConversationTurn,
    InterviewContext,
    InterviewPhase,
    InterviewProgress,
    TurnOutcome,
)
from .agents import InterviewerAgent
from .phases import PhaseStateMachine

logger = logging.getLogger(__name__)


class RotationPolicy(str, Enum):
    FIXED_ORDER = "fixed_order"  # Cycle through agents in order
    PHASE_BASED = "phase_based"  # The phase's primary role asks
    RANDOM = "random"


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"


@dataclass
class PendingTurn:
    """The open turn and the index of the agent that asked it."""
    agent_index: int
    turn: ConversationTurn


class AgentScheduler:
    """
    Owns the panel of agents and one PhaseStateMachine.

    State is Idle (no pending turn) or AwaitingAnswer (one open turn);
    execute_turn only succeeds from Idle and process_answer only from
    AwaitingAnswer. Context mutations are committed only after the
    generation call has returned to a still-active scheduler.
    """

    def __init__(
        self,
        agents: Sequence[InterviewerAgent],
        phase_machine: Optional[PhaseStateMachine] = None,
        policy: RotationPolicy = RotationPolicy.PHASE_BASED,
        strict_roles: bool = False,
        rng: Optional[random.Random] = None,
    ):
        if not agents:
            raise ConfigurationError("AgentScheduler needs at least one agent")

        self.agents: List[InterviewerAgent] = list(agents)
        self.phase_machine = phase_machine or PhaseStateMachine()
        self.policy = RotationPolicy(policy)
        self.rng = rng or random.Random()

        self._last_index: Optional[int] = None
        self._pending: Optional[PendingTurn] = None
        self._active = True

        if self.policy == RotationPolicy.PHASE_BASED and strict_roles:
            roles = {a.role() for a in self.agents}
            uncovered = [c.phase.value for c in self.phase_machine.phase_configs if c.primary_role not in roles]
            if uncovered:
                raise ConfigurationError(f"No agent for the primary role of phases: {', '.join(uncovered)}")

    # ========================================
    # State
    # ========================================

    @property
    def state(self) -> TurnState:
        return TurnState.AWAITING_ANSWER if self._pending is not None else TurnState.IDLE

    @property
    def is_active(self) -> bool:
        return self._active

    def close(self):
        """Deactivate the scheduler; late generation results are discarded."""
        self._active = False
        logger.info("Scheduler closed")

    def _check_active(self):
        if not self._active:
            raise StateError(StateErrorKind.SESSION_CLOSED, "Session has been closed")

    def current_agent(self) -> Optional[InterviewerAgent]:
        """The agent that owns the open turn, or the one that asked last."""
        if self._pending is not None:
            return self.agents[self._pending.agent_index]
        if self._last_index is not None:
            return self.agents[self._last_index]
        return None

    def progress(self) -> InterviewProgress:
        return self.phase_machine.progress()

    # ========================================
    # Rotation
    # ========================================

    def _select_index(self) -> int:
        """Pick the next agent according to the rotation policy."""
        n = len(self.agents)

        if self.policy == RotationPolicy.FIXED_ORDER:
            return 0 if self._last_index is None else (self._last_index + 1) % n

        if self.policy == RotationPolicy.RANDOM:
            return self.rng.randrange(n)

        target_role = self.phase_machine.current_primary_role()
        for idx, agent in enumerate(self.agents):
            if agent.role() == target_role:
                return idx

        logger.warning(
            f"No agent with role {target_role.value if target_role else None} for phase "
            f"{self.phase_machine.current_phase().value}; falling back to {self.agents[0].display_name()}"
        )
        return 0

    # ========================================
    # Turn protocol
    # ========================================

    def _check_can_ask(self, context: InterviewContext):
        self._check_active()
        if self._pending is not None or context.pending_turn() is not None:
            raise StateError(StateErrorKind.TURN_ALREADY_PENDING, "A question is already awaiting an answer")
        if self.phase_machine.is_completed():
            raise StateError(StateErrorKind.INTERVIEW_COMPLETED, "The interview is completed")

    def _commit_turn(self, context: InterviewContext, index: int, question: str) -> ConversationTurn:
        # A scheduler closed while the call was in flight must not touch the context
        self._check_active()
        agent = self.agents[index]
        turn = ConversationTurn(
            role=agent.role(),
            role_name=agent.display_name(),
            question=question,
            phase=self.phase_machine.current_phase(),
        )
        context.conversation_history.append(turn)
        context.current_phase = turn.phase
        self._pending = PendingTurn(agent_index=index, turn=turn)
        self._last_index = index
        logger.info(f"Turn opened: {agent.display_name()} in phase {turn.phase.value}")
        return turn

    def execute_turn(self, context: InterviewContext) -> ConversationTurn:
        """
        Select an agent and open a new turn with its question.

        Raises:
            StateError: a turn is already pending, the interview is completed
                or the scheduler is closed
            GenerationError: question generation failed (state stays Idle)
        """
        self._check_can_ask(context)
        index = self._select_index()
        question = self.agents[index].generate_question(context)
        return self._commit_turn(context, index, question)

    def stream_turn(self, context: InterviewContext) -> Tuple[InterviewerAgent, Iterator[str]]:
        """
        Like execute_turn, but the question arrives as text fragments.

        Preconditions are checked, the agent selected and the first fragment
        pulled before returning, so generation failures raise here rather
        than midway through a delivered stream. The turn is committed only
        after the stream completes; abandoning the iterator leaves the
        scheduler Idle.

        Returns:
            Tuple of (selected agent, fragment iterator)

        Raises:
            StateError: as for execute_turn
            GenerationError: the stream could not be started
        """
        self._check_can_ask(context)
        index = self._select_index()

        upstream = iter(self.agents[index].stream_question(context))
        first = next(upstream, None)
        return self.agents[index], self._stream_and_commit(context, index, first, upstream)

    def _stream_and_commit(
        self,
        context: InterviewContext,
        index: int,
        first: Optional[str],
        upstream: Iterator[str],
    ) -> Iterator[str]:
        fragments = []
        try:
            if first is not None:
                fragments.append(first)
                yield first
            for fragment in upstream:
                fragments.append(fragment)
                yield fragment
        finally:
            close = getattr(upstream, "close", None)
            if close is not None:
                close()
        self._commit_turn(context, index, "".join(fragments))

    def process_answer(
        self,
        context: InterviewContext,
        answer: str,
        retry_degraded: bool = False,
    ) -> TurnOutcome:
        """
        Grade the answer to the open turn and update the phase machine.

        Args:
            context: The session's interview context
            answer: The candidate's answer text
            retry_degraded: Re-run a degraded analysis once before accepting it

        Raises:
            StateError: no pending turn or the scheduler is closed
            GenerationError: analysis failed (the turn stays open)
        """
        self._check_active()
        pending = self._pending
        if pending is None:
            raise StateError(StateErrorKind.NO_PENDING_TURN, "No question is awaiting an answer")

        # The persona that asked is the one that grades
        agent = self.agents[pending.agent_index]
        analysis = agent.analyze_answer(pending.turn.question, answer, context)
        if analysis.degraded and retry_degraded:
            logger.info(f"{agent.display_name()}: retrying degraded analysis once")
            analysis = agent.analyze_answer(pending.turn.question, answer, context)

        self._check_active()
        return self._close_turn(context, pending, answer, analysis)

    def _close_turn(
        self,
        context: InterviewContext,
        pending: PendingTurn,
        answer: str,
        analysis: AnalysisResult,
    ) -> TurnOutcome:
        pending.turn.answer = answer
        pending.turn.analysis = analysis
        pending.turn.degraded = analysis.degraded
        self._pending = None

        transition = self.phase_machine.record_question()
        if transition is None:
            transition = self.phase_machine.maybe_advance(analysis.score)
        context.current_phase = self.phase_machine.current_phase()

        if transition is not None:
            logger.info(f"Phase transition -> {transition.value}")
        if transition == InterviewPhase.COMPLETED:
            logger.info("Interview completed")

        return TurnOutcome(analysis=analysis, phase_transition=transition)

    def should_follow_up(self, answer: str, analysis: AnalysisResult) -> bool:
        """Ask the persona that owns the current (or last) turn."""
        agent = self.current_agent()
        return agent.should_follow_up(answer, analysis) if agent else False
