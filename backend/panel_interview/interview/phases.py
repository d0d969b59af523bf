"""
Interview phase definitions and transition logic.
"""
from typing import Dict, List, Optional

from ..models.errors import ConfigurationError
from ..models.schemas import InterviewPhase, InterviewerRole, InterviewProgress, PHASE_ORDER
from ..utils.config import PhaseConfig, config, default_phases


def get_next_phase(current: InterviewPhase) -> Optional[InterviewPhase]:
    """
    Get the next phase in the interview progression.

    Returns:
        The next phase, or None when current is Completed
    """
    idx = PHASE_ORDER.index(current)
    if idx < len(PHASE_ORDER) - 1:
        return PHASE_ORDER[idx + 1]
    return None


def validate_phase_configs(phase_configs: List[PhaseConfig]):
    """Check that the table covers every non-terminal phase in order with sane bounds."""
    expected = PHASE_ORDER[:-1]
    phases = [c.phase for c in phase_configs]
    if phases != expected:
        raise ConfigurationError(
            f"Phase configs must list {[p.value for p in expected]} in order, got {[p.value for p in phases]}"
        )
    for c in phase_configs:
        if c.min_questions < 1 or c.max_questions < c.min_questions:
            raise ConfigurationError(
                f"Invalid question bounds for {c.phase.value}: min={c.min_questions}, max={c.max_questions}"
            )


class PhaseStateMachine:
    """
    Tracks the active interview phase and decides when to advance.
    Holds no knowledge of personas beyond each phase's configured primary role.
    """

    def __init__(
        self,
        phase_configs: Optional[List[PhaseConfig]] = None,
        advance_threshold: Optional[float] = None,
    ):
        phase_configs = phase_configs if phase_configs is not None else default_phases()
        validate_phase_configs(phase_configs)

        self._configs: Dict[InterviewPhase, PhaseConfig] = {c.phase: c for c in phase_configs}
        self.advance_threshold = (
            advance_threshold if advance_threshold is not None else config.interview.advance_threshold
        )

        self._current_phase = InterviewPhase.WARM_UP
        self._phase_question_count = 0
        self._total_question_count = 0

    @property
    def phase_configs(self) -> List[PhaseConfig]:
        return [self._configs[p] for p in PHASE_ORDER[:-1]]

    def config_for(self, phase: InterviewPhase) -> Optional[PhaseConfig]:
        return self._configs.get(phase)

    def current_phase(self) -> InterviewPhase:
        return self._current_phase

    def current_primary_role(self) -> Optional[InterviewerRole]:
        current = self.config_for(self._current_phase)
        return current.primary_role if current else None

    def is_completed(self) -> bool:
        return self._current_phase == InterviewPhase.COMPLETED

    def record_question(self) -> Optional[InterviewPhase]:
        """
        Count an answered question and force a transition at the phase maximum.

        Returns:
            The new phase if a transition occurred, otherwise None
        """
        self._phase_question_count += 1
        self._total_question_count += 1

        current = self.config_for(self._current_phase)
        if current is None:
            return None

        if self._phase_question_count >= current.max_questions:
            return self._advance_phase()
        return None

    def maybe_advance(self, score: float) -> Optional[InterviewPhase]:
        """
        Advance early on a strong answer once the phase minimum is met.

        Args:
            score: Latest answer score (0-10)

        Returns:
            The new phase if a transition occurred, otherwise None
        """
        current = self.config_for(self._current_phase)
        if current is None:
            return None

        if self._phase_question_count >= current.min_questions and score >= self.advance_threshold:
            return self._advance_phase()
        return None

    def _advance_phase(self) -> Optional[InterviewPhase]:
        next_phase = get_next_phase(self._current_phase)
        if next_phase is None:
            return None

        self._phase_question_count = 0
        self._current_phase = next_phase
        return next_phase

    def progress(self) -> InterviewProgress:
        return InterviewProgress(
            current_phase=self._current_phase,
            phase_question_count=self._phase_question_count,
            total_question_count=self._total_question_count,
            is_completed=self.is_completed(),
        )
