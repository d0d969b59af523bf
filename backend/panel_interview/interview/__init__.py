# Interview module
from .phases import PhaseStateMachine, PHASE_ORDER
from .agents import InterviewerAgent, PERSONAS, build_panel
from .scoring import AnswerScorer
from .comparison import ComparisonEngine
from .scheduler import AgentScheduler, RotationPolicy, TurnState
from .state import InterviewSession, SessionRegistry
