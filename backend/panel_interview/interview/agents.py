"""
Interviewer personas for the panel.
One InterviewerAgent implementation serves all roles; the personas differ
only in their fixed instructions, target model and follow-up thresholds.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..llm.client import llm_client
from ..llm.prompts import (
    BUSINESS_ANALYSIS_INSTRUCTION,
    BUSINESS_INSTRUCTION,
    HR_ANALYSIS_INSTRUCTION,
    HR_INSTRUCTION,
    TECHNICAL_ANALYSIS_INSTRUCTION,
    TECHNICAL_INSTRUCTION,
    Prompts,
)
from ..memory.rag import KnowledgeRetriever, knowledge_retriever
from ..models.errors import RetrievalError
from ..models.schemas import (
    AnalysisResult,
    ChatMessage,
    InterviewContext,
    InterviewerRole,
    RetrievedItem,
    Speaker,
)
from ..utils.config import config
from .scoring import AnswerScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersonaProfile:
    """Static identity and tuning of one interviewer persona."""
    role: InterviewerRole
    display_name: str
    question_instruction: str
    analysis_instruction: str
    # Follow up when the score is below this or the answer is shorter than min_answer_length
    follow_up_score: float
    min_answer_length: int
    knowledge_type: Optional[str] = "question"


PERSONAS: Dict[InterviewerRole, PersonaProfile] = {
    InterviewerRole.TECHNICAL: PersonaProfile(
        role=InterviewerRole.TECHNICAL,
        display_name="Technical Interviewer",
        question_instruction=TECHNICAL_INSTRUCTION,
        analysis_instruction=TECHNICAL_ANALYSIS_INSTRUCTION,
        follow_up_score=7.0,
        min_answer_length=100,
    ),
    InterviewerRole.HR: PersonaProfile(
        role=InterviewerRole.HR,
        display_name="HR Interviewer",
        question_instruction=HR_INSTRUCTION,
        analysis_instruction=HR_ANALYSIS_INSTRUCTION,
        follow_up_score=7.5,
        min_answer_length=150,
    ),
    InterviewerRole.BUSINESS: PersonaProfile(
        role=InterviewerRole.BUSINESS,
        display_name="Business Interviewer",
        question_instruction=BUSINESS_INSTRUCTION,
        analysis_instruction=BUSINESS_ANALYSIS_INSTRUCTION,
        follow_up_score=7.5,
        min_answer_length=120,
    ),
}

DEFAULT_PANEL = (InterviewerRole.TECHNICAL, InterviewerRole.HR, InterviewerRole.BUSINESS)


class InterviewerAgent:
    """
    Generates persona-flavored questions and grades answers.
    """

    def __init__(
        self,
        role: InterviewerRole,
        llm=None,
        retriever: Optional[KnowledgeRetriever] = None,
        model: Optional[str] = None,
    ):
        self.profile = PERSONAS[role]
        self.llm = llm if llm is not None else llm_client
        self.retriever = retriever if retriever is not None else knowledge_retriever
        self.model = model or config.llm.model_for(role)

    def role(self) -> InterviewerRole:
        return self.profile.role

    def display_name(self) -> str:
        return self.profile.display_name

    def __repr__(self) -> str:
        return f"InterviewerAgent(role={self.profile.role.value}, model={self.model})"

    def _retrieve(self, context: InterviewContext) -> List[RetrievedItem]:
        """Best-effort knowledge lookup; any retrieval failure means no items."""
        try:
            return self.retriever.top_k(
                context.job_description,
                config.memory.rag_top_k,
                content_type=self.profile.knowledge_type,
            )
        except RetrievalError as e:
            logger.warning(f"{self.profile.display_name}: retrieval failed, using resume/JD only: {e}")
            return []

    @staticmethod
    def _history_messages(context: InterviewContext) -> List[ChatMessage]:
        """Prior answered turns as interviewer/candidate message pairs."""
        turns = context.answered_turns()[-config.memory.short_term_turns:]
        messages = []
        for turn in turns:
            messages.append(ChatMessage(speaker=Speaker.ASSISTANT, text=turn.question))
            messages.append(ChatMessage(speaker=Speaker.USER, text=turn.answer))
        return messages

    def build_question_conversation(
        self,
        context: InterviewContext,
        retrieved: List[RetrievedItem],
    ) -> List[ChatMessage]:
        prompt = Prompts.question_request(
            resume=context.resume,
            job_description=context.job_description,
            retrieved=retrieved,
            phase=context.current_phase,
            reference_context=KnowledgeRetriever.build_context(retrieved, config.memory.context_max_length),
        )
        return self._history_messages(context) + [ChatMessage(speaker=Speaker.USER, text=prompt)]

    def generate_question(self, context: InterviewContext) -> str:
        """
        Generate the next question for this persona.

        The generated text is returned as-is; GenerationError propagates.
        """
        retrieved = self._retrieve(context)
        logger.info(
            f"{self.profile.display_name} generating question "
            f"(phase={context.current_phase.value}, retrieved={len(retrieved)})"
        )
        return self.llm.complete(
            self.profile.question_instruction,
            self.build_question_conversation(context, retrieved),
            model=self.model,
        )

    def stream_question(self, context: InterviewContext):
        """Same request as generate_question, yielded as text fragments."""
        retrieved = self._retrieve(context)
        return self.llm.stream(
            self.profile.question_instruction,
            self.build_question_conversation(context, retrieved),
            model=self.model,
        )

    def analyze_answer(self, question: str, answer: str, context: InterviewContext) -> AnalysisResult:
        """
        Grade an answer.

        Unparseable output yields the degraded fallback (score 5.0, summary =
        raw text, degraded=True). GenerationError propagates.
        """
        response = self.llm.complete(
            self.profile.analysis_instruction,
            [ChatMessage(speaker=Speaker.USER, text=Prompts.analysis_request(question, answer))],
            model=self.model,
            temperature=config.llm.analysis_temperature,
        )

        analysis, error = AnswerScorer.parse_analysis(response)
        if error is not None:
            logger.warning(f"{self.profile.display_name}: analysis parse failed, using fallback: {error}")
            return AnswerScorer.fallback_analysis(response)
        return analysis

    def should_follow_up(self, answer: str, analysis: AnalysisResult) -> bool:
        """Recommend a follow-up for weak or short answers."""
        return analysis.score < self.profile.follow_up_score or len(answer) < self.profile.min_answer_length


def build_panel(
    llm=None,
    retriever: Optional[KnowledgeRetriever] = None,
    roles: Sequence[InterviewerRole] = DEFAULT_PANEL,
) -> List[InterviewerAgent]:
    """Create one agent per role, in the given order."""
    return [InterviewerAgent(role, llm=llm, retriever=retriever) for role in roles]
