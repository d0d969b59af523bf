"""
Answer comparison agent: point-by-point diff between a candidate answer and
a reference answer.
"""
import logging
from typing import Optional

from ..llm.client import llm_client
from ..llm.prompts import COMPARISON_INSTRUCTION, Prompts
from ..models.schemas import ChatMessage, ComparisonResult, Speaker
from ..utils.config import config
from .scoring import AnswerScorer

logger = logging.getLogger(__name__)


class ComparisonEngine:
    """
    Runs on demand, outside the turn protocol. Parse failures are raised,
    never degraded: there is no safe default for a diagnostic comparison.
    """

    def __init__(self, llm=None, model: Optional[str] = None):
        self.llm = llm if llm is not None else llm_client
        self.model = model or config.llm.comparison_model

    def compare(self, question: str, candidate_answer: str, reference_answer: str) -> ComparisonResult:
        """
        Compare a candidate answer with a reference answer.

        Raises:
            GenerationError: the generation service failed
            ParseError: the response did not match the comparison shape
        """
        prompt = Prompts.comparison_request(question, candidate_answer, reference_answer)
        response = self.llm.complete(
            COMPARISON_INSTRUCTION,
            [ChatMessage(speaker=Speaker.USER, text=prompt)],
            model=self.model,
            temperature=config.llm.analysis_temperature,
        )

        result, error = AnswerScorer.parse_comparison(response)
        if error is not None:
            logger.warning(f"Comparison parse failed: {error}")
            raise error

        logger.info(f"Comparison complete: overall_match={result.overall_match:.2f}, points={len(result.comparisons)}")
        return result
