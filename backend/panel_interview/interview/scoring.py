"""
Parsing and serialization of structured generation output.
Every parse is fallible and returns (result, error) instead of raising, so
callers choose between degrading and failing.
"""
import json
import math
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..models.errors import ParseError
from ..models.schemas import AnalysisResult, ComparisonResult, PointComparison
from ..utils.cleaning import ResponseCleaner
from ..utils.config import config

ANALYSIS_FIELDS = ("score", "strengths", "improvements", "summary")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def _as_str_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


class AnswerScorer:
    """
    Converts generation output into AnalysisResult and ComparisonResult.
    """

    @classmethod
    def parse_analysis(cls, text: str) -> Tuple[Optional[AnalysisResult], Optional[ParseError]]:
        """
        Parse an analysis response.

        Returns:
            Tuple of (AnalysisResult, None) on success or (None, ParseError)
        """
        data, is_valid = ResponseCleaner.parse_json(text)
        if not is_valid:
            return None, ParseError("Analysis response is not a JSON object", raw=text)

        missing = [f for f in ANALYSIS_FIELDS if f not in data]
        if missing:
            return None, ParseError(f"Analysis response missing fields: {', '.join(missing)}", raw=text)

        score = _as_number(data["score"])
        if score is None:
            return None, ParseError(f"Analysis score is not numeric: {data['score']!r}", raw=text)

        strengths = _as_str_list(data["strengths"])
        improvements = _as_str_list(data["improvements"])
        if strengths is None or improvements is None:
            return None, ParseError("Analysis strengths/improvements must be lists", raw=text)

        return AnalysisResult(
            score=max(0.0, min(10.0, score)),
            strengths=strengths,
            improvements=improvements,
            summary=str(data["summary"]).strip(),
        ), None

    @classmethod
    def fallback_analysis(cls, raw_text: str) -> AnalysisResult:
        """Degraded result used when the analysis cannot be parsed."""
        return AnalysisResult(
            score=config.interview.fallback_score,
            strengths=[],
            improvements=[],
            summary=raw_text,
            degraded=True,
        )

    @classmethod
    def format_analysis(cls, analysis: AnalysisResult) -> str:
        """Serialize an analysis in the shape parse_analysis expects."""
        return json.dumps({
            "score": analysis.score,
            "strengths": analysis.strengths,
            "improvements": analysis.improvements,
            "summary": analysis.summary,
        }, ensure_ascii=False)

    @classmethod
    def parse_comparison(cls, text: str) -> Tuple[Optional[ComparisonResult], Optional[ParseError]]:
        """
        Parse a comparison response.

        Returns:
            Tuple of (ComparisonResult, None) on success or (None, ParseError)
        """
        data, is_valid = ResponseCleaner.parse_json(text)
        if not is_valid:
            return None, ParseError("Comparison response is not a JSON object", raw=text)

        overall = _as_number(data.get("overall_match"))
        if overall is None:
            return None, ParseError("Comparison overall_match missing or not numeric", raw=text)

        raw_points = data.get("comparisons")
        if not isinstance(raw_points, list):
            return None, ParseError("Comparison comparisons must be a list", raw=text)

        try:
            points = [cls._parse_point(p) for p in raw_points]
        except (ValidationError, TypeError, AttributeError) as e:
            return None, ParseError(f"Invalid point comparison: {e}", raw=text)

        missing_points = _as_str_list(data.get("missing_points", []))
        extra_points = _as_str_list(data.get("extra_points", []))
        if missing_points is None or extra_points is None:
            return None, ParseError("Comparison missing_points/extra_points must be lists", raw=text)

        return ComparisonResult(
            overall_match=max(0.0, min(1.0, overall)),
            comparisons=points,
            missing_points=missing_points,
            extra_points=extra_points,
        ), None

    @staticmethod
    def _parse_point(raw: Dict[str, Any]) -> PointComparison:
        point = dict(raw)
        status = point.get("match_status")
        if isinstance(status, str):
            point["match_status"] = status.strip().lower()
        return PointComparison.model_validate(point)
