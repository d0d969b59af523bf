"""
Configuration settings for the panel interview system.
All settings can be overridden via environment variables.
"""
import os
from typing import List, Optional
from dataclasses import dataclass, field

from ..models.schemas import InterviewPhase, InterviewerRole

DEFAULT_MODEL = "Pro/Qwen/Qwen2.5-7B-Instruct"


@dataclass
class LLMConfig:
    """Generation service (OpenAI-compatible chat completions) configuration."""
    base_url: str = field(default_factory=lambda: os.getenv("LLM_BASE_URL", "https://api.siliconflow.cn/v1"))
    api_key: str = field(default_factory=lambda: os.getenv("LLM_API_KEY", ""))
    chat_endpoint: str = "/chat/completions"
    default_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", DEFAULT_MODEL))
    timeout: int = 60
    max_retries: int = 2  # transport level only

    # Per-persona models
    technical_model: str = field(default_factory=lambda: os.getenv("LLM_TECHNICAL_MODEL", DEFAULT_MODEL))
    hr_model: str = field(default_factory=lambda: os.getenv("LLM_HR_MODEL", DEFAULT_MODEL))
    business_model: str = field(default_factory=lambda: os.getenv("LLM_BUSINESS_MODEL", DEFAULT_MODEL))
    comparison_model: str = field(default_factory=lambda: os.getenv("LLM_COMPARISON_MODEL", DEFAULT_MODEL))

    # Default generation parameters
    default_temperature: float = 0.7
    analysis_temperature: float = 0.3
    max_tokens: int = 1024

    def model_for(self, role: InterviewerRole) -> str:
        return {
            InterviewerRole.TECHNICAL: self.technical_model,
            InterviewerRole.HR: self.hr_model,
            InterviewerRole.BUSINESS: self.business_model,
        }[role]


@dataclass
class MemoryConfig:
    """Knowledge index (ChromaDB) configuration."""
    # Empty path keeps the index in memory
    chroma_persist_dir: str = field(default_factory=lambda: os.getenv("CHROMA_DB_PATH", ""))
    collection_name: str = "interview_knowledge"

    rag_top_k: int = 3  # Items retrieved per question
    short_term_turns: int = 5  # Prior turns sent with each question request
    context_max_length: int = 2000

    # Collections replaced by a rebuild stay queryable this long before being dropped
    retired_grace_seconds: float = field(default_factory=lambda: float(os.getenv("RETIRED_GRACE_SECONDS", "60")))

    # Knowledge bootstrap
    bootstrap_questions_per_category: int = field(default_factory=lambda: int(os.getenv("BOOTSTRAP_QUESTIONS", "10")))
    bootstrap_temperature: float = 0.8
    bootstrap_max_tokens: int = 2000


@dataclass
class PhaseConfig:
    """Configuration for a single interview phase."""
    phase: InterviewPhase
    min_questions: int
    max_questions: int
    primary_role: InterviewerRole


def default_phases() -> List[PhaseConfig]:
    return [
        PhaseConfig(InterviewPhase.WARM_UP, min_questions=1, max_questions=2, primary_role=InterviewerRole.HR),
        PhaseConfig(InterviewPhase.TECHNICAL, min_questions=3, max_questions=5, primary_role=InterviewerRole.TECHNICAL),
        PhaseConfig(InterviewPhase.BEHAVIORAL, min_questions=2, max_questions=3, primary_role=InterviewerRole.HR),
        PhaseConfig(InterviewPhase.BUSINESS, min_questions=2, max_questions=3, primary_role=InterviewerRole.BUSINESS),
        PhaseConfig(InterviewPhase.QUESTIONS, min_questions=1, max_questions=2, primary_role=InterviewerRole.HR),
    ]


@dataclass
class InterviewConfig:
    """Interview flow configuration."""
    phases: List[PhaseConfig] = field(default_factory=default_phases)

    # Early advance when an answer scores at least this (0-10 scale)
    advance_threshold: float = 8.0
    # Score assigned when the analysis output cannot be parsed
    fallback_score: float = 5.0

    rotation_policy: str = field(default_factory=lambda: os.getenv("ROTATION_POLICY", "phase_based"))
    strict_roles: bool = field(default_factory=lambda: os.getenv("STRICT_ROLES", "false").lower() == "true")
    retry_degraded_analysis: bool = True
    random_seed: Optional[int] = None


class Config:
    """Main configuration class combining all config sections."""

    def __init__(self):
        self.llm = LLMConfig()
        self.memory = MemoryConfig()
        self.interview = InterviewConfig()
        self.log_level = os.getenv("LOG_LEVEL", "INFO")


# Global config instance
config = Config()
