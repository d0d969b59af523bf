import json
import random
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_interview.interview.agents import build_panel  # noqa: E402
from panel_interview.interview.phases import PhaseStateMachine  # noqa: E402
from panel_interview.interview.scheduler import AgentScheduler, RotationPolicy  # noqa: E402
from panel_interview.llm.prompts import (  # noqa: E402
    BUSINESS_ANALYSIS_INSTRUCTION,
    COMPARISON_INSTRUCTION,
    HR_ANALYSIS_INSTRUCTION,
    TECHNICAL_ANALYSIS_INSTRUCTION,
)
from panel_interview.models.errors import RetrievalError  # noqa: E402
from panel_interview.models.schemas import InterviewContext, RetrievedItem  # noqa: E402


GRADING_INSTRUCTIONS = {
    TECHNICAL_ANALYSIS_INSTRUCTION,
    HR_ANALYSIS_INSTRUCTION,
    BUSINESS_ANALYSIS_INSTRUCTION,
    COMPARISON_INSTRUCTION,
}


def analysis_json(score: float, summary: str = "Solid answer") -> str:
    return json.dumps({
        "score": score,
        "strengths": ["clear structure"],
        "improvements": ["more detail"],
        "summary": summary,
    })


def comparison_json(overall: float = 0.6) -> str:
    return json.dumps({
        "overall_match": overall,
        "comparisons": [
            {
                "aspect": "Indexing",
                "reference_point": "Use a composite index",
                "candidate_point": "Add an index",
                "match_status": "partial",
                "suggestion": "Name the columns",
            }
        ],
        "missing_points": ["EXPLAIN plans"],
        "extra_points": [],
    })


class FakeLLM:
    """
    Scripted stand-in for LLMClient.

    Grading requests (analysis or comparison instructions) pop from
    `analyses`, everything else pops from `questions`. A scripted entry can be
    a string, an exception to raise, or a callable returning the string.
    """

    def __init__(self, questions=None, analyses=None, default_score: float = 6.0):
        self.questions = list(questions or [])
        self.analyses = list(analyses or [])
        self.default_score = default_score
        self.calls = []
        self.question_count = 0

    @staticmethod
    def _next(queue, default):
        item = queue.pop(0) if queue else default
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item()
        return item

    def _record(self, kind, system_instruction, conversation, model, temperature):
        self.calls.append({
            "kind": kind,
            "system": system_instruction,
            "conversation": list(conversation),
            "model": model,
            "temperature": temperature,
        })

    def complete(self, system_instruction, conversation, model=None, temperature=None, max_tokens=None):
        if system_instruction in GRADING_INSTRUCTIONS:
            self._record("grade", system_instruction, conversation, model, temperature)
            return self._next(self.analyses, analysis_json(self.default_score))
        self._record("question", system_instruction, conversation, model, temperature)
        self.question_count += 1
        return self._next(self.questions, f"Question {self.question_count}?")

    def stream(self, system_instruction, conversation, model=None, temperature=None, max_tokens=None):
        # Lazy like the real client: nothing happens until the first fragment is pulled
        self._record("stream", system_instruction, conversation, model, temperature)
        self.question_count += 1
        text = self._next(self.questions, f"Streamed question {self.question_count}?")
        for i in range(0, len(text), 4):
            yield text[i:i + 4]

    def calls_of(self, kind):
        return [c for c in self.calls if c["kind"] == kind]


class FakeRetriever:
    def __init__(self, items=None, error=None):
        self.items = list(items or [])
        self.error = error
        self.queries = []

    def top_k(self, query, k, content_type=None):
        self.queries.append((query, k, content_type))
        if self.error is not None:
            raise self.error
        return self.items[:k]


class FakeCollection:
    """In-memory stand-in for a Chroma collection; distance grows with insertion order."""

    def __init__(self, name):
        self.name = name
        self.records = []
        self.queries = []

    def add(self, ids, documents, metadatas):
        self.records.extend(zip(ids, documents, metadatas))

    def count(self):
        return len(self.records)

    def _matching(self, where):
        if not where:
            return list(self.records)
        return [r for r in self.records if all(r[2].get(k) == v for k, v in where.items())]

    def query(self, query_texts, n_results, where=None):
        assert n_results <= self.count()
        self.queries.append({"text": query_texts[0], "n_results": n_results, "where": where})
        hits = self._matching(where)[:n_results]
        return {
            "ids": [[r[0] for r in hits]],
            "documents": [[r[1] for r in hits]],
            "metadatas": [[r[2] for r in hits]],
            "distances": [[0.1 * i for i in range(len(hits))]],
        }

    def get(self, where=None):
        return {"ids": [r[0] for r in self._matching(where)]}


class FakeChromaClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.collections = {}
        self.deleted = []

    def get_or_create_collection(self, name, metadata=None):
        if self.fail:
            raise RuntimeError("chroma unavailable")
        return self.collections.setdefault(name, FakeCollection(name))

    def create_collection(self, name, metadata=None):
        self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def delete_collection(self, name):
        self.deleted.append(name)
        self.collections.pop(name, None)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_retriever():
    return FakeRetriever(items=[
        RetrievedItem(score=0.9, id="question_1", payload="Explain database indexing", content_type="question"),
        RetrievedItem(score=0.7, id="question_2", payload="Describe a caching strategy", content_type="question"),
    ])


@pytest.fixture
def failing_retriever():
    return FakeRetriever(error=RetrievalError("index offline"))


@pytest.fixture
def context():
    return InterviewContext(
        resume="Backend engineer, 5 years of Python and PostgreSQL",
        job_description="Senior backend engineer building data APIs",
    )


@pytest.fixture
def make_scheduler(fake_llm, fake_retriever):
    """Build a scheduler over the default three-persona panel."""

    def _make(policy=RotationPolicy.PHASE_BASED, llm=None, retriever=None, roles=None, seed=None, **kwargs):
        panel_kwargs = {"llm": llm or fake_llm, "retriever": retriever or fake_retriever}
        if roles is not None:
            panel_kwargs["roles"] = roles
        return AgentScheduler(
            build_panel(**panel_kwargs),
            phase_machine=PhaseStateMachine(),
            policy=policy,
            rng=random.Random(seed) if seed is not None else None,
            **kwargs,
        )

    return _make
