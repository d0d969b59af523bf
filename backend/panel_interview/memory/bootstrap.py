"""
Knowledge base bootstrap.
Seeds an empty knowledge store with job description templates and, when a
generation service is available, a generated question bank with reference
answers for each template.
"""
import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..llm.client import llm_client
from ..llm.prompts import BEST_ANSWER_INSTRUCTION, QUESTION_BANK_INSTRUCTION, Prompts
from ..models.errors import GenerationError, RetrievalError
from ..models.schemas import (
    BootstrapProgress,
    BootstrapResult,
    ChatMessage,
    KnowledgeItem,
    KnowledgeStatus,
    Speaker,
)
from ..utils.cleaning import ResponseCleaner
from ..utils.config import config
from .vector_db import knowledge_store

logger = logging.getLogger(__name__)

# Score recorded with every generated reference answer
REFERENCE_ANSWER_SCORE = 8.5


@dataclass(frozen=True)
class JdTemplate:
    category: str
    name: str
    content: str


JD_TEMPLATES = [
    JdTemplate(
        category="frontend",
        name="Senior Frontend Engineer",
        content="Responsibilities: build and maintain the frontend of our core product; take part in "
                "frontend technical design and architecture improvements. Requirements: 3+ years of "
                "frontend development; expert in Vue.js and React; TypeScript and ES6+; familiar with "
                "build tools such as Webpack and Vite.",
    ),
    JdTemplate(
        category="backend",
        name="Senior Backend Engineer",
        content="Responsibilities: design and implement backend system architecture; handle high "
                "concurrency and large data volumes. Requirements: 5+ years of backend development; "
                "expert in Java, Go or Python; deep understanding of database internals; experience "
                "designing distributed systems.",
    ),
    JdTemplate(
        category="pm",
        name="Product Manager",
        content="Responsibilities: own requirements analysis, design and launch for a product area; run "
                "user research and competitive analysis. Requirements: 2+ years as an internet product "
                "manager; prototyping tools such as Axure and Figma; data analysis skills.",
    ),
    JdTemplate(
        category="fullstack",
        name="Full Stack Engineer",
        content="Responsibilities: develop both frontend and backend; take part in technical design "
                "reviews and architecture. Requirements: 4+ years of development; React or Vue and "
                "Node.js; database design and API development.",
    ),
    JdTemplate(
        category="qa",
        name="QA Engineer",
        content="Responsibilities: functional, performance and compatibility testing; design and build "
                "automated test frameworks. Requirements: 2+ years of testing; Python or Java "
                "programming; tools such as Selenium and JMeter.",
    ),
    JdTemplate(
        category="devops",
        name="DevOps Engineer",
        content="Responsibilities: design and maintain infrastructure and operations systems; design and "
                "implement CI/CD pipelines. Requirements: 3+ years of operations or DevOps; expert in "
                "Docker and Kubernetes; Python, Go or Bash.",
    ),
]

ProgressCallback = Callable[[BootstrapProgress], None]


class KnowledgeBootstrapper:
    """
    Fills the knowledge store from the built-in job description templates.

    Failures on individual items are collected in the result rather than
    raised, so one bad generation does not abort the whole run.
    """

    def __init__(
        self,
        store=None,
        llm=None,
        questions_per_category: Optional[int] = None,
        templates: Optional[List[JdTemplate]] = None,
    ):
        self.store = store if store is not None else knowledge_store
        self.llm = llm if llm is not None else llm_client
        self.questions_per_category = (
            questions_per_category if questions_per_category is not None
            else config.memory.bootstrap_questions_per_category
        )
        self.templates = list(templates) if templates is not None else list(JD_TEMPLATES)

    def is_empty(self) -> bool:
        return self.store.count() == 0

    def get_status(self) -> KnowledgeStatus:
        total = self.store.count()
        return KnowledgeStatus(
            is_empty=total == 0,
            question_count=self.store.count_by_type("question"),
            answer_count=self.store.count_by_type("answer"),
        )

    def bootstrap(
        self,
        generate: bool = True,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BootstrapResult:
        """
        Seed the knowledge base.

        Args:
            generate: Also generate a question bank and reference answers per template
            force: Run even when the store already holds items
            on_progress: Called with a BootstrapProgress before each step

        Returns:
            BootstrapResult with counts and the labels of failed items
        """
        if not force and not self.is_empty():
            logger.info("Knowledge base already populated, skipping bootstrap")
            return BootstrapResult(message="Knowledge base already initialized")

        total = len(self.templates)
        if generate:
            total += len(self.templates) * self.questions_per_category * 2
        result = BootstrapResult()
        current = 0

        def report(status: str, category: str):
            logger.info(f"Bootstrap {current}/{total}: {status}")
            if on_progress is not None:
                on_progress(BootstrapProgress(current=current, total=total, status=status, category=category))

        for template in self.templates:
            report(f"Storing job description {template.name}", template.category)
            current += 1
            metadata = json.dumps({"category": template.category, "jd_name": template.name})
            if self._store(KnowledgeItem(content_type="jd", content=template.content, metadata=metadata)):
                result.total_templates += 1
            else:
                result.failed_items.append(f"{template.category}:jd")

        if generate:
            for template in self.templates:
                report(f"Generating questions for {template.name}", template.category)
                questions = self._generate_questions(template)
                if questions is None:
                    result.failed_items.append(f"{template.category}:questions")
                    continue

                for idx, question in enumerate(questions):
                    current += 1
                    report(f"Storing {template.name} question {idx + 1}", template.category)
                    metadata = json.dumps({"category": template.category, "jd_name": template.name})
                    if self._store(KnowledgeItem(content_type="question", content=question, metadata=metadata)):
                        result.total_questions += 1
                    else:
                        result.failed_items.append(f"{template.category}:q{idx}")

                    current += 1
                    report(f"Generating {template.name} answer {idx + 1}", template.category)
                    answer = self._generate_answer(question, template)
                    if answer is None:
                        result.failed_items.append(f"{template.category}:a{idx}_gen")
                        continue
                    metadata = json.dumps({
                        "category": template.category,
                        "question": question,
                        "score": REFERENCE_ANSWER_SCORE,
                    })
                    if self._store(KnowledgeItem(content_type="answer", content=answer, metadata=metadata)):
                        result.total_answers += 1
                    else:
                        result.failed_items.append(f"{template.category}:a{idx}")

        result.success = not result.failed_items
        if result.success:
            result.message = (
                f"Knowledge base initialized: {result.total_questions} questions, "
                f"{result.total_answers} answers"
            )
        else:
            result.message = (
                f"Knowledge base initialized with {result.total_questions} questions, "
                f"{result.total_answers} answers, {len(result.failed_items)} failed items"
            )
        logger.info(result.message)
        return result

    def _store(self, item: KnowledgeItem) -> bool:
        try:
            self.store.add_items([item])
            return True
        except RetrievalError as e:
            logger.error(f"Failed to store {item.content_type}: {e}")
            return False

    def _generate_questions(self, template: JdTemplate) -> Optional[List[str]]:
        """Ask for a question bank; None when generation or parsing fails."""
        prompt = Prompts.question_bank_request(template.content, self.questions_per_category)
        try:
            raw = self.llm.complete(
                QUESTION_BANK_INSTRUCTION,
                [ChatMessage(speaker=Speaker.USER, text=prompt)],
                temperature=config.memory.bootstrap_temperature,
                max_tokens=config.memory.bootstrap_max_tokens,
            )
        except GenerationError as e:
            logger.error(f"Failed to generate questions for {template.category}: {e}")
            return None

        parsed, ok = ResponseCleaner.parse_json_array(raw)
        if not ok:
            logger.error(f"Unparseable question bank for {template.category}: {raw[:200]}")
            return None
        questions = [q.strip() for q in parsed if isinstance(q, str) and q.strip()]
        if not questions:
            logger.error(f"Empty question bank for {template.category}")
            return None
        return questions[:self.questions_per_category]

    def _generate_answer(self, question: str, template: JdTemplate) -> Optional[str]:
        try:
            raw = self.llm.complete(
                BEST_ANSWER_INSTRUCTION,
                [ChatMessage(speaker=Speaker.USER, text=Prompts.best_answer_request(question, template.content))],
            )
        except GenerationError as e:
            logger.error(f"Failed to generate answer for {template.category}: {e}")
            return None
        answer = ResponseCleaner.strip_reasoning(raw)
        return answer or None


# Global instance
knowledge_bootstrapper = KnowledgeBootstrapper()
