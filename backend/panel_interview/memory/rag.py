"""
RAG (Retrieval-Augmented Generation) retriever for the interviewer agents.
Retrieval is best-effort context: failures degrade to zero results.
"""
import logging
from typing import List, Optional

from ..models.errors import RetrievalError
from ..models.schemas import RetrievedItem
from .vector_db import knowledge_store

logger = logging.getLogger(__name__)


class KnowledgeRetriever:
    """
    Thin capability over the knowledge store: top-K similar items for a query.
    """

    def __init__(self, store=None):
        self.store = store if store is not None else knowledge_store

    def top_k(self, query: str, k: int, content_type: Optional[str] = None) -> List[RetrievedItem]:
        """
        Retrieve the most similar stored items.

        Args:
            query: Query text
            k: Maximum number of items
            content_type: Optional content type filter

        Returns:
            Items ordered by similarity, or an empty list when the index is
            unavailable, empty or failing
        """
        if not query or not query.strip() or k <= 0:
            return []

        try:
            items = self.store.query(query, k, content_type=content_type)
        except RetrievalError as e:
            logger.warning(f"Knowledge retrieval unavailable, continuing without context: {e}")
            return []

        logger.debug(f"Retrieved {len(items)} knowledge items")
        return items[:k]

    @staticmethod
    def build_context(items: List[RetrievedItem], max_length: int) -> str:
        """
        Format retrieved items as a numbered list for a prompt.
        Stops before the entry that would exceed max_length.
        """
        parts = []
        current_length = 0
        for idx, item in enumerate(items, start=1):
            entry = f"{idx}. {item.payload}\n"
            if current_length + len(entry) > max_length:
                break
            parts.append(entry)
            current_length += len(entry)
        return "".join(parts)


# Global instance
knowledge_retriever = KnowledgeRetriever()
