"""
Vector database interface for the interview knowledge base.
Uses ChromaDB for embedding, storage and similarity search.
"""
import logging
import threading
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import chromadb
from chromadb.config import Settings

from ..models.errors import RetrievalError
from ..models.schemas import KnowledgeItem, RetrievedItem
from ..utils.config import config

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("question", "answer", "jd")


class KnowledgeStore:
    """
    Vector store for question banks, reference answers and job descriptions.

    The active collection is a read-only snapshot from the point of view of
    queries: rebuild() fills a new collection and swaps it in under a lock.
    Replaced collections are kept for `retire_grace` seconds so a query that
    already picked one up can finish against it; expired ones are dropped on
    the next rebuild.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        collection_name: Optional[str] = None,
        retire_grace: Optional[float] = None,
    ):
        self.client = client
        self.collection_name = collection_name or config.memory.collection_name
        self.retire_grace = config.memory.retired_grace_seconds if retire_grace is None else retire_grace
        self._collection = None
        self._retired: List[Tuple[Any, float]] = []
        self._lock = threading.Lock()
        self._init_failed = False

    def _create_client(self):
        settings = Settings(anonymized_telemetry=False)
        if config.memory.chroma_persist_dir:
            return chromadb.PersistentClient(path=config.memory.chroma_persist_dir, settings=settings)
        return chromadb.Client(settings)

    def _ensure_initialized(self):
        """Lazily open the client and the base collection on first use."""
        if self._collection is not None:
            return self._collection
        if self._init_failed:
            raise RetrievalError("Knowledge store initialization previously failed")

        with self._lock:
            if self._collection is None:
                try:
                    if self.client is None:
                        self.client = self._create_client()
                    self._collection = self.client.get_or_create_collection(
                        name=self.collection_name,
                        metadata={"hnsw:space": "cosine"},
                    )
                    logger.info(f"Knowledge store initialized: collection={self.collection_name}")
                except Exception as e:
                    self._init_failed = True
                    logger.error(f"Knowledge store initialization failed: {e}")
                    raise RetrievalError(f"Knowledge store initialization failed: {e}") from e
            return self._collection

    def _active(self):
        """Return the current snapshot, initializing the store if needed."""
        self._ensure_initialized()
        with self._lock:
            return self._collection

    @staticmethod
    def _to_record(item: KnowledgeItem):
        metadata: Dict[str, Any] = {"content_type": item.content_type}
        if item.metadata:
            metadata["metadata"] = item.metadata
        return f"{item.content_type}_{uuid.uuid4().hex}", item.content, metadata

    def _add_to(self, collection, items: List[KnowledgeItem]) -> List[str]:
        ids, documents, metadatas = [], [], []
        for item in items:
            item_id, document, metadata = self._to_record(item)
            ids.append(item_id)
            documents.append(document)
            metadatas.append(metadata)
        collection.add(ids=ids, documents=documents, metadatas=metadatas)
        return ids

    def add_items(self, items: List[KnowledgeItem]) -> List[str]:
        """
        Embed and store items in the active collection.

        Returns:
            List of stored item IDs
        """
        if not items:
            return []
        collection = self._ensure_initialized()
        try:
            ids = self._add_to(collection, items)
        except Exception as e:
            raise RetrievalError(f"Failed to store knowledge items: {e}") from e
        logger.info(f"Stored {len(ids)} knowledge items")
        return ids

    def rebuild(self, items: List[KnowledgeItem]) -> str:
        """
        Build a fresh collection from items and atomically make it active.

        Returns:
            Name of the new active collection
        """
        self._ensure_initialized()
        name = f"{self.collection_name}_{uuid.uuid4().hex[:8]}"
        try:
            fresh = self.client.create_collection(name=name, metadata={"hnsw:space": "cosine"})
            if items:
                self._add_to(fresh, items)
        except Exception as e:
            raise RetrievalError(f"Failed to rebuild knowledge index: {e}") from e

        now = time.monotonic()
        with self._lock:
            expired = [c for c, retired_at in self._retired if now - retired_at >= self.retire_grace]
            self._retired = [(c, t) for c, t in self._retired if now - t < self.retire_grace]
            self._retired.append((self._collection, now))
            self._collection = fresh

        for stale in expired:
            try:
                self.client.delete_collection(name=stale.name)
            except Exception as e:
                logger.warning(f"Failed to drop retired collection {stale.name}: {e}")

        logger.info(f"Rebuilt knowledge index {name} with {len(items)} items")
        return name

    def query(self, text: str, n_results: int, content_type: Optional[str] = None) -> List[RetrievedItem]:
        """
        Similarity search over the active snapshot.

        Args:
            text: Query text
            n_results: Maximum number of items
            content_type: Optional filter (question/answer/jd)

        Returns:
            Items ordered by descending similarity
        """
        collection = self._active()
        try:
            available = collection.count()
            if available == 0 or n_results <= 0:
                return []

            kwargs: Dict[str, Any] = {
                "query_texts": [text],
                "n_results": min(n_results, available),
            }
            if content_type:
                kwargs["where"] = {"content_type": content_type}
            results = collection.query(**kwargs)
        except Exception as e:
            raise RetrievalError(f"Knowledge query failed: {e}") from e

        items = []
        if results and results.get("ids"):
            ids = results["ids"][0]
            documents = (results.get("documents") or [[]])[0]
            metadatas = (results.get("metadatas") or [[]])[0]
            distances = (results.get("distances") or [[]])[0]
            for i, item_id in enumerate(ids):
                metadata = metadatas[i] if i < len(metadatas) and metadatas[i] else {}
                distance = distances[i] if i < len(distances) else 1.0
                items.append(RetrievedItem(
                    score=1.0 - float(distance),
                    id=str(item_id),
                    payload=documents[i] if i < len(documents) else "",
                    content_type=metadata.get("content_type"),
                ))
        return items

    def count(self) -> int:
        collection = self._active()
        try:
            return collection.count()
        except Exception as e:
            raise RetrievalError(f"Knowledge count failed: {e}") from e

    def count_by_type(self, content_type: str) -> int:
        collection = self._active()
        try:
            results = collection.get(where={"content_type": content_type})
        except Exception as e:
            raise RetrievalError(f"Knowledge count failed: {e}") from e
        return len(results.get("ids", [])) if results else 0

    def get_stats(self) -> Dict[str, Any]:
        """Collection statistics for health and debug endpoints."""
        try:
            stats: Dict[str, Any] = {"total_items": self.count()}
            for content_type in CONTENT_TYPES:
                stats[f"{content_type}_count"] = self.count_by_type(content_type)
            stats["is_empty"] = stats["total_items"] == 0
            return stats
        except RetrievalError as e:
            return {"total_items": 0, "is_empty": True, "error": str(e)}


# Global instance
knowledge_store = KnowledgeStore()
