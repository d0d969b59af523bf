"""
Knowledge import utilities.
Loads question banks, reference answers and job descriptions from JSON or
pipe-delimited text files into the knowledge store.
"""
import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..models.errors import RetrievalError
from ..models.schemas import KnowledgeImportResult, KnowledgeItem
from .vector_db import CONTENT_TYPES, knowledge_store

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class KnowledgeImporter:
    """
    Parses knowledge files and stores the valid entries.
    """

    def __init__(self, store=None):
        self.store = store if store is not None else knowledge_store

    @staticmethod
    def _validate(item: KnowledgeItem) -> Optional[str]:
        if item.content_type not in CONTENT_TYPES:
            return f"unknown content type '{item.content_type}'"
        if not item.content.strip():
            return "empty content"
        return None

    def parse_json(self, text: str) -> Tuple[List[KnowledgeItem], List[str]]:
        """
        Parse a JSON array of {content_type, content, metadata} objects.

        Returns:
            Tuple of (valid items, error messages)
        """
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            return [], [f"Invalid JSON: {e}"]
        if not isinstance(raw, list):
            return [], ["Expected a JSON array of knowledge items"]
        return self.parse_items(raw)

    def parse_items(self, raw: List[Any]) -> Tuple[List[KnowledgeItem], List[str]]:
        items, errors = [], []
        for idx, entry in enumerate(raw, start=1):
            try:
                item = KnowledgeItem.model_validate(entry)
            except ValidationError as e:
                errors.append(f"Item {idx}: {e.errors()[0]['msg']}")
                continue
            problem = self._validate(item)
            if problem:
                errors.append(f"Item {idx}: {problem}")
                continue
            items.append(item)
        return items, errors

    def parse_txt(self, text: str) -> Tuple[List[KnowledgeItem], List[str]]:
        """
        Parse one entry per line: content_type|content|metadata.
        Blank lines and lines starting with # are skipped.
        """
        items, errors = [], []
        for line_num, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            parts = line.split('|')
            if len(parts) < 2:
                errors.append(f"Line {line_num}: Invalid format (need at least 2 fields)")
                continue

            metadata = parts[2].strip() if len(parts) > 2 and parts[2].strip() else None
            item = KnowledgeItem(content_type=parts[0].strip(), content=parts[1].strip(), metadata=metadata)
            problem = self._validate(item)
            if problem:
                errors.append(f"Line {line_num}: {problem}")
                continue
            items.append(item)
        return items, errors

    def store_items(
        self,
        items: List[KnowledgeItem],
        errors: List[str],
        rebuild: bool = False,
    ) -> KnowledgeImportResult:
        """Store parsed items, either appended or as a fresh index."""
        result = KnowledgeImportResult(fail_count=len(errors), errors=list(errors))
        if not items:
            return result

        try:
            if rebuild:
                self.store.rebuild(items)
            else:
                self.store.add_items(items)
            result.success_count = len(items)
        except RetrievalError as e:
            logger.error(f"Knowledge import failed: {e}")
            result.fail_count += len(items)
            result.errors.append(str(e))

        logger.info(f"Imported {result.success_count} knowledge items ({result.fail_count} failed)")
        return result

    def import_from_json(self, file_path: PathLike, rebuild: bool = False) -> KnowledgeImportResult:
        """Import knowledge from a JSON file."""
        items, errors = self.parse_json(Path(file_path).read_text(encoding="utf-8"))
        return self.store_items(items, errors, rebuild=rebuild)

    def import_from_txt(self, file_path: PathLike, rebuild: bool = False) -> KnowledgeImportResult:
        """Import knowledge from a pipe-delimited text file."""
        items, errors = self.parse_txt(Path(file_path).read_text(encoding="utf-8"))
        return self.store_items(items, errors, rebuild=rebuild)


# Global instance
knowledge_importer = KnowledgeImporter()
