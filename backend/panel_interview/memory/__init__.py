"""
Memory module for the panel interviewer system.
Provides the knowledge store, retriever, import and bootstrap.
"""

from .rag import KnowledgeRetriever, knowledge_retriever
from .importer import KnowledgeImporter, knowledge_importer
from .bootstrap import KnowledgeBootstrapper, knowledge_bootstrapper
from .vector_db import KnowledgeStore, knowledge_store

__all__ = [
    'KnowledgeRetriever', 'knowledge_retriever',
    'KnowledgeImporter', 'knowledge_importer',
    'KnowledgeBootstrapper', 'knowledge_bootstrapper',
    'KnowledgeStore', 'knowledge_store',
]
