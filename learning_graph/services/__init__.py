"""
Services layer for the learning graph.

Provides high-level operations that coordinate the storage backend.
"""

from .extraction import CapitalizedWordExtractor, Extractor, StructuredDocumentExtractor
from .graph_service import KnowledgeGraphService
from .layout import ForceDirectedLayout
from .learning_path_service import LearningPathGenerator
from .map_service import KnowledgeMapService
from .path_finder import PathFinder

__all__ = [
    "KnowledgeGraphService",
    "PathFinder",
    "ForceDirectedLayout",
    "KnowledgeMapService",
    "LearningPathGenerator",
    "Extractor",
    "CapitalizedWordExtractor",
    "StructuredDocumentExtractor",
]
