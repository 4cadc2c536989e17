"""
Learning Graph - Knowledge Graph & Learning-Path Engine.

An owner-scoped concept graph with merge-on-insert semantics, bounded
shortest-path search, force-directed map layout, and learning paths
with prerequisite graphs and difficulty progressions.

Architecture:
- models/: Pydantic domain models (storage-agnostic)
- storage/: Storage interface with in-memory and SQLite backends
- services/: Graph store, path finder, layout, maps, learning paths
- engine.py: Facade wiring everything from EngineSettings
"""

from .config import EngineSettings, LayoutSettings, PathSettings, setup_logging
from .budget import OperationBudget
from .engine import LearningGraphEngine
from .errors import (
    ConceptNotFoundError,
    DocumentNotFoundError,
    DocumentNotReadyError,
    DuplicateRecordError,
    EmptyLearningPathError,
    GraphValidationError,
    LearningGraphError,
    LearningPathNotFoundError,
    MapNotFoundError,
    NoPathFoundError,
    NotFoundError,
    OperationCancelledError,
    PathStepNotFoundError,
    RelationshipNotFoundError,
    StorageError,
    StorageIntegrityError,
)
from .models import (
    Concept,
    ConceptOrigin,
    Document,
    GraphSnapshot,
    KnowledgeMap,
    LearningPath,
    MapAnalysis,
    NotFoundReason,
    PathFound,
    PathNotFound,
    Position,
    Relationship,
    RelationshipType,
)
from .services import (
    ForceDirectedLayout,
    KnowledgeGraphService,
    KnowledgeMapService,
    LearningPathGenerator,
    PathFinder,
)
from .storage import InMemoryDocumentSource, InMemoryGraphStorage, SQLiteGraphStorage

__version__ = "0.1.0"

__all__ = [
    # Engine and config
    "LearningGraphEngine",
    "EngineSettings",
    "LayoutSettings",
    "PathSettings",
    "OperationBudget",
    "setup_logging",
    # Services
    "KnowledgeGraphService",
    "PathFinder",
    "ForceDirectedLayout",
    "KnowledgeMapService",
    "LearningPathGenerator",
    # Storage
    "InMemoryGraphStorage",
    "SQLiteGraphStorage",
    "InMemoryDocumentSource",
    # Models
    "Concept",
    "ConceptOrigin",
    "Relationship",
    "RelationshipType",
    "GraphSnapshot",
    "KnowledgeMap",
    "LearningPath",
    "MapAnalysis",
    "Position",
    "PathFound",
    "PathNotFound",
    "NotFoundReason",
    "Document",
    # Errors
    "LearningGraphError",
    "NotFoundError",
    "ConceptNotFoundError",
    "RelationshipNotFoundError",
    "MapNotFoundError",
    "LearningPathNotFoundError",
    "PathStepNotFoundError",
    "DocumentNotFoundError",
    "GraphValidationError",
    "NoPathFoundError",
    "EmptyLearningPathError",
    "DocumentNotReadyError",
    "OperationCancelledError",
    "StorageError",
    "DuplicateRecordError",
    "StorageIntegrityError",
]
