"""
Learning Graph Domain Models.

These are storage-agnostic Pydantic models representing
the core entities in the knowledge graph.
"""

from .base import (
    Concept,
    ConceptOrigin,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    RelatedConcept,
    Relationship,
    RelationshipType,
    new_id,
    normalize_name,
)

from .learning import (
    ConceptDegree,
    DifficultyProgression,
    KnowledgeMap,
    LearningPath,
    MapAnalysis,
    MapConcept,
    MapView,
    NotFoundReason,
    PathFound,
    PathHop,
    PathNotFound,
    PathResult,
    PathStep,
    Position,
    PrerequisiteEdge,
    PrerequisiteGraph,
    PrerequisiteNode,
    StepDifficulty,
    relabel_step,
    step_label,
)

from .documents import (
    CandidateConcept,
    CoOccurrenceHint,
    Document,
    DocumentSection,
    DocumentStatus,
    ExtractionOutcome,
    ExtractionResult,
    KeyConcept,
)

__all__ = [
    # Graph models
    "Concept",
    "Relationship",
    "GraphNode",
    "GraphEdge",
    "GraphSnapshot",
    "RelatedConcept",
    # Enums
    "ConceptOrigin",
    "RelationshipType",
    "NotFoundReason",
    "DocumentStatus",
    # Learning models
    "KnowledgeMap",
    "MapConcept",
    "MapView",
    "Position",
    "LearningPath",
    "PathStep",
    "PathHop",
    "PathFound",
    "PathNotFound",
    "PathResult",
    "PrerequisiteGraph",
    "PrerequisiteNode",
    "PrerequisiteEdge",
    "DifficultyProgression",
    "StepDifficulty",
    "MapAnalysis",
    "ConceptDegree",
    # Documents and extraction
    "Document",
    "DocumentSection",
    "KeyConcept",
    "CandidateConcept",
    "CoOccurrenceHint",
    "ExtractionResult",
    "ExtractionOutcome",
    # Helpers
    "new_id",
    "normalize_name",
    "step_label",
    "relabel_step",
]
