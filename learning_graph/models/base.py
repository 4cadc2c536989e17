"""
Core graph models: concepts, relationships and graph projections.

These models are storage-agnostic and can be persisted to
SQLite, PostgreSQL, or kept in memory.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, Field


def new_id() -> str:
    """Generate a record id."""
    return str(uuid4())


class ConceptOrigin(str, Enum):
    """Where a concept came from."""
    USER = "user"
    DOCUMENT = "document"
    AUTO = "auto"                        # Stub created by name reference
    TEXT_EXTRACTION = "text-extraction"


class RelationshipType(str, Enum):
    """
    Well-known relationship labels.

    Relationship.type is an open string; these are the labels
    the engine itself produces or interprets.
    """
    RELATED = "related"
    PREREQUISITE = "prerequisite"        # source is a prerequisite of target
    CONTAINS = "contains"
    CO_OCCURRENCE = "co-occurrence"


class Concept(BaseModel):
    """
    A named node in an owner's knowledge graph.

    Names are unique per owner, compared case-insensitively.
    """

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    tags: Set[str] = Field(default_factory=set)

    # Provenance
    origin: ConceptOrigin = ConceptOrigin.USER
    origin_ref: Optional[str] = Field(None, description="Source artifact id (document id, etc.)")
    extraction_order: Optional[int] = Field(None, description="Position within the source artifact")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}

    @property
    def name_key(self) -> str:
        """Case-insensitive lookup key for the name."""
        return normalize_name(self.name)


def normalize_name(name: str) -> str:
    return name.strip().casefold()


class Relationship(BaseModel):
    """
    A typed, weighted edge between two concepts of the same owner.

    At most one relationship exists per (owner, source, target) pair.
    """

    id: str = Field(default_factory=new_id)
    owner_id: str
    source_concept_id: str
    target_concept_id: str
    type: str = RelationshipType.RELATED.value
    strength: float = Field(default=1.0, ge=0.0, le=1.0)
    description: str = ""

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}

    def other_end(self, concept_id: str) -> str:
        """The endpoint opposite to concept_id (edges read as undirected)."""
        if concept_id == self.source_concept_id:
            return self.target_concept_id
        return self.source_concept_id


# =========================================================
# GRAPH PROJECTIONS
# =========================================================

class GraphNode(BaseModel):
    """A concept as seen by graph consumers."""
    id: str
    label: str
    description: str = ""
    tags: Set[str] = Field(default_factory=set)
    origin: ConceptOrigin = ConceptOrigin.USER
    origin_ref: Optional[str] = None

    @classmethod
    def from_concept(cls, concept: Concept) -> "GraphNode":
        return cls(
            id=concept.id,
            label=concept.name,
            description=concept.description,
            tags=set(concept.tags),
            origin=concept.origin,
            origin_ref=concept.origin_ref,
        )


class GraphEdge(BaseModel):
    """A relationship as seen by graph consumers."""
    id: str
    source_id: str
    target_id: str
    type: str
    strength: float
    description: str = ""

    @classmethod
    def from_relationship(cls, rel: Relationship) -> "GraphEdge":
        return cls(
            id=rel.id,
            source_id=rel.source_concept_id,
            target_id=rel.target_concept_id,
            type=rel.type,
            strength=rel.strength,
            description=rel.description,
        )


class GraphSnapshot(BaseModel):
    """
    An immutable-by-convention view of (part of) an owner's graph.

    ``generation`` is the owner's mutation counter at the time the
    snapshot was taken.
    """
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    generation: int = 0

    def node_ids(self) -> Set[str]:
        return {node.id for node in self.nodes}

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def adjacency(self) -> Dict[str, List[tuple[str, GraphEdge]]]:
        """Undirected adjacency list, neighbors in edge order."""
        adjacency: Dict[str, List[tuple[str, GraphEdge]]] = {
            node.id: [] for node in self.nodes
        }
        for edge in self.edges:
            adjacency.setdefault(edge.source_id, []).append((edge.target_id, edge))
            adjacency.setdefault(edge.target_id, []).append((edge.source_id, edge))
        return adjacency


class RelatedConcept(BaseModel):
    """A concept reached from another one, with its connecting edges."""
    concept: Concept
    depth: int = Field(..., ge=1, description="Hop distance from the queried concept")
    relationships: List[Relationship] = Field(default_factory=list)
