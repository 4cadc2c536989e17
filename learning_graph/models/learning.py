"""
Learning-layer models built on top of the concept graph.

Covers knowledge maps (positioned subsets of the graph), learning
paths with ordered steps, and the derived results produced by the
path finder and learning path generator.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Set, Union

from pydantic import BaseModel, Field

from .base import Concept, GraphEdge, Relationship, new_id


class Position(BaseModel):
    """A 2D position on a map canvas."""
    x: float
    y: float


# =========================================================
# KNOWLEDGE MAPS
# =========================================================

class KnowledgeMap(BaseModel):
    """
    A named, positioned subset of an owner's graph.

    ``relationship_ids`` caches the relationships whose endpoints
    are both members of the map.
    """

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    tags: Set[str] = Field(default_factory=set)
    is_public: bool = False

    relationship_ids: List[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}


class MapConcept(BaseModel):
    """Membership row of a concept in a map."""
    map_id: str
    concept_id: str
    x: float = 0.0
    y: float = 0.0

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def position(self) -> Position:
        return Position(x=self.x, y=self.y)


class MapView(BaseModel):
    """A map hydrated with its member concepts, positions and edges."""
    map: KnowledgeMap
    concepts: List[Concept] = Field(default_factory=list)
    positions: Dict[str, Position] = Field(default_factory=dict)
    relationships: List[Relationship] = Field(default_factory=list)


# =========================================================
# LEARNING PATHS
# =========================================================

def step_label(order: int, concept_name: str) -> str:
    """Default description of a generated step."""
    return f"Step {order}: {concept_name}"


def relabel_step(description: str, old_order: int, new_order: int, concept_name: str) -> str:
    """Follow a renumbering: default labels are regenerated, custom text is kept."""
    if description == step_label(old_order, concept_name):
        return step_label(new_order, concept_name)
    return description


class PathStep(BaseModel):
    """One ordered step of a learning path."""
    id: str = Field(default_factory=new_id)
    path_id: str
    concept_id: str
    order: int = Field(..., ge=1)
    description: str = ""

    # Hydrated on read, never persisted
    concept: Optional[Concept] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}


class LearningPath(BaseModel):
    """
    An ordered study route through concepts.

    Step orders form a contiguous 1-based sequence.
    """

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    tags: Set[str] = Field(default_factory=set)

    steps: List[PathStep] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}

    def concept_ids(self) -> List[str]:
        return [step.concept_id for step in sorted(self.steps, key=lambda s: s.order)]


# =========================================================
# PATH FINDING RESULTS
# =========================================================

class PathHop(BaseModel):
    """A single traversal of an edge, in travel direction."""
    from_id: str
    to_id: str
    relationship: GraphEdge


class NotFoundReason(str, Enum):
    """Why a path search produced no hops."""
    SAME_CONCEPT = "same_concept"
    UNREACHABLE = "unreachable"
    DEPTH_LIMIT = "depth_limit"     # Search was cut off by max_depth


class PathFound(BaseModel):
    kind: Literal["found"] = "found"
    hops: List[PathHop] = Field(..., min_length=1)

    @property
    def found(self) -> bool:
        return True

    @property
    def concept_ids(self) -> List[str]:
        """Visited concept ids from start to end."""
        return [self.hops[0].from_id] + [hop.to_id for hop in self.hops]


class PathNotFound(BaseModel):
    kind: Literal["not_found"] = "not_found"
    reason: NotFoundReason = NotFoundReason.UNREACHABLE

    @property
    def found(self) -> bool:
        return False

    @property
    def hops(self) -> List[PathHop]:
        return []


PathResult = Annotated[Union[PathFound, PathNotFound], Field(discriminator="kind")]


# =========================================================
# PREREQUISITE GRAPHS
# =========================================================

class PrerequisiteNode(BaseModel):
    id: str
    label: str
    description: str = ""
    level: int = Field(..., ge=0)


class PrerequisiteEdge(BaseModel):
    source_id: str
    target_id: str
    type: str
    strength: float


class PrerequisiteGraph(BaseModel):
    """
    Leveled graph of the prerequisites of a root concept.

    Level 0 is the root; level k holds prerequisites of level k-1.
    """
    root_id: str
    nodes: List[PrerequisiteNode] = Field(default_factory=list)
    edges: List[PrerequisiteEdge] = Field(default_factory=list)

    def level(self, level: int) -> List[str]:
        return [node.id for node in self.nodes if node.level == level]

    def levels(self) -> Dict[int, List[str]]:
        result: Dict[int, List[str]] = {}
        for node in self.nodes:
            result.setdefault(node.level, []).append(node.id)
        return result

    @property
    def depth(self) -> int:
        return max((node.level for node in self.nodes), default=0)


# =========================================================
# DIFFICULTY
# =========================================================

class StepDifficulty(BaseModel):
    step_id: str
    concept_id: str
    concept_name: str
    step_order: int
    difficulty: float = Field(..., ge=0.0, le=1.0)
    cumulative_difficulty: float = Field(..., ge=0.0)


class DifficultyProgression(BaseModel):
    path_id: str
    path_name: str
    step_count: int
    total_difficulty: float
    average_difficulty: float
    progression: List[StepDifficulty] = Field(default_factory=list)


# =========================================================
# MAP ANALYSIS
# =========================================================

class ConceptDegree(BaseModel):
    """Degree of one map member, counted over the map's own edges."""
    concept_id: str
    name: str
    in_degree: int = 0
    out_degree: int = 0

    @property
    def total(self) -> int:
        return self.in_degree + self.out_degree


class MapAnalysis(BaseModel):
    """
    Structural metrics of a knowledge map.

    Density is edges / (n * (n - 1)) for a directed graph of n members
    (0 with fewer than two members); average degree is 2 * edges / n.
    """
    map_id: str
    concept_count: int
    relationship_count: int
    density: float
    average_degree: float

    degrees: Dict[str, ConceptDegree] = Field(default_factory=dict)
    central_concepts: List[ConceptDegree] = Field(default_factory=list)
    isolated_concepts: List[ConceptDegree] = Field(default_factory=list)
    relationship_types: Dict[str, int] = Field(default_factory=dict)
