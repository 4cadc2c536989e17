"""
Graph storage interface for the learning graph.

Provides CRUD and filtered queries over concepts, relationships,
knowledge maps and learning paths, all keyed by owner id.

Implementations must enforce:
- concept names unique per owner (case-insensitive)
- one relationship per (owner, source, target) pair
- relationship endpoints owned by the relationship's owner
- deleting a concept cascades to its relationships, map memberships
  and path steps, keeping step order contiguous
- removing or reordering steps renumbers them 1..n and regenerates
  default "Step n: <name>" labels to match the new order
"""

from abc import abstractmethod
from typing import Iterable, List, Optional

from ..models import (
    Concept,
    ConceptOrigin,
    KnowledgeMap,
    LearningPath,
    MapConcept,
    PathStep,
    Relationship,
)
from .base import StorageBackend


class GraphStorage(StorageBackend):
    """Abstract interface for graph storage operations."""

    # =========================================================
    # CONCEPTS
    # =========================================================

    @abstractmethod
    def create_concept(self, concept: Concept) -> Concept:
        """Insert a new concept. Raises DuplicateRecordError on a name clash."""
        pass

    @abstractmethod
    def get_concept(self, owner_id: str, concept_id: str) -> Optional[Concept]:
        """Get a concept by id, scoped to its owner."""
        pass

    @abstractmethod
    def get_concept_by_name(self, owner_id: str, name: str) -> Optional[Concept]:
        """Get a concept by name, compared case-insensitively."""
        pass

    @abstractmethod
    def get_concepts(self, owner_id: str, concept_ids: Iterable[str]) -> List[Concept]:
        """Get several concepts, in the order requested. Missing ids are skipped."""
        pass

    @abstractmethod
    def update_concept(self, concept: Concept) -> Concept:
        """Replace a stored concept."""
        pass

    @abstractmethod
    def delete_concept(self, owner_id: str, concept_id: str) -> bool:
        """Delete a concept and everything that references it."""
        pass

    @abstractmethod
    def list_concepts(
        self,
        owner_id: str,
        tags: Optional[Iterable[str]] = None,
        origin: Optional[ConceptOrigin] = None,
        origin_ref: Optional[str] = None,
    ) -> List[Concept]:
        """List concepts in insertion order. ``tags`` must all be present."""
        pass

    # =========================================================
    # RELATIONSHIPS
    # =========================================================

    @abstractmethod
    def create_relationship(self, relationship: Relationship) -> Relationship:
        """Insert a new relationship."""
        pass

    @abstractmethod
    def get_relationship(self, owner_id: str, relationship_id: str) -> Optional[Relationship]:
        """Get a relationship by id."""
        pass

    @abstractmethod
    def get_relationship_between(
        self,
        owner_id: str,
        source_concept_id: str,
        target_concept_id: str,
    ) -> Optional[Relationship]:
        """Get the relationship for an ordered (source, target) pair."""
        pass

    @abstractmethod
    def update_relationship(self, relationship: Relationship) -> Relationship:
        """Replace a stored relationship."""
        pass

    @abstractmethod
    def delete_relationship(self, owner_id: str, relationship_id: str) -> bool:
        """Delete a relationship."""
        pass

    @abstractmethod
    def list_relationships(
        self,
        owner_id: str,
        min_strength: float = 0.0,
        type: Optional[str] = None,
        concept_id: Optional[str] = None,
        target_ids: Optional[Iterable[str]] = None,
        within_ids: Optional[Iterable[str]] = None,
    ) -> List[Relationship]:
        """
        List relationships in insertion order.

        Args:
            min_strength: Keep edges with strength >= this value
            type: Keep edges with this type label
            concept_id: Keep edges touching this concept (either end)
            target_ids: Keep edges whose target is one of these
            within_ids: Keep edges whose endpoints are both in this set
        """
        pass

    # =========================================================
    # KNOWLEDGE MAPS
    # =========================================================

    @abstractmethod
    def create_map(self, knowledge_map: KnowledgeMap) -> KnowledgeMap:
        pass

    @abstractmethod
    def get_map(self, owner_id: str, map_id: str) -> Optional[KnowledgeMap]:
        pass

    @abstractmethod
    def update_map(self, knowledge_map: KnowledgeMap) -> KnowledgeMap:
        pass

    @abstractmethod
    def delete_map(self, owner_id: str, map_id: str) -> bool:
        """Delete a map and its membership rows (never the concepts)."""
        pass

    @abstractmethod
    def list_maps(self, owner_id: str) -> List[KnowledgeMap]:
        """List maps, most recently updated first."""
        pass

    @abstractmethod
    def add_map_concepts(self, map_id: str, members: List[MapConcept]) -> None:
        pass

    @abstractmethod
    def get_map_concepts(self, map_id: str) -> List[MapConcept]:
        """Membership rows in insertion order."""
        pass

    @abstractmethod
    def update_map_concept_position(self, map_id: str, concept_id: str, x: float, y: float) -> bool:
        pass

    @abstractmethod
    def remove_map_concepts(self, map_id: str, concept_ids: Iterable[str]) -> int:
        """Remove memberships; returns the number removed."""
        pass

    # =========================================================
    # LEARNING PATHS
    # =========================================================

    @abstractmethod
    def create_path(self, path: LearningPath) -> LearningPath:
        """Insert a learning path header (steps are stored separately)."""
        pass

    @abstractmethod
    def get_path(self, owner_id: str, path_id: str) -> Optional[LearningPath]:
        """Get a learning path header without steps."""
        pass

    @abstractmethod
    def update_path(self, path: LearningPath) -> LearningPath:
        pass

    @abstractmethod
    def delete_path(self, owner_id: str, path_id: str) -> bool:
        """Delete a path and its steps (never the concepts)."""
        pass

    @abstractmethod
    def list_paths(self, owner_id: str) -> List[LearningPath]:
        """List path headers, most recently updated first."""
        pass

    @abstractmethod
    def add_path_steps(self, path_id: str, steps: List[PathStep]) -> None:
        """Insert steps. Raises DuplicateRecordError on a repeated order."""
        pass

    @abstractmethod
    def get_path_steps(self, path_id: str) -> List[PathStep]:
        """Steps ordered by ``order``."""
        pass

    @abstractmethod
    def remove_path_step(self, path_id: str, step_id: str) -> bool:
        """Delete one step and renumber the rest."""
        pass

    @abstractmethod
    def reorder_path_steps(self, path_id: str, step_ids: List[str]) -> None:
        """
        Renumber steps to follow ``step_ids``.

        Raises StorageIntegrityError unless ``step_ids`` lists every step
        of the path exactly once.
        """
        pass
