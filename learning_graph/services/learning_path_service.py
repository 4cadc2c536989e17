"""
Learning Path Generator - persisted study routes and derived metrics.

Provides:
- Manual path authoring (create, append steps, read, list, edit, delete)
- Step editing: remove and reorder, always renumbered from 1
- Paths generated from the shortest route between two concepts
- Paths generated from the concepts extracted from a document
- Paths generated from a knowledge map in prerequisite order
- Leveled prerequisite graphs
- Per-step difficulty progression

Step orders always form a contiguous sequence starting at 1.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from ..budget import OperationBudget
from ..errors import (
    EmptyLearningPathError,
    GraphValidationError,
    LearningPathNotFoundError,
    MapNotFoundError,
    NoPathFoundError,
    PathStepNotFoundError,
)
from ..models import (
    Concept,
    ConceptOrigin,
    DifficultyProgression,
    LearningPath,
    PathStep,
    PrerequisiteEdge,
    PrerequisiteGraph,
    PrerequisiteNode,
    RelationshipType,
    StepDifficulty,
    step_label,
)
from .graph_service import KnowledgeGraphService
from .path_finder import PathFinder


logger = logging.getLogger(__name__)

BASE_DIFFICULTY = 0.5
TAG_DIFFICULTY = 0.05
MAX_DESCRIPTION_DIFFICULTY = 0.2


def concept_difficulty(concept: Optional[Concept]) -> float:
    """
    Heuristic difficulty of a concept in [0, 1].

    Starts at 0.5, adds 0.05 per tag and up to 0.2 for the
    description length (one point per 1000 characters).
    """
    difficulty = BASE_DIFFICULTY
    if concept is not None:
        difficulty += TAG_DIFFICULTY * len(concept.tags)
        difficulty += min(MAX_DESCRIPTION_DIFFICULTY, len(concept.description) / 1000)
    return max(0.0, min(1.0, difficulty))


def document_order_key(concept: Concept) -> tuple:
    """Sort key: extraction order when known, then name (case-insensitive)."""
    order = concept.extraction_order
    return (order is None, order if order is not None else 0, concept.name.casefold())


def prerequisite_order(
    concept_ids: Sequence[str],
    edges: Iterable[tuple[str, str]],
) -> List[str]:
    """
    Order concepts so that each follows its prerequisites where possible.

    ``edges`` are (prerequisite, dependent) pairs; pairs leaving the
    given concepts and self-loops are ignored.

    Concepts without prerequisites come first, in input order. Then
    repeated passes in input order place every concept whose
    prerequisites are all placed. When a cycle stalls a pass, the
    concept with the most placed prerequisites goes next (ties: fewest
    prerequisites, then input order).
    """
    members = list(dict.fromkeys(concept_ids))
    prerequisites: dict[str, set[str]] = {concept_id: set() for concept_id in members}
    for source, target in edges:
        if source != target and source in prerequisites and target in prerequisites:
            prerequisites[target].add(source)

    ordered = [concept_id for concept_id in members if not prerequisites[concept_id]]
    placed = set(ordered)

    while len(ordered) < len(members):
        added = False
        for concept_id in members:
            if concept_id not in placed and prerequisites[concept_id] <= placed:
                ordered.append(concept_id)
                placed.add(concept_id)
                added = True

        if not added:
            remaining = [concept_id for concept_id in members if concept_id not in placed]
            chosen = min(
                remaining,
                key=lambda c: (-len(prerequisites[c] & placed), len(prerequisites[c])),
            )
            ordered.append(chosen)
            placed.add(chosen)

    return ordered


class LearningPathGenerator:
    """
    Builds and manages learning paths over an owner's graph.

    Usage:
        generator = LearningPathGenerator(graph_service)
        path = generator.generate_path("user-1", algebra.id, calculus.id, name="To calculus")
        progression = generator.generate_difficulty_progression("user-1", path.id)
    """

    def __init__(
        self,
        graph_service: KnowledgeGraphService,
        path_finder: Optional[PathFinder] = None,
    ):
        self._graph = graph_service
        self._storage = graph_service.storage
        self._finder = path_finder or PathFinder(graph_service)

    # =========================================================
    # PATH CRUD
    # =========================================================

    def create_learning_path(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        tags: Optional[Iterable[str]] = None,
    ) -> LearningPath:
        """Create an empty learning path."""
        name = (name or "").strip()
        if not name:
            raise GraphValidationError("Learning path name must not be empty")

        path = LearningPath(
            owner_id=owner_id,
            name=name,
            description=description,
            tags=set(tags or []),
        )
        created = self._storage.create_path(path)
        logger.info(f"Created learning path '{created.name}' ({created.id})")
        return created

    def add_path_steps(
        self,
        owner_id: str,
        path_id: str,
        concept_ids: Sequence[str],
        descriptions: Optional[Sequence[str]] = None,
    ) -> LearningPath:
        """
        Append concepts to the end of a path.

        Args:
            concept_ids: Concepts in study order
            descriptions: Optional per-step descriptions, aligned with concept_ids;
                defaults to "Step n: <concept name>"

        Raises:
            LearningPathNotFoundError: Unknown path
            ConceptNotFoundError: A concept id is not one of the owner's concepts
        """
        path = self._require_path(owner_id, path_id)
        if descriptions is not None and len(descriptions) != len(concept_ids):
            raise GraphValidationError("descriptions must align with concept_ids")

        concepts = [self._graph.get_concept(owner_id, concept_id) for concept_id in concept_ids]
        start = len(self._storage.get_path_steps(path_id)) + 1

        steps = []
        for offset, concept in enumerate(concepts):
            order = start + offset
            description = descriptions[offset] if descriptions is not None else ""
            steps.append(PathStep(
                path_id=path_id,
                concept_id=concept.id,
                order=order,
                description=description or step_label(order, concept.name),
            ))

        if steps:
            self._storage.add_path_steps(path_id, steps)
            self._touch(path)

        return self.get_path(owner_id, path_id)

    def get_path(self, owner_id: str, path_id: str) -> LearningPath:
        """A learning path with its ordered steps, each hydrated with its concept."""
        path = self._require_path(owner_id, path_id)
        steps = self._storage.get_path_steps(path_id)
        concepts = {
            concept.id: concept
            for concept in self._storage.get_concepts(owner_id, [step.concept_id for step in steps])
        }
        for step in steps:
            step.concept = concepts.get(step.concept_id)
        path.steps = steps
        return path

    def list_paths(self, owner_id: str) -> List[LearningPath]:
        """Path headers (without steps), most recently updated first."""
        return self._storage.list_paths(owner_id)

    def delete_path(self, owner_id: str, path_id: str) -> None:
        if not self._storage.delete_path(owner_id, path_id):
            raise LearningPathNotFoundError(path_id)
        logger.info(f"Deleted learning path {path_id}")

    def update_path(
        self,
        owner_id: str,
        path_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> LearningPath:
        """
        Edit a path header.

        Arguments left as None keep the stored value; ``tags`` replaces
        the whole tag set.
        """
        path = self._require_path(owner_id, path_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise GraphValidationError("Learning path name must not be empty")
            path.name = name
        if description is not None:
            path.description = description
        if tags is not None:
            path.tags = set(tags)

        self._touch(path)
        logger.info(f"Updated learning path '{path.name}' ({path_id})")
        return self.get_path(owner_id, path_id)

    # =========================================================
    # STEP EDITING
    # =========================================================

    def remove_step(self, owner_id: str, path_id: str, step_id: str) -> LearningPath:
        """
        Remove one step; the steps after it move up by one.

        Raises:
            LearningPathNotFoundError: Unknown path
            PathStepNotFoundError: The step is not on this path
        """
        path = self._require_path(owner_id, path_id)
        if not self._storage.remove_path_step(path_id, step_id):
            raise PathStepNotFoundError(step_id)

        self._touch(path)
        logger.info(f"Removed step {step_id} from learning path {path_id}")
        return self.get_path(owner_id, path_id)

    def reorder_steps(self, owner_id: str, path_id: str, step_ids: Sequence[str]) -> LearningPath:
        """
        Put the steps of a path in a new order.

        Args:
            step_ids: Every step id of the path, each exactly once

        Raises:
            GraphValidationError: step_ids is not a permutation of the path's steps
        """
        path = self._require_path(owner_id, path_id)
        current = [step.id for step in self._storage.get_path_steps(path_id)]
        step_ids = list(step_ids)
        if sorted(step_ids) != sorted(current):
            raise GraphValidationError(
                f"step_ids must list each of the {len(current)} steps of path {path_id} once"
            )

        self._storage.reorder_path_steps(path_id, step_ids)
        self._touch(path)
        logger.info(f"Reordered {len(step_ids)} steps of learning path {path_id}")
        return self.get_path(owner_id, path_id)

    def _touch(self, path: LearningPath) -> None:
        path.updated_at = datetime.utcnow()
        self._storage.update_path(path)

    def _require_path(self, owner_id: str, path_id: str) -> LearningPath:
        path = self._storage.get_path(owner_id, path_id)
        if path is None:
            raise LearningPathNotFoundError(path_id)
        return path

    def _persist(
        self,
        owner_id: str,
        name: str,
        description: str,
        tags: Optional[Iterable[str]],
        steps: List[tuple[Concept, str]],
    ) -> LearningPath:
        path = self.create_learning_path(owner_id, name, description, tags)
        self._storage.add_path_steps(path.id, [
            PathStep(path_id=path.id, concept_id=concept.id, order=order, description=text)
            for order, (concept, text) in enumerate(steps, start=1)
        ])
        return self.get_path(owner_id, path.id)

    # =========================================================
    # GENERATION
    # =========================================================

    def generate_path(
        self,
        owner_id: str,
        start_id: str,
        end_id: str,
        name: str,
        description: str = "",
        tags: Optional[Iterable[str]] = None,
        max_depth: int = 5,
        min_strength: float = 0.3,
    ) -> LearningPath:
        """
        Persist the shortest route from start_id to end_id as a learning path.

        Step 1 is the start concept; each following step is the concept
        reached by the next hop.

        Raises:
            NoPathFoundError: The path finder returned no hops
            ConceptNotFoundError: Unknown start or end concept
        """
        result = self._finder.find_path(
            owner_id, start_id, end_id, max_depth=max_depth, min_strength=min_strength
        )
        if not result.found:
            logger.info(
                f"No path {start_id} -> {end_id} for owner {owner_id} ({result.reason.value})"
            )
            raise NoPathFoundError(start_id, end_id, max_depth)

        concept_ids = result.concept_ids
        concepts = {
            concept.id: concept
            for concept in self._storage.get_concepts(owner_id, concept_ids)
        }

        steps = [(concepts[start_id], "Starting concept")]
        for order, concept_id in enumerate(concept_ids[1:], start=2):
            concept = concepts[concept_id]
            steps.append((concept, step_label(order, concept.name)))

        path = self._persist(owner_id, name, description, tags, steps)
        logger.info(f"Generated learning path '{path.name}' with {len(path.steps)} steps")
        return path

    def generate_path_from_document(
        self,
        owner_id: str,
        document_id: str,
        name: str,
        description: str = "",
        tags: Optional[Iterable[str]] = None,
        extract: bool = True,
    ) -> LearningPath:
        """
        Persist the concepts of a document as a learning path.

        Args:
            extract: Run document extraction first (needs a document source)

        Concepts with origin=document and origin_ref=document_id are
        ordered by extraction order, then case-insensitively by name.

        Raises:
            EmptyLearningPathError: The document yielded no concepts
        """
        if extract:
            self._graph.extract_from_document(owner_id, document_id)

        concepts = self._storage.list_concepts(
            owner_id, origin=ConceptOrigin.DOCUMENT, origin_ref=document_id
        )
        if not concepts:
            raise EmptyLearningPathError(f"No concepts found in document {document_id}")

        ordered = sorted(concepts, key=document_order_key)
        steps = [
            (concept, step_label(order, concept.name))
            for order, concept in enumerate(ordered, start=1)
        ]
        path = self._persist(owner_id, name, description, tags, steps)
        logger.info(
            f"Generated learning path '{path.name}' from document {document_id} "
            f"with {len(path.steps)} steps"
        )
        return path

    def generate_path_from_map(
        self,
        owner_id: str,
        map_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        min_strength: float = 0.0,
    ) -> LearningPath:
        """
        Persist the members of a knowledge map as a learning path.

        Members are put in prerequisite order (see prerequisite_order)
        using the ``prerequisite`` edges between them. Name and
        description default to ones derived from the map.

        Raises:
            MapNotFoundError: Unknown map
            EmptyLearningPathError: The map has no members
        """
        if not 0.0 <= min_strength <= 1.0:
            raise GraphValidationError(f"min_strength must be between 0 and 1, got {min_strength}")

        knowledge_map = self._storage.get_map(owner_id, map_id)
        if knowledge_map is None:
            raise MapNotFoundError(map_id)

        member_ids = [member.concept_id for member in self._storage.get_map_concepts(map_id)]
        if not member_ids:
            raise EmptyLearningPathError(f"Knowledge map has no concepts: {map_id}")

        relationships = self._storage.list_relationships(
            owner_id,
            min_strength=min_strength,
            type=RelationshipType.PREREQUISITE.value,
            within_ids=member_ids,
        )
        ordered_ids = prerequisite_order(
            member_ids,
            [(rel.source_concept_id, rel.target_concept_id) for rel in relationships],
        )

        concepts = {
            concept.id: concept
            for concept in self._storage.get_concepts(owner_id, ordered_ids)
        }
        steps = [
            (concepts[concept_id], step_label(order, concepts[concept_id].name))
            for order, concept_id in enumerate(ordered_ids, start=1)
        ]
        path = self._persist(
            owner_id,
            name or f"Learning Path for {knowledge_map.name}",
            description if description is not None
            else f'Generated from the knowledge map "{knowledge_map.name}"',
            tags,
            steps,
        )
        logger.info(
            f"Generated learning path '{path.name}' from map {map_id} "
            f"with {len(path.steps)} steps"
        )
        return path

    def generate_prerequisite_graph(
        self,
        owner_id: str,
        concept_id: str,
        max_depth: int = 3,
        min_strength: float = 0.5,
        budget: Optional[OperationBudget] = None,
    ) -> PrerequisiteGraph:
        """
        Leveled graph of everything that must be learned before concept_id.

        Follows prerequisite edges backward (edges whose target is in the
        current level) one level at a time, up to max_depth levels. A node
        keeps the first level it was found at; an edge is added once.
        """
        if max_depth < 1:
            raise GraphValidationError(f"max_depth must be at least 1, got {max_depth}")
        if not 0.0 <= min_strength <= 1.0:
            raise GraphValidationError(f"min_strength must be between 0 and 1, got {min_strength}")

        root = self._graph.get_concept(owner_id, concept_id)
        nodes = {
            root.id: PrerequisiteNode(
                id=root.id, label=root.name, description=root.description, level=0
            )
        }
        edges: list[PrerequisiteEdge] = []
        seen_edges: set[tuple[str, str]] = set()

        for depth in range(max_depth):
            if budget is not None:
                budget.check("prerequisite graph", completed_steps=depth)

            level_ids = [node.id for node in nodes.values() if node.level == depth]
            if not level_ids:
                break

            relationships = self._storage.list_relationships(
                owner_id,
                min_strength=min_strength,
                type=RelationshipType.PREREQUISITE.value,
                target_ids=level_ids,
            )
            if not relationships:
                break

            new_ids = []
            for rel in relationships:
                key = (rel.source_concept_id, rel.target_concept_id)
                if key not in seen_edges:
                    seen_edges.add(key)
                    edges.append(PrerequisiteEdge(
                        source_id=rel.source_concept_id,
                        target_id=rel.target_concept_id,
                        type=rel.type,
                        strength=rel.strength,
                    ))
                if rel.source_concept_id not in nodes and rel.source_concept_id not in new_ids:
                    new_ids.append(rel.source_concept_id)

            for concept in self._storage.get_concepts(owner_id, new_ids):
                nodes[concept.id] = PrerequisiteNode(
                    id=concept.id,
                    label=concept.name,
                    description=concept.description,
                    level=depth + 1,
                )

        graph = PrerequisiteGraph(root_id=root.id, nodes=list(nodes.values()), edges=edges)
        logger.debug(
            f"Prerequisite graph for {root.name}: {len(graph.nodes)} nodes, "
            f"depth {graph.depth}"
        )
        return graph

    def generate_difficulty_progression(self, owner_id: str, path_id: str) -> DifficultyProgression:
        """
        Per-step difficulty and running total for a learning path.

        Raises:
            LearningPathNotFoundError: Unknown path
            EmptyLearningPathError: The path has no steps
        """
        path = self.get_path(owner_id, path_id)
        if not path.steps:
            raise EmptyLearningPathError(f"Learning path has no steps: {path_id}")

        cumulative = 0.0
        progression = []
        for step in path.steps:
            difficulty = concept_difficulty(step.concept)
            cumulative += difficulty
            progression.append(StepDifficulty(
                step_id=step.id,
                concept_id=step.concept_id,
                concept_name=step.concept.name if step.concept else "Unknown",
                step_order=step.order,
                difficulty=difficulty,
                cumulative_difficulty=cumulative,
            ))

        return DifficultyProgression(
            path_id=path.id,
            path_name=path.name,
            step_count=len(path.steps),
            total_difficulty=cumulative,
            average_difficulty=cumulative / len(path.steps),
            progression=progression,
        )
