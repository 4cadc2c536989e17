"""
In-memory graph storage.

Dict-backed implementation of GraphStorage used for tests, notebooks
and single-process tools. Records are copied on the way in and out so
callers never share mutable state with the store.
"""

import logging
from typing import Iterable, List, Optional

from ..errors import DuplicateRecordError, StorageIntegrityError
from ..models import (
    Concept,
    ConceptOrigin,
    KnowledgeMap,
    LearningPath,
    MapConcept,
    PathStep,
    Relationship,
    normalize_name,
    relabel_step,
)
from .graph import GraphStorage


logger = logging.getLogger(__name__)


class InMemoryGraphStorage(GraphStorage):
    """
    In-memory graph storage.

    Uses insertion-ordered dicts so list queries return records
    in creation order, like a rowid-ordered table.
    """

    def __init__(self) -> None:
        self._connected = True

        self._concepts: dict[str, Concept] = {}
        self._name_index: dict[tuple[str, str], str] = {}

        self._relationships: dict[str, Relationship] = {}
        self._pair_index: dict[tuple[str, str, str], str] = {}

        self._maps: dict[str, KnowledgeMap] = {}
        self._map_concepts: dict[str, dict[str, MapConcept]] = {}

        self._paths: dict[str, LearningPath] = {}
        self._steps: dict[str, list[PathStep]] = {}

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def health_check(self) -> bool:
        return self._connected

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ─────────────────────────────────────────────────────────────────────────
    # Concepts
    # ─────────────────────────────────────────────────────────────────────────

    def create_concept(self, concept: Concept) -> Concept:
        key = (concept.owner_id, concept.name_key)
        if key in self._name_index:
            raise DuplicateRecordError(
                f"Concept name already exists for owner {concept.owner_id}: {concept.name}"
            )
        if concept.id in self._concepts:
            raise DuplicateRecordError(f"Concept already exists: {concept.id}")

        self._concepts[concept.id] = concept.model_copy(deep=True)
        self._name_index[key] = concept.id
        return concept.model_copy(deep=True)

    def get_concept(self, owner_id: str, concept_id: str) -> Optional[Concept]:
        concept = self._concepts.get(concept_id)
        if concept is None or concept.owner_id != owner_id:
            return None
        return concept.model_copy(deep=True)

    def get_concept_by_name(self, owner_id: str, name: str) -> Optional[Concept]:
        concept_id = self._name_index.get((owner_id, normalize_name(name)))
        if concept_id is None:
            return None
        return self._concepts[concept_id].model_copy(deep=True)

    def get_concepts(self, owner_id: str, concept_ids: Iterable[str]) -> List[Concept]:
        result = []
        for concept_id in concept_ids:
            concept = self.get_concept(owner_id, concept_id)
            if concept is not None:
                result.append(concept)
        return result

    def update_concept(self, concept: Concept) -> Concept:
        existing = self._concepts.get(concept.id)
        if existing is None or existing.owner_id != concept.owner_id:
            raise StorageIntegrityError(f"Cannot update unknown concept: {concept.id}")

        new_key = (concept.owner_id, concept.name_key)
        if new_key != (existing.owner_id, existing.name_key):
            if new_key in self._name_index:
                raise DuplicateRecordError(
                    f"Concept name already exists for owner {concept.owner_id}: {concept.name}"
                )
            del self._name_index[(existing.owner_id, existing.name_key)]
            self._name_index[new_key] = concept.id

        self._concepts[concept.id] = concept.model_copy(deep=True)
        return concept.model_copy(deep=True)

    def delete_concept(self, owner_id: str, concept_id: str) -> bool:
        concept = self._concepts.get(concept_id)
        if concept is None or concept.owner_id != owner_id:
            return False

        del self._concepts[concept_id]
        del self._name_index[(owner_id, concept.name_key)]

        # Relationships touching the concept
        removed_rel_ids = set()
        for rel in list(self._relationships.values()):
            if concept_id in (rel.source_concept_id, rel.target_concept_id):
                removed_rel_ids.add(rel.id)
                del self._relationships[rel.id]
                del self._pair_index[(rel.owner_id, rel.source_concept_id, rel.target_concept_id)]

        # Map memberships and cached map edges
        for map_id, members in self._map_concepts.items():
            members.pop(concept_id, None)
            knowledge_map = self._maps[map_id]
            if removed_rel_ids.intersection(knowledge_map.relationship_ids):
                knowledge_map.relationship_ids = [
                    rid for rid in knowledge_map.relationship_ids if rid not in removed_rel_ids
                ]

        # Path steps, renumbered to stay contiguous
        for path_id, steps in self._steps.items():
            if any(step.concept_id == concept_id for step in steps):
                self._renumber(path_id, [step for step in steps if step.concept_id != concept_id])

        logger.info(
            f"Deleted concept {concept_id} with {len(removed_rel_ids)} relationships"
        )
        return True

    def list_concepts(
        self,
        owner_id: str,
        tags: Optional[Iterable[str]] = None,
        origin: Optional[ConceptOrigin] = None,
        origin_ref: Optional[str] = None,
    ) -> List[Concept]:
        required_tags = set(tags or [])
        if origin is not None:
            origin = ConceptOrigin(origin)
        result = []
        for concept in self._concepts.values():
            if concept.owner_id != owner_id:
                continue
            if required_tags and not required_tags.issubset(concept.tags):
                continue
            if origin is not None and concept.origin != origin:
                continue
            if origin_ref is not None and concept.origin_ref != origin_ref:
                continue
            result.append(concept.model_copy(deep=True))
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Relationships
    # ─────────────────────────────────────────────────────────────────────────

    def create_relationship(self, relationship: Relationship) -> Relationship:
        for endpoint in (relationship.source_concept_id, relationship.target_concept_id):
            concept = self._concepts.get(endpoint)
            if concept is None or concept.owner_id != relationship.owner_id:
                raise StorageIntegrityError(
                    f"Relationship endpoint {endpoint} is not a concept of owner "
                    f"{relationship.owner_id}"
                )

        key = (
            relationship.owner_id,
            relationship.source_concept_id,
            relationship.target_concept_id,
        )
        if key in self._pair_index:
            raise DuplicateRecordError(
                f"Relationship already exists: {relationship.source_concept_id} -> "
                f"{relationship.target_concept_id}"
            )

        self._relationships[relationship.id] = relationship.model_copy(deep=True)
        self._pair_index[key] = relationship.id
        return relationship.model_copy(deep=True)

    def get_relationship(self, owner_id: str, relationship_id: str) -> Optional[Relationship]:
        rel = self._relationships.get(relationship_id)
        if rel is None or rel.owner_id != owner_id:
            return None
        return rel.model_copy(deep=True)

    def get_relationship_between(
        self,
        owner_id: str,
        source_concept_id: str,
        target_concept_id: str,
    ) -> Optional[Relationship]:
        rel_id = self._pair_index.get((owner_id, source_concept_id, target_concept_id))
        if rel_id is None:
            return None
        return self._relationships[rel_id].model_copy(deep=True)

    def update_relationship(self, relationship: Relationship) -> Relationship:
        existing = self._relationships.get(relationship.id)
        if existing is None or existing.owner_id != relationship.owner_id:
            raise StorageIntegrityError(f"Cannot update unknown relationship: {relationship.id}")
        if (existing.source_concept_id, existing.target_concept_id) != (
            relationship.source_concept_id,
            relationship.target_concept_id,
        ):
            raise StorageIntegrityError("Relationship endpoints cannot be changed")

        self._relationships[relationship.id] = relationship.model_copy(deep=True)
        return relationship.model_copy(deep=True)

    def delete_relationship(self, owner_id: str, relationship_id: str) -> bool:
        rel = self._relationships.get(relationship_id)
        if rel is None or rel.owner_id != owner_id:
            return False

        del self._relationships[relationship_id]
        del self._pair_index[(rel.owner_id, rel.source_concept_id, rel.target_concept_id)]

        for knowledge_map in self._maps.values():
            if relationship_id in knowledge_map.relationship_ids:
                knowledge_map.relationship_ids.remove(relationship_id)
        return True

    def list_relationships(
        self,
        owner_id: str,
        min_strength: float = 0.0,
        type: Optional[str] = None,
        concept_id: Optional[str] = None,
        target_ids: Optional[Iterable[str]] = None,
        within_ids: Optional[Iterable[str]] = None,
    ) -> List[Relationship]:
        targets = set(target_ids) if target_ids is not None else None
        within = set(within_ids) if within_ids is not None else None

        result = []
        for rel in self._relationships.values():
            if rel.owner_id != owner_id or rel.strength < min_strength:
                continue
            if type is not None and rel.type != type:
                continue
            if concept_id is not None and concept_id not in (
                rel.source_concept_id,
                rel.target_concept_id,
            ):
                continue
            if targets is not None and rel.target_concept_id not in targets:
                continue
            if within is not None and not (
                rel.source_concept_id in within and rel.target_concept_id in within
            ):
                continue
            result.append(rel.model_copy(deep=True))
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Knowledge maps
    # ─────────────────────────────────────────────────────────────────────────

    def create_map(self, knowledge_map: KnowledgeMap) -> KnowledgeMap:
        if knowledge_map.id in self._maps:
            raise DuplicateRecordError(f"Knowledge map already exists: {knowledge_map.id}")
        self._maps[knowledge_map.id] = knowledge_map.model_copy(deep=True)
        self._map_concepts[knowledge_map.id] = {}
        return knowledge_map.model_copy(deep=True)

    def get_map(self, owner_id: str, map_id: str) -> Optional[KnowledgeMap]:
        knowledge_map = self._maps.get(map_id)
        if knowledge_map is None or knowledge_map.owner_id != owner_id:
            return None
        return knowledge_map.model_copy(deep=True)

    def update_map(self, knowledge_map: KnowledgeMap) -> KnowledgeMap:
        existing = self._maps.get(knowledge_map.id)
        if existing is None or existing.owner_id != knowledge_map.owner_id:
            raise StorageIntegrityError(f"Cannot update unknown map: {knowledge_map.id}")
        self._maps[knowledge_map.id] = knowledge_map.model_copy(deep=True)
        return knowledge_map.model_copy(deep=True)

    def delete_map(self, owner_id: str, map_id: str) -> bool:
        knowledge_map = self._maps.get(map_id)
        if knowledge_map is None or knowledge_map.owner_id != owner_id:
            return False
        del self._maps[map_id]
        del self._map_concepts[map_id]
        return True

    def list_maps(self, owner_id: str) -> List[KnowledgeMap]:
        maps = [m for m in self._maps.values() if m.owner_id == owner_id]
        maps.sort(key=lambda m: m.updated_at, reverse=True)
        return [m.model_copy(deep=True) for m in maps]

    def add_map_concepts(self, map_id: str, members: List[MapConcept]) -> None:
        if map_id not in self._maps:
            raise StorageIntegrityError(f"Unknown map: {map_id}")
        rows = self._map_concepts[map_id]
        owner_id = self._maps[map_id].owner_id
        for member in members:
            concept = self._concepts.get(member.concept_id)
            if concept is None or concept.owner_id != owner_id:
                raise StorageIntegrityError(
                    f"Map member {member.concept_id} is not a concept of owner {owner_id}"
                )
            if member.concept_id in rows:
                raise DuplicateRecordError(
                    f"Concept {member.concept_id} is already on map {map_id}"
                )
        for member in members:
            rows[member.concept_id] = member.model_copy(deep=True)

    def get_map_concepts(self, map_id: str) -> List[MapConcept]:
        return [m.model_copy(deep=True) for m in self._map_concepts.get(map_id, {}).values()]

    def update_map_concept_position(self, map_id: str, concept_id: str, x: float, y: float) -> bool:
        member = self._map_concepts.get(map_id, {}).get(concept_id)
        if member is None:
            return False
        member.x = x
        member.y = y
        return True

    def remove_map_concepts(self, map_id: str, concept_ids: Iterable[str]) -> int:
        rows = self._map_concepts.get(map_id, {})
        removed = 0
        for concept_id in concept_ids:
            if rows.pop(concept_id, None) is not None:
                removed += 1
        return removed

    # ─────────────────────────────────────────────────────────────────────────
    # Learning paths
    # ─────────────────────────────────────────────────────────────────────────

    def create_path(self, path: LearningPath) -> LearningPath:
        if path.id in self._paths:
            raise DuplicateRecordError(f"Learning path already exists: {path.id}")
        header = path.model_copy(deep=True, update={"steps": []})
        self._paths[path.id] = header
        self._steps[path.id] = []
        return header.model_copy(deep=True)

    def get_path(self, owner_id: str, path_id: str) -> Optional[LearningPath]:
        path = self._paths.get(path_id)
        if path is None or path.owner_id != owner_id:
            return None
        return path.model_copy(deep=True)

    def update_path(self, path: LearningPath) -> LearningPath:
        existing = self._paths.get(path.id)
        if existing is None or existing.owner_id != path.owner_id:
            raise StorageIntegrityError(f"Cannot update unknown learning path: {path.id}")
        header = path.model_copy(deep=True, update={"steps": []})
        self._paths[path.id] = header
        return header.model_copy(deep=True)

    def delete_path(self, owner_id: str, path_id: str) -> bool:
        path = self._paths.get(path_id)
        if path is None or path.owner_id != owner_id:
            return False
        del self._paths[path_id]
        del self._steps[path_id]
        return True

    def list_paths(self, owner_id: str) -> List[LearningPath]:
        paths = [p for p in self._paths.values() if p.owner_id == owner_id]
        paths.sort(key=lambda p: p.updated_at, reverse=True)
        return [p.model_copy(deep=True) for p in paths]

    def add_path_steps(self, path_id: str, steps: List[PathStep]) -> None:
        if path_id not in self._paths:
            raise StorageIntegrityError(f"Unknown learning path: {path_id}")
        existing = self._steps[path_id]
        owner_id = self._paths[path_id].owner_id
        taken = {step.order for step in existing}
        for step in steps:
            concept = self._concepts.get(step.concept_id)
            if concept is None or concept.owner_id != owner_id:
                raise StorageIntegrityError(
                    f"Path step concept {step.concept_id} is not a concept of owner {owner_id}"
                )
            if step.order in taken:
                raise DuplicateRecordError(f"Step order {step.order} already used on path {path_id}")
            taken.add(step.order)
        for step in steps:
            existing.append(step.model_copy(deep=True, update={"concept": None}))
        existing.sort(key=lambda s: s.order)

    def get_path_steps(self, path_id: str) -> List[PathStep]:
        return [s.model_copy(deep=True) for s in self._steps.get(path_id, [])]

    def remove_path_step(self, path_id: str, step_id: str) -> bool:
        steps = self._steps.get(path_id, [])
        kept = [step for step in steps if step.id != step_id]
        if len(kept) == len(steps):
            return False
        self._renumber(path_id, kept)
        return True

    def reorder_path_steps(self, path_id: str, step_ids: List[str]) -> None:
        steps = {step.id: step for step in self._steps.get(path_id, [])}
        if len(step_ids) != len(steps) or set(step_ids) != set(steps):
            raise StorageIntegrityError(
                f"Reorder of path {path_id} must list each of its {len(steps)} steps once"
            )
        self._renumber(path_id, [steps[step_id] for step_id in step_ids])

    def _renumber(self, path_id: str, steps: List[PathStep]) -> None:
        for index, step in enumerate(steps, start=1):
            name = self._concepts[step.concept_id].name
            step.description = relabel_step(step.description, step.order, index, name)
            step.order = index
        self._steps[path_id] = steps
