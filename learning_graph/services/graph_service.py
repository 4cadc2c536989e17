"""
Knowledge Graph Service - the owner-scoped graph store.

Provides:
- Concept upsert with case-insensitive name merge
- Relationship upsert by name or id, with automatic stub concepts
- Filtered graph snapshots with a per-owner generation cache
- Multi-hop related-concept expansion
- Extraction from free text and processed documents

Every mutation bumps the owner's generation counter; the unfiltered
snapshot is cached as (snapshot, generation) and served only while the
generations still match.
"""

import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional

from ..errors import (
    ConceptNotFoundError,
    DocumentNotFoundError,
    DocumentNotReadyError,
    GraphValidationError,
    RelationshipNotFoundError,
)
from ..models import (
    Concept,
    ConceptOrigin,
    DocumentStatus,
    ExtractionOutcome,
    ExtractionResult,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    RelatedConcept,
    Relationship,
    RelationshipType,
    normalize_name,
)
from ..storage import DocumentSource, GraphStorage
from .extraction import Extractor, StructuredDocumentExtractor


logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def looks_like_id(value: str) -> bool:
    """True when a concept reference is a record id rather than a name."""
    return bool(_ID_PATTERN.match(value))


def _validate_strength(strength: float, field: str = "strength") -> None:
    if not 0.0 <= strength <= 1.0:
        raise GraphValidationError(f"{field} must be between 0 and 1, got {strength}")


class KnowledgeGraphService:
    """
    Owner-scoped concept graph on top of a GraphStorage.

    Keeps one generation counter per owner and at most one cached
    snapshot per owner; a bump drops that owner's cached snapshot, so
    the cache never holds a stale entry.

    Usage:
        service = KnowledgeGraphService(InMemoryGraphStorage())
        service.add_relationship("user-1", "Algebra", "Calculus", type="prerequisite")
        graph = service.get_graph("user-1")
    """

    def __init__(
        self,
        storage: GraphStorage,
        extractor: Optional[Extractor] = None,
        document_source: Optional[DocumentSource] = None,
    ):
        self._storage = storage
        self._extractor = extractor or StructuredDocumentExtractor()
        self._documents = document_source

        self._generations: dict[str, int] = {}
        self._graph_cache: dict[str, tuple[GraphSnapshot, int]] = {}

    @property
    def storage(self) -> GraphStorage:
        return self._storage

    # =========================================================
    # CACHE
    # =========================================================

    def generation(self, owner_id: str) -> int:
        """The owner's mutation counter."""
        return self._generations.get(owner_id, 0)

    def _bump(self, owner_id: str) -> None:
        self._generations[owner_id] = self.generation(owner_id) + 1
        self._graph_cache.pop(owner_id, None)

    # =========================================================
    # CONCEPTS
    # =========================================================

    def add_concept(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        origin: ConceptOrigin | str = ConceptOrigin.USER,
        origin_ref: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        extraction_order: Optional[int] = None,
    ) -> Concept:
        """
        Create a concept, or merge into the existing one with the same name.

        Names are compared case-insensitively. On merge, tags are unioned,
        an empty description is filled in, and a missing extraction order
        is set; the stored name, origin and origin_ref are kept.
        """
        name = (name or "").strip()
        if not name:
            raise GraphValidationError("Concept name must not be empty")
        try:
            origin = ConceptOrigin(origin)
        except ValueError as e:
            raise GraphValidationError(f"Unknown concept origin: {origin}") from e

        tag_set = {tag for tag in (tags or []) if tag}

        existing = self._storage.get_concept_by_name(owner_id, name)
        if existing:
            changed = False
            if not tag_set.issubset(existing.tags):
                existing.tags |= tag_set
                changed = True
            if not existing.description and description:
                existing.description = description
                changed = True
            if existing.extraction_order is None and extraction_order is not None:
                existing.extraction_order = extraction_order
                changed = True

            if changed:
                existing.updated_at = datetime.utcnow()
                existing = self._storage.update_concept(existing)
                logger.info(f"Merged concept '{existing.name}' ({existing.id})")
            self._bump(owner_id)
            return existing

        concept = Concept(
            owner_id=owner_id,
            name=name,
            description=description,
            tags=tag_set,
            origin=origin,
            origin_ref=origin_ref,
            extraction_order=extraction_order,
        )
        created = self._storage.create_concept(concept)
        self._bump(owner_id)
        logger.info(f"Created concept '{created.name}' ({created.id}, origin={origin.value})")
        return created

    def get_concept(self, owner_id: str, concept_id: str) -> Concept:
        concept = self._storage.get_concept(owner_id, concept_id)
        if concept is None:
            raise ConceptNotFoundError(concept_id)
        return concept

    def find_concept(self, owner_id: str, name: str) -> Optional[Concept]:
        """Look up a concept by name (case-insensitive)."""
        return self._storage.get_concept_by_name(owner_id, name)

    def list_concepts(
        self,
        owner_id: str,
        tags: Optional[Iterable[str]] = None,
        origin: Optional[ConceptOrigin | str] = None,
        origin_ref: Optional[str] = None,
    ) -> List[Concept]:
        if origin is not None:
            origin = ConceptOrigin(origin)
        return self._storage.list_concepts(owner_id, tags=tags, origin=origin, origin_ref=origin_ref)

    def delete_concept(self, owner_id: str, concept_id: str) -> None:
        """Delete a concept with its relationships, map memberships and path steps."""
        if not self._storage.delete_concept(owner_id, concept_id):
            raise ConceptNotFoundError(concept_id)
        self._bump(owner_id)

    # =========================================================
    # RELATIONSHIPS
    # =========================================================

    def add_relationship(
        self,
        owner_id: str,
        source: str,
        target: str,
        type: str = RelationshipType.RELATED.value,
        strength: float = 1.0,
        description: str = "",
    ) -> Relationship:
        """
        Create or merge the relationship source -> target.

        Args:
            source: Concept id, or a name (created as an auto stub if missing)
            target: Concept id, or a name
            type: Relationship label (kept from the existing edge on merge)
            strength: 0.0-1.0; the stronger value wins on merge
            description: Replaces the stored one when non-empty

        Raises:
            GraphValidationError: Empty reference, empty type or bad strength
            ConceptNotFoundError: An id-shaped reference that does not exist
        """
        source = (source or "").strip()
        target = (target or "").strip()
        if not source or not target:
            raise GraphValidationError("Relationship endpoints must not be empty")
        if isinstance(type, RelationshipType):
            type = type.value
        if not type:
            raise GraphValidationError("Relationship type must not be empty")
        _validate_strength(strength)

        # Id references are checked before any stub is created
        for ref in (source, target):
            if looks_like_id(ref) and self._storage.get_concept(owner_id, ref) is None:
                raise ConceptNotFoundError(ref)

        source_concept = self._resolve(owner_id, source)
        target_concept = self._resolve(owner_id, target)

        existing = self._storage.get_relationship_between(
            owner_id, source_concept.id, target_concept.id
        )
        if existing:
            existing.strength = max(existing.strength, strength)
            if description:
                existing.description = description
            existing.updated_at = datetime.utcnow()
            merged = self._storage.update_relationship(existing)
            self._bump(owner_id)
            logger.info(
                f"Merged relationship {source_concept.name} -> {target_concept.name} "
                f"(strength={merged.strength})"
            )
            return merged

        relationship = Relationship(
            owner_id=owner_id,
            source_concept_id=source_concept.id,
            target_concept_id=target_concept.id,
            type=type,
            strength=strength,
            description=description,
        )
        created = self._storage.create_relationship(relationship)
        self._bump(owner_id)
        logger.info(
            f"Created relationship {source_concept.name} -[{type}]-> {target_concept.name}"
        )
        return created

    def _resolve(self, owner_id: str, ref: str) -> Concept:
        if looks_like_id(ref):
            return self.get_concept(owner_id, ref)
        existing = self._storage.get_concept_by_name(owner_id, ref)
        if existing:
            return existing
        return self.add_concept(owner_id, ref, origin=ConceptOrigin.AUTO)

    def get_relationship(self, owner_id: str, relationship_id: str) -> Relationship:
        relationship = self._storage.get_relationship(owner_id, relationship_id)
        if relationship is None:
            raise RelationshipNotFoundError(relationship_id)
        return relationship

    def delete_relationship(self, owner_id: str, relationship_id: str) -> None:
        if not self._storage.delete_relationship(owner_id, relationship_id):
            raise RelationshipNotFoundError(relationship_id)
        self._bump(owner_id)
        logger.info(f"Deleted relationship {relationship_id}")

    # =========================================================
    # GRAPH QUERIES
    # =========================================================

    def get_graph(
        self,
        owner_id: str,
        tags: Optional[Iterable[str]] = None,
        origin: Optional[ConceptOrigin | str] = None,
        min_strength: float = 0.0,
    ) -> GraphSnapshot:
        """
        Snapshot of the owner's graph.

        Args:
            tags: Keep concepts carrying all of these tags
            origin: Keep concepts with this origin
            min_strength: Keep edges with strength >= this value

        Edges are included only when both endpoints pass the concept
        filters. The unfiltered snapshot is served from cache while the
        owner's generation is unchanged.
        """
        _validate_strength(min_strength, "min_strength")
        tag_list = [tag for tag in (tags or []) if tag]
        if origin is not None:
            origin = ConceptOrigin(origin)
        unfiltered = not tag_list and origin is None and min_strength == 0

        current = self.generation(owner_id)
        if unfiltered:
            cached = self._graph_cache.get(owner_id)
            if cached and cached[1] == current:
                logger.debug(f"Graph cache hit for owner {owner_id} (generation {current})")
                return cached[0].model_copy(deep=True)

        concepts = self._storage.list_concepts(owner_id, tags=tag_list or None, origin=origin)
        concept_ids = [concept.id for concept in concepts]
        relationships = self._storage.list_relationships(
            owner_id, min_strength=min_strength, within_ids=concept_ids
        )

        snapshot = GraphSnapshot(
            nodes=[GraphNode.from_concept(concept) for concept in concepts],
            edges=[GraphEdge.from_relationship(rel) for rel in relationships],
            generation=current,
        )

        if unfiltered:
            self._graph_cache[owner_id] = (snapshot.model_copy(deep=True), current)
            logger.debug(
                f"Cached graph for owner {owner_id}: {len(snapshot.nodes)} nodes, "
                f"{len(snapshot.edges)} edges"
            )
        return snapshot

    def get_related_concepts(
        self,
        owner_id: str,
        concept_id: str,
        max_depth: int = 1,
        limit: int = 10,
        min_strength: float = 0.0,
    ) -> List[RelatedConcept]:
        """
        Concepts reachable from concept_id within max_depth hops.

        Expansion is breadth-first over edges in either direction.
        Results are ordered by hop distance, then discovery order; each
        carries the edges linking it to the previous ring.
        """
        if max_depth < 1:
            raise GraphValidationError(f"max_depth must be at least 1, got {max_depth}")
        if limit < 1:
            raise GraphValidationError(f"limit must be at least 1, got {limit}")
        _validate_strength(min_strength, "min_strength")
        self.get_concept(owner_id, concept_id)

        visited = {concept_id}
        frontier = [concept_id]
        found: list[tuple[str, int, list[Relationship]]] = []

        for depth in range(1, max_depth + 1):
            ring: dict[str, list[Relationship]] = {}
            for current in frontier:
                for rel in self._storage.list_relationships(
                    owner_id, min_strength=min_strength, concept_id=current
                ):
                    other = rel.other_end(current)
                    if other in visited:
                        continue
                    edges = ring.setdefault(other, [])
                    if all(existing.id != rel.id for existing in edges):
                        edges.append(rel)

            if not ring:
                break
            for other, edges in ring.items():
                found.append((other, depth, edges))
            visited.update(ring)
            frontier = list(ring)
            if len(found) >= limit:
                break

        found = found[:limit]
        concepts = {
            concept.id: concept
            for concept in self._storage.get_concepts(owner_id, [item[0] for item in found])
        }
        return [
            RelatedConcept(concept=concepts[other], depth=depth, relationships=edges)
            for other, depth, edges in found
            if other in concepts
        ]

    # =========================================================
    # EXTRACTION
    # =========================================================

    def extract_from_text(
        self,
        owner_id: str,
        text: str,
        origin: ConceptOrigin | str = ConceptOrigin.TEXT_EXTRACTION,
        origin_ref: Optional[str] = None,
    ) -> ExtractionOutcome:
        """Extract concepts from free text and merge them into the graph."""
        result = self._extractor.extract_text(text or "")
        return self._merge_extraction(owner_id, result, origin, origin_ref)

    def extract_from_document(self, owner_id: str, document_id: str) -> ExtractionOutcome:
        """
        Extract concepts from a processed document.

        Raises:
            DocumentNotFoundError: Unknown document, or no document source configured
            DocumentNotReadyError: Document status is not "completed"
        """
        if self._documents is None:
            raise DocumentNotFoundError(document_id, "No document source is configured")
        document = self._documents.get_document(owner_id, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if document.status != DocumentStatus.COMPLETED:
            raise DocumentNotReadyError(document_id, document.status.value)

        result = self._extractor.extract_document(document)
        outcome = self._merge_extraction(owner_id, result, ConceptOrigin.DOCUMENT, document.id)
        logger.info(
            f"Extracted {len(outcome.concepts)} concepts and "
            f"{len(outcome.relationships)} relationships from document {document_id}"
        )
        return outcome

    def _merge_extraction(
        self,
        owner_id: str,
        result: ExtractionResult,
        origin: ConceptOrigin | str,
        origin_ref: Optional[str],
    ) -> ExtractionOutcome:
        concepts: list[Concept] = []
        by_key: dict[str, Concept] = {}

        for candidate in result.candidates:
            concept = self.add_concept(
                owner_id,
                candidate.name,
                description=candidate.description,
                origin=origin,
                origin_ref=origin_ref,
                tags=candidate.tags,
                extraction_order=candidate.order,
            )
            by_key[normalize_name(candidate.name)] = concept
            concepts.append(concept)

        relationships: list[Relationship] = []
        for hint in result.hints:
            source = by_key.get(normalize_name(hint.source))
            target = by_key.get(normalize_name(hint.target))
            relationships.append(self.add_relationship(
                owner_id,
                source.id if source else hint.source,
                target.id if target else hint.target,
                type=hint.type,
                strength=hint.strength,
                description=hint.description,
            ))

        return ExtractionOutcome(concepts=concepts, relationships=relationships)
