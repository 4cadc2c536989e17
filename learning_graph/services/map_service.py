"""
Knowledge Map Service - named, positioned subsets of an owner's graph.

Provides operations for:
- Creating, editing and listing maps
- Adding and removing member concepts
- Storing member positions, either edited by hand or computed
  by the force-directed layout
- Structural metrics (density, degrees, central and isolated concepts)
"""

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from ..budget import OperationBudget
from ..errors import GraphValidationError, MapNotFoundError
from ..models import (
    ConceptDegree,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    KnowledgeMap,
    MapAnalysis,
    MapConcept,
    MapView,
    Position,
)
from .graph_service import KnowledgeGraphService
from .layout import ForceDirectedLayout


logger = logging.getLogger(__name__)

BASE_RADIUS = 200.0
RADIUS_STEP = 10.0
CENTRAL_CONCEPT_COUNT = 5


def circle_positions(count: int, existing_count: int) -> List[Position]:
    """
    Evenly spaced positions on a circle around the origin.

    The radius grows with the number of members already on the map,
    so later batches land on an outer ring.
    """
    if count <= 0:
        return []
    radius = BASE_RADIUS + existing_count * RADIUS_STEP
    step = 2 * math.pi / count
    return [
        Position(x=radius * math.cos(i * step), y=radius * math.sin(i * step))
        for i in range(count)
    ]


class KnowledgeMapService:
    """
    Manages knowledge maps for an owner's graph.

    Usage:
        maps = KnowledgeMapService(graph_service)
        knowledge_map = maps.create_map("user-1", "Calculus prep")
        maps.add_concepts_to_map("user-1", knowledge_map.id, [algebra.id, limits.id])
        positions = maps.layout_map("user-1", knowledge_map.id, seed=3)
    """

    def __init__(
        self,
        graph_service: KnowledgeGraphService,
        layout: Optional[ForceDirectedLayout] = None,
    ):
        self._graph = graph_service
        self._storage = graph_service.storage
        self._layout = layout or ForceDirectedLayout()

    # =========================================================
    # MAPS
    # =========================================================

    def create_map(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        tags: Optional[Iterable[str]] = None,
        is_public: bool = False,
    ) -> KnowledgeMap:
        name = (name or "").strip()
        if not name:
            raise GraphValidationError("Map name must not be empty")

        knowledge_map = KnowledgeMap(
            owner_id=owner_id,
            name=name,
            description=description,
            tags=set(tags or []),
            is_public=is_public,
        )
        created = self._storage.create_map(knowledge_map)
        logger.info(f"Created knowledge map '{created.name}' ({created.id})")
        return created

    def _require_map(self, owner_id: str, map_id: str) -> KnowledgeMap:
        knowledge_map = self._storage.get_map(owner_id, map_id)
        if knowledge_map is None:
            raise MapNotFoundError(map_id)
        return knowledge_map

    def get_map(self, owner_id: str, map_id: str) -> MapView:
        """A map with its member concepts, positions and internal edges."""
        knowledge_map = self._require_map(owner_id, map_id)
        members = self._storage.get_map_concepts(map_id)
        member_ids = [member.concept_id for member in members]

        concepts = self._storage.get_concepts(owner_id, member_ids)
        relationships = self._storage.list_relationships(owner_id, within_ids=member_ids)

        return MapView(
            map=knowledge_map,
            concepts=concepts,
            positions={member.concept_id: member.position for member in members},
            relationships=relationships,
        )

    def list_maps(self, owner_id: str) -> List[KnowledgeMap]:
        """Maps of an owner, most recently updated first."""
        return self._storage.list_maps(owner_id)

    def update_map(
        self,
        owner_id: str,
        map_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        is_public: Optional[bool] = None,
    ) -> KnowledgeMap:
        """
        Edit a map header.

        Arguments left as None keep the stored value; ``tags`` replaces
        the whole tag set. Members and positions are not touched.
        """
        knowledge_map = self._require_map(owner_id, map_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise GraphValidationError("Map name must not be empty")
            knowledge_map.name = name
        if description is not None:
            knowledge_map.description = description
        if tags is not None:
            knowledge_map.tags = set(tags)
        if is_public is not None:
            knowledge_map.is_public = is_public

        knowledge_map.updated_at = datetime.utcnow()
        updated = self._storage.update_map(knowledge_map)
        logger.info(f"Updated knowledge map '{updated.name}' ({map_id})")
        return updated

    def delete_map(self, owner_id: str, map_id: str) -> None:
        """Delete a map. Member concepts are left untouched."""
        if not self._storage.delete_map(owner_id, map_id):
            raise MapNotFoundError(map_id)
        logger.info(f"Deleted knowledge map {map_id}")

    # =========================================================
    # ANALYSIS
    # =========================================================

    def analyze_map(self, owner_id: str, map_id: str) -> MapAnalysis:
        """
        Structural metrics over a map's members and the edges between them.

        Central concepts are the five members with the highest total
        degree (membership order breaks ties); isolated concepts have
        no edge inside the map.
        """
        view = self.get_map(owner_id, map_id)

        degrees = {
            concept.id: ConceptDegree(concept_id=concept.id, name=concept.name)
            for concept in view.concepts
        }
        relationship_types: Dict[str, int] = {}
        for rel in view.relationships:
            degrees[rel.source_concept_id].out_degree += 1
            degrees[rel.target_concept_id].in_degree += 1
            relationship_types[rel.type] = relationship_types.get(rel.type, 0) + 1

        concept_count = len(view.concepts)
        relationship_count = len(view.relationships)
        density = (
            relationship_count / (concept_count * (concept_count - 1))
            if concept_count > 1 else 0.0
        )

        ranked = sorted(degrees.values(), key=lambda degree: degree.total, reverse=True)
        analysis = MapAnalysis(
            map_id=map_id,
            concept_count=concept_count,
            relationship_count=relationship_count,
            density=density,
            average_degree=2 * relationship_count / concept_count if concept_count else 0.0,
            degrees=degrees,
            central_concepts=ranked[:CENTRAL_CONCEPT_COUNT],
            isolated_concepts=[degree for degree in degrees.values() if degree.total == 0],
            relationship_types=relationship_types,
        )
        logger.debug(
            f"Analyzed map {map_id}: {concept_count} concepts, "
            f"{relationship_count} relationships, density {density:.3f}"
        )
        return analysis

    # =========================================================
    # MEMBERSHIP
    # =========================================================

    def add_concepts_to_map(
        self,
        owner_id: str,
        map_id: str,
        concept_ids: Iterable[str],
        include_relationships: bool = True,
    ) -> KnowledgeMap:
        """
        Add concepts to a map, placing new members on a circle.

        Concepts already on the map are skipped. With
        include_relationships, the map's cached relationship ids are
        refreshed to every edge between members.

        Raises:
            MapNotFoundError: Unknown map
            ConceptNotFoundError: A concept id is not one of the owner's concepts
        """
        knowledge_map = self._require_map(owner_id, map_id)
        existing_ids = [member.concept_id for member in self._storage.get_map_concepts(map_id)]

        new_ids: list[str] = []
        for concept_id in concept_ids:
            if concept_id in existing_ids or concept_id in new_ids:
                continue
            self._graph.get_concept(owner_id, concept_id)
            new_ids.append(concept_id)

        if not new_ids:
            return knowledge_map

        positions = circle_positions(len(new_ids), len(existing_ids))
        self._storage.add_map_concepts(map_id, [
            MapConcept(map_id=map_id, concept_id=concept_id, x=position.x, y=position.y)
            for concept_id, position in zip(new_ids, positions)
        ])

        if include_relationships:
            relationships = self._storage.list_relationships(
                owner_id, within_ids=existing_ids + new_ids
            )
            knowledge_map.relationship_ids = [rel.id for rel in relationships]

        knowledge_map.updated_at = datetime.utcnow()
        updated = self._storage.update_map(knowledge_map)
        logger.info(f"Added {len(new_ids)} concepts to map {map_id}")
        return updated

    def remove_concepts_from_map(
        self,
        owner_id: str,
        map_id: str,
        concept_ids: Iterable[str],
    ) -> int:
        """Remove members from a map; returns how many were removed."""
        knowledge_map = self._require_map(owner_id, map_id)
        removed = self._storage.remove_map_concepts(map_id, list(concept_ids))

        remaining = [member.concept_id for member in self._storage.get_map_concepts(map_id)]
        still_internal = {
            rel.id for rel in self._storage.list_relationships(owner_id, within_ids=remaining)
        }
        knowledge_map.relationship_ids = [
            rel_id for rel_id in knowledge_map.relationship_ids if rel_id in still_internal
        ]
        knowledge_map.updated_at = datetime.utcnow()
        self._storage.update_map(knowledge_map)

        logger.info(f"Removed {removed} concepts from map {map_id}")
        return removed

    # =========================================================
    # POSITIONS
    # =========================================================

    def update_concept_positions(
        self,
        owner_id: str,
        map_id: str,
        positions: Mapping[str, Position],
    ) -> int:
        """
        Store positions for map members.

        Returns the number of members updated; ids that are not on the
        map are ignored.
        """
        knowledge_map = self._require_map(owner_id, map_id)

        updated = 0
        for concept_id, position in positions.items():
            if self._storage.update_map_concept_position(map_id, concept_id, position.x, position.y):
                updated += 1
            else:
                logger.debug(f"Concept {concept_id} is not on map {map_id}")

        knowledge_map.updated_at = datetime.utcnow()
        self._storage.update_map(knowledge_map)
        return updated

    def layout_map(
        self,
        owner_id: str,
        map_id: str,
        width: Optional[float] = None,
        height: Optional[float] = None,
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
        from_current: bool = False,
        persist: bool = True,
        budget: Optional[OperationBudget] = None,
    ) -> Dict[str, Position]:
        """
        Run the force-directed layout over exactly the map's members.

        Args:
            from_current: Start from the stored positions instead of random ones
            persist: Write the computed positions back to the map
            budget: Optional time/cancellation budget for the simulation
        """
        view = self.get_map(owner_id, map_id)
        graph = GraphSnapshot(
            nodes=[GraphNode.from_concept(concept) for concept in view.concepts],
            edges=[GraphEdge.from_relationship(rel) for rel in view.relationships],
            generation=self._graph.generation(owner_id),
        )

        positions = self._layout.generate_layout(
            graph,
            width=width,
            height=height,
            iterations=iterations,
            seed=seed,
            initial_positions=view.positions if from_current else None,
            budget=budget,
        )

        if persist:
            self.update_concept_positions(owner_id, map_id, positions)
        return positions
