"""
Shortest learning route between two concepts.

Breadth-first search over the owner's graph, reading every edge as
undirected. Neighbors are visited in edge order, so ties between equally
short routes resolve to the one whose edges were created first.
"""

import logging

from ..errors import ConceptNotFoundError, GraphValidationError
from ..models import (
    GraphSnapshot,
    NotFoundReason,
    PathFound,
    PathHop,
    PathNotFound,
    PathResult,
)
from .graph_service import KnowledgeGraphService


logger = logging.getLogger(__name__)


class PathFinder:
    """
    Finds fewest-hop paths in an owner's concept graph.

    Usage:
        finder = PathFinder(graph_service)
        result = finder.find_path("user-1", algebra.id, calculus.id)
        if result.found:
            print(result.concept_ids)
    """

    def __init__(self, graph_service: KnowledgeGraphService):
        self._graph = graph_service

    def find_path(
        self,
        owner_id: str,
        start_id: str,
        end_id: str,
        max_depth: int = 5,
        min_strength: float = 0.0,
    ) -> PathResult:
        """
        Find the shortest path from start_id to end_id.

        Args:
            max_depth: Maximum number of hops
            min_strength: Ignore edges weaker than this

        Returns:
            PathFound with at least one hop, or PathNotFound with a reason.
            Asking for a path from a concept to itself yields
            PathNotFound(SAME_CONCEPT).

        Raises:
            ConceptNotFoundError: start_id or end_id is not one of the owner's concepts
            GraphValidationError: max_depth is not positive
        """
        if max_depth <= 0:
            raise GraphValidationError(f"max_depth must be positive, got {max_depth}")

        graph = self._graph.get_graph(owner_id, min_strength=min_strength)
        node_ids = graph.node_ids()
        for concept_id in (start_id, end_id):
            if concept_id not in node_ids:
                raise ConceptNotFoundError(concept_id)

        if start_id == end_id:
            return PathNotFound(reason=NotFoundReason.SAME_CONCEPT)

        return self.search(graph, start_id, end_id, max_depth)

    def search(self, graph: GraphSnapshot, start_id: str, end_id: str, max_depth: int) -> PathResult:
        """Run the breadth-first search on an already loaded snapshot."""
        adjacency = graph.adjacency()

        queue: list[tuple[str, list[PathHop]]] = [(start_id, [])]
        visited = {start_id}
        truncated = False

        while queue:
            current_id, hops = queue.pop(0)

            if current_id == end_id and hops:
                logger.debug(f"Path found {start_id} -> {end_id} in {len(hops)} hops")
                return PathFound(hops=hops)

            neighbors = adjacency.get(current_id, [])
            if len(hops) >= max_depth:
                if any(neighbor_id not in visited for neighbor_id, _ in neighbors):
                    truncated = True
                continue

            for neighbor_id, edge in neighbors:
                if neighbor_id in visited:
                    continue
                visited.add(neighbor_id)
                queue.append((
                    neighbor_id,
                    hops + [PathHop(from_id=current_id, to_id=neighbor_id, relationship=edge)],
                ))

        reason = NotFoundReason.DEPTH_LIMIT if truncated else NotFoundReason.UNREACHABLE
        logger.debug(f"No path {start_id} -> {end_id} within {max_depth} hops ({reason.value})")
        return PathNotFound(reason=reason)
