"""
Unit tests for shortest-path search.
"""

import pytest

from learning_graph import (
    ConceptNotFoundError,
    GraphValidationError,
    NotFoundReason,
    PathFound,
    PathNotFound,
)

from conftest import OWNER


class TestFindPath:
    """Breadth-first search over undirected edges."""

    def test_chain_path(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["D"].id, max_depth=5)

        assert isinstance(result, PathFound)
        assert result.found
        assert result.concept_ids == [abcd[name].id for name in "ABCD"]
        assert [(hop.from_id, hop.to_id) for hop in result.hops] == [
            (abcd["A"].id, abcd["B"].id),
            (abcd["B"].id, abcd["C"].id),
            (abcd["C"].id, abcd["D"].id),
        ]

    def test_hops_carry_edges(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["B"].id)

        assert result.hops[0].relationship.type == "prerequisite"
        assert result.hops[0].relationship.strength == 0.9

    def test_edges_traversed_against_direction(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["D"].id, abcd["A"].id)

        assert result.concept_ids == [abcd[name].id for name in "DCBA"]

    def test_symmetric_hop_counts(self, path_finder, graph_service):
        for source, target in [("P", "Q"), ("Q", "R"), ("P", "S"), ("S", "T"), ("T", "R")]:
            graph_service.add_relationship(OWNER, source, target)
        p = graph_service.find_concept(OWNER, "P")
        r = graph_service.find_concept(OWNER, "R")

        forward = path_finder.find_path(OWNER, p.id, r.id)
        backward = path_finder.find_path(OWNER, r.id, p.id)

        assert len(forward.hops) == len(backward.hops) == 2

    def test_depth_limit(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["D"].id, max_depth=1)

        assert isinstance(result, PathNotFound)
        assert result.hops == []
        assert result.reason == NotFoundReason.DEPTH_LIMIT

    def test_exact_depth_is_enough(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["D"].id, max_depth=3)

        assert len(result.hops) == 3

    def test_min_strength_cuts_path(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["D"].id, min_strength=0.7)

        assert not result.found
        assert result.reason == NotFoundReason.UNREACHABLE

    def test_unreachable(self, path_finder, graph_service, abcd):
        island = graph_service.add_concept(OWNER, "Island")

        result = path_finder.find_path(OWNER, abcd["A"].id, island.id)

        assert result.reason == NotFoundReason.UNREACHABLE

    def test_same_concept(self, path_finder, abcd):
        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["A"].id)

        assert result.reason == NotFoundReason.SAME_CONCEPT
        assert result.hops == []

    def test_prefers_fewest_hops(self, path_finder, graph_service, abcd):
        graph_service.add_relationship(OWNER, abcd["A"].id, abcd["D"].id, strength=0.5)

        result = path_finder.find_path(OWNER, abcd["A"].id, abcd["D"].id)

        assert len(result.hops) == 1

    def test_unknown_concept(self, path_finder, abcd):
        with pytest.raises(ConceptNotFoundError):
            path_finder.find_path(OWNER, abcd["A"].id, "missing")

    def test_other_owner_cannot_see_path(self, path_finder, abcd):
        with pytest.raises(ConceptNotFoundError):
            path_finder.find_path("user-2", abcd["A"].id, abcd["D"].id)

    @pytest.mark.parametrize("max_depth", [0, -1])
    def test_non_positive_depth(self, path_finder, abcd, max_depth):
        with pytest.raises(GraphValidationError):
            path_finder.find_path(OWNER, abcd["A"].id, abcd["D"].id, max_depth=max_depth)
