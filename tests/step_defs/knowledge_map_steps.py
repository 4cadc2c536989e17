"""
Step definitions for knowledge maps.

Feature: knowledge_maps.feature
"""

import pytest
from pytest_bdd import given, when, then, parsers

from learning_graph import OperationBudget

from step_defs.common_steps import *


def map_view(ctx):
    return ctx.engine.maps.get_map(ctx.owner, ctx.map.id)


@given(parsers.parse('the knowledge map "{name}"'))
def knowledge_map(ctx, name):
    ctx.map = ctx.engine.maps.create_map(ctx.owner, name)


@given(parsers.parse('the concepts "{names}" are on the map'))
def concepts_on_map(ctx, names):
    ctx.engine.maps.add_concepts_to_map(
        ctx.owner, ctx.map.id, [ctx.concept(name).id for name in split_names(names)]
    )
    ctx.snapshots.append(map_view(ctx).positions)


@given(parsers.parse('the unconnected concept "{name}" is on the map'))
def unconnected_concept_on_map(ctx, name):
    concept = ctx.graph.add_concept(ctx.owner, name)
    ctx.engine.maps.add_concepts_to_map(ctx.owner, ctx.map.id, [concept.id])


@when(parsers.parse('I add the concepts "{names}" to the map'))
def add_concepts(ctx, names):
    ctx.attempt(
        ctx.engine.maps.add_concepts_to_map,
        ctx.owner,
        ctx.map.id,
        [ctx.concept(name).id for name in split_names(names)],
    )


@when(parsers.parse('I remove the concepts "{names}" from the map'))
def remove_concepts(ctx, names):
    ctx.attempt(
        ctx.engine.maps.remove_concepts_from_map,
        ctx.owner,
        ctx.map.id,
        [ctx.concept(name).id for name in split_names(names)],
    )


@when(parsers.parse("I lay out the map on a {width:d} by {height:d} canvas"))
def lay_out_map(ctx, width, height):
    ctx.attempt(ctx.engine.maps.layout_map, ctx.owner, ctx.map.id, width=width, height=height, seed=3)


@when("I lay out the map with a cancelled budget")
def lay_out_cancelled(ctx):
    ctx.attempt(
        ctx.engine.maps.layout_map,
        ctx.owner,
        ctx.map.id,
        budget=OperationBudget(should_cancel=lambda: True),
    )


@when(parsers.parse('I rename the map to "{name}" and make it public'))
def rename_map(ctx, name):
    ctx.attempt(ctx.engine.maps.update_map, ctx.owner, ctx.map.id, name=name, is_public=True)


@when("I analyze the map")
def analyze_map(ctx):
    ctx.attempt(ctx.engine.maps.analyze_map, ctx.owner, ctx.map.id)


@then(parsers.parse('the map shows concepts "{names}"'))
def map_shows(ctx, names):
    assert ctx.error is None
    assert [concept.name for concept in map_view(ctx).concepts] == split_names(names)


@then(parsers.parse("the map caches {count:d} relationships"))
def map_caches(ctx, count):
    view = map_view(ctx)
    assert len(view.map.relationship_ids) == count
    assert {rel.id for rel in view.relationships} == set(view.map.relationship_ids)


@then(parsers.parse("every map position lies within {width:d} by {height:d}"))
def positions_within(ctx, width, height):
    assert ctx.error is None
    positions = map_view(ctx).positions
    assert len(positions) == len(map_view(ctx).concepts)
    for position in positions.values():
        assert 0 <= position.x <= width
        assert 0 <= position.y <= height


@then("the map positions are unchanged")
def positions_unchanged(ctx):
    assert map_view(ctx).positions == ctx.snapshots[-1]


@then(parsers.parse('the map is named "{name}"'))
def map_named(ctx, name):
    assert ctx.error is None
    assert map_view(ctx).map.name == name


@then("the map is public")
def map_is_public(ctx):
    assert map_view(ctx).map.is_public


@then(parsers.parse('the most central concept is "{name}"'))
def most_central(ctx, name):
    assert ctx.error is None
    assert ctx.result.central_concepts[0].name == name


@then(parsers.parse('the isolated concepts are "{names}"'))
def isolated_concepts(ctx, names):
    assert [degree.name for degree in ctx.result.isolated_concepts] == split_names(names)


@then(parsers.parse("the map density is {density:f}"))
def map_density(ctx, density):
    assert ctx.result.density == pytest.approx(density, abs=1e-3)
