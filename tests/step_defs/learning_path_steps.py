"""
Step definitions for learning path generation.

Feature: learning_path_generation.feature

Implements BDD steps for:
- Paths from the path finder
- Paths from document extraction order
- Step renumbering on concept deletion, step removal and reordering
- Path header edits and paths built from knowledge maps
- Prerequisite graphs and difficulty progressions
"""

from pytest_bdd import given, when, then, parsers

from learning_graph import Document
from learning_graph.models import DocumentSection, DocumentStatus

from step_defs.common_steps import *


# ─────────────────────────────────────────────────────────────────────────────
# Given
# ─────────────────────────────────────────────────────────────────────────────

@given(parsers.parse('a completed document "{document_id}" with sections "{titles}"'))
def completed_document(ctx, document_id, titles):
    ctx.engine.documents.add(Document(
        id=document_id,
        owner_id=ctx.owner,
        file_name=f"{document_id}.md",
        sections=[DocumentSection(title=title) for title in split_names(titles)],
    ))


@given(parsers.parse('a document "{document_id}" that is still processing'))
def processing_document(ctx, document_id):
    ctx.engine.documents.add(Document(
        id=document_id,
        owner_id=ctx.owner,
        status=DocumentStatus.PROCESSING,
    ))


@given(parsers.parse('the learning path "{name}" with steps "{names}"'))
def manual_learning_path(ctx, name, names):
    path = ctx.engine.paths.create_learning_path(ctx.owner, name)
    ctx.path = ctx.engine.paths.add_path_steps(
        ctx.owner, path.id, [ctx.concept(n).id for n in split_names(names)]
    )


@given(parsers.parse('a knowledge map "{name}" holding "{names}"'))
def knowledge_map_holding(ctx, name, names):
    ctx.map = ctx.engine.maps.create_map(ctx.owner, name)
    ctx.engine.maps.add_concepts_to_map(
        ctx.owner, ctx.map.id, [ctx.concept(n).id for n in split_names(names)]
    )


# ─────────────────────────────────────────────────────────────────────────────
# When
# ─────────────────────────────────────────────────────────────────────────────

@when(parsers.parse('I generate the learning path "{name}" from "{start}" to "{end}"'))
def generate_path(ctx, name, start, end):
    ctx.path = ctx.attempt(
        ctx.engine.generate_path,
        ctx.owner,
        ctx.concept(start).id,
        ctx.concept(end).id,
        name=name,
    )


@when(parsers.parse('I generate the learning path "{name}" from document "{document_id}"'))
def generate_path_from_document(ctx, name, document_id):
    ctx.path = ctx.attempt(
        ctx.engine.paths.generate_path_from_document,
        ctx.owner,
        document_id,
        name=name,
    )


@when(parsers.parse('I delete the concept "{name}"'))
def delete_concept(ctx, name):
    ctx.attempt(ctx.graph.delete_concept, ctx.owner, ctx.concept(name).id)


@when(parsers.parse("I remove step {order:d} from the path"))
def remove_step(ctx, order):
    step = ctx.engine.paths.get_path(ctx.owner, ctx.path.id).steps[order - 1]
    ctx.attempt(ctx.engine.paths.remove_step, ctx.owner, ctx.path.id, step.id)


@when(parsers.parse('I reorder the path steps as "{names}"'))
def reorder_steps(ctx, names):
    steps = {
        step.concept.name: step.id
        for step in ctx.engine.paths.get_path(ctx.owner, ctx.path.id).steps
    }
    ctx.attempt(
        ctx.engine.paths.reorder_steps,
        ctx.owner,
        ctx.path.id,
        [steps[name] for name in split_names(names)],
    )


@when(parsers.parse('I rename the path to "{name}"'))
def rename_path(ctx, name):
    ctx.attempt(ctx.engine.paths.update_path, ctx.owner, ctx.path.id, name=name)


@when("I generate a learning path from the map")
def generate_path_from_map(ctx):
    ctx.path = ctx.attempt(ctx.engine.paths.generate_path_from_map, ctx.owner, ctx.map.id)


@when(parsers.parse('I build the prerequisite graph of "{name}"'))
def build_prerequisite_graph(ctx, name):
    ctx.attempt(ctx.engine.prerequisite_graph, ctx.owner, ctx.concept(name).id)


@when("I compute the difficulty progression")
def compute_difficulty(ctx):
    ctx.attempt(ctx.engine.paths.generate_difficulty_progression, ctx.owner, ctx.path.id)


# ─────────────────────────────────────────────────────────────────────────────
# Then
# ─────────────────────────────────────────────────────────────────────────────

@then(parsers.parse('the path steps are "{names}"'))
def path_steps_are(ctx, names):
    assert ctx.error is None
    path = ctx.engine.paths.get_path(ctx.owner, ctx.path.id)
    assert [step.concept.name for step in path.steps] == split_names(names)
    assert [step.order for step in path.steps] == list(range(1, len(path.steps) + 1))


@then(parsers.parse('step {order:d} is described as "{description}"'))
def step_description(ctx, order, description):
    path = ctx.engine.paths.get_path(ctx.owner, ctx.path.id)
    assert path.steps[order - 1].order == order
    assert path.steps[order - 1].description == description


@then(parsers.parse('the path still lists "{names}"'))
def path_unchanged(ctx, names):
    path = ctx.engine.paths.get_path(ctx.owner, ctx.path.id)
    assert [step.concept.name for step in path.steps] == split_names(names)


@then(parsers.parse('the path is named "{name}"'))
def path_named(ctx, name):
    assert ctx.error is None
    assert ctx.engine.paths.get_path(ctx.owner, ctx.path.id).name == name


@then("the owner has no learning paths")
def no_learning_paths(ctx):
    assert ctx.engine.paths.list_paths(ctx.owner) == []


@then(parsers.parse('prerequisite level {level:d} holds "{names}"'))
def prerequisite_level(ctx, level, names):
    assert ctx.error is None
    expected = [ctx.concept(name).id for name in split_names(names)]
    assert ctx.result.level(level) == expected


@then(parsers.parse("the progression has {count:d} steps"))
def progression_step_count(ctx, count):
    assert ctx.error is None
    assert ctx.result.step_count == count
    assert len(ctx.result.progression) == count


@then("the cumulative difficulty never decreases")
def cumulative_non_decreasing(ctx):
    cumulative = [step.cumulative_difficulty for step in ctx.result.progression]
    assert cumulative == sorted(cumulative)
    assert ctx.result.total_difficulty == cumulative[-1]
