"""
Pytest configuration for learning graph tests.

Provides shared fixtures for unit tests and BDD step definitions.
"""

import pytest

from learning_graph import (
    EngineSettings,
    ForceDirectedLayout,
    InMemoryDocumentSource,
    InMemoryGraphStorage,
    KnowledgeGraphService,
    KnowledgeMapService,
    LayoutSettings,
    LearningGraphEngine,
    LearningPathGenerator,
    PathFinder,
    SQLiteGraphStorage,
)


OWNER = "user-1"
OTHER_OWNER = "user-2"


@pytest.fixture
def owner():
    return OWNER


@pytest.fixture
def storage():
    """Fresh in-memory graph storage for each test."""
    return InMemoryGraphStorage()


@pytest.fixture
def sqlite_storage():
    """Fresh in-memory SQLite storage for each test."""
    store = SQLiteGraphStorage(":memory:")
    yield store
    store.disconnect()


@pytest.fixture
def documents():
    """Document source with no documents registered."""
    return InMemoryDocumentSource()


@pytest.fixture
def graph_service(storage, documents):
    return KnowledgeGraphService(storage, document_source=documents)


@pytest.fixture
def path_finder(graph_service):
    return PathFinder(graph_service)


@pytest.fixture
def layout():
    """Layout engine with a fixed seed."""
    return ForceDirectedLayout(LayoutSettings(seed=42))


@pytest.fixture
def map_service(graph_service, layout):
    return KnowledgeMapService(graph_service, layout=layout)


@pytest.fixture
def path_generator(graph_service, path_finder):
    return LearningPathGenerator(graph_service, path_finder=path_finder)


@pytest.fixture
def engine(documents):
    """Engine in memory mode, independent of the environment."""
    return LearningGraphEngine(EngineSettings(mode="memory"), document_source=documents)


@pytest.fixture
def abcd(graph_service):
    """
    Chain A-B-C-D:

        A -prerequisite(0.9)-> B -related(0.6)-> C -prerequisite(0.8)-> D
    """
    concepts = {
        name: graph_service.add_concept(OWNER, name, description=f"Concept {name}")
        for name in ("A", "B", "C", "D")
    }
    graph_service.add_relationship(OWNER, concepts["A"].id, concepts["B"].id, type="prerequisite", strength=0.9)
    graph_service.add_relationship(OWNER, concepts["B"].id, concepts["C"].id, type="related", strength=0.6)
    graph_service.add_relationship(OWNER, concepts["C"].id, concepts["D"].id, type="prerequisite", strength=0.8)
    return concepts
