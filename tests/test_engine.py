"""
Unit tests for the engine facade and its configuration.
"""

import logging

import pytest

from learning_graph import (
    EngineSettings,
    InMemoryGraphStorage,
    LayoutSettings,
    LearningGraphEngine,
    NoPathFoundError,
    PathSettings,
    SQLiteGraphStorage,
    setup_logging,
)

from conftest import OWNER


class TestEngineSettings:

    def test_defaults(self):
        settings = EngineSettings()

        assert settings.mode == "memory"
        assert settings.db_path == ":memory:"
        assert settings.layout.iterations == 100
        assert settings.paths.generation_min_strength == 0.3

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEARNING_GRAPH_MODE", "sqlite")
        monkeypatch.setenv("LEARNING_GRAPH_DB_PATH", str(tmp_path / "graph.db"))
        monkeypatch.setenv("LEARNING_GRAPH_LOG_LEVEL", "debug")
        monkeypatch.setenv("LEARNING_GRAPH_LAYOUT_SEED", "7")

        settings = EngineSettings.from_env()

        assert settings.mode == "sqlite"
        assert settings.db_path.endswith("graph.db")
        assert settings.log_level == "DEBUG"
        assert settings.layout.seed == 7

    def test_from_env_defaults(self, monkeypatch):
        for name in ("MODE", "DB_PATH", "LOG_LEVEL", "CONFIGURE_LOGGING", "LAYOUT_SEED"):
            monkeypatch.delenv(f"LEARNING_GRAPH_{name}", raising=False)

        settings = EngineSettings.from_env()

        assert settings.mode == "memory"
        assert settings.layout.seed is None
        assert settings.configure_logging is False

    def test_unknown_mode_rejected(self, monkeypatch):
        monkeypatch.setenv("LEARNING_GRAPH_MODE", "neo4j")

        with pytest.raises(ValueError):
            EngineSettings.from_env()

    def test_unknown_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LEARNING_GRAPH_LOG_LEVEL", "verbose")

        with pytest.raises(ValueError):
            EngineSettings.from_env()

    def test_invalid_layout_settings(self):
        with pytest.raises(ValueError):
            LayoutSettings(damping=1.5)

    def test_setup_logging_accepts_level_names(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        setup_logging("warning")

        assert calls[0]["level"] == logging.WARNING
        assert calls[0]["force"] is True


class TestEngine:

    def test_memory_mode(self, engine):
        assert isinstance(engine.storage, InMemoryGraphStorage)
        assert engine.health_check()

    def test_sqlite_mode(self, tmp_path):
        settings = EngineSettings(mode="sqlite", db_path=str(tmp_path / "engine.db"))

        with LearningGraphEngine(settings) as engine:
            assert isinstance(engine.storage, SQLiteGraphStorage)
            engine.graph.add_concept(OWNER, "Stored")

        assert not engine.health_check()
        with LearningGraphEngine(settings) as reopened:
            assert reopened.graph.find_concept(OWNER, "stored") is not None

    def test_storage_override(self):
        storage = InMemoryGraphStorage()

        engine = LearningGraphEngine(EngineSettings(mode="sqlite"), storage=storage)

        assert engine.storage is storage

    def test_services_share_storage(self, engine):
        assert engine.maps._storage is engine.graph.storage
        assert engine.paths._storage is engine.graph.storage

    def test_log_level_applied(self):
        LearningGraphEngine(EngineSettings(log_level="warning"))

        assert logging.getLogger("learning_graph").level == logging.WARNING

        logging.getLogger("learning_graph").setLevel(logging.NOTSET)

    def test_configure_logging_sets_up_root_logger(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        LearningGraphEngine(EngineSettings(log_level="error", configure_logging=True))

        assert calls[0]["level"] == logging.ERROR
        logging.getLogger("learning_graph").setLevel(logging.NOTSET)

    def test_logging_left_alone_by_default(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        LearningGraphEngine(EngineSettings())

        assert calls == []


class TestEngineShortcuts:

    def test_generate_path_uses_generation_strength(self, engine):
        engine.graph.add_relationship(OWNER, "Weak", "Link", strength=0.2)
        weak = engine.graph.find_concept(OWNER, "Weak")
        link = engine.graph.find_concept(OWNER, "Link")

        with pytest.raises(NoPathFoundError):
            engine.generate_path(OWNER, weak.id, link.id, name="Weak")

        path = engine.generate_path(OWNER, weak.id, link.id, name="Weak", min_strength=0.1, tags=["t"])
        assert path.tags == {"t"}
        assert len(path.steps) == 2

    def test_find_path_depth(self):
        engine = LearningGraphEngine(EngineSettings(paths=PathSettings(max_depth=1)))
        engine.graph.add_relationship(OWNER, "A", "B")
        engine.graph.add_relationship(OWNER, "B", "C")
        a = engine.graph.find_concept(OWNER, "A")
        c = engine.graph.find_concept(OWNER, "C")

        assert not engine.find_path(OWNER, a.id, c.id).found

    def test_prerequisite_graph(self, engine):
        engine.graph.add_relationship(OWNER, "Counting", "Addition", type="prerequisite", strength=0.9)
        addition = engine.graph.find_concept(OWNER, "Addition")

        graph = engine.prerequisite_graph(OWNER, addition.id)

        assert [node.label for node in graph.nodes] == ["Addition", "Counting"]

    def test_related_concepts_limit(self):
        engine = LearningGraphEngine(EngineSettings(paths=PathSettings(related_limit=2)))
        for name in ("B", "C", "D"):
            engine.graph.add_relationship(OWNER, "Hub", name)
        hub = engine.graph.find_concept(OWNER, "Hub")

        related = engine.related_concepts(OWNER, hub.id)

        assert [item.concept.name for item in related] == ["B", "C"]
