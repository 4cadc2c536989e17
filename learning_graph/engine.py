"""
Unified entry point for the learning graph engine.

Wires one storage backend into:
- KnowledgeGraphService (concepts, relationships, extraction)
- PathFinder (shortest routes)
- ForceDirectedLayout and KnowledgeMapService (maps)
- LearningPathGenerator (paths, prerequisites, difficulty)

Configuration via EngineSettings or LEARNING_GRAPH_* environment
variables (see config.py):
- LEARNING_GRAPH_MODE: 'memory' for tests, 'sqlite' for a file database
- LEARNING_GRAPH_DB_PATH: SQLite database path
- LEARNING_GRAPH_CONFIGURE_LOGGING: configure the root logger on startup
"""

import logging
from typing import Optional

from .config import EngineSettings, setup_logging
from .storage import (
    DocumentSource,
    GraphStorage,
    InMemoryDocumentSource,
    InMemoryGraphStorage,
    SQLiteGraphStorage,
)
from .services import (
    Extractor,
    ForceDirectedLayout,
    KnowledgeGraphService,
    KnowledgeMapService,
    LearningPathGenerator,
    PathFinder,
)


logger = logging.getLogger(__name__)


class LearningGraphEngine:
    """
    Facade over the learning graph services.

    Usage:
        engine = LearningGraphEngine()
        a = engine.graph.add_concept("user-1", "Algebra")
        b = engine.graph.add_concept("user-1", "Calculus")
        engine.graph.add_relationship("user-1", a.id, b.id, type="prerequisite")
        path = engine.paths.generate_path("user-1", a.id, b.id, name="Calculus track")
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        storage: Optional[GraphStorage] = None,
        extractor: Optional[Extractor] = None,
        document_source: Optional[DocumentSource] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            settings: Engine settings (defaults to EngineSettings.from_env())
            storage: Override the storage backend chosen by settings.mode
            extractor: Override the default structured document extractor
            document_source: Where processed documents are read from
        """
        self.settings = settings or EngineSettings.from_env()
        if self.settings.configure_logging:
            setup_logging(self.settings.log_level)
        logging.getLogger("learning_graph").setLevel(self.settings.log_level)

        if storage is not None:
            self._storage = storage
        elif self.settings.mode == "sqlite":
            self._storage = SQLiteGraphStorage(self.settings.db_path)
        else:
            self._storage = InMemoryGraphStorage()

        self.documents = document_source if document_source is not None else InMemoryDocumentSource()

        self.graph = KnowledgeGraphService(
            self._storage,
            extractor=extractor,
            document_source=self.documents,
        )
        self.finder = PathFinder(self.graph)
        self.layout = ForceDirectedLayout(self.settings.layout)
        self.maps = KnowledgeMapService(self.graph, layout=self.layout)
        self.paths = LearningPathGenerator(self.graph, path_finder=self.finder)

        logger.info(
            f"LearningGraphEngine initialized in '{self.settings.mode}' mode "
            f"({type(self._storage).__name__})"
        )

    @property
    def storage(self) -> GraphStorage:
        return self._storage

    def health_check(self) -> bool:
        return self._storage.health_check()

    def close(self) -> None:
        """Disconnect the storage backend."""
        self._storage.disconnect()

    def __enter__(self) -> "LearningGraphEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Shortcuts using configured defaults
    # ─────────────────────────────────────────────────────────────────────────

    def find_path(self, owner_id: str, start_id: str, end_id: str):
        """Shortest path with the configured depth and strength limits."""
        paths = self.settings.paths
        return self.finder.find_path(
            owner_id,
            start_id,
            end_id,
            max_depth=paths.max_depth,
            min_strength=paths.min_strength,
        )

    def generate_path(self, owner_id: str, start_id: str, end_id: str, name: str, **meta):
        """Learning path between two concepts with the configured generation defaults."""
        paths = self.settings.paths
        return self.paths.generate_path(
            owner_id,
            start_id,
            end_id,
            name,
            max_depth=meta.pop("max_depth", paths.max_depth),
            min_strength=meta.pop("min_strength", paths.generation_min_strength),
            **meta,
        )

    def prerequisite_graph(self, owner_id: str, concept_id: str, budget=None):
        paths = self.settings.paths
        return self.paths.generate_prerequisite_graph(
            owner_id,
            concept_id,
            max_depth=paths.prerequisite_max_depth,
            min_strength=paths.prerequisite_min_strength,
            budget=budget,
        )

    def related_concepts(self, owner_id: str, concept_id: str, max_depth: int = 1):
        return self.graph.get_related_concepts(
            owner_id,
            concept_id,
            max_depth=max_depth,
            limit=self.settings.paths.related_limit,
        )
