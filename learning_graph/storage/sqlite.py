"""
SQLite Persistence for the learning graph.

Schema:
    concepts             Concept nodes, unique (owner_id, name_key)
    relationships        Typed weighted edges, unique (owner_id, source, target)
    knowledge_maps       Map headers with cached relationship ids (JSON)
    knowledge_map_concepts  Map membership and positions
    learning_paths       Path headers
    learning_path_steps  Ordered steps, unique (path_id, step_order)

Foreign keys cascade from concepts, maps and paths to the rows that
reference them. Tags and relationship id lists are stored as JSON arrays.

Usage:
    storage = SQLiteGraphStorage("learning_graph.db")
    service = KnowledgeGraphService(storage)
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional

from ..errors import DuplicateRecordError, StorageError, StorageIntegrityError
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


class SQLiteGraphStorage(GraphStorage):
    """
    SQLite-backed graph storage.

    For ":memory:" databases a single shared connection is kept open;
    file databases open a connection per unit of work.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """
        Initialize SQLite graph storage.

        Args:
            db_path: Path to SQLite database, or ":memory:" for in-memory
        """
        self.db_path = str(db_path)
        self._is_memory = self.db_path == ":memory:"
        self._shared_conn: sqlite3.Connection | None = None
        self._connected = False

        self.connect()
        self._init_schema()

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def connect(self) -> None:
        if self._is_memory and self._shared_conn is None:
            self._shared_conn = self._open()
        self._connected = True

    def disconnect(self) -> None:
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None
        self._connected = False
        logger.info(f"SQLite graph storage disconnected: {self.db_path}")

    def health_check(self) -> bool:
        if not self._connected:
            return False
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.warning(f"SQLite health check failed: {e}")
            return False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection; commits on success, rolls back on error."""
        if not self._connected:
            raise StorageError("SQLite graph storage is not connected")

        if self._is_memory:
            conn = self._shared_conn
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        else:
            conn = self._open()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    @contextmanager
    def _translate_integrity_errors(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e) or "PRIMARY KEY" in str(e):
                raise DuplicateRecordError(str(e)) from e
            raise StorageIntegrityError(str(e)) from e

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS concepts (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    name_key TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',      -- JSON array
                    origin TEXT NOT NULL,
                    origin_ref TEXT,
                    extraction_order INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (owner_id, name_key)
                );

                CREATE INDEX IF NOT EXISTS idx_concepts_owner_origin
                    ON concepts(owner_id, origin, origin_ref);

                CREATE TABLE IF NOT EXISTS relationships (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    source_concept_id TEXT NOT NULL
                        REFERENCES concepts(id) ON DELETE CASCADE,
                    target_concept_id TEXT NOT NULL
                        REFERENCES concepts(id) ON DELETE CASCADE,
                    type TEXT NOT NULL,
                    strength REAL NOT NULL CHECK (strength >= 0 AND strength <= 1),
                    description TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (owner_id, source_concept_id, target_concept_id)
                );

                CREATE INDEX IF NOT EXISTS idx_relationships_target
                    ON relationships(owner_id, target_concept_id, type);

                CREATE TABLE IF NOT EXISTS knowledge_maps (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    is_public INTEGER NOT NULL DEFAULT 0,
                    relationship_ids TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS knowledge_map_concepts (
                    map_id TEXT NOT NULL
                        REFERENCES knowledge_maps(id) ON DELETE CASCADE,
                    concept_id TEXT NOT NULL
                        REFERENCES concepts(id) ON DELETE CASCADE,
                    position_x REAL NOT NULL DEFAULT 0,
                    position_y REAL NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (map_id, concept_id)
                );

                CREATE TABLE IF NOT EXISTS learning_paths (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS learning_path_steps (
                    id TEXT PRIMARY KEY,
                    path_id TEXT NOT NULL
                        REFERENCES learning_paths(id) ON DELETE CASCADE,
                    concept_id TEXT NOT NULL
                        REFERENCES concepts(id) ON DELETE CASCADE,
                    step_order INTEGER NOT NULL CHECK (step_order >= 1),
                    description TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    UNIQUE (path_id, step_order)
                );
            """)

    # ─────────────────────────────────────────────────────────────────────────
    # Row conversion
    # ─────────────────────────────────────────────────────────────────────────

    def _row_to_concept(self, row: sqlite3.Row) -> Concept:
        return Concept(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"],
            tags=set(json.loads(row["tags"])),
            origin=ConceptOrigin(row["origin"]),
            origin_ref=row["origin_ref"],
            extraction_order=row["extraction_order"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_relationship(self, row: sqlite3.Row) -> Relationship:
        return Relationship(
            id=row["id"],
            owner_id=row["owner_id"],
            source_concept_id=row["source_concept_id"],
            target_concept_id=row["target_concept_id"],
            type=row["type"],
            strength=row["strength"],
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_map(self, row: sqlite3.Row) -> KnowledgeMap:
        return KnowledgeMap(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"],
            tags=set(json.loads(row["tags"])),
            is_public=bool(row["is_public"]),
            relationship_ids=json.loads(row["relationship_ids"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_path(self, row: sqlite3.Row) -> LearningPath:
        return LearningPath(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"],
            tags=set(json.loads(row["tags"])),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_step(self, row: sqlite3.Row) -> PathStep:
        return PathStep(
            id=row["id"],
            path_id=row["path_id"],
            concept_id=row["concept_id"],
            order=row["step_order"],
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Concepts
    # ─────────────────────────────────────────────────────────────────────────

    def create_concept(self, concept: Concept) -> Concept:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            conn.execute("""
                INSERT INTO concepts
                (id, owner_id, name, name_key, description, tags, origin,
                 origin_ref, extraction_order, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                concept.id,
                concept.owner_id,
                concept.name,
                concept.name_key,
                concept.description,
                json.dumps(sorted(concept.tags)),
                concept.origin.value,
                concept.origin_ref,
                concept.extraction_order,
                concept.created_at.isoformat(),
                concept.updated_at.isoformat(),
            ))
        return concept.model_copy(deep=True)

    def get_concept(self, owner_id: str, concept_id: str) -> Optional[Concept]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM concepts WHERE id = ? AND owner_id = ?",
                (concept_id, owner_id)
            ).fetchone()
        return self._row_to_concept(row) if row else None

    def get_concept_by_name(self, owner_id: str, name: str) -> Optional[Concept]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM concepts WHERE owner_id = ? AND name_key = ?",
                (owner_id, normalize_name(name))
            ).fetchone()
        return self._row_to_concept(row) if row else None

    def get_concepts(self, owner_id: str, concept_ids: Iterable[str]) -> List[Concept]:
        ids = list(concept_ids)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM concepts WHERE owner_id = ? AND id IN ({placeholders})",
                [owner_id] + ids
            ).fetchall()
        by_id = {row["id"]: self._row_to_concept(row) for row in rows}
        return [by_id[concept_id] for concept_id in ids if concept_id in by_id]

    def update_concept(self, concept: Concept) -> Concept:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE concepts
                SET name = ?, name_key = ?, description = ?, tags = ?, origin = ?,
                    origin_ref = ?, extraction_order = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
            """, (
                concept.name,
                concept.name_key,
                concept.description,
                json.dumps(sorted(concept.tags)),
                concept.origin.value,
                concept.origin_ref,
                concept.extraction_order,
                concept.updated_at.isoformat(),
                concept.id,
                concept.owner_id,
            ))
            if cursor.rowcount == 0:
                raise StorageIntegrityError(f"Cannot update unknown concept: {concept.id}")
        return concept.model_copy(deep=True)

    def delete_concept(self, owner_id: str, concept_id: str) -> bool:
        with self._get_connection() as conn:
            rel_ids = [
                row["id"] for row in conn.execute(
                    "SELECT id FROM relationships WHERE owner_id = ? "
                    "AND (source_concept_id = ? OR target_concept_id = ?)",
                    (owner_id, concept_id, concept_id)
                ).fetchall()
            ]
            path_ids = [
                row["path_id"] for row in conn.execute(
                    "SELECT DISTINCT path_id FROM learning_path_steps WHERE concept_id = ?",
                    (concept_id,)
                ).fetchall()
            ]

            cursor = conn.execute(
                "DELETE FROM concepts WHERE id = ? AND owner_id = ?",
                (concept_id, owner_id)
            )
            if cursor.rowcount == 0:
                return False

            if rel_ids:
                self._prune_map_relationships(conn, owner_id, set(rel_ids))
            for path_id in path_ids:
                self._renumber_steps(conn, path_id)

        logger.info(f"Deleted concept {concept_id} with {len(rel_ids)} relationships")
        return True

    def _prune_map_relationships(
        self,
        conn: sqlite3.Connection,
        owner_id: str,
        removed: set[str],
    ) -> None:
        rows = conn.execute(
            "SELECT id, relationship_ids FROM knowledge_maps WHERE owner_id = ?",
            (owner_id,)
        ).fetchall()
        for row in rows:
            cached = json.loads(row["relationship_ids"])
            kept = [rid for rid in cached if rid not in removed]
            if len(kept) != len(cached):
                conn.execute(
                    "UPDATE knowledge_maps SET relationship_ids = ? WHERE id = ?",
                    (json.dumps(kept), row["id"])
                )

    def _renumber_steps(
        self,
        conn: sqlite3.Connection,
        path_id: str,
        step_ids: Optional[List[str]] = None,
    ) -> None:
        rows = conn.execute("""
            SELECT s.id, s.step_order, s.description, c.name
            FROM learning_path_steps s JOIN concepts c ON c.id = s.concept_id
            WHERE s.path_id = ? ORDER BY s.step_order
        """, (path_id,)).fetchall()
        if not rows:
            return
        if step_ids is not None:
            by_id = {row["id"]: row for row in rows}
            rows = [by_id[step_id] for step_id in step_ids]

        # Lift every order above the final range so no assignment collides
        shift = max(row["step_order"] for row in rows)
        conn.execute(
            "UPDATE learning_path_steps SET step_order = step_order + ? WHERE path_id = ?",
            (shift, path_id)
        )
        for index, row in enumerate(rows, start=1):
            conn.execute(
                "UPDATE learning_path_steps SET step_order = ?, description = ? WHERE id = ?",
                (
                    index,
                    relabel_step(row["description"], row["step_order"], index, row["name"]),
                    row["id"],
                )
            )

    def list_concepts(
        self,
        owner_id: str,
        tags: Optional[Iterable[str]] = None,
        origin: Optional[ConceptOrigin] = None,
        origin_ref: Optional[str] = None,
    ) -> List[Concept]:
        conditions = ["owner_id = ?"]
        params: list[Any] = [owner_id]

        if origin is not None:
            conditions.append("origin = ?")
            params.append(ConceptOrigin(origin).value)

        if origin_ref is not None:
            conditions.append("origin_ref = ?")
            params.append(origin_ref)

        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM concepts WHERE {' AND '.join(conditions)} ORDER BY rowid",
                params
            ).fetchall()

        concepts = [self._row_to_concept(row) for row in rows]
        required_tags = set(tags or [])
        if required_tags:
            concepts = [c for c in concepts if required_tags.issubset(c.tags)]
        return concepts

    # ─────────────────────────────────────────────────────────────────────────
    # Relationships
    # ─────────────────────────────────────────────────────────────────────────

    def create_relationship(self, relationship: Relationship) -> Relationship:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            owned = conn.execute(
                "SELECT COUNT(*) FROM concepts WHERE owner_id = ? AND id IN (?, ?)",
                (
                    relationship.owner_id,
                    relationship.source_concept_id,
                    relationship.target_concept_id,
                )
            ).fetchone()[0]
            expected = 1 if relationship.source_concept_id == relationship.target_concept_id else 2
            if owned != expected:
                raise StorageIntegrityError(
                    f"Relationship endpoints must be concepts of owner {relationship.owner_id}"
                )

            conn.execute("""
                INSERT INTO relationships
                (id, owner_id, source_concept_id, target_concept_id, type,
                 strength, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                relationship.id,
                relationship.owner_id,
                relationship.source_concept_id,
                relationship.target_concept_id,
                relationship.type,
                relationship.strength,
                relationship.description,
                relationship.created_at.isoformat(),
                relationship.updated_at.isoformat(),
            ))
        return relationship.model_copy(deep=True)

    def get_relationship(self, owner_id: str, relationship_id: str) -> Optional[Relationship]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM relationships WHERE id = ? AND owner_id = ?",
                (relationship_id, owner_id)
            ).fetchone()
        return self._row_to_relationship(row) if row else None

    def get_relationship_between(
        self,
        owner_id: str,
        source_concept_id: str,
        target_concept_id: str,
    ) -> Optional[Relationship]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM relationships WHERE owner_id = ? "
                "AND source_concept_id = ? AND target_concept_id = ?",
                (owner_id, source_concept_id, target_concept_id)
            ).fetchone()
        return self._row_to_relationship(row) if row else None

    def update_relationship(self, relationship: Relationship) -> Relationship:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE relationships
                SET type = ?, strength = ?, description = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
                  AND source_concept_id = ? AND target_concept_id = ?
            """, (
                relationship.type,
                relationship.strength,
                relationship.description,
                relationship.updated_at.isoformat(),
                relationship.id,
                relationship.owner_id,
                relationship.source_concept_id,
                relationship.target_concept_id,
            ))
            if cursor.rowcount == 0:
                raise StorageIntegrityError(
                    f"Cannot update unknown relationship: {relationship.id}"
                )
        return relationship.model_copy(deep=True)

    def delete_relationship(self, owner_id: str, relationship_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM relationships WHERE id = ? AND owner_id = ?",
                (relationship_id, owner_id)
            )
            if cursor.rowcount == 0:
                return False
            self._prune_map_relationships(conn, owner_id, {relationship_id})
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
        conditions = ["owner_id = ?", "strength >= ?"]
        params: list[Any] = [owner_id, min_strength]

        if type is not None:
            conditions.append("type = ?")
            params.append(type)

        if concept_id is not None:
            conditions.append("(source_concept_id = ? OR target_concept_id = ?)")
            params.extend([concept_id, concept_id])

        if target_ids is not None:
            targets = list(target_ids)
            if not targets:
                return []
            conditions.append(f"target_concept_id IN ({','.join('?' for _ in targets)})")
            params.extend(targets)

        if within_ids is not None:
            within = list(within_ids)
            if not within:
                return []
            placeholders = ",".join("?" for _ in within)
            conditions.append(f"source_concept_id IN ({placeholders})")
            conditions.append(f"target_concept_id IN ({placeholders})")
            params.extend(within)
            params.extend(within)

        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM relationships WHERE {' AND '.join(conditions)} ORDER BY rowid",
                params
            ).fetchall()
        return [self._row_to_relationship(row) for row in rows]

    # ─────────────────────────────────────────────────────────────────────────
    # Knowledge maps
    # ─────────────────────────────────────────────────────────────────────────

    def create_map(self, knowledge_map: KnowledgeMap) -> KnowledgeMap:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            conn.execute("""
                INSERT INTO knowledge_maps
                (id, owner_id, name, description, tags, is_public,
                 relationship_ids, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                knowledge_map.id,
                knowledge_map.owner_id,
                knowledge_map.name,
                knowledge_map.description,
                json.dumps(sorted(knowledge_map.tags)),
                1 if knowledge_map.is_public else 0,
                json.dumps(knowledge_map.relationship_ids),
                knowledge_map.created_at.isoformat(),
                knowledge_map.updated_at.isoformat(),
            ))
        return knowledge_map.model_copy(deep=True)

    def get_map(self, owner_id: str, map_id: str) -> Optional[KnowledgeMap]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM knowledge_maps WHERE id = ? AND owner_id = ?",
                (map_id, owner_id)
            ).fetchone()
        return self._row_to_map(row) if row else None

    def update_map(self, knowledge_map: KnowledgeMap) -> KnowledgeMap:
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE knowledge_maps
                SET name = ?, description = ?, tags = ?, is_public = ?,
                    relationship_ids = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
            """, (
                knowledge_map.name,
                knowledge_map.description,
                json.dumps(sorted(knowledge_map.tags)),
                1 if knowledge_map.is_public else 0,
                json.dumps(knowledge_map.relationship_ids),
                knowledge_map.updated_at.isoformat(),
                knowledge_map.id,
                knowledge_map.owner_id,
            ))
            if cursor.rowcount == 0:
                raise StorageIntegrityError(f"Cannot update unknown map: {knowledge_map.id}")
        return knowledge_map.model_copy(deep=True)

    def delete_map(self, owner_id: str, map_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM knowledge_maps WHERE id = ? AND owner_id = ?",
                (map_id, owner_id)
            )
        return cursor.rowcount > 0

    def list_maps(self, owner_id: str) -> List[KnowledgeMap]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM knowledge_maps WHERE owner_id = ? "
                "ORDER BY updated_at DESC, rowid",
                (owner_id,)
            ).fetchall()
        return [self._row_to_map(row) for row in rows]

    def add_map_concepts(self, map_id: str, members: List[MapConcept]) -> None:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            map_row = conn.execute(
                "SELECT owner_id FROM knowledge_maps WHERE id = ?", (map_id,)
            ).fetchone()
            if map_row is None:
                raise StorageIntegrityError(f"Unknown map: {map_id}")
            for member in members:
                owned = conn.execute(
                    "SELECT 1 FROM concepts WHERE id = ? AND owner_id = ?",
                    (member.concept_id, map_row["owner_id"])
                ).fetchone()
                if owned is None:
                    raise StorageIntegrityError(
                        f"Map member {member.concept_id} is not a concept of owner "
                        f"{map_row['owner_id']}"
                    )
                conn.execute("""
                    INSERT INTO knowledge_map_concepts
                    (map_id, concept_id, position_x, position_y, created_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    map_id,
                    member.concept_id,
                    member.x,
                    member.y,
                    member.created_at.isoformat(),
                ))

    def get_map_concepts(self, map_id: str) -> List[MapConcept]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM knowledge_map_concepts WHERE map_id = ? ORDER BY rowid",
                (map_id,)
            ).fetchall()
        return [
            MapConcept(
                map_id=row["map_id"],
                concept_id=row["concept_id"],
                x=row["position_x"],
                y=row["position_y"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def update_map_concept_position(self, map_id: str, concept_id: str, x: float, y: float) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE knowledge_map_concepts SET position_x = ?, position_y = ? "
                "WHERE map_id = ? AND concept_id = ?",
                (x, y, map_id, concept_id)
            )
        return cursor.rowcount > 0

    def remove_map_concepts(self, map_id: str, concept_ids: Iterable[str]) -> int:
        ids = list(concept_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM knowledge_map_concepts WHERE map_id = ? "
                f"AND concept_id IN ({placeholders})",
                [map_id] + ids
            )
        return cursor.rowcount

    # ─────────────────────────────────────────────────────────────────────────
    # Learning paths
    # ─────────────────────────────────────────────────────────────────────────

    def create_path(self, path: LearningPath) -> LearningPath:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            conn.execute("""
                INSERT INTO learning_paths
                (id, owner_id, name, description, tags, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                path.id,
                path.owner_id,
                path.name,
                path.description,
                json.dumps(sorted(path.tags)),
                path.created_at.isoformat(),
                path.updated_at.isoformat(),
            ))
        return path.model_copy(deep=True, update={"steps": []})

    def get_path(self, owner_id: str, path_id: str) -> Optional[LearningPath]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM learning_paths WHERE id = ? AND owner_id = ?",
                (path_id, owner_id)
            ).fetchone()
        return self._row_to_path(row) if row else None

    def update_path(self, path: LearningPath) -> LearningPath:
        with self._get_connection() as conn:
            cursor = conn.execute("""
                UPDATE learning_paths
                SET name = ?, description = ?, tags = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
            """, (
                path.name,
                path.description,
                json.dumps(sorted(path.tags)),
                path.updated_at.isoformat(),
                path.id,
                path.owner_id,
            ))
            if cursor.rowcount == 0:
                raise StorageIntegrityError(f"Cannot update unknown learning path: {path.id}")
        return path.model_copy(deep=True, update={"steps": []})

    def delete_path(self, owner_id: str, path_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM learning_paths WHERE id = ? AND owner_id = ?",
                (path_id, owner_id)
            )
        return cursor.rowcount > 0

    def list_paths(self, owner_id: str) -> List[LearningPath]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM learning_paths WHERE owner_id = ? "
                "ORDER BY updated_at DESC, rowid",
                (owner_id,)
            ).fetchall()
        return [self._row_to_path(row) for row in rows]

    def add_path_steps(self, path_id: str, steps: List[PathStep]) -> None:
        with self._translate_integrity_errors(), self._get_connection() as conn:
            path_row = conn.execute(
                "SELECT owner_id FROM learning_paths WHERE id = ?", (path_id,)
            ).fetchone()
            if path_row is None:
                raise StorageIntegrityError(f"Unknown learning path: {path_id}")
            for step in steps:
                owned = conn.execute(
                    "SELECT 1 FROM concepts WHERE id = ? AND owner_id = ?",
                    (step.concept_id, path_row["owner_id"])
                ).fetchone()
                if owned is None:
                    raise StorageIntegrityError(
                        f"Path step concept {step.concept_id} is not a concept of owner "
                        f"{path_row['owner_id']}"
                    )
                conn.execute("""
                    INSERT INTO learning_path_steps
                    (id, path_id, concept_id, step_order, description, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    step.id,
                    path_id,
                    step.concept_id,
                    step.order,
                    step.description,
                    step.created_at.isoformat(),
                ))

    def get_path_steps(self, path_id: str) -> List[PathStep]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM learning_path_steps WHERE path_id = ? ORDER BY step_order",
                (path_id,)
            ).fetchall()
        return [self._row_to_step(row) for row in rows]

    def remove_path_step(self, path_id: str, step_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM learning_path_steps WHERE id = ? AND path_id = ?",
                (step_id, path_id)
            )
            if cursor.rowcount == 0:
                return False
            self._renumber_steps(conn, path_id)
        return True

    def reorder_path_steps(self, path_id: str, step_ids: List[str]) -> None:
        with self._get_connection() as conn:
            existing = {
                row["id"] for row in conn.execute(
                    "SELECT id FROM learning_path_steps WHERE path_id = ?", (path_id,)
                ).fetchall()
            }
            if len(step_ids) != len(existing) or set(step_ids) != existing:
                raise StorageIntegrityError(
                    f"Reorder of path {path_id} must list each of its {len(existing)} steps once"
                )
            self._renumber_steps(conn, path_id, step_ids)
