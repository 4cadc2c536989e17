"""
Exceptions raised by the learning graph engine.

Every error raised by the engine derives from ``LearningGraphError``
so callers can catch the whole family at a service boundary.
"""


class LearningGraphError(Exception):
    """Base exception for learning graph operations."""
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Not found
# ─────────────────────────────────────────────────────────────────────────────

class NotFoundError(LearningGraphError):
    """Raised when a referenced record does not exist for the owner."""

    entity = "Record"

    def __init__(self, entity_id: str, message: str | None = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} not found: {entity_id}")


class ConceptNotFoundError(NotFoundError):
    entity = "Concept"


class RelationshipNotFoundError(NotFoundError):
    entity = "Relationship"


class MapNotFoundError(NotFoundError):
    entity = "Knowledge map"


class LearningPathNotFoundError(NotFoundError):
    entity = "Learning path"


class PathStepNotFoundError(NotFoundError):
    entity = "Path step"


class DocumentNotFoundError(NotFoundError):
    entity = "Document"


# ─────────────────────────────────────────────────────────────────────────────
# Validation and domain failures
# ─────────────────────────────────────────────────────────────────────────────

class GraphValidationError(LearningGraphError, ValueError):
    """Raised when an argument is rejected before any mutation happens."""
    pass


class NoPathFoundError(LearningGraphError):
    """Raised when a learning path cannot be materialized between two concepts."""

    def __init__(self, start_id: str, end_id: str, max_depth: int):
        self.start_id = start_id
        self.end_id = end_id
        self.max_depth = max_depth
        super().__init__(
            f"No path found between concepts {start_id} and {end_id} "
            f"within {max_depth} hops"
        )


class EmptyLearningPathError(LearningGraphError):
    """Raised when a learning path would have (or has) no steps."""
    pass


class DocumentNotReadyError(LearningGraphError):
    """Raised when a document has not finished processing."""

    def __init__(self, document_id: str, status: str):
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"Document processing is not complete: {document_id} (status={status})"
        )


class OperationCancelledError(LearningGraphError):
    """Raised when an operation budget is exhausted or cancelled."""

    def __init__(self, operation: str, completed_steps: int = 0):
        self.operation = operation
        self.completed_steps = completed_steps
        super().__init__(
            f"{operation} cancelled after {completed_steps} completed steps"
        )


# ─────────────────────────────────────────────────────────────────────────────
# Storage
# ─────────────────────────────────────────────────────────────────────────────

class StorageError(LearningGraphError):
    """Base exception for storage backend failures."""
    pass


class DuplicateRecordError(StorageError):
    """Raised when an insert would violate a uniqueness rule."""
    pass


class StorageIntegrityError(StorageError):
    """Raised when a record references rows it may not reference."""
    pass
