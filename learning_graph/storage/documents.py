"""
Document source collaborator.

The engine never parses files itself; processed documents are served by
an external document service through this interface.
"""

import logging
from typing import Optional, Protocol

from ..models import Document


logger = logging.getLogger(__name__)


class DocumentSource(Protocol):
    """Read access to processed documents, scoped by owner."""

    def get_document(self, owner_id: str, document_id: str) -> Optional[Document]:
        ...


class InMemoryDocumentSource:
    """Dict-backed DocumentSource for tests and local tools."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}

    def add(self, document: Document) -> Document:
        """Register (or replace) a document."""
        self._documents[document.id] = document.model_copy(deep=True)
        logger.debug(f"Registered document {document.id} ({document.status.value})")
        return document

    def get_document(self, owner_id: str, document_id: str) -> Optional[Document]:
        document = self._documents.get(document_id)
        if document is None or document.owner_id != owner_id:
            return None
        return document.model_copy(deep=True)
