"""
Source documents and extraction results.

Documents are owned by an external document service; the engine
only reads them through a DocumentSource to feed an Extractor.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import Concept, Relationship, RelationshipType


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DocumentSection(BaseModel):
    title: str
    content: str = ""
    subsections: List["DocumentSection"] = Field(default_factory=list)


class KeyConcept(BaseModel):
    name: str
    related_concepts: List[str] = Field(default_factory=list)


class Document(BaseModel):
    """A processed study document."""
    id: str
    owner_id: str
    file_name: str = ""
    status: DocumentStatus = DocumentStatus.COMPLETED
    text: str = ""

    # Produced by the document analysis pipeline
    sections: List[DocumentSection] = Field(default_factory=list)
    key_concepts: List[KeyConcept] = Field(default_factory=list)

    model_config = {"from_attributes": True}


# =========================================================
# EXTRACTION
# =========================================================

class CandidateConcept(BaseModel):
    """A concept name proposed by an extractor."""
    name: str
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    order: Optional[int] = None


class CoOccurrenceHint(BaseModel):
    """A proposed relationship between two candidate names."""
    source: str
    target: str
    type: str = RelationshipType.CO_OCCURRENCE.value
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    description: str = ""


class ExtractionResult(BaseModel):
    """What an extractor returns; the graph store merges it."""
    candidates: List[CandidateConcept] = Field(default_factory=list)
    hints: List[CoOccurrenceHint] = Field(default_factory=list)

    @property
    def candidate_names(self) -> List[str]:
        return [candidate.name for candidate in self.candidates]


class ExtractionOutcome(BaseModel):
    """The stored records touched by an extraction."""
    concepts: List[Concept] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
