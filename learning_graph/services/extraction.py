"""
Extractor strategies - turn raw text or processed documents into
candidate concepts and relationship hints.

Extractors never touch storage. The graph service merges their
results through its normal add_concept/add_relationship path.
"""

import logging
import re
from typing import List, Optional, Protocol

from ..models import (
    CandidateConcept,
    CoOccurrenceHint,
    Document,
    DocumentSection,
    ExtractionResult,
    RelationshipType,
    normalize_name,
)


logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 100

_NON_WORD = re.compile(r"[^\w\s]")


class Extractor(Protocol):
    """Pluggable concept extraction strategy."""

    def extract_text(self, text: str) -> ExtractionResult:
        ...

    def extract_document(self, document: Document) -> ExtractionResult:
        ...


class _CandidateCollector:
    """Ordered, case-insensitive candidate set; later mentions add tags."""

    def __init__(self) -> None:
        self._by_key: dict[str, CandidateConcept] = {}

    def add(self, name: str, description: str = "", tags: Optional[List[str]] = None) -> Optional[str]:
        name = name.strip()
        if not name:
            return None

        key = normalize_name(name)
        existing = self._by_key.get(key)
        if existing is None:
            self._by_key[key] = CandidateConcept(
                name=name,
                description=description,
                tags=list(tags or []),
                order=len(self._by_key),
            )
            return name

        for tag in tags or []:
            if tag not in existing.tags:
                existing.tags.append(tag)
        if not existing.description and description:
            existing.description = description
        return existing.name

    @property
    def candidates(self) -> List[CandidateConcept]:
        return list(self._by_key.values())


def snippet(text: str) -> str:
    """The quoted text prefix used in extraction descriptions."""
    return f'"{text[:SNIPPET_LENGTH]}..."'


# =========================================================
# FREE TEXT
# =========================================================

class CapitalizedWordExtractor:
    """
    Heuristic extractor: capitalized words become concepts.

    A word is kept when, stripped of punctuation, it starts with an
    uppercase letter and is at least ``min_length`` characters long.
    Each candidate gets a co-occurrence hint to each of the next
    ``window - 1`` candidates, so hint count is O(n * window).
    """

    def __init__(self, min_length: int = 3, window: int = 5):
        if min_length < 1:
            raise ValueError("min_length must be at least 1")
        if window < 1:
            raise ValueError("window must be at least 1")
        self.min_length = min_length
        self.window = window

    def candidate_names(self, text: str) -> List[str]:
        """Capitalized words in order of first appearance, deduplicated."""
        seen = set()
        names = []
        for word in text.split():
            clean = _NON_WORD.sub("", word)
            if len(clean) < self.min_length or not clean[0].isupper():
                continue
            if clean not in seen:
                seen.add(clean)
                names.append(clean)
        return names

    def extract_text(self, text: str) -> ExtractionResult:
        names = self.candidate_names(text)
        quoted = snippet(text)

        collector = _CandidateCollector()
        for name in names:
            collector.add(name, description=f"Extracted from text: {quoted}", tags=["extracted"])
        ordered = [candidate.name for candidate in collector.candidates]

        hints = []
        for i, source in enumerate(ordered):
            for target in ordered[i + 1:i + self.window]:
                hints.append(CoOccurrenceHint(
                    source=source,
                    target=target,
                    type=RelationshipType.CO_OCCURRENCE.value,
                    strength=0.5,
                    description=f"Co-occurred in text: {quoted}",
                ))

        logger.debug(f"Extracted {len(ordered)} candidates and {len(hints)} hints from text")
        return ExtractionResult(candidates=collector.candidates, hints=hints)

    def extract_document(self, document: Document) -> ExtractionResult:
        return self.extract_text(document.text)


# =========================================================
# STRUCTURED DOCUMENTS
# =========================================================

class StructuredDocumentExtractor:
    """
    Extractor for analysed documents.

    Section titles become concepts, subsections are linked to their
    section with ``contains`` edges, and key concepts are linked to
    their related concepts with ``related`` edges. Candidate order
    follows the order the names are first met in the document.
    Documents without structure fall back to the text extractor.
    """

    def __init__(self, text_extractor: Optional[CapitalizedWordExtractor] = None):
        self._text_extractor = text_extractor or CapitalizedWordExtractor()

    def extract_text(self, text: str) -> ExtractionResult:
        return self._text_extractor.extract_text(text)

    def extract_document(self, document: Document) -> ExtractionResult:
        if not document.sections and not document.key_concepts:
            logger.info(f"Document {document.id} has no structure, extracting from text")
            return self._text_extractor.extract_text(document.text)

        collector = _CandidateCollector()
        hints: List[CoOccurrenceHint] = []

        for section in document.sections:
            self._add_section(section, collector, hints)

        for key_concept in document.key_concepts:
            name = collector.add(
                key_concept.name,
                description=f"Key concept from document: {document.file_name}",
                tags=["document", "key-concept"],
            )
            if name is None:
                logger.warning(f"Skipping unnamed key concept in document {document.id}")
                continue

            for related_name in key_concept.related_concepts:
                related = collector.add(
                    related_name,
                    description=f"Related to key concept: {name}",
                    tags=["document", "related-concept"],
                )
                if related is None or normalize_name(related) == normalize_name(name):
                    continue
                hints.append(CoOccurrenceHint(
                    source=name,
                    target=related,
                    type=RelationshipType.RELATED.value,
                    strength=0.8,
                    description="Related concepts from document analysis",
                ))

        return ExtractionResult(candidates=collector.candidates, hints=hints)

    def _add_section(
        self,
        section: DocumentSection,
        collector: _CandidateCollector,
        hints: List[CoOccurrenceHint],
    ) -> None:
        name = collector.add(section.title, description=section.content, tags=["document", "section"])
        if name is None:
            logger.warning("Skipping untitled document section")
            return

        for subsection in section.subsections:
            child = collector.add(
                subsection.title,
                description=subsection.content,
                tags=["document", "subsection"],
            )
            if child is None or normalize_name(child) == normalize_name(name):
                continue
            hints.append(CoOccurrenceHint(
                source=name,
                target=child,
                type=RelationshipType.CONTAINS.value,
                strength=1.0,
                description="Section contains subsection",
            ))
