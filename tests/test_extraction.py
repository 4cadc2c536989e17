"""
Unit tests for extractor strategies and extraction merging.
"""

import pytest

from learning_graph import (
    ConceptOrigin,
    Document,
    DocumentNotFoundError,
    DocumentNotReadyError,
    InMemoryGraphStorage,
    KnowledgeGraphService,
)
from learning_graph.models import DocumentSection, DocumentStatus, KeyConcept
from learning_graph.services import CapitalizedWordExtractor, StructuredDocumentExtractor

from conftest import OTHER_OWNER, OWNER


class TestCapitalizedWordExtractor:

    def test_candidates_in_order_of_appearance(self):
        extractor = CapitalizedWordExtractor()

        names = extractor.candidate_names("Newton and Leibniz, then Newton again; Euler. An ox.")

        assert names == ["Newton", "Leibniz", "Euler"]

    def test_min_length(self):
        extractor = CapitalizedWordExtractor(min_length=5)

        assert extractor.candidate_names("Gauss met Abel near Riemann") == ["Gauss", "Riemann"]

    def test_hints_limited_to_window(self):
        extractor = CapitalizedWordExtractor(window=3)

        result = extractor.extract_text("Alpha Bravo Charlie Delta")

        pairs = [(hint.source, hint.target) for hint in result.hints]
        assert pairs == [
            ("Alpha", "Bravo"), ("Alpha", "Charlie"),
            ("Bravo", "Charlie"), ("Bravo", "Delta"),
            ("Charlie", "Delta"),
        ]
        assert all(hint.type == "co-occurrence" and hint.strength == 0.5 for hint in result.hints)

    def test_default_window_pairs_each_with_next_four(self):
        text = " ".join(f"Word{chr(65 + i)}" for i in range(10))

        result = CapitalizedWordExtractor().extract_text(text)

        assert len(result.hints) == 6 * 4 + 3 + 2 + 1

    def test_descriptions_quote_text_prefix(self):
        text = "Topology " + "x" * 200

        result = CapitalizedWordExtractor().extract_text(text)

        assert result.candidates[0].description == f'Extracted from text: "{text[:100]}..."'
        assert result.candidates[0].tags == ["extracted"]

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            CapitalizedWordExtractor(window=0)


class TestStructuredDocumentExtractor:

    def test_sections_and_key_concepts(self):
        document = Document(
            id="doc-1",
            owner_id=OWNER,
            file_name="notes.md",
            sections=[DocumentSection(
                title="Probability",
                content="Chance",
                subsections=[DocumentSection(title="Bayes Rule", content="Posterior")],
            )],
            key_concepts=[KeyConcept(name="Likelihood", related_concepts=["Bayes Rule", "Priors"])],
        )

        result = StructuredDocumentExtractor().extract_document(document)

        assert result.candidate_names == ["Probability", "Bayes Rule", "Likelihood", "Priors"]
        assert [c.order for c in result.candidates] == [0, 1, 2, 3]
        bayes = result.candidates[1]
        assert bayes.tags == ["document", "subsection", "related-concept"]
        assert [(h.source, h.target, h.type, h.strength) for h in result.hints] == [
            ("Probability", "Bayes Rule", "contains", 1.0),
            ("Likelihood", "Bayes Rule", "related", 0.8),
            ("Likelihood", "Priors", "related", 0.8),
        ]
        assert result.candidates[2].description == "Key concept from document: notes.md"

    def test_unstructured_document_uses_text(self):
        document = Document(id="doc-2", owner_id=OWNER, text="Markov chains and Monte Carlo")

        result = StructuredDocumentExtractor().extract_document(document)

        assert result.candidate_names == ["Markov", "Monte", "Carlo"]


class TestGraphExtraction:
    """Extraction results merged through the graph service."""

    def test_extract_from_text(self, graph_service):
        outcome = graph_service.extract_from_text(OWNER, "Vectors span Spaces via Bases")

        assert [c.name for c in outcome.concepts] == ["Vectors", "Spaces", "Bases"]
        assert all(c.origin == ConceptOrigin.TEXT_EXTRACTION for c in outcome.concepts)
        assert len(outcome.relationships) == 3
        assert len(graph_service.get_graph(OWNER).edges) == 3

    def test_extraction_merges_with_existing_concepts(self, graph_service):
        existing = graph_service.add_concept(OWNER, "Vectors", tags=["math"])

        outcome = graph_service.extract_from_text(OWNER, "Vectors and Matrices")

        assert outcome.concepts[0].id == existing.id
        assert outcome.concepts[0].tags == {"math", "extracted"}
        assert outcome.concepts[0].origin == ConceptOrigin.USER

    def test_repeated_extraction_is_idempotent(self, graph_service):
        graph_service.extract_from_text(OWNER, "Alpha Beta Gamma")
        graph_service.extract_from_text(OWNER, "Alpha Beta Gamma")

        graph = graph_service.get_graph(OWNER)
        assert len(graph.nodes) == 3
        assert len(graph.edges) == 3

    def test_extract_from_document(self, graph_service, documents):
        documents.add(Document(
            id="doc-1",
            owner_id=OWNER,
            sections=[DocumentSection(title="Graphs", subsections=[DocumentSection(title="Trees")])],
        ))

        outcome = graph_service.extract_from_document(OWNER, "doc-1")

        assert [c.name for c in outcome.concepts] == ["Graphs", "Trees"]
        assert all(c.origin_ref == "doc-1" for c in outcome.concepts)
        assert [c.extraction_order for c in outcome.concepts] == [0, 1]
        assert outcome.relationships[0].type == "contains"

    def test_document_must_be_completed(self, graph_service, documents):
        documents.add(Document(id="doc-2", owner_id=OWNER, status=DocumentStatus.FAILED))

        with pytest.raises(DocumentNotReadyError) as exc_info:
            graph_service.extract_from_document(OWNER, "doc-2")

        assert exc_info.value.status == "failed"

    def test_other_owners_document_not_found(self, graph_service, documents):
        documents.add(Document(id="doc-3", owner_id=OTHER_OWNER))

        with pytest.raises(DocumentNotFoundError):
            graph_service.extract_from_document(OWNER, "doc-3")

    def test_no_document_source(self):
        service = KnowledgeGraphService(InMemoryGraphStorage())

        with pytest.raises(DocumentNotFoundError):
            service.extract_from_document(OWNER, "doc-1")

    def test_custom_extractor(self, storage):
        service = KnowledgeGraphService(storage, extractor=CapitalizedWordExtractor(window=2))

        outcome = service.extract_from_text(OWNER, "One Two Three")

        assert len(outcome.relationships) == 2
