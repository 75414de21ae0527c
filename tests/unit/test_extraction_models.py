"""
Unit Tests for Extraction Models

Tests the Pydantic models each enrichment stage asks the LLM for.
"""

import pytest
from pydantic import ValidationError

from models.extraction_models import (
    ActionItem,
    GraphExtraction,
    GraphNode,
    GraphRelationship,
    MeetingSummaryExtraction,
    NODE_TYPES,
    RELATIONSHIP_TYPES,
    RiskReport,
    SentimentBatch,
)


class TestSummaryModels:
    """Tests for the summarizer models."""

    def test_action_items_default_to_empty(self):
        extraction = MeetingSummaryExtraction(summary="Short meeting.")

        assert extraction.action_items == []

    def test_action_item_ids_are_one_based(self):
        assert ActionItem(id=1, text="Follow up").id == 1

        with pytest.raises(ValidationError):
            ActionItem(id=0, text="Follow up")


class TestRiskReport:
    """Tests for the RiskReport model."""

    @pytest.mark.parametrize("score", [0, 55, 100])
    def test_accepts_scores_in_range(self, score):
        assert RiskReport(confidence_score=score).confidence_score == score

    @pytest.mark.parametrize("score", [-1, 101])
    def test_rejects_scores_out_of_range(self, score):
        with pytest.raises(ValidationError):
            RiskReport(confidence_score=score)

    def test_risk_lists_default_to_empty(self):
        report = RiskReport(confidence_score=80)

        assert report.critical_risks == []
        assert report.blind_spots == []


class TestGraphModels:
    """Tests for the closed graph vocabulary."""

    def test_vocabulary_matches_literals(self):
        for node_type in NODE_TYPES:
            assert GraphNode(id="x", type=node_type).type == node_type
        for rel_type in RELATIONSHIP_TYPES:
            assert GraphRelationship(source="a", target="b", type=rel_type).type == rel_type

    def test_unknown_node_type_is_rejected(self):
        with pytest.raises(ValidationError):
            GraphNode(id="Alice", type="Animal")

    def test_unknown_relationship_type_is_rejected(self):
        with pytest.raises(ValidationError):
            GraphRelationship(source="a", target="b", type="LIKES")

    def test_parses_llm_json(self):
        extraction = GraphExtraction.model_validate_json(
            '{"nodes": [{"id": "Alice", "type": "Person"}, {"id": "Apollo", "type": "Project"}],'
            ' "relationships": [{"source": "Alice", "target": "Apollo", "type": "WORKS_ON"}]}'
        )

        assert len(extraction.nodes) == 2
        assert extraction.relationships[0].type == "WORKS_ON"


def test_sentiment_batch_parses_nested_scores():
    batch = SentimentBatch.model_validate({
        "windows": [{"timestamp": 30, "scores": [{"speaker": "Alice", "score": 0.4}]}]
    })

    assert batch.windows[0].scores[0].speaker == "Alice"
