"""
Test suite for Reciprocal Rank Fusion and post-fusion scoring strategies.
"""

import dataclasses

import pytest

from embedocs.core.models.document import ContentType
from embedocs.core.models.search import Provenance, ScoredChunk
from embedocs.core.strategies.fusion import ReciprocalRankFusion, merge_query_variants
from embedocs.core.strategies.scoring import ContentTypeBoostStrategy, ProductBoostStrategy

from conftest import make_chunk


def vector_hit(record_id: str, score: float = 0.9, **kwargs) -> ScoredChunk:
    return make_chunk(record_id, score=score, vector_score=score, **kwargs)


def keyword_hit(record_id: str, score: float = 5.0, **kwargs) -> ScoredChunk:
    chunk = make_chunk(record_id, score=score, provenance=Provenance.KEYWORD, **kwargs)
    return dataclasses.replace(chunk, keyword_score=score)


@pytest.fixture
def fusion() -> ReciprocalRankFusion:
    """Provide equal-weight fusion with consensus boost."""
    return ReciprocalRankFusion(k=60, vector_weight=0.5, keyword_weight=0.5, both_boost=1.2)


class TestReciprocalRankFusion:
    """Test suite for ReciprocalRankFusion.fuse."""

    def test_fuse_should_rank_consensus_hits_first(self, fusion: ReciprocalRankFusion) -> None:
        """Test vector [A, B, C] and keyword [C, A, D] fuse to A, C, B, D."""
        # Arrange
        vector = [vector_hit("A"), vector_hit("B"), vector_hit("C")]
        keyword = [keyword_hit("C"), keyword_hit("A"), keyword_hit("D")]

        # Act
        fused = fusion.fuse(vector, keyword)

        # Assert
        assert [c.record_id for c in fused] == ["A", "C", "B", "D"]
        scores = {c.record_id: c.score for c in fused}
        assert scores["A"] == pytest.approx(1.2 * (0.5 / 61 + 0.5 / 62))
        assert scores["C"] == pytest.approx(1.2 * (0.5 / 63 + 0.5 / 61))
        assert scores["B"] == pytest.approx(0.5 / 62)
        assert scores["D"] == pytest.approx(0.5 / 63)

    def test_fuse_should_record_provenance_and_channel_scores(
        self, fusion: ReciprocalRankFusion
    ) -> None:
        vector = [vector_hit("A", score=0.8), vector_hit("B", score=0.7)]
        keyword = [keyword_hit("A", score=3.5), keyword_hit("D", score=2.0)]

        fused = {c.record_id: c for c in fusion.fuse(vector, keyword)}

        assert fused["A"].provenance is Provenance.BOTH
        assert fused["A"].vector_score == 0.8
        assert fused["A"].keyword_score == 3.5
        assert fused["B"].provenance is Provenance.VECTOR
        assert fused["B"].keyword_score is None
        assert fused["D"].provenance is Provenance.KEYWORD
        assert fused["D"].vector_score is None

    def test_fuse_should_not_mutate_inputs(self, fusion: ReciprocalRankFusion) -> None:
        vector = [vector_hit("A", score=0.8)]
        keyword = [keyword_hit("A", score=3.5)]

        fusion.fuse(vector, keyword)

        assert vector[0].score == 0.8
        assert vector[0].provenance is Provenance.VECTOR
        assert keyword[0].score == 3.5

    def test_better_rank_should_never_lower_score(self, fusion: ReciprocalRankFusion) -> None:
        low = {c.record_id: c.score for c in fusion.fuse([vector_hit("A"), vector_hit("B")], [])}
        high = {c.record_id: c.score for c in fusion.fuse([vector_hit("B"), vector_hit("A")], [])}

        assert high["B"] > low["B"]

    def test_ties_should_keep_first_seen_order(self, fusion: ReciprocalRankFusion) -> None:
        fused = fusion.fuse([vector_hit("A")], [keyword_hit("B")])

        assert fused[0].score == fused[1].score
        assert [c.record_id for c in fused] == ["A", "B"]

    def test_fuse_should_be_deterministic(self, fusion: ReciprocalRankFusion) -> None:
        vector = [vector_hit(x) for x in "ABCDE"]
        keyword = [keyword_hit(x) for x in "EDXYA"]

        first = fusion.fuse(vector, keyword)
        second = fusion.fuse(vector, keyword)

        assert [(c.record_id, c.score) for c in first] == [(c.record_id, c.score) for c in second]

    def test_duplicate_within_channel_should_count_once(
        self, fusion: ReciprocalRankFusion
    ) -> None:
        fused = fusion.fuse([vector_hit("A"), vector_hit("A")], [])

        assert len(fused) == 1
        assert fused[0].score == pytest.approx(0.5 / 61)

    def test_empty_channels_should_fuse_to_nothing(self, fusion: ReciprocalRankFusion) -> None:
        assert fusion.fuse([], []) == []

    def test_non_positive_k_should_be_rejected(self) -> None:
        with pytest.raises(ValueError):
            ReciprocalRankFusion(k=0)

    def test_strategies_should_reorder_after_fusion(self) -> None:
        """Test a meta penalty pushes a top-ranked readme below a reference page."""
        # Arrange
        fusion = ReciprocalRankFusion(
            strategies=[ContentTypeBoostStrategy({"meta": 0.3})]
        )
        readme = vector_hit("readme", content_type=ContentType.META)
        reference = vector_hit("reference", content_type=ContentType.TECHNICAL)

        # Act
        fused = fusion.fuse([readme, reference], [])

        # Assert
        assert [c.record_id for c in fused] == ["reference", "readme"]
        assert fused[1].score == pytest.approx(0.6 / 61 * 0.3)


class TestScoringStrategies:
    """Test suite for factor-based scoring strategies."""

    def test_product_boost_should_scale_listed_products(self) -> None:
        strategy = ProductBoostStrategy({"atlas": 2.0})
        results = [make_chunk("a", score=1.0, product="atlas"), make_chunk("b", score=1.0)]

        adjusted = strategy.apply("query", results)

        assert [c.score for c in adjusted] == [2.0, 1.0]
        assert results[0].score == 1.0

    def test_empty_factors_should_return_input(self) -> None:
        results = [make_chunk("a")]

        assert ContentTypeBoostStrategy().apply("q", results) is results


class TestMergeQueryVariants:
    """Test suite for merging one channel's results across query variants."""

    def test_merge_should_keep_best_rank_per_record(self) -> None:
        runs = [
            [vector_hit("A"), vector_hit("B")],
            [vector_hit("B"), vector_hit("C")],
        ]

        merged = merge_query_variants(runs)

        assert [c.record_id for c in merged] == ["A", "B", "C"]

    def test_merge_should_prefer_earlier_variant_on_equal_rank(self) -> None:
        original = vector_hit("A", score=0.9)
        expansion = vector_hit("A", score=0.5)

        merged = merge_query_variants([[original], [expansion]])

        assert merged == [original]


class TestFusionProperties:
    """Test suite for rank-fusion invariants."""

    def test_consensus_at_rank_one_should_beat_single_channel_rank_one(self) -> None:
        fusion = ReciprocalRankFusion(k=60, vector_weight=0.5, keyword_weight=0.5, both_boost=1.0)

        both = fusion.fuse([vector_hit("A")], [keyword_hit("A")])[0]
        single = fusion.fuse([vector_hit("B")], [])[0]

        assert both.score > single.score
