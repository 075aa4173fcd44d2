"""
Test suite for document-level result assembly.
"""

import pytest

from embedocs.core.models.search import Provenance
from embedocs.core.services.result_assembler import ResultAssembler, reorder_lost_in_middle

from conftest import make_chunk


@pytest.fixture
def assembler() -> ResultAssembler:
    """Provide assembler with default excerpt count."""
    return ResultAssembler()


def ranked_documents(count: int):
    """One chunk per document, d1 best."""
    return [
        make_chunk(f"r{i}", score=float(count - i), document_id=f"d{i + 1}")
        for i in range(count)
    ]


class TestReorderLostInMiddle:
    """Test suite for the lost-in-the-middle ordering."""

    def test_best_two_should_sit_at_both_ends(self) -> None:
        assert reorder_lost_in_middle(["d1", "d2", "d3", "d4", "d5"]) == [
            "d1",
            "d3",
            "d4",
            "d5",
            "d2",
        ]

    @pytest.mark.parametrize("items", [[], ["d1"], ["d1", "d2"]])
    def test_short_lists_should_keep_order(self, items) -> None:
        assert reorder_lost_in_middle(items) == items


class TestResultAssembler:
    """Test suite for ResultAssembler.assemble."""

    def test_chunks_should_group_by_document(self, assembler: ResultAssembler) -> None:
        # Arrange
        candidates = [
            make_chunk("a1", score=0.9, document_id="a", chunk_index=0),
            make_chunk("b1", score=0.8, document_id="b"),
            make_chunk("a2", score=0.7, document_id="a", chunk_index=3, provenance=Provenance.KEYWORD),
        ]

        # Act
        results = assembler.assemble(candidates, limit=5)

        # Assert
        assert [r.document_id for r in results] == ["a", "b"]
        assert [m.chunk_index for m in results[0].chunks] == [0, 3]
        assert results[0].max_score == 0.9
        assert results[0].provenance is Provenance.BOTH
        assert results[0].title == "Title a"
        assert results[1].provenance is Provenance.VECTOR

    def test_excerpts_should_be_capped_per_document(self) -> None:
        candidates = [
            make_chunk(f"a{i}", score=1.0 - i / 10, document_id="a", chunk_index=i)
            for i in range(5)
        ]

        results = ResultAssembler(chunks_per_document=3).assemble(candidates, limit=5)

        assert [m.chunk_index for m in results[0].chunks] == [0, 1, 2]

    def test_five_documents_should_be_reordered(self, assembler: ResultAssembler) -> None:
        results = assembler.assemble(ranked_documents(5), limit=5)

        assert [r.document_id for r in results] == ["d1", "d3", "d4", "d5", "d2"]

    def test_limit_should_apply_before_reordering(self, assembler: ResultAssembler) -> None:
        results = assembler.assemble(ranked_documents(5), limit=3)

        assert [r.document_id for r in results] == ["d1", "d3", "d2"]

    def test_reorder_can_be_disabled(self, assembler: ResultAssembler) -> None:
        results = assembler.assemble(ranked_documents(4), limit=4, reorder=False)

        assert [r.document_id for r in results] == ["d1", "d2", "d3", "d4"]

    def test_input_order_should_win_without_score_ranking(
        self, assembler: ResultAssembler
    ) -> None:
        candidates = list(reversed(ranked_documents(3)))

        results = assembler.assemble(candidates, limit=3, reorder=False, rank_by_score=False)

        assert [r.document_id for r in results] == ["d3", "d2", "d1"]

    @pytest.mark.parametrize("limit", [0, -2])
    def test_non_positive_limit_should_return_nothing(
        self, assembler: ResultAssembler, limit: int
    ) -> None:
        assert assembler.assemble(ranked_documents(3), limit=limit) == []
