"""
Test suite for rule-based query expansion and suggestions.
"""

import json

import pytest

from embedocs.core.services.query_expander import GENERIC_HINTS, QueryExpander


@pytest.fixture
def expander() -> QueryExpander:
    """Provide expander with built-in tables."""
    return QueryExpander()


class TestExpand:
    """Test suite for QueryExpander.expand."""

    def test_expand_should_put_original_first(self, expander: QueryExpander) -> None:
        # Act
        queries = expander.expand("how to insert data")

        # Assert
        assert queries == [
            "how to insert data",
            "how to insertOne data",
            "how to insertMany data",
            "how to insert data tutorial",
            "how to insert data example",
        ]

    def test_expand_should_spell_out_abbreviations(self, expander: QueryExpander) -> None:
        queries = expander.expand("ttl expiry")

        assert queries[0] == "ttl expiry"
        assert "time to live index expiry" in queries

    def test_expand_should_not_touch_abbreviation_inside_words(
        self, expander: QueryExpander
    ) -> None:
        queries = expander.expand("documents")

        assert "documents" in queries
        assert not any("documentuments" in q for q in queries)
        assert len(queries) == 1

    def test_expand_should_drop_case_insensitive_duplicates(self) -> None:
        expander = QueryExpander(synonyms={"find": ["FIND", "query"]}, abbreviations={})

        assert expander.expand("find") == ["find", "query"]

    def test_expand_should_cap_variants(self) -> None:
        expander = QueryExpander(max_variants=2)

        assert len(expander.expand("how to insert data")) == 2

    def test_version_query_should_get_release_variants(self) -> None:
        expander = QueryExpander(synonyms={"unused": []}, abbreviations={"unused": "x"})

        queries = expander.expand("upgrade to v7.0")

        assert queries == [
            "upgrade to v7.0",
            "upgrade to v7.0 compatibility",
            "upgrade to v7.0 changes",
            "upgrade to v7.0 migration",
        ]

    def test_bare_number_should_not_get_release_variants(self) -> None:
        expander = QueryExpander(synonyms={"unused": []}, abbreviations={"unused": "x"})

        assert expander.expand("limit 100 results") == ["limit 100 results"]

    def test_expand_should_return_nothing_for_blank_query(self, expander: QueryExpander) -> None:
        assert expander.expand("   ") == []

    def test_invalid_cap_should_be_rejected(self) -> None:
        with pytest.raises(ValueError):
            QueryExpander(max_variants=0)

    def test_synonyms_file_should_extend_tables(self, tmp_path) -> None:
        # Arrange
        path = tmp_path / "synonyms.json"
        path.write_text(
            json.dumps({"synonyms": {"widget": ["gadget"]}, "abbreviations": {"wdg": "widget"}}),
            encoding="utf-8",
        )

        # Act
        expander = QueryExpander(synonyms_path=str(path))

        # Assert
        assert "gadget" in expander.expand("widget")
        assert "widget" in expander.expand("wdg")
        assert "insertOne" in expander.expand("insert")

    def test_missing_synonyms_file_should_be_ignored(self, tmp_path) -> None:
        expander = QueryExpander(synonyms_path=str(tmp_path / "absent.json"))

        assert expander.expand("insert")[0] == "insert"


class TestDetectIntent:
    """Test suite for coarse intent detection."""

    @pytest.mark.parametrize(
        ("query", "intent"),
        [
            ("how do I create an index", "tutorial"),
            ("connection error with pymongo", "troubleshooting"),
            ("query is slow", "performance"),
            ("$group by month", "aggregation"),
            ("pymongo connect", "driver"),
            ("banana bread", None),
        ],
    )
    def test_detect_intent(self, expander: QueryExpander, query: str, intent) -> None:
        assert expander.detect_intent(query) == intent


class TestGenerateSuggestions:
    """Test suite for empty-result suggestions."""

    def test_sql_terms_should_get_terminology_hints(self, expander: QueryExpander) -> None:
        suggestions = expander.generate_suggestions("join two tables")

        assert suggestions[0] == 'Try "$lookup" for joining collections'
        assert 'Try "$lookup two tables"' in suggestions

    def test_unknown_terms_should_get_generic_hints(self, expander: QueryExpander) -> None:
        assert expander.generate_suggestions("banana bread") == GENERIC_HINTS
