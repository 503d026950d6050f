"""
Tests for record resolution.

A matched snapshot may hold one record or many; the resolver turns either
shape into candidates and picks one.
"""
import pytest

from snapshot_api.schemas import SnapshotRecord
from snapshot_api.services.resolver import (
    RecordNotFoundError,
    normalize_candidates,
    resolve_record,
)
from tests.fakes import make_record


class TestNormalizeCandidates:
    """Tests for decoding data into an ordered candidate list."""

    def test_single_object_yields_one_candidate(self):
        """A single-object data decodes to exactly that record."""
        record = make_record()
        candidates = normalize_candidates(record)

        assert len(candidates) == 1
        assert candidates[0] == SnapshotRecord(**record)

    def test_array_keeps_order(self):
        data = [make_record(username="a"), make_record(username="b"), make_record(username="c")]
        candidates = normalize_candidates(data)
        assert [c.username for c in candidates] == ["a", "b", "c"]

    def test_unknown_fields_are_ignored(self):
        candidates = normalize_candidates({"username": "u1", "agentCode": "X9", "level": 3})
        assert candidates[0].username == "u1"
        assert not hasattr(candidates[0], "agentCode")

    def test_missing_and_null_fields_default(self):
        candidates = normalize_candidates({"username": "u1", "betAmt": None, "currency": None})
        record = candidates[0]

        assert record.betAmt == 0.0
        assert record.validAmount == 0.0
        assert record.currency == ""
        assert record.prefix is None

    def test_numeric_text_fields_are_coerced(self):
        """Months and years stored as numbers still decode."""
        record = normalize_candidates({"month": 1, "year": 2026})[0]
        assert record.month == "1"
        assert record.year == "2026"

    def test_absent_data_yields_nothing(self):
        assert normalize_candidates(None) == []

    def test_empty_array_yields_nothing(self):
        assert normalize_candidates([]) == []

    def test_undecodable_data_yields_nothing(self):
        assert normalize_candidates("not-a-record") == []
        assert normalize_candidates([1, 2, 3]) == []


class TestResolveRecord:
    """Tests for candidate refinement and fallback."""

    def test_second_candidate_selected_when_it_matches(self):
        """username + cur match only the second record."""
        data = [
            make_record(username="someone_else", currency="USD"),
            make_record(username="user_demo", currency="THB", betAmt=42.0),
        ]

        resolution = resolve_record(data, username="user_demo", cur="THB")

        assert resolution.refined is True
        assert resolution.record.betAmt == 42.0
        assert resolution.candidate_count == 2

    def test_falls_back_to_first_candidate(self):
        """No candidate satisfies the predicates: the first is returned."""
        data = [make_record(username="a"), make_record(username="b")]

        resolution = resolve_record(data, username="nobody")

        assert resolution.refined is False
        assert resolution.record.username == "a"

    def test_no_predicates_takes_first(self):
        data = [make_record(username="a"), make_record(username="b")]
        assert resolve_record(data).record.username == "a"

    def test_empty_data_is_not_found(self):
        with pytest.raises(RecordNotFoundError):
            resolve_record([])

    def test_absent_data_is_not_found(self):
        with pytest.raises(RecordNotFoundError):
            resolve_record(None)

    def test_candidate_without_web_passes_web_predicate(self):
        data = [
            make_record(username="u1", web="WEB2"),
            make_record(username="u1", web=""),
        ]
        resolution = resolve_record(data, username="u1", web="WEB1")
        assert resolution.refined is True
        assert resolution.record.web == ""

    def test_candidate_with_other_web_is_skipped(self):
        data = [
            make_record(username="u1", web="WEB2", betAmt=1.0),
            make_record(username="u1", web="WEB1", betAmt=2.0),
        ]
        resolution = resolve_record(data, username="u1", web="WEB1")
        assert resolution.record.betAmt == 2.0

    def test_only_primary_currency_alias_refines(self):
        """Without cur, currency does not narrow candidates."""
        data = [
            make_record(currency="USD", betAmt=1.0),
            make_record(currency="THB", betAmt=2.0),
        ]

        # resolve_record has no secondary alias parameter; a request that
        # sent only "currency" reaches it with cur=None.
        resolution = resolve_record(data, cur=None)
        assert resolution.record.betAmt == 1.0

        resolution = resolve_record(data, cur="THB")
        assert resolution.record.betAmt == 2.0
