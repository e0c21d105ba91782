# tests/test_lookup/test_known_summaries.py
"""
Tests for the curated known-summary table and its structural matcher.

Matching is identity only (type + number, or an exact official short title),
filtered by year and state when the request names them.
"""
import pytest

from clearpolicy_core.known_summaries import (
    known_level_summary,
    known_summary_by_key,
    load_known_summaries,
    match_known_summary,
)
from clearpolicy_core.models import SummaryRequest


def _match_key(**request):
    entry = match_known_summary(SummaryRequest(**request))
    return entry.key if entry else None


def test_table_loads_and_validates():
    """Every curated entry carries all three levels and located citations."""
    entries = load_known_summaries()
    assert len(entries) >= 7
    for entry in entries:
        assert set(entry.levels) == {"5", "8", "12"}
        assert entry.citations
        assert all(c.location for c in entry.citations)
        assert all(c.is_genuine for c in entry.citations)


class TestStructuralMatch:
    def test_proposition_by_title(self):
        assert _match_key(title="Prop 47") == "ca-prop-47-2014"

    def test_spelled_out_proposition(self):
        assert _match_key(title="California Proposition 47") == "ca-prop-47-2014"

    def test_official_short_title(self):
        assert _match_key(title="Safe Neighborhoods and Schools Act") == "ca-prop-47-2014"

    def test_bare_identifier_with_proposition_type(self):
        assert _match_key(title="Criminal sentencing changes", identifier="47", type="proposition") == "ca-prop-47-2014"

    def test_state_bill_by_identifier(self):
        assert _match_key(title="Worker classification", identifier="AB 5") == "ca-ab-5-2019"

    def test_federal_bill(self):
        assert _match_key(title="Cocaine sentencing", identifier="S. 1789") == "fair-sentencing-act-2010"
        assert _match_key(title="Fair Sentencing Act of 2010") == "fair-sentencing-act-2010"


class TestFilters:
    def test_year_mismatch_rules_out_entry(self):
        assert _match_key(title="Prop 47", year="2016") is None

    def test_year_in_title_selects_between_same_numbers(self):
        assert _match_key(title="Prop 50 2016") == "ca-prop-50-2016"
        assert _match_key(title="Prop 50", year="2025") == "ca-prop-50-2025"

    def test_year_accepts_int(self):
        assert _match_key(title="Prop 50", year=2016) == "ca-prop-50-2016"

    def test_first_entry_wins_without_year(self):
        assert _match_key(title="prop 50") == "ca-prop-50-2025"

    def test_state_mismatch_rules_out_entry(self):
        assert _match_key(title="Texas Prop 47") is None

    def test_state_filter_ignored_for_federal_entries(self):
        assert _match_key(title="California view of S. 1789") == "fair-sentencing-act-2010"


class TestNoFuzzyMatching:
    @pytest.mark.parametrize("title", [
        "theft penalties reform",
        "Prop 999",
        "Fair Sentencing Actions",
        "Safe Neighborhoods",
    ])
    def test_topic_or_partial_titles_miss(self, title):
        assert _match_key(title=title) is None


def test_explicit_table_is_used():
    """An injected table replaces the curated one."""
    assert match_known_summary(SummaryRequest(title="Prop 47"), table=[]) is None


def test_known_summary_by_key():
    assert known_summary_by_key("ca-ab-5-2019").title
    assert known_summary_by_key("no-such-key") is None


class TestLevelSummary:
    def test_authoritative_level_fully_covered(self):
        entry = known_summary_by_key("ca-prop-47-2014")
        summary = known_level_summary(entry, "12")

        assert summary.tldr == entry.authoritative.tldr
        assert summary.citations == entry.citations
        assert summary.source_ratio == 1.0
        assert summary.source_count == 5

    def test_lists_joined_as_lines(self):
        entry = known_summary_by_key("ca-prop-17-2020")
        summary = known_level_summary(entry, "5")
        assert summary.pros.splitlines() == entry.levels["5"].pros

    def test_unknown_level(self):
        entry = known_summary_by_key("ca-prop-17-2020")
        with pytest.raises(KeyError):
            known_level_summary(entry, "3")
