"""
Unit tests for the in-memory query engine.
"""

import pytest
from datetime import datetime, timedelta, timezone

from allertrack.data.query import (
    filter_incidents,
    matches_search,
    paginate,
    run_query,
    sort_incidents,
)
from allertrack.data.schema import IncidentFilters, SearchParams

from tests.conftest import make_incident

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def incidents():
    return [
        make_incident(BASE, "Mild", ["Sneezing"], foods=["Milk"], notes="Pollen everywhere", id="a"),
        make_incident(BASE + timedelta(days=1), "Severe", ["Hives"], foods=["Peanuts"], id="b"),
        make_incident(BASE + timedelta(days=2), "Moderate", ["Hives", "Itchy eyes"],
                      activities=["Running"], id="c"),
        make_incident(BASE + timedelta(days=3), "Severe", ["Swelling"], foods=["Peanuts", "Milk"], id="d"),
    ]


class TestSearch:
    """Test free-text matching."""

    def test_notes_substring_case_insensitive(self, incidents):
        assert matches_search(incidents[0], "pollen")

    def test_label_exact_match(self, incidents):
        assert matches_search(incidents[2], "Running")

    def test_label_partial_does_not_match(self, incidents):
        assert not matches_search(incidents[2], "Run")


class TestFilters:
    """Test every filter dimension."""

    def test_date_range_inclusive(self, incidents):
        filters = IncidentFilters(date_from=BASE + timedelta(days=1), date_to=BASE + timedelta(days=2))
        assert [i.id for i in filter_incidents(incidents, filters)] == ["b", "c"]

    def test_severity_set(self, incidents):
        filters = IncidentFilters(severity=["Severe"])
        assert [i.id for i in filter_incidents(incidents, filters)] == ["b", "d"]

    def test_symptom_overlap(self, incidents):
        filters = IncidentFilters(symptoms=["Hives", "Swelling"])
        assert [i.id for i in filter_incidents(incidents, filters)] == ["b", "c", "d"]

    def test_food_overlap(self, incidents):
        filters = IncidentFilters(foods=["Milk"])
        assert [i.id for i in filter_incidents(incidents, filters)] == ["a", "d"]

    def test_filters_combine(self, incidents):
        filters = IncidentFilters(severity=["Severe"], foods=["Milk"])
        assert [i.id for i in filter_incidents(incidents, filters)] == ["d"]

    def test_no_filters_keeps_all(self, incidents):
        assert len(filter_incidents(incidents, IncidentFilters())) == 4


class TestSortAndPaginate:
    """Test ordering and paging."""

    def test_default_newest_first(self, incidents):
        assert [i.id for i in sort_incidents(incidents)] == ["d", "c", "b", "a"]

    def test_severity_sorts_by_rank(self, incidents):
        ordered = sort_incidents(incidents, "severity", "asc")
        assert [i.severity.value for i in ordered] == ["Mild", "Moderate", "Severe", "Severe"]

    def test_sort_is_stable_for_ties(self, incidents):
        ordered = sort_incidents(incidents, "severity", "asc")
        assert [i.id for i in ordered][2:] == ["b", "d"]

    def test_paginate_middle_page(self, incidents):
        page = paginate(incidents, page=2, limit=3)
        assert [i.id for i in page.items] == ["d"]
        assert page.pagination.total == 4
        assert page.pagination.total_pages == 2
        assert page.pagination.has_prev
        assert not page.pagination.has_next

    def test_page_past_end_is_empty(self, incidents):
        page = paginate(incidents, page=5, limit=3)
        assert page.items == []
        assert page.pagination.total == 4


def test_run_query_end_to_end(incidents):
    params = SearchParams(limit=2, filters=IncidentFilters(search="Peanuts"), sort_order="asc")

    result = run_query(incidents, params)

    assert [i.id for i in result.items] == ["b", "d"]
    assert result.pagination.total == 2
    assert not result.pagination.has_next
