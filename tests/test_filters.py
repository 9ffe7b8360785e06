"""Filter normalization, pagination and preset tests."""

from __future__ import annotations

from datetime import date

import pytest

from core.filters import (
    ALL_MONTHS,
    DashboardFilters,
    apply_preset,
    filter_impact,
    filter_options,
    month_label,
    normalize_filters,
    paginate,
    parse_month_label,
)


class TestNormalizeFilters:
    def test_defaults(self):
        f = normalize_filters({})
        assert f == DashboardFilters()
        assert f.thresholds.drilling_npt_pct == 15.0
        assert f.thresholds.utilization_target == 75.0

    def test_all_sentinels_become_none(self):
        f = normalize_filters(
            {"vessel": "all", "selected_month": "All Months", "voyage_purpose": "All Purposes", "location": "All Locations"}
        )
        assert f.vessel is None
        assert f.selected_month is None
        assert f.voyage_purpose is None
        assert f.location is None

    def test_dates_swapped_when_reversed(self):
        f = normalize_filters({"date_from": "2025-03-01", "date_to": "2025-01-01"})
        assert (f.date_from, f.date_to) == ("2025-01-01", "2025-03-01")

    def test_bad_values_clamped(self):
        f = normalize_filters({"page_size": 9999, "page": "x", "top_n": 0, "thresholds": {"waiting_pct": 30}})
        assert f.page_size == 500
        assert f.page == 1
        assert f.top_n == 1
        assert f.thresholds.waiting_pct == 30.0


class TestPaginate:
    def test_last_page(self):
        page = paginate(list(range(45)), page=3, page_size=20)
        assert page["rows"] == list(range(40, 45))
        assert (page["start"], page["end"], page["total_pages"]) == (41, 45, 3)

    def test_page_clamped(self):
        assert paginate(list(range(45)), page=9, page_size=20)["page"] == 3
        assert paginate(list(range(45)), page=0, page_size=20)["page"] == 1

    def test_empty(self):
        page = paginate([], page=1)
        assert page["total_pages"] == 1
        assert page["start"] == 0
        assert page["rows"] == []


class TestPresets:
    MONTHS = [ALL_MONTHS, "January 2025", "February 2025"]

    def test_current_month_uses_previous_month(self):
        assert apply_preset("current-month", self.MONTHS, today=date(2025, 2, 15)) == {"selected_month": "January 2025"}

    def test_current_month_falls_back_to_latest(self):
        assert apply_preset("current-month", self.MONTHS, today=date(2025, 6, 1)) == {"selected_month": "February 2025"}
        assert apply_preset("current-month", [ALL_MONTHS], today=date(2025, 1, 5)) == {"selected_month": ALL_MONTHS}

    def test_ytd_and_reset(self):
        assert apply_preset("ytd", self.MONTHS) == {"selected_month": ALL_MONTHS}
        assert apply_preset("reset", self.MONTHS) == {"selected_month": ALL_MONTHS, "location": "All Locations"}

    def test_unknown(self):
        with pytest.raises(ValueError):
            apply_preset("last-decade", self.MONTHS)


class TestHelpers:
    def test_filter_impact(self):
        assert filter_impact(1, 2) == 50
        assert filter_impact(1, 3) == 33
        assert filter_impact(0, 0) == 100

    def test_month_labels(self):
        assert month_label("2025-01-05") == "January 2025"
        assert month_label(None) is None
        assert parse_month_label("March 2025").month == 3
        assert parse_month_label("Smarch 2025") is None

    def test_filter_options(self, data_ctx):
        opts = filter_options(data_ctx)
        assert opts["vessels"] == ["Fast Goliath", "Pelican Island"]
        assert opts["months"] == [ALL_MONTHS, "January 2025", "February 2025"]
        assert opts["purposes"] == ["All Purposes", "Drilling", "Mixed", "Other", "Production"]
        assert opts["locations"][0] == "All Locations"
        assert "Atlantis PQ" in opts["locations"]
        assert opts["actions"] == ["Discharge", "Load", "Offload"]
