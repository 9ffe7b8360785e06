"""Voyage analytics tests."""

from __future__ import annotations

import pandas as pd
import pytest

from core.data import prepare_context
from core.metrics_voyage import compute_voyage_analytics, compute_voyage_kpis, popular_destinations


class TestVoyageKpis:
    def test_headline_numbers(self, ctx):
        kpis = compute_voyage_kpis(ctx["filtered_voyages"])
        assert kpis["total_voyages"] == 4
        assert kpis["avg_voyage_duration"] == pytest.approx(49.5)
        assert kpis["drilling_voyage_percentage"] == pytest.approx(25.0)
        assert kpis["mixed_voyage_efficiency"] == pytest.approx(25.0)
        assert kpis["avg_stops_per_voyage"] == pytest.approx(2.75)
        assert kpis["multi_stop_percentage"] == pytest.approx(50.0)
        assert kpis["active_vessels"] == 2
        assert kpis["voyages_per_vessel"] == pytest.approx(2.0)
        assert kpis["route_concentration"] == pytest.approx(100.0)
        assert kpis["route_efficiency_score"] == pytest.approx(2.75 / (49.5 / 24))

    def test_empty(self):
        kpis = compute_voyage_kpis(pd.DataFrame())
        assert kpis["total_voyages"] == 0
        assert kpis["purpose_distribution"] == {}


class TestVoyageAnalytics:
    def test_distributions(self, ctx):
        payload = compute_voyage_analytics(ctx["filters"], ctx)
        assert [b["value"] for b in payload["route_complexity"]] == [2, 1, 1]
        assert [b["value"] for b in payload["duration_distribution"]] == [1, 1, 1, 1]
        assert {p["name"]: p["value"] for p in payload["purpose_distribution"]} == {
            "Drilling": 1, "Mixed": 1, "Production": 1, "Other": 1,
        }
        assert set(payload["charts"]) == {"purpose_distribution", "duration_distribution"}
        assert payload["table"]["total"] == 4

    def test_popular_destinations_tie_break(self, ctx):
        dests = popular_destinations(ctx["filtered_voyages"])
        assert [d["destination"] for d in dests] == ["Atlantis PQ", "Fourchon", "Na Kika", "Thunder Horse Drilling"]
        assert all(d["percentage"] == pytest.approx(25.0) for d in dests)

    def test_vessel_ranking(self, ctx):
        ranking = compute_voyage_analytics(ctx["filters"], ctx)["vessel_ranking"]
        assert [r["vessel"] for r in ranking] == ["Fast Goliath", "Pelican Island"]
        assert ranking[1]["avg_duration_hours"] == pytest.approx(42.0)

    def test_purpose_filter(self, data_ctx):
        ctx = prepare_context({"voyage_purpose": "Production"}, data_ctx)
        payload = compute_voyage_analytics(ctx["filters"], ctx)
        assert payload["kpis"]["total_voyages"] == 1
        assert payload["popular_destinations"][0]["destination"] == "Na Kika"

    def test_empty(self, empty_ctx):
        payload = compute_voyage_analytics(empty_ctx["filters"], empty_ctx)
        assert payload["route_complexity"] == []
        assert payload["charts"] == {}
        assert payload["table"]["total"] == 0
