"""Vessel demand/capability forecasting tests."""

from __future__ import annotations

import pytest

from core.data import build_data_ctx, prepare_context
from core.metrics_forecast import (
    SCENARIOS,
    Scenario,
    VesselInject,
    analyze_historical_capabilities,
    analyze_historical_demand,
    apply_injects,
    baseline_vessel_gap,
    compute_vessel_forecast,
    forecast_months,
    forecast_scenario,
    linear_regression,
    management_recommendations,
    monthly_history,
    parse_month,
    quarter_of,
    seasonal_pattern,
)

FLAT_DEMAND = {"2025-01": 10.0, "2025-02": 10.0, "2025-03": 10.0}
FLAT_VESSELS = {
    "Pelican Island": {"2025-01": 5.0, "2025-02": 5.0, "2025-03": 5.0},
    "Fast Goliath": {"2025-01": 5.0, "2025-02": 5.0, "2025-03": 5.0},
}


class TestMath:
    def test_linear_regression(self):
        reg = linear_regression([2, 4, 6])
        assert reg["slope"] == pytest.approx(2.0)
        assert reg["intercept"] == pytest.approx(0.0)
        assert reg["r2"] == pytest.approx(1.0)

    def test_regression_short_series(self):
        assert linear_regression([7]) == {"slope": 0.0, "intercept": 7.0, "r2": 0.0}
        assert linear_regression([]) == {"slope": 0.0, "intercept": 0.0, "r2": 0.0}

    def test_quarters_and_months(self):
        assert quarter_of("2025-01") == "Q1"
        assert quarter_of("2025-12") == "Q4"
        assert forecast_months("2025-11", 3) == ["2025-12", "2026-01", "2026-02"]

    def test_parse_month(self):
        assert parse_month(" 2025-04 ") == "2025-04"
        for bad in ("next spring", "2025-13", "2025-4", "", None):
            with pytest.raises(ValueError, match="expected YYYY-MM"):
                parse_month(bad)

    def test_seasonal_pattern_defaults_missing_quarters(self):
        pattern = seasonal_pattern({"2025-01": 1, "2025-02": 2, "2025-03": 3, "2025-04": 4})
        assert pattern["Q1"] == pytest.approx(0.8)
        assert pattern["Q2"] == pytest.approx(1.6)
        assert pattern["Q3"] == 0.9
        assert pattern["Q4"] == 1.05


class TestHistoricalAnalysis:
    def test_demand_trend(self):
        demand = analyze_historical_demand({"2025-01": 1, "2025-02": 2, "2025-03": 3, "2025-04": 4})
        first = next(iter(demand["monthly_forecast"]))
        assert first == "2025-05"
        assert demand["monthly_forecast"]["2025-05"] == pytest.approx(8.0)
        assert demand["growth_rate"] == pytest.approx(0.4)
        assert demand["trend_direction"] == "increasing"
        assert demand["confidence"]["2025-05"] == pytest.approx(0.97)
        assert len(demand["monthly_forecast"]) == 12

    def test_flat_demand_is_stable(self):
        demand = analyze_historical_demand(FLAT_DEMAND)
        assert demand["trend_direction"] == "stable"
        assert demand["growth_rate"] == 0.0
        # r2 is zero for a flat series so confidence sits on its floor
        assert demand["confidence"]["2025-04"] == pytest.approx(0.29)

    def test_capability_maintenance_months(self):
        caps = analyze_historical_capabilities({"2025-01": 4, "2025-02": 4})
        assert caps["monthly_capability"]["2025-03"] == pytest.approx(4.0)
        assert caps["monthly_capability"]["2025-08"] == pytest.approx(3.2)
        assert caps["monthly_capability"]["2026-02"] == pytest.approx(3.2)
        assert set(caps["planned_maintenance"]) == {"2025-08", "2026-02"}
        assert caps["performance_trend"] == "stable"


class TestScenarios:
    def test_base_case_flat_history(self):
        result = forecast_scenario(SCENARIOS["base_case"], FLAT_DEMAND, FLAT_VESSELS)
        assert result["forecast_period"]["start_month"] == "2025-04"
        assert result["total_demand"]["2025-04"] == pytest.approx(10.2)
        assert result["drilling_demand"]["2025-04"] == pytest.approx(8.7)
        assert result["production_demand"]["2025-04"] == pytest.approx(1.5)
        assert result["total_capability"]["2025-04"] == pytest.approx(10.1)
        assert result["required_vessels"]["2025-04"] == 3
        assert result["vessel_gap"]["2025-04"] == 0

    def test_optimistic_grows_faster(self):
        base = forecast_scenario(SCENARIOS["base_case"], FLAT_DEMAND, FLAT_VESSELS)
        optimistic = forecast_scenario(SCENARIOS["optimistic"], FLAT_DEMAND, FLAT_VESSELS)
        pessimistic = forecast_scenario(SCENARIOS["pessimistic"], FLAT_DEMAND, FLAT_VESSELS)
        last = base["forecast_period"]["end_month"]
        assert optimistic["total_demand"][last] > base["total_demand"][last] > pessimistic["total_demand"][last]

    def test_injects_need_activation(self):
        inject = VesselInject("rig-move", "2025-04", "2025-05", vessel_requirement=4, probability=0.5)
        inactive = forecast_scenario(SCENARIOS["base_case"], FLAT_DEMAND, FLAT_VESSELS, [inject])
        assert inactive["inject_impact"]["2025-04"] == 0.0

        scenario = Scenario("custom", "Custom", 0.02, 0.01, active_injects=["rig-move"])
        active = forecast_scenario(scenario, FLAT_DEMAND, FLAT_VESSELS, [inject])
        assert active["inject_impact"]["2025-04"] == pytest.approx(2.0)
        assert active["inject_impact"]["2025-06"] == 0.0
        assert active["total_demand"]["2025-04"] == pytest.approx(12.2)

    def test_apply_injects(self):
        forecast = {"2025-04": 10.0, "2025-05": 10.0}
        out = apply_injects(
            forecast,
            [
                VesselInject("up", "2025-05", "2025-06", vessel_requirement=4, probability=0.5),
                VesselInject("down", "2025-04", "2025-04", vessel_requirement=20, impact="demand_decrease"),
                VesselInject("off", "2025-04", "2025-05", vessel_requirement=100, is_active=False),
            ],
        )
        assert out["adjusted"] == {"2025-04": 0.0, "2025-05": 12.0}
        assert out["impact"] == {"2025-04": -20.0, "2025-05": 2.0}
        assert forecast == {"2025-04": 10.0, "2025-05": 10.0}

    def test_baseline(self):
        baseline = baseline_vessel_gap()
        assert baseline["baseline_demand"] == pytest.approx(49.2)
        assert baseline["current_capability"] == pytest.approx(39.0)
        assert baseline["required_vessels"] == 8
        assert baseline["vessel_gap"] == 2
        assert baseline["utilization"] == pytest.approx(1.2615, abs=1e-4)


class TestRecommendations:
    def test_all_flags(self):
        recs = management_recommendations(
            {
                "vessel_gap": {"2025-04": 3, "2025-05": 1},
                "max_vessel_gap": 3,
                "average_utilization": 0.95,
                "confidence_score": 0.4,
                "scenario": {"confidence_threshold": 0.6},
            }
        )
        assert [r["type"] for r in recs] == ["vessel_acquisition", "capacity_warning", "data_quality"]
        assert recs[0]["priority"] == "critical"

    def test_under_utilized(self):
        recs = management_recommendations(
            {
                "vessel_gap": {"2025-04": 0},
                "max_vessel_gap": 0,
                "average_utilization": 0.3,
                "confidence_score": 0.9,
                "scenario": {"confidence_threshold": 0.6},
            }
        )
        assert [r["type"] for r in recs] == ["efficiency"]


class TestVesselForecastPage:
    def test_history_from_manifests(self, ctx):
        history = monthly_history(ctx)
        assert history["source"] == "vessel_manifests"
        assert history["demand"] == {"2025-01": 2.0, "2025-02": 3.0, "2025-03": 1.0}
        assert history["capabilities"]["Fast Goliath"] == {"2025-01": 1.0, "2025-02": 1.0}
        assert history["fleet_size"] == 1

    def test_history_falls_back_to_voyages(self, tables):
        no_manifests = {k: v for k, v in tables.items() if k != "vessel_manifests"}
        ctx = prepare_context({}, build_data_ctx(no_manifests, files=[], source="upload"))
        history = monthly_history(ctx)
        assert history["source"] == "voyage_list"
        assert history["demand"] == {"2025-01": 2.0, "2025-02": 1.0}

    def test_payload(self, ctx):
        payload = compute_vessel_forecast(ctx["filters"], ctx, scenario="optimistic")
        result = payload["result"]
        assert result["scenario"]["id"] == "optimistic"
        assert result["forecast_period"]["start_month"] == "2025-04"
        assert len(result["total_demand"]) == 12
        assert "demand_vs_capability" in payload["charts"]
        assert set(payload["scenarios"]) == {"base_case", "optimistic", "pessimistic"}

    def test_injects_activate_automatically(self, ctx):
        inject = VesselInject("campaign", "2025-04", "2025-04", vessel_requirement=3)
        payload = compute_vessel_forecast(ctx["filters"], ctx, injects=[inject])
        assert payload["result"]["scenario"]["active_injects"] == ["campaign"]
        assert payload["result"]["inject_impact"]["2025-04"] == pytest.approx(3.0)

    def test_unknown_scenario_uses_base_case(self, ctx):
        payload = compute_vessel_forecast(ctx["filters"], ctx, scenario="moonshot")
        assert payload["result"]["scenario"]["id"] == "base_case"

    def test_no_history(self, empty_ctx):
        payload = compute_vessel_forecast(empty_ctx["filters"], empty_ctx)
        assert payload["result"] is None
        assert payload["recommendations"] == []
        assert payload["baseline"]["vessel_gap"] == 2
