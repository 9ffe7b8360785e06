"""Vessel demand/capability forecasting.

Historical monthly deliveries (demand) and per-vessel deliveries (capability) are
trended with a least-squares line, adjusted by quarter seasonality and scenario
growth rates, then turned into a required-vessel count per forecast month.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.filters import DashboardFilters


FORECAST_MONTHS = 12
TREND_SIGNIFICANCE_THRESHOLD = 0.1
OPTIMAL_UTILIZATION_RATE = 0.75
UTILIZATION_WARNING_THRESHOLD = 0.90
UTILIZATION_UNDERUSE_THRESHOLD = 0.50
MIN_CONFIDENCE_THRESHOLD = 0.6
HIGH_CONFIDENCE_THRESHOLD = 0.8
DRILLING_SHARE = 0.85
PRODUCTION_SHARE = 0.15
SEASONAL_FACTORS = {"Q1": 1.1, "Q2": 1.0, "Q3": 0.9, "Q4": 1.05}

BASELINE_DEMAND_PER_RIG = 8.2
NUMBER_OF_RIG_LOCATIONS = 6
VESSEL_CAPABILITY = 6.5
CURRENT_FLEET_COUNT = 6

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    demand_growth_rate: float
    capability_growth_rate: float
    confidence_threshold: float = MIN_CONFIDENCE_THRESHOLD
    time_horizon: int = FORECAST_MONTHS
    active_injects: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class VesselInject:
    id: str
    start_month: str
    end_month: str
    vessel_requirement: float
    probability: float = 1.0
    impact: str = "demand_increase"
    is_active: bool = True


SCENARIOS: Dict[str, Scenario] = {
    "base_case": Scenario("base_case", "Base Case", 0.02, 0.01),
    "optimistic": Scenario("optimistic", "Optimistic Growth", 0.05, 0.03),
    "pessimistic": Scenario("pessimistic", "Conservative Planning", -0.01, 0.005, confidence_threshold=HIGH_CONFIDENCE_THRESHOLD),
}


def linear_regression(values: Sequence[float]) -> Dict[str, float]:
    n = len(values)
    if n < 2:
        return {"slope": 0.0, "intercept": float(values[0]) if n else 0.0, "r2": 0.0}
    xs = list(range(1, n + 1))
    sum_x = sum(xs)
    sum_y = float(sum(values))
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_x2 = sum(x * x for x in xs)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    mean_y = sum_y / n
    ss_total = sum((y - mean_y) ** 2 for y in values)
    ss_residual = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, values))
    r2 = 1 - ss_residual / ss_total if ss_total > 0 else 0.0
    return {"slope": slope, "intercept": intercept, "r2": r2}


def quarter_of(month_key: str) -> str:
    return f"Q{(int(month_key.split('-')[1]) - 1) // 3 + 1}"


def seasonal_pattern(monthly: Mapping[str, float]) -> Dict[str, float]:
    """Quarter average / overall average; quarters without history keep the default factor."""
    factors: Dict[str, float] = {}
    overall = sum(monthly.values()) / len(monthly) if monthly else 0.0
    for quarter, default in SEASONAL_FACTORS.items():
        in_quarter = [v for k, v in monthly.items() if quarter_of(k) == quarter]
        if in_quarter:
            factors[quarter] = (sum(in_quarter) / len(in_quarter)) / overall if overall > 0 else 1.0
        else:
            factors[quarter] = default
    return factors


def forecast_months(last_month: Optional[str], horizon: int = FORECAST_MONTHS) -> List[str]:
    """Month keys (YYYY-MM) starting the month after the last historical month."""
    start = pd.Period(last_month, freq="M") + 1 if last_month else pd.Timestamp.today().to_period("M")
    return [str(start + i) for i in range(horizon)]


def _trend_label(slope: float, threshold: float, up: str, down: str) -> str:
    if abs(slope) > threshold:
        return up if slope > 0 else down
    return "stable"


def analyze_historical_demand(monthly_demand: Mapping[str, float], horizon: int = FORECAST_MONTHS) -> Dict[str, Any]:
    months = sorted(monthly_demand)
    values = [float(monthly_demand[m]) for m in months]
    reg = linear_regression(values)
    n = len(values)
    mean = sum(values) / n if n else 0.0
    seasonal = seasonal_pattern(monthly_demand)

    forecast: Dict[str, float] = {}
    confidence: Dict[str, float] = {}
    for i, month in enumerate(forecast_months(months[-1] if months else None, horizon), start=1):
        trend = reg["intercept"] + reg["slope"] * (n + i)
        forecast[month] = round(max(0.0, trend * seasonal.get(quarter_of(month), 1.0)), 1)
        distance = max(0.5, 1 - (i / FORECAST_MONTHS) * 0.4)
        confidence[month] = round(distance * max(0.3, reg["r2"]), 2)

    return {
        "monthly_forecast": forecast,
        "confidence": confidence,
        "trend_direction": _trend_label(reg["slope"], TREND_SIGNIFICANCE_THRESHOLD, "increasing", "decreasing"),
        "seasonal_pattern": seasonal,
        "growth_rate": round(reg["slope"] / mean, 4) if n > 1 and mean else 0.0,
        "historical_average": round(mean, 1),
        "r2": reg["r2"],
    }


def analyze_historical_capabilities(
    monthly_capability: Mapping[str, float],
    *,
    last_month: Optional[str] = None,
    horizon: int = FORECAST_MONTHS,
) -> Dict[str, Any]:
    months = sorted(monthly_capability)
    values = [float(monthly_capability[m]) for m in months]
    avg = sum(values) / len(values) if values else 0.0
    reg = linear_regression(values)

    capability: Dict[str, float] = {}
    maintenance: Dict[str, float] = {}
    utilization: Dict[str, float] = {}
    anchor = last_month or (months[-1] if months else None)
    for i, month in enumerate(forecast_months(anchor, horizon), start=1):
        predicted = avg + reg["slope"] * i
        if i % 6 == 0:
            maintenance[month] = predicted * 0.2
            predicted -= maintenance[month]
        capability[month] = round(max(0.0, predicted), 1)
        utilization[month] = OPTIMAL_UTILIZATION_RATE

    return {
        "monthly_capability": capability,
        "planned_maintenance": maintenance,
        "utilization_forecast": utilization,
        "performance_trend": _trend_label(reg["slope"], TREND_SIGNIFICANCE_THRESHOLD * avg, "improving", "declining"),
        "average_capability": round(avg, 1),
    }


def parse_month(value: object) -> str:
    """Return a "YYYY-MM" month key, raising ValueError for anything else."""
    text = str(value or "").strip()
    if not re.match(MONTH_PATTERN, text):
        raise ValueError(f"Invalid month {value!r}: expected YYYY-MM")
    return text


def apply_injects(forecast: Mapping[str, float], injects: Sequence[VesselInject]) -> Dict[str, Dict[str, float]]:
    adjusted = dict(forecast)
    impact = {m: 0.0 for m in forecast}
    for inject in injects:
        if not inject.is_active:
            continue
        start, end = pd.Period(inject.start_month, freq="M"), pd.Period(inject.end_month, freq="M")
        for month in forecast:
            if not start <= pd.Period(month, freq="M") <= end:
                continue
            delta = inject.vessel_requirement * inject.probability
            if inject.impact == "demand_increase":
                adjusted[month] += delta
                impact[month] += delta
            elif inject.impact == "demand_decrease":
                adjusted[month] = max(0.0, adjusted[month] - abs(delta))
                impact[month] -= abs(delta)
    return {"adjusted": adjusted, "impact": impact}


def forecast_scenario(
    scenario: Scenario,
    monthly_demand: Mapping[str, float],
    vessel_capabilities: Mapping[str, Mapping[str, float]],
    injects: Sequence[VesselInject] = (),
) -> Dict[str, Any]:
    demand = analyze_historical_demand(monthly_demand, scenario.time_horizon)
    last_month = max(monthly_demand) if monthly_demand else None
    vessels = {
        name: analyze_historical_capabilities(caps, last_month=last_month, horizon=scenario.time_horizon)
        for name, caps in vessel_capabilities.items()
    }

    total_demand: Dict[str, float] = {}
    drilling_demand: Dict[str, float] = {}
    production_demand: Dict[str, float] = {}
    total_capability: Dict[str, float] = {}
    for i, month in enumerate(demand["monthly_forecast"], start=1):
        adjusted = demand["monthly_forecast"][month] * (1 + scenario.demand_growth_rate * i)
        total_demand[month] = round(adjusted, 1)
        drilling_demand[month] = round(adjusted * DRILLING_SHARE, 1)
        production_demand[month] = round(adjusted * PRODUCTION_SHARE, 1)
        capability = sum(v["monthly_capability"].get(month, 0.0) for v in vessels.values())
        total_capability[month] = round(capability * (1 + scenario.capability_growth_rate * i), 1)

    applicable = [inj for inj in injects if inj.id in scenario.active_injects]
    injected = apply_injects(total_demand, applicable)
    adjusted_demand = injected["adjusted"]

    avg_capability = (
        sum(v["average_capability"] for v in vessels.values()) / len(vessels) if vessels else 0.0
    )
    required: Dict[str, int] = {}
    gap: Dict[str, int] = {}
    utilization: List[float] = []
    for month, value in adjusted_demand.items():
        capability = total_capability[month]
        req = math.ceil(value / avg_capability) if avg_capability > 0 else 0
        current = math.ceil(capability / avg_capability) if avg_capability > 0 else 0
        required[month] = req
        gap[month] = req - current
        utilization.append(value / capability if capability > 0 else 0.0)

    confidences = list(demand["confidence"].values())
    months = list(adjusted_demand)
    return {
        "scenario": asdict(scenario),
        "forecast_period": {
            "start_month": months[0] if months else None,
            "end_month": months[-1] if months else None,
            "total_months": scenario.time_horizon,
        },
        "demand_analysis": demand,
        "vessel_capabilities": vessels,
        "total_demand": adjusted_demand,
        "drilling_demand": drilling_demand,
        "production_demand": production_demand,
        "total_capability": total_capability,
        "required_vessels": required,
        "vessel_gap": gap,
        "inject_impact": injected["impact"],
        "average_utilization": round(sum(utilization) / len(utilization), 3) if utilization else 0.0,
        "peak_demand_month": max(months, key=lambda m: adjusted_demand[m]) if months else None,
        "max_vessel_gap": max(gap.values()) if gap else 0,
        "recommended_fleet_size": max(required.values()) if required else 0,
        "confidence_score": round(sum(confidences) / len(confidences), 3) if confidences else 0.0,
    }


def baseline_vessel_gap(
    *,
    rigs: int = NUMBER_OF_RIG_LOCATIONS,
    demand_per_rig: float = BASELINE_DEMAND_PER_RIG,
    capability: float = VESSEL_CAPABILITY,
    fleet: int = CURRENT_FLEET_COUNT,
) -> Dict[str, float]:
    demand = rigs * demand_per_rig
    current_capability = fleet * capability
    required = math.ceil(demand / capability)
    return {
        "baseline_demand": round(demand, 1),
        "current_capability": round(current_capability, 1),
        "required_vessels": required,
        "current_vessels": fleet,
        "vessel_gap": required - fleet,
        "utilization": demand / current_capability if current_capability else 0.0,
    }


def management_recommendations(result: Dict[str, Any]) -> List[Dict[str, str]]:
    recs: List[Dict[str, str]] = []
    critical = [m for m, g in result["vessel_gap"].items() if g > 2]
    if critical:
        recs.append(
            {
                "type": "vessel_acquisition",
                "priority": "critical",
                "title": f"Acquire {result['max_vessel_gap']} Additional Vessels",
                "description": f"Shortage above 2 vessels in {len(critical)} months, first in {critical[0]}.",
            }
        )
    util = result["average_utilization"]
    if util > UTILIZATION_WARNING_THRESHOLD:
        recs.append(
            {
                "type": "capacity_warning",
                "priority": "high",
                "title": "Fleet Running Above Capacity",
                "description": f"Average utilization {util:.0%} exceeds {UTILIZATION_WARNING_THRESHOLD:.0%}.",
            }
        )
    elif 0 < util < UTILIZATION_UNDERUSE_THRESHOLD:
        recs.append(
            {
                "type": "efficiency",
                "priority": "medium",
                "title": "Fleet Under-Utilized",
                "description": f"Average utilization {util:.0%} is below {UTILIZATION_UNDERUSE_THRESHOLD:.0%}; consider releasing a vessel.",
            }
        )
    if result["confidence_score"] < result["scenario"]["confidence_threshold"]:
        recs.append(
            {
                "type": "data_quality",
                "priority": "low",
                "title": "Low Forecast Confidence",
                "description": f"Confidence {result['confidence_score']:.2f} is below the scenario threshold.",
            }
        )
    return recs


def monthly_history(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """Deliveries per month and per vessel per month, from manifests or else the voyage list."""
    manifests: pd.DataFrame = ctx.get("filtered_manifests", pd.DataFrame())
    voyages: pd.DataFrame = ctx.get("filtered_voyages", pd.DataFrame())
    if not manifests.empty and manifests["manifest_date"].notna().any():
        src = manifests.dropna(subset=["manifest_date"]).assign(
            month=lambda d: d["manifest_date"].dt.strftime("%Y-%m"), vessel=lambda d: d["transporter"].fillna("Unknown")
        )
        source = "vessel_manifests"
    elif not voyages.empty and voyages["voyage_date"].notna().any():
        src = voyages.dropna(subset=["voyage_date"])
        src = src[src["voyage_purpose"] != "Other"].assign(month=lambda d: d["voyage_date"].dt.strftime("%Y-%m"))
        source = "voyage_list"
    else:
        return {"source": None, "demand": {}, "capabilities": {}, "fleet_size": 0}

    demand = {str(k): float(v) for k, v in src.groupby("month").size().items()}
    per_vessel = src.groupby(["vessel", "month"]).size()
    capabilities: Dict[str, Dict[str, float]] = {}
    for (vessel, month), count in per_vessel.items():
        capabilities.setdefault(str(vessel), {})[str(month)] = float(count)
    last = max(demand) if demand else None
    fleet = int(src.loc[src["month"] == last, "vessel"].nunique()) if last else 0
    return {"source": source, "demand": demand, "capabilities": capabilities, "fleet_size": fleet}


def compute_vessel_forecast(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    scenario: str = "base_case",
    injects: Sequence[VesselInject] = (),
) -> Dict[str, Any]:
    chosen = SCENARIOS.get(scenario, SCENARIOS["base_case"])
    if injects:
        chosen = Scenario(**{**asdict(chosen), "active_injects": [i.id for i in injects]})
    history = monthly_history(ctx)

    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "history": history,
        "baseline": baseline_vessel_gap(),
        "scenarios": {k: asdict(v) for k, v in SCENARIOS.items()},
        "result": None,
        "recommendations": [],
        "charts": {},
    }
    if not history["demand"]:
        return payload

    result = forecast_scenario(chosen, history["demand"], history["capabilities"], injects)
    payload["result"] = result
    payload["recommendations"] = management_recommendations(result)

    chart_df = pd.DataFrame(
        [{"month": m, "series": "Forecast demand", "deliveries": v} for m, v in result["total_demand"].items()]
        + [{"month": m, "series": "Forecast capability", "deliveries": v} for m, v in result["total_capability"].items()]
        + [{"month": m, "series": "Historical demand", "deliveries": v} for m, v in sorted(history["demand"].items())]
    )
    payload["charts"]["demand_vs_capability"] = to_vega_spec(
        alt.Chart(chart_df)
        .mark_line(point=True)
        .encode(
            x=alt.X("month:O", title="Month"),
            y=alt.Y("deliveries:Q", title="Deliveries / month"),
            color=alt.Color("series:N", title=""),
            tooltip=["month", "series", alt.Tooltip("deliveries:Q", format=",.1f")],
        )
    )
    return payload
