from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.filters import DashboardFilters
from core.metrics_bulk import compute_bulk_kpis
from core.metrics_voyage import compute_voyage_kpis


def _hours(df: pd.DataFrame) -> float:
    if df.empty:
        return 0.0
    return round(float(df["final_hours"].fillna(0).sum()), 1)


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def average_trip_duration(events: pd.DataFrame) -> float:
    """Mean span (hours) between the first and last timestamp of each mission."""
    if events.empty:
        return 0.0
    spans = events.dropna(subset=["mission"]).copy()
    if spans.empty:
        return 0.0
    spans["start"] = spans[["from", "to"]].min(axis=1)
    spans["end"] = spans[["from", "to"]].max(axis=1)
    per_mission = spans.groupby("mission").agg(start=("start", "min"), end=("end", "max"))
    hours = ((per_mission["end"] - per_mission["start"]).dt.total_seconds() / 3600.0).dropna()
    return round(float(hours.mean()), 1) if not hours.empty else 0.0


def compute_event_kpis(events: pd.DataFrame) -> Dict[str, float]:
    if events.empty:
        return {
            "total_offshore_hours": 0.0,
            "total_onshore_hours": 0.0,
            "productive_hours": 0.0,
            "non_productive_hours": 0.0,
            "drilling_hours": 0.0,
            "drilling_npt_hours": 0.0,
            "drilling_npt_pct": 0.0,
            "waiting_offshore_hours": 0.0,
            "waiting_pct": 0.0,
            "weather_waiting_hours": 0.0,
            "installation_waiting_hours": 0.0,
            "cargo_ops_hours": 0.0,
            "vessel_utilization_rate": 0.0,
            "total_vessel_cost": 0.0,
            "average_trip_duration": 0.0,
        }

    port = events["port_type"]
    parent = events["parent_event"]
    category = events["activity_category"]
    offshore = _hours(events[port == "rig"])
    onshore = _hours(events[port == "base"])
    productive = _hours(events[category == "Productive"])
    drilling = events[events["department"] == "Drilling"]
    drilling_hours = _hours(drilling)
    drilling_npt = _hours(drilling[drilling["activity_category"] == "Non-Productive"])
    waiting = _hours(events[(port == "rig") & (parent == "Waiting on Installation")])

    return {
        "total_offshore_hours": offshore,
        "total_onshore_hours": onshore,
        "productive_hours": productive,
        "non_productive_hours": _hours(events[category == "Non-Productive"]),
        "drilling_hours": drilling_hours,
        "drilling_npt_hours": drilling_npt,
        "drilling_npt_pct": _pct(drilling_npt, drilling_hours),
        "waiting_offshore_hours": waiting,
        "waiting_pct": _pct(waiting, offshore),
        "weather_waiting_hours": _hours(events[parent == "Waiting on Weather"]),
        "installation_waiting_hours": _hours(events[parent == "Waiting on Installation"]),
        "cargo_ops_hours": _hours(events[parent == "Cargo Ops"]),
        "vessel_utilization_rate": _pct(productive, offshore + onshore),
        "total_vessel_cost": round(float(events["vessel_cost_total"].fillna(0).sum()), 2),
        "average_trip_duration": average_trip_duration(events),
    }


def compute_manifest_kpis(manifests: pd.DataFrame, cargo_ops_hours: float = 0.0) -> Dict[str, float]:
    if manifests.empty:
        return {
            "manifests": 0,
            "total_deck_tons": 0.0,
            "total_rt_tons": 0.0,
            "total_lifts": 0.0,
            "lifts_per_cargo_hour": 0.0,
            "cargo_tonnage_per_visit": 0.0,
        }
    deck = float(manifests["deck_tons"].sum())
    rt = float(manifests["rt_tons"].sum())
    lifts = float(manifests["lifts"].sum())
    return {
        "manifests": int(len(manifests)),
        "total_deck_tons": deck,
        "total_rt_tons": rt,
        "total_lifts": lifts,
        "lifts_per_cargo_hour": lifts / cargo_ops_hours if cargo_ops_hours > 0 else 0.0,
        "cargo_tonnage_per_visit": (deck + rt) / len(manifests),
    }


def department_breakdown(events: pd.DataFrame) -> List[Dict[str, Any]]:
    if events.empty:
        return []
    total = float(events["final_hours"].sum())
    grouped = (
        events.assign(department=events["department"].fillna("Unassigned"))
        .groupby("department")
        .agg(hours=("final_hours", "sum"), events=("final_hours", "size"), cost=("vessel_cost_total", "sum"))
        .reset_index()
        .sort_values("hours", ascending=False)
    )
    grouped["percentage"] = grouped["hours"].map(lambda h: _pct(float(h), total))
    return grouped.to_dict(orient="records")


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    events: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame()).copy()
    manifests: pd.DataFrame = ctx.get("filtered_manifests", pd.DataFrame()).copy()

    event_kpis = compute_event_kpis(events)
    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "kpis": event_kpis,
        "manifest_kpis": compute_manifest_kpis(manifests, event_kpis["cargo_ops_hours"]),
        "departments": department_breakdown(events),
        "activity_breakdown": [],
        "charts": {},
        "alerts": ctx.get("alerts", []) or [],
        "data_status": {"source": ctx.get("source"), "last_updated": ctx.get("last_updated")},
    }
    if events.empty:
        return payload

    activity = (
        events.groupby("activity_category")["final_hours"].sum().reset_index().sort_values("final_hours", ascending=False)
    )
    payload["activity_breakdown"] = activity.to_dict(orient="records")

    monthly = events.dropna(subset=["event_date"]).assign(month=lambda d: d["event_date"].dt.strftime("%Y-%m"))
    if not monthly.empty:
        by_dept = (
            monthly.assign(department=monthly["department"].fillna("Unassigned"))
            .groupby(["month", "department"])["final_hours"]
            .sum()
            .reset_index()
        )
        payload["charts"]["monthly_hours"] = to_vega_spec(
            alt.Chart(by_dept)
            .mark_bar()
            .encode(
                x=alt.X("month:O", title="Month"),
                y=alt.Y("final_hours:Q", title="Hours", stack=True),
                color=alt.Color("department:N", title="Department"),
                tooltip=["month", "department", alt.Tooltip("final_hours:Q", format=",.1f")],
            )
        )
        cost = monthly.groupby("month")["vessel_cost_total"].sum().reset_index()
        payload["charts"]["monthly_vessel_cost"] = to_vega_spec(
            alt.Chart(cost)
            .mark_line(point=True)
            .encode(
                x=alt.X("month:O", title="Month"),
                y=alt.Y("vessel_cost_total:Q", title="Vessel cost", axis=alt.Axis(format="$~s")),
                tooltip=["month", alt.Tooltip("vessel_cost_total:Q", format="$,.0f")],
            )
        )
    return payload


def build_summary_export(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """JSON summary offered as a download: headline KPIs of every dashboard."""
    events: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    manifests: pd.DataFrame = ctx.get("filtered_manifests", pd.DataFrame())
    event_kpis = compute_event_kpis(events)
    filters = ctx.get("filters")
    return {
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "source": ctx.get("source"),
        "last_updated": ctx.get("last_updated"),
        "filters": asdict(filters) if isinstance(filters, DashboardFilters) else None,
        "record_counts": {
            "voyage_events": int(len(ctx.get("voyage_events", pd.DataFrame()))),
            "cost_allocation": int(len(ctx.get("cost_allocation", pd.DataFrame()))),
            "voyage_list": int(len(ctx.get("voyage_list", pd.DataFrame()))),
            "vessel_manifests": int(len(ctx.get("vessel_manifests", pd.DataFrame()))),
            "bulk_actions": int(len(ctx.get("bulk_actions", pd.DataFrame()))),
        },
        "voyage_event_kpis": event_kpis,
        "manifest_kpis": compute_manifest_kpis(manifests, event_kpis["cargo_ops_hours"]),
        "bulk_kpis": compute_bulk_kpis(ctx.get("filtered_bulk_actions", pd.DataFrame())),
        "voyage_kpis": compute_voyage_kpis(ctx.get("filtered_voyages", pd.DataFrame())),
        "departments": department_breakdown(events),
        "alerts": ctx.get("alerts", []) or [],
    }
