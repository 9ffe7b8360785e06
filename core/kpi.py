from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from core.filters import DashboardFilters
from core.metrics_overview import compute_event_kpis


GOOD = "good"
WARNING = "warning"
CRITICAL = "critical"
NEUTRAL = "neutral"

WARNING_RATIO = 0.8

# share of targeted metrics in "good" status -> overall label
OVERALL_LEVELS = [(0.8, "excellent"), (0.6, "good"), (0.4, "fair")]


def kpi_card(
    title: str,
    value: Any,
    unit: Optional[str] = None,
    trend: Optional[float] = None,
    is_positive: Optional[bool] = None,
    target: Optional[float] = None,
    help: Optional[str] = None,
    status: str = NEUTRAL,
) -> Dict[str, Any]:
    return {
        "title": title,
        "value": value,
        "unit": unit,
        "trend": trend,
        "is_positive": is_positive,
        "target": target,
        "help": help,
        "status": status,
    }


def status_for(value: Optional[float], target: Optional[float], higher_is_better: bool = True) -> str:
    """good when the target is met, warning within 80% of it, critical beyond that."""
    if value is None or target is None or pd.isna(value):
        return NEUTRAL
    if higher_is_better:
        if value >= target:
            return GOOD
        return WARNING if value >= target * WARNING_RATIO else CRITICAL
    if value <= target:
        return GOOD
    return WARNING if value * WARNING_RATIO <= target else CRITICAL


def overall_status(metrics: List[Dict[str, Any]]) -> str:
    rated = [m for m in metrics if m["status"] != NEUTRAL]
    if not rated:
        return "fair"
    share = sum(1 for m in rated if m["status"] == GOOD) / len(rated)
    for floor, label in OVERALL_LEVELS:
        if share >= floor:
            return label
    return "poor"


def compute_status(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    events: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    bulk: pd.DataFrame = ctx.get("filtered_bulk_actions", pd.DataFrame())
    voyages: pd.DataFrame = ctx.get("filtered_voyages", pd.DataFrame())
    th = filters.thresholds
    kpis = compute_event_kpis(events)

    utilization = kpis["vessel_utilization_rate"]
    npt = kpis["drilling_npt_pct"]
    waiting = kpis["waiting_pct"]
    metrics = [
        kpi_card(
            "Vessel Utilization",
            round(utilization, 1),
            unit="%",
            target=th.utilization_target,
            help="Productive hours / (offshore + onshore hours).",
            status=status_for(utilization, th.utilization_target) if kpis["total_offshore_hours"] or kpis["total_onshore_hours"] else NEUTRAL,
        ),
        kpi_card(
            "Drilling NPT",
            round(npt, 1),
            unit="%",
            target=th.drilling_npt_pct,
            help="Non-productive share of drilling department hours.",
            status=status_for(npt, th.drilling_npt_pct, higher_is_better=False) if kpis["drilling_hours"] else NEUTRAL,
        ),
        kpi_card(
            "Offshore Waiting",
            round(waiting, 1),
            unit="%",
            target=th.waiting_pct,
            help="Waiting on installation as a share of offshore hours.",
            status=status_for(waiting, th.waiting_pct, higher_is_better=False) if kpis["total_offshore_hours"] else NEUTRAL,
        ),
        kpi_card(
            "Bulk Volume",
            round(float(bulk["volume_bbls"].sum()), 1) if not bulk.empty else 0.0,
            unit="bbls",
        ),
        kpi_card("Voyages", int(len(voyages))),
    ]
    return {
        "filters": asdict(filters),
        "overall_status": overall_status(metrics),
        "metrics": metrics,
        "alerts": ctx.get("alerts", []) or [],
        "data_status": {"source": ctx.get("source"), "last_updated": ctx.get("last_updated")},
    }
