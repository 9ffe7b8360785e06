from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.filters import DashboardFilters, paginate


ROUTE_COMPLEXITY_BUCKETS = [
    ("Simple Routes (≤2 stops)", lambda s: s <= 2),
    ("Medium Routes (3 stops)", lambda s: s == 3),
    ("Complex Routes (≥4 stops)", lambda s: s >= 4),
]

DURATION_BUCKETS = [
    ("< 24 hours", lambda h: h < 24),
    ("24-48 hours", lambda h: (h >= 24) & (h < 48)),
    ("48-72 hours", lambda h: (h >= 48) & (h < 72)),
    ("> 72 hours", lambda h: h >= 72),
]

TABLE_COLUMNS = [
    "standardized_voyage_id", "vessel", "voyage_date", "voyage_purpose", "locations",
    "stop_count", "duration_hours", "route_type",
]


def _pct(part: float, whole: float) -> float:
    return float(part) / float(whole) * 100 if whole else 0.0


def compute_voyage_kpis(voyages: pd.DataFrame) -> Dict[str, Any]:
    total = int(len(voyages))
    if not total:
        return {
            "total_voyages": 0,
            "avg_voyage_duration": 0.0,
            "drilling_voyage_percentage": 0.0,
            "mixed_voyage_efficiency": 0.0,
            "avg_stops_per_voyage": 0.0,
            "multi_stop_percentage": 0.0,
            "route_efficiency_score": 0.0,
            "active_vessels": 0,
            "voyages_per_vessel": 0.0,
            "route_concentration": 0.0,
            "purpose_distribution": {},
        }

    duration = voyages["duration_hours"].fillna(0).astype(float)
    stops = voyages["stop_count"].fillna(0).astype(int)
    avg_duration = float(duration.sum()) / total
    avg_stops = float(stops.sum()) / total
    purposes = voyages["voyage_purpose"].fillna("Other").value_counts()
    active_vessels = int(voyages["vessel"].nunique())

    origin = voyages["origin_port"].fillna("").astype(str)
    fourchon = (origin == "Fourchon") | voyages["locations"].fillna("").astype(str).str.lower().str.contains("fourchon", regex=False)

    return {
        "total_voyages": total,
        "avg_voyage_duration": avg_duration,
        "drilling_voyage_percentage": _pct(purposes.get("Drilling", 0), total),
        "mixed_voyage_efficiency": _pct(purposes.get("Mixed", 0), total),
        "avg_stops_per_voyage": avg_stops,
        "multi_stop_percentage": _pct((stops > 2).sum(), total),
        "route_efficiency_score": avg_stops / (avg_duration / 24) if avg_duration > 0 else 0.0,
        "active_vessels": active_vessels,
        "voyages_per_vessel": total / active_vessels if active_vessels else 0.0,
        "route_concentration": _pct(fourchon.sum(), total),
        "purpose_distribution": {str(k): int(v) for k, v in purposes.items()},
    }


def popular_destinations(voyages: pd.DataFrame, limit: int = 5) -> List[Dict[str, Any]]:
    total = len(voyages)
    if not total:
        return []
    counts = voyages["main_destination"].fillna("Unknown").value_counts()
    # ties broken by name
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))[:limit]
    return [
        {"destination": str(dest), "count": int(cnt), "percentage": _pct(cnt, total)}
        for dest, cnt in ranked
    ]


def bucket_counts(values: pd.Series, buckets) -> List[Dict[str, Any]]:
    return [{"name": name, "value": int(rule(values).sum())} for name, rule in buckets]


def compute_voyage_analytics(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    voyages: pd.DataFrame = ctx.get("filtered_voyages", pd.DataFrame()).copy()
    kpis = compute_voyage_kpis(voyages)
    total = kpis["total_voyages"]

    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "kpis": kpis,
        "popular_destinations": popular_destinations(voyages),
        "route_complexity": [],
        "duration_distribution": [],
        "purpose_distribution": [
            {"name": k, "value": v, "percentage": _pct(v, total)} for k, v in kpis["purpose_distribution"].items()
        ],
        "vessel_ranking": [],
        "charts": {},
        "table": paginate(pd.DataFrame(columns=TABLE_COLUMNS), 1, filters.page_size),
    }
    if voyages.empty:
        return payload

    stops = voyages["stop_count"].fillna(0).astype(int)
    duration = voyages["duration_hours"].fillna(0).astype(float)
    payload["route_complexity"] = bucket_counts(stops, ROUTE_COMPLEXITY_BUCKETS)
    payload["duration_distribution"] = bucket_counts(duration, DURATION_BUCKETS)

    ranking = (
        voyages.assign(duration_hours=duration)
        .groupby("vessel")
        .agg(voyages=("vessel", "size"), avg_duration_hours=("duration_hours", "mean"), avg_stops=("stop_count", "mean"))
        .reset_index()
        .sort_values(["voyages", "vessel"], ascending=[False, True])
        .head(filters.top_n)
    )
    payload["vessel_ranking"] = ranking.to_dict(orient="records")

    purpose_df = pd.DataFrame(payload["purpose_distribution"])
    payload["charts"]["purpose_distribution"] = to_vega_spec(
        alt.Chart(purpose_df)
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("name:N", title="Purpose"),
            tooltip=["name", "value", alt.Tooltip("percentage:Q", format=".1f")],
        )
    )
    duration_df = pd.DataFrame(payload["duration_distribution"])
    payload["charts"]["duration_distribution"] = to_vega_spec(
        alt.Chart(duration_df)
        .mark_bar()
        .encode(
            x=alt.X("name:N", sort=None, title="Duration"),
            y=alt.Y("value:Q", title="Voyages"),
            tooltip=["name", "value"],
        )
    )

    table_df = voyages.sort_values("voyage_date", ascending=False)[TABLE_COLUMNS]
    payload["table"] = paginate(table_df, filters.page, filters.page_size)
    return payload
