from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.filters import DashboardFilters, filter_impact, paginate


TABLE_COLUMNS = [
    "start_date", "vessel_name", "action", "bulk_type", "fluid_category", "fluid_specific_type",
    "standardized_origin", "standardized_destination", "volume_bbls", "port_type", "is_return",
]


def summarize_routes(df: pd.DataFrame, volume_col: str = "volume_bbls") -> List[Dict[str, Any]]:
    """Group transfers by "origin → destination"; sorted by volume descending."""
    if df.empty:
        return []
    routed = df.dropna(subset=["standardized_origin", "standardized_destination"]).copy()
    if routed.empty:
        return []
    routed["route"] = routed["standardized_origin"].astype(str) + " → " + routed["standardized_destination"].astype(str)
    routed["type_label"] = routed["fluid_specific_type"].fillna(routed["bulk_type"]).fillna("Unknown").astype(str)
    grouped = (
        routed.groupby("route")
        .agg(count=("route", "size"), volume=(volume_col, "sum"), types=("type_label", "unique"))
        .reset_index()
        .sort_values(["volume", "route"], ascending=[False, True])
    )
    grouped["types"] = grouped["types"].map(lambda arr: sorted(str(x) for x in arr))
    return grouped.to_dict(orient="records")


def compute_bulk_kpis(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return {
            "total_transfers": 0,
            "total_volume_bbls": 0.0,
            "shorebase_to_rig": 0,
            "rig_to_shorebase": 0,
            "drilling_fluid_volume": 0.0,
            "drilling_fluid_count": 0,
            "completion_fluid_volume": 0.0,
            "completion_fluid_count": 0,
            "volume_by_type": {},
            "transfers_by_vessel": {},
            "avg_transfer_size": 0.0,
        }

    volume = df["volume_bbls"].astype(float)
    is_base = df["port_type"] == "base"
    has_destination = df["standardized_destination"].notna()
    drilling = df["is_drilling_fluid"].astype(bool)
    completion = df["is_completion_fluid"].astype(bool)
    total_volume = float(volume.sum())

    return {
        "total_transfers": int(len(df)),
        "total_volume_bbls": total_volume,
        "shorebase_to_rig": int((is_base & has_destination).sum()),
        "rig_to_shorebase": int(((df["port_type"] == "rig") | df["is_return"].astype(bool)).sum()),
        "drilling_fluid_volume": float(volume[drilling].sum()),
        "drilling_fluid_count": int(drilling.sum()),
        "completion_fluid_volume": float(volume[completion].sum()),
        "completion_fluid_count": int(completion.sum()),
        "volume_by_type": {str(k): float(v) for k, v in df.groupby("bulk_type")["volume_bbls"].sum().items()},
        "transfers_by_vessel": {str(k): int(v) for k, v in df.groupby("vessel_name").size().items()},
        "avg_transfer_size": total_volume / len(df),
    }


def compute_bulk_actions(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_bulk_actions", pd.DataFrame()).copy()
    total_rows = int(len(ctx.get("bulk_actions", pd.DataFrame())))

    kpis = compute_bulk_kpis(df)
    routes = summarize_routes(df)
    top_vessels: List[Dict[str, Any]] = []
    fluid_types: List[Dict[str, Any]] = []
    charts: Dict[str, Any] = {}
    table_df = pd.DataFrame(columns=TABLE_COLUMNS)

    if not df.empty:
        top_vessels = (
            df.groupby("vessel_name")
            .agg(transfers=("vessel_name", "size"), volume_bbls=("volume_bbls", "sum"))
            .reset_index()
            .sort_values("volume_bbls", ascending=False)
            .head(filters.top_n)
            .to_dict(orient="records")
        )
        by_type = (
            df.assign(fluid_type=df["fluid_specific_type"].fillna(df["bulk_type"]).fillna("Unknown"))
            .groupby(["fluid_category", "fluid_type"])
            .agg(transfers=("fluid_type", "size"), volume_bbls=("volume_bbls", "sum"))
            .reset_index()
            .sort_values("volume_bbls", ascending=False)
        )
        fluid_types = by_type.head(filters.top_n).to_dict(orient="records")

        type_chart = (
            alt.Chart(by_type.head(filters.top_n))
            .mark_bar()
            .encode(
                x=alt.X("volume_bbls:Q", title="Volume (bbls)", axis=alt.Axis(format="~s")),
                y=alt.Y("fluid_type:N", sort="-x", title="Fluid"),
                color=alt.Color("fluid_category:N", title="Category"),
                tooltip=["fluid_type", "fluid_category", "transfers", alt.Tooltip("volume_bbls:Q", format=",.0f")],
            )
        )
        charts["volume_by_type"] = to_vega_spec(type_chart)

        monthly = df.dropna(subset=["month_year"]).groupby("month_year")["volume_bbls"].sum().reset_index()
        if not monthly.empty:
            trend_chart = (
                alt.Chart(monthly)
                .mark_line(point=True)
                .encode(
                    x=alt.X("month_year:O", title="Month"),
                    y=alt.Y("volume_bbls:Q", title="Volume (bbls)", axis=alt.Axis(format="~s")),
                    tooltip=["month_year", alt.Tooltip("volume_bbls:Q", format=",.0f")],
                )
            )
            charts["monthly_volume"] = to_vega_spec(trend_chart)

        table_df = df.sort_values("start_date", ascending=False)[TABLE_COLUMNS]

    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "routes": routes[: filters.top_n],
        "top_vessels": top_vessels,
        "fluid_types": fluid_types,
        "charts": charts,
        "table": paginate(table_df, filters.page, filters.page_size),
        "filter_impact": {"filtered": int(len(df)), "total": total_rows, "percent": filter_impact(len(df), total_rows)},
    }
