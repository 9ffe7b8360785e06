from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.classification import PRODUCTION_FLUID_TYPES, normalize_location
from core.filters import DashboardFilters
from core.metrics_bulk import summarize_routes


def production_fluids(df: pd.DataFrame) -> pd.DataFrame:
    """Transfers of production chemicals only; drilling and completion fluids are excluded."""
    if df.empty:
        return df
    keep = ~(df["is_drilling_fluid"].astype(bool) | df["is_completion_fluid"].astype(bool))
    text = (
        df["fluid_specific_type"].fillna("").astype(str)
        + " | " + df["bulk_description"].fillna("").astype(str)
        + " | " + df["bulk_type"].fillna("").astype(str)
    ).str.lower()
    matches_type = pd.Series(False, index=df.index)
    for fluid in PRODUCTION_FLUID_TYPES:
        matches_type |= text.str.contains(fluid.lower(), regex=False)
    return df[keep & matches_type]


def filter_by_location(df: pd.DataFrame, location: str | None) -> pd.DataFrame:
    if df.empty or not location:
        return df
    target = normalize_location(location)
    dest = df["standardized_destination"].map(normalize_location)
    origin = df["standardized_origin"].map(normalize_location)
    return df[(dest == target) | (origin == target)]


def compute_production_bulk(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df = production_fluids(ctx.get("filtered_bulk_actions", pd.DataFrame()).copy())
    df = filter_by_location(df, filters.location)

    metrics: Dict[str, Any] = {
        "total_volume_gals": 0.0,
        "transfers": int(len(df)),
        "by_type": {},
        "by_location": {},
        "load_operations": 0,
        "discharge_operations": 0,
        "returns": 0,
        "avg_volume_per_transfer": 0.0,
    }
    charts: Dict[str, Any] = {}
    top_routes = []

    if not df.empty:
        df["type_label"] = df["fluid_specific_type"].fillna(df["bulk_type"]).fillna("Other Production Fluid")
        df["location_label"] = df["standardized_destination"].fillna(df["standardized_origin"]).fillna("Unknown")
        action = df["action"].fillna("").astype(str).str.lower()
        total = float(df["volume_gals"].sum())
        by_type = df.groupby("type_label")["volume_gals"].sum().sort_values(ascending=False)
        by_location = df.groupby("location_label")["volume_gals"].sum().sort_values(ascending=False)
        metrics.update(
            {
                "total_volume_gals": total,
                "by_type": {str(k): float(v) for k, v in by_type.items()},
                "by_location": {str(k): float(v) for k, v in by_location.items()},
                "load_operations": int(action.str.contains("load", regex=False).sum()),
                "discharge_operations": int(action.str.contains("discharge", regex=False).sum()),
                "returns": int(df["is_return"].astype(bool).sum()),
                "avg_volume_per_transfer": total / len(df),
            }
        )
        top_routes = summarize_routes(df, volume_col="volume_gals")[:5]

        type_df = by_type.reset_index().rename(columns={"type_label": "fluid_type"})
        charts["volume_by_type"] = to_vega_spec(
            alt.Chart(type_df)
            .mark_bar()
            .encode(
                x=alt.X("volume_gals:Q", title="Volume (gal)", axis=alt.Axis(format="~s")),
                y=alt.Y("fluid_type:N", sort="-x", title="Chemical"),
                tooltip=["fluid_type", alt.Tooltip("volume_gals:Q", format=",.0f")],
            )
        )

    return {"filters": asdict(filters), "metrics": metrics, "top_routes": top_routes, "charts": charts}
