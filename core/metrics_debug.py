from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.classification import NEEDS_REVIEW, OTHER, UNCATEGORIZED
from core.filters import DashboardFilters


DATE_COLUMNS = {
    "voyage_events": "event_date",
    "voyage_list": "voyage_date",
    "vessel_manifests": "manifest_date",
    "bulk_actions": "start_date",
}


def compute_debug(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    events: pd.DataFrame = ctx.get("voyage_events", pd.DataFrame()).copy()
    bulk: pd.DataFrame = ctx.get("bulk_actions", pd.DataFrame()).copy()

    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "row_counts": {
            kind: int(len(ctx.get(kind, pd.DataFrame())))
            for kind in ("voyage_events", "cost_allocation", "voyage_list", "vessel_manifests", "bulk_actions")
        },
        "filtered_counts": {
            "voyage_events": int(len(ctx.get("filtered_events", pd.DataFrame()))),
            "voyage_list": int(len(ctx.get("filtered_voyages", pd.DataFrame()))),
            "vessel_manifests": int(len(ctx.get("filtered_manifests", pd.DataFrame()))),
            "bulk_actions": int(len(ctx.get("filtered_bulk_actions", pd.DataFrame()))),
        },
        "date_coverage": [],
        "unclassified_fluids": [],
        "needs_review_events": [],
        "activity_checks": {"needs_review": 0, "uncategorized": 0, "missing_department": 0},
    }

    for kind, col in DATE_COLUMNS.items():
        df: pd.DataFrame = ctx.get(kind, pd.DataFrame())
        if df.empty or col not in df.columns:
            continue
        dates = pd.to_datetime(df[col], errors="coerce")
        payload["date_coverage"].append(
            {
                "table": kind,
                "min_date": dates.min() if dates.notna().any() else None,
                "max_date": dates.max() if dates.notna().any() else None,
                "missing_dates": int(dates.isna().sum()),
            }
        )

    if not bulk.empty:
        other = bulk[bulk["fluid_category"] == OTHER]
        if not other.empty:
            payload["unclassified_fluids"] = (
                other.assign(bulk_type=other["bulk_type"].fillna("(blank)"))
                .groupby(["bulk_type"])
                .agg(rows=("bulk_type", "size"), volume_bbls=("volume_bbls", "sum"))
                .reset_index()
                .sort_values("rows", ascending=False)
                .head(20)
                .to_dict(orient="records")
            )

    if not events.empty:
        category = events["activity_category"]
        payload["activity_checks"] = {
            "needs_review": int((category == NEEDS_REVIEW).sum()),
            "uncategorized": int((category == UNCATEGORIZED).sum()),
            "missing_department": int(events["department"].isna().sum()),
        }
        review = events[category == NEEDS_REVIEW]
        if not review.empty:
            payload["needs_review_events"] = (
                review.groupby("parent_event")
                .agg(rows=("parent_event", "size"), hours=("final_hours", "sum"))
                .reset_index()
                .sort_values("rows", ascending=False)
                .head(20)
                .to_dict(orient="records")
            )
    return payload
