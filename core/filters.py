from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd


ALL = "all"
ALL_MONTHS = "All Months"
ALL_PURPOSES = "All Purposes"
ALL_LOCATIONS = "All Locations"
_NO_FILTER = {"", ALL, ALL_MONTHS.lower(), ALL_PURPOSES.lower(), ALL_LOCATIONS.lower(), "none"}

DEFAULT_PAGE_SIZE = 20
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


@dataclass(frozen=True)
class Thresholds:
    drilling_npt_pct: float = 15.0
    waiting_pct: float = 20.0
    utilization_target: float = 75.0


@dataclass(frozen=True)
class DashboardFilters:
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    vessel: Optional[str] = None
    bulk_type: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    action: Optional[str] = None
    selected_month: Optional[str] = None
    voyage_purpose: Optional[str] = None
    location: Optional[str] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    top_n: int = 10
    thresholds: Thresholds = field(default_factory=Thresholds)


def _choice(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    if s.lower() in _NO_FILTER:
        return None
    return s


def _date_str(value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date().isoformat()


def _as_int(value: object, default: int, lo: int, hi: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except Exception:
        out = default
    return max(lo, min(hi, out))


def normalize_filters(raw: dict) -> DashboardFilters:
    raw = raw or {}
    t = raw.get("thresholds") or {}
    thresholds = Thresholds(
        drilling_npt_pct=float(t.get("drilling_npt_pct", 15.0)),
        waiting_pct=float(t.get("waiting_pct", 20.0)),
        utilization_target=float(t.get("utilization_target", 75.0)),
    )
    date_from = _date_str(raw.get("date_from"))
    date_to = _date_str(raw.get("date_to"))
    if date_from and date_to and date_from > date_to:
        date_from, date_to = date_to, date_from

    return DashboardFilters(
        date_from=date_from,
        date_to=date_to,
        vessel=_choice(raw.get("vessel")),
        bulk_type=_choice(raw.get("bulk_type")),
        origin=_choice(raw.get("origin")),
        destination=_choice(raw.get("destination")),
        action=_choice(raw.get("action")),
        selected_month=_choice(raw.get("selected_month")),
        voyage_purpose=_choice(raw.get("voyage_purpose")),
        location=_choice(raw.get("location")),
        page=_as_int(raw.get("page", 1), 1, 1, 1_000_000),
        page_size=_as_int(raw.get("page_size", DEFAULT_PAGE_SIZE), DEFAULT_PAGE_SIZE, 1, 500),
        top_n=_as_int(raw.get("top_n", 10), 10, 1, 200),
        thresholds=thresholds,
    )


def paginate(rows: Sequence[Any] | pd.DataFrame, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
    """Slice rows for one table page; the page is clamped into the valid range."""
    total = int(len(rows))
    page_size = max(1, int(page_size))
    total_pages = max(1, math.ceil(total / page_size))
    page = max(1, min(int(page), total_pages))
    start = (page - 1) * page_size
    end = min(start + page_size, total)
    if isinstance(rows, pd.DataFrame):
        sliced = rows.iloc[start:end].to_dict(orient="records")
    else:
        sliced = list(rows[start:end])
    return {
        "rows": sliced,
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
        "start": start + 1 if total else 0,
        "end": end,
    }


def month_label(value: object) -> Optional[str]:
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return None
    return f"{MONTH_NAMES[ts.month - 1]} {ts.year}"


def parse_month_label(label: str) -> Optional[pd.Timestamp]:
    ts = pd.to_datetime(f"1 {label}", format="%d %B %Y", errors="coerce")
    return None if pd.isna(ts) else ts


def _sorted_months(labels: Iterable[str]) -> List[str]:
    parsed = [(parse_month_label(lbl), lbl) for lbl in labels if lbl]
    return [lbl for ts, lbl in sorted((p for p in parsed if p[0] is not None), key=lambda p: p[0])]


def available_months(frames: Iterable[pd.DataFrame], column: str = "month_label") -> List[str]:
    labels = set()
    for df in frames:
        if df is not None and not df.empty and column in df.columns:
            labels.update(str(x) for x in df[column].dropna().unique())
    return _sorted_months(labels)


def _unique(df: pd.DataFrame, col: str) -> List[str]:
    if df is None or df.empty or col not in df.columns:
        return []
    return sorted({str(x).strip() for x in df[col].dropna().tolist() if str(x).strip()})


def filter_options(data_ctx: Dict[str, Any]) -> Dict[str, List[str]]:
    bulk: pd.DataFrame = data_ctx.get("bulk_actions", pd.DataFrame())
    voyages: pd.DataFrame = data_ctx.get("voyage_list", pd.DataFrame())
    events: pd.DataFrame = data_ctx.get("voyage_events", pd.DataFrame())
    locations = set(_unique(bulk, "standardized_destination")) | set(_unique(events, "location"))
    return {
        "vessels": sorted(set(_unique(bulk, "vessel_name")) | set(_unique(voyages, "vessel"))),
        "bulk_types": _unique(bulk, "bulk_type"),
        "origins": _unique(bulk, "standardized_origin"),
        "destinations": _unique(bulk, "standardized_destination"),
        "actions": _unique(bulk, "action"),
        "months": [ALL_MONTHS] + available_months([bulk, voyages, events]),
        "purposes": [ALL_PURPOSES] + _unique(voyages, "voyage_purpose"),
        "locations": [ALL_LOCATIONS] + sorted(locations),
    }


def apply_preset(preset: str, months: List[str], today: Optional[date] = None) -> Dict[str, str]:
    """Quick filter presets: current-month (one-month reporting lag), ytd, reset."""
    today = today or date.today()
    if preset == "current-month":
        year, month = (today.year, today.month - 1) if today.month > 1 else (today.year - 1, 12)
        target = f"{MONTH_NAMES[month - 1]} {year}"
        if target in months:
            return {"selected_month": target}
        real = [m for m in months if m != ALL_MONTHS]
        return {"selected_month": real[-1] if real else ALL_MONTHS}
    if preset == "ytd":
        return {"selected_month": ALL_MONTHS}
    if preset == "reset":
        return {"selected_month": ALL_MONTHS, "location": ALL_LOCATIONS}
    raise ValueError(f"Unknown preset: {preset}")


def filter_impact(filtered: int, total: int) -> int:
    if not total:
        return 100
    return int(math.floor(filtered / total * 100 + 0.5))
