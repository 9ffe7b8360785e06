from __future__ import annotations

import logging
import os
import threading
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from core.classification import (
    classify_activity,
    classify_bulk_fluid,
    determine_voyage_purpose,
    infer_department_from_description,
    normalize_location,
    parse_lc_allocations,
    resolve_department,
    vessel_daily_rate,
)
from core.filters import DashboardFilters, MONTH_NAMES, month_label, normalize_filters
from core.validation import UploadValidationError, read_table


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("LOGISTICS_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
SOURCE_EXTENSIONS = (".xlsx", ".xls", ".csv")

TABLE_KINDS = ("voyage_events", "cost_allocation", "voyage_list", "vessel_manifests", "bulk_actions")
REQUIRED_KINDS = ("voyage_events", "cost_allocation")

# Filename fragments used to recognise spreadsheets dropped into DATA_DIR.
KIND_FILENAME_HINTS = {
    "voyage_events": ("voyage event",),
    "cost_allocation": ("cost allocation",),
    "voyage_list": ("voyage list",),
    "vessel_manifests": ("manifest",),
    "bulk_actions": ("bulk action",),
}

GALLONS_PER_BARREL = 42.0
EXCEL_EPOCH = pd.Timestamp("1899-12-30")

BULK_ACTION_COLUMNS = {
    "port type": "port_type",
    "vessel name": "vessel_name",
    "vessel": "vessel_name",
    "start date": "start_date",
    "action": "action",
    "qty": "qty",
    "quantity": "qty",
    "unit": "unit",
    "ppg": "ppg",
    "bulk type": "bulk_type",
    "bulk description": "bulk_description",
    "at port": "at_port",
    "destination port": "destination_port",
    "remarks": "remarks",
    "tank": "tank",
}

VOYAGE_LIST_COLUMNS = {
    "edit": "edit",
    "vessel": "vessel",
    "voyage number": "voyage_number",
    "year": "year",
    "month": "month",
    "start date": "start_date",
    "end date": "end_date",
    "type": "type",
    "mission": "mission",
    "route type": "route_type",
    "locations": "locations",
}

VOYAGE_EVENT_COLUMNS = {
    "mission": "mission",
    "event": "event",
    "parent event": "parent_event",
    "location": "location",
    "quay": "quay",
    "remarks": "remarks",
    "from": "from",
    "to": "to",
    "hours": "hours",
    "port type": "port_type",
    "event category": "event_category",
    "year": "year",
    "ins. 500m": "ins_500m",
    "cost dedicated to": "cost_dedicated_to",
    "vessel": "vessel",
    "voyage #": "voyage_number",
}

COST_ALLOCATION_COLUMNS = {
    "lc number": "lc_number",
    "location reference": "location_reference",
    "description": "description",
    "cost element": "cost_element",
    "month-year": "month_year",
    "mission": "mission",
    "project type": "project_type",
}

MANIFEST_COLUMNS = {
    "voyage id": "voyage_id",
    "manifest number": "manifest_number",
    "transporter": "transporter",
    "manifest date": "manifest_date",
    "cost code": "cost_code",
    "from": "from_location",
    "offshore location": "offshore_location",
    "deck lbs": "deck_lbs",
    "deck tons": "deck_tons",
    "rt tons": "rt_tons",
    "lifts": "lifts",
    "wet bulk (bbls)": "wet_bulk_bbls",
    "wet bulk (gals)": "wet_bulk_gals",
    "deck sqft": "deck_sqft",
    "remarks": "remarks",
    "year": "year",
}


# ---------------- Cleaning helpers ----------------
def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def normalize_columns(df: pd.DataFrame, mapping: Mapping[str, str]) -> pd.DataFrame:
    """Rename spreadsheet headers (case/whitespace tolerant) and add any missing target columns."""
    renames = {}
    for col in df.columns:
        key = " ".join(str(col).strip().lower().split())
        if key in mapping:
            renames[col] = mapping[key]
    out = drop_duplicate_columns(df.rename(columns=renames))
    for target in dict.fromkeys(mapping.values()):
        if target not in out.columns:
            out[target] = pd.NA
    return out


def numericize(df: pd.DataFrame, cols: Iterable[str], fill: Optional[float] = None) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
            if fill is not None:
                df[col] = df[col].fillna(fill)
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def parse_date(value: object) -> pd.Timestamp:
    """Parse Excel serial numbers (1899-12-30 epoch), ISO and US m/d/Y strings; NaT otherwise."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return pd.NaT
    if isinstance(value, (pd.Timestamp, datetime)):
        return pd.Timestamp(value)
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        if 0 < float(value) < 200000:
            return EXCEL_EPOCH + pd.to_timedelta(float(value), unit="D")
        return pd.NaT
    s = str(value).strip()
    if not s:
        return pd.NaT
    try:
        return pd.Timestamp(pd.to_datetime(s, errors="coerce"))
    except (ValueError, OverflowError):
        return pd.NaT


def parse_dates(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series.map(parse_date), errors="coerce")


def month_number(value: object) -> Optional[int]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value).strip()
    if s.replace(".0", "").isdigit():
        n = int(float(s))
        return n if 1 <= n <= 12 else None
    low = s[:3].lower()
    for idx, name in enumerate(MONTH_NAMES, start=1):
        if name[:3].lower() == low:
            return idx
    return None


def lc_str(value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


def _add_calendar_columns(df: pd.DataFrame, date_col: str) -> pd.DataFrame:
    dates = df[date_col]
    df["month_number"] = dates.dt.month.astype("Int64")
    df["year"] = dates.dt.year.astype("Int64")
    df["month_name"] = dates.dt.month.map(lambda m: MONTH_NAMES[int(m) - 1] if pd.notna(m) else None)
    df["month_label"] = dates.map(month_label)
    return df


def _warn_bad_dates(df: pd.DataFrame, col: str, table: str) -> None:
    bad = int(df[col].isna().sum())
    if bad:
        logger.warning("%s: %d rows with missing or unparseable %s", table, bad, col)


# ---------------- Table processors ----------------
def process_bulk_actions(raw: pd.DataFrame) -> pd.DataFrame:
    df = normalize_columns(raw, BULK_ACTION_COLUMNS)
    df = coerce_str_safe(
        df,
        ["port_type", "vessel_name", "action", "unit", "bulk_type", "bulk_description", "at_port", "destination_port", "remarks", "tank"],
    )
    df = numericize(df, ["qty"], fill=0.0)
    df = numericize(df, ["ppg"])
    df = df[df["vessel_name"].notna() | df["bulk_type"].notna()].copy()

    df["port_type"] = df["port_type"].fillna("base").str.lower()
    df["unit"] = df["unit"].fillna("bbl")
    is_gal = df["unit"].str.lower().str.startswith("gal")
    df["volume_bbls"] = np.where(is_gal, df["qty"] / GALLONS_PER_BARREL, df["qty"]).astype(float)
    df["volume_gals"] = df["volume_bbls"] * GALLONS_PER_BARREL
    df["is_return"] = df["remarks"].fillna("").str.lower().str.contains("return", regex=False).astype(bool)

    df["start_date"] = parse_dates(df["start_date"])
    _warn_bad_dates(df, "start_date", "bulk_actions")
    df = _add_calendar_columns(df, "start_date")
    df["month_year"] = df["start_date"].dt.strftime("%Y-%m")

    df["standardized_origin"] = df["at_port"].str.strip()
    df["standardized_destination"] = df["destination_port"].str.strip()

    fluids = [classify_bulk_fluid(t, d) for t, d in zip(df["bulk_type"], df["bulk_description"])]
    df["fluid_category"] = [f.category for f in fluids]
    df["fluid_specific_type"] = [f.specific_type for f in fluids]
    df["is_drilling_fluid"] = [f.is_drilling_fluid for f in fluids]
    df["is_completion_fluid"] = [f.is_completion_fluid for f in fluids]
    return df.reset_index(drop=True)


def process_voyage_list(raw: pd.DataFrame) -> pd.DataFrame:
    df = normalize_columns(raw, VOYAGE_LIST_COLUMNS)
    df = coerce_str_safe(df, ["vessel", "month", "type", "mission", "route_type", "locations"])
    df = numericize(df, ["voyage_number", "year"])
    df = df[df["vessel"].notna()].copy()

    df["start_date"] = parse_dates(df["start_date"])
    df["end_date"] = parse_dates(df["end_date"])
    _warn_bad_dates(df, "start_date", "voyage_list")
    df["voyage_date"] = df["start_date"]
    df["duration_hours"] = (df["end_date"] - df["start_date"]).dt.total_seconds() / 3600.0

    location_lists = [
        [p.strip() for p in str(v).split("->") if p.strip()] if pd.notna(v) else [] for v in df["locations"]
    ]
    df["stop_count"] = [len(locs) for locs in location_lists]
    df["origin_port"] = [locs[0] if locs else None for locs in location_lists]
    df["main_destination"] = [locs[1] if len(locs) > 1 else None for locs in location_lists]
    df["voyage_purpose"] = [determine_voyage_purpose(locs) for locs in location_lists]

    df["month_number"] = df["month"].map(month_number).astype("Int64")
    df["month_label"] = df["voyage_date"].map(month_label)

    def _ids(row: pd.Series) -> Tuple[str, str]:
        vessel_key = "".join(str(row["vessel"]).split())
        year = int(row["year"]) if pd.notna(row["year"]) else ""
        voyage_no = int(row["voyage_number"]) if pd.notna(row["voyage_number"]) else 0
        month_no = int(row["month_number"]) if pd.notna(row["month_number"]) else 1
        standardized = f"{year}-{month_no:02d}-{vessel_key}-{voyage_no:03d}"
        unique = f"{year}_{row['month'] if pd.notna(row['month']) else ''}_{vessel_key}_{voyage_no}"
        return standardized, unique

    ids = [_ids(row) for _, row in df.iterrows()]
    df["standardized_voyage_id"] = [i[0] for i in ids]
    df["unique_voyage_id"] = [i[1] for i in ids]
    return df.reset_index(drop=True)


def process_cost_allocation(raw: pd.DataFrame) -> pd.DataFrame:
    df = normalize_columns(raw, COST_ALLOCATION_COLUMNS)
    df["lc_number"] = df["lc_number"].map(lc_str)
    df = coerce_str_safe(df, ["location_reference", "description", "cost_element", "mission", "project_type"])
    df = df[df["lc_number"] != ""].copy()
    df["department"] = [
        infer_department_from_description(desc) or infer_department_from_description(loc)
        for desc, loc in zip(df["description"], df["location_reference"])
    ]
    return df.reset_index(drop=True)


def lc_department_map(cost_allocation: Optional[pd.DataFrame]) -> Dict[str, str]:
    if cost_allocation is None or cost_allocation.empty or "department" not in cost_allocation.columns:
        return {}
    rows = cost_allocation.dropna(subset=["department"]).drop_duplicates(subset=["lc_number"], keep="last")
    return dict(zip(rows["lc_number"], rows["department"]))


def process_voyage_events(raw: pd.DataFrame, cost_allocation: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """One output row per (event, LC allocation); hours are split by allocation percentage."""
    df = normalize_columns(raw, VOYAGE_EVENT_COLUMNS)
    df = coerce_str_safe(
        df,
        ["mission", "event", "parent_event", "location", "quay", "remarks", "port_type", "event_category", "ins_500m", "vessel"],
    )
    df = numericize(df, ["hours"], fill=0.0)
    df = df[df["vessel"].notna() | df["parent_event"].notna()].copy()
    df["port_type"] = df["port_type"].str.lower()
    df["from"] = parse_dates(df["from"])
    df["to"] = parse_dates(df["to"]).fillna(df["from"])
    _warn_bad_dates(df, "from", "voyage_events")

    derived = (df["to"] - df["from"]).dt.total_seconds() / 3600.0
    df["hours"] = np.where(df["hours"] == 0, derived.fillna(0.0), df["hours"]).round(2)
    df["voyage_number"] = df["voyage_number"].map(lc_str)
    df["cost_dedicated_to"] = df["cost_dedicated_to"].map(lc_str)

    lc_departments = lc_department_map(cost_allocation)
    records: List[dict] = []
    for row in df.astype(object).where(df.notna(), None).to_dict(orient="records"):
        location = row.get("location")
        if location == "Fourchon" and row.get("port_type") == "base":
            allocations: List[Tuple[str, float, Optional[str]]] = [("FOURCHON_BASE", 100.0, "Logistics")]
        elif not row.get("cost_dedicated_to"):
            allocations = [("", 100.0, None)]
        else:
            allocations = [
                (
                    lc,
                    pct,
                    resolve_department(
                        lc,
                        location=location,
                        port_type=row.get("port_type"),
                        parent_event=row.get("parent_event"),
                        event=row.get("event"),
                        remarks=row.get("remarks"),
                        lc_departments=lc_departments,
                    ),
                )
                for lc, pct in parse_lc_allocations(row["cost_dedicated_to"])
            ]

        activity = classify_activity(row.get("parent_event"), row.get("event"))
        daily_rate, rate_desc = vessel_daily_rate(row.get("from"))
        for lc, pct, department in allocations:
            final_hours = round(float(row["hours"]) * pct / 100.0, 2)
            records.append(
                {
                    **row,
                    "lc_number": lc,
                    "lc_percentage": pct,
                    "final_hours": final_hours,
                    "department": department,
                    "activity_category": activity,
                    "vessel_daily_rate": daily_rate,
                    "vessel_hourly_rate": round(daily_rate / 24.0, 2),
                    "vessel_cost_total": round(daily_rate / 24.0 * final_hours, 2),
                    "vessel_cost_rate_description": rate_desc,
                }
            )

    out = pd.DataFrame.from_records(records, columns=list(df.columns) + [
        "lc_number", "lc_percentage", "final_hours", "department", "activity_category",
        "vessel_daily_rate", "vessel_hourly_rate", "vessel_cost_total", "vessel_cost_rate_description",
    ])
    out["from"] = pd.to_datetime(out["from"], errors="coerce")
    out["to"] = pd.to_datetime(out["to"], errors="coerce")
    out["event_date"] = out["from"]
    out = _add_calendar_columns(out, "event_date")
    out["location_type"] = out["port_type"].map({"rig": "Offshore", "base": "Onshore"}).fillna("Other")
    return out.reset_index(drop=True)


def process_vessel_manifests(raw: pd.DataFrame) -> pd.DataFrame:
    df = normalize_columns(raw, MANIFEST_COLUMNS)
    df = coerce_str_safe(df, ["manifest_number", "transporter", "cost_code", "from_location", "offshore_location", "remarks"])
    df = numericize(
        df,
        ["deck_lbs", "deck_tons", "rt_tons", "lifts", "wet_bulk_bbls", "wet_bulk_gals", "deck_sqft"],
        fill=0.0,
    )
    df["voyage_id"] = df["voyage_id"].map(lc_str)
    df = df[(df["voyage_id"] != "") | df["manifest_number"].notna()].copy()
    df["manifest_date"] = parse_dates(df["manifest_date"])
    _warn_bad_dates(df, "manifest_date", "vessel_manifests")
    df = _add_calendar_columns(df, "manifest_date")
    return df.reset_index(drop=True)


def empty_tables() -> Dict[str, pd.DataFrame]:
    return {kind: pd.DataFrame() for kind in TABLE_KINDS}


def process_excel_files(files: Mapping[str, Optional[pd.DataFrame]], *, require_core: bool = True) -> Dict[str, object]:
    """Turn raw frames keyed by file kind into processed tables plus row counts."""
    if require_core and any(files.get(kind) is None for kind in REQUIRED_KINDS):
        raise UploadValidationError("Voyage Events and Cost Allocation files are required")

    tables = empty_tables()
    if files.get("cost_allocation") is not None:
        tables["cost_allocation"] = process_cost_allocation(files["cost_allocation"])
    if files.get("voyage_events") is not None:
        tables["voyage_events"] = process_voyage_events(files["voyage_events"], tables["cost_allocation"])
    if files.get("voyage_list") is not None:
        tables["voyage_list"] = process_voyage_list(files["voyage_list"])
    if files.get("vessel_manifests") is not None:
        tables["vessel_manifests"] = process_vessel_manifests(files["vessel_manifests"])
    if files.get("bulk_actions") is not None:
        tables["bulk_actions"] = process_bulk_actions(files["bulk_actions"])

    counts = {kind: int(len(df)) for kind, df in tables.items()}
    logger.info("processed tables: %s", counts)
    return {**tables, "counts": counts}


# ---------------- Store ----------------
class DataStore:
    """Process-wide holder of the uploaded tables."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tables: Dict[str, pd.DataFrame] = empty_tables()
        self.last_updated: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return all(df.empty for df in self._tables.values())

    def replace(self, tables: Mapping[str, pd.DataFrame]) -> None:
        fresh = empty_tables()
        for kind in TABLE_KINDS:
            df = tables.get(kind)
            if isinstance(df, pd.DataFrame):
                fresh[kind] = df.copy()
        with self._lock:
            self._tables = fresh
            self.last_updated = datetime.now()

    def update(self, tables: Mapping[str, pd.DataFrame]) -> None:
        with self._lock:
            merged = dict(self._tables)
            for kind in TABLE_KINDS:
                df = tables.get(kind)
                if not isinstance(df, pd.DataFrame) or df.empty:
                    continue
                current = merged.get(kind, pd.DataFrame())
                combined = df.copy() if current.empty else pd.concat([current, df], ignore_index=True)
                merged[kind] = combined.drop_duplicates().reset_index(drop=True)
            self._tables = merged
            self.last_updated = datetime.now()

    def clear(self) -> None:
        with self._lock:
            self._tables = empty_tables()
            self.last_updated = None

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            tables = dict(self._tables)
            updated = self.last_updated
        return build_data_ctx(tables, files=[], source="upload", last_updated=updated)


STORE = DataStore()


def build_data_ctx(
    tables: Mapping[str, pd.DataFrame],
    *,
    files: List[str],
    source: str,
    last_updated: Optional[datetime] = None,
) -> Dict[str, object]:
    ctx: Dict[str, object] = {kind: tables.get(kind, pd.DataFrame()) for kind in TABLE_KINDS}
    ctx["files"] = files
    ctx["source"] = source
    ctx["last_updated"] = last_updated.isoformat() if last_updated else None
    ctx["counts"] = {kind: int(len(ctx[kind])) for kind in TABLE_KINDS}  # type: ignore[arg-type]
    return ctx


# ---------------- Disk loading ----------------
def detect_kind(filename: str) -> Optional[str]:
    low = filename.lower().replace("_", " ").replace("-", " ")
    for kind, hints in KIND_FILENAME_HINTS.items():
        if any(h in low for h in hints):
            return kind
    return None


def get_source_files() -> List[Path]:
    if not DATA_DIR.exists():
        return []
    return sorted(p for p in DATA_DIR.iterdir() if p.suffix.lower() in SOURCE_EXTENSIONS and detect_kind(p.name))


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    raw: Dict[str, pd.DataFrame] = {}
    for path_str, _ in files_sig:
        path = Path(path_str)
        kind = detect_kind(path.name)
        df = read_table(path.read_bytes(), path.name)
        raw[kind] = df if kind not in raw else pd.concat([raw[kind], df], ignore_index=True)  # type: ignore[index]
    result = process_excel_files(raw, require_core=False)
    tables = {kind: result[kind] for kind in TABLE_KINDS}
    return build_data_ctx(tables, files=[Path(p).name for p, _ in files_sig], source="disk")  # type: ignore[arg-type]


def load_dashboard_data() -> Dict[str, object]:
    if not STORE.is_empty:
        return STORE.snapshot()
    files = get_source_files()
    if not files:
        return build_data_ctx(empty_tables(), files=[], source="empty")
    return _load_dashboard_data_cached(file_signature(files))


# ---------------- Filtering ----------------
def _filter_dates(df: pd.DataFrame, col: str, filt: DashboardFilters) -> pd.DataFrame:
    if df.empty or col not in df.columns or not (filt.date_from or filt.date_to):
        return df
    dates = pd.to_datetime(df[col], errors="coerce")
    mask = dates.notna()
    if filt.date_from:
        mask &= dates >= pd.Timestamp(filt.date_from)
    if filt.date_to:
        mask &= dates < pd.Timestamp(filt.date_to) + pd.Timedelta(days=1)
    return df[mask]


def _filter_eq(df: pd.DataFrame, col: str, value: Optional[str]) -> pd.DataFrame:
    if df.empty or not value or col not in df.columns:
        return df
    mask = df[col].astype("string").str.strip().str.lower() == value.strip().lower()
    return df[mask.fillna(False).astype(bool)]


def _filter_location(df: pd.DataFrame, cols: List[str], value: Optional[str]) -> pd.DataFrame:
    if df.empty or not value:
        return df
    target = normalize_location(value)
    mask = pd.Series(False, index=df.index)
    for col in cols:
        if col in df.columns:
            mask |= df[col].map(normalize_location) == target
    return df[mask]


def compute_alerts(
    *,
    voyage_events: pd.DataFrame,
    bulk_actions: pd.DataFrame,
    thresholds: dict,
) -> List[Dict[str, str]]:
    alerts: List[Dict[str, str]] = []

    if not voyage_events.empty:
        hours = voyage_events["final_hours"]
        drilling = voyage_events[voyage_events["department"] == "Drilling"]
        drilling_hours = float(drilling["final_hours"].sum())
        if drilling_hours:
            npt = float(drilling.loc[drilling["activity_category"] == "Non-Productive", "final_hours"].sum())
            npt_pct = npt / drilling_hours * 100
            if npt_pct > thresholds["drilling_npt_pct"]:
                alerts.append(
                    {
                        "alert_type": "Drilling NPT",
                        "severity": "high",
                        "message": f"Drilling non-productive time {npt_pct:.1f}% exceeds {thresholds['drilling_npt_pct']:.0f}%.",
                        "action": "Review waiting-on-weather and waiting-on-installation events with the rig teams.",
                    }
                )

        offshore = voyage_events["port_type"] == "rig"
        offshore_hours = float(hours[offshore].sum())
        if offshore_hours:
            waiting = float(hours[offshore & (voyage_events["parent_event"] == "Waiting on Installation")].sum())
            waiting_pct = waiting / offshore_hours * 100
            if waiting_pct > thresholds["waiting_pct"]:
                alerts.append(
                    {
                        "alert_type": "Offshore Waiting",
                        "severity": "medium",
                        "message": f"Waiting on installation is {waiting_pct:.1f}% of offshore time.",
                        "action": "Align vessel arrival windows with installation readiness.",
                    }
                )

    if not bulk_actions.empty and "fluid_category" in bulk_actions.columns:
        other = bulk_actions[bulk_actions["fluid_category"] == "Other"]
        if not other.empty:
            alerts.append(
                {
                    "alert_type": "Unclassified Fluids",
                    "severity": "low",
                    "message": f"{len(other)} transfers ({other['volume_bbls'].sum():,.0f} bbls) have no fluid classification.",
                    "action": "Check bulk type and description spelling in the source sheet.",
                }
            )
    return alerts


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)

    bulk: pd.DataFrame = data_ctx.get("bulk_actions", pd.DataFrame()).copy()  # type: ignore[union-attr]
    voyages: pd.DataFrame = data_ctx.get("voyage_list", pd.DataFrame()).copy()  # type: ignore[union-attr]
    events: pd.DataFrame = data_ctx.get("voyage_events", pd.DataFrame()).copy()  # type: ignore[union-attr]
    manifests: pd.DataFrame = data_ctx.get("vessel_manifests", pd.DataFrame()).copy()  # type: ignore[union-attr]
    cost_allocation: pd.DataFrame = data_ctx.get("cost_allocation", pd.DataFrame()).copy()  # type: ignore[union-attr]

    filtered_bulk = _filter_dates(bulk, "start_date", filt)
    filtered_bulk = _filter_eq(filtered_bulk, "vessel_name", filt.vessel)
    filtered_bulk = _filter_eq(filtered_bulk, "bulk_type", filt.bulk_type)
    filtered_bulk = _filter_eq(filtered_bulk, "standardized_origin", filt.origin)
    filtered_bulk = _filter_eq(filtered_bulk, "standardized_destination", filt.destination)
    filtered_bulk = _filter_eq(filtered_bulk, "action", filt.action)
    filtered_bulk = _filter_eq(filtered_bulk, "month_label", filt.selected_month)

    filtered_voyages = _filter_dates(voyages, "voyage_date", filt)
    filtered_voyages = _filter_eq(filtered_voyages, "vessel", filt.vessel)
    filtered_voyages = _filter_eq(filtered_voyages, "month_label", filt.selected_month)
    filtered_voyages = _filter_eq(filtered_voyages, "voyage_purpose", filt.voyage_purpose)

    filtered_events = _filter_dates(events, "event_date", filt)
    filtered_events = _filter_eq(filtered_events, "vessel", filt.vessel)
    filtered_events = _filter_eq(filtered_events, "month_label", filt.selected_month)
    filtered_events = _filter_location(filtered_events, ["location"], filt.location)

    filtered_manifests = _filter_dates(manifests, "manifest_date", filt)
    filtered_manifests = _filter_eq(filtered_manifests, "transporter", filt.vessel)
    filtered_manifests = _filter_eq(filtered_manifests, "month_label", filt.selected_month)
    filtered_manifests = _filter_location(filtered_manifests, ["offshore_location"], filt.location)

    alerts = compute_alerts(
        voyage_events=filtered_events,
        bulk_actions=filtered_bulk,
        thresholds={
            "drilling_npt_pct": filt.thresholds.drilling_npt_pct,
            "waiting_pct": filt.thresholds.waiting_pct,
        },
    )

    return {
        "filters": filt,
        "bulk_actions": bulk,
        "voyage_list": voyages,
        "voyage_events": events,
        "vessel_manifests": manifests,
        "cost_allocation": cost_allocation,
        "filtered_bulk_actions": filtered_bulk,
        "filtered_voyages": filtered_voyages,
        "filtered_events": filtered_events,
        "filtered_manifests": filtered_manifests,
        "source": data_ctx.get("source"),
        "last_updated": data_ctx.get("last_updated"),
        "alerts": alerts,
    }
