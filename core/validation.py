from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import pandas as pd


MAX_FILE_SIZE = 50 * 1024 * 1024
ALLOWED_EXTENSIONS = (".xlsx", ".xls", ".csv")
ALLOWED_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "text/csv",
}

FILE_LABELS = {
    "voyage_events": "Voyage Events",
    "cost_allocation": "Cost Allocation",
    "voyage_list": "Voyage List",
    "vessel_manifests": "Vessel Manifests",
    "bulk_actions": "Bulk Actions",
}

REQUIRED_HEADERS = {
    "voyage_events": ["Event", "Location", "From", "To"],
    "cost_allocation": ["LC Number"],
    "voyage_list": ["Vessel", "Voyage Number", "Locations"],
    "vessel_manifests": ["Voyage Id", "Manifest Number"],
    "bulk_actions": ["Vessel Name", "Action", "Qty", "Bulk Type"],
}


class UploadValidationError(ValueError):
    """Raised when an uploaded spreadsheet is rejected before processing."""


def validate_file_type(filename: str, content_type: str | None = None) -> bool:
    has_valid_extension = Path(filename or "").suffix.lower() in ALLOWED_EXTENSIONS
    has_valid_type = not content_type or content_type in ALLOWED_CONTENT_TYPES
    return has_valid_extension and has_valid_type


def validate_file_size(size: int) -> bool:
    return size <= MAX_FILE_SIZE


def validate_headers(headers: Iterable[str], required: Iterable[str]) -> Tuple[bool, List[str]]:
    lowered = [str(h).lower() for h in headers]
    missing = [r for r in required if not any(r.lower() in h for h in lowered)]
    return not missing, missing


def read_table(content: bytes, filename: str, *, nrows: int | None = None) -> pd.DataFrame:
    """Read the first sheet of an xlsx/xls file, or a CSV, from raw bytes."""
    if not content:
        raise UploadValidationError("File appears to be empty")
    if Path(filename or "").suffix.lower() == ".csv":
        return pd.read_csv(BytesIO(content), nrows=nrows)
    return pd.read_excel(BytesIO(content), sheet_name=0, nrows=nrows)


def get_preview(content: bytes, filename: str, sample_size: int = 10) -> Dict[str, Any]:
    df = read_table(content, filename)
    if df.empty and len(df.columns) == 0:
        raise UploadValidationError("File appears to be empty")
    headers = [str(c).strip() for c in df.columns if str(c).strip() and not str(c).startswith("Unnamed:")]
    sample = df.head(sample_size)
    sample = sample.astype(object).where(sample.notna(), None)
    return {
        "headers": headers,
        "sample_data": sample.values.tolist(),
        "row_count": int(len(df)),
    }


def validate_upload(kind: str, filename: str, content_type: str | None, content: bytes) -> None:
    label = FILE_LABELS.get(kind, kind)
    if not validate_file_type(filename, content_type):
        raise UploadValidationError(f"Invalid File Type: {label} must be an Excel or CSV file")
    if not validate_file_size(len(content)):
        raise UploadValidationError(f"{filename} exceeds 50MB limit")
    if not content:
        raise UploadValidationError("File appears to be empty")
