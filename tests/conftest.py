"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from io import BytesIO
from pathlib import Path

import pandas as pd
import pytest

# Ensure project root is on path when running tests
_project_root = Path(__file__).resolve().parents[1]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from core import data as data_module
from core.data import STORE, build_data_ctx, prepare_context, process_excel_files, TABLE_KINDS


@pytest.fixture(autouse=True)
def empty_store(tmp_path, monkeypatch):
    """Every test starts with an empty upload store and an empty data directory."""
    monkeypatch.setattr(data_module, "DATA_DIR", tmp_path)
    STORE.clear()
    yield
    STORE.clear()


@pytest.fixture
def raw_bulk_actions():
    return pd.DataFrame(
        {
            "Port Type": ["base", "base", "rig", "base", "base", "base"],
            "Vessel Name": ["Pelican Island", "Pelican Island", "Fast Goliath", "Fast Goliath", "Pelican Island", "Fast Goliath"],
            "Start Date": ["2025-01-10", "2025-01-15", "2025-02-03", "2025-02-20", "2025-02-21", "2025-02-25"],
            "Action": ["Load", "Load", "Offload", "Load", "Discharge", "Load"],
            "Qty": [500, 200, 100, 4200, 42, 50],
            "Unit": ["bbl", "bbl", "bbl", "gal", "bbl", "bbl"],
            "Bulk Type": ["WBM", "Calcium Bromide", "WBM", "Methanol", "Xylene", "Misc"],
            "Bulk Description": ["Water Based Mud", "CaBr2 brine", "Return mud", "Methanol", "Xylene drums", "Sundry"],
            "At Port": ["Fourchon", "Fourchon", "Thunder Horse Drilling", "Fourchon", "Fourchon", "Fourchon"],
            "Destination Port": ["Thunder Horse Drilling", "Mad Dog Drilling", "Fourchon", "Atlantis PQ", "Na Kika", None],
            "Remarks": [None, None, "Return to base", None, None, None],
        }
    )


@pytest.fixture
def raw_voyage_list():
    return pd.DataFrame(
        {
            "Vessel": ["Pelican Island", "Pelican Island", "Fast Goliath", "Fast Goliath"],
            "Voyage Number": [1, 2, 1, 2],
            "Year": [2025, 2025, 2025, 2025],
            "Month": ["Jan", "Jan", "Feb", "Feb"],
            "Start Date": ["2025-01-05 06:00", "2025-01-20 00:00", "2025-02-02 00:00", "2025-02-10 00:00"],
            "End Date": ["2025-01-06 06:00", "2025-01-22 12:00", "2025-02-02 18:00", "2025-02-14 00:00"],
            "Type": ["Supply"] * 4,
            "Mission": ["Supply"] * 4,
            "Route Type": ["Mixed"] * 4,
            "Locations": [
                "Fourchon -> Thunder Horse Drilling -> Fourchon",
                "Fourchon -> Atlantis PQ -> Stena IceMAX -> Fourchon",
                "Fourchon -> Na Kika",
                "Fourchon -> Fourchon",
            ],
        }
    )


@pytest.fixture
def raw_voyage_events():
    return pd.DataFrame(
        {
            "Mission": ["M1", "M1", "M2", "M2"],
            "Event": ["Cargo Loading or Discharging", None, "Steam from Port", None],
            "Parent Event": ["Cargo Ops", "Waiting on Installation", "Transit", "Some Unknown"],
            "Location": ["Thunder Horse Drilling", "Thunder Horse Drilling", "Fourchon", "Atlantis PQ"],
            "From": ["2025-01-05 10:00", "2025-01-05 20:00", "2025-01-20 00:00", "2025-02-03 00:00"],
            "To": ["2025-01-05 20:00", "2025-01-06 00:00", "2025-01-20 05:00", "2025-02-03 02:00"],
            "Hours": [10, 4, 5, 2],
            "Port Type": ["rig", "rig", "base", "rig"],
            "Cost Dedicated to": ["9358 60, 10137 40", "9358", "999", None],
            "Vessel": ["Pelican Island", "Pelican Island", "Pelican Island", "Fast Goliath"],
            "Voyage #": [1, 1, 2, 1],
        }
    )


@pytest.fixture
def raw_cost_allocation():
    return pd.DataFrame(
        {
            "LC Number": [9358, 10137],
            "Location Reference": ["Thunder Horse Drilling", "Atlantis PQ"],
            "Description": ["Thunder Horse drilling campaign", "Atlantis production support"],
            "Cost Element": ["Vessel", "Vessel"],
            "Month-Year": ["Jan-25", "Jan-25"],
        }
    )


@pytest.fixture
def raw_vessel_manifests():
    return pd.DataFrame(
        {
            "Voyage Id": [101, 102, 103, 104, 105, 106],
            "Manifest Number": ["MN-1", "MN-2", "MN-3", "MN-4", "MN-5", "MN-6"],
            "Transporter": ["Pelican Island", "Fast Goliath", "Pelican Island", "Fast Goliath", "Pelican Island", "Pelican Island"],
            "Manifest Date": ["2025-01-06", "2025-01-12", "2025-02-04", "2025-02-11", "2025-02-20", "2025-03-03"],
            "From": ["Fourchon"] * 6,
            "Offshore Location": [
                "Thunder Horse Drilling", "Atlantis PQ", "Thunder Horse Drilling",
                "Na Kika", "Mad Dog Drilling", "Atlantis PQ",
            ],
            "Deck Tons": [10, 8, 12, 6, 4, 10],
            "RT Tons": [2, 1, 3, 1, 0, 3],
            "Lifts": [5, 3, 6, 2, 2, 4],
        }
    )


@pytest.fixture
def raw_files(raw_voyage_events, raw_cost_allocation, raw_voyage_list, raw_vessel_manifests, raw_bulk_actions):
    return {
        "voyage_events": raw_voyage_events,
        "cost_allocation": raw_cost_allocation,
        "voyage_list": raw_voyage_list,
        "vessel_manifests": raw_vessel_manifests,
        "bulk_actions": raw_bulk_actions,
    }


@pytest.fixture
def tables(raw_files):
    result = process_excel_files(raw_files)
    return {kind: result[kind] for kind in TABLE_KINDS}


@pytest.fixture
def data_ctx(tables):
    return build_data_ctx(tables, files=[], source="upload")


@pytest.fixture
def ctx(data_ctx):
    """Unfiltered dashboard context."""
    return prepare_context({}, data_ctx)


@pytest.fixture
def empty_ctx():
    return prepare_context({}, build_data_ctx({}, files=[], source="empty"))


def xlsx_bytes(df: pd.DataFrame) -> bytes:
    buf = BytesIO()
    df.to_excel(buf, index=False)
    return buf.getvalue()


@pytest.fixture
def to_xlsx():
    return xlsx_bytes
