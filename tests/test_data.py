"""Ingestion pipeline, store and context filtering tests."""

from __future__ import annotations

import pandas as pd
import pytest

from core import data as data_module
from core.classification import NEEDS_REVIEW, NON_PRODUCTIVE, PRODUCTIVE
from core.data import (
    DataStore,
    build_data_ctx,
    detect_kind,
    lc_department_map,
    lc_str,
    load_dashboard_data,
    month_number,
    normalize_columns,
    parse_date,
    prepare_context,
    process_bulk_actions,
    process_cost_allocation,
    process_excel_files,
    process_voyage_events,
    process_voyage_list,
    BULK_ACTION_COLUMNS,
)
from core.validation import UploadValidationError


class TestParsing:
    def test_excel_serial(self):
        assert parse_date(45658) == pd.Timestamp("2025-01-01")

    def test_strings(self):
        assert parse_date("2025-01-05 06:00") == pd.Timestamp("2025-01-05 06:00")
        assert parse_date("01/05/2025") == pd.Timestamp("2025-01-05")

    def test_unparseable(self):
        assert pd.isna(parse_date(None))
        assert pd.isna(parse_date(""))
        assert pd.isna(parse_date("not a date"))

    def test_month_number(self):
        assert month_number("Jan") == 1
        assert month_number("september") == 9
        assert month_number(3) == 3
        assert month_number("13") is None
        assert month_number(None) is None

    def test_lc_str(self):
        assert lc_str(9358.0) == "9358"
        assert lc_str(" 10137 ") == "10137"
        assert lc_str(None) == ""

    def test_header_normalization(self):
        raw = pd.DataFrame({" Vessel  Name ": ["A"], "QTY": [1]})
        df = normalize_columns(raw, BULK_ACTION_COLUMNS)
        assert df.loc[0, "vessel_name"] == "A"
        assert df.loc[0, "qty"] == 1
        assert "bulk_type" in df.columns

    def test_detect_kind(self):
        assert detect_kind("Voyage Events Jan.xlsx") == "voyage_events"
        assert detect_kind("vessel_manifests.csv") == "vessel_manifests"
        assert detect_kind("bulk-actions.xlsx") == "bulk_actions"
        assert detect_kind("random.xlsx") is None


class TestBulkActions:
    def test_volumes_and_flags(self, raw_bulk_actions):
        df = process_bulk_actions(raw_bulk_actions)
        assert len(df) == 6
        methanol = df[df["bulk_type"] == "Methanol"].iloc[0]
        assert methanol["volume_bbls"] == pytest.approx(100.0)
        assert methanol["volume_gals"] == pytest.approx(4200.0)
        assert df["is_return"].tolist() == [False, False, True, False, False, False]
        assert df.loc[0, "month_year"] == "2025-01"
        assert df.loc[0, "month_label"] == "January 2025"

    def test_fluid_columns(self, raw_bulk_actions):
        df = process_bulk_actions(raw_bulk_actions)
        assert df["fluid_category"].tolist() == [
            "Drilling", "Completion/Intervention", "Drilling", "Production Chemical", "Production Chemical", "Other",
        ]
        assert df.loc[1, "fluid_specific_type"] == "Calcium Bromide"


class TestVoyageList:
    def test_derived_columns(self, raw_voyage_list):
        df = process_voyage_list(raw_voyage_list)
        assert df["stop_count"].tolist() == [3, 4, 2, 2]
        assert df["voyage_purpose"].tolist() == ["Drilling", "Mixed", "Production", "Other"]
        assert df["duration_hours"].tolist() == [24.0, 60.0, 18.0, 96.0]
        assert df.loc[1, "main_destination"] == "Atlantis PQ"
        assert df.loc[0, "standardized_voyage_id"] == "2025-01-PelicanIsland-001"
        assert df.loc[0, "unique_voyage_id"] == "2025_Jan_PelicanIsland_1"

    def test_single_stop_has_no_destination(self):
        df = process_voyage_list(pd.DataFrame({"Vessel": ["A"], "Locations": ["Fourchon"]}))
        assert df.loc[0, "main_destination"] is None
        assert df.loc[0, "origin_port"] == "Fourchon"


class TestVoyageEvents:
    def test_lc_split_and_departments(self, raw_voyage_events, raw_cost_allocation):
        cost = process_cost_allocation(raw_cost_allocation)
        df = process_voyage_events(raw_voyage_events, cost)
        assert len(df) == 5
        assert df["final_hours"].tolist() == [6.0, 4.0, 4.0, 5.0, 2.0]
        assert df["lc_number"].tolist()[:2] == ["9358", "10137"]
        assert df["department"].tolist()[:4] == ["Drilling", "Production", "Drilling", "Logistics"]
        assert df.loc[3, "lc_number"] == "FOURCHON_BASE"
        assert df.loc[4, "department"] is None or pd.isna(df.loc[4, "department"])

    def test_activity_and_cost(self, raw_voyage_events, raw_cost_allocation):
        df = process_voyage_events(raw_voyage_events, process_cost_allocation(raw_cost_allocation))
        assert df["activity_category"].tolist() == [PRODUCTIVE, PRODUCTIVE, NON_PRODUCTIVE, PRODUCTIVE, NEEDS_REVIEW]
        assert (df["vessel_daily_rate"] == 33000.0).all()
        assert df.loc[0, "vessel_cost_total"] == pytest.approx(8250.0)
        assert df["location_type"].tolist() == ["Offshore", "Offshore", "Offshore", "Onshore", "Offshore"]

    def test_hours_derived_from_timestamps(self):
        raw = pd.DataFrame(
            {
                "Parent Event": ["Transit"],
                "Event": ["Steam Infield"],
                "Location": ["Na Kika"],
                "From": ["2025-03-01 00:00"],
                "To": ["2025-03-01 03:30"],
                "Vessel": ["Pelican Island"],
            }
        )
        df = process_voyage_events(raw)
        assert df.loc[0, "hours"] == 3.5
        assert df.loc[0, "final_hours"] == 3.5

    def test_lc_department_map(self, raw_cost_allocation):
        cost = process_cost_allocation(raw_cost_allocation)
        assert lc_department_map(cost) == {"9358": "Drilling", "10137": "Production"}


class TestProcessExcelFiles:
    def test_core_files_required(self, raw_voyage_list):
        with pytest.raises(UploadValidationError, match="required"):
            process_excel_files({"voyage_list": raw_voyage_list})

    def test_counts(self, raw_files):
        result = process_excel_files(raw_files)
        assert result["counts"] == {
            "voyage_events": 5,
            "cost_allocation": 2,
            "voyage_list": 4,
            "vessel_manifests": 6,
            "bulk_actions": 6,
        }

    def test_optional_core(self, raw_bulk_actions):
        result = process_excel_files({"bulk_actions": raw_bulk_actions}, require_core=False)
        assert result["counts"]["bulk_actions"] == 6
        assert result["voyage_events"].empty


class TestDataStore:
    def test_replace_update_clear(self, tables):
        store = DataStore()
        assert store.is_empty
        store.replace(tables)
        assert store.snapshot()["counts"]["voyage_events"] == 5
        store.update(tables)
        # identical rows are dropped when merging
        assert store.snapshot()["counts"]["bulk_actions"] == 6
        assert store.last_updated is not None
        store.clear()
        assert store.is_empty
        assert store.last_updated is None

    def test_update_appends_new_rows(self, tables, raw_bulk_actions):
        store = DataStore()
        store.replace(tables)
        extra = raw_bulk_actions.assign(**{"Start Date": "2025-03-01"})
        store.update({"bulk_actions": process_bulk_actions(extra)})
        assert store.snapshot()["counts"]["bulk_actions"] == 12
        assert store.snapshot()["counts"]["voyage_list"] == 4


class TestLoadDashboardData:
    def test_empty(self):
        ctx = load_dashboard_data()
        assert ctx["source"] == "empty"
        assert all(v == 0 for v in ctx["counts"].values())

    def test_reads_data_dir(self, tmp_path, raw_bulk_actions):
        raw_bulk_actions.to_csv(tmp_path / "Bulk Actions.csv", index=False)
        ctx = load_dashboard_data()
        assert ctx["source"] == "disk"
        assert ctx["files"] == ["Bulk Actions.csv"]
        assert ctx["counts"]["bulk_actions"] == 6

    def test_store_wins_over_disk(self, tmp_path, raw_bulk_actions, tables):
        raw_bulk_actions.to_csv(tmp_path / "Bulk Actions.csv", index=False)
        data_module.STORE.replace(tables)
        assert load_dashboard_data()["source"] == "upload"


class TestPrepareContext:
    def test_unfiltered(self, ctx):
        assert len(ctx["filtered_bulk_actions"]) == 6
        assert len(ctx["filtered_events"]) == 5
        assert len(ctx["filtered_manifests"]) == 6

    def test_vessel_filter(self, data_ctx):
        ctx = prepare_context({"vessel": "Pelican Island"}, data_ctx)
        assert len(ctx["filtered_bulk_actions"]) == 3
        assert len(ctx["filtered_voyages"]) == 2
        assert len(ctx["filtered_events"]) == 4
        assert len(ctx["filtered_manifests"]) == 4

    def test_month_and_date_filters(self, data_ctx):
        assert len(prepare_context({"selected_month": "January 2025"}, data_ctx)["filtered_bulk_actions"]) == 2
        assert len(prepare_context({"date_from": "2025-02-01"}, data_ctx)["filtered_bulk_actions"]) == 4

    def test_location_filter(self, data_ctx):
        ctx = prepare_context({"location": "Atlantis"}, data_ctx)
        assert len(ctx["filtered_events"]) == 1
        assert len(ctx["filtered_manifests"]) == 2

    def test_purpose_filter(self, data_ctx):
        ctx = prepare_context({"voyage_purpose": "Mixed"}, data_ctx)
        assert ctx["filtered_voyages"]["vessel"].tolist() == ["Pelican Island"]

    def test_alerts(self, ctx, data_ctx):
        assert [a["alert_type"] for a in ctx["alerts"]] == ["Drilling NPT", "Offshore Waiting", "Unclassified Fluids"]
        relaxed = prepare_context({"thresholds": {"drilling_npt_pct": 50, "waiting_pct": 30}}, data_ctx)
        assert [a["alert_type"] for a in relaxed["alerts"]] == ["Unclassified Fluids"]

    def test_empty_context(self, empty_ctx):
        assert empty_ctx["alerts"] == []
        assert empty_ctx["filtered_events"].empty
        assert build_data_ctx({}, files=[], source="empty")["counts"]["bulk_actions"] == 0
