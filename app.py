import json
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from core.data import STORE, TABLE_KINDS, load_dashboard_data, prepare_context, process_excel_files
from core.filters import (
    ALL_LOCATIONS,
    ALL_MONTHS,
    ALL_PURPOSES,
    apply_preset,
    filter_options,
    normalize_filters,
)
from core.kpi import compute_status
from core.metrics_bulk import compute_bulk_actions
from core.metrics_debug import compute_debug
from core.metrics_forecast import SCENARIOS, VesselInject, compute_vessel_forecast, parse_month
from core.metrics_overview import build_summary_export, compute_overview
from core.metrics_production import compute_production_bulk, filter_by_location, production_fluids
from core.metrics_voyage import compute_voyage_analytics
from core.validation import (
    FILE_LABELS,
    REQUIRED_HEADERS,
    UploadValidationError,
    get_preview,
    read_table,
    validate_headers,
    validate_upload,
)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(raw: Dict[str, Any]) -> str:
    chips = [
        f"Dates: {raw.get('date_from') or '…'} – {raw.get('date_to') or '…'}",
        f"Month: {raw.get('selected_month') or ALL_MONTHS}",
        f"Vessel: {raw.get('vessel') or 'All'}",
        f"Location: {raw.get('location') or ALL_LOCATIONS}",
    ]
    if raw.get("voyage_purpose") not in (None, ALL_PURPOSES):
        chips.append(f"Purpose: {raw['voyage_purpose']}")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if export_df is not None and not export_df.empty:
            st.download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{format_filter_summary(raw_filters)}</div>", unsafe_allow_html=True)


def render_chart(spec: Optional[Dict[str, Any]], empty_message: str = "Not enough data for this chart."):
    if not spec:
        st.info(empty_message)
        return
    st.vega_lite_chart(spec, use_container_width=True)


def render_table_page(table: Dict[str, Any], key: str):
    if not table["total"]:
        st.info("No rows match the selected filters.")
        return
    st.dataframe(pd.DataFrame(table["rows"]), use_container_width=True, hide_index=True)
    st.caption(f"Showing {table['start']}–{table['end']} of {table['total']} (page {table['page']} of {table['total_pages']})")
    if table["total_pages"] > 1:
        st.number_input("Page", min_value=1, max_value=table["total_pages"], key=key)


def render_alerts(alerts_list: List[Dict[str, str]]):
    if not alerts_list:
        st.success("No alerts triggered for the selected filters.")
        return
    severity_order = {"high": 0, "medium": 1, "low": 2}
    for alert in sorted(alerts_list, key=lambda a: severity_order.get(a.get("severity", "medium"), 3)):
        st.warning(f"**{alert['alert_type']}**: {alert['message']}  \nAction: {alert['action']}")


# ---------- UI setup ----------
st.set_page_config(page_title="Offshore Logistics Dashboard", layout="wide")
inject_base_styles()
st.title("Offshore Logistics Dashboard")
st.caption("Upload voyage, cost allocation, manifest and bulk transfer spreadsheets to populate the dashboards.")

data_ctx = load_dashboard_data()
options = filter_options(data_ctx)

# ----- Sidebar: navigation + filters -----
with st.sidebar:
    st.markdown("### Navigate")
    current_page = st.radio(
        "Navigate",
        ["Upload", "Overview", "Bulk Actions", "Production Bulk", "Voyage Analytics", "Vessel Forecast", "Status", "Data Quality"],
        index=0 if STORE.is_empty and data_ctx.get("source") == "empty" else 1,
    )

    st.markdown("---")
    st.markdown("### Quick filters")
    preset_cols = st.columns(3)
    for col, (label, preset) in zip(preset_cols, [("Last month", "current-month"), ("YTD", "ytd"), ("Reset", "reset")]):
        if col.button(label):
            for k, v in apply_preset(preset, options["months"], today=date.today()).items():
                st.session_state[f"filter_{k}"] = v
    selected_month = st.selectbox("Month", options["months"], key="filter_selected_month")
    location = st.selectbox("Location", options["locations"], key="filter_location")
    vessel = st.selectbox("Vessel", ["all"] + options["vessels"])
    voyage_purpose = st.selectbox("Voyage purpose", options["purposes"])
    date_range = st.date_input("Date range", value=())

    with st.expander("Bulk transfer filters", expanded=False):
        bulk_type = st.selectbox("Bulk type", ["all"] + options["bulk_types"])
        origin = st.selectbox("Origin", ["all"] + options["origins"])
        destination = st.selectbox("Destination", ["all"] + options["destinations"])
        action = st.selectbox("Action", ["all"] + options["actions"])

    st.markdown("---")
    with st.expander("Advanced settings", expanded=False):
        top_n = st.slider("Top N rows", min_value=5, max_value=50, value=10, step=5)
        page_size = st.selectbox("Rows per page", [10, 20, 50, 100], index=1)
        st.subheader("Alert thresholds")
        drilling_npt_pct = st.slider("Drilling NPT % alert", 0.0, 50.0, 15.0, 1.0)
        waiting_pct = st.slider("Offshore waiting % alert", 0.0, 50.0, 20.0, 1.0)
        utilization_target = st.slider("Utilization target %", 0.0, 100.0, 75.0, 5.0)

raw_filters = {
    "date_from": date_range[0] if len(date_range) > 0 else None,
    "date_to": date_range[1] if len(date_range) > 1 else None,
    "vessel": vessel,
    "bulk_type": bulk_type,
    "origin": origin,
    "destination": destination,
    "action": action,
    "selected_month": selected_month,
    "voyage_purpose": voyage_purpose,
    "location": location,
    "page": st.session_state.get(f"page_{current_page}", 1),
    "page_size": page_size,
    "top_n": top_n,
    "thresholds": {
        "drilling_npt_pct": drilling_npt_pct,
        "waiting_pct": waiting_pct,
        "utilization_target": utilization_target,
    },
}
filters = normalize_filters(raw_filters)
ctx = prepare_context(filters, data_ctx)


def render_upload_page():
    render_page_header("Upload Data", "Home / Upload")
    with card("Current data"):
        counts = data_ctx.get("counts", {})
        cols = st.columns(len(TABLE_KINDS))
        for col, kind in zip(cols, TABLE_KINDS):
            col.metric(FILE_LABELS[kind], f"{counts.get(kind, 0):,}")
        st.caption(f"Source: {data_ctx.get('source')} · Last updated: {data_ctx.get('last_updated') or 'n/a'}")
        if not STORE.is_empty and st.button("Clear uploaded data"):
            STORE.clear()
            st.rerun()

    with card("Upload spreadsheets"):
        mode = st.radio("Mode", ["replace", "update"], horizontal=True, help="Replace clears all data first; update merges and drops exact duplicates.")
        uploads = {
            kind: st.file_uploader(
                f"{FILE_LABELS[kind]}{' (required)' if kind in ('voyage_events', 'cost_allocation') else ''}",
                type=["xlsx", "xls", "csv"],
                key=f"upload_{kind}",
            )
            for kind in TABLE_KINDS
        }
        for kind, f in uploads.items():
            if f is None:
                continue
            with st.expander(f"Preview: {f.name}"):
                try:
                    content = f.getvalue()
                    validate_upload(kind, f.name, f.type, content)
                    preview = get_preview(content, f.name)
                    ok, missing = validate_headers(preview["headers"], REQUIRED_HEADERS[kind])
                    if not ok:
                        st.warning(f"Missing expected columns: {', '.join(missing)}")
                    st.caption(f"{preview['row_count']:,} rows")
                    st.dataframe(pd.DataFrame(preview["sample_data"]), hide_index=True)
                except UploadValidationError as exc:
                    st.error(str(exc))

        if st.button("Process files", type="primary"):
            try:
                raw = {}
                for kind, f in uploads.items():
                    if f is None:
                        continue
                    content = f.getvalue()
                    validate_upload(kind, f.name, f.type, content)
                    raw[kind] = read_table(content, f.name)
                result = process_excel_files(raw)
                tables = {kind: result[kind] for kind in TABLE_KINDS}
                if mode == "update":
                    STORE.update(tables)
                else:
                    STORE.replace(tables)
                counts = result["counts"]
                st.success(
                    f"Successfully processed {counts['voyage_events']} voyage events and {counts['cost_allocation']} cost allocations"
                )
                st.rerun()
            except UploadValidationError as exc:
                st.error(str(exc))
            except Exception as exc:
                st.error(f"Processing failed: {exc}")


def render_overview_page():
    payload = compute_overview(filters, ctx)
    render_page_header("Overview", "Home / Overview", export_df=ctx["filtered_events"], export_name="voyage-events.csv")
    k = payload["kpis"]
    m = payload["manifest_kpis"]
    with card("Voyage event KPIs"):
        cols = st.columns(5)
        cols[0].metric("Offshore hours", f"{k['total_offshore_hours']:,.1f}")
        cols[1].metric("Onshore hours", f"{k['total_onshore_hours']:,.1f}")
        cols[2].metric("Vessel utilization", f"{k['vessel_utilization_rate']:.1f}%", help="Productive hours / total hours.")
        cols[3].metric("Drilling NPT", f"{k['drilling_npt_pct']:.1f}%")
        cols[4].metric("Offshore waiting", f"{k['waiting_pct']:.1f}%")
        cols = st.columns(5)
        cols[0].metric("Weather waiting (h)", f"{k['weather_waiting_hours']:,.1f}")
        cols[1].metric("Cargo ops (h)", f"{k['cargo_ops_hours']:,.1f}")
        cols[2].metric("Vessel cost", f"${k['total_vessel_cost']:,.0f}")
        cols[3].metric("Avg trip duration (h)", f"{k['average_trip_duration']:,.1f}")
        cols[4].metric("Lifts / cargo hour", f"{m['lifts_per_cargo_hour']:.2f}")
    with card("Manifests"):
        cols = st.columns(4)
        cols[0].metric("Deck tons", f"{m['total_deck_tons']:,.0f}")
        cols[1].metric("RT tons", f"{m['total_rt_tons']:,.0f}")
        cols[2].metric("Lifts", f"{m['total_lifts']:,.0f}")
        cols[3].metric("Tons per visit", f"{m['cargo_tonnage_per_visit']:,.1f}")

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Hours by department (monthly)"):
            render_chart(payload["charts"].get("monthly_hours"))
    with chart_cols[1]:
        with card("Vessel cost (monthly)"):
            render_chart(payload["charts"].get("monthly_vessel_cost"))
    with card("Department breakdown"):
        if payload["departments"]:
            st.dataframe(pd.DataFrame(payload["departments"]), use_container_width=True, hide_index=True)
        else:
            st.info("No voyage events for the selected filters.")
    with card("Alerts"):
        render_alerts(payload["alerts"])
    st.download_button(
        "Download summary (JSON)",
        data=json.dumps(build_summary_export(ctx), default=str, indent=2),
        file_name=f"logistics-summary-{date.today().isoformat()}.json",
        mime="application/json",
    )


def render_bulk_actions_page():
    payload = compute_bulk_actions(filters, ctx)
    render_page_header("Bulk Actions", "Home / Bulk Actions", export_df=ctx["filtered_bulk_actions"], export_name="bulk-actions.csv")
    k = payload["kpis"]
    impact = payload["filter_impact"]
    st.caption(f"{impact['filtered']:,} of {impact['total']:,} transfers ({impact['percent']}%)")
    with card("Transfer KPIs"):
        cols = st.columns(4)
        cols[0].metric("Transfers", f"{k['total_transfers']:,}")
        cols[1].metric("Volume (bbls)", f"{k['total_volume_bbls']:,.0f}")
        cols[2].metric("Shorebase → Rig", f"{k['shorebase_to_rig']:,}")
        cols[3].metric("Rig → Shorebase", f"{k['rig_to_shorebase']:,}")
        cols = st.columns(3)
        cols[0].metric("Drilling fluids (bbls)", f"{k['drilling_fluid_volume']:,.0f}", delta=f"{k['drilling_fluid_count']} transfers", delta_color="off")
        cols[1].metric("Completion fluids (bbls)", f"{k['completion_fluid_volume']:,.0f}", delta=f"{k['completion_fluid_count']} transfers", delta_color="off")
        cols[2].metric("Avg transfer (bbls)", f"{k['avg_transfer_size']:,.1f}")
    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Volume by fluid type"):
            render_chart(payload["charts"].get("volume_by_type"))
    with chart_cols[1]:
        with card("Monthly volume"):
            render_chart(payload["charts"].get("monthly_volume"))
    route_cols = st.columns(2)
    with route_cols[0]:
        with card("Top routes"):
            if payload["routes"]:
                st.dataframe(pd.DataFrame(payload["routes"]), use_container_width=True, hide_index=True)
            else:
                st.info("No routes with both origin and destination.")
    with route_cols[1]:
        with card("Top vessels"):
            if payload["top_vessels"]:
                st.dataframe(pd.DataFrame(payload["top_vessels"]), use_container_width=True, hide_index=True)
            else:
                st.info("No transfers for the selected filters.")
    with card("Transfers"):
        render_table_page(payload["table"], key="page_Bulk Actions")


def render_production_bulk_page():
    payload = compute_production_bulk(filters, ctx)
    export_df = filter_by_location(production_fluids(ctx["filtered_bulk_actions"]), filters.location)
    render_page_header("Production Bulk", "Home / Production Bulk", export_df=export_df, export_name="production-bulk.csv")
    m = payload["metrics"]
    with card("Production chemical KPIs"):
        cols = st.columns(5)
        cols[0].metric("Volume (gal)", f"{m['total_volume_gals']:,.0f}")
        cols[1].metric("Transfers", f"{m['transfers']:,}")
        cols[2].metric("Loads", f"{m['load_operations']:,}")
        cols[3].metric("Discharges", f"{m['discharge_operations']:,}")
        cols[4].metric("Returns", f"{m['returns']:,}")
    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Volume by chemical"):
            render_chart(payload["charts"].get("volume_by_type"), "No production chemical transfers.")
    with chart_cols[1]:
        with card("Volume by location"):
            if m["by_location"]:
                st.dataframe(
                    pd.DataFrame(list(m["by_location"].items()), columns=["location", "volume_gals"]),
                    use_container_width=True,
                    hide_index=True,
                )
            else:
                st.info("No production chemical transfers.")
    with card("Top routes"):
        if payload["top_routes"]:
            st.dataframe(pd.DataFrame(payload["top_routes"]), use_container_width=True, hide_index=True)
        else:
            st.info("No routes for the selected filters.")


def render_voyage_analytics_page():
    payload = compute_voyage_analytics(filters, ctx)
    render_page_header("Voyage Analytics", "Home / Voyage Analytics", export_df=ctx["filtered_voyages"], export_name="voyages.csv")
    k = payload["kpis"]
    with card("Voyage KPIs"):
        cols = st.columns(5)
        cols[0].metric("Voyages", f"{k['total_voyages']:,}")
        cols[1].metric("Avg duration (h)", f"{k['avg_voyage_duration']:,.1f}")
        cols[2].metric("Drilling voyages", f"{k['drilling_voyage_percentage']:.1f}%")
        cols[3].metric("Mixed voyages", f"{k['mixed_voyage_efficiency']:.1f}%")
        cols[4].metric("Avg stops", f"{k['avg_stops_per_voyage']:.1f}")
        cols = st.columns(5)
        cols[0].metric("Multi-stop", f"{k['multi_stop_percentage']:.1f}%")
        cols[1].metric("Route efficiency", f"{k['route_efficiency_score']:.2f}", help="Stops per voyage-day.")
        cols[2].metric("Active vessels", f"{k['active_vessels']:,}")
        cols[3].metric("Voyages / vessel", f"{k['voyages_per_vessel']:.1f}")
        cols[4].metric("Fourchon routes", f"{k['route_concentration']:.1f}%")
    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Purpose distribution"):
            render_chart(payload["charts"].get("purpose_distribution"))
    with chart_cols[1]:
        with card("Duration distribution"):
            render_chart(payload["charts"].get("duration_distribution"))
    detail_cols = st.columns(3)
    for col, (title, key) in zip(
        detail_cols,
        [("Popular destinations", "popular_destinations"), ("Route complexity", "route_complexity"), ("Vessel ranking", "vessel_ranking")],
    ):
        with col:
            with card(title):
                if payload[key]:
                    st.dataframe(pd.DataFrame(payload[key]), use_container_width=True, hide_index=True)
                else:
                    st.info("No voyages for the selected filters.")
    with card("Voyages"):
        render_table_page(payload["table"], key="page_Voyage Analytics")


def render_vessel_forecast_page():
    render_page_header("Vessel Forecast", "Home / Vessel Forecast")
    scenario = st.selectbox("Scenario", list(SCENARIOS), format_func=lambda s: SCENARIOS[s].name)
    injects: List[VesselInject] = st.session_state.setdefault("forecast_injects", [])
    with st.expander("Demand injects", expanded=False):
        with st.form("inject_form", clear_on_submit=True):
            cols = st.columns(5)
            start = cols[0].text_input("Start month (YYYY-MM)")
            end = cols[1].text_input("End month (YYYY-MM)")
            requirement = cols[2].number_input("Deliveries / month", value=5.0, step=1.0)
            probability = cols[3].slider("Probability", 0.0, 1.0, 1.0, 0.05)
            impact = cols[4].selectbox("Impact", ["demand_increase", "demand_decrease"])
            if st.form_submit_button("Add inject") and start and end:
                try:
                    start, end = parse_month(start), parse_month(end)
                except ValueError as exc:
                    st.error(str(exc))
                else:
                    injects.append(VesselInject(f"inject-{len(injects) + 1}", start, end, requirement, probability, impact))
        if injects:
            st.dataframe(pd.DataFrame([asdict(i) for i in injects]), hide_index=True)
            if st.button("Clear injects"):
                injects.clear()
                st.rerun()

    payload = compute_vessel_forecast(filters, ctx, scenario=scenario, injects=injects)
    baseline = payload["baseline"]
    with card("Baseline"):
        cols = st.columns(4)
        cols[0].metric("Baseline demand", f"{baseline['baseline_demand']:.1f}")
        cols[1].metric("Fleet capability", f"{baseline['current_capability']:.1f}")
        cols[2].metric("Required vessels", baseline["required_vessels"])
        cols[3].metric("Vessel gap", baseline["vessel_gap"])

    result = payload["result"]
    if result is None:
        st.info("Upload vessel manifests or a voyage list to build the forecast.")
        return
    with card(f"{result['scenario']['name']} forecast"):
        cols = st.columns(5)
        cols[0].metric("Recommended fleet", result["recommended_fleet_size"])
        cols[1].metric("Max vessel gap", result["max_vessel_gap"])
        cols[2].metric("Avg utilization", f"{result['average_utilization']:.0%}")
        cols[3].metric("Peak month", result["peak_demand_month"] or "n/a")
        cols[4].metric("Confidence", f"{result['confidence_score']:.2f}")
        render_chart(payload["charts"].get("demand_vs_capability"))
        monthly = pd.DataFrame(
            {
                "demand": result["total_demand"],
                "drilling": result["drilling_demand"],
                "production": result["production_demand"],
                "capability": result["total_capability"],
                "required_vessels": result["required_vessels"],
                "vessel_gap": result["vessel_gap"],
            }
        )
        st.dataframe(monthly, use_container_width=True)
    with card("Recommendations"):
        if not payload["recommendations"]:
            st.success("Fleet is sized for the forecast horizon.")
        for rec in payload["recommendations"]:
            st.warning(f"**{rec['title']}** ({rec['priority']}): {rec['description']}")


def render_status_page():
    payload = compute_status(filters, ctx)
    render_page_header("Status", "Home / Status")
    st.subheader(f"Overall status: {payload['overall_status'].title()}")
    cols = st.columns(len(payload["metrics"]))
    for col, metric in zip(cols, payload["metrics"]):
        unit = metric["unit"] or ""
        value = f"{metric['value']:,}{unit if unit == '%' else ''}"
        target = f"target {metric['target']:.0f}{unit}" if metric["target"] is not None else None
        col.metric(metric["title"], value, delta=target, delta_color="off", help=metric["help"])
        col.caption(metric["status"])
    with card("Alerts"):
        render_alerts(payload["alerts"])


def render_debug_page():
    payload = compute_debug(filters, ctx)
    render_page_header("Data Quality", "Home / Data Quality")
    with card("Row counts"):
        st.write(payload["row_counts"])
        st.write({"filtered": payload["filtered_counts"]})
        st.write(payload["activity_checks"])
    with card("Date coverage"):
        st.dataframe(pd.DataFrame(payload["date_coverage"]), hide_index=True)
    with card("Unclassified fluids"):
        if payload["unclassified_fluids"]:
            st.dataframe(pd.DataFrame(payload["unclassified_fluids"]), hide_index=True)
        else:
            st.success("All bulk transfers have a fluid classification.")
    with card("Events needing review"):
        if payload["needs_review_events"]:
            st.dataframe(pd.DataFrame(payload["needs_review_events"]), hide_index=True)
        else:
            st.success("No null-event rows need review.")


if current_page == "Upload":
    render_upload_page()
elif current_page == "Overview":
    render_overview_page()
elif current_page == "Bulk Actions":
    render_bulk_actions_page()
elif current_page == "Production Bulk":
    render_production_bulk_page()
elif current_page == "Voyage Analytics":
    render_voyage_analytics_page()
elif current_page == "Vessel Forecast":
    render_vessel_forecast_page()
elif current_page == "Status":
    render_status_page()
else:
    render_debug_page()
