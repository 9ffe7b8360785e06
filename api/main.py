from __future__ import annotations

import json
import logging
import math
from datetime import date
from typing import Dict, List, Literal, Optional, Tuple

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import DashboardFiltersModel, VesselForecastRequest
from core.data import STORE, TABLE_KINDS, load_dashboard_data, prepare_context, process_excel_files
from core.filters import DashboardFilters, apply_preset, filter_options, normalize_filters
from core.kpi import compute_status
from core.metrics_bulk import compute_bulk_actions
from core.metrics_debug import compute_debug
from core.metrics_forecast import VesselInject, compute_vessel_forecast
from core.metrics_overview import build_summary_export, compute_overview
from core.metrics_production import compute_production_bulk, filter_by_location, production_fluids
from core.metrics_voyage import compute_voyage_analytics
from core.validation import UploadValidationError, get_preview, read_table, validate_headers, validate_upload, REQUIRED_HEADERS


app = FastAPI(title="Logistics Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: DashboardFiltersModel) -> DashboardFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500, prefix: str = "") -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": f"{prefix}{exc}", "type": type(exc).__name__})


def _read_upload(kind: str, upload: UploadFile) -> Tuple[pd.DataFrame, List[str]]:
    """Validate and read one uploaded file; returns the table and its missing required headers."""
    content = upload.file.read()
    validate_upload(kind, upload.filename or "", upload.content_type, content)
    df = read_table(content, upload.filename or "")
    ok, missing = validate_headers([str(c) for c in df.columns], REQUIRED_HEADERS.get(kind, []))
    if not ok:
        logger.warning("%s upload %s is missing headers: %s", kind, upload.filename, ", ".join(missing))
    return df, missing


@app.get("/meta/options")
def meta_options():
    try:
        return _json(filter_options(load_dashboard_data()))
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.get("/meta/status")
def meta_status():
    try:
        data_ctx = load_dashboard_data()
        return _json(
            {
                "source": data_ctx.get("source"),
                "files": data_ctx.get("files", []),
                "counts": data_ctx.get("counts", {}),
                "last_updated": data_ctx.get("last_updated"),
            }
        )
    except Exception as exc:
        logger.exception("meta_status failed")
        return _error(exc)


@app.get("/meta/preset")
def meta_preset(name: Literal["current-month", "ytd", "reset"] = Query(default="current-month")):
    try:
        months = filter_options(load_dashboard_data())["months"]
        return _json(apply_preset(name, months, today=date.today()))
    except Exception as exc:
        logger.exception("meta_preset failed")
        return _error(exc)


@app.post("/upload/preview")
def upload_preview(file: UploadFile = File(...), kind: Optional[str] = Form(default=None)):
    try:
        content = file.file.read()
        validate_upload(kind or "file", file.filename or "", file.content_type, content)
        preview = get_preview(content, file.filename or "")
        if kind in REQUIRED_HEADERS:
            ok, missing = validate_headers(preview["headers"], REQUIRED_HEADERS[kind])
            preview["headers_valid"] = ok
            preview["missing_headers"] = missing
        return _json({"filename": file.filename, "size": len(content), "content_type": file.content_type, **preview})
    except UploadValidationError as exc:
        return _error(exc, status_code=400)
    except Exception as exc:
        logger.exception("upload_preview failed")
        return _error(exc, prefix="Processing failed: ")


@app.post("/upload")
def upload(
    voyage_events: Optional[UploadFile] = File(default=None),
    cost_allocation: Optional[UploadFile] = File(default=None),
    voyage_list: Optional[UploadFile] = File(default=None),
    vessel_manifests: Optional[UploadFile] = File(default=None),
    bulk_actions: Optional[UploadFile] = File(default=None),
    mode: Literal["replace", "update"] = Form(default="replace"),
):
    uploads = {
        "voyage_events": voyage_events,
        "cost_allocation": cost_allocation,
        "voyage_list": voyage_list,
        "vessel_manifests": vessel_manifests,
        "bulk_actions": bulk_actions,
    }
    try:
        read = {kind: _read_upload(kind, f) for kind, f in uploads.items() if f is not None}
        raw: Dict[str, pd.DataFrame] = {kind: df for kind, (df, _) in read.items()}
        missing_headers = {kind: missing for kind, (_, missing) in read.items() if missing}
        result = process_excel_files(raw)
        tables = {kind: result[kind] for kind in TABLE_KINDS}
        if mode == "update":
            STORE.update(tables)
        else:
            STORE.replace(tables)
        counts = result["counts"]
        logger.info("upload (%s) stored: %s", mode, counts)
        return _json(
            {
                "success": True,
                "mode": mode,
                "message": (
                    f"Successfully processed {counts['voyage_events']} voyage events "
                    f"and {counts['cost_allocation']} cost allocations"
                ),
                "counts": counts,
                "missing_headers": missing_headers,
                "last_updated": STORE.last_updated,
            }
        )
    except UploadValidationError as exc:
        return _error(exc, status_code=400)
    except Exception as exc:
        logger.exception("upload failed")
        return _error(exc, prefix="Processing failed: ")


@app.post("/upload/bulk-actions")
def upload_bulk_actions(
    file: UploadFile = File(...),
    mode: Literal["replace", "update"] = Form(default="update"),
):
    try:
        df, missing = _read_upload("bulk_actions", file)
        result = process_excel_files({"bulk_actions": df}, require_core=False)
        if mode == "replace":
            # keep the other tables, swap only bulk actions
            current = STORE.snapshot()
            STORE.replace({**{k: current[k] for k in TABLE_KINDS}, "bulk_actions": result["bulk_actions"]})
        else:
            STORE.update({"bulk_actions": result["bulk_actions"]})
        count = result["counts"]["bulk_actions"]
        return _json(
            {
                "success": True,
                "mode": mode,
                "message": f"Successfully processed {count} bulk actions",
                "counts": result["counts"],
                "missing_headers": {"bulk_actions": missing} if missing else {},
                "last_updated": STORE.last_updated,
            }
        )
    except UploadValidationError as exc:
        return _error(exc, status_code=400)
    except Exception as exc:
        logger.exception("upload_bulk_actions failed")
        return _error(exc, prefix="Processing failed: ")


@app.delete("/data")
def clear_data():
    STORE.clear()
    return _json({"success": True, "message": "All data cleared"})


@app.post("/overview")
def overview(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/bulk-actions")
def bulk_actions_page(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_bulk_actions(f, ctx))
    except Exception as exc:
        logger.exception("bulk_actions failed")
        return _error(exc)


@app.post("/production-bulk")
def production_bulk(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_production_bulk(f, ctx))
    except Exception as exc:
        logger.exception("production_bulk failed")
        return _error(exc)


@app.post("/voyage-analytics")
def voyage_analytics(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_voyage_analytics(f, ctx))
    except Exception as exc:
        logger.exception("voyage_analytics failed")
        return _error(exc)


@app.post("/vessel-forecast")
def vessel_forecast(
    filters: DashboardFiltersModel,
    scenario: Literal["base_case", "optimistic", "pessimistic"] = Query(default="base_case"),
):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_vessel_forecast(f, ctx, scenario=scenario))
    except Exception as exc:
        logger.exception("vessel_forecast failed")
        return _error(exc)


@app.post("/vessel-forecast/scenario")
def vessel_forecast_scenario(request: VesselForecastRequest):
    try:
        f = _filters_from_model(request.filters)
        ctx = prepare_context(f, load_dashboard_data())
        injects = [VesselInject(**inj.model_dump()) for inj in request.injects]
        return _json(compute_vessel_forecast(f, ctx, scenario=request.scenario, injects=injects))
    except Exception as exc:
        logger.exception("vessel_forecast_scenario failed")
        return _error(exc)


@app.post("/status")
def status(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_status(f, ctx))
    except Exception as exc:
        logger.exception("status failed")
        return _error(exc)


@app.post("/debug")
def debug(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_debug(f, ctx))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.get("/export/summary")
def export_summary():
    try:
        ctx = prepare_context({}, load_dashboard_data())
        body = _json(build_summary_export(ctx)).body
        filename = f"logistics-summary-{date.today().isoformat()}.json"
        return Response(
            content=json.dumps(json.loads(body), indent=2),
            media_type="application/json",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as exc:
        logger.exception("export_summary failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, filters: DashboardFiltersModel):
    f = _filters_from_model(filters)
    ctx = prepare_context(f, load_dashboard_data())

    export_df = None
    filename = f"{page}.csv"
    if page == "overview":
        export_df = ctx.get("filtered_events")
    elif page == "bulk-actions":
        export_df = ctx.get("filtered_bulk_actions")
    elif page == "production-bulk":
        export_df = filter_by_location(production_fluids(ctx["filtered_bulk_actions"]), f.location)
    elif page == "voyage-analytics":
        export_df = ctx.get("filtered_voyages")
    elif page in {"manifests", "vessel-manifests"}:
        export_df = ctx.get("filtered_manifests")
        filename = "vessel-manifests.csv"
    else:
        export_df = pd.DataFrame()

    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
