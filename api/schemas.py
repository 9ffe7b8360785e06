from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from core.metrics_forecast import MONTH_PATTERN


class ThresholdsModel(BaseModel):
    drilling_npt_pct: float = 15.0
    waiting_pct: float = 20.0
    utilization_target: float = 75.0


class DashboardFiltersModel(BaseModel):
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    vessel: str = "all"
    bulk_type: str = "all"
    origin: str = "all"
    destination: str = "all"
    action: str = "all"
    selected_month: str = "All Months"
    voyage_purpose: str = "All Purposes"
    location: str = "All Locations"
    page: int = 1
    page_size: int = 20
    top_n: int = 10
    thresholds: ThresholdsModel = Field(default_factory=ThresholdsModel)


class InjectModel(BaseModel):
    id: str
    start_month: str = Field(pattern=MONTH_PATTERN)
    end_month: str = Field(pattern=MONTH_PATTERN)
    vessel_requirement: float
    probability: float = Field(default=1.0, ge=0.0, le=1.0)
    impact: Literal["demand_increase", "demand_decrease"] = "demand_increase"
    is_active: bool = True


class VesselForecastRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    scenario: Literal["base_case", "optimistic", "pessimistic"] = "base_case"
    injects: List[InjectModel] = Field(default_factory=list)

