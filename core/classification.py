"""Row-level classification rules shared by the ingestion pipeline and dashboards."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

DRILLING = "Drilling"
COMPLETION_INTERVENTION = "Completion/Intervention"
PRODUCTION_CHEMICAL = "Production Chemical"
UTILITY = "Utility"
PETROLEUM = "Petroleum"
OTHER = "Other"

DRILLING_FLUID_KEYWORDS = [
    "wbm", "water based mud",
    "sbm", "synthetic based mud",
    "obm", "oil based mud",
    "premix", "pre-mix",
    "baseoil", "base oil", "base-oil",
    "drilling mud", "drilling fluid",
    "mud", "drill fluid",
]

COMPLETION_FLUID_KEYWORDS = [
    "calcium bromide", "cabr2", "ca br2",
    "calcium chloride", "cacl2", "ca cl2",
    "sodium chloride", "nacl", "na cl",
    "kcl", "potassium chloride",
    "clayfix", "clay fix",
    "completion fluid", "completion brine",
    "intervention fluid", "workover fluid",
]

PRODUCTION_FLUID_KEYWORDS = [
    "asphaltene inhibitor", "asphaltene",
    "calcium nitrate", "petrocare 45", "petrocare",
    "methanol",
    "xylene",
    "corrosion inhibitor",
    "scale inhibitor",
    "ldhi", "low dosage hydrate inhibitor",
    "subsea 525", "subsea525",
]

# (any-of tokens, specific type); first match wins.
DRILLING_TYPE_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("wbm", "water based"), "WBM"),
    (("sbm", "synthetic"), "SBM"),
    (("obm", "oil based"), "OBM"),
    (("premix", "pre-mix"), "Premix"),
    (("baseoil", "base oil"), "Baseoil"),
]

COMPLETION_TYPE_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("calcium bromide", "cabr"), "Calcium Bromide"),
    (("calcium chloride", "cacl"), "Calcium Chloride"),
    (("sodium chloride", "nacl"), "Sodium Chloride"),
    (("kcl", "potassium"), "KCL"),
    (("clayfix", "clay fix"), "Clayfix"),
]

PRODUCTION_TYPE_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("asphaltene",), "Asphaltene Inhibitor"),
    (("calcium nitrate", "petrocare"), "Calcium Nitrate (Petrocare 45)"),
    (("methanol",), "Methanol"),
    (("xylene",), "Xylene"),
    (("corrosion inhibitor",), "Corrosion Inhibitor"),
    (("scale inhibitor",), "Scale Inhibitor"),
    (("ldhi", "low dosage hydrate"), "LDHI"),
    (("subsea 525", "subsea525"), "Subsea 525"),
]

PRODUCTION_FLUID_TYPES = [t for _, t in PRODUCTION_TYPE_RULES]

PRODUCTION_LOCATIONS = [
    "Atlantis PQ", "Na Kika", "Mad Dog Prod", "Thunder Horse PDQ",
    "Thunder Horse Prod", "Mad Dog", "Argos",
]
DRILLING_LOCATIONS = [
    "Thunder Horse Drilling", "Mad Dog Drilling", "Ocean BlackHornet", "Ocean BlackLion",
    "Stena IceMAX", "Ocean Blacktip", "Island Venture", "Deepwater Invictus",
]

PRODUCTIVE_NULL_EVENT_PARENTS = {
    "End Voyage", "Standby inside 500m zone", "Standby Inside 500m zone",
    "Standby - Close", "Cargo Ops", "Marine Trial",
}
NON_PRODUCTIVE_PARENTS = {
    "Waiting on Weather", "Waiting on Installation",
    "Waiting on Quay", "Port or Supply Base closed",
}
PRODUCTIVE_COMBINATIONS = {
    ("ROV Operations", "ROV Operational duties"),
    ("Cargo Ops", "Load - Fuel, Water or Methanol"),
    ("Cargo Ops", "Offload - Fuel, Water or Methanol"),
    ("Cargo Ops", "Cargo Loading or Discharging"),
    ("Cargo Ops", "Simops"),
    ("Installation Productive Time", "Bulk Displacement"),
    ("Installation Productive Time", "Floating Storage"),
    ("Maintenance", "Vessel Under Maintenance"),
    ("Maintenance", "Training"),
    ("Maneuvering", "Shifting"),
    ("Maneuvering", "Set Up"),
    ("Maneuvering", "Pilotage"),
    ("Standby", "Close - Standby"),
    ("Standby", "Emergency Response Standby"),
    ("Standby", "Standby - Close"),
    ("Transit", "Steam from Port"),
    ("Transit", "Steam to Port"),
    ("Transit", "Steam Infield"),
    ("Transit", "Enter 500 mtr zone Setup Maneuver"),
    ("Stop the Job", "Installation, Vessel, Supply Base"),
    ("Tank Cleaning", "Tank Cleaning"),
}

PRODUCTIVE = "Productive"
NON_PRODUCTIVE = "Non-Productive"
NEEDS_REVIEW = "Needs Review - Null Event"
UNCATEGORIZED = "Uncategorized"

FOURCHON_LOGISTICS_LCS = {"999", "333", "7777", "8888"}

# Production LC numbers per facility; any of these books to Production when the
# cost allocation table has no department for it.
PRODUCTION_FACILITY_LCS: Dict[str, Tuple[str, ...]] = {
    "Argos": ("9999", "9779", "10027", "10039", "10070", "10082", "10106"),
    "Atlantis": ("9361", "10103", "10096", "10071", "10115"),
    "Na Kika": ("9359", "9364", "9367", "10098", "10080", "10051", "10021", "10017"),
    "Thunder Horse (Production)": ("9360", "10099", "10081", "10074", "10052"),
    "Mad Dog (Production)": ("9358", "10097", "10084", "10072", "10067"),
}

PRODUCTION_LCS: Dict[str, str] = {
    lc: facility for facility, lcs in PRODUCTION_FACILITY_LCS.items() for lc in lcs
}

DESCRIPTION_DEPARTMENT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Drilling", (
        "drill", "completion", "workover", "rig", "spud", "bha", "mud", "cementing", "casing",
        "perforation", "fracturing", "logging", "wireline", "coil", "well", "bore", "hole",
        "bit", "tubular", "pipe", "test", "pressure", "flow", "abandonment",
    )),
    ("Production", (
        "production", "prod", "facility", "platform", "process", "separation", "compression",
        "pipeline", "manifold", "flowline", "riser", "subsea", "umbilical", "tree", "header",
        "export", "gas", "oil", "condensate", "hydrocarbon", "crude", "treating", "pdq", "pq",
        "atlantis", "na kika", "mad dog", "thunder horse", "argos",
    )),
    ("Logistics", (
        "logistics", "fourchon", "supply", "port", "base", "transport", "vessel", "cargo",
        "freight", "delivery", "loading", "unloading", "manifest", "warehouse", "storage",
        "inventory", "procurement", "charter", "marine", "offshore", "onshore",
    )),
]

LOCATION_DEPARTMENT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Drilling", (
        "drilling", "drill", "rig", "blackhawk", "blackhorse", "blacklion", "blacktip",
        "stena", "ocean", "deepwater", "invictus", "island", "argos", "venture",
    )),
    ("Production", (
        "atlantis", "na kika", "mad dog", "thunder horse", "production", "prod",
        "pdq", "pq", "facility", "platform",
    )),
    ("Logistics", (
        "fourchon", "port", "base", "supply", "houston", "cameron", "venice",
        "intracoastal", "dock", "wharf", "terminal",
    )),
]

ACTIVITY_DEPARTMENT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Drilling", (
        "drilling", "drill", "rig", "mud", "cementing", "casing", "completion", "workover",
        "logging", "wireline", "coiled tubing", "perforation", "fracturing", "well test",
        "pressure test", "abandon", "plug",
    )),
    ("Production", (
        "production", "processing", "separation", "compression", "pipeline", "flowline",
        "manifold", "subsea", "tree", "export", "treating", "facility", "platform", "riser",
        "umbilical",
    )),
    ("Logistics", (
        "cargo ops", "loading", "unloading", "cargo", "freight", "supply", "transport",
        "vessel", "marine", "manifest", "delivery", "charter", "standby", "transit",
        "ballast", "fuel", "water", "methanol",
    )),
]

# (start, end inclusive, daily rate, description)
VESSEL_COST_RATES = [
    (datetime(2024, 1, 1), datetime(2025, 4, 1), 33000.0, "Jan 2024 - Mar 2025 Rate"),
    (datetime(2025, 4, 1), datetime(2025, 6, 1), 37800.0, "Apr-May 2025 Rate"),
]


@dataclass(frozen=True)
class FluidClassification:
    category: str
    specific_type: Optional[str] = None
    is_drilling_fluid: bool = False
    is_completion_fluid: bool = False


def _text(value: object) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _first_rule(text: str, rules: List[Tuple[Tuple[str, ...], str]]) -> Optional[str]:
    for tokens, label in rules:
        if any(tok in text for tok in tokens):
            return label
    return None


def classify_bulk_fluid(bulk_type: object, description: object = None) -> FluidClassification:
    text = f"{_text(bulk_type)} {_text(description)}".lower()

    if any(k in text for k in DRILLING_FLUID_KEYWORDS):
        return FluidClassification(DRILLING, _first_rule(text, DRILLING_TYPE_RULES), is_drilling_fluid=True)
    if any(k in text for k in COMPLETION_FLUID_KEYWORDS):
        specific = _first_rule(text, COMPLETION_TYPE_RULES)
        if specific == "Calcium Chloride" and "calcium chloride" in text and "bromide" in text:
            specific = "Calcium Chloride/Calcium Bromide"
        return FluidClassification(COMPLETION_INTERVENTION, specific, is_completion_fluid=True)
    if any(k in text for k in PRODUCTION_FLUID_KEYWORDS):
        return FluidClassification(PRODUCTION_CHEMICAL, _first_rule(text, PRODUCTION_TYPE_RULES))

    if "chemical" in text and "drilling" not in text:
        return FluidClassification(PRODUCTION_CHEMICAL)
    if "water" in text and "mud" not in text:
        return FluidClassification(UTILITY)
    if "oil" in text or "fuel" in text or "diesel" in text:
        return FluidClassification(PETROLEUM)
    return FluidClassification(OTHER)


def _includes_any(locations: Iterable[str], reference: List[str]) -> bool:
    refs = [r.lower() for r in reference]
    for loc in locations:
        low = _text(loc).lower()
        if low and any(r in low for r in refs):
            return True
    return False


def includes_production_location(locations: Iterable[str]) -> bool:
    return _includes_any(locations, PRODUCTION_LOCATIONS)


def includes_drilling_location(locations: Iterable[str]) -> bool:
    return _includes_any(locations, DRILLING_LOCATIONS)


def determine_voyage_purpose(locations: Iterable[str]) -> str:
    locations = list(locations)
    production = includes_production_location(locations)
    drilling = includes_drilling_location(locations)
    if production and drilling:
        return "Mixed"
    if production:
        return "Production"
    if drilling:
        return "Drilling"
    return "Other"


_LOCATION_SUFFIXES = [r"\s*\(Drilling\)\s*", r"\s*\(Production\)\s*", r"\s*Drilling\s*", r"\s*Production\s*", r"\s*PQ\s*", r"\s*Prod\s*"]
_LOCATION_ALIASES: Dict[str, set] = {
    "thunder horse": {"thunder horse pdq", "thunder horse prod", "thunder horse production", "thunderhorse", "thunder horse"},
    "mad dog": {"mad dog pdq", "mad dog prod", "mad dog production", "maddog", "mad dog"},
    "atlantis": {"atlantis pq", "atlantis"},
    "na kika": {"na kika", "nakika"},
}


def normalize_location(name: object) -> str:
    """Canonical lowercase key used to compare locations across datasets."""
    norm = _text(name)
    if not norm:
        return ""
    for pattern in _LOCATION_SUFFIXES:
        norm = re.sub(pattern, "", norm, count=1, flags=re.IGNORECASE)
    norm = norm.strip().lower()
    for key, aliases in _LOCATION_ALIASES.items():
        if norm in aliases:
            return key
    return norm


def classify_activity(parent_event: object, event: object) -> str:
    parent = _text(parent_event)
    ev = _text(event)
    if not parent:
        return UNCATEGORIZED
    if not ev:
        if parent in PRODUCTIVE_NULL_EVENT_PARENTS:
            return PRODUCTIVE
        if parent in NON_PRODUCTIVE_PARENTS:
            return NON_PRODUCTIVE
        return NEEDS_REVIEW
    if (parent, ev) in PRODUCTIVE_COMBINATIONS:
        return PRODUCTIVE
    if parent in NON_PRODUCTIVE_PARENTS:
        return NON_PRODUCTIVE
    return UNCATEGORIZED


def _match_department(text: str, table: List[Tuple[str, Tuple[str, ...]]]) -> Optional[str]:
    if not text:
        return None
    for department, keywords in table:
        if any(k in text for k in keywords):
            return department
    return None


def infer_department_from_description(description: object) -> Optional[str]:
    return _match_department(_text(description).lower(), DESCRIPTION_DEPARTMENT_KEYWORDS)


def infer_department_from_location(location: object) -> Optional[str]:
    return _match_department(_text(location).lower(), LOCATION_DEPARTMENT_KEYWORDS)


def infer_department_from_activity(parent_event: object, event: object) -> Optional[str]:
    combined = f"{_text(parent_event).lower()} {_text(event).lower()}".strip()
    return _match_department(combined, ACTIVITY_DEPARTMENT_KEYWORDS)


def parse_lc_allocations(text: object) -> List[Tuple[str, float]]:
    """Parse strings like "9358 45, 10137 12, 10101" into (lc, pct) pairs summing to 100."""
    raw = _text(text)
    if not raw:
        return []
    parts = [p.strip() for p in re.split(r"[,;|]", raw) if p.strip()]
    if not parts:
        return []
    if len(parts) == 1 and " " not in parts[0]:
        return [(parts[0], 100.0)]

    with_pct: List[Tuple[str, float]] = []
    without_pct: List[str] = []
    for part in parts:
        tokens = part.split()
        if len(tokens) == 1:
            without_pct.append(tokens[0])
            continue
        try:
            pct = float(tokens[1])
        except ValueError:
            pct = -1.0
        if 0 <= pct <= 100:
            with_pct.append((tokens[0], pct))
        else:
            without_pct.append(tokens[0])

    total = sum(p for _, p in with_pct)
    remainder = max(0.0, 100.0 - total)
    if without_pct:
        share = remainder / len(without_pct) if remainder > 0 else 0.0
        with_pct.extend((lc, share) for lc in without_pct)
        if remainder > 0:
            total = 100.0

    if abs(total - 100.0) > 0.01 and total > 0:
        factor = 100.0 / total
        with_pct = [(lc, pct * factor) for lc, pct in with_pct]
    return [(lc, round(pct, 2)) for lc, pct in with_pct]


def resolve_department(
    lc_number: str,
    *,
    location: object,
    port_type: object,
    parent_event: object = None,
    event: object = None,
    remarks: object = None,
    lc_departments: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    loc = _text(location)
    port = _text(port_type).lower()
    lc_departments = lc_departments or {}

    department: Optional[str] = None
    if loc == "Fourchon" and lc_number in FOURCHON_LOGISTICS_LCS:
        department = "Logistics"
    elif lc_number and lc_departments.get(lc_number):
        department = lc_departments[lc_number]
    elif lc_number in PRODUCTION_LCS:
        department = "Production"
    if not department and lc_number:
        department = infer_department_from_location(loc)
    if not department:
        department = infer_department_from_activity(parent_event, event)
    if not department:
        department = infer_department_from_description(remarks)
    if not department:
        if port == "rig":
            drill_hint = any("drill" in _text(v).lower() for v in (loc, parent_event, event))
            department = "Drilling" if drill_hint else "Production"
        elif port == "base":
            department = "Logistics"
    return department


def vessel_daily_rate(when: object) -> Tuple[float, str]:
    """Daily vessel rate for a date; dates outside every period get the latest rate."""
    ts = pd.to_datetime(when, errors="coerce")
    if not pd.isna(ts):
        ts = ts.to_pydatetime().replace(tzinfo=None)
        for start, end, rate, desc in VESSEL_COST_RATES:
            if start <= ts <= end:
                return rate, desc
    _, _, rate, desc = VESSEL_COST_RATES[-1]
    logger.warning("no vessel rate period for %r, using %s", when, desc)
    return rate, f"{desc} (Fallback)"
