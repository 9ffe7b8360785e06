"""Core (UI-agnostic) logistics dashboard logic.

This package contains:
- upload validation and spreadsheet ingestion (XLSX/CSV -> pandas)
- fluid, voyage, activity and department classification
- filter normalization and pagination
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
