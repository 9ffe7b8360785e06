from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt

alt.data_transformers.disable_max_rows()

DEFAULT_HEIGHT = 260


def to_vega_spec(chart: alt.Chart, height: Optional[int] = DEFAULT_HEIGHT) -> Dict[str, Any]:
    """Altair chart -> Vega-Lite dict with a fixed height so dashboard cards line up."""
    if height is not None:
        chart = chart.properties(height=height)
    return chart.to_dict()
