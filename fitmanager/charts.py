"""Plotly figures for the metric pages and the dashboard."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np
import plotly.graph_objects as go

from .models import DayPoint, MacroPoint

MACRO_COLORS = {"protein": "#3b82f6", "carbs": "#10b981", "fats": "#f59e0b"}
NO_DATA_TEXT = "No data available"


def empty_figure(title: str) -> go.Figure:
    """Explicit no-data state: a titled figure with a centered note and no traces."""
    fig = go.Figure()
    fig.update_layout(
        title=title,
        template="plotly_white",
        xaxis={"visible": False},
        yaxis={"visible": False},
        annotations=[{"text": NO_DATA_TEXT, "showarrow": False, "xref": "paper", "yref": "paper", "x": 0.5, "y": 0.5}],
    )
    return fig


def autoscale_y(values: Sequence[float], floor: Optional[float] = None) -> Tuple[float, float]:
    """
    Padded y-range around the values; never narrower than 2 units.

    >>> autoscale_y([])
    (0.0, 1.0)
    >>> autoscale_y([70.0, 72.0])
    (69.0, 73.0)
    """
    vals = np.asarray(values, dtype=float)
    vals = vals[~np.isnan(vals)]
    if vals.size == 0:
        return 0.0, 1.0
    y_min = float(np.min(vals))
    y_max = float(np.max(vals))
    rng = y_max - y_min
    pad = 2.0 if rng <= 0.0 else max(1.0, 0.05 * rng)
    y0 = y_min - pad
    y1 = y_max + pad
    if floor is not None:
        y0 = max(floor, y0)
    if y1 - y0 < 2.0:
        mid = 0.5 * (y0 + y1)
        y0, y1 = mid - 1.0, mid + 1.0
    return y0, y1


def make_weight_chart(points: List[DayPoint], target_weight: Optional[float] = None) -> go.Figure:
    if not points:
        return empty_figure("Daily Weights")
    x = [p.day for p in points]
    y = [p.value for p in points]
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=x, y=y, mode="lines+markers", name="Weight", hovertemplate="%{x|%Y-%m-%d}: %{y:.1f} kg"))
    range_values = list(y)
    if target_weight:
        fig.add_hline(y=target_weight, line_dash="dash", line_color="#10b981", annotation_text="Target")
        range_values.append(float(target_weight))
    y0, y1 = autoscale_y(range_values, floor=0.0)
    fig.update_layout(
        title="Daily Weights",
        xaxis_title="Date",
        yaxis_title="Weight (kg)",
        yaxis={"range": [y0, y1]},
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


def make_hydration_chart(points: List[DayPoint]) -> go.Figure:
    if not points:
        return empty_figure("Daily Totals")
    fig = go.Figure()
    fig.add_trace(go.Bar(x=[p.day for p in points], y=[p.value for p in points], marker_color="#3b82f6", name="Water"))
    fig.update_layout(
        title="Daily Totals",
        xaxis_title="Date",
        yaxis_title="Water (ml)",
        template="plotly_white",
    )
    return fig


def make_macros_chart(points: List[MacroPoint]) -> go.Figure:
    if not points:
        return empty_figure("Macros Trend")
    x = [p.timestamp for p in points]
    fig = go.Figure()
    for name, color in MACRO_COLORS.items():
        fig.add_trace(go.Scatter(
            x=x,
            y=[getattr(p, name) for p in points],
            mode="lines+markers",
            name=name.capitalize(),
            line={"color": color, "width": 2},
        ))
    fig.update_layout(
        title="Macros Trend",
        xaxis_title="Logged at",
        yaxis_title="Grams",
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


def make_macros_pie(triple: dict, has_data: bool = True) -> go.Figure:
    if not has_data:
        return empty_figure("Macros")
    labels = [name.capitalize() for name in MACRO_COLORS]
    values = [float(triple.get(name, 0.0)) for name in MACRO_COLORS]
    fig = go.Figure(go.Pie(labels=labels, values=values, marker={"colors": list(MACRO_COLORS.values())}))
    fig.update_layout(title="Macros", template="plotly_white")
    return fig
