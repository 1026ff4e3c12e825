# occviz/plots/timeseries.py
from __future__ import annotations
from typing import Optional, List

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from ..io import filter_time
from ..utils import PlotTheme, DEFAULT_THEME, new_axes, group_colors

__all__ = ["monthly_table", "monthly_counts"]

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def monthly_table(
    table: pd.DataFrame,
    *,
    by: Optional[str] = "year",
    weight: Optional[str] = None,
) -> pd.DataFrame:
    """
    Records (or summed `weight`, e.g. individual_count) per month, one column per `by` value.
    Index is 1..12; months without records are 0.
    """
    if "month" not in table:
        raise KeyError("[timeseries] table has no 'month' column")
    df = table.dropna(subset=["month"])
    w = (
        pd.to_numeric(df[weight], errors="coerce").fillna(0)
        if weight else pd.Series(1, index=df.index)
    )
    keys = [df["month"].astype(int)]
    if by:
        keys.append(df[by])
    counts = w.groupby(keys).sum()
    wide = counts.unstack(by) if by else counts.to_frame("records")
    return wide.reindex(range(1, 13)).fillna(0)


def monthly_counts(
    table: pd.DataFrame,
    *,
    by: Optional[str] = "year",
    weight: Optional[str] = None,
    months: Optional[List[int]] = None,
    years: Optional[List[int]] = None,
    stacked: bool = False,
    ax=None,
    theme: PlotTheme = DEFAULT_THEME,
    title: Optional[str] = None,
):
    """Bar chart of records per calendar month, grouped (or stacked) by `by`."""
    sub = filter_time(table, months=months, years=years)
    wide = monthly_table(sub, by=by, weight=weight)
    cols = list(wide.columns)
    colors = group_colors(cols, theme.cmap if len(cols) > 10 else None)

    with plt.rc_context(theme.rc()):
        fig, ax = new_axes(ax, theme)
        x = np.arange(1, 13, dtype=float)
        n = max(len(cols), 1)
        width = 0.8 if stacked else 0.8 / n
        bottom = np.zeros(12)
        for i, c in enumerate(cols):
            h = wide[c].to_numpy(dtype=float)
            if stacked:
                ax.bar(x, h, width=width, bottom=bottom, color=colors[c], label=str(c))
                bottom += h
            else:
                ax.bar(x - 0.4 + width * (i + 0.5), h, width=width, color=colors[c], label=str(c))
        ax.set_xticks(x)
        ax.set_xticklabels(MONTH_NAMES)
        ax.set_ylabel(f"Sum of {weight.replace('_', ' ')}" if weight else "Records")
        if title:
            ax.set_title(title)
        if by and cols:
            ax.legend(title=by.replace("_", " ").capitalize(), fontsize="small")
    return fig, ax
