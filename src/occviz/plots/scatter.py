# occviz/plots/scatter.py
# Layered scatter plots of occurrence records, plus the annotation and
# highlighting layers (labels, confidence ellipses, rectangles) drawn on top.

from __future__ import annotations
from typing import Dict, Any, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.patches import Ellipse, Rectangle
from matplotlib.colors import to_rgba
import matplotlib.transforms as mtransforms

from ..regions import box_polygon, polygon_mask
from ..utils import PlotTheme, DEFAULT_THEME, new_axes, group_colors, style_get, finite_xy

__all__ = [
    "elevation_scatter",
    "annotate_points",
    "confidence_ellipse",
    "highlight_group_ellipse",
    "highlight_rectangle",
]


def elevation_scatter(
    table: pd.DataFrame,
    *,
    x: str = "longitude",
    y: str = "elevation",
    hue: Optional[str] = "species",
    size: Optional[str] = None,
    trend: bool = False,
    ax=None,
    theme: PlotTheme = DEFAULT_THEME,
    styles: Optional[Dict[str, Dict[str, Any]]] = None,
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
    legend: bool = True,
    verbose: bool = False,
):
    """
    Scatter `y` against `x`, one layer per `hue` group.

    Parameters
    ----------
    table : pd.DataFrame
        Cleaned occurrence table.
    x, y : str
        Column names (e.g. 'longitude' / 'elevation', or 'month' / 'elevation').
    hue : str, optional
        Column used to split and colour layers. None draws a single layer.
    size : str, optional
        Numeric column scaled to marker area (e.g. 'individual_count').
    trend : bool
        Add a least-squares line per group (groups with < 2 distinct x are skipped).
    styles : dict, optional
        Per-group overrides, e.g. ``{"Bufo bufo": {"color": "C3", "marker": "^"}}``.

    Returns
    -------
    (fig, ax)
    """
    for c in (x, y) + ((hue,) if hue else ()) + ((size,) if size else ()):
        if c not in table:
            raise KeyError(f"[scatter] column '{c}' not in table")

    with plt.rc_context(theme.rc()):
        fig, ax = new_axes(ax, theme)
        if hue:
            groups = [(k, g) for k, g in table.groupby(hue, sort=True, dropna=True)]
        else:
            groups = [(None, table)]
        colors = group_colors([k for k, _ in groups])

        sizes = None
        if size:
            s = pd.to_numeric(table[size], errors="coerce").to_numpy(dtype=float, na_value=np.nan)
            smax = np.nanmax(s) if np.isfinite(s).any() else 1.0
            sizes = pd.Series(
                theme.point_size * (0.5 + 2.5 * np.nan_to_num(s, nan=0.0) / (smax or 1.0)),
                index=table.index,
            )

        for key, g in groups:
            color = style_get(key, styles, "color", colors[key])
            marker = style_get(key, styles, "marker", "o")
            s = sizes.loc[g.index].to_numpy() if sizes is not None else theme.point_size
            ax.scatter(
                g[x], g[y],
                s=s, c=[color], marker=marker,
                alpha=theme.point_alpha, edgecolors="none",
                label=None if key is None else str(key),
            )
            if trend:
                gx, gy = finite_xy(g[x], g[y])
                if np.unique(gx).size < 2:
                    if verbose:
                        print(f"[scatter] trend skipped for {key!r}: fewer than 2 distinct x")
                    continue
                slope, intercept = np.polyfit(gx, gy, 1)
                xx = np.linspace(gx.min(), gx.max(), 50)
                ax.plot(xx, slope * xx + intercept, color=color, lw=1.5)
                if verbose:
                    print(f"[scatter] trend {key!r}: y = {slope:.3g}·x + {intercept:.3g}")

        ax.set_xlabel(xlabel or x.replace("_", " ").capitalize())
        ax.set_ylabel(ylabel or (f"{y.capitalize()} (m)" if y == "elevation" else y.replace("_", " ").capitalize()))
        if title:
            ax.set_title(title)
        if legend and hue and groups:
            ax.legend(title=hue.replace("_", " ").capitalize(), fontsize="small", markerscale=1.2)
    return fig, ax


def annotate_points(
    ax,
    table: pd.DataFrame,
    *,
    x: str = "longitude",
    y: str = "elevation",
    label: str = "id",
    where: Optional[np.ndarray] = None,
    max_labels: int = 20,
    offset: Tuple[float, float] = (6, 6),
    arrows: bool = True,
    fontsize: float = 8,
) -> int:
    """
    Write `label` next to selected points. `where` is a boolean mask over
    `table` rows (default: all). Returns the number of labels drawn.
    """
    sel = table if where is None else table[np.asarray(where, dtype=bool)]
    sel = sel.head(max_labels)
    arrowprops = dict(arrowstyle="-", lw=0.6, color="0.3") if arrows else None
    n = 0
    for _, row in sel.iterrows():
        if pd.isna(row[x]) or pd.isna(row[y]):
            continue
        ax.annotate(
            str(row[label]),
            xy=(row[x], row[y]),
            xytext=offset,
            textcoords="offset points",
            fontsize=fontsize,
            arrowprops=arrowprops,
        )
        n += 1
    return n


def confidence_ellipse(
    ax,
    x: Sequence[float],
    y: Sequence[float],
    *,
    n_std: float = 2.0,
    facecolor: str = "none",
    **kwargs,
) -> Ellipse:
    """
    Covariance ellipse of (x, y), `n_std` standard deviations wide, added to `ax`.

    The ellipse is built on the Pearson correlation in a unit frame, then
    scaled by each axis' std and moved to the means.
    """
    x, y = finite_xy(x, y)
    if x.size < 3:
        raise ValueError("confidence_ellipse needs at least 3 finite points.")
    cov = np.cov(x, y)
    denom = np.sqrt(cov[0, 0] * cov[1, 1])
    pearson = cov[0, 1] / denom if denom > 0 else 0.0
    rx = np.sqrt(1 + pearson)
    ry = np.sqrt(1 - pearson)
    ellipse = Ellipse((0, 0), width=rx * 2, height=ry * 2, facecolor=facecolor, **kwargs)

    sx = np.sqrt(cov[0, 0]) * n_std
    sy = np.sqrt(cov[1, 1]) * n_std
    tf = (
        mtransforms.Affine2D()
        .rotate_deg(45)
        .scale(sx, sy)
        .translate(float(np.mean(x)), float(np.mean(y)))
    )
    ellipse.set_transform(tf + ax.transData)
    ax.add_patch(ellipse)
    return ellipse


def highlight_group_ellipse(
    ax,
    table: pd.DataFrame,
    *,
    group_col: str,
    group: Any,
    x: str = "longitude",
    y: str = "elevation",
    n_std: float = 2.0,
    color: str = "crimson",
    fill_alpha: float = 0.12,
) -> Ellipse:
    """Shade the covariance ellipse of one group (e.g. one species)."""
    g = table[table[group_col] == group]
    if g.empty:
        raise KeyError(f"[scatter] no rows with {group_col} == {group!r}")
    return confidence_ellipse(
        ax, g[x], g[y], n_std=n_std,
        facecolor=to_rgba(color, fill_alpha), edgecolor=color, lw=1.5, ls="--",
    )


def highlight_rectangle(
    ax,
    bounds: Tuple[float, float, float, float],
    *,
    table: Optional[pd.DataFrame] = None,
    x: str = "longitude",
    y: str = "elevation",
    color: str = "darkorange",
    label: Optional[str] = None,
    lw: float = 1.5,
) -> int:
    """
    Outline the box (xmin, ymin, xmax, ymax) on `ax`. If `table` is given,
    returns how many of its points fall in the box (edges included) and
    appends the count to the label; otherwise returns 0.
    """
    poly = box_polygon(bounds)
    xmin, ymin, xmax, ymax = poly.bounds
    n = 0
    if table is not None:
        n = int(polygon_mask(table, poly, x=x, y=y).sum())
    text = label
    if table is not None:
        text = f"{label} (n={n})" if label else f"n={n}"
    ax.add_patch(Rectangle(
        (xmin, ymin), xmax - xmin, ymax - ymin,
        fill=False, edgecolor=color, lw=lw, ls="-",
    ))
    if text:
        ax.text(xmin, ymax, text, color=color, fontsize=8, ha="left", va="bottom")
    return n
