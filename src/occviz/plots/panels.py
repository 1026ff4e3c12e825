# occviz/plots/panels.py
# Multi-panel composition: lay several single-axes plotting calls out on one
# figure, tag them A, B, C..., and optionally pool their legends.

from __future__ import annotations
from typing import Callable, List, Optional, Sequence, Tuple
import string

import numpy as np
import matplotlib.pyplot as plt

from ..utils import PlotTheme, DEFAULT_THEME

__all__ = ["panel_tags", "compose_panels"]

PanelFn = Callable[..., object]


def panel_tags(n: int, style: str = "upper") -> List[str]:
    """'A','B',… ('upper'), 'a','b',… ('lower') or '1','2',… ('number')."""
    if style == "number":
        return [str(i + 1) for i in range(n)]
    letters = string.ascii_uppercase if style == "upper" else string.ascii_lowercase
    out = []
    for i in range(n):
        tag = ""
        k = i
        while True:
            tag = letters[k % 26] + tag
            k = k // 26 - 1
            if k < 0:
                break
        out.append(tag)
    return out


def compose_panels(
    panels: Sequence[PanelFn],
    *,
    ncols: int = 2,
    nrows: Optional[int] = None,
    figsize: Optional[Tuple[float, float]] = None,
    theme: PlotTheme = DEFAULT_THEME,
    tags: Optional[str] = "upper",
    sharex: bool = False,
    sharey: bool = False,
    width_ratios: Optional[Sequence[float]] = None,
    shared_legend: bool = False,
    suptitle: Optional[str] = None,
):
    """
    Build a grid figure and call each panel function with ``ax=<its axes>``.

    Each entry of `panels` is a callable taking an ``ax`` keyword, typically a
    ``functools.partial`` of a plotting function from this package, e.g.
    ``partial(elevation_scatter, table, hue="species")``.

    shared_legend : collect unique legend entries from all panels into a single
        legend below the grid and remove the per-panel legends.

    Returns
    -------
    (fig, axes)  axes is a flat list of the used axes; unused grid cells are removed.
    """
    n = len(panels)
    if n == 0:
        raise ValueError("compose_panels needs at least one panel.")
    ncols = max(1, min(ncols, n))
    nrows = nrows or int(np.ceil(n / ncols))
    if nrows * ncols < n:
        raise ValueError(f"{nrows}x{ncols} grid cannot hold {n} panels.")
    if figsize is None:
        w, h = theme.figsize
        figsize = (w * ncols * 0.75, h * nrows * 0.75)

    with plt.rc_context(theme.rc()):
        fig, axes = plt.subplots(
            nrows, ncols, figsize=figsize, dpi=theme.dpi,
            sharex=sharex, sharey=sharey, squeeze=False,
            gridspec_kw={"width_ratios": width_ratios} if width_ratios else None,
            constrained_layout=True,
        )
        flat = list(axes.ravel())
        for fn, ax in zip(panels, flat):
            fn(ax=ax)
        for ax in flat[n:]:
            ax.remove()
        used = flat[:n]

        if tags:
            for tag, ax in zip(panel_tags(n, tags), used):
                ax.text(
                    -0.08, 1.04, tag, transform=ax.transAxes,
                    fontsize=theme.title_size, fontweight="bold", ha="right", va="bottom",
                )

        if shared_legend:
            handles, labels = [], []
            for ax in used:
                for hnd, lab in zip(*ax.get_legend_handles_labels()):
                    if lab not in labels and not lab.startswith("_"):
                        handles.append(hnd)
                        labels.append(lab)
                leg = ax.get_legend()
                if leg is not None:
                    leg.remove()
            if handles:
                fig.legend(handles, labels, loc="outside lower center", ncols=min(len(labels), 4), fontsize="small")

        if suptitle:
            fig.suptitle(suptitle)
    return fig, used
