from __future__ import annotations
"""
Utilities.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Tuple, Optional, Dict, Any, List, Sequence
import os
import numpy as np
import matplotlib.pyplot as plt


# ---- plot theme ----
@dataclass(frozen=True)
class PlotTheme:
    """
    Figure styling passed explicitly to each plotting function.

    Nothing here touches matplotlib's global rcParams; `rc()` is meant for
    ``plt.rc_context(theme.rc())`` around figure construction.
    """

    figsize: Tuple[float, float] = (7.0, 4.5)
    dpi: int = 100
    font_size: float = 10.0
    title_size: float = 12.0
    cmap: str = "viridis"
    grid: bool = True
    point_size: float = 18.0
    point_alpha: float = 0.8
    spines: Tuple[str, ...] = ("left", "bottom")
    extra_rc: Dict[str, Any] = field(default_factory=dict)

    def rc(self) -> Dict[str, Any]:
        rc = {
            "figure.figsize": self.figsize,
            "figure.dpi": self.dpi,
            "font.size": self.font_size,
            "axes.titlesize": self.title_size,
            "axes.labelsize": self.font_size,
            "axes.grid": self.grid,
            "grid.alpha": 0.3,
            "image.cmap": self.cmap,
            "legend.frameon": False,
        }
        for side in ("left", "right", "top", "bottom"):
            rc[f"axes.spines.{side}"] = side in self.spines
        rc.update(self.extra_rc)
        return rc

    def with_(self, **changes) -> "PlotTheme":
        """Copy with some fields changed."""
        return replace(self, **changes)


DEFAULT_THEME = PlotTheme()


def new_axes(ax=None, theme: Optional[PlotTheme] = None):
    """Return (fig, ax): the given axes and its figure, or a fresh themed pair."""
    if ax is not None:
        return ax.figure, ax
    theme = theme or DEFAULT_THEME
    with plt.rc_context(theme.rc()):
        fig, ax = plt.subplots(figsize=theme.figsize, dpi=theme.dpi)
    return fig, ax


def robust_clims(a: Iterable[float], q: Tuple[float, float] = (5, 95)) -> tuple[float, float]:
    """
    Robust color limits from percentiles; handles NaNs and constant arrays.
    """
    arr = np.asarray(a, dtype=float).ravel()
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return 0.0, 1.0
    lo, hi = np.nanpercentile(arr, q)
    if lo == hi:
        hi = lo + (abs(lo) if lo != 0 else 1.0)
    return float(lo), float(hi)


def style_get(key_value: str, styles: Optional[Dict[str, Dict[str, Any]]], key: str, default=None):
    """Lookup styles[key_value][key] with a safe default (e.g. styles['Bufo bufo']['color'])."""
    if not styles:
        return default
    s = styles.get(key_value)
    if not s:
        return default
    return s.get(key, default)


def group_colors(labels: Sequence[Any], cmap: Optional[str] = None) -> Dict[Any, Any]:
    """Stable label -> colour map: the current property cycle, or samples of `cmap`."""
    labels = list(dict.fromkeys(labels))
    if cmap:
        cm = plt.get_cmap(cmap)
        n = max(len(labels) - 1, 1)
        return {lab: cm(i / n) for i, lab in enumerate(labels)}
    cycle = plt.rcParams["axes.prop_cycle"].by_key().get("color", []) or [f"C{i}" for i in range(10)]
    return {lab: cycle[i % len(cycle)] for i, lab in enumerate(labels)}


# ---- output folders ----
def file_prefix(base_dir: str) -> str:
    return os.path.basename(os.path.normpath(base_dir))


def out_dir(base_dir: str, figures_root: str, subdir: Optional[str] = None) -> str:
    """
    Return an output directory and ensure it exists.

    Base path:
        FIG_DIR/<basename(BASE_DIR)>/

    `subdir` (e.g. 'scatter', 'maps') appends a folder:
        FIG_DIR/<basename(BASE_DIR)>/<subdir>/

    The environment variable OCCVIZ_PLOT_SUBDIR overrides `subdir`.
      - If set to a non-empty value -> use that subfolder name.
      - If set to an empty string   -> disable subfoldering (use base).
    """
    folder = file_prefix(base_dir)
    base = os.path.join(figures_root, folder)
    os.makedirs(base, exist_ok=True)

    env = os.environ.get("OCCVIZ_PLOT_SUBDIR", None)
    if env is not None:
        subdir = env.strip() or None

    if subdir:
        d = os.path.join(base, subdir)
        os.makedirs(d, exist_ok=True)
        return d
    return base


def save_figure(
    fig,
    stem: str,
    *,
    base_dir: str,
    figures_root: str,
    formats: Sequence[str] = ("png",),
    dpis: Sequence[int] = (150,),
    subdir: Optional[str] = None,
    close: bool = True,
    verbose: bool = False,
) -> List[str]:
    """
    Write `fig` once per (format, dpi) pair and return the paths written.

    Filenames: <prefix>__<stem>__<dpi>dpi.<fmt>, where prefix is basename(base_dir).
    Vector formats (pdf, svg, eps) ignore dpi for their line art, but embedded
    rasters still honour it, so every pair is written.
    """
    if not formats or not dpis:
        raise ValueError("save_figure needs at least one format and one dpi.")
    outdir = out_dir(base_dir, figures_root, subdir)
    prefix = file_prefix(base_dir)
    paths: List[str] = []
    for fmt in formats:
        fmt = fmt.lower().lstrip(".")
        for dpi in dpis:
            fname = os.path.join(outdir, f"{prefix}__{stem}__{int(dpi)}dpi.{fmt}")
            fig.savefig(fname, dpi=int(dpi), format=fmt, bbox_inches="tight")
            paths.append(fname)
            if verbose:
                print(f"[export] Saved {fname}")
    if close:
        plt.close(fig)
    return paths


# ---- labels for titles / filenames ----
def build_time_window_label(
    months: Optional[Iterable[int]],
    years: Optional[Iterable[int]],
    start_date: Optional[str],
    end_date: Optional[str],
) -> str:
    """e.g., 'Jan-Mar__2020-2021' or '2022-01-01 to 2022-02-01' or 'AllTime'."""
    names = ["Jan","Feb","Mar","Apr","May","Jun","Jul","Aug","Sep","Oct","Nov","Dec"]
    parts: list[str] = []
    if months:
        m = sorted({int(x) for x in months})
        if len(m) > 1 and m == list(range(m[0], m[-1] + 1)):
            parts.append(f"{names[m[0]-1]}-{names[m[-1]-1]}")
        else:
            parts.append("-".join(names[i-1] for i in m))
    if years:
        y = sorted({int(x) for x in years})
        parts.append(f"{y[0]}-{y[-1]}" if len(y) > 1 else f"{y[0]}")
    if start_date or end_date:
        parts.append(f"{start_date or '...'} to {end_date or '...'}")
    return "__".join(parts) if parts else "AllTime"


def finite_xy(x, y) -> tuple[np.ndarray, np.ndarray]:
    """Flatten x,y and drop pairs where either is non-finite."""
    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    m = np.isfinite(x) & np.isfinite(y)
    return x[m], y[m]
