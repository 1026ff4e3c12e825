# occviz/plots/distributions.py
# Per-group distributions (box / violin) of a numeric column, with pairwise
# significance brackets computed by scipy.stats.

from __future__ import annotations
from typing import Dict, Any, Optional, List, Sequence, Tuple
from itertools import combinations

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from scipy import stats

from ..utils import PlotTheme, DEFAULT_THEME, new_axes, group_colors, style_get

__all__ = [
    "PAIRWISE_TESTS",
    "P_THRESHOLDS",
    "p_to_label",
    "compare_groups",
    "omnibus_test",
    "add_significance_brackets",
    "elevation_by_group",
]

PAIRWISE_TESTS = ("mannwhitney", "ttest")

# (upper bound, label), checked in order; same cut-offs as ggpubr/statannotations
P_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (1e-4, "****"),
    (1e-3, "***"),
    (1e-2, "**"),
    (5e-2, "*"),
)


def p_to_label(p: float, *, fmt: str = "stars") -> str:
    """Format a p-value: 'stars' -> '*'.. '****' / 'ns'; 'numeric' -> 'p = 0.012'."""
    if p is None or not np.isfinite(p):
        return "n/a"
    if fmt == "numeric":
        return "p < 0.0001" if p < 1e-4 else f"p = {p:.2g}"
    for bound, lab in P_THRESHOLDS:
        if p <= bound:
            return lab
    return "ns"


def _group_values(table: pd.DataFrame, group: str, value: str) -> Dict[Any, np.ndarray]:
    for c in (group, value):
        if c not in table:
            raise KeyError(f"[distributions] column '{c}' not in table")
    out: Dict[Any, np.ndarray] = {}
    for key, g in table.groupby(group, sort=True, dropna=True):
        v = pd.to_numeric(g[value], errors="coerce").to_numpy(dtype=float, na_value=np.nan)
        out[key] = v[np.isfinite(v)]
    return out


def _pairwise(a: np.ndarray, b: np.ndarray, test: str) -> Tuple[float, float]:
    if test == "mannwhitney":
        res = stats.mannwhitneyu(a, b, alternative="two-sided")
    elif test == "ttest":
        res = stats.ttest_ind(a, b, equal_var=False)
    else:
        raise ValueError(f"Unknown test {test!r}; choose one of {PAIRWISE_TESTS}.")
    return float(res.statistic), float(res.pvalue)


def compare_groups(
    table: pd.DataFrame,
    *,
    group: str = "species",
    value: str = "elevation",
    pairs: Optional[Sequence[Tuple[Any, Any]]] = None,
    test: str = "mannwhitney",
    correction: Optional[str] = None,
    min_n: int = 2,
) -> pd.DataFrame:
    """
    Pairwise two-sample tests of `value` between groups.

    pairs : list of (a, b), optional
        Defaults to every pair of groups, in sorted order.
    correction : None | "bonferroni"
        Multiply p-values by the number of comparisons (capped at 1).

    Returns a DataFrame with columns group1, group2, n1, n2, statistic,
    pvalue, label. Pairs where either side has fewer than `min_n` values get
    NaN statistic/p-value and label 'n/a'.
    """
    if test not in PAIRWISE_TESTS:
        raise ValueError(f"Unknown test {test!r}; choose one of {PAIRWISE_TESTS}.")
    vals = _group_values(table, group, value)
    if pairs is None:
        pairs = list(combinations(vals.keys(), 2))

    rows: List[Dict[str, Any]] = []
    for a, b in pairs:
        if a not in vals or b not in vals:
            missing = [k for k in (a, b) if k not in vals]
            raise KeyError(f"[distributions] group(s) {missing} not found in '{group}'")
        va, vb = vals[a], vals[b]
        if va.size < min_n or vb.size < min_n:
            stat, p = np.nan, np.nan
        else:
            stat, p = _pairwise(va, vb, test)
        rows.append(dict(group1=a, group2=b, n1=va.size, n2=vb.size, statistic=stat, pvalue=p))

    out = pd.DataFrame(rows, columns=["group1", "group2", "n1", "n2", "statistic", "pvalue"])
    if correction == "bonferroni":
        out["pvalue"] = np.minimum(out["pvalue"] * max(len(out), 1), 1.0)
    elif correction is not None:
        raise ValueError(f"Unknown correction {correction!r}; use None or 'bonferroni'.")
    out["label"] = [p_to_label(p) for p in out["pvalue"]]
    out.attrs["test"] = test
    return out


def omnibus_test(
    table: pd.DataFrame,
    *,
    group: str = "species",
    value: str = "elevation",
    test: str = "kruskal",
) -> Tuple[float, float]:
    """Across-all-groups test: 'kruskal' (Kruskal-Wallis H) or 'anova' (one-way F)."""
    samples = [v for v in _group_values(table, group, value).values() if v.size > 0]
    if len(samples) < 2:
        raise ValueError("omnibus_test needs at least two non-empty groups.")
    if test == "kruskal":
        res = stats.kruskal(*samples)
    elif test == "anova":
        res = stats.f_oneway(*samples)
    else:
        raise ValueError(f"Unknown omnibus test {test!r}; use 'kruskal' or 'anova'.")
    return float(res.statistic), float(res.pvalue)


def add_significance_brackets(
    ax,
    results: pd.DataFrame,
    positions: Dict[Any, float],
    *,
    y_start: Optional[float] = None,
    step: Optional[float] = None,
    tip: Optional[float] = None,
    hide_ns: bool = False,
    label_fmt: str = "stars",
    fontsize: float = 9,
    color: str = "0.15",
) -> int:
    """
    Draw one bracket per row of `results` (from compare_groups) above the data.

    positions maps group -> x coordinate on `ax`. Brackets are stacked upward,
    shortest span first, so they do not cross. Returns the number drawn.
    """
    if results.empty:
        return 0
    ymin, ymax = ax.get_ylim()
    span = (ymax - ymin) or 1.0
    y = ymax if y_start is None else y_start
    step = 0.08 * span if step is None else step
    tip = 0.02 * span if tip is None else tip

    rows = results.copy()
    rows["_x1"] = [positions[g] for g in rows["group1"]]
    rows["_x2"] = [positions[g] for g in rows["group2"]]
    rows["_w"] = (rows["_x2"] - rows["_x1"]).abs()
    rows = rows.sort_values("_w", kind="stable")

    n = 0
    for _, r in rows.iterrows():
        text = p_to_label(r["pvalue"], fmt=label_fmt)
        if hide_ns and text in ("ns", "n/a"):
            continue
        x1, x2 = sorted((r["_x1"], r["_x2"]))
        y += step
        ax.plot([x1, x1, x2, x2], [y - tip, y, y, y - tip], lw=1.0, color=color, clip_on=False)
        ax.text((x1 + x2) / 2.0, y, text, ha="center", va="bottom", fontsize=fontsize, color=color)
        n += 1
    if n:
        ax.set_ylim(ymin, max(ymax, y + step))
    return n


def elevation_by_group(
    table: pd.DataFrame,
    *,
    group: str = "species",
    value: str = "elevation",
    kind: str = "box",
    order: Optional[Sequence[Any]] = None,
    points: bool = True,
    comparisons: Optional[Sequence[Tuple[Any, Any]]] = None,
    test: str = "mannwhitney",
    hide_ns: bool = False,
    ax=None,
    theme: PlotTheme = DEFAULT_THEME,
    styles: Optional[Dict[str, Dict[str, Any]]] = None,
    title: Optional[str] = None,
    random_seed: Optional[int] = 12345,
    verbose: bool = False,
):
    """
    Box or violin plot of `value` per `group`, optionally overlaid with jittered
    points and significance brackets.

    comparisons : list of (a, b) or "all", optional
        Pairs to test and annotate; None draws no brackets.

    Returns
    -------
    (fig, ax, results)  results is the compare_groups DataFrame or None.
    """
    if kind not in ("box", "violin"):
        raise ValueError("kind must be 'box' or 'violin'.")
    vals = _group_values(table, group, value)
    keys = list(order) if order is not None else list(vals.keys())
    keys = [k for k in keys if k in vals and vals[k].size > 0]
    if not keys:
        raise ValueError(f"[distributions] no finite '{value}' values to plot.")
    data = [vals[k] for k in keys]
    pos = np.arange(1, len(keys) + 1, dtype=float)
    colors = group_colors(keys, theme.cmap if styles is None else None)

    with plt.rc_context(theme.rc()):
        fig, ax = new_axes(ax, theme)
        if kind == "box":
            bp = ax.boxplot(data, positions=pos, widths=0.55, patch_artist=True, showfliers=not points)
            for patch, k in zip(bp["boxes"], keys):
                patch.set_facecolor(style_get(k, styles, "color", colors[k]))
                patch.set_alpha(0.55)
            for med in bp["medians"]:
                med.set_color("0.1")
        else:
            vp = ax.violinplot(data, positions=pos, widths=0.8, showmedians=True)
            for body, k in zip(vp["bodies"], keys):
                body.set_facecolor(style_get(k, styles, "color", colors[k]))
                body.set_alpha(0.5)

        if points:
            rng = np.random.default_rng(random_seed)
            for p, v, k in zip(pos, data, keys):
                jitter = rng.uniform(-0.15, 0.15, size=v.size)
                ax.scatter(
                    p + jitter, v, s=theme.point_size * 0.6,
                    color=style_get(k, styles, "color", colors[k]),
                    alpha=theme.point_alpha, edgecolors="0.2", linewidths=0.3, zorder=3,
                )

        ax.set_xticks(pos)
        ax.set_xticklabels([str(k) for k in keys], rotation=20, ha="right")
        ax.set_xlabel(group.replace("_", " ").capitalize())
        ax.set_ylabel(f"{value.capitalize()} (m)" if value == "elevation" else value.replace("_", " ").capitalize())
        if title:
            ax.set_title(title)

        results = None
        if comparisons is not None:
            pairs = None if comparisons == "all" else list(comparisons)
            sub = table[table[group].isin(keys)]
            results = compare_groups(sub, group=group, value=value, pairs=pairs, test=test)
            positions = {k: p for k, p in zip(keys, pos)}
            n = add_significance_brackets(ax, results, positions, hide_ns=hide_ns)
            if verbose:
                print(f"[distributions] {test}: drew {n} bracket(s)")
                for _, r in results.iterrows():
                    print(f"  {r['group1']} vs {r['group2']}: p={r['pvalue']:.3g} ({r['label']})")
    return fig, ax, results
