# occviz/plot.py

"""
Console helpers for the workshop script and example runners.

This module centralizes:
- pretty printing (hr, info, bullet, kv)
- file discovery summaries
- plotting wrapper (passes verbose=True when supported)
- table / cleaning summary printers
- path existence checks for region specs

Keep these functions generic so any example script can reuse them.
"""

from __future__ import annotations
from typing import Any, Dict, List, Tuple
import os
import textwrap
import inspect
import contextlib
import pandas as pd

from .io import discover_paths
from .clean import CleanResult


# ---------------------------
# Pretty printing utilities
# ---------------------------
def hr(char: str = "=", width: int = 78) -> str:
    """Horizontal rule."""
    return char * width


def info(title: str) -> None:
    """Section header."""
    print()
    print(hr("="))
    print(title)
    print(hr("-"))


def bullet(msg: str, indent: int = 2) -> None:
    """Indented, wrapped bullet text."""
    pad = " " * indent
    for line in textwrap.dedent(str(msg)).rstrip().splitlines():
        print(pad + line)


def kv(label: str, value: Any) -> None:
    """Key: Value printing with basic alignment."""
    print(f"  - {label:<18} {value}")


# ---------------------------
# File discovery summary
# ---------------------------
def list_files(base_dir: str, pattern: str) -> List[str]:
    """Use package discovery to list files; warns if none are found."""
    return discover_paths(base_dir, pattern)


def summarize_files(files: List[str]) -> None:
    """Print a succinct summary (head/tail) of matched files."""
    if not files:
        bullet("No files matched. Double-check DATA_DIR and the file names.")
        return
    kv("Matched files", len(files))
    head = files[:3]
    tail = files[-3:] if len(files) > 3 else []
    for p in head:
        bullet(f"• {p}")
    if tail:
        bullet("…")
        for p in tail:
            bullet(f"• {p}")


# ---------------------------
# plotting wrapper
# ---------------------------
def plot_call(fn, *, verbose: bool = False, **kwargs):
    """
    Call a plotting function.

    Behavior:
      - `verbose` controls whether print() output from the function is shown.
        • verbose=False -> suppress stdout/stderr during the call
        • verbose=True  -> show stdout/stderr
      - If the target function has a `verbose` kwarg, we pass this same value.
        If it doesn't, we just silence/allow prints as requested.
    """
    has_verbose = "verbose" in inspect.signature(fn).parameters
    if has_verbose:
        kwargs["verbose"] = verbose
    else:
        kwargs.pop("verbose", None)

    if verbose:
        return fn(**kwargs)

    with contextlib.ExitStack() as stack:
        with open(os.devnull, "w") as devnull:
            stack.enter_context(contextlib.redirect_stdout(devnull))
            stack.enter_context(contextlib.redirect_stderr(devnull))
            return fn(**kwargs)


# ---------------------------
# Table + cleaning summaries
# ---------------------------
def print_table_summary(df: pd.DataFrame) -> None:
    """Print core info: size, species, coordinate extent, time coverage."""
    kv("Records", len(df))
    kv("Columns", list(df.columns))
    if "species" in df:
        counts = df["species"].value_counts(dropna=True)
        kv("Species", len(counts))
        for name, n in counts.head(5).items():
            bullet(f"• {name}: {n}")
        if len(counts) > 5:
            bullet("…")
    if len(df) and "longitude" in df and "latitude" in df:
        kv("Longitude range", f"{df['longitude'].min():.4f} .. {df['longitude'].max():.4f}")
        kv("Latitude range", f"{df['latitude'].min():.4f} .. {df['latitude'].max():.4f}")
    if "event_date" in df:
        t = pd.to_datetime(df["event_date"]).dropna()
        if len(t):
            kv("Time start", str(t.min()))
            kv("Time end", str(t.max()))
        else:
            kv("Time coverage", "no parseable dates")
    for key in ("skipped_rows", "invalid_coordinates"):
        if key in df.attrs:
            kv(key.replace("_", " ").capitalize(), df.attrs[key])


def print_clean_summary(result: CleanResult, column: str = "elevation") -> None:
    kv("Input records", result.n_input)
    kv("Kept", len(result.table))
    kv("Dropped (no data)", result.n_dropped)
    if result.dropped_ids:
        shown = ", ".join(str(i) for i in result.dropped_ids[:5])
        more = " …" if len(result.dropped_ids) > 5 else ""
        bullet(f"dropped ids: {shown}{more}")
    if len(result.table) and column in result.table:
        e = result.table[column]
        kv("Elevation range", f"{e.min():.1f} .. {e.max():.1f} m")


def ensure_paths_exist(regions: List[Tuple[str, Dict[str, Any]]]) -> None:
    """
    Warn (do not fail) if shapefiles/CSVs referenced in region specs are missing.
    """
    for name, spec in regions:
        for key in ("shapefile", "csv_boundary"):
            if key in spec and not os.path.exists(spec[key]):
                bullet(f"[warn] Region '{name}': {key} not found: {spec[key]}")


__all__ = [
    "hr",
    "info",
    "bullet",
    "kv",
    "list_files",
    "summarize_files",
    "plot_call",
    "print_table_summary",
    "print_clean_summary",
    "ensure_paths_exist",
]
