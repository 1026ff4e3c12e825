"""I/O helpers.

Implement:
 - load_occurrences(path, sep=";", columns=DEFAULT_COLUMNS) -> pd.DataFrame
 - filter_time(df, months=None, years=None, start_date=None, end_date=None)
 - discover_paths(base_dir, file_pattern) -> list[str]
"""

from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Optional, Dict
import os
import warnings
import numpy as np
import pandas as pd


class SchemaError(ValueError):
    """A required column is absent from a tabular input."""


# Source header -> output column name (Darwin Core export, as served by GBIF)
DEFAULT_COLUMNS: Dict[str, str] = {
    "gbifID": "id",
    "family": "family",
    "genus": "genus",
    "species": "species",
    "individualCount": "individual_count",
    "decimalLatitude": "latitude",
    "decimalLongitude": "longitude",
    "eventDate": "event_date",
    "month": "month",
    "year": "year",
    "institutionCode": "institution_code",
}

# Output columns that must be resolvable for the rest of the pipeline to run.
REQUIRED_OUTPUT = ("id", "species", "latitude", "longitude", "event_date")
# Filled from event_date when the header lacks them; every other mapped column is required.
DERIVED_OUTPUT = ("month", "year")


# --------------------------
# Path discovery
# --------------------------
def discover_paths(base_dir: str, file_pattern: str) -> List[str]:
    files = sorted(str(p) for p in Path(base_dir).glob(file_pattern))
    if not files:
        warnings.warn(f"No files matched {file_pattern!r} in {base_dir!r}")
    return files


def _require_readable(path: str, what: str) -> None:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"{what} not found: {path!r}")
    if not os.access(path, os.R_OK):
        raise PermissionError(f"{what} is not readable: {path!r}")


# --------------------------
# Occurrence loader
# --------------------------
def load_occurrences(
    path: str,
    sep: str = ";",
    columns: Optional[Dict[str, str]] = None,
    *,
    validate: bool = True,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Read a delimited occurrence file and return the named projection of its columns.

    Parameters
    ----------
    path : str
        Delimited text file with a header row.
    sep : str
        Field delimiter (the GBIF download used in the workshop is ';'-separated).
    columns : dict, optional
        Mapping source header -> output name. Defaults to DEFAULT_COLUMNS.
    validate : bool
        Drop rows whose coordinates are missing or outside lat [-90, 90], lon [-180, 180].
    verbose : bool
        Print a one-line load summary.

    Returns
    -------
    pd.DataFrame
        Rows in file order (index 0..n-1), columns renamed per `columns`.
        ``df.attrs["skipped_rows"]`` holds the number of rows skipped for having more
        fields than the header; ``df.attrs["invalid_coordinates"]`` the number dropped
        by coordinate validation.

    Raises
    ------
    FileNotFoundError
        If `path` does not exist.
    SchemaError
        If a mapped column other than month/year is absent from the header.

    Notes
    -----
    Rows with *fewer* fields than the header are padded with missing values by the
    parser; they survive only if their coordinates are still valid.
    """
    _require_readable(path, "Occurrence file")
    columns = dict(DEFAULT_COLUMNS if columns is None else columns)

    header = pd.read_csv(path, sep=sep, nrows=0).columns
    out_names = set(columns.values())
    missing_out = [c for c in REQUIRED_OUTPUT if c not in out_names]
    missing_src = [src for src, dst in columns.items() if src not in header and dst not in DERIVED_OUTPUT]
    if missing_out or missing_src:
        raise SchemaError(
            f"Occurrence file {path!r} is missing required column(s): "
            f"{sorted(missing_src) + sorted(missing_out)}"
        )

    bad_lines: List[List[str]] = []

    def _on_bad_line(fields: List[str]):
        bad_lines.append(fields)
        return None  # skip

    # no usecols: the python parser only reports over-long rows when reading every column
    df = pd.read_csv(
        path,
        sep=sep,
        dtype=str,
        keep_default_na=True,
        engine="python",
        on_bad_lines=_on_bad_line,
    )
    if bad_lines:
        warnings.warn(
            f"{path!r}: skipped {len(bad_lines)} malformed row(s) with more fields than the header"
        )

    usecols = [c for c in columns if c in df.columns]
    df = df[usecols].rename(columns=columns)
    df = _coerce_types(df)

    n_invalid = 0
    if validate:
        ok = coordinate_mask(df)
        n_invalid = int((~ok).sum())
        if n_invalid:
            warnings.warn(
                f"{path!r}: dropped {n_invalid} row(s) with missing or out-of-range coordinates"
            )
        df = df[ok]

    df = df.reset_index(drop=True)
    df.attrs["source"] = str(path)
    df.attrs["skipped_rows"] = len(bad_lines)
    df.attrs["invalid_coordinates"] = n_invalid
    if verbose:
        print(
            f"[io] Loaded {len(df)} record(s) from {path} "
            f"(skipped {len(bad_lines)} malformed, {n_invalid} invalid coordinates)"
        )
    return df


def _coerce_types(df: pd.DataFrame) -> pd.DataFrame:
    """Cast the projected string columns to their working dtypes."""
    df = df.copy()
    for name in ("latitude", "longitude"):
        if name in df:
            # tolerate decimal commas, common in ;-separated European exports
            raw = df[name].astype("string").str.replace(",", ".", regex=False)
            df[name] = pd.to_numeric(raw, errors="coerce").astype(float)

    if "individual_count" in df:
        cnt = pd.to_numeric(df["individual_count"], errors="coerce")
        # counts are whole and non-negative; anything else is treated as absent
        cnt = cnt.where((cnt >= 0) & (cnt == np.floor(cnt)))
        df["individual_count"] = cnt.astype("Int64")

    if "event_date" in df:
        df["event_date"] = pd.to_datetime(df["event_date"], errors="coerce", format="mixed")
        for part in ("month", "year"):
            derived = getattr(df["event_date"].dt, part)
            if part in df:
                given = pd.to_numeric(df[part], errors="coerce")
                # fractional or out-of-range values are dropped and re-derived from the date
                valid = given == np.floor(given)
                if part == "month":
                    valid &= given.between(1, 12)
                df[part] = given.where(valid).fillna(derived)
            else:
                df[part] = derived
            df[part] = df[part].astype("Int64")

    for name in ("id", "family", "genus", "species", "institution_code"):
        if name in df:
            df[name] = df[name].astype("string")
    return df


def coordinate_mask(df: pd.DataFrame, lat: str = "latitude", lon: str = "longitude") -> np.ndarray:
    """True where both coordinates are finite and within geographic range."""
    la = df[lat].to_numpy(dtype=float)
    lo = df[lon].to_numpy(dtype=float)
    return (
        np.isfinite(la) & np.isfinite(lo)
        & (la >= -90.0) & (la <= 90.0)
        & (lo >= -180.0) & (lo <= 180.0)
    )


# --------------------------
# Time filtering
# --------------------------
def filter_time(
    df: pd.DataFrame,
    months: Optional[Iterable[int]] = None,
    years: Optional[Iterable[int]] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    time_col: str = "event_date",
) -> pd.DataFrame:
    """Return the rows of `df` matching any combination of time filters.

    months/years use the 'month'/'year' columns when present (so records with a
    month but no parseable date still match), otherwise they are taken from `time_col`.
    """
    mask = np.ones(len(df), dtype=bool)
    tindex = pd.DatetimeIndex(df[time_col]) if time_col in df else None

    def _part(name: str) -> np.ndarray:
        if name in df:
            return df[name].to_numpy(dtype=float, na_value=np.nan)
        if tindex is None:
            raise KeyError(f"Cannot filter by {name}: no '{name}' or '{time_col}' column.")
        return np.asarray(getattr(tindex, name), dtype=float)

    if months is not None:
        months = np.asarray(list(months), dtype=int)
        mask &= np.isin(_part("month"), months)

    if years is not None:
        years = np.asarray(list(years), dtype=int)
        mask &= np.isin(_part("year"), years)

    if start_date is not None or end_date is not None:
        if tindex is None:
            raise KeyError(f"Cannot filter by date range: no '{time_col}' column.")
        if start_date is not None:
            mask &= np.asarray(tindex >= pd.to_datetime(start_date))
        if end_date is not None:
            mask &= np.asarray(tindex <= pd.to_datetime(end_date))

    return df[mask]


__all__ = [
    "SchemaError",
    "DEFAULT_COLUMNS",
    "REQUIRED_OUTPUT",
    "DERIVED_OUTPUT",
    "discover_paths",
    "load_occurrences",
    "coordinate_mask",
    "filter_time",
]
