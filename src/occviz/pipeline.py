"""Load -> sample -> clean, in one call."""

from __future__ import annotations
from typing import Dict, Optional
import pandas as pd

from .io import load_occurrences, SchemaError
from .raster import ElevationSurface, SamplerConfig, load_surface, sample_points
from .clean import CleanResult, clean_elevations


def attach_elevation(
    table: pd.DataFrame,
    surface: ElevationSurface,
    config: Optional[SamplerConfig] = None,
    *,
    column: str = "elevation",
    lon: str = "longitude",
    lat: str = "latitude",
) -> pd.DataFrame:
    """Return a copy of `table` with a `column` of sampled elevations (NaN = no data)."""
    for c in (lon, lat):
        if c not in table:
            raise SchemaError(f"Cannot sample elevation: table has no '{c}' column.")
    out = table.copy()
    out[column] = sample_points(surface, out[lon].to_numpy(), out[lat].to_numpy(), config)
    return out


def build_elevation_table(
    occurrence_path: str,
    raster_path: str,
    *,
    sep: str = ";",
    columns: Optional[Dict[str, str]] = None,
    config: Optional[SamplerConfig] = None,
    band: int = 1,
    verbose: bool = False,
) -> CleanResult:
    """
    Full core pipeline. Both inputs are loaded before any sampling, so a bad
    path or schema fails fast, before anything downstream runs.
    """
    records = load_occurrences(occurrence_path, sep=sep, columns=columns, verbose=verbose)
    surface = load_surface(raster_path, band=band, verbose=verbose)

    enriched = attach_elevation(records, surface, config)
    result = clean_elevations(enriched, verbose=verbose)
    if verbose:
        print(f"[pipeline] {len(result.table)} record(s) ready for plotting")
    return result


__all__ = ["attach_elevation", "build_elevation_table"]
