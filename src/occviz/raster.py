"""
Elevation surface loading and point sampling.

A surface is a single raster band held in memory together with its affine
georeferencing. Sampling is nearest-cell: the queried position is mapped to a
(row, col) index directly from the transform, so each lookup is O(1).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Tuple
import math
import os
import numpy as np
import xarray as xr
import rasterio
from rasterio.transform import Affine
from pyproj import CRS, Transformer

TIE_BREAKS = ("floor", "ceil")


@dataclass(frozen=True)
class SamplerConfig:
    """
    Options for point sampling.

    tie_break : "floor" | "ceil"
        Which cell owns a position lying exactly on a cell boundary.
        "floor" picks the cell with the higher index (for a north-up raster:
        the cell to the east, and the one to the south); "ceil" picks the
        lower index (west / north). Applied independently on both axes.
    nodata : float, optional
        Sentinel to treat as missing. Overrides the surface's own sentinel.
    """

    tie_break: str = "floor"
    nodata: Optional[float] = None

    def __post_init__(self):
        if self.tie_break not in TIE_BREAKS:
            raise ValueError(f"tie_break must be one of {TIE_BREAKS}, got {self.tie_break!r}")


@dataclass(frozen=True, eq=False)
class ElevationSurface:
    """Read-only elevation grid with an axis-aligned affine transform."""

    values: np.ndarray
    transform: Affine
    nodata: Optional[float] = None
    crs: Optional[Any] = None
    _to_surface: Optional[Transformer] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        arr = np.array(self.values, dtype=float, copy=True)
        if arr.ndim != 2:
            raise ValueError(f"Elevation values must be 2-D, got shape {arr.shape}")
        if self.transform.b != 0 or self.transform.d != 0:
            raise ValueError("Rotated raster transforms are not supported.")
        if self.transform.a == 0 or self.transform.e == 0:
            raise ValueError("Raster transform has a zero cell size.")
        arr.setflags(write=False)
        object.__setattr__(self, "values", arr)
        object.__setattr__(self, "_to_surface", _lonlat_transformer(self.crs))

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def resolution(self) -> Tuple[float, float]:
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(left, bottom, right, top) in surface coordinates."""
        x0, y0 = self.transform.c, self.transform.f
        x1 = x0 + self.transform.a * self.width
        y1 = y0 + self.transform.e * self.height
        return min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1)

    def contains(self, x: float, y: float) -> bool:
        """Extent test in surface coordinates (edges inclusive)."""
        left, bottom, right, top = self.bounds
        return bool(left <= x <= right and bottom <= y <= top)

    def to_surface_xy(self, longitudes, latitudes) -> Tuple[np.ndarray, np.ndarray]:
        """Project WGS84 lon/lat into the surface CRS (identity for geographic surfaces)."""
        lon = np.asarray(longitudes, dtype=float)
        lat = np.asarray(latitudes, dtype=float)
        if self._to_surface is None:
            return lon, lat
        x, y = self._to_surface.transform(lon, lat)
        return np.asarray(x, dtype=float), np.asarray(y, dtype=float)

    def to_dataarray(self, name: str = "elevation") -> xr.DataArray:
        """Cell-centre labelled view for plotting, with no-data cells set to NaN."""
        cols = np.arange(self.width) + 0.5
        rows = np.arange(self.height) + 0.5
        xs = self.transform.c + self.transform.a * cols
        ys = self.transform.f + self.transform.e * rows
        vals = np.where(_nodata_mask(self.values, self.nodata), np.nan, self.values)
        return xr.DataArray(
            vals,
            dims=("y", "x"),
            coords={"y": ys, "x": xs},
            name=name,
            attrs={"units": "m", "crs": str(self.crs) if self.crs is not None else ""},
        )


def _lonlat_transformer(crs: Optional[Any]) -> Optional[Transformer]:
    if crs is None:
        return None
    target = CRS.from_user_input(crs)
    if target.is_geographic:
        return None
    return Transformer.from_crs("EPSG:4326", target, always_xy=True)


def _nodata_mask(values: np.ndarray, nodata: Optional[float]) -> np.ndarray:
    miss = ~np.isfinite(values)
    if nodata is not None and np.isfinite(nodata):
        miss |= values == nodata
    return miss


# ------------------------------------------------------------
# Loading
# ------------------------------------------------------------
def load_surface(path: str, band: int = 1, *, verbose: bool = False) -> ElevationSurface:
    """Read one band of a georeferenced raster (GeoTIFF or any GDAL format) into memory."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Elevation raster not found: {path!r}")
    with rasterio.open(path) as src:
        if band < 1 or band > src.count:
            raise ValueError(f"{path!r} has {src.count} band(s); cannot read band {band}.")
        values = src.read(band)
        surface = ElevationSurface(
            values=values,
            transform=src.transform,
            nodata=src.nodata,
            crs=src.crs,
        )
    if verbose:
        print(
            f"[raster] Loaded {path}: {surface.width}x{surface.height} cells, "
            f"res={surface.resolution}, nodata={surface.nodata}, crs={surface.crs}"
        )
    return surface


# ------------------------------------------------------------
# Sampling
# ------------------------------------------------------------
# fractional indices this close to an integer count as lying on the cell boundary
BOUNDARY_TOLERANCE = 1e-9


def _snap(frac: np.ndarray) -> np.ndarray:
    """Round fractional indices that sit on a boundary up to float error (0.3 / 0.1 -> 3)."""
    r = np.round(frac)
    return np.where(np.isclose(frac, r, rtol=0, atol=BOUNDARY_TOLERANCE), r, frac)


def _cell_index(frac: np.ndarray, n: int, tie_break: str) -> np.ndarray:
    """Fractional index -> integer cell index, with the outer edges kept inside."""
    if tie_break == "floor":
        idx = np.floor(frac)
    else:
        idx = np.ceil(frac) - 1
    return np.clip(idx, 0, n - 1).astype(int)


def sample_points(
    surface: ElevationSurface,
    longitudes: Iterable[float],
    latitudes: Iterable[float],
    config: Optional[SamplerConfig] = None,
) -> np.ndarray:
    """
    Nearest-cell elevation for each (lon, lat) pair.

    Returns a float array aligned with the inputs; NaN marks no data (position
    outside the surface extent, or a cell holding the no-data sentinel).
    """
    cfg = config or SamplerConfig()
    lon = np.atleast_1d(np.asarray(longitudes, dtype=float))
    lat = np.atleast_1d(np.asarray(latitudes, dtype=float))
    if lon.shape != lat.shape:
        raise ValueError("longitudes and latitudes must have the same length.")
    x, y = surface.to_surface_xy(lon, lat)

    t = surface.transform
    col_f = _snap((x - t.c) / t.a)
    row_f = _snap((y - t.f) / t.e)
    inside = (
        np.isfinite(col_f) & np.isfinite(row_f)
        & (col_f >= 0) & (col_f <= surface.width)
        & (row_f >= 0) & (row_f <= surface.height)
    )

    out = np.full(x.shape, np.nan, dtype=float)
    if not inside.any():
        return out

    cols = _cell_index(col_f[inside], surface.width, cfg.tie_break)
    rows = _cell_index(row_f[inside], surface.height, cfg.tie_break)
    vals = surface.values[rows, cols]

    nodata = cfg.nodata if cfg.nodata is not None else surface.nodata
    vals = np.where(_nodata_mask(vals, nodata), np.nan, vals)
    out[inside] = vals
    return out


def sample(
    surface: ElevationSurface,
    longitude: float,
    latitude: float,
    config: Optional[SamplerConfig] = None,
) -> Optional[float]:
    """Elevation at a single position, or None when there is no data there."""
    v = sample_points(surface, [longitude], [latitude], config)[0]
    return None if math.isnan(v) else float(v)


__all__ = [
    "TIE_BREAKS",
    "SamplerConfig",
    "ElevationSurface",
    "load_surface",
    "sample_points",
    "sample",
]
