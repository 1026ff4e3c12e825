from __future__ import annotations
"""
Region helpers: select occurrence rows inside rectangles, polygons, CSV
boundaries or shapefiles.
"""

from typing import Optional, Tuple, Dict, Any
import numpy as np
import pandas as pd
import geopandas as gpd
from shapely.geometry import Polygon, Point, MultiPoint, box
from shapely.ops import unary_union
from shapely.prepared import prep as prep_geom


def _lon_lat_arrays(
    table: pd.DataFrame, lon: str = "longitude", lat: str = "latitude"
) -> tuple[np.ndarray, np.ndarray]:
    if lon in table and lat in table:
        return table[lon].to_numpy(dtype=float), table[lat].to_numpy(dtype=float)
    raise ValueError(f"Region masking expects coordinate columns '{lon}' and '{lat}'.")


def _normalize_lon_180(lons: np.ndarray) -> np.ndarray:
    """Wrap to [-180, 180]."""
    lons = np.asarray(lons, dtype=float)
    return ((lons + 180.0) % 360.0) - 180.0


def box_polygon(bounds: Tuple[float, float, float, float]) -> Polygon:
    """(xmin, ymin, xmax, ymax) -> rectangle polygon; corners may be given in any order."""
    x0, y0, x1, y1 = bounds
    return box(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def polygon_mask(
    table: pd.DataFrame,
    polygon: Polygon,
    *,
    x: str = "longitude",
    y: str = "latitude",
    include_boundary: bool = True,
) -> np.ndarray:
    """Boolean mask for rows whose (x, y) falls in `polygon` (union ok)."""
    xs, ys = _lon_lat_arrays(table, x, y)
    if xs.size == 0:
        return np.zeros(0, dtype=bool)
    if include_boundary:
        f = np.frompyfunc(lambda a, b: polygon.covers(Point(a, b)), 2, 1)
    else:
        P = prep_geom(polygon)
        f = np.frompyfunc(lambda a, b: P.contains(Point(a, b)), 2, 1)
    return f(xs, ys).astype(bool)


def polygon_mask_from_shapefile(
    table: pd.DataFrame,
    shapefile: str,
    name_field: Optional[str] = None,
    name_equals: Optional[str] = None,
    include_boundary: bool = True,
) -> np.ndarray:
    gdf = gpd.read_file(shapefile)
    if gdf.crs is not None and not gdf.crs.is_geographic:
        gdf = gdf.to_crs("EPSG:4326")
    if name_field is not None and name_equals is not None:
        gdf = gdf[gdf[name_field] == name_equals]
    if gdf.empty:
        raise ValueError("No geometries found in shapefile with given filters.")
    geom = unary_union(gdf.geometry.values)
    return polygon_mask(table, geom, include_boundary=include_boundary)


def polygon_from_csv_boundary(
    csv_path: str,
    lon_col: str = "lon",
    lat_col: str = "lat",
    *,
    normalize_lon: bool = True,
    sort: str = "auto",          # "auto" (angle sort), "none"
    convex_hull: bool = False,   # if True, ignore sort and use convex hull of points
) -> Polygon:
    """
    Create a polygon from a CSV of boundary coordinates.
    - If points are unordered, use convex_hull=True or sort='auto' to produce a valid ring.
    - Longitudes can be normalized to [-180, 180] to match the occurrence table.
    """
    df = pd.read_csv(csv_path)
    if lon_col not in df.columns or lat_col not in df.columns:
        lon_col, lat_col = df.columns[:2]
    lons = df[lon_col].astype(float).to_numpy()
    lats = df[lat_col].astype(float).to_numpy()

    if normalize_lon:
        lons = _normalize_lon_180(lons)

    pts = np.column_stack([lons, lats])
    pts = pts[np.isfinite(pts).all(axis=1)]
    pts = np.unique(pts, axis=0)

    if pts.shape[0] < 3:
        raise ValueError("Need at least 3 distinct points to form a polygon.")

    if convex_hull:
        hull = MultiPoint([Point(a, b) for a, b in pts]).convex_hull
        poly = hull if isinstance(hull, Polygon) else hull.buffer(0)
    else:
        if sort == "auto":
            # angle sort around centroid gives a simple ring
            cx, cy = pts.mean(axis=0)
            order = np.argsort(np.arctan2(pts[:, 1] - cy, pts[:, 0] - cx))
            ring = pts[order]
        else:
            ring = pts
        if not np.allclose(ring[0], ring[-1]):
            ring = np.vstack([ring, ring[0]])
        poly = Polygon(ring)

    if not poly.is_valid:
        poly = poly.buffer(0)
    return poly


def build_region_mask(
    table: pd.DataFrame,
    region: Optional[Tuple[str, Dict[str, Any]]],
    *,
    verbose: bool = False,
) -> Optional[np.ndarray]:
    """
    Row mask for a region spec, or None if no region was given.

    Spec forms: {"bbox": (xmin, ymin, xmax, ymax)}, {"shapefile": path, ...},
    {"csv_boundary": path, ...}.
    """
    if region is None:
        return None
    region_name, spec = region
    if "bbox" in spec:
        mask = polygon_mask(table, box_polygon(spec["bbox"]))
    elif "shapefile" in spec:
        mask = polygon_mask_from_shapefile(
            table, spec["shapefile"],
            name_field=spec.get("name_field"),
            name_equals=spec.get("name_equals"),
        )
    elif "csv_boundary" in spec:
        poly = polygon_from_csv_boundary(
            spec["csv_boundary"],
            lon_col=spec.get("lon_col", "lon"),
            lat_col=spec.get("lat_col", "lat"),
            sort=spec.get("sort", "auto"),
            convex_hull=spec.get("convex_hull", False),
        )
        mask = polygon_mask(table, poly)
    else:
        raise ValueError("Region spec must contain 'bbox', 'shapefile' or 'csv_boundary'.")
    if verbose:
        print(f"[regions/{region_name}] {int(mask.sum())} of {mask.size} record(s) inside")
    return mask


def apply_region(
    table: pd.DataFrame,
    region: Optional[Tuple[str, Dict[str, Any]]],
    *,
    verbose: bool = False,
) -> pd.DataFrame:
    """Rows of `table` inside `region` (all rows if region is None)."""
    mask = build_region_mask(table, region, verbose=verbose)
    if mask is None:
        return table
    return table[mask]


__all__ = [
    "box_polygon",
    "polygon_mask",
    "polygon_mask_from_shapefile",
    "polygon_from_csv_boundary",
    "build_region_mask",
    "apply_region",
]
