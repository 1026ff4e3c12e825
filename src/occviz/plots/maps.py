# occviz/plots/maps.py
from __future__ import annotations

from typing import Dict, Any, Optional, Tuple

import pandas as pd
import geopandas as gpd
import matplotlib.pyplot as plt
from pyproj import CRS

from ..raster import ElevationSurface
from ..utils import PlotTheme, DEFAULT_THEME, new_axes, group_colors, robust_clims, style_get

__all__ = ["to_geodataframe", "occurrence_map"]


def to_geodataframe(
    table: pd.DataFrame,
    *,
    lon: str = "longitude",
    lat: str = "latitude",
    crs: Any = "EPSG:4326",
    to_crs: Any = None,
) -> gpd.GeoDataFrame:
    """Point geometries from the coordinate columns; optionally reprojected."""
    gdf = gpd.GeoDataFrame(
        table.copy(),
        geometry=gpd.points_from_xy(table[lon], table[lat]),
        crs=crs,
    )
    if to_crs is not None:
        gdf = gdf.to_crs(to_crs)
    return gdf


def occurrence_map(
    table: pd.DataFrame,
    *,
    surface: Optional[ElevationSurface] = None,
    hue: Optional[str] = "species",
    ax=None,
    theme: PlotTheme = DEFAULT_THEME,
    styles: Optional[Dict[str, Dict[str, Any]]] = None,
    clim: Optional[Tuple[float, float]] = None,
    cmap: str = "terrain",
    title: Optional[str] = None,
    pad: float = 0.05,
    verbose: bool = False,
):
    """
    Occurrence points over an optional elevation background.

    The background is the surface's xarray view drawn with pcolormesh; points are
    projected into the surface CRS when it has one, so both layers line up.
    Axes are zoomed to the points (plus `pad` of their span).
    """
    target_crs = surface.crs if (surface is not None and surface.crs is not None) else None
    gdf = to_geodataframe(table, to_crs=target_crs)

    with plt.rc_context(theme.rc()):
        fig, ax = new_axes(ax, theme)

        if surface is not None:
            da = surface.to_dataarray()
            lo, hi = clim if clim is not None else robust_clims(da.values, q=(1, 99))
            mesh = da.plot.pcolormesh(
                ax=ax, x="x", y="y", cmap=cmap, vmin=lo, vmax=hi,
                add_colorbar=False,
            )
            cbar = fig.colorbar(mesh, ax=ax, shrink=0.85, pad=0.02)
            cbar.set_label("Elevation (m)")
            if verbose:
                print(f"[maps] background {surface.width}x{surface.height}, clim=({lo:.1f}, {hi:.1f})")

        if hue and hue in gdf:
            groups = [(k, g) for k, g in gdf.groupby(hue, sort=True, dropna=True)]
        else:
            groups = [(None, gdf)]
        colors = group_colors([k for k, _ in groups])
        for key, g in groups:
            g.plot(
                ax=ax,
                color=style_get(key, styles, "color", colors[key]),
                marker=style_get(key, styles, "marker", "o"),
                markersize=theme.point_size,
                edgecolor="k", linewidth=0.3,
                alpha=theme.point_alpha,
                label=None if key is None else str(key),
            )

        if len(gdf):
            xmin, ymin, xmax, ymax = gdf.total_bounds
            dx = (xmax - xmin) * pad or 0.01
            dy = (ymax - ymin) * pad or 0.01
            ax.set_xlim(xmin - dx, xmax + dx)
            ax.set_ylim(ymin - dy, ymax + dy)

        geographic = target_crs is None or CRS.from_user_input(target_crs).is_geographic
        ax.set_xlabel("Longitude" if geographic else "Easting")
        ax.set_ylabel("Latitude" if geographic else "Northing")
        ax.set_title(title or "")
        if hue and len(groups) > 1:
            ax.legend(title=hue.replace("_", " ").capitalize(), fontsize="small", loc="best")
    return fig, ax
