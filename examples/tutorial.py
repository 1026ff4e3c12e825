#!/usr/bin/env python
# coding: utf-8

# Occurrence-elevation workshop (using `occ-viz`)
#
# This script walks through the whole workflow: read a GBIF-style occurrence
# export, attach an elevation to every record from a GeoTIFF, drop the records
# the raster cannot answer for, then build and export figures layer by layer.
#
# ---
#
# What you'll learn here
#
#   How to point the toolkit at an occurrence CSV and an elevation raster.
#   How to make:
#
#      Layered scatter plots (elevation against longitude, month, ...)
#      Point labels, confidence ellipses and highlighted rectangles
#      Box / violin plots with significance brackets
#      Monthly record counts
#      Occurrence maps over the elevation surface
#      Multi-panel figures with A/B/C tags and one shared legend
#      Exports in several formats and resolutions
#
# ---
#
# What this script expects
#
#  Occurrence data: a ';'-separated export with Darwin Core headers
#    (gbifID, species, decimalLatitude, decimalLongitude, eventDate, ...)
#  Elevation data: a single-band GeoTIFF (any CRS; lon/lat are reprojected)
#
# No data at hand? Run `python examples/make_demo_data.py` first; the paths
# below point at its output.
#
# ---
#
# Installing
# ==========
#
#    conda create -n occviz python=3.11 rasterio geopandas -c conda-forge
#    conda activate occviz
#    pip install -e .
#
#    python tests/check_install.py --verbose
#
# ---

from functools import partial

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from occviz.io import load_occurrences
from occviz.raster import SamplerConfig, load_surface
from occviz.pipeline import attach_elevation
from occviz.clean import clean_elevations
from occviz.regions import apply_region
from occviz.utils import PlotTheme, save_figure, build_time_window_label
from occviz.plot import (
    info,
    bullet,
    kv,
    list_files,
    summarize_files,
    plot_call,
    print_table_summary,
    print_clean_summary,
    ensure_paths_exist,
)
from occviz.plots.scatter import (
    elevation_scatter,
    annotate_points,
    highlight_group_ellipse,
    highlight_rectangle,
)
from occviz.plots.distributions import elevation_by_group, omnibus_test
from occviz.plots.timeseries import monthly_counts
from occviz.plots.maps import occurrence_map
from occviz.plots.panels import compose_panels


#------ Set the filepaths here
#
# BASE_DIR  -> folder holding the occurrence export and the elevation raster.
#              Its basename is used as the filename prefix of every figure.
# FIG_DIR   -> root folder for figures: <FIG_DIR>/<basename(BASE_DIR)>/<subdir>/
#
# OCCVIZ_PLOT_SUBDIR (environment variable) overrides the subfolder:
#   OCCVIZ_PLOT_SUBDIR=workshop  -> everything in .../workshop/
#   OCCVIZ_PLOT_SUBDIR=""        -> no subfolders

BASE_DIR = "./demo_data/amphibians"
OCCURRENCES = "occurrences.csv"
ELEVATION = "elevation.tif"
FIG_DIR = "./figures"

SEP = ";"
TIE_BREAK = "floor"     # cell-boundary rule: "floor" (east/south cell) or "ceil" (west/north cell)

#------ Export settings
FORMATS = ("png", "pdf", "svg")
DPIS = (150, 300)

#------ Regions (name, spec): bbox / shapefile / csv_boundary
REGIONS = [
    ("Uplands", {"bbox": (10.5, 48.0, 12.0, 50.0)}),
]

#------ Per-group styles
PLOT_STYLES = {
    "Bufo bufo": {"color": "#8c6d31", "marker": "o"},
    "Rana temporaria": {"color": "#31a354", "marker": "^"},
    "Salamandra salamandra": {"color": "#e6550d", "marker": "s"},
}

THEME = PlotTheme(figsize=(7.5, 4.8), font_size=10, point_size=22)
VERBOSE = True


def main() -> None:
    info(" Inputs")
    kv("Base dir", BASE_DIR)
    kv("Figure root", FIG_DIR)
    kv("Tie-break", TIE_BREAK)
    ensure_paths_exist(REGIONS)

    info(" Discovering files")
    csvs = list_files(BASE_DIR, OCCURRENCES)
    tifs = list_files(BASE_DIR, ELEVATION)
    summarize_files(csvs + tifs)
    if not csvs or not tifs:
        bullet("Nothing to do. Run examples/make_demo_data.py or edit BASE_DIR.")
        return

    # -------------------------------------------------------------------
    # 1) Load + sample + clean
    #
    # load_occurrences keeps the configured Darwin Core columns under short
    # names (id, species, latitude, longitude, event_date, month, year, ...).
    # Malformed rows and impossible coordinates are dropped with a warning.
    # -------------------------------------------------------------------
    info(" Loading occurrences")
    table = load_occurrences(csvs[0], sep=SEP, verbose=VERBOSE)
    print_table_summary(table)

    info(" Sampling elevation")
    surface = load_surface(tifs[0], verbose=VERBOSE)
    kv("Raster bounds", surface.bounds)
    kv("Resolution", surface.resolution)
    sampled = attach_elevation(table, surface, SamplerConfig(tie_break=TIE_BREAK))

    info(" Cleaning")
    result = clean_elevations(sampled, verbose=VERBOSE)
    print_clean_summary(result)
    data = result.table

    # -------------------------------------------------------------------
    # 2) Scatter, built up layer by layer
    # -------------------------------------------------------------------
    info(" Scatter: elevation vs longitude")
    fig, ax = plot_call(
        elevation_scatter,
        table=data, x="longitude", y="elevation", hue="species",
        size="individual_count", trend=True,
        theme=THEME, styles=PLOT_STYLES,
        title="Where each species is found",
        verbose=VERBOSE,
    )
    n = annotate_points(ax, data, where=data["elevation"] > data["elevation"].quantile(0.99), max_labels=5)
    kv("Labelled points", n)
    highlight_group_ellipse(ax, data, group_col="species", group="Rana temporaria", color="#31a354")
    inside = highlight_rectangle(ax, (11.5, 900, 12.3, 1600), table=data, label="ridge")
    kv("Points on ridge", inside)
    for p in save_figure(fig, "Scatter__Longitude", base_dir=BASE_DIR, figures_root=FIG_DIR,
                         formats=FORMATS, dpis=DPIS, subdir="scatter"):
        bullet(f"• {p}")

    # -------------------------------------------------------------------
    # 3) Distributions with significance brackets
    # -------------------------------------------------------------------
    info(" Elevation by species")
    h, p = omnibus_test(data)
    kv("Kruskal-Wallis", f"H={h:.1f}, p={p:.2g}")
    fig, ax, res = plot_call(
        elevation_by_group,
        table=data, group="species", kind="violin", comparisons="all",
        theme=THEME, styles=PLOT_STYLES, verbose=VERBOSE,
    )
    save_figure(fig, "Species__Violin", base_dir=BASE_DIR, figures_root=FIG_DIR,
                formats=("png",), dpis=(200,), subdir="distributions", verbose=VERBOSE)

    # -------------------------------------------------------------------
    # 4) Seasonality
    # -------------------------------------------------------------------
    months = [3, 4, 5, 6, 7, 8]
    label = build_time_window_label(months, None, None, None)
    fig, ax = monthly_counts(data, by="year", months=months, theme=THEME, title=f"Records per month ({label})")
    save_figure(fig, f"Monthly__{label}", base_dir=BASE_DIR, figures_root=FIG_DIR,
                subdir="timeseries", verbose=VERBOSE)

    # -------------------------------------------------------------------
    # 5) Region subset + map
    # -------------------------------------------------------------------
    for name, spec in REGIONS:
        sub = apply_region(data, (name, spec), verbose=VERBOSE)
        fig, ax = occurrence_map(sub, surface=surface, styles=PLOT_STYLES, theme=THEME, title=name)
        save_figure(fig, f"Map__{name}", base_dir=BASE_DIR, figures_root=FIG_DIR,
                    subdir="maps", verbose=VERBOSE)

    # -------------------------------------------------------------------
    # 6) Composite figure: four panels, tags A-D, one legend
    #
    # Each panel is a callable that takes ax=...; functools.partial fixes the
    # rest of the arguments.
    # -------------------------------------------------------------------
    info(" Composite figure")
    fig, axes = compose_panels(
        [
            partial(elevation_scatter, data, x="longitude", styles=PLOT_STYLES, theme=THEME),
            partial(elevation_scatter, data, x="month", styles=PLOT_STYLES, theme=THEME),
            partial(elevation_by_group, data, kind="box", comparisons="all", hide_ns=True,
                    styles=PLOT_STYLES, theme=THEME),
            partial(occurrence_map, data, surface=surface, styles=PLOT_STYLES, theme=THEME),
        ],
        ncols=2,
        theme=THEME,
        shared_legend=True,
        suptitle="Amphibian records and elevation",
    )
    for p in save_figure(fig, "Composite", base_dir=BASE_DIR, figures_root=FIG_DIR,
                         formats=FORMATS, dpis=DPIS, subdir="panels"):
        bullet(f"• {p}")

    plt.close("all")
    info(" Done")


if __name__ == "__main__":
    main()
