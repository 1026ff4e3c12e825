import os
from functools import partial

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from occviz.plots.distributions import (
    add_significance_brackets,
    compare_groups,
    elevation_by_group,
    omnibus_test,
    p_to_label,
)
from occviz.plots.maps import occurrence_map, to_geodataframe
from occviz.plots.panels import compose_panels, panel_tags
from occviz.plots.scatter import (
    annotate_points,
    confidence_ellipse,
    elevation_scatter,
    highlight_group_ellipse,
    highlight_rectangle,
)
from occviz.plots.timeseries import monthly_counts, monthly_table
from occviz.utils import PlotTheme, build_time_window_label, out_dir, save_figure


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")


@pytest.mark.parametrize(
    "p, label",
    [(0.2, "ns"), (0.05, "*"), (0.009, "**"), (0.0005, "***"), (1e-6, "****"), (float("nan"), "n/a")],
)
def test_p_to_label(p, label):
    assert p_to_label(p) == label


def test_p_to_label_numeric():
    assert p_to_label(0.0123, fmt="numeric") == "p = 0.012"
    assert p_to_label(1e-7, fmt="numeric") == "p < 0.0001"


def test_compare_groups_separated_species(species_table):
    res = compare_groups(species_table, group="species", value="elevation")
    assert len(res) == 1
    row = res.iloc[0]
    assert (row["group1"], row["group2"]) == ("Bufo bufo", "Rana temporaria")
    assert row["n1"] == 30 and row["n2"] == 30
    assert row["pvalue"] < 0.05
    assert row["label"] != "ns"

    welch = compare_groups(species_table, test="ttest", correction="bonferroni")
    assert welch["pvalue"].iloc[0] < 0.05


def test_compare_groups_errors(species_table):
    with pytest.raises(ValueError):
        compare_groups(species_table, test="chisq")
    with pytest.raises(KeyError):
        compare_groups(species_table, pairs=[("Bufo bufo", "Hyla arborea")])


def test_compare_groups_small_group_is_na(species_table):
    tiny = pd.concat([species_table, pd.DataFrame({"species": ["Hyla arborea"], "elevation": [300.0]})])
    res = compare_groups(tiny, pairs=[("Bufo bufo", "Hyla arborea")])
    assert np.isnan(res["pvalue"].iloc[0])
    assert res["label"].iloc[0] == "n/a"


def test_omnibus(species_table):
    h, p = omnibus_test(species_table)
    assert p < 0.05
    _, p_f = omnibus_test(species_table, test="anova")
    assert p_f < 0.05
    with pytest.raises(ValueError):
        omnibus_test(species_table[species_table["species"] == "Bufo bufo"])


def test_elevation_by_group_with_brackets(species_table):
    fig, ax, res = elevation_by_group(species_table, comparisons="all", kind="violin")
    assert res is not None and len(res) == 1
    texts = [t.get_text() for t in ax.texts]
    assert res["label"].iloc[0] in texts
    assert [t.get_text() for t in ax.get_xticklabels()] == ["Bufo bufo", "Rana temporaria"]


def test_brackets_hide_ns():
    fig, ax = plt.subplots()
    ax.set_ylim(0, 10)
    res = pd.DataFrame({"group1": ["a", "a"], "group2": ["b", "c"], "pvalue": [0.5, 0.001]})
    n = add_significance_brackets(ax, res, {"a": 1, "b": 2, "c": 3}, hide_ns=True)
    assert n == 1
    assert ax.get_ylim()[1] > 10


def test_scatter_layers_and_highlights(species_table):
    fig, ax = elevation_scatter(species_table, trend=True, size="individual_count")
    assert len(ax.collections) == 2
    labels = [t.get_text() for t in ax.get_legend().get_texts()]
    assert labels == ["Bufo bufo", "Rana temporaria"]

    n_lab = annotate_points(ax, species_table, where=species_table["elevation"] > 1000, max_labels=5)
    assert n_lab == int(min((species_table["elevation"] > 1000).sum(), 5))

    ell = highlight_group_ellipse(ax, species_table, group_col="species", group="Rana temporaria")
    assert ell in ax.patches

    inside = highlight_rectangle(ax, (12, 800, 14, 1000), table=species_table, label="uplands")
    expected = ((species_table["longitude"].between(12, 14)) & (species_table["elevation"].between(800, 1000))).sum()
    assert inside == expected


def test_group_ellipse_is_one_filled_outlined_patch(species_table):
    fig, ax = plt.subplots()
    before = len(ax.patches)
    ell = highlight_group_ellipse(ax, species_table, group_col="species", group="Bufo bufo",
                                  color="crimson", fill_alpha=0.2)
    assert len(ax.patches) == before + 1
    assert ell.get_facecolor()[3] == pytest.approx(0.2)
    assert ell.get_edgecolor()[3] == pytest.approx(1.0)
    with pytest.raises(KeyError):
        highlight_group_ellipse(ax, species_table, group_col="species", group="Hyla arborea")


def test_confidence_ellipse_needs_points():
    fig, ax = plt.subplots()
    with pytest.raises(ValueError):
        confidence_ellipse(ax, [1, 2], [1, 2])


def test_confidence_ellipse_centre():
    fig, ax = plt.subplots()
    x = np.array([0.0, 2.0, 0.0, 2.0])
    y = np.array([0.0, 0.0, 2.0, 2.0])
    ell = confidence_ellipse(ax, x, y, n_std=1.0)
    centre = ell.get_transform().transform((0, 0))
    assert np.allclose(centre, ax.transData.transform((1.0, 1.0)))


def test_monthly_table_and_chart(species_table):
    wide = monthly_table(species_table, by="year")
    assert list(wide.index) == list(range(1, 13))
    assert wide.to_numpy().sum() == len(species_table)
    assert wide.loc[1].sum() == 0

    weighted = monthly_table(species_table, by=None, weight="individual_count")
    assert weighted["records"].sum() == species_table["individual_count"].sum()

    fig, ax = monthly_counts(species_table, stacked=True, years=[2018])
    assert len(ax.patches) == 12


def test_map_with_background(species_table, plateau_surface):
    gdf = to_geodataframe(species_table)
    assert gdf.crs.to_epsg() == 4326
    fig, ax = occurrence_map(species_table, surface=plateau_surface, title="Sightings")
    assert ax.get_title() == "Sightings"
    assert ax.get_xlabel() == "Longitude"


def test_compose_panels_tags_and_shared_legend(species_table):
    fig, axes = compose_panels(
        [
            partial(elevation_scatter, species_table),
            partial(elevation_scatter, species_table, x="latitude"),
            partial(monthly_counts, species_table),
        ],
        ncols=2,
        shared_legend=True,
    )
    assert len(axes) == 3
    assert len(fig.axes) == 3
    assert [ax.texts[0].get_text() for ax in axes] == ["A", "B", "C"]
    assert all(ax.get_legend() is None for ax in axes)
    assert len(fig.legends) == 1


def test_panel_tags():
    assert panel_tags(3) == ["A", "B", "C"]
    assert panel_tags(2, "lower") == ["a", "b"]
    assert panel_tags(28)[-2:] == ["AA", "AB"]
    assert panel_tags(2, "number") == ["1", "2"]


def test_theme_is_not_global():
    before = plt.rcParams["font.size"]
    theme = PlotTheme(font_size=before + 7)
    with plt.rc_context(theme.rc()):
        assert plt.rcParams["font.size"] == before + 7
    assert plt.rcParams["font.size"] == before
    assert theme.with_(dpi=300).dpi == 300 and theme.dpi == 100


def test_save_figure_every_format_and_dpi(tmp_path, monkeypatch):
    monkeypatch.delenv("OCCVIZ_PLOT_SUBDIR", raising=False)
    fig, ax = plt.subplots()
    ax.plot([0, 1], [0, 1])
    paths = save_figure(
        fig, "Line",
        base_dir="/data/amphibians", figures_root=str(tmp_path),
        formats=("png", "pdf", "svg"), dpis=(72, 300), subdir="export",
    )
    assert len(paths) == 6
    for p in paths:
        assert os.path.isfile(p)
        assert os.path.dirname(p) == str(tmp_path / "amphibians" / "export")
    assert os.path.basename(paths[0]) == "amphibians__Line__72dpi.png"


def test_out_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("OCCVIZ_PLOT_SUBDIR", "")
    assert out_dir("/x/run1", str(tmp_path), subdir="maps") == str(tmp_path / "run1")
    monkeypatch.setenv("OCCVIZ_PLOT_SUBDIR", "custom")
    assert out_dir("/x/run1", str(tmp_path), subdir="maps") == str(tmp_path / "run1" / "custom")


def test_time_window_label():
    assert build_time_window_label([3, 4, 5], [2018, 2019], None, None) == "Mar-May__2018-2019"
    assert build_time_window_label(None, None, None, None) == "AllTime"
