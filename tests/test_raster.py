import math

import numpy as np
import pytest
from pyproj import Transformer
from rasterio.transform import Affine, from_origin

from occviz.raster import ElevationSurface, SamplerConfig, load_surface, sample, sample_points
from conftest import NODATA, write_geotiff


def test_inside_outside_and_nodata(plateau_surface):
    assert sample(plateau_surface, 10.5, 52.5) == 100.0
    assert sample(plateau_surface, 12.5, 51.5) == -5.0
    assert sample(plateau_surface, 10.5, 50.5) is None      # sentinel cell
    assert sample(plateau_surface, 9.99, 52.0) is None      # west of extent
    assert sample(plateau_surface, 12.0, 53.01) is None     # north of extent
    assert sample(plateau_surface, 30.0, -10.0) is None


def test_vectorised_matches_single(plateau_surface):
    lons = [10.5, 12.5, 10.5, 20.0]
    lats = [52.5, 51.5, 50.5, 52.0]
    out = sample_points(plateau_surface, lons, lats)
    assert out[:2].tolist() == [100.0, -5.0]
    assert np.isnan(out[2]) and np.isnan(out[3])
    for lon, lat, v in zip(lons, lats, out):
        s = sample(plateau_surface, lon, lat)
        assert (s is None and math.isnan(v)) or s == v


def test_interior_boundary_tie_break(index_surface):
    floor = SamplerConfig(tie_break="floor")
    ceil = SamplerConfig(tie_break="ceil")
    # on the line between columns 0 and 1, inside row 0
    assert sample(index_surface, 1.0, 2.5, floor) == 1.0
    assert sample(index_surface, 1.0, 2.5, ceil) == 0.0
    # on the line between rows 0 and 1, inside column 0
    assert sample(index_surface, 0.5, 2.0, floor) == 4.0
    assert sample(index_surface, 0.5, 2.0, ceil) == 0.0
    # a grid corner applies the rule on both axes
    assert sample(index_surface, 2.0, 1.0, floor) == 10.0
    assert sample(index_surface, 2.0, 1.0, ceil) == 5.0


def test_cell_interior_ignores_tie_break(index_surface):
    for rule in ("floor", "ceil"):
        assert sample(index_surface, 2.3, 0.7, SamplerConfig(tie_break=rule)) == 10.0


def test_outer_edges_are_inclusive(index_surface):
    for rule in ("floor", "ceil"):
        cfg = SamplerConfig(tie_break=rule)
        assert sample(index_surface, 0.0, 3.0, cfg) == 0.0
        assert sample(index_surface, 4.0, 0.0, cfg) == 11.0
    assert sample(index_surface, 4.0 + 1e-6, 1.5) is None
    assert sample(index_surface, 1.5, -1e-6) is None


@pytest.fixture
def tenth_degree_strip():
    """1 row x 10 cols of 0.1 deg over lon 0..1, lat 0.9..1; cell c holds c."""
    return ElevationSurface(np.arange(10, dtype=float).reshape(1, 10), from_origin(0.0, 1.0, 0.1, 0.1))


@pytest.mark.parametrize("lon, east", [(0.1, 1.0), (0.3, 3.0), (0.5, 5.0), (0.7, 7.0), (0.9, 9.0)])
def test_tie_break_on_decimal_cell_sizes(tenth_degree_strip, lon, east):
    # 0.3 / 0.1 is 2.9999999999999996 in floating point; still a boundary
    assert sample(tenth_degree_strip, lon, 0.95, SamplerConfig(tie_break="floor")) == east
    assert sample(tenth_degree_strip, lon, 0.95, SamplerConfig(tie_break="ceil")) == east - 1


def test_decimal_cell_sizes_outer_edges(tenth_degree_strip):
    assert sample(tenth_degree_strip, 1.0, 0.95) == 9.0
    assert sample(tenth_degree_strip, 0.7, 0.9, SamplerConfig(tie_break="ceil")) == 6.0
    assert sample(tenth_degree_strip, 1.0 + 1e-6, 0.95) is None


def test_unknown_tie_break_rejected():
    with pytest.raises(ValueError):
        SamplerConfig(tie_break="nearest")


def test_config_nodata_overrides_surface(index_surface):
    cfg = SamplerConfig(nodata=5.0)
    assert sample(index_surface, 1.5, 1.5, cfg) is None
    assert sample(index_surface, 0.5, 2.5, cfg) == 0.0


def test_nan_cells_are_nodata():
    v = np.array([[1.0, np.nan]])
    s = ElevationSurface(v, from_origin(0, 1, 1, 1))
    assert sample(s, 0.5, 0.5) == 1.0
    assert sample(s, 1.5, 0.5) is None


def test_surface_is_read_only_copy():
    v = np.zeros((2, 2))
    s = ElevationSurface(v, from_origin(0, 2, 1, 1))
    v[0, 0] = 50.0
    assert s.values[0, 0] == 0.0
    with pytest.raises(ValueError):
        s.values[0, 0] = 1.0


def test_rejects_rotation_and_bad_shape():
    with pytest.raises(ValueError):
        ElevationSurface(np.zeros((2, 2)), Affine(1, 0.2, 0, 0, -1, 2))
    with pytest.raises(ValueError):
        ElevationSurface(np.zeros(4), from_origin(0, 2, 1, 1))


def test_bounds_and_resolution(plateau_surface):
    assert plateau_surface.bounds == (10.0, 50.0, 14.0, 53.0)
    assert plateau_surface.resolution == (1.0, 1.0)
    assert plateau_surface.contains(14.0, 50.0)
    assert not plateau_surface.contains(14.5, 50.0)


def test_projected_surface_samples_lonlat():
    to_merc = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
    x, y = to_merc.transform(10.0, 50.0)
    s = ElevationSurface(np.full((10, 10), 7.0), from_origin(x - 500, y + 500, 100, 100), crs="EPSG:3857")
    assert sample(s, 10.0, 50.0) == 7.0
    assert sample(s, 11.0, 50.0) is None


def test_to_dataarray_masks_nodata(plateau_surface):
    da = plateau_surface.to_dataarray()
    assert da.shape == (3, 4)
    assert da["x"].values.tolist() == [10.5, 11.5, 12.5, 13.5]
    assert da["y"].values.tolist() == [52.5, 51.5, 50.5]
    assert np.isnan(da.values[2, 0])
    assert da.values[1, 2] == -5.0


def test_load_surface_roundtrip(plateau_tif):
    s = load_surface(plateau_tif)
    assert s.nodata == NODATA
    assert s.bounds == (10.0, 50.0, 14.0, 53.0)
    assert sample(s, 11.5, 52.5) == 100.0
    assert sample(s, 10.5, 50.5) is None


def test_load_surface_errors(tmp_path, plateau_tif):
    with pytest.raises(FileNotFoundError):
        load_surface(str(tmp_path / "missing.tif"))
    with pytest.raises(ValueError):
        load_surface(plateau_tif, band=2)


def test_load_surface_int_raster(tmp_path):
    path = tmp_path / "int.tif"
    import rasterio

    with rasterio.open(
        path, "w", driver="GTiff", height=1, width=2, count=1, dtype="int16",
        crs="EPSG:4326", transform=from_origin(0, 1, 1, 1), nodata=-32768,
    ) as dst:
        dst.write(np.array([[12, -32768]], dtype="int16"), 1)
    s = load_surface(str(path))
    assert sample(s, 0.5, 0.5) == 12.0
    assert sample(s, 1.5, 0.5) is None
