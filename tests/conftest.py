import matplotlib

matplotlib.use("Agg", force=True)

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from occviz.io import DEFAULT_COLUMNS
from occviz.raster import ElevationSurface

HEADER = list(DEFAULT_COLUMNS)
NODATA = -9999.0


def occurrence_row(
    id_,
    lon,
    lat,
    species="Salamandra salamandra",
    date="2019-05-12",
    month="",
    year="",
    count="1",
    institution="iNaturalist",
):
    genus = species.split()[0]
    return [str(id_), "Salamandridae", genus, species, count, str(lat), str(lon), date, month, year, institution]


def write_occurrences(path, rows, sep=";", header=HEADER):
    lines = [sep.join(header)] + [sep.join(r) for r in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


def write_geotiff(path, values, transform, *, crs="EPSG:4326", nodata=NODATA):
    values = np.asarray(values, dtype="float32")
    with rasterio.open(
        path, "w",
        driver="GTiff",
        height=values.shape[0],
        width=values.shape[1],
        count=1,
        dtype="float32",
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(values, 1)
    return str(path)


def plateau_values():
    """4x3 grid over lon 10..14, lat 50..53: 100 m everywhere except one
    below-sea-level cell (lon 12..13, lat 51..52) and one no-data cell (lon 10..11, lat 50..51)."""
    v = np.full((3, 4), 100.0)
    v[1, 2] = -5.0
    v[2, 0] = NODATA
    return v


PLATEAU_TRANSFORM = from_origin(10.0, 53.0, 1.0, 1.0)


@pytest.fixture
def plateau_surface():
    return ElevationSurface(plateau_values(), PLATEAU_TRANSFORM, nodata=NODATA, crs="EPSG:4326")


@pytest.fixture
def plateau_tif(tmp_path):
    return write_geotiff(tmp_path / "plateau.tif", plateau_values(), PLATEAU_TRANSFORM)


@pytest.fixture
def index_surface():
    """3 rows x 4 cols over x 0..4, y 0..3; cell (r, c) holds 4*r + c."""
    return ElevationSurface(np.arange(12, dtype=float).reshape(3, 4), from_origin(0.0, 3.0, 1.0, 1.0))


@pytest.fixture
def ten_records_csv(tmp_path):
    """Ten records, two of them outside the plateau extent."""
    inside = [(10.5, 52.5), (11.5, 52.5), (12.5, 52.5), (13.5, 52.5),
              (10.5, 51.5), (11.5, 51.5), (13.5, 51.5), (11.5, 50.5)]
    outside = [(20.0, 52.0), (11.0, 60.0)]
    coords = inside[:4] + [outside[0]] + inside[4:] + [outside[1]]
    rows = [occurrence_row(i + 1, lon, lat) for i, (lon, lat) in enumerate(coords)]
    return write_occurrences(tmp_path / "records.csv", rows)


@pytest.fixture
def species_table():
    """Cleaned-looking table: two species at clearly different elevations."""
    import pandas as pd

    rng = np.random.default_rng(0)
    n = 30
    low = pd.DataFrame({
        "id": [f"a{i}" for i in range(n)],
        "species": "Bufo bufo",
        "longitude": rng.uniform(10, 12, n),
        "latitude": rng.uniform(50, 52, n),
        "elevation": rng.normal(150, 20, n),
        "month": rng.integers(3, 7, n),
        "year": rng.choice([2018, 2019], n),
        "individual_count": rng.integers(1, 5, n),
    })
    high = pd.DataFrame({
        "id": [f"b{i}" for i in range(n)],
        "species": "Rana temporaria",
        "longitude": rng.uniform(12, 14, n),
        "latitude": rng.uniform(51, 53, n),
        "elevation": rng.normal(900, 40, n),
        "month": rng.integers(5, 10, n),
        "year": rng.choice([2018, 2019], n),
        "individual_count": rng.integers(1, 5, n),
    })
    return pd.concat([low, high], ignore_index=True)
