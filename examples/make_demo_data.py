# examples/make_demo_data.py
from __future__ import annotations
import os

import numpy as np
import rasterio
from rasterio.transform import from_origin

# ---------------- user inputs ----------------
OUT_DIR = "./demo_data/amphibians"
N_PER_SPECIES = 120
SEED = 7
NODATA = -32768.0
# grid over central Europe, 0.01 deg cells
WEST, NORTH, RES = 9.0, 50.0, 0.01
NCOLS, NROWS = 300, 200
# ---------------------------------------------

SPECIES = [
    # (family, species, preferred elevation in m, spread)
    ("Bufonidae", "Bufo bufo", 250.0, 120.0),
    ("Ranidae", "Rana temporaria", 900.0, 250.0),
    ("Salamandridae", "Salamandra salamandra", 550.0, 150.0),
]
HEADER = [
    "gbifID", "family", "genus", "species", "individualCount",
    "decimalLatitude", "decimalLongitude", "eventDate", "month", "year", "institutionCode",
]


def make_surface(rng: np.random.Generator) -> np.ndarray:
    """Ridge running north-south plus noise, a lake below sea level, and a no-data corner."""
    cols = np.arange(NCOLS)
    rows = np.arange(NROWS)[:, None]
    ridge = 1400.0 * np.exp(-((cols - NCOLS * 0.7) / (NCOLS * 0.15)) ** 2)
    z = 80.0 + ridge + 2.0 * rows + rng.normal(0, 15, (NROWS, NCOLS))
    z[150:170, 20:50] = -4.0
    z[:15, :15] = NODATA
    return z.astype("float32")


def write_surface(path: str, z: np.ndarray) -> None:
    with rasterio.open(
        path, "w",
        driver="GTiff", height=NROWS, width=NCOLS, count=1, dtype="float32",
        crs="EPSG:4326", transform=from_origin(WEST, NORTH, RES, RES), nodata=NODATA,
    ) as dst:
        dst.write(z, 1)


def pick_location(rng, z, target, spread):
    """Rejection-sample a cell whose elevation is close to `target`."""
    while True:
        r = rng.integers(0, NROWS)
        c = rng.integers(0, NCOLS)
        v = z[r, c]
        if v != NODATA and abs(v - target) < spread:
            lon = WEST + (c + rng.uniform()) * RES
            lat = NORTH - (r + rng.uniform()) * RES
            return lon, lat


def write_records(path: str, z: np.ndarray, rng: np.random.Generator) -> int:
    lines = [";".join(HEADER)]
    gid = 1000
    for family, species, target, spread in SPECIES:
        for _ in range(N_PER_SPECIES):
            gid += 1
            lon, lat = pick_location(rng, z, target, spread)
            year = int(rng.choice([2018, 2019, 2020]))
            month = int(np.clip(rng.normal(5.5, 1.5), 1, 12))
            day = int(rng.integers(1, 28))
            count = str(int(rng.integers(1, 12))) if rng.uniform() > 0.2 else ""
            lines.append(";".join([
                str(gid), family, species.split()[0], species, count,
                f"{lat:.5f}", f"{lon:.5f}", f"{year}-{month:02d}-{day:02d}",
                str(month), str(year), rng.choice(["iNaturalist", "naturgucker", "BfN"]),
            ]))
    # records the cleaning step will drop: outside the grid and on the no-data corner
    lines.append(";".join(["9001", "Ranidae", "Rana", "Rana temporaria", "1", "47.10000", "9.50000", "2019-05-02", "5", "2019", "BfN"]))
    lines.append(";".join(["9002", "Bufonidae", "Bufo", "Bufo bufo", "2", "49.95000", "9.05000", "2019-04-11", "4", "2019", "BfN"]))
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return len(lines) - 1


def main() -> None:
    os.makedirs(OUT_DIR, exist_ok=True)
    rng = np.random.default_rng(SEED)
    z = make_surface(rng)
    tif = os.path.join(OUT_DIR, "elevation.tif")
    csv = os.path.join(OUT_DIR, "occurrences.csv")
    write_surface(tif, z)
    n = write_records(csv, z, rng)
    print(f"[demo] Wrote {tif} ({NCOLS}x{NROWS})")
    print(f"[demo] Wrote {csv} ({n} records)")


if __name__ == "__main__":
    main()
