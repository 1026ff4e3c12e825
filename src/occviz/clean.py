"""
Cleaning of sampled elevations.

Rows without a sampled elevation are excluded; negative readings (coastline
and interpolation artefacts near sea level) are floored to zero.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List
import numpy as np
import pandas as pd

from .io import SchemaError


@dataclass
class CleanResult:
    table: pd.DataFrame
    dropped_ids: List = field(default_factory=list)
    n_dropped: int = 0

    @property
    def n_input(self) -> int:
        return len(self.table) + self.n_dropped


def clean_elevations(
    table: pd.DataFrame,
    column: str = "elevation",
    *,
    id_column: str = "id",
    verbose: bool = False,
) -> CleanResult:
    """
    Drop rows with no elevation and clamp negative elevations to 0.

    The returned table is a copy in the input's relative order. Running this on
    its own output changes nothing.
    """
    if column not in table:
        raise SchemaError(f"Cannot clean: table has no '{column}' column.")

    elev = pd.to_numeric(table[column], errors="coerce").to_numpy(dtype=float)
    keep = np.isfinite(elev)

    dropped = table.loc[~keep]
    if id_column in table:
        dropped_ids = dropped[id_column].tolist()
    else:
        dropped_ids = dropped.index.tolist()

    out = table.loc[keep].copy()
    out[column] = np.maximum(elev[keep], 0.0)
    out = out.reset_index(drop=True)
    out.attrs = dict(table.attrs)

    n_dropped = int((~keep).sum())
    if verbose:
        n_clamped = int((elev[keep] < 0).sum())
        print(
            f"[clean] kept {len(out)} of {len(table)} record(s); "
            f"dropped {n_dropped} without elevation, clamped {n_clamped} negative value(s) to 0"
        )
    return CleanResult(table=out, dropped_ids=dropped_ids, n_dropped=n_dropped)


__all__ = ["CleanResult", "clean_elevations"]
