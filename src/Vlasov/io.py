"""Output sinks for diagnostics.

File names follow ``<folder><array_name><iplot:06d>.<ext>``; ``folder`` is
used as a prefix verbatim, so it normally ends with a path separator.

- ``.dat``: plain-text two-column profile, first line the physical time
- ``.h5``: HDF5 snapshot of the full distribution function
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import h5py
import numpy as np

from .datastructures import DiagnosticSeries, Mesh

log = logging.getLogger(__name__)


def output_path(folder: Union[str, Path], array_name: str, iplot: int, suffix: str) -> Path:
    """Deterministic output file name with a zero-padded 6-digit index."""
    return Path(f"{folder}{array_name}{iplot:06d}{suffix}")


def format_value(value: float) -> str:
    """Shortest string that round-trips the double exactly (``0.0`` -> ``0``)."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def write_profile(func, x, array_name: str, folder, iplot: int, time: float) -> Path:
    """Save the 1-D function ``func`` in a two-column ``x value`` text file.

    Parameters
    ----------
    func : array_like
        Values, one per sample of ``x``.
    x : array_like
        Sample locations (space mesh).
    array_name : str
        Tag embedded in the file name.
    folder : str or Path
        Prefix of the file name.
    iplot : int
        Snapshot index.
    time : float
        Simulation physical time, written on the first line.

    Returns
    -------
    Path
        The file written.
    """
    func = np.asarray(func, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)
    if func.shape != x.shape:
        raise ValueError(f"Profile has {func.size} values for {x.size} samples")

    path = output_path(folder, array_name, iplot, ".dat")
    lines = [format_value(time)]
    lines.extend(f"{format_value(xi)} {format_value(fi)}" for xi, fi in zip(x, func))
    try:
        with open(path, "w") as fh:
            fh.write("\n".join(lines) + "\n")
    except OSError as e:
        raise RuntimeError(f"Cannot write diagnostic profile {path}") from e
    return path


def read_profile(path: Union[str, Path]):
    """Load a profile written by :func:`write_profile`.

    Returns
    -------
    tuple
        (x, values, time)
    """
    with open(path) as fh:
        time = float(fh.readline())
        data = np.loadtxt(fh, ndmin=2)
    return data[:, 0], data[:, 1], time


def write_snapshot(
    f: np.ndarray,
    meshx: Mesh,
    meshv: Mesh,
    iplot: int,
    time: float,
    array_name: str,
    folder,
) -> Path:
    """Write a full ``(nx, nv)`` distribution function to HDF5.

    File structure:
    - /x, /v: mesh samples
    - /f: row-major array, ``f[i_x][i_v]``
    - root attrs: time, iplot, array_name
    """
    if f.shape != (meshx.size, meshv.size):
        raise ValueError(f"Snapshot shape {f.shape} does not match meshes ({meshx.size}, {meshv.size})")

    path = output_path(folder, array_name, iplot, ".h5")
    try:
        with h5py.File(path, "w") as fh:
            fh.create_dataset("x", data=meshx.samples)
            fh.create_dataset("v", data=meshv.samples)
            fh.create_dataset("f", data=f, dtype="f8")
            fh.attrs["time"] = time
            fh.attrs["iplot"] = iplot
            fh.attrs["array_name"] = array_name
    except OSError as e:
        raise RuntimeError(f"Cannot write snapshot {path}") from e
    log.debug(f"Wrote snapshot {path}")
    return path


def read_snapshot(path: Union[str, Path]):
    """Load a snapshot written by :func:`write_snapshot`.

    Returns
    -------
    tuple
        (f, x, v, time)
    """
    with h5py.File(path, "r") as fh:
        return fh["f"][:], fh["x"][:], fh["v"][:], float(fh.attrs["time"])


def save_series(series: DiagnosticSeries, path: Union[str, Path], group: str = "series"):
    """Save a scalar time series, one dataset per column."""
    try:
        with h5py.File(path, "a") as fh:
            if group in fh:
                del fh[group]
            grp = fh.create_group(group)
            for name, values in series.__dict__.items():
                grp.create_dataset(name, data=np.asarray(values, dtype=np.float64))
    except OSError as e:
        raise RuntimeError(f"Cannot write time series {path}") from e


def load_series(path: Union[str, Path], group: str = "series"):
    """Load a saved time series as a pandas DataFrame."""
    import pandas as pd

    with h5py.File(path, "r") as fh:
        grp = fh[group]
        return pd.DataFrame({name: grp[name][:] for name in grp.keys()})
