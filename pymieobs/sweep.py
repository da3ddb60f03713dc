# -*- coding: utf-8 -*-
"""
Evaluation of the Mie engine over wavelength / radius / refractive index grids

Lengths are in nm: vacuum wavelengths and particle radii (or diameters).
Every grid point is an independent engine call. A failing point is
recorded in its row with an error message and never aborts the sweep.
"""
# %%
import itertools
import multiprocessing as mp
import warnings
from typing import NamedTuple, Optional

import numpy as np
from tqdm import tqdm

from pymieobs.config import get_config
from pymieobs.exceptions import InvalidInputError
from pymieobs.exceptions import NumericalInstabilityWarning
from pymieobs.materials import MaterialBase
from pymieobs.mie import ScatteringOutput
from pymieobs.mie import compute_efficiencies


class SweepRecord(NamedTuple):
    """one row of a sweep: inputs, resolved indices and engine result

    `result` is None and `error` holds the message if the point failed.
    """

    wavelength: float
    radius: float
    n_particle: complex
    n_medium: complex
    size_parameter: float
    relative_index: complex
    result: Optional[ScatteringOutput]
    error: Optional[str]


class SweepResult:
    """ordered table of sweep records, one row per grid point

    For a "product" grid the rows run over (wavelength, radius, index) with
    the index varying fastest, `shape` gives the grid dimensions.
    """

    def __init__(self, records, grid="product", shape=None):
        self.records = list(records)
        self.grid = grid
        self.shape = shape if shape is not None else (len(self.records),)

    def __repr__(self):
        return "SweepResult({} points, grid='{}', shape={}, {} failed)".format(
            len(self), self.grid, self.shape, len(self.failed)
        )

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def __getitem__(self, i):
        return self.records[i]

    @property
    def failed(self):
        """records of all failed grid points"""
        return [r for r in self.records if r.error is not None]

    @property
    def unstable(self):
        """records of all points with a failed convergence check"""
        return [
            r for r in self.records if r.result is not None and r.result.unstable
        ]

    def to_dict(self, reshape=False):
        """column arrays of the table

        Failed points hold NaN in all result columns, -1 as `n_max` and
        their message in `error`.

        Args:
            reshape (bool, optional): reshape columns to the grid `shape`.
                Defaults to False.

        Returns:
            dict: numpy arrays of the input columns, of all
            :class:`pymieobs.ScatteringOutput` fields and of the cross
            sections c_ext, c_sca, c_abs (nm^2).
        """
        columns = dict()
        for key in [
            "wavelength",
            "radius",
            "size_parameter",
        ]:
            columns[key] = np.array(
                [getattr(r, key) for r in self.records], dtype=float
            )
        for key in ["n_particle", "n_medium", "relative_index"]:
            columns[key] = np.array(
                [getattr(r, key) for r in self.records], dtype=complex
            )

        for key in ScatteringOutput._fields:
            if key in ["unstable", "degenerate"]:
                placeholder, dtype = False, bool
            elif key == "n_max":
                placeholder, dtype = -1, int
            else:
                placeholder, dtype = np.nan, float
            columns[key] = np.array(
                [
                    placeholder if r.result is None else getattr(r.result, key)
                    for r in self.records
                ],
                dtype=dtype,
            )

        cs_geo = np.pi * columns["radius"] ** 2
        columns["c_ext"] = columns["q_ext"] * cs_geo
        columns["c_sca"] = columns["q_sca"] * cs_geo
        columns["c_abs"] = columns["q_abs"] * cs_geo
        columns["error"] = np.array([r.error for r in self.records], dtype=object)

        if reshape:
            columns = {k: v.reshape(self.shape) for k, v in columns.items()}
        return columns


# --- internal helpers
def _resolve_index(index, wavelength):
    if isinstance(index, MaterialBase):
        return complex(index.get_refractive_index(wavelength))
    return complex(index)


def _as_axis(values, name):
    axis = np.atleast_1d(np.asarray(values, dtype=float)).ravel()
    if len(axis) == 0:
        raise ValueError("Empty sweep axis '{}'.".format(name))
    return axis.tolist()


def _as_index_axis(index):
    if isinstance(index, MaterialBase) or np.ndim(index) == 0:
        return [index]
    axis = list(index)
    if len(axis) == 0:
        raise ValueError("Empty sweep axis 'index'.")
    return axis


def _build_grid(axes, grid):
    if grid == "product":
        return list(itertools.product(*axes)), tuple(len(a) for a in axes)

    if grid == "zip":
        n_points = max(len(a) for a in axes)
        for a in axes:
            if len(a) not in (1, n_points):
                raise ValueError(
                    "Zipped sweep axes must have equal length or length 1, "
                    + "got lengths {}.".format([len(a) for a in axes])
                )
        axes = [a * n_points if len(a) == 1 else a for a in axes]
        return list(zip(*axes)), (n_points,)

    raise ValueError("Unknown grid '{}'. Use 'product' or 'zip'.".format(grid))


def _evaluate_point(args):
    """
    Run the Mie engine for a single grid point.

    Args:
        args: Tuple of (point_index, wavelength, radius, index, n_medium, engine_kwargs)

    Returns:
        Tuple of (point_index, SweepRecord)
    """
    i_point, wavelength, radius, index, n_medium, engine_kwargs = args

    n_p = n_env = m = complex(np.nan, np.nan)
    x = np.nan
    try:
        if not wavelength > 0:
            raise InvalidInputError("Wavelength must be positive.")
        n_p = _resolve_index(index, wavelength)
        n_env = _resolve_index(n_medium, wavelength)
        if n_env.imag != 0 or n_env.real <= 0:
            raise InvalidInputError(
                "Environment must be non-absorbing with positive index, "
                + "got {}.".format(n_env)
            )
        x = 2 * np.pi * radius * n_env.real / wavelength
        m = n_p / n_env

        # instability is recorded in the result, summarized by the collector
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NumericalInstabilityWarning)
            result = compute_efficiencies(x, m, **engine_kwargs)
        error = None
    except Exception as e:
        result = None
        error = "{}: {}".format(type(e).__name__, e)

    return i_point, SweepRecord(
        wavelength=wavelength,
        radius=radius,
        n_particle=n_p,
        n_medium=n_env,
        size_parameter=x,
        relative_index=m,
        result=result,
        error=error,
    )


def sweep(
    wavelengths,
    radii,
    index,
    n_medium=1.0,
    grid="product",
    size="radius",
    n_workers=None,
    progress_bar=None,
    n_max=None,
    backend=None,
    precision=None,
):
    """
    Mie efficiencies over a grid of wavelengths, radii and refractive indices.

    Args:
        wavelengths: vacuum wavelength(s) in nm, scalar or 1D sequence
        radii: particle radius (or diameter, see `size`) in nm, scalar or 1D sequence
        index: particle refractive index ``n + ik``. A complex constant, a
            :class:`pymieobs.materials.MaterialBase` or a sequence of those
            (index axis of the grid).
        n_medium: non-absorbing environment, real constant or material. Defaults to 1.0.
        grid: "product" (Cartesian product of the axes, index varying fastest)
            or "zip" (element-wise, length-1 axes are broadcast). Defaults to "product".
        size: whether `radii` are "radius" or "diameter". Defaults to "radius".
        n_workers: number of parallel worker processes. Defaults to config.
        progress_bar: show a tqdm progress bar. Defaults to config.
        n_max: fixed truncation order for all points. Defaults to None (Wiscombe).
        backend: engine backend "torch" or "scipy". Defaults to config.
        precision: "single" or "double". Defaults to config.

    Raises:
        ValueError: inconsistent grid definition

    Warns:
        RuntimeWarning: for each failed grid point
        NumericalInstabilityWarning: summary of points failing the convergence check

    Returns:
        SweepResult: ordered records, one per grid point
    """
    config = get_config(
        n_workers=n_workers,
        progress_bar=progress_bar,
        backend=backend,
        precision=precision,
    )

    # Prepare grid
    wavelengths = _as_axis(wavelengths, "wavelengths")
    radii = _as_axis(radii, "radii")
    if size == "diameter":
        radii = [d / 2.0 for d in radii]
    elif size != "radius":
        raise ValueError(
            "`size` must be 'radius' or 'diameter', got '{}'.".format(size)
        )
    indices = _as_index_axis(index)
    points, shape = _build_grid([wavelengths, radii, indices], grid)

    engine_kwargs = dict(
        n_max=n_max, backend=config["backend"], precision=config["precision"]
    )
    args_list = [
        (i, wl, r, idx, n_medium, engine_kwargs)
        for i, (wl, r, idx) in enumerate(points)
    ]

    # Run calculations, each point lands in its own slot
    records = [None] * len(args_list)
    pbar_kwargs = dict(
        total=len(args_list), desc="Mie sweep", disable=not config["progress_bar"]
    )
    if config["n_workers"] == 1:
        for i_point, record in tqdm(map(_evaluate_point, args_list), **pbar_kwargs):
            records[i_point] = record
    else:
        with mp.Pool(config["n_workers"]) as pool:
            results = pool.imap_unordered(_evaluate_point, args_list)
            for i_point, record in tqdm(results, **pbar_kwargs):
                records[i_point] = record

    result = SweepResult(records, grid=grid, shape=shape)

    # Report diagnostics
    for i_point, record in enumerate(result):
        if record.error is not None:
            warnings.warn(
                "Sweep point {} (wavelength={}nm, radius={}nm) failed: {}".format(
                    i_point, record.wavelength, record.radius, record.error
                ),
                RuntimeWarning,
            )
    n_unstable = len(result.unstable)
    if n_unstable > 0:
        warnings.warn(
            "{} of {} sweep points failed the Mie series convergence check.".format(
                n_unstable, len(result)
            ),
            NumericalInstabilityWarning,
        )

    return result
