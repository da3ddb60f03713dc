# -*- coding: utf-8 -*-
"""
Mie coefficients and far-field efficiencies of a homogeneous sphere

analytical solutions taken from

Bohren, Craig F., and Donald R. Huffman.
Absorption and scattering of light by small particles. John Wiley & Sons, 2008.

Sign convention: time dependence exp(-i omega t), the relative refractive
index is ``m = n + ik`` with ``k >= 0`` for absorbing particles.
"""
# %%
import warnings
from typing import NamedTuple

import numpy as np
import torch

from pymieobs import special
from pymieobs.config import get_config
from pymieobs.exceptions import DegenerateRatioError
from pymieobs.exceptions import InvalidInputError
from pymieobs.exceptions import NumericalInstabilityWarning
from pymieobs.helper import get_truncation_criterion_wiscombe


def _as_tensor(values):
    # python and numpy scalars become float64 / complex128 tensors
    if isinstance(values, torch.Tensor):
        return values
    return torch.as_tensor(np.asarray(values))


def _check_inputs(x, m):
    if torch.is_complex(x):
        if torch.any(x.imag != 0):
            raise InvalidInputError("Size parameter must be real.")
        x = x.real
    if not torch.all(torch.isfinite(x)):
        raise InvalidInputError("Size parameter must be finite.")
    if torch.any(x <= 0):
        raise InvalidInputError(
            "Size parameter must be positive, got {}.".format(float(x.min()))
        )

    if not torch.all(torch.isfinite(m)):
        raise InvalidInputError("Relative refractive index must be finite.")
    m = m.to(torch.complex128) if not torch.is_complex(m) else m
    if torch.any(m == 0):
        raise InvalidInputError("Relative refractive index must not be zero.")
    if torch.any(m.imag < 0):
        raise InvalidInputError(
            "Negative imaginary part of the relative index. "
            + "Absorbing particles use m = n + ik with k >= 0."
        )
    if torch.any(m.real < 0):
        raise InvalidInputError(
            "Negative real part of the relative index is not supported."
        )
    return x, m


def _broadcast_inputs(x, m, precision):
    dtype_f, dtype_c = special._get_dtypes(precision)

    x = _as_tensor(x)
    m = _as_tensor(m)
    x, m = torch.broadcast_tensors(x, m)
    x, m = _check_inputs(x, m)

    return x.to(dtype=dtype_f), m.to(dtype=dtype_c)


def _miecoef(x, m, n_max, backend="torch", precision="double", n_add_logderiv=15):
    """Mie coefficients a_n, b_n for n=1..n_max

    Bohren & Huffman Eqs. 4.53 and 4.88.

    Args:
        x (torch.Tensor): size parameters (real)
        m (torch.Tensor): relative refractive indices, same shape as `x`
        n_max (int): truncation order
        backend (str): "torch" (log-derivative recurrences) or "scipy"
            (direct Riccati-Bessel formula)
        precision (str): "single" or "double"
        n_add_logderiv (int): extra starting depth of the D_n recurrence

    Returns:
        torch.Tensor, torch.Tensor: a_n and b_n, shape (n_max,) + x.shape
    """
    dtype_f, dtype_c = special._get_dtypes(precision)
    n = torch.arange(1, n_max + 1, dtype=dtype_f, device=x.device)
    n = n.view((-1,) + (1,) * x.dim())
    _x = x.unsqueeze(0)
    _m = m.unsqueeze(0)

    if backend.lower() == "torch":
        d_n = special.log_derivative_torch(
            n_max, m * x, n_add=n_add_logderiv, precision=precision
        )[1:]
        psi, xi = special.riccati_bessel_torch(n_max, x, precision=precision)
        psi_n, psi_nm1 = psi[1:], psi[:-1]
        xi_n, xi_nm1 = xi[1:], xi[:-1]

        da = d_n / _m + n / _x
        db = _m * d_n + n / _x
        a_n = (da * psi_n - psi_nm1) / (da * xi_n - xi_nm1)
        b_n = (db * psi_n - psi_nm1) / (db * xi_n - xi_nm1)

    elif backend.lower() == "scipy":
        psi_x, dpsi_x = special.psi(n_max, x)
        xi_x, dxi_x = special.xi(n_max, x)
        psi_mx, dpsi_mx = special.psi(n_max, m * x)
        _m = _m.to(torch.complex128)

        a_n = (_m * psi_mx * dpsi_x - psi_x * dpsi_mx) / (
            _m * psi_mx * dxi_x - xi_x * dpsi_mx
        )
        b_n = (psi_mx * dpsi_x - _m * psi_x * dpsi_mx) / (
            psi_mx * dxi_x - _m * xi_x * dpsi_mx
        )
        # remove order zero, cast to requested precision
        a_n = a_n[1:].to(dtype_c)
        b_n = b_n[1:].to(dtype_c)

    else:
        raise ValueError(
            "Unknown backend '{}'. Use 'torch' or 'scipy'.".format(backend)
        )

    # no scattering by an index-matched sphere
    matched = (_m == 1).expand_as(a_n)
    a_n = torch.where(matched, torch.zeros_like(a_n), a_n)
    b_n = torch.where(matched, torch.zeros_like(b_n), b_n)

    return a_n, b_n


def mie_coefficients(
    x,
    m,
    n_max=None,
    backend=None,
    precision=None,
    n_add_logderiv=None,
):
    """Mie coefficients of a homogeneous sphere

    Inputs are broadcast against each other. The truncation order is the
    Wiscombe criterion of the largest size parameter unless given.

    Args:
        x (float or torch.Tensor): size parameter(s) ``2 pi r n_env / wavelength``
        m (complex or torch.Tensor): relative refractive index ``n_particle / n_env``
        n_max (int, optional): truncation order. Defaults to None (Wiscombe).
        backend (str, optional): "torch" or "scipy". Defaults to config.
        precision (str, optional): "single" or "double". Defaults to config.
        n_add_logderiv (int, optional): extra depth of the log-derivative
            recurrence. Defaults to config.

    Raises:
        InvalidInputError: non-physical size parameter or refractive index

    Returns:
        dict: "a_n", "b_n" (order is first dimension), "n" (orders),
        "n_max", "x" and "m" (broadcast inputs)
    """
    conf = get_config(
        backend=backend, precision=precision, n_add_logderiv=n_add_logderiv
    )
    x, m = _broadcast_inputs(x, m, conf["precision"])

    if n_max is None:
        n_max = get_truncation_criterion_wiscombe(x)
    n_max = int(n_max)
    if n_max < 1:
        raise InvalidInputError("Truncation order must be at least 1.")

    a_n, b_n = _miecoef(
        x,
        m,
        n_max,
        backend=conf["backend"],
        precision=conf["precision"],
        n_add_logderiv=conf["n_add_logderiv"],
    )

    return dict(
        a_n=a_n,
        b_n=b_n,
        n=torch.arange(1, n_max + 1, device=x.device),
        n_max=n_max,
        x=x,
        m=m,
    )


def _check_decay(a_n, b_n, tolerance):
    """flag points whose coefficients do not decay at the truncation order"""
    mag = torch.abs(a_n) + torch.abs(b_n)
    peak = torch.max(mag, dim=0).values
    ratio = mag[-1] / torch.where(peak > 0, peak, torch.ones_like(peak))

    finite = torch.all(torch.isfinite(a_n), dim=0) & torch.all(
        torch.isfinite(b_n), dim=0
    )
    return torch.logical_or(~finite, ratio > tolerance).detach()


def efficiencies(
    x,
    m,
    n_max=None,
    backend=None,
    precision=None,
    degenerate_threshold=None,
    decay_tolerance=None,
    **kwargs,
):
    """far-field efficiencies and asymmetry factor of a homogeneous sphere

    Bohren & Huffman Eqs. 4.61, 4.62 and 4.80. All outputs are torch
    tensors of the broadcast input shape and support autograd w.r.t.
    `x` and `m`.

    Args:
        x (float or torch.Tensor): size parameter(s)
        m (complex or torch.Tensor): relative refractive index
        n_max (int, optional): truncation order. Defaults to None (Wiscombe).
        backend (str, optional): "torch" or "scipy". Defaults to config.
        precision (str, optional): "single" or "double". Defaults to config.
        degenerate_threshold (float, optional): Q_ext / x^4 (Q_sca / x^4) at
            or below which the albedo (g) is undefined. Defaults to config.
        decay_tolerance (float, optional): allowed relative magnitude of the
            last Mie coefficient pair. Defaults to config.
        kwargs: passed to :func:`mie_coefficients`

    Raises:
        InvalidInputError: non-physical size parameter or refractive index

    Warns:
        NumericalInstabilityWarning: coefficients did not decay for some points

    Returns:
        dict: q_ext, q_sca, q_abs, albedo, g, q_back, q_pr, the multipole
        decomposition q_ext_multipoles / q_sca_multipoles / q_abs_multipoles
        (shape (2, n_max, ...), electric first), boolean masks unstable and
        degenerate, and the Mie coefficients.
    """
    conf = get_config(
        degenerate_threshold=degenerate_threshold, decay_tolerance=decay_tolerance
    )
    coef = mie_coefficients(
        x, m, n_max=n_max, backend=backend, precision=precision, **kwargs
    )
    a_n, b_n, x = coef["a_n"], coef["b_n"], coef["x"]

    n = coef["n"].to(x.dtype).view((-1,) + (1,) * x.dim())
    x2 = x.unsqueeze(0) ** 2
    prefactor = 2 * (2 * n + 1) / x2

    # - efficiencies, multipole decomposition: (electric, magnetic)
    q_ext_mp = prefactor * torch.stack((a_n.real, b_n.real), dim=0)
    q_sca_mp = prefactor * torch.stack(
        (torch.abs(a_n) ** 2, torch.abs(b_n) ** 2), dim=0
    )
    q_abs_mp = q_ext_mp - q_sca_mp

    q_ext = torch.sum(q_ext_mp, dim=(0, 1))
    q_sca = torch.sum(q_sca_mp, dim=(0, 1))
    q_abs = q_ext - q_sca

    # - asymmetry factor
    a_next = torch.cat((a_n[1:], torch.zeros_like(a_n[:1])), dim=0)
    b_next = torch.cat((b_n[1:], torch.zeros_like(b_n[:1])), dim=0)
    w_cross = n * (n + 2) / (n + 1)
    w_self = (2 * n + 1) / (n * (n + 1))
    g_sum = torch.sum(
        w_cross * (a_n * a_next.conj() + b_n * b_next.conj()).real
        + w_self * (a_n * b_n.conj()).real,
        dim=0,
    )

    # - backscattering
    alternating = 1 - 2 * torch.remainder(n, 2)
    q_back = (
        torch.abs(torch.sum((2 * n + 1) * alternating * (a_n - b_n), dim=0)) ** 2
        / x**2
    )

    # - degenerate ratios
    # threshold relative to the Rayleigh scaling Q ~ x^4
    thr = conf["degenerate_threshold"] * x.detach() ** 4
    degenerate = (q_ext <= thr).detach()
    no_scat = (q_sca <= thr).detach()
    nan = torch.full_like(q_ext, float("nan"))
    q_ext_safe = torch.where(degenerate, torch.ones_like(q_ext), q_ext)
    q_sca_safe = torch.where(no_scat, torch.ones_like(q_sca), q_sca)

    albedo = torch.where(
        degenerate, nan, torch.clamp(q_sca / q_ext_safe, min=0.0, max=1.0)
    )
    g_safe = torch.where(
        no_scat, torch.zeros_like(g_sum), 4 * g_sum / (x**2 * q_sca_safe)
    )
    g = torch.where(no_scat, nan, g_safe)
    q_pr = q_ext - g_safe * q_sca

    # - convergence
    unstable = _check_decay(a_n, b_n, conf["decay_tolerance"])
    if torch.any(unstable):
        warnings.warn(
            "Mie coefficients did not decay at order n_max={} ".format(coef["n_max"])
            + "for {} of {} points. ".format(int(unstable.sum()), unstable.numel())
            + "Results may be inaccurate.",
            NumericalInstabilityWarning,
        )

    return dict(
        q_ext=q_ext,
        q_sca=q_sca,
        q_abs=q_abs,
        albedo=albedo,
        g=g,
        q_back=q_back,
        q_pr=q_pr,
        q_ext_multipoles=q_ext_mp,
        q_sca_multipoles=q_sca_mp,
        q_abs_multipoles=q_abs_mp,
        unstable=unstable,
        degenerate=degenerate,
        a_n=a_n,
        b_n=b_n,
        n_max=coef["n_max"],
        x=x,
        m=coef["m"],
    )


class ScatteringOutput(NamedTuple):
    """far-field observables of a single sphere

    `albedo` is NaN for a degenerate point (vanishing extinction), `g` is
    NaN if there is no scattering.
    """

    q_ext: float
    q_sca: float
    q_abs: float
    albedo: float
    g: float
    q_back: float
    q_pr: float
    n_max: int
    unstable: bool = False
    degenerate: bool = False


def compute_efficiencies(
    size_parameter,
    relative_index,
    n_max=None,
    backend=None,
    precision=None,
    strict=False,
    **kwargs,
):
    """Mie efficiencies, albedo and asymmetry factor of one sphere

    Args:
        size_parameter (float): size parameter ``x = 2 pi r n_env / wavelength`` (> 0)
        relative_index (complex): relative refractive index ``m = n + ik``, ``k >= 0``
        n_max (int, optional): truncation order. Defaults to None (Wiscombe).
        backend (str, optional): "torch" or "scipy". Defaults to config.
        precision (str, optional): "single" or "double". Defaults to config.
        strict (bool, optional): raise on a degenerate albedo instead of
            returning NaN. Defaults to False.
        kwargs: passed to :func:`efficiencies`

    Raises:
        InvalidInputError: non-physical size parameter or refractive index
        DegenerateRatioError: only if `strict`, extinction efficiency vanishes

    Warns:
        NumericalInstabilityWarning: coefficients did not decay at `n_max`

    Returns:
        ScatteringOutput: record of python floats and flags
    """
    n_points = max(
        _as_tensor(size_parameter).numel(), _as_tensor(relative_index).numel()
    )
    if n_points != 1:
        raise InvalidInputError(
            "Single size parameter and index expected, use `efficiencies` for batches."
        )

    res = efficiencies(
        size_parameter,
        relative_index,
        n_max=n_max,
        backend=backend,
        precision=precision,
        **kwargs,
    )

    degenerate = bool(res["degenerate"])
    if degenerate and strict:
        raise DegenerateRatioError(
            "Extinction efficiency {:.3g} is too small for a meaningful ".format(
                float(res["q_ext"])
            )
            + "albedo (x={}, m={}).".format(size_parameter, relative_index)
        )

    return ScatteringOutput(
        q_ext=float(res["q_ext"]),
        q_sca=float(res["q_sca"]),
        q_abs=float(res["q_abs"]),
        albedo=float(res["albedo"]),
        g=float(res["g"]),
        q_back=float(res["q_back"]),
        q_pr=float(res["q_pr"]),
        n_max=res["n_max"],
        unstable=bool(res["unstable"]),
        degenerate=degenerate,
    )
