# -*- coding: utf-8 -*-
"""
spherical Bessel functions and logarithmic derivatives for the Mie series

torch-native recurrences (autodiff through plain torch operations) and
auto-diff ready wrappers of the scipy spherical Bessel functions, which
serve as independent reference implementation.

All functions return every order ``0..n`` stacked along a new first
dimension, followed by the shape of the argument `z`.
"""
# %%
import warnings

import torch
from scipy.special import spherical_jn, spherical_yn

from pymieobs.exceptions import NumericalInstabilityWarning


def _get_dtypes(precision):
    if precision.lower() == "single":
        return torch.float32, torch.complex64
    if precision.lower() == "double":
        return torch.float64, torch.complex128
    raise ValueError(
        "precision must be 'single' or 'double', got '{}'.".format(precision)
    )


def _prepare_order_and_argument(n, z, dtype_c):
    n_max = int(torch.as_tensor(n).max())
    assert n_max >= 0, "Mie order needs to be a non-negative integer"
    z = torch.as_tensor(z).to(dtype=dtype_c)
    return n_max, z


# --- torch-native recurrences
def _lentz_log_derivative(n, z, max_iter=100000):
    """D_n(z) at a single order n via the Lentz continued fraction

    Lentz, Appl. Opt. 15, 668-671 (1976). Evaluated element-wise on `z`,
    iterations stop once every element has converged.
    """
    tol = max(1e-12, 10 * torch.finfo(z.real.dtype).eps)

    z_inv = 2.0 / z
    alpha = (n + 0.5) * z_inv
    a_j = -(n + 1.5) * z_inv
    alpha_j1 = a_j + 1.0 / alpha
    alpha_j2 = a_j
    ratio = alpha_j1 / alpha_j2
    run_ratio = alpha * ratio

    done = torch.abs(torch.abs(ratio) - 1.0) <= tol
    for _ in range(max_iter):
        if torch.all(done):
            break
        a_j = z_inv - a_j
        alpha_j1 = 1.0 / alpha_j1 + a_j
        alpha_j2 = 1.0 / alpha_j2 + a_j
        ratio = alpha_j1 / alpha_j2
        z_inv = -z_inv
        run_ratio = torch.where(done, run_ratio, run_ratio * ratio)
        done = done | (torch.abs(torch.abs(ratio) - 1.0) <= tol)
    else:
        warnings.warn(
            "Lentz continued fraction for D_{} did not converge.".format(n),
            NumericalInstabilityWarning,
        )

    return -n / z + run_ratio


def log_derivative_torch(n, z, n_add=15, precision="double", **kwargs):
    """logarithmic derivative D_n(z) = psi_n'(z) / psi_n(z) via downward recurrence

    The upward recurrence of D_n is unstable for complex arguments, therefore

        D_{k-1}(z) = k/z - 1 / (D_k(z) + k/z)

    is iterated downwards from the starting order ``max(n, |z|) + n_add``,
    seeded with D at that order from the Lentz continued fraction.

    Bohren & Huffman: Absorption and scattering of light by small particles.
    Eq. 4.89 and appendix A.

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex (or real) arguments to evaluate
        n_add (int): additional starting depth of the recurrence. Defaults to 15.
        precision (str): "single" our "double". defaults to "double".
        kwargs: other kwargs are ignored

    Returns:
        torch.Tensor: D_n for n=0..n_max, shape (n_max+1,) + z.shape
    """
    _, dtype_c = _get_dtypes(precision)
    n_max, z = _prepare_order_and_argument(n, z, dtype_c)

    z_abs_max = float(torch.abs(z).detach().max())
    n_start = max(n_max, int(z_abs_max) + 1) + int(n_add)

    # seed carries no gradient, its influence decays in the downward recurrence
    d_n = _lentz_log_derivative(n_start, z.detach())
    d_all = []  # use python list for orders to avoid in-place modif.
    for k in range(n_start, 0, -1):
        if k <= n_max:
            d_all.append(d_n)
        k_over_z = k / z
        d_n = k_over_z - 1.0 / (d_n + k_over_z)
    d_all.append(d_n)  # order zero

    return torch.stack(d_all[::-1], dim=0)


def sph_jn_torch(
    n,
    z,
    n_add="auto",
    max_n_add=50,
    small_z=1e-8,
    precision="double",
    **kwargs,
):
    """Vectorized spherical Bessel of the first kind via continued-fraction ratios.

    The ratios r_k = j_k / j_{k-1} are obtained by downward iteration of
    r_k = 1 / ((2k+1)/z - r_{k+1}). Absolute values follow from the exact
    j_0 or j_1, whichever has the larger magnitude (this avoids the zeros of
    j_0). Small z are evaluated with the Taylor series.
    Caution: intended for real or weakly complex arguments, large |Im z|
    overflows the trigonometric normalization.

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex (or real) arguments to evalute
        n_add (str or int): 'auto' or integer extra depth for the continued fraction.
                           'auto' picks a default based on max|z|. defaults to "auto"
        max_n_add (int): upper bound for automatic extra depth. defaults to 50.
        small_z (float): threshold to treat z as small and use the Taylor series. Defaults to 1e-8.
        precision (str): "single" our "double". defaults to "double".
        kwargs: other kwargs are ignored

    Returns:
        torch.Tensor: j_n for n=0..n_max, shape (n_max+1,) + z.shape
    """
    dtype_f, dtype_c = _get_dtypes(precision)
    n_max, z = _prepare_order_and_argument(n, z, dtype_c)

    mask_small = torch.abs(z) < small_z
    z_safe = torch.where(mask_small, torch.ones_like(z), z)

    # - small z: leading series term j_n(z) ~ z^n / (2n+1)!!
    terms = [torch.ones_like(z)]
    for k in range(1, n_max + 1):
        terms.append(terms[-1] * z / (2.0 * k + 1.0))
    jn_small = torch.stack(terms, dim=0)

    # - continued fraction, downward from N = max(n_max, |z|) + n_add
    z_abs_max = float(torch.abs(z).detach().max())
    if n_add == "auto":
        n_add = min(max_n_add, 20 + int(4.0 * z_abs_max ** (1 / 3)))
    N = max(n_max, int(z_abs_max)) + int(n_add)

    tiny = torch.finfo(dtype_f).tiny
    r_next = torch.zeros_like(z)
    ratios = []
    for k in range(N, 0, -1):
        denom = (2.0 * k + 1.0) / z_safe - r_next
        denom = torch.where(denom == 0, torch.full_like(denom, tiny), denom)
        r_k = 1.0 / denom
        if k <= n_max:
            ratios.append(r_k)
        r_next = r_k
    ratios = ratios[::-1]  # r_1 .. r_n_max

    # - normalization with the larger of j_0, j_1
    j0 = torch.sin(z_safe) / z_safe
    if n_max == 0:
        jn_big = j0.unsqueeze(0)
    else:
        j1 = torch.sin(z_safe) / z_safe**2 - torch.cos(z_safe) / z_safe
        use_j0 = torch.abs(j0) >= torch.abs(j1)
        jns = [
            torch.where(use_j0, j0, j1 / ratios[0]),
            torch.where(use_j0, j0 * ratios[0], j1),
        ]
        for r_k in ratios[1:]:
            jns.append(jns[-1] * r_k)
        jn_big = torch.stack(jns, dim=0)

    return torch.where(mask_small.unsqueeze(0), jn_small, jn_big)


def sph_yn_torch(n, z, eps=1e-10, precision="double", **kwargs):
    """Vectorized spherical Bessel of the second kind via upward recurrence

    Upward iteration is stable for y_n, which grows with the order.

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex (or real) arguments to evalute
        eps (float): minimum value for |z| to avoid numerical instability
        precision (str): "single" our "double". defaults to "double".
        kwargs: other kwargs are ignored

    Returns:
        torch.Tensor: y_n for n=0..n_max, shape (n_max+1,) + z.shape
    """
    _, dtype_c = _get_dtypes(precision)
    n_max, z = _prepare_order_and_argument(n, z, dtype_c)

    # add epsilon to small values for numerical stability
    z = torch.where(torch.abs(z) < eps, eps * torch.ones_like(z), z)

    yns = [-torch.cos(z) / z]
    if n_max > 0:
        yns.append(-torch.cos(z) / z**2 - torch.sin(z) / z)
    for k in range(2, n_max + 1):
        yns.append(((2 * k - 1) / z) * yns[k - 1] - yns[k - 2])

    return torch.stack(yns, dim=0)


def riccati_bessel_torch(n, x, precision="double", **kwargs):
    """Riccati-Bessel functions psi_n(x) = x j_n(x) and xi_n(x) = x h1_n(x)

    Args:
        n (torch.Tensor or int): maximum order
        x (torch.Tensor): real arguments (size parameters)
        precision (str): "single" our "double". defaults to "double".
        kwargs: passed to :func:`sph_jn_torch`

    Returns:
        torch.Tensor, torch.Tensor: psi_n and xi_n for n=0..n_max
    """
    _, dtype_c = _get_dtypes(precision)
    jn = sph_jn_torch(n, x, precision=precision, **kwargs)
    yn = sph_yn_torch(n, x, precision=precision)

    _x = torch.as_tensor(x).to(dtype=dtype_c).unsqueeze(0)
    psi = _x * jn
    xi = _x * (jn + 1j * yn)

    return psi, xi


# --- auto-diff wrappers of scipy
def _expand_n_z(n, z):
    _z = torch.as_tensor(z).to(dtype=torch.complex128)
    # add order dimension (first dim.)
    _z = _z.unsqueeze(0)

    _n = torch.as_tensor(n, dtype=torch.int64).squeeze()
    assert _n.nelement() == 1, "Mie order needs to be integer single element"
    _n_range = torch.arange(int(_n) + 1, device=_z.device)
    _n_range = _n_range[(...,) + (None,) * (_z.ndim - 1)]
    return _n_range, _z


def _scipy_autodiff(scipy_func):
    """autograd function of a scipy spherical Bessel function of order n"""

    class _AutoDiffSphBessel(torch.autograd.Function):
        @staticmethod
        def forward(n, z):
            n_np, z_np = n.detach().cpu().numpy(), z.detach().cpu().numpy()
            result = torch.from_numpy(scipy_func(n_np, z_np))
            return result.to(device=z.device)

        @staticmethod
        def setup_context(ctx, inputs, output):
            n, z = inputs
            ctx.save_for_backward(n, z)

        @staticmethod
        @torch.autograd.function.once_differentiable
        def backward(ctx, grad_result):
            n, z = ctx.saved_tensors
            n_np, z_np = n.detach().cpu().numpy(), z.detach().cpu().numpy()

            dz = torch.from_numpy(scipy_func(n_np, z_np, derivative=True))
            dz = dz.to(device=z.device)

            # torch convention: use conjugate!
            # see: https://pytorch.org/docs/stable/notes/autograd.html#autograd-for-complex-numbers
            grad_wrt_z = (grad_result * dz.conj()).sum(dim=0, keepdim=True)

            # differentiation wrt order `n` (int) is not allowed
            return None, grad_wrt_z

    return _AutoDiffSphBessel


_AutoDiffJn = _scipy_autodiff(spherical_jn)
_AutoDiffYn = _scipy_autodiff(spherical_yn)


def sph_jn(n, z, **kwargs):
    """spherical Bessel function of first kind (scipy)

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex argument

    Returns:
        torch.Tensor: j_n for n=0..n_max, shape (n_max+1,) + z.shape
    """
    _n, _z = _expand_n_z(n, z)
    return _AutoDiffJn.apply(_n, _z)


def sph_yn(n, z, **kwargs):
    """spherical Bessel function of second kind (scipy)

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex argument

    Returns:
        torch.Tensor: y_n for n=0..n_max, shape (n_max+1,) + z.shape
    """
    _n, _z = _expand_n_z(n, z)
    return _AutoDiffYn.apply(_n, _z)


def f_der(n, z, f_n, **kwargs):
    """eval. derivatives of a spherical Bessel function (any unmodified)

    d/dz f_0 = -f_1
    d/dz f_n = f_{n-1} - (n+1)/z f_n, for n>0

    Args:
        n (torch.Tensor or int): maximum order, at least 1
        z (torch.Tensor): arguments at which `f_n` was evaluated
        f_n (torch.Tensor): f_n(z) for all orders 0..n (order is first dim.)
        kwargs: other kwargs are ignored

    Returns:
        torch.Tensor: tensor of same shape as f_n
    """
    _n, _z = _expand_n_z(n, z)
    if int(_n.max()) < 1:
        warnings.warn("derivative of order zero requires f_1, returning -f_1 only.")

    df_0 = -f_n[1:2]
    df_n = f_n[:-1] - ((_n[1:] + 1) / _z) * f_n[1:]
    return torch.cat((df_0, df_n), dim=0)


def psi(n, z, **kwargs):
    """Riccati-Bessel function of the first kind (scipy)

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex argument
        kwargs: additional kwargs are ignored

    Returns:
        torch.Tensor, torch.Tensor: psi_n(z) and its derivative
    """
    jn = sph_jn(n, z)
    jn_der = f_der(n, z, jn)

    _n, _z = _expand_n_z(n, z)  # expand _z for broadcasting
    return _z * jn, jn + _z * jn_der


def xi(n, z, **kwargs):
    """Riccati-Bessel function of the third kind (scipy)

    Args:
        n (torch.Tensor or int): maximum order
        z (torch.Tensor): complex argument
        kwargs: additional kwargs are ignored

    Returns:
        torch.Tensor, torch.Tensor: xi_n(z) and its derivative
    """
    h1n = sph_jn(n, z) + 1j * sph_yn(n, z)
    h1n_der = f_der(n, z, h1n)

    _n, _z = _expand_n_z(n, z)  # expand _z for broadcasting
    return _z * h1n, h1n + _z * h1n_der
