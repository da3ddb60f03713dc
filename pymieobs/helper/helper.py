# -*- coding: utf-8 -*-
"""pymieobs.helper – Utility functions for Mie-scattering calculations.

* **Series-truncation criteria**
  - :func:`get_truncation_criterion_wiscombe` – Wiscombe's empirical rule for
    choosing the maximum order ``n_max`` of the Mie series.
* **Numerical utilities**
  - :func:`interp1d` – Simple 1-D linear interpolation implemented with PyTorch.
  - :func:`num_center_diff` – Central finite-difference derivative.

All functions accept `torch.Tensor` objects and are compatible with
PyTorch's autograd.
"""
import torch


def get_truncation_criterion_wiscombe(x):
    """number of Mie orders needed for convergence at size parameter `x`

    Wiscombe, W. J.
    "Improved Mie scattering algorithms."
    Appl. Opt. 19.9, 1505–1509 (1980)

    Args:
        x (float or torch.Tensor): size parameter(s). For a tensor the
            largest absolute value is used.

    Returns:
        int: truncation order n_max (at least 2)
    """
    x = torch.max(torch.abs(torch.as_tensor(x, dtype=torch.float64))).detach()

    if x <= 8:
        n_max = int(torch.round(1 + x + 4.0 * (x ** (1 / 3))))
    elif 8 < x < 4200:
        n_max = int(torch.round(2 + x + 4.05 * (x ** (1 / 3))))
    else:
        n_max = int(torch.round(2 + x + 4.0 * (x ** (1 / 3))))

    # at least two orders, the decay check compares the last to the leading one
    return max(n_max, 2)


def interp1d(x_eval: torch.Tensor, x_dat: torch.Tensor, y_dat: torch.Tensor):
    """1D linear interpolation

    simple torch implementation of :func:`numpy.interp`. Values outside the
    data range are clamped to the first / last data point.

    Args:
        x_eval (torch.Tensor): The x-coordinates at which to evaluate the interpolated values.
        x_dat (torch.Tensor): The x-coordinates of the data points
        y_dat (torch.Tensor): The y-coordinates of the data points, same length as `x_dat`.

    Returns:
        torch.Tensor: The interpolated values, same shape as `x_eval`
    """
    assert len(x_dat) == len(y_dat)
    assert not torch.is_complex(x_dat)
    x_eval = torch.as_tensor(x_eval, dtype=x_dat.dtype, device=x_dat.device)

    # sort x input data
    i_sort = torch.argsort(x_dat)
    _x = x_dat[i_sort]
    _y = y_dat[i_sort]

    # find left/right neighbor x datapoints
    idx_r = torch.bucketize(x_eval, _x)
    idx_l = idx_r - 1
    idx_r = idx_r.clamp(0, _x.shape[0] - 1)
    idx_l = idx_l.clamp(0, _x.shape[0] - 1)

    # distances to left / right (=weights)
    dist_l = (x_eval - _x[idx_l]).clamp(min=0.0)
    dist_r = (_x[idx_r] - x_eval).clamp(min=0.0)
    dist_l = torch.where(
        torch.logical_and(dist_l == 0, dist_r == 0), torch.ones_like(dist_l), dist_l
    )

    # linear interpolated values
    y_eval = (_y[idx_l] * dist_r + _y[idx_r] * dist_l) / (dist_l + dist_r)

    return y_eval


def num_center_diff(funct, x, h=1e-6):
    """central finite difference of a real valued function of `x`"""
    return (funct(x + h) - funct(x - h)) / (2 * h)
