# -*- coding: utf-8 -*-
"""
pymieobs.main
=============

High-level interface for a single homogeneous sphere.

The module defines the :class:`Particle` class, which bundles radius,
particle material and environment material. It provides spectra of Mie
coefficients, efficiencies and cross sections, handling the unit
conversion to size parameter and relative refractive index.

Typical usage
-------------

>>> import torch, pymieobs as pmo
>>> wl = torch.linspace(400, 800, 100)
>>> p = pmo.Particle(radius=100.0, mat=1.5 + 0.01j, mat_env=1.33)
>>> res = p.get_efficiencies(wl)   # dict with spectra (wavelength, q_ext, ...)

The class supports only a single particle. For vectorised calculations
over arbitrary (x, m) pairs see :func:`pymieobs.mie.efficiencies`, for
grids of wavelengths, radii and materials see :func:`pymieobs.sweep`.

"""
import torch

from pymieobs import mie
from pymieobs.exceptions import InvalidInputError
from pymieobs.materials import MatConstant
from pymieobs.materials import MaterialBase


def _as_material(mat):
    if isinstance(mat, MaterialBase):
        return mat
    return MatConstant(complex(mat))


class Particle:
    def __init__(self, radius, mat, mat_env=1.0):
        """
        Initialise a homogeneous spherical particle.

        Parameters
        ----------
        radius : float or torch.Tensor
            Particle radius (in nm). A tensor requiring gradients is kept as
            is, so spectra can be differentiated w.r.t. the radius.

        mat : pymieobs.materials.MaterialBase or float/complex
            Particle material. A scalar is interpreted as constant refractive
            index ``n + ik`` (:class:`pymieobs.materials.MatConstant`).

        mat_env : pymieobs.materials.MaterialBase or float, optional
            Non-absorbing environment. Defaults to a refractive index of
            ``1.0`` (air).

        Raises
        ------
        InvalidInputError
            If the radius is not positive.
        """
        self.radius = mie._as_tensor(radius)  # nm
        if not torch.is_floating_point(self.radius):
            self.radius = self.radius.to(torch.float64)
        if torch.any(self.radius <= 0):
            raise InvalidInputError("Particle radius must be positive.")

        self.mat = _as_material(mat)
        self.mat_env = _as_material(mat_env)

    def __repr__(self):
        out_str = "homogeneous particle\n"
        out_str += " - radius      = {}nm\n".format(self.radius.data)
        out_str += " - material    : {}\n".format(self.mat.__name__)
        out_str += " - environment : {}\n".format(self.mat_env.__name__)
        return out_str

    def get_refractive_indices(self, wavelength):
        """
        Return spectral refractive indices of particle and environment.

        Parameters
        ----------
        wavelength : torch.Tensor
            Vacuum wavelengths (nm).

        Returns
        -------
        tuple of torch.Tensor
            (n_p, n_env), complex refractive indices at ``wavelength``.

        Raises
        ------
        InvalidInputError
            If the environment is absorbing.
        """
        n_p = self.mat.get_refractive_index(wavelength)
        n_env = self.mat_env.get_refractive_index(wavelength)
        if torch.any(n_env.imag != 0) or torch.any(n_env.real <= 0):
            raise InvalidInputError(
                "Environment must be non-absorbing with positive refractive index."
            )
        return n_p, n_env

    def get_size_parameter(self, wavelength):
        """size parameter ``x = 2 pi r n_env / wavelength``"""
        wavelength = torch.as_tensor(wavelength, dtype=torch.float64)
        _, n_env = self.get_refractive_indices(wavelength)
        return 2 * torch.pi * self.radius * n_env.real / wavelength

    def get_relative_index(self, wavelength):
        """relative refractive index ``m = n_p / n_env``"""
        n_p, n_env = self.get_refractive_indices(wavelength)
        return n_p / n_env

    def get_mie_coefficients(self, wavelength, **kwargs) -> dict:
        """
        Compute Mie coefficients for the particle.

        Parameters
        ----------
        wavelength : torch.Tensor
            Vacuum wavelengths (nm).
        **kwargs : dict
            Additional keyword arguments passed to
            :func:`pymieobs.mie.mie_coefficients`. Typical options include
            ``n_max`` to manually set the truncation order.

        Returns
        -------
        dict
            Mie coefficients ``a_n``, ``b_n`` (order is first dimension),
            ``n``, ``n_max``, size parameter ``x`` and relative index ``m``
            plus ``wavelength``, ``n_p`` and ``n_env``.
        """
        wavelength = torch.as_tensor(wavelength, dtype=torch.float64)
        n_p, n_env = self.get_refractive_indices(wavelength)
        x = 2 * torch.pi * self.radius * n_env.real / wavelength

        res = mie.mie_coefficients(x, n_p / n_env, **kwargs)
        res.update(wavelength=wavelength, n_p=n_p, n_env=n_env)
        return res

    def get_efficiencies(self, wavelength, **kwargs) -> dict:
        """
        Compute efficiencies and cross sections for the particle.

        Parameters
        ----------
        wavelength : torch.Tensor
            Vacuum wavelengths (nm).
        **kwargs : dict
            Additional keyword arguments passed to
            :func:`pymieobs.mie.efficiencies`.

        Returns
        -------
        dict
            All results of :func:`pymieobs.mie.efficiencies`, plus
            ``wavelength``, geometric cross section ``cs_geo`` and the cross
            sections ``cs_ext``, ``cs_sca``, ``cs_abs`` (nm^2).
        """
        wavelength = torch.as_tensor(wavelength, dtype=torch.float64)
        n_p, n_env = self.get_refractive_indices(wavelength)
        x = 2 * torch.pi * self.radius * n_env.real / wavelength

        res = mie.efficiencies(x, n_p / n_env, **kwargs)

        cs_geo = torch.pi * self.radius**2
        res.update(
            wavelength=wavelength,
            cs_geo=cs_geo,
            cs_ext=res["q_ext"] * cs_geo,
            cs_sca=res["q_sca"] * cs_geo,
            cs_abs=res["q_abs"] * cs_geo,
        )
        return res
