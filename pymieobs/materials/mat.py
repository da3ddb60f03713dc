# -*- coding: utf-8 -*-
"""
provider for complex refractive indices ``n + ik`` of particle and environment
materials. Wavelengths are in nm (vacuum).
"""
# %%

import warnings
import pathlib

import numpy as np
import torch

from pymieobs.helper import interp1d


DTYPE_FLOAT = torch.float64
DTYPE_COMPLEX = torch.complex128


# --- internal helpers
def _load_tabulated(dat_str):
    rows = dat_str["data"].split("\n")
    splitrows = [c.split() for c in rows]
    wl = []
    n = []
    k = []
    for s in splitrows:
        if len(s) > 0:
            wl.append(1000.0 * float(s[0]))  # microns --> nm
            n.append(float(s[1]))
            k.append(float(s[2]) if len(s) > 2 else 0.0)
    return wl, n, k


def _load_formula(dat_str):
    model_type = int((dat_str["type"].split())[1])
    coeff = [float(s) for s in dat_str["coefficients"].split()]
    for key in ["range", "wavelength_range"]:
        if key in dat_str:
            break
    # validity range (convert to nm)
    wl_range = [
        1e3 * float(dat_str[key].split()[0]),
        1e3 * float(dat_str[key].split()[1]),
    ]

    return model_type, wl_range, coeff


def _check_wavelength_range(wavelength, wl_range, name):
    wl_min, wl_max = float(wl_range[0]), float(wl_range[1])
    if torch.any(wavelength < wl_min) or torch.any(wavelength > wl_max):
        raise ValueError(
            "Wavelength outside of the data range of '{}' ".format(name)
            + "({:.1f}nm - {:.1f}nm). ".format(wl_min, wl_max)
            + "Use `extrapolate=True` to allow extrapolation."
        )


# --- material defining base class
class MaterialBase:
    """base class for material refractive indices"""

    __name__ = "material refractive index base class"

    def __repr__(self, verbose: bool = False):
        """description about material"""
        out_str = " ------ base material class - doesn't define anything yet -------"
        return out_str

    def get_refractive_index(self, wavelength):
        """return complex refractive index at `wavelength` (nm)"""
        raise NotImplementedError("Needs to be implemented in child class.")


class MatConstant(MaterialBase):
    """constant refractive index

    Material without dispersion
    """

    def __init__(self, n=1.5 + 0.0j):
        """constant refractive index material

        Args:
            n (complex, optional): complex refractive index ``n + ik``. Defaults to (1.5 + 0.0j).
        """
        self.n_scalar = torch.as_tensor(complex(n), dtype=DTYPE_COMPLEX)

        if self.n_scalar.imag == 0:
            self.__name__ = "n={:.3f}".format(float(self.n_scalar.real))
        else:
            self.__name__ = "n={:.3f}+i{:.4f}".format(
                float(self.n_scalar.real), float(self.n_scalar.imag)
            )

    def __repr__(self, verbose: bool = False):
        """description about material"""
        return "constant, isotropic material. refractive index = {:.3f}".format(
            complex(self.n_scalar)
        )

    def get_refractive_index(self, wavelength):
        """dispersionless, constant refractive index

        Args:
            wavelength (float or torch.Tensor): in nm

        Returns:
            torch.Tensor: complex refractive index, shape of `wavelength`
        """
        wavelength = torch.as_tensor(wavelength, dtype=DTYPE_FLOAT)
        return torch.ones_like(wavelength) * self.n_scalar


class MatTabulated(MaterialBase):
    """refractive index interpolated from tabulated (wavelength, n, k) data

    Linear interpolation runs in torch (autodiff w.r.t. the wavelength),
    cubic interpolation uses :class:`scipy.interpolate.CubicSpline`.
    Wavelengths outside the tabulated range raise a ValueError unless
    `extrapolate` is set (constant continuation for linear, spline
    extrapolation for cubic).
    """

    def __init__(
        self,
        wavelengths,
        n,
        k=None,
        name="tabulated",
        interpolation="linear",
        extrapolate=False,
    ):
        """tabulated refractive index

        Args:
            wavelengths (array-like): wavelengths of the data points in nm
            n (array-like): real part of the refractive index
            k (array-like, optional): imaginary part (``k >= 0``). Defaults to None (zero).
            name (str, optional): name of the material. Defaults to "tabulated".
            interpolation (str, optional): "linear" or "cubic". Defaults to "linear".
            extrapolate (bool, optional): allow evaluation outside of the data range. Defaults to False.

        Raises:
            ValueError: inconsistent data or unknown interpolation
        """
        if interpolation not in ["linear", "cubic"]:
            raise ValueError(
                "Unknown interpolation '{}'. Use 'linear' or 'cubic'.".format(
                    interpolation
                )
            )

        wl_dat = torch.as_tensor(np.asarray(wavelengths, dtype=np.float64))
        n_dat = torch.as_tensor(np.asarray(n, dtype=np.float64))
        if k is None:
            k_dat = torch.zeros_like(n_dat)
        else:
            k_dat = torch.as_tensor(np.asarray(k, dtype=np.float64))

        if not (wl_dat.dim() == 1 and len(wl_dat) == len(n_dat) == len(k_dat)):
            raise ValueError("wavelengths, n and k must be 1D of equal length.")
        if len(wl_dat) < 2:
            raise ValueError("At least two tabulated wavelengths are required.")
        if torch.any(k_dat < 0):
            raise ValueError("Imaginary part of the index must be non-negative.")

        i_sort = torch.argsort(wl_dat)
        self.wl_dat = wl_dat[i_sort]
        self.n_dat = n_dat[i_sort]
        self.k_dat = k_dat[i_sort]
        if torch.any(self.wl_dat[1:] == self.wl_dat[:-1]):
            raise ValueError("Duplicate wavelengths in tabulated data.")

        self.__name__ = name
        self.interpolation = interpolation
        self.extrapolate = extrapolate
        self.wl_range = [float(self.wl_dat[0]), float(self.wl_dat[-1])]
        self._spline = None

    def __repr__(self, verbose: bool = False):
        """description about material"""
        out_str = ' ----- Material "{}" (tabulated, {}) -----'.format(
            self.__name__, self.interpolation
        )
        out_str += "\n tabulated wavelength range: {:.1f}nm - {:.1f}nm".format(
            *self.wl_range
        )
        return out_str

    def _eval_cubic(self, wavelength):
        from scipy.interpolate import CubicSpline

        if self._spline is None:
            nk = np.stack([self.n_dat.numpy(), self.k_dat.numpy()], axis=-1)
            self._spline = CubicSpline(self.wl_dat.numpy(), nk, axis=0)

        nk_eval = self._spline(wavelength.detach().cpu().numpy())
        n_eval = torch.as_tensor(nk_eval[..., 0], dtype=DTYPE_FLOAT)
        k_eval = torch.as_tensor(nk_eval[..., 1], dtype=DTYPE_FLOAT)
        return n_eval, k_eval

    def get_refractive_index(self, wavelength):
        """interpolated refractive index at `wavelength`

        Args:
            wavelength (float or torch.Tensor): in nm

        Raises:
            ValueError: `wavelength` outside of the data range (if not `extrapolate`)

        Returns:
            torch.Tensor: complex refractive index, shape of `wavelength`
        """
        wavelength = torch.as_tensor(wavelength, dtype=DTYPE_FLOAT)
        if not self.extrapolate:
            _check_wavelength_range(wavelength, self.wl_range, self.__name__)

        if self.interpolation == "linear":
            n_eval = interp1d(wavelength, self.wl_dat, self.n_dat)
            k_eval = interp1d(wavelength, self.wl_dat, self.k_dat)
        else:
            n_eval, k_eval = self._eval_cubic(wavelength)

        # no gain from extrapolated absorption
        k_eval = torch.clamp(k_eval, min=0.0)
        return torch.complex(n_eval, k_eval)


# --- refractiveindex.info files
class MatDatabase(MaterialBase):
    """dispersion from a refractiveindex.info yaml file

    Use refractive index data from a yaml file downloaded from
    https://refractiveindex.info/. Currently supported formats are
    tabulated n(k) data or the Sellmeier model (formula 1).

    Requires `pyyaml` (pip3 install pyyaml)

    Parameters
    ----------
    yaml_file : str
        filename of yaml refractiveindex data to load.

    name : str, default: ""
        optional name of the material, defaults to the file name.

    """

    def __init__(
        self,
        yaml_file,
        name="",
        interpolation="linear",
        extrapolate=False,
    ):
        """dispersion from a database file

        supports data following the yaml format of refractiveindex.info.
        Currently tabulated refractive index and Sellmeier models are supported.

        Args:
            yaml_file (str): path to yaml file with material data to load.
            name (str, optional): Name of the material. Defaults to the file name.
            interpolation (str, optional): "linear" or "cubic" for tabulated data. Defaults to "linear".
            extrapolate (bool, optional): allow wavelengths outside of the data / validity range. Defaults to False.

        Raises:
            ValueError: unknown dispersion model type
        """
        import yaml

        self.__name__ = name if name else pathlib.Path(yaml_file).stem
        self.extrapolate = extrapolate

        with open(yaml_file, "r", encoding="utf8") as f:
            self.dset = yaml.load(f, Loader=yaml.BaseLoader)

        if len(self.dset["DATA"]) > 1:
            warnings.warn(
                "Several model entries in data-set for '{}' ({}). Using first entry.".format(
                    self.__name__, yaml_file
                )
            )
        dat = self.dset["DATA"][0]
        self.type = dat["type"]
        self.lookup_n = {}
        self.max_lookup = 10000

        # load refractive index model.
        # currently supported: tabulated data and Sellmeier model.
        # - tabulated data
        if self.type.split()[0] == "tabulated":
            wl_dat, n_dat, k_dat = _load_tabulated(dat)
            self.table = MatTabulated(
                wl_dat,
                n_dat,
                k_dat,
                name=self.__name__,
                interpolation=interpolation,
                extrapolate=extrapolate,
            )
            self.model_type = "data"
            self.coeff = []
            self.wl_range = self.table.wl_range

        # - Sellmeier
        elif self.type.split()[0] == "formula":
            self.model_type, self.wl_range, self.coeff = _load_formula(dat)
            if self.model_type != 1:
                raise ValueError(
                    "refractiveindex.info formula {} not implemented yet.".format(
                        self.model_type
                    )
                )
            self.model_type = "sellmeier"
        else:
            raise ValueError(
                "refractiveindex.info data type '{}' not implemented yet.".format(
                    self.type
                )
            )

    def __repr__(self, verbose: bool = False):
        """description about material"""
        out_str = ' ----- Material "{}" ({}) -----'.format(
            self.__name__, self.model_type
        )
        if self.model_type == "data":
            out_str += "\n tabulated wavelength range: {:.1f}nm - {:.1f}nm".format(
                *self.wl_range
            )
        elif self.model_type == "sellmeier":
            out_str += "\n Sellmeier model validity range: {:.1f}nm - {:.1f}nm".format(
                *self.wl_range
            )
        return out_str

    def _eval_sellmeier(self, wavelength):
        eps = 1 + self.coeff[0]

        def g(c1, c2, w):
            return c1 * (w**2) / (w**2 - c2**2)

        # wavelength factor 1/1000: nm --> microns
        wl_mu = wavelength / 1000.0
        for i in range(1, len(self.coeff), 2):
            eps = eps + g(self.coeff[i], self.coeff[i + 1], wl_mu)

        return torch.sqrt(torch.as_tensor(eps, dtype=DTYPE_FLOAT).to(DTYPE_COMPLEX))

    def _get_n_single_wl(self, wavelength):
        if wavelength.requires_grad:
            return self._eval_sellmeier(wavelength)

        # memoize evaluations
        wl_key = float(wavelength)

        if wl_key not in self.lookup_n:
            if len(self.lookup_n) >= self.max_lookup:
                self.lookup_n.clear()
            self.lookup_n[wl_key] = self._eval_sellmeier(wavelength).detach()

        return self.lookup_n[wl_key]

    def get_refractive_index(self, wavelength):
        """get refractive index at `wavelength`

        Args:
            wavelength (float or torch.Tensor): in nm

        Raises:
            ValueError: `wavelength` outside of the data range (if not `extrapolate`)

        Returns:
            torch.Tensor: complex refractive index, shape of `wavelength`
        """
        if self.model_type == "data":
            return self.table.get_refractive_index(wavelength)

        wavelength = torch.as_tensor(wavelength, dtype=DTYPE_FLOAT)
        if not self.extrapolate:
            _check_wavelength_range(wavelength, self.wl_range, self.__name__)

        # multiple wavelengths
        if wavelength.dim() > 0:
            n_flat = [self._get_n_single_wl(wl) for wl in wavelength.flatten()]
            return torch.stack(n_flat, dim=0).reshape(wavelength.shape)

        return self._get_n_single_wl(wavelength)
