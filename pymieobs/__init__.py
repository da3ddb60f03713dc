# encoding=utf-8
#
# Copyright (C) 2025, O. K. Jackson, P. R. Wiecha
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
"""
pyMieObs - single-sphere Mie observables

Extinction, scattering and absorption efficiencies, single-scattering
albedo and asymmetry factor of a homogeneous sphere, implemented in pytorch.

API
===

Engine
------

The Mie engine evaluates one (size parameter, relative index) pair or
a broadcast batch of pairs:

.. currentmodule:: pymieobs

.. autosummary::
   :toctree: generated/

   compute_efficiencies
   ScatteringOutput
   mie


Particle class
--------------

The :class:`pymieobs.Particle` class describes a homogeneous sphere in an
environment and returns spectra of efficiencies and cross sections:

.. autosummary::
   :toctree: generated/

   Particle


Sweeps
------

Evaluation over wavelength / radius / index grids with per-point failure
isolation:

.. autosummary::
   :toctree: generated/

   sweep


Materials
----------

Constant and tabulated refractive indices, including the
refractiveindex.info yaml format.

.. autosummary::
   :toctree: generated/

   materials


Special
----------

Torch-native recurrences for the logarithmic derivative and the spherical
Bessel functions, as well as autodiff wrappers of scipy.

.. autosummary::
   :toctree: generated/

   special


Helper
------

Truncation criterion and interpolation.

.. autosummary::
   :toctree: generated/

   helper

"""

__name__ = "pymieobs"
__version__ = "0.1"
__date__ = "10/18/2026"  # MM/DD/YYY
__license__ = "GPL3"
__status__ = "alpha"

__copyright__ = "Copyright 2025-2026"
__author__ = "pymieobs developers"
__maintainer__ = "pymieobs developers"
__email__ = ""
# other contributors:
__credits__ = []


# --- populate namespace
# import here all modules, subpackages, functions, classes available from the package
# that should be available from the top-level of the package namespace

from pymieobs.exceptions import MieError
from pymieobs.exceptions import InvalidInputError
from pymieobs.exceptions import DegenerateRatioError
from pymieobs.exceptions import NumericalInstabilityWarning
from pymieobs.mie import ScatteringOutput
from pymieobs.mie import compute_efficiencies
from pymieobs.main import Particle
from pymieobs.sweep import sweep
from pymieobs.sweep import SweepResult

# modules
from . import config
from . import special
from . import mie
from . import helper
from . import materials
