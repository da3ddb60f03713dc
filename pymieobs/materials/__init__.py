# -*- coding: utf-8 -*-
"""material optical properties

.. currentmodule:: pymieobs.materials

Classes
-------

.. autosummary::
   :toctree: generated/
   :recursive:

    MatConstant
    MatTabulated
    MatDatabase
    MaterialBase

"""
from .mat import MatDatabase
from .mat import MatTabulated
from .mat import MatConstant
from .mat import MaterialBase
