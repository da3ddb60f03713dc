# -*- coding: utf-8 -*-
"""package for various tools for pymieobs


helper modules
--------------

.. currentmodule:: pymieobs.helper

.. autosummary::
   :toctree: generated/

    helper


relevant tools
--------------

.. autosummary::
   :toctree: generated/

   helper.get_truncation_criterion_wiscombe
   helper.interp1d
   helper.num_center_diff

"""
from .helper import get_truncation_criterion_wiscombe
from .helper import interp1d
from .helper import num_center_diff
