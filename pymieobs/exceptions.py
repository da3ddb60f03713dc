# -*- coding: utf-8 -*-
"""
errors and warnings raised by the Mie engine and the sweep driver
"""


class MieError(Exception):
    """base class of all pymieobs errors"""


class InvalidInputError(MieError, ValueError):
    """non-physical size parameter or refractive index

    Raised for a size parameter <= 0, non-finite input, a zero index or an
    index with negative real or imaginary part (``m = n + ik``, ``k >= 0``).
    """


class DegenerateRatioError(MieError, ArithmeticError):
    """extinction efficiency too small for a meaningful albedo

    Only raised in strict mode. By default the albedo is reported as NaN
    and the result carries the ``degenerate`` flag.
    """


class NumericalInstabilityWarning(RuntimeWarning):
    """Mie coefficients did not decay at the truncation order"""
