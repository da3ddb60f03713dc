# -*- coding: utf-8 -*-
"""Default settings of the Mie engine and the sweep driver."""

DEFAULT_CONFIG = {
    "backend": "torch",  # "torch" (recurrences) or "scipy" (reference)
    "precision": "double",  # "single" or "double"
    "n_add_logderiv": 15,  # extra depth of the D_n downward recurrence
    "degenerate_threshold": 1e-20,  # Q_ext / x^4 below this: albedo undefined
    "decay_tolerance": 1e-3,  # max. relative size of last Mie coefficient
    "n_workers": 1,  # worker processes for sweeps
    "progress_bar": False,
}


def get_config(**overrides):
    """Get configuration with optional overrides.

    ``None`` values are ignored, so keyword arguments of the public API can
    be passed through directly.
    """
    config = DEFAULT_CONFIG.copy()
    for key, value in overrides.items():
        if key not in config:
            raise KeyError("Unknown configuration key '{}'.".format(key))
        if value is not None:
            config[key] = value
    return config
