"""Error taxonomy of the kite power system model."""


class KiteModelError(Exception):
    """Base class of all errors raised by the model"""


class ConfigurationError(KiteModelError, ValueError):
    """Invalid settings: non-positive mass or segment length, malformed spring topology, ..."""


class DegenerateGeometry(KiteModelError, ArithmeticError):
    """Coincident particles or particles far below ground; the segment direction is undefined"""


class DegenerateWind(KiteModelError, ArithmeticError):
    """Apparent wind speed is zero, the aerodynamic reference directions are undefined"""


class NonFiniteResidual(KiteModelError, ArithmeticError):
    """The residual contains NaN or inf; the solver left the physical region"""
