"""
Small numeric and formatting helpers shared by the pharmacology and scenario code.
"""

from sedsim.core.constants import GAMMA_MAX, HILL_EPSILON, CONCENTRATION_RATIO_SATURATION


def clamp(value: float, low: float, high: float) -> float:
    """Limit value to [low, high]; reversed bounds are swapped."""
    if low > high:
        low, high = high, low
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def hill_function(c: float, c50: float, gamma: float) -> float:
    """
    Sigmoid Emax fraction c^g / (c50^g + c^g), in [0, 1).

    Args:
        c: Effect-site concentration
        c50: Concentration at half effect (EC50)
        gamma: Steepness

    Non-positive inputs give 0.0. gamma is capped at GAMMA_MAX and
    concentrations beyond CONCENTRATION_RATIO_SATURATION x EC50 saturate.
    """
    if c <= 0 or c50 <= 0 or gamma <= 0:
        return 0.0

    ratio = c / c50
    if ratio > CONCENTRATION_RATIO_SATURATION:
        return 1.0 - 1e-6

    ratio_g = ratio ** min(gamma, GAMMA_MAX)
    return ratio_g / (1.0 + ratio_g + HILL_EPSILON)


def format_clock(seconds: float) -> str:
    """Format elapsed seconds as MM:SS."""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"
