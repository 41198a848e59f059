"""
Small numeric helpers shared by the visualizers.

Every normalization guards its denominator with EPS and every
temperature-like divisor is floored at TEMPERATURE_FLOOR, so callers can
pass any slider value without an error path.
"""
import numpy as np

EPS = 1e-9
TEMPERATURE_FLOOR = 0.05


def softmax(values, temperature=1.0):
    """Numerically stable softmax with a floored temperature."""
    t = max(TEMPERATURE_FLOOR, float(temperature))
    scaled = np.asarray(values, dtype=float) / t
    exps = np.exp(scaled - scaled.max())
    return exps / max(exps.sum(), EPS)


def normalize(values):
    """Scale non-negative weights to sum to one (all-zero input stays zero)."""
    values = np.asarray(values, dtype=float)
    return values / max(values.sum(), EPS)


def scale_to_unit(values):
    """Divide by the max absolute value, guarded against an all-zero input."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return values
    return values / max(np.abs(values).max(), EPS)


def l2_distance(a, b):
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def clamp01(values):
    return np.clip(np.asarray(values, dtype=float), 0.0, 1.0)


def lerp(a, b, t):
    """Linear interpolation between two arrays of points."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return a + (b - a) * t


def argmax(values):
    """Index of the first maximum (ties resolve to the earliest position)."""
    return int(np.argmax(np.asarray(values, dtype=float)))


def hash_unit(seed):
    """Deterministic pseudo-random number in [0, 1) from a numeric seed."""
    x = np.sin(np.asarray(seed, dtype=float) * 12.9898) * 43758.5453
    return x - np.floor(x)
