"""
Characteristic Curve Store

This module holds the static lookup tables used by the battery model:
- SoC -> Open Circuit Voltage (Li-ion discharge curve, 18650-style cell)
- Temperature -> efficiency factor (usable charge vs. temperature)

Each table is wrapped in an immutable Curve that provides piecewise-linear
interpolation (clamped at both ends) and the inverse lookup used to recover
SoC from a voltage.
"""

import numpy as np
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union


class EmptyCurveError(ValueError):
    """Raised when a lookup is requested on a curve without control points."""


# SoC%, OCV(V) - typical Li-ion discharge curve
SOC_OCV_POINTS: Dict[float, float] = {
    0.0: 2.80,    # fully discharged
    5.0: 3.40,
    10.0: 3.52,
    15.0: 3.58,
    20.0: 3.62,
    25.0: 3.65,
    30.0: 3.68,
    35.0: 3.71,
    40.0: 3.74,
    45.0: 3.77,
    50.0: 3.80,
    55.0: 3.83,
    60.0: 3.86,
    65.0: 3.89,
    70.0: 3.92,
    75.0: 3.95,
    80.0: 4.00,
    85.0: 4.05,
    90.0: 4.10,
    95.0: 4.15,
    100.0: 4.20,  # fully charged
}

# Temperature(°C), efficiency factor - 1.0 at 25°C
TEMPERATURE_EFFICIENCY_POINTS: Dict[float, float] = {
    -20.0: 0.60,
    -10.0: 0.70,
    0.0: 0.80,
    10.0: 0.90,
    20.0: 0.98,
    25.0: 1.00,
    30.0: 0.99,
    40.0: 0.97,
    50.0: 0.94,
    60.0: 0.90,
}

PointsLike = Union[Mapping[float, float], Iterable[Tuple[float, float]]]


def _lookup(keys: np.ndarray, values: np.ndarray, x: float) -> float:
    """Clamped linear lookup of x in ascending keys."""
    if x <= keys[0]:
        return float(values[0])
    if x >= keys[-1]:
        return float(values[-1])

    # Bracketing points: last key <= x, first key >= x
    lower = int(np.searchsorted(keys, x, side='right')) - 1
    upper = int(np.searchsorted(keys, x, side='left'))

    if keys[upper] == keys[lower]:
        return float(values[lower])

    ratio = (x - keys[lower]) / (keys[upper] - keys[lower])
    return float(values[lower] + ratio * (values[upper] - values[lower]))


class Curve:
    """
    Immutable piecewise-linear characteristic curve.

    Control points are sorted by x once at construction. A second copy sorted
    by y backs the inverse lookup, so the inverse is only meaningful for
    curves that are monotonic (such as the OCV curve).

    Parameters:
        points: Mapping {x: y} or iterable of (x, y) pairs
        name: Human-readable name used in error messages (optional)
    """

    def __init__(self, points: PointsLike, name: Optional[str] = None):
        if isinstance(points, Mapping):
            pairs = list(points.items())
        else:
            pairs = [tuple(p) for p in points]

        table = np.array(pairs, dtype=float).reshape(-1, 2)
        by_x = np.argsort(table[:, 0], kind='stable')
        by_y = np.argsort(table[:, 1], kind='stable')

        self._name = name or 'curve'
        self._x = table[by_x, 0]
        self._y = table[by_x, 1]
        self._inv_y = table[by_y, 1]
        self._inv_x = table[by_y, 0]

        for arr in (self._x, self._y, self._inv_x, self._inv_y):
            arr.setflags(write=False)

    @property
    def name(self) -> str:
        return self._name

    @property
    def points(self) -> Tuple[Tuple[float, float], ...]:
        """Control points as (x, y) tuples in ascending x."""
        return tuple(zip(self._x.tolist(), self._y.tolist()))

    @property
    def domain(self) -> Tuple[float, float]:
        self._require_points()
        return float(self._x[0]), float(self._x[-1])

    def __len__(self) -> int:
        return len(self._x)

    def _require_points(self):
        if len(self._x) == 0:
            raise EmptyCurveError(f"Curve '{self._name}' has no control points")

    def interpolate(self, x: float) -> float:
        """
        Forward lookup y(x).

        Returns the boundary value when x is outside the domain, otherwise
        linear interpolation between the bracketing control points.

        Raises:
            EmptyCurveError: If the curve has no control points
        """
        self._require_points()
        return _lookup(self._x, self._y, x)

    def inverse_interpolate(self, y: float) -> float:
        """
        Inverse lookup x(y), same algorithm on the curve sorted by y.

        Raises:
            EmptyCurveError: If the curve has no control points
        """
        self._require_points()
        return _lookup(self._inv_y, self._inv_x, y)

    def is_monotonic(self) -> bool:
        """True if y is non-decreasing as x increases."""
        return bool(np.all(np.diff(self._y) >= 0.0))


def interpolate(curve: Curve, x: float, default: float) -> float:
    """Forward lookup returning `default` when the curve is empty."""
    if len(curve) == 0:
        return default
    return curve.interpolate(x)


def inverse_interpolate(curve: Curve, y: float, default: float) -> float:
    """Inverse lookup returning `default` when the curve is empty."""
    if len(curve) == 0:
        return default
    return curve.inverse_interpolate(y)


SOC_OCV_CURVE = Curve(SOC_OCV_POINTS, name='soc_ocv')
TEMPERATURE_EFFICIENCY_CURVE = Curve(TEMPERATURE_EFFICIENCY_POINTS, name='temperature_efficiency')
