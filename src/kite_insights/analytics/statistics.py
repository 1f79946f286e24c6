"""
Numeric primitives shared by the analytics components.

Pure functions with no domain knowledge. Every degenerate input (empty
series, zero variance, zero mean) has a defined finite result instead of
NaN or infinity.
"""
import math
from dataclasses import dataclass
from statistics import fmean, pvariance
from typing import Sequence


def mean(xs: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty series."""
    if not xs:
        return 0.0
    return fmean(xs)


def variance(xs: Sequence[float]) -> float:
    """
    Population variance (divides by n, not n - 1).

    A constant series is exactly 0.0, so it never produces outliers from
    rounding noise.
    """
    if not xs or max(xs) == min(xs):
        return 0.0
    return pvariance([float(x) for x in xs])


def stddev(xs: Sequence[float]) -> float:
    return math.sqrt(variance(xs))


def z_score(x: float, mu: float, sigma: float) -> float:
    """Standard deviations between `x` and `mu`; 0.0 when `sigma` is 0."""
    if sigma <= 0 or not math.isfinite(sigma):
        return 0.0
    return (x - mu) / sigma


def change_percent(current: float, previous: float) -> float:
    """
    Percentage change from `previous` to `current`.

    100.0 when growing from zero, 0.0 when both are zero.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / abs(previous) * 100


def coefficient_of_variation(xs: Sequence[float]) -> float:
    """stddev / mean as a percentage; 0.0 when the mean is 0."""
    mu = mean(xs)
    if mu == 0:
        return 0.0
    return stddev(xs) / abs(mu) * 100


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class LinearFit:
    """Least-squares line y = slope * x + intercept."""
    slope: float
    intercept: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


def linear_regression(ys: Sequence[float]) -> LinearFit:
    """
    Ordinary least squares over the implicit x = 0..n-1.

    Fewer than two points give a flat line through the mean.
    """
    n = len(ys)
    if n < 2:
        return LinearFit(slope=0.0, intercept=mean(ys))

    xs = range(n)
    sum_x = math.fsum(xs)
    sum_y = math.fsum(ys)
    sum_xy = math.fsum(x * y for x, y in zip(xs, ys))
    sum_x2 = math.fsum(x * x for x in xs)

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return LinearFit(slope=slope, intercept=intercept)
