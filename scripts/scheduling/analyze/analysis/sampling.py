"""
Duration Distributions for Schedule Risk.

Three-point and uniform duration models, parameter validation, and sampling
from a numpy random Generator.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from ..cpm.errors import InvalidDistributionParameters

# Weight of the most likely value in the PERT mean (a + 4m + b) / 6
PERT_LAMBDA = 4.0


class DistributionType(str, Enum):
    NONE = 'none'
    TRIANGULAR = 'triangular'
    PERT = 'pert'
    UNIFORM = 'uniform'


@dataclass(frozen=True)
class DurationDistribution:
    """Duration distribution assigned to an activity (work days)."""

    dist_type: DistributionType = DistributionType.NONE
    minimum: Optional[float] = None
    most_likely: Optional[float] = None
    maximum: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'dist_type', DistributionType(self.dist_type))

    def is_deterministic(self) -> bool:
        return self.dist_type == DistributionType.NONE

    def mean(self) -> Optional[float]:
        """Theoretical mean, None for deterministic distributions."""
        a, m, b = self.minimum, self.most_likely, self.maximum
        if self.dist_type == DistributionType.TRIANGULAR:
            return (a + m + b) / 3
        if self.dist_type == DistributionType.PERT:
            return (a + PERT_LAMBDA * m + b) / (PERT_LAMBDA + 2)
        if self.dist_type == DistributionType.UNIFORM:
            return (a + b) / 2
        return None

    def validate(self, activity_id: str = None) -> None:
        """
        Check that the parameters can be sampled.

        Raises:
            InvalidDistributionParameters: On missing, non-finite, negative or unordered values
        """
        if self.dist_type == DistributionType.NONE:
            return

        if self.dist_type == DistributionType.UNIFORM:
            required = {'minimum': self.minimum, 'maximum': self.maximum}
        else:
            required = {'minimum': self.minimum, 'most_likely': self.most_likely,
                        'maximum': self.maximum}

        for name, value in required.items():
            if value is None:
                raise InvalidDistributionParameters(
                    activity_id, f"{self.dist_type.value} requires {name}")
            if not math.isfinite(value):
                raise InvalidDistributionParameters(activity_id, f"{name} is not finite")
            if value < 0:
                raise InvalidDistributionParameters(activity_id, f"{name} {value} is negative")

        if self.minimum > self.maximum:
            raise InvalidDistributionParameters(
                activity_id, f"minimum {self.minimum} exceeds maximum {self.maximum}")
        if self.dist_type != DistributionType.UNIFORM:
            if not self.minimum <= self.most_likely <= self.maximum:
                raise InvalidDistributionParameters(
                    activity_id,
                    f"most likely {self.most_likely} outside [{self.minimum}, {self.maximum}]",
                )


def sample_triangular(low: float, mode: float, high: float, u: float) -> float:
    """Inverse CDF of the triangular distribution at quantile u."""
    if high <= low:
        return mode
    fc = (mode - low) / (high - low)
    if u < fc:
        return low + math.sqrt(u * (high - low) * (mode - low))
    return high - math.sqrt((1 - u) * (high - low) * (high - mode))


def pert_shape(low: float, mode: float, high: float) -> tuple[float, float]:
    """Beta shape parameters (alpha, beta) of the PERT distribution."""
    alpha = 1.0 + PERT_LAMBDA * (mode - low) / (high - low)
    beta = 1.0 + PERT_LAMBDA * (high - mode) / (high - low)
    return alpha, beta


def sample_duration(dist: DurationDistribution, rng: np.random.Generator) -> Optional[float]:
    """
    Sample a single duration from a distribution.

    Returns None for deterministic distributions (use the nominal duration);
    no random numbers are consumed in that case.
    """
    if dist.dist_type == DistributionType.TRIANGULAR:
        return sample_triangular(dist.minimum, dist.most_likely, dist.maximum, rng.random())

    if dist.dist_type == DistributionType.PERT:
        if dist.maximum <= dist.minimum:
            return dist.most_likely
        alpha, beta = pert_shape(dist.minimum, dist.most_likely, dist.maximum)
        return dist.minimum + rng.beta(alpha, beta) * (dist.maximum - dist.minimum)

    if dist.dist_type == DistributionType.UNIFORM:
        return dist.minimum + rng.random() * (dist.maximum - dist.minimum)

    return None


def to_work_days(sample: float) -> int:
    """Round a sampled duration to whole work days (at least one)."""
    return max(1, int(math.floor(sample + 0.5)))
