"""
RSSI to distance calibration.

Two monotonic decreasing models are supported:
- LOG_DISTANCE: d = 10 ** ((tx_power - rssi) / (10 * n))
- LINEAR: d = (rssi + b) / a, a linear fit with a < 0

Calibration values are site/device specific and meant to be tuned.
"""

from dataclasses import dataclass
from enum import Enum
import math


class RssiModelType(Enum):
    """Signal-to-distance model family."""

    LOG_DISTANCE = "log_distance"
    LINEAR = "linear"


@dataclass(frozen=True)
class RssiModel:
    """
    Signal strength to distance conversion.

    Attributes:
        model_type: Model family
        tx_power_dbm: RSSI measured at 1 m (LOG_DISTANCE)
        path_loss_exponent: Path loss exponent n (LOG_DISTANCE)
        linear_a: Slope of the linear fit, negative (LINEAR)
        linear_b: Offset of the linear fit (LINEAR)
        min_distance_m: Lower clamp on returned distances
        max_distance_m: Upper clamp on returned distances
    """

    model_type: RssiModelType = RssiModelType.LOG_DISTANCE
    tx_power_dbm: float = -59.0
    path_loss_exponent: float = 2.0
    linear_a: float = -2.48
    linear_b: float = 67.81
    min_distance_m: float = 0.1
    max_distance_m: float = 100.0

    def __post_init__(self):
        """Validate configuration."""
        if self.path_loss_exponent <= 0:
            raise ValueError(f"Path loss exponent must be positive: {self.path_loss_exponent}")
        if self.linear_a >= 0:
            raise ValueError(f"Linear slope must be negative: {self.linear_a}")
        if not 0 < self.min_distance_m < self.max_distance_m:
            raise ValueError(
                f"Need 0 < min_distance_m < max_distance_m, got "
                f"{self.min_distance_m}, {self.max_distance_m}"
            )

    def to_distance(self, rssi: float) -> float:
        """
        Convert RSSI (dBm) to an approximate distance (m).

        Stronger signal -> shorter distance. Result is clamped to
        [min_distance_m, max_distance_m].
        """
        if self.model_type is RssiModelType.LOG_DISTANCE:
            exponent = (self.tx_power_dbm - rssi) / (10.0 * self.path_loss_exponent)
            distance = math.pow(10.0, exponent)
        else:
            distance = (rssi + self.linear_b) / self.linear_a

        return min(max(distance, self.min_distance_m), self.max_distance_m)

    def to_rssi(self, distance_m: float) -> float:
        """Inverse model: expected RSSI (dBm) at distance_m."""
        distance_m = min(max(distance_m, self.min_distance_m), self.max_distance_m)

        if self.model_type is RssiModelType.LOG_DISTANCE:
            return self.tx_power_dbm - 10.0 * self.path_loss_exponent * math.log10(distance_m)
        return self.linear_a * distance_m - self.linear_b
