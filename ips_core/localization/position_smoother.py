"""
Position Smoother (Constant-Velocity).

Implements a simple 4D constant-velocity Kalman filter for smoothing
successive RSSI fixes, which jump by metres from one window to the next.

State: [x, y, vx, vy] (2D position + velocity)
"""

from typing import Optional, Sequence
from dataclasses import dataclass, replace
import numpy as np

from ips_core.proto.location import Point2D
from ips_core.proto.position_estimate import PositionEstimate
from ips_core.localization.geometry import point_in_polygon
from ips_core.metrics import MetricsCollector, get_metrics


@dataclass
class SmootherConfig:
    """
    Configuration for the position smoother.

    Attributes:
        q_pos: Process noise for position (m²/s)
        q_vel: Process noise for velocity (m²/s³)
        initial_vel_std_m_s: Initial velocity uncertainty (m/s)
        min_measurement_std_m: Floor on per-axis measurement std (m)
        max_gap_s: Gap after which the filter re-initializes (s)
    """

    q_pos: float = 0.2 ** 2       # Position process noise (20cm)
    q_vel: float = 0.5 ** 2       # Walking pace changes slowly
    initial_vel_std_m_s: float = 1.5
    min_measurement_std_m: float = 0.3
    max_gap_s: float = 10.0

    def __post_init__(self):
        """Validate configuration."""
        if self.q_pos <= 0 or self.q_vel <= 0:
            raise ValueError("Process noise must be positive")
        if self.min_measurement_std_m <= 0:
            raise ValueError("Measurement std floor must be positive")
        if self.max_gap_s <= 0:
            raise ValueError("max_gap_s must be positive")


class PositionSmoother:
    """
    Constant-velocity Kalman filter over successive fixes.

    Usage:
        smoother = PositionSmoother(SmootherConfig())

        estimate = estimator.estimate(batch, anchors, boundary)
        if estimate.has_valid_fix:
            estimate = smoother.update(estimate, boundary)
        else:
            smoother.reset()
    """

    def __init__(
        self,
        config: Optional[SmootherConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or SmootherConfig()
        self.metrics = metrics or get_metrics()

        # State: [x, y, vx, vy]
        self._state: Optional[np.ndarray] = None

        # Covariance: 4x4
        self._covariance: Optional[np.ndarray] = None

        self._last_update_ms: Optional[int] = None

    def is_initialized(self) -> bool:
        """Check if filter has been initialized."""
        return self._state is not None

    def update(
        self,
        measurement: PositionEstimate,
        boundary: Sequence[Point2D] = (),
    ) -> PositionEstimate:
        """
        Update filter with a new fix.

        Args:
            measurement: FIX_2D estimate from PositionEstimator
            boundary: Location boundary, to re-evaluate inside_location

        Returns:
            New PositionEstimate with smoothed position and velocity.
            NO_FIX measurements are returned unchanged.
        """
        if not measurement.has_valid_fix:
            return measurement

        t_now = measurement.t_solve_ms

        if self.is_initialized():
            dt = (t_now - self._last_update_ms) / 1000.0
            if dt > self.config.max_gap_s or dt < 0:
                # Stale or out-of-order: restart from this fix
                self.reset()

        if not self.is_initialized():
            self._initialize_from_measurement(measurement)
            self.metrics.increment('smoother_initialized')
            return replace(measurement, velocity=(0.0, 0.0))

        self._predict((t_now - self._last_update_ms) / 1000.0)

        z = np.array(measurement.position)

        r_std = max(measurement.error_radius_m / np.sqrt(2.0),
                    self.config.min_measurement_std_m)
        R = np.eye(2) * r_std ** 2

        H = np.array([
            [1, 0, 0, 0],
            [0, 1, 0, 0]
        ])

        y = z - H @ self._state  # Innovation
        S = H @ self._covariance @ H.T + R
        K = self._covariance @ H.T @ np.linalg.inv(S)

        self._state = self._state + K @ y
        self._covariance = (np.eye(4) - K @ H) @ self._covariance
        self._last_update_ms = t_now

        position = (float(self._state[0]), float(self._state[1]))
        velocity = (float(self._state[2]), float(self._state[3]))
        pos_std = float(np.sqrt(self._covariance[0, 0] + self._covariance[1, 1]))

        self.metrics.increment('smoother_updates')
        self.metrics.record_histogram('smoother_innovation_m', float(np.linalg.norm(y)))

        return replace(
            measurement,
            position=position,
            velocity=velocity,
            error_radius_m=pos_std,
            inside_location=point_in_polygon(position, boundary),
        )

    def _initialize_from_measurement(self, measurement: PositionEstimate):
        """Initialize filter from first measurement."""
        pos_var = max(measurement.error_radius_m, self.config.min_measurement_std_m) ** 2

        self._state = np.array([
            measurement.position[0],
            measurement.position[1],
            0.0,
            0.0,
        ])

        self._covariance = np.diag([
            pos_var,
            pos_var,
            self.config.initial_vel_std_m_s ** 2,
            self.config.initial_vel_std_m_s ** 2,
        ])

        self._last_update_ms = measurement.t_solve_ms

    def _predict(self, dt: float):
        """Predict state forward by dt seconds."""
        if dt <= 0:
            return

        F = np.array([
            [1, 0, dt, 0],
            [0, 1, 0, dt],
            [0, 0, 1, 0],
            [0, 0, 0, 1]
        ])

        Q = np.diag([
            self.config.q_pos * dt,
            self.config.q_pos * dt,
            self.config.q_vel * dt,
            self.config.q_vel * dt,
        ])

        self._state = F @ self._state
        self._covariance = F @ self._covariance @ F.T + Q

    def reset(self):
        """Reset filter to uninitialized state."""
        self._state = None
        self._covariance = None
        self._last_update_ms = None
        self.metrics.increment('smoother_resets')
