"""
Position Estimator (RSSI Trilateration).

Turns one ObservationBatch into a 2D position in the location frame:
per-anchor RSSI aggregation, RSSI to distance conversion, geometry check,
weighted Gauss-Newton least squares and a boundary test.

Identical inputs always produce identical estimates: anchors are processed
in sorted id order and nothing is randomized.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass, field
import math
import numpy as np

from ips_core.proto.observation import ObservationBatch
from ips_core.proto.location import BeaconAnchor, Point2D
from ips_core.proto.position_estimate import (
    PositionEstimate,
    FixType,
    NoFixReason,
    create_no_fix,
)
from ips_core.localization.geometry import anchor_spread_score, point_in_polygon
from ips_core.localization.rssi_model import RssiModel
from ips_core.metrics import MetricsCollector, get_metrics


@dataclass
class EstimatorConfig:
    """
    Configuration for the position estimator.

    Attributes:
        min_anchors: Minimum distinct anchors for a fix (>= 3 in 2D)
        rssi_model: Signal-to-distance calibration
        max_iterations: Maximum Gauss-Newton iterations
        convergence_tol_m: Convergence threshold on the update step (m)
        min_geometry_score: Minimum anchor spread score (0-1)
        max_condition_number: Normal matrix condition limit
        max_residual_m: Maximum acceptable RMS range residual (m)
        range_sigma_ratio: Range std as a fraction of estimated distance
        min_range_sigma_m: Floor on range std (m)
        use_floors: Restrict the solve to the strongest anchor's floor
    """

    min_anchors: int = 3
    rssi_model: RssiModel = field(default_factory=RssiModel)
    max_iterations: int = 20
    convergence_tol_m: float = 0.001   # 1mm
    min_geometry_score: float = 0.05
    max_condition_number: float = 1e8
    max_residual_m: float = 10.0       # RSSI ranging is coarse
    range_sigma_ratio: float = 0.2
    min_range_sigma_m: float = 0.1
    use_floors: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if self.min_anchors < 3:
            raise ValueError(f"2D trilateration needs at least 3 anchors: {self.min_anchors}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be positive: {self.max_iterations}")
        if self.max_residual_m <= 0:
            raise ValueError(f"max_residual_m must be positive: {self.max_residual_m}")
        if self.range_sigma_ratio <= 0 or self.min_range_sigma_m <= 0:
            raise ValueError("Range sigma parameters must be positive")


class PositionEstimator:
    """
    Estimate a 2D position from one observation batch.

    Usage:
        estimator = PositionEstimator(EstimatorConfig())

        batch = ingestor.drain()
        estimate = estimator.estimate(batch, location.anchor_map, location.boundary)

        if estimate.has_valid_fix:
            print(f"Position: {estimate.position} +/- {estimate.error_radius_m:.1f}m")
        else:
            print(f"No fix: {estimate.no_fix_reason}")

    Notes:
        - Fewer than min_anchors distinct anchors → NO_FIX
        - Collinear/coincident anchors → NO_FIX
        - Solver failure or ill-conditioning → NO_FIX
        - A fix outside the boundary is still a fix, flagged inside_location=False
    """

    def __init__(
        self,
        config: Optional[EstimatorConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize estimator.

        Args:
            config: Estimator configuration (uses defaults if None)
            metrics: Metrics collector (global collector if None)
        """
        self.config = config or EstimatorConfig()
        self.metrics = metrics or get_metrics()

    def estimate(
        self,
        batch: ObservationBatch,
        anchors: Mapping[str, BeaconAnchor],
        boundary: Sequence[Point2D] = (),
        t_solve_ms: Optional[int] = None,
    ) -> PositionEstimate:
        """
        Estimate position from an observation batch.

        Args:
            batch: Observations from one window
            anchors: Anchor map of the active location
            boundary: Location boundary polygon (empty = unbounded)
            t_solve_ms: Estimate timestamp; defaults to the latest valid
                observation, or 0 when none is valid

        Returns:
            PositionEstimate (FIX_2D or NO_FIX)
        """
        self.metrics.increment('estimate_attempts')

        if t_solve_ms is None:
            t_end_ms = batch.t_end_ms
            t_solve_ms = t_end_ms if t_end_ms is not None else 0

        if batch.is_empty:
            return self._no_fix(t_solve_ms, NoFixReason.EMPTY_BATCH)

        aggregated = self.aggregate_rssi(batch, anchors)

        floor = None
        if self.config.use_floors:
            aggregated, floor = self._select_floor(aggregated, anchors)

        if len(aggregated) < self.config.min_anchors:
            return self._no_fix(t_solve_ms, NoFixReason.INSUFFICIENT_ANCHORS)

        anchor_ids = sorted(aggregated)
        positions = np.array([anchors[aid].position for aid in anchor_ids], dtype=float)
        distances = np.array(
            [self.config.rssi_model.to_distance(aggregated[aid]) for aid in anchor_ids],
            dtype=float,
        )

        geometry_score = anchor_spread_score([tuple(p) for p in positions])
        if geometry_score < self.config.min_geometry_score:
            return self._no_fix(t_solve_ms, NoFixReason.DEGENERATE_GEOMETRY)

        try:
            solution = self._solve_weighted(positions, distances)
        except np.linalg.LinAlgError:
            solution = None

        if solution is None:
            return self._no_fix(t_solve_ms, NoFixReason.SOLVER_FAILED)

        pos, residual_rms, pos_std, iterations = solution

        if residual_rms > self.config.max_residual_m:
            return self._no_fix(t_solve_ms, NoFixReason.HIGH_RESIDUAL)

        position = (float(pos[0]), float(pos[1]))
        error_radius = float(math.hypot(residual_rms, pos_std))
        inside = point_in_polygon(position, boundary)

        estimate = PositionEstimate(
            t_solve_ms=int(t_solve_ms),
            fix_type=FixType.FIX_2D,
            position=position,
            error_radius_m=error_radius,
            inside_location=inside,
            num_anchors_used=len(anchor_ids),
            anchor_ids=tuple(anchor_ids),
            residual_m=float(residual_rms),
            geometry_score=geometry_score,
            floor=floor,
        )

        self.metrics.increment('position_fixes')
        self.metrics.record_histogram('estimate_iterations', iterations)
        self.metrics.record_histogram('residual_m', float(residual_rms))
        self.metrics.record_histogram('error_radius_m', error_radius)

        return estimate

    @staticmethod
    def aggregate_rssi(
        batch: ObservationBatch,
        anchors: Mapping[str, BeaconAnchor],
    ) -> Dict[str, float]:
        """
        Median RSSI per recognised anchor.

        Invalid observations and unknown beacons are ignored.
        """
        grouped: Dict[str, List[float]] = {}
        for obs in batch:
            if obs.is_valid and obs.beacon_id in anchors:
                grouped.setdefault(obs.beacon_id, []).append(float(obs.rssi))

        return {aid: float(np.median(grouped[aid])) for aid in sorted(grouped)}

    @staticmethod
    def _select_floor(
        aggregated: Dict[str, float],
        anchors: Mapping[str, BeaconAnchor],
    ) -> Tuple[Dict[str, float], Optional[str]]:
        """
        Keep anchors on the strongest anchor's floor plus untagged anchors.

        Returns:
            Tuple of (filtered aggregate, selected floor or None)
        """
        tagged = [aid for aid in aggregated if anchors[aid].floor is not None]
        if not tagged:
            return aggregated, None

        # max() keeps the first of equal values; aggregated is in sorted id order
        strongest = max(tagged, key=lambda aid: aggregated[aid])
        floor = anchors[strongest].floor

        filtered = {
            aid: rssi for aid, rssi in aggregated.items()
            if anchors[aid].floor is None or anchors[aid].floor == floor
        }
        return filtered, floor

    def _solve_weighted(
        self,
        positions: np.ndarray,
        distances: np.ndarray,
    ) -> Optional[Tuple[np.ndarray, float, float, int]]:
        """
        Weighted Gauss-Newton solve of the range equations.

        Args:
            positions: (n, 2) anchor coordinates
            distances: (n,) estimated ranges

        Returns:
            Tuple of (pos, residual_rms_m, pos_std_m, iterations),
            or None if the problem is ill-conditioned or diverged
        """
        n = len(distances)

        sigmas = np.maximum(distances * self.config.range_sigma_ratio,
                            self.config.min_range_sigma_m)
        weights = 1.0 / sigmas ** 2

        # Initial guess: centroid weighted towards the nearest anchors
        closeness = 1.0 / distances
        x = (positions * closeness[:, None]).sum(axis=0) / closeness.sum()

        jacobian = np.zeros((n, 2))
        iteration = 0
        for iteration in range(self.config.max_iterations):
            diff = x - positions
            computed = np.sqrt((diff ** 2).sum(axis=1))
            residuals = computed - distances

            jacobian = np.zeros((n, 2))
            nonzero = computed > 1e-6
            jacobian[nonzero] = diff[nonzero] / computed[nonzero, None]

            # Normal equations: J^T W J Δx = -J^T W r
            JTWJ = jacobian.T @ (weights[:, None] * jacobian)
            JTWr = jacobian.T @ (weights * residuals)

            delta_x = np.linalg.solve(JTWJ + 1e-9 * np.eye(2), -JTWr)
            x = x + delta_x

            if not np.all(np.isfinite(x)):
                return None

            if np.linalg.norm(delta_x) < self.config.convergence_tol_m:
                break

        # Final residuals and normal matrix at the solution
        diff = x - positions
        computed = np.sqrt((diff ** 2).sum(axis=1))
        final_residuals = computed - distances

        jacobian = np.zeros((n, 2))
        nonzero = computed > 1e-6
        jacobian[nonzero] = diff[nonzero] / computed[nonzero, None]
        JTWJ = jacobian.T @ (weights[:, None] * jacobian)

        cond = np.linalg.cond(JTWJ)
        if not np.isfinite(cond) or cond > self.config.max_condition_number:
            return None

        covariance = np.linalg.inv(JTWJ)
        pos_std = float(np.sqrt(max(np.trace(covariance), 0.0)))
        residual_rms = float(np.sqrt(np.mean(final_residuals ** 2)))

        if not (np.isfinite(residual_rms) and np.isfinite(pos_std)):
            return None

        return x, residual_rms, pos_std, iteration + 1

    def _no_fix(self, t_solve_ms: int, reason: NoFixReason) -> PositionEstimate:
        """Count the failure reason and build a NO_FIX estimate."""
        self.metrics.increment_drop(reason)
        return create_no_fix(int(t_solve_ms), reason)
