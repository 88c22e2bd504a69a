"""
Position Estimate Output Schema.

Defines the output of the position estimator: a 2D fix with an error
radius and an inside/outside-location flag, or a NO_FIX result carrying
the reason no position could be computed.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Tuple
from enum import Enum, IntEnum


class FixType(IntEnum):
    """Type of position fix."""

    NO_FIX = 0          # No valid solution
    FIX_2D = 1          # 2D position (x, y) in the location frame


class NoFixReason(Enum):
    """Why an estimation cycle produced no fix."""

    EMPTY_BATCH = "empty_batch"
    INSUFFICIENT_ANCHORS = "insufficient_anchors"
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    SOLVER_FAILED = "solver_failed"
    HIGH_RESIDUAL = "high_residual"


@dataclass(frozen=True)
class PositionEstimate:
    """
    Position estimate for one estimation cycle.

    Attributes:
        t_solve_ms: Timestamp of the estimate (latest observation, ms)
        fix_type: NO_FIX or FIX_2D
        position: (x, y) in the location frame (m)
        error_radius_m: Position uncertainty radius (m, >= 0)
        inside_location: False when the fix lies outside the boundary polygon
        num_anchors_used: Number of anchors used in the solution
        anchor_ids: Anchor ids used, sorted
        residual_m: RMS range residual of the solution (m)

        # Optional
        geometry_score: Anchor spread health (0 = collinear, 1 = isotropic)
        floor: Floor tag of the anchors used, if any
        velocity: (vx, vy) in m/s when smoothing is enabled
        no_fix_reason: Why there is no fix (NO_FIX only)

    Notes:
        - Never mutated after creation; smoothing produces a new estimate
        - For NO_FIX, position is (0, 0) and inside_location is False
    """

    t_solve_ms: int
    fix_type: FixType
    position: Tuple[float, float]
    error_radius_m: float
    inside_location: bool
    num_anchors_used: int
    anchor_ids: Tuple[str, ...]
    residual_m: float

    geometry_score: Optional[float] = None
    floor: Optional[str] = None
    velocity: Optional[Tuple[float, float]] = None
    no_fix_reason: Optional[NoFixReason] = None

    def __post_init__(self):
        """Validate position estimate."""
        if self.error_radius_m < 0:
            raise ValueError(f"Error radius cannot be negative: {self.error_radius_m}")

        if self.num_anchors_used < 0:
            raise ValueError(f"Num anchors cannot be negative: {self.num_anchors_used}")

        if self.residual_m < 0:
            raise ValueError(f"Residual cannot be negative: {self.residual_m}")

        if self.fix_type == FixType.NO_FIX and self.no_fix_reason is None:
            raise ValueError("NO_FIX estimate requires a no_fix_reason")

    @property
    def has_valid_fix(self) -> bool:
        """Check if this is a position fix (not NO_FIX)."""
        return self.fix_type != FixType.NO_FIX

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d['fix_type'] = self.fix_type.name
        d['no_fix_reason'] = self.no_fix_reason.value if self.no_fix_reason else None
        return d


def create_no_fix(t_solve_ms: int, reason: NoFixReason) -> PositionEstimate:
    """
    Create a NO_FIX position estimate.

    Args:
        t_solve_ms: Estimate timestamp (ms)
        reason: Why no fix could be computed

    Returns:
        PositionEstimate with NO_FIX
    """
    return PositionEstimate(
        t_solve_ms=t_solve_ms,
        fix_type=FixType.NO_FIX,
        position=(0.0, 0.0),
        error_radius_m=0.0,
        inside_location=False,
        num_anchors_used=0,
        anchor_ids=(),
        residual_m=0.0,
        no_fix_reason=reason,
    )
