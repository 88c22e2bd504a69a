"""
Localization Module: scan ingestion, RSSI ranging, trilateration, smoothing.

Key classes:
- ScanIngestor: Thread-safe windowed observation buffer
- RssiModel: RSSI <-> distance calibration
- PositionEstimator: Weighted least-squares 2D trilateration
- PositionSmoother: Constant-velocity Kalman smoothing of fixes
"""

from .geometry import (
    point_in_polygon,
    point_on_segment,
    anchor_spread_score,
)
from .rssi_model import (
    RssiModel,
    RssiModelType,
)
from .scan_ingestor import ScanIngestor
from .position_estimator import (
    PositionEstimator,
    EstimatorConfig,
)
from .position_smoother import (
    PositionSmoother,
    SmootherConfig,
)

__all__ = [
    # Geometry
    'point_in_polygon',
    'point_on_segment',
    'anchor_spread_score',
    # Ranging
    'RssiModel',
    'RssiModelType',
    # Pipeline
    'ScanIngestor',
    'PositionEstimator',
    'EstimatorConfig',
    'PositionSmoother',
    'SmootherConfig',
]
