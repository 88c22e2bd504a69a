"""
Protocol Module: Data schemas shared across the positioning core.

- Observation, ObservationBatch: raw scan input
- BeaconAnchor, Location: static map data
- PositionEstimate, FixType, NoFixReason: estimator output
"""

from .observation import (
    Observation,
    ObservationBatch,
    RSSI_MIN_DBM,
    RSSI_MAX_DBM,
)
from .location import (
    BeaconAnchor,
    Location,
    Point2D,
)
from .position_estimate import (
    PositionEstimate,
    FixType,
    NoFixReason,
    create_no_fix,
)

__all__ = [
    # Scan input
    'Observation',
    'ObservationBatch',
    'RSSI_MIN_DBM',
    'RSSI_MAX_DBM',
    # Map data
    'BeaconAnchor',
    'Location',
    'Point2D',
    # Estimator output
    'PositionEstimate',
    'FixType',
    'NoFixReason',
    'create_no_fix',
]
