"""
Indoor Positioning System (IPS) Core Package.

BLE beacon positioning: raw scans in, 2D position updates out.

Package structure:
- proto: Observation, location map and position estimate schemas
- localization: Scan ingestion, RSSI ranging, trilateration, smoothing
- session: Positioning lifecycle state machine and subscriber contract
- io: Location file loading, scan replay and simulation
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"

from .proto import (
    Observation,
    ObservationBatch,
    BeaconAnchor,
    Location,
    PositionEstimate,
    FixType,
    NoFixReason,
)
from .localization import (
    ScanIngestor,
    PositionEstimator,
    EstimatorConfig,
    RssiModel,
)
from .session import (
    PositioningSession,
    SessionConfig,
    SessionState,
    PositionSubscriber,
    CallbackSubscriber,
    RequirementsResult,
    ConfigurationError,
)
from .io import load_locations, select_location

__all__ = [
    'Observation',
    'ObservationBatch',
    'BeaconAnchor',
    'Location',
    'PositionEstimate',
    'FixType',
    'NoFixReason',
    'ScanIngestor',
    'PositionEstimator',
    'EstimatorConfig',
    'RssiModel',
    'PositioningSession',
    'SessionConfig',
    'SessionState',
    'PositionSubscriber',
    'CallbackSubscriber',
    'RequirementsResult',
    'ConfigurationError',
    'load_locations',
    'select_location',
]
