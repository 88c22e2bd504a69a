"""
Pytest configuration and shared fixtures for the indoor positioning tests.

Provides reusable anchor layouts, exact-RSSI observation batches and a
recording subscriber for session tests.
"""

import sys
import math
import threading
from pathlib import Path
from typing import List, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ips_core.proto import (
    BeaconAnchor,
    Location,
    Observation,
    ObservationBatch,
    PositionEstimate,
)
from ips_core.localization import RssiModel
from ips_core.metrics import MetricsCollector
from ips_core.session import PositionSubscriber


# =============================================================================
# Location Fixtures
# =============================================================================


@pytest.fixture
def triangle_location() -> Location:
    """
    Three anchors in an equilateral triangle (10m sides) inside a
    rectangular boundary.

    - A0 at (0, 0)
    - A1 at (10, 0)
    - A2 at (5, 8.66)
    """
    return Location(
        identifier="triangle",
        name="Triangle room",
        anchors=(
            BeaconAnchor("A0", 0.0, 0.0),
            BeaconAnchor("A1", 10.0, 0.0),
            BeaconAnchor("A2", 5.0, 8.66),
        ),
        boundary=((-2.0, -2.0), (12.0, -2.0), (12.0, 10.0), (-2.0, 10.0)),
    )


@pytest.fixture
def square_location() -> Location:
    """Four corner anchors in a 10m x 10m room with matching boundary."""
    return Location(
        identifier="square",
        name="Square room",
        anchors=(
            BeaconAnchor("S0", 0.0, 0.0),
            BeaconAnchor("S1", 10.0, 0.0),
            BeaconAnchor("S2", 10.0, 10.0),
            BeaconAnchor("S3", 0.0, 10.0),
        ),
        boundary=((0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)),
    )


@pytest.fixture
def two_floor_location() -> Location:
    """Three anchors per floor, stacked in a 10m x 10m footprint."""
    return Location(
        identifier="lab",
        name="Two-floor lab",
        anchors=(
            BeaconAnchor("g1", 0.5, 0.5, floor="1"),
            BeaconAnchor("g2", 9.5, 0.5, floor="1"),
            BeaconAnchor("g3", 5.0, 9.5, floor="1"),
            BeaconAnchor("u1", 0.5, 9.5, floor="2"),
            BeaconAnchor("u2", 9.5, 9.5, floor="2"),
            BeaconAnchor("u3", 5.0, 0.5, floor="2"),
        ),
        boundary=((0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)),
    )


@pytest.fixture
def rssi_model() -> RssiModel:
    """Default log-distance model (-59 dBm at 1m, n=2)."""
    return RssiModel()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Fresh metrics collector, isolated from the global singleton."""
    return MetricsCollector()


# =============================================================================
# Helper Functions
# =============================================================================


def exact_observations(
    location: Location,
    point: Tuple[float, float],
    model: RssiModel,
    t_ms: int = 1000,
    anchor_ids: List[str] = None,
    attenuation_db: dict = None,
) -> List[Observation]:
    """
    Noise-free observations a receiver at point would see.

    Args:
        location: Location whose anchors are heard
        point: Receiver (x, y)
        model: RSSI model used to compute signal strength
        t_ms: Timestamp for every observation
        anchor_ids: Restrict to these anchors (all if None)
        attenuation_db: Extra loss per anchor id (e.g. another floor)
    """
    attenuation_db = attenuation_db or {}
    observations = []
    for anchor in location.anchors:
        if anchor_ids is not None and anchor.identifier not in anchor_ids:
            continue
        distance = math.hypot(point[0] - anchor.x, point[1] - anchor.y)
        rssi = model.to_rssi(distance) - attenuation_db.get(anchor.identifier, 0.0)
        observations.append(Observation(anchor.identifier, rssi, t_ms))
    return observations


def exact_batch(location, point, model, t_ms=1000, **kwargs) -> ObservationBatch:
    """ObservationBatch wrapper around exact_observations."""
    return ObservationBatch(tuple(exact_observations(location, point, model, t_ms, **kwargs)))


class RecordingSubscriber(PositionSubscriber):
    """Subscriber that records every event (thread-safe)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.updates: List[PositionEstimate] = []
        self.outside_events = 0
        self.event_log: List[str] = []
        self.updated = threading.Event()

    def on_position_update(self, estimate: PositionEstimate) -> None:
        with self._lock:
            self.updates.append(estimate)
            self.event_log.append("update")
        self.updated.set()

    def on_position_outside_location(self) -> None:
        with self._lock:
            self.outside_events += 1
            self.event_log.append("outside")


@pytest.fixture
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()
