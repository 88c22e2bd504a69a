"""
Beacon Observation Message Schema.

Defines the raw BLE scan observation delivered by a platform scan callback
and the batch of observations drained from one ingestion window.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import math
import numbers


# Valid BLE RSSI range in dBm. 127 is the "not available" marker on most
# stacks and positive values do not occur for real advertisements.
RSSI_MIN_DBM = -127.0
RSSI_MAX_DBM = 0.0


@dataclass(frozen=True)
class Observation:
    """
    One beacon advertisement seen by the scanner.

    Attributes:
        beacon_id: Beacon identifier (matches BeaconAnchor.identifier)
        rssi: Received signal strength (dBm)
        timestamp_ms: Scan time in milliseconds

    Notes:
        - Construction never raises; malformed values are expected scanner
          noise and are reported through is_valid instead
    """

    beacon_id: str
    rssi: float
    timestamp_ms: int

    @property
    def is_valid(self) -> bool:
        """Check that the observation is usable for positioning."""
        if not isinstance(self.beacon_id, str) or not self.beacon_id:
            return False
        try:
            rssi = float(self.rssi)
        except (TypeError, ValueError):
            return False
        if not math.isfinite(rssi):
            return False
        if not RSSI_MIN_DBM <= rssi < RSSI_MAX_DBM:
            return False
        if not isinstance(self.timestamp_ms, numbers.Integral) or self.timestamp_ms < 0:
            return False
        return True


@dataclass(frozen=True)
class ObservationBatch:
    """
    Observations collected within one ingestion window, in arrival order.

    Attributes:
        observations: Tuple of Observation
    """

    observations: Tuple[Observation, ...] = ()

    def __len__(self) -> int:
        return len(self.observations)

    def __iter__(self):
        return iter(self.observations)

    @property
    def is_empty(self) -> bool:
        return len(self.observations) == 0

    @property
    def anchor_ids(self) -> List[str]:
        """Distinct beacon ids of the valid observations, sorted."""
        return sorted({o.beacon_id for o in self.valid_observations})

    @property
    def valid_observations(self) -> Tuple[Observation, ...]:
        """Observations that pass is_valid, in arrival order."""
        return tuple(o for o in self.observations if o.is_valid)

    @property
    def t_start_ms(self) -> Optional[int]:
        """Earliest valid timestamp, or None if no observation is valid."""
        timestamps = [o.timestamp_ms for o in self.valid_observations]
        return min(timestamps) if timestamps else None

    @property
    def t_end_ms(self) -> Optional[int]:
        """Latest valid timestamp, or None if no observation is valid."""
        timestamps = [o.timestamp_ms for o in self.valid_observations]
        return max(timestamps) if timestamps else None

    def rssi_by_anchor(self) -> Dict[str, List[float]]:
        """Group valid RSSI values by beacon id, preserving arrival order."""
        grouped: Dict[str, List[float]] = {}
        for obs in self.valid_observations:
            grouped.setdefault(obs.beacon_id, []).append(float(obs.rssi))
        return grouped
