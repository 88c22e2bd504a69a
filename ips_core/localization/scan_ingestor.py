"""
Scan Ingestor.

Buffers beacon observations delivered by the platform scan callback until
the estimation cycle drains them. Ingest and drain may run on different
threads: drain swaps the buffer out under the lock, so every observation
lands in exactly one batch.
"""

from typing import Iterable, List, Optional
import threading

from ips_core.proto.observation import Observation, ObservationBatch
from ips_core.metrics import MetricsCollector, get_metrics


class ScanIngestor:
    """
    Thread-safe windowed buffer of beacon observations.

    Usage:
        ingestor = ScanIngestor(location.anchor_map.keys(), window_s=1.0)

        # Scan callback thread
        ingestor.ingest_raw("beacon-1", -67.0, 1700000000000)

        # Estimation cycle thread, once per window
        batch = ingestor.drain()

    Notes:
        - Observations from beacons outside the anchor map are dropped
        - Malformed observations are dropped
        - Neither is an error; both are counted in metrics
    """

    def __init__(
        self,
        known_anchor_ids: Iterable[str],
        window_s: float = 1.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize ingestor.

        Args:
            known_anchor_ids: Beacon ids of the active location
            window_s: Window length (s); the session cycles at this period
            metrics: Metrics collector (global collector if None)
        """
        if window_s <= 0:
            raise ValueError(f"Window length must be positive: {window_s}")

        self.window_s = window_s
        self._known_ids = frozenset(known_anchor_ids)
        self.metrics = metrics or get_metrics()

        self._lock = threading.Lock()
        self._buffer: List[Observation] = []

    @property
    def known_anchor_ids(self) -> frozenset:
        return self._known_ids

    @property
    def pending(self) -> int:
        """Number of observations waiting for the next drain."""
        with self._lock:
            return len(self._buffer)

    def ingest(self, observation: Observation) -> bool:
        """
        Add one observation to the current window.

        Args:
            observation: Observation from the scan source

        Returns:
            True if buffered, False if dropped
        """
        self.metrics.increment('observations_in')

        if not observation.is_valid:
            self.metrics.increment_drop('malformed_observation')
            return False

        if observation.beacon_id not in self._known_ids:
            self.metrics.increment_drop('unknown_beacon')
            return False

        with self._lock:
            self._buffer.append(observation)

        self.metrics.increment('observations_accepted')
        return True

    def ingest_raw(self, beacon_id: str, rssi: float, timestamp_ms: int) -> bool:
        """Ingest a scan callback's raw values."""
        return self.ingest(Observation(beacon_id, rssi, timestamp_ms))

    def drain(self) -> ObservationBatch:
        """
        Return the current window's observations and start a new window.

        Returns:
            ObservationBatch (empty if nothing was ingested since last drain)
        """
        with self._lock:
            drained, self._buffer = self._buffer, []

        self.metrics.increment('batches_drained')
        return ObservationBatch(tuple(drained))

    def clear(self):
        """Discard buffered observations."""
        with self._lock:
            self._buffer = []
