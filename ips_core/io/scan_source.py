"""
Scan sources for replay and simulation.

- read_scan_csv: recorded scans, one "beacon_id,rssi,timestamp_ms" row each
- simulate_scans: synthetic scans for a walk through a location, generated
  with the inverse RSSI model
- group_by_window: split a time-ordered scan stream into ingestion windows
"""

from typing import Iterable, Iterator, List, Optional, Sequence
import csv
import logging
import numpy as np

from ips_core.proto.observation import Observation, RSSI_MIN_DBM
from ips_core.proto.location import Location, Point2D
from ips_core.localization.rssi_model import RssiModel

logger = logging.getLogger(__name__)


def read_scan_csv(path: str) -> Iterator[Observation]:
    """
    Read recorded scans from a CSV file.

    An optional header row is skipped. Rows that cannot be parsed are
    logged and skipped.

    Yields:
        Observation per valid row, in file order
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        for line_no, row in enumerate(reader, start=1):
            if not row or row[0].startswith("#"):
                continue
            if line_no == 1 and row[0].strip().lower() in ("beacon_id", "beacon", "id"):
                continue
            if len(row) != 3:
                logger.warning("%s:%d: expected 3 fields, got %d", path, line_no, len(row))
                continue

            beacon_id, rssi_str, ts_str = (field.strip() for field in row)
            try:
                rssi = float(rssi_str)
                timestamp_ms = int(ts_str)
            except ValueError:
                logger.warning("%s:%d: unparseable row %r", path, line_no, row)
                continue

            yield Observation(beacon_id, rssi, timestamp_ms)


def simulate_scans(
    location: Location,
    path_points: Sequence[Point2D],
    rssi_model: Optional[RssiModel] = None,
    window_ms: int = 1000,
    scans_per_window: int = 3,
    start_ms: int = 0,
    noise_std_db: float = 0.0,
    max_range_m: Optional[float] = None,
    seed: Optional[int] = None,
) -> Iterator[Observation]:
    """
    Generate synthetic scans for a walk through a location.

    One path point per window; each anchor in range is heard
    scans_per_window times per window.

    Args:
        location: Location whose anchors broadcast
        path_points: Receiver position for each window
        rssi_model: Model used to turn distance into RSSI
        window_ms: Window length (ms)
        scans_per_window: Advertisements heard per anchor per window
        start_ms: Timestamp of the first window
        noise_std_db: Gaussian RSSI noise std (dB)
        max_range_m: Anchors farther than this are not heard
        seed: Seed for the noise generator (reproducible runs)

    Yields:
        Observations in timestamp order
    """
    model = rssi_model or RssiModel()
    rng = np.random.default_rng(seed)
    anchors = sorted(location.anchors, key=lambda a: a.identifier)
    step_ms = max(window_ms // max(scans_per_window, 1), 1)

    for window_idx, (px, py) in enumerate(path_points):
        window_start = start_ms + window_idx * window_ms
        for scan_idx in range(scans_per_window):
            t_ms = window_start + scan_idx * step_ms
            for anchor in anchors:
                distance = float(np.hypot(px - anchor.x, py - anchor.y))
                if max_range_m is not None and distance > max_range_m:
                    continue

                rssi = model.to_rssi(distance)
                if noise_std_db > 0:
                    rssi += float(rng.normal(0.0, noise_std_db))
                rssi = float(np.clip(rssi, RSSI_MIN_DBM, -1.0))

                yield Observation(anchor.identifier, rssi, t_ms)


def group_by_window(
    observations: Iterable[Observation],
    window_ms: int,
    max_empty_windows: int = 10,
) -> Iterator[List[Observation]]:
    """
    Split a time-ordered observation stream into consecutive windows.

    Windows are aligned to the first observation's timestamp. Empty windows
    between bursts are yielded as empty lists so replay keeps real cadence.
    A gap longer than max_empty_windows windows (a recording restart or a
    clock jump) yields only max_empty_windows empty windows and is logged.
    """
    if window_ms <= 0:
        raise ValueError(f"window_ms must be positive: {window_ms}")
    if max_empty_windows < 0:
        raise ValueError(f"max_empty_windows must be >= 0: {max_empty_windows}")

    current: List[Observation] = []
    window_end: Optional[int] = None

    for obs in observations:
        if window_end is None:
            window_end = obs.timestamp_ms + window_ms
        if obs.timestamp_ms >= window_end:
            yield current
            current = []

            gap = (obs.timestamp_ms - window_end) // window_ms
            if gap > max_empty_windows:
                logger.warning(
                    "Scan gap of %d windows at t=%dms, replaying %d empty windows",
                    gap, obs.timestamp_ms, max_empty_windows,
                )
            for _ in range(min(gap, max_empty_windows)):
                yield []
            window_end += (gap + 1) * window_ms
        current.append(obs)

    if current:
        yield current
