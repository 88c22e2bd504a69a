"""
Positioning metrics: counters, drop reasons and sample histograms.

Counters follow the pipeline: observations in/accepted at the ingestor,
estimate attempts and fixes at the estimator, cycles and skipped ticks at
the session. Every observation the ingestor rejects and every cycle that
ends without a usable fix is counted under a drop reason; the no-fix
reasons are exactly the NoFixReason values.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from ips_core.proto.position_estimate import NoFixReason

logger = logging.getLogger(__name__)


OBSERVATION_DROP_REASONS = {
    'malformed_observation': 'Empty id, non-finite or out-of-range RSSI',
    'unknown_beacon': 'Beacon id not in the location anchor map',
}

NO_FIX_DESCRIPTIONS = {
    NoFixReason.EMPTY_BATCH: 'No observations in the drained window',
    NoFixReason.INSUFFICIENT_ANCHORS: 'Less than 3 distinct anchors observed',
    NoFixReason.DEGENERATE_GEOMETRY: 'Collinear or coincident anchors',
    NoFixReason.SOLVER_FAILED: 'Least-squares solve failed or diverged',
    NoFixReason.HIGH_RESIDUAL: 'Residual above configured maximum',
}

SESSION_DROP_REASONS = {
    'outside_location': 'Fix outside the location boundary',
}

DROP_REASONS: Dict[str, str] = {
    **OBSERVATION_DROP_REASONS,
    **{reason.value: text for reason, text in NO_FIX_DESCRIPTIONS.items()},
    **SESSION_DROP_REASONS,
}

# Counters reported (as 0) before their first increment, by pipeline stage
COUNTER_GROUPS = (
    ('Ingestion', ('observations_in', 'observations_accepted', 'batches_drained')),
    ('Estimation', ('estimate_attempts', 'position_fixes')),
    ('Session', ('session_cycles', 'session_ticks_skipped', 'subscriber_errors')),
)

DEFAULT_HISTOGRAM_SIZE = 5000

DropReason = Union[str, NoFixReason]


def _reason_key(reason: DropReason) -> str:
    return reason.value if isinstance(reason, NoFixReason) else reason


def _ratio(numerator: int, denominator: int) -> Optional[float]:
    return numerator / denominator if denominator else None


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Copy of the collector state at one instant.

    Attributes:
        taken_at: Wall-clock time of the snapshot (s)
        counters: Counter name -> value
        drops: Drop reason -> count
        histograms: Histogram name -> retained samples, oldest first
    """

    taken_at: float
    counters: Mapping[str, int]
    drops: Mapping[str, int]
    histograms: Mapping[str, Tuple[float, ...]]

    @property
    def total_dropped(self) -> int:
        return sum(self.drops.values())

    def acceptance_ratio(self) -> Optional[float]:
        """Accepted / ingested observations; None before the first scan."""
        return _ratio(self.counters.get('observations_accepted', 0),
                      self.counters.get('observations_in', 0))

    def fix_ratio(self) -> Optional[float]:
        """Fixes per estimate attempt; None before the first cycle."""
        return _ratio(self.counters.get('position_fixes', 0),
                      self.counters.get('estimate_attempts', 0))

    def no_fix_counts(self) -> Dict[NoFixReason, int]:
        return {reason: self.drops.get(reason.value, 0) for reason in NoFixReason}


class MetricsCollector:
    """
    Thread-safe metrics for the positioning pipeline.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('observations_in')
        metrics.increment_drop('unknown_beacon')
        metrics.increment_drop(NoFixReason.INSUFFICIENT_ANCHORS)
        metrics.record_histogram('residual_m', 0.42)

        print(metrics.snapshot().fix_ratio())

    Notes:
        - Histograms keep the most recent histogram_size samples
        - Unregistered drop reasons are still counted, with a warning
    """

    DROP_REASONS = DROP_REASONS

    def __init__(self, histogram_size: int = DEFAULT_HISTOGRAM_SIZE):
        if histogram_size < 1:
            raise ValueError(f"histogram_size must be positive: {histogram_size}")

        self.histogram_size = histogram_size
        self._lock = threading.Lock()
        with self._lock:
            self._clear_locked()

    def _clear_locked(self):
        """Rebuild all state; caller holds the lock."""
        self._counters: Dict[str, int] = defaultdict(int)
        self._drops: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, Deque[float]] = {}
        self._started = time.monotonic()

        for _, names in COUNTER_GROUPS:
            for name in names:
                self._counters[name] = 0
        for reason in DROP_REASONS:
            self._drops[reason] = 0

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: DropReason, value: int = 1):
        """
        Count value items dropped for reason.

        Args:
            reason: Registered reason code, or a NoFixReason
            value: Number of items
        """
        key = _reason_key(reason)
        if key not in DROP_REASONS:
            logger.warning("Unregistered drop reason '%s'", key)

        with self._lock:
            self._drops[key] += value

    def record_histogram(self, histogram_name: str, value: float):
        with self._lock:
            samples = self._histograms.get(histogram_name)
            if samples is None:
                samples = deque(maxlen=self.histogram_size)
                self._histograms[histogram_name] = samples
            samples.append(float(value))

    def get_counter(self, counter_name: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_drop_count(self, reason: DropReason) -> int:
        with self._lock:
            return self._drops.get(_reason_key(reason), 0)

    def histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics of the retained samples.

        Returns:
            Dict with count, min, max, mean, p50, p95; None if no samples
        """
        with self._lock:
            samples = self._histograms.get(histogram_name)
            values = np.array(samples, dtype=float) if samples else None

        if values is None:
            return None

        p50, p95 = np.percentile(values, [50, 95])
        return {
            'count': int(values.size),
            'min': float(values.min()),
            'max': float(values.max()),
            'mean': float(values.mean()),
            'p50': float(p50),
            'p95': float(p95),
        }

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                taken_at=time.time(),
                counters=dict(self._counters),
                drops=dict(self._drops),
                histograms={k: tuple(v) for k, v in self._histograms.items()},
            )

    def reset(self):
        """Zero every counter and discard histogram samples."""
        with self._lock:
            self._clear_locked()

    @property
    def uptime_s(self) -> float:
        """Seconds since construction or the last reset."""
        return time.monotonic() - self._started

    def format_summary(self) -> str:
        """Human-readable report grouped by pipeline stage."""
        snap = self.snapshot()
        lines = ["", "=" * 70, f"  POSITIONING METRICS (uptime: {self.uptime_s:.1f}s)", "=" * 70]

        for title, names in COUNTER_GROUPS:
            lines.append(f"\n{title}:")
            for name in names:
                lines.append(f"  {name:30s}: {snap.counters.get(name, 0):8d}")

        extra = sorted(set(snap.counters) - {n for _, names in COUNTER_GROUPS for n in names})
        if extra:
            lines.append("\nOther:")
            for name in extra:
                lines.append(f"  {name:30s}: {snap.counters[name]:8d}")

        acceptance = snap.acceptance_ratio()
        fix_ratio = snap.fix_ratio()
        lines.append("")
        lines.append("  accepted observations : "
                     + (f"{acceptance * 100:5.1f}%" if acceptance is not None else "n/a"))
        lines.append("  cycles with a fix     : "
                     + (f"{fix_ratio * 100:5.1f}%" if fix_ratio is not None else "n/a"))

        if snap.total_dropped:
            lines.append("\nDrops:")
            for reason, count in sorted(snap.drops.items()):
                if count:
                    lines.append(f"  {reason:30s}: {count:8d}")

        for name in sorted(snap.histograms):
            stats = self.histogram_stats(name)
            if stats:
                lines.append(f"\n{name}: n={stats['count']} mean={stats['mean']:.3f} "
                             f"p50={stats['p50']:.3f} p95={stats['p95']:.3f} "
                             f"max={stats['max']:.3f}")

        lines.append("=" * 70)
        return "\n".join(lines)

    def print_summary(self):
        print(self.format_summary())
