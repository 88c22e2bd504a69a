"""
Positioning Session.

Owns the positioning lifecycle for one location:

    IDLE --start()--> SCANNING --fix--> FIXED --no fix--> SCANNING
      any state --stop()--> STOPPED --start()--> SCANNING

Each cycle drains the ScanIngestor, runs the PositionEstimator and notifies
the subscriber. Cycles run on a daemon timer thread at the ingestion window
period, or are driven by the caller through tick() when auto_cycle is off.

Concurrency:
- Scan callbacks may call on_scan() from any thread
- At most one cycle runs at a time; a tick that finds a cycle in flight is skipped
- After stop() returns no subscriber callback fires
"""

from typing import Optional
from dataclasses import dataclass, replace
from enum import Enum
import logging
import threading
import time

from ips_core.proto.location import Location
from ips_core.proto.position_estimate import PositionEstimate
from ips_core.localization.scan_ingestor import ScanIngestor
from ips_core.localization.position_estimator import PositionEstimator, EstimatorConfig
from ips_core.localization.position_smoother import PositionSmoother, SmootherConfig
from ips_core.session.subscriber import PositionSubscriber
from ips_core.session.requirements import RequirementsResult
from ips_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle state of a positioning session."""

    IDLE = "idle"
    SCANNING = "scanning"
    FIXED = "fixed"
    STOPPED = "stopped"


class ConfigurationError(ValueError):
    """Session cannot start with the given location data."""


@dataclass
class SessionConfig:
    """
    Configuration for a positioning session.

    Attributes:
        window_s: Ingestion window and cycle period (s)
        auto_cycle: Run cycles on an internal timer thread
        lost_after_no_fix_cycles: Consecutive no-fix cycles before a FIXED
            session reports the position as lost
        enable_smoothing: Smooth fixes with PositionSmoother. The inside/outside
            decision is made on the raw fix; smoothing only shapes the
            published positions and never delays an exit
        estimator_config: PositionEstimator configuration
        smoother_config: PositionSmoother configuration
    """

    window_s: float = 1.0
    auto_cycle: bool = True
    lost_after_no_fix_cycles: int = 1
    enable_smoothing: bool = False
    estimator_config: Optional[EstimatorConfig] = None
    smoother_config: Optional[SmootherConfig] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.window_s <= 0:
            raise ValueError(f"window_s must be positive: {self.window_s}")
        if self.lost_after_no_fix_cycles < 1:
            raise ValueError(
                f"lost_after_no_fix_cycles must be >= 1: {self.lost_after_no_fix_cycles}"
            )


_UPDATE = "update"
_OUTSIDE = "outside"


class PositioningSession:
    """
    Coordinate scan ingestion, estimation and subscriber notification.

    Usage:
        locations = load_locations("locations.json")
        location = select_location(locations, "office")

        session = PositioningSession(location, MySubscriber())
        session.start_when_fulfilled(platform_requirements_result)

        # Platform scan callback (any thread)
        session.on_scan(beacon_id, rssi, timestamp_ms)

        # Teardown
        session.stop()
    """

    def __init__(
        self,
        location: Location,
        subscriber: PositionSubscriber,
        config: Optional[SessionConfig] = None,
        estimator: Optional[PositionEstimator] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize session.

        Args:
            location: Location with anchors and boundary
            subscriber: Receiver of position events
            config: Session configuration (uses defaults if None)
            estimator: Estimator to use (built from config if None)
            metrics: Metrics collector (global collector if None)
        """
        self.location = location
        self.subscriber = subscriber
        self.config = config or SessionConfig()
        self.metrics = metrics or get_metrics()

        self.ingestor = ScanIngestor(
            location.anchor_map.keys(),
            window_s=self.config.window_s,
            metrics=self.metrics,
        )
        self.estimator = estimator or PositionEstimator(
            self.config.estimator_config, metrics=self.metrics
        )
        self.smoother: Optional[PositionSmoother] = None
        if self.config.enable_smoothing:
            self.smoother = PositionSmoother(self.config.smoother_config, metrics=self.metrics)

        self._state = SessionState.IDLE
        self._state_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_thread_id: Optional[int] = None
        self._no_fix_streak = 0

        self.last_estimate: Optional[PositionEstimate] = None

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def is_active(self) -> bool:
        """True while SCANNING or FIXED."""
        return self.state in (SessionState.SCANNING, SessionState.FIXED)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start positioning.

        Returns:
            True if the session started, False if it was already running

        Raises:
            ConfigurationError: location has no anchors
        """
        if not self.location.has_anchors:
            raise ConfigurationError(
                f"Location {self.location.identifier!r} has no beacon anchors; "
                f"positioning cannot start"
            )

        with self._state_lock:
            if self._state in (SessionState.SCANNING, SessionState.FIXED):
                return False

            restarted = self._state is SessionState.STOPPED
            self._state = SessionState.SCANNING
            self._no_fix_streak = 0
            self.last_estimate = None
            self.ingestor.clear()
            if self.smoother is not None:
                self.smoother.reset()

            if self.config.auto_cycle:
                # Fresh event per run so a late-exiting old thread never sees a cleared flag
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._run_loop,
                    args=(self._stop_event,),
                    name=f"positioning-{self.location.identifier or 'session'}",
                    daemon=True,
                )
                self._thread.start()

        logger.info(
            "Positioning %s for location %r (%d anchors, window %.2fs)",
            "restarted" if restarted else "started",
            self.location.identifier,
            len(self.location.anchors),
            self.config.window_s,
        )
        return True

    def start_when_fulfilled(self, requirements: RequirementsResult) -> bool:
        """
        Start only if the platform requirements are fulfilled.

        Returns:
            True if the session started
        """
        if requirements.is_fulfilled:
            return self.start()

        logger.warning("Unable to scan for beacons. %s", requirements.describe())
        return False

    def stop(self) -> bool:
        """
        Stop positioning. Safe to call from any thread, including a callback.

        Blocks until an in-flight cycle has finished (unless called from that
        cycle), so no callback fires after this returns.

        Returns:
            True if the session was stopped, False if already STOPPED
        """
        with self._state_lock:
            if self._state is SessionState.STOPPED:
                return False
            self._state = SessionState.STOPPED
            stop_event = self._stop_event
            thread = self._thread
            self._thread = None

        stop_event.set()

        if threading.get_ident() != self._cycle_thread_id:
            # Wait for the in-flight cycle, if any
            with self._cycle_lock:
                pass
            if thread is not None and thread is not threading.current_thread():
                thread.join()

        logger.info("Positioning stopped for location %r", self.location.identifier)
        return True

    # ------------------------------------------------------------------
    # Scan input
    # ------------------------------------------------------------------

    def on_scan(self, beacon_id: str, rssi: float, timestamp_ms: int) -> bool:
        """
        Forward one platform scan result to the ingestor.

        Returns:
            True if buffered; False if dropped or the session is not running
        """
        if not self.is_active:
            return False
        return self.ingestor.ingest_raw(beacon_id, rssi, timestamp_ms)

    # ------------------------------------------------------------------
    # Estimation cycle
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """
        Run one estimation cycle.

        Returns:
            True if a cycle ran; False if skipped (cycle in flight or
            session not running)
        """
        if not self._cycle_lock.acquire(blocking=False):
            self.metrics.increment('session_ticks_skipped')
            return False

        try:
            self._cycle_thread_id = threading.get_ident()

            if not self.is_active:
                return False

            cycle_start = time.monotonic()

            batch = self.ingestor.drain()
            t_solve_ms = batch.t_end_ms
            if t_solve_ms is None:
                t_solve_ms = int(time.time() * 1000)

            estimate = self.estimator.estimate(
                batch,
                self.location.anchor_map,
                self.location.boundary,
                t_solve_ms=t_solve_ms,
            )
            self.metrics.increment('session_cycles')

            self._handle_estimate(estimate)

            self.metrics.record_histogram(
                'session_cycle_ms', (time.monotonic() - cycle_start) * 1000.0
            )
            return True
        finally:
            self._cycle_thread_id = None
            self._cycle_lock.release()

    def _run_loop(self, stop_event: threading.Event):
        """Timer thread: tick once per window until stopped."""
        period = self.config.window_s
        next_tick = time.monotonic() + period

        while not stop_event.wait(max(0.0, next_tick - time.monotonic())):
            try:
                self.tick()
            except Exception as e:
                logger.exception("Positioning cycle failed: %s", e)

            # Skip ticks that fell due while the cycle was running
            now = time.monotonic()
            next_tick += period
            while next_tick <= now:
                next_tick += period
                self.metrics.increment('session_ticks_skipped')

    def _handle_estimate(self, estimate: PositionEstimate):
        """Apply one estimate to the state machine and notify the subscriber."""
        # Boundary decision uses the raw fix; only usable fixes are smoothed
        usable = estimate.has_valid_fix and estimate.inside_location
        if estimate.has_valid_fix and not estimate.inside_location:
            self.metrics.increment_drop('outside_location')

        if usable and self.smoother is not None:
            smoothed = self.smoother.update(estimate, self.location.boundary)
            estimate = replace(smoothed, inside_location=True)

        event = None
        with self._state_lock:
            if self._state not in (SessionState.SCANNING, SessionState.FIXED):
                # Stopped while this cycle was estimating
                return

            previous = self._state
            if usable:
                self._no_fix_streak = 0
                self._state = SessionState.FIXED
                self.last_estimate = estimate
                event = _UPDATE
            elif previous is SessionState.FIXED:
                self._no_fix_streak += 1
                if self._no_fix_streak >= self.config.lost_after_no_fix_cycles:
                    self._no_fix_streak = 0
                    self._state = SessionState.SCANNING
                    event = _OUTSIDE
                    if self.smoother is not None:
                        self.smoother.reset()
            current = self._state

        if previous is not current:
            logger.info("Session state %s -> %s", previous.name, current.name)

        if event == _UPDATE:
            logger.debug(
                "Position (%.2f, %.2f) +/- %.2fm from %d anchors",
                estimate.x, estimate.y, estimate.error_radius_m, estimate.num_anchors_used,
            )
            self._notify(self.subscriber.on_position_update, estimate)
        elif event == _OUTSIDE:
            reason = estimate.no_fix_reason.value if estimate.no_fix_reason else "outside_location"
            logger.debug("Position lost (%s)", reason)
            self._notify(self.subscriber.on_position_outside_location)
        else:
            logger.debug(
                "No update this cycle (fix=%s, reason=%s)",
                estimate.fix_type.name,
                estimate.no_fix_reason.value if estimate.no_fix_reason else None,
            )

    def _notify(self, callback, *args):
        """Invoke a subscriber callback; subscriber errors never reach the cycle."""
        if self.state is SessionState.STOPPED:
            return
        try:
            callback(*args)
        except Exception as e:
            self.metrics.increment('subscriber_errors')
            logger.exception("Subscriber callback %s failed: %s",
                             getattr(callback, '__name__', callback), e)
