"""
Indoor positioning runner.

Replays recorded BLE scans (or simulates a walk) through a positioning
session for one location and prints the resulting position updates.

    python main.py list --locations data/locations.json
    python main.py replay --locations data/locations.json --location-id office --scans scans.csv
    python main.py simulate --locations data/locations.json --location-id office
"""

import sys
import math
import logging
import argparse
from typing import List, Optional, Tuple

import config
from ips_core.proto import Location, PositionEstimate
from ips_core.localization import EstimatorConfig, RssiModel, RssiModelType
from ips_core.session import (
    PositioningSession,
    PositionSubscriber,
    SessionConfig,
    RequirementsResult,
    ConfigurationError,
)
from ips_core.io import (
    load_locations,
    select_location,
    read_scan_csv,
    simulate_scans,
    group_by_window,
)
from ips_core.metrics import get_metrics

# Logging
logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


def build_rssi_model() -> RssiModel:
    """RssiModel from RSSI_MODEL_CONFIG."""
    cfg = config.RSSI_MODEL_CONFIG
    return RssiModel(
        model_type=RssiModelType(cfg["model_type"]),
        tx_power_dbm=cfg["tx_power_dbm"],
        path_loss_exponent=cfg["path_loss_exponent"],
        linear_a=cfg["linear_a"],
        linear_b=cfg["linear_b"],
    )


def build_session_config(auto_cycle: bool = False) -> SessionConfig:
    """SessionConfig from the config module dictionaries."""
    estimator_config = EstimatorConfig(
        rssi_model=build_rssi_model(),
        **config.ESTIMATOR_CONFIG,
    )
    return SessionConfig(
        window_s=config.SCAN_CONFIG["window_s"],
        auto_cycle=auto_cycle,
        estimator_config=estimator_config,
        **config.SESSION_CONFIG,
    )


class PrintingSubscriber(PositionSubscriber):
    """Print position events and keep simple statistics."""

    def __init__(self):
        self.update_count = 0
        self.outside_count = 0
        self.last_estimate: Optional[PositionEstimate] = None

    def on_position_update(self, estimate: PositionEstimate) -> None:
        self.update_count += 1
        self.last_estimate = estimate
        floor = f", floor {estimate.floor}" if estimate.floor else ""
        print(f"[position] ({estimate.x:7.2f}, {estimate.y:7.2f}) m "
              f"+/- {estimate.error_radius_m:.2f} m, "
              f"{estimate.num_anchors_used} anchors{floor}")

    def on_position_outside_location(self) -> None:
        self.outside_count += 1
        print("[position] outside location / lost")


class PositioningRunner:
    """Drive a caller-ticked session from a recorded or simulated scan stream."""

    def __init__(self, location: Location):
        self.location = location
        self.subscriber = PrintingSubscriber()
        self.session_config = build_session_config(auto_cycle=False)
        self.session = PositioningSession(location, self.subscriber, self.session_config)
        self.window_count = 0

    def run(self, observations) -> bool:
        """
        Feed observations window by window, ticking once per window.

        Returns:
            True if the session ran, False if it could not start
        """
        try:
            started = self.session.start_when_fulfilled(RequirementsResult.fulfilled())
        except ConfigurationError as e:
            logger.error("%s", e)
            return False
        if not started:
            return False

        window_ms = int(self.session_config.window_s * 1000)
        try:
            for window in group_by_window(observations, window_ms):
                for obs in window:
                    self.session.on_scan(obs.beacon_id, obs.rssi, obs.timestamp_ms)
                self.session.tick()
                self.window_count += 1
        finally:
            self.session.stop()

        self._print_statistics()
        return True

    def _print_statistics(self):
        """Print run statistics."""
        fix_rate = (self.subscriber.update_count / self.window_count * 100) if self.window_count else 0
        print("\n" + "=" * 60)
        print(f"  Location        : {self.location.name or self.location.identifier}")
        print(f"  Windows         : {self.window_count}")
        print(f"  Position updates: {self.subscriber.update_count} ({fix_rate:.1f}%)")
        print(f"  Outside/lost    : {self.subscriber.outside_count}")
        print("=" * 60)


def walk_path(location: Location, steps: int, walk_out: bool = False) -> List[Tuple[float, float]]:
    """
    Circular walk around the anchor centroid.

    With walk_out, a straight leg leaving the location is appended.
    """
    xs = [a.x for a in location.anchors]
    ys = [a.y for a in location.anchors]
    cx, cy = sum(xs) / len(xs), sum(ys) / len(ys)
    radius = 0.25 * min(max(xs) - min(xs), max(ys) - min(ys))

    path = [
        (cx + radius * math.cos(2 * math.pi * i / steps),
         cy + radius * math.sin(2 * math.pi * i / steps))
        for i in range(steps)
    ]

    if walk_out:
        extent = max(max(xs) - min(xs), max(ys) - min(ys))
        path += [(cx + radius + extent * k / 2.0, cy) for k in range(1, 5)]

    return path


def cmd_list(args) -> int:
    locations = load_locations(args.locations)
    if not locations:
        print("No locations found.")
        return 0
    for location in locations.values():
        print(f"{location.identifier:20s} {location.name:30s} "
              f"{len(location.anchors):3d} beacons")
    return 0


def cmd_replay(args) -> int:
    locations = load_locations(args.locations)
    location = select_location(locations, args.location_id)
    runner = PositioningRunner(location)
    ok = runner.run(read_scan_csv(args.scans))
    get_metrics().print_summary()
    return 0 if ok else 1


def cmd_simulate(args) -> int:
    locations = load_locations(args.locations)
    location = select_location(locations, args.location_id)
    if not location.has_anchors:
        logger.error("Location %r has no beacons to simulate", args.location_id)
        return 1

    sim = config.SIMULATION_CONFIG
    observations = simulate_scans(
        location,
        walk_path(location, args.steps or sim["steps"], walk_out=args.walk_out),
        rssi_model=build_rssi_model(),
        window_ms=int(config.SCAN_CONFIG["window_s"] * 1000),
        scans_per_window=sim["scans_per_window"],
        noise_std_db=sim["noise_std_db"] if args.noise is None else args.noise,
        seed=sim["seed"],
    )
    runner = PositioningRunner(location)
    ok = runner.run(observations)
    get_metrics().print_summary()
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Indoor positioning runner')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')
    sub = parser.add_subparsers(dest='cmd', required=True)

    p_list = sub.add_parser('list', help='List locations')
    p_list.add_argument('--locations', '-l', required=True, help='Location JSON file')
    p_list.set_defaults(func=cmd_list)

    p_replay = sub.add_parser('replay', help='Replay a recorded scan CSV')
    p_replay.add_argument('--locations', '-l', required=True, help='Location JSON file')
    p_replay.add_argument('--location-id', '-i', required=True, help='Location identifier')
    p_replay.add_argument('--scans', '-s', required=True, help='Scan CSV (beacon_id,rssi,timestamp_ms)')
    p_replay.set_defaults(func=cmd_replay)

    p_sim = sub.add_parser('simulate', help='Simulate a walk through a location')
    p_sim.add_argument('--locations', '-l', required=True, help='Location JSON file')
    p_sim.add_argument('--location-id', '-i', required=True, help='Location identifier')
    p_sim.add_argument('--steps', type=int, default=None, help='Path points (one per window)')
    p_sim.add_argument('--noise', type=float, default=None, help='RSSI noise std (dB)')
    p_sim.add_argument('--walk-out', action='store_true', help='Leave the location at the end')
    p_sim.set_defaults(func=cmd_simulate)

    return parser


def main(argv=None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
