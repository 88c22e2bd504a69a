"""
I/O Module: location data loading, scan replay and simulation.

The positioning core itself does no I/O; these helpers feed it.
"""

from .location_loader import (
    load_locations,
    parse_locations,
    parse_location,
    select_location,
)
from .scan_source import (
    read_scan_csv,
    simulate_scans,
    group_by_window,
)

__all__ = [
    'load_locations',
    'parse_locations',
    'parse_location',
    'select_location',
    'read_scan_csv',
    'simulate_scans',
    'group_by_window',
]
