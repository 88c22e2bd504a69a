"""
Location data loading.

Reads location map data (anchors + boundary) from a JSON document and
returns an immutable identifier -> Location mapping:

    {
      "locations": [
        {
          "identifier": "office",
          "name": "Office 3F",
          "boundary": [[0, 0], [20, 0], [20, 12], [0, 12]],
          "beacons": [
            {"identifier": "b1", "x": 0.5, "y": 0.5, "floor": "3"},
            ...
          ]
        }
      ]
    }
"""

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
import json
import logging

from ips_core.proto.location import BeaconAnchor, Location

logger = logging.getLogger(__name__)


def parse_anchor(data: Dict[str, Any]) -> BeaconAnchor:
    """Build a BeaconAnchor from its JSON object."""
    if not isinstance(data, dict):
        raise ValueError(f"Beacon entry must be an object: {data!r}")
    try:
        floor = data.get("floor")
        return BeaconAnchor(
            identifier=str(data["identifier"]),
            x=float(data["x"]),
            y=float(data["y"]),
            floor=str(floor) if floor is not None else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid beacon entry {data!r}: {e}") from e


def parse_location(data: Dict[str, Any]) -> Location:
    """
    Build a Location from its JSON object.

    Raises:
        ValueError: missing fields or invalid anchors/boundary
    """
    if not isinstance(data, dict) or "identifier" not in data:
        raise ValueError(f"Location entry without identifier: {data!r}")

    identifier = str(data["identifier"])
    try:
        anchors = tuple(parse_anchor(b) for b in data.get("beacons", []))
        boundary = tuple((float(p[0]), float(p[1])) for p in data.get("boundary", []))
        return Location(
            identifier=identifier,
            name=str(data.get("name", "")),
            anchors=anchors,
            boundary=boundary,
        )
    except (TypeError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid location {identifier!r}: {e}") from e


def parse_locations(document: Dict[str, Any]) -> Mapping[str, Location]:
    """Build the identifier -> Location mapping from a parsed document."""
    entries = document.get("locations") if isinstance(document, dict) else None
    if not isinstance(entries, list):
        raise ValueError("Location document must contain a 'locations' list")

    locations: Dict[str, Location] = {}
    for entry in entries:
        location = parse_location(entry)
        if location.identifier in locations:
            raise ValueError(f"Duplicate location identifier: {location.identifier!r}")
        locations[location.identifier] = location

    return MappingProxyType(locations)


def load_locations(path: str) -> Mapping[str, Location]:
    """
    Load all locations from a JSON file.

    Args:
        path: JSON file path

    Returns:
        Read-only identifier -> Location mapping
    """
    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)

    locations = parse_locations(document)
    logger.info("Loaded %d location(s) from %s", len(locations), path)
    return locations


def select_location(locations: Mapping[str, Location], identifier: Optional[str]) -> Location:
    """
    Look up a location by identifier.

    Returns:
        The matching Location, or Location.empty() if not found
        (a session on the empty location fails at start()).
    """
    location = locations.get(identifier) if identifier is not None else None
    if location is None:
        logger.warning("Unknown location %r, using empty location", identifier)
        return Location.empty()
    return location
