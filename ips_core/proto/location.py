"""
Location Map Schema.

Static map data for one indoor location: beacon anchors with fixed planar
coordinates and the boundary polygon that delimits the location.
Loaded once before positioning starts and never mutated afterwards.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

Point2D = Tuple[float, float]


@dataclass(frozen=True)
class BeaconAnchor:
    """
    Beacon with a known, fixed position.

    Attributes:
        identifier: Beacon id, unique within a location
        x: X coordinate in the location frame (m)
        y: Y coordinate in the location frame (m)
        floor: Optional floor/level tag (None means floor-agnostic)
    """

    identifier: str
    x: float
    y: float
    floor: Optional[str] = None

    def __post_init__(self):
        if not self.identifier:
            raise ValueError("Anchor identifier cannot be empty")

    @property
    def position(self) -> Point2D:
        return (self.x, self.y)


@dataclass(frozen=True)
class Location:
    """
    Indoor location: anchors plus boundary polygon.

    Attributes:
        identifier: Location id
        name: Human-readable name
        anchors: Beacon anchors installed in the location
        boundary: Boundary polygon vertices in order; empty means unbounded

    Notes:
        - Anchor identifiers must be unique
        - A boundary needs at least 3 vertices
    """

    identifier: str
    name: str = ""
    anchors: Tuple[BeaconAnchor, ...] = ()
    boundary: Tuple[Point2D, ...] = ()
    _anchor_map: Mapping[str, BeaconAnchor] = field(
        init=False, repr=False, compare=False, default=None
    )

    def __post_init__(self):
        # Normalize containers so equal inputs produce equal, hashable locations
        anchors = tuple(self.anchors)
        boundary = tuple((float(x), float(y)) for x, y in self.boundary)
        object.__setattr__(self, 'anchors', anchors)
        object.__setattr__(self, 'boundary', boundary)

        by_id = {}
        for anchor in anchors:
            if anchor.identifier in by_id:
                raise ValueError(
                    f"Duplicate anchor identifier in location {self.identifier!r}: "
                    f"{anchor.identifier!r}"
                )
            by_id[anchor.identifier] = anchor

        if 0 < len(boundary) < 3:
            raise ValueError(
                f"Boundary of location {self.identifier!r} needs at least 3 vertices, "
                f"got {len(boundary)}"
            )

        object.__setattr__(self, '_anchor_map', MappingProxyType(by_id))

    @property
    def anchor_map(self) -> Mapping[str, BeaconAnchor]:
        """Read-only identifier -> anchor mapping."""
        return self._anchor_map

    @property
    def has_anchors(self) -> bool:
        return len(self.anchors) > 0

    @property
    def has_boundary(self) -> bool:
        return len(self.boundary) >= 3

    @classmethod
    def empty(cls) -> "Location":
        """Placeholder location with no data (used for unknown ids)."""
        return cls(identifier="", name="")
