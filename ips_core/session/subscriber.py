"""
Position subscriber contract.

A subscriber receives the two events a positioning session emits:
a new position, or the position leaving the location (or being lost).
"""

from typing import Callable, Optional

from ips_core.proto.position_estimate import PositionEstimate


class PositionSubscriber:
    """
    Receiver of positioning events.

    Subclass and override either method; the defaults do nothing.
    Callbacks run on the session's cycle thread and should return quickly.
    """

    def on_position_update(self, estimate: PositionEstimate) -> None:
        """Called with each new fix inside the location."""

    def on_position_outside_location(self) -> None:
        """Called once when the position is lost or leaves the location."""


class CallbackSubscriber(PositionSubscriber):
    """Adapt two plain callables to the subscriber contract."""

    def __init__(
        self,
        on_update: Optional[Callable[[PositionEstimate], None]] = None,
        on_outside: Optional[Callable[[], None]] = None,
    ):
        self._on_update = on_update
        self._on_outside = on_outside

    def on_position_update(self, estimate: PositionEstimate) -> None:
        if self._on_update is not None:
            self._on_update(estimate)

    def on_position_outside_location(self) -> None:
        if self._on_outside is not None:
            self._on_outside()
