"""
Session Module: positioning lifecycle and subscriber notification.

Key classes:
- PositioningSession: IDLE/SCANNING/FIXED/STOPPED state machine
- PositionSubscriber, CallbackSubscriber: outbound event contract
- RequirementsResult: platform requirements outcome gating start()
"""

from .subscriber import (
    PositionSubscriber,
    CallbackSubscriber,
)
from .requirements import (
    RequirementsResult,
    RequirementsStatus,
)
from .positioning_session import (
    PositioningSession,
    SessionConfig,
    SessionState,
    ConfigurationError,
)

__all__ = [
    'PositionSubscriber',
    'CallbackSubscriber',
    'RequirementsResult',
    'RequirementsStatus',
    'PositioningSession',
    'SessionConfig',
    'SessionState',
    'ConfigurationError',
]
