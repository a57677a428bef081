"""
Error taxonomy for perception and actuation.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from playpilot.geometry import ScreenGeometry


class PlayPilotError(Exception):
    """Base class for all errors raised by playpilot."""


class InvalidCoordinateError(PlayPilotError):
    """Raised when a coordinate falls inside the screen safety margin."""

    def __init__(
        self,
        x: int,
        y: int,
        margin: int,
        geometry: Optional["ScreenGeometry"] = None,
    ):
        self.x = x
        self.y = y
        self.margin = margin
        self.geometry = geometry
        screen = f" on {geometry.width}x{geometry.height}" if geometry else ""
        super().__init__(
            f"Invalid coordinate ({x}, {y}): outside safety margin {margin}px{screen}"
        )


class CaptureError(PlayPilotError):
    """Raised when the screen capture call fails."""


class RecognitionError(PlayPilotError):
    """Raised when the OCR engine fails (not for 'no text found')."""


class UnsupportedActionError(PlayPilotError):
    """Raised for an unknown action type."""

    def __init__(self, action_type: object):
        self.action_type = action_type
        super().__init__(f"Unsupported action type: {action_type!r}")


class ActuationError(PlayPilotError):
    """Raised when synthesizing input through the OS layer fails."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class InvalidActionError(PlayPilotError):
    """Raised when an action request lacks a field its type requires."""

    def __init__(self, action_type: object, missing: str):
        self.action_type = action_type
        self.missing = missing
        super().__init__(f"Action {action_type!r} requires {missing}")
