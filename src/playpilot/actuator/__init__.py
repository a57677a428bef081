"""
Actuator module - synthetic mouse and keyboard input.

Components:
- platform: DPI awareness
- device: OS input layer (pyautogui) and dry-run device
- motion: interpolated pointer motion
- actions: action requests and results
- executor: validated, paced, retryable action execution
"""

from playpilot.actuator.platform import IS_WINDOWS, set_dpi_awareness
from playpilot.actuator.device import InputDevice, PyAutoGUIDevice, DryRunDevice
from playpilot.actuator.motion import plan_steps, step_delay_ms, interpolate, smooth_move
from playpilot.actuator.actions import ActionRequest, ActionResult, ActionType
from playpilot.actuator.executor import ActionExecutor

__all__ = [
    # Platform
    "IS_WINDOWS",
    "set_dpi_awareness",
    # Device
    "InputDevice",
    "PyAutoGUIDevice",
    "DryRunDevice",
    # Motion
    "plan_steps",
    "step_delay_ms",
    "interpolate",
    "smooth_move",
    # Actions
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "ActionExecutor",
]
