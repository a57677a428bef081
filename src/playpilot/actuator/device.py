"""
OS input layer adapters.

``InputDevice`` is the seam between the executor and the operating
system: pointer moves, button and key toggles, scrolling and the
read-only pointer/pixel/screen queries. All calls are synchronous and
return quickly; pacing is done by the executor.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Set, Tuple

from playpilot.errors import ActuationError
from playpilot.geometry import ScreenGeometry
from playpilot.logging import get_logger

logger = get_logger(__name__)

# Common key spellings mapped onto pyautogui key names
KEY_ALIASES = {
    "control": "ctrl",
    "cmd": "command",
    "meta": "win",
    "escape": "esc",
}


def normalize_key(key: str) -> str:
    key = key.lower()
    return KEY_ALIASES.get(key, key)


class InputDevice(ABC):
    """Low-level synthetic input and pointer queries."""

    @abstractmethod
    def size(self) -> ScreenGeometry:
        ...

    @abstractmethod
    def position(self) -> Tuple[int, int]:
        ...

    @abstractmethod
    def pixel(self, x: int, y: int) -> Tuple[int, int, int]:
        ...

    @abstractmethod
    def move(self, x: int, y: int) -> None:
        ...

    @abstractmethod
    def click(self, button: str = "left") -> None:
        ...

    @abstractmethod
    def button_down(self, button: str = "left") -> None:
        ...

    @abstractmethod
    def button_up(self, button: str = "left") -> None:
        ...

    @abstractmethod
    def key_down(self, key: str) -> None:
        ...

    @abstractmethod
    def key_up(self, key: str) -> None:
        ...

    @abstractmethod
    def key_tap(self, key: str) -> None:
        ...

    @abstractmethod
    def write(self, char: str) -> None:
        """Emit a single character."""

    @abstractmethod
    def scroll(self, clicks: int) -> None:
        """Scroll by ``clicks`` wheel notches; positive is up."""


class PyAutoGUIDevice(InputDevice):
    """
    Input device backed by pyautogui.

    pyautogui connects to the display when imported, so the import is
    deferred to construction. Every pyautogui failure, including the
    corner fail-safe, surfaces as ActuationError.
    """

    def __init__(self, failsafe: bool = True):
        try:
            import pyautogui
        except Exception as e:
            # Display backends raise assorted errors when no display is reachable
            raise ActuationError(f"Input layer unavailable: {e}", operation="init") from e

        pyautogui.FAILSAFE = failsafe  # Move to corner to abort
        pyautogui.PAUSE = 0  # Pacing is handled by the executor
        self._gui = pyautogui

        logger.info("PyAutoGUIDevice initialized", failsafe=failsafe)

    def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except self._gui.FailSafeException as e:
            logger.warning("pyautogui fail-safe triggered", operation=operation)
            raise ActuationError(f"Fail-safe triggered during {operation}", operation) from e
        except (self._gui.PyAutoGUIException, OSError, ValueError) as e:
            raise ActuationError(f"{operation} failed: {e}", operation) from e

    def size(self) -> ScreenGeometry:
        width, height = self._call("size", self._gui.size)
        return ScreenGeometry(width=int(width), height=int(height))

    def position(self) -> Tuple[int, int]:
        x, y = self._call("position", self._gui.position)
        return (int(x), int(y))

    def pixel(self, x: int, y: int) -> Tuple[int, int, int]:
        r, g, b = self._call("pixel", self._gui.pixel, x, y)[:3]
        return (int(r), int(g), int(b))

    def move(self, x: int, y: int) -> None:
        self._call("move", self._gui.moveTo, x, y)

    def click(self, button: str = "left") -> None:
        self._call("click", self._gui.click, button=button)

    def button_down(self, button: str = "left") -> None:
        self._call("button_down", self._gui.mouseDown, button=button)

    def button_up(self, button: str = "left") -> None:
        self._call("button_up", self._gui.mouseUp, button=button)

    def key_down(self, key: str) -> None:
        self._call("key_down", self._gui.keyDown, normalize_key(key))

    def key_up(self, key: str) -> None:
        self._call("key_up", self._gui.keyUp, normalize_key(key))

    def key_tap(self, key: str) -> None:
        self._call("key_tap", self._gui.press, normalize_key(key))

    def write(self, char: str) -> None:
        self._call("write", self._gui.write, char)

    def scroll(self, clicks: int) -> None:
        self._call("scroll", self._gui.scroll, clicks)


class DryRunDevice(InputDevice):
    """
    In-memory device for rehearsing action sequences.

    Tracks pointer position and held buttons/keys, records every event
    in ``events`` and logs it with a ``DRY-RUN:`` prefix. Nothing
    reaches the OS.
    """

    def __init__(
        self,
        geometry: Optional[ScreenGeometry] = None,
        position: Optional[Tuple[int, int]] = None,
    ):
        self.geometry = geometry or ScreenGeometry(width=1920, height=1080)
        self._position = position or (self.geometry.width // 2, self.geometry.height // 2)
        self.held_buttons: Set[str] = set()
        self.held_keys: Set[str] = set()
        self.events: List[Tuple[Any, ...]] = []

    def _record(self, *event: Any) -> None:
        self.events.append(event)
        # Pointer moves are too frequent for info level
        if event[0] == "move":
            logger.debug("DRY-RUN: move", x=event[1], y=event[2])
        else:
            logger.info(f"DRY-RUN: {event[0]}", args=event[1:])

    def size(self) -> ScreenGeometry:
        return self.geometry

    def position(self) -> Tuple[int, int]:
        return self._position

    def pixel(self, x: int, y: int) -> Tuple[int, int, int]:
        return (0, 0, 0)

    def move(self, x: int, y: int) -> None:
        self._position = (x, y)
        self._record("move", x, y)

    def click(self, button: str = "left") -> None:
        self._record("click", button, self._position)

    def button_down(self, button: str = "left") -> None:
        self.held_buttons.add(button)
        self._record("button_down", button)

    def button_up(self, button: str = "left") -> None:
        self.held_buttons.discard(button)
        self._record("button_up", button)

    def key_down(self, key: str) -> None:
        self.held_keys.add(normalize_key(key))
        self._record("key_down", normalize_key(key))

    def key_up(self, key: str) -> None:
        self.held_keys.discard(normalize_key(key))
        self._record("key_up", normalize_key(key))

    def key_tap(self, key: str) -> None:
        self._record("key_tap", normalize_key(key))

    def write(self, char: str) -> None:
        self._record("write", char)

    def scroll(self, clicks: int) -> None:
        self._record("scroll", clicks)
