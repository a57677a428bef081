"""
Action requests and results.

An ``ActionRequest`` is a tagged variant: ``type`` selects which of the
optional fields apply. Requests are built with the factory classmethods
or parsed from dicts (camelCase or snake_case keys).
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from playpilot.errors import InvalidActionError, UnsupportedActionError
from playpilot.logging import get_logger

logger = get_logger(__name__)


class ActionType(str, Enum):
    """Types of input actions."""

    CLICK = "click"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"
    MOVE = "move"
    DRAG = "drag"
    SCROLL = "scroll"
    KEY = "key"
    TYPE = "type"
    COMBO = "combo"

    @classmethod
    def parse(cls, value: Any) -> "ActionType":
        """Accept enum members, snake_case values or camelCase tags."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = _CAMEL_TYPES.get(value, value)
            try:
                return cls(name)
            except ValueError:
                pass
        raise UnsupportedActionError(value)


_CAMEL_TYPES = {
    "doubleClick": "double_click",
    "rightClick": "right_click",
}

_CAMEL_FIELDS = {
    "fromX": "from_x",
    "fromY": "from_y",
    "toX": "to_x",
    "toY": "to_y",
    "stopOnError": "stop_on_error",
}

# Fields echoed back in results, per action type
PARAM_FIELDS: Dict[ActionType, Tuple[str, ...]] = {
    ActionType.CLICK: ("x", "y", "button"),
    ActionType.DOUBLE_CLICK: ("x", "y", "button"),
    ActionType.RIGHT_CLICK: ("x", "y"),
    ActionType.MOVE: ("x", "y"),
    ActionType.DRAG: ("from_x", "from_y", "to_x", "to_y", "button"),
    ActionType.SCROLL: ("direction", "clicks", "x", "y"),
    ActionType.KEY: ("key", "modifiers"),
    ActionType.TYPE: ("text",),
    ActionType.COMBO: ("keys",),
}

_REQUIRED: Dict[ActionType, Tuple[str, ...]] = {
    ActionType.CLICK: ("x", "y"),
    ActionType.DOUBLE_CLICK: ("x", "y"),
    ActionType.RIGHT_CLICK: ("x", "y"),
    ActionType.MOVE: ("x", "y"),
    ActionType.DRAG: ("from_x", "from_y", "to_x", "to_y"),
    ActionType.KEY: ("key",),
    ActionType.TYPE: ("text",),
    ActionType.COMBO: ("keys",),
}


@dataclass
class ActionRequest:
    """A single input action to perform."""

    type: ActionType
    x: Optional[int] = None
    y: Optional[int] = None
    button: str = "left"
    smooth: Optional[bool] = None  # None = configured default

    # Drag
    from_x: Optional[int] = None
    from_y: Optional[int] = None
    to_x: Optional[int] = None
    to_y: Optional[int] = None

    # Scroll
    direction: str = "down"
    clicks: Optional[int] = None  # None = configured scroll speed

    # Keyboard
    key: Optional[str] = None
    modifiers: Tuple[str, ...] = ()
    text: Optional[str] = None
    speed: Optional[int] = None  # per-character delay in ms
    keys: Tuple[str, ...] = ()

    # Batch control
    delay: int = 0
    stop_on_error: bool = False

    def __post_init__(self) -> None:
        self.type = ActionType.parse(self.type)
        self.modifiers = tuple(self.modifiers)
        self.keys = tuple(self.keys)

        for name in _REQUIRED.get(self.type, ()):
            if getattr(self, name) in (None, ()):
                raise InvalidActionError(self.type.value, name)
        if self.type == ActionType.SCROLL and (self.x is None) != (self.y is None):
            raise InvalidActionError(self.type.value, "both x and y or neither")

    @property
    def coordinates(self) -> Optional[Tuple[int, int]]:
        if self.x is None or self.y is None:
            return None
        return (self.x, self.y)

    def params(self) -> Dict[str, Any]:
        """The action-specific fields of this request."""
        params = {}
        for name in PARAM_FIELDS[self.type]:
            value = getattr(self, name)
            params[name] = list(value) if isinstance(value, tuple) else value
        return params

    @classmethod
    def click(cls, x: int, y: int, button: str = "left", **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.CLICK, x=x, y=y, button=button, **kwargs)

    @classmethod
    def double_click(cls, x: int, y: int, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.DOUBLE_CLICK, x=x, y=y, **kwargs)

    @classmethod
    def right_click(cls, x: int, y: int, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.RIGHT_CLICK, x=x, y=y, button="right", **kwargs)

    @classmethod
    def move(cls, x: int, y: int, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.MOVE, x=x, y=y, **kwargs)

    @classmethod
    def drag(cls, from_x: int, from_y: int, to_x: int, to_y: int, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.DRAG, from_x=from_x, from_y=from_y, to_x=to_x, to_y=to_y, **kwargs)

    @classmethod
    def scroll(cls, direction: str = "down", clicks: Optional[int] = None, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.SCROLL, direction=direction, clicks=clicks, **kwargs)

    @classmethod
    def press(cls, key: str, modifiers: Tuple[str, ...] = (), **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.KEY, key=key, modifiers=modifiers, **kwargs)

    @classmethod
    def type_text(cls, text: str, speed: Optional[int] = None, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.TYPE, text=text, speed=speed, **kwargs)

    @classmethod
    def combo(cls, *keys: str, **kwargs: Any) -> "ActionRequest":
        return cls(ActionType.COMBO, keys=keys, **kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionRequest":
        """
        Parse a request from a dict.

        Raises:
            UnsupportedActionError: If ``type`` is missing or unknown
            InvalidActionError: If a required field is missing
        """
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _CAMEL_FIELDS.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                logger.debug("Ignoring unknown action field", field=key)

        if "type" not in kwargs:
            raise UnsupportedActionError(None)
        return cls(**kwargs)


@dataclass
class ActionResult:
    """Result of an action execution."""

    success: bool
    action_type: str
    params: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "success": self.success,
            "action": self.action_type,
            **self.params,
            "durationMs": self.duration_ms,
        }
        if self.message:
            d["message"] = self.message
        if self.error is not None:
            d["error"] = self.error
        return d
