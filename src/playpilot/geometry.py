"""
Screen geometry value types shared by perception and actuation.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle with a top-left origin, in pixels."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"BoundingBox needs a positive size, got {self.width}x{self.height}"
            )

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[int, int]:
        """Get center point of the box."""
        return (self.x + self.width // 2, self.y + self.height // 2)

    def overlaps(self, other: "BoundingBox") -> bool:
        """
        Check whether two boxes intersect.

        Boxes overlap unless one lies entirely to the left, right, above
        or below the other. Touching edges count as overlapping.
        """
        return not (
            self.right < other.x
            or other.right < self.x
            or self.bottom < other.y
            or other.bottom < self.y
        )

    def translated(self, dx: int, dy: int) -> "BoundingBox":
        return BoundingBox(self.x + dx, self.y + dy, self.width, self.height)

    def to_tuple(self) -> Tuple[int, int, int, int]:
        """Return as (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    def to_mss_dict(self) -> dict:
        """Return as mss monitor dict format."""
        return {
            "left": self.x,
            "top": self.y,
            "width": self.width,
            "height": self.height,
        }

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, d: dict) -> "BoundingBox":
        """Create from dictionary (accepts x/y or left/top keys)."""
        return cls(
            x=int(d.get("x", d.get("left", 0))),
            y=int(d.get("y", d.get("top", 0))),
            width=int(d["width"]),
            height=int(d["height"]),
        )

    @classmethod
    def covering(cls, boxes: Iterable["BoundingBox"]) -> "BoundingBox":
        """Smallest box that contains every box in ``boxes``."""
        boxes = list(boxes)
        if not boxes:
            raise ValueError("covering() needs at least one box")
        left = min(b.x for b in boxes)
        top = min(b.y for b in boxes)
        right = max(b.right for b in boxes)
        bottom = max(b.bottom for b in boxes)
        return cls(x=left, y=top, width=right - left, height=bottom - top)


@dataclass(frozen=True)
class ScreenGeometry:
    """Size of the display. Read once at startup."""

    width: int
    height: int

    def contains(self, x: int, y: int, margin: int = 0) -> bool:
        """Inclusive bounds check with a border of ``margin`` pixels."""
        return (
            margin <= x <= self.width - margin
            and margin <= y <= self.height - margin
        )

    def to_tuple(self) -> Tuple[int, int]:
        return (self.width, self.height)
