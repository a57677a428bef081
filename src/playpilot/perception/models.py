"""
Data models for the perception subsystem.

Pixel buffers, OCR text spans, the UI element descriptor registry and
detection results.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import cv2
import numpy as np

from playpilot.geometry import BoundingBox


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Immutable RGBA pixel grid of shape (height, width, 4).

    The underlying array is made read-only on construction; crop and
    conversion helpers always return new buffers.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        if arr is self.pixels:
            # Freezing must not touch the caller's array
            arr = arr.copy()
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"PixelBuffer expects (h, w, 4) RGBA data, got {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError("PixelBuffer cannot be empty")
        arr.flags.writeable = False
        object.__setattr__(self, "pixels", arr)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def rgb(self) -> np.ndarray:
        """Read-only (h, w, 3) view without the alpha channel."""
        return self.pixels[:, :, :3]

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """Get the (r, g, b, a) sample at a position."""
        r, g, b, a = self.pixels[y, x]
        return (int(r), int(g), int(b), int(a))

    def crop(self, bbox: BoundingBox) -> "PixelBuffer":
        """Return a new buffer holding the ``bbox`` sub-rectangle."""
        if bbox.x < 0 or bbox.y < 0 or bbox.right > self.width or bbox.bottom > self.height:
            raise ValueError(
                f"Crop {bbox.to_tuple()} outside buffer {self.width}x{self.height}"
            )
        return PixelBuffer(self.pixels[bbox.y:bbox.bottom, bbox.x:bbox.right].copy())

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Build from a grayscale, RGB or RGBA array."""
        array = np.asarray(array, dtype=np.uint8)
        if array.ndim == 2:
            array = cv2.cvtColor(array, cv2.COLOR_GRAY2RGBA)
        elif array.ndim == 3 and array.shape[2] == 3:
            array = cv2.cvtColor(array, cv2.COLOR_RGB2RGBA)
        return cls(array)

    @classmethod
    def from_bgra(cls, raw: bytes, width: int, height: int) -> "PixelBuffer":
        """Build from raw BGRA bytes as returned by mss."""
        bgra = np.frombuffer(raw, dtype=np.uint8).reshape((height, width, 4))
        return cls(cv2.cvtColor(bgra, cv2.COLOR_BGRA2RGBA))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "PixelBuffer":
        """
        Load an image file (PNG, JPEG, ...).

        Raises:
            FileNotFoundError: If the file is missing
            ValueError: If the file cannot be decoded
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {path}")
        img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if img is None:
            raise ValueError(f"Failed to decode image: {path}")
        if img.ndim == 2:
            return cls(cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA))
        if img.shape[2] == 3:
            return cls(cv2.cvtColor(img, cv2.COLOR_BGR2RGBA))
        return cls(cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA))


@dataclass(frozen=True)
class TextSpan:
    """Recognized word with confidence (0-100) and bounding box."""

    text: str
    confidence: float
    bbox: BoundingBox

    @property
    def center(self) -> Tuple[int, int]:
        return self.bbox.center

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "bbox": self.bbox.to_dict(),
        }


class ElementType(str, Enum):
    """Known UI element types."""

    PLAY_BUTTON = "playButton"
    PAUSE_BUTTON = "pauseButton"
    NEXT_BUTTON = "nextButton"
    VIDEO_AREA = "videoArea"
    PROGRESS_BAR = "progressBar"


class Shape(str, Enum):
    CIRCLE = "circle"
    ROUNDED_RECT = "rounded-rect"
    RECT = "rect"
    LINE = "line"


@dataclass(frozen=True)
class UITemplateDescriptor:
    """Keyword, color and shape criteria for one element type."""

    name: ElementType
    keywords: Tuple[str, ...]
    colors: Tuple[str, ...]
    shapes: Tuple[Shape, ...]

    @property
    def is_button(self) -> bool:
        return self.name.value.endswith("Button")


UI_TEMPLATES: Dict[ElementType, UITemplateDescriptor] = {
    ElementType.PLAY_BUTTON: UITemplateDescriptor(
        name=ElementType.PLAY_BUTTON,
        keywords=("播放", "开始", "play", "▶"),
        colors=("#1890ff", "#409eff", "#007bff"),
        shapes=(Shape.CIRCLE, Shape.ROUNDED_RECT),
    ),
    ElementType.PAUSE_BUTTON: UITemplateDescriptor(
        name=ElementType.PAUSE_BUTTON,
        keywords=("暂停", "pause", "⏸"),
        colors=("#f56c6c", "#ff4d4f"),
        shapes=(Shape.CIRCLE, Shape.ROUNDED_RECT),
    ),
    ElementType.NEXT_BUTTON: UITemplateDescriptor(
        name=ElementType.NEXT_BUTTON,
        keywords=("下一集", "下一个", "下一课", "next", "→"),
        colors=("#67c23a", "#52c41a"),
        shapes=(Shape.RECT, Shape.ROUNDED_RECT),
    ),
    ElementType.VIDEO_AREA: UITemplateDescriptor(
        name=ElementType.VIDEO_AREA,
        keywords=("video", "视频"),
        colors=("#000000", "#1a1a1a"),
        shapes=(Shape.RECT,),
    ),
    ElementType.PROGRESS_BAR: UITemplateDescriptor(
        name=ElementType.PROGRESS_BAR,
        keywords=("progress", "进度"),
        colors=("#1890ff", "#409eff"),
        shapes=(Shape.RECT, Shape.LINE),
    ),
}


@dataclass(frozen=True)
class DetectedElement:
    """A classified UI element from one detection cycle."""

    type: str
    bbox: BoundingBox
    confidence: float
    text: Optional[str] = None
    merged_from: Optional[int] = None

    @property
    def center(self) -> Tuple[int, int]:
        return self.bbox.center

    def to_dict(self) -> dict:
        d = {
            "type": self.type.value if isinstance(self.type, Enum) else self.type,
            "bbox": self.bbox.to_dict(),
            "center": {"x": self.center[0], "y": self.center[1]},
            "confidence": self.confidence,
        }
        if self.text is not None:
            d["text"] = self.text
        if self.merged_from is not None:
            d["mergedFrom"] = self.merged_from
        return d


@dataclass(frozen=True)
class DetectionResult:
    """Immutable snapshot of one detection cycle."""

    timestamp: float
    text_regions: Tuple[TextSpan, ...] = ()
    buttons: Tuple[DetectedElement, ...] = ()
    videos: Tuple[DetectedElement, ...] = ()
    elements: Tuple[DetectedElement, ...] = ()
    screenshot_path: Optional[Path] = field(default=None, compare=False)

    @property
    def element_count(self) -> int:
        """Buttons, videos and custom elements combined."""
        return len(self.buttons) + len(self.videos) + len(self.elements)

    def find(self, element_type: str) -> Tuple[DetectedElement, ...]:
        """All detected elements of a given type, best confidence first."""
        matches = [
            e for e in (*self.buttons, *self.videos, *self.elements)
            if e.type == element_type
        ]
        return tuple(sorted(matches, key=lambda e: e.confidence, reverse=True))

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "textRegions": [t.to_dict() for t in self.text_regions],
            "buttons": [b.to_dict() for b in self.buttons],
            "videos": [v.to_dict() for v in self.videos],
            "elements": [e.to_dict() for e in self.elements],
            "screenshotPath": str(self.screenshot_path) if self.screenshot_path else None,
        }
