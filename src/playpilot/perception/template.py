"""
Template matching for UI element detection.

Coarse sliding-window search scored by mean absolute RGB difference.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from playpilot.config import VisionConfig
from playpilot.geometry import BoundingBox
from playpilot.logging import get_logger
from playpilot.perception.models import PixelBuffer

logger = get_logger(__name__)

# Largest possible per-pixel difference summed over R, G and B
MAX_CHANNEL_DIFF = 255 * 3


@dataclass(frozen=True)
class MatchResult:
    """Best window found for a template."""

    bbox: BoundingBox
    confidence: float
    template_name: Optional[str] = None

    @property
    def center(self) -> Tuple[int, int]:
        """Get center point of match."""
        return self.bbox.center

    def to_dict(self) -> dict:
        return {
            "template_name": self.template_name,
            "bbox": self.bbox.to_dict(),
            "center": {"x": self.center[0], "y": self.center[1]},
            "confidence": self.confidence,
        }


def window_similarity(
    image_rgb: np.ndarray,
    template_rgb: np.ndarray,
    x: int,
    y: int,
    sample_step: int = 2,
) -> float:
    """
    Similarity of the template placed at (x, y) in the image.

    ``max(0, 1 - mean(|dr| + |dg| + |db|) / 765)`` over every
    ``sample_step``-th template pixel on each axis. Alpha is ignored.
    """
    th, tw = template_rgb.shape[:2]
    window = image_rgb[y:y + th:sample_step, x:x + tw:sample_step].astype(np.int16)
    sampled = template_rgb[::sample_step, ::sample_step].astype(np.int16)
    mean_diff = float(np.abs(window - sampled).sum(axis=2).mean())
    return max(0.0, 1.0 - mean_diff / MAX_CHANNEL_DIFF)


class TemplateMatcher:
    """
    Template matcher for finding player controls.

    Both the search offsets and the per-window pixels are sub-sampled,
    trading accuracy for speed on screen-sized images.
    """

    def __init__(self, config: Optional[VisionConfig] = None):
        self.config = config or VisionConfig()
        self._templates: Dict[str, PixelBuffer] = {}

        if self.config.template_dir:
            self.load_directory(self.config.template_dir)

        logger.info(
            "TemplateMatcher initialized",
            stride=self.config.template_stride,
            threshold=self.config.template_threshold,
            templates=len(self._templates),
        )

    @property
    def threshold(self) -> float:
        return self.config.template_threshold

    def load_directory(self, template_dir: Union[str, Path]) -> int:
        """Load every PNG/JPEG in a directory, named by file stem."""
        template_dir = Path(template_dir).expanduser()
        if not template_dir.is_dir():
            logger.warning("Template directory not found", path=str(template_dir))
            return 0

        loaded = 0
        for pattern in ["*.png", "*.jpg", "*.jpeg"]:
            for path in sorted(template_dir.glob(pattern)):
                if self.load_template(path.stem, path):
                    loaded += 1
        return loaded

    def load_template(self, name: str, path: Union[str, Path]) -> bool:
        """
        Load a template image.

        Args:
            name: Template name for reference
            path: Path to template image

        Returns:
            True if loaded successfully
        """
        try:
            buffer = PixelBuffer.load(path)
        except (FileNotFoundError, ValueError) as e:
            logger.warning("Failed to load template", name=name, error=str(e))
            return False

        self._templates[name] = buffer
        logger.debug("Template loaded", name=name, size=buffer.size)
        return True

    def add_template(self, name: str, template: PixelBuffer) -> None:
        """Register an in-memory template."""
        self._templates[name] = template

    def get_template(self, name: str) -> Optional[PixelBuffer]:
        return self._templates.get(name)

    def get_template_names(self) -> List[str]:
        """Get list of loaded template names."""
        return list(self._templates.keys())

    def match(
        self,
        image: PixelBuffer,
        template: PixelBuffer,
        template_name: Optional[str] = None,
    ) -> MatchResult:
        """
        Exhaustive strided search for the best-scoring window.

        The best window is returned whatever its score; compare the
        confidence against a threshold (see ``find``) to accept it.
        Ties keep the first window in row-major order. A template larger
        than the image yields a zero-confidence match at the origin.
        """
        stride = self.config.template_stride
        step = self.config.template_sample_step
        tw, th = template.width, template.height
        start = time.time()

        best_x, best_y, best_score = 0, 0, 0.0

        if tw <= image.width and th <= image.height:
            image_rgb = image.rgb
            template_rgb = template.rgb
            for y in range(0, image.height - th + 1, stride):
                for x in range(0, image.width - tw + 1, stride):
                    score = window_similarity(image_rgb, template_rgb, x, y, step)
                    if score > best_score:
                        best_x, best_y, best_score = x, y, score
        else:
            logger.debug(
                "Template larger than image",
                template=template_name,
                template_size=template.size,
                image_size=image.size,
            )

        result = MatchResult(
            bbox=BoundingBox(x=best_x, y=best_y, width=tw, height=th),
            confidence=best_score,
            template_name=template_name,
        )
        logger.debug(
            "Template searched",
            name=template_name,
            confidence=round(best_score, 4),
            location=(best_x, best_y),
            duration_ms=int((time.time() - start) * 1000),
        )
        return result

    def find(
        self,
        image: PixelBuffer,
        template: Union[str, PixelBuffer],
        threshold: Optional[float] = None,
    ) -> Optional[MatchResult]:
        """
        Match and apply the acceptance threshold.

        Args:
            image: Image to search
            template: Registered template name or a pixel buffer
            threshold: Override the configured threshold

        Returns:
            MatchResult if confidence exceeds the threshold, else None

        Raises:
            KeyError: If a template name is not registered
        """
        threshold = threshold if threshold is not None else self.threshold

        if isinstance(template, str):
            name = template
            if name not in self._templates:
                raise KeyError(f"Template not loaded: {name}")
            template = self._templates[name]
        else:
            name = None

        result = self.match(image, template, template_name=name)
        if result.confidence > threshold:
            return result
        return None
