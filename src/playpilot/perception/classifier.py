"""
Heuristic element classification.

Two independent heuristics: keyword matching of OCR spans against the
button descriptors, and dark-block scanning for video areas.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np

from playpilot.config import VisionConfig
from playpilot.geometry import BoundingBox
from playpilot.logging import get_logger
from playpilot.perception.models import (
    UI_TEMPLATES,
    DetectedElement,
    ElementType,
    PixelBuffer,
    TextSpan,
    UITemplateDescriptor,
)

logger = get_logger(__name__)


class ElementClassifier:
    """
    Maps text spans and raw pixels to UI elements.

    The dark-region scan sub-samples each block on a fixed grid. Video
    areas whose dark content straddles block boundaries can be missed;
    the merge step only partially compensates.
    """

    def __init__(
        self,
        config: Optional[VisionConfig] = None,
        templates: Optional[Dict[ElementType, UITemplateDescriptor]] = None,
    ):
        self.config = config or VisionConfig()
        self.templates = templates if templates is not None else UI_TEMPLATES

    def classify_buttons(self, spans: Iterable[TextSpan]) -> List[DetectedElement]:
        """
        Find buttons by case-insensitive keyword substring match.

        A span matching several button descriptors yields one element
        per descriptor.
        """
        button_templates = [t for t in self.templates.values() if t.is_button]
        buttons = []

        for span in spans:
            text = span.text.lower()
            for template in button_templates:
                if any(keyword.lower() in text for keyword in template.keywords):
                    buttons.append(DetectedElement(
                        type=template.name,
                        bbox=span.bbox,
                        confidence=span.confidence,
                        text=span.text,
                    ))

        logger.debug("Buttons classified", count=len(buttons))
        return buttons

    def dark_fraction(self, buffer: PixelBuffer, x: int, y: int) -> float:
        """Fraction of sampled pixels in the block at (x, y) that are dark."""
        size = self.config.block_size
        stride = self.config.sample_stride
        samples = buffer.rgb[y:y + size:stride, x:x + size:stride].astype(np.uint16)
        if samples.size == 0:
            return 0.0
        luminance = samples.sum(axis=2) / 3.0
        return float(np.count_nonzero(luminance < self.config.dark_luminance)) / (
            luminance.shape[0] * luminance.shape[1]
        )

    def scan_video_areas(self, buffer: PixelBuffer) -> List[DetectedElement]:
        """
        Emit a candidate video area for every mostly-dark block.

        Each candidate covers a footprint of several blocks starting at
        the dark block, so neighbouring hits overlap and merge later.
        Candidates are returned unmerged, in row-major order.
        """
        size = self.config.block_size
        cols, rows = self.config.footprint_blocks
        candidates = []

        for y in range(0, buffer.height - size, size):
            for x in range(0, buffer.width - size, size):
                fraction = self.dark_fraction(buffer, x, y)
                if fraction > self.config.dark_ratio:
                    candidates.append(DetectedElement(
                        type=ElementType.VIDEO_AREA,
                        bbox=BoundingBox(x=x, y=y, width=size * cols, height=size * rows),
                        confidence=fraction,
                    ))

        logger.debug("Video candidates scanned", count=len(candidates))
        return candidates
