"""
Image preprocessing for OCR.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from playpilot.logging import get_logger
from playpilot.perception.models import PixelBuffer

logger = get_logger(__name__)


@dataclass
class PreparedImage:
    """Image ready for the OCR engine plus the factor it was scaled by."""

    image: np.ndarray
    scale: float = 1.0

    def to_screen(self, value: int) -> int:
        """Map a coordinate in the prepared image back to buffer pixels."""
        return int(round(value / self.scale))


class ImagePreprocessor:
    """
    Converts pixel buffers into OCR-friendly images.

    Grayscale conversion removes color noise from player chrome; an
    optional upscale helps Tesseract with small control labels.
    """

    def __init__(self, grayscale: bool = True, upscale_factor: float = 1.0):
        self.grayscale = grayscale
        self.upscale_factor = upscale_factor

        logger.debug(
            "ImagePreprocessor initialized",
            grayscale=grayscale,
            upscale=upscale_factor,
        )

    def prepare(self, buffer: PixelBuffer) -> PreparedImage:
        """Return a new image for OCR; ``buffer`` is left untouched."""
        if self.grayscale:
            image = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2GRAY)
        else:
            image = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2RGB)

        scale = 1.0
        if self.upscale_factor and self.upscale_factor != 1.0:
            scale = float(self.upscale_factor)
            new_w = max(1, int(buffer.width * scale))
            new_h = max(1, int(buffer.height * scale))
            interpolation = cv2.INTER_CUBIC if scale > 1.0 else cv2.INTER_AREA
            image = cv2.resize(image, (new_w, new_h), interpolation=interpolation)

        return PreparedImage(image=image, scale=scale)
