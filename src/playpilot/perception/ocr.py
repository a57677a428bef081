"""
Text recognition using Tesseract.

Extracts word-level text spans with confidence scores and bounding
boxes from pixel buffers.
"""

import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pytesseract
from pytesseract import Output
from PIL import Image

from playpilot.config import OCRConfig
from playpilot.errors import RecognitionError
from playpilot.geometry import BoundingBox
from playpilot.logging import get_logger
from playpilot.perception.models import PixelBuffer, TextSpan
from playpilot.perception.preprocessing import ImagePreprocessor

logger = get_logger(__name__)


@dataclass(frozen=True)
class EngineHandle:
    """A verified Tesseract installation with its loaded languages."""

    command: str
    version: str
    languages: str


class TextRecognizer:
    """
    OCR wrapper around Tesseract.

    The engine is started lazily on the first ``recognize`` call (binary
    lookup, version check, language loading) and reused afterwards.
    ``shutdown`` releases it; the recognizer cannot be used after that.
    """

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()
        self._preprocessor = ImagePreprocessor(
            grayscale=self.config.preprocess,
            upscale_factor=self.config.upscale_factor,
        )
        self._engine: Optional[EngineHandle] = None
        self._shut_down = False

        logger.info(
            "TextRecognizer initialized",
            lang=self.config.language,
            psm=self.config.psm,
            preprocess=self.config.preprocess,
        )

    @property
    def started(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Optional[EngineHandle]:
        return self._engine

    def _start_engine(self) -> EngineHandle:
        """Locate tesseract and load the configured languages."""
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

        try:
            version = pytesseract.get_tesseract_version()
            installed = set(pytesseract.get_languages(config=""))
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
            raise RecognitionError(f"Tesseract not available: {e}") from e

        requested = [lang for lang in self.config.language.split("+") if lang]
        missing = [lang for lang in requested if lang not in installed]
        loaded = [lang for lang in requested if lang in installed]

        if missing:
            logger.warning("OCR languages not installed", missing=missing, installed=sorted(installed))
        if not loaded:
            raise RecognitionError(
                f"None of the OCR languages {requested} are installed"
            )

        handle = EngineHandle(
            command=str(pytesseract.pytesseract.tesseract_cmd),
            version=str(version),
            languages="+".join(loaded),
        )
        logger.info("OCR engine started", version=handle.version, languages=handle.languages)
        return handle

    def _ensure_engine(self) -> EngineHandle:
        if self._shut_down:
            raise RecognitionError("TextRecognizer has been shut down")
        if self._engine is None:
            self._engine = self._start_engine()
        return self._engine

    def recognize(self, buffer: PixelBuffer) -> List[TextSpan]:
        """
        Extract word-level text spans from a pixel buffer.

        An image without readable text yields an empty list.

        Args:
            buffer: Pixels to read

        Returns:
            Text spans in buffer coordinates, in reading order

        Raises:
            RecognitionError: If the engine fails or has been shut down
        """
        engine = self._ensure_engine()
        start = time.time()

        prepared = self._preprocessor.prepare(buffer)

        try:
            data = pytesseract.image_to_data(
                Image.fromarray(prepared.image),
                lang=engine.languages,
                config=f"--oem 3 --psm {self.config.psm}",
                output_type=Output.DICT,
                timeout=self.config.timeout_seconds,
            )
        except (pytesseract.TesseractError, RuntimeError, OSError, ValueError) as e:
            logger.error("OCR extraction failed", error=str(e))
            raise RecognitionError(f"OCR failed: {e}") from e

        spans = []
        for i in range(len(data["text"])):
            text = str(data["text"][i]).strip()
            conf = float(data["conf"][i])
            # conf is -1 for layout rows (blocks, lines) that carry no word
            if not text or conf < 0:
                continue

            box = self._to_buffer_box(
                (data["left"][i], data["top"][i], data["width"][i], data["height"][i]),
                prepared.to_screen,
            )
            if box is None:
                continue
            spans.append(TextSpan(text=text, confidence=conf, bbox=box))

        logger.debug(
            "OCR complete",
            words=len(spans),
            duration_ms=int((time.time() - start) * 1000),
        )
        return spans

    @staticmethod
    def _to_buffer_box(raw: Tuple[int, int, int, int], to_screen) -> Optional[BoundingBox]:
        left, top, width, height = (int(v) for v in raw)
        if width <= 0 or height <= 0:
            return None
        return BoundingBox(
            x=to_screen(left),
            y=to_screen(top),
            width=max(1, to_screen(width)),
            height=max(1, to_screen(height)),
        )

    def shutdown(self) -> None:
        """Release the engine. Further calls are ignored with a warning."""
        if self._shut_down:
            logger.warning("TextRecognizer.shutdown called more than once")
            return
        self._shut_down = True
        self._engine = None
        logger.info("OCR engine released")
