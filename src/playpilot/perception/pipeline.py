"""
Detection pipeline orchestrator.

Runs one detection cycle: capture, OCR, button classification, video
area scanning, merging and custom template matching.
"""

import asyncio
import dataclasses
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar, Union

from playpilot.config import PlayPilotConfig
from playpilot.errors import RecognitionError
from playpilot.geometry import BoundingBox
from playpilot.logging import get_logger
from playpilot.perception.classifier import ElementClassifier
from playpilot.perception.merge import merge_overlapping
from playpilot.perception.models import (
    DetectedElement,
    DetectionResult,
    PixelBuffer,
    TextSpan,
)
from playpilot.perception.ocr import TextRecognizer
from playpilot.perception.screenshot import ScreenCapture
from playpilot.perception.template import TemplateMatcher

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CustomElement:
    """A caller-defined element located by template matching."""

    type: str
    template: Union[str, Path, PixelBuffer]  # registered name, image path or pixels
    threshold: Optional[float] = None


@dataclass
class DetectionOptions:
    """Per-cycle stage toggles."""

    detect_text: bool = True
    detect_buttons: bool = True
    detect_videos: bool = True
    custom_elements: Sequence[CustomElement] = field(default_factory=tuple)
    region: Optional[BoundingBox] = None


class DetectionPipeline:
    """
    Composes the perception components into one detection call.

    Stages run sequentially. A capture failure raises CaptureError; any
    other stage failure is logged and leaves that slot empty. The OCR
    engine is held for the pipeline's lifetime and released by
    ``close``.
    """

    def __init__(
        self,
        config: Optional[PlayPilotConfig] = None,
        capture: Optional[ScreenCapture] = None,
        recognizer: Optional[TextRecognizer] = None,
        classifier: Optional[ElementClassifier] = None,
        matcher: Optional[TemplateMatcher] = None,
    ):
        self.config = config or PlayPilotConfig()
        self.capture = capture or ScreenCapture(self.config.capture)
        self.recognizer = recognizer or TextRecognizer(self.config.ocr)
        self.classifier = classifier or ElementClassifier(self.config.vision)
        self.matcher = matcher or TemplateMatcher(self.config.vision)
        self._closed = False

        logger.info(
            "DetectionPipeline initialized",
            min_confidence=self.config.ocr.min_confidence,
            block_size=self.config.vision.block_size,
        )

    async def __aenter__(self) -> "DetectionPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def detect(self, options: Optional[DetectionOptions] = None) -> DetectionResult:
        """
        Run one detection cycle.

        Args:
            options: Stage toggles, custom elements and capture region

        Returns:
            DetectionResult with coordinates in screen space

        Raises:
            CaptureError: If the screen could not be captured
        """
        options = options or DetectionOptions()
        start = time.time()

        buffer = await asyncio.to_thread(self.capture.capture, options.region)
        screenshot_path = self.capture.last_saved_path if self.config.capture.save_screenshots else None

        text_regions: List[TextSpan] = []
        if options.detect_text:
            text_regions = await self._run_stage("ocr", self._recognize, buffer, fallback=[])

        buttons: List[DetectedElement] = []
        if options.detect_buttons:
            buttons = await self._run_stage(
                "buttons", self.classifier.classify_buttons, text_regions, fallback=[]
            )

        videos: List[DetectedElement] = []
        if options.detect_videos:
            videos = await self._run_stage("videos", self._detect_videos, buffer, fallback=[])

        elements: List[DetectedElement] = []
        for custom in options.custom_elements:
            element = await self._run_stage(
                f"custom:{custom.type}", self._match_custom, buffer, custom, fallback=None
            )
            if element is not None:
                elements.append(element)

        if options.region:
            dx, dy = options.region.x, options.region.y
            text_regions = [_shift(s, dx, dy) for s in text_regions]
            buttons = [_shift(b, dx, dy) for b in buttons]
            videos = [_shift(v, dx, dy) for v in videos]
            elements = [_shift(e, dx, dy) for e in elements]

        result = DetectionResult(
            timestamp=time.time(),
            text_regions=tuple(text_regions),
            buttons=tuple(buttons),
            videos=tuple(videos),
            elements=tuple(elements),
            screenshot_path=screenshot_path,
        )

        logger.info(
            "Detection complete",
            text_regions=len(result.text_regions),
            buttons=len(result.buttons),
            videos=len(result.videos),
            elements=len(result.elements),
            duration_ms=int((time.time() - start) * 1000),
        )
        return result

    async def _run_stage(self, name: str, func: Callable[..., T], *args, fallback: T) -> T:
        """Run a blocking stage off the event loop, degrading failures to ``fallback``."""
        try:
            return await asyncio.to_thread(func, *args)
        except RecognitionError as e:
            logger.warning("OCR unavailable, continuing without text", stage=name, error=str(e))
        except Exception as e:
            logger.error("Detection stage failed", stage=name, error=str(e), exc_info=True)
        return fallback

    def _recognize(self, buffer: PixelBuffer) -> List[TextSpan]:
        threshold = self.config.ocr.min_confidence
        return [s for s in self.recognizer.recognize(buffer) if s.confidence > threshold]

    def _detect_videos(self, buffer: PixelBuffer) -> List[DetectedElement]:
        return merge_overlapping(self.classifier.scan_video_areas(buffer))

    def _match_custom(self, buffer: PixelBuffer, custom: CustomElement) -> Optional[DetectedElement]:
        template = custom.template
        if isinstance(template, Path):
            template = PixelBuffer.load(template)

        match = self.matcher.find(buffer, template, threshold=custom.threshold)
        if match is None:
            return None
        return DetectedElement(type=custom.type, bbox=match.bbox, confidence=match.confidence)

    async def close(self) -> None:
        """Release the OCR engine. Repeated calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self.recognizer.shutdown()
        logger.info("DetectionPipeline closed")


def _shift(item, dx: int, dy: int):
    return dataclasses.replace(item, bbox=item.bbox.translated(dx, dy))
