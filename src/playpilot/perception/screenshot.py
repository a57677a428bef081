"""
Screen capture using mss.

Produces RGBA pixel buffers of the full display or a region, with
optional PNG persistence of each capture.
"""

import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import mss
import mss.tools
from mss.exception import ScreenShotError

from playpilot.config import CaptureConfig
from playpilot.errors import CaptureError
from playpilot.geometry import BoundingBox, ScreenGeometry
from playpilot.logging import get_logger
from playpilot.perception.models import PixelBuffer

logger = get_logger(__name__)


class ScreenCapture:
    """
    Captures the screen with mss.

    A failed grab raises CaptureError; it is never retried here.
    """

    def __init__(self, config: Optional[CaptureConfig] = None):
        self.config = config or CaptureConfig()
        self.last_saved_path: Optional[Path] = None

        logger.info(
            "ScreenCapture initialized",
            monitor=self.config.monitor_index,
            save_screenshots=self.config.save_screenshots,
        )

    def _monitor(self, sct: "mss.base.MSSBase") -> dict:
        # mss monitors: 0 = all monitors combined, 1+ = individual
        index = self.config.monitor_index + 1
        if index >= len(sct.monitors):
            index = 1
        return sct.monitors[index]

    def geometry(self) -> ScreenGeometry:
        """Size of the captured monitor."""
        try:
            with mss.mss() as sct:
                monitor = self._monitor(sct)
        except ScreenShotError as e:
            raise CaptureError(f"Cannot query monitors: {e}") from e
        return ScreenGeometry(width=monitor["width"], height=monitor["height"])

    def capture(self, region: Optional[BoundingBox] = None) -> PixelBuffer:
        """
        Capture the full screen or a sub-rectangle of it.

        Args:
            region: Optional region in screen coordinates

        Returns:
            PixelBuffer of the captured pixels

        Raises:
            CaptureError: If the OS capture call fails
        """
        start = time.time()

        try:
            with mss.mss() as sct:
                monitor = self._monitor(sct)
                if region:
                    grab_area = {
                        "left": monitor["left"] + region.x,
                        "top": monitor["top"] + region.y,
                        "width": region.width,
                        "height": region.height,
                    }
                else:
                    grab_area = monitor
                shot = sct.grab(grab_area)
        except ScreenShotError as e:
            logger.error("Screenshot failed", error=str(e), region=region.to_tuple() if region else None)
            raise CaptureError(f"Screenshot failed: {e}") from e

        buffer = PixelBuffer.from_bgra(shot.bgra, shot.width, shot.height)

        if self.config.save_screenshots:
            self.last_saved_path = self._save(shot.rgb, shot.size)

        logger.debug(
            "Screen captured",
            size=buffer.size,
            region=region.to_tuple() if region else None,
            duration_ms=int((time.time() - start) * 1000),
        )
        return buffer

    def _save(self, rgb: bytes, size: Tuple[int, int]) -> Optional[Path]:
        """Write a capture to the screenshot directory; failures are only logged."""
        directory = self.config.screenshot_path
        path = directory / f"screenshot_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}.png"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            mss.tools.to_png(rgb, size, output=str(path))
        except (OSError, ScreenShotError) as e:
            logger.warning("Could not save screenshot", path=str(path), error=str(e))
            return None
        logger.info("Screenshot saved", path=str(path))
        return path
