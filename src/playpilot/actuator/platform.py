"""
Platform detection and DPI awareness.
"""

import ctypes
import sys

from playpilot.logging import get_logger

logger = get_logger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

_dpi_aware = False


def set_dpi_awareness() -> bool:
    """
    Make the process DPI aware on Windows.

    Without this, capture pixels and input coordinates disagree on
    scaled displays. Must run before screen geometry is read. Repeated
    calls are no-ops.

    Returns:
        True if the process is DPI aware (always True off Windows)
    """
    global _dpi_aware

    if not IS_WINDOWS:
        logger.debug("DPI awareness: not Windows, skipping")
        return True
    if _dpi_aware:
        return True

    # Windows 8.1+: PROCESS_PER_MONITOR_DPI_AWARE
    try:
        ctypes.windll.shcore.SetProcessDpiAwareness(2)
        logger.info("DPI awareness set: per-monitor")
        _dpi_aware = True
        return True
    except (AttributeError, OSError):
        pass

    # Vista+: system DPI aware
    try:
        ctypes.windll.user32.SetProcessDPIAware()
        logger.info("DPI awareness set: system")
        _dpi_aware = True
        return True
    except (AttributeError, OSError):
        pass

    logger.warning("Could not set DPI awareness")
    return False
