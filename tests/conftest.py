"""
Pytest configuration and fixtures.
"""

import random
from typing import List, Tuple

import numpy as np
import pytest

from playpilot.actuator.device import DryRunDevice
from playpilot.actuator.executor import ActionExecutor
from playpilot.config import MouseConfig
from playpilot.geometry import ScreenGeometry
from playpilot.perception.models import PixelBuffer


def solid_buffer(width: int, height: int, rgb: Tuple[int, int, int] = (255, 255, 255)) -> PixelBuffer:
    """Opaque single-color buffer."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :, :3] = rgb
    pixels[:, :, 3] = 255
    return PixelBuffer(pixels)


class SleepRecorder:
    """Async sleep stand-in that records requested delays (ms)."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, ms: float) -> None:
        self.calls.append(ms)


@pytest.fixture
def make_buffer():
    return solid_buffer


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def device():
    """In-memory input device on a 1920x1080 screen."""
    return DryRunDevice(ScreenGeometry(width=1920, height=1080), position=(100, 100))


@pytest.fixture
def make_executor(device, sleeps):
    """Build an executor on the fake device with recorded sleeps."""
    def _create(**overrides) -> ActionExecutor:
        config = MouseConfig().with_overrides(overrides)
        return ActionExecutor(config, device=device, sleep=sleeps, rng=random.Random(1234))
    return _create
