"""
Interpolated pointer motion.

Cursor moves are split into linear steps so the pointer travels rather
than teleports. Step count depends on distance only; speed only changes
the delay between steps.
"""

import math
from typing import Iterator, Tuple

from playpilot.actuator.device import InputDevice
from playpilot.resilience import Sleep

MIN_STEPS = 10
MAX_STEPS = 50
PIXELS_PER_STEP = 10
BASE_STEP_DELAY_MS = 20

Point = Tuple[int, int]


def plan_steps(distance: float) -> int:
    """Number of motion steps for a move of ``distance`` pixels."""
    return max(MIN_STEPS, min(MAX_STEPS, math.floor(distance / PIXELS_PER_STEP)))


def step_delay_ms(mouse_speed: float) -> int:
    return max(1, math.floor(BASE_STEP_DELAY_MS / mouse_speed))


def interpolate(start: Point, end: Point, steps: int) -> Iterator[Point]:
    """
    Yield ``steps + 1`` points from ``start`` to ``end`` inclusive.

    Points are linearly spaced and rounded to whole pixels.
    """
    x0, y0 = start
    x1, y1 = end
    for i in range(steps + 1):
        progress = i / steps
        yield (round(x0 + (x1 - x0) * progress), round(y0 + (y1 - y0) * progress))


async def smooth_move(
    device: InputDevice,
    target: Point,
    mouse_speed: float,
    sleep: Sleep,
) -> int:
    """
    Move the pointer to ``target`` along a straight interpolated path.

    Reads the current pointer position from the device first. Runs to
    completion once started.

    Returns:
        Number of steps taken
    """
    start = device.position()
    steps = plan_steps(math.hypot(target[0] - start[0], target[1] - start[1]))
    delay = step_delay_ms(mouse_speed)

    for point in interpolate(start, target, steps):
        device.move(*point)
        await sleep(delay)

    return steps
