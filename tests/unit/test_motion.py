"""
Tests for interpolated pointer motion.
"""

import asyncio

import pytest

from playpilot.actuator.motion import interpolate, plan_steps, smooth_move, step_delay_ms


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestPlanning:
    """Tests for step count and delay."""

    @pytest.mark.parametrize("distance,steps", [
        (100, 10),
        (1000, 50),
        (5, 10),
        (0, 10),
        (259, 25),
        (509, 50),
    ])
    def test_plan_steps(self, distance, steps):
        assert plan_steps(distance) == steps

    @pytest.mark.parametrize("speed,delay", [(3, 6), (1, 20), (20, 1), (100, 1), (0.5, 40)])
    def test_step_delay(self, speed, delay):
        assert step_delay_ms(speed) == delay

    def test_interpolate_endpoints(self):
        points = list(interpolate((0, 0), (100, 50), 10))

        assert len(points) == 11
        assert points[0] == (0, 0)
        assert points[5] == (50, 25)
        assert points[-1] == (100, 50)


class TestSmoothMove:
    """Tests for smooth_move."""

    def test_long_move(self, device, sleeps):
        steps = run_async(smooth_move(device, (1100, 100), mouse_speed=3, sleep=sleeps))

        moves = [e for e in device.events if e[0] == "move"]
        assert steps == 50
        assert len(moves) == 51
        assert moves[0] == ("move", 100, 100)
        assert device.position() == (1100, 100)
        assert sleeps.calls == [6] * 51

    def test_short_move_uses_minimum_steps(self, device, sleeps):
        steps = run_async(smooth_move(device, (103, 104), mouse_speed=3, sleep=sleeps))

        assert steps == 10
        assert device.position() == (103, 104)
