"""
Input action executor.

Validates coordinates against the screen safety margin, moves the
pointer along interpolated paths and performs primitive and composite
actions with retry, batching and humanized variants.
"""

import dataclasses
import random
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple, Union

from playpilot.actuator.actions import ActionRequest, ActionResult, ActionType
from playpilot.actuator.device import DryRunDevice, InputDevice, PyAutoGUIDevice
from playpilot.actuator.motion import smooth_move
from playpilot.actuator.platform import set_dpi_awareness
from playpilot.config import MouseConfig
from playpilot.errors import InvalidCoordinateError, PlayPilotError
from playpilot.geometry import ScreenGeometry
from playpilot.logging import get_logger
from playpilot.resilience import RetryPolicy, Sleep, retry_with_backoff, sleep_ms

logger = get_logger(__name__)

# Fixed pacing (ms) around drag and scroll phases
HOLD_MS = 50
SCROLL_SETTLE_MS = 100


class ActionExecutor:
    """
    Executes input actions on one input device.

    Calls are meant to be awaited one at a time; the executor holds no
    lock, so callers must not interleave actions from several tasks.
    Every coordinate-bearing action is validated before the device is
    touched.
    """

    def __init__(
        self,
        config: Optional[MouseConfig] = None,
        device: Optional[InputDevice] = None,
        dry_run: bool = False,
        sleep: Optional[Sleep] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize ActionExecutor.

        Args:
            config: Mouse and keyboard timing configuration
            device: Input device (default: pyautogui, or in-memory when dry_run)
            dry_run: If True and no device is given, only log actions
            sleep: Async sleep taking milliseconds
            rng: Random source for humanized actions
        """
        self.config = config or MouseConfig()
        self.dry_run = dry_run
        self._sleep = sleep or sleep_ms
        self._rng = rng or random.Random()

        # Must precede the first geometry read
        set_dpi_awareness()

        if device is None:
            device = DryRunDevice() if dry_run else PyAutoGUIDevice()
        self.device = device
        self._geometry = device.size()

        self._handlers: Dict[ActionType, Callable[[ActionRequest], Any]] = {
            ActionType.CLICK: lambda r: self.click(r.x, r.y, r.button, r.smooth),
            ActionType.DOUBLE_CLICK: lambda r: self.double_click(r.x, r.y, r.button, r.smooth),
            ActionType.RIGHT_CLICK: lambda r: self.right_click(r.x, r.y, r.smooth),
            ActionType.MOVE: lambda r: self.move_to(r.x, r.y, r.smooth),
            ActionType.DRAG: lambda r: self.drag(
                r.from_x, r.from_y, r.to_x, r.to_y, r.button, r.smooth
            ),
            ActionType.SCROLL: lambda r: self.scroll(r.direction, r.clicks, r.x, r.y),
            ActionType.KEY: lambda r: self.press_key(r.key, r.modifiers),
            ActionType.TYPE: lambda r: self.type_text(r.text, r.speed),
            ActionType.COMBO: lambda r: self.key_combo(r.keys),
        }

        logger.info(
            "ActionExecutor initialized",
            dry_run=dry_run,
            device=type(device).__name__,
            screen_size=self._geometry.to_tuple(),
            safety_margin=self.config.safety_margin,
        )

    # Read-only queries

    @property
    def screen_geometry(self) -> ScreenGeometry:
        return self._geometry

    def is_valid_coordinate(self, x: int, y: int) -> bool:
        """True if (x, y) lies inside the screen minus the safety margin."""
        return self._geometry.contains(x, y, self.config.safety_margin)

    def current_position(self) -> Tuple[int, int]:
        return self.device.position()

    def pixel_color(self, x: int, y: int) -> str:
        """
        Color at a validated screen coordinate as ``#rrggbb``.

        Raises:
            InvalidCoordinateError: If (x, y) is outside the safe area
        """
        self._validate(x, y)
        r, g, b = self.device.pixel(x, y)
        return f"#{r:02x}{g:02x}{b:02x}"

    # Helpers

    def _validate(self, x: Optional[int], y: Optional[int]) -> None:
        if x is None or y is None or not self.is_valid_coordinate(x, y):
            raise InvalidCoordinateError(x, y, self.config.safety_margin, self._geometry)

    async def _move(self, x: int, y: int, smooth: Optional[bool]) -> None:
        if smooth is None:
            smooth = self.config.move_smooth
        if smooth:
            await smooth_move(self.device, (x, y), self.config.mouse_speed, self._sleep)
        else:
            self.device.move(x, y)

    @staticmethod
    def _result(
        action_type: ActionType,
        start: float,
        params: Dict[str, Any],
        message: str = "",
    ) -> ActionResult:
        return ActionResult(
            success=True,
            action_type=action_type.value,
            params=params,
            message=message,
            duration_ms=int((time.time() - start) * 1000),
        )

    def _release_all(
        self,
        release: Callable[[str], None],
        held: Sequence[str],
        failed: bool,
    ) -> None:
        """
        Release held buttons/keys in reverse order.

        Every item gets a release attempt. Release errors are logged and
        dropped when the held phase already failed, so the original error
        propagates; otherwise the first one is raised.
        """
        first_error: Optional[Exception] = None
        for item in reversed(held):
            try:
                release(item)
            except Exception as e:
                logger.warning("Release failed", item=item, error=str(e), after_failure=failed)
                if first_error is None:
                    first_error = e
        if first_error is not None and not failed:
            raise first_error

    @asynccontextmanager
    async def _held_button(self, button: str) -> AsyncIterator[None]:
        self.device.button_down(button)
        failed = True
        try:
            yield
            failed = False
        finally:
            self._release_all(self.device.button_up, [button], failed)

    @asynccontextmanager
    async def _held_keys(self, keys: Sequence[str]) -> AsyncIterator[None]:
        pressed: List[str] = []
        failed = True
        try:
            for key in keys:
                self.device.key_down(key)
                pressed.append(key)
            yield
            failed = False
        finally:
            self._release_all(self.device.key_up, pressed, failed)

    # Primitive actions

    async def click(
        self,
        x: int,
        y: int,
        button: str = "left",
        smooth: Optional[bool] = None,
    ) -> ActionResult:
        """
        Click at coordinates.

        Args:
            x: X coordinate
            y: Y coordinate
            button: Mouse button ('left', 'right', or 'middle')
            smooth: Interpolate the approach (None = configured default)
        """
        self._validate(x, y)
        start = time.time()

        await self._move(x, y, smooth)
        await self._sleep(self.config.click_delay_ms)
        self.device.click(button)

        logger.info("Click executed", x=x, y=y, button=button)
        action = ActionType.RIGHT_CLICK if button == "right" else ActionType.CLICK
        return self._result(action, start, {"x": x, "y": y, "button": button})

    async def double_click(
        self,
        x: int,
        y: int,
        button: str = "left",
        smooth: Optional[bool] = None,
    ) -> ActionResult:
        self._validate(x, y)
        start = time.time()

        await self._move(x, y, smooth)
        await self._sleep(self.config.click_delay_ms)
        self.device.click(button)
        await self._sleep(self.config.double_click_delay_ms)
        self.device.click(button)

        logger.info("Double click executed", x=x, y=y, button=button)
        return self._result(ActionType.DOUBLE_CLICK, start, {"x": x, "y": y, "button": button})

    async def right_click(self, x: int, y: int, smooth: Optional[bool] = None) -> ActionResult:
        return await self.click(x, y, button="right", smooth=smooth)

    async def move_to(self, x: int, y: int, smooth: Optional[bool] = None) -> ActionResult:
        self._validate(x, y)
        start = time.time()

        await self._move(x, y, smooth)

        logger.debug("Pointer moved", x=x, y=y)
        return self._result(ActionType.MOVE, start, {"x": x, "y": y})

    async def drag(
        self,
        from_x: int,
        from_y: int,
        to_x: int,
        to_y: int,
        button: str = "left",
        smooth: Optional[bool] = None,
    ) -> ActionResult:
        """
        Press at the source, move to the destination and release.

        Both endpoints are validated before any input. The button is
        released on every exit path once pressed.
        """
        self._validate(from_x, from_y)
        self._validate(to_x, to_y)
        smooth = True if smooth is None else smooth
        start = time.time()

        await self._move(from_x, from_y, smooth)
        await self._sleep(self.config.click_delay_ms)

        async with self._held_button(button):
            await self._sleep(HOLD_MS)
            await self._move(to_x, to_y, smooth)
            await self._sleep(HOLD_MS)

        logger.info("Drag executed", start=(from_x, from_y), end=(to_x, to_y), button=button)
        return self._result(ActionType.DRAG, start, {
            "from_x": from_x,
            "from_y": from_y,
            "to_x": to_x,
            "to_y": to_y,
            "button": button,
        })

    async def scroll(
        self,
        direction: str = "down",
        clicks: Optional[int] = None,
        x: Optional[int] = None,
        y: Optional[int] = None,
    ) -> ActionResult:
        """
        Scroll the wheel, optionally moving to (x, y) first.

        Args:
            direction: 'up' or 'down'; anything else scrolls down
            clicks: Wheel notches (None = configured scroll speed)
            x: Optional X coordinate to scroll at
            y: Optional Y coordinate to scroll at
        """
        clicks = self.config.scroll_speed if clicks is None else clicks
        at = x is not None and y is not None
        if at:
            self._validate(x, y)
        start = time.time()

        if at:
            self.device.move(x, y)
            await self._sleep(SCROLL_SETTLE_MS)

        self.device.scroll(clicks if direction == "up" else -clicks)

        logger.debug("Scroll executed", direction=direction, clicks=clicks, at=(x, y) if at else None)
        return self._result(ActionType.SCROLL, start, {
            "direction": direction,
            "clicks": clicks,
            "x": x,
            "y": y,
        })

    async def press_key(self, key: str, modifiers: Sequence[str] = ()) -> ActionResult:
        """Tap ``key`` while holding ``modifiers`` (released in reverse order)."""
        start = time.time()

        async with self._held_keys(modifiers):
            await self._sleep(self.config.key_delay_ms)
            self.device.key_tap(key)
            await self._sleep(self.config.key_delay_ms)

        logger.debug("Key pressed", key="+".join([*modifiers, key]))
        return self._result(ActionType.KEY, start, {"key": key, "modifiers": list(modifiers)})

    async def type_text(self, text: str, speed: Optional[int] = None) -> ActionResult:
        """
        Type text one character at a time.

        Args:
            text: Text to type
            speed: Delay after each character in ms (None = configured)
        """
        delay = self.config.typing_delay_ms if speed is None else speed
        start = time.time()

        for char in text:
            self.device.write(char)
            await self._sleep(delay)

        logger.debug("Text typed", length=len(text), text=text)
        return self._result(ActionType.TYPE, start, {"text": text})

    async def key_combo(self, keys: Sequence[str]) -> ActionResult:
        """Hold all keys in order, then release in reverse order."""
        start = time.time()

        async with self._held_keys(keys):
            await self._sleep(self.config.key_delay_ms)

        logger.debug("Key combo pressed", keys="+".join(keys))
        return self._result(ActionType.COMBO, start, {"keys": list(keys)})

    # Composite actions

    async def perform_action(self, request: Union[ActionRequest, Dict[str, Any]]) -> ActionResult:
        """
        Dispatch one action request.

        Args:
            request: ActionRequest or an equivalent dict

        Returns:
            Successful ActionResult

        Raises:
            UnsupportedActionError: For an unknown action type
            InvalidCoordinateError: If a target is outside the safe area
            ActuationError: If the input device fails
        """
        if isinstance(request, dict):
            request = ActionRequest.from_dict(request)

        try:
            return await self._handlers[request.type](request)
        except PlayPilotError as e:
            logger.error("Action failed", action=request.type.value, error=str(e))
            raise

    async def perform_batch(
        self,
        requests: Sequence[Union[ActionRequest, Dict[str, Any]]],
    ) -> List[ActionResult]:
        """
        Run requests strictly in order, collecting one result each.

        Failures become failed results. A failing request with
        ``stop_on_error`` ends the batch; the partial list is returned.
        A request's ``delay`` (ms) is honored only after it succeeds.
        """
        results: List[ActionResult] = []

        for index, request in enumerate(requests):
            action_type, params, stop_on_error = _describe(request)
            try:
                if isinstance(request, dict):
                    request = ActionRequest.from_dict(request)
                result = await self.perform_action(request)
            except PlayPilotError as e:
                results.append(ActionResult(
                    success=False,
                    action_type=action_type,
                    params=params,
                    error=str(e),
                ))
                if stop_on_error:
                    logger.warning(
                        "Batch aborted",
                        index=index,
                        action=action_type,
                        skipped=len(requests) - index - 1,
                    )
                    break
                continue

            results.append(result)
            if request.delay:
                await self._sleep(request.delay)

        logger.info(
            "Batch complete",
            total=len(requests),
            executed=len(results),
            failed=sum(1 for r in results if not r.success),
        )
        return results

    async def smart_click(self, x: int, y: int, retries: Optional[int] = None) -> ActionResult:
        """
        Click with retry and linear backoff.

        Waits ``retry_backoff_ms * attempt`` after each failed attempt.
        The last failure is re-raised once all attempts are used.
        """
        policy = RetryPolicy(
            max_attempts=self.config.max_retries if retries is None else retries,
            backoff_ms=self.config.retry_backoff_ms,
        )
        return await retry_with_backoff(self.click, x, y, policy=policy, sleep=self._sleep)

    async def human_like_action(self, request: Union[ActionRequest, Dict[str, Any]]) -> ActionResult:
        """
        Perform an action with reaction latency and pointer imprecision.

        Sleeps a random delay in ``human_delay_ms`` and, when the request
        has x/y coordinates, offsets each by up to ``human_jitter_px``.
        """
        if isinstance(request, dict):
            request = ActionRequest.from_dict(request)

        low, high = self.config.human_delay_ms
        await self._sleep(low + self._rng.random() * (high - low))

        if request.coordinates is not None:
            jitter = self.config.human_jitter_px
            request = dataclasses.replace(
                request,
                x=round(request.x + (self._rng.random() - 0.5) * 2 * jitter),
                y=round(request.y + (self._rng.random() - 0.5) * 2 * jitter),
            )

        return await self.perform_action(request)


def _describe(request: Union[ActionRequest, Dict[str, Any]]) -> Tuple[str, Dict[str, Any], bool]:
    """Action type, params and stop flag, readable even from malformed dicts."""
    if isinstance(request, ActionRequest):
        return request.type.value, request.params(), request.stop_on_error
    stop = request.get("stopOnError", request.get("stop_on_error", False))
    return str(request.get("type")), {}, bool(stop)
