import asyncio
import enum
import inspect
import logging
import time

from .errors import ApiError, DeviceError

logger = logging.getLogger("aero.device.sos")

HOLD_DURATION = 1.5
HOLD_TICK = 0.016
ALERT_COUNTDOWN = 10


class HoldToConfirm:
    """
    Press-and-hold gesture. `on_confirm` fires once the press has lasted
    `duration` seconds; releasing earlier resets progress with no side effect.
    """

    def __init__(self, on_confirm, duration=HOLD_DURATION, tick=HOLD_TICK, clock=time.monotonic):
        self.on_confirm = on_confirm
        self.duration = duration
        self.tick = tick
        self.clock = clock
        self.progress = 0.0
        self.fired = 0
        self._task = None

    @property
    def pressing(self) -> bool:
        return self._task is not None

    def press(self):
        if self._task is not None:
            return
        self.progress = 0.0
        self._task = asyncio.create_task(self._hold())

    def release(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
        self.progress = 0.0

    async def _hold(self):
        started = self.clock()
        while True:
            elapsed = self.clock() - started
            self.progress = min(100.0, elapsed / self.duration * 100)
            if elapsed >= self.duration:
                break
            await asyncio.sleep(self.tick)

        # confirmed; releasing from here on no longer cancels anything
        self._task = None
        self.progress = 0.0
        self.fired += 1
        result = self.on_confirm()
        if inspect.isawaitable(result):
            await result


class AlertState(enum.Enum):
    COUNTDOWN = "countdown"
    ALERTED = "alerted"
    CANCELLED = "cancelled"
    DISMISSED = "dismissed"


class SOSAlert:
    """Full-screen alert counting down to "authorities alerted"; "I'm safe" cancels before that."""

    def __init__(self, on_cancel=None, countdown=ALERT_COUNTDOWN, tick=1.0):
        self.on_cancel = on_cancel
        self.remaining = countdown
        self.tick = tick
        self.state = AlertState.COUNTDOWN
        self._task = None

    def show(self):
        if self._task is None and self.state is AlertState.COUNTDOWN:
            self._task = asyncio.create_task(self._countdown())

    async def _countdown(self):
        while self.remaining > 0:
            await asyncio.sleep(self.tick)
            self.remaining -= 1
        self.state = AlertState.ALERTED
        self._task = None
        logger.warning("SOS countdown elapsed, alert is final")

    async def im_safe(self) -> bool:
        if self.state is not AlertState.COUNTDOWN:
            return False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.state = AlertState.CANCELLED
        logger.info("SOS cancelled by the user")
        if self.on_cancel is not None:
            result = self.on_cancel()
            if inspect.isawaitable(result):
                await result
        return True

    def dismiss(self):
        if self.state is AlertState.ALERTED:
            self.state = AlertState.DISMISSED


class SOSTrigger:
    """
    Hold the button, then: show the alert and start an SOS share with every
    contact that is both an emergency contact and verified. "I'm safe"
    stops that share, or abandons it if it is still starting.
    """

    def __init__(self, controller, hold_duration=HOLD_DURATION, countdown=ALERT_COUNTDOWN,
                 tick=HOLD_TICK, countdown_tick=1.0):
        self.controller = controller
        self.countdown = countdown
        self.countdown_tick = countdown_tick
        self.hold = HoldToConfirm(self.fire, duration=hold_duration, tick=tick)
        self.alert = None
        self.error = None
        self._starting = None

    def press(self):
        self.hold.press()

    def release(self):
        self.hold.release()

    async def fire(self):
        self.alert = SOSAlert(on_cancel=self._on_safe,
                              countdown=self.countdown, tick=self.countdown_tick)
        self.alert.show()
        self.error = None
        task = self._starting = asyncio.ensure_future(self._share())
        try:
            await asyncio.wait([task])
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            logger.info("SOS share abandoned before it started")
            return
        task.result()

    async def _share(self):
        try:
            contacts = await self.controller.api.list_contacts()
            recipients = [c for c in contacts if c.get("is_emergency") and c.get("is_verified")]
            await self.controller.start_sharing(
                [c["id"] for c in recipients], triggered_by="sos", contacts=recipients,
            )
        except DeviceError as exc:
            # the alert stays up; the user still sees the countdown
            logger.error("SOS sharing failed: %s", exc)
            self.error = exc

    async def _on_safe(self):
        task, self._starting = self._starting, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
            if self.controller.state.session_id is None:
                # the backend may have created the session before the cancel landed
                await self._stop_unclaimed()
                return
        await self.controller.stop_sharing()

    async def _stop_unclaimed(self):
        api = self.controller.api
        try:
            session = await api.active_session()
            if session is not None and session.get("triggered_by") == "sos":
                await api.stop_session(session["id"])
        except ApiError as exc:
            logger.error("Could not stop the abandoned SOS session: %s", exc)
