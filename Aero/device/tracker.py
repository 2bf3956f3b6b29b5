import asyncio
import enum
import logging
from datetime import datetime, timezone

from .errors import ApiError
from .expiry import CHECK_INTERVAL, ExpiryMonitor, StopReason, utcnow
from .sharing import parse_timestamp

logger = logging.getLogger("aero.device.tracker")

UNAVAILABLE_MESSAGES = {
    "not_found": "Tracking link not found or expired",
    "ended": "Location sharing has ended",
    "expired": "Location sharing has expired",
}
RECONNECT_DELAY = 1.0


class TrackerState(enum.Enum):
    LOADING = "loading"
    LIVE = "live"
    STATIC = "static"
    UNAVAILABLE = "unavailable"


def format_time_ago(when: datetime, now: datetime = None) -> str:
    seconds = int(((now or utcnow()) - when).total_seconds())
    if seconds < 10:
        return "Just now"
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    return f"{minutes // 60}h ago"


class TrackerView:
    """
    Public viewer of one share token.

    LOADING until the snapshot answers, then LIVE while the event stream
    is up. If the stream cannot be opened the view stays on the last
    known position as STATIC. UNAVAILABLE(reason) is terminal.
    """

    def __init__(self, api, token, check_interval=CHECK_INTERVAL,
                 reconnect_delay=RECONNECT_DELAY, clock=utcnow):
        self.api = api
        self.token = token
        self.check_interval = check_interval
        self.reconnect_delay = reconnect_delay
        self.clock = clock
        self.state = TrackerState.LOADING
        self.reason = None
        self.location = None
        self.last_update = None
        self.monitor = None
        self._listener = None

    @property
    def message(self):
        return UNAVAILABLE_MESSAGES.get(self.reason)

    async def open(self):
        try:
            snapshot = await self.api.resolve_track(self.token)
        except ApiError as exc:
            logger.error("Error fetching location: %s", exc)
            self._unavailable("not_found")
            return self.state

        if not snapshot.get("ok"):
            self._unavailable(snapshot.get("reason") or "not_found")
            return self.state

        self._apply(snapshot["location"])
        if self.state is TrackerState.UNAVAILABLE:
            return self.state

        self.monitor = ExpiryMonitor(
            parse_timestamp(self.location.get("expires_at")), self._on_inactive,
            check_interval=self.check_interval, clock=self.clock,
        )
        if self.monitor.check():
            return self.state
        self.state = TrackerState.LIVE
        self.monitor.start()
        self._listener = asyncio.create_task(self._listen())
        return self.state

    def _apply(self, location):
        if not location.get("is_active", True):
            self._unavailable("ended")
            return
        self.location = location
        if location.get("t"):
            self.last_update = datetime.fromtimestamp(location["t"] / 1000, tz=timezone.utc)

    async def _listen(self):
        while self.state is TrackerState.LIVE:
            try:
                async for event, data in self.api.subscribe(self.token):
                    if event == "position":
                        self._apply(data)
                    elif event == "ended":
                        self._end(data.get("reason") or "ended")
                    if self.state is not TrackerState.LIVE:
                        return
            except ApiError as exc:
                if exc.code in UNAVAILABLE_MESSAGES:
                    self._end(exc.code)
                else:
                    logger.warning("Live updates unavailable, showing last known position: %s", exc)
                    self.state = TrackerState.STATIC
                return
            # server closed a healthy stream; reconnect
            await asyncio.sleep(self.reconnect_delay)

    def _end(self, reason):
        if self.monitor is not None and self.monitor.active:
            self.monitor.end(StopReason.EXPIRED if reason == "expired" else StopReason.ENDED)
        else:
            self._unavailable(reason)

    def _on_inactive(self, reason):
        self._unavailable("expired" if reason is StopReason.EXPIRED else "ended")

    def _unavailable(self, reason):
        if reason not in UNAVAILABLE_MESSAGES:
            reason = "not_found"
        self.state = TrackerState.UNAVAILABLE
        self.reason = reason
        self.location = None
        listener, self._listener = self._listener, None
        if listener is not None and listener is not asyncio.current_task():
            listener.cancel()
        if self.monitor is not None:
            self.monitor.cancel()

    def time_ago(self, now=None):
        if self.last_update is None:
            return None
        return format_time_ago(self.last_update, now or self.clock())

    async def close(self):
        listener, self._listener = self._listener, None
        if self.monitor is not None:
            self.monitor.cancel()
        if listener is not None:
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)
