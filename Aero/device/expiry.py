import asyncio
import enum
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("aero.device.expiry")

CHECK_INTERVAL = 1.0


class MonitorState(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class StopReason(enum.Enum):
    STOPPED = "stopped"
    EXPIRED = "expired"
    ENDED = "ended"


def utcnow():
    return datetime.now(timezone.utc)


class ExpiryMonitor:
    """
    ACTIVE -> INACTIVE once, for one of three reasons: the user stopped
    (STOPPED), a periodic check saw now > expires_at (EXPIRED), or the
    other side reported the session inactive (ENDED). There is no way back.
    `on_inactive(reason)` is called exactly once.
    """

    def __init__(self, expires_at: Optional[datetime], on_inactive=None,
                 check_interval=CHECK_INTERVAL, clock=utcnow):
        self.expires_at = expires_at
        self.on_inactive = on_inactive
        self.check_interval = check_interval
        self.clock = clock
        self.state = MonitorState.ACTIVE
        self.reason = None
        self._task = None

    @property
    def active(self) -> bool:
        return self.state is MonitorState.ACTIVE

    def start(self):
        # nothing to poll for an open-ended session
        if self.expires_at is None or self._task is not None or not self.active:
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self):
        while self.active:
            await asyncio.sleep(self.check_interval)
            self.check()

    def check(self, now=None) -> bool:
        """True when this check is what expired the session."""
        if not self.active or self.expires_at is None:
            return False
        if (now or self.clock()) > self.expires_at:
            self._deactivate(StopReason.EXPIRED)
            return True
        return False

    def stop(self):
        self._deactivate(StopReason.STOPPED)

    def end(self, reason=StopReason.ENDED):
        self._deactivate(reason)

    def cancel(self):
        """Drop the periodic check without a transition (unmount, logout)."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()

    def _deactivate(self, reason):
        if not self.active:
            return
        self.state = MonitorState.INACTIVE
        self.reason = reason
        self.cancel()
        logger.info("Session inactive: %s", reason.value)
        if self.on_inactive is not None:
            self.on_inactive(reason)
