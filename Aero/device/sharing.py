"""
Sharer-side session flow.

The controller owns one sharing episode at a time: it asks the backend for
a session and its per-contact tokens, keeps the session fed through a
LocationUpdater, watches expiry through an ExpiryMonitor and asks the
backend to notify the contacts. Notification failures never undo a
started session; they only produce a warning.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .errors import ApiError, LocationUnavailable, NoContactsSelected, NotAuthenticated, SharingStartFailed
from .expiry import CHECK_INTERVAL, ExpiryMonitor, StopReason, utcnow
from .geolocation import LOCATE_TIMEOUT, locate
from .updater import FLUSH_INTERVAL, LocationUpdater

logger = logging.getLogger("aero.device.sharing")

TRIGGER_LABELS = {"sos": "SOS Alert", "voice": "Voice Command", "manual": "Live Location"}

# vibration patterns, in ms
HAPTIC_TAP = 50
HAPTIC_EXPIRED = 200


class Phase(enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    CONFIRMING = "confirming"
    SHARING = "sharing"


@dataclass
class SharingState:
    phase: Phase = Phase.IDLE
    selected: list = field(default_factory=list)
    duration_minutes: Optional[int] = None
    session_id: Optional[str] = None
    contact_ids: list = field(default_factory=list)
    share_tokens: list = field(default_factory=list)
    triggered_by: Optional[str] = None
    expires_at: Optional[datetime] = None
    notifications_failed: bool = False

    @property
    def is_active(self):
        return self.phase is Phase.SHARING


class Feedback:
    """Toasts and haptics. The default only logs; a UI overrides these."""

    def toast(self, level, message):
        logger.log(getattr(logging, level.upper(), logging.INFO), "[toast] %s", message)

    def haptic(self, pattern):
        logger.debug("[haptic] %s", pattern)


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class SharingController:

    def __init__(self, api, geolocator, sharer_name="Someone", feedback=None,
                 locate_timeout=LOCATE_TIMEOUT, flush_interval=FLUSH_INTERVAL,
                 check_interval=CHECK_INTERVAL, clock=utcnow):
        self.api = api
        self.geolocator = geolocator
        self.sharer_name = sharer_name
        self.feedback = feedback or Feedback()
        self.locate_timeout = locate_timeout
        self.flush_interval = flush_interval
        self.check_interval = check_interval
        self.clock = clock
        self.state = SharingState()
        self.updater = None
        self.monitor = None
        self._pending = set()

    # ---------------------------------------------------------------
    # share form: idle -> selecting -> confirming -> sharing
    # ---------------------------------------------------------------

    def open_picker(self):
        if self.state.phase is Phase.IDLE:
            self.state.phase = Phase.SELECTING
            self.state.selected = []

    def toggle_contact(self, contact_id):
        if self.state.phase is not Phase.SELECTING:
            return
        if contact_id in self.state.selected:
            self.state.selected.remove(contact_id)
        else:
            self.state.selected.append(contact_id)

    def confirm(self, duration_minutes=None):
        if self.state.phase is not Phase.SELECTING:
            return
        if not self.state.selected:
            self.feedback.toast("error", NoContactsSelected.message)
            return
        self.state.duration_minutes = duration_minutes
        self.state.phase = Phase.CONFIRMING

    def back(self):
        if self.state.phase is Phase.CONFIRMING:
            self.state.phase = Phase.SELECTING
        elif self.state.phase is Phase.SELECTING:
            self.state.phase = Phase.IDLE
            self.state.selected = []

    async def share_selected(self, contacts=None):
        if self.state.phase is not Phase.CONFIRMING:
            raise NoContactsSelected()
        return await self.start_sharing(
            list(self.state.selected), "manual", self.state.duration_minutes, contacts,
        )

    # ---------------------------------------------------------------
    # session lifecycle
    # ---------------------------------------------------------------

    async def start_sharing(self, contact_ids, triggered_by="manual", duration_minutes=None, contacts=None):
        """
        Start a session shared with `contact_ids`. `contacts` (dicts with name,
        email, phone) are notified afterwards. Raises NotAuthenticated,
        NoContactsSelected, LocationUnavailable or SharingStartFailed.
        """
        if not self.api.authenticated:
            self.feedback.toast("error", NotAuthenticated.message)
            raise NotAuthenticated()
        if not contact_ids:
            self.feedback.toast("error", NoContactsSelected.message)
            raise NoContactsSelected()

        try:
            position = await locate(self.geolocator, self.locate_timeout)
            created = await self.api.create_session(
                contact_ids, position.latitude, position.longitude, position.accuracy,
                triggered_by=triggered_by, duration_minutes=duration_minutes,
            )
        except ApiError as exc:
            logger.error("Error starting location sharing: %s", exc)
            self.feedback.toast("error", SharingStartFailed.message)
            raise SharingStartFailed(str(exc)) from exc
        except LocationUnavailable as exc:
            logger.error("Error starting location sharing: %s", exc)
            self.feedback.toast("error", str(exc))
            raise

        # a new share supersedes whatever was running here
        self._teardown()
        self.state = SharingState(
            phase=Phase.SHARING,
            session_id=created["session_id"],
            contact_ids=list(created.get("contact_ids", [])),
            share_tokens=list(created.get("share_tokens", [])),
            triggered_by=triggered_by,
            expires_at=parse_timestamp(created.get("expires_at")),
        )
        self._start_tracking()

        if contacts and self.state.share_tokens:
            await self._notify(contacts, triggered_by)

        self.feedback.toast(
            "success",
            f"{TRIGGER_LABELS.get(triggered_by, 'Live Location')} sharing started with {len(contact_ids)} contact(s)",
        )
        self.feedback.haptic(HAPTIC_TAP)
        return self.state

    async def _notify(self, contacts, triggered_by):
        payload = [{"name": c.get("name"), "email": c.get("email") or None, "phone": c.get("phone") or None}
                   for c in contacts if c.get("email") or c.get("phone")]
        if not payload:
            return
        try:
            await self.api.send_notifications(payload, self.state.share_tokens, self.sharer_name, triggered_by)
        except ApiError as exc:
            logger.error("Failed to send notifications: %s", exc)
            self.state.notifications_failed = True
            self.feedback.toast("warning", "Location shared but notifications may not have been sent")
            return
        kind = "SOS alerts" if triggered_by == "sos" else "notifications"
        self.feedback.toast("success", f"{kind} sent to {len(payload)} contact(s)")

    def _start_tracking(self):
        self.updater = LocationUpdater(
            self.api, self.geolocator, self.state.session_id,
            flush_interval=self.flush_interval, on_closed=self._on_server_closed,
        )
        self.monitor = ExpiryMonitor(
            self.state.expires_at, self._on_inactive,
            check_interval=self.check_interval, clock=self.clock,
        )
        self.updater.start()
        self.monitor.start()

    def _teardown(self):
        if self.updater is not None:
            self.updater.stop()
        if self.monitor is not None:
            self.monitor.cancel()
        self.updater = self.monitor = None

    def _on_server_closed(self, reason):
        if self.monitor is not None:
            self.monitor.end(StopReason.EXPIRED if reason == "expired" else StopReason.ENDED)

    def _on_inactive(self, reason):
        if reason is StopReason.STOPPED:
            return
        session_id = self.state.session_id
        self._teardown()
        self.state = SharingState()
        if reason is StopReason.EXPIRED:
            self.feedback.toast("info", "Location sharing expired")
            self.feedback.haptic(HAPTIC_EXPIRED)
            self._spawn(self._close_remote(session_id))
        else:
            self.feedback.toast("info", "Location sharing has ended")

    async def _close_remote(self, session_id):
        try:
            await self.api.stop_session(session_id)
        except ApiError as exc:
            logger.warning("Could not close expired session %s: %s", session_id, exc)

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def stop_sharing(self) -> bool:
        """Stop the current session. Local updates are cancelled before the backend is told."""
        session_id = self.state.session_id
        if session_id is None:
            return False
        if self.monitor is not None:
            self.monitor.stop()
        self._teardown()
        self.state = SharingState()
        try:
            await self.api.stop_session(session_id)
        except ApiError as exc:
            logger.error("Error stopping location sharing: %s", exc)
            self.feedback.toast("error", "Failed to stop sharing")
            return False
        self.feedback.toast("info", "Location sharing stopped")
        self.feedback.haptic(HAPTIC_TAP)
        return True

    async def resume(self):
        """Pick up the most recent active session, e.g. on app start."""
        if not self.api.authenticated or self.state.is_active:
            return self.state
        session = await self.api.active_session()
        if session is None:
            return self.state

        expires_at = parse_timestamp(session.get("expires_at"))
        if expires_at is not None and expires_at < self.clock():
            await self._close_remote(session["id"])
            return self.state

        self.state = SharingState(
            phase=Phase.SHARING,
            session_id=session["id"],
            contact_ids=list(session.get("contact_ids", [])),
            share_tokens=list(session.get("share_tokens", [])),
            triggered_by=session.get("triggered_by"),
            expires_at=expires_at,
        )
        self._start_tracking()
        logger.info("Resumed session %s", self.state.session_id)
        return self.state

    async def close(self):
        """Cancel everything without touching the session (logout, shutdown)."""
        updater, monitor = self.updater, self.monitor
        self.updater = self.monitor = None
        if monitor is not None:
            monitor.cancel()
        if updater is not None:
            await updater.aclose()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
