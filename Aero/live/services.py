"""
Session lifecycle for live location sharing.

Expiry is soft: a session whose expires_at has passed is only flipped to
inactive when something observes it (a position write, the owner's resume
check, a tracker resolving a token, or the `expire_sessions` sweep).
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.aero.models import Contact
from .errors import (
    NoContactsSelected, UnknownContacts, InvalidDuration, SharingStartFailed,
    SessionNotFound, SessionEnded, SessionExpired, TrackingUnavailable,
)
from .models import LiveLocation, LocationShare, TRIGGER_CHOICES
from .tokens import looks_like_token

logger = logging.getLogger("aero.live")

TRIGGER_SOURCES = {value for value, _ in TRIGGER_CHOICES}


@dataclass
class StartedSession:
    session: LiveLocation
    contact_ids: list = field(default_factory=list)
    share_tokens: list = field(default_factory=list)
    superseded: int = 0

    def as_dict(self):
        return {
            "session_id": str(self.session.id),
            "contact_ids": [str(c) for c in self.contact_ids],
            "share_tokens": list(self.share_tokens),
            "triggered_by": self.session.triggered_by,
            "expires_at": self.session.expires_at.isoformat() if self.session.expires_at else None,
        }


def _uuid_str(value):
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


def compute_expires_at(duration_minutes, now=None) -> Optional[datetime]:
    if duration_minutes is None:
        return None
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidDuration()
    if duration_minutes <= 0 or duration_minutes > settings.MAX_SHARE_MINUTES:
        raise InvalidDuration(f"Duration must be between 1 and {settings.MAX_SHARE_MINUTES} minutes.")
    return (now or timezone.now()) + timedelta(minutes=duration_minutes)


def start_session(user, contact_ids, latitude, longitude, accuracy=None,
                  triggered_by="manual", duration_minutes=None, now=None) -> StartedSession:
    """
    Create a session and one share (one token) per recipient.
    Any earlier active session of the user is taken over (deactivated).
    Everything happens in one transaction: on failure nothing is left behind.
    """
    if not contact_ids:
        raise NoContactsSelected()
    # keep order, drop duplicates
    ids = list(dict.fromkeys(_uuid_str(c) for c in contact_ids))
    if None in ids:
        raise UnknownContacts()
    if triggered_by not in TRIGGER_SOURCES:
        raise ValueError(f"unknown trigger source {triggered_by!r}")

    now = now or timezone.now()
    expires_at = compute_expires_at(duration_minutes, now=now)

    contacts = {str(c.pk): c for c in Contact.objects.filter(user=user, pk__in=ids)}
    if len(contacts) != len(ids):
        raise UnknownContacts()

    try:
        with transaction.atomic():
            superseded = (LiveLocation.objects
                          .filter(user=user, is_active=True)
                          .update(is_active=False, end_reason="ended", updated_at=now))

            session = LiveLocation.objects.create(
                user=user,
                latitude=latitude,
                longitude=longitude,
                accuracy=accuracy,
                triggered_by=triggered_by,
                expires_at=expires_at,
                is_active=True,
            )
            shares = LocationShare.objects.bulk_create([
                LocationShare(live_location=session, sharer_user=user, recipient_contact=contacts[cid])
                for cid in ids
            ])
    except DatabaseError as exc:
        logger.exception("Could not start sharing for user %s", user.pk)
        raise SharingStartFailed() from exc

    if superseded:
        logger.info("User %s took over %s active session(s)", user.pk, superseded)
    logger.info("Session %s started by user %s (%s) with %s contact(s), expires %s",
                session.pk, user.pk, triggered_by, len(shares), expires_at or "never")

    return StartedSession(
        session=session,
        contact_ids=[s.recipient_contact_id for s in shares],
        share_tokens=[s.share_token for s in shares],
        superseded=superseded,
    )


def _deactivate(session, reason):
    if session.is_active:
        session.is_active = False
        session.end_reason = reason
        session.save(update_fields=["is_active", "end_reason", "updated_at"])
        logger.info("Session %s deactivated (%s)", session.pk, reason)


def record_position(user, session_id, latitude, longitude, accuracy=None, now=None) -> LiveLocation:
    """Write the latest fix. Ended or overdue sessions refuse writes."""
    now = now or timezone.now()
    session_id = _uuid_str(session_id)
    if session_id is None:
        raise SessionNotFound()
    with transaction.atomic():
        try:
            session = (LiveLocation.objects
                       .select_for_update()
                       .get(pk=session_id, user=user))
        except LiveLocation.DoesNotExist:
            raise SessionNotFound()

        if not session.is_active:
            raise SessionEnded()
        # the deactivation must commit, so raise only after the block
        expired = session.is_expired(now)
        if expired:
            _deactivate(session, "expired")
        else:
            session.latitude = latitude
            session.longitude = longitude
            session.accuracy = accuracy
            session.save(update_fields=["latitude", "longitude", "accuracy", "updated_at"])
    if expired:
        raise SessionExpired()
    return session


def stop_session(user, session_id) -> LiveLocation:
    """Explicit stop. Idempotent; every token of the session stops working."""
    try:
        session = LiveLocation.objects.get(pk=_uuid_str(session_id), user=user)
    except LiveLocation.DoesNotExist:
        raise SessionNotFound()
    _deactivate(session, "ended")
    return session


def active_session(user, now=None) -> Optional[LiveLocation]:
    """Most recent active session of the user, or None. Overdue ones are closed here."""
    session = (LiveLocation.objects
               .filter(user=user, is_active=True)
               .order_by("-created_at")
               .first())
    if session is None:
        return None
    if session.is_expired(now):
        _deactivate(session, "expired")
        return None
    return session


def session_shares(session):
    return list(session.shares.order_by("created_at", "id").values_list("recipient_contact_id", "share_token"))


def tracking_outcome(session, now=None) -> str:
    if not session.is_active:
        return "expired" if session.end_reason == "expired" else "ended"
    if session.is_expired(now):
        return "expired"
    return "active"


def resolve_share_token(token, now=None) -> LiveLocation:
    """
    Token -> live session, or TrackingUnavailable(not_found|ended|expired).
    Never says more than that about why.
    """
    if not looks_like_token(token):
        raise TrackingUnavailable("not_found")
    share = (LocationShare.objects
             .select_related("live_location")
             .filter(share_token=token)
             .first())
    if share is None:
        raise TrackingUnavailable("not_found")

    session = share.live_location
    outcome = tracking_outcome(session, now)
    if outcome == "expired":
        _deactivate(session, "expired")
    if outcome != "active":
        raise TrackingUnavailable(outcome)
    return session


def authorized_tokens(user, tokens) -> list:
    """Subset of `tokens` issued by `user`, in request order, without duplicates."""
    wanted = list(dict.fromkeys(t for t in tokens if isinstance(t, str) and t))
    if not wanted:
        return []
    owned = set(LocationShare.objects
                .filter(share_token__in=wanted, sharer_user=user)
                .values_list("share_token", flat=True))
    return [t for t in wanted if t in owned]


def expire_overdue(now=None, dry_run=False) -> int:
    """Sweep: close every active session whose expiry has passed."""
    now = now or timezone.now()
    qs = LiveLocation.objects.filter(is_active=True, expires_at__isnull=False, expires_at__lt=now)
    if dry_run:
        return qs.count()
    return qs.update(is_active=False, end_reason="expired", updated_at=now)
