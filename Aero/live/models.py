import uuid

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .tokens import generate_share_token

TRIGGER_CHOICES = (
    ("manual", "Manual"),
    ("sos", "SOS"),
    ("voice", "Voice"),
)

END_REASON_CHOICES = (
    ("ended", "Stopped"),
    ("expired", "Expired"),
)


def _ms(dt):
    return int(dt.timestamp() * 1000) if dt else None


class LiveLocation(models.Model):
    """One location sharing session. expires_at NULL means until stopped."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="live_locations")

    latitude = models.FloatField(validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)])
    longitude = models.FloatField(validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)])
    accuracy = models.FloatField(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    triggered_by = models.CharField(max_length=10, choices=TRIGGER_CHOICES, default="manual")
    expires_at = models.DateTimeField(null=True, blank=True)
    # why the session went inactive; empty while active
    end_reason = models.CharField(max_length=10, choices=END_REASON_CHOICES, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "live_locations"
        ordering = ["-created_at"]
        constraints = [
            # one active session per user; a new share takes over the old one
            models.UniqueConstraint(
                fields=["user"],
                condition=Q(is_active=True),
                name="uniq_active_live_location_per_user",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "is_active", "created_at"], name="live_user_active_idx"),
            models.Index(fields=["is_active", "expires_at"], name="live_active_expires_idx"),
        ]

    def __str__(self):
        return f"{self.user} [{self.triggered_by}] ({'on' if self.is_active else 'off'})"

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return (now or timezone.now()) > self.expires_at

    def as_dict(self):
        return {
            "id": str(self.id),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "is_active": self.is_active,
            "triggered_by": self.triggered_by,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def public_dict(self):
        """What a tracker may see: no ids, no owner."""
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "accuracy": self.accuracy,
            "is_active": self.is_active,
            "triggered_by": self.triggered_by,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "t": _ms(self.updated_at),
        }


class LocationShare(models.Model):
    """Grant of one session to one recipient. share_token is a bearer credential."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    live_location = models.ForeignKey(LiveLocation, on_delete=models.CASCADE, related_name="shares")
    sharer_user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="location_shares")
    recipient_contact = models.ForeignKey("aero.Contact", on_delete=models.CASCADE, related_name="location_shares")
    share_token = models.CharField(
        max_length=64, unique=True, db_index=True,
        default=generate_share_token, editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "location_shares"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["live_location", "recipient_contact"], name="uniq_share_session_recipient"),
        ]

    def __str__(self):
        return f"{self.live_location_id} -> {self.recipient_contact_id}"
