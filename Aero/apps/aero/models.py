import uuid

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.db import models

PHONE_REGEX = r"^[\d\s+\-()]+$"

phone_validator = RegexValidator(regex=PHONE_REGEX, message="Invalid phone number.")


class Contact(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="contacts")
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, validators=[phone_validator])
    email = models.EmailField(max_length=255, blank=True)

    is_emergency = models.BooleanField(default=False)
    is_verified = models.BooleanField(
        default=False,
        help_text="Only set through the contact's verification link.",
    )

    # last known location
    last_lat = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)],
    )
    last_lng = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)],
    )
    last_located_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "contacts"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="contacts_user_created_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({'verified' if self.is_verified else 'pending'})"

    @property
    def last_known_location(self):
        if self.last_lat is None or self.last_lng is None:
            return None
        t = int(self.last_located_at.timestamp() * 1000) if self.last_located_at else None
        return {"lat": self.last_lat, "lng": self.last_lng, "timestamp": t}

    @property
    def reachable(self) -> bool:
        return bool(self.email or self.phone)
