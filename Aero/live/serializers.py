from django.conf import settings
from rest_framework import serializers

from .models import TRIGGER_CHOICES
from .notifications import valid_email, valid_phone, sanitize_text


class StartSessionSerializer(serializers.Serializer):
    contact_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    triggered_by = serializers.ChoiceField(choices=TRIGGER_CHOICES, default="manual")
    duration_minutes = serializers.IntegerField(min_value=1, allow_null=True, required=False, default=None)
    latitude = serializers.FloatField(min_value=-90.0, max_value=90.0)
    longitude = serializers.FloatField(min_value=-180.0, max_value=180.0)
    accuracy = serializers.FloatField(min_value=0.0, allow_null=True, required=False, default=None)

    def validate_duration_minutes(self, value):
        if value is not None and value > settings.MAX_SHARE_MINUTES:
            raise serializers.ValidationError(f"Duration must be at most {settings.MAX_SHARE_MINUTES} minutes.")
        return value


class PositionSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90.0, max_value=90.0)
    longitude = serializers.FloatField(min_value=-180.0, max_value=180.0)
    accuracy = serializers.FloatField(min_value=0.0, allow_null=True, required=False, default=None)


# ---------------------------------------------------------------
# send-sos-notification payload
# ---------------------------------------------------------------

class NotifyContactSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    name = serializers.CharField(trim_whitespace=True, error_messages={
        "required": "Invalid contact name",
        "blank": "Invalid contact name",
        "invalid": "Invalid contact name",
        "null": "Invalid contact name",
    })
    email = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=True)
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=True)

    def validate(self, attrs):
        label = sanitize_text(attrs["name"])
        email = attrs.get("email") or ""
        phone = attrs.get("phone") or ""
        if email and not valid_email(email):
            raise serializers.ValidationError(f"Invalid email for contact: {label}")
        if phone and not valid_phone(phone):
            raise serializers.ValidationError(f"Invalid phone for contact: {label}")
        attrs["email"] = email or None
        attrs["phone"] = phone or None
        return attrs


class SOSNotificationSerializer(serializers.Serializer):
    contacts = NotifyContactSerializer(many=True, allow_empty=False, error_messages={
        "required": "No contacts provided",
        "empty": "No contacts provided",
        "not_a_list": "No contacts provided",
    })
    shareTokens = serializers.ListField(
        child=serializers.CharField(max_length=128), allow_empty=False,
        error_messages={
            "required": "No share tokens provided",
            "empty": "No share tokens provided",
            "not_a_list": "No share tokens provided",
        },
    )
    sharerName = serializers.CharField(max_length=255, error_messages={
        "required": "Invalid sharer name",
        "blank": "Invalid sharer name",
        "invalid": "Invalid sharer name",
        "null": "Invalid sharer name",
    })
    triggeredBy = serializers.ChoiceField(choices=TRIGGER_CHOICES, error_messages={
        "required": "Invalid trigger type",
        "invalid_choice": "Invalid trigger type",
    })


def first_error(errors) -> str:
    """Flatten DRF's nested error structure down to its first message."""
    if isinstance(errors, dict):
        for key in ("non_field_errors",):
            if key in errors:
                return first_error(errors[key])
        for value in errors.values():
            msg = first_error(value)
            if msg:
                return msg
        return ""
    if isinstance(errors, (list, tuple)):
        for value in errors:
            msg = first_error(value)
            if msg:
                return msg
        return ""
    return str(errors)
