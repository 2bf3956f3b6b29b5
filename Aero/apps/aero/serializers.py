from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import Contact

User = get_user_model()


class ContactSerializer(serializers.ModelSerializer):
    last_known_location = serializers.SerializerMethodField()

    class Meta:
        model = Contact
        fields = [
            "id", "name", "phone", "email",
            "is_emergency", "is_verified",
            "last_lat", "last_lng", "last_located_at", "last_known_location",
            "created_at",
        ]
        read_only_fields = ["id", "is_verified", "created_at"]
        extra_kwargs = {
            "last_lat": {"write_only": True},
            "last_lng": {"write_only": True},
            "last_located_at": {"write_only": True},
        }

    def get_last_known_location(self, obj):
        return obj.last_known_location

    def validate_name(self, value):
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Name is required.")
        return value

    def validate(self, attrs):
        # lat/lng travel together
        lat = attrs.get("last_lat", getattr(self.instance, "last_lat", None))
        lng = attrs.get("last_lng", getattr(self.instance, "last_lng", None))
        if (lat is None) != (lng is None):
            raise serializers.ValidationError({"last_lat": "Latitude and longitude must be set together."})
        return attrs


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(write_only=True, min_length=6)
    full_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        full_name = (validated_data.get("full_name") or "").strip()
        first, _, last = full_name.partition(" ")
        return User.objects.create_user(
            username=validated_data["email"],
            email=validated_data["email"],
            password=validated_data["password"],
            first_name=first[:150],
            last_name=last[:150],
        )


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetConfirmSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    password = serializers.CharField(write_only=True, min_length=6)
    confirm_password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs["password"] != attrs["confirm_password"]:
            raise serializers.ValidationError({"confirm_password": "Passwords do not match."})
        return attrs
