import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core import signing
from django.core.exceptions import ImproperlyConfigured
from django.template.loader import render_to_string
from django.urls import reverse
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_encode, urlsafe_base64_decode
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from live import channels
from live.errors import ChannelDeliveryFailed
from .models import Contact
from .serializers import (
    ContactSerializer, RegisterSerializer,
    PasswordResetRequestSerializer, PasswordResetConfirmSerializer,
)

logger = logging.getLogger("aero.contacts")

User = get_user_model()

VERIFY_SALT = "aero.contact-verification"


def _send_email(to, subject, html):
    """Best effort: account mails never fail the request that triggered them."""
    try:
        with channels.http_client() as client:
            channels.email_channel_from_settings(client).send(to, subject, html)
        return True
    except ImproperlyConfigured:
        logger.warning("Email provider not configured, '%s' not sent to %s", subject, to)
    except ChannelDeliveryFailed as exc:
        logger.warning("Could not send '%s' to %s: %s", subject, to, exc)
    return False


# ---------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------

class ContactViewSet(viewsets.ModelViewSet):
    serializer_class = ContactSerializer

    def get_queryset(self):
        return Contact.objects.filter(user=self.request.user).order_by("created_at")

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    @action(detail=True, methods=["post"], url_path="verification")
    def send_verification(self, request, pk=None):
        contact = self.get_object()
        if contact.is_verified:
            return Response({"ok": True, "is_verified": True})

        token = signing.TimestampSigner(salt=VERIFY_SALT).sign(str(contact.pk))
        url = request.build_absolute_uri(reverse("contact_verify")) + f"?token={token}"

        sent = False
        if contact.email:
            html = render_to_string("aero/emails/verify_contact.html", {
                "contact_name": contact.name,
                "owner_name": display_name(request.user),
                "url": url,
            })
            sent = _send_email(contact.email, "Confirm you are an AeroAbantu emergency contact", html)

        # the link goes to the contact only; the owner must not be able to accept it
        return Response({"ok": True, "is_verified": False, "email_sent": sent}, status=status.HTTP_202_ACCEPTED)


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def verify_contact(request):
    """GET /verify?token=... - the contact accepts the invitation."""
    token = (request.query_params.get("token") or "").strip()
    try:
        contact_id = signing.TimestampSigner(salt=VERIFY_SALT).unsign(
            token, max_age=settings.CONTACT_VERIFICATION_MAX_AGE,
        )
    except signing.SignatureExpired:
        return Response({"ok": False, "error": "Verification link has expired."}, status=status.HTTP_410_GONE)
    except signing.BadSignature:
        return Response({"ok": False, "error": "Invalid verification link."}, status=status.HTTP_400_BAD_REQUEST)

    updated = Contact.objects.filter(pk=contact_id).update(is_verified=True)
    if not updated:
        return Response({"ok": False, "error": "Contact not found."}, status=status.HTTP_404_NOT_FOUND)
    logger.info("Contact %s verified", contact_id)
    return Response({"ok": True})


# ---------------------------------------------------------------
# Account
# ---------------------------------------------------------------

def display_name(user) -> str:
    full = (user.get_full_name() or "").strip()
    if full:
        return full
    if user.email:
        return user.email.split("@")[0]
    return "Someone"


class RegisterAPIView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response({"id": user.pk, "email": user.email, "name": display_name(user)},
                        status=status.HTTP_201_CREATED)


class PasswordResetRequestAPIView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PasswordResetRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"].strip().lower()

        user = User.objects.filter(email__iexact=email, is_active=True).first()
        if user is not None:
            uid = urlsafe_base64_encode(force_bytes(user.pk))
            token = default_token_generator.make_token(user)
            url = request.build_absolute_uri(reverse("reset_password")) + f"?uid={uid}&token={token}"
            html = render_to_string("aero/emails/reset_password.html", {"name": display_name(user), "url": url})
            _send_email(user.email, "Reset your AeroAbantu password", html)

        # same answer whether the account exists or not
        return Response({"ok": True})


def _user_from_uid(uid):
    try:
        pk = force_str(urlsafe_base64_decode(uid))
        return User.objects.get(pk=pk)
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        return None


class ResetPasswordAPIView(APIView):
    """
    GET  /reset-password?uid=..&token=..   validates the one-time link
    POST /reset-password                   sets the new password
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        user = _user_from_uid(request.query_params.get("uid") or "")
        token = request.query_params.get("token") or ""
        if user is None or not default_token_generator.check_token(user, token):
            return Response(
                {"ok": False, "error": "This password reset link is invalid or has expired."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response({"ok": True, "valid": True})

    def post(self, request):
        serializer = PasswordResetConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = _user_from_uid(data["uid"])
        if user is None or not default_token_generator.check_token(user, data["token"]):
            return Response(
                {"ok": False, "error": "This password reset link is invalid or has expired."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        user.set_password(data["password"])
        user.save(update_fields=["password"])
        logger.info("Password reset for user %s", user.pk)
        return Response({"ok": True})
