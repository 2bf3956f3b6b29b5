import logging

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, AuthenticationFailed
from rest_framework.response import Response
from rest_framework.views import APIView

from . import channels, services
from .errors import SharingError
from .notifications import NotificationDispatcher
from .serializers import StartSessionSerializer, PositionSerializer, SOSNotificationSerializer, first_error

logger = logging.getLogger("aero.live")


def _error(exc: SharingError):
    return Response({"ok": False, "error": exc.detail, "code": exc.code}, status=exc.status)


def _invalid(serializer):
    return Response({"ok": False, "error": first_error(serializer.errors), "errors": serializer.errors},
                    status=status.HTTP_400_BAD_REQUEST)


def _session_payload(session):
    data = session.as_dict()
    shares = services.session_shares(session)
    data["contact_ids"] = [str(cid) for cid, _ in shares]
    data["share_tokens"] = [token for _, token in shares]
    return data


# ---------------------------------------------------------------
# Sharer side (JWT)
# ---------------------------------------------------------------

class SessionStartAPIView(APIView):
    """POST /api/live/sessions/ - create a session and one token per contact."""

    def post(self, request):
        serializer = StartSessionSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data
        try:
            started = services.start_session(
                request.user,
                data["contact_ids"],
                latitude=data["latitude"],
                longitude=data["longitude"],
                accuracy=data.get("accuracy"),
                triggered_by=data["triggered_by"],
                duration_minutes=data.get("duration_minutes"),
            )
        except SharingError as exc:
            return _error(exc)
        return Response({"ok": True, **started.as_dict()}, status=status.HTTP_201_CREATED)


class ActiveSessionAPIView(APIView):
    """GET /api/live/sessions/active/ - resume check on app load."""

    def get(self, request):
        session = services.active_session(request.user)
        if session is None:
            return Response({"ok": True, "active": False})
        return Response({"ok": True, "active": True, "session": _session_payload(session)})


class SessionPositionAPIView(APIView):
    """POST /api/live/sessions/<id>/position/ - periodic flush of the latest fix."""

    def post(self, request, session_id):
        serializer = PositionSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data
        try:
            session = services.record_position(
                request.user, session_id,
                data["latitude"], data["longitude"], data.get("accuracy"),
            )
        except SharingError as exc:
            return _error(exc)
        return Response({"ok": True, "updated_at": session.updated_at.isoformat()})


class SessionStopAPIView(APIView):
    """POST /api/live/sessions/<id>/stop/"""

    def post(self, request, session_id):
        try:
            services.stop_session(request.user, session_id)
        except SharingError as exc:
            return _error(exc)
        return Response({"ok": True})


# ---------------------------------------------------------------
# send-sos-notification function
# ---------------------------------------------------------------

def _tracking_base_url(request):
    origin = (request.headers.get("Origin") or "").rstrip("/")
    if origin and origin in settings.TRACKING_ALLOWED_ORIGINS:
        return origin
    return settings.PUBLIC_BASE_URL


def _envelope(message, code):
    return Response({"success": False, "error": message}, status=code)


class SendSOSNotificationAPIView(APIView):
    """
    POST /api/functions/send-sos-notification

    Order of checks: bearer auth (401), provider config (500), payload (400),
    token ownership (403), then fan-out. Partial delivery failures still
    answer 200 with per-contact results.
    """

    def handle_exception(self, exc):
        if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
            response = super().handle_exception(exc)
            response.data = {"success": False, "error": "Unauthorized"}
            return response
        return super().handle_exception(exc)

    def post(self, request):
        user = request.user

        rl_key = f"sos-notify:rl:{user.pk}"
        cache.add(rl_key, 0, timeout=60)
        try:
            hits = cache.incr(rl_key)
        except ValueError:
            # window closed between add and incr
            cache.set(rl_key, 1, timeout=60)
            hits = 1
        if hits > settings.SOS_NOTIFY_RATE_LIMIT:
            return _envelope("Too many notification requests. Try again in a minute.", status.HTTP_429_TOO_MANY_REQUESTS)

        with channels.http_client() as client:
            try:
                email_channel = channels.email_channel_from_settings(client)
            except ImproperlyConfigured:
                logger.error("RESEND_API_KEY is not configured")
                return _envelope("An error occurred processing your request", status.HTTP_500_INTERNAL_SERVER_ERROR)
            whatsapp_channel = channels.whatsapp_channel_from_settings(client)

            serializer = SOSNotificationSerializer(data=request.data)
            if not serializer.is_valid():
                return _envelope(first_error(serializer.errors), status.HTTP_400_BAD_REQUEST)
            data = serializer.validated_data

            try:
                tokens = services.authorized_tokens(user, data["shareTokens"])
            except DatabaseError:
                logger.exception("Error verifying shares for user %s", user.pk)
                return _envelope("Failed to verify shares", status.HTTP_500_INTERNAL_SERVER_ERROR)

            if not tokens:
                logger.warning("User %s attempted to use unauthorized share tokens", user.pk)
                return _envelope("Unauthorized: Invalid share tokens", status.HTTP_403_FORBIDDEN)
            logger.info("Verified %s share token(s) for user %s", len(tokens), user.pk)

            dispatcher = NotificationDispatcher(email_channel, whatsapp_channel)
            report = dispatcher.dispatch(
                data["contacts"], tokens,
                sharer_name=data["sharerName"],
                triggered_by=data["triggeredBy"],
                base_url=_tracking_base_url(request),
            )
        return Response(report.as_dict())
