import json
import logging
import time

from django.conf import settings
from django.http import JsonResponse, StreamingHttpResponse, HttpResponseNotAllowed
from django.shortcuts import render
from django.utils.cache import patch_cache_control

from . import services
from .errors import TrackingUnavailable
from .models import LiveLocation

logger = logging.getLogger("aero.live")


def _nocache(resp):
    patch_cache_control(resp, no_cache=True, no_store=True, must_revalidate=True, max_age=0)
    return resp


def track_page(request, token: str):
    """GET /track/<token> - public tracker page, no login."""
    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])
    try:
        session = services.resolve_share_token(token)
    except TrackingUnavailable as exc:
        resp = render(request, "live/track.html", {"error": str(exc), "reason": exc.reason}, status=exc.status)
        return _nocache(resp)
    return _nocache(render(request, "live/track.html", {
        "token": token,
        "location": session.public_dict(),
    }))


def track_snapshot(request, token: str):
    """GET /api/public/track/<token> - current position, or why there is none."""
    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])
    try:
        session = services.resolve_share_token(token)
    except TrackingUnavailable as exc:
        return _nocache(JsonResponse({"ok": False, "reason": exc.reason, "error": str(exc)}, status=exc.status))
    return _nocache(JsonResponse({"ok": True, "location": session.public_dict()}))


def _sse(event, data):
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _event_stream(session_id, interval, max_seconds):
    """
    Poll the session row and push changes. Emits `position` when the row
    changes, `ended` (then stops) when the session is over, and a comment
    line as keep-alive otherwise. Clients reconnect after max_seconds.
    """
    deadline = time.monotonic() + max_seconds
    last_seen = None
    while True:
        session = LiveLocation.objects.filter(pk=session_id).first()
        if session is None:
            yield _sse("ended", {"reason": "not_found"})
            return

        outcome = services.tracking_outcome(session)
        if outcome != "active":
            yield _sse("ended", {"reason": outcome})
            return

        if session.updated_at != last_seen:
            last_seen = session.updated_at
            yield _sse("position", session.public_dict())
        else:
            yield ": ping\n\n"

        if time.monotonic() >= deadline:
            return
        if interval:
            time.sleep(interval)


def track_stream(request, token: str):
    """GET /api/public/track/<token>/stream - Server-Sent Events."""
    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])
    try:
        session = services.resolve_share_token(token)
    except TrackingUnavailable as exc:
        return _nocache(JsonResponse({"ok": False, "reason": exc.reason, "error": str(exc)}, status=exc.status))

    resp = StreamingHttpResponse(
        _event_stream(session.pk, settings.TRACK_STREAM_INTERVAL, settings.TRACK_STREAM_MAX_SECONDS),
        content_type="text/event-stream",
    )
    resp["X-Accel-Buffering"] = "no"
    return _nocache(resp)
