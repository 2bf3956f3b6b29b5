import json
import logging
from typing import Optional

import httpx

from .errors import ApiError, NotAuthenticated, SessionClosed

logger = logging.getLogger("aero.device.api")

DEFAULT_TIMEOUT = 15.0


def _payload(resp):
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


def _raise_for(resp):
    if resp.status_code < 400:
        return
    data = _payload(resp)
    message = data.get("error") or data.get("detail") or f"HTTP {resp.status_code}"
    code = data.get("code") or data.get("reason")
    raise ApiError(resp.status_code, message, code)


class AeroClient:
    """
    Thin async client for the AeroAbantu HTTP API.

    `client` is an httpx.AsyncClient whose base_url points at the backend;
    one is created from `base_url` when not given.
    """

    def __init__(self, base_url=None, access_token: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None, timeout=DEFAULT_TIMEOUT):
        self.access_token = access_token
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token)

    def _headers(self, auth):
        if not auth:
            return {}
        if not self.access_token:
            raise NotAuthenticated()
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method, path, json_body=None, auth=True):
        headers = self._headers(auth)
        try:
            resp = await self.client.request(method, path, json=json_body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(0, str(exc) or "Network error") from exc
        return resp

    async def _call(self, method, path, json_body=None, auth=True):
        resp = await self._request(method, path, json_body, auth)
        _raise_for(resp)
        return _payload(resp)

    # ---------------------------------------------------------------
    # Sharer side
    # ---------------------------------------------------------------

    async def list_contacts(self) -> list:
        resp = await self._request("GET", "/api/contacts/")
        _raise_for(resp)
        data = resp.json()
        # paginated or plain list
        return data.get("results", []) if isinstance(data, dict) else data

    async def create_session(self, contact_ids, latitude, longitude, accuracy=None,
                             triggered_by="manual", duration_minutes=None) -> dict:
        return await self._call("POST", "/api/live/sessions/", {
            "contact_ids": [str(c) for c in contact_ids],
            "latitude": latitude,
            "longitude": longitude,
            "accuracy": accuracy,
            "triggered_by": triggered_by,
            "duration_minutes": duration_minutes,
        })

    async def update_position(self, session_id, latitude, longitude, accuracy=None) -> dict:
        resp = await self._request("POST", f"/api/live/sessions/{session_id}/position/", {
            "latitude": latitude,
            "longitude": longitude,
            "accuracy": accuracy,
        })
        if resp.status_code in (404, 409, 410):
            data = _payload(resp)
            raise SessionClosed(resp.status_code, data.get("error"), data.get("code"))
        _raise_for(resp)
        return _payload(resp)

    async def stop_session(self, session_id) -> dict:
        return await self._call("POST", f"/api/live/sessions/{session_id}/stop/")

    async def active_session(self) -> Optional[dict]:
        data = await self._call("GET", "/api/live/sessions/active/")
        return data.get("session") if data.get("active") else None

    async def send_notifications(self, contacts, share_tokens, sharer_name, triggered_by) -> dict:
        resp = await self._request("POST", "/api/functions/send-sos-notification", {
            "contacts": contacts,
            "shareTokens": list(share_tokens),
            "sharerName": sharer_name,
            "triggeredBy": triggered_by,
        })
        data = _payload(resp)
        if resp.status_code >= 400 or not data.get("success"):
            raise ApiError(resp.status_code, data.get("error") or "Notification dispatch failed")
        return data

    # ---------------------------------------------------------------
    # Tracker side (public, token only)
    # ---------------------------------------------------------------

    async def resolve_track(self, token) -> dict:
        """Snapshot payload; `ok` is False with a `reason` when tracking is unavailable."""
        resp = await self._request("GET", f"/api/public/track/{token}", auth=False)
        if resp.status_code in (404, 410):
            return _payload(resp)
        _raise_for(resp)
        return _payload(resp)

    async def subscribe(self, token):
        """Yield (event, data) pairs from the tracker's Server-Sent Events stream."""
        path = f"/api/public/track/{token}/stream"
        try:
            async with self.client.stream("GET", path, headers={"Accept": "text/event-stream"}) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    _raise_for(resp)
                event, data = "message", []
                async for line in resp.aiter_lines():
                    if not line:
                        if data:
                            yield event, json.loads("\n".join(data))
                        event, data = "message", []
                    elif line.startswith(":"):
                        continue
                    elif line.startswith("event:"):
                        event = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        data.append(line[len("data:"):].strip())
        except httpx.HTTPError as exc:
            raise ApiError(0, str(exc) or "Stream interrupted") from exc

    async def aclose(self):
        await self.client.aclose()
