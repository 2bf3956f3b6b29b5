import logging
import re

import httpx
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .errors import ChannelDeliveryFailed

logger = logging.getLogger("aero.notifications")

RESEND_URL = "https://api.resend.com/emails"
WHATSAPP_URL = "https://graph.facebook.com/v21.0/{phone_id}/messages"

ALERT_LABELS = {
    "sos": "EMERGENCY SOS",
    "voice": "Voice Alert",
    "manual": "Location Share",
}


def http_client() -> httpx.Client:
    """Shared factory so tests can swap the transport. Callers own and close the client."""
    return httpx.Client(timeout=settings.NOTIFICATION_HTTP_TIMEOUT)


def format_phone_for_whatsapp(phone: str, default_country_code: str = "27") -> str:
    """E.164 digits without '+'. A leading 0 is a national number: prefix the country code."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        digits = default_country_code + digits[1:]
    return digits


class EmailChannel:
    name = "email"

    def __init__(self, api_key: str, sender: str, client: httpx.Client):
        self.api_key = api_key
        self.sender = sender
        self.client = client

    def send(self, to: str, subject: str, html: str) -> None:
        try:
            resp = self.client.post(
                RESEND_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
            )
        except httpx.HTTPError as exc:
            logger.error("Email request to %s failed: %s", to, exc)
            raise ChannelDeliveryFailed(self.name, "Email delivery failed") from exc

        if resp.status_code >= 400:
            logger.error("Email provider rejected %s: HTTP %s %s", to, resp.status_code, resp.text[:200])
            raise ChannelDeliveryFailed(self.name, "Email delivery failed")
        logger.info("Email sent to %s", to)


class WhatsAppChannel:
    name = "whatsapp"

    def __init__(self, token: str, phone_number_id: str, client: httpx.Client,
                 test_mode: bool = True, default_country_code: str = "27"):
        self.token = token
        self.phone_number_id = phone_number_id
        self.client = client
        self.test_mode = test_mode
        self.default_country_code = default_country_code

    def _template(self, sharer_name, tracking_link, triggered_by):
        if self.test_mode:
            return {"name": "hello_world", "language": {"code": "en_US"}}
        return {
            "name": "sos_alert",
            "language": {"code": "en"},
            "components": [
                {
                    "type": "body",
                    "parameters": [
                        {"type": "text", "text": sharer_name},
                        {"type": "text", "text": ALERT_LABELS.get(triggered_by, ALERT_LABELS["manual"])},
                    ],
                },
                {
                    "type": "button",
                    "sub_type": "url",
                    "index": "0",
                    "parameters": [{"type": "text", "text": tracking_link}],
                },
            ],
        }

    def send_tracking_link(self, phone, sharer_name, tracking_link, triggered_by) -> None:
        to = format_phone_for_whatsapp(phone, self.default_country_code)
        body = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "template",
            "template": self._template(sharer_name, tracking_link, triggered_by),
        }
        try:
            resp = self.client.post(
                WHATSAPP_URL.format(phone_id=self.phone_number_id),
                headers={"Authorization": f"Bearer {self.token}"},
                json=body,
            )
        except httpx.HTTPError as exc:
            logger.error("WhatsApp request to %s failed: %s", to, exc)
            raise ChannelDeliveryFailed(self.name, str(exc) or "WhatsApp delivery failed") from exc

        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", {}).get("message")
            except ValueError:
                message = None
            logger.error("WhatsApp API error for %s: HTTP %s", to, resp.status_code)
            raise ChannelDeliveryFailed(self.name, message or f"HTTP {resp.status_code}")
        logger.info("WhatsApp message sent to %s", to)


def email_channel_from_settings(client: httpx.Client) -> EmailChannel:
    if not settings.RESEND_API_KEY:
        raise ImproperlyConfigured("RESEND_API_KEY is not configured")
    return EmailChannel(settings.RESEND_API_KEY, settings.EMAIL_FROM, client)


def whatsapp_channel_from_settings(client: httpx.Client):
    """None when WhatsApp is not configured; that only disables the channel."""
    if not (settings.META_WHATSAPP_TOKEN and settings.META_WHATSAPP_PHONE_ID):
        logger.info("WhatsApp not configured - only emails will be sent")
        return None
    return WhatsAppChannel(
        settings.META_WHATSAPP_TOKEN,
        settings.META_WHATSAPP_PHONE_ID,
        client,
        test_mode=settings.WHATSAPP_TEST_MODE,
        default_country_code=settings.WHATSAPP_DEFAULT_COUNTRY_CODE,
    )
