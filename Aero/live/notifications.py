"""
SOS / share notification fan-out.

Contacts are paired with tokens by position, cycling when there are fewer
tokens than contacts: contact i gets tokens[i % len(tokens)]. Each
(contact, channel) send is independent; failures are reported, never raised.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from django.template.loader import render_to_string

from apps.aero.models import PHONE_REGEX
from .channels import ALERT_LABELS
from .errors import ChannelDeliveryFailed

logger = logging.getLogger("aero.notifications")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(PHONE_REGEX)
UNSAFE_CHARS_RE = re.compile(r"[<>\"'&]")


def valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or "")) and len(email) <= 255


def valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(phone or "")) and 7 <= len(phone) <= 20


def sanitize_text(value, max_length: int = 100) -> str:
    """Strip markup-significant characters before text reaches a message body."""
    return UNSAFE_CHARS_RE.sub("", str(value or "")).strip()[:max_length]


def pair_tokens(contacts, tokens):
    """[(contact, token)] with round-robin tokens."""
    if not tokens:
        return []
    return [(contact, tokens[i % len(tokens)]) for i, contact in enumerate(contacts)]


def tracking_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/track/{token}"


@dataclass
class NotificationResult:
    contact: str
    email: Optional[dict] = None
    whatsapp: Optional[dict] = None

    def as_dict(self):
        data = {"contact": self.contact}
        if self.email is not None:
            data["email"] = self.email
        if self.whatsapp is not None:
            data["whatsapp"] = self.whatsapp
        return data


@dataclass
class DispatchReport:
    results: list = field(default_factory=list)

    @property
    def emails_sent(self):
        return sum(1 for r in self.results if r.email and r.email.get("success"))

    @property
    def whatsapp_sent(self):
        return sum(1 for r in self.results if r.whatsapp and r.whatsapp.get("success"))

    def as_dict(self):
        return {
            "success": True,
            "sent": {"email": self.emails_sent, "whatsapp": self.whatsapp_sent},
            "total": len(self.results),
            "results": [r.as_dict() for r in self.results],
        }


def render_alert_email(contact_name, sharer_name, link, triggered_by):
    alert = ALERT_LABELS.get(triggered_by, ALERT_LABELS["manual"])
    subject = f"{alert} from {sharer_name}"
    html = render_to_string("live/emails/sos_alert.html", {
        "alert": alert,
        "contact_name": contact_name,
        "sharer_name": sharer_name,
        "link": link,
        "is_sos": triggered_by == "sos",
    })
    return subject, html


class NotificationDispatcher:
    def __init__(self, email_channel, whatsapp_channel=None):
        self.email_channel = email_channel
        self.whatsapp_channel = whatsapp_channel

    def dispatch(self, contacts, tokens, sharer_name, triggered_by, base_url) -> DispatchReport:
        """
        `contacts` are validated dicts (name, email, phone); `tokens` are already
        filtered to the caller's own shares.
        """
        sharer = sanitize_text(sharer_name) or "Someone"
        report = DispatchReport()

        for contact, token in pair_tokens(contacts, tokens):
            name = sanitize_text(contact.get("name"))
            link = tracking_url(base_url, token)
            result = NotificationResult(contact=name)

            if contact.get("email"):
                subject, html = render_alert_email(name, sharer, link, triggered_by)
                try:
                    self.email_channel.send(contact["email"], subject, html)
                    result.email = {"success": True}
                except ChannelDeliveryFailed as exc:
                    result.email = {"success": False, "error": str(exc)}

            if self.whatsapp_channel is not None and contact.get("phone"):
                try:
                    self.whatsapp_channel.send_tracking_link(contact["phone"], sharer, link, triggered_by)
                    result.whatsapp = {"success": True}
                except ChannelDeliveryFailed as exc:
                    result.whatsapp = {"success": False, "error": str(exc)}

            report.results.append(result)

        logger.info("Dispatched %s contact(s): %s email(s), %s WhatsApp message(s)",
                    len(report.results), report.emails_sent, report.whatsapp_sent)
        return report
