import re
from urllib.parse import parse_qs, urlparse

import pytest
from django.urls import reverse

from apps.aero.models import Contact
from .conftest import auth_client

pytestmark = pytest.mark.django_db


def test_list_only_own_contacts(api, contacts, other_user, make_contact):
    make_contact(other_user, "Stranger", "stranger@example.com")

    resp = api.get("/api/contacts/")

    assert resp.status_code == 200
    assert sorted(c["name"] for c in resp.json()) == ["Bongani", "Lerato", "Naledi"]


def test_create_contact_is_never_verified_by_the_client(api, user):
    resp = api.post("/api/contacts/", {
        "name": "  Zanele ",
        "email": "zanele@example.com",
        "phone": "+27 83 000 1111",
        "is_emergency": True,
        "is_verified": True,
    }, format="json")

    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "Zanele"
    assert body["is_verified"] is False
    assert body["last_known_location"] is None
    assert Contact.objects.get(pk=body["id"]).user == user


def test_create_rejects_bad_phone(api):
    resp = api.post("/api/contacts/", {"name": "Zanele", "phone": "call me maybe"}, format="json")
    assert resp.status_code == 400
    assert "phone" in resp.json()


def test_last_known_location_needs_both_coordinates(api):
    resp = api.post("/api/contacts/", {"name": "Zanele", "last_lat": -26.2}, format="json")
    assert resp.status_code == 400

    resp = api.post("/api/contacts/", {
        "name": "Zanele", "last_lat": -26.2041, "last_lng": 28.0473,
        "last_located_at": "2026-01-05T10:00:00Z",
    }, format="json")
    assert resp.status_code == 201
    location = resp.json()["last_known_location"]
    assert location["lat"] == -26.2041
    assert location["lng"] == 28.0473
    assert location["timestamp"] == 1767607200000


def test_other_users_contact_is_invisible(api, other_user, make_contact):
    foreign = make_contact(other_user, "Stranger", "stranger@example.com")

    assert api.get(f"/api/contacts/{foreign.pk}/").status_code == 404
    assert api.delete(f"/api/contacts/{foreign.pk}/").status_code == 404
    assert Contact.objects.filter(pk=foreign.pk).exists()


def test_contacts_require_login(anon):
    assert anon.get("/api/contacts/").status_code == 401


def test_changing_email_resets_verification(api, contacts):
    contact = contacts[0]
    assert contact.is_verified

    resp = api.patch(f"/api/contacts/{contact.pk}/", {"email": "new@example.com"}, format="json")

    assert resp.status_code == 200
    assert resp.json()["is_verified"] is False


def test_renaming_keeps_verification(api, contacts):
    contact = contacts[0]
    api.patch(f"/api/contacts/{contact.pk}/", {"name": "Lerato M."}, format="json")
    contact.refresh_from_db()
    assert contact.is_verified


def test_verification_link_round_trip(api, user, make_contact, outbox):
    contact = make_contact(user, "Palesa", "palesa@example.com", is_verified=False)

    resp = api.post(f"/api/contacts/{contact.pk}/verification/")

    assert resp.status_code == 202
    body = resp.json()
    assert body["email_sent"] is True
    assert len(outbox.emails) == 1
    assert outbox.emails[0]["to"] == ["palesa@example.com"]
    assert "verification_url" not in body

    link = re.search(r'href="([^"]+)"', outbox.emails[0]["html"]).group(1)
    token = parse_qs(urlparse(link).query)["token"][0]
    resp = auth_client(user).get(reverse("contact_verify"), {"token": token})

    assert resp.status_code == 200
    contact.refresh_from_db()
    assert contact.is_verified


def test_verification_link_is_public(anon, user, make_contact):
    contact = make_contact(user, "Palesa", "palesa@example.com", is_verified=False)
    from django.core import signing
    from apps.aero.views import VERIFY_SALT
    token = signing.TimestampSigner(salt=VERIFY_SALT).sign(str(contact.pk))

    assert anon.get("/verify", {"token": token}).status_code == 200


def test_tampered_verification_link(anon):
    resp = anon.get("/verify", {"token": "not-a-signed-value"})
    assert resp.status_code == 400
    assert resp.json()["ok"] is False


def test_verification_without_email_sends_nothing(api, user, make_contact, outbox):
    contact = make_contact(user, "Palesa", "", "+27 82 000 0000", is_verified=False)

    resp = api.post(f"/api/contacts/{contact.pk}/verification/")

    assert resp.status_code == 202
    assert resp.json()["email_sent"] is False
    assert "verification_url" not in resp.json()
    assert outbox.requests == []
    contact.refresh_from_db()
    assert not contact.is_verified
