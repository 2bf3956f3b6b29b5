import json

import httpx
import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.aero.models import Contact

User = get_user_model()


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    def _make(email="thandi@example.com", password="secret123", first_name="Thandi", last_name="Mokoena"):
        return User.objects.create_user(
            username=email, email=email, password=password,
            first_name=first_name, last_name=last_name,
        )
    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def other_user(make_user):
    return make_user(email="sipho@example.com", first_name="Sipho", last_name="Dlamini")


@pytest.fixture
def make_contact(db):
    def _make(owner, name="Lerato", email="lerato@example.com", phone="+27 82 555 0101",
              is_emergency=True, is_verified=True):
        return Contact.objects.create(
            user=owner, name=name, email=email, phone=phone,
            is_emergency=is_emergency, is_verified=is_verified,
        )
    return _make


@pytest.fixture
def contacts(user, make_contact):
    return [
        make_contact(user, "Lerato", "lerato@example.com", "+27 82 555 0101"),
        make_contact(user, "Bongani", "bongani@example.com", "082 555 0102"),
        make_contact(user, "Naledi", "naledi@example.com", "", is_emergency=False),
    ]


def auth_client(user):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {RefreshToken.for_user(user).access_token}")
    return client


@pytest.fixture
def api(user):
    return auth_client(user)


@pytest.fixture
def anon():
    return APIClient()


class Outbox:
    """Records every request the notification channels make."""

    def __init__(self):
        self.requests = []
        self.clients = []
        self.respond = lambda request: httpx.Response(200, json={"id": "msg_123"})

    def client(self):
        client = httpx.Client(transport=httpx.MockTransport(self.handle))
        self.clients.append(client)
        return client

    def handle(self, request):
        self.requests.append(request)
        return self.respond(request)

    def _bodies(self, host):
        return [json.loads(r.content) for r in self.requests if r.url.host == host]

    @property
    def emails(self):
        return self._bodies("api.resend.com")

    @property
    def whatsapp(self):
        return self._bodies("graph.facebook.com")


@pytest.fixture
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr("live.channels.http_client", box.client)
    return box
