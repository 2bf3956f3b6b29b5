import pytest
from datetime import timedelta

from device.errors import ApiError, LocationUnavailable, NoContactsSelected, NotAuthenticated, SharingStartFailed
from device.expiry import StopReason
from device.geolocation import FixedGeolocator, Position, QueueGeolocator
from device.sharing import Phase, SharingController
from .device_fakes import T0, Clock, FakeApi, RecordingFeedback

HOME = Position(-26.2041, 28.0473, 8.0)
CONTACTS = [
    {"id": "c1", "name": "Lerato", "email": "lerato@example.com", "phone": "+27 82 555 0101"},
    {"id": "c2", "name": "Bongani", "email": "", "phone": "082 555 0102"},
]


def _controller(api=None, geolocator=None, **kwargs):
    kwargs.setdefault("clock", Clock())
    kwargs.setdefault("feedback", RecordingFeedback())
    return SharingController(api or FakeApi(), geolocator or FixedGeolocator(HOME),
                             sharer_name="Thandi", **kwargs)


@pytest.mark.asyncio
async def test_start_requires_sign_in():
    controller = _controller(FakeApi(authenticated=False))
    with pytest.raises(NotAuthenticated):
        await controller.start_sharing(["c1"])
    assert controller.api.calls == []
    assert controller.feedback.toasts == [("error", "Please sign in to share your location")]


@pytest.mark.asyncio
async def test_start_requires_contacts():
    controller = _controller()
    with pytest.raises(NoContactsSelected):
        await controller.start_sharing([])
    assert controller.api.calls == []


@pytest.mark.asyncio
async def test_geolocation_hang_is_bounded():
    controller = _controller(geolocator=QueueGeolocator(), locate_timeout=0.05)
    with pytest.raises(LocationUnavailable):
        await controller.start_sharing(["c1"])
    assert controller.api.calls == []
    assert controller.state.phase is Phase.IDLE


@pytest.mark.asyncio
async def test_backend_failure_is_sharing_start_failed():
    api = FakeApi()
    api.fail["create_session"] = ApiError(500, "Failed to start location sharing.")
    controller = _controller(api)

    with pytest.raises(SharingStartFailed):
        await controller.start_sharing(["c1"])

    assert controller.state.phase is Phase.IDLE
    assert controller.updater is None
    assert ("error", "Failed to start location sharing") in controller.feedback.toasts


@pytest.mark.asyncio
async def test_start_sharing_runs_updater_monitor_and_notifies():
    api = FakeApi()
    controller = _controller(api)

    state = await controller.start_sharing(["c1", "c2"], duration_minutes=15, contacts=CONTACTS)

    assert state.phase is Phase.SHARING
    assert state.session_id == "sess-1"
    assert state.share_tokens == ["tok-c1", "tok-c2"]
    assert state.expires_at == T0 + timedelta(minutes=15)
    assert controller.updater.running
    assert controller.monitor.active

    notify = [c for c in api.calls if c[0] == "send_notifications"][0]
    assert notify[1] == [
        {"name": "Lerato", "email": "lerato@example.com", "phone": "+27 82 555 0101"},
        {"name": "Bongani", "email": None, "phone": "082 555 0102"},
    ]
    assert notify[2:] == (["tok-c1", "tok-c2"], "Thandi", "manual")
    assert ("success", "Live Location sharing started with 2 contact(s)") in controller.feedback.toasts
    await controller.close()


@pytest.mark.asyncio
async def test_notification_failure_is_only_a_warning():
    api = FakeApi()
    api.fail["send_notifications"] = ApiError(500, "down")
    controller = _controller(api)

    state = await controller.start_sharing(["c1"], triggered_by="sos", contacts=CONTACTS[:1])

    assert state.is_active
    assert state.notifications_failed
    assert ("warning", "Location shared but notifications may not have been sent") in controller.feedback.toasts
    assert ("stop_session", "sess-1") not in api.calls
    await controller.close()


@pytest.mark.asyncio
async def test_stop_cancels_local_updates_before_telling_the_backend():
    api = FakeApi()
    controller = _controller(api)
    await controller.start_sharing(["c1"])
    updater = controller.updater
    seen = []
    api.on_stop = lambda: seen.append(updater.running)

    assert await controller.stop_sharing() is True

    assert seen == [False]
    assert controller.state.phase is Phase.IDLE
    assert controller.state.session_id is None
    assert ("info", "Location sharing stopped") in controller.feedback.toasts
    assert await controller.stop_sharing() is False


@pytest.mark.asyncio
async def test_fifteen_minute_share_expires_on_the_device():
    api = FakeApi()
    clock = Clock()
    controller = _controller(api, clock=clock)
    await controller.start_sharing(["c1"], duration_minutes=15)
    monitor = controller.monitor

    assert monitor.check(T0 + timedelta(minutes=14, seconds=59)) is False
    assert controller.state.is_active

    assert monitor.check(T0 + timedelta(minutes=15, seconds=1)) is True
    assert monitor.reason is StopReason.EXPIRED
    assert controller.state.phase is Phase.IDLE
    assert controller.updater is None
    assert ("info", "Location sharing expired") in controller.feedback.toasts
    assert 200 in controller.feedback.haptics

    await controller.close()
    assert ("stop_session", "sess-1") in api.calls


@pytest.mark.asyncio
async def test_server_closing_the_session_ends_sharing():
    api = FakeApi()
    controller = _controller(api)
    await controller.start_sharing(["c1"])
    controller.updater.latest = HOME
    api.closed_reason = "ended"

    await controller.updater.flush()

    assert controller.state.phase is Phase.IDLE
    assert ("info", "Location sharing has ended") in controller.feedback.toasts
    await controller.close()


@pytest.mark.asyncio
async def test_resume_picks_up_active_session():
    api = FakeApi()
    api.active = {
        "id": "sess-9", "triggered_by": "sos", "contact_ids": ["c1"], "share_tokens": ["tok-c1"],
        "expires_at": (T0 + timedelta(minutes=30)).isoformat(),
    }
    controller = _controller(api)

    state = await controller.resume()

    assert state.is_active
    assert state.session_id == "sess-9"
    assert state.triggered_by == "sos"
    assert controller.updater.running
    await controller.close()


@pytest.mark.asyncio
async def test_resume_closes_an_overdue_session():
    api = FakeApi()
    api.active = {"id": "sess-9", "triggered_by": "manual", "expires_at": (T0 - timedelta(seconds=1)).isoformat()}
    controller = _controller(api)

    state = await controller.resume()

    assert not state.is_active
    assert ("stop_session", "sess-9") in api.calls


@pytest.mark.asyncio
async def test_share_form_phases():
    controller = _controller()
    controller.open_picker()
    assert controller.state.phase is Phase.SELECTING

    controller.confirm(60)
    assert controller.state.phase is Phase.SELECTING

    controller.toggle_contact("c1")
    controller.toggle_contact("c2")
    controller.toggle_contact("c2")
    controller.confirm(60)
    assert controller.state.phase is Phase.CONFIRMING

    controller.back()
    assert controller.state.phase is Phase.SELECTING
    controller.confirm(60)

    state = await controller.share_selected()
    assert state.phase is Phase.SHARING
    assert controller.api.calls[0] == ("create_session", ["c1"], "manual", 60)
    await controller.close()
