import asyncio

import pytest

from device.errors import NoContactsSelected
from device.geolocation import FixedGeolocator, Position, QueueGeolocator
from device.sharing import SharingController
from device.sos import AlertState, HoldToConfirm, SOSAlert, SOSTrigger
from .device_fakes import Clock, FakeApi, RecordingFeedback

CONTACTS = [
    {"id": "c1", "name": "Lerato", "email": "lerato@example.com", "is_emergency": True, "is_verified": True},
    {"id": "c2", "name": "Bongani", "email": "bongani@example.com", "is_emergency": True, "is_verified": False},
    {"id": "c3", "name": "Naledi", "email": "naledi@example.com", "is_emergency": False, "is_verified": True},
]


def _trigger(contacts=CONTACTS, **kwargs):
    api = FakeApi(contacts=contacts)
    controller = SharingController(api, FixedGeolocator(Position(-26.2, 28.0)), sharer_name="Thandi",
                                   feedback=RecordingFeedback(), clock=Clock())
    return SOSTrigger(controller, **kwargs), api


@pytest.mark.asyncio
async def test_release_before_threshold_does_nothing():
    trigger, api = _trigger()

    trigger.press()
    await asyncio.sleep(0.8)
    assert 0 < trigger.hold.progress < 100
    trigger.release()
    await asyncio.sleep(1.0)

    assert trigger.hold.fired == 0
    assert trigger.hold.progress == 0
    assert trigger.alert is None
    assert api.calls == []


@pytest.mark.asyncio
async def test_progress_grows_while_held():
    fired = []
    hold = HoldToConfirm(lambda: fired.append(True), duration=0.3, tick=0.01)

    hold.press()
    await asyncio.sleep(0.1)
    early = hold.progress
    await asyncio.sleep(0.1)

    assert 0 < early < hold.progress < 100
    assert hold.pressing
    await asyncio.sleep(0.2)
    assert fired == [True]
    assert not hold.pressing


@pytest.mark.asyncio
async def test_completed_hold_shares_with_verified_emergency_contacts():
    trigger, api = _trigger(hold_duration=0.05, tick=0.01)

    trigger.press()
    await asyncio.sleep(0.2)
    # releasing after the hold completed changes nothing
    trigger.release()

    assert trigger.hold.fired == 1
    assert trigger.alert.state is AlertState.COUNTDOWN
    assert ("create_session", ["c1"], "sos", None) in api.calls
    state = trigger.controller.state
    assert state.is_active and state.triggered_by == "sos"
    notify = [c for c in api.calls if c[0] == "send_notifications"][0]
    assert [c["name"] for c in notify[1]] == ["Lerato"]
    await trigger.alert.im_safe()
    await trigger.controller.close()


@pytest.mark.asyncio
async def test_im_safe_cancels_alert_and_stops_sharing():
    trigger, api = _trigger(hold_duration=0.01, tick=0.005)
    trigger.press()
    await asyncio.sleep(0.1)

    assert await trigger.alert.im_safe() is True

    assert trigger.alert.state is AlertState.CANCELLED
    assert ("stop_session", "sess-1") in api.calls
    assert not trigger.controller.state.is_active


@pytest.mark.asyncio
async def test_countdown_becomes_final():
    alert = SOSAlert(countdown=3, tick=0.01)
    alert.show()
    await asyncio.sleep(0.1)

    assert alert.state is AlertState.ALERTED
    assert alert.remaining == 0
    assert await alert.im_safe() is False
    alert.dismiss()
    assert alert.state is AlertState.DISMISSED


@pytest.mark.asyncio
async def test_sos_without_reachable_contacts_still_shows_alert():
    trigger, api = _trigger(contacts=CONTACTS[1:], hold_duration=0.01, tick=0.005)
    trigger.press()
    await asyncio.sleep(0.1)

    assert trigger.alert.state is AlertState.COUNTDOWN
    assert isinstance(trigger.error, NoContactsSelected)
    assert not any(c[0] == "create_session" for c in api.calls)
    await trigger.alert.im_safe()


class SlowCreateApi(FakeApi):
    """The backend commits the session, then the response is slow to arrive."""

    async def create_session(self, contact_ids, *args, **kwargs):
        created = await super().create_session(contact_ids, *args, **kwargs)
        self.active = {"id": created["session_id"], "triggered_by": kwargs.get("triggered_by")}
        await asyncio.sleep(10)
        return created


def _controller(api, geolocator):
    return SharingController(api, geolocator, sharer_name="Thandi",
                             feedback=RecordingFeedback(), clock=Clock())


@pytest.mark.asyncio
async def test_im_safe_while_locating_abandons_the_share():
    api = FakeApi(contacts=CONTACTS)
    geolocator = QueueGeolocator()
    controller = _controller(api, geolocator)
    trigger = SOSTrigger(controller, hold_duration=0.01, tick=0.005)

    trigger.press()
    await asyncio.sleep(0.1)
    assert trigger.alert.state is AlertState.COUNTDOWN

    assert await trigger.alert.im_safe() is True
    # a late fix must not revive the share
    geolocator.push(Position(-26.2, 28.0))
    await asyncio.sleep(0.2)

    assert not controller.state.is_active
    assert controller.updater is None
    assert not any(c[0] in ("create_session", "send_notifications") for c in api.calls)
    assert trigger.error is None


@pytest.mark.asyncio
async def test_im_safe_while_session_is_being_created_stops_it():
    api = SlowCreateApi(contacts=CONTACTS)
    controller = _controller(api, FixedGeolocator(Position(-26.2, 28.0)))
    trigger = SOSTrigger(controller, hold_duration=0.01, tick=0.005)

    trigger.press()
    await asyncio.sleep(0.1)
    assert ("create_session", ["c1"], "sos", None) in api.calls

    assert await trigger.alert.im_safe() is True
    await asyncio.sleep(0.05)

    assert not controller.state.is_active
    assert ("stop_session", "sess-1") in api.calls
    assert not any(c[0] == "send_notifications" for c in api.calls)
