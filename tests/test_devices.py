# tests/test_devices.py
import pytest

from doubles import EventLog
from hiremind.core.exceptions import PermissionDeniedError
from hiremind.core.interfaces import Permission
from hiremind.processors.devices import BrowserMediaDevices
from hiremind.processors.video import BehavioralMetricsTracker


@pytest.mark.asyncio
async def test_devices_released_once_per_acquisition():
    sent = EventLog()
    devices = BrowserMediaDevices(sent)
    devices.update_permissions("granted", "granted")

    await devices.release()
    await devices.acquire()
    await devices.release()
    await devices.release()

    assert [name for name, _ in sent.events] == ["acquire_devices", "release_devices"]
    assert devices.release_count == 1


@pytest.mark.asyncio
async def test_denied_camera_blocks_acquire():
    devices = BrowserMediaDevices(EventLog())
    devices.update_permissions(microphone="granted", camera="denied")

    with pytest.raises(PermissionDeniedError) as exc_info:
        await devices.acquire()

    assert exc_info.value.devices == ["camera"]
    assert "browser settings" in exc_info.value.message
    assert not devices.acquired


@pytest.mark.asyncio
async def test_unknown_permission_state_treated_as_prompt():
    devices = BrowserMediaDevices(EventLog())
    permissions = devices.update_permissions(microphone="maybe")

    assert permissions.microphone is Permission.PROMPT
    assert (await devices.check_permissions()).denied() == []


def test_metrics_averaged_as_percentages():
    tracker = BehavioralMetricsTracker()
    tracker.add_sample(eye_contact=0.8, smile=0.2, stillness=90, confidence=None)
    tracker.add_sample(eye_contact=0.6, smile=0.4, stillness=70)
    tracker.add_sample()

    summary = tracker.summary()

    assert summary.samples == 2
    assert summary.eye_contact == pytest.approx(70.0)
    assert summary.smile == pytest.approx(30.0)
    assert summary.stillness == pytest.approx(80.0)
    assert summary.confidence is None


def test_metrics_reset():
    tracker = BehavioralMetricsTracker()
    tracker.add_sample(eye_contact=0.5)
    tracker.reset()

    assert tracker.summary().samples == 0
    assert tracker.summary().eye_contact is None
