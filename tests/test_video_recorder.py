import asyncio

import pytest

from conftest import CloseFailingCaptureDevice, DeniedCaptureDevice, FakeCaptureDevice
from vocalflow.capture.video_recorder import VideoRecorder
from vocalflow.utils.error_handlers import DeviceError, InvalidStateError


def make_recorder(**kwargs):
    kwargs.setdefault("device_factory", FakeCaptureDevice)
    kwargs.setdefault("tick_interval", 0.01)
    kwargs.setdefault("max_duration", 60)
    return VideoRecorder(**kwargs)


def test_manual_stop_produces_clip_and_releases_device():
    async def scenario():
        completed = []
        recorder = make_recorder(on_complete=completed.append)
        device = await recorder.acquire()
        handle = await recorder.start_recording()
        await asyncio.sleep(0.05)
        clip = await recorder.stop_recording(handle)
        return recorder, device, clip, completed

    recorder, device, clip, completed = asyncio.run(scenario())

    assert clip.data
    assert clip.mime_type == "video/webm"
    assert completed == [clip]
    assert not device.is_open
    assert recorder.stream is None
    assert recorder.recording is None
    assert recorder.get_statistics()["total_recordings"] == 1


def test_recording_stops_itself_at_max_duration():
    async def scenario():
        ticks = []
        recorder = make_recorder(max_duration=3, on_tick=ticks.append)
        await recorder.acquire()
        handle = await recorder.start_recording()
        clip = await asyncio.wait_for(handle.result(), timeout=5)
        return recorder, clip, ticks

    recorder, clip, ticks = asyncio.run(scenario())

    assert recorder.elapsed_seconds == 3
    assert ticks == [1, 2, 3]
    assert clip.data
    assert recorder.stream is None


def test_stop_after_auto_stop_returns_same_clip():
    async def scenario():
        recorder = make_recorder(max_duration=1)
        await recorder.acquire()
        handle = await recorder.start_recording()
        clip = await asyncio.wait_for(handle.result(), timeout=5)
        again = await recorder.stop_recording(handle)
        return clip, again

    clip, again = asyncio.run(scenario())
    assert again is clip


def test_record_waits_for_clip():
    async def scenario():
        async with make_recorder(max_duration=2) as recorder:
            return await asyncio.wait_for(recorder.record(), timeout=5)

    clip = asyncio.run(scenario())
    assert clip.data


def test_start_without_stream_is_rejected():
    async def scenario():
        recorder = make_recorder()
        with pytest.raises(InvalidStateError):
            await recorder.start_recording()

    asyncio.run(scenario())


def test_start_with_foreign_stream_is_rejected():
    async def scenario():
        recorder = make_recorder()
        await recorder.acquire()
        other = FakeCaptureDevice()
        other.open()
        try:
            with pytest.raises(InvalidStateError):
                await recorder.start_recording(other)
        finally:
            await recorder.release()

    asyncio.run(scenario())


def test_second_start_while_recording_is_rejected():
    async def scenario():
        async with make_recorder() as recorder:
            await recorder.acquire()
            await recorder.start_recording()
            with pytest.raises(InvalidStateError):
                await recorder.start_recording()

    asyncio.run(scenario())


def test_denied_device_raises_device_error():
    async def scenario():
        recorder = make_recorder(device_factory=DeniedCaptureDevice)
        with pytest.raises(DeviceError):
            await recorder.acquire()
        return recorder

    recorder = asyncio.run(scenario())
    assert recorder.stream is None


def test_acquire_reuses_live_stream():
    async def scenario():
        async with make_recorder() as recorder:
            first = await recorder.acquire()
            second = await recorder.acquire()
            return first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert first.open_calls == 1
    assert not first.is_open


def test_discard_and_restart_gives_fresh_stream_and_clip():
    async def scenario():
        async with make_recorder() as recorder:
            first_device = await recorder.acquire()
            handle = await recorder.start_recording()
            await asyncio.sleep(0.03)
            first = await recorder.stop_recording(handle)

            second_device = await recorder.discard_and_restart()
            handle = await recorder.start_recording()
            await asyncio.sleep(0.03)
            second = await recorder.stop_recording(handle)
            return first_device, second_device, first, second

    first_device, second_device, first, second = asyncio.run(scenario())

    assert first_device is not second_device
    assert not first_device.is_open
    assert first.id != second.id
    assert first.data != second.data


def test_discard_during_recording_cancels_take():
    async def scenario():
        async with make_recorder() as recorder:
            await recorder.acquire()
            handle = await recorder.start_recording()
            await asyncio.sleep(0.02)
            await recorder.discard_and_restart()
            assert recorder.recording is None
            assert recorder.last_clip is None
            with pytest.raises(asyncio.CancelledError):
                await handle.result()

    asyncio.run(scenario())


def test_leaving_context_releases_device():
    async def scenario():
        async with make_recorder() as recorder:
            device = await recorder.acquire()
            await recorder.start_recording()
            await asyncio.sleep(0.02)
        return recorder, device

    recorder, device = asyncio.run(scenario())
    assert not device.is_open
    assert device.close_calls == 1
    assert recorder.stream is None


def test_auto_stop_resolves_take_even_if_close_fails():
    async def scenario():
        completed = []
        recorder = make_recorder(device_factory=CloseFailingCaptureDevice, max_duration=1,
                                 on_complete=completed.append)
        await recorder.acquire()
        handle = await recorder.start_recording()
        clip = await asyncio.wait_for(handle.result(), timeout=5)
        return recorder, clip, completed

    recorder, clip, completed = asyncio.run(scenario())

    assert clip.data
    assert completed == [clip]
    assert recorder.stream is None
    assert recorder.recording is None
