# vocalflow/capture/video_recorder.py

import asyncio
import time
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger

from config import config
from vocalflow.capture.devices import CaptureDevice, OpenCVCaptureDevice
from vocalflow.schema import Clip, new_id
from vocalflow.utils.error_handlers import DeviceError, InvalidStateError


class RecordingHandle:
    """One take. Await `result()` to get the finished clip."""

    def __init__(self, device: CaptureDevice):
        self.id = new_id()
        self.device = device
        self.chunks: List[Any] = []
        self.started_at = time.monotonic()
        self.stopping = False
        self.pump_task: Optional[asyncio.Task] = None
        self.ticker_task: Optional[asyncio.Task] = None
        self._result: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._result.done()

    async def result(self) -> Clip:
        return await asyncio.shield(self._result)


class VideoRecorder:
    """
    Camera/microphone recorder producing one Clip per take.

    The device is a single-holder resource: it is opened by `acquire`,
    and closed again on stop, discard, `release` or leaving the
    `async with` block. A take ends either on `stop_recording` or when the
    elapsed-time ticker reaches `max_duration`; both paths finish the take
    the same way.
    """

    def __init__(
        self,
        device_factory: Optional[Callable[[], CaptureDevice]] = None,
        max_duration: int = config.capture.answer_max_duration,
        tick_interval: float = config.capture.tick_interval,
        on_complete: Optional[Callable[[Clip], Any]] = None,
        on_tick: Optional[Callable[[int], Any]] = None,
    ):
        self.device_factory = device_factory or OpenCVCaptureDevice
        self.max_duration = max_duration
        self.tick_interval = tick_interval
        self.on_complete = on_complete
        self.on_tick = on_tick

        self.stream: Optional[CaptureDevice] = None
        self.recording: Optional[RecordingHandle] = None
        self.last_clip: Optional[Clip] = None
        self.elapsed_seconds = 0
        self._acquiring = False

        # Statistics
        self.total_recordings = 0
        self.total_duration = 0.0

    @property
    def is_recording(self) -> bool:
        return self.recording is not None and not self.recording.stopping

    async def __aenter__(self) -> "VideoRecorder":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    async def acquire(self) -> CaptureDevice:
        if self._acquiring:
            raise InvalidStateError("Camera acquisition already in progress")
        if self.stream is not None and self.stream.is_open:
            return self.stream

        self._acquiring = True
        device = self.device_factory()
        try:
            await asyncio.to_thread(device.open)
        except DeviceError:
            logger.error("Camera/microphone access failed")
            raise
        except Exception as e:
            logger.error(f"Camera/microphone access failed: {e}")
            raise DeviceError(f"Camera access denied: {e}") from e
        finally:
            self._acquiring = False

        self.stream = device
        logger.info("Camera ready")
        return device

    async def start_recording(self, stream: Optional[CaptureDevice] = None) -> RecordingHandle:
        stream = stream or self.stream
        if stream is None or not stream.is_open or stream is not self.stream:
            raise InvalidStateError("No live camera stream; call acquire() first")
        if self.recording is not None:
            raise InvalidStateError("A recording is already in progress")

        handle = RecordingHandle(stream)
        self.recording = handle
        self.last_clip = None
        self.elapsed_seconds = 0
        handle.pump_task = asyncio.create_task(self._pump(handle))
        handle.ticker_task = asyncio.create_task(self._tick(handle))
        logger.info(f"Recording started (max {self.max_duration}s)")
        return handle

    async def stop_recording(self, handle: Optional[RecordingHandle] = None) -> Clip:
        handle = handle or self.recording
        if handle is None:
            if self.last_clip is not None:
                return self.last_clip
            raise InvalidStateError("No recording to stop")
        if not handle.stopping:
            await self._finish(handle)
        return await handle.result()

    async def record(self, on_started: Optional[Callable[[RecordingHandle], Awaitable[Any]]] = None) -> Clip:
        """Start a take and wait until it is stopped or hits the time limit."""
        if self.stream is None:
            await self.acquire()
        handle = await self.start_recording()
        if on_started is not None:
            await on_started(handle)
        return await handle.result()

    async def discard_and_restart(self) -> CaptureDevice:
        """Throw the last take away and get a fresh live stream for a retake."""
        if self.recording is not None:
            await self._abort(self.recording)
        self.last_clip = None
        self.elapsed_seconds = 0
        await self._close_stream()
        logger.info("Take discarded, restarting camera")
        return await self.acquire()

    async def release(self) -> None:
        if self.recording is not None:
            await self._abort(self.recording)
        await self._close_stream()

    async def _pump(self, handle: RecordingHandle) -> None:
        while not handle.stopping:
            try:
                chunk = await asyncio.to_thread(handle.device.read_chunk)
            except Exception as e:
                logger.error(f"Capture read error: {e}")
                break
            if chunk:
                handle.chunks.append(chunk)
            await asyncio.sleep(0)

    async def _tick(self, handle: RecordingHandle) -> None:
        while not handle.stopping:
            await asyncio.sleep(self.tick_interval)
            if handle.stopping:
                return
            self.elapsed_seconds += 1
            if self.on_tick:
                self.on_tick(self.elapsed_seconds)
            if self.elapsed_seconds >= self.max_duration:
                logger.info(f"Maximum recording time reached ({self.max_duration}s), stopping")
                await self._finish(handle)
                return

    async def _halt(self, handle: RecordingHandle) -> None:
        handle.stopping = True
        current = asyncio.current_task()
        if handle.ticker_task is not None and handle.ticker_task is not current:
            handle.ticker_task.cancel()
        if handle.pump_task is not None:
            # let the in-flight read return before the device is closed
            await asyncio.gather(handle.pump_task, return_exceptions=True)

    async def _finish(self, handle: RecordingHandle) -> None:
        await self._halt(handle)
        duration = time.monotonic() - handle.started_at
        clip: Optional[Clip] = None
        try:
            data = await handle.device.encode(handle.chunks, duration)
        except Exception as e:
            logger.error(f"Clip encoding failed: {e}")
            handle._result.set_exception(e)
        else:
            clip = Clip(data=data, mime_type=handle.device.mime_type, duration_seconds=round(duration, 2))
            self.last_clip = clip
            self.total_recordings += 1
            self.total_duration += duration
            logger.info(f"Recording finished. Duration: {duration:.1f}s, Size: {clip.size / 1024:.1f}KB")
            handle._result.set_result(clip)
        finally:
            handle.chunks = []
            if self.recording is handle:
                self.recording = None

        # the take is already resolved; a failing close only loses the device
        try:
            await self._close_stream()
        except Exception as e:
            logger.error(f"Camera/microphone could not be closed: {e}")

        if clip is not None and self.on_complete:
            self.on_complete(clip)

    async def _abort(self, handle: RecordingHandle) -> None:
        await self._halt(handle)
        handle.chunks = []
        if not handle.done:
            handle._result.cancel()
        if self.recording is handle:
            self.recording = None
        await self._close_stream()
        logger.debug("Recording aborted")

    async def _close_stream(self) -> None:
        if self.stream is not None:
            stream, self.stream = self.stream, None
            await asyncio.to_thread(stream.close)

    def get_statistics(self) -> dict:
        avg_duration = (self.total_duration / self.total_recordings if self.total_recordings > 0 else 0)
        return {
            "total_recordings": self.total_recordings,
            "total_duration": f"{self.total_duration:.1f} seconds",
            "average_duration": f"{avg_duration:.1f} seconds",
            "max_duration": f"{self.max_duration} seconds",
        }
