# vocalflow/capture/devices.py

import asyncio
import shutil
import subprocess
import tempfile
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import cv2
import numpy as np
from loguru import logger

from config import config
from vocalflow.utils.error_handlers import DeviceError


class CaptureDevice:
    """
    A live camera + microphone source.

    The recorder opens it, pulls chunks from it while recording and asks it
    to turn the collected chunks into one encoded clip. Blocking calls are
    fine here; the recorder runs them off the event loop.
    """

    mime_type = "video/mp4"

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    def open(self) -> None:
        raise NotImplementedError

    def read_chunk(self) -> Optional[Any]:
        raise NotImplementedError

    async def encode(self, chunks: List[Any], duration_seconds: float) -> bytes:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


@dataclass
class MediaChunk:
    frame: Optional[np.ndarray]
    audio: bytes


class OpenCVCaptureDevice(CaptureDevice):
    def __init__(
        self,
        camera_index: int = config.capture.camera_index,
        frame_width: int = config.capture.frame_width,
        frame_height: int = config.capture.frame_height,
        fps: int = config.capture.fps,
        video_codec: str = config.capture.video_codec,
        mime_type: Optional[str] = None,
        sample_rate: int = config.capture.audio_sample_rate,
        channels: int = config.capture.audio_channels,
        chunk_size: int = config.capture.audio_chunk_size,
        ffmpeg_binary: str = config.capture.ffmpeg_binary,
        temp_dir: Path = config.capture.temp_dir,
    ):
        self.camera_index = camera_index
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.fps = fps
        self.video_codec = video_codec
        self.mime_type = mime_type or config.capture.mime_type
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_size = chunk_size
        self.ffmpeg_binary = ffmpeg_binary
        self.temp_dir = Path(temp_dir)

        self._capture: Optional[cv2.VideoCapture] = None
        self._audio = None
        self._stream = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        if self.is_open:
            return
        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise DeviceError(f"Camera #{self.camera_index} could not be opened (access denied or no device).")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)

        try:
            import pyaudio
        except ImportError as exc:  # pragma: no cover - environment-dependent
            capture.release()
            raise DeviceError("PyAudio is required for microphone capture.") from exc

        audio = pyaudio.PyAudio()
        try:
            stream = audio.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
            )
        except OSError as e:
            capture.release()
            audio.terminate()
            raise DeviceError(f"Microphone could not be opened: {e}") from e

        self._capture = capture
        self._audio = audio
        self._stream = stream
        logger.info(f"Camera #{self.camera_index} and microphone opened")

    def read_chunk(self) -> Optional[MediaChunk]:
        if not self.is_open:
            return None
        ok, frame = self._capture.read()
        audio = self._stream.read(self.chunk_size, exception_on_overflow=False)
        return MediaChunk(frame=frame if ok else None, audio=audio)

    def close(self) -> None:
        if self._stream is not None:
            try:
                if self._stream.is_active():
                    self._stream.stop_stream()
                self._stream.close()
            except OSError as e:
                logger.warning(f"Error while closing microphone stream: {e}")
            finally:
                self._stream = None
        if self._audio is not None:
            self._audio.terminate()
            self._audio = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug("Camera and microphone released")

    async def encode(self, chunks: List[MediaChunk], duration_seconds: float) -> bytes:
        frames = [c.frame for c in chunks if c.frame is not None]
        audio = b"".join(c.audio for c in chunks)
        if not frames:
            logger.warning("No video frames captured")
            return b""

        work_dir = Path(tempfile.mkdtemp(prefix="clip_", dir=self.temp_dir))
        video_path = work_dir / "video.mp4"
        audio_path = work_dir / "audio.wav"
        output_path = work_dir / "clip.mp4"
        try:
            # keep playback speed honest: frames actually read / seconds recorded
            fps = len(frames) / duration_seconds if duration_seconds > 0 else self.fps
            await asyncio.to_thread(self._write_video, frames, video_path, fps)
            await asyncio.to_thread(self._write_wav, audio, audio_path)

            if audio and await self._mux_video_and_audio(video_path, audio_path, output_path):
                return output_path.read_bytes()
            logger.warning("Clip saved without audio")
            return video_path.read_bytes()
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _write_video(self, frames: List[np.ndarray], path: Path, fps: float) -> None:
        height, width = frames[0].shape[:2]
        fourcc = cv2.VideoWriter_fourcc(*self.video_codec)
        writer = cv2.VideoWriter(str(path), fourcc, max(fps, 1.0), (width, height), isColor=True)
        if not writer.isOpened():
            raise DeviceError("Video writer could not be opened!")
        try:
            for frame in frames:
                if frame.shape[:2] != (height, width):
                    frame = cv2.resize(frame, (width, height))
                writer.write(frame)
        finally:
            writer.release()

    def _write_wav(self, audio: bytes, path: Path) -> None:
        with wave.open(str(path), 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(2)  # paInt16
            wf.setframerate(self.sample_rate)
            wf.writeframes(audio)

    async def _mux_video_and_audio(self, video_path: Path, audio_path: Path, output_path: Path) -> bool:
        """Combine video and audio into one mp4 with FFmpeg."""
        cmd = [self.ffmpeg_binary, "-y", "-i", str(video_path), "-i", str(audio_path),
               "-c:v", "copy", "-c:a", "aac", "-b:a", "192k", "-shortest", str(output_path)]
        try:
            proc = await asyncio.create_subprocess_exec(*cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
            _, stderr = await proc.communicate()
        except FileNotFoundError:
            logger.error(f"FFmpeg not found: {self.ffmpeg_binary}")
            return False
        if proc.returncode != 0:
            logger.error(f"FFmpeg error: {stderr.decode(errors='ignore')}")
            return False
        return output_path.exists()
