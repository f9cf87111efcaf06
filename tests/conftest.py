import asyncio
import os
import tempfile
from pathlib import Path

# point storage, temp files and logs somewhere disposable before config loads
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="vocalflow_tests_"))
os.environ["STORAGE_STATE_DIR"] = str(_TEST_ROOT / "state")
os.environ["STORAGE_CLIPS_DIR"] = str(_TEST_ROOT / "clips")
os.environ["CAPTURE_TEMP_DIR"] = str(_TEST_ROOT / "temp")
os.environ["BASE_DIR"] = str(_TEST_ROOT)
os.environ["GEMINI_API_KEY"] = ""

import pytest

from vocalflow.capture.devices import CaptureDevice
from vocalflow.flows.flow_store import ClipStore, FlowStore
from vocalflow.schema import AnalysisResult, Clip, InterviewFlow, Question
from vocalflow.utils.error_handlers import DeviceError, SubmissionError


class FakeCaptureDevice(CaptureDevice):
    """Produces numbered byte chunks; encoding just joins them."""

    mime_type = "video/webm"
    instances = []

    def __init__(self):
        self._open = False
        self.counter = 0
        self.open_calls = 0
        self.close_calls = 0
        FakeCaptureDevice.instances.append(self)

    @property
    def is_open(self):
        return self._open

    def open(self):
        self.open_calls += 1
        self._open = True

    def read_chunk(self):
        if not self._open:
            return None
        self.counter += 1
        return f"[{id(self)}:{self.counter}]".encode()

    async def encode(self, chunks, duration_seconds):
        return b"".join(chunks)

    def close(self):
        self.close_calls += 1
        self._open = False


class DeniedCaptureDevice(FakeCaptureDevice):
    def open(self):
        self.open_calls += 1
        raise DeviceError("Camera access denied")


class FakeAnalyzer:
    """Stands in for GeminiAnalyzerClient; records every call."""

    def __init__(self, results=None, error=None, delay=0.0):
        self.calls = []
        self.results = list(results or [])
        self.error = error
        self.delay = delay
        self.started = None

    async def analyze(self, clip, question_text):
        self.calls.append((clip, question_text))
        if self.started is not None:
            self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            error, self.error = self.error, None
            raise error
        if self.results:
            return self.results.pop(0)
        return AnalysisResult(
            transcription=f"answer to {question_text}",
            sentiment="Confident",
            key_points=["clear"],
            score=80,
        )


class FakeWebhook:
    def __init__(self, fail=False, delay=0.0):
        self.fail = fail
        self.delay = delay
        self.calls = []
        self.started = None

    async def submit(self, url, payload):
        self.calls.append((url, payload))
        if self.started is not None:
            self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise SubmissionError("Webhook responded with status: 500", status=500)
        return 200


def make_clip(data=b"clip-bytes", mime_type="video/webm"):
    return Clip(data=data, mime_type=mime_type, duration_seconds=1.0)


def make_flow(count=2, endpoint="https://hooks.example.com/results", title="Dev Interview"):
    questions = [
        Question(order=i + 1, text=f"Question {i + 1}?", prompt_clip_ref=f"prompt{i + 1}.webm")
        for i in range(count)
    ]
    return InterviewFlow(title=title, destination_endpoint=endpoint, questions=questions)


@pytest.fixture
def flow_store(tmp_path):
    return FlowStore(state_dir=tmp_path / "state", flow_key="test_flow")


@pytest.fixture
def clip_store(tmp_path):
    return ClipStore(clips_dir=tmp_path / "clips")


class CloseFailingCaptureDevice(FakeCaptureDevice):
    def close(self):
        super().close()
        raise OSError("device busy")
