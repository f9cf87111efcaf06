import asyncio
import json
from types import SimpleNamespace

from google.genai import types

from conftest import make_clip
from vocalflow.clients.gemini_client import ANALYSIS_SCHEMA, GeminiAnalyzerClient
from vocalflow.schema import AnalysisResult


class FakeModels:
    def __init__(self, text=None, error=None, delay=0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.requests = []

    async def generate_content(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


def fake_genai(**kwargs):
    models = FakeModels(**kwargs)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


GOOD_RESPONSE = json.dumps({
    "transcription": "I have five years of Python experience.",
    "sentiment": "Confident",
    "keyPoints": ["Python", "Five years"],
    "score": 85,
})


def test_missing_api_key_returns_failure_sentinel():
    analyzer = GeminiAnalyzerClient(api_key="")
    result = asyncio.run(analyzer.analyze(make_clip(), "Tell me about yourself"))
    assert result == AnalysisResult.failed()


def test_failure_sentinel_values():
    failed = AnalysisResult.failed()
    assert failed.transcription == "Error analyzing video."
    assert failed.sentiment == "Unknown"
    assert failed.key_points == ["Analysis failed"]
    assert failed.score == 0
    # each failure gets its own copy
    assert failed.key_points is not AnalysisResult.failed().key_points


def test_transport_error_returns_failure_sentinel():
    client, _ = fake_genai(error=ConnectionError("network down"))
    analyzer = GeminiAnalyzerClient(api_key="key", client=client)
    result = asyncio.run(analyzer.analyze(make_clip(), "Q?"))
    assert result == AnalysisResult.failed()


def test_empty_response_returns_failure_sentinel():
    client, _ = fake_genai(text="")
    analyzer = GeminiAnalyzerClient(api_key="key", client=client)
    assert asyncio.run(analyzer.analyze(make_clip(), "Q?")) == AnalysisResult.failed()


def test_malformed_response_returns_failure_sentinel():
    client, _ = fake_genai(text='{"transcription": "only this"}')
    analyzer = GeminiAnalyzerClient(api_key="key", client=client)
    assert asyncio.run(analyzer.analyze(make_clip(), "Q?")) == AnalysisResult.failed()


def test_slow_response_times_out_to_failure_sentinel():
    client, _ = fake_genai(text=GOOD_RESPONSE, delay=1.0)
    analyzer = GeminiAnalyzerClient(api_key="key", client=client, timeout=0.05)
    assert asyncio.run(analyzer.analyze(make_clip(), "Q?")) == AnalysisResult.failed()


def test_well_formed_response_is_parsed():
    client, _ = fake_genai(text=GOOD_RESPONSE)
    analyzer = GeminiAnalyzerClient(api_key="key", client=client)

    result = asyncio.run(analyzer.analyze(make_clip(), "Tell me about yourself"))

    assert result.transcription == "I have five years of Python experience."
    assert result.sentiment == "Confident"
    assert result.key_points == ["Python", "Five years"]
    assert result.score == 85
    assert analyzer.total_requests == 1


def test_request_carries_prompt_clip_and_schema():
    client, models = fake_genai(text=GOOD_RESPONSE)
    analyzer = GeminiAnalyzerClient(api_key="key", model="gemini-test", client=client)
    clip = make_clip(data=b"\x1a\x45\xdf\xa3webm", mime_type="video/webm")

    asyncio.run(analyzer.analyze(clip, "Why this role?"))

    request = models.requests[0]
    assert request["model"] == "gemini-test"

    prompt_part, clip_part = request["contents"]
    assert '"Why this role?"' in prompt_part.text
    assert prompt_part.text.startswith("You are an expert HR interviewer.")
    assert clip_part.inline_data.data == clip.data
    assert clip_part.inline_data.mime_type == "video/webm"

    generation = request["config"]
    assert isinstance(generation, types.GenerateContentConfig)
    assert generation.response_mime_type == "application/json"
    assert generation.response_schema == ANALYSIS_SCHEMA


def test_schema_requires_every_field():
    assert set(ANALYSIS_SCHEMA.required) == {"transcription", "sentiment", "keyPoints", "score"}
    assert ANALYSIS_SCHEMA.properties["keyPoints"].type == types.Type.ARRAY
    assert ANALYSIS_SCHEMA.properties["score"].type == types.Type.INTEGER
