"""
Gemini Analysis Client - Video Answer Analysis

Sends one recorded answer to Gemini together with the question it
answers and reads back a fixed-shape JSON result. This client never
raises: any failure comes back as AnalysisResult.failed(), so a
session always has one result per question.
"""

from typing import Any, Optional

from google import genai
from google.genai import types
from loguru import logger

from config import config
from vocalflow.schema import AnalysisResult, Clip
from vocalflow.utils.error_handlers import AnalysisError, safe_async_call, timeout_handler


ANALYSIS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "transcription": types.Schema(
            type=types.Type.STRING,
            description="The full word-for-word transcription of the user's video response.",
        ),
        "sentiment": types.Schema(
            type=types.Type.STRING,
            description="The overall sentiment of the candidate (e.g., Confident, Nervous, Enthusiastic).",
        ),
        "keyPoints": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(type=types.Type.STRING),
            description="List of 3-5 key professional skills or experiences mentioned.",
        ),
        "score": types.Schema(
            type=types.Type.INTEGER,
            description="A score from 1-100 rating the quality of the answer based on clarity and relevance.",
        ),
    },
    required=["transcription", "sentiment", "keyPoints", "score"],
)

PROMPT_TEMPLATE = (
    'You are an expert HR interviewer. Analyze this video response to the question: "{question}". '
    "Provide a transcription, assess the sentiment/confidence, list key points, "
    "and give a relevance score (0-100)."
)


class GeminiAnalyzerClient:
    """Wraps a single Gemini generate_content call per answer clip."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key if api_key is not None else config.analyzer.api_key
        self.model = model or config.analyzer.model
        self.timeout = timeout if timeout is not None else config.analyzer.timeout
        self._client = client

        # Statistics
        self.total_requests = 0

        logger.info(f"Gemini analyzer initialized. Model: {self.model}")

    def _get_client(self):
        """Create the SDK client lazily so a missing key only fails analysis."""
        if self._client is None:
            if not self.api_key:
                raise AnalysisError("Gemini API key is missing. Please set GEMINI_API_KEY in your .env file.")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def build_prompt(question_text: str) -> str:
        return PROMPT_TEMPLATE.format(question=question_text)

    @staticmethod
    def build_contents(clip: Clip, question_text: str) -> list:
        # Part.from_bytes keeps the clip binary; the SDK base64-encodes it on the wire
        return [
            types.Part.from_text(text=GeminiAnalyzerClient.build_prompt(question_text)),
            types.Part.from_bytes(data=clip.data, mime_type=clip.mime_type or "video/mp4"),
        ]

    @safe_async_call(fallback_factory=AnalysisResult.failed)
    async def analyze(self, clip: Clip, question_text: str) -> AnalysisResult:
        self.total_requests += 1
        logger.info(f"Analyzing answer ({clip.size / 1024:.1f}KB) for: {question_text}")
        client = self._get_client()

        @timeout_handler(self.timeout, "Gemini analysis timed out", error_cls=AnalysisError)
        async def _request():
            return await client.aio.models.generate_content(
                model=self.model,
                contents=self.build_contents(clip, question_text),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=ANALYSIS_SCHEMA,
                ),
            )

        response = await _request()
        result_text = response.text
        if not result_text:
            raise AnalysisError("No response from Gemini")

        result = AnalysisResult.model_validate_json(result_text)
        logger.info(f"Analysis received. Sentiment: {result.sentiment}, Score: {result.score}")
        return result
