from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid4().hex


class CamelModel(BaseModel):
    """Records exchanged as JSON use camelCase field names."""
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class Clip(CamelModel):
    id: str = Field(default_factory=new_id)
    data: bytes
    mime_type: str = "video/mp4"
    duration_seconds: float = 0.0

    @property
    def size(self) -> int:
        return len(self.data)


class Question(CamelModel):
    id: str = Field(default_factory=new_id)
    order: int
    text: str
    prompt_clip_ref: str


class InterviewFlow(CamelModel):
    id: str = Field(default_factory=new_id)
    title: str
    destination_endpoint: str = ""
    questions: List[Question] = Field(default_factory=list)

    def question_text(self, question_id: str) -> Optional[str]:
        for question in self.questions:
            if question.id == question_id:
                return question.text
        return None


class AnalysisResult(CamelModel):
    transcription: str
    sentiment: str
    key_points: List[str]
    score: int

    @classmethod
    def failed(cls) -> "AnalysisResult":
        """Placeholder returned when a clip could not be analyzed."""
        return cls(
            transcription="Error analyzing video.",
            sentiment="Unknown",
            key_points=["Analysis failed"],
            score=0,
        )


class Answer(CamelModel):
    question_id: str
    analysis: AnalysisResult


class QuestionResult(CamelModel):
    question_id: str
    question_text: Optional[str] = None
    analysis: AnalysisResult


class SubmissionPayload(CamelModel):
    interview_id: str
    candidate_id: str
    flow_title: str
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: List[QuestionResult] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
