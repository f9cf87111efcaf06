"""
Interview Session State

The in-memory snapshot of one candidate going through a flow. Nothing
here is written to disk: an abandoned session leaves no trace.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from vocalflow.schema import Answer, new_id


class SessionState(str, Enum):
    """Session states"""
    AWAITING_ANSWER = "awaiting_answer"
    ANALYZING = "analyzing"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"
    EXITED = "exited"


TERMINAL_STATES = {SessionState.DONE, SessionState.EXITED}


class InterviewSession(BaseModel):
    """
    Everything about one session at a given moment.

    `answers` grows by one entry per analyzed question, in question
    order. Cancelling the session empties it.
    """
    session_id: str = Field(default_factory=lambda: f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}")
    flow_id: str
    candidate_id: str = Field(default_factory=new_id, description="Fresh for every session")
    state: SessionState = Field(default=SessionState.AWAITING_ANSWER)

    current_question_index: int = Field(default=0)
    answers: list[Answer] = Field(default_factory=list)

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    # User-facing warnings and caught errors
    warnings: list[str] = Field(default_factory=list)
    errors: list[Dict[str, Any]] = Field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES
