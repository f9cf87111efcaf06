"""
Interview Session Orchestrator

Walks a candidate through the questions of one flow: take the recorded
answer, have it analyzed, keep the result, move on. After the last
question the collected results are sent to the flow's webhook.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from vocalflow.clients.gemini_client import GeminiAnalyzerClient
from vocalflow.clients.webhook_client import WebhookClient
from vocalflow.orchestrator.state import InterviewSession, SessionState
from vocalflow.schema import (
    Answer,
    Clip,
    InterviewFlow,
    Question,
    QuestionResult,
    SubmissionPayload,
)
from vocalflow.utils.error_handlers import InvalidStateError

AnswerSource = Callable[[Question, int], Awaitable[Optional[Clip]]]


class SessionOrchestrator:
    """Drives one interview session over a fixed flow."""

    def __init__(
        self,
        flow: InterviewFlow,
        analyzer: GeminiAnalyzerClient,
        webhook_client: WebhookClient,
        on_state_change: Optional[Callable[[InterviewSession], None]] = None,
        on_notice: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            flow: The interview flow, read once and never changed here.
            analyzer: Client producing one AnalysisResult per answer clip.
            webhook_client: Client used for the final submission.
            on_state_change: Called after every state transition.
            on_notice: Called with user-facing warnings and errors.
        """
        if not flow.questions:
            raise ValueError("Cannot start a session on a flow without questions.")

        self.flow = flow
        self.analyzer = analyzer
        self.webhook_client = webhook_client
        self.on_state_change = on_state_change
        self.on_notice = on_notice

        self.session = InterviewSession(flow_id=flow.id)
        self.held_clip: Optional[Clip] = None
        self.last_error: Optional[str] = None
        self.payload: Optional[SubmissionPayload] = None
        # True once the results POST has been issued; cancel cannot recall it
        self.submission_started = False

        logger.info(f"Session {self.session.session_id} started for flow '{flow.title}' "
                    f"({len(flow.questions)} questions)")

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def current_index(self) -> int:
        return self.session.current_question_index

    @property
    def current_question(self) -> Question:
        return self.flow.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.flow.questions) - 1

    @property
    def answers(self) -> List[Answer]:
        return self.session.answers

    def _set_state(self, state: SessionState):
        self.session.state = state
        logger.debug(f"Session state -> {state.value} (question {self.current_index + 1})")
        if self.on_state_change:
            self.on_state_change(self.session)

    def _notify(self, message: str):
        self.session.warnings.append(message)
        logger.warning(message)
        if self.on_notice:
            self.on_notice(message)

    def supply_answer(self, clip: Clip):
        """Hold a finished answer clip for the current question."""
        if self.state not in (SessionState.AWAITING_ANSWER, SessionState.FAILED):
            raise InvalidStateError(f"Cannot accept an answer while {self.state.value}")
        self.held_clip = clip

    async def submit_answer(self, clip: Optional[Clip] = None) -> SessionState:
        """
        Analyze the held answer and advance the session.

        An unexpected error leaves the session in FAILED on the same question
        with the clip still held, so calling this again retries it.
        """
        if clip is not None:
            self.supply_answer(clip)
        if self.state not in (SessionState.AWAITING_ANSWER, SessionState.FAILED):
            raise InvalidStateError(f"Cannot submit an answer while {self.state.value}")
        if self.held_clip is None:
            raise InvalidStateError("Record an answer before continuing")

        question = self.current_question
        self._set_state(SessionState.ANALYZING)

        try:
            analysis = await self.analyzer.analyze(self.held_clip, question.text)
            answer = Answer(question_id=question.id, analysis=analysis)
        except Exception as e:
            if self.state is SessionState.EXITED:
                return self.state
            self.last_error = str(e)
            self.session.errors.append({"type": "analysis", "question_id": question.id, "details": str(e)})
            logger.exception("Error processing answer")
            self._set_state(SessionState.FAILED)
            self._notify("There was an error processing your video. Please try again.")
            return self.state

        if self.state is SessionState.EXITED:
            logger.info("Session was cancelled during analysis, result discarded")
            return self.state

        self.session.answers.append(answer)
        self.last_error = None
        logger.success(f"Answer {len(self.session.answers)}/{len(self.flow.questions)} analyzed")

        if self.is_last_question:
            await self._submit_results()
        else:
            self.session.current_question_index += 1
            self.held_clip = None
            self._set_state(SessionState.AWAITING_ANSWER)
        return self.state

    def build_payload(self) -> SubmissionPayload:
        return SubmissionPayload(
            interview_id=self.flow.id,
            candidate_id=self.session.candidate_id,
            flow_title=self.flow.title,
            results=[
                QuestionResult(
                    question_id=answer.question_id,
                    question_text=self.flow.question_text(answer.question_id),
                    analysis=answer.analysis,
                )
                for answer in self.session.answers
            ],
        )

    async def _submit_results(self):
        self._set_state(SessionState.SUBMITTING)
        payload = self.build_payload()
        endpoint = self.flow.destination_endpoint

        if not endpoint:
            logger.info("No webhook URL configured, skipping submission.")
        else:
            self.submission_started = True
            try:
                await self.webhook_client.submit(endpoint, payload)
            except Exception as e:
                self.session.errors.append({"type": "submission", "details": str(e)})
                self._notify(
                    "The interview completed, but the results could not be sent "
                    f"to the webhook server. Error: {e}"
                )

        if self.state is SessionState.EXITED:
            return
        self.payload = payload
        self.held_clip = None
        self.session.finished_at = datetime.now()
        self._set_state(SessionState.DONE)
        logger.success(f"Session {self.session.session_id} completed")

    def cancel(self) -> bool:
        """
        Abandon the session. Collected answers are dropped and nothing further
        is sent. A results POST already issued (`submission_started`) is not
        recalled.
        """
        if self.state is SessionState.DONE:
            return False
        if self.state is SessionState.EXITED:
            return True
        self.session.answers.clear()
        self.held_clip = None
        self.session.finished_at = datetime.now()
        self._set_state(SessionState.EXITED)
        logger.info(f"Session {self.session.session_id} cancelled by candidate")
        return True

    async def run(
        self,
        answer_source: AnswerSource,
        on_question: Optional[Callable[[Question, int], Awaitable[None]]] = None,
    ) -> InterviewSession:
        """
        Run the whole session.

        `answer_source` is awaited once per attempt and returns the answer
        clip for the question, or None when the candidate gives up.
        """
        try:
            while not self.session.is_finished:
                question, index = self.current_question, self.current_index
                if on_question is not None:
                    await on_question(question, index)
                clip = await answer_source(question, index)
                if clip is None:
                    self.cancel()
                    break
                await self.submit_answer(clip)
        except asyncio.CancelledError:
            self.cancel()
            raise
        return self.session
