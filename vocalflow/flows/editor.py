"""
Flow authoring.

The editor holds a draft flow while the administrator works on it. The
list position of a question is what counts; `order` is rewritten after
every change so it always matches the position.
"""

from typing import List, Optional

from loguru import logger

from vocalflow.flows.flow_store import ClipStore, FlowStore
from vocalflow.schema import Clip, InterviewFlow, Question
from vocalflow.utils.error_handlers import FlowValidationError


class FlowEditor:
    def __init__(
        self,
        store: FlowStore,
        clip_store: ClipStore,
        existing: Optional[InterviewFlow] = None,
    ):
        self.store = store
        self.clip_store = clip_store
        self.flow_id = existing.id if existing else None
        self.title = existing.title if existing else ""
        self.destination_endpoint = existing.destination_endpoint if existing else ""
        self.questions: List[Question] = list(existing.questions) if existing else []
        # prompt clips recorded in this editing session and not saved yet
        self._unsaved_refs: List[str] = []

    @classmethod
    def from_store(cls, store: FlowStore, clip_store: ClipStore) -> "FlowEditor":
        return cls(store, clip_store, existing=store.load())

    def set_title(self, title: str) -> None:
        self.title = title.strip()

    def set_destination_endpoint(self, url: str) -> None:
        self.destination_endpoint = (url or "").strip()

    def add_question(self, text: str, prompt_clip: Optional[Clip]) -> Question:
        text = (text or "").strip()
        if not text:
            raise FlowValidationError("Question text is required.")
        if prompt_clip is None or not prompt_clip.data:
            raise FlowValidationError("Record a prompt clip for the question first.")

        ref = self.clip_store.put(prompt_clip)
        self._unsaved_refs.append(ref)
        question = Question(order=len(self.questions) + 1, text=text, prompt_clip_ref=ref)
        self.questions.append(question)
        logger.info(f"Question added (#{question.order}): {text}")
        return question

    def remove_question(self, question_id: str) -> bool:
        remaining = [q for q in self.questions if q.id != question_id]
        if len(remaining) == len(self.questions):
            return False
        self.questions = remaining
        self._renumber()
        logger.info(f"Question removed: {question_id}")
        return True

    def _renumber(self) -> None:
        self.questions = [
            q if q.order == position else q.model_copy(update={"order": position})
            for position, q in enumerate(self.questions, 1)
        ]

    def build(self) -> InterviewFlow:
        fields = dict(
            title=self.title,
            destination_endpoint=self.destination_endpoint,
            questions=list(self.questions),
        )
        if self.flow_id:
            fields["id"] = self.flow_id
        return InterviewFlow(**fields)

    def save(self) -> InterviewFlow:
        """Persist the draft, then delete prompt clips no question points to anymore."""
        previous = self.store.load()
        saved = self.store.save(self.build())
        self.flow_id = saved.id

        candidates = set(self._unsaved_refs)
        if previous is not None:
            candidates.update(q.prompt_clip_ref for q in previous.questions)
        stale = candidates - {q.prompt_clip_ref for q in saved.questions}
        for ref in stale:
            self.clip_store.delete(ref)
        if stale:
            logger.debug(f"Deleted {len(stale)} unreferenced prompt clip(s)")

        self._unsaved_refs.clear()
        return saved

    def discard(self) -> None:
        """Drop prompt clips recorded since the last save."""
        for ref in self._unsaved_refs:
            self.clip_store.delete(ref)
        self._unsaved_refs.clear()
