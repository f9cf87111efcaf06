"""
Flow Definition Store

Keeps the single active interview flow as one JSON document and the
prompt clips its questions point to as plain files next to it.
Every save overwrites the whole record; there is no history.
"""

import json
import mimetypes
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from config import config
from vocalflow.schema import Clip, InterviewFlow
from vocalflow.utils.error_handlers import FlowValidationError


def validate_flow(flow: InterviewFlow) -> None:
    """Raise FlowValidationError unless the flow may be persisted."""
    if not flow.title or not flow.title.strip():
        raise FlowValidationError("Flow title is required.", "Give the flow a title.")
    if not flow.questions:
        raise FlowValidationError("A flow needs at least one question.", "Add a question before saving.")
    endpoint = (flow.destination_endpoint or "").strip()
    if endpoint and not endpoint.startswith(("http://", "https://")):
        raise FlowValidationError(
            "Webhook URL must start with http:// or https://",
            "Fix the destination endpoint or leave it empty.",
        )


class FlowStore:
    """
    Persists one InterviewFlow under a fixed key.

    `save` validates first and writes nothing on failure; the write goes to
    a temp file that replaces the record, so a crash never leaves half a file.
    """

    def __init__(self, state_dir: Optional[Path] = None, flow_key: Optional[str] = None):
        self.state_dir = Path(state_dir or config.storage.state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.flow_key = flow_key or config.storage.flow_key

    @property
    def record_path(self) -> Path:
        return self.state_dir / f"{self.flow_key}.json"

    def save(self, flow: InterviewFlow) -> InterviewFlow:
        cleaned = flow.model_copy(update={"destination_endpoint": (flow.destination_endpoint or "").strip()})
        validate_flow(cleaned)

        temp_file = self.state_dir / f"{self.flow_key}.tmp"
        with open(temp_file, 'w', encoding='utf-8') as f:
            f.write(cleaned.model_dump_json(by_alias=True, indent=2))
        temp_file.replace(self.record_path)

        logger.info(f"Flow saved: '{cleaned.title}' ({len(cleaned.questions)} questions)")
        return cleaned

    def load(self) -> Optional[InterviewFlow]:
        if not self.record_path.exists():
            logger.debug(f"No stored flow at {self.record_path}")
            return None
        try:
            with open(self.record_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return InterviewFlow.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Stored flow could not be read: {e}")
            return None

    def clear(self) -> bool:
        if self.record_path.exists():
            self.record_path.unlink()
            logger.info("Stored flow deleted")
            return True
        return False


class ClipStore:
    """Prompt clips as files, addressed by their file name."""

    def __init__(self, clips_dir: Optional[Path] = None):
        self.clips_dir = Path(clips_dir or config.storage.clips_dir)
        self.clips_dir.mkdir(parents=True, exist_ok=True)

    def put(self, clip: Clip) -> str:
        extension = mimetypes.guess_extension(clip.mime_type.split(";")[0].strip()) or ".bin"
        ref = f"{clip.id}{extension}"
        self.path(ref).write_bytes(clip.data)
        logger.debug(f"Clip stored: {ref} ({clip.size / 1024:.1f}KB)")
        return ref

    def path(self, ref: str) -> Path:
        # refs are bare file names; anything else would escape the clips dir
        if Path(ref).name != ref:
            raise ValueError(f"Invalid clip reference: {ref}")
        return self.clips_dir / ref

    def get(self, ref: str) -> Clip:
        path = self.path(ref)
        mime_type, _ = mimetypes.guess_type(path.name)
        return Clip(id=path.stem, data=path.read_bytes(), mime_type=mime_type or "application/octet-stream")

    def delete(self, ref: str) -> None:
        path = self.path(ref)
        if path.exists():
            path.unlink()
