"""Stream event vocabulary and its `data: <json>` frame encoding."""

import json
import logging
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .entity import ResolvedEntity
from .progress import ProgressSnapshot, RunStats

logger = logging.getLogger(__name__)

FRAME_PREFIX = "data: "
FRAME_DELIMITER = "\n\n"


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    message: str


class SearchProgressEvent(BaseModel):
    type: Literal["search_progress"] = "search_progress"
    queries_completed: int
    total_queries: int
    candidates_found: int


class SearchCompleteEvent(BaseModel):
    type: Literal["search_complete"] = "search_complete"
    total_candidates: int


class MatchEvent(BaseModel):
    type: Literal["match"] = "match"
    entity: ResolvedEntity
    progress: ProgressSnapshot


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    progress: ProgressSnapshot


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    stats: RunStats


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    Union[
        StatusEvent,
        SearchProgressEvent,
        SearchCompleteEvent,
        MatchEvent,
        ProgressEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"complete", "error"})

_event_adapter = TypeAdapter(StreamEvent)


def is_terminal(event: BaseModel) -> bool:
    return getattr(event, "type", None) in TERMINAL_EVENT_TYPES


def encode_frame(event: BaseModel) -> str:
    """Serialize one event as a `data: <json>` frame."""
    return f"{FRAME_PREFIX}{event.model_dump_json()}{FRAME_DELIMITER}"


def decode_event(payload: str):
    """Parse the JSON payload of one frame into its event model."""
    return _event_adapter.validate_json(payload)


class FrameDecoder:
    """Incremental decoder for a chunked event stream.

    Chunks may split a frame anywhere; only complete frames are decoded.
    Frames that fail to parse are logged and skipped.
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> list:
        self._buffer += chunk.replace("\r\n", "\n")
        events = []
        while FRAME_DELIMITER in self._buffer:
            frame, self._buffer = self._buffer.split(FRAME_DELIMITER, 1)
            event = self._decode_frame(frame)
            if event is not None:
                events.append(event)
        return events

    @property
    def pending(self) -> str:
        """Buffered text of an incomplete frame."""
        return self._buffer

    def _decode_frame(self, frame: str) -> Optional[BaseModel]:
        data_lines = [
            line[len(FRAME_PREFIX):] if line.startswith(FRAME_PREFIX) else line[len("data:"):]
            for line in frame.split("\n")
            if line.startswith("data:")
        ]
        if not data_lines:
            return None
        payload = "\n".join(data_lines)
        try:
            return decode_event(payload)
        except (ValidationError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping malformed stream frame: {e}")
            return None
