"""
Typed events of the answer stream.

Every decoded line is expected to be one JSON object shaped like
`{"type": "chunk" | "metadata" | "error" | <other>, ...}`. `parse_event` turns it into
one arm of a closed union and never raises: bad lines become `ParseFailure`, unknown
types become `IgnoredEvent`.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError

DEFAULT_SOURCE = "Azure OpenAI"
DEFAULT_SOURCE_ID = "azure_openai"
DEFAULT_SOURCE_TITLE = "Azure OpenAI"


def _as_text(value: Any) -> Any:
    # The server is not strict about types: ids may be numbers, error details may be objects.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


Text = Annotated[Optional[str], BeforeValidator(_as_text)]


class _WireEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ChunkEvent(_WireEvent):
    type: Literal["chunk"] = "chunk"
    content: Text = None


class MetadataEvent(_WireEvent):
    """Success-terminal event: provenance of the finished answer."""

    type: Literal["metadata"] = "metadata"
    source: Text = None
    source_id: Text = None
    source_title: Text = None
    chat_id: Text = None
    response_id: Text = None

    @property
    def resolved_source(self) -> str:
        return self.source or DEFAULT_SOURCE

    @property
    def resolved_source_id(self) -> str:
        return self.source_id or DEFAULT_SOURCE_ID

    @property
    def resolved_source_title(self) -> str:
        return self.source_title or DEFAULT_SOURCE_TITLE


class ErrorEvent(_WireEvent):
    """Failure-terminal event reported inline by the server."""

    type: Literal["error"] = "error"
    content: Text = None


class IgnoredEvent(_WireEvent):
    """Valid JSON object with an unknown or missing `type`."""

    type: Optional[str] = None


class ParseFailure(_WireEvent):
    line: str
    reason: str


ProtocolEvent = Union[ChunkEvent, MetadataEvent, ErrorEvent, IgnoredEvent]

_EVENT_TYPES: dict[str, type[_WireEvent]] = {
    "chunk": ChunkEvent,
    "metadata": MetadataEvent,
    "error": ErrorEvent,
}


def parse_event(line: str) -> ProtocolEvent | ParseFailure:
    """
    Parse one logical line into a protocol event.

    Args:
        line: A framing-stripped line produced by StreamFrameDecoder.

    Returns:
        The matching event, IgnoredEvent for unknown types, or ParseFailure for input
        that is not a JSON object or does not fit the event schema.
    """
    try:
        obj = json.loads(line)
    except (json.JSONDecodeError, ValueError) as e:
        return ParseFailure(line=line, reason=f"invalid JSON: {e}")

    if not isinstance(obj, dict):
        return ParseFailure(line=line, reason=f"expected a JSON object, got {type(obj).__name__}")

    event_type = obj.get("type")
    model = _EVENT_TYPES.get(event_type) if isinstance(event_type, str) else None
    if model is None:
        return IgnoredEvent(type=event_type if isinstance(event_type, str) else None)

    try:
        return model.model_validate(obj)
    except ValidationError as e:
        return ParseFailure(line=line, reason=f"invalid {event_type} event: {e.error_count()} error(s)")
