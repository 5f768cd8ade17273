"""
Conversation state and the pure fold that applies stream events to it.

Snapshots are frozen; every transition returns a new ConversationState, so a
renderer holding a snapshot never observes a half-applied event.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Literal, Optional, Union

import httpx

from azure_agent_chat._errors import AgentAPIError, ChatBusyError
from azure_agent_chat.events import (
    ChunkEvent,
    ErrorEvent,
    IgnoredEvent,
    MetadataEvent,
    ParseFailure,
    ProtocolEvent,
)

Sender = Literal["user", "assistant"]

ERROR_SOURCE = "Error"
ERROR_SOURCE_ID = "error"
CONNECTION_ERROR_SOURCE_ID = "connection_error"

ERROR_EVENT_TEMPLATE = "⚠️ エラー: {content}"
SERVER_ERROR_TEMPLATE = "❌ サーバーエラー（{status}）: AZURE_OPENAI_MODELの設定を確認してください"
NETWORK_ERROR_TEXT = "❌ ネットワークエラー: サーバーに接続できません"
CONNECTION_ERROR_TEMPLATE = "❌ 接続エラーが発生しました: {detail}"
STREAM_INTERRUPTED_DETAIL = "応答が完了する前にストリームが終了しました"

_NETWORK_HINTS = ("NetworkError", "Failed to fetch", "Connection refused")


@dataclass(frozen=True, slots=True)
class Attribution:
    source: str
    source_id: str
    source_title: Optional[str] = None
    turn_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    sender: Sender
    text: str = ""
    pending: bool = False
    attribution: Optional[Attribution] = None


@dataclass(frozen=True, slots=True)
class ConversationState:
    messages: tuple[Message, ...] = ()
    last_response_id: Optional[str] = None

    def get(self, message_id: str) -> Message | None:
        for m in self.messages:
            if m.id == message_id:
                return m
        return None

    @property
    def pending_message(self) -> Message | None:
        for m in reversed(self.messages):
            if m.pending:
                return m
        return None

    def with_message(self, message: Message) -> ConversationState:
        return replace(
            self,
            messages=tuple(message if m.id == message.id else m for m in self.messages),
        )


@dataclass(frozen=True, slots=True)
class TransportFailure:
    """Synthetic terminal event applied by the caller when the stream fails or closes early."""

    reason: str


StreamEvent = Union[ProtocolEvent, ParseFailure, TransportFailure]


class Change(enum.Enum):
    NONE = "none"
    APPENDED = "appended"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Transition:
    state: ConversationState
    change: Change


def new_message_pair(user_text: str, user_message_id: str, assistant_message_id: str) -> tuple[Message, Message]:
    """Build the user message and its empty, pending assistant reply."""
    if user_message_id == assistant_message_id:
        raise ValueError("user and assistant messages need distinct ids")
    return (
        Message(id=user_message_id, sender="user", text=user_text),
        Message(id=assistant_message_id, sender="assistant", pending=True),
    )


def start_exchange(
    state: ConversationState,
    user_text: str,
    *,
    user_message_id: str,
    assistant_message_id: str,
) -> ConversationState:
    """
    Append a new question/answer pair in one step.

    Raises:
        ChatBusyError: If another answer is still pending.
        ValueError: If one of the ids is already used in the conversation.
    """
    if state.pending_message is not None:
        raise ChatBusyError("An answer is still streaming; wait for it before asking again")
    for mid in (user_message_id, assistant_message_id):
        if state.get(mid) is not None:
            raise ValueError(f"Message id already in use: {mid!r}")

    pair = new_message_pair(user_text, user_message_id, assistant_message_id)
    return replace(state, messages=state.messages + pair)


def fallback_finalization(reason: str) -> TransportFailure:
    return TransportFailure(reason=reason)


def describe_transport_failure(exc: BaseException) -> str:
    """
    Turn a transport failure into the text shown in place of the answer.

    Server failures (5xx) and connectivity failures get dedicated wording;
    anything else falls back to the generic connection error.
    """
    detail = str(exc) or type(exc).__name__

    if isinstance(exc, AgentAPIError):
        # The status is known; the body text may mention any number.
        if exc.is_server_error:
            return SERVER_ERROR_TEMPLATE.format(status=exc.status_code)
        return CONNECTION_ERROR_TEMPLATE.format(detail=detail)
    if isinstance(exc, (httpx.NetworkError, httpx.ConnectTimeout)):
        return NETWORK_ERROR_TEXT
    if "500" in detail:
        return SERVER_ERROR_TEMPLATE.format(status=500)
    if any(hint in detail for hint in _NETWORK_HINTS):
        return NETWORK_ERROR_TEXT
    return CONNECTION_ERROR_TEMPLATE.format(detail=detail)


def fallback_from_exception(exc: BaseException) -> TransportFailure:
    return fallback_finalization(describe_transport_failure(exc))


def stream_interrupted() -> TransportFailure:
    return fallback_finalization(CONNECTION_ERROR_TEMPLATE.format(detail=STREAM_INTERRUPTED_DETAIL))


def reduce(state: ConversationState, target_id: str, event: StreamEvent) -> Transition:
    """
    Apply one event to the message `target_id` and report what changed.

    Only a pending target can change. Once a terminal event (metadata, error or
    transport failure) has been applied, every later event for that id is a no-op.
    """
    unchanged = Transition(state, Change.NONE)

    if isinstance(event, (IgnoredEvent, ParseFailure)):
        return unchanged

    target = state.get(target_id)
    if target is None or not target.pending:
        return unchanged

    if isinstance(event, ChunkEvent):
        if not event.content:
            return unchanged
        updated = replace(target, text=target.text + event.content)
        return Transition(state.with_message(updated), Change.APPENDED)

    if isinstance(event, MetadataEvent):
        updated = replace(
            target,
            pending=False,
            attribution=Attribution(
                source=event.resolved_source,
                source_id=event.resolved_source_id,
                source_title=event.resolved_source_title,
                turn_id=event.chat_id,
            ),
        )
        next_state = replace(state.with_message(updated), last_response_id=event.response_id or None)
        return Transition(next_state, Change.COMPLETED)

    if isinstance(event, ErrorEvent):
        updated = replace(
            target,
            pending=False,
            text=ERROR_EVENT_TEMPLATE.format(content=event.content if event.content is not None else ""),
            attribution=Attribution(source=ERROR_SOURCE, source_id=ERROR_SOURCE_ID),
        )
        return Transition(state.with_message(updated), Change.FAILED)

    if isinstance(event, TransportFailure):
        updated = replace(
            target,
            pending=False,
            text=event.reason,
            attribution=Attribution(source=ERROR_SOURCE, source_id=CONNECTION_ERROR_SOURCE_ID),
        )
        return Transition(state.with_message(updated), Change.FAILED)

    return unchanged


def apply(state: ConversationState, target_id: str, event: StreamEvent) -> ConversationState:
    return reduce(state, target_id, event).state
