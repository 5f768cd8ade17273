from __future__ import annotations

from azure_agent_chat._errors import AgentAPIError, AgentChatError, ChatBusyError
from azure_agent_chat._sse import StreamFrameDecoder
from azure_agent_chat.conversation import (
    Attribution,
    ConversationState,
    Message,
    apply,
    fallback_finalization,
    new_message_pair,
    start_exchange,
)
from azure_agent_chat.events import parse_event
from azure_agent_chat.session import AgentChat

__all__ = [
    "AgentAPIError",
    "AgentChat",
    "AgentChatError",
    "Attribution",
    "ChatBusyError",
    "ConversationState",
    "Message",
    "StreamFrameDecoder",
    "apply",
    "fallback_finalization",
    "new_message_pair",
    "parse_event",
    "start_exchange",
]

__version__ = "0.1.0"
