"""
Conversation driver: sends one question at a time to the agent server and folds the
streamed answer into the ConversationState that a UI renders.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterator

import httpx

from azure_agent_chat._client import AgentHttpClient, HttpConfig
from azure_agent_chat._config import ChatConfig
from azure_agent_chat._errors import AgentAPIError, ChatBusyError
from azure_agent_chat._sse import StreamFrameDecoder
from azure_agent_chat.conversation import (
    Change,
    ConversationState,
    TransportFailure,
    fallback_from_exception,
    reduce,
    start_exchange,
    stream_interrupted,
)
from azure_agent_chat.events import IgnoredEvent, ParseFailure, parse_event

ASK_PATH = "/test_agent/"
RESET_PATH = "/azure_agent_reset/"


def _new_ids() -> tuple[str, str]:
    token = uuid.uuid4().hex
    return f"user-{token}", f"assistant-{token}"


@dataclass(slots=True)
class AgentChat:
    """
    Chat session against the agent server.

    `ask` / `aask` yield a new ConversationState snapshot after every visible change
    of the answer. At most one answer streams at a time; the server keeps the
    conversation context, so only the question and the user id are sent.
    """
    base_url: str | None = None
    user_id: int | str | None = None
    timeout_s: float = 120.0

    state: ConversationState = field(default_factory=ConversationState)

    _config: ChatConfig = field(init=False, repr=False)
    _http: AgentHttpClient = field(init=False, repr=False)
    # Answer owned by the last aask() stream; cleared when that stream finishes.
    _async_target: str | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self._config = ChatConfig.from_env_or_value(self.base_url, self.user_id)
        self._http = AgentHttpClient(
            config=HttpConfig(base_url=self._config.base_url, timeout_s=self.timeout_s),
        )

    def __enter__(self) -> AgentChat:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    async def __aenter__(self) -> AgentChat:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def close(self) -> None:
        self._http.close()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def busy(self) -> bool:
        return self.state.pending_message is not None

    def _finalize_abandoned(self) -> None:
        # An async consumer that breaks out of aask() leaves the generator suspended
        # until the event loop closes it; finalize its answer now.
        target_id, self._async_target = self._async_target, None
        if target_id is not None and self._finalize(target_id, None):
            logging.debug("Finalized answer %s left pending by an abandoned stream", target_id)

    def _begin(self, question: str) -> str:
        if not question or not question.strip():
            raise ValueError("question must not be empty")
        self._finalize_abandoned()
        user_id, assistant_id = _new_ids()
        self.state = start_exchange(
            self.state,
            question,
            user_message_id=user_id,
            assistant_message_id=assistant_id,
        )
        return assistant_id

    def _payload(self, question: str) -> dict[str, Any]:
        return {"question": question, "user_id": self._config.user_id}

    def _consume(self, line: str, target_id: str) -> bool:
        event = parse_event(line)
        if isinstance(event, ParseFailure):
            logging.debug("Skipping stream line (%s): %r", event.reason, event.line)
            return False
        if isinstance(event, IgnoredEvent):
            logging.debug("Ignoring stream event of type %r", event.type)
            return False

        transition = reduce(self.state, target_id, event)
        self.state = transition.state
        if transition.change is Change.COMPLETED:
            message = self.state.get(target_id)
            logging.debug("Full response text: %s", message.text if message else "")
        return transition.change is not Change.NONE

    def _finalize(self, target_id: str, failure: TransportFailure | None) -> bool:
        transition = reduce(self.state, target_id, failure or stream_interrupted())
        self.state = transition.state
        return transition.change is not Change.NONE

    def ask(self, question: str) -> Iterator[ConversationState]:
        """
        Send a question and stream the answer.

        Args:
            question: The user's text.

        Yields:
            The conversation after the question is added and after every change of the answer.

        Raises:
            ValueError: If the question is blank.
            ChatBusyError: If another answer is still streaming.
        """
        target_id = self._begin(question)

        failure: TransportFailure | None = None
        try:
            yield self.state
            with self._http.stream_post_json(ASK_PATH, self._payload(question)) as r:
                self._http.raise_for_status(r)
                decoder = StreamFrameDecoder()
                for chunk in r.iter_bytes():
                    for line in decoder.feed(chunk):
                        if self._consume(line, target_id):
                            yield self.state
                for line in decoder.finish():
                    if self._consume(line, target_id):
                        yield self.state
        except (httpx.HTTPError, AgentAPIError) as e:
            logging.warning("Question failed: %r", e)
            failure = fallback_from_exception(e)
        finally:
            # Also runs when the consumer stops iterating early; nothing can be yielded then.
            finalized = self._finalize(target_id, failure)

        if finalized:
            yield self.state

    async def aask(self, question: str) -> AsyncIterator[ConversationState]:
        """
        Async version of ask().

        Breaking out of the loop early leaves the HTTP stream open until the event
        loop closes the generator; wrap it in `contextlib.aclosing` to release it at
        once. The abandoned answer is finalized by the next question or reset either way.
        """
        target_id = self._begin(question)
        self._async_target = target_id

        failure: TransportFailure | None = None
        try:
            yield self.state
            async with self._http.astream_post_json(ASK_PATH, self._payload(question)) as r:
                await self._http.araise_for_status(r)
                decoder = StreamFrameDecoder()
                async for chunk in r.aiter_bytes():
                    for line in decoder.feed(chunk):
                        if self._consume(line, target_id):
                            yield self.state
                for line in decoder.finish():
                    if self._consume(line, target_id):
                        yield self.state
        except (httpx.HTTPError, AgentAPIError) as e:
            logging.warning("Question failed: %r", e)
            failure = fallback_from_exception(e)
        finally:
            finalized = self._finalize(target_id, failure)
            if self._async_target == target_id:
                self._async_target = None

        if finalized:
            yield self.state

    def reset(self) -> None:
        """
        Ask the server to forget the conversation, then clear the local state.

        Raises:
            ChatBusyError: If an answer is still streaming.
            AgentAPIError: If the server rejects the reset; the local state is kept.
        """
        self._finalize_abandoned()
        if self.busy:
            raise ChatBusyError("Cannot reset while an answer is streaming")
        self._http.get(RESET_PATH)
        self.state = ConversationState()

    async def areset(self) -> None:
        self._finalize_abandoned()
        if self.busy:
            raise ChatBusyError("Cannot reset while an answer is streaming")
        await self._http.aget(RESET_PATH)
        self.state = ConversationState()
