"""
This module resolves the connection settings for the agent server.
Values passed explicitly win over environment variables; the base URL has a default, the user id does not.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_BASE_URL = "AGENT_CHAT_BASE_URL"
ENV_USER_ID = "AGENT_CHAT_USER_ID"

DEFAULT_BASE_URL = "https://jetb-agent-server-281983614239.asia-northeast1.run.app"


@dataclass(frozen=True, slots=True)
class ChatConfig:
    """
    Settings shared by every request of a chat session.
    The user id is sent with each question so the server can find its conversation.
    """

    base_url: str
    user_id: int

    @staticmethod
    def from_env_or_value(base_url: str | None = None, user_id: int | str | None = None) -> ChatConfig:
        """
        Create a ChatConfig from explicit values or environment variables.

        Args:
            base_url: Optional service root; falls back to AGENT_CHAT_BASE_URL, then the default server.
            user_id: Optional user id; falls back to AGENT_CHAT_USER_ID.

        Returns:
            A ChatConfig with a normalized base URL and an integer user id.

        Raises:
            ValueError: If no user id is available or it is not an integer.
        """
        url = base_url or os.getenv(ENV_BASE_URL) or DEFAULT_BASE_URL
        raw_user_id = user_id if user_id is not None else os.getenv(ENV_USER_ID)

        if raw_user_id is None or (isinstance(raw_user_id, str) and not raw_user_id.strip()):
            raise ValueError(
                "User id missing. Define AGENT_CHAT_USER_ID in environment or pass user_id value"
            )
        try:
            uid = int(raw_user_id)
        except (TypeError, ValueError):
            raise ValueError(f"User id must be an integer, got {raw_user_id!r}") from None

        return ChatConfig(base_url=url.rstrip("/"), user_id=uid)
