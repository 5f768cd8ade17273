from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class AgentChatError(RuntimeError):
    """Base error of the library."""


class ChatBusyError(AgentChatError):
    """A question or reset was attempted while an answer is still streaming."""


@dataclass(slots=True)
class AgentAPIError(AgentChatError):
    """
    Non-2xx answer from the agent server.

    The server is a FastAPI app, so error bodies usually look like:
    {
        "detail": "..." | [{"loc": [...], "msg": "...", "type": "..."}]
    }

    `message` holds the most readable text found in the body; `detail` keeps the
    structured value when there is one.
    """
    status_code: int
    message: str
    body: str | None = None
    detail: Any | None = None

    def __str__(self) -> str:
        parts = [f"AgentAPIError(status_code={self.status_code}"]
        parts.append(f", message={self.message!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"AgentAPIError("
            f"status_code={self.status_code}, "
            f"message={self.message!r}, "
            f"detail={self.detail!r}, "
            f"body={'...' if self.body else None})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dict for structured logging."""
        return {
            "status_code": self.status_code,
            "message": self.message,
            "detail": self.detail,
            "body": self.body,
        }

    @property
    def is_client_error(self) -> bool:
        """True for 4xx answers."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx answers."""
        return 500 <= self.status_code < 600
