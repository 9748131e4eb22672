"""Shared data types for the chat API client."""

from __future__ import annotations

import enum
import json
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class MessageRole(enum.Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"

    @classmethod
    def parse(cls, value: str | MessageRole | None) -> MessageRole | None:
        """Map a wire role string to a member (``None`` passes through)."""
        if value is None or isinstance(value, MessageRole):
            return value
        return cls(value.lower())


@dataclass
class FunctionCall:
    """A complete function invocation requested by the model.

    ``arguments`` is the raw JSON text exactly as the model produced it.
    """

    name: str
    arguments: str = ""

    def parsed_arguments(self) -> Any:
        """Decode ``arguments``; an empty string decodes to ``{}``."""
        return json.loads(self.arguments) if self.arguments else {}

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass
class FunctionResult:
    """Output of a caller-side function, fed back to the model."""

    name: str
    content: str

    @classmethod
    def from_value(cls, name: str, value: Any) -> FunctionResult:
        """Build a result by JSON-encoding *value* (``None`` becomes ``{}``)."""
        content = "{}" if value is None else json.dumps(value)
        return cls(name=name, content=content)

    def __bool__(self) -> bool:
        return bool(self.name or self.content)


@dataclass
class Message:
    """One entry of a conversation history.

    Identity is ``id``; ``role`` and ``content`` may be edited in place.
    """

    role: MessageRole
    content: str | None = ""
    name: str | None = None
    function_call: FunctionCall | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the wire shape (``id`` is client-side only)."""
        payload: dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
        }
        if self.name:
            payload["name"] = self.name
        if self.function_call is not None:
            payload["function_call"] = self.function_call.to_payload()
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Message:
        fc = data.get("function_call")
        return cls(
            role=MessageRole.parse(data.get("role")) or MessageRole.ASSISTANT,
            content=data.get("content"),
            name=data.get("name"),
            function_call=(
                FunctionCall(name=fc.get("name") or "", arguments=fc.get("arguments") or "")
                if fc else None
            ),
        )


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

@dataclass
class FunctionCallDelta:
    """Partial function call carried by one stream fragment."""

    name: str | None = None
    arguments_chunk: str | None = None


@dataclass
class StreamFragment:
    """The part of one streamed result the accumulator cares about."""

    choice_index: int = 0
    delta_role: MessageRole | None = None
    delta_content: str | None = None
    delta_function_call: FunctionCallDelta | None = None
    finish_reason: str | None = None


# ---------------------------------------------------------------------------
# Response metadata
# ---------------------------------------------------------------------------

@dataclass
class ResultMetadata:
    """Response-level metadata taken from HTTP headers.

    Every field is best-effort and may be ``None``.
    """

    organization: str | None = None
    request_id: str | None = None
    processing_time: timedelta | None = None
    api_version: str | None = None
    model: str | None = None
