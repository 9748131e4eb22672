"""Chat completion endpoint: request/response models and HTTP calls."""

from __future__ import annotations

import copy
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

from openai_api.config import DEFAULT_MODEL
from openai_api.errors import APIError
from openai_api.functions import Function, serialize_function_call
from openai_api.streaming import attach_metadata, decode_stream, metadata_from_headers
from openai_api.transport import HttpTransport
from openai_api.types import (
    FunctionCallDelta,
    Message,
    MessageRole,
    ResultMetadata,
    StreamFragment,
)

if TYPE_CHECKING:
    from openai_api.conversation import Conversation

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass
class ChatRequest:
    """Parameters of one chat completion call.

    ``None`` fields are left out of the payload; ``extra`` is merged in
    verbatim for tunables not modelled here.
    """

    model: str | None = None
    messages: list[Message] = field(default_factory=list)
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stream: bool = False
    stop: str | list[str] | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, float] | None = None
    user: str | None = None
    functions: list[Function] | None = None
    function_call: str | dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> ChatRequest:
        """Independent clone; later edits to either side never leak."""
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ChatRequest:
        """Build from a plain mapping (e.g. YAML); unknown keys go to ``extra``.

        ``messages`` is ignored: a conversation's history is always the
        prompt.
        """
        known = {f.name for f in fields(cls)}
        if "messages" in raw:
            _logger.warning("Ignoring 'messages' in request defaults; history is the prompt")
        simple = known - {"messages", "functions", "extra"}
        kwargs = {k: v for k, v in raw.items() if k in simple}
        req = cls(**kwargs)
        req.extra = {k: v for k, v in raw.items() if k not in known}
        req.extra.update(raw.get("extra") or {})
        if raw.get("functions"):
            req.functions = [
                f if isinstance(f, Function) else Function(**f) for f in raw["functions"]
            ]
        return req

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_payload() for m in self.messages],
            "stream": self.stream,
        }
        for name in (
            "temperature", "top_p", "n", "stop", "max_tokens",
            "presence_penalty", "frequency_penalty", "logit_bias", "user",
        ):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.functions:
            payload["functions"] = [f.to_payload() for f in self.functions]
        if self.function_call is not None:
            payload["function_call"] = serialize_function_call(self.function_call)
        payload.update(self.extra)
        return payload


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class ChatUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ChatChoice:
    """One candidate answer.

    Non-streaming results fill ``message``; streamed results fill
    ``delta``.
    """

    index: int = 0
    message: Message | None = None
    delta: StreamFragment | None = None
    finish_reason: str | None = None


def _parse_delta(index: int, delta: dict[str, Any], finish_reason: str | None) -> StreamFragment:
    content = delta.get("content")
    if content is not None and not isinstance(content, str):
        raise ValueError(f"delta content must be a string, got {type(content).__name__}")
    role = delta.get("role")
    if role is not None and not isinstance(role, str):
        raise ValueError(f"delta role must be a string, got {type(role).__name__}")
    fc = delta.get("function_call")
    if fc is not None and not isinstance(fc, dict):
        raise ValueError(f"delta function_call must be an object, got {type(fc).__name__}")
    return StreamFragment(
        choice_index=index,
        delta_role=MessageRole.parse(role),
        delta_content=content,
        delta_function_call=(
            FunctionCallDelta(name=fc.get("name"), arguments_chunk=fc.get("arguments"))
            if fc is not None else None
        ),
        finish_reason=finish_reason,
    )


@dataclass
class ChatResult:
    """Parsed chat completion (or one streamed chunk of one)."""

    id: str = ""
    object: str = ""
    created: int | None = None
    model: str = ""
    choices: list[ChatChoice] = field(default_factory=list)
    usage: ChatUsage | None = None
    metadata: ResultMetadata = field(default_factory=ResultMetadata)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatResult:
        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            index = ch.get("index", i)
            finish = ch.get("finish_reason")
            msg = ch.get("message")
            delta = ch.get("delta")
            choices.append(ChatChoice(
                index=index,
                message=Message.from_payload(msg) if msg is not None else None,
                delta=_parse_delta(index, delta, finish) if delta is not None else None,
                finish_reason=finish,
            ))
        usage_raw = data.get("usage")
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        return cls(
            id=data.get("id", ""),
            object=data.get("object", ""),
            created=data.get("created"),
            model=data.get("model") or "",
            choices=choices,
            usage=usage,
        )

    def first_fragment(self) -> StreamFragment | None:
        """Delta of the first choice, or ``None`` for a chunk without one."""
        if not self.choices:
            return None
        return self.choices[0].delta

    def __str__(self) -> str:
        if self.choices and self.choices[0].message is not None:
            return self.choices[0].message.content or ""
        return ""


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

class ChatEndpoint:
    """``chat/completions`` calls, plus a factory for conversations."""

    endpoint = "chat/completions"

    def __init__(
        self,
        transport: HttpTransport,
        default_model: str = DEFAULT_MODEL,
        default_request: ChatRequest | None = None,
    ) -> None:
        self.transport = transport
        self.default_model = default_model
        self.default_request = default_request

    def _payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        payload = request.to_payload()
        payload["model"] = request.model or self.default_model
        payload["stream"] = stream
        return payload

    async def create_chat_completion(self, request: ChatRequest) -> ChatResult:
        """Send a non-streaming chat completion request."""
        payload = self._payload(request, stream=False)
        resp = await self.transport.request("POST", self.endpoint, json=payload)
        try:
            data = resp.json()
        except ValueError as e:
            raise APIError(
                f"Invalid JSON in chat completion response: {e}",
                status_code=resp.status_code,
                body=resp.text,
            ) from e
        if not isinstance(data, dict):
            raise APIError(
                "Chat completion response is not a JSON object",
                status_code=resp.status_code,
                body=resp.text,
            )
        result = ChatResult.from_dict(data)
        attach_metadata(result, metadata_from_headers(resp.headers))
        _logger.debug(
            "Chat completion %s: %d choice(s), request_id=%s",
            result.id, len(result.choices), result.metadata.request_id,
        )
        return result

    async def stream_chat_completion(self, request: ChatRequest) -> AsyncIterator[ChatResult]:
        """Stream a chat completion, yielding each chunk as it arrives.

        Closing the generator early closes the underlying response.
        """
        payload = self._payload(request, stream=True)
        async with self.transport.stream("POST", self.endpoint, json=payload) as resp:
            async with aclosing(decode_stream(resp, ChatResult.from_dict)) as results:
                async for result in results:
                    yield result

    def create_conversation(
        self,
        model: str | None = None,
        default_request: ChatRequest | None = None,
    ) -> Conversation:
        from openai_api.conversation import Conversation

        return Conversation(
            self,
            model=model or self.default_model,
            default_request=default_request or self.default_request,
        )
