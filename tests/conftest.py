from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from openai_api.api import OpenAIAPI
from openai_api.config import APIAuthentication


# ---------------------------------------------------------------------------
# Wire builders
# ---------------------------------------------------------------------------

def chunk(
    role: str | None = None,
    content: str | None = None,
    function_call: dict[str, Any] | None = None,
    finish_reason: str | None = None,
    model: str = "gpt-test",
) -> dict[str, Any]:
    """One streamed chat completion chunk (OpenAI shape)."""
    delta: dict[str, Any] = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if function_call is not None:
        delta["function_call"] = function_call
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": model,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def sse_body(*chunks: dict[str, Any], done: bool = True) -> bytes:
    """Encode chunks as an event stream, optionally ending with ``[DONE]``."""
    lines = [f"data: {json.dumps(c)}\n\n" for c in chunks]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def completion(content: str = "Hello!", role: str = "assistant") -> dict[str, Any]:
    """Non-streaming chat completion body."""
    return {
        "id": "chatcmpl-2",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-test",
        "choices": [{
            "index": 0,
            "message": {"role": role, "content": content},
            "finish_reason": "stop",
        }],
        "usage": {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12},
    }


# ---------------------------------------------------------------------------
# Fake server
# ---------------------------------------------------------------------------

class FakeServer:
    """Queue of canned responses; records every request it receives."""

    def __init__(self) -> None:
        self.responses: list[httpx.Response | Exception] = []
        self.requests: list[httpx.Request] = []

    def add_stream(self, *chunks: dict[str, Any], headers: dict[str, str] | None = None) -> None:
        self.responses.append(httpx.Response(
            200,
            content=sse_body(*chunks),
            headers={"content-type": "text/event-stream", **(headers or {})},
        ))

    def add_json(self, data: dict[str, Any], status: int = 200,
                 headers: dict[str, str] | None = None) -> None:
        self.responses.append(httpx.Response(status, json=data, headers=headers))

    def add(self, response: httpx.Response | Exception) -> None:
        self.responses.append(response)

    def payload(self, i: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[i].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
async def api(server: FakeServer):
    client = mock_client(server.handler)
    api = OpenAIAPI(APIAuthentication(api_key="sk-test"), http_client=client)
    yield api
    await client.aclose()
