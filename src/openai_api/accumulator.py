"""Assemble streamed fragments into one assistant message or function call."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Generator

from openai_api.types import FunctionCall, FunctionCallDelta, MessageRole, StreamFragment

_logger = logging.getLogger(__name__)

FUNCTION_CALL_FINISH_REASON = "function_call"


class ResponseKind(enum.Enum):
    UNDETERMINED = "undetermined"
    PLAIN_TEXT = "plain_text"
    FUNCTION_CALL = "function_call"


@dataclass
class AccumulatedResponse:
    """What a finished stream amounted to.

    ``role`` is ``None`` when no fragment ever resolved the response
    type; callers should then not record anything.
    """

    kind: ResponseKind
    role: MessageRole | None = None
    content: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)


class DeltaAccumulator:
    """Classifies a streaming response and buffers it.

    States:
      undetermined  - no role or function-call evidence seen yet
      plain_text    - text deltas are surfaced as they arrive (terminal)
      function_call - argument chunks are buffered per function name and
                      nothing is surfaced until the stream ends (terminal)

    The first fragment carrying a role, a function-call delta, or a
    ``function_call`` finish reason resolves the state.  Function-call
    evidence wins over a role in the same fragment.

    With ``function_aware=False`` only roles resolve the state, so the
    response is always treated as text.
    """

    def __init__(self, function_aware: bool = True) -> None:
        self.function_aware = function_aware
        self.kind = ResponseKind.UNDETERMINED
        self.role: MessageRole | None = None
        self._text: list[str] = []
        # name -> argument chunks; insertion order is first-seen order
        self._function_args: dict[str, list[str]] = {}
        self._active_function: str | None = None

    @property
    def text(self) -> str:
        return "".join(self._text)

    def feed(self, fragment: StreamFragment) -> Generator[tuple[str, Any], None, None]:
        """Feed one fragment.  Yields ``(event_type, data)`` pairs.

        event_type: ``"resolved"`` (data is the ``MessageRole``, emitted at
        most once per accumulator) or ``"text"`` (data is the token).
        """
        if self.kind is ResponseKind.UNDETERMINED:
            role = self._resolve(fragment)
            if role is not None:
                yield ("resolved", role)

        if self.kind is ResponseKind.FUNCTION_CALL:
            self._buffer_function_call(fragment.delta_function_call)
            return

        if fragment.delta_content:
            self._text.append(fragment.delta_content)
            yield ("text", fragment.delta_content)

    def finish(self) -> AccumulatedResponse:
        """Call when the stream ends cleanly."""
        calls: list[FunctionCall] = []
        if self.kind is ResponseKind.FUNCTION_CALL:
            calls = [
                FunctionCall(name=name, arguments="".join(chunks))
                for name, chunks in self._function_args.items()
            ]
        return AccumulatedResponse(
            kind=self.kind,
            role=self.role,
            content=self.text,
            function_calls=calls,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, fragment: StreamFragment) -> MessageRole | None:
        if self.function_aware and (
            fragment.delta_function_call is not None
            or fragment.finish_reason == FUNCTION_CALL_FINISH_REASON
            or fragment.delta_role is MessageRole.FUNCTION
        ):
            self.kind = ResponseKind.FUNCTION_CALL
            self.role = MessageRole.FUNCTION
            return self.role
        if fragment.delta_role is not None:
            self.kind = ResponseKind.PLAIN_TEXT
            self.role = fragment.delta_role
            return self.role
        return None

    def _buffer_function_call(self, delta: FunctionCallDelta | None) -> None:
        if delta is None:
            return
        if delta.name:
            self._active_function = delta.name
            self._function_args.setdefault(delta.name, [])
        if delta.arguments_chunk:
            if self._active_function is None:
                _logger.warning(
                    "Dropping function-call arguments received before any function name",
                )
                return
            self._function_args[self._active_function].append(delta.arguments_chunk)
