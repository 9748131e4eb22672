"""Stateful multi-turn chat on top of the chat completion endpoint.

A :class:`Conversation` owns an ordered message history and a set of
request parameters.  Every call clones the parameters and snapshots the
history, sends them, and appends the model's answer to the history.

Three ways to get an answer:

- :meth:`Conversation.get_response` - one blocking request.
- :meth:`Conversation.stream_response` /
  :meth:`Conversation.stream_response_enumerable` - text tokens as they
  arrive.
- :meth:`Conversation.stream_response_with_functions` - text tokens, or a
  fully buffered batch of function calls handed to a callback whose
  result is fed back into the history.
"""

from __future__ import annotations

import copy
import inspect
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, Callable

from openai_api.accumulator import AccumulatedResponse, DeltaAccumulator, ResponseKind
from openai_api.chat import ChatRequest, ChatResult
from openai_api.config import DEFAULT_MODEL
from openai_api.types import FunctionCall, FunctionResult, Message, MessageRole

if TYPE_CHECKING:
    from openai_api.chat import ChatEndpoint

_logger = logging.getLogger(__name__)

# Handlers may be plain functions or coroutine functions
TokenHandler = Callable[[str], Any]
TypeResolvedHandler = Callable[[MessageRole], Any]
FunctionCallHandler = Callable[[list[FunctionCall]], Any]  # -> FunctionResult | None
AfterFunctionCallHandler = Callable[[FunctionResult, Message], Any]

MessageRef = Message | uuid.UUID


async def _invoke(handler: Callable[..., Any] | None, *args: Any) -> Any:
    """Call *handler* and await its result if needed.  Errors propagate."""
    if handler is None:
        return None
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Conversation:
    """An ongoing chat with the model.

    Parameters
    ----------
    endpoint:
        Chat endpoint used for every request.
    model:
        Model name; overrides the one in *default_request*.
    default_request:
        Template for :attr:`request_parameters` (copied, never shared).
    """

    def __init__(
        self,
        endpoint: ChatEndpoint,
        model: str | None = None,
        default_request: ChatRequest | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._request = default_request.copy() if default_request else ChatRequest()
        if model:
            self._request.model = model
        if not self._request.model:
            self._request.model = DEFAULT_MODEL
        self._request.n = 1
        self._request.stream = False
        self._messages: list[Message] = []
        self._most_recent_api_result: ChatResult | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def request_parameters(self) -> ChatRequest:
        """Parameters used for every call (temperature, functions, ...)."""
        return self._request

    @property
    def model(self) -> str | None:
        return self._request.model

    @model.setter
    def model(self, value: str) -> None:
        self._request.model = value

    @property
    def messages(self) -> list[Message]:
        """Copy of the history, in prompt order."""
        return list(self._messages)

    @property
    def most_recent_api_result(self) -> ChatResult | None:
        """Last result received (for streams, the last chunk)."""
        return self._most_recent_api_result

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def append_message(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def insert_message(self, position: int, message: Message) -> Message:
        self._messages.insert(position, message)
        return message

    def append_user_input(
        self,
        content: str,
        name: str | None = None,
        id: uuid.UUID | None = None,
    ) -> Message:
        return self.append_message(self._new_message(MessageRole.USER, content, id, name))

    def append_system_message(self, content: str, id: uuid.UUID | None = None) -> Message:
        return self.append_message(self._new_message(MessageRole.SYSTEM, content, id))

    def prepend_system_message(self, content: str, id: uuid.UUID | None = None) -> Message:
        return self.insert_message(0, self._new_message(MessageRole.SYSTEM, content, id))

    def append_example_chatbot_output(self, content: str, id: uuid.UUID | None = None) -> Message:
        return self.append_message(self._new_message(MessageRole.ASSISTANT, content, id))

    def remove_message(self, ref: MessageRef) -> bool:
        msg = self._find(ref)
        if msg is None:
            return False
        self._messages.remove(msg)
        return True

    def edit_message_content(self, ref: MessageRef, content: str) -> bool:
        msg = self._find(ref)
        if msg is None:
            return False
        msg.content = content
        return True

    def edit_message_role(self, ref: MessageRef, role: MessageRole) -> bool:
        msg = self._find(ref)
        if msg is None:
            return False
        msg.role = role
        return True

    def _find(self, ref: MessageRef) -> Message | None:
        target = ref.id if isinstance(ref, Message) else ref
        return next((m for m in self._messages if m.id == target), None)

    @staticmethod
    def _new_message(
        role: MessageRole,
        content: str,
        id: uuid.UUID | None = None,
        name: str | None = None,
    ) -> Message:
        if id is None:
            return Message(role=role, content=content, name=name)
        return Message(role=role, content=content, name=name, id=id)

    def _build_request(self) -> ChatRequest:
        """Clone the parameters and snapshot the history for one call."""
        req = self._request.copy()
        req.messages = [copy.copy(m) for m in self._messages]
        return req

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def get_response(self) -> str | None:
        """Send the history and append the first choice to it.

        Returns the reply text, or ``None`` if the API returned no choices.
        """
        result = await self._endpoint.create_chat_completion(self._build_request())
        self._most_recent_api_result = result

        if not result.choices or result.choices[0].message is None:
            _logger.warning("Chat completion %s returned no choices", result.id)
            return None
        # History gets its own record; the API result stays as received
        message = self.append_message(copy.copy(result.choices[0].message))
        return message.content

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream_response_enumerable(
        self,
        message_id: uuid.UUID | None = None,
    ) -> AsyncIterator[str]:
        """Yield reply tokens as they arrive.

        Function calls are not recognized in this mode.  When the stream
        ends, the full reply is appended to the history (under
        *message_id* if given).
        """
        acc = DeltaAccumulator(function_aware=False)
        stream = self._endpoint.stream_chat_completion(self._build_request())
        async with aclosing(stream) as results:
            async for result in results:
                self._most_recent_api_result = result
                fragment = result.first_fragment()
                if fragment is None:
                    continue
                for event, data in acc.feed(fragment):
                    if event == "text":
                        yield data

        self._record_text(acc.finish(), message_id)

    async def stream_response(self, on_token: TokenHandler) -> None:
        """Call *on_token* with each reply token, in order."""
        async with aclosing(self.stream_response_enumerable()) as tokens:
            async for token in tokens:
                await _invoke(on_token, token)

    async def stream_response_with_functions(
        self,
        message_id: uuid.UUID | None = None,
        on_token: TokenHandler | None = None,
        on_function_call: FunctionCallHandler | None = None,
        on_type_resolved: TypeResolvedHandler | None = None,
        after_function_call: AfterFunctionCallHandler | None = None,
    ) -> AccumulatedResponse:
        """Stream a reply that may be a function call.

        *on_type_resolved* fires once, as soon as the reply is known to be
        text (with its role) or a function call (``MessageRole.FUNCTION``).
        Text replies stream through *on_token* and are appended to the
        history at the end.  Function calls are buffered until the stream
        ends, then handed to *on_function_call* in one batch; a non-empty
        ``FunctionResult`` it returns is appended as a ``function``
        message and passed with that message to *after_function_call*.
        """
        acc = DeltaAccumulator(function_aware=True)
        stream = self._endpoint.stream_chat_completion(self._build_request())
        async with aclosing(stream) as results:
            async for result in results:
                self._most_recent_api_result = result
                fragment = result.first_fragment()
                if fragment is None:
                    continue
                for event, data in acc.feed(fragment):
                    if event == "resolved":
                        await _invoke(on_type_resolved, data)
                    elif event == "text":
                        await _invoke(on_token, data)

        response = acc.finish()
        if response.kind is ResponseKind.FUNCTION_CALL:
            await self._dispatch_function_calls(
                response.function_calls, on_function_call, after_function_call,
            )
        else:
            self._record_text(response, message_id)
        return response

    async def _dispatch_function_calls(
        self,
        calls: list[FunctionCall],
        on_function_call: FunctionCallHandler | None,
        after_function_call: AfterFunctionCallHandler | None,
    ) -> None:
        if not calls:
            _logger.warning("Function-call response carried no function name")
            return
        _logger.debug("Dispatching function calls: %s", [c.name for c in calls])
        result = await _invoke(on_function_call, calls)
        if not result:
            return
        message = self.append_message(Message(
            role=MessageRole.FUNCTION,
            name=result.name,
            content=result.content,
        ))
        await _invoke(after_function_call, result, message)

    def _record_text(self, response: AccumulatedResponse, message_id: uuid.UUID | None) -> None:
        if response.role is None:
            return
        self.append_message(
            self._new_message(response.role, response.content, message_id),
        )
