"""Async client for OpenAI-style chat completion APIs."""

from openai_api.accumulator import AccumulatedResponse, DeltaAccumulator, ResponseKind
from openai_api.api import OpenAIAPI
from openai_api.chat import ChatChoice, ChatEndpoint, ChatRequest, ChatResult, ChatUsage
from openai_api.config import APIAuthentication, ClientConfig, load_config
from openai_api.conversation import Conversation
from openai_api.errors import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    OpenAIError,
    StreamDecodeError,
)
from openai_api.functions import Function
from openai_api.types import (
    FunctionCall,
    FunctionResult,
    Message,
    MessageRole,
    ResultMetadata,
    StreamFragment,
)

__version__ = "0.1.0"

__all__ = [
    "AccumulatedResponse",
    "APIAuthentication",
    "APIConnectionError",
    "APIError",
    "AuthenticationError",
    "ChatChoice",
    "ChatEndpoint",
    "ChatRequest",
    "ChatResult",
    "ChatUsage",
    "ClientConfig",
    "Conversation",
    "DeltaAccumulator",
    "Function",
    "FunctionCall",
    "FunctionResult",
    "load_config",
    "Message",
    "MessageRole",
    "OpenAIAPI",
    "OpenAIError",
    "ResponseKind",
    "ResultMetadata",
    "StreamDecodeError",
    "StreamFragment",
]
