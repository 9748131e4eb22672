"""Entry point object tying configuration, transport and endpoints together."""

from __future__ import annotations

import logging

import httpx

from openai_api.chat import ChatEndpoint, ChatRequest
from openai_api.config import APIAuthentication, ClientConfig
from openai_api.transport import HttpTransport

_logger = logging.getLogger(__name__)


class OpenAIAPI:
    """Client for the API.

    Usage::

        async with OpenAIAPI(APIAuthentication("sk-...")) as api:
            chat = api.chat.create_conversation()
            chat.append_user_input("Hello!")
            print(await chat.get_response())

    Parameters
    ----------
    auth:
        Credentials.  Defaults to ``config.auth``, then
        ``APIAuthentication.default()``.
    config:
        URL format, API version, timeout and request defaults.
    http_client:
        Optional ``httpx.AsyncClient`` to send requests with.
    """

    def __init__(
        self,
        auth: APIAuthentication | str | None = None,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        if isinstance(auth, str):
            auth = APIAuthentication(api_key=auth)
        if auth is None:
            auth = self.config.auth if self.config.auth.is_set else APIAuthentication.default()
        if not auth.is_set:
            _logger.warning("No API key configured; requests will fail until one is set")

        self.transport = HttpTransport(
            auth=auth,
            url_format=self.config.url_format,
            api_version=self.config.api_version,
            timeout=self.config.timeout,
            client=http_client,
        )
        default_request = (
            ChatRequest.from_dict(self.config.default_request)
            if self.config.default_request else None
        )
        self.chat = ChatEndpoint(
            self.transport,
            default_model=self.config.default_model,
            default_request=default_request,
        )

    @property
    def auth(self) -> APIAuthentication:
        return self.transport.auth

    @auth.setter
    def auth(self, value: APIAuthentication) -> None:
        self.transport.auth = value

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> OpenAIAPI:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
