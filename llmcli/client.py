"""HTTP client for OpenAI-compatible chat-completion endpoints.

Example:
    async with ChatClient(api_url, api_key) as client:
        result = await client.complete(request)

Streaming example:
    async with ChatClient(api_url, api_key) as client:
        async for fragment in client.stream(request, on_complete=save):
            print(fragment, end="")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx

from llmcli.errors import MalformedEventPayloadError, NetworkFailureError
from llmcli.schemas.messages import ChatRequest
from llmcli.schemas.streaming import CompletionResult
from llmcli.streaming.decoder import aiter_sse_events, aiter_text
from llmcli.streaming.reducer import CompletionCallback, stream_completion

logger = logging.getLogger(__name__)


def _short_error_reason(error: httpx.HTTPStatusError) -> str:
    """Pull the API's error message out of a failed response, if present."""
    try:
        body = error.response.json()
        message = body["error"]["message"]
        if isinstance(message, str) and message:
            return message[:200]
    except (ValueError, KeyError, TypeError):
        pass
    return error.response.reason_phrase or "request failed"


class ChatClient:
    """Async client for a single chat-completion endpoint.

    Args:
        api_url: Full URL of the chat-completion endpoint.
        api_key: Bearer token for the Authorization header.
        organization: Optional value for the OpenAI-Organization header.
        timeout: Seconds before the request times out; None disables it.
        transport: Optional httpx transport, mainly for tests.
        max_buffer_size: Optional cap on pending SSE data per stream.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        organization: str | None = None,
        timeout: float | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_buffer_size: int | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._organization = organization
        self._timeout = timeout
        self._transport = transport
        self._max_buffer_size = max_buffer_size
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        if self._organization:
            headers["OpenAI-Organization"] = self._organization
        return headers

    async def __aenter__(self) -> ChatClient:
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=self._headers(),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("ChatClient must be used as an async context manager")
        return self._client

    async def complete(self, request: ChatRequest) -> CompletionResult:
        """POST a non-streaming request and return the full response.

        Raises:
            NetworkFailureError: On transport errors or a non-2xx status.
            MalformedEventPayloadError: If the body has no message content.
        """
        client = self._require_client()
        payload = request.model_copy(update={"stream": False}).to_payload()
        logger.debug("POST %s (model=%s, stream=False)", self._api_url, request.model)
        try:
            response = await client.post(self._api_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkFailureError(
                f"API returned {e.response.status_code}: {_short_error_reason(e)}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise NetworkFailureError(f"Request failed: {e}") from e

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedEventPayloadError(
                response.text, "no choices[0].message.content",
            ) from e
        if content is not None and not isinstance(content, str):
            raise MalformedEventPayloadError(response.text, "content is not a string")
        return CompletionResult(text=(content or "").strip(), data=data)

    async def stream(
        self,
        request: ChatRequest,
        on_complete: CompletionCallback | None = None,
    ) -> AsyncIterator[str]:
        """POST a streaming request and yield display fragments.

        on_complete receives the assembled CompletionResult once the
        server sends ``[DONE]``.

        Raises:
            NetworkFailureError: On transport errors or a non-2xx status,
                before any fragment is yielded.
            MalformedEventPayloadError: If an event payload is not a
                completion delta; fragments already yielded stand.
        """
        client = self._require_client()
        payload = request.model_copy(update={"stream": True}).to_payload()
        logger.debug("POST %s (model=%s, stream=True)", self._api_url, request.model)
        try:
            async with client.stream("POST", self._api_url, json=payload) as response:
                if not response.is_success:
                    await response.aread()
                    try:
                        response.raise_for_status()
                    except httpx.HTTPStatusError as e:
                        raise NetworkFailureError(
                            f"API returned {e.response.status_code}: "
                            f"{_short_error_reason(e)}",
                            status_code=e.response.status_code,
                        ) from e

                events = aiter_sse_events(
                    aiter_text(response.aiter_bytes()),
                    max_buffer_size=self._max_buffer_size,
                )
                async for fragment in stream_completion(events, on_complete):
                    yield fragment
        except httpx.HTTPError as e:
            raise NetworkFailureError(f"Request failed: {e}") from e
