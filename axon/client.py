"""
Chat-completion transport for an OpenAI-compatible local server.

Requests go through the openai client, but response bodies are read raw: the
non-streaming call decodes the JSON itself and the streaming call hands back
the SSE lines untouched so the assembler can rebuild fragmented tool calls.
"""

import json
from typing import Any, Dict, Iterator, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI
from pydantic import ValidationError

from .config import LLMSettings
from .debug_log import DebugLogBase, NullDebugLog
from .errors import DecodeError, EmptyResponseError, ProtocolError, TransportError
from .models import ChatCompletionResponse, ChatRequest, Message


def _error_message(body: str) -> str:
    """Pull error.message out of an error body, falling back to the raw text."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return body


class LLMClient:
    """
    Thin wrapper around the openai client pointed at `{base_url}/v1`.

    Retries are disabled; every request is bounded by the configured timeout
    and mirrored to the debug log.
    """

    def __init__(
        self,
        settings: LLMSettings,
        log: Optional[DebugLogBase] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings
        self.log = log or NullDebugLog()
        self.base_url = settings.base_url.rstrip("/")
        self._client = OpenAI(
            api_key=settings.api_key,
            base_url=f"{self.base_url}/v1",
            timeout=settings.timeout,
            max_retries=0,
            http_client=http_client,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1/chat/completions"

    def build_request(
        self,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        stream: bool = False,
    ) -> ChatRequest:
        return ChatRequest(
            model=self.settings.model,
            messages=messages,
            temperature=self.settings.temperature,
            tools=tools or [],
            tool_choice="auto" if tools else None,
            max_tokens=self.settings.max_tokens,
            stream=stream,
        )

    def chat_completion(self, request: ChatRequest) -> ChatCompletionResponse:
        """
        Send a single-shot request and decode the reply.

        Raises:
            TransportError: Network failure or timeout.
            ProtocolError: Non-2xx status or an error field in the body.
            DecodeError: The body is not JSON or not a completion.
            EmptyResponseError: The reply has no choices.
        """
        body = request.to_wire()
        body["stream"] = False
        self.log.request("POST", self.endpoint, body)

        try:
            raw = self._client.chat.completions.with_raw_response.create(**body)
        except APIStatusError as e:
            text = e.response.text
            self.log.response(e.status_code, text)
            raise ProtocolError(
                f"LLM API returned status {e.status_code}: {_error_message(text)}",
                status_code=e.status_code,
            ) from e
        except (APITimeoutError, APIConnectionError) as e:
            self.log.log(f"❌ REQUEST FAILED: {e}")
            raise TransportError(f"failed to send request: {e}") from e

        text = raw.http_response.text
        self.log.response(raw.http_response.status_code, text)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"failed to decode response: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError("failed to decode response: expected a JSON object")

        if data.get("error"):
            raise ProtocolError(
                f"LLM API error: {_error_message(text)}",
                status_code=raw.http_response.status_code,
            )

        try:
            response = ChatCompletionResponse.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"failed to decode response: {e}") from e

        if not response.choices:
            raise EmptyResponseError("no choices in response")
        return response

    def stream_chat_completion(self, request: ChatRequest) -> Iterator[str]:
        """
        Send a streaming request and yield the raw SSE lines as they arrive.

        The HTTP response stays open while the generator is alive; closing
        the generator closes the response.

        Raises:
            TransportError: Network failure, timeout, or a broken stream.
            ProtocolError: Non-2xx status.
        """
        body = request.to_wire()
        body["stream"] = True
        self.log.request("POST", self.endpoint, body)

        try:
            with self._client.chat.completions.with_streaming_response.create(
                **body,
                extra_headers={"Accept": "text/event-stream"},
            ) as response:
                self.log.response(response.status_code)
                try:
                    yield from response.iter_lines()
                except httpx.HTTPError as e:
                    self.log.log(f"❌ STREAM READ FAILED: {e}")
                    raise TransportError(f"error reading stream: {e}") from e
        except APIStatusError as e:
            text = e.response.text
            self.log.response(e.status_code, text)
            raise ProtocolError(
                f"LLM API returned status {e.status_code}: {_error_message(text)}",
                status_code=e.status_code,
            ) from e
        except (APITimeoutError, APIConnectionError) as e:
            self.log.log(f"❌ REQUEST FAILED: {e}")
            raise TransportError(f"failed to send request: {e}") from e

    def chat(self, messages: List[Message]) -> str:
        """Single-shot call without tools; returns the assistant's text."""
        response = self.chat_completion(self.build_request(messages))
        return response.message.content

    def close(self) -> None:
        self._client.close()
