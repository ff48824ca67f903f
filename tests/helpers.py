"""Stream builders and a scripted model client shared by the tests."""

import json
from typing import Any, Dict, List, Optional

from axon.config import LLMSettings
from axon.models import ChatCompletionResponse, ChatRequest, Message


def sse(event: Dict[str, Any]) -> str:
    return "data: " + json.dumps(event)


def text_event(content: str, finish_reason: Optional[str] = None) -> str:
    return sse({"choices": [{"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}]})


def tool_event(fragments: List[Dict[str, Any]], finish_reason: Optional[str] = None) -> str:
    return sse({"choices": [{"index": 0, "delta": {"tool_calls": fragments}, "finish_reason": finish_reason}]})


def finish_event(reason: str) -> str:
    return sse({"choices": [{"index": 0, "delta": {}, "finish_reason": reason}]})


def tool_call_round(call_id: str, name: str, arguments: str) -> List[str]:
    """A streamed round that requests a single tool call."""
    return [
        tool_event([{"index": 0, "id": call_id, "type": "function", "function": {"name": name, "arguments": ""}}]),
        tool_event([{"index": 0, "function": {"arguments": arguments}}]),
        finish_event("tool_calls"),
        "data: [DONE]",
    ]


def answer_round(text: str) -> List[str]:
    return [text_event(text), finish_event("stop"), "data: [DONE]"]


class ScriptedClient:
    """
    Stands in for LLMClient. Each call to stream_chat_completion plays the
    next scripted round; a round given as an exception is raised instead.
    """

    def __init__(self, rounds: Optional[List[Any]] = None, completions: Optional[List[Any]] = None) -> None:
        self.settings = LLMSettings()
        self.rounds = list(rounds or [])
        self.completions = list(completions or [])
        self.requests: List[ChatRequest] = []

    def build_request(self, messages, tools=None, stream=False) -> ChatRequest:
        return ChatRequest(
            model=self.settings.model,
            messages=[m.model_copy(deep=True) for m in messages],
            tools=tools or [],
            tool_choice="auto" if tools else None,
            stream=stream,
        )

    def stream_chat_completion(self, request: ChatRequest):
        self.requests.append(request)
        round_ = self.rounds.pop(0)
        for line in round_:
            if isinstance(line, Exception):
                raise line
            yield line

    def chat_completion(self, request: ChatRequest) -> ChatCompletionResponse:
        self.requests.append(request)
        item = self.completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return ChatCompletionResponse.model_validate(item)

    def chat(self, messages: List[Message]) -> str:
        return self.chat_completion(self.build_request(messages)).message.content

    def close(self) -> None:
        pass


