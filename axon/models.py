"""
Typed records for the chat-completion wire format.

Messages and tool calls are pydantic models; `to_wire()` produces the plain
dictionaries sent to the server.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Role = Literal["system", "user", "assistant", "tool"]

FINISH_TOOL_CALLS: str = "tool_calls"


class FunctionCall(BaseModel):
    name: str = ""
    arguments: str = ""

    @field_validator("name", "arguments", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ToolCall(BaseModel):
    """
    One tool invocation requested by the model.

    `index` is the call's position inside the emitting assistant message and
    is only meaningful during streaming. `arguments` holds JSON text, which is
    incomplete until the stream closes.
    """

    index: int = 0
    id: str = ""
    type: str = ""
    function: FunctionCall = Field(default_factory=FunctionCall)

    @field_validator("id", "type", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments

    def is_complete(self) -> bool:
        return bool(self.id) and bool(self.function.name)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type or "function",
            "function": {"name": self.function.name, "arguments": self.function.arguments},
        }


class Message(BaseModel):
    role: Role
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @field_validator("content", mode="before")
    @classmethod
    def _none_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[List[ToolCall]] = None) -> "Message":
        return cls(role="assistant", content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for the request body. Content is always present, even when empty."""
        wire: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            wire["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            wire["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            wire["name"] = self.name
        return wire


# -----------------------------------------------------------------------------
# Streaming deltas
# -----------------------------------------------------------------------------

class ToolCallDelta(BaseModel):
    """
    A fragment of a tool call as it appears in one streamed delta. A missing
    index is recorded as -1.
    """

    index: int = -1
    id: str = ""
    type: str = ""
    function: FunctionCall = Field(default_factory=FunctionCall)

    @field_validator("index", mode="before")
    @classmethod
    def _missing_index(cls, value: Any) -> Any:
        return -1 if value is None else value

    @field_validator("id", "type", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("function", mode="before")
    @classmethod
    def _none_function(cls, value: Any) -> Any:
        return {} if value is None else value


class StreamResult(BaseModel):
    """Outcome of one streamed round."""

    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    finish_reason: str = ""


# -----------------------------------------------------------------------------
# Requests and responses
# -----------------------------------------------------------------------------

class ChatRequest(BaseModel):
    model: str
    messages: List[Message]
    temperature: float = 0.15
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    tool_choice: Optional[str] = None
    max_tokens: int = 0
    stream: bool = False

    def to_wire(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_wire() for m in self.messages],
            "temperature": self.temperature,
            "stream": self.stream,
        }
        if self.tools:
            body["tools"] = self.tools
            body["tool_choice"] = self.tool_choice or "auto"
        if self.max_tokens > 0:
            body["max_tokens"] = self.max_tokens
        return body


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def _none_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _none_tool_calls(cls, value: Any) -> Any:
        return [] if value is None else value


class Choice(BaseModel):
    index: int = 0
    message: ResponseMessage = Field(default_factory=ResponseMessage)
    finish_reason: str = ""

    @field_validator("finish_reason", mode="before")
    @classmethod
    def _none_reason(cls, value: Any) -> Any:
        return "" if value is None else value


class ChatCompletionResponse(BaseModel):
    id: str = ""
    model: str = ""
    choices: List[Choice] = Field(default_factory=list)

    @property
    def message(self) -> ResponseMessage:
        return self.choices[0].message

    @property
    def finish_reason(self) -> str:
        return self.choices[0].finish_reason
