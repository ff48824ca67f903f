"""
Conversation loop: drives model calls and tool rounds for one user turn.

A turn's messages are collected in a pending list and only appended to the
history once the model gives a final answer, so a failed turn leaves the
history exactly as it was.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

from .client import LLMClient
from .debug_log import DebugLogBase, NullDebugLog, truncate
from .errors import MaxIterationsExceeded, ToolArgumentError, ToolError
from .executor import ToolExecutor
from .models import Message, ToolCall
from .streaming import ChunkCallback, assemble_stream, complete_tool_calls
from .tools import tools as TOOLS

MAX_TOOL_ITERATIONS: int = 10

SYSTEM_PROMPT: str = (
    "You are AXON, a local code assistant running next to the user's codebase.\n"
    "You specialize in PHP (Laravel), Go, JavaScript/TypeScript, Python, shell, Docker, and Linux tooling.\n"
    "You have access to tools that let you read files, list directories, search code, and modify files.\n"
    "When you need to examine code, use the available tools instead of asking the user.\n"
    "IMPORTANT: All write operations (write_file, create_file, update_file, string_replace, create_directory, "
    "delete_file, delete_directory, move_file, copy_file, execute) require interactive user confirmation. "
    "The user will be prompted before any modification occurs.\n"
    "You always respond with high-quality, concise code examples and short, focused explanations.\n"
    "Prefer code blocks with proper language identifiers (```php, ```go, ```ts, etc.).\n"
    "When given code from files, base your reasoning ONLY on this code and the described context. "
    "If you are missing information, use tools to read files before guessing.\n"
    "When the question is about modifying code, describe the changes and show the final version "
    "or a clear patch-style diff."
)

ToolCallObserver = Callable[[ToolCall, Dict[str, Any]], None]
ToolResultObserver = Callable[[ToolCall, str], None]


def decode_arguments(call: ToolCall) -> Dict[str, Any]:
    """
    Decode a tool call's argument text. Blank text means no arguments.

    Raises:
        ToolArgumentError: If the text is not a JSON object.
    """
    raw = call.function.arguments
    if not raw.strip():
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(call.function.name, raw, str(e)) from e
    if not isinstance(args, dict):
        raise ToolArgumentError(call.function.name, raw, "arguments must be a JSON object")
    return args


def estimate_token_usage(history: List[Message]) -> Tuple[int, Dict[str, int]]:
    """
    Rough token estimate for the history, about 4 characters per token.

    Returns:
        Tuple of (total_estimated_tokens, breakdown_by_role)
    """
    breakdown = {"system": 0, "user": 0, "assistant": 0, "tool": 0}
    total = 0
    for msg in history:
        tokens = len(msg.content) // 4
        if msg.tool_calls:
            tokens += sum(len(tc.function.name) + len(tc.function.arguments) for tc in msg.tool_calls) // 4
        if msg.tool_call_id:
            tokens += 10  # tool metadata overhead
        breakdown[msg.role] = breakdown.get(msg.role, 0) + tokens
        total += tokens
    return total, breakdown


class Conversation:
    """
    Owns the message history of one session.

    Args:
        client: Transport for model calls.
        executor: Runs the tools the model asks for.
        stream: Use the streaming transport when True.
        log: Debug log for tool traffic.
        on_tool_call: Called before each tool runs.
        on_tool_result: Called with each tool's output (or "Error: ..." text).
    """

    def __init__(
        self,
        client: LLMClient,
        executor: ToolExecutor,
        stream: bool = True,
        log: Optional[DebugLogBase] = None,
        on_tool_call: Optional[ToolCallObserver] = None,
        on_tool_result: Optional[ToolResultObserver] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.client = client
        self.executor = executor
        self.stream = stream
        self.log = log or NullDebugLog()
        self.on_tool_call = on_tool_call
        self.on_tool_result = on_tool_result
        self.tools = tools if tools is not None else TOOLS
        self.history: List[Message] = [Message.system(SYSTEM_PROMPT)]

    def reset(self) -> None:
        """Drop everything but the system prompt."""
        self.history = [Message.system(SYSTEM_PROMPT)]

    def _call_model(self, messages: List[Message], on_chunk: Optional[ChunkCallback]) -> Tuple[str, List[ToolCall]]:
        request = self.client.build_request(messages, self.tools, stream=self.stream)
        if self.stream:
            result = assemble_stream(self.client.stream_chat_completion(request), on_chunk, self.log)
            return result.text, result.tool_calls

        response = self.client.chat_completion(request)
        message = response.message
        return message.content, complete_tool_calls(message.tool_calls, self.log)

    def _run_tool(self, call: ToolCall) -> str:
        self.log.log(f"🔧 TOOL CALL RECEIVED: {call.function.name}")
        self.log.log(f"   Tool Call ID: {call.id}")
        self.log.log(f"   Raw Arguments: {call.function.arguments!r}")
        try:
            args = decode_arguments(call)
        except ToolArgumentError as e:
            self.log.log(f"   ❌ PARSE ERROR: {e}")
            raise

        if self.on_tool_call is not None:
            self.on_tool_call(call, args)
        try:
            output = self.executor.execute(call.function.name, args)
            self.log.log(f"   ✅ TOOL RESULT: {truncate(output, 200)}")
        except ToolError as e:
            self.log.log(f"   ❌ TOOL EXECUTION ERROR: {e}")
            output = f"Error: {e}"
        if self.on_tool_result is not None:
            self.on_tool_result(call, output)
        return output

    def ask(self, user_input: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        """
        Run one user turn to a final answer.

        Args:
            user_input: The user's message.
            on_chunk: Receives streamed text deltas (streaming mode only).

        Returns:
            The model's final answer text.

        Raises:
            TransportError: The model server failed; history is unchanged.
            ToolArgumentError: A tool call carried undecodable arguments.
            MaxIterationsExceeded: The model was still calling tools after
                MAX_TOOL_ITERATIONS rounds.
        """
        turn: List[Message] = [Message.user(user_input)]

        for _ in range(MAX_TOOL_ITERATIONS):
            text, tool_calls = self._call_model(self.history + turn, on_chunk)

            if not tool_calls:
                turn.append(Message.assistant(text))
                self.history.extend(turn)
                return text

            turn.append(Message.assistant(text, tool_calls))
            for call in tool_calls:
                output = self._run_tool(call)
                turn.append(Message.tool(call.id, call.function.name, output))

        raise MaxIterationsExceeded(MAX_TOOL_ITERATIONS)

    def ask_once(self, prompt: str) -> str:
        """
        Single tool-less, non-streaming exchange. Both messages are added to
        the history only if the call succeeds.
        """
        user_message = Message.user(prompt)
        answer = self.client.chat(self.history + [user_message])
        self.history.extend([user_message, Message.assistant(answer)])
        return answer

    def token_usage(self) -> Tuple[int, Dict[str, int]]:
        return estimate_token_usage(self.history)
