"""Tests for the conversation loop."""

import json
from unittest import mock

import pytest

from axon.conversation import (
    MAX_TOOL_ITERATIONS,
    SYSTEM_PROMPT,
    Conversation,
    decode_arguments,
    estimate_token_usage,
)
from axon.errors import MaxIterationsExceeded, ProtocolError, ToolArgumentError, ToolError, TransportError
from axon.models import Message, ToolCall
from helpers import ScriptedClient, answer_round, text_event, tool_call_round


def make_executor(results=None):
    executor = mock.Mock()
    executor.execute.side_effect = results or (lambda name, args: json.dumps({"tool": name}))
    return executor


def completion(content="", tool_calls=None, finish_reason="stop"):
    return {
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content, "tool_calls": tool_calls},
            "finish_reason": finish_reason,
        }]
    }


class TestDecodeArguments:

    def test_object(self):
        call = ToolCall(id="c1", function={"name": "read_file", "arguments": '{"path": "a.go"}'})
        assert decode_arguments(call) == {"path": "a.go"}

    def test_blank_means_no_arguments(self):
        assert decode_arguments(ToolCall(id="c1", function={"name": "git_status", "arguments": "  "})) == {}

    def test_invalid_json(self):
        call = ToolCall(id="c1", function={"name": "read_file", "arguments": '{"path": '})
        with pytest.raises(ToolArgumentError) as exc_info:
            decode_arguments(call)
        assert exc_info.value.raw_arguments == '{"path": '
        assert exc_info.value.tool_name == "read_file"

    def test_non_object(self):
        call = ToolCall(id="c1", function={"name": "read_file", "arguments": "[1, 2]"})
        with pytest.raises(ToolArgumentError, match="must be a JSON object"):
            decode_arguments(call)


class TestStreamingConversation:

    def test_plain_answer(self):
        client = ScriptedClient(rounds=[answer_round("Hello there")])
        conversation = Conversation(client, make_executor())
        on_chunk = mock.Mock()

        assert conversation.ask("hi", on_chunk) == "Hello there"
        on_chunk.assert_called_once_with("Hello there")
        assert [m.role for m in conversation.history] == ["system", "user", "assistant"]
        assert conversation.history[0].content == SYSTEM_PROMPT

    def test_tool_round_then_answer(self):
        client = ScriptedClient(rounds=[
            tool_call_round("c1", "read_file", '{"path": "a.go"}'),
            answer_round("a.go declares main"),
        ])
        executor = make_executor()
        conversation = Conversation(client, executor)

        assert conversation.ask("what is in a.go?") == "a.go declares main"
        executor.execute.assert_called_once_with("read_file", {"path": "a.go"})

        roles = [m.role for m in conversation.history]
        assert roles == ["system", "user", "assistant", "tool", "assistant"]
        assistant_call = conversation.history[2]
        assert assistant_call.tool_calls[0].id == "c1"
        tool_message = conversation.history[3]
        assert tool_message.tool_call_id == "c1"
        assert tool_message.name == "read_file"
        assert tool_message.content == json.dumps({"tool": "read_file"})

    def test_each_round_sends_full_history_and_tools(self):
        client = ScriptedClient(rounds=[
            tool_call_round("c1", "git_status", ""),
            answer_round("clean"),
        ])
        conversation = Conversation(client, make_executor())
        conversation.ask("status?")

        first, second = client.requests
        assert [m.role for m in first.messages] == ["system", "user"]
        assert [m.role for m in second.messages] == ["system", "user", "assistant", "tool"]
        assert first.tools and first.tool_choice == "auto"
        assert first.stream is True

    def test_tool_error_becomes_result_text(self):
        client = ScriptedClient(rounds=[
            tool_call_round("c1", "read_file", '{"path": "missing.go"}'),
            answer_round("The file does not exist."),
        ])
        executor = make_executor(ToolError("file not found: missing.go"))
        on_result = mock.Mock()
        conversation = Conversation(client, executor, on_tool_result=on_result)

        assert conversation.ask("read missing.go") == "The file does not exist."
        assert conversation.history[3].content == "Error: file not found: missing.go"
        on_result.assert_called_once()
        assert on_result.call_args[0][1] == "Error: file not found: missing.go"

    def test_tool_observer_sees_decoded_arguments(self):
        client = ScriptedClient(rounds=[
            tool_call_round("c1", "grep", '{"pattern": "func"}'),
            answer_round("done"),
        ])
        on_call = mock.Mock()
        conversation = Conversation(client, make_executor(), on_tool_call=on_call)
        conversation.ask("search")
        call, args = on_call.call_args[0]
        assert call.function.name == "grep"
        assert args == {"pattern": "func"}

    def test_invalid_arguments_are_fatal_and_roll_back(self):
        client = ScriptedClient(rounds=[tool_call_round("c1", "read_file", '{"path": ')])
        executor = make_executor()
        conversation = Conversation(client, executor)

        with pytest.raises(ToolArgumentError):
            conversation.ask("read it")
        executor.execute.assert_not_called()
        assert len(conversation.history) == 1

    def test_iteration_cap(self):
        rounds = [tool_call_round(f"c{i}", "git_status", "{}") for i in range(MAX_TOOL_ITERATIONS + 1)]
        client = ScriptedClient(rounds=rounds)
        executor = make_executor()
        conversation = Conversation(client, executor)

        with pytest.raises(MaxIterationsExceeded) as exc_info:
            conversation.ask("loop forever")
        assert exc_info.value.limit == 10
        assert len(client.requests) == 10
        assert executor.execute.call_count == 10
        assert len(conversation.history) == 1
        assert "infinite tool call loop" in str(exc_info.value)

    def test_answer_on_tenth_round_succeeds(self):
        rounds = [tool_call_round(f"c{i}", "git_status", "{}") for i in range(MAX_TOOL_ITERATIONS - 1)]
        rounds.append(answer_round("finally"))
        conversation = Conversation(ScriptedClient(rounds=rounds), make_executor())
        assert conversation.ask("go") == "finally"

    def test_incomplete_call_is_treated_as_answer(self):
        lines = [
            text_event("I would call a tool"),
            'data: {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "c1"}]}, "finish_reason": "tool_calls"}]}',
            "data: [DONE]",
        ]
        executor = make_executor()
        conversation = Conversation(ScriptedClient(rounds=[lines]), executor)
        assert conversation.ask("hm") == "I would call a tool"
        executor.execute.assert_not_called()

    def test_transport_error_rolls_back_turn(self):
        broken = [text_event("partial "), TransportError("error reading stream: reset")]
        client = ScriptedClient(rounds=[
            tool_call_round("c1", "git_status", "{}"),
            broken,
        ])
        conversation = Conversation(client, make_executor())

        with pytest.raises(TransportError) as exc_info:
            conversation.ask("status?")
        assert exc_info.value.partial_text == "partial "
        assert len(conversation.history) == 1

    def test_retry_after_failure_starts_clean(self):
        client = ScriptedClient(rounds=[
            [TransportError("failed to send request: refused")],
            answer_round("ok"),
        ])
        conversation = Conversation(client, make_executor())
        with pytest.raises(TransportError):
            conversation.ask("first")
        conversation.ask("second")
        assert [m.content for m in client.requests[1].messages if m.role == "user"] == ["second"]

    def test_reset_keeps_system_prompt(self):
        conversation = Conversation(ScriptedClient(rounds=[answer_round("x")]), make_executor())
        conversation.ask("q")
        conversation.reset()
        assert [m.role for m in conversation.history] == ["system"]


class TestNonStreamingConversation:

    def test_tool_round_then_answer(self):
        tool_calls = [{"id": "c1", "type": "function",
                       "function": {"name": "read_file", "arguments": '{"path": "a.go"}'}}]
        client = ScriptedClient(completions=[
            completion(tool_calls=tool_calls, finish_reason="tool_calls"),
            completion("done"),
        ])
        executor = make_executor()
        conversation = Conversation(client, executor, stream=False)

        assert conversation.ask("read a.go") == "done"
        executor.execute.assert_called_once_with("read_file", {"path": "a.go"})
        assert client.requests[0].stream is False

    def test_incomplete_calls_are_dropped(self):
        tool_calls = [{"id": "", "type": "function", "function": {"name": "read_file", "arguments": "{}"}}]
        client = ScriptedClient(completions=[completion("text only", tool_calls=tool_calls)])
        executor = make_executor()
        conversation = Conversation(client, executor, stream=False)
        assert conversation.ask("x") == "text only"
        executor.execute.assert_not_called()

    def test_protocol_error_rolls_back(self):
        client = ScriptedClient(completions=[ProtocolError("LLM API returned status 500: boom", status_code=500)])
        conversation = Conversation(client, make_executor(), stream=False)
        with pytest.raises(ProtocolError):
            conversation.ask("x")
        assert len(conversation.history) == 1


class TestAskOnce:

    def test_success_appends_both_messages(self):
        client = ScriptedClient(completions=[completion("explained")])
        conversation = Conversation(client, make_executor())
        assert conversation.ask_once("explain this") == "explained"
        assert [m.role for m in conversation.history] == ["system", "user", "assistant"]
        assert client.requests[0].tools == []

    def test_failure_leaves_history(self):
        client = ScriptedClient(completions=[TransportError("timeout")])
        conversation = Conversation(client, make_executor())
        with pytest.raises(TransportError):
            conversation.ask_once("explain this")
        assert len(conversation.history) == 1


class TestTokenUsage:

    def test_breakdown_by_role(self):
        history = [
            Message.system("s" * 40),
            Message.user("u" * 80),
            Message.assistant("a" * 20),
            Message.tool("c1", "grep", "t" * 40),
        ]
        total, breakdown = estimate_token_usage(history)
        assert breakdown == {"system": 10, "user": 20, "assistant": 5, "tool": 20}
        assert total == 55
