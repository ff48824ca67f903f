"""
Server-Sent-Events assembler for streamed chat completions.

Visible text is forwarded to a callback as it arrives, while tool calls are
rebuilt from fragments that may address a call by position or by id. The
merge itself is a pure function so it can be exercised without a stream.
"""

import json
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .debug_log import DebugLogBase, NullDebugLog
from .errors import TransportError
from .models import FINISH_TOOL_CALLS, StreamResult, ToolCall, ToolCallDelta

ChunkCallback = Callable[[str], None]

DATA_PREFIX: str = "data:"
DONE_MARKER: str = "[DONE]"


# -----------------------------------------------------------------------------
# Tool call merging
# -----------------------------------------------------------------------------

def _is_placeholder(call: ToolCall) -> bool:
    return not (call.id or call.function.name or call.function.arguments)


def _find_target(calls: List[ToolCall], fragment: ToolCallDelta) -> Optional[ToolCall]:
    idx = fragment.index
    # Position only counts when the entry there agrees about its own index.
    if 0 <= idx < len(calls) and calls[idx].index == idx:
        return calls[idx]
    if idx >= 0:
        for call in calls:
            if call.index == idx:
                return call
    if fragment.id:
        for call in calls:
            if call.id == fragment.id:
                return call
    return None


def merge_tool_call_fragment(calls: List[ToolCall], fragment: ToolCallDelta) -> List[ToolCall]:
    """
    Fold one streamed tool-call fragment into the calls seen so far.

    The target is the entry at the fragment's index (when that entry carries
    the same index), else any entry carrying that index, else the entry with
    the fragment's id, else a new entry. A new entry only takes the slot at
    its index when that slot is an empty placeholder; otherwise it is appended.
    id, type and name are only filled while still empty; arguments are always
    appended, so replaying a fragment duplicates its argument text.

    Args:
        calls: Calls accumulated so far. Not modified.
        fragment: The incoming fragment.

    Returns:
        A new list with the fragment merged in.
    """
    merged = [call.model_copy(deep=True) for call in calls]
    target = _find_target(merged, fragment)

    if target is None:
        idx = fragment.index if fragment.index >= 0 else len(merged)
        while len(merged) < idx:
            merged.append(ToolCall(index=len(merged)))
        target = ToolCall(index=idx)
        # Never overwrite a real call; positions drift once incomplete calls are dropped.
        if idx < len(merged) and _is_placeholder(merged[idx]):
            merged[idx] = target
        else:
            merged.append(target)

    if fragment.id and not target.id:
        target.id = fragment.id
    if fragment.type and not target.type:
        target.type = fragment.type
    if fragment.function.name and not target.function.name:
        target.function.name = fragment.function.name
    if fragment.function.arguments:
        target.function.arguments += fragment.function.arguments
    return merged


def complete_tool_calls(calls: List[ToolCall], log: Optional[DebugLogBase] = None) -> List[ToolCall]:
    """
    Keep only calls with both an id and a name, logging each discard.
    """
    complete: List[ToolCall] = []
    for call in calls:
        if call.is_complete():
            complete.append(call)
        elif log is not None:
            log.log(f"   ⚠️  Skipping incomplete tool call: index={call.index}, id={call.id!r}, name={call.function.name!r}")
    return complete


# -----------------------------------------------------------------------------
# Stream assembly
# -----------------------------------------------------------------------------

def parse_event_line(line: str) -> Optional[str]:
    """
    Return the payload of an SSE data line, or None for any other line.
    The space after "data:" is optional.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def _first_choice(event: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None


def assemble_stream(
    lines: Iterable[str],
    on_chunk: Optional[ChunkCallback] = None,
    log: Optional[DebugLogBase] = None,
) -> StreamResult:
    """
    Consume raw SSE lines and build the round's text and tool calls.

    Args:
        lines: Raw lines from the streaming transport.
        on_chunk: Called with each text delta, never the running total.
            Anything it raises aborts the stream and propagates unchanged.
        log: Debug log for skipped events and discarded calls.

    Returns:
        StreamResult. Tool calls are only present when the last finish
        reason was "tool_calls", and then only complete ones.

    Raises:
        TransportError: When reading the stream fails. Its partial_text
            holds whatever text had already arrived.
    """
    log = log or NullDebugLog()
    text_parts: List[str] = []
    calls: List[ToolCall] = []
    finish_reason = ""

    try:
        for line in lines:
            payload = parse_event_line(line)
            if payload is None or payload == "":
                continue
            if payload == DONE_MARKER:
                break

            try:
                event = json.loads(payload)
            except json.JSONDecodeError as e:
                log.log(f"⚠️  Malformed SSE JSON: {payload!r}, error: {e}")
                continue

            choice = _first_choice(event)
            if choice is None:
                continue
            delta = choice.get("delta")
            if not isinstance(delta, dict):
                delta = {}

            content = delta.get("content")
            if content:
                text_parts.append(content)
                if on_chunk is not None:
                    on_chunk(content)

            for raw_fragment in delta.get("tool_calls") or []:
                try:
                    fragment = ToolCallDelta.model_validate(raw_fragment)
                except ValidationError as e:
                    log.log(f"⚠️  Malformed tool call fragment: {raw_fragment!r}, error: {e}")
                    continue
                calls = merge_tool_call_fragment(calls, fragment)

            if choice.get("finish_reason"):
                finish_reason = choice["finish_reason"]

            if finish_reason == FINISH_TOOL_CALLS:
                calls = complete_tool_calls(calls, log)
    except TransportError as e:
        e.partial_text = "".join(text_parts)
        raise

    text = "".join(text_parts)
    if finish_reason == FINISH_TOOL_CALLS:
        calls = complete_tool_calls(calls, log)
        log.log(f"✅ STREAMING COMPLETE: finish_reason=tool_calls, tool_calls_count={len(calls)}")
        return StreamResult(text=text, tool_calls=calls, finish_reason=finish_reason)

    if text:
        log.log(f"✅ STREAMING COMPLETE: finish_reason={finish_reason}, response_length={len(text)}")
    return StreamResult(text=text, tool_calls=[], finish_reason=finish_reason)
