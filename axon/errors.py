"""
Exception hierarchy for AXON.

Only transport failures and undecodable tool arguments unwind a whole user
turn. ToolError and its subclasses are folded back into the conversation as
tool results so the model can react to them.
"""

from typing import Optional


class AxonError(Exception):
    """Base class for all AXON errors."""


class ConfigError(AxonError):
    """The project configuration file could not be parsed."""


# -----------------------------------------------------------------------------
# Transport
# -----------------------------------------------------------------------------

class TransportError(AxonError):
    """
    Network failure or timeout talking to the model server.

    Attributes:
        partial_text: Text streamed before the failure, if any.
    """

    def __init__(self, message: str, partial_text: str = "") -> None:
        super().__init__(message)
        self.partial_text = partial_text


class ProtocolError(TransportError):
    """The server answered with a non-2xx status or an error body."""

    def __init__(self, message: str, status_code: Optional[int] = None, partial_text: str = "") -> None:
        super().__init__(message, partial_text)
        self.status_code = status_code


class DecodeError(TransportError):
    """The response body was not valid JSON."""


class EmptyResponseError(TransportError):
    """The response contained zero choices."""


# -----------------------------------------------------------------------------
# Conversation loop
# -----------------------------------------------------------------------------

class ToolArgumentError(AxonError):
    """A tool call carried arguments that are not a JSON object."""

    def __init__(self, tool_name: str, raw_arguments: str, reason: str) -> None:
        super().__init__(f"failed to parse arguments for tool '{tool_name}': {reason} (raw: {raw_arguments!r})")
        self.tool_name = tool_name
        self.raw_arguments = raw_arguments


class MaxIterationsExceeded(AxonError):
    """The model kept requesting tools past the round limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"maximum iterations ({limit}) reached - possible infinite tool call loop")
        self.limit = limit


# -----------------------------------------------------------------------------
# Tools
# -----------------------------------------------------------------------------

class ToolError(AxonError):
    """Recoverable tool failure; its message becomes the tool's output."""


class PathOutsideRootError(ToolError):
    """A path argument resolves outside the project root."""

    def __init__(self, path: str) -> None:
        super().__init__(f"path '{path}' is outside the project root")
        self.path = path


class ServerStartError(AxonError):
    """The local model server could not be started or never became healthy."""
