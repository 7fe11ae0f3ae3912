"""Provider-agnostic request, response and streaming types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable

Role = Literal["system", "user", "assistant", "tool"]
FinishReason = Literal["stop", "length", "tool_calls", "content_filter", "function_call"]
ToolChoice = Literal["auto", "none", "required"] | dict[str, Any]

_ROLES = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class FunctionCall:
    """Name and JSON-encoded arguments of a function invocation."""

    name: str
    arguments: str


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation emitted by the model."""

    id: str
    function: FunctionCall
    type: Literal["function"] = "function"

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments


@dataclass(frozen=True)
class Message:
    """One conversation turn.

    ``content`` may be ``None`` only when the turn carries tool calls, and a
    ``tool`` message must reference the assistant tool call it answers.
    """

    role: Role
    content: str | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")
        if self.content is None and not self.tool_calls:
            raise ValueError("Message content may only be None when tool_calls is set")

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str, *, name: str | None = None) -> Message:
        return cls(role="user", content=content, name=name)

    @classmethod
    def assistant(
        cls, content: str | None = None, *, tool_calls: list[ToolCall] | None = None
    ) -> Message:
        return cls(role="assistant", content=content, tool_calls=tool_calls)

    @classmethod
    def tool(cls, tool_call_id: str, content: str, *, name: str | None = None) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)


@dataclass(frozen=True)
class ToolDefinition:
    """A function the model may call.

    ``parameters`` is a JSON-Schema-like tree (object/string/number/boolean/
    array with optional ``properties``, ``items``, ``required`` and ``enum``).
    """

    name: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    description: str | None = None


@dataclass(frozen=True)
class FunctionDefinition:
    """Deprecated function definition; use ``ToolDefinition`` instead."""

    name: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    description: str | None = None


@dataclass(frozen=True)
class ChatRequest:
    """A single logical exchange with a model.

    An empty ``model`` selects the configured or provider default model.
    ``functions`` and ``function_call`` are the deprecated spellings of
    ``tools`` and ``tool_choice``; the modern fields win when both are set.
    """

    messages: list[Message]
    model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: str | list[str] | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    parallel_tool_calls: bool | None = None
    functions: list[FunctionDefinition] | None = None
    function_call: Literal["auto", "none"] | dict[str, Any] | None = None


@dataclass(frozen=True)
class Usage:
    """Token accounting for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ChatResponse:
    """Normalized result of a non-streaming chat call."""

    id: str
    provider: str
    model: str
    message: Message
    finish_reason: FinishReason | None = None
    usage: Usage | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class FunctionCallDelta:
    """Partial function call; ``arguments`` is a JSON fragment."""

    name: str | None = None
    arguments: str | None = None


@dataclass(frozen=True)
class ToolCallDelta:
    """A tool-call fragment. Fragments sharing ``index`` belong to one call."""

    index: int
    id: str | None = None
    type: Literal["function"] | None = None
    function: FunctionCallDelta | None = None


@dataclass(frozen=True)
class StreamDelta:
    """Incremental content carried by one stream chunk."""

    role: Role | None = None
    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None


@dataclass(frozen=True)
class StreamChunk:
    """One normalized streaming event. Only the terminal chunk sets ``finish_reason``."""

    id: str
    provider: str
    model: str
    delta: StreamDelta = field(default_factory=StreamDelta)
    finish_reason: FinishReason | None = None


def accumulate_tool_calls(chunks: Iterable[StreamChunk]) -> list[ToolCall]:
    """Assemble complete tool calls from streamed fragments.

    Argument fragments are concatenated per ``index`` in arrival order; the
    first id and name seen for an index are kept.
    """
    ids: dict[int, str] = {}
    names: dict[int, str] = {}
    arguments: dict[int, list[str]] = {}

    for chunk in chunks:
        for fragment in chunk.delta.tool_calls or ():
            idx = fragment.index
            arguments.setdefault(idx, [])
            if fragment.id and idx not in ids:
                ids[idx] = fragment.id
            fn = fragment.function
            if fn is None:
                continue
            if fn.name and idx not in names:
                names[idx] = fn.name
            if fn.arguments:
                arguments[idx].append(fn.arguments)

    return [
        ToolCall(
            id=ids.get(idx, f"call_{idx}"),
            function=FunctionCall(
                name=names.get(idx, ""),
                arguments="".join(arguments[idx]),
            ),
        )
        for idx in sorted(arguments)
    ]
