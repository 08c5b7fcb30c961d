"""Tests for message flattening and TOOL_CALL: prompt injection."""

from __future__ import annotations

from models import Message, Tool
from prompts import TOOL_CALL_PREFIX, build_prompt_with_tools, flatten_messages


def _messages(*raw: dict) -> list[Message]:
    return [Message.model_validate(m) for m in raw]


def _tool(name: str, description: str = "", parameters: dict | None = None) -> Tool:
    function: dict = {"name": name, "description": description}
    if parameters is not None:
        function["parameters"] = parameters
    return Tool.model_validate({"type": "function", "function": function})


def test_flatten_preserves_order_and_count() -> None:
    messages = _messages(
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "user", "content": "Bye"},
    )

    segments = flatten_messages(messages).split("\n\n")

    assert segments == ["System: Be brief.", "User: Hi", "Assistant: Hello!", "User: Bye"]


def test_flatten_plain_conversation_has_no_tool_markers() -> None:
    text = flatten_messages(_messages({"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}))

    assert "Tool Result:" not in text
    assert "Called:" not in text


def test_flatten_joins_text_parts_and_ignores_others() -> None:
    messages = _messages({
        "role": "user",
        "content": [
            {"type": "text", "text": "first"},
            {"type": "image_url", "image_url": {"url": "http://x/y.png"}},
            {"type": "text", "text": "second"},
        ],
    })

    assert flatten_messages(messages) == "User: first\nsecond"


def test_flatten_missing_content_is_empty() -> None:
    assert flatten_messages(_messages({"role": "assistant", "content": None})) == "Assistant: "
    assert flatten_messages(_messages({"role": "user"})) == "User: "


def test_flatten_capitalizes_only_first_character() -> None:
    assert flatten_messages(_messages({"role": "developerNote", "content": "x"})) == "DeveloperNote: x"


def test_flatten_tool_result() -> None:
    messages = _messages({"role": "tool", "tool_call_id": "call_1", "content": "file written"})

    assert flatten_messages(messages) == "Tool Result: file written"


def test_flatten_tool_result_non_text_content_is_json() -> None:
    messages = _messages({"role": "tool", "content": [{"type": "text", "text": "ok"}]})

    assert flatten_messages(messages) == 'Tool Result: [{"type": "text", "text": "ok"}]'


def test_flatten_assistant_tool_calls() -> None:
    messages = _messages({
        "role": "assistant",
        "content": "Let me check.",
        "tool_calls": [
            {"id": "c1", "type": "function", "function": {"name": "read", "arguments": '{"filePath":"/a"}'}},
            {"id": "c2", "type": "function", "function": {"name": "bash", "arguments": {"command": "ls"}}},
        ],
    })

    assert flatten_messages(messages) == (
        'Assistant: Let me check.\n'
        'Called: read({"filePath":"/a"})\n'
        'Called: bash({"command": "ls"})'
    )


def test_flatten_assistant_tool_calls_without_text_or_function() -> None:
    messages = _messages({"role": "assistant", "content": None, "tool_calls": [{"id": "c1"}]})

    assert flatten_messages(messages) == "Assistant: Called: unknown({})"


def test_prompt_unchanged_without_tools() -> None:
    assert build_prompt_with_tools("User: hi", []) == "User: hi"
    assert build_prompt_with_tools("User: hi", None) == "User: hi"


def test_prompt_with_tools_has_marker_and_original_suffix() -> None:
    flat = "User: create a file"
    prompt = build_prompt_with_tools(flat, [_tool("write", "Write a file")])

    assert TOOL_CALL_PREFIX in prompt
    assert prompt.endswith(flat)
    assert "Do NOT use any built-in tool calling" in prompt
    assert 'TOOL_CALL:{"name":"read","arguments":{"filePath":"/absolute/path"}}' in prompt


def test_prompt_lists_required_params_and_truncated_first_line() -> None:
    description = "A" * 200 + "\nsecond line"
    tool = _tool(
        "edit",
        description,
        {
            "type": "object",
            "properties": {"filePath": {"type": "string"}, "count": {"type": "integer"}, "note": {}},
            "required": ["filePath", "count", "note"],
        },
    )

    prompt = build_prompt_with_tools("User: x", [tool])

    assert f"  edit(filePath: string, count: integer, note: string) — {'A' * 120}\n" in prompt
    assert "second line" not in prompt


def test_prompt_tool_without_parameters() -> None:
    prompt = build_prompt_with_tools("User: x", [_tool("ping")])

    assert "  ping() — \n" in prompt
