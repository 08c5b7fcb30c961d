#!/usr/bin/env python3
"""
Prompt Formatting
Flattens an OpenAI message list into one CLI prompt and injects the
TOOL_CALL: text protocol when the client supplied tool definitions
"""

import json
import logging
from typing import List, Optional

from models import Message, Tool

logger = logging.getLogger(__name__)

TOOL_CALL_PREFIX = "TOOL_CALL:"
TOOL_DESCRIPTION_LIMIT = 120


def _role_label(role: str) -> str:
    return role[:1].upper() + role[1:]


def _content_text(message: Message) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.text for part in content
            if part.type == "text" and isinstance(part.text, str)
        )
    return ""


def _tool_result_text(message: Message) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return json.dumps([part.model_dump(exclude_none=True) for part in content])
    return json.dumps(content)


def format_message(message: Message) -> str:
    """Render a single message as one prompt segment"""
    role = _role_label(message.role)

    # Result of a tool the client executed for us
    if message.role == "tool":
        return f"Tool Result: {_tool_result_text(message)}"

    # Earlier assistant turn that requested tools
    if message.role == "assistant" and message.tool_calls:
        calls = "\n".join(
            f"Called: {call.function_name}({call.arguments_json})"
            for call in message.tool_calls
        )
        text = message.content + "\n" if isinstance(message.content, str) and message.content else ""
        return f"{role}: {text}{calls}"

    return f"{role}: {_content_text(message)}"


def flatten_messages(messages: List[Message]) -> str:
    """Flatten the conversation into one prompt, messages separated by a blank line."""
    return "\n\n".join(format_message(m) for m in messages)


def describe_tool(tool: Tool) -> str:
    """One-line summary: name(required: type, ...) plus the first description line."""
    params = ", ".join(f"{name}: {tool.parameter_type(name)}" for name in tool.required_parameters)
    first_line = (tool.function.description or "").split("\n")[0][:TOOL_DESCRIPTION_LIMIT]
    return f"  {tool.name}({params}) — {first_line}"


def build_prompt_with_tools(flat_messages: str, tools: Optional[List[Tool]]) -> str:
    """
    Prepend the TOOL_CALL: instructions to the flattened prompt.
    Only names and required parameters are listed; full JSON schemas tend to
    trigger the CLI's own built-in tool execution.
    """
    if not tools:
        return flat_messages

    tool_descriptions = "\n".join(describe_tool(t) for t in tools)

    tool_instruction = f"""=== OUTPUT FORMAT INSTRUCTIONS ===
IMPORTANT: Do NOT use any built-in tool calling, function calling, or code execution systems.
Do NOT attempt to execute any file operations or shell commands through any internal mechanism.

You have been given a task. If completing it requires performing an action (such as creating a file,
running a command, or searching for files), you MUST communicate that action by including a TOOL_CALL
line as plain text in your response.

Format for requesting an action (output this as plain text, do not call any functions):
{TOOL_CALL_PREFIX}{{"name":"<action_name>","arguments":<json_object_with_parameters>}}

Available actions:
{tool_descriptions}

Rules:
- When you want to perform an action: output ONLY that TOOL_CALL line, nothing else.
- When you want to write a file: {TOOL_CALL_PREFIX}{{"name":"write","arguments":{{"filePath":"/absolute/path","content":"full file content"}}}}
- When you want to run a shell command: {TOOL_CALL_PREFIX}{{"name":"bash","arguments":{{"command":"the command","description":"what it does"}}}}
- When you want to read a file: {TOOL_CALL_PREFIX}{{"name":"read","arguments":{{"filePath":"/absolute/path"}}}}
- After a tool result is given back to you, continue with the next action or final response.
- If no action is needed, just respond with your answer as normal text.
=== END FORMAT INSTRUCTIONS ===

"""

    logger.debug(f"build_prompt_with_tools | tools={[t.name for t in tools]}")
    return tool_instruction + flat_messages
