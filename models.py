#!/usr/bin/env python3
"""
Pydantic Models for OpenAI-compatible API
Data structures for requests, responses and the CLI event stream
"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ContentPart(BaseModel):
    """Content part; only "text" parts are used, others pass through untouched"""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    text: Optional[Any] = None


class ToolCallFunction(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    arguments: Optional[Any] = None


class ToolCall(BaseModel):
    """Tool call recorded in an assistant message of the history"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    function: Optional[ToolCallFunction] = None

    @property
    def function_name(self) -> str:
        if self.function and self.function.name:
            return self.function.name
        return "unknown"

    @property
    def arguments_json(self) -> str:
        if not self.function or self.function.arguments is None:
            return "{}"
        arguments = self.function.arguments
        return arguments if isinstance(arguments, str) else json.dumps(arguments)


class Message(BaseModel):
    """Chat message with role and content"""
    model_config = ConfigDict(extra="allow")

    role: str
    content: Union[str, List[ContentPart], None] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


class FunctionDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class Tool(BaseModel):
    """OpenAI tool definition; only used to describe actions in the prompt"""
    model_config = ConfigDict(extra="allow")

    type: str = "function"
    function: FunctionDefinition

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def required_parameters(self) -> List[str]:
        required = (self.function.parameters or {}).get("required") or []
        return [str(name) for name in required]

    def parameter_type(self, name: str) -> str:
        properties = (self.function.parameters or {}).get("properties") or {}
        prop = properties.get(name)
        if isinstance(prop, dict) and prop.get("type"):
            return str(prop["type"])
        return "string"


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request"""
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: List[Message]
    stream: Optional[bool] = None
    tools: Optional[List[Tool]] = None
    tool_choice: Optional[Any] = None


class Model(BaseModel):
    """Model information"""
    id: str
    object: str = "model"
    created: int = Field(default_factory=lambda: int(time.time()))
    owned_by: str = "google"


class ModelList(BaseModel):
    """List of available models"""
    object: str = "list"
    data: List[Model]


# ============================================================================
# CLI Stream Events
# ============================================================================

@dataclass
class MessageEvent:
    """Incremental text emitted by the CLI"""
    role: str
    content: Any


@dataclass
class ResultEvent:
    """Generation finished"""
    status: Optional[str] = None
    stats: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UnrecognizedEvent:
    type: Optional[str] = None


StreamEvent = Union[MessageEvent, ResultEvent, UnrecognizedEvent]


# ============================================================================
# Transcoder Types
# ============================================================================

class TranscoderMode(Enum):
    PASSTHROUGH = "passthrough"
    BUFFERED_TOOL_DETECTION = "buffered_tool_detection"


class TranscoderState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    BUFFERING = "buffering"
    DONE = "done"


@dataclass
class EmbeddedToolCall:
    """Tool call recognized from a TOOL_CALL: marker in the model's text"""
    name: str
    arguments: Union[str, Dict[str, Any], None] = None

    def arguments_text(self) -> str:
        if self.arguments is None:
            return "{}"
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments)


@dataclass
class Chunk:
    """One delta/finish_reason pair, framed later as a chat.completion.chunk"""
    delta: Dict[str, Any]
    finish_reason: Optional[str] = None


# ============================================================================
# Custom Exceptions
# ============================================================================

class InvalidRequestError(Exception):
    """Raised when a chat completion request body fails validation."""

    def __init__(self, message: str, cause: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause or []


class GeminiLaunchError(Exception):
    """Raised when the Gemini CLI process cannot be started."""
    pass
