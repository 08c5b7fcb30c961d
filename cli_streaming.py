"""
CLI Streaming Module for Gemini CLI Bridge
Decodes the CLI's stream-json output and transcodes it into chat completion chunks

The CLI writes one JSON object per line:
    {"type": "message", "role": "assistant", "content": "..."}   incremental text
    {"type": "result", "status": "success", "stats": {...}}      generation finished
Anything else is tolerated and ignored.
"""

import asyncio
import codecs
import json
import logging
from typing import AsyncIterator, List, Optional

from models import (
    Chunk, EmbeddedToolCall, MessageEvent, ResultEvent, StreamEvent,
    TranscoderMode, TranscoderState, UnrecognizedEvent
)
from prompts import TOOL_CALL_PREFIX
from utils.helpers import TraceFn, emit_log as _emit_log, new_call_id, truncate as _truncate

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


# ============================================================================
# Event Decoding
# ============================================================================

async def iter_chunks(reader: asyncio.StreamReader, size: int = READ_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield raw byte chunks from a process pipe until EOF."""
    while True:
        chunk = await reader.read(size)
        if not chunk:
            return
        yield chunk


async def iter_lines(chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """
    Split a byte stream into non-empty text lines.
    Multi-byte characters and records may be split across chunks, so both the
    decoder state and the unterminated tail are carried over.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    async for chunk in chunks:
        pending += decoder.decode(chunk)
        *lines, pending = pending.split("\n")
        for line in lines:
            line = line.strip()
            if line:
                yield line

    pending += decoder.decode(b"", final=True)
    if pending.strip():
        yield pending.strip()


def parse_stream_event(line: str) -> Optional[StreamEvent]:
    """Parse one stream-json line; None if the line is not valid JSON."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return UnrecognizedEvent(type=None)

    event_type = data.get("type")
    if event_type == "message":
        return MessageEvent(role=data.get("role") or "", content=data.get("content"))
    if event_type == "result":
        stats = data.get("stats")
        return ResultEvent(status=data.get("status"), stats=stats if isinstance(stats, dict) else {})
    return UnrecognizedEvent(type=event_type if isinstance(event_type, str) else None)


async def iter_stream_events(
    lines: AsyncIterator[str],
    trace: Optional[TraceFn] = None,
) -> AsyncIterator[StreamEvent]:
    """Parse lines into events, dropping malformed lines with a warning."""
    async for line in lines:
        event = parse_stream_event(line)
        if event is None:
            _emit_log(trace, "gemini.stream.json_error", f"line={_truncate(line, 100)}", level=logging.WARNING)
            continue
        yield event


# ============================================================================
# Tool Call Encoding
# ============================================================================

def parse_tool_call(text: str) -> Optional[EmbeddedToolCall]:
    """Parse a marker-prefixed slice; None if the payload is not a usable call."""
    payload = text[len(TOOL_CALL_PREFIX):].strip() if text.startswith(TOOL_CALL_PREFIX) else text.strip()
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("name"), str):
        return None
    return EmbeddedToolCall(name=data["name"], arguments=data.get("arguments"))


def encode_tool_call(text: str, trace: Optional[TraceFn] = None) -> List[Chunk]:
    """
    Turn a "TOOL_CALL:{...}" slice into the OpenAI tool_calls chunk sequence:
    announcement, arguments, finish_reason="tool_calls".
    Unparseable payloads fall back to plain content followed by "stop".
    """
    tool_call = parse_tool_call(text)
    if tool_call is None:
        _emit_log(trace, "gemini.tool_call.parse_error", f"text={_truncate(text)}", level=logging.WARNING)
        return [Chunk(delta={"content": text}), Chunk(delta={}, finish_reason="stop")]

    call_id = new_call_id()
    _emit_log(trace, "gemini.tool_call.encoded", f"name={tool_call.name} id={call_id}")
    return [
        Chunk(delta={
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "index": 0,
                "id": call_id,
                "type": "function",
                "function": {"name": tool_call.name, "arguments": ""},
            }],
        }),
        Chunk(delta={
            "tool_calls": [{"index": 0, "function": {"arguments": tool_call.arguments_text()}}],
        }),
        Chunk(delta={}, finish_reason="tool_calls"),
    ]


# ============================================================================
# Stream Transcoder
# ============================================================================

class StreamTranscoder:
    """
    Turns CLI events into chat completion chunks.

    PASSTHROUGH forwards assistant text as it arrives. BUFFERED_TOOL_DETECTION
    holds the whole reply until the result event, since a TOOL_CALL: marker can
    follow free text and is only recognizable once the reply is complete.
    Exactly one terminal chunk is produced; events after it are ignored.
    """

    def __init__(
        self,
        mode: TranscoderMode,
        trace: Optional[TraceFn] = None,
        max_buffer_chars: int = 0,
    ):
        self.mode = mode
        self.state = TranscoderState.IDLE
        self.trace = trace
        self.max_buffer_chars = max_buffer_chars
        self._buffer: List[str] = []
        self._buffered_chars = 0
        self._overflow_logged = False

    @classmethod
    def for_request(cls, has_tools: bool, trace: Optional[TraceFn] = None, max_buffer_chars: int = 0):
        mode = TranscoderMode.BUFFERED_TOOL_DETECTION if has_tools else TranscoderMode.PASSTHROUGH
        return cls(mode, trace=trace, max_buffer_chars=max_buffer_chars)

    @property
    def done(self) -> bool:
        return self.state == TranscoderState.DONE

    @property
    def buffered_text(self) -> str:
        return "".join(self._buffer)

    def feed(self, event: StreamEvent) -> List[Chunk]:
        """Consume one event and return the chunks to emit for it."""
        if self.done:
            return []

        if isinstance(event, MessageEvent):
            if event.role != "assistant" or not isinstance(event.content, str) or not event.content:
                return []
            if self.mode == TranscoderMode.PASSTHROUGH:
                self.state = TranscoderState.STREAMING
                return [Chunk(delta={"content": event.content})]
            self.state = TranscoderState.BUFFERING
            self._append(event.content)
            return []

        if isinstance(event, ResultEvent):
            _emit_log(self.trace, "gemini.stream.result", f"status={event.status} stats={event.stats}")
            return self.finish()

        _emit_log(self.trace, "gemini.stream.ignored", f"type={event.type}", level=logging.DEBUG)
        return []

    def finish(self) -> List[Chunk]:
        """Emit the terminal sequence (also used when EOF stands in for a result event)."""
        if self.done:
            return []
        self.state = TranscoderState.DONE

        if self.mode == TranscoderMode.PASSTHROUGH:
            return [Chunk(delta={}, finish_reason="stop")]

        full_content = self.buffered_text.strip()
        self._buffer = []

        marker_at = full_content.find(TOOL_CALL_PREFIX)
        if marker_at != -1:
            tool_call_text = full_content[marker_at:]
            _emit_log(self.trace, "gemini.tool_call.detected", f"text={_truncate(tool_call_text, 80)}")
            return encode_tool_call(tool_call_text, trace=self.trace)

        chunks = []
        if full_content:
            chunks.append(Chunk(delta={"content": full_content}))
        chunks.append(Chunk(delta={}, finish_reason="stop"))
        return chunks

    def _append(self, text: str):
        if self.max_buffer_chars:
            room = self.max_buffer_chars - self._buffered_chars
            if len(text) > room:
                if not self._overflow_logged:
                    _emit_log(
                        self.trace,
                        "gemini.stream.buffer_full",
                        f"limit={self.max_buffer_chars} dropping further content",
                        level=logging.WARNING,
                    )
                    self._overflow_logged = True
                text = text[:max(room, 0)]
        if text:
            self._buffer.append(text)
            self._buffered_chars += len(text)


# ============================================================================
# Non-streaming Assembly
# ============================================================================

class ChunkAccumulator:
    """Folds a chunk sequence back into a single assistant message"""

    def __init__(self):
        self.content_parts: List[str] = []
        self.tool_calls: List[dict] = []
        self.finish_reason: Optional[str] = None

    def add(self, chunk: Chunk):
        delta = chunk.delta
        content = delta.get("content")
        if isinstance(content, str) and content:
            self.content_parts.append(content)

        for call in delta.get("tool_calls") or []:
            function = call.get("function") or {}
            if call.get("id"):
                self.tool_calls.append({
                    "id": call["id"],
                    "type": call.get("type", "function"),
                    "function": {"name": function.get("name"), "arguments": function.get("arguments") or ""},
                })
            elif self.tool_calls:
                self.tool_calls[-1]["function"]["arguments"] += function.get("arguments") or ""

        if chunk.finish_reason is not None:
            self.finish_reason = chunk.finish_reason

    @property
    def content(self) -> Optional[str]:
        if not self.content_parts and self.tool_calls:
            return None
        return "".join(self.content_parts)

    def message(self) -> dict:
        message = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = self.tool_calls
        return message
