#!/usr/bin/env python3
"""
Helper Utilities
Trace logging, log formatting, and id generation for the bridge
"""

import logging
import shlex
import uuid
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TraceFn = Callable[[str, str, int], None]

UNTRACED_ID = "-"


def make_trace_logger() -> tuple[str, TraceFn]:
    """Create a per-request trace logger; every line carries the request's short id."""
    trace_id = uuid.uuid4().hex[:8]

    def trace(stage: str, message: str, level: int = logging.INFO):
        logger.log(level, f"[{trace_id}] {stage} | {message}")

    return trace_id, trace

def emit_log(trace: Optional[TraceFn], stage: str, message: str, level: int = logging.INFO):
    """Log through the request trace when there is one, else under the placeholder id."""
    if trace is not None:
        trace(stage, message, level)
        return
    logger.log(level, f"[{UNTRACED_ID}] {stage} | {message}")

def safe_cmd(cmd: list[str]) -> str:
    """Render an argv list as a copy-pasteable shell line."""
    return " ".join(shlex.quote(str(part)) for part in cmd)

def truncate(text: str, limit: int = 200) -> str:
    """Shorten CLI text for a single log line; newlines are shown escaped."""
    text = text.replace("\r", "").replace("\n", "\\n")
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [+{len(text) - limit} chars]"

def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"

def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"
