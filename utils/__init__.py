"""Utility functions package"""
from .helpers import make_trace_logger, emit_log, safe_cmd, truncate, new_call_id, new_completion_id
from .sse import ChunkFramer, DONE_FRAME, SSE_HEADERS, format_sse

__all__ = [
    'make_trace_logger', 'emit_log', 'safe_cmd', 'truncate', 'new_call_id',
    'new_completion_id', 'ChunkFramer', 'DONE_FRAME', 'SSE_HEADERS', 'format_sse'
]
