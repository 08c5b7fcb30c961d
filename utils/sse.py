#!/usr/bin/env python3
"""
SSE Framing
Serializes transcoder chunks into OpenAI chat.completion.chunk frames
"""

import json
import time
from typing import Any, Dict, Optional

from models import Chunk
from utils.helpers import new_completion_id

DONE_FRAME = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


class ChunkFramer:
    """Wraps chunks of one response in the chat.completion.chunk envelope"""

    def __init__(self, model: str, chunk_id: Optional[str] = None):
        self.model = model
        self.chunk_id = chunk_id or new_completion_id()

    def make_chunk(self, chunk: Chunk) -> Dict[str, Any]:
        return {
            "id": self.chunk_id,
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": self.model,
            "choices": [{
                "index": 0,
                "delta": chunk.delta,
                "finish_reason": chunk.finish_reason,
            }],
        }

    def frame(self, chunk: Chunk) -> str:
        return format_sse(self.make_chunk(chunk))
