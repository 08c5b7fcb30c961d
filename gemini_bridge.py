#!/usr/bin/env python3
"""
Gemini CLI Bridge
Provides an OpenAI-compatible API that proxies chat completions to the Gemini CLI
Tool calls are emulated through a TOOL_CALL: text convention
"""

import logging
import time
import uuid

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse

# Import configuration
from config import VERSION, BRIDGE_HOST, BRIDGE_PORT, BridgeConfig, load_bridge_config

# Import models
from models import ChatCompletionRequest, InvalidRequestError, Model, ModelList

# Import utilities
from utils.helpers import make_trace_logger
from utils.sse import SSE_HEADERS

# Import CLI adapter
from cli_adapters.gemini_adapter import (
    build_prompt, collect_gemini_completion, stream_gemini_completion
)

# Configure logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title="Gemini CLI Bridge", version=VERSION)

_bridge_config = load_bridge_config()


def get_bridge_config() -> BridgeConfig:
    """Dependency hook so the configuration can be swapped per app (and in tests)"""
    return _bridge_config


# ============================================================================
# Error Handling
# ============================================================================

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = InvalidRequestError("Invalid request body", cause=jsonable_encoder(exc.errors()))
    return await invalid_request_handler(request, error)


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    logger.warning(f"request.invalid | path={request.url.path} errors={len(exc.cause)}")
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "message": exc.message,
                "type": "invalid_request_error",
                "param": None,
                "code": None,
                "details": exc.cause,
            }
        },
    )


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/")
@app.get("/v1/")
async def root():
    """Health check endpoint"""
    return {
        "message": "Gemini CLI Proxy is running!",
        "version": VERSION,
        "status": "running",
    }


@app.get("/v1/models")
async def list_models(config: BridgeConfig = Depends(get_bridge_config)) -> ModelList:
    """List available models (OpenAI-compatible)"""
    return ModelList(
        data=[
            Model(id=model_id, object="model", owned_by=meta["owned_by"])
            for model_id, meta in config.models.items()
        ]
    )


@app.post("/v1/chat/completions")
async def chat_completions(body: ChatCompletionRequest, config: BridgeConfig = Depends(get_bridge_config)):
    """Handle chat completion requests (OpenAI-compatible)"""
    trace_id, trace = make_trace_logger()

    model_id = body.model or config.default_model
    has_tools = bool(body.tools)
    prompt = build_prompt(body.messages, body.tools)

    trace(
        "request.start",
        f"model={model_id} stream={body.stream} messages={len(body.messages)} "
        f"tools={len(body.tools) if has_tools else 0} prompt_len={len(prompt)}",
    )

    # Streaming unless the client explicitly asked for a single JSON response
    if body.stream is not False:
        return StreamingResponse(
            stream_gemini_completion(
                prompt=prompt,
                model=model_id,
                has_tools=has_tools,
                config=config,
                trace=trace,
            ),
            media_type="text/event-stream; charset=utf-8",
            headers=SSE_HEADERS,
        )

    result = await collect_gemini_completion(
        prompt=prompt,
        model=model_id,
        has_tools=has_tools,
        config=config,
        trace=trace,
    )
    if result.finish_reason is None:
        trace("request.incomplete", "Gemini CLI ended without a finished response", logging.WARNING)
        raise HTTPException(status_code=502, detail="Gemini CLI ended without a finished response")

    response_text = result.content or ""
    trace("request.done", f"finish_reason={result.finish_reason} tool_calls={len(result.tool_calls)}")

    return {
        "id": f"chatcmpl-{uuid.uuid4()}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model_id,
        "choices": [
            {
                "index": 0,
                "message": result.message(),
                "finish_reason": result.finish_reason,
            }
        ],
        "usage": {
            "prompt_tokens": len(prompt.split()),
            "completion_tokens": len(response_text.split()),
            "total_tokens": len(prompt.split()) + len(response_text.split())
        }
    }


def main():
    import uvicorn
    uvicorn.run(app, host=BRIDGE_HOST, port=BRIDGE_PORT)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    main()
