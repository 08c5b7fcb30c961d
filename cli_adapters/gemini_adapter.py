#!/usr/bin/env python3
"""
Gemini CLI Adapter
Handles Gemini CLI execution and incremental streaming via --output-format stream-json
"""

import asyncio
import logging
import time
from collections import deque
from contextlib import aclosing, suppress
from typing import AsyncGenerator, Deque, List, Optional

import anyio

from config import BridgeConfig
from models import Chunk, GeminiLaunchError, Message, Tool
from cli_streaming import (
    READ_CHUNK_SIZE, ChunkAccumulator, StreamTranscoder,
    iter_chunks, iter_lines, iter_stream_events
)
from prompts import build_prompt_with_tools, flatten_messages
from utils.helpers import TraceFn, emit_log as _emit_log, safe_cmd as _safe_cmd, truncate as _truncate
from utils.sse import DONE_FRAME, ChunkFramer
from .prompt_staging import PromptStaging

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20


class GeminiProcess:
    """Live handle on one Gemini CLI child process"""

    def __init__(self, process: asyncio.subprocess.Process, cmd: List[str]):
        self.process = process
        self.cmd = cmd

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self.process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader:
        return self.process.stderr

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def wait(self) -> int:
        return await self.process.wait()

    def kill(self):
        if self.running:
            with suppress(ProcessLookupError):
                self.process.kill()


def build_prompt(messages: List[Message], tools: Optional[List[Tool]] = None) -> str:
    """Flatten the conversation and inject the tool protocol when tools are present."""
    return build_prompt_with_tools(flatten_messages(messages), tools)


def build_gemini_command(model: str, config: BridgeConfig) -> List[str]:
    return [config.cli_path, "--model", model, "--output-format", "stream-json", *config.extra_args]


async def launch_gemini_process(
    prompt_path,
    model: str,
    config: BridgeConfig,
    trace: Optional[TraceFn] = None,
) -> GeminiProcess:
    """Spawn the CLI with the staged prompt file as its stdin."""
    cmd = build_gemini_command(model, config)
    _emit_log(trace, "gemini.exec.start", f"cmd={_safe_cmd(cmd)} prompt_file={prompt_path}")
    try:
        with open(prompt_path, "rb") as prompt_file:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=prompt_file,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=config.stream_limit,
            )
    except OSError as e:
        raise GeminiLaunchError(f"Failed to start Gemini CLI: {e}") from e
    return GeminiProcess(process, cmd)


async def drain_stderr(
    reader: asyncio.StreamReader,
    config: BridgeConfig,
    trace: Optional[TraceFn],
    tail: Deque[str],
):
    """Log stderr lines as they arrive, skipping known-harmless notices."""
    async for line in iter_lines(iter_chunks(reader)):
        if any(marker in line for marker in config.benign_stderr_markers):
            continue
        tail.append(line)
        _emit_log(trace, "gemini.stderr", _truncate(line), level=logging.ERROR)


async def run_gemini_chunks(
    prompt: str,
    model: str,
    has_tools: bool,
    config: BridgeConfig,
    trace: Optional[TraceFn] = None,
) -> AsyncGenerator[Chunk, None]:
    """
    Run one CLI invocation and yield transcoded chunks.
    The prompt file, the process and the stderr reader are torn down on every
    path, including the consumer closing the generator early.
    """
    start = time.time()
    staging = PromptStaging(config.temp_folder, trace=trace)
    transcoder = StreamTranscoder.for_request(has_tools, trace=trace, max_buffer_chars=config.max_buffer_chars)
    gemini: Optional[GeminiProcess] = None
    stderr_task: Optional[asyncio.Task] = None
    stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    watchdog: Optional[asyncio.TimerHandle] = None
    event_count = 0

    def on_timeout():
        _emit_log(trace, "gemini.stream.timeout", f"limit={config.timeout}s killing process", level=logging.ERROR)
        if gemini is not None:
            gemini.kill()

    try:
        prompt_path = staging.stage(prompt)
        gemini = await launch_gemini_process(prompt_path, model, config, trace=trace)
        stderr_task = asyncio.create_task(drain_stderr(gemini.stderr, config, trace, stderr_tail))
        if config.timeout:
            watchdog = asyncio.get_running_loop().call_later(config.timeout, on_timeout)

        _emit_log(trace, "gemini.stream.start", f"mode={transcoder.mode.value} model={model}")
        events = iter_stream_events(iter_lines(iter_chunks(gemini.stdout)), trace=trace)
        async with aclosing(events):
            async for event in events:
                event_count += 1
                for chunk in transcoder.feed(event):
                    yield chunk
                if transcoder.done:
                    break

        if not transcoder.done:
            if config.finish_on_eof:
                _emit_log(trace, "gemini.stream.eof_finish", "no result event, finishing at EOF", level=logging.WARNING)
                for chunk in transcoder.finish():
                    yield chunk
            else:
                _emit_log(trace, "gemini.stream.no_result", "stream ended without a result event", level=logging.WARNING)

        # Let the CLI flush whatever it still writes so it can exit cleanly
        while await gemini.stdout.read(READ_CHUNK_SIZE):
            pass
        await stderr_task
        returncode = await gemini.wait()

        _emit_log(
            trace,
            "gemini.exec.done",
            f"rc={returncode} elapsed={time.time() - start:.2f}s events={event_count}",
        )
        if returncode != 0:
            _emit_log(
                trace,
                "gemini.exec.failed",
                f"rc={returncode} stderr={_truncate(' | '.join(stderr_tail), 1000)}",
                level=logging.ERROR,
            )

    except Exception as e:
        _emit_log(trace, "gemini.stream.error", str(e), level=logging.ERROR)

    finally:
        # Synchronous teardown first; a cancelled request may not get another await
        if watchdog is not None:
            watchdog.cancel()
        staging.cleanup()
        if gemini is not None:
            gemini.kill()
        if stderr_task is not None and not stderr_task.done():
            stderr_task.cancel()

        with anyio.CancelScope(shield=True):
            if gemini is not None:
                await gemini.wait()
            if stderr_task is not None:
                with suppress(asyncio.CancelledError):
                    await stderr_task


async def stream_gemini_completion(
    prompt: str,
    model: str,
    has_tools: bool,
    config: BridgeConfig,
    trace: Optional[TraceFn] = None,
) -> AsyncGenerator[str, None]:
    """Stream a completion as OpenAI SSE frames, ending with [DONE] after the terminal chunk."""
    framer = ChunkFramer(model)
    chunks = run_gemini_chunks(prompt, model, has_tools, config, trace=trace)
    async with aclosing(chunks):
        async for chunk in chunks:
            yield framer.frame(chunk)
            if chunk.finish_reason is not None:
                yield DONE_FRAME


async def collect_gemini_completion(
    prompt: str,
    model: str,
    has_tools: bool,
    config: BridgeConfig,
    trace: Optional[TraceFn] = None,
) -> ChunkAccumulator:
    """Run a completion to the end and fold its chunks into one message."""
    accumulator = ChunkAccumulator()
    chunks = run_gemini_chunks(prompt, model, has_tools, config, trace=trace)
    async with aclosing(chunks):
        async for chunk in chunks:
            accumulator.add(chunk)
    return accumulator
