"""CLI Adapters for the Gemini CLI"""
from .gemini_adapter import (
    GeminiProcess, build_prompt, build_gemini_command, launch_gemini_process,
    run_gemini_chunks, stream_gemini_completion, collect_gemini_completion
)
from .prompt_staging import PromptStaging

__all__ = [
    'GeminiProcess', 'build_prompt', 'build_gemini_command', 'launch_gemini_process',
    'run_gemini_chunks', 'stream_gemini_completion', 'collect_gemini_completion',
    'PromptStaging'
]
