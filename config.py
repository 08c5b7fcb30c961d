#!/usr/bin/env python3
"""
Configuration and Constants for Gemini CLI Bridge
Centralizes all environment variables, paths, and configuration settings
"""

import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

# ============================================================================
# Version and Basic Configuration
# ============================================================================

VERSION = "0.3.0"
BRIDGE_HOST = os.getenv("GEMINI_BRIDGE_HOST", "0.0.0.0")
BRIDGE_PORT = int(os.getenv("GEMINI_BRIDGE_PORT", "3000"))

# ============================================================================
# Prompt Staging
# ============================================================================

# Scratch directory for staged prompt files (relative to the working dir)
TEMP_FOLDER = Path(os.getenv("TEMP_FOLDER", "./temp"))

# ============================================================================
# CLI Paths and Limits
# ============================================================================

GEMINI_CLI_PATH = os.getenv("GEMINI_CLI_PATH", "gemini")
GEMINI_DEFAULT_MODEL = os.getenv("GEMINI_DEFAULT_MODEL", "gemini-2.5-flash")
GEMINI_EXTRA_ARGS = shlex.split(os.getenv("GEMINI_EXTRA_ARGS", ""))
GEMINI_TIMEOUT = int(os.getenv("GEMINI_TIMEOUT", "0"))  # 0 = no limit
GEMINI_FINISH_ON_EOF = os.getenv("GEMINI_FINISH_ON_EOF", "0") == "1"
GEMINI_MAX_BUFFER_CHARS = int(os.getenv("GEMINI_MAX_BUFFER_CHARS", "0"))  # 0 = unbounded
GEMINI_STREAM_LIMIT = int(os.getenv("GEMINI_STREAM_LIMIT", str(4 * 1024 * 1024)))

# stderr lines containing any of these are not worth logging
BENIGN_STDERR_MARKERS = ["Loaded cached credentials."]

# ============================================================================
# Supported Models
# ============================================================================

SUPPORTED_MODELS = {
    "gemini-2.5-flash-lite": {"owned_by": "google"},
    "gemini-2.5-pro": {"owned_by": "google"},
    "gemini-2.5-flash": {"owned_by": "google"},
    "gemini-3-flash-preview": {"owned_by": "google"},
    "gemini-3-pro-preview": {"owned_by": "google"},
}


@dataclass(frozen=True)
class BridgeConfig:
    """Per-app snapshot of the settings above, handed to the request pipeline"""
    temp_folder: Path = TEMP_FOLDER
    cli_path: str = GEMINI_CLI_PATH
    default_model: str = GEMINI_DEFAULT_MODEL
    extra_args: List[str] = field(default_factory=lambda: list(GEMINI_EXTRA_ARGS))
    timeout: Optional[float] = GEMINI_TIMEOUT or None
    finish_on_eof: bool = GEMINI_FINISH_ON_EOF
    max_buffer_chars: int = GEMINI_MAX_BUFFER_CHARS
    stream_limit: int = GEMINI_STREAM_LIMIT
    benign_stderr_markers: List[str] = field(default_factory=lambda: list(BENIGN_STDERR_MARKERS))
    models: Dict[str, Dict[str, str]] = field(default_factory=lambda: dict(SUPPORTED_MODELS))


def load_bridge_config() -> BridgeConfig:
    """Build the bridge configuration from the environment-derived defaults."""
    return BridgeConfig()

# ============================================================================
# Logging Configuration
# ============================================================================

# Default to DEBUG so stream tracing is visible when tailing logs
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.DEBUG),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
