#!/usr/bin/env python3
"""
Prompt Staging
Writes the composed prompt to a scratch file that the CLI reads as stdin
"""

import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from utils.helpers import TraceFn, emit_log as _emit_log

logger = logging.getLogger(__name__)


class PromptStaging:
    """
    Owns at most one staged prompt file.
    cleanup() is idempotent; use the instance as a context manager so the file
    is removed on every exit path.
    """

    def __init__(self, scratch_dir: Path, trace: Optional[TraceFn] = None):
        self.scratch_dir = Path(scratch_dir)
        self.trace = trace
        self.path: Optional[Path] = None

    def stage(self, prompt: str) -> Path:
        """Write prompt to a fresh file and return its path."""
        if self.path is not None:
            self.cleanup()

        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        # Millisecond prefix keeps files sortable, the uuid keeps them unique
        path = self.scratch_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex}"
        path.write_text(prompt, encoding="utf-8")
        self.path = path
        _emit_log(self.trace, "prompt.staged", f"path={path} chars={len(prompt)}", level=logging.DEBUG)
        return path

    def cleanup(self):
        """Delete the staged file, if any."""
        if self.path is None:
            return
        path, self.path = self.path, None
        try:
            path.unlink(missing_ok=True)
            _emit_log(self.trace, "prompt.cleaned", f"path={path}", level=logging.DEBUG)
        except OSError as e:
            _emit_log(self.trace, "prompt.cleanup_error", f"path={path} error={e}", level=logging.WARNING)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False
