"""Shared fixtures: project root on the import path and a fake Gemini CLI."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import BridgeConfig  # noqa: E402

FAKE_CLI_TEMPLATE = """#!{python}
import json
import sys

with open({calls!r}, "a", encoding="utf-8") as calls:
    calls.write(json.dumps({{"argv": sys.argv[1:], "stdin": sys.stdin.read()}}) + "\\n")

with open({stdout!r}, "rb") as out:
    sys.stdout.buffer.write(out.read())
sys.stdout.flush()
sys.stderr.write({stderr!r})
sys.exit({exit_code})
"""


class FakeCli:
    """Handle returned by the fake_cli fixture."""

    def __init__(self, path: Path, calls_path: Path) -> None:
        self.path = path
        self.calls_path = calls_path

    @property
    def calls(self) -> list[dict[str, Any]]:
        if not self.calls_path.exists():
            return []
        return [json.loads(line) for line in self.calls_path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def fake_cli(tmp_path: Path) -> Callable[..., FakeCli]:
    """Write an executable that records its input and replays canned stdout."""

    def _make(stdout_lines: list[Any], stderr: str = "", exit_code: int = 0) -> FakeCli:
        stdout_path = tmp_path / "stdout.ndjson"
        payload = "".join(
            (line if isinstance(line, str) else json.dumps(line)) + "\n" for line in stdout_lines
        )
        stdout_path.write_text(payload, encoding="utf-8")
        calls_path = tmp_path / "calls.jsonl"
        script = tmp_path / "fake-gemini"
        script.write_text(
            FAKE_CLI_TEMPLATE.format(
                python=sys.executable,
                calls=str(calls_path),
                stdout=str(stdout_path),
                stderr=stderr,
                exit_code=exit_code,
            ),
            encoding="utf-8",
        )
        os.chmod(script, 0o755)
        return FakeCli(script, calls_path)

    return _make


@pytest.fixture
def bridge_config(tmp_path: Path) -> Callable[..., BridgeConfig]:
    """Config factory pointing the scratch dir into tmp_path."""

    def _make(cli: FakeCli | None = None, **overrides: Any) -> BridgeConfig:
        values: dict[str, Any] = {
            "temp_folder": tmp_path / "scratch",
            "cli_path": str(cli.path) if cli else str(tmp_path / "missing-gemini"),
            "extra_args": [],
        }
        values.update(overrides)
        return BridgeConfig(**values)

    return _make
