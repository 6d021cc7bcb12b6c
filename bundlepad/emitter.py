"""Formatting of build results for display."""
from __future__ import annotations

import re
from typing import Iterable

from .protocol import BuildFailure, BuildResult, OutputChunk

# CSI sequences (colors, cursor movement) plus lone OSC hyperlinks.
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def join_chunks(chunks: Iterable[OutputChunk]) -> str:
    """Concatenate chunks in output order, each under a ``//fileName`` line."""

    return "\n".join(f"//{chunk.fileName}\n{chunk.content}" for chunk in chunks)


def round_elapsed(elapsed_ms: float) -> float:
    return round(elapsed_ms, 2)


def render_result(result: BuildResult | None) -> str:
    if result is None:
        return ""
    if isinstance(result, BuildFailure):
        return result.error_text
    return join_chunks(result.chunks)


def render_status(compiling: bool, elapsed_ms: float) -> str:
    return "Compiling..." if compiling else f"{elapsed_ms}ms"
