"""
Watch markers for GPU-side debugging.

A watch marker ``<<<expr>>>`` inside ``main`` asks for the value of ``expr``
to be captured when the selected invocation runs. A regular build strips the
markers. A debug build keeps the plain body for every other invocation and
runs a copy of the body that stores each watched value into the debug output
buffer for the selected one.
"""

import itertools
import re

from protofx.transpiler.constants import (
    DEBUG_CONDITIONS,
    DEBUG_HEADER,
    DEBUG_UNIFORMS,
    WATCH_CLOSE,
    WATCH_OPEN,
)
from protofx.transpiler.instrument import find_matching
from protofx.transpiler.models import StageKind

WATCH = re.compile(rf"{re.escape(WATCH_OPEN)}(.*?){re.escape(WATCH_CLOSE)}", re.DOTALL)
MAIN = re.compile(r"\bvoid\s+main\s*\(\s*\)\s*\{")


class WatchCounter:
    """Watch index shared by every shader compiled in one debug session."""

    def __init__(self):
        self._count = itertools.count()

    def __next__(self) -> int:
        return next(self._count)

    def __iter__(self):
        return self

    def reset(self) -> None:
        self._count = itertools.count()


def strip_watches(text: str) -> str:
    """Remove every watch marker including its expression."""
    return WATCH.sub("", text)


def add_debug_code(
    glsl: str,
    stage: StageKind,
    debug: bool,
    counter: WatchCounter,
) -> str:
    """Strip or expand the watch markers of a shader's ``main``.

    Args:
        glsl: Shader source
        stage: Stage the shader belongs to
        debug: Whether to generate the debug entry point
        counter: Session-wide watch index

    Returns:
        The rewritten shader source (unchanged if ``main`` has no markers)
    """
    main = MAIN.search(glsl)
    if main is None:
        return glsl
    open_index = main.end() - 1
    close_index = find_matching(glsl, open_index)
    if close_index < 0:
        return glsl

    head = glsl[: main.start()]
    body = glsl[open_index : close_index + 1]
    tail = glsl[close_index + 1 :]
    if WATCH.search(body) is None:
        return glsl

    run_body = strip_watches(body)
    if not debug:
        return f"{glsl[:open_index]}{run_body}{tail}"

    debug_body = WATCH.sub(
        lambda m: f"_dbgIdx = _dbgStoreVar(_dbgIdx, {m.group(1).strip()}, {next(counter)});",
        body,
    )
    index = stage.index
    return (
        f"{head}"
        f"{DEBUG_HEADER.format(stage=index)}"
        f"uniform {DEBUG_UNIFORMS[index]};\n"
        f"void main() {{\n"
        f"if ({DEBUG_CONDITIONS[index]}) {{\n"
        f"int _dbgIdx = 0;\n"
        f"{debug_body}\n"
        f"}} else {run_body}\n"
        f"}}"
        f"{tail}"
    )
