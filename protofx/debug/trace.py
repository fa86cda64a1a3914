"""
Trace log of instrumented shader code.

Instrumented code calls ``trace_variable`` and ``trace_call`` around every
traced expression. Both return their first argument unchanged; while
collection is enabled for the current thread they also append a record with
the caller's position, shifted by the line offset of the traced shader.
"""

import inspect
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")

INFIX_OPERATORS = frozenset({"+", "-", "*", "/"})


@dataclass
class TraceRecord:
    """One captured sample.

    Attributes:
        line: Line in the tech file
        column: Column in the generated source
        label: Traced expression or called function
        output: String form of the value
        inputs: String forms of the call arguments, None for variables
    """

    line: int
    column: int
    label: str
    output: str
    inputs: list[str] | None = None

    def __str__(self) -> str:
        position = f"[L{self.line}, C{self.column}]"
        if self.inputs is None:
            return f"{position} {self.label}: {self.output}"
        if self.label in INFIX_OPERATORS and len(self.inputs) == 2:
            return f"{position} {self.output} = {self.inputs[0]} {self.label} {self.inputs[1]}"
        return f"{position} {self.output} = {self.label}({', '.join(self.inputs)})"


_log: list[TraceRecord] = []
_state = threading.local()


def is_collecting() -> bool:
    return getattr(_state, "collecting", False)


def _line_offset() -> int:
    return getattr(_state, "line_offset", 0)


def _caller_position() -> tuple[int, int]:
    # Skip this helper and the trace function itself
    frame = inspect.currentframe().f_back.f_back
    try:
        info = inspect.getframeinfo(frame, context=0)
    finally:
        del frame
    positions = getattr(info, "positions", None)
    column = positions.col_offset if positions is not None and positions.col_offset else 0
    return info.lineno, column


def trace_variable(value: T, label: str) -> T:
    """Record the value of a traced expression and return it unchanged."""
    if not is_collecting():
        return value
    line, column = _caller_position()
    _log.append(TraceRecord(line + _line_offset(), column, label, str(value)))
    return value


def trace_call(output: T, label: str, *inputs: Any) -> T:
    """Record a call (or operator) result with its inputs and return it unchanged."""
    if not is_collecting():
        return output
    line, column = _caller_position()
    _log.append(
        TraceRecord(
            line + _line_offset(),
            column,
            label,
            str(output),
            [str(value) for value in inputs],
        )
    )
    return output


@contextmanager
def tracing(line_offset: int = 0) -> Iterator[None]:
    """Enable collection on this thread for the duration of one invocation.

    Args:
        line_offset: Added to the line of every record
    """
    previous = (is_collecting(), _line_offset())
    _state.collecting = True
    _state.line_offset = line_offset
    logger.debug(f"Trace collection enabled (line offset {line_offset})")
    try:
        yield
    finally:
        _state.collecting, _state.line_offset = previous


def clear_trace() -> None:
    _log.clear()


def get_trace() -> list[TraceRecord]:
    return list(_log)
