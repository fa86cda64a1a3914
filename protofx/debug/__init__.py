"""Runtime support for tracing emulated shader invocations."""

from protofx.debug.invocation import DebugSettings, EmulatedShader
from protofx.debug.session import DebugSession
from protofx.debug.trace import (
    TraceRecord,
    clear_trace,
    get_trace,
    is_collecting,
    trace_call,
    trace_variable,
    tracing,
)

__all__ = [
    "DebugSession",
    "DebugSettings",
    "EmulatedShader",
    "TraceRecord",
    "clear_trace",
    "get_trace",
    "is_collecting",
    "trace_call",
    "trace_variable",
    "tracing",
]
