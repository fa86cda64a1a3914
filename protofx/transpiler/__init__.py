"""
Shader transpiler.

This module provides the top-level interface for rewriting shading-language
source into host-language class source that can be compiled and run off the
GPU to trace a single shader invocation.
"""

from loguru import logger

from protofx.transpiler.host_compiler import HostCompiler, HostCompileResult, HostSyntaxError
from protofx.transpiler.instrument import inject_trace_calls
from protofx.transpiler.models import ShaderSource, StageKind, TranspiledSource
from protofx.transpiler.passes import PASSES, TRACE
from protofx.transpiler.watch import WatchCounter, add_debug_code, strip_watches

HOST_NAMESPACE = "ProtoFX"


def transpile(
    stage: StageKind | str, text: str, inject_debug: bool = False
) -> TranspiledSource:
    """Transpile shader source by running every rewrite pass in order.

    Args:
        stage: Stage the source belongs to
        text: Shading-language source
        inject_debug: Whether to wrap variable reads in trace calls

    Returns:
        Host-language text and the traced names in first-seen order
    """
    stage = StageKind.parse(stage)
    traceable: list[str] = []
    for name, rewrite in PASSES:
        if name == TRACE:
            if not inject_debug:
                continue
            text, traceable = inject_trace_calls(text)
        else:
            text = rewrite(text)
        logger.debug(f"Transpiler pass '{name}' done for {stage.annotation} shader")
    return TranspiledSource(host_text=text, traceable=traceable)


def shader_to_class(
    source: ShaderSource,
    name: str,
    inject_debug: bool = False,
    line_in_file: int = 1,
) -> TranspiledSource:
    """Transpile a shader and wrap it into a host class.

    The class derives from the stage's emulation base class and forwards the
    file line of the shader text to it, so trace records carry file lines.

    Args:
        source: Stage and shading-language text of the shader
        name: Class name
        inject_debug: Whether to wrap variable reads in trace calls
        line_in_file: File line holding the first line of ``source.text``

    Returns:
        The class source with ``header_lines`` set for error line mapping
    """
    stage = StageKind.parse(source.stage)
    result = transpile(stage, strip_watches(source.text), inject_debug)
    header = [
        f"namespace {HOST_NAMESPACE} {{",
        f"class {name} : {stage.base_class} {{",
        f"public {name}() : this({line_in_file}) {{ }}",
        f"public {name}(int startLine) : base(startLine) {{ }}",
    ]
    host_text = "\n".join(header) + "\n" + result.host_text + "\n}\n}\n"
    logger.info(
        f"Generated class '{name}' for {stage.annotation} shader "
        f"({len(result.traceable)} traced name(s))"
    )
    return TranspiledSource(
        host_text=host_text, traceable=result.traceable, header_lines=len(header)
    )


__all__ = [
    "HostCompileResult",
    "HostCompiler",
    "HostSyntaxError",
    "ShaderSource",
    "StageKind",
    "TranspiledSource",
    "WatchCounter",
    "add_debug_code",
    "shader_to_class",
    "transpile",
]
