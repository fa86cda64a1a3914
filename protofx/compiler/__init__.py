"""
Compilation pipeline for tech units.

This module provides the top-level interface of the tech compiler: preprocess
the unit, segment it into blocks, attribute every block to its origin file
and line, and parse the block bodies into commands.
"""

import os

from loguru import logger

from protofx.compiler.commands import parse_commands
from protofx.compiler.errors import Diagnostics
from protofx.compiler.models import (
    Block,
    Command,
    IncludeSpan,
    SourceBuffer,
    get_line_offsets,
)
from protofx.compiler.preprocessor import DEFAULT_MAX_INCLUDE_DEPTH, preprocess_buffer
from protofx.compiler.segmenter import segment


def compile_buffer(buffer: SourceBuffer) -> list[Block]:
    """Segment a preprocessed buffer and parse every block.

    Raises:
        TechSyntaxError: On unbalanced braces or a malformed header
    """
    blocks = []
    for block in segment(buffer.text):
        block.file, block.line, block.column = buffer.locate(block.offset)
        block.commands = parse_commands(block.body)
        # Continuations join lines, so command lines are mapped through the buffer
        body_start = block.offset + block.text.index("{") + 1
        line_starts = get_line_offsets(block.body)
        for command in block.commands:
            _, line, _ = buffer.locate(body_start + line_starts[command.line])
            command.line = line - block.body_line
        logger.debug(
            f"Block {block.type} '{block.name}' at {block.file or '<unit>'}:{block.line} "
            f"with {len(block.commands)} command(s)"
        )
        blocks.append(block)
    return blocks


def compile_tech(
    text: str,
    base_dir: str,
    file: str | None = None,
    diagnostics: Diagnostics | None = None,
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
) -> list[Block]:
    """Compile the text of one tech unit into blocks.

    Missing or circular includes are recoverable: they are recorded in
    ``diagnostics`` (or logged when no sink is given) and the directive is
    skipped.

    Args:
        text: Unit text
        base_dir: Directory relative include paths are resolved against
        file: Path of the unit, if it was read from disk
        diagnostics: Sink for include errors
        max_include_depth: Maximum include nesting

    Returns:
        Blocks in order of appearance

    Raises:
        TechSyntaxError: On unbalanced braces or a malformed header
    """
    sink = diagnostics if diagnostics is not None else Diagnostics()
    buffer = preprocess_buffer(text, base_dir, file, sink, max_depth=max_include_depth)
    if diagnostics is None and sink.has_errors():
        for diag in sink.errors:
            logger.warning(str(diag))
    return compile_buffer(buffer)


def compile_file(
    path: str,
    diagnostics: Diagnostics | None = None,
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
) -> list[Block]:
    """Read and compile a tech file (see ``compile_tech``)."""
    with open(path, encoding="utf-8") as f:
        text = f.read()
    return compile_tech(
        text,
        os.path.dirname(os.path.abspath(path)),
        file=path,
        diagnostics=diagnostics,
        max_include_depth=max_include_depth,
    )


__all__ = [
    "Block",
    "Command",
    "Diagnostics",
    "IncludeSpan",
    "SourceBuffer",
    "compile_buffer",
    "compile_file",
    "compile_tech",
]
