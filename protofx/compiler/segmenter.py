"""
Block segmentation of preprocessed tech text.

A block is a balanced top-level ``{...}`` region whose opening brace ends a
``TYPE [ANNOTATION] NAME {`` header.
"""

import re
from collections.abc import Iterator

from protofx.compiler.errors import TechSyntaxError
from protofx.compiler.models import Block

HEADER = re.compile(r"(\w+\s*){2,3}\{")


def find_brace_spans(text: str) -> list[tuple[int, int]]:
    """Find all top-level balanced brace regions.

    Args:
        text: String to process

    Returns:
        List of (opening brace offset, closing brace offset) pairs

    Raises:
        TechSyntaxError: On a ``}`` without opener or a ``{`` left open
    """
    spans = []
    depth = 0
    nline = 0
    opener = 0
    opener_line = 0
    for i, char in enumerate(text):
        if char == "\n":
            nline += 1
        elif char == "{":
            if depth == 0:
                opener, opener_line = i, nline
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise TechSyntaxError("Unexpected occurrence of '}'.", line=nline)
            if depth == 0:
                spans.append((opener, i))
    if depth > 0:
        raise TechSyntaxError("Missing '}' for the block opened here.", line=opener_line)
    return spans


def split_header(header: str) -> list[str]:
    """Split a block header into its TYPE, [ANNOTATION] and NAME tokens.

    Raises:
        TechSyntaxError: If the header has fewer than two tokens
    """
    tokens = re.findall(r"\w+", header.rstrip("{"))
    if len(tokens) < 2:
        raise TechSyntaxError(
            f"Invalid block definition '{header.strip()}' "
            "(expected 'TYPE [ANNOTATION] NAME {')."
        )
    return tokens


def segment(text: str) -> Iterator[Block]:
    """Yield every block of the text in order of appearance.

    The brace balance of the whole text is validated before the first block
    is produced. Each call starts a new scan.

    Args:
        text: Preprocessed tech text

    Yields:
        Blocks with ``text`` and ``offset`` set (location and commands are
        filled in by the compilation pipeline)

    Raises:
        TechSyntaxError: On unbalanced braces or a malformed header
    """
    closing = dict(find_brace_spans(text))
    for match in HEADER.finditer(text):
        brace = match.end() - 1
        if brace not in closing:
            continue
        split_header(match.group(0))
        yield Block(text=text[match.start() : closing[brace] + 1], offset=match.start())
