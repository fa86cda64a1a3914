"""
Preprocessor for tech units.

The passes run in a fixed order: comment removal, continuation-marker
removal, recursive ``#include`` expansion and ``#global`` substitution. Each
pass either keeps the text length (blanking) or edits through
``SourceBuffer.splice`` so line offsets and include spans stay valid.
"""

import os
import re

from loguru import logger

from protofx.compiler.errors import (
    CircularIncludeError,
    Diagnostics,
    IncludeNotFoundError,
    TechReferenceError,
)
from protofx.compiler.models import IncludeSpan, SourceBuffer

DEFAULT_MAX_INCLUDE_DEPTH = 32

# Block comments, line comments, string literals and verbatim strings in one
# alternation, so comment markers inside strings are never treated as comments
COMMENTS_AND_STRINGS = re.compile(
    r"/\*.*?\*/"
    r"|//[^\n]*"
    r'|"(?:\\[^\n]|[^"\n\\])*"'
    r'|@(?:"[^"]*")+',
    re.DOTALL,
)
CONTINUATION = re.compile(r"\.\.\.[ \t]*\r?\n")
INCLUDE = re.compile(r'^[ \t]*#include[ \t]+"([^"\n]*)"', re.MULTILINE)
GLOBAL = re.compile(r"#global[ \t]+(\w+)[ \t]+(\w+)")


def _blank(text: str) -> str:
    """Replace every character except line breaks with a space."""
    return re.sub(r"[^\n]", " ", text)


def remove_comments(text: str) -> str:
    """Blank out ``/*...*/`` and ``//...`` comments, keeping string literals.

    Args:
        text: String to remove comments from

    Returns:
        String of the same length and line count without comments
    """

    def replace(match: re.Match[str]) -> str:
        value = match.group(0)
        if value.startswith(("/*", "//")):
            return _blank(value)
        return value

    return COMMENTS_AND_STRINGS.sub(replace, text)


def remove_continuations(buffer: SourceBuffer) -> None:
    """Blank ``...`` line continuation markers including their line break.

    The removed line breaks are remembered as soft breaks so that lines after
    a continuation still map to their file line numbers.
    """
    matches = list(CONTINUATION.finditer(buffer.text))
    if not matches:
        return
    text = buffer.text
    for match in reversed(matches):
        text = text[: match.start()] + " " * len(match.group(0)) + text[match.end() :]
    buffer.text = text
    buffer.soft_breaks = sorted(buffer.soft_breaks + [m.end() - 1 for m in matches])
    buffer.rebuild()
    logger.debug(f"Removed {len(matches)} line continuation marker(s)")


def resolve_include(path: str, base_dir: str) -> str:
    """Resolve an include path (absolute or relative to ``base_dir``)."""
    if os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(base_dir, path))


def expand_includes(
    buffer: SourceBuffer,
    base_dir: str,
    diagnostics: Diagnostics | None = None,
    stack: tuple[str, ...] = (),
    max_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
) -> None:
    """Replace every ``#include "file"`` directive with the preprocessed file.

    Args:
        buffer: Buffer to expand in place
        base_dir: Directory relative include paths are resolved against
        diagnostics: Sink for recoverable include errors; when None they raise
        stack: Resolved paths of the files currently being expanded
        max_depth: Maximum include nesting

    Raises:
        IncludeNotFoundError: If a file is missing and no sink is given
        CircularIncludeError: If an include cycle or the depth limit is hit
            and no sink is given
    """
    offset = 0
    for match in list(INCLUDE.finditer(buffer.text)):
        start, end = match.start() + offset, match.end() + offset
        include = match.group(1)
        path = resolve_include(include, base_dir)

        try:
            if not os.path.isfile(path):
                raise IncludeNotFoundError(include)
            if os.path.abspath(path) in stack:
                raise CircularIncludeError(include)
            if len(stack) >= max_depth:
                raise CircularIncludeError(include, f"exceeds the include depth of {max_depth}")
            with open(path, encoding="utf-8") as f:
                content = f.read()
            inserted = preprocess_buffer(
                content,
                os.path.dirname(path),
                file=path,
                diagnostics=diagnostics,
                stack=stack + (os.path.abspath(path),),
                max_depth=max_depth,
                apply_globals=False,
            )
        except TechReferenceError as e:
            if diagnostics is None:
                raise
            diagnostics.add(e.message, file=buffer.file, line=buffer.locate(start)[1])
            logger.warning(f"Skipping include '{include}': {e.message}")
            # the directive is blanked so the unit still compiles
            text = buffer.text
            buffer.text = text[:start] + _blank(text[start:end]) + text[end:]
            continue

        offset += buffer.splice(start, end, inserted.text, inserted=inserted)
        logger.debug(f"Included '{path}' ({len(inserted.text)} characters)")


def resolve_globals(buffer: SourceBuffer) -> dict[str, str]:
    """Apply ``#global KEY VALUE`` definitions.

    The directive itself is removed, then every later occurrence of ``KEY``
    is replaced by ``VALUE``. This is a plain substring replacement: partial
    words and the contents of string literals are replaced as well.

    Returns:
        The definitions in the order they were applied
    """
    definitions: dict[str, str] = {}
    position = 0
    while (match := GLOBAL.search(buffer.text, position)) is not None:
        key, value = match.group(1), match.group(2)
        definitions[key] = value
        position = match.start()
        buffer.splice(match.start(), match.end(), "")

        count = 0
        search = position
        while (index := buffer.text.find(key, search)) >= 0:
            buffer.splice(index, index + len(key), value)
            search = index + len(value)
            count += 1
        logger.debug(f"Resolved #global {key} -> {value} ({count} occurrence(s))")
    return definitions


def preprocess_buffer(
    text: str,
    base_dir: str,
    file: str | None = None,
    diagnostics: Diagnostics | None = None,
    stack: tuple[str, ...] = (),
    max_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
    apply_globals: bool = True,
) -> SourceBuffer:
    """Run all preprocessor passes and return the merged buffer.

    Included files get comment removal, continuation removal and include
    expansion; ``#global`` definitions are resolved once on the merged unit.
    """
    buffer = SourceBuffer(remove_comments(text), file=file)
    remove_continuations(buffer)
    if file is not None and not stack:
        stack = (os.path.abspath(file),)
    expand_includes(buffer, base_dir, diagnostics, stack, max_depth)
    if apply_globals:
        resolve_globals(buffer)
    return buffer


def preprocess(
    text: str,
    base_dir: str,
    diagnostics: Diagnostics | None = None,
    file: str | None = None,
    max_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
) -> tuple[str, list[int], list[IncludeSpan]]:
    """Preprocess a tech unit.

    Args:
        text: Raw unit text
        base_dir: Directory relative include paths are resolved against
        diagnostics: Sink for recoverable include errors; when None they raise
        file: Path of the unit, if it was read from disk
        max_depth: Maximum include nesting

    Returns:
        Tuple of (preprocessed text, line-start offsets, include spans)

    Raises:
        IncludeNotFoundError: If an include target does not exist and no
            diagnostics sink is given
    """
    buffer = preprocess_buffer(text, base_dir, file, diagnostics, max_depth=max_depth)
    return buffer.text, buffer.offsets, buffer.spans
