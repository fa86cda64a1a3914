"""
Trace instrumentation of transpiled function bodies.

Every read of a variable or member-access chain inside a function body is
wrapped as ``TraceVariable(expr, "expr")`` so the host runtime can record
its value. Writes, declarations, calls and literals are left alone.
"""

import re

from protofx.transpiler.constants import KEYWORDS, NOT_TRACEABLE, TRACE_FUNCTION

FUNCTION = re.compile(r"\b(\w+)\s+\w+\s*\([^(){};]*\)\s*\{")
WORD = re.compile(r"\w+")
WHITESPACE = re.compile(r"\s*")
# Tokens after an expression that make it a write or a call
NOT_A_READ = re.compile(r"\s*(?:=(?!=)|[*/+\-%&|^]=|<<=|>>=|\+\+|--|\()")


def find_matching(text: str, index: int, open_char: str = "{", close_char: str = "}") -> int:
    """Return the index of the bracket closing the one at ``index`` (-1 if unclosed)."""
    depth = 0
    for pos in range(index, len(text)):
        if text[pos] == open_char:
            depth += 1
        elif text[pos] == close_char:
            depth -= 1
            if depth == 0:
                return pos
    return -1


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _skip_ws(text: str, index: int) -> int:
    return WHITESPACE.match(text, index).end()


def _scan_chain(text: str, index: int) -> int:
    """Return the end of the access chain ``name[...].name[...]`` at ``index``."""
    end = WORD.match(text, index).end()
    while True:
        pos = _skip_ws(text, end)
        while pos < len(text) and text[pos] == "[":
            close = find_matching(text, pos, "[", "]")
            if close < 0:
                return end
            end = close + 1
            pos = _skip_ws(text, end)
        if pos < len(text) and text[pos] == ".":
            after = _skip_ws(text, pos + 1)
            member = WORD.match(text, after)
            if member is not None and not text[after].isdigit():
                end = member.end()
                continue
        return end


def _previous_char(text: str, index: int) -> str:
    pos = index - 1
    while pos >= 0 and text[pos].isspace():
        pos -= 1
    return text[pos] if pos >= 0 else ""


def _is_traceable(body: str, start: int, end: int, label: str) -> bool:
    first = WORD.match(label).group(0)
    if label in NOT_TRACEABLE or first in NOT_TRACEABLE or first[0].isdigit():
        return False
    previous = _previous_char(body, start)
    # Declared names and returned values follow an identifier
    if _is_word_char(previous) or previous == ".":
        return False
    before = body[:start].rstrip()
    if before.endswith("++") or before.endswith("--"):
        return False
    if NOT_A_READ.match(body, end):
        return False
    # A name followed by another name is the type of a declaration
    after = _skip_ws(body, end)
    return not (after < len(body) and _is_word_char(body[after]))


def instrument_body(body: str, traceable: list[str]) -> str:
    """Wrap every traceable read in ``body``.

    Args:
        body: Text of one function body
        traceable: Receives labels of wrapped expressions in first-seen order

    Returns:
        The instrumented body
    """
    chains = []
    pos = 0
    while True:
        match = WORD.search(body, pos)
        if match is None:
            break
        start = match.start()
        end = _scan_chain(body, start)
        label = re.sub(r"\s+", "", body[start:end])
        if _is_traceable(body, start, end, label):
            chains.append((start, end, label))
            if label not in traceable:
                traceable.append(label)
            pos = end
        else:
            # Index expressions of a skipped chain are still scanned
            pos = match.end()
    for start, end, label in reversed(chains):
        body = f'{body[:start]}{TRACE_FUNCTION}({body[start:end]}, "{label}"){body[end:]}'
    return body


def inject_trace_calls(text: str) -> tuple[str, list[str]]:
    """Instrument every function body of a transpiled shader.

    Args:
        text: Shader text after the structural rewrite passes

    Returns:
        The instrumented text and the traced labels in first-seen order
    """
    bodies = []
    limit = 0
    for match in FUNCTION.finditer(text):
        # Control statements such as "else if (c) {" look like definitions
        if match.start() < limit or match.group(1) in KEYWORDS:
            continue
        open_index = match.end() - 1
        close_index = find_matching(text, open_index)
        if close_index < 0:
            continue
        bodies.append((open_index + 1, close_index))
        limit = close_index
    traceable: list[str] = []
    instrumented = []
    cursor = 0
    for start, end in bodies:
        instrumented.append(text[cursor:start])
        instrumented.append(instrument_body(text[start:end], traceable))
        cursor = end
    instrumented.append(text[cursor:])
    return "".join(instrumented), traceable
