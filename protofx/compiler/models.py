"""
Data models for the tech compiler.

This module contains the dataclasses passed between the preprocessor, the
block segmenter and the command parser: the merged source buffer with its
position tables, include spans, blocks and commands.
"""

import bisect
from dataclasses import dataclass, field


@dataclass
class IncludeSpan:
    """Half-open range of the merged buffer contributed by one included file.

    Attributes:
        file: Path of the included file
        start: First offset of the range
        end: Offset one past the range
        first_line: Line (1-based) of ``file`` at which the range starts
    """

    file: str
    start: int
    end: int
    first_line: int = 1

    def __contains__(self, offset: int) -> bool:
        return self.start <= offset < self.end


@dataclass
class Command:
    """One line of a block body.

    Attributes:
        name: First token of the line
        args: Remaining raw argument tokens
        line: 0-based line index within the block body
    """

    name: str
    args: list[str] = field(default_factory=list)
    line: int = 0

    @property
    def text(self) -> str:
        return " ".join([self.name, *self.args])

    def __len__(self) -> int:
        return len(self.args)

    def __getitem__(self, index: int) -> str:
        return self.args[index]


@dataclass
class Block:
    """One ``TYPE [ANNOTATION] NAME { ... }`` declaration.

    Attributes:
        text: Raw block text from the header to the closing brace
        offset: Position of the header in the merged buffer
        file: Originating file, None for the top-level unit
        line: 1-based line of the header in ``file``
        column: 0-based column of the header within its line
        commands: Parsed commands of the body
    """

    text: str
    offset: int = 0
    file: str | None = None
    line: int = 1
    column: int = 0
    commands: list[Command] = field(default_factory=list)

    @property
    def header(self) -> list[str]:
        return self.text[: self.text.index("{")].split()

    @property
    def type(self) -> str:
        return self.header[0]

    @property
    def anno(self) -> str | None:
        header = self.header
        return header[1] if len(header) == 3 else None

    @property
    def name(self) -> str:
        return self.header[-1]

    @property
    def body(self) -> str:
        """Text strictly between the header brace and the closing brace."""
        return self.text[self.text.index("{") + 1 : self.text.rindex("}")]

    @property
    def body_line(self) -> int:
        """1-based line in ``file`` on which the body starts."""
        return self.line + self.text[: self.text.index("{")].count("\n")

    def __iter__(self):
        return iter(self.commands)

    def find(self, name: str) -> list[Command]:
        """Return every command called ``name`` (case-insensitive)."""
        return [cmd for cmd in self.commands if cmd.name.lower() == name.lower()]


def get_line_offsets(text: str, soft_breaks: list[int] | None = None) -> list[int]:
    """Find all line-start offsets in a text.

    Args:
        text: The string to process
        soft_breaks: Offsets of removed line breaks that still count as lines

    Returns:
        Sorted line-start offsets, the first one being 0
    """
    breaks = [i for i, char in enumerate(text) if char == "\n"]
    if soft_breaks:
        breaks = sorted(breaks + list(soft_breaks))
    return [0] + [i + 1 for i in breaks]


@dataclass
class SourceBuffer:
    """Merged text of one tech unit together with its position tables.

    Every edit goes through ``splice`` so the line offsets, the soft line
    breaks left by continuation markers and the include spans stay valid.

    Attributes:
        text: Current text
        file: File the buffer was read from, None for an unsaved unit
        spans: Disjoint include spans ordered by start offset
        soft_breaks: Offsets where a line break was blanked by a continuation
        offsets: Line-start offsets (rebuilt after every length change)
    """

    text: str
    file: str | None = None
    spans: list[IncludeSpan] = field(default_factory=list)
    soft_breaks: list[int] = field(default_factory=list)
    offsets: list[int] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        self.rebuild()

    def rebuild(self) -> None:
        self.offsets = get_line_offsets(self.text, self.soft_breaks)

    def splice(
        self, start: int, end: int, replacement: str, inserted: "SourceBuffer | None" = None
    ) -> int:
        """Replace ``text[start:end]`` and keep every position table valid.

        Args:
            start: First offset to replace
            end: Offset one past the replaced range
            replacement: New text
            inserted: Buffer ``replacement`` was taken from; its spans and soft
                breaks are merged and its own text is attributed to its file

        Returns:
            Length difference introduced by the splice
        """
        delta = len(replacement) - (end - start)
        self.text = self.text[:start] + replacement + self.text[end:]

        spans = []
        for span in self.spans:
            if span.end <= start:
                spans.append(span)
            elif span.start >= end:
                spans.append(
                    IncludeSpan(
                        span.file, span.start + delta, span.end + delta, span.first_line
                    )
                )
            else:
                new_end = max(span.end + delta, span.start)
                spans.append(
                    IncludeSpan(span.file, span.start, new_end, span.first_line)
                )

        soft = [b for b in self.soft_breaks if b < start]
        soft += [b + delta for b in self.soft_breaks if b >= end]

        if inserted is not None:
            spans += [
                IncludeSpan(s.file, s.start + start, s.end + start, s.first_line)
                for s in _flatten_spans(inserted)
            ]
            soft += [b + start for b in inserted.soft_breaks]

        self.spans = sorted((s for s in spans if s.end > s.start), key=lambda s: s.start)
        self.soft_breaks = sorted(soft)
        self.rebuild()
        return delta

    def span_at(self, offset: int) -> IncludeSpan | None:
        starts = [span.start for span in self.spans]
        idx = bisect.bisect_right(starts, offset) - 1
        if idx >= 0 and offset in self.spans[idx]:
            return self.spans[idx]
        return None

    def line_index(self, offset: int) -> int:
        """0-based index of the merged-buffer line containing ``offset``."""
        return bisect.bisect_right(self.offsets, offset) - 1

    def locate(self, offset: int) -> tuple[str | None, int, int]:
        """Map a merged-buffer offset back to its origin.

        Args:
            offset: Position in the merged buffer

        Returns:
            Tuple of (file or None for the unit itself, 1-based line, 0-based column)
        """
        column = offset - self.offsets[self.line_index(offset)]
        span = self.span_at(offset)
        if span is not None:
            return span.file, span.first_line + self._lines_between(span.start, offset), column

        line = self.line_index(offset)
        for other in self.spans:
            if other.start >= offset:
                break
            line -= self._lines_between(other.start, other.end)
        return self.file, line + 1, column

    def _lines_between(self, start: int, end: int) -> int:
        return self.line_index(end) - self.line_index(start)


def _flatten_spans(buffer: SourceBuffer) -> list[IncludeSpan]:
    """Cover a whole buffer with disjoint spans attributed to their files."""
    file = buffer.file or "<unknown>"
    result: list[IncludeSpan] = []
    cursor = 0
    for span in buffer.spans:
        if span.start > cursor:
            _, line, _ = buffer.locate(cursor)
            result.append(IncludeSpan(file, cursor, span.start, line))
        result.append(span)
        cursor = span.end
    if cursor < len(buffer.text):
        _, line, _ = buffer.locate(cursor)
        result.append(IncludeSpan(file, cursor, len(buffer.text), line))
    return result
