"""
Exceptions and error aggregation for the tech compiler.

Errors are classified the way the scene builder reacts to them:

- ``TechSyntaxError`` aborts the whole unit (positions are unreliable past it).
- ``TechReferenceError`` and its subclasses abort one object or one include.
- ``FieldError`` and ``ExternalError`` messages are collected in a
  ``Diagnostics`` value and raised together once an object is constructed.
"""

from dataclasses import dataclass
from typing import Any


class ProtoFXError(Exception):
    """Base class of every error raised by protofx."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TechSyntaxError(ProtoFXError):
    """Unmatched brace or malformed block header.

    Attributes:
        line: Number of newline characters preceding the offending character
    """

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        location = f"ERROR in line {line}: " if line is not None else ""
        super().__init__(f"{location}{message}")


class TechReferenceError(ProtoFXError):
    """A name, kind or file could not be resolved."""


class IncludeNotFoundError(TechReferenceError):
    """An ``#include`` target does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The include file '{path}' could not be found.")


class CircularIncludeError(TechReferenceError):
    """An ``#include`` refers back to a file that is still being expanded."""

    def __init__(self, path: str, reason: str = "includes itself"):
        self.path = path
        super().__init__(f"The include file '{path}' {reason}.")


class FieldError(ProtoFXError):
    """Wrong command arity, unconvertible value or unknown field."""


class ExternalError(ProtoFXError):
    """Failure reported by the host compiler or a backend."""


class TranspilerError(ProtoFXError):
    """Invalid request to the shader transpiler (e.g. unknown stage)."""


@dataclass
class Diagnostic:
    """One message of a diagnostics report.

    Attributes:
        context: Concatenated call context at the time the message was added
        message: The message text
        severity: "error" or "warning"
        file: Originating file, if known
        line: Originating line (1-based), if known
    """

    context: str
    message: str
    severity: str = "error"
    file: str | None = None
    line: int | None = None

    def __str__(self) -> str:
        location = ""
        if self.file is not None or self.line is not None:
            location = f"{self.file or ''}({self.line if self.line is not None else '?'}): "
        return f"{location}{self.context}{self.message}"


class DiagnosticsError(ProtoFXError):
    """Aggregate failure raised at the end of one object's construction."""

    def __init__(self, diagnostics: list[Diagnostic]):
        self.diagnostics = list(diagnostics)
        super().__init__(format_report(self.diagnostics))

    @property
    def text(self) -> str:
        return format_report(self.diagnostics)


def format_report(diagnostics: list[Diagnostic]) -> str:
    """Render diagnostics one per line, each terminated by a line break."""
    return "".join(f"{diag}\n" for diag in diagnostics)


class Diagnostics:
    """Error/warning accumulator with a call-context stack.

    Messages are stored in a sink that is shared between a ``Diagnostics``
    value and every view derived from it with ``+``. The context is an
    immutable tuple, so a derived view never changes the caller's context.

    Examples:
        >>> err = Diagnostics("shader 'foo'")
        >>> _ = (err + "command 'bind'").add("too many arguments")
        >>> str(err.diagnostics[0])
        "shader 'foo': command 'bind': too many arguments"
    """

    def __init__(
        self,
        *context: str,
        _sink: list[Diagnostic] | None = None,
    ):
        self._context: tuple[str, ...] = tuple(context)
        self._sink: list[Diagnostic] = [] if _sink is None else _sink

    @property
    def context(self) -> str:
        return "".join(f"{label}: " for label in self._context)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._sink)

    @property
    def errors(self) -> list[Diagnostic]:
        return [diag for diag in self._sink if diag.severity == "error"]

    def push(self, label: str) -> None:
        self._context = self._context + (label,)

    def pop(self) -> None:
        if self._context:
            self._context = self._context[:-1]

    def __add__(self, label: str) -> "Diagnostics":
        return Diagnostics(*self._context, label, _sink=self._sink)

    def add(
        self,
        message: str,
        *,
        file: str | None = None,
        line: int | None = None,
        block: Any = None,
        command: Any = None,
    ) -> "Diagnostics":
        """Record an error under the current context.

        Args:
            message: Error text
            file: Originating file
            line: Originating line (1-based)
            block: Block whose file/line should be attached
            command: Command whose line should be attached (needs ``block``
                for the file and absolute line)

        Returns:
            self, so callers can write ``raise err.add(...).as_error()``
        """
        self._record("error", message, file, line, block, command)
        return self

    def warn(self, message: str, *, file: str | None = None, line: int | None = None) -> None:
        self._record("warning", message, file, line, None, None)

    def _record(
        self,
        severity: str,
        message: str,
        file: str | None,
        line: int | None,
        block: Any,
        command: Any,
    ) -> None:
        if block is not None:
            file = file if file is not None else block.file
            if line is None:
                line = block.line if command is None else block.body_line + command.line
        self._sink.append(Diagnostic(self.context, message, severity, file, line))

    def has_errors(self) -> bool:
        return any(diag.severity == "error" for diag in self._sink)

    def merge(self, other: "Diagnostics") -> None:
        """Append every message of ``other`` (keeping their own context)."""
        if other._sink is self._sink:
            return
        self._sink.extend(other._sink)

    def as_error(self) -> DiagnosticsError:
        return DiagnosticsError(self._sink)

    def raise_errors(self) -> None:
        """Raise the accumulated messages as one failure, if there are errors."""
        if self.has_errors():
            raise self.as_error()

    @property
    def text(self) -> str:
        return format_report(self._sink)
