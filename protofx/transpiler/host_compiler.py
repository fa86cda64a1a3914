"""Interface of the service compiling generated host classes.

The generated class source is handed to an external dynamic compiler. It
either returns a factory constructing the emulated shader or the syntax
errors it found, numbered by lines of the generated source.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class HostSyntaxError:
    """Syntax error reported for a line of generated host source."""

    line: int
    message: str


@dataclass
class HostCompileResult:
    """Result of one host compilation.

    Attributes:
        factory: Callable constructing an instance of the compiled class, or
            None if compilation failed
        errors: Syntax errors of the generated source
    """

    factory: Callable[..., Any] | None = None
    errors: list[HostSyntaxError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.factory is not None and not self.errors


class HostCompiler(Protocol):
    """Interface for compiling generated host class source."""

    def compile(self, source: str, class_name: str) -> HostCompileResult:
        """Compile a generated class.

        Args:
            source: Complete host source of the class
            class_name: Fully qualified name of the class to instantiate

        Returns:
            The compile result with a factory or the syntax errors
        """
        ...
