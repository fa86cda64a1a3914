"""
Data models for the shader transpiler.

This module contains the stage enumeration and the dataclasses describing
shader input and transpiled output.
"""

from dataclasses import dataclass, field
from enum import Enum

from protofx.compiler.errors import TranspilerError


class StageKind(Enum):
    """Shader stages with their tech annotation and host base class."""

    VERTEX = ("vert", "VertShader")
    TESS_CONTROL = ("tess", "TessShader")
    TESS_EVAL = ("eval", "EvalShader")
    GEOMETRY = ("geom", "GeomShader")
    FRAGMENT = ("frag", "FragShader")
    COMPUTE = ("comp", "CompShader")

    @property
    def annotation(self) -> str:
        return self.value[0]

    @property
    def base_class(self) -> str:
        return self.value[1]

    @property
    def index(self) -> int:
        return list(StageKind).index(self)

    @classmethod
    def from_annotation(cls, annotation: str | None) -> "StageKind":
        """Look up a stage by its tech annotation (``vert``, ``frag``, ...).

        Raises:
            TranspilerError: If the annotation names no stage
        """
        for stage in cls:
            if stage.annotation == annotation:
                return stage
        raise TranspilerError(f"Shader type '{annotation}' is not supported.")

    @classmethod
    def parse(cls, value: "str | StageKind") -> "StageKind":
        """Accept a stage, an annotation or an enum member name."""
        if isinstance(value, StageKind):
            return value
        key = value.strip()
        if key.upper().replace("-", "_") in cls.__members__:
            return cls[key.upper().replace("-", "_")]
        return cls.from_annotation(key.lower())


@dataclass
class ShaderSource:
    """Shading-language source of one stage.

    Attributes:
        stage: Stage kind
        text: Source text
    """

    stage: StageKind
    text: str


@dataclass
class TranspiledSource:
    """Result of transpiling one stage.

    Attributes:
        host_text: Generated host-language source
        traceable: Names of traced expressions in first-seen order
        header_lines: Lines of generated wrapper code before the shader text
    """

    host_text: str
    traceable: list[str] = field(default_factory=list)
    header_lines: int = 0

    def shader_line(self, host_line: int, line_in_file: int = 1) -> int:
        """Map a 1-based line of ``host_text`` back to the shader's file line."""
        return host_line - self.header_lines - 1 + line_in_file
