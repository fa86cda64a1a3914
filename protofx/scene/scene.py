"""
Scene objects and the scene they are collected in.

This module contains the base class of all object kinds and the ``Scene``
mapping that later blocks use to resolve references to earlier objects.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar

from protofx.compiler.errors import Diagnostics
from protofx.compiler.models import Block, Command
from protofx.debug.session import DebugSession
from protofx.scene.registry import Setter, apply_commands
from protofx.transpiler.host_compiler import HostCompiler

T = TypeVar("T", bound="SceneObject")


@dataclass
class BuildOptions:
    """Options shared by every object construction of one build.

    Attributes:
        debugging: Whether shaders are transpiled for host emulation
        host_compiler: Service compiling the generated host classes
        session: Debug session the shaders of the build belong to
    """

    debugging: bool = False
    host_compiler: HostCompiler | None = None
    session: DebugSession = field(default_factory=DebugSession)


@dataclass
class SceneObject:
    """Base class of all object kinds.

    Attributes:
        name: Block name
        anno: Block annotation, if any
        tech_file: File the block was declared in
        line: Line of the block header
    """

    name: str
    anno: str | None = None
    tech_file: str | None = None
    line: int = 1

    kind: ClassVar[str] = "object"
    setters: ClassVar[dict[str, Setter]] = {}
    # Commands consumed by ``link`` instead of a field setter
    custom_commands: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def from_block(
        cls: type[T],
        block: Block,
        scene: "Scene",
        err: Diagnostics,
        options: BuildOptions | None = None,
    ) -> T:
        """Construct an object from its block.

        Args:
            block: Declaring block
            scene: Objects constructed so far
            err: Diagnostics of this object
            options: Build options

        Returns:
            The constructed object

        Raises:
            DiagnosticsError: If any error was recorded for the object
        """
        obj = cls(name=block.name, anno=block.anno, tech_file=block.file, line=block.line)
        apply_commands(obj, block, err, skip=cls.custom_commands)
        if not err.has_errors():
            obj.link(block, scene, err, options or BuildOptions())
        err.raise_errors()
        return obj

    def link(self, block: Block, scene: "Scene", err: Diagnostics, options: BuildOptions) -> None:
        """Resolve references and validate fields once the commands are applied."""

    def __str__(self) -> str:
        return self.name


class Scene(dict[str, SceneObject]):
    """Objects of one tech unit by name, in declaration order.

    Attributes:
        diagnostics: Report of the objects that failed to construct
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.diagnostics = Diagnostics()

    def lookup(
        self,
        name: str,
        cls: type[T],
        err: Diagnostics,
        block: Block | None = None,
        command: Command | None = None,
    ) -> T | None:
        """Return the object called ``name`` if it is of the requested kind.

        Otherwise an error is recorded in ``err`` and None is returned.
        """
        obj = self.get(name)
        if isinstance(obj, cls):
            return obj
        err.add(
            f"The name '{name}' could not be found or does not reference "
            f"an object of type '{cls.kind}'.",
            block=block,
            command=command,
        )
        return None

    def of_kind(self, cls: type[T]) -> list[T]:
        return [obj for obj in self.values() if isinstance(obj, cls)]
