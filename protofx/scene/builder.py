"""
Scene construction from compiled blocks.

Blocks are processed one at a time in declaration order, so a block can
reference any object declared before it. A block that fails is reported and
skipped; the remaining blocks are still constructed.
"""

from collections.abc import Iterable

from loguru import logger

from protofx.compiler.errors import Diagnostics, DiagnosticsError, TechReferenceError
from protofx.compiler.models import Block
from protofx.debug.session import DebugSession
from protofx.scene import objects  # noqa: F401  registers the object kinds
from protofx.scene.registry import get_kind
from protofx.scene.scene import BuildOptions, Scene
from protofx.transpiler.host_compiler import HostCompiler


def build_scene(
    blocks: Iterable[Block],
    debugging: bool = False,
    host_compiler: HostCompiler | None = None,
    session: DebugSession | None = None,
) -> Scene:
    """Construct every object of a tech unit.

    Args:
        blocks: Compiled blocks in declaration order
        debugging: Whether shaders are transpiled for host emulation
        host_compiler: Service compiling the generated host classes
        session: Debug session of the build; a debug build starts it anew

    Returns:
        Scene with every object that was constructed; the failures are
        collected in ``scene.diagnostics``
    """
    scene = Scene()
    options = BuildOptions(
        debugging=debugging,
        host_compiler=host_compiler,
        session=session or DebugSession(),
    )
    if debugging:
        options.session.begin()
    for block in blocks:
        err = Diagnostics(f"{block.type} '{block.name}'")
        try:
            cls = get_kind(block.type)
            if block.name in scene:
                raise TechReferenceError(
                    f"An object with the name '{block.name}' already exists."
                )
            scene[block.name] = cls.from_block(block, scene, err, options)
            logger.debug(f"Created {block.type} '{block.name}'")
        except TechReferenceError as e:
            err.add(e.message, block=block)
            scene.diagnostics.merge(err)
            logger.error(f"{err.context}{e.message}")
        except DiagnosticsError as e:
            scene.diagnostics.merge(err)
            logger.error(e.text.rstrip())

    logger.info(
        f"Scene built with {len(scene)} object(s) and "
        f"{len(scene.diagnostics.errors)} error(s)"
    )
    return scene
