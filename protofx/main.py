"""Command line interface for protofx.

This module provides a command-line interface for compiling tech files,
inspecting their blocks, transpiling shader stages into host classes and
recompiling tech files on change.
"""

import os
import sys
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

import arrow
import typer
import watchdog.events
import watchdog.observers
from loguru import logger
from watchdog.events import FileSystemEventHandler

from protofx.compiler import compile_file
from protofx.compiler.errors import Diagnostics, ProtoFXError, TechSyntaxError
from protofx.config import Settings
from protofx.scene import Scene, build_scene
from protofx.transpiler import shader_to_class
from protofx.transpiler.models import ShaderSource, StageKind

F = TypeVar("F", bound=Callable[..., Any])


def typed_command(app_command: Any) -> Callable[[F], F]:
    """Wrap typer command with proper typing for mypy."""

    def decorator(func: F) -> F:
        return cast(F, app_command(func))

    return decorator


app = typer.Typer(
    name="protofx",
    help=(
        "Compile tech files describing GPU pipelines and transpile shaders for "
        "debugging. Commands: compile, blocks, transpile, watch."
    ),
    add_completion=False,
)


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging from the environment and the verbosity flag."""
    settings = Settings.from_env()
    _configure_logging("DEBUG" if verbose else settings.log_level)


def _compile_scene(tech_file: str, debug: bool) -> tuple[Scene, Diagnostics]:
    """Compile a tech file and build its scene.

    Returns:
        The scene and the include diagnostics of the unit

    Raises:
        TechSyntaxError: If the unit has unbalanced braces or a bad header
    """
    settings = Settings.from_env()
    diagnostics = Diagnostics()
    blocks = compile_file(
        tech_file, diagnostics, max_include_depth=settings.max_include_depth
    )
    logger.info(f"Compiled {len(blocks)} block(s) from {tech_file}")
    scene = build_scene(blocks, debugging=debug or settings.debug)
    return scene, diagnostics


def _print_scene(scene: Scene, diagnostics: Diagnostics) -> None:
    for obj in scene.values():
        typer.echo(f"{obj.kind} {obj.name}")
    report = diagnostics.text + scene.diagnostics.text
    if report:
        typer.echo(report, nl=False)


@typed_command(app.command("compile"))
def compile_tech_file(
    tech_file: str = typer.Argument(..., help="Tech file to compile"),
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Transpile shaders for host emulation"
    ),
) -> None:
    """Compile a tech file and report the objects it declares.

    Example: protofx compile scenes/simple.tech
    """
    try:
        scene, diagnostics = _compile_scene(tech_file, debug)
    except TechSyntaxError as e:
        logger.error(f"Syntax error in {tech_file}: {e}")
        raise typer.Exit(1) from e
    except OSError as e:
        logger.error(f"Failed to read tech file: {e}")
        raise typer.Exit(1) from e
    _print_scene(scene, diagnostics)


@typed_command(app.command("blocks"))
def show_blocks(
    tech_file: str = typer.Argument(..., help="Tech file to segment"),
) -> None:
    """Print every block of a tech file with its location and commands."""
    settings = Settings.from_env()
    try:
        blocks = compile_file(tech_file, max_include_depth=settings.max_include_depth)
    except TechSyntaxError as e:
        logger.error(f"Syntax error in {tech_file}: {e}")
        raise typer.Exit(1) from e
    except OSError as e:
        logger.error(f"Failed to read tech file: {e}")
        raise typer.Exit(1) from e

    for block in blocks:
        anno = f" {block.anno}" if block.anno else ""
        location = f"{block.file or tech_file}({block.line}:{block.column})"
        typer.echo(f"{location} {block.type}{anno} {block.name}")
        for command in block:
            typer.echo(f"    {block.body_line + command.line}: {command.text}")


def _add_header_comments(code: str, source_file: str, stage: StageKind, debug: bool) -> str:
    """Add header comments to generated host code."""
    timestamp = arrow.utcnow().format("YYYY-MM-DD HH:mm:ss UTC")
    header = f"// Generated by protofx v{__import__('protofx').__version__}\n"
    header += f"// Generation time: {timestamp}\n"
    header += f"// Source file: {os.path.basename(source_file)}\n"
    header += f"// Stage: {stage.annotation}\n"
    if debug:
        header += "// Trace instrumentation enabled\n"
    header += "\n"
    return header + code


@typed_command(app.command("transpile"))
def transpile_shader(
    shader_file: str = typer.Argument(..., help="Shader source file"),
    stage: str = typer.Option(
        ..., "--stage", "-s", help="Shader stage (vert, tess, eval, geom, frag, comp)"
    ),
    name: str = typer.Option("", "--name", "-n", help="Class name (default: file stem)"),
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Wrap variable reads in trace calls"
    ),
    output: str = typer.Option("", "--output", "-o", help="Output file (default: stdout)"),
) -> None:
    """Transpile a shader stage into a host class.

    Example: protofx transpile shaders/blur.frag --stage frag --debug
    """
    try:
        stage_kind = StageKind.parse(stage)
        with open(shader_file, encoding="utf-8") as f:
            text = f.read()
    except ProtoFXError as e:
        logger.error(str(e))
        raise typer.Exit(1) from e
    except OSError as e:
        logger.error(f"Failed to read shader file: {e}")
        raise typer.Exit(1) from e

    class_name = name or os.path.splitext(os.path.basename(shader_file))[0]
    result = shader_to_class(ShaderSource(stage_kind, text), class_name, inject_debug=debug)
    code = _add_header_comments(result.host_text, shader_file, stage_kind, debug)

    if output:
        logger.info(f"Writing class '{class_name}' to {output}...")
        with open(output, "w", encoding="utf-8") as f:
            f.write(code)
        if result.traceable:
            logger.info(f"Traced names: {', '.join(result.traceable)}")
    else:
        typer.echo(code, nl=False)


class TechChangeHandler(FileSystemEventHandler):  # type: ignore
    """Event handler recompiling a tech file when it changes."""

    def __init__(self, tech_file: str, debug: bool):
        """Initialize tech change handler.

        Args:
            tech_file: Path to tech file
            debug: Whether shaders are transpiled for host emulation
        """
        self.tech_file = tech_file
        self.debug = debug
        self.needs_reload = False

    def on_modified(self, event: watchdog.events.FileSystemEvent) -> None:
        """Handle file modified event.

        Args:
            event: File system event
        """
        if event.src_path == os.path.abspath(self.tech_file):
            logger.info(f"Detected changes in {self.tech_file}")
            self.needs_reload = True

    def recompile(self) -> None:
        """Compile the tech file and print its report."""
        self.needs_reload = False
        try:
            scene, diagnostics = _compile_scene(self.tech_file, self.debug)
        except (TechSyntaxError, OSError) as e:
            logger.error(f"Error compiling {self.tech_file}: {e}")
            return
        _print_scene(scene, diagnostics)


@typed_command(app.command("watch"))
def watch_tech(
    tech_file: str = typer.Argument(..., help="Tech file to watch"),
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Transpile shaders for host emulation"
    ),
) -> None:
    """Watch a tech file and recompile it on changes.

    Example: protofx watch scenes/simple.tech
    """
    observer = watchdog.observers.Observer()
    abs_tech_file = os.path.abspath(tech_file)
    handler = TechChangeHandler(abs_tech_file, debug)

    # Watch the file's directory, not the file itself
    directory = os.path.dirname(abs_tech_file)
    observer.schedule(handler, path=directory, recursive=False)
    observer.start()

    try:
        handler.recompile()
        while True:
            if handler.needs_reload:
                handler.recompile()
            time.sleep(0.1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, stopping...")
    finally:
        observer.stop()
        observer.join()


if __name__ == "__main__":
    app()
