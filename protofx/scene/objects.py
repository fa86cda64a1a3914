"""
Object kinds of the tech language.

Each kind is a descriptor of a GPU pipeline object: its commands are applied
to fields, references to earlier objects are resolved and the field values
are validated. Creating the actual GPU resources is left to a backend.
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from protofx.compiler.errors import Diagnostics, ExternalError, TranspilerError
from protofx.compiler.models import Block, Command
from protofx.scene.registry import fx_field, scene_object
from protofx.scene.scene import BuildOptions, Scene, SceneObject
from protofx.transpiler import HOST_NAMESPACE, shader_to_class
from protofx.transpiler.models import ShaderSource, StageKind, TranspiledSource

MAX_COLOR_ATTACHMENTS = 16


class BufferUsage(Enum):
    STREAM_DRAW = "streamDraw"
    STREAM_READ = "streamRead"
    STREAM_COPY = "streamCopy"
    STATIC_DRAW = "staticDraw"
    STATIC_READ = "staticRead"
    STATIC_COPY = "staticCopy"
    DYNAMIC_DRAW = "dynamicDraw"
    DYNAMIC_READ = "dynamicRead"
    DYNAMIC_COPY = "dynamicCopy"


class TextureTarget(Enum):
    TEXTURE_1D = "texture1D"
    TEXTURE_1D_ARRAY = "texture1DArray"
    TEXTURE_2D = "texture2D"
    TEXTURE_2D_ARRAY = "texture2DArray"
    TEXTURE_3D = "texture3D"
    TEXTURE_CUBE_MAP = "textureCubeMap"


class GpuFormat(Enum):
    R8 = "r8"
    RG8 = "rg8"
    RGB8 = "rgb8"
    RGBA8 = "rgba8"
    R16F = "r16f"
    RGBA16F = "rgba16f"
    R32F = "r32f"
    RG32F = "rg32f"
    RGB32F = "rgb32f"
    RGBA32F = "rgba32f"
    R32I = "r32i"
    RGBA32I = "rgba32i"
    R32UI = "r32ui"
    RGBA32UI = "rgba32ui"
    DEPTH16 = "depth16"
    DEPTH24 = "depth24"
    DEPTH32F = "depth32f"


class MinFilter(Enum):
    NEAREST = "nearest"
    LINEAR = "linear"
    NEAREST_MIPMAP_NEAREST = "nearestMipmapNearest"
    LINEAR_MIPMAP_NEAREST = "linearMipmapNearest"
    NEAREST_MIPMAP_LINEAR = "nearestMipmapLinear"
    LINEAR_MIPMAP_LINEAR = "linearMipmapLinear"


class MagFilter(Enum):
    NEAREST = "nearest"
    LINEAR = "linear"


class WrapMode(Enum):
    REPEAT = "repeat"
    MIRRORED_REPEAT = "mirroredRepeat"
    CLAMP_TO_EDGE = "clampToEdge"
    CLAMP_TO_BORDER = "clampToBorder"


def _last_command(block: Block, name: str) -> Command | None:
    commands = block.find(name)
    return commands[-1] if commands else None


def _resolve_files(block: Block, files: list[str], err: Diagnostics) -> list[str]:
    """Resolve file arguments relative to the declaring file and check they exist."""
    base_dir = os.path.dirname(os.path.abspath(block.file)) if block.file else os.getcwd()
    paths = []
    for name in files:
        path = name if os.path.isabs(name) else os.path.join(base_dir, name)
        if not os.path.isfile(path):
            err.add(
                f"The file '{name}' could not be found.",
                block=block,
                command=_last_command(block, "file"),
            )
            continue
        paths.append(path)
    return paths


@scene_object("buffer")
@dataclass
class Buffer(SceneObject):
    """Buffer object holding ``size`` bytes or the contents of ``file``."""

    usage: BufferUsage = fx_field(BufferUsage.STATIC_DRAW, convert=BufferUsage)
    size: int | None = fx_field(convert=int)
    file: list[str] | None = fx_field(many=True)
    paths: list[str] = field(default_factory=list, repr=False)

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        if self.file:
            self.paths = _resolve_files(block, self.file, err)
        if self.size is None:
            if not self.file:
                err.add(
                    "Buffer needs to specify a size or a file (e.g. size <bytes>).", block=block
                )
                return
            self.size = sum(os.path.getsize(path) for path in self.paths)
        if self.size <= 0:
            err.add(
                f"Buffer size must be positive, got {self.size}.",
                block=block,
                command=_last_command(block, "size"),
            )


@scene_object("image")
@dataclass
class Image(SceneObject):
    """Image object; the texture target is derived from the size if not given."""

    file: list[str] | None = fx_field(many=True)
    size: list[int] | None = fx_field(convert=int, many=True)
    mipmaps: int = fx_field(0, convert=int)
    type: TextureTarget | None = fx_field(convert=TextureTarget)
    format: GpuFormat = fx_field(GpuFormat.RGBA8, convert=GpuFormat)
    paths: list[str] = field(default_factory=list, repr=False)

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    @property
    def depth(self) -> int:
        return self.size[2]

    @property
    def length(self) -> int:
        return self.size[3]

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        if self.type is None and self.size is None:
            err.add(
                "Texture needs to specify a file or texture size "
                "(e.g., size <width> <height> <depth> <length>).",
                block=block,
            )
            return
        if self.file:
            self.paths = _resolve_files(block, self.file, err)
        size = list(self.size or [])[:4]
        self.size = size + [1] * (4 - len(size))
        if self.type is None:
            self.type = derive_target(*self.size)
            if self.type is None:
                err.add(
                    "Texture type could not be derived from 'width', 'height', "
                    "'depth' and 'length'. Please check these parameters or specify "
                    "the type directly (e.g. 'type texture2D').",
                    block=block,
                )


def derive_target(width: int, height: int, depth: int, length: int) -> TextureTarget | None:
    """Derive the texture target from the image extents (None if ambiguous)."""
    if width > 1 and height == 1 and depth == 1:
        return TextureTarget.TEXTURE_1D if length == 1 else TextureTarget.TEXTURE_1D_ARRAY
    if width > 1 and height > 1 and depth == 1:
        return TextureTarget.TEXTURE_2D if length == 1 else TextureTarget.TEXTURE_2D_ARRAY
    if width > 1 and height > 1 and depth > 1 and length == 1:
        return TextureTarget.TEXTURE_3D
    return None


@scene_object("sampler")
@dataclass
class Sampler(SceneObject):
    minfilter: MinFilter = fx_field(MinFilter.NEAREST, convert=MinFilter)
    magfilter: MagFilter = fx_field(MagFilter.NEAREST, convert=MagFilter)
    wrap: WrapMode = fx_field(WrapMode.CLAMP_TO_EDGE, convert=WrapMode)


@scene_object("texture")
@dataclass
class Texture(SceneObject):
    """Texture binding an image (or a buffer) with an optional sampler."""

    samp: str | None = fx_field()
    buff: str | None = fx_field()
    img: str | None = fx_field()
    format: GpuFormat | None = fx_field(convert=GpuFormat)
    sampler: Sampler | None = field(default=None, repr=False)
    buffer: Buffer | None = field(default=None, repr=False)
    image: Image | None = field(default=None, repr=False)

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        if self.samp is not None:
            command = _last_command(block, "samp")
            self.sampler = scene.lookup(self.samp, Sampler, err, block, command)
        if self.buff is not None:
            command = _last_command(block, "buff")
            self.buffer = scene.lookup(self.buff, Buffer, err, block, command)
        if self.img is not None:
            command = _last_command(block, "img")
            self.image = scene.lookup(self.img, Image, err, block, command)
        if err.has_errors():
            return
        if self.buffer is not None and self.image is not None:
            err.add("Only an image or a buffer can be bound to a texture object.", block=block)
        elif self.buffer is None and self.image is None:
            err.add(
                "Either an image or a buffer has to be bound to a texture object.",
                block=block,
            )
        elif self.buffer is not None and self.format is None:
            err.add(
                f"No texture buffer format defined for buffer '{self.buff}' (e.g. format RGBA8).",
                block=block,
            )


@scene_object("shader")
@dataclass
class Shader(SceneObject):
    """Shader stage; the annotation selects the stage and the body is its source.

    Attributes:
        stage: Stage selected by the annotation
        source: Shading-language source
        line_in_file: File line holding the first line of ``source``
        gpu_source: Source with its watch markers stripped, or expanded into
            the debug entry point when debugging
        host_source: Generated host class when debugging
        debug_shader: Emulated shader built by the host compiler
    """

    stage: StageKind | None = None
    source: str = field(default="", repr=False)
    line_in_file: int = 1
    gpu_source: str = field(default="", repr=False)
    host_source: TranspiledSource | None = field(default=None, repr=False)
    debug_shader: object | None = field(default=None, repr=False)

    @classmethod
    def from_block(
        cls,
        block: Block,
        scene: Scene,
        err: Diagnostics,
        options: BuildOptions | None = None,
    ) -> "Shader":
        # The body is shading-language source, not commands
        obj = cls(name=block.name, anno=block.anno, tech_file=block.file, line=block.line)
        obj.source = block.body
        obj.line_in_file = block.body_line
        try:
            obj.stage = StageKind.from_annotation(block.anno)
        except TranspilerError as e:
            err.add(e.message, block=block)
        else:
            obj.link(block, scene, err, options or BuildOptions())
        err.raise_errors()
        return obj

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        self.gpu_source = options.session.watch_source(
            self.source, self.stage, options.debugging
        )
        if not options.debugging:
            return
        self.host_source = shader_to_class(
            ShaderSource(self.stage, self.source),
            self.name,
            inject_debug=True,
            line_in_file=self.line_in_file,
        )
        if options.host_compiler is None:
            logger.warning(f"No host compiler configured, shader '{self.name}' is not emulated")
            return
        external = err + f"{self.stage.annotation} host compiler"
        try:
            result = options.host_compiler.compile(
                self.host_source.host_text, f"{HOST_NAMESPACE}.{self.name}"
            )
        except ExternalError as e:
            external.add(e.message, block=block)
            return
        except Exception as e:
            external.add(f"Host compilation failed: {e}", block=block)
            return
        for error in result.errors:
            external.add(
                error.message,
                file=block.file,
                line=self.host_source.shader_line(error.line, self.line_in_file),
            )
        if not result.ok:
            return
        try:
            self.debug_shader = result.factory(self.line_in_file)
        except Exception as e:
            external.add(f"Could not instantiate the emulated shader: {e}", block=block)


@dataclass
class Attachment:
    """Image attached to a framebuffer attachment point."""

    point: str
    image: Image
    mipmap: int = 0
    layer: int = 0


@scene_object("fragoutput")
@dataclass
class Fragoutput(SceneObject):
    """Framebuffer with color and depth attachments."""

    width: int = fx_field(0, convert=int)
    height: int = fx_field(0, convert=int)
    attachments: list[Attachment] = field(default_factory=list)

    custom_commands = frozenset({"color", "depth"})

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        colors = 0
        for command in block:
            key = command.name.lower()
            if key not in self.custom_commands:
                continue
            point = f"color{colors}" if key == "color" else key
            label = f"command '{command.name}'"
            attachment = self._attach(point, block, command, scene, err + label)
            if attachment is None:
                continue
            if key == "color":
                colors += 1
            self.attachments.append(attachment)
        if colors > MAX_COLOR_ATTACHMENTS:
            err.add(f"Too many color attachments (at most {MAX_COLOR_ATTACHMENTS}).", block=block)
        if len([a for a in self.attachments if a.point == "depth"]) > 1:
            err.add("Only one depth attachment can be specified.", block=block)

    def _attach(
        self, point: str, block: Block, command: Command, scene: Scene, err: Diagnostics
    ) -> Attachment | None:
        if len(command) == 0 or len(command) > 3:
            err.add(
                f"Command '{command.text}' must have an image name and optionally "
                "a mipmap level and a layer.",
                block=block,
                command=command,
            )
            return None
        image = scene.lookup(command[0], Image, err, block, command)
        if image is None:
            return None
        try:
            levels = [int(token) for token in command.args[1:]]
        except ValueError:
            err.add(
                f"Command '{command.text}': mipmap and layer must be integers.",
                block=block,
                command=command,
            )
            return None
        if self.width == 0 and self.height == 0:
            self.width, self.height = image.width, image.height
        return Attachment(point, image, *levels)


@dataclass
class DrawCall:
    """Raw arguments of one ``draw`` command."""

    args: list[str]


@scene_object("pass")
@dataclass
class Pass(SceneObject):
    """Render or compute pass binding shaders, a framebuffer and draw calls."""

    vert: str | None = fx_field()
    tess: str | None = fx_field()
    eval: str | None = fx_field()
    geom: str | None = fx_field()
    frag: str | None = fx_field()
    comp: str | None = fx_field()
    fragout: str | None = fx_field()
    draw: list[list[str]] = fx_field(many=True, repeated=True)
    compute: list[int] | None = fx_field(convert=int, many=True)
    shaders: dict[StageKind, Shader] = field(default_factory=dict, repr=False)
    framebuffer: Fragoutput | None = field(default=None, repr=False)

    @property
    def draw_calls(self) -> list[DrawCall]:
        return [DrawCall(args) for args in self.draw]

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        for stage in StageKind:
            name = getattr(self, stage.annotation)
            if name is None:
                continue
            command = _last_command(block, stage.annotation)
            shader = scene.lookup(name, Shader, err, block, command)
            if shader is None:
                continue
            if shader.stage is not stage:
                err.add(
                    f"The shader '{name}' is a '{shader.stage.annotation}' shader "
                    f"and cannot be bound as '{stage.annotation}' shader.",
                    block=block,
                    command=command,
                )
                continue
            self.shaders[stage] = shader
        if self.fragout is not None:
            self.framebuffer = scene.lookup(
                self.fragout, Fragoutput, err, block, _last_command(block, "fragout")
            )
        if self.compute is not None:
            if StageKind.COMPUTE not in self.shaders and not err.has_errors():
                err.add("A 'compute' command needs a 'comp' shader.", block=block)
            if not 1 <= len(self.compute) <= 3:
                err.add(
                    "Command 'compute' expects one to three work group counts.",
                    block=block,
                    command=_last_command(block, "compute"),
                )


@scene_object("tech")
@dataclass
class Tech(SceneObject):
    """Ordered list of passes executed together."""

    pass_names: list[str] = fx_field(repeated=True, command="pass")
    passes: list[Pass] = field(default_factory=list, repr=False)

    def link(self, block: Block, scene: Scene, err: Diagnostics, options: BuildOptions) -> None:
        commands = block.find("pass")
        for name, command in zip(self.pass_names, commands, strict=False):
            render_pass = scene.lookup(name, Pass, err, block, command)
            if render_pass is not None:
                self.passes.append(render_pass)
