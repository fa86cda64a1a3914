"""Tests for building scenes from compiled blocks."""

import textwrap

import pytest

from protofx.compiler import compile_file, compile_tech
from protofx.compiler.errors import ExternalError
from protofx.scene import (
    Buffer,
    Fragoutput,
    Image,
    Pass,
    Sampler,
    Shader,
    Tech,
    Texture,
    build_scene,
)
from protofx.scene.objects import BufferUsage, MinFilter, TextureTarget, WrapMode
from protofx.transpiler import HostCompileResult, HostSyntaxError
from protofx.transpiler.models import StageKind

FRAGMENT_SHADER = """\
shader frag fs {
    out vec4 c;
    void main() { c = vec4(1); }
}
"""


class FakeHostCompiler:
    """Host compiler double returning canned results."""

    def __init__(self, errors=None):
        self.errors = errors or []
        self.compiled = []

    def compile(self, source, class_name):
        self.compiled.append((source, class_name))
        if self.errors:
            return HostCompileResult(errors=self.errors)
        return HostCompileResult(factory=lambda line: ("emulated", line))


def _build(text: str, **kwargs):
    return build_scene(compile_tech(textwrap.dedent(text), "."), **kwargs)


def _messages(scene):
    return [diag.message for diag in scene.diagnostics.errors]


class TestFullScene:
    """Tests for a unit declaring every object kind."""

    def test_objects_are_created_in_order(self, scene_source):
        """Test that every block becomes an object of its kind."""
        # Act
        scene = _build(scene_source)

        # Assert
        assert not scene.diagnostics.has_errors()
        assert list(scene) == ["buf", "img", "samp", "tex", "vs", "fs", "fb", "p", "t"]
        assert isinstance(scene["buf"], Buffer)
        assert isinstance(scene["tex"], Texture)
        assert isinstance(scene["p"], Pass)
        assert isinstance(scene["t"], Tech)
        assert len(scene.of_kind(Shader)) == 2

    def test_fields(self, scene_source):
        """Test the converted field values."""
        # Act
        scene = _build(scene_source)

        # Assert
        assert scene["buf"].size == 64
        assert scene["buf"].usage is BufferUsage.DYNAMIC_DRAW
        assert scene["img"].size == [256, 256, 1, 1]
        assert scene["img"].type is TextureTarget.TEXTURE_2D
        assert scene["samp"].minfilter is MinFilter.LINEAR
        assert scene["samp"].wrap is WrapMode.REPEAT
        assert scene["vs"].stage is StageKind.VERTEX
        assert scene["fs"].line_in_file == 19

    def test_references_are_resolved(self, scene_source):
        """Test that later objects link to the earlier ones they name."""
        # Act
        scene = _build(scene_source)

        # Assert
        texture, render_pass, tech = scene["tex"], scene["p"], scene["t"]
        assert texture.image is scene["img"]
        assert texture.sampler is scene["samp"]
        assert render_pass.shaders == {
            StageKind.VERTEX: scene["vs"],
            StageKind.FRAGMENT: scene["fs"],
        }
        assert render_pass.framebuffer is scene["fb"]
        assert render_pass.draw_calls[0].args == ["buf", "triangles", "0", "3"]
        assert tech.passes == [render_pass]
        (attachment,) = scene["fb"].attachments
        assert attachment.point == "color0"
        assert attachment.image is scene["img"]
        assert (scene["fb"].width, scene["fb"].height) == (256, 256)

    def test_no_host_source_without_debugging(self, scene_source):
        """Test that shaders are only transpiled in debug builds."""
        # Act
        scene = _build(scene_source)

        # Assert
        assert scene["fs"].host_source is None
        assert scene["fs"].debug_shader is None


class TestErrorIsolation:
    """Tests that a failing block does not affect the others."""

    @pytest.mark.parametrize(
        "text, message",
        [
            ("widget w { }", "Unknown object type 'widget'."),
            (
                "buffer a { size 4 }\nbuffer a { size 8 }",
                "An object with the name 'a' already exists.",
            ),
            (
                "texture t {\n    img nope\n}",
                "The name 'nope' could not be found or does not reference "
                "an object of type 'image'.",
            ),
            ("sampler s { color red }", "Unknown command 'color'."),
            (
                "buffer b { size 1 2 }",
                "Command 'size 1 2' has too many arguments (more than one).",
            ),
            (
                "buffer b { usage static }",
                "Command 'usage static': could not convert 'static' to bufferusage.",
            ),
            ("shader pixel ps { void main() { } }", "Shader type 'pixel' is not supported."),
            (
                "buffer b { usage staticDraw }",
                "Buffer needs to specify a size or a file (e.g. size <bytes>).",
            ),
            ("buffer b { size 0 }", "Buffer size must be positive, got 0."),
        ],
    )
    def test_failure_is_reported_and_skipped(self, text, message):
        """Test that the failing object is missing but later blocks are built."""
        # Act
        scene = _build(text + "\nsampler ok { wrap repeat }\n")

        # Assert
        assert message in _messages(scene)
        assert isinstance(scene["ok"], Sampler)

    def test_conversion_error_position(self):
        """Test that a field error carries the file line of its command."""
        # Act
        scene = _build("buffer b {\n    size big\n}\n")

        # Assert
        (diag,) = scene.diagnostics.errors
        assert diag.line == 2
        assert diag.context == "buffer 'b': command 'size': "
        assert "b" not in scene

    def test_stage_mismatch(self):
        """Test binding a shader to the wrong stage of a pass."""
        # Act
        scene = _build(FRAGMENT_SHADER + "pass p {\n    vert fs\n}\n")

        # Assert
        assert _messages(scene) == [
            "The shader 'fs' is a 'frag' shader and cannot be bound as 'vert' shader."
        ]
        assert scene.diagnostics.errors[0].line == 6

    def test_image_target_not_derivable(self):
        """Test that a degenerate image size is rejected."""
        # Act
        scene = _build("image i { size 1 1 }")

        # Assert
        assert _messages(scene)[0].startswith("Texture type could not be derived")

    def test_texture_needs_exactly_one_source(self):
        """Test binding both or neither of an image and a buffer."""
        # Act
        scene = _build(
            """\
            buffer b { size 4 }
            image i { size 4 4 }
            texture both {
                img i
                buff b
            }
            texture neither { format rgba8 }
            texture unformatted { buff b }
            """
        )

        # Assert
        assert _messages(scene) == [
            "Only an image or a buffer can be bound to a texture object.",
            "Either an image or a buffer has to be bound to a texture object.",
            "No texture buffer format defined for buffer 'b' (e.g. format RGBA8).",
        ]

    def test_compute_needs_comp_shader(self):
        """Test the compute command checks."""
        # Act
        scene = _build("pass p { compute 1 1 1 1 }")

        # Assert
        assert _messages(scene) == [
            "A 'compute' command needs a 'comp' shader.",
            "Command 'compute' expects one to three work group counts.",
        ]

    def test_fragoutput_attachment_arguments(self):
        """Test attachment argument validation and the depth limit."""
        # Act
        scene = _build(
            """\
            image i { size 4 4 }
            fragoutput bad {
                color i x
            }
            fragoutput twice {
                depth i
                depth i
            }
            fragoutput ok {
                color i 1 2
                color i
            }
            """
        )

        # Assert
        assert _messages(scene) == [
            "Command 'color i x': mipmap and layer must be integers.",
            "Only one depth attachment can be specified.",
        ]
        first, second = scene["ok"].attachments
        assert (first.point, first.mipmap, first.layer) == ("color0", 1, 2)
        assert second.point == "color1"
        assert isinstance(scene["i"], Image)
        assert isinstance(scene["ok"], Fragoutput)


class TestDebugBuild:
    """Tests for building shaders for host emulation."""

    def test_host_class_is_compiled(self):
        """Test that the generated class is compiled and instantiated."""
        # Arrange
        compiler = FakeHostCompiler()

        # Act
        scene = _build(FRAGMENT_SHADER, debugging=True, host_compiler=compiler)

        # Assert
        shader = scene["fs"]
        ((source, class_name),) = compiler.compiled
        assert class_name == "ProtoFX.fs"
        assert "class fs : FragShader" in source
        assert shader.host_source.host_text == source
        assert shader.debug_shader == ("emulated", 1)

    def test_host_errors_map_to_file_lines(self):
        """Test that host compiler errors are reported at tech file lines."""
        # Arrange
        host_text = _build(FRAGMENT_SHADER, debugging=True)["fs"].host_source.host_text
        host_line = next(
            number
            for number, line in enumerate(host_text.split("\n"), start=1)
            if "void main()" in line
        )
        compiler = FakeHostCompiler(errors=[HostSyntaxError(host_line, "; expected")])

        # Act
        scene = _build(FRAGMENT_SHADER, debugging=True, host_compiler=compiler)

        # Assert
        (diag,) = scene.diagnostics.errors
        assert diag.message == "; expected"
        assert diag.line == 3
        assert diag.context == "shader 'fs': frag host compiler: "
        assert "fs" not in scene

    def test_without_host_compiler(self):
        """Test that debugging without a compiler still transpiles."""
        # Act
        scene = _build(FRAGMENT_SHADER, debugging=True)

        # Assert
        assert not scene.diagnostics.has_errors()
        assert scene["fs"].host_source is not None
        assert scene["fs"].debug_shader is None

    def test_host_compiler_failure(self):
        """Test that a failing host compiler service is reported for the shader."""

        # Arrange
        class UnavailableCompiler:
            def compile(self, source, class_name):
                raise ExternalError("Host compiler service is not available.")

        # Act
        scene = _build(FRAGMENT_SHADER, debugging=True, host_compiler=UnavailableCompiler())

        # Assert
        (diag,) = scene.diagnostics.errors
        assert str(diag) == (
            "(1): shader 'fs': frag host compiler: Host compiler service is not available."
        )

    def test_watch_indices_restart_per_debug_build(self):
        """Test that every debug build starts a new watch index sequence."""
        # Arrange
        text = """\
        shader vert vs {
            out vec4 p;
            void main() { p = vec4(0); <<<p>>> }
        }
        shader frag fs {
            out vec4 c;
            void main() { c = vec4(1); <<<c>>> }
        }
        """

        # Act
        first = _build(text, debugging=True)
        second = _build(text, debugging=True)

        # Assert
        assert "_dbgStoreVar(_dbgIdx, p, 0);" in first["vs"].gpu_source
        assert "_dbgStoreVar(_dbgIdx, c, 1);" in first["fs"].gpu_source
        assert "_dbgStoreVar(_dbgIdx, p, 0);" in second["vs"].gpu_source
        assert "<<<" not in second["fs"].host_source.host_text

    def test_regular_build_strips_watch_markers(self):
        """Test that a regular build hands the shader on without markers."""
        # Act
        scene = _build("shader frag fs {\n    void main() { <<<1.0>>> }\n}\n")

        # Assert
        assert "<<<" not in scene["fs"].gpu_source
        assert "_dbgIdx" not in scene["fs"].gpu_source

    def test_factory_failure_does_not_stop_later_blocks(self):
        """Test that an exception from the emulated shader constructor is isolated."""

        # Arrange
        class ThrowingFactoryCompiler:
            def compile(self, source, class_name):
                def factory(line):
                    raise RuntimeError("constructor threw")

                return HostCompileResult(factory=factory)

        text = FRAGMENT_SHADER + "buffer b {\n    size 4\n}\n"

        # Act
        scene = _build(text, debugging=True, host_compiler=ThrowingFactoryCompiler())

        # Assert
        assert list(scene) == ["b"]
        (diag,) = scene.diagnostics.errors
        assert diag.message == "Could not instantiate the emulated shader: constructor threw"
        assert diag.context == "shader 'fs': frag host compiler: "

    def test_unexpected_compiler_error_does_not_stop_later_blocks(self):
        """Test that any exception from the host compiler is recorded for the shader."""

        # Arrange
        class CrashingCompiler:
            def compile(self, source, class_name):
                raise OSError("service crashed")

        text = FRAGMENT_SHADER + "buffer b {\n    size 4\n}\n"

        # Act
        scene = _build(text, debugging=True, host_compiler=CrashingCompiler())

        # Assert
        assert list(scene) == ["b"]
        assert _messages(scene) == ["Host compilation failed: service crashed"]


def test_files_resolve_relative_to_tech_file(write_file):
    """Test that file arguments are found next to the declaring tech file."""
    # Arrange
    data = write_file("data.bin", "abcd")
    tech = write_file(
        "scene.tech",
        """\
        buffer b {
            file data.bin
        }
        buffer missing {
            size 4
            file nope.bin
        }
        """,
    )

    # Act
    scene = build_scene(compile_file(tech))

    # Assert
    assert scene["b"].paths == [data]
    assert scene["b"].size == 4
    assert scene["b"].tech_file == tech
    (diag,) = scene.diagnostics.errors
    assert diag.message == "The file 'nope.bin' could not be found."
    assert (diag.file, diag.line) == (tech, 6)
