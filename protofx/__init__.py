from protofx.compiler import compile_file, compile_tech
from protofx.compiler.errors import Diagnostics, ProtoFXError
from protofx.scene import Scene, build_scene
from protofx.transpiler import shader_to_class, transpile

__version__ = "0.1.0"


__all__ = [
    "Diagnostics",
    "ProtoFXError",
    "Scene",
    "build_scene",
    "compile_file",
    "compile_tech",
    "shader_to_class",
    "transpile",
]
