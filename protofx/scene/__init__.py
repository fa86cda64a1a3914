"""Scene objects constructed from the blocks of a tech unit."""

from protofx.scene.objects import (
    Buffer,
    Fragoutput,
    Image,
    Pass,
    Sampler,
    Shader,
    Tech,
    Texture,
)
from protofx.scene.builder import build_scene
from protofx.scene.registry import fx_field, get_kind, registered_kinds, scene_object
from protofx.scene.scene import BuildOptions, Scene, SceneObject

__all__ = [
    "Buffer",
    "BuildOptions",
    "Fragoutput",
    "Image",
    "Pass",
    "Sampler",
    "Scene",
    "SceneObject",
    "Shader",
    "Tech",
    "Texture",
    "build_scene",
    "fx_field",
    "get_kind",
    "registered_kinds",
    "scene_object",
]
