"""Fixtures and configuration for pytest."""

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], str]:
    """Fixture writing dedented text to a file below ``tmp_path``."""

    def write(name: str, text: str) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return str(path)

    return write


@pytest.fixture
def scene_source() -> str:
    """Fixture providing a tech unit using every object kind."""
    return textwrap.dedent(
        """\
        buffer buf {
            size 64
            usage dynamicDraw
        }
        image img {
            size 256 256
        }
        sampler samp {
            minfilter linear
            wrap repeat
        }
        texture tex {
            img img
            samp samp
        }
        shader vert vs {
            void main() { gl_Position = vec4(0); }
        }
        shader frag fs {
            uniform vec4 base;
            out vec4 color;
            void main() { color = base; }
        }
        fragoutput fb {
            color img
        }
        pass p {
            vert vs
            frag fs
            fragout fb
            draw buf triangles 0 3
        }
        tech t {
            pass p
        }
        """
    )
