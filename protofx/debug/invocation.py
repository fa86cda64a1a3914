"""
Selection of the shader invocation to debug.

A debug session inspects exactly one invocation per stage. ``DebugSettings``
stores the selected invocation and ``EmulatedShader`` runs an emulated stage
with trace collection enabled only when the invocation it is asked to run is
the selected one.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from loguru import logger

from protofx.debug.trace import tracing
from protofx.transpiler.models import StageKind

TESS_COORD_ATOL = 1e-6


@dataclass
class DebugSettings:
    """Selected invocation of every stage.

    Attributes:
        vs_instance_id: Instance index (vertex stage)
        vs_vertex_id: Vertex index (vertex stage)
        ts_invocation_id: Invocation within the patch (tessellation control)
        ts_primitive_id: Patch index (tessellation control and evaluation)
        ts_tess_coord: Tessellation coordinate (tessellation evaluation)
        gs_invocation_id: Geometry shader instance
        gs_primitive_id_in: Input primitive index (geometry stage)
        fs_frag_coord: Window-space x and y (fragment stage)
        fs_layer: Layer (fragment stage)
        fs_viewport_index: Viewport index (fragment stage)
        cs_global_invocation_id: Global invocation id (compute stage)
    """

    vs_instance_id: int = 0
    vs_vertex_id: int = 0
    ts_invocation_id: int = 0
    ts_primitive_id: int = 0
    ts_tess_coord: tuple[float, float, float] = (0.0, 0.0, 0.0)
    gs_invocation_id: int = 0
    gs_primitive_id_in: int = 0
    fs_frag_coord: tuple[int, int] = (0, 0)
    fs_layer: int = 0
    fs_viewport_index: int = 0
    cs_global_invocation_id: tuple[int, int, int] = (0, 0, 0)

    def selected(self, stage: StageKind) -> np.ndarray:
        """Return the selected invocation of a stage as a flat vector.

        The component order is the one ``matches`` expects:

        - vertex: instance id, vertex id
        - tessellation control: invocation id, primitive id
        - tessellation evaluation: primitive id, tess coord x, y, z
        - geometry: primitive id, invocation id
        - fragment: x, y, layer, viewport index
        - compute: global invocation id x, y, z
        """
        if stage is StageKind.VERTEX:
            values = [self.vs_instance_id, self.vs_vertex_id]
        elif stage is StageKind.TESS_CONTROL:
            values = [self.ts_invocation_id, self.ts_primitive_id]
        elif stage is StageKind.TESS_EVAL:
            values = [self.ts_primitive_id, *self.ts_tess_coord]
        elif stage is StageKind.GEOMETRY:
            values = [self.gs_primitive_id_in, self.gs_invocation_id]
        elif stage is StageKind.FRAGMENT:
            values = [*self.fs_frag_coord, self.fs_layer, self.fs_viewport_index]
        else:
            values = list(self.cs_global_invocation_id)
        return np.asarray(values, dtype=np.float64)

    def matches(self, stage: StageKind, invocation: Sequence[float]) -> bool:
        """Check whether an invocation of a stage is the selected one.

        Integer ids must be equal. Only the tessellation coordinate of the
        evaluation stage is compared with the absolute tolerance
        ``TESS_COORD_ATOL``.
        """
        actual = np.asarray(invocation, dtype=np.float64)
        expected = self.selected(stage)
        if actual.shape != expected.shape:
            return False
        if stage is StageKind.TESS_EVAL:
            return bool(
                actual[0] == expected[0]
                and np.allclose(actual[1:], expected[1:], rtol=0.0, atol=TESS_COORD_ATOL)
            )
        return bool(np.array_equal(actual, expected))


class EmulatedShader(ABC):
    """Base class of emulated shader stages.

    Attributes:
        stage: Stage the subclass emulates
        outputs: Names of attributes readable by the next stage
        line_in_file: Tech file line holding the first line of the shader
        prev: Emulated previous stage providing input varyings
    """

    stage: StageKind = StageKind.VERTEX
    outputs: tuple[str, ...] = ()

    def __init__(self, line_in_file: int = 0, prev: "EmulatedShader | None" = None):
        self.line_in_file = line_in_file
        self.prev = prev

    @abstractmethod
    def main(self) -> None:
        """Run one invocation."""

    def get_input_varying(self, name: str, default: Any = None) -> Any:
        if self.prev is None:
            return default
        return self.prev.get_output_varying(name, default)

    def get_output_varying(self, name: str, default: Any = None) -> Any:
        if name not in self.outputs:
            return default
        return getattr(self, name, default)

    def debug(self, invocation: Sequence[float], settings: DebugSettings) -> bool:
        """Run ``main`` and collect its trace if the invocation is selected.

        Returns:
            True if the invocation was traced
        """
        if not settings.matches(self.stage, invocation):
            self.main()
            return False
        logger.debug(f"Tracing {self.stage.annotation} invocation {list(invocation)}")
        with tracing(self.line_in_file):
            self.main()
        return True
