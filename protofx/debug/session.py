"""
Debug session state.

A debug session covers every shader built for one inspection of a tech unit.
Its shaders share one watch index sequence, and the trace log starts empty.
"""

from dataclasses import dataclass, field

from loguru import logger

from protofx.debug.invocation import DebugSettings
from protofx.debug.trace import clear_trace
from protofx.transpiler.models import StageKind
from protofx.transpiler.watch import WatchCounter, add_debug_code


@dataclass
class DebugSession:
    """Selected invocations and watch indices of one debug session.

    Attributes:
        settings: Invocation inspected in every stage
        watches: Watch index shared by the shaders of the session
    """

    settings: DebugSettings = field(default_factory=DebugSettings)
    watches: WatchCounter = field(default_factory=WatchCounter)

    def begin(self) -> "DebugSession":
        """Start a new session: restart watch indices and empty the trace log."""
        self.watches.reset()
        clear_trace()
        logger.debug("Debug session started")
        return self

    def watch_source(self, glsl: str, stage: StageKind, debug: bool) -> str:
        """Strip or expand the watch markers of a shader of this session."""
        return add_debug_code(glsl, stage, debug, self.watches)
