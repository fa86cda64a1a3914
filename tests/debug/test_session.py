"""Tests for debug session state."""

from protofx.debug import DebugSession, get_trace, trace_variable, tracing
from protofx.transpiler.models import StageKind

SHADER = """\
out vec4 color;
void main() {
    color = vec4(1);
    <<<color>>>
}
"""


def test_watch_indices_continue_within_a_session():
    """Test that the shaders of one session get consecutive watch indices."""
    # Arrange
    session = DebugSession().begin()

    # Act
    first = session.watch_source(SHADER, StageKind.VERTEX, debug=True)
    second = session.watch_source(SHADER, StageKind.FRAGMENT, debug=True)

    # Assert
    assert "_dbgStoreVar(_dbgIdx, color, 0);" in first
    assert "_dbgStoreVar(_dbgIdx, color, 1);" in second


def test_begin_starts_a_new_session():
    """Test that beginning a session restarts indices and empties the trace."""
    # Arrange
    session = DebugSession()
    session.watch_source(SHADER, StageKind.VERTEX, debug=True)
    with tracing():
        trace_variable(1, "x")

    # Act
    session.begin()
    text = session.watch_source(SHADER, StageKind.VERTEX, debug=True)

    # Assert
    assert "_dbgStoreVar(_dbgIdx, color, 0);" in text
    assert get_trace() == []


def test_regular_build_does_not_use_indices():
    """Test that stripping markers leaves the watch index untouched."""
    # Arrange
    session = DebugSession()

    # Act
    stripped = session.watch_source(SHADER, StageKind.FRAGMENT, debug=False)
    text = session.watch_source(SHADER, StageKind.FRAGMENT, debug=True)

    # Assert
    assert "<<<" not in stripped
    assert "_dbgIdx" not in stripped
    assert "_dbgStoreVar(_dbgIdx, color, 0);" in text
