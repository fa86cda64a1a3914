"""Tests for the tech preprocessor."""

import os

import pytest

from protofx.compiler.errors import (
    CircularIncludeError,
    Diagnostics,
    IncludeNotFoundError,
)
from protofx.compiler.models import SourceBuffer
from protofx.compiler.preprocessor import (
    preprocess,
    preprocess_buffer,
    remove_comments,
    resolve_globals,
)


class TestRemoveComments:
    """Tests for comment removal."""

    TEXT = (
        "buffer b { // trailing comment\n"
        "    /* block\n"
        "       comment */ size 4\n"
        '    file "// kept.bin"\n'
        "}\n"
    )

    def test_comments_are_blanked(self):
        """Test that comment content is gone but string literals survive."""
        # Act
        result = remove_comments(self.TEXT)

        # Assert
        assert "trailing" not in result
        assert "block" not in result
        assert '"// kept.bin"' in result
        assert "size 4" in result

    def test_length_and_lines_unchanged(self):
        """Test that removal keeps the character count and the line count."""
        # Act
        result = remove_comments(self.TEXT)

        # Assert
        assert len(result) == len(self.TEXT)
        assert result.count("\n") == self.TEXT.count("\n")

    def test_idempotent(self):
        """Test that removing comments twice equals removing them once."""
        # Act
        once = remove_comments(self.TEXT)
        twice = remove_comments(once)

        # Assert
        assert twice == once


class TestIncludes:
    """Tests for include expansion."""

    def test_transitive_include_order(self, write_file):
        """Test that nested includes are merged in order of appearance."""
        # Arrange
        write_file("c.tech", "C1\n")
        write_file("b.tech", 'B1\n#include "c.tech"\nB2\n')
        a = write_file("a.tech", 'A1\n#include "b.tech"\nA2\n')
        with open(a, encoding="utf-8") as f:
            text = f.read()

        # Act
        merged, offsets, spans = preprocess(text, os.path.dirname(a), file=a)

        # Assert
        order = [merged.index(token) for token in ("A1", "B1", "C1", "B2", "A2")]
        assert order == sorted(order)
        assert offsets[0] == 0
        assert [span.file.rsplit("/", 1)[-1] for span in spans] == [
            "b.tech",
            "c.tech",
            "b.tech",
        ]

    def test_locate_maps_back_to_origin(self, write_file):
        """Test that merged offsets map back to the file and line they came from."""
        # Arrange
        c = write_file("c.tech", "C1\n")
        b = write_file("b.tech", 'B1\n#include "c.tech"\nB2\n')
        a = write_file("a.tech", 'A1\n#include "b.tech"\nA2\n')
        with open(a, encoding="utf-8") as f:
            buffer = preprocess_buffer(f.read(), os.path.dirname(a), file=a)

        # Act
        located = {
            token: buffer.locate(buffer.text.index(token))
            for token in ("A1", "B1", "C1", "B2", "A2")
        }

        # Assert
        assert located["A1"] == (a, 1, 0)
        assert located["B1"] == (b, 1, 0)
        assert located["C1"] == (c, 1, 0)
        assert located["B2"] == (b, 3, 0)
        assert located["A2"] == (a, 3, 0)

    def test_missing_include_raises_without_sink(self, tmp_path):
        """Test that a missing include file raises when no diagnostics are given."""
        # Act & Assert
        with pytest.raises(IncludeNotFoundError) as excinfo:
            preprocess('#include "missing.tech"\n', str(tmp_path))

        assert excinfo.value.path == "missing.tech"
        assert "could not be found" in str(excinfo.value)

    def test_missing_include_is_recorded_and_skipped(self, tmp_path):
        """Test that a missing include is reported and the unit still compiles."""
        # Arrange
        diagnostics = Diagnostics()
        text = 'buffer a { size 4 }\n#include "missing.tech"\nbuffer b { size 8 }\n'

        # Act
        merged, _, _ = preprocess(text, str(tmp_path), diagnostics)

        # Assert
        assert "#include" not in merged
        assert len(merged) == len(text)
        assert len(diagnostics.errors) == 1
        assert diagnostics.errors[0].message == (
            "The include file 'missing.tech' could not be found."
        )
        assert diagnostics.errors[0].line == 2

    def test_circular_include(self, write_file):
        """Test that an include cycle is detected instead of recursing forever."""
        # Arrange
        write_file("b.tech", '#include "a.tech"\n')
        a = write_file("a.tech", '#include "b.tech"\n')
        with open(a, encoding="utf-8") as f:
            text = f.read()

        # Act & Assert
        with pytest.raises(CircularIncludeError):
            preprocess(text, os.path.dirname(a), file=a)

    def test_include_depth_limit(self, write_file):
        """Test that nesting deeper than the limit is reported."""
        # Arrange
        write_file("c.tech", "C1\n")
        write_file("b.tech", '#include "c.tech"\n')
        a = write_file("a.tech", '#include "b.tech"\n')
        diagnostics = Diagnostics()
        with open(a, encoding="utf-8") as f:
            text = f.read()

        # Act
        merged, _, _ = preprocess(text, os.path.dirname(a), diagnostics, file=a, max_depth=2)

        # Assert
        assert "C1" not in merged
        assert "exceeds the include depth of 2" in diagnostics.text


class TestGlobals:
    """Tests for #global substitution."""

    def test_replaces_after_directive_including_partial_words(self):
        """Test literal substring replacement after the directive only."""
        # Arrange
        buffer = SourceBuffer("SIZE_BEFORE\n#global SIZE 256\nsize SIZE\nfile BIGSIZEX\n")

        # Act
        definitions = resolve_globals(buffer)

        # Assert
        assert definitions == {"SIZE": "256"}
        assert "#global" not in buffer.text
        assert buffer.text.startswith("SIZE_BEFORE\n")
        assert "size 256" in buffer.text
        assert "BIG256X" in buffer.text

    def test_later_directive_sees_earlier_substitution(self):
        """Test that directives are applied in text order."""
        # Arrange
        buffer = SourceBuffer("#global W 64\n#global WIDTH W\nsize WIDTH\n")

        # Act
        resolve_globals(buffer)

        # Assert
        # The first directive also rewrites the second one into "#global 64IDTH 64"
        assert buffer.text == "\n\nsize 64\n"

    def test_line_numbers_survive_substitution(self):
        """Test that offsets are rebuilt after the text length changes."""
        # Arrange
        buffer = SourceBuffer("#global N 1000\na N\nb N\n")

        # Act
        resolve_globals(buffer)

        # Assert
        assert buffer.locate(buffer.text.index("b"))[1] == 3


def test_continuation_keeps_line_numbers():
    """Test that a continuation joins lines without shifting later lines."""
    # Arrange
    text = "buffer b {\n    size ...\n    256\n    usage staticDraw\n}\n"

    # Act
    buffer = preprocess_buffer(text, ".")

    # Assert
    assert "..." not in buffer.text
    assert buffer.locate(buffer.text.index("usage"))[1] == 4
