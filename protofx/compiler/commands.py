"""Parse block bodies into commands."""

import re

from protofx.compiler.models import Command

TOKEN = re.compile(r"[\w.]+")
LINE_COMMENT = re.compile(r"//.*$")


def parse_commands(body: str) -> list[Command]:
    """Split a block body into commands, one per non-empty line.

    The first token of a line is the command name, the remaining tokens are
    its raw arguments. No validation happens here; the object consuming the
    commands checks their number and type.

    Args:
        body: Text between the braces of a block

    Returns:
        Commands in the order they appear
    """
    commands = []
    for index, line in enumerate(body.split("\n")):
        tokens = TOKEN.findall(LINE_COMMENT.sub("", line))
        if tokens:
            commands.append(Command(name=tokens[0], args=tokens[1:], line=index))
    return commands
