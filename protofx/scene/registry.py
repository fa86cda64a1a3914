"""Registry of scene object kinds and their command fields.

Declare an object kind and the commands it accepts:

    from dataclasses import dataclass
    from protofx.scene.registry import fx_field, scene_object
    from protofx.scene.scene import SceneObject

    @scene_object("sampler")
    @dataclass
    class Sampler(SceneObject):
        minfilter: Filter = fx_field(Filter.NEAREST, convert=Filter)

Every command of a block is routed to the setter registered under its
lowercase name. The setters are built once per class when it is registered.
"""

import dataclasses
from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar

from protofx.compiler.errors import Diagnostics, FieldError, TechReferenceError
from protofx.compiler.models import Block, Command

C = TypeVar("C", bound=type)

Setter = Callable[[Any, Block, Command, Diagnostics], None]

_KINDS: dict[str, type] = {}


def fx_field(
    default: Any = None,
    *,
    convert: Callable[[str], Any] = str,
    many: bool = False,
    repeated: bool = False,
    command: str | None = None,
) -> Any:
    """Declare a dataclass field settable by a block command.

    Args:
        default: Default value (lists are copied per instance)
        convert: Converter of one argument token; an Enum subclass is matched
            by member name or value, ignoring case
        many: The command takes one or more arguments, stored as a list
        repeated: The command may occur several times; values are appended
        command: Command name if it differs from the field name

    Returns:
        A dataclass field carrying the command metadata
    """
    metadata = {
        "fx": {"convert": convert, "many": many, "repeated": repeated, "command": command}
    }
    if repeated or isinstance(default, list):
        initial = [] if default is None else list(default)
        return dataclasses.field(default_factory=lambda: list(initial), metadata=metadata)
    return dataclasses.field(default=default, metadata=metadata)


def convert_token(convert: Callable[[str], Any], token: str) -> Any:
    """Convert one argument token.

    Raises:
        ValueError: If the token cannot be converted
    """
    if isinstance(convert, type) and issubclass(convert, Enum):
        key = token.lower()
        for member in convert:
            if member.name.lower() == key or str(member.value).lower() == key:
                return member
        raise ValueError(token)
    return convert(token)


def _type_name(convert: Callable[[str], Any]) -> str:
    return getattr(convert, "__name__", "value").lower()


def convert_args(command: Command, convert: Callable[[str], Any], many: bool) -> Any:
    """Check the arity of a command and convert its arguments.

    Returns:
        The converted value, or a list of values if ``many`` is set

    Raises:
        FieldError: On a wrong number of arguments or an unconvertible token
    """
    if len(command) == 0:
        raise FieldError(f"Command '{command.text}' has no arguments (must have at least one).")
    if not many and len(command) > 1:
        raise FieldError(f"Command '{command.text}' has too many arguments (more than one).")
    values = []
    for token in command.args:
        try:
            values.append(convert_token(convert, token))
        except ValueError as e:
            raise FieldError(
                f"Command '{command.text}': could not convert "
                f"'{token}' to {_type_name(convert)}."
            ) from e
    return values if many else values[0]


def _make_setter(name: str, convert: Callable[[str], Any], many: bool, repeated: bool) -> Setter:
    def setter(obj: Any, block: Block, command: Command, err: Diagnostics) -> None:
        try:
            value = convert_args(command, convert, many)
        except FieldError as e:
            err.add(e.message, block=block, command=command)
            return
        if repeated:
            getattr(obj, name).append(value)
        else:
            setattr(obj, name, value)

    return setter


def build_setters(cls: type) -> dict[str, Setter]:
    """Build the lowercase command name to setter mapping of a dataclass."""
    setters = {}
    for f in dataclasses.fields(cls):
        meta = f.metadata.get("fx")
        if meta is None:
            continue
        setters[(meta["command"] or f.name).lower()] = _make_setter(
            f.name, meta["convert"], meta["many"], meta["repeated"]
        )
    return setters


def scene_object(kind: str) -> Callable[[C], C]:
    """Register a dataclass as the object kind for a block type token."""

    def decorator(cls: C) -> C:
        cls.kind = kind  # type: ignore[attr-defined]
        cls.setters = build_setters(cls)  # type: ignore[attr-defined]
        _KINDS[kind.lower()] = cls
        return cls

    return decorator


def get_kind(token: str) -> type:
    """Return the class registered for a block type token.

    Raises:
        TechReferenceError: If no kind is registered under the token
    """
    cls = _KINDS.get(token.lower())
    if cls is None:
        raise TechReferenceError(f"Unknown object type '{token}'.")
    return cls


def registered_kinds() -> list[str]:
    return sorted(_KINDS)


def apply_commands(
    obj: Any,
    block: Block,
    err: Diagnostics,
    skip: frozenset[str] = frozenset(),
) -> None:
    """Route every command of a block to its setter.

    Unknown command names are recorded as field errors.

    Args:
        obj: Object being constructed
        block: Block whose commands are applied
        err: Diagnostics of the object
        skip: Command names handled by the object itself
    """
    setters: dict[str, Setter] = type(obj).setters
    for command in block:
        key = command.name.lower()
        if key in skip:
            continue
        setter = setters.get(key)
        if setter is None:
            err.add(f"Unknown command '{command.name}'.", block=block, command=command)
            continue
        setter(obj, block, command, err + f"command '{command.name}'")
