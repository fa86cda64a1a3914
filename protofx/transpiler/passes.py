"""
Textual rewrite passes turning shading-language source into host class code.

Every pass is a total ``str -> str`` rewrite. Passes that edit at match
positions collect the matches first and apply them from right to left, so an
edit never moves the offsets of matches still to be processed. The order of
``PASSES`` is significant: later passes rely on the shapes produced by
earlier ones (e.g. the array pass sees the members made public by the
interface block pass).
"""

import re
from collections.abc import Callable

from protofx.transpiler.constants import CAST_TYPES, KEYWORDS

STRING = re.compile(r'"(?:\\.|[^"\\\n])*"')

VERSION = re.compile(r"#version[ \t]+[0-9]{3}(?:[ \t]+(?:core|compatibility|es))?")
IN_OUT_LAYOUT = re.compile(r"(\blayout\s*\([^;{}]*?\)\s+)(in|out)(\s*;)")
LAYOUT = re.compile(r"\blayout\s*\([^)]*\)")
CONSTANT = re.compile(r"\bconst\s+(\w+)\s+(\w+)\s*=\s*([\w.]+)\s*;")
CONST = re.compile(r"\bconst\s+")
INTERFACE_BLOCK = re.compile(
    r"\b(uniform|in|out|buffer)\s+(\w+)(\s*)\{([^{}]*)\}(\s*)(\w+)\s*(\[[^\]]*\])?\s*;"
)
MEMBER = re.compile(r"\b\w+\s+[\w\[\]]+\s*;")
ARRAY = re.compile(r"\b(\w+)(\s+)(\w+)\s*\[([^\]\n]*)\]\s*;")
UNIFORM = re.compile(r"\buniform\s+")
DISCARD = re.compile(r"\bdiscard\b")
FLOAT = re.compile(r"\b[0-9]*\.[0-9]+\b")
INPUT = re.compile(r"\bin\s+(\w+)\s+(\w+)\s*;")
PREDEFINED_OUTPUT = re.compile(r"\bout\s+gl_PerVertex\s*\{.*?\}\s*;", re.DOTALL)
OUT = re.compile(r"\bout\b")
FLAT = re.compile(r"\bflat\b")
SMOOTH = re.compile(r"\bsmooth\b")
MAIN = re.compile(r"\bvoid\s+main\b")


def sub_outside_strings(
    pattern: re.Pattern[str], repl: str | Callable[[re.Match[str]], str], text: str
) -> str:
    """Apply ``pattern.sub`` to the text but leave string literals untouched."""
    parts = []
    cursor = 0
    for literal in STRING.finditer(text):
        parts.append(pattern.sub(repl, text[cursor : literal.start()]))
        parts.append(literal.group(0))
        cursor = literal.end()
    parts.append(pattern.sub(repl, text[cursor:]))
    return "".join(parts)


def strip_version(text: str) -> str:
    return VERSION.sub("", text)


def normalize_type_casts(text: str) -> str:
    """Group cast targets: ``float(x)`` becomes ``(float)(x)``."""
    for type_name in CAST_TYPES:
        matches = list(re.finditer(rf"\b{type_name}\((?=.*\))", text))
        for match in reversed(matches):
            index = match.start()
            text = f"{text[:index]}({type_name}){text[index + len(type_name):]}"
    return text


def rewrite_in_out_layouts(text: str) -> str:
    """``layout(...) in;`` becomes ``layout(...) object __in__;``."""
    return IN_OUT_LAYOUT.sub(r"\1object __\2__\3", text)


def rewrite_layouts(text: str) -> str:
    """``layout(params)`` becomes the annotation ``[__layout(params)]``."""
    return LAYOUT.sub(r"[__\g<0>]", text)


def rewrite_constants(text: str) -> str:
    """``const T NAME = VALUE;`` becomes a read-only property."""
    text = CONSTANT.sub(r"\1 \2 { get { return \3; } }", text)
    return CONST.sub("", text)


def _interface_block(match: re.Match[str]) -> str:
    _, name, space, fields, gap, instance, dims = match.groups()
    fields = MEMBER.sub(lambda m: f"public {m.group(0)}", fields)
    if dims is not None:
        length = dims[1:-1].strip() or "0"
        clazz, ctor = f"{name}[]", f"{name}[{length}]"
    else:
        clazz, ctor = name, f"{name}()"
    return f"class {name}{space}{{{fields}}}{gap}{clazz} {instance} = new {ctor};"


def rewrite_interface_blocks(text: str) -> str:
    """Turn ``uniform Name { fields } inst;`` into a class and an instance.

    The block becomes ``class Name { public fields }`` followed by
    ``Name inst = new Name();``. For ``inst[N]`` (or ``inst[]``, length 0)
    the instance is an array ``Name[] inst = new Name[N];``.
    """
    return INTERFACE_BLOCK.sub(_interface_block, text)


def _array(match: re.Match[str]) -> str:
    type_name, space, name, length = match.groups()
    if type_name in KEYWORDS:
        return match.group(0)
    length = length.strip() or "0"
    return f"{type_name}[]{space}{name} = new {type_name}[{length}];"


def rewrite_arrays(text: str) -> str:
    """``T NAME[N];`` becomes ``T[] NAME = new T[N];``."""
    return ARRAY.sub(_array, text)


def strip_uniforms(text: str) -> str:
    return UNIFORM.sub("", text)


def rewrite_discard(text: str) -> str:
    return DISCARD.sub("return", text)


def suffix_floats(text: str) -> str:
    """Append ``f`` to floating-point literals that lack it."""
    return sub_outside_strings(FLOAT, r"\g<0>f", text)


def rewrite_inputs(text: str) -> str:
    """``in T NAME;`` becomes a property reading the previous stage's varying."""
    return sub_outside_strings(
        INPUT,
        r'[__in] \1 \2 { get { return GetInputVarying<\1>("\2"); } }',
        text,
    )


def strip_predefined_outputs(text: str) -> str:
    """Blank the ``out gl_PerVertex { ... };`` block but keep its line breaks."""
    return PREDEFINED_OUTPUT.sub(lambda m: "\n" * m.group(0).count("\n"), text)


def rewrite_qualifiers(text: str) -> str:
    """``out``, ``flat`` and ``smooth`` become attribute markers."""
    text = sub_outside_strings(OUT, "[__out]", text)
    text = sub_outside_strings(FLAT, "[__flat]", text)
    return sub_outside_strings(SMOOTH, "[__smooth]", text)


def rewrite_main(text: str) -> str:
    return MAIN.sub("public override void main", text)


# Name of the slot reserved for the trace instrumentation pass
TRACE = "trace"

PASSES: list[tuple[str, Callable[[str], str] | None]] = [
    ("version", strip_version),
    ("type_casts", normalize_type_casts),
    ("in_out_layouts", rewrite_in_out_layouts),
    ("layouts", rewrite_layouts),
    ("constants", rewrite_constants),
    ("interface_blocks", rewrite_interface_blocks),
    ("arrays", rewrite_arrays),
    ("uniforms", strip_uniforms),
    ("discard", rewrite_discard),
    (TRACE, None),
    ("floats", suffix_floats),
    ("inputs", rewrite_inputs),
    ("predefined_outputs", strip_predefined_outputs),
    ("qualifiers", rewrite_qualifiers),
    ("main", rewrite_main),
]
