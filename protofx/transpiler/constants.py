"""
Constants and predefined names for the shader transpiler.

This module contains the built-in shading-language type names, keywords that
must never be wrapped by trace calls, and the per-stage debug declarations
used when generating debug entry points.
"""

# Scalar, vector and matrix types of the shading language
BUILTIN_TYPES: tuple[str, ...] = (
    "void",
    "bool", "int", "uint", "float", "double",
    "bvec2", "ivec2", "uvec2", "vec2", "dvec2",
    "bvec3", "ivec3", "uvec3", "vec3", "dvec3",
    "bvec4", "ivec4", "uvec4", "vec4", "dvec4",
    "mat2", "dmat2", "mat3", "dmat3", "mat4", "dmat4",
)

# Types handled by the numeric cast normalization pass
CAST_TYPES: tuple[str, ...] = ("bool", "int", "uint", "float", "double")

# Words that are never traced even though they look like variables
KEYWORDS: frozenset[str] = frozenset(
    {
        "return", "new", "if", "else", "for", "while", "do", "switch", "case",
        "default", "break", "continue", "discard", "in", "out", "inout",
        "const", "true", "false", "struct", "uniform", "public", "class",
        "get", "override",
    }
)

NOT_TRACEABLE: frozenset[str] = frozenset(
    set(BUILTIN_TYPES) | {t + "[]" for t in BUILTIN_TYPES} | KEYWORDS
)

# Name of the trace call inserted around traced expressions
TRACE_FUNCTION = "TraceVariable"

# Fixed bracket pair delimiting watch markers
WATCH_OPEN = "<<<"
WATCH_CLOSE = ">>>"

# Per-stage uniform selecting the debugged invocation, indexed like StageKind
DEBUG_UNIFORMS: tuple[str, ...] = (
    "ivec2 _dbgVert",
    "ivec2 _dbgTess",
    "int _dbgEval",
    "ivec2 _dbgGeom",
    "ivec4 _dbgFrag",
    "uvec3 _dbgComp",
)

# Per-stage condition testing whether the current invocation is debugged
DEBUG_CONDITIONS: tuple[str, ...] = (
    "all(equal(_dbgVert, ivec2(gl_InstanceID, gl_VertexID)))",
    "all(equal(_dbgTess, ivec2(gl_InvocationID, gl_PrimitiveID)))",
    "_dbgEval == gl_PrimitiveID",
    "all(equal(_dbgGeom, ivec2(gl_PrimitiveIDIn, gl_InvocationID)))",
    "all(equal(_dbgFrag, ivec4(int(gl_FragCoord.x), int(gl_FragCoord.y), gl_Layer, gl_ViewportIndex)))",
    "all(equal(_dbgComp, gl_GlobalInvocationID))",
)

# Declarations added in front of a debug entry point; ``{stage}`` is the stage index
DEBUG_HEADER = """\
layout(rgba32f) uniform writeonly imageBuffer _dbgOut;
const int _dbgStage = {stage};
int _dbgStoreVar(int idx, vec4 val, int id) {{
    imageStore(_dbgOut, idx++, vec4(_dbgStage, id, 0, 0));
    imageStore(_dbgOut, idx++, val);
    return idx;
}}
int _dbgStoreVar(int idx, vec3 val, int id) {{ return _dbgStoreVar(idx, vec4(val, 0), id); }}
int _dbgStoreVar(int idx, vec2 val, int id) {{ return _dbgStoreVar(idx, vec4(val, 0, 0), id); }}
int _dbgStoreVar(int idx, float val, int id) {{ return _dbgStoreVar(idx, vec4(val, 0, 0, 0), id); }}
int _dbgStoreVar(int idx, int val, int id) {{ return _dbgStoreVar(idx, vec4(val, 0, 0, 0), id); }}
int _dbgStoreVar(int idx, uint val, int id) {{ return _dbgStoreVar(idx, vec4(val, 0, 0, 0), id); }}
int _dbgStoreVar(int idx, bool val, int id) {{ return _dbgStoreVar(idx, vec4(val, 0, 0, 0), id); }}
"""
