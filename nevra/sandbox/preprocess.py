"""
Source preprocessors - best-effort rewrites that make generated component
source executable by an in-browser transpiler.

These are targeted regex rewrites, not a parser. Anything they miss is left
for the transpiler in the preview harness, which also understands
TypeScript. A parser-based transform can replace them by implementing the
Preprocessor protocol.
"""

import re
from typing import List, Optional, Protocol, Sequence


class Preprocessor(Protocol):
    """A single source-to-source rewrite step."""

    name: str

    def process(self, source: str) -> str:
        ...


# =============================================================================
# TYPE ANNOTATIONS
# =============================================================================

HOOK_NAMES = ("useState", "useEffect", "useRef", "useMemo", "useCallback", "useReducer", "useContext")

_HOOK_GENERIC_RE = re.compile(r"\b(%s)\s*<[^<>()]*(?:<[^<>()]*>[^<>()]*)*>\s*\(" % "|".join(HOOK_NAMES))
_INTERFACE_RE = re.compile(
    r"^[ \t]*(?:export\s+)?interface\s+\w+[^{\n]*\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}[ \t]*;?[ \t]*\n?",
    re.MULTILINE,
)
_TYPE_ALIAS_RE = re.compile(
    r"^[ \t]*(?:export\s+)?type\s+\w+\s*(?:<[^>]*>)?\s*=\s*"
    r"(?:\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}|[^;{\n]+(?:\n[ \t]*\|[^;{\n]+)*)"
    r"[ \t]*;?[ \t]*\n?",
    re.MULTILINE,
)
_DECLARATION_RE = re.compile(r"\b(const|let|var)\s+(\w+)\s*:\s*[^=;\n]+?\s*=(?!>)")
_DESTRUCTURE_RE = re.compile(r"\b(const|let|var)\s+(\[[^\]\n]*\]|\{[^}\n]*\})\s*:\s*[^=;\n]+?\s*=(?!>)")
_AS_ASSERTION_RE = re.compile(r"\s+as\s+(?:const\b|[A-Z][\w.]*(?:<[^<>]*>)?(?:\[\])*)")
_RETURN_TYPE = r"(?:\s*:\s*[\w.]+(?:<[^<>]*>)?(?:\[\])*(?:\s*\|\s*[\w.]+(?:<[^<>]*>)?(?:\[\])*)*)?"
_FUNCTION_SIGNATURE_RE = re.compile(
    r"(\bfunction\b\s*\w*)\s*(<[^<>()]*>)?\s*\(([^()]*)\)" + _RETURN_TYPE + r"(\s*\{)"
)
_ARROW_SIGNATURE_RE = re.compile(r"\(([^()]*)\)" + _RETURN_TYPE + r"(\s*=>)")

_OPENERS = {"(": ")", "[": "]", "{": "}", "<": ">"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}


def _split_top_level(params: str) -> List[str]:
    """Split a parameter list on commas that are not nested in brackets."""
    parts, depth, current = [], 0, []
    for ch in params:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and depth > 0:
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _strip_param_type(param: str) -> str:
    """Drop a top-level `: Type` from one parameter, keeping any default value."""
    depth = 0
    colon = None
    for i, ch in enumerate(param):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and depth > 0:
            depth -= 1
        elif depth == 0 and ch == "=":
            # default value reached before any annotation
            return param
        elif depth == 0 and ch == ":":
            colon = i
            break
    if colon is None:
        return param

    head = param[:colon].rstrip().rstrip("?")
    rest = param[colon + 1:]
    depth = 0
    for i, ch in enumerate(rest):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and depth > 0:
            depth -= 1
        elif depth == 0 and ch == "=" and rest[i + 1:i + 2] != ">":
            return f"{head} ={rest[i + 1:]}"
    return head


def strip_param_types(params: str) -> str:
    if ":" not in params:
        return params
    return ",".join(_strip_param_type(p) for p in _split_top_level(params))


class RegexTypeStripper:
    """Remove TypeScript type annotations with targeted rewrites."""

    name = "regex-type-stripper"

    def process(self, source: str) -> str:
        code = source
        code = _HOOK_GENERIC_RE.sub(r"\1(", code)
        code = _INTERFACE_RE.sub("", code)
        code = _TYPE_ALIAS_RE.sub("", code)
        code = _DESTRUCTURE_RE.sub(r"\1 \2 =", code)
        code = _DECLARATION_RE.sub(r"\1 \2 =", code)
        code = _FUNCTION_SIGNATURE_RE.sub(
            lambda m: f"{m.group(1)}({strip_param_types(m.group(3))}){m.group(4)}", code
        )
        code = _ARROW_SIGNATURE_RE.sub(
            lambda m: f"({strip_param_types(m.group(1))}){m.group(2)}", code
        )
        code = _AS_ASSERTION_RE.sub("", code)
        return code


# =============================================================================
# MODULE SYNTAX
# =============================================================================

_IMPORT_RE = re.compile(r"^[ \t]*import\s+(?:[\s\S]*?\s+from\s+)?['\"][^'\"]+['\"][ \t]*;?[ \t]*\n?", re.MULTILINE)
_DIRECTIVE_RE = re.compile(r"^[ \t]*['\"]use (?:client|server|strict)['\"][ \t]*;?[ \t]*\n?", re.MULTILINE)
_EXPORT_DEFAULT_NAME_RE = re.compile(r"^[ \t]*export\s+default\s+[A-Za-z_$][\w$]*[ \t]*;?[ \t]*$\n?", re.MULTILINE)
_EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*\{[^}]*\}[ \t]*;?[ \t]*\n?", re.MULTILINE)
_EXPORT_PREFIX_RE = re.compile(r"\bexport\s+(?:default\s+)?(?=(?:async\s+)?(?:function|const|let|var|class)\b)")

_DEFAULT_EXPORT_RE = re.compile(r"\bexport\s+default\s+")
_NAMED_DEFAULT_RE = re.compile(
    r"\bexport\s+default\s+(?:"
    r"(?:async\s+)?function\s*\*?\s*[A-Za-z_$][\w$]*\s*[(<]"
    r"|class\s+(?!extends\b)[A-Za-z_$][\w$]*"
    r"|[A-Za-z_$][\w$]*[ \t]*;?[ \t]*$)",
    re.MULTILINE,
)
_ANONYMOUS_FUNCTION_RE = re.compile(r"\bexport\s+default\s+(async\s+)?function(\s*\*?)\s*(?=[(<])")
_ANONYMOUS_CLASS_RE = re.compile(r"\bexport\s+default\s+class\s*(?=\{|extends\b)")
_APP_DECLARED_RE = re.compile(r"\b(?:function|class|const|let|var)\s+App\b")

ANONYMOUS_DEFAULT_NAME = "App"
# Used instead when the source already declares App, e.g. `export default memo(App)`
FALLBACK_DEFAULT_NAME = "DefaultExport"


def anonymous_default_name(source: str) -> Optional[str]:
    """
    Name bound to an anonymous default export, or None if there is none.

    Covers `export default () => ...`, `export default function () {}`,
    `export default class {}` and `export default <expression>`.
    """
    if not source or not _DEFAULT_EXPORT_RE.search(source) or _NAMED_DEFAULT_RE.search(source):
        return None
    if _APP_DECLARED_RE.search(source):
        return FALLBACK_DEFAULT_NAME
    return ANONYMOUS_DEFAULT_NAME


class ModuleSyntaxStripper:
    """Remove import/export syntax; the harness provides React as globals."""

    name = "module-syntax-stripper"

    def process(self, source: str) -> str:
        code = _DIRECTIVE_RE.sub("", source)
        code = _IMPORT_RE.sub("", code)

        binding = anonymous_default_name(code)
        if binding:
            code = _ANONYMOUS_FUNCTION_RE.sub(
                lambda m: f"{m.group(1) or ''}function{m.group(2).rstrip()} {binding}", code, count=1
            )
            code = _ANONYMOUS_CLASS_RE.sub(f"class {binding} ", code, count=1)
            code = _DEFAULT_EXPORT_RE.sub(f"const {binding} = ", code, count=1)

        code = _EXPORT_DEFAULT_NAME_RE.sub("", code)
        code = _EXPORT_LIST_RE.sub("", code)
        code = _EXPORT_PREFIX_RE.sub("", code)
        return code


# =============================================================================
# CHAIN
# =============================================================================

class PreprocessorChain:
    """Apply preprocessors in order."""

    name = "chain"

    def __init__(self, steps: Sequence[Preprocessor]):
        self.steps = tuple(steps)

    def process(self, source: str) -> str:
        for step in self.steps:
            source = step.process(source)
        return source


def default_chain() -> PreprocessorChain:
    return PreprocessorChain([ModuleSyntaxStripper(), RegexTypeStripper()])
