"""Missing return type heuristic for TypeScript sources.

Function-like constructs are found line by line (function declarations,
``const`` closures and closures passed to a wrapper such as ``useCallback``).
The header is grown until the body brace is seen at paren depth zero, then a
set of patterns decides whether a return type annotation is present.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from reviewgate.analyzers.common import split_lines
from reviewgate.schemas import Violation

FN_DECL_RE = re.compile(r"(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s+(\w+)")
CONST_RE = re.compile(r"(?:export\s+)?const\s+(\w+)\s*=\s*")
ARROW_RE = re.compile(r"=>")
WRAPPER_RE = re.compile(r"=\s*([A-Za-z_$][\w$]*)\s*(?:<|\()")
DIRECT_PAREN_RE = re.compile(r"=\s*\(")

IS_ARROW_RE = re.compile(r"=\s*(?:async\s+)?[\s\S]*?\)\s*=>")
IS_FUNCTION_KEYWORD_RE = re.compile(r"function\s*\(")
IS_TYPED_VAR_RE = re.compile(r"const\s+\w+\s*:\s*[^=]*=>")
IS_WRAPPED_ARROW_RE = re.compile(
    r"=\s*[A-Za-z_$][\w$]*\s*(?:<[^>]*>)?\s*\(\s*(?:async\s+)?\([^)]*\)\s*(?::\s*[^)]+)?\s*=>"
)

DECL_RETURN_RE = re.compile(r"\)\s*:\s*\S")
TYPED_FUNCTION_RE = re.compile(r"function\s+\w+\s*\([^)]*\)\s*:\s*[^\{]+\{")
TYPED_CONST_RE = re.compile(r"const\s+\w+\s*:\s*[^=]+=\s*")
TYPED_ARROW_RE = re.compile(r"=\s*(?:async\s+)?[\s\S]*?\)\s*:\s*[^=]+=>")
USE_CALLBACK_GENERIC_RE = re.compile(r"=\s*useCallback\s*<([^>]+)>")
GENERIC_FN_TYPE_RE = re.compile(r"\([^)]*\)\s*=>\s*[^)]+")
TYPED_WRAPPED_ARROW_RE = re.compile(
    r"=\s*[A-Za-z_$][\w$]*\s*(?:<[^>]+>)?\s*\(\s*(?:async\s+)?\([^)]*\)\s*:\s*[^)]+=>"
)
EMPTY_PARAMS_DECL_RE = re.compile(r"function\s+\w+\s*\(\)\s*\{")
SKIP_MARKERS = ("constructor", "set ", "get ", "(): void", ": void", "Promise<void>")

ADVICE = "Add explicit return types to exported/public functions and callbacks."

FUNCTION_DECLARATION = "function-declaration"
CONST_ARROW = "const-arrow"
WRAPPED_ARROW = "wrapped-arrow"


@dataclass(slots=True)
class FunctionCandidate:
    text: str
    start_line: int
    name: str
    kind: str
    wrapper_name: str | None
    signature_preview: str


class _HeaderScanner:
    def __init__(self) -> None:
        self.paren_level = 0
        self.seen_arrow = False
        self.found_brace = False
        self.ever_saw_paren = False

    def feed(self, text: str) -> None:
        for char in text:
            if char == "(":
                self.paren_level += 1
                self.ever_saw_paren = True
            elif char == ")":
                self.paren_level = max(0, self.paren_level - 1)
            elif char == "{" and self.paren_level == 0:
                self.found_brace = True
                break
        if ARROW_RE.search(text):
            self.seen_arrow = True


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def extract_functions(lines: list[str]) -> list[FunctionCandidate]:
    functions: list[FunctionCandidate] = []
    for index, first_line in enumerate(lines):
        decl = FN_DECL_RE.search(first_line)
        const = CONST_RE.search(first_line)
        if decl:
            name, kind = decl.group(1), FUNCTION_DECLARATION
        elif const:
            name, kind = const.group(1), "const"
        else:
            continue

        header = [first_line]
        scanner = _HeaderScanner()
        scanner.feed(first_line)
        cursor = index + 1

        def grow() -> None:
            nonlocal cursor
            header.append(lines[cursor])
            scanner.feed(lines[cursor])
            cursor += 1

        if kind == "const":
            while (
                not scanner.found_brace
                and cursor < len(lines)
                and (
                    scanner.paren_level > 0
                    or (not scanner.seen_arrow and not scanner.ever_saw_paren and cursor - index < 3)
                )
            ):
                grow()
        else:
            while not scanner.found_brace and cursor < len(lines) and (
                scanner.paren_level > 0 or not scanner.seen_arrow
            ):
                grow()
            while not scanner.found_brace and cursor < len(lines) and cursor - index < 8:
                grow()

        text = "\n".join(header)
        wrapper_name: str | None = None
        if kind == "const":
            wrapper = WRAPPER_RE.search(text)
            if wrapper:
                wrapper_name = wrapper.group(1)
                kind = CONST_ARROW if DIRECT_PAREN_RE.search(text) else WRAPPED_ARROW
            else:
                kind = CONST_ARROW

        if kind != FUNCTION_DECLARATION:
            function_like = (
                IS_ARROW_RE.search(text)
                or IS_FUNCTION_KEYWORD_RE.search(text)
                or IS_TYPED_VAR_RE.search(text)
                or IS_WRAPPED_ARROW_RE.search(text)
            )
            if not function_like:
                continue

        functions.append(
            FunctionCandidate(
                text=text,
                start_line=index + 1,
                name=name or "(anonymous)",
                kind=kind,
                wrapper_name=wrapper_name,
                signature_preview=first_line.strip(),
            )
        )
    return functions


def _header_before_body(text: str) -> str:
    depth = 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == "{" and depth == 0:
            return text[:index]
    return text


def has_explicit_return_type(func: FunctionCandidate) -> bool:
    clean = _collapse(func.text)

    if func.kind == FUNCTION_DECLARATION:
        header = re.sub(r"\s+", " ", _header_before_body(func.text))
        if DECL_RETURN_RE.search(header):
            return True

    if TYPED_FUNCTION_RE.search(clean) or TYPED_CONST_RE.search(clean) or TYPED_ARROW_RE.search(clean):
        return True

    if func.kind == WRAPPED_ARROW and func.wrapper_name == "useCallback":
        generic = USE_CALLBACK_GENERIC_RE.search(clean)
        if generic and GENERIC_FN_TYPE_RE.search(generic.group(1)):
            return True

    return bool(TYPED_WRAPPED_ARROW_RE.search(clean))


def _should_skip(func: FunctionCandidate) -> bool:
    clean = _collapse(func.text)
    return any(marker in clean for marker in SKIP_MARKERS) or bool(EMPTY_PARAMS_DECL_RE.search(clean))


def analyze_type_annotations(content: str) -> list[Violation]:
    violations: list[Violation] = []
    for func in extract_functions(split_lines(content)):
        if _should_skip(func) or has_explicit_return_type(func):
            continue
        violations.append(
            Violation(
                kind="missing-return-type",
                line=func.start_line,
                message=f"Add explicit return type for {func.name}",
                advice=ADVICE,
                extra={"name": func.name, "functionKind": func.kind, "signaturePreview": func.signature_preview},
            )
        )
    return violations
