#!/usr/bin/env python3
"""
Lint: rc_clone_in_vec_init.

Checks for `Arc::new` or `Rc::new` in `vec![elem; len]`.

`vec![elem; len]` evaluates `elem` once and clones it `len` times. With `Arc`
or `Rc` that clone is a new handle to the same allocation, so every slot ends
up pointing at one shared instance rather than `len` independent ones.

The rule is driven per candidate expression by a host (see rust_source.py)
that knows how to recognise repeat literals, resolve paths and quote source
text. Nothing here walks files or keeps state between calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple, Union


LINT_NAME = "rc_clone_in_vec_init"
LINT_CATEGORY = "suspicious"
LINT_SUMMARY = "initializing `Arc` or `Rc` in `vec![elem; len]`"

LINT_EXPLANATION = """\
### What it does
Checks for `Arc::new` or `Rc::new` in `vec![elem; len]`

### Why is this bad?
This will create `elem` once and clone it `len` times - doing so with `Arc` or `Rc`
is a bit misleading, as it will create references to the same pointer, rather
than different instances.

### Example
    let v = vec![std::sync::Arc::new("some data".to_string()); 100];
    // or
    let v = vec![std::rc::Rc::new("some data".to_string()); 100];

Use instead:

    // Initialize each value separately:
    let mut data = Vec::with_capacity(100);
    for _ in 0..100 {
        data.push(std::rc::Rc::new("some data".to_string()));
    }

    // Or if you want clones of the same reference,
    // Create the reference beforehand to clarify that
    // it should be cloned for each value
    let data = std::rc::Rc::new("some data".to_string());
    let v = vec![data; 100];
"""


class PointerKind(Enum):
    """Reference-counted pointer types whose `new` the rule looks for."""

    SINGLE_THREADED = "Rc"
    THREAD_SAFE = "Arc"

    @property
    def display_name(self) -> str:
        return self.value


@dataclass(frozen=True)
class Span:
    """Half-open character range [start, end) into the host's source text."""

    start: int
    end: int


# Expression shapes the matcher distinguishes. Anything the host cannot
# express as a path or a call is an OpaqueExpr.

@dataclass(frozen=True)
class PathExpr:
    segments: Tuple[str, ...]
    span: Span


@dataclass(frozen=True)
class CallExpr:
    func: "Expr"
    span: Span


@dataclass(frozen=True)
class OpaqueExpr:
    span: Span


Expr = Union[PathExpr, CallExpr, OpaqueExpr]


@dataclass(frozen=True)
class RepeatLiteralShape:
    element: Expr
    count: Expr


@dataclass(frozen=True)
class MatchResult:
    kind: PointerKind
    element: Expr
    count: Expr
    span: Span


@dataclass(frozen=True)
class Suggestion:
    message: str
    snippet: str


@dataclass(frozen=True)
class DiagnosticPayload:
    message: str
    note: str
    suggestions: Tuple[Suggestion, Suggestion]
    span: Span
    lint: str = LINT_NAME


class LintHost(Protocol):
    """Capabilities the rule needs from whoever owns the syntax tree."""

    def repeat_literal(self, expr: object) -> Optional[RepeatLiteralShape]:
        ...

    def resolve_callee_type_declaration(self, call: CallExpr) -> Optional[str]:
        ...

    def classify_pointer_constructor(self, decl_id: str) -> Optional[PointerKind]:
        ...

    def source_text(self, span: Span, default: str) -> str:
        ...

    def indentation_columns(self, span: Span) -> Optional[int]:
        ...


def expr_span(expr) -> Span:
    return expr.span


def new_reference_call(host: LintHost, expr: Expr) -> Optional[PointerKind]:
    """Check whether `expr` is a call to `Arc::new` or `Rc::new`."""
    if not isinstance(expr, CallExpr):
        return None
    func = expr.func
    if not isinstance(func, PathExpr) or len(func.segments) < 2:
        return None

    def_id = host.resolve_callee_type_declaration(expr)
    if def_id is None:
        return None
    if func.segments[-1] != "new":
        return None

    return host.classify_pointer_constructor(def_id)


def match_expr(host: LintHost, expr) -> Optional[MatchResult]:
    """Return the match for `expr`, or None when it is not `vec![Arc/Rc::new(..); len]`."""
    shape = host.repeat_literal(expr)
    if shape is None:
        return None

    kind = new_reference_call(host, shape.element)
    if kind is None:
        return None

    return MatchResult(kind=kind, element=shape.element, count=shape.count, span=expr_span(expr))


def elem_snippet(host: LintHost, elem: Expr, symbol_name: str) -> str:
    snippet = host.source_text(expr_span(elem), "..")
    if "\n" in snippet:
        reference_creation = f"{symbol_name}::new"
        callee = elem.func if isinstance(elem, CallExpr) else None
        if isinstance(callee, PathExpr) and (
            callee.segments[-2:-1] != (symbol_name,) or reference_creation not in snippet
        ):
            # Spelled through an alias or a turbofish: keep the callee as written.
            head = host.source_text(Span(expr_span(elem).start, callee.span.end), "")
            if head:
                return f"{head}(..)"
        head, found, _rest = snippet.partition(reference_creation)
        if found:
            # First occurrence wins.
            return f"{head}{reference_creation}(..)"

    return snippet


def loop_init_suggestion(elem: str, len_: str, indent: str) -> str:
    return (
        "{\n"
        f"{indent}{indent}let mut v = Vec::with_capacity({len_});\n"
        f"{indent}{indent}(0..{len_}).for_each(|_| v.push({elem}));\n"
        f"{indent}{indent}v\n"
        f"{indent}}}"
    )


def extract_suggestion(elem: str, len_: str, indent: str) -> str:
    return (
        "{\n"
        f"{indent}{indent}let data = {elem};\n"
        f"{indent}{indent}vec![data; {len_}]\n"
        f"{indent}}}"
    )


def construct_lint_suggestions(
    host: LintHost,
    span: Span,
    symbol_name: str,
    elem: Expr,
    len_: Expr,
) -> List[Suggestion]:
    len_snippet = host.source_text(expr_span(len_), "..")
    elem_text = elem_snippet(host, elem, symbol_name)
    indentation = host.indentation_columns(span)
    indent = " " * (indentation or 0)

    return [
        Suggestion(
            message=f"consider initializing each `{symbol_name}` element individually",
            snippet=loop_init_suggestion(elem_text, len_snippet, indent),
        ),
        Suggestion(
            message=(
                "or if this is intentional, consider extracting the "
                f"`{symbol_name}` initialization to a variable"
            ),
            snippet=extract_suggestion(elem_text, len_snippet, indent),
        ),
    ]


def build_diagnostic(host: LintHost, found: MatchResult) -> DiagnosticPayload:
    symbol_name = found.kind.display_name
    loop_init, extract = construct_lint_suggestions(
        host, found.span, symbol_name, found.element, found.count
    )
    return DiagnosticPayload(
        message=f"calling `{symbol_name}::new` in `vec![elem; len]`",
        note=f"each element will point to the same `{symbol_name}` instance",
        suggestions=(loop_init, extract),
        span=found.span,
    )


def check_expr(
    host: LintHost,
    expr,
    emit: Callable[[DiagnosticPayload], None],
) -> Optional[DiagnosticPayload]:
    """Run the rule on one candidate and hand any diagnostic to `emit`."""
    found = match_expr(host, expr)
    if found is None:
        return None

    payload = build_diagnostic(host, found)
    emit(payload)
    return payload
