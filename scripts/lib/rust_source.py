#!/usr/bin/env python3
"""
Text-level view of a single Rust source file.

Implements the host side of the lint rules in this directory: finding macro
invocations, recognising `vec![elem; len]`, classifying expressions as paths
or calls, resolving type paths through `use` declarations, and quoting source
text. Like the other review scripts this works on source text with regexes
and delimiter matching, not on a compiler AST, so it only sees what is
written in the file itself.
"""

import bisect
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from rc_clone_in_vec_init import (
    CallExpr,
    OpaqueExpr,
    PathExpr,
    PointerKind,
    RepeatLiteralShape,
    Span,
)


KNOWN_POINTER_TYPES = {
    "std::sync::Arc": PointerKind.THREAD_SAFE,
    "alloc::sync::Arc": PointerKind.THREAD_SAFE,
    "std::rc::Rc": PointerKind.SINGLE_THREADED,
    "alloc::rc::Rc": PointerKind.SINGLE_THREADED,
}

# Declarations a glob import (`use std::sync::*;`) is known to bring in.
KNOWN_DECLARATIONS = frozenset(KNOWN_POINTER_TYPES)

ROOT_CRATES = ('std', 'core', 'alloc')
LOCAL_ROOTS = ('crate', 'self', 'super')

IDENT = re.compile(r'[^\W\d]\w*')
RAW_STRING_START = re.compile(r'b?r(#*)"')
CHAR_LITERAL = re.compile(r"b?'(?:\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F]{1,6}\}|.)|[^\\'\n])'")
MACRO_CALL = re.compile(r'(?<![\w:])((?:::\s*)?(?:(?:std|alloc)\s*::\s*)?vec)\s*!\s*([\[({])')
MACRO_RULES = re.compile(r'\bmacro_rules\s*!\s*[^\W\d]\w*\s*([\[({])')
USE_DECL = re.compile(r'\buse\s+([^;]+);')
LOCAL_ITEM = re.compile(r'\b(?:struct|enum|union|type|trait|mod)\s+([^\W\d]\w*)')
MODULE_BLOCK = re.compile(r'\bmod\s+([^\W\d]\w*)\s*\{')

OPENERS = {'(': ')', '[': ']', '{': '}'}
CLOSERS = {')', ']', '}'}


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == '_'


def mask_source(text: str) -> str:
    """
    Blank out comments and the insides of string and char literals.

    The result has the same length and the same line breaks as `text`, so
    offsets found in the mask are valid in `text`. Literal delimiters
    are kept so that a literal still reads as a non-empty token.
    """
    out = list(text)
    n = len(text)

    def blank(start, end):
        for k in range(start, end):
            if out[k] != '\n':
                out[k] = ' '

    i = 0
    while i < n:
        if text.startswith('//', i):
            end = text.find('\n', i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
            continue

        if text.startswith('/*', i):
            depth = 0
            j = i
            while j < n:
                if text.startswith('/*', j):
                    depth += 1
                    j += 2
                elif text.startswith('*/', j):
                    depth -= 1
                    j += 2
                    if depth == 0:
                        break
                else:
                    j += 1
            blank(i, j)
            i = j
            continue

        raw = RAW_STRING_START.match(text, i)
        if raw and (i == 0 or not _is_ident_char(text[i - 1])):
            close = '"' + raw.group(1)
            end = text.find(close, raw.end())
            if end == -1:
                blank(raw.end(), n)
                break
            blank(raw.end(), end)
            i = end + len(close)
            continue

        if text[i] == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == '\\' else 1
            blank(i + 1, min(j, n))
            i = j + 1
            continue

        if text[i] in "'b":
            char = CHAR_LITERAL.match(text, i)
            if char and (i == 0 or not _is_ident_char(text[i - 1])):
                blank(char.start() + 1, char.end() - 1)
                i = char.end()
                continue

        i += 1

    return ''.join(out)


def match_delimiter(masked: str, open_index: int) -> Optional[int]:
    """Index of the bracket closing the one at `open_index`, or None if unbalanced."""
    stack = []
    for i in range(open_index, len(masked)):
        ch = masked[i]
        if ch in OPENERS:
            stack.append(OPENERS[ch])
        elif ch in CLOSERS:
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i
    return None


def match_angle(masked: str, open_index: int, end: int) -> Optional[int]:
    """Index of the `>` closing a generic argument list opened at `open_index`."""
    depth = 0
    i = open_index
    while i < end:
        ch = masked[i]
        if ch == '<':
            depth += 1
        elif ch == '-' and masked.startswith('->', i):
            i += 2
            continue
        elif ch == '>':
            depth -= 1
            if depth == 0:
                return i
        elif ch in OPENERS:
            close = match_delimiter(masked, i)
            if close is None:
                return None
            i = close
        i += 1
    return None


def split_top_level(masked: str, start: int, end: int, sep: str) -> List[Tuple[int, int]]:
    """Split masked[start:end] on `sep` where it is not nested in brackets."""
    parts = []
    depth = 0
    part_start = start
    for i in range(start, end):
        ch = masked[i]
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append((part_start, i))
            part_start = i + 1
    parts.append((part_start, end))
    return parts


def trim(masked: str, start: int, end: int) -> Tuple[int, int]:
    while start < end and masked[start].isspace():
        start += 1
    while end > start and masked[end - 1].isspace():
        end -= 1
    return start, end


def skip_ws(masked: str, i: int, end: int) -> int:
    while i < end and masked[i].isspace():
        i += 1
    return i


def parse_path(masked: str, start: int, end: int) -> Optional[Tuple[Tuple[str, ...], int]]:
    """
    Parse a path expression such as `std::sync::Arc::new` or `Arc::<u8>::new`.

    Returns the segments (turbofish arguments dropped, a leading `::` kept as
    an empty first segment) and the offset just past the path.
    """
    segments = []
    i = skip_ws(masked, start, end)
    if masked.startswith('::', i, end):
        segments.append('')
        i = skip_ws(masked, i + 2, end)

    while True:
        ident = IDENT.match(masked, i, end)
        if not ident:
            return None
        segments.append(ident.group())
        i = ident.end()

        k = skip_ws(masked, i, end)
        if not masked.startswith('::', k, end):
            break
        k = skip_ws(masked, k + 2, end)
        if k < end and masked[k] == '<':
            close = match_angle(masked, k, end)
            if close is None:
                return None
            i = close + 1
            k = skip_ws(masked, i, end)
            if not masked.startswith('::', k, end):
                break
            k = skip_ws(masked, k + 2, end)
        i = k

    return tuple(segments), i


def expand_use_tree(tree: str, prefix: str = '') -> Tuple[List[Tuple[str, str]], List[str]]:
    """
    Expand one `use` tree into (name, path) bindings and glob module paths.

    `std::sync::{Arc, Mutex as M, atomic::*}` gives
    [('Arc', 'std::sync::Arc'), ('M', 'std::sync::Mutex')] and ['std::sync::atomic'].
    """
    bindings = []
    globs = []
    tree = tree.strip()

    brace = tree.find('{')
    if brace != -1 and tree.endswith('}'):
        base = tree[:brace].rstrip(':')
        base = f"{prefix}::{base}" if prefix and base else (base or prefix)
        inner = tree[brace + 1:-1]
        depth = 0
        item_start = 0
        items = []
        for i, ch in enumerate(inner):
            if ch == '{':
                depth += 1
            elif ch == '}':
                depth -= 1
            elif ch == ',' and depth == 0:
                items.append(inner[item_start:i])
                item_start = i + 1
        items.append(inner[item_start:])
        for item in items:
            if not item.strip():
                continue
            sub_bindings, sub_globs = expand_use_tree(item, base)
            bindings.extend(sub_bindings)
            globs.extend(sub_globs)
        return bindings, globs

    path, _, alias = tree.partition(' as ')
    path = path.strip()
    alias = alias.strip()
    full = f"{prefix}::{path}" if prefix else path

    if path.endswith('*'):
        globs.append(full[:-1].rstrip(':'))
        return bindings, globs

    if path == 'self' or path.endswith('::self'):
        full = full[:-len('self')].rstrip(':')

    name = alias or full.rsplit('::', 1)[-1]
    if name and name != '_':
        bindings.append((name, full))
    return bindings, globs


@dataclass(frozen=True)
class MacroCall:
    """A macro invocation such as `vec![..]`: its written path and its extent."""

    path: str
    span: Span
    body: Span


@dataclass(eq=False)
class ModuleScope:
    """
    One module of the file: the crate root or an inline `mod name { .. }`.

    Holds the names the module's own `use` declarations bind and the items
    declared directly in it. Inner modules do not see their parent's names.
    """

    path: Tuple[str, ...]
    body: Span
    parent: Optional['ModuleScope'] = None
    imports: Dict[str, str] = field(default_factory=dict)
    glob_imports: List[str] = field(default_factory=list)
    items: Set[str] = field(default_factory=set)
    children: Dict[str, 'ModuleScope'] = field(default_factory=dict)

    @property
    def decl_id(self) -> str:
        return '::'.join(('crate',) + self.path)


class RustSource:
    """One Rust file plus the lookups the lint rules ask of it."""

    def __init__(self, text: str, path: Optional[Path] = None):
        self.text = text
        self.path = path
        self.masked = mask_source(text)
        self._line_starts = [0] + [m.end() for m in re.finditer('\n', text)]
        self.root = ModuleScope((), Span(0, len(text)))
        self.modules = self._find_modules()
        self._parse_use_declarations()
        for match in LOCAL_ITEM.finditer(self.masked):
            self.module_at(match.start()).items.add(match.group(1))
        self._macro_rules = self._find_macro_rules()

    @classmethod
    def from_path(cls, file_path: Path) -> 'RustSource':
        with open(file_path, 'r', encoding='utf-8') as f:
            return cls(f.read(), Path(file_path))

    def _find_modules(self) -> List[ModuleScope]:
        modules = [self.root]
        for match in MODULE_BLOCK.finditer(self.masked):
            open_index = match.end() - 1
            close = match_delimiter(self.masked, open_index)
            if close is None:
                continue
            parent = self.module_at(match.start(), modules)
            name = match.group(1)
            module = ModuleScope(parent.path + (name,), Span(open_index + 1, close), parent)
            parent.children.setdefault(name, module)
            modules.append(module)
        return modules

    def module_at(self, offset: int, modules: Optional[List[ModuleScope]] = None) -> ModuleScope:
        """The innermost module whose body contains `offset`."""
        scope = self.root
        # Modules are in source order, so an inner module starts after its parent.
        for module in modules or self.modules:
            if module.body.start <= offset < module.body.end and module.body.start > scope.body.start:
                scope = module
        return scope

    def _module_named(self, decl_id: str) -> Optional[ModuleScope]:
        for module in self.modules:
            if module.decl_id == decl_id:
                return module
        return None

    def _parse_use_declarations(self):
        for match in USE_DECL.finditer(self.masked):
            scope = self.module_at(match.start())
            tree = re.sub(r'\s*(::|,|\{|\})\s*', r'\1', match.group(1))
            tree = re.sub(r'\s+', ' ', tree)
            bindings, tree_globs = expand_use_tree(tree)
            for name, path in bindings:
                scope.imports.setdefault(name, path)
            scope.glob_imports.extend(tree_globs)

    def _find_macro_rules(self) -> List[Span]:
        spans = []
        for match in MACRO_RULES.finditer(self.masked):
            close = match_delimiter(self.masked, match.start(1))
            if close is not None:
                spans.append(Span(match.start(), close + 1))
        return spans

    def _in_macro_rules(self, offset: int) -> bool:
        return any(span.start <= offset < span.end for span in self._macro_rules)

    def line_col(self, offset: int) -> Tuple[int, int]:
        """1-based line and column of `offset`."""
        line_index = bisect.bisect_right(self._line_starts, offset) - 1
        return line_index + 1, offset - self._line_starts[line_index] + 1

    # Candidate discovery

    def candidate_expressions(self) -> List[MacroCall]:
        """Every `vec!` invocation outside `macro_rules!` bodies, in source order."""
        calls = []
        for match in MACRO_CALL.finditer(self.masked):
            if self._in_macro_rules(match.start()):
                continue
            open_index = match.start(2)
            close = match_delimiter(self.masked, open_index)
            if close is None:
                continue
            path = re.sub(r'\s+', '', match.group(1))
            calls.append(MacroCall(path, Span(match.start(), close + 1), Span(open_index + 1, close)))
        return calls

    # Host capabilities used by the lint rules

    def repeat_literal(self, expr) -> Optional[RepeatLiteralShape]:
        if not isinstance(expr, MacroCall) or expr.path.rsplit('::', 1)[-1] != 'vec':
            return None

        parts = split_top_level(self.masked, expr.body.start, expr.body.end, ';')
        if len(parts) != 2:
            return None
        (elem_start, elem_end), (len_start, len_end) = [trim(self.masked, *part) for part in parts]
        if elem_start == elem_end or len_start == len_end:
            return None

        return RepeatLiteralShape(
            element=self.parse_expr(elem_start, elem_end),
            count=self.parse_expr(len_start, len_end, strip_parens=False),
        )

    def parse_expr(self, start: int, end: int, strip_parens: bool = True):
        """
        Classify masked[start:end] as a call, a path, or something else.

        Redundant outer parentheses are dropped unless `strip_parens` is false,
        in which case the span keeps the text exactly as written.
        """
        start, end = trim(self.masked, start, end)
        while (strip_parens and start < end and self.masked[start] == '('
               and match_delimiter(self.masked, start) == end - 1):
            start, end = trim(self.masked, start + 1, end - 1)

        span = Span(start, end)
        parsed = parse_path(self.masked, start, end)
        if parsed is None:
            return OpaqueExpr(span)

        segments, path_end = parsed
        rest = skip_ws(self.masked, path_end, end)
        if rest == end:
            return PathExpr(segments, span)
        if self.masked[rest] == '(' and match_delimiter(self.masked, rest) == end - 1:
            return CallExpr(PathExpr(segments, Span(start, path_end)), span)
        return OpaqueExpr(span)

    def resolve_path(self, segments, scope: Optional[ModuleScope] = None,
                     depth: int = 0) -> Optional[str]:
        """
        Resolve a written path to the declaration it names, independent of aliasing.

        `scope` is the module the path is written in (the crate root by
        default). `crate::`, `self::` and `super::` paths are followed through
        the modules of this file; a local path that leaves the file keeps its
        `crate::..` identity.
        """
        if not segments or depth > 8:
            return None
        scope = scope or self.root

        head = segments[0]
        rest = list(segments[1:])
        if head == '':
            return '::'.join(rest) or None
        if head in ROOT_CRATES:
            return '::'.join(segments)
        if head in LOCAL_ROOTS:
            if head == 'crate':
                module = self.root
            elif head == 'super':
                module = scope.parent or self.root
            else:
                module = scope
            found = self._resolve_in(module, rest, depth + 1)
            return found or '::'.join([module.decl_id] + rest)

        found = self._resolve_in(scope, list(segments), depth + 1)
        if found:
            return found
        if head[0].islower():
            # Extern crate roots are in scope without a `use`.
            return '::'.join(segments)
        return None

    def _resolve_in(self, module: ModuleScope, segments: List[str], depth: int) -> Optional[str]:
        """Look `segments` up among the names `module` itself brings into scope."""
        if depth > 8:
            return None
        if not segments:
            return module.decl_id

        head = segments[0]
        rest = segments[1:]
        if head in LOCAL_ROOTS:
            return self.resolve_path(segments, module, depth + 1)
        if head in module.children:
            return self._resolve_in(module.children[head], rest, depth + 1)
        if head in module.items:
            return '::'.join([module.decl_id, head] + rest)
        if head in module.imports:
            target = module.imports[head].split('::')
            if target == [head]:
                # `use foo;` names an extern crate.
                return '::'.join(segments)
            return self.resolve_path(target + rest, module, depth + 1)
        for glob in module.glob_imports:
            base = self.resolve_path(glob.split('::'), module, depth + 1)
            if base is None:
                continue
            local = self._module_named(base)
            if local is not None:
                found = self._resolve_in(local, segments, depth + 1)
                if found:
                    return found
            elif f"{base}::{head}" in KNOWN_DECLARATIONS:
                return '::'.join([base, head] + rest)
        return None

    def resolve_callee_type_declaration(self, call: CallExpr) -> Optional[str]:
        func = call.func
        if not isinstance(func, PathExpr) or len(func.segments) < 2:
            return None
        return self.resolve_path(func.segments[:-1], self.module_at(call.span.start))

    def classify_pointer_constructor(self, decl_id: str) -> Optional[PointerKind]:
        return KNOWN_POINTER_TYPES.get(decl_id)

    def source_text(self, span: Span, default: str) -> str:
        if span.start < 0 or span.end > len(self.text) or span.start >= span.end:
            return default
        return self.text[span.start:span.end]

    def indentation_columns(self, span: Span) -> Optional[int]:
        if span.start < 0 or span.start > len(self.text):
            return None
        line_start = self._line_starts[bisect.bisect_right(self._line_starts, span.start) - 1]
        line_end = self.text.find('\n', line_start)
        line = self.text[line_start:] if line_end == -1 else self.text[line_start:line_end]
        if not line.strip():
            return None
        return len(line) - len(line.lstrip())
