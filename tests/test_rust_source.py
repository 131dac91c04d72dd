from pathlib import Path

import pytest

from rc_clone_in_vec_init import CallExpr, OpaqueExpr, PathExpr, PointerKind, Span, check_expr
from rust_source import MacroCall, RustSource, expand_use_tree, mask_source


FIXTURES = Path(__file__).parent / "fixtures" / "rc_clone_in_vec_init"


def run_rule(source):
    payloads = []
    for expr in source.candidate_expressions():
        check_expr(source, expr, payloads.append)
    return payloads


def located(source, payloads):
    return [source.line_col(payload.span.start) for payload in payloads]


def text_of(source, expr):
    return source.source_text(expr.span, "")


class TestMaskSource:
    def test_keeps_length_and_lines(self):
        text = 'let s = "a;b"; // vec![x; 2]\n/* c */ let c = \'[\';'
        masked = mask_source(text)

        assert len(masked) == len(text)
        assert masked.count('\n') == text.count('\n')
        assert 'vec!' not in masked
        assert '[' not in masked
        assert '"   "' in masked

    def test_nested_block_comments(self):
        masked = mask_source("/* a /* b */ vec![x; 2] */ y")

        assert masked.strip() == "y"

    def test_raw_strings(self):
        masked = mask_source('let s = r#"vec![a; "2"]"#;')

        assert 'vec!' not in masked
        assert masked.endswith('"#;')

    def test_lifetimes_are_not_char_literals(self):
        text = "fn f<'a>(x: &'a [u8]) -> &'a [u8] { x }"

        assert mask_source(text) == text


class TestExpandUseTree:
    def test_simple_path(self):
        assert expand_use_tree("std::sync::Arc") == ([("Arc", "std::sync::Arc")], [])

    def test_rename(self):
        assert expand_use_tree("std::rc::Rc as Shared") == ([("Shared", "std::rc::Rc")], [])

    def test_groups_self_and_globs(self):
        bindings, globs = expand_use_tree("std::{sync::{self,Arc},rc::Rc as R,collections::*}")

        assert bindings == [
            ("sync", "std::sync"),
            ("Arc", "std::sync::Arc"),
            ("R", "std::rc::Rc"),
        ]
        assert globs == ["std::collections"]

    def test_underscore_import_binds_nothing(self):
        assert expand_use_tree("std::io::Write as _") == ([], [])


class TestCandidates:
    def test_finds_every_vec_invocation(self):
        source = RustSource("let a = vec![1; 2];\nlet b = vec!(3, 4);\nlet c = std::vec!{5; 6};\n")

        calls = source.candidate_expressions()

        assert [call.path for call in calls] == ["vec", "vec", "std::vec"]
        assert [source.line_col(call.span.start) for call in calls] == [(1, 9), (2, 9), (3, 9)]
        assert source.source_text(calls[2].span, "") == "std::vec!{5; 6}"

    def test_ignores_other_macros(self):
        source = RustSource("my_vec![1; 2]; foo::vec![1; 2]; smallvec![1; 2];")

        assert source.candidate_expressions() == []

    def test_skips_macro_rules_bodies(self):
        source = RustSource("macro_rules! m { () => { vec![0; 2] }; }\nlet v = vec![0; 3];")

        calls = source.candidate_expressions()

        assert len(calls) == 1
        assert source.line_col(calls[0].span.start) == (2, 9)


class TestRepeatLiteral:
    def shape(self, text):
        source = RustSource(text)
        return source, source.repeat_literal(source.candidate_expressions()[0])

    def test_repeat_form(self):
        source, shape = self.shape("vec![ Arc::new(1) ;  n ]")

        assert isinstance(shape.element, CallExpr)
        assert text_of(source, shape.element) == "Arc::new(1)"
        assert text_of(source, shape.count) == "n"

    @pytest.mark.parametrize("text", ["vec![]", "vec![1, 2, 3]", "vec![1; 2; 3]", "vec![; 2]"])
    def test_other_forms(self, text):
        _, shape = self.shape(text)

        assert shape is None

    def test_semicolons_inside_blocks_do_not_split(self):
        source, shape = self.shape("vec![Arc::new({ let x = 1; x }); 2]")

        assert text_of(source, shape.count) == "2"

    def test_strips_outer_parentheses(self):
        source, shape = self.shape("vec![(Arc::new(1)); 2]")

    def test_count_keeps_its_parentheses(self):
        source, shape = self.shape("vec![Rc::new(0); (n)]")

        assert text_of(source, shape.count) == "(n)"

        assert isinstance(shape.element, CallExpr)
        assert text_of(source, shape.element) == "Arc::new(1)"

    def test_string_content_does_not_confuse_split(self):
        source, shape = self.shape('vec![Arc::new("a;b"); 2]')

        assert text_of(source, shape.element) == 'Arc::new("a;b")'

    def test_non_candidate_is_rejected(self):
        source = RustSource("x")

        assert source.repeat_literal(OpaqueExpr(Span(0, 1))) is None


class TestParseExpr:
    def parse(self, text):
        return RustSource(text).parse_expr(0, len(text))

    def test_call(self):
        expr = self.parse("std::sync::Arc::new(1)")

        assert isinstance(expr, CallExpr)
        assert expr.func.segments == ("std", "sync", "Arc", "new")

    def test_turbofish_is_dropped(self):
        expr = self.parse("Arc::<Vec<u8>>::new(Vec::new())")

        assert expr.func.segments == ("Arc", "new")

    def test_leading_colons(self):
        expr = self.parse("::std::rc::Rc::new(1)")

        assert expr.func.segments == ("", "std", "rc", "Rc", "new")

    def test_path(self):
        assert isinstance(self.parse("data"), PathExpr)

    @pytest.mark.parametrize("text", ["Arc::new(1).clone()", "vec![1, 2]", "1 + 2", "100", "&x"])
    def test_opaque(self, text):
        assert isinstance(self.parse(text), OpaqueExpr)


class TestResolvePath:
    SOURCE = """
use std::sync::{Arc, Mutex};
use std::rc::Rc as Shared;
use std::rc;
use alloc::sync::*;
struct Rcell;
"""

    @pytest.mark.parametrize("segments,expected", [
        (("Arc",), "std::sync::Arc"),
        (("Shared",), "std::rc::Rc"),
        (("rc", "Rc"), "std::rc::Rc"),
        (("std", "sync", "Arc"), "std::sync::Arc"),
        (("", "alloc", "rc", "Rc"), "alloc::rc::Rc"),
        (("Rcell",), "crate::Rcell"),
        (("crate", "Arc"), "std::sync::Arc"),
        (("crate", "Rcell"), "crate::Rcell"),
        (("self", "Shared"), "std::rc::Rc"),
        (("crate", "elsewhere", "Arc"), "crate::elsewhere::Arc"),
        (("triomphe", "Arc"), "triomphe::Arc"),
        (("Box",), None),
    ])
    def test_resolution(self, segments, expected):
        assert RustSource(self.SOURCE).resolve_path(segments) == expected

    def test_glob_import_resolves_known_declarations(self):
        source = RustSource("use alloc::sync::*;")

        assert source.resolve_path(("Arc",)) == "alloc::sync::Arc"
        assert source.resolve_path(("Weak",)) is None

    def test_local_item_shadows_pointer_name(self):
        source = RustSource("struct Arc;\nfn f() { let v = vec![Arc::new(); 2]; }")

        assert run_rule(source) == []

    def test_reexport_from_inline_module(self):
        source = RustSource(
            "use crate::shared::Arc;\n"
            "fn f() { let v = vec![Arc::new(1); 2]; }\n"
            "mod shared { pub use std::sync::Arc; }\n"
        )

        payloads = run_rule(source)

        assert located(source, payloads) == [(2, 18)]
        assert payloads[0].message == "calling `Arc::new` in `vec![elem; len]`"

    def test_item_in_other_module_does_not_shadow(self):
        source = RustSource(
            "use std::sync::Arc;\n"
            "fn f() { let v = vec![Arc::new(1); 2]; }\n"
            "mod other { struct Arc; }\n"
        )

        assert located(source, run_rule(source)) == [(2, 18)]

    def test_item_in_own_module_shadows(self):
        source = RustSource(
            "use std::sync::Arc;\n"
            "mod other {\n"
            "    struct Arc;\n"
            "    fn g() { let v = vec![Arc::new(); 2]; }\n"
            "}\n"
        )

        assert run_rule(source) == []

    def test_module_paths(self):
        source = RustSource(
            "use std::rc::Rc;\n"
            "mod outer {\n"
            "    use std::sync::Arc as Shared;\n"
            "    mod inner { use super::Shared; }\n"
            "}\n"
        )
        inner = source.modules[2]

        assert inner.path == ("outer", "inner")
        assert source.module_at(source.text.index("use super")) is inner
        assert source.resolve_path(("Shared",), inner) == "std::sync::Arc"
        assert source.resolve_path(("super", "super", "Rc"), inner) == "std::rc::Rc"
        assert source.resolve_path(("crate", "outer", "inner", "Shared"), None) == "std::sync::Arc"
        assert source.resolve_path(("Rc",), inner) is None

    def test_glob_import_of_parent_module(self):
        source = RustSource(
            "use std::rc::Rc;\n"
            "mod tests {\n"
            "    use super::*;\n"
            "    fn g() { let v = vec![Rc::new(0); 3]; }\n"
            "}\n"
        )

        assert located(source, run_rule(source)) == [(4, 22)]

    def test_classification(self):
        source = RustSource("")

        assert source.classify_pointer_constructor("std::sync::Arc") is PointerKind.THREAD_SAFE
        assert source.classify_pointer_constructor("alloc::rc::Rc") is PointerKind.SINGLE_THREADED
        assert source.classify_pointer_constructor("crate::Arc") is None


class TestSourceQueries:
    def test_indentation_of_span_line(self):
        source = RustSource("fn f() {\n        let v = vec![0; 2];\n}\n")
        call = source.candidate_expressions()[0]

        assert source.indentation_columns(call.span) == 8

    def test_indentation_undeterminable(self):
        source = RustSource("   \n")

        assert source.indentation_columns(Span(1, 2)) is None
        assert source.indentation_columns(Span(99, 100)) is None

    def test_source_text_default(self):
        source = RustSource("abc")

        assert source.source_text(Span(1, 1), "..") == ".."
        assert source.source_text(Span(0, 10), "..") == ".."
        assert source.source_text(Span(1, 3), "..") == "bc"


class TestFixtures:
    def test_arc(self):
        source = RustSource.from_path(FIXTURES / "arc.rs")

        payloads = run_rule(source)

        assert located(source, payloads) == [(6, 13), (14, 21), (20, 13), (29, 14)]
        assert {payload.message for payload in payloads} == {"calling `Arc::new` in `vec![elem; len]`"}

    def test_arc_indentation_follows_line(self):
        source = RustSource.from_path(FIXTURES / "arc.rs")

        loop_init, extract = run_rule(source)[1].suggestions

        assert loop_init.snippet == (
            "{\n"
            "                        let mut v = Vec::with_capacity(2);\n"
            '                        (0..2).for_each(|_| v.push(Arc::new("x".to_string())));\n'
            "                        v\n"
            "            }"
        )
        assert extract.snippet.startswith('{\n                        let data = Arc::new("x".to_string());')

    def test_arc_multiline_elements_are_abbreviated(self):
        source = RustSource.from_path(FIXTURES / "arc.rs")

        payloads = run_rule(source)

        assert payloads[2].suggestions[1].snippet == (
            "{\n"
            "        let data = std::sync::Arc::new(..);\n"
            "        vec![data; 2]\n"
            "    }"
        )
        assert "v.push(Arc::new(..))" in payloads[3].suggestions[0].snippet

    def test_rc(self):
        source = RustSource.from_path(FIXTURES / "rc.rs")

        payloads = run_rule(source)

        assert located(source, payloads) == [(7, 13), (11, 13), (15, 21), (19, 13)]
        assert "Vec::with_capacity(n)" in payloads[0].suggestions[0].snippet
        assert "let data = Rc::<u8>::new(1);" in payloads[1].suggestions[1].snippet
        assert {payload.note for payload in payloads} == {"each element will point to the same `Rc` instance"}

    def test_aliases(self):
        source = RustSource.from_path(FIXTURES / "aliases.rs")

        payloads = run_rule(source)

        assert located(source, payloads) == [(7, 13), (11, 13), (15, 13)]
        assert [payload.message for payload in payloads] == [
            "calling `Rc::new` in `vec![elem; len]`",
            "calling `Arc::new` in `vec![elem; len]`",
            "calling `Arc::new` in `vec![elem; len]`",
        ]
        assert "let data = Shared::new('x');" in payloads[0].suggestions[1].snippet

    def test_custom_arc_and_unrelated_calls(self):
        source = RustSource.from_path(FIXTURES / "custom_arc.rs")

        assert run_rule(source) == []

    def test_candidates_are_macro_calls(self):
        source = RustSource.from_path(FIXTURES / "custom_arc.rs")

        assert all(isinstance(expr, MacroCall) for expr in source.candidate_expressions())
