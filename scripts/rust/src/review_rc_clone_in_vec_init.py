#!/usr/bin/env python3
"""
Review: `Arc::new` or `Rc::new` in `vec![elem; len]`.

`vec![elem; len]` creates `elem` once and clones it `len` times. Cloning an
`Arc` or `Rc` only copies the handle, so every element points to the same
instance rather than to `len` different ones.

Examples:
  SUSPICIOUS: let v = vec![Arc::new(Mutex::new(0)); 4];
  GOOD:       let mut v = Vec::with_capacity(4);
              (0..4).for_each(|_| v.push(Arc::new(Mutex::new(0))));
  GOOD:       let data = Arc::new(Mutex::new(0));   // sharing is intended
              let v = vec![data; 4];

Checks all Rust source files in src/, tests/, and benches/.
"""


import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "lib"))
from rc_clone_in_vec_init import (
    LINT_CATEGORY,
    LINT_EXPLANATION,
    LINT_NAME,
    LINT_SUMMARY,
    check_expr,
)
from review_utils import ReviewContext, create_review_parser, run_review
from rust_source import RustSource


SEARCH_DIRS = ["src", "tests", "benches"]


def indent_block(text: str, prefix: str) -> str:
    return '\n'.join(prefix + line for line in text.split('\n'))


def format_diagnostic(rel_path, source: RustSource, payload) -> str:
    line, col = source.line_col(payload.span.start)
    lines = [f"  {rel_path}:{line}:{col} - {payload.message}"]
    lines.append(f"    note: {payload.note}")
    for suggestion in payload.suggestions:
        lines.append(f"    help: {suggestion.message}")
        lines.append(indent_block(suggestion.snippet, "      "))
    return '\n'.join(lines)


def check_file(file_path: Path, context: ReviewContext) -> list:
    """Check a single file for Arc/Rc construction inside vec![elem; len]."""
    try:
        source = RustSource.from_path(file_path)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading {file_path}: {e}", file=sys.stderr)
        return []

    payloads = []
    for expr in source.candidate_expressions():
        check_expr(source, expr, payloads.append)

    rel_path = context.relative_path(file_path)
    return [format_diagnostic(rel_path, source, payload) for payload in payloads]


def main(argv=None):
    parser = create_review_parser(__doc__)
    parser.add_argument(
        '--explain',
        action='store_true',
        help='Describe the lint and exit'
    )
    args = parser.parse_args(argv)

    if args.explain:
        print(f"{LINT_NAME} ({LINT_CATEGORY}): {LINT_SUMMARY}\n")
        print(LINT_EXPLANATION)
        return 0

    return run_review(
        args,
        rule_name=f"{LINT_NAME}: {LINT_SUMMARY}",
        rule_reference=LINT_CATEGORY,
        dir_names=SEARCH_DIRS,
        check_function=check_file,
        fix_suggestion=(
            "Fix: build each element separately, or bind the pointer to a variable "
            "first if every element should share it."
        ),
    )


if __name__ == "__main__":
    sys.exit(main())
