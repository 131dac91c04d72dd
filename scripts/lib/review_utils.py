#!/usr/bin/env python3
"""
Common utilities for review scripts.

Provides standardized argument parsing, file discovery, and reporting.
"""


import argparse
import sys
from pathlib import Path
from typing import Callable, List, Optional


def get_repo_root(start: Optional[Path] = None) -> Path:
    """Get the repository root: the nearest directory at or above `start` with a Cargo.toml."""
    current = Path(start or Path.cwd()).resolve()
    while True:
        if (current / "Cargo.toml").exists():
            return current
        if current == current.parent:
            break
        current = current.parent
    raise RuntimeError("Could not find repository root (Cargo.toml)")


def create_review_parser(description: str) -> argparse.ArgumentParser:
    """
    Create standardized argument parser for review scripts.

    Args:
        description: Description of what the review script checks

    Returns:
        ArgumentParser with --file, --dry-run and --log_file options
    """
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        '--file',
        type=str,
        help='Specific file to check (instead of searching directories)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be checked without actually checking'
    )
    parser.add_argument(
        '--log_file',
        type=str,
        help='Also write the report to this file'
    )
    return parser


def find_rust_files(
    directories: List[Path],
    single_file: Optional[str] = None,
    repo_root: Optional[Path] = None
) -> List[Path]:
    """
    Find Rust files to check.

    Args:
        directories: List of directories to search recursively
        single_file: If provided, check only this file
        repo_root: Repository root (for resolving relative paths)

    Returns:
        List of Path objects for Rust files to check
    """
    if repo_root is None:
        repo_root = get_repo_root()

    if single_file:
        file_path = Path(single_file)
        if not file_path.is_absolute():
            file_path = repo_root / file_path
        if not file_path.exists():
            print(f"Error: File not found: {file_path}", file=sys.stderr)
            sys.exit(1)
        if not file_path.suffix == '.rs':
            print(f"Error: Not a Rust file: {file_path}", file=sys.stderr)
            sys.exit(1)
        return [file_path]

    rust_files = []
    for directory in directories:
        if not directory.exists():
            continue
        rust_files.extend(directory.rglob("*.rs"))

    return sorted(rust_files)


class TeeOutput:
    """Write to stdout and, when a log path is given, to a log file."""

    def __init__(self, log_path: Optional[Path] = None):
        self.log_path = Path(log_path) if log_path else None
        self.log_file = None
        if self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self.log_file = open(self.log_path, 'w', encoding='utf-8')

    def write(self, text):
        print(text, end='', flush=True)
        if self.log_file:
            self.log_file.write(text)
            self.log_file.flush()

    def print(self, text=''):
        self.write(text + '\n')

    def close(self):
        if self.log_file:
            self.log_file.close()
            self.log_file = None


class ReviewContext:
    """Context object for review operations."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.dry_run = args.dry_run
        self.single_file = args.file
        try:
            self.repo_root = get_repo_root()
        except RuntimeError:
            # A single file can be checked from outside any Cargo project.
            if not self.single_file:
                raise
            self.repo_root = Path.cwd().resolve()
        log_file = getattr(args, 'log_file', None)
        self.out = TeeOutput(self.repo_root / log_file if log_file else None)

    def find_files(self, directories: List[Path]) -> List[Path]:
        """Find files to check based on context."""
        return find_rust_files(
            directories,
            single_file=self.single_file,
            repo_root=self.repo_root
        )

    def relative_path(self, file_path: Path) -> Path:
        """Get relative path from repo root."""
        try:
            return file_path.resolve().relative_to(self.repo_root)
        except ValueError:
            return file_path


def run_review(
    args: argparse.Namespace,
    rule_name: str,
    rule_reference: str,
    dir_names: List[str],
    check_function: Callable[[Path, 'ReviewContext'], List],
    fix_suggestion: Optional[str] = None
) -> int:
    """
    Standard review script runner.

    Args:
        args: Parsed arguments from create_review_parser()
        rule_name: Human-readable rule name
        rule_reference: Rule reference shown next to the violation count
        dir_names: Directories under the repo root to search
        check_function: Function that takes (file_path, context) and returns violations
        fix_suggestion: Optional fix suggestion

    Returns:
        Exit code
    """
    try:
        context = ReviewContext(args)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    directories = [context.repo_root / name for name in dir_names]
    out = context.out

    try:
        files = context.find_files(directories)

        if context.dry_run:
            out.print(f"Would check {len(files)} file(s) for: {rule_name}")
            return 0

        all_violations = []
        for file_path in files:
            violations = check_function(file_path, context)
            if violations:
                all_violations.extend(violations)

        if not all_violations:
            out.print(f"✓ {rule_name}: PASS")
            return 0

        out.print(f"✗ {rule_name}: {len(all_violations)} violation(s) ({rule_reference})\n")

        # Print violations (format depends on what check_function returns)
        for violation in all_violations:
            out.print(violation)

        out.print(f"\nTotal violations: {len(all_violations)}")
        if fix_suggestion:
            out.print(f"\n{fix_suggestion}")

        return 1
    finally:
        out.close()
