#!/usr/bin/env python3
"""Run all Rust code reviews."""


import subprocess
import sys
from pathlib import Path


def main(argv=None):
    script_dir = Path(__file__).parent
    extra_args = list(sys.argv[1:] if argv is None else argv)

    review_scripts = sorted((script_dir / "src").glob("review_*.py"))

    if not review_scripts:
        print("✓ No Rust review scripts configured")
        return 0

    print(f"Running {len(review_scripts)} Rust review(s)\n")

    passed = 0
    for script_path in review_scripts:
        name = script_path.stem.replace('review_', '').replace('_', ' ')
        print(f"[{name}]", flush=True)
        try:
            subprocess.run([sys.executable, str(script_path)] + extra_args, check=True)
            print()
            passed += 1
        except subprocess.CalledProcessError:
            print(f"\nFAILED: {name}")
            return 1

    print(f"✓ All Rust reviews passed ({passed}/{len(review_scripts)})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
