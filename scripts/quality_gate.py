from __future__ import annotations

import argparse
import subprocess
import sys
from typing import Sequence

LINT_TARGETS: list[str] = [
    "dollhouse",
    "tests",
    "scripts/quality_gate.py",
]

TYPECHECK_TARGETS: list[str] = [
    "dollhouse/core/services/collection",
    "dollhouse/integrations/collection",
    "dollhouse/core/config.py",
]


def _run(cmd: Sequence[str]) -> None:
    printable = " ".join(cmd)
    print(f"$ {printable}")
    result = subprocess.run(cmd, check=False)
    if result.returncode != 0:
        raise SystemExit(result.returncode)


def run_lint(python_bin: str) -> None:
    _run([python_bin, "-m", "ruff", "check", *LINT_TARGETS])
    _run([python_bin, "-m", "ruff", "format", "--check", *LINT_TARGETS])


def run_typecheck(python_bin: str) -> None:
    _run(
        [
            python_bin,
            "-m",
            "mypy",
            "--config-file",
            "pyproject.toml",
            *TYPECHECK_TARGETS,
        ]
    )


def run_tests(python_bin: str) -> None:
    _run([python_bin, "-m", "pytest", "-q", "tests"])


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run reproducible quality gates for the collection index service."
    )
    parser.add_argument(
        "gate",
        nargs="?",
        default="all",
        choices=("lint", "typecheck", "test", "all"),
        help="Gate to run.",
    )
    parser.add_argument(
        "--python-bin",
        default=sys.executable,
        help="Python executable to run commands with.",
    )
    args = parser.parse_args()

    if args.gate in ("lint", "all"):
        run_lint(args.python_bin)
    if args.gate in ("typecheck", "all"):
        run_typecheck(args.python_bin)
    if args.gate in ("test", "all"):
        run_tests(args.python_bin)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
