#!/usr/bin/env python3
"""Run repository checks: ruff, pyright, and the test suite.

Tests run with Qt in offscreen mode so notification tests never open windows.
Exits non-zero on the first failing check.
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys

PATHS = ["image_actions", "tests", "scripts"]


def run(cmd: list[str], env: dict[str, str] | None = None) -> int:
    print("=>", " ".join(cmd))
    return subprocess.run(cmd, check=False, env=env).returncode


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--no-tests", action="store_true", help="Skip running pytest")
    parser.add_argument("--fix", action="store_true", help="Let ruff apply fixes")
    parser.add_argument("pytest_args", nargs=argparse.REMAINDER, help="Extra pytest arguments")
    args = parser.parse_args()

    ruff = [sys.executable, "-m", "ruff", "check", *PATHS]
    if args.fix:
        ruff.append("--fix")
    if run(ruff) != 0:
        print("ruff failed")
        return 1

    # pyright may only be on PATH on Windows
    pyright = ["pyright"] if sys.platform == "win32" else [sys.executable, "-m", "pyright"]
    if run(pyright) != 0:
        print("pyright failed")
        return 1

    if not args.no_tests:
        env = os.environ.copy()
        env.setdefault("QT_QPA_PLATFORM", "offscreen")
        rc = run([sys.executable, "-m", "pytest", "-q", *args.pytest_args], env=env)
        if rc != 0:
            print("pytest failed")
            return rc

    print("All checks passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
