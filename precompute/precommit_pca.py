#!/usr/bin/env python3
"""
Pre-commit hook: rebuild the PCA fixture when its inputs are staged.

If any trigger file is part of the commit, rerun the precompute job and
stage the regenerated JSON so the fixture never drifts from the code that
produces or reads it.

Install:
    printf '#!/bin/sh\\nexec python precompute/precommit_pca.py\\n' > .git/hooks/pre-commit
    chmod +x .git/hooks/pre-commit
"""
import os
import subprocess
import sys

sys.path.insert(0, os.path.dirname(__file__))
from pca_config import DEFAULT_OUTPUT

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

TRIGGER_FILES = (
    "precompute/precompute_pca.py",
    "precompute/pca_config.py",
    "hf_app/pca_panel.py",
    DEFAULT_OUTPUT,
)


def staged_files(cwd=PROJECT_ROOT):
    """Paths added/copied/modified/renamed in the index."""
    out = subprocess.run(
        ["git", "diff", "--cached", "--name-only", "--diff-filter=ACMR"],
        cwd=cwd, check=True, capture_output=True, text=True,
    ).stdout
    return [line.strip() for line in out.splitlines() if line.strip()]


def should_precompute(staged):
    return any(path in TRIGGER_FILES for path in staged)


def main():
    staged = staged_files()
    if not should_precompute(staged):
        print("[pre-commit] No PCA inputs staged; skipping precompute.")
        return 0

    print("[pre-commit] PCA inputs changed; regenerating presets...")
    subprocess.run(
        [sys.executable, os.path.join("precompute", "precompute_pca.py")],
        cwd=PROJECT_ROOT, check=True,
    )
    subprocess.run(["git", "add", DEFAULT_OUTPUT], cwd=PROJECT_ROOT, check=True)
    print(f"[pre-commit] Staged {DEFAULT_OUTPUT}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
