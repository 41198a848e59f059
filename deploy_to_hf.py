#!/usr/bin/env python3
"""Publish the visualizer as a Gradio Space.

The Space card (title, sdk, app_file) only exists for the duration of the
upload: it is written on top of README.md, the folder is pushed, and the
plain README is put back whether or not the push succeeded.

    python deploy_to_hf.py -m "Tune CNN defaults"
    python deploy_to_hf.py --repo-id someone/concept-visualizer
"""
import argparse
import os

from huggingface_hub import HfApi

DEFAULT_SPACE = "conceptviz/deep-learning-concept-visualizer"
REPO_ID = os.environ.get("SPACE_ID", DEFAULT_SPACE)
FIXTURE = os.path.join("precomputed_results", "pca_presets.json")

SPACE_CARD = """\
---
title: Deep Learning Concept Visualizer
emoji: "\U0001f9e0"
colorFrom: indigo
colorTo: yellow
sdk: gradio
sdk_version: "6.5.1"
app_file: hf_app/app.py
pinned: false
---
"""

# local-only material; the fixture under precomputed_results/ is uploaded
SKIP = [
    "data/*", "tmp/*", "tests/*", ".git/*", ".claude/*", ".pytest_cache/*",
    "__pycache__/*", "*/__pycache__/*", ".DS_Store", "deploy_to_hf.py",
]


def deploy(project_root, repo_id=REPO_ID, message="Update app", api=None):
    """Push ``project_root`` to ``repo_id`` with the Space card in README.md."""
    readme = os.path.join(project_root, "README.md")
    with open(readme) as f:
        plain = f.read()

    try:
        with open(readme, "w") as f:
            f.write(SPACE_CARD + "\n" + plain)
        print(f"Pushing {project_root} -> spaces/{repo_id}")
        (api or HfApi()).upload_folder(
            folder_path=project_root,
            repo_id=repo_id,
            repo_type="space",
            ignore_patterns=SKIP,
            commit_message=message,
        )
        print("Upload finished.")
    finally:
        with open(readme, "w") as f:
            f.write(plain)


def main():
    parser = argparse.ArgumentParser(description="Publish the visualizer to a Hugging Face Space")
    parser.add_argument("--message", "-m", default="Update app", help="commit message on the Space")
    parser.add_argument("--repo-id", default=REPO_ID, help="owner/name of the Space")
    args = parser.parse_args()

    root = os.path.dirname(os.path.abspath(__file__))
    if not os.path.exists(os.path.join(root, FIXTURE)):
        print(f"WARNING: {FIXTURE} not found; the PCA tab will open in its error state. "
              f"Generate it with precompute/precompute_pca.py.")
    deploy(root, args.repo_id, args.message)


if __name__ == "__main__":
    main()
