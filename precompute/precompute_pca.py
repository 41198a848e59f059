#!/usr/bin/env python3
"""
Offline PCA + k-NN precompute over an MNIST subset.

Fits PCA on a small training subset, then writes one JSON fixture with the
mean digit, reconstructions of every test digit at each preset rank, a 2D
scatter, the top eigendigits, per-component score std, explained variance
and k-NN accuracy per preset. The app only ever reads this file.

Usage:
    python precompute/precompute_pca.py
    python precompute/precompute_pca.py --output ./precomputed_results/pca_presets.json
    python precompute/precompute_pca.py --train-size 600 --test-size 200 --seed 7
"""
import argparse
import json
import os
import sys
from collections import Counter
from datetime import datetime, timezone
from typing import NamedTuple

import torch

sys.path.insert(0, os.path.dirname(__file__))
from pca_config import (
    DEFAULT_DATA_DIR,
    DEFAULT_OUTPUT,
    DIM,
    EIGENDIGITS_TO_SAVE,
    IMAGE_SIDE,
    KNN_NEIGHBORS,
    MAX_COMPONENTS,
    PRESET_COMPONENTS,
    ROUND_DIGITS,
    SCHEMA_VERSION,
    SEED,
    TEST_SIZE,
    TRAIN_SIZE,
)


class PcaModel(NamedTuple):
    mean: torch.Tensor         # [dim]
    components: torch.Tensor   # [k, dim], rows are unit principal directions
    eigenvalues: torch.Tensor  # [k], variance along each component


# ======================================================================
# Data
# ======================================================================

def load_mnist_subset(data_dir=DEFAULT_DATA_DIR, train_size=TRAIN_SIZE,
                      test_size=TEST_SIZE, seed=SEED):
    """Return (train_x, train_y, test_x, test_y); images flattened to [n, 784] in [0, 1]."""
    from torchvision import datasets

    gen = torch.Generator().manual_seed(seed)
    splits = []
    for train, size in ((True, train_size), (False, test_size)):
        ds = datasets.MNIST(data_dir, train=train, download=True)
        idx = torch.randperm(len(ds.targets), generator=gen)[:size]
        x = ds.data[idx].reshape(size, -1).to(torch.float64) / 255.0
        y = ds.targets[idx].to(torch.int64)
        splits.extend([x, y])
    return tuple(splits)


# ======================================================================
# PCA
# ======================================================================

def fit_pca(samples, max_components=MAX_COMPONENTS):
    """PCA via SVD of the centered data matrix."""
    samples = samples.to(torch.float64)
    n = samples.shape[0]
    mean = samples.mean(dim=0)
    centered = samples - mean
    _, s, vh = torch.linalg.svd(centered, full_matrices=False)
    k = min(max_components, s.shape[0])
    denom = max(1, n - 1)
    eigenvalues = s[:k] ** 2 / denom
    return PcaModel(mean=mean, components=vh[:k], eigenvalues=eigenvalues)


def project(vectors, model, k):
    """Scores on the first k components, [n, k]."""
    k = min(k, model.components.shape[0])
    return (vectors.to(torch.float64) - model.mean) @ model.components[:k].T


def reconstruct(vectors, model, k):
    """Rank-k reconstruction clamped to valid pixel intensities."""
    k = min(k, model.components.shape[0])
    coeffs = project(vectors, model, k)
    return (model.mean + coeffs @ model.components[:k]).clamp(0.0, 1.0)


def component_std(samples, model):
    """Sample std of the training scores along each component."""
    scores = project(samples, model, model.components.shape[0])
    if scores.shape[0] <= 1:
        return torch.zeros(scores.shape[1], dtype=torch.float64)
    return scores.std(dim=0, unbiased=True)


def explained_ratio(model, k):
    """Share of the fitted variance carried by the first k components."""
    total = float(model.eigenvalues.sum())
    if total <= 1e-12:
        return 0.0
    return float(model.eigenvalues[:k].sum()) / total


# ======================================================================
# k-NN
# ======================================================================

def classify_knn(train_coeffs, train_labels, query_coeffs, k_neighbors=KNN_NEIGHBORS):
    """Majority vote among the k nearest training points.

    Ties go to the label that appears first when neighbours are ordered by
    distance.
    """
    k_neighbors = max(1, min(k_neighbors, train_coeffs.shape[0]))
    dists = torch.cdist(query_coeffs, train_coeffs) ** 2
    nearest = torch.topk(dists, k_neighbors, dim=1, largest=False).indices
    preds = []
    for row in nearest:
        labels = [int(train_labels[j]) for j in row]
        counts = Counter(labels)
        best = max(counts.values())
        preds.append(next(lbl for lbl in labels if counts[lbl] == best))
    return torch.tensor(preds, dtype=torch.int64)


def knn_accuracy(train_x, train_y, test_x, test_y, model, k, k_neighbors=KNN_NEIGHBORS):
    preds = classify_knn(project(train_x, model, k), train_y,
                         project(test_x, model, k), k_neighbors)
    return float((preds == test_y).to(torch.float64).mean())


# ======================================================================
# Artifact
# ======================================================================

def _round_list(t):
    return [round(float(v), ROUND_DIGITS) for v in t.reshape(-1).tolist()]


def _round_rows(t):
    return [_round_list(row) for row in t]


def build_artifact(train_x, train_y, test_x, test_y,
                   presets=PRESET_COMPONENTS, max_components=MAX_COMPONENTS,
                   k_neighbors=KNN_NEIGHBORS, eigendigits=EIGENDIGITS_TO_SAVE,
                   dataset="mnist", generated_at=None):
    """Fit PCA and assemble the JSON-ready fixture."""
    model = fit_pca(train_x, max_components)
    stds = component_std(train_x, model)
    dim = int(train_x.shape[1])

    reconstructions, explained, accuracy = {}, {}, {}
    for preset in presets:
        key = str(preset)
        print(f"  preset {preset:>2d}: reconstructing {test_x.shape[0]} digits")
        reconstructions[key] = _round_rows(reconstruct(test_x, model, preset))
        explained[key] = round(explained_ratio(model, preset), ROUND_DIGITS)
        accuracy[key] = round(
            knn_accuracy(train_x, train_y, test_x, test_y, model, preset, k_neighbors),
            ROUND_DIGITS,
        )
        print(f"    explained={explained[key]:.4f}  knn_acc={accuracy[key]:.4f}")

    coords = project(test_x, model, 2)
    scatter = [
        {
            'x': round(float(c[0]), ROUND_DIGITS),
            'y': round(float(c[1]), ROUND_DIGITS) if c.shape[0] > 1 else 0.0,
            'label': int(lbl),
        }
        for c, lbl in zip(coords, test_y)
    ]
    n_fitted = model.components.shape[0]

    return {
        'meta': {
            'dataset': dataset,
            'schema_version': SCHEMA_VERSION,
            'dim': dim,
            'image_side': int(round(dim ** 0.5)),
            'train_size': int(train_x.shape[0]),
            'test_size': int(test_x.shape[0]),
            'preset_components': list(presets),
            'knn_neighbors': k_neighbors,
            'generated_at': generated_at or datetime.now(timezone.utc).isoformat(),
        },
        'test_labels': [int(v) for v in test_y],
        'mean_vector': _round_list(model.mean),
        'test_vectors': _round_rows(test_x),
        'reconstructions': reconstructions,
        'scatter': scatter,
        'eigendigits': _round_rows(model.components[:eigendigits]),
        'pc_std': _round_list(stds[:eigendigits]),
        'explained': explained,
        'explained_cumulative': [
            round(explained_ratio(model, i + 1), ROUND_DIGITS) for i in range(n_fitted)
        ],
        'knn_accuracy': accuracy,
    }


def write_artifact(artifact, path):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w') as f:
        json.dump(artifact, f)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Precompute PCA presets for the handwritten digit view'
    )
    parser.add_argument('--output', type=str, default=DEFAULT_OUTPUT,
                        help='Path of the JSON fixture to write')
    parser.add_argument('--data-dir', type=str, default=DEFAULT_DATA_DIR,
                        help='Where torchvision stores/downloads MNIST')
    parser.add_argument('--train-size', type=int, default=TRAIN_SIZE)
    parser.add_argument('--test-size', type=int, default=TEST_SIZE)
    parser.add_argument('--seed', type=int, default=SEED)
    args = parser.parse_args(argv)

    print(f"[LOAD] MNIST subset: train={args.train_size}, test={args.test_size}, seed={args.seed}")
    train_x, train_y, test_x, test_y = load_mnist_subset(
        args.data_dir, args.train_size, args.test_size, args.seed
    )
    if train_x.shape[1] != DIM:
        parser.error(f"expected {IMAGE_SIDE}x{IMAGE_SIDE} images, got dim={train_x.shape[1]}")

    print(f"[FIT] PCA with up to {MAX_COMPONENTS} components")
    artifact = build_artifact(train_x, train_y, test_x, test_y)

    write_artifact(artifact, args.output)
    print(f"[DONE] Wrote {args.output}")


if __name__ == "__main__":
    main()
