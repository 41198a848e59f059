"""Shared fixtures for the visualizer tests."""
import numpy as np
import pytest

from conceptviz import fixture, pca


@pytest.fixture(autouse=True)
def fresh_default_loader():
    """Every test starts without a process-wide PCA loader."""
    fixture.reset_default_loader()
    yield
    fixture.reset_default_loader()


@pytest.fixture
def tiny_artifact():
    """A hand-built PCA presets fixture: 4x4 'digits', 3 test samples."""
    side, n_test = 4, 3
    dim = side * side
    rng = np.random.RandomState(0)
    mean = np.full(dim, 0.5)
    tests = np.clip(mean + rng.uniform(-0.3, 0.3, size=(n_test, dim)), 0, 1)
    eigen = np.eye(dim)[:pca.EIGENDIGITS_SHOWN]
    recon = {
        pca.preset_key(p): np.clip(tests * 0.9 + 0.05, 0, 1).round(5).tolist()
        for p in pca.PRESETS
    }
    return {
        'meta': {
            'dataset': 'synthetic',
            'schema_version': fixture.SCHEMA_VERSION,
            'dim': dim,
            'image_side': side,
            'train_size': 10,
            'test_size': n_test,
            'preset_components': list(pca.PRESETS),
            'knn_neighbors': 5,
            'generated_at': '2026-01-01T00:00:00+00:00',
        },
        'test_labels': [3, 1, 4],
        'mean_vector': mean.tolist(),
        'test_vectors': tests.round(5).tolist(),
        'reconstructions': recon,
        'scatter': [
            {'x': 0.1, 'y': -0.2, 'label': 3},
            {'x': -0.4, 'y': 0.3, 'label': 1},
            {'x': 0.0, 'y': 0.5, 'label': 4},
        ],
        'eigendigits': eigen.tolist(),
        'pc_std': [0.2] * pca.EIGENDIGITS_SHOWN,
        'explained': {pca.preset_key(p): min(1.0, p / 30) for p in pca.PRESETS},
        'explained_cumulative': [min(1.0, (i + 1) / 12) for i in range(12)],
        'knn_accuracy': {pca.preset_key(p): 0.5 + p / 100 for p in pca.PRESETS},
    }
