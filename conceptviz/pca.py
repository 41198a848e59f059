"""
Read-side helpers for the precomputed PCA presets.

Fields are accessed optimistically: a missing field is a defect of the
precompute job, not something handled here.
"""
import numpy as np

from conceptviz.numerics import clamp01, scale_to_unit

PRESETS = (6, 12, 14, 18, 30)
DEFAULT_PRESET = 12
SHIFT_SIGMAS = 2.2
DEFAULT_PC_STD = 0.1
EIGENDIGITS_SHOWN = 12


def preset_key(preset):
    return str(int(preset))


def sample_count(artifact):
    return len(artifact['test_vectors'])


def clamp_index(artifact, index):
    return max(0, min(int(index), sample_count(artifact) - 1))


def sample_view(artifact, preset, index):
    """Original digit, its reconstruction at ``preset`` components, and the label."""
    i = clamp_index(artifact, index)
    original = np.asarray(artifact['test_vectors'][i], dtype=float)
    recon = np.asarray(artifact['reconstructions'][preset_key(preset)][i], dtype=float)
    return original, recon, int(artifact['test_labels'][i])


def residual_error(original, reconstruction):
    return float(np.linalg.norm(np.asarray(original, dtype=float) - np.asarray(reconstruction, dtype=float)))


def eigen_shift(artifact, pc_index, scale=SHIFT_SIGMAS):
    """(mean - scale*sigma*PC, mean, mean + scale*sigma*PC), clamped to [0, 1]."""
    mean = np.asarray(artifact['mean_vector'], dtype=float)
    pc = np.asarray(artifact['eigendigits'][pc_index], dtype=float)
    stds = artifact.get('pc_std', [])
    sigma = stds[pc_index] if pc_index < len(stds) else DEFAULT_PC_STD
    return clamp01(mean - pc * sigma * scale), mean, clamp01(mean + pc * sigma * scale)


def as_image(vector, side=None):
    vector = np.asarray(vector, dtype=float)
    side = side or int(round(np.sqrt(vector.size)))
    return vector.reshape(side, side)


def signed_strength(component):
    """Component scaled to [-1, 1] for the diverging eigendigit view."""
    return scale_to_unit(component)


def scatter_arrays(artifact):
    pts = artifact['scatter']
    x = np.array([p['x'] for p in pts], dtype=float)
    y = np.array([p['y'] for p in pts], dtype=float)
    labels = np.array([p['label'] for p in pts], dtype=int)
    return x, y, labels


def compression_summary(artifact, preset):
    """Numbers shown beside the reconstruction."""
    meta = artifact['meta']
    key = preset_key(preset)
    dim = meta['dim']
    return {
        'train_size': meta['train_size'],
        'test_size': meta['test_size'],
        'dim': dim,
        'components': int(preset),
        'compression': int(preset) / dim,
        'explained': artifact['explained'][key],
        'knn_neighbors': meta['knn_neighbors'],
        'knn_accuracy': artifact['knn_accuracy'][key],
    }
