"""
CNN feature flow: a 3x3 kernel scanning a 14x14 image, then
conv -> max-pool -> flatten, plus a dropout mask per training iteration.
"""
import numpy as np

from conceptviz.numerics import EPS, hash_unit

IMAGE_SIZE = 14
KERNEL_SIZE = 3
MAX_ITERATION = 120
DROPOUT_UNITS_SHOWN = 42

VERTICAL_EDGE_KERNEL = np.array([
    [-1.0, 0.0, 1.0],
    [-1.0, 0.0, 1.0],
    [-1.0, 0.0, 1.0],
])


def build_sample_image(size=IMAGE_SIZE):
    """A small face: faint disc, two eyes, a mouth and a square frame."""
    m = np.zeros((size, size))
    y, x = np.mgrid[0:size, 0:size]
    face = (x - 7) ** 2 + (y - 7) ** 2 <= 24
    inner = (x >= 2) & (x < size - 2) & (y >= 2) & (y < size - 2)
    m[face & inner] = 0.2

    m[5, 5] = 1.0
    m[5, 9] = 1.0
    m[9, 4:10] = 0.9

    frame = np.arange(2, 12)
    m[frame, 2] = np.maximum(m[frame, 2], 0.75)
    m[frame, 11] = np.maximum(m[frame, 11], 0.75)
    m[2, frame] = np.maximum(m[2, frame], 0.75)
    m[11, frame] = np.maximum(m[11, frame], 0.75)
    return m


def conv2d(image, kernel):
    """Zero-padded 'same' cross-correlation; stores the absolute response."""
    image = np.asarray(image, dtype=float)
    kernel = np.asarray(kernel, dtype=float)
    kh, kw = kernel.shape
    pad_y, pad_x = kh // 2, kw // 2
    padded = np.pad(image, ((pad_y, pad_y), (pad_x, pad_x)))
    out = np.zeros_like(image)
    for ky in range(kh):
        for kx in range(kw):
            out += kernel[ky, kx] * padded[ky:ky + image.shape[0], kx:kx + image.shape[1]]
    return np.abs(out)


def max_pool_2x2(feature):
    feature = np.asarray(feature, dtype=float)
    h, w = feature.shape[0] // 2, feature.shape[1] // 2
    trimmed = feature[:h * 2, :w * 2]
    return trimmed.reshape(h, 2, w, 2).max(axis=(1, 3))


def feature_pipeline(image=None, kernel=None):
    """(image, conv map, pooled map, flat vector)."""
    image = build_sample_image() if image is None else image
    kernel = VERTICAL_EDGE_KERNEL if kernel is None else kernel
    conv = conv2d(image, kernel)
    pooled = max_pool_2x2(conv)
    return image, conv, pooled, pooled.ravel()


def scan_positions(size=IMAGE_SIZE, kernel_size=KERNEL_SIZE):
    """Top-left corners of every valid kernel window, row-major."""
    n = size - kernel_size + 1
    return [(x, y) for y in range(n) for x in range(n)]


def patch_at(image, position, kernel_size=KERNEL_SIZE):
    x, y = position
    return np.asarray(image)[y:y + kernel_size, x:x + kernel_size]


def patch_activation(patch, kernel):
    return float(abs(np.sum(np.asarray(patch) * np.asarray(kernel))))


def dropout_mask(n_units, iteration, drop_rate):
    """True = kept. Deterministic per (iteration, unit)."""
    idx = np.arange(n_units)
    return hash_unit(iteration * 1000 + idx * 37) > drop_rate


def grid_max(m):
    return max(EPS, float(np.max(m)))


def scan_summary(image, kernel, position, mask):
    patch = patch_at(image, position)
    return {
        'activation': patch_activation(patch, kernel),
        'position': position,
        'feature_cell': (position[0] + 1, position[1] + 1),
        'kept': int(np.count_nonzero(mask)),
        'units': int(len(mask)),
    }
