"""
SVD views: a 2x2 matrix acting on the unit circle, and rank-k image
compression.

2D: A = U diag(sigma) V^T, so a point p travels
    p -> V^T p (rotate) -> Sigma V^T p (stretch) -> U Sigma V^T p (rotate).
The morph progress in [0, 1] is split into three equal legs.

Image: keeping the k largest singular triplets gives the best rank-k
approximation in the Frobenius norm.
"""
import numpy as np

from conceptviz.numerics import EPS, lerp

PROGRESS_STEPS = 100
RANK_IMAGE_SIZE = 24


def decompose(matrix):
    """Return (U, sigma, Vt) for a 2x2 matrix, sigma descending."""
    u, sigma, vt = np.linalg.svd(np.asarray(matrix, dtype=float))
    return u, sigma, vt


def circle_points(samples=100):
    t = np.linspace(0.0, 2.0 * np.pi, samples + 1)
    return np.stack([np.cos(t), np.sin(t)], axis=1)


def morph_stages(matrix, points=None):
    """Circle points after each of the three stages, as (circle, v, s, u) arrays."""
    points = circle_points() if points is None else np.asarray(points, dtype=float)
    u, sigma, vt = decompose(matrix)
    v_stage = points @ vt.T
    s_stage = v_stage * sigma
    u_stage = s_stage @ u.T
    return points, v_stage, s_stage, u_stage


def morph_path(matrix, progress, points=None):
    """Interpolated circle for a progress value in [0, 1]."""
    progress = min(1.0, max(0.0, float(progress)))
    circle, v_stage, s_stage, u_stage = morph_stages(matrix, points)
    if progress <= 1 / 3:
        return lerp(circle, v_stage, progress * 3)
    if progress <= 2 / 3:
        return lerp(v_stage, s_stage, (progress - 1 / 3) * 3)
    return lerp(s_stage, u_stage, (progress - 2 / 3) * 3)


def morph_stage_name(progress):
    if progress <= 1 / 3:
        return "V^T (rotate)"
    if progress <= 2 / 3:
        return "Sigma (stretch)"
    return "U (rotate)"


def format_matrix(m):
    m = np.asarray(m, dtype=float)
    return f"[{m[0, 0]:.2f} {m[0, 1]:.2f}; {m[1, 0]:.2f} {m[1, 1]:.2f}]"


# ---------------------------------------------------------------------------
# Rank-k image compression
# ---------------------------------------------------------------------------

def build_rank_image(size=RANK_IMAGE_SIZE):
    """Procedural grayscale test card: ring, bar, diagonal stripe and gradient."""
    y, x = np.mgrid[0:size, 0:size] / (size - 1)
    img = 0.15 + 0.25 * x
    ring = np.abs(np.hypot(x - 0.38, y - 0.42) - 0.22) < 0.06
    img[ring] = 0.95
    img[(y > 0.72) & (y < 0.84) & (x > 0.15) & (x < 0.85)] = 0.8
    img[np.abs(x - y - 0.25) < 0.05] = 0.6
    return np.clip(img, 0.0, 1.0)


def image_rank(image):
    return int(min(np.asarray(image).shape))


def low_rank_approximation(image, k):
    """Best rank-k approximation; k is clamped to [1, rank]."""
    image = np.asarray(image, dtype=float)
    k = max(1, min(int(k), image_rank(image)))
    u, sigma, vt = np.linalg.svd(image, full_matrices=False)
    return (u[:, :k] * sigma[:k]) @ vt[:k]


def singular_values(image):
    return np.linalg.svd(np.asarray(image, dtype=float), compute_uv=False)


def energy_retained(sigma, k):
    """Fraction of squared singular-value energy in the top k values."""
    sq = np.asarray(sigma, dtype=float) ** 2
    return float(sq[:k].sum() / max(sq.sum(), EPS))


def relative_error(image, approx):
    image = np.asarray(image, dtype=float)
    return float(np.linalg.norm(image - approx) / max(np.linalg.norm(image), EPS))


def storage_ratio(shape, k):
    """Numbers stored by a rank-k factorization relative to the full image."""
    h, w = shape
    return k * (h + w + 1) / (h * w)
