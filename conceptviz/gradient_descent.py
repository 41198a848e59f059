"""
Gradient descent on a fixed, slightly bumpy 2D loss surface.

    L(x, y) = 0.8 x^2 + 2.4 y^2 + 0.6 x y + 1.5 sin(0.8 x) cos(0.8 y)

The path is recomputed from the start point on every call; the animation
only reveals a prefix of it.
"""
import numpy as np

DOMAIN = 4.0
SURFACE_RESOLUTION = 24
CAMERA_DISTANCE = 2.2


def loss(x, y):
    return 0.8 * x * x + 2.4 * y * y + 0.6 * x * y + 1.5 * np.sin(0.8 * x) * np.cos(0.8 * y)


def grad(x, y):
    gx = 1.6 * x + 0.6 * y + 1.2 * np.cos(0.8 * x) * np.cos(0.8 * y)
    gy = 4.8 * y + 0.6 * x - 1.2 * np.sin(0.8 * x) * np.sin(0.8 * y)
    return gx, gy


def run_descent(start, lr, steps):
    """Return a (steps + 1, 3) array of (x, y, loss), starting at ``start``."""
    steps = int(steps)
    path = np.empty((steps + 1, 3))
    x, y = float(start[0]), float(start[1])
    path[0] = (x, y, loss(x, y))
    for i in range(1, steps + 1):
        gx, gy = grad(x, y)
        x, y = x - lr * gx, y - lr * gy
        path[i] = (x, y, loss(x, y))
    return path


def loss_deltas(path):
    """Change in loss at each step (0 for the start point)."""
    z = np.asarray(path)[:, 2]
    return np.concatenate([[0.0], np.diff(z)])


def surface_grid(n=SURFACE_RESOLUTION, domain=DOMAIN):
    """(xs, ys, Z) for the loss surface, Z indexed [iy, ix]."""
    xs = np.linspace(-domain, domain, n)
    ys = np.linspace(-domain, domain, n)
    gx, gy = np.meshgrid(xs, ys)
    return xs, ys, loss(gx, gy)


def camera_eye(yaw, pitch, distance=CAMERA_DISTANCE):
    """Plotly camera eye for a yaw/pitch in degrees (pitch measured from the horizon)."""
    y_rad = np.radians(yaw)
    p_rad = np.radians(pitch)
    return {
        'x': float(distance * np.cos(p_rad) * np.sin(y_rad)),
        'y': float(-distance * np.cos(p_rad) * np.cos(y_rad)),
        'z': float(distance * np.sin(p_rad)),
    }


def step_summary(path, step):
    """Numbers for the current step of the animation."""
    step = max(0, min(int(step), len(path) - 1))
    deltas = loss_deltas(path)
    x, y, z = path[step]
    return {
        'step': step,
        'x': float(x), 'y': float(y), 'loss': float(z),
        'delta': float(deltas[step]),
        'final_loss': float(path[-1, 2]),
    }
