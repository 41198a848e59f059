"""
Plotly figure builders for the concept panels.

Every builder takes plain numpy arrays (already derived by ``conceptviz``)
and returns a ``go.Figure``. Nothing here computes model state.
"""
import numpy as np

# Force pandas to be fully imported before plotly lazily imports it
# (avoids "partially initialized module 'pandas'" in threaded callbacks)
import pandas  # noqa: F401
import plotly.graph_objects as go

COLORS = ['#0D2758', '#60656F', '#DEA54B', '#A32015', '#347186']
MASK_COLOR = 'rgba(96,101,111,0.35)'
MUTED = 'rgba(96,101,111,0.25)'

GRAY_SCALE = [[0, 'black'], [1, 'white']]
HEAT_SCALE = [[0, 'white'], [1, COLORS[0]]]
DIVERGING_SCALE = [[0, COLORS[3]], [0.5, 'white'], [1, COLORS[4]]]


def _to_np(v):
    """Convert a list/value to a numpy array (bypasses plotly's pandas check)."""
    if v is None:
        return None
    return np.asarray(v)


def _square_axes(fig, limit):
    fig.update_xaxes(range=[-limit, limit], zeroline=True)
    fig.update_yaxes(range=[-limit, limit], zeroline=True, scaleanchor='x', scaleratio=1)


# ---------------------------------------------------------------------------
# SVD
# ---------------------------------------------------------------------------

def make_svd_morph_chart(circle, current, target, title="Unit circle under A"):
    """Unit circle, the final ellipse and the in-between curve."""
    circle, current, target = _to_np(circle), _to_np(current), _to_np(target)
    limit = max(1.5, float(np.abs(target).max()) * 1.15, float(np.abs(current).max()) * 1.15)
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=circle[:, 0], y=circle[:, 1], name='Unit circle',
        line=dict(color=COLORS[1], dash='dot'),
    ))
    fig.add_trace(go.Scatter(
        x=target[:, 0], y=target[:, 1], name='A applied',
        line=dict(color=COLORS[2], dash='dash'),
    ))
    fig.add_trace(go.Scatter(
        x=current[:, 0], y=current[:, 1], name='Current',
        line=dict(color=COLORS[0], width=3),
    ))
    fig.update_layout(title=title, template='plotly_white', height=420,
                      legend=dict(yanchor="top", y=0.99, xanchor="right", x=0.99))
    _square_axes(fig, limit)
    return fig


def make_image_chart(image, title, zmin=0.0, zmax=1.0, colorscale=None, height=320):
    fig = go.Figure(data=go.Heatmap(
        z=_to_np(image), colorscale=colorscale or GRAY_SCALE,
        zmin=zmin, zmax=zmax, showscale=False,
        hovertemplate='row=%{y}, col=%{x}: %{z:.3f}<extra></extra>',
    ))
    fig.update_layout(
        title=title, template='plotly_white', height=height,
        yaxis=dict(autorange='reversed', scaleanchor='x', scaleratio=1, showticklabels=False),
        xaxis=dict(showticklabels=False),
        margin=dict(l=10, r=10, t=40, b=10),
    )
    return fig


def make_singular_spectrum_chart(sigma, k):
    """Singular values, the kept top-k highlighted."""
    sigma = _to_np(sigma)
    idx = np.arange(1, len(sigma) + 1)
    bar_colors = [COLORS[0] if i <= k else MUTED for i in idx]
    fig = go.Figure(go.Bar(
        x=idx, y=sigma, marker_color=bar_colors,
        hovertemplate='sigma_%{x}: %{y:.3f}<extra></extra>',
    ))
    fig.update_layout(
        title=f"Singular values (keeping k={k})",
        xaxis_title='Index', yaxis_title='Singular value',
        template='plotly_white', height=320,
    )
    return fig


# ---------------------------------------------------------------------------
# Gradient descent
# ---------------------------------------------------------------------------

def make_loss_surface_chart(xs, ys, z, path, step, eye):
    """3D loss surface with the descent path revealed up to ``step``."""
    path = _to_np(path)
    shown = path[:step + 1]
    fig = go.Figure()
    fig.add_trace(go.Surface(
        x=_to_np(xs), y=_to_np(ys), z=_to_np(z),
        colorscale=[[0, COLORS[4]], [0.5, '#F4F1EA'], [1, COLORS[2]]],
        opacity=0.85, showscale=False, name='Loss',
    ))
    fig.add_trace(go.Scatter3d(
        x=shown[:, 0], y=shown[:, 1], z=shown[:, 2],
        mode='lines+markers', name='Path',
        line=dict(color=COLORS[3], width=6), marker=dict(size=3, color=COLORS[3]),
    ))
    fig.add_trace(go.Scatter3d(
        x=[shown[-1, 0]], y=[shown[-1, 1]], z=[shown[-1, 2]],
        mode='markers', name='Current',
        marker=dict(size=7, color=COLORS[0]),
    ))
    fig.update_layout(
        title=f"Loss surface (step {step})", template='plotly_white', height=520,
        scene=dict(
            xaxis_title='x', yaxis_title='y', zaxis_title='loss',
            camera=dict(eye=eye),
        ),
        margin=dict(l=0, r=0, t=40, b=0),
        uirevision='gd',
    )
    return fig


def make_loss_curve_chart(path, step):
    path = _to_np(path)
    steps = np.arange(len(path))
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=steps, y=path[:, 2], name='Loss', line=dict(color=MUTED),
    ))
    fig.add_trace(go.Scatter(
        x=steps[:step + 1], y=path[:step + 1, 2], name='So far',
        line=dict(color=COLORS[0], width=3),
    ))
    fig.add_vline(x=step, line_dash='dot', line_color=COLORS[3])
    fig.update_layout(
        title='Loss per step', xaxis_title='Step', yaxis_title='Loss',
        template='plotly_white', height=320, showlegend=False,
    )
    return fig


# ---------------------------------------------------------------------------
# CNN
# ---------------------------------------------------------------------------

def make_grid_chart(grid, title, window=None, zmax=None, height=320):
    """Heatmap of a 2D map; ``window`` is (x, y, size) of a highlighted box."""
    grid = _to_np(grid)
    fig = go.Figure(data=go.Heatmap(
        z=grid, colorscale=HEAT_SCALE, zmin=0,
        zmax=zmax if zmax is not None else float(grid.max()) or 1.0,
        showscale=False,
        hovertemplate='(%{x}, %{y}): %{z:.2f}<extra></extra>',
    ))
    if window is not None:
        x, y, size = window
        fig.add_shape(
            type='rect', x0=x - 0.5, y0=y - 0.5, x1=x + size - 0.5, y1=y + size - 0.5,
            line=dict(color=COLORS[3], width=3),
        )
    fig.update_layout(
        title=title, template='plotly_white', height=height,
        yaxis=dict(autorange='reversed', scaleanchor='x', scaleratio=1),
        margin=dict(l=10, r=10, t=40, b=10),
    )
    return fig


def make_dropout_chart(mask, iteration):
    """One cell per unit: kept units filled, dropped units hollow."""
    mask = _to_np(mask).astype(bool)
    idx = np.arange(len(mask))
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=idx[mask], y=np.zeros(mask.sum()), mode='markers', name='Kept',
        marker=dict(symbol='square', size=14, color=COLORS[0]),
    ))
    fig.add_trace(go.Scatter(
        x=idx[~mask], y=np.zeros((~mask).sum()), mode='markers', name='Dropped',
        marker=dict(symbol='square-open', size=14, color=COLORS[1]),
    ))
    fig.update_layout(
        title=f"Dropout at iteration {iteration}: {int(mask.sum())}/{len(mask)} kept",
        template='plotly_white', height=200,
        yaxis=dict(visible=False), xaxis_title='Unit',
        margin=dict(l=10, r=10, t=40, b=30),
    )
    return fig


# ---------------------------------------------------------------------------
# RNN / LLM
# ---------------------------------------------------------------------------

def make_hidden_state_chart(state, t):
    state = _to_np(state)
    bar_colors = [COLORS[4] if v >= 0 else COLORS[3] for v in state]
    fig = go.Figure(go.Bar(
        x=[f"h{i}" for i in range(len(state))], y=state, marker_color=bar_colors,
        hovertemplate='%{x}: %{y:.3f}<extra></extra>',
    ))
    fig.update_layout(
        title=f"Hidden state h_{t}", yaxis=dict(range=[-1, 1]),
        template='plotly_white', height=300,
    )
    return fig


def make_influence_chart(labels, influence, mask):
    """Per-position influence; masked (future) positions are drawn as a separate layer."""
    influence = _to_np(influence)
    mask = _to_np(mask).astype(bool)
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=labels, y=np.where(mask, 0.0, influence), name='Influence',
        marker_color=COLORS[0],
        hovertemplate='%{x}: %{y:.2f}<extra></extra>',
    ))
    fig.add_trace(go.Bar(
        x=labels, y=np.where(mask, 1.0, 0.0), name='Not seen yet',
        marker=dict(color=MASK_COLOR, pattern=dict(shape='/')),
        hoverinfo='skip',
    ))
    fig.update_layout(
        title='Memory influence on the current state',
        yaxis=dict(range=[0, 1.05]), barmode='overlay',
        template='plotly_white', height=300,
    )
    return fig


def make_prob_chart(labels, probs, highlight=None, title="Next-token probabilities"):
    probs = _to_np(probs)
    bar_colors = [COLORS[3] if lbl == highlight else COLORS[0] for lbl in labels]
    fig = go.Figure(go.Bar(
        x=list(labels), y=probs, marker_color=bar_colors,
        hovertemplate='%{x}: %{y:.3f}<extra></extra>',
    ))
    fig.update_layout(
        title=title, yaxis=dict(range=[0, 1]),
        template='plotly_white', height=300,
    )
    return fig


def make_attention_chart(matrix, mask, tokens, title, query=None):
    """Attention heatmap. Masked cells are NaN in ``matrix`` and get their own layer."""
    matrix = _to_np(matrix)
    mask = _to_np(mask).astype(bool)
    labels = list(tokens)
    fig = go.Figure()
    fig.add_trace(go.Heatmap(
        z=matrix, x=labels, y=labels, colorscale=HEAT_SCALE, zmin=0, zmax=1,
        showscale=False, name='weight',
        hovertemplate='query %{y} -> key %{x}: %{z:.3f}<extra></extra>',
    ))
    fig.add_trace(go.Heatmap(
        z=np.where(mask, 1.0, np.nan), x=labels, y=labels,
        colorscale=[[0, MASK_COLOR], [1, MASK_COLOR]], showscale=False,
        name='masked', hovertemplate='query %{y} -> key %{x}: masked<extra></extra>',
    ))
    if query is not None:
        fig.add_shape(
            type='rect', x0=-0.5, x1=len(labels) - 0.5, y0=query - 0.5, y1=query + 0.5,
            line=dict(color=COLORS[3], width=2),
        )
    fig.update_layout(
        title=title, template='plotly_white', height=380,
        yaxis=dict(autorange='reversed'), xaxis=dict(tickangle=-40),
        margin=dict(l=10, r=10, t=40, b=10),
    )
    return fig


def make_merge_chart(tokens, active_h1, active_h2, active_merged, blend):
    """Active query row of each head and the blended row, grouped by key."""
    labels = list(tokens)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=labels, y=_to_np(active_h1), name='Head 1 (syntax)',
                         marker_color=COLORS[0], opacity=0.8))
    fig.add_trace(go.Bar(x=labels, y=_to_np(active_h2), name='Head 2 (meaning)',
                         marker_color=COLORS[2], opacity=0.8))
    fig.add_trace(go.Bar(x=labels, y=_to_np(active_merged), name='Merged',
                         marker_color=COLORS[3]))
    fig.update_layout(
        title=f"Merging heads (blend={blend:.2f})", barmode='group',
        yaxis=dict(range=[0, 1]), template='plotly_white', height=320,
    )
    return fig


def make_flow_chart(titles, active):
    """Pipeline stages as boxes; the active stage is highlighted."""
    n = len(titles)
    xs = np.arange(n)
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=xs, y=np.zeros(n), mode='lines', line=dict(color=COLORS[1]),
        hoverinfo='skip', showlegend=False,
    ))
    fig.add_trace(go.Scatter(
        x=xs, y=np.zeros(n), mode='markers+text',
        text=[t.split(') ', 1)[-1] for t in titles], textposition='top center',
        marker=dict(
            symbol='square', size=[34 if i == active else 22 for i in xs],
            color=[COLORS[3] if i == active else (COLORS[0] if i < active else MUTED) for i in xs],
        ),
        hovertext=list(titles), hoverinfo='text', showlegend=False,
    ))
    fig.update_layout(
        template='plotly_white', height=200,
        xaxis=dict(visible=False, range=[-0.6, n - 0.4]),
        yaxis=dict(visible=False, range=[-1, 1.2]),
        margin=dict(l=10, r=10, t=20, b=10),
    )
    return fig
