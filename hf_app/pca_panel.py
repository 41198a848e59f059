"""
PCA digits panel, imported on demand the first time its tab is shown.

Every function here takes the loaded presets fixture and returns figures
or markdown; the app shell decides what to do when one of them raises.
"""
import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from conceptviz import pca
from hf_app.charts import COLORS, DIVERGING_SCALE, GRAY_SCALE, make_image_chart

# one colour per digit class
LABEL_COLORS = [
    '#0D2758', '#A32015', '#DEA54B', '#347186', '#60656F',
    '#7A4E9A', '#2E8B57', '#C96F2D', '#8C2D5A', '#1F9BB5',
]


def _digit_chart(vector, title, side):
    return make_image_chart(pca.as_image(vector, side), title, height=260)


def render_sample(artifact, preset, index):
    """(original figure, reconstruction figure, summary markdown)."""
    side = artifact['meta'].get('image_side')
    original, recon, label = pca.sample_view(artifact, preset, index)
    err = pca.residual_error(original, recon)
    summary = pca.compression_summary(artifact, preset)
    i = pca.clamp_index(artifact, index)

    md = (
        f"**Sample {i + 1}/{pca.sample_count(artifact)}** (true digit: **{label}**)\n\n"
        f"- Components kept: **{summary['components']}** of {summary['dim']} pixels "
        f"({summary['compression']:.1%} of the numbers)\n"
        f"- Variance explained: **{summary['explained']:.1%}**\n"
        f"- Reconstruction error (L2): **{err:.3f}**\n"
        f"- {summary['knn_neighbors']}-NN accuracy in PCA space: "
        f"**{summary['knn_accuracy']:.1%}** "
        f"(train {summary['train_size']}, test {summary['test_size']})"
    )
    return (
        _digit_chart(original, f"Original (label {label})", side),
        _digit_chart(recon, f"Reconstruction with {int(preset)} PCs", side),
        md,
    )


def render_scatter(artifact, index):
    """Test digits on the first two components, the current sample ringed."""
    x, y, labels = pca.scatter_arrays(artifact)
    i = pca.clamp_index(artifact, index)
    fig = go.Figure()
    for digit in range(10):
        sel = labels == digit
        if not sel.any():
            continue
        fig.add_trace(go.Scatter(
            x=x[sel], y=y[sel], mode='markers', name=str(digit),
            marker=dict(size=7, color=LABEL_COLORS[digit], opacity=0.75),
        ))
    fig.add_trace(go.Scatter(
        x=[x[i]], y=[y[i]], mode='markers', name='Current',
        marker=dict(size=16, color='rgba(0,0,0,0)', line=dict(color='black', width=2)),
    ))
    fig.update_layout(
        title='Test digits on PC1 / PC2', xaxis_title='PC1', yaxis_title='PC2',
        template='plotly_white', height=420,
    )
    return fig


def render_eigendigits(artifact, count=pca.EIGENDIGITS_SHOWN):
    """Top components as signed images (red negative, blue positive)."""
    comps = artifact['eigendigits'][:count]
    cols = 6
    rows = max(1, int(np.ceil(len(comps) / cols)))
    fig = make_subplots(rows=rows, cols=cols,
                        subplot_titles=[f"PC{i + 1}" for i in range(len(comps))],
                        horizontal_spacing=0.02, vertical_spacing=0.08)
    for i, comp in enumerate(comps):
        fig.add_trace(go.Heatmap(
            z=pca.as_image(pca.signed_strength(comp)),
            colorscale=DIVERGING_SCALE, zmin=-1, zmax=1, showscale=False,
            hovertemplate='%{z:.2f}<extra></extra>',
        ), row=i // cols + 1, col=i % cols + 1)
    fig.update_xaxes(showticklabels=False)
    fig.update_yaxes(showticklabels=False, autorange='reversed')
    fig.update_layout(title='Eigendigits', template='plotly_white', height=180 * rows + 60,
                      margin=dict(l=10, r=10, t=60, b=10))
    return fig


def render_shift(artifact, pc_index):
    """Mean digit pushed along one component by -/+ 2.2 sigma."""
    minus, mean, plus = pca.eigen_shift(artifact, pc_index)
    titles = [f"mean - {pca.SHIFT_SIGMAS}σ·PC{pc_index + 1}", "mean",
              f"mean + {pca.SHIFT_SIGMAS}σ·PC{pc_index + 1}"]
    fig = make_subplots(rows=1, cols=3, subplot_titles=titles, horizontal_spacing=0.03)
    for col, vec in enumerate((minus, mean, plus), start=1):
        fig.add_trace(go.Heatmap(
            z=pca.as_image(vec), colorscale=GRAY_SCALE, zmin=0, zmax=1, showscale=False,
        ), row=1, col=col)
    fig.update_xaxes(showticklabels=False)
    fig.update_yaxes(showticklabels=False, autorange='reversed')
    fig.update_layout(template='plotly_white', height=260, margin=dict(l=10, r=10, t=40, b=10))
    return fig


def render_explained(artifact, preset):
    """Cumulative explained variance plus k-NN accuracy at each preset."""
    cumulative = np.asarray(artifact['explained_cumulative'], dtype=float)
    presets = [int(p) for p in artifact['meta']['preset_components']]
    acc = [artifact['knn_accuracy'][pca.preset_key(p)] for p in presets]
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=np.arange(1, len(cumulative) + 1), y=cumulative,
        name='Explained variance', line=dict(color=COLORS[0]),
    ))
    fig.add_trace(go.Scatter(
        x=presets, y=acc, mode='markers+lines', name='k-NN accuracy',
        line=dict(color=COLORS[3], dash='dot'),
    ))
    fig.add_vline(x=int(preset), line_dash='dot', line_color=COLORS[2])
    fig.update_layout(
        title='How much do k components keep?', xaxis_title='Components',
        yaxis=dict(range=[0, 1]), template='plotly_white', height=340,
        legend=dict(yanchor="bottom", y=0.01, xanchor="right", x=0.99),
    )
    return fig


def render_all(artifact, preset, index, pc_index):
    """Every PCA output in display order."""
    original, recon, md = render_sample(artifact, preset, index)
    return (
        original, recon, md,
        render_scatter(artifact, index),
        render_eigendigits(artifact),
        render_shift(artifact, pc_index),
        render_explained(artifact, preset),
    )
