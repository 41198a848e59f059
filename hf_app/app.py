#!/usr/bin/env python3
"""
Gradio app for the Deep Learning Concept Visualizer.
Interactive, animated explanations of core ML ideas. Everything except the
PCA digits is computed on the fly with numpy; the PCA presets are read from
one precomputed JSON file.

Tab structure (the active tab is mirrored in ?tab=<id>):
    svd      -- 2x2 matrix morphing the unit circle + rank-k image compression
    pca      -- MNIST digits: reconstruction, eigendigits, k-NN (lazy panel)
    gd       -- gradient descent on a 3D loss surface
    cnn      -- kernel scan, conv -> pool -> flatten, dropout per iteration
    rnn      -- character RNN over "hello " with memory influence
    llm      -- two causal attention heads and next-token probabilities
    llmflow  -- the seven stages that produce one token

Every animated view follows the same pattern: an immutable cursor in a
gr.State, a gr.Timer that advances it while playing, and transport buttons
(back / play-pause / forward / reset) plus a scrub slider that pause it.
Selecting a tab remounts that panel with its defaults and stops the timers
of every other panel.
"""
import inspect
import logging
import os
import sys
from typing import Any, Callable, List, NamedTuple, Optional

import gradio as gr
import numpy as np

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, PROJECT_ROOT)

from conceptviz import attention, cnn, llm_flow, pca, rnn, routing, svd
from conceptviz import gradient_descent as gdesc
from conceptviz.config import get_animation, get_controls, load_settings
from conceptviz.cursor import BoundedCursor
from conceptviz.fixture import FixtureLoadError, get_default_loader
from conceptviz.log import setup_logging
from conceptviz.supervisor import PanelSupervisor, lazy_import
from hf_app import charts

logger = logging.getLogger(__name__)

SETTINGS = load_settings()
CONTROLS = {cid: get_controls(cid) for cid in routing.CONCEPT_IDS}
ANIMATION = {cid: get_animation(cid) for cid in routing.CONCEPT_IDS}

PCA_SUPERVISOR = PanelSupervisor(
    lazy_import("hf_app.pca_panel"), retry_delay=SETTINGS.panel_retry_delay_s,
)

# KaTeX delimiters for Gradio Markdown
LATEX_DELIMITERS = [
    {"left": "$$", "right": "$$", "display": True},
    {"left": "$", "right": "$", "display": False},
]

CUSTOM_CSS = r"""
h1 {
    text-align: center !important;
    margin-bottom: 0.1em !important;
}
h3.subtitle {
    text-align: center !important;
    color: var(--neutral-500) !important;
    font-weight: normal !important;
}
.transport button {
    min-width: 3em !important;
}
blockquote {
    border-left: 3px solid var(--color-accent) !important;
    background-color: var(--block-background-fill) !important;
    padding: 0.5em 1em !important;
}
"""

PLAY_LABEL = "▶ Play"
PAUSE_LABEL = "⏸ Pause"
LOADING_TEXT = "Loading PCA presets..."

# ---------------------------------------------------------------------------
# Explanation text for each tab
# ---------------------------------------------------------------------------

SVD_TEXT = r"""
### Singular Value Decomposition

Any matrix factors as $A = U \Sigma V^\top$: a rotation, an axis-aligned stretch, and another rotation.
Press **Play** to watch the unit circle travel through the three stages:

1. $V^\top$ rotates the circle (still a circle),
2. $\Sigma$ stretches it along the axes by $\sigma_1 \ge \sigma_2$,
3. $U$ rotates the resulting ellipse into place.

Edit the four entries of $A$ to see how the singular values change the ellipse.
"""

SVD_RANK_TEXT = r"""
#### Low-rank image compression

Keeping only the $k$ largest singular triplets gives the best rank-$k$ approximation
$A_k = \sum_{i=1}^{k} \sigma_i u_i v_i^\top$. Step through $k$ and watch structure return
in order of importance: large $\sigma_i$ carry the broad shapes, small ones the fine detail.
"""

PCA_TEXT = r"""
### Principal Component Analysis on handwritten digits

PCA finds the directions (principal components) along which 784-pixel digits vary the most.
Each digit is stored as the mean digit plus a handful of coefficients:
$x \approx \mu + \sum_{i=1}^{k} c_i \, \mathrm{PC}_i$.

- **Reconstruction:** fewer components keep the shape, more components recover the details.
- **Eigendigits:** each component is itself an image (blue adds ink, red removes it).
- **k-NN in PCA space:** classifying by nearest neighbours works well even with few components.

All numbers come from a precomputed run on an MNIST subset.
"""

GD_TEXT = r"""
### Gradient Descent

The ball follows $\theta_{t+1} = \theta_t - \eta \nabla L(\theta_t)$ on the surface
$L(x, y) = 0.8x^2 + 2.4y^2 + 0.6xy + 1.5 \sin(0.8x)\cos(0.8y)$.

- A small learning rate $\eta$ crawls; a large one overshoots and zig-zags across the steep $y$ direction.
- Changing the start point, learning rate or number of steps recomputes the path and replays it from step 0.
- Yaw and pitch only move the camera.
"""

CNN_TEXT = r"""
### Convolutional Neural Network

A $3 \times 3$ vertical-edge kernel slides over a $14 \times 14$ image. At each position it
computes one number (how strongly the patch matches the kernel), building the feature map.
Max-pooling keeps the strongest response in every $2 \times 2$ block and flattening turns the
pooled map into a vector for the dense layers.

**Dropout** randomly switches off units during training so the network cannot rely on any single one.
Each training iteration draws a new mask; the drop rate sets how many units are off.
"""

RNN_TEXT = r"""
### Recurrent Neural Network

The network reads "hello " one character at a time, carrying a hidden state forward:

$$h_t = \tanh(W_{xh} x_t + W_{hh} h_{t-1} + b_h), \qquad y_t = \mathrm{softmax}(W_{hy} h_t + b_y)$$

**Memory influence** blanks out each earlier character and measures how much $h_t$ changes.
Raise the recurrent gain to make the past matter more; future characters are masked because
they have not been read yet.
"""

LLM_TEXT = r"""
### Attention in a Language Model

Each word (query) looks back at the words before it (keys). Two hand-built heads look for different things:

- **Head 1 (syntax):** verbs look for their subject, objects look for their verb.
- **Head 2 (meaning):** words look for other words on the same topic.

Cells above the diagonal are **masked**: a token may not attend to the future.
The blend mixes the heads, the mixed context scores five candidate next words, and temperature
sharpens or flattens the resulting probabilities.
"""

FLOW_TEXT = r"""
### LLM End-to-End Flow

The full lifecycle for one generated token, read left to right: text in, token out.
Only one token is chosen per loop (stage 6); during generation stages 4 to 7 repeat
until a stop condition or the length limit is reached.
"""


def _md(text, **kwargs):
    """Create a gr.Markdown with KaTeX delimiters enabled."""
    return gr.Markdown(text, latex_delimiters=LATEX_DELIMITERS, **kwargs)


def _noop(n):
    return [gr.update() for _ in range(n)]


# ---------------------------------------------------------------------------
# Cursor factories (mount defaults)
# ---------------------------------------------------------------------------

RANK_IMAGE = svd.build_rank_image()
RANK_SIGMA = svd.singular_values(RANK_IMAGE)
SURFACE = gdesc.surface_grid()
CNN_IMAGE, CNN_CONV, CNN_POOLED, CNN_FLAT = cnn.feature_pipeline()
SCAN_POSITIONS = cnn.scan_positions()
RNN_WEIGHTS = rnn.build_weights()


def _cursor(concept, name, lower, upper):
    return BoundedCursor.from_spec(ANIMATION[concept][name], lower, upper)


def svd_morph_cursor():
    return _cursor("svd", "morph", 0, svd.PROGRESS_STEPS)


def svd_rank_cursor():
    return _cursor("svd", "rank", 1, svd.image_rank(RANK_IMAGE))


def pca_cursor(n_samples=1):
    return _cursor("pca", "sample", 0, max(0, n_samples - 1))


def gd_cursor(steps=None):
    steps = CONTROLS["gd"]["steps"].default if steps is None else steps
    return _cursor("gd", "step", 0, int(steps))


def cnn_scan_cursor():
    return _cursor("cnn", "scan", 0, len(SCAN_POSITIONS) - 1)


def cnn_iteration_cursor():
    return _cursor("cnn", "iteration", 1, cnn.MAX_ITERATION)


def rnn_cursor():
    return _cursor("rnn", "timestep", 0, len(rnn.TOKENS) - 1)


def llm_cursor():
    return _cursor("llm", "context", attention.MIN_CONTEXT, len(attention.TOKENS))


def flow_cursor():
    return _cursor("llmflow", "stage", 0, len(llm_flow.STAGES) - 1)


# ---------------------------------------------------------------------------
# Panel renderers: cursor + parameters -> figures / markdown
# ---------------------------------------------------------------------------

def render_svd_morph(cursor, a, b, c, d):
    matrix = np.array([[a, b], [c, d]], dtype=float)
    progress = cursor.value / svd.PROGRESS_STEPS
    circle, _, _, target = svd.morph_stages(matrix)
    current = svd.morph_path(matrix, progress)
    u, sigma, vt = svd.decompose(matrix)
    md = (
        f"**A** = `{svd.format_matrix(matrix)}`  \n"
        f"**Stage:** {svd.morph_stage_name(progress)} ({progress:.0%})  \n"
        f"$\\sigma_1$ = {sigma[0]:.3f}, $\\sigma_2$ = {sigma[1]:.3f}  \n"
        f"U = `{svd.format_matrix(u)}`, V^T = `{svd.format_matrix(vt)}`"
    )
    return charts.make_svd_morph_chart(circle, current, target), md


def render_svd_rank(cursor):
    k = cursor.value
    approx = svd.low_rank_approximation(RANK_IMAGE, k)
    energy = svd.energy_retained(RANK_SIGMA, k)
    err = svd.relative_error(RANK_IMAGE, approx)
    ratio = svd.storage_ratio(RANK_IMAGE.shape, k)
    md = (
        f"**Rank k = {k}** of {svd.image_rank(RANK_IMAGE)}  \n"
        f"Energy kept: **{energy:.1%}**, relative error: **{err:.3f}**  \n"
        f"Storage: {ratio:.0%} of the full image"
    )
    return (
        charts.make_image_chart(RANK_IMAGE, "Original"),
        charts.make_image_chart(np.clip(approx, 0, 1), f"Rank-{k} approximation"),
        charts.make_singular_spectrum_chart(RANK_SIGMA, k),
        md,
    )


def render_gd(cursor, start_x, start_y, lr, steps, yaw, pitch):
    path = gdesc.run_descent((start_x, start_y), lr, steps)
    s = gdesc.step_summary(path, cursor.value)
    xs, ys, z = SURFACE
    md = (
        f"**Step {s['step']}/{len(path) - 1}**: "
        f"(x, y) = ({s['x']:.3f}, {s['y']:.3f}), loss = **{s['loss']:.4f}** "
        f"(change {s['delta']:+.4f})  \n"
        f"Final loss after {len(path) - 1} steps: {s['final_loss']:.4f}"
    )
    return (
        charts.make_loss_surface_chart(xs, ys, z, path, s['step'], gdesc.camera_eye(yaw, pitch)),
        charts.make_loss_curve_chart(path, s['step']),
        md,
    )


def render_cnn(scan_cursor, iteration_cursor, drop_rate):
    position = SCAN_POSITIONS[scan_cursor.value]
    mask = cnn.dropout_mask(cnn.DROPOUT_UNITS_SHOWN, iteration_cursor.value, drop_rate)
    summary = cnn.scan_summary(CNN_IMAGE, cnn.VERTICAL_EDGE_KERNEL, position, mask)
    fx, fy = summary['feature_cell']
    x, y = position
    md = (
        f"**Kernel at ({x}, {y})** of {len(SCAN_POSITIONS)} positions: "
        f"activation = **{summary['activation']:.2f}** "
        f"-> feature map cell ({fx}, {fy}) -> pooled cell ({fx // 2}, {fy // 2})  \n"
        f"**Training iteration {iteration_cursor.value}/{cnn.MAX_ITERATION}**: "
        f"{summary['kept']}/{summary['units']} units kept at drop rate {drop_rate:.2f}"
    )
    conv_max = cnn.grid_max(CNN_CONV)
    return (
        charts.make_grid_chart(CNN_IMAGE, "Input image", window=(x, y, cnn.KERNEL_SIZE), zmax=1.0),
        charts.make_grid_chart(CNN_CONV, "Feature map (|conv|)", window=(fx, fy, 1), zmax=conv_max),
        charts.make_grid_chart(CNN_POOLED, "Max-pooled 2x2", window=(fx // 2, fy // 2, 1), zmax=conv_max),
        charts.make_grid_chart(CNN_FLAT[None, :], "Flattened", zmax=conv_max, height=160),
        charts.make_dropout_chart(mask, iteration_cursor.value),
        md,
    )


def render_cnn_iteration(iteration_cursor, scan_cursor, drop_rate):
    return render_cnn(scan_cursor, iteration_cursor, drop_rate)


def render_rnn(cursor, recurrent_gain, input_gain):
    view = rnn.timestep_view(cursor.value, recurrent_gain, input_gain, w=RNN_WEIGHTS)
    t = view['t']
    labels = [f"{i}: {rnn.display_token(tok)}" for i, tok in enumerate(rnn.TOKENS)]
    vocab = [rnn.display_token(v) for v in rnn.VOCAB]
    target = rnn.TOKENS[t + 1] if t + 1 < len(rnn.TOKENS) else None
    md = (
        f"**t = {t}**, read so far: `{view['seen']}`  \n"
        f"Predicted next: **{rnn.display_token(view['predicted'])}** "
        f"({view['predicted_prob']:.1%})"
    )
    if target is not None:
        md += f", actual next: **{rnn.display_token(target)}**"
    return (
        charts.make_hidden_state_chart(view['state'], t),
        charts.make_influence_chart(labels, view['influence'], view['mask']),
        charts.make_prob_chart(vocab, view['probs'], highlight=rnn.display_token(view['predicted'])),
        md,
    )


def render_llm(cursor, blend, temperature):
    v = attention.attention_view(cursor.value, blend, temperature)
    tokens = v['tokens']
    q = v['query']
    truth_note = "" if v['truth_in_vocab'] else " (not among the candidates)"
    md = (
        f"**Context:** {' '.join(tokens)} ...  \n"
        f"Query **{tokens[q]}** is {attention.role_plain(v['query_role'])}. "
        f"Head 1 attends most to **{tokens[v['h1_target']]}** "
        f"({attention.role_plain(v['h1_role'])}); "
        f"head 2 attends most to **{tokens[v['h2_target']]}** "
        f"(topic: {attention.topic_plain(v['h2_topic'])}).  \n"
        f"Predicted next word: **{v['predicted']}**, true next word: **{v['truth']}**{truth_note}"
    )
    return (
        charts.make_attention_chart(v['h1'], v['mask'], tokens, "Head 1: syntax", query=q),
        charts.make_attention_chart(v['h2'], v['mask'], tokens, "Head 2: meaning", query=q),
        charts.make_attention_chart(v['merged'], v['mask'], tokens, "Merged heads", query=q),
        charts.make_merge_chart(tokens, v['active_h1'], v['active_h2'], v['active_merged'], blend),
        charts.make_prob_chart(attention.NEXT_VOCAB, v['probs'], highlight=v['truth']),
        md,
    )


def render_flow(cursor):
    view = llm_flow.stage_view(cursor.value)
    stage = view['stage']
    md = (
        f"#### {stage.title}\n\n"
        f"{stage.text}\n\n"
        f"**Why this matters:** {stage.detail}\n\n"
        f"**Plain English:** {stage.explain}\n\n"
        f"> Prompt fragment: \"{llm_flow.EXAMPLE_PROMPT}\". "
        f"At stage {view['index'] + 1} the model is doing: {stage.text}"
    )
    if view['is_sampling']:
        md += " This is the only stage where one token is actually chosen."
    elif view['repeats']:
        md += " This stage repeats for every generated token."
    return charts.make_flow_chart([s.title for s in llm_flow.STAGES], view['index']), md


def render_pca(cursor, preset, pc_index):
    """PCA outputs: (status, body, 7 panel outputs). No-op until the presets are loaded."""
    artifact = get_default_loader().data
    if artifact is None:
        return _noop(9)
    result, error = PCA_SUPERVISOR.render(
        PCA_SUPERVISOR.current, "render_all", artifact, int(preset), cursor.value, int(pc_index),
    )
    if error is not None:
        return [gr.update(value=error, visible=True), gr.update(visible=False)] + _noop(7)
    return [gr.update(visible=False), gr.update(visible=True)] + list(result)


def _pca_status(message):
    return [gr.update(value=message, visible=True), gr.update(visible=False)] + _noop(7)


# ---------------------------------------------------------------------------
# Transport wiring (shared by every animated panel)
# ---------------------------------------------------------------------------

class Transport(NamedTuple):
    state: gr.State
    timer: gr.Timer
    back: gr.Button
    play: gr.Button
    forward: gr.Button
    reset: gr.Button
    scrub: gr.Slider
    speed: Optional[gr.Slider]

    @property
    def outputs(self):
        return [self.state, self.timer, self.play, self.scrub]


class Panel(NamedTuple):
    concept: str
    mount: Callable
    outputs: List[Any]
    timers: List[gr.Timer]


def _play_label(cursor):
    return PAUSE_LABEL if cursor.playing else PLAY_LABEL


def cursor_updates(cursor, timer=True):
    """Updates for (state, timer, play button, scrub slider)."""
    return (
        cursor,
        gr.Timer(value=cursor.interval_s, active=cursor.playing) if timer else gr.update(),
        gr.update(value=_play_label(cursor)),
        gr.update(minimum=cursor.lower, maximum=cursor.upper, value=cursor.value),
    )


def _slider(spec, label="Speed (ms per step)"):
    return gr.Slider(minimum=spec.minimum, maximum=spec.maximum, step=spec.step,
                     value=spec.default, label=label)


def build_transport(cursor, label, speed_spec=None):
    """Transport controls for one cursor. The timer starts inactive; mount activates it."""
    state = gr.State(cursor)
    timer = gr.Timer(value=cursor.interval_s, active=False)
    with gr.Row(elem_classes="transport"):
        back = gr.Button("⏮", size="sm", min_width=50)
        play = gr.Button(PLAY_LABEL, size="sm", variant="primary", min_width=90)
        forward = gr.Button("⏭", size="sm", min_width=50)
        reset = gr.Button("Reset", size="sm", min_width=70)
    with gr.Row():
        scrub = gr.Slider(minimum=cursor.lower, maximum=cursor.upper, step=1,
                          value=cursor.value, label=label)
        speed = _slider(speed_spec) if speed_spec is not None else None
    return Transport(state, timer, back, play, forward, reset, scrub, speed)


def wire_transport(t, render, params, outputs):
    """Hook timer, buttons, scrub and speed of ``t`` to ``render(cursor, *params)``."""
    inputs = [t.state] + list(params)
    all_outputs = t.outputs + list(outputs)

    def emit(cursor, values, timer=True):
        return (*cursor_updates(cursor, timer), *render(cursor, *values))

    kw = dict(outputs=all_outputs, show_progress="hidden")
    t.timer.tick(lambda c, *v: emit(c.tick(), v, timer=False), inputs=inputs, **kw)
    t.play.click(lambda c, *v: emit(c.toggle(), v), inputs=inputs, **kw)
    t.back.click(lambda c, *v: emit(c.step(-1), v), inputs=inputs, **kw)
    t.forward.click(lambda c, *v: emit(c.step(1), v), inputs=inputs, **kw)
    t.reset.click(lambda c, *v: emit(c.reset(), v), inputs=inputs, **kw)
    t.scrub.input(lambda s, c, *v: emit(c.scrub(s), v), inputs=[t.scrub] + inputs, **kw)
    if t.speed is not None:
        t.speed.input(lambda ms, c, *v: emit(c.with_interval(ms), v),
                      inputs=[t.speed] + inputs, **kw)


def wire_params(sliders, t, render, params, outputs):
    """Re-render on parameter input without touching the cursor."""
    for slider in sliders:
        slider.input(lambda c, *v: render(c, *v), inputs=[t.state] + list(params),
                     outputs=list(outputs), show_progress="hidden")


def _defaults(specs):
    return [gr.update(value=spec.default) for spec in specs]


# ---------------------------------------------------------------------------
# Panel builders (each called inside its gr.Tab)
# ---------------------------------------------------------------------------

def build_svd_panel():
    ctl = CONTROLS["svd"]
    _md(SVD_TEXT)
    with gr.Row():
        a = _slider(ctl["a"], "a")
        b = _slider(ctl["b"], "b")
        c = _slider(ctl["c"], "c")
        d = _slider(ctl["d"], "d")
    morph0 = svd_morph_cursor()
    fig0, md0 = render_svd_morph(morph0, ctl["a"].default, ctl["b"].default,
                                 ctl["c"].default, ctl["d"].default)
    with gr.Row():
        with gr.Column(scale=3):
            morph_plot = gr.Plot(value=fig0, label="Circle -> ellipse")
        with gr.Column(scale=2):
            morph_md = _md(md0)
            morph = build_transport(morph0, "Morph progress (%)", ctl["morph_speed"])

    _md(SVD_RANK_TEXT)
    rank0 = svd_rank_cursor()
    img0, approx0, spec0, rank_md0 = render_svd_rank(rank0)
    with gr.Row():
        original_plot = gr.Plot(value=img0, label="Original")
        approx_plot = gr.Plot(value=approx0, label="Approximation")
        spectrum_plot = gr.Plot(value=spec0, label="Singular values")
    rank_md = _md(rank_md0)
    rank = build_transport(rank0, "Rank k", ctl["rank_speed"])

    matrix = [a, b, c, d]
    morph_outputs = [morph_plot, morph_md]
    rank_outputs = [original_plot, approx_plot, spectrum_plot, rank_md]
    wire_transport(morph, render_svd_morph, matrix, morph_outputs)
    wire_params(matrix, morph, render_svd_morph, matrix, morph_outputs)
    wire_transport(rank, render_svd_rank, [], rank_outputs)

    def mount():
        m, r = svd_morph_cursor(), svd_rank_cursor()
        vals = [ctl[k].default for k in ("a", "b", "c", "d")]
        return [
            *cursor_updates(m), *cursor_updates(r),
            *_defaults([ctl["a"], ctl["b"], ctl["c"], ctl["d"], ctl["morph_speed"], ctl["rank_speed"]]),
            *render_svd_morph(m, *vals), *render_svd_rank(r),
        ]

    outputs = (morph.outputs + rank.outputs + matrix + [morph.speed, rank.speed]
               + morph_outputs + rank_outputs)
    return Panel("svd", mount, outputs, [morph.timer, rank.timer])


def build_pca_panel():
    ctl = CONTROLS["pca"]
    _md(PCA_TEXT)
    status = gr.Markdown(LOADING_TEXT)
    with gr.Column(visible=False) as body:
        with gr.Row():
            preset = gr.Radio(choices=[str(p) for p in pca.PRESETS],
                              value=str(pca.DEFAULT_PRESET), label="Components kept (k)")
            pc = gr.Slider(minimum=0, maximum=pca.EIGENDIGITS_SHOWN - 1, step=1, value=0,
                           label="Principal component to explore (0 = PC1)")
        cursor0 = pca_cursor()
        tour = build_transport(cursor0, "Test sample", ctl["tour_speed"])
        with gr.Row():
            original_plot = gr.Plot(label="Original")
            recon_plot = gr.Plot(label="Reconstruction")
            summary_md = _md("")
        scatter_plot = gr.Plot(label="PC1 / PC2 scatter")
        eigen_plot = gr.Plot(label="Eigendigits")
        shift_plot = gr.Plot(label="Moving along one component")
        explained_plot = gr.Plot(label="Explained variance and accuracy")

    render_outputs = [status, body, original_plot, recon_plot, summary_md,
                      scatter_plot, eigen_plot, shift_plot, explained_plot]
    params = [preset, pc]
    wire_transport(tour, render_pca, params, render_outputs)
    wire_params(params, tour, render_pca, params, render_outputs)

    async def mount():
        defaults = [gr.update(value=str(pca.DEFAULT_PRESET)), gr.update(value=0),
                    gr.update(value=ctl["tour_speed"].default)]
        cursor = pca_cursor()
        yield [*cursor_updates(cursor), *defaults, *_pca_status(LOADING_TEXT)]

        panel = await PCA_SUPERVISOR.mount()
        if not panel.ok:
            yield [*cursor_updates(cursor), *defaults, *_pca_status(panel.error)]
            return
        try:
            artifact = await get_default_loader().load()
        except FixtureLoadError as e:
            yield [*cursor_updates(cursor), *defaults, *_pca_status(str(e))]
            return

        cursor = cursor.with_bounds(0, pca.sample_count(artifact) - 1)
        yield [*cursor_updates(cursor), *defaults,
               *render_pca(cursor, pca.DEFAULT_PRESET, 0)]

    outputs = tour.outputs + [preset, pc, tour.speed] + render_outputs
    return Panel("pca", mount, outputs, [tour.timer])


def build_gd_panel():
    ctl = CONTROLS["gd"]
    _md(GD_TEXT)
    with gr.Row():
        start_x = _slider(ctl["start_x"], "Start x")
        start_y = _slider(ctl["start_y"], "Start y")
        lr = _slider(ctl["lr"], "Learning rate")
        steps = _slider(ctl["steps"], "Steps")
    with gr.Row():
        yaw = _slider(ctl["yaw"], "Camera yaw")
        pitch = _slider(ctl["pitch"], "Camera pitch")
    params = [start_x, start_y, lr, steps, yaw, pitch]
    defaults = [ctl[k].default for k in ("start_x", "start_y", "lr", "steps", "yaw", "pitch")]

    cursor0 = gd_cursor()
    surf0, curve0, md0 = render_gd(cursor0, *defaults)
    surface_plot = gr.Plot(value=surf0, label="Loss surface")
    with gr.Row():
        curve_plot = gr.Plot(value=curve0, label="Loss curve")
        step_md = _md(md0)
    t = build_transport(cursor0, "Visible step", ctl["speed"])

    outputs = [surface_plot, curve_plot, step_md]
    wire_transport(t, render_gd, params, outputs)
    wire_params([yaw, pitch], t, render_gd, params, outputs)

    # a new path replays from step 0 without changing play/pause
    def on_path_change(cursor, sx, sy, rate, n_steps, yw, pt):
        cursor = cursor.with_bounds(0, int(n_steps)).rewind()
        return (*cursor_updates(cursor), *render_gd(cursor, sx, sy, rate, n_steps, yw, pt))

    for slider in (start_x, start_y, lr, steps):
        slider.input(on_path_change, inputs=[t.state] + params, outputs=t.outputs + outputs,
                     show_progress="hidden")

    def mount():
        cursor = gd_cursor()
        return [*cursor_updates(cursor),
                *_defaults([ctl[k] for k in ("start_x", "start_y", "lr", "steps", "yaw", "pitch", "speed")]),
                *render_gd(cursor, *defaults)]

    return Panel("gd", mount, t.outputs + params + [t.speed] + outputs, [t.timer])


def build_cnn_panel():
    ctl = CONTROLS["cnn"]
    _md(CNN_TEXT)
    scan0, iter0 = cnn_scan_cursor(), cnn_iteration_cursor()
    figs0 = render_cnn(scan0, iter0, ctl["drop_rate"].default)
    with gr.Row():
        image_plot = gr.Plot(value=figs0[0], label="Input")
        conv_plot = gr.Plot(value=figs0[1], label="Feature map")
        pooled_plot = gr.Plot(value=figs0[2], label="Pooled")
    flat_plot = gr.Plot(value=figs0[3], label="Flattened")
    scan = build_transport(scan0, "Scan position", ctl["scan_speed"])
    _md("#### Training with dropout")
    dropout_plot = gr.Plot(value=figs0[4], label="Dropout mask")
    drop_rate = _slider(ctl["drop_rate"], "Drop rate")
    iteration = build_transport(iter0, "Training iteration")
    info_md = _md(figs0[5])

    outputs = [image_plot, conv_plot, pooled_plot, flat_plot, dropout_plot, info_md]
    wire_transport(scan, render_cnn, [iteration.state, drop_rate], outputs)
    wire_transport(iteration, render_cnn_iteration, [scan.state, drop_rate], outputs)
    wire_params([drop_rate], scan, render_cnn, [iteration.state, drop_rate], outputs)

    def mount():
        s, i = cnn_scan_cursor(), cnn_iteration_cursor()
        return [*cursor_updates(s), *cursor_updates(i),
                *_defaults([ctl["drop_rate"], ctl["scan_speed"]]),
                *render_cnn(s, i, ctl["drop_rate"].default)]

    return Panel("cnn", mount,
                 scan.outputs + iteration.outputs + [drop_rate, scan.speed] + outputs,
                 [scan.timer, iteration.timer])


def build_rnn_panel():
    ctl = CONTROLS["rnn"]
    _md(RNN_TEXT)
    with gr.Row():
        recurrent = _slider(ctl["recurrent_gain"], "Recurrent gain")
        input_gain = _slider(ctl["input_gain"], "Input gain")
    params = [recurrent, input_gain]
    cursor0 = rnn_cursor()
    figs0 = render_rnn(cursor0, ctl["recurrent_gain"].default, ctl["input_gain"].default)
    with gr.Row():
        hidden_plot = gr.Plot(value=figs0[0], label="Hidden state")
        influence_plot = gr.Plot(value=figs0[1], label="Memory influence")
    with gr.Row():
        prob_plot = gr.Plot(value=figs0[2], label="Next character")
        step_md = _md(figs0[3])
    t = build_transport(cursor0, "Timestep", ctl["speed"])

    outputs = [hidden_plot, influence_plot, prob_plot, step_md]
    wire_transport(t, render_rnn, params, outputs)
    wire_params(params, t, render_rnn, params, outputs)

    def mount():
        cursor = rnn_cursor()
        return [*cursor_updates(cursor),
                *_defaults([ctl["recurrent_gain"], ctl["input_gain"], ctl["speed"]]),
                *render_rnn(cursor, ctl["recurrent_gain"].default, ctl["input_gain"].default)]

    return Panel("rnn", mount, t.outputs + params + [t.speed] + outputs, [t.timer])


def build_llm_panel():
    ctl = CONTROLS["llm"]
    _md(LLM_TEXT)
    with gr.Row():
        blend = _slider(ctl["blend"], "Blend (1 = head 1 only, 0 = head 2 only)")
        temperature = _slider(ctl["temperature"], "Temperature")
    params = [blend, temperature]
    cursor0 = llm_cursor()
    figs0 = render_llm(cursor0, ctl["blend"].default, ctl["temperature"].default)
    with gr.Row():
        h1_plot = gr.Plot(value=figs0[0], label="Head 1")
        h2_plot = gr.Plot(value=figs0[1], label="Head 2")
        merged_plot = gr.Plot(value=figs0[2], label="Merged")
    with gr.Row():
        merge_plot = gr.Plot(value=figs0[3], label="Active row")
        prob_plot = gr.Plot(value=figs0[4], label="Next word")
    info_md = _md(figs0[5])
    t = build_transport(cursor0, "Context length", ctl["speed"])

    outputs = [h1_plot, h2_plot, merged_plot, merge_plot, prob_plot, info_md]
    wire_transport(t, render_llm, params, outputs)
    wire_params(params, t, render_llm, params, outputs)

    def mount():
        cursor = llm_cursor()
        return [*cursor_updates(cursor),
                *_defaults([ctl["blend"], ctl["temperature"], ctl["speed"]]),
                *render_llm(cursor, ctl["blend"].default, ctl["temperature"].default)]

    return Panel("llm", mount, t.outputs + params + [t.speed] + outputs, [t.timer])


def build_flow_panel():
    ctl = CONTROLS["llmflow"]
    _md(FLOW_TEXT)
    cursor0 = flow_cursor()
    fig0, md0 = render_flow(cursor0)
    flow_plot = gr.Plot(value=fig0, label="Pipeline")
    stage_md = _md(md0)
    t = build_transport(cursor0, "Stage", ctl["speed"])

    outputs = [flow_plot, stage_md]
    wire_transport(t, render_flow, [], outputs)

    def mount():
        cursor = flow_cursor()
        return [*cursor_updates(cursor), *_defaults([ctl["speed"]]), *render_flow(cursor)]

    return Panel("llmflow", mount, t.outputs + [t.speed] + outputs, [t.timer])


PANEL_BUILDERS = {
    "svd": build_svd_panel,
    "pca": build_pca_panel,
    "gd": build_gd_panel,
    "cnn": build_cnn_panel,
    "rnn": build_rnn_panel,
    "llm": build_llm_panel,
    "llmflow": build_flow_panel,
}


# ---------------------------------------------------------------------------
# Tab shell
# ---------------------------------------------------------------------------

def on_load(request: gr.Request):
    """Resolve ?tab= on page load; invalid or missing values fall back to the default."""
    query = dict(request.query_params) if request is not None else {}
    route = routing.initial_route(query, SETTINGS.default_tab)
    if route.action == routing.REPLACE:
        logger.debug(f"Resolved tab={query.get(routing.TAB_PARAM)!r} to {route.concept}")
    return gr.Tabs(selected=route.concept), route.concept


def when_active(panel):
    """Mount ``panel`` only if it is the concept resolved on page load."""
    n = len(panel.outputs)
    if inspect.isasyncgenfunction(panel.mount):
        async def handler(concept):
            if concept != panel.concept:
                yield _noop(n)
                return
            async for update in panel.mount():
                yield update
    else:
        def handler(concept):
            if concept != panel.concept:
                return _noop(n)
            return panel.mount()
    return handler


def select_tab(concept):
    """Track the selected concept in the session; the js= handler pushes the URL."""
    def handler(current):
        route = routing.navigate(current, concept)
        if route is None:
            return current
        logger.debug(f"Tab {current} -> {route.concept} ({route.action})")
        return route.concept
    return handler


def stop_timers(timers):
    def handler():
        return [gr.Timer(active=False) for _ in timers]
    return handler


def create_app():
    with gr.Blocks(title=SETTINGS.title) as app:
        _md(
            f"# {SETTINGS.title}\n"
            "Interactive, step-by-step animations of the ideas behind modern machine learning. "
            "Pick a concept, press **Play**, and change the sliders to see what each knob does."
        )
        active = gr.State(SETTINGS.default_tab)

        panels, tabs_by_id = {}, {}
        with gr.Tabs(selected=SETTINGS.default_tab) as tabs:
            for cid, label in routing.CONCEPTS:
                with gr.Tab(label, id=cid) as tab:
                    panels[cid] = PANEL_BUILDERS[cid]()
                tabs_by_id[cid] = tab

        pca_events = []

        # page load: the URL wins
        app.load(fn=None, js=routing.load_script(SETTINGS.default_tab))
        loaded = app.load(fn=on_load, outputs=[tabs, active])
        for cid, panel in panels.items():
            evt = loaded.then(fn=when_active(panel), inputs=[active], outputs=panel.outputs,
                              show_progress="hidden")
            if cid == "pca":
                pca_events.append(evt)

        # user selection: push history, remount this panel, stop the others
        for cid, tab in tabs_by_id.items():
            tab.select(fn=None, js=routing.select_script(cid))
            tab.select(fn=select_tab(cid), inputs=[active], outputs=[active], show_progress="hidden")
            evt = tab.select(fn=panels[cid].mount, outputs=panels[cid].outputs,
                             show_progress="hidden")
            if cid == "pca":
                pca_events.append(evt)

        for cid, tab in tabs_by_id.items():
            others = [t for other, p in panels.items() if other != cid for t in p.timers]
            tab.select(fn=stop_timers(others), outputs=others, show_progress="hidden",
                       cancels=pca_events if cid != "pca" else None)

    return app


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level)
    logger.info(f"PROJECT_ROOT: {PROJECT_ROOT}")
    logger.info(f"PCA presets:  {SETTINGS.pca_fixture}")
    if not SETTINGS.pca_fixture.startswith(("http://", "https://")) \
            and not os.path.exists(SETTINGS.pca_fixture):
        logger.warning("PCA presets not found; run precompute/precompute_pca.py first")

    app = create_app()
    app.launch(theme=gr.themes.Soft(), css=CUSTOM_CSS, head=routing.POPSTATE_HEAD, ssr_mode=False)
