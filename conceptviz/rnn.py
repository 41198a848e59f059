"""
A tiny character RNN unrolled over "hello ".

    h_t = tanh(W_xh x_t * input_gain + W_hh h_(t-1) * recurrent_gain + b_h)
    y_t = softmax(W_hy h_t + b_y)

Weights are fixed sinusoids so every run is reproducible. Hidden states are
always recomputed from t = 0; nothing is carried between calls.
"""
from typing import NamedTuple

import numpy as np

from conceptviz.numerics import EPS, l2_distance, softmax

VOCAB = ("h", "e", "l", "o", " ")
TOKENS = ("h", "e", "l", "l", "o", " ")
HIDDEN = 8
BLANK = " "


class RNNWeights(NamedTuple):
    wxh: np.ndarray
    whh: np.ndarray
    why: np.ndarray
    bh: np.ndarray
    by: np.ndarray


def build_weights(hidden=HIDDEN, vocab_size=len(VOCAB)):
    i_h = np.arange(hidden)[:, None]
    j_v = np.arange(vocab_size)[None, :]
    j_h = np.arange(hidden)[None, :]
    i_v = np.arange(vocab_size)[:, None]
    return RNNWeights(
        wxh=np.sin((i_h + 1) * (j_v + 2)) * 0.7,
        whh=np.cos((i_h + 2) * (j_h + 1)) * 0.22,
        why=np.sin((i_v + 3) * (j_h + 1)) * 0.45,
        bh=np.sin(np.arange(hidden) + 0.3) * 0.1,
        by=np.cos(np.arange(vocab_size) + 0.7) * 0.1,
    )


def token_vector(token):
    return np.array([1.0 if v == token else 0.0 for v in VOCAB])


def step_rnn(x, h_prev, w, recurrent_gain=1.0, input_gain=1.0):
    """One cell update: returns (h, next-token probabilities)."""
    h = np.tanh(w.bh + w.wxh @ (x * input_gain) + w.whh @ (h_prev * recurrent_gain))
    logits = w.by + w.why @ h
    return h, softmax(logits)


def run_sequence(tokens, w, recurrent_gain=1.0, input_gain=1.0):
    """Hidden states and output distributions for every timestep, shape (T, H) and (T, V)."""
    h = np.zeros(w.whh.shape[0])
    states, probs = [], []
    for token in tokens:
        h, p = step_rnn(token_vector(token), h, w, recurrent_gain, input_gain)
        states.append(h)
        probs.append(p)
    return np.array(states), np.array(probs)


def memory_influence(t, tokens, w, recurrent_gain=1.0, input_gain=1.0):
    """How much h_t changes when each earlier token is blanked out.

    Returns (influence scaled to max 1, future mask). Positions after t are
    masked: they cannot influence h_t.
    """
    tokens = list(tokens)
    t = max(0, min(int(t), len(tokens) - 1))
    base, _ = run_sequence(tokens, w, recurrent_gain, input_gain)
    mask = np.arange(len(tokens)) > t
    raw = np.zeros(len(tokens))
    for idx in range(t + 1):
        modified = list(tokens)
        modified[idx] = BLANK
        alt, _ = run_sequence(modified, w, recurrent_gain, input_gain)
        raw[idx] = l2_distance(base[t], alt[t])
    influence = raw / max(raw.max(), EPS)
    return influence, mask


def display_token(token):
    return "space" if token == BLANK else token


def timestep_view(t, recurrent_gain=1.0, input_gain=1.0, tokens=TOKENS, w=None):
    """Everything the RNN panel shows for timestep t."""
    w = build_weights() if w is None else w
    t = max(0, min(int(t), len(tokens) - 1))
    states, probs = run_sequence(tokens, w, recurrent_gain, input_gain)
    influence, mask = memory_influence(t, tokens, w, recurrent_gain, input_gain)
    pred = int(np.argmax(probs[t]))
    return {
        't': t,
        'state': states[t],
        'probs': probs[t],
        'influence': influence,
        'mask': mask,
        'predicted': VOCAB[pred],
        'predicted_prob': float(probs[t][pred]),
        'seen': "".join(tokens[:t + 1]),
    }
