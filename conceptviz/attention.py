"""
Two hand-built causal attention heads over one example sentence.

Head 1 (syntax) links verbs to subjects and objects to verbs; head 2
(semantic) links words that share a topic. Both only see the causal
prefix: for query i, keys j > i are masked. Masked cells are NaN in the
returned matrices, never zero, so a view can tell "not allowed" from
"allowed but weak".
"""
import numpy as np

from conceptviz.numerics import EPS, argmax, normalize, softmax

TOKENS = ("Researchers", "analyze", "data", "and", "write", "reports", "for", "teams", "daily")
ROLES = ("subject", "verb", "object", "connector", "verb", "object", "prep", "object", "adverb")
TOPICS = ("agent", "analysis", "analysis", "link", "writing", "writing", "target", "target", "time")
NEXT_VOCAB = ("reports", "teams", "insights", "daily", ".")

MIN_CONTEXT = 4
EMBED_DIM = 8
TRUTH_BONUS = 2.8

_ROLE_TEXT = {
    "subject": "who is doing the action",
    "verb": "the action word",
    "object": "what receives the action",
    "prep": "a relationship word (like for/from)",
    "connector": "a linking word",
}
_TOPIC_TEXT = {
    "analysis": "analyzing data",
    "writing": "writing outputs",
    "target": "audience/receivers",
    "time": "time/frequency",
    "link": "joining ideas",
}


def role_plain(role):
    return _ROLE_TEXT.get(role, "a modifier word")


def topic_plain(topic):
    return _TOPIC_TEXT.get(topic, "people/agents")


def nearest_left(idx, predicate):
    for i in range(idx - 1, -1, -1):
        if predicate(ROLES[i]):
            return i
    return -1


def syntax_row(qi):
    """Head 1 weights over keys 0..qi."""
    row = np.full(qi + 1, 0.02)
    role = ROLES[qi]
    if role == "verb":
        subj = nearest_left(qi, lambda r: r in ("subject", "object"))
        if subj >= 0:
            row[subj] += 2.2
        if qi > 0:
            row[qi - 1] += 0.9
    elif role == "object":
        v = nearest_left(qi, lambda r: r == "verb")
        if v >= 0:
            row[v] += 2.4
        if qi > 0:
            row[qi - 1] += 0.7
    elif role == "adverb":
        v = nearest_left(qi, lambda r: r == "verb")
        if v >= 0:
            row[v] += 1.8
    else:
        if qi > 0:
            row[qi - 1] += 1.1
        row[qi] += 0.4
    # mild recency bias
    row += 0.15 / (qi - np.arange(qi + 1) + 1)
    return normalize(row)


def semantic_row(qi):
    """Head 2 weights over keys 0..qi."""
    row = np.full(qi + 1, 0.02)
    for k in range(qi + 1):
        if ROLES[k] in ("subject", "verb", "object"):
            row[k] += 1.0 / (qi - k + 1)
        if TOPICS[k] == TOPICS[qi]:
            row[k] += 1.4
        if k == qi:
            row[k] += 0.4
    return normalize(row)


def causal_mask(n):
    """True where key j is in the future of query i (j > i)."""
    return np.triu(np.ones((n, n), dtype=bool), k=1)


def attention_matrix(row_fn, n):
    """(n, n) matrix of head weights with NaN in masked cells, plus the mask."""
    mask = causal_mask(n)
    matrix = np.full((n, n), np.nan)
    for qi in range(n):
        matrix[qi, :qi + 1] = row_fn(qi)
    return matrix, mask


def merge_heads(h1, h2, blend):
    """Blend two masked matrices and renormalize each row over its valid prefix."""
    mask = np.isnan(h1) | np.isnan(h2)
    merged = blend * np.nan_to_num(h1) + (1.0 - blend) * np.nan_to_num(h2)
    sums = merged.sum(axis=1, keepdims=True)
    merged = merged / np.maximum(sums, EPS)
    merged[mask] = np.nan
    return merged


def token_embedding(idx, dim=EMBED_DIM):
    d = np.arange(dim)
    return np.sin((idx + 1) * (d + 2)) * 0.7 + np.cos((idx + 2) * (d + 1)) * 0.3


def vocab_projection(dim=EMBED_DIM):
    i = np.arange(len(NEXT_VOCAB))[:, None]
    d = np.arange(dim)[None, :]
    return np.sin((i + 1) * (d + 2)) * 0.6 + np.cos((i + 2) * (d + 1)) * 0.25


def context_vector(weights):
    """Attention-weighted sum of token embeddings over the valid prefix."""
    weights = np.nan_to_num(np.asarray(weights, dtype=float))
    emb = np.array([token_embedding(i) for i in range(len(weights))])
    return weights @ emb


def ground_truth(context_len):
    return TOKENS[context_len] if context_len < len(TOKENS) else "."


def next_token_probs(context, temperature, truth=None):
    """Softmax over NEXT_VOCAB; the true next word gets a calibration bonus."""
    logits = vocab_projection() @ context
    if truth in NEXT_VOCAB:
        logits[NEXT_VOCAB.index(truth)] += TRUTH_BONUS
    return softmax(logits, temperature)


def clamp_context(context_len):
    return max(MIN_CONTEXT, min(int(context_len), len(TOKENS)))


def attention_view(context_len, blend, temperature):
    """Everything the LLM panel shows for one context length."""
    n = clamp_context(context_len)
    q = n - 1
    h1, mask = attention_matrix(syntax_row, n)
    h2, _ = attention_matrix(semantic_row, n)
    merged = merge_heads(h1, h2, blend)

    active_h1 = h1[q, :q + 1]
    active_h2 = h2[q, :q + 1]
    active_merged = merged[q, :q + 1]
    truth = ground_truth(n)
    probs = next_token_probs(context_vector(active_merged), temperature, truth)
    next_idx = argmax(probs)
    h1_target = argmax(active_h1)
    h2_target = argmax(active_h2)
    return {
        'n': n,
        'query': q,
        'tokens': TOKENS[:n],
        'h1': h1, 'h2': h2, 'merged': merged, 'mask': mask,
        'active_h1': active_h1, 'active_h2': active_h2, 'active_merged': active_merged,
        'h1_target': h1_target,
        'h2_target': h2_target,
        'merged_target': argmax(active_merged),
        'probs': probs,
        'predicted': NEXT_VOCAB[next_idx],
        'truth': truth,
        'truth_in_vocab': truth in NEXT_VOCAB,
        'query_role': ROLES[q],
        'h1_role': ROLES[h1_target],
        'h2_topic': TOPICS[h2_target],
    }
