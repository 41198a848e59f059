"""
URL-as-state for the tab shell.

The active concept is mirrored in the ``tab`` query parameter so a view can
be bookmarked or shared. Precedence:
  - on page load the URL wins; a missing or unknown value resolves to the
    default and is written back with history.replaceState (no new entry),
  - on user interaction the in-memory selection wins and is pushed as a new
    history entry,
  - back/forward reloads the page so the URL is resolved again.

The browser-side snippets are generated from the same concept table as
the server-side resolution, so the two can't drift apart.
"""
import json
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl

TAB_PARAM = "tab"

# (id, label) in nav order
CONCEPTS = (
    ("svd", "SVD"),
    ("pca", "PCA"),
    ("gd", "Gradient Descent"),
    ("cnn", "CNN"),
    ("rnn", "RNN"),
    ("llm", "LLM"),
    ("llmflow", "LLM Flow"),
)
CONCEPT_IDS = tuple(cid for cid, _ in CONCEPTS)
CONCEPT_LABELS = dict(CONCEPTS)
DEFAULT_CONCEPT = "svd"

PUSH = "push"
REPLACE = "replace"


@dataclass(frozen=True)
class Route:
    concept: str
    action: Optional[str] = None  # PUSH, REPLACE or None (URL already correct)


def resolve_concept(value, default=DEFAULT_CONCEPT):
    """Map any query value to a known concept id; unknown values fall back silently."""
    if isinstance(value, str) and value in CONCEPT_IDS:
        return value
    return default


def _as_params(query):
    if query is None:
        return {}
    if isinstance(query, str):
        return dict(parse_qsl(query.lstrip("?"), keep_blank_values=True))
    return dict(query)


def initial_route(query, default=DEFAULT_CONCEPT) -> Route:
    """Resolve the page-load URL. Writes the default back only when needed."""
    raw = _as_params(query).get(TAB_PARAM)
    concept = resolve_concept(raw, default)
    if raw != concept:
        return Route(concept, REPLACE)
    return Route(concept, None)


def navigate(current, target) -> Optional[Route]:
    """User-initiated tab change: a new history entry, or None if nothing changes."""
    target = resolve_concept(target)
    if target == current:
        return None
    return Route(target, PUSH)


# ---------------------------------------------------------------------------
# Browser-side snippets
# ---------------------------------------------------------------------------

def load_script(default=DEFAULT_CONCEPT):
    """JS run on page load: replace a missing/unknown tab value in place."""
    return (
        "() => {"
        f" const ids = {json.dumps(list(CONCEPT_IDS))};"
        " const url = new URL(window.location.href);"
        f" const tab = url.searchParams.get({json.dumps(TAB_PARAM)});"
        " if (!ids.includes(tab)) {"
        f"  url.searchParams.set({json.dumps(TAB_PARAM)}, {json.dumps(default)});"
        "  window.history.replaceState(null, '', url);"
        " }"
        "}"
    )


def select_script(concept):
    """JS run when a tab is clicked: push ?tab=<id> unless already there."""
    concept = resolve_concept(concept)
    return (
        "() => {"
        " const url = new URL(window.location.href);"
        f" if (url.searchParams.get({json.dumps(TAB_PARAM)}) !== {json.dumps(concept)}) {{"
        f"  url.searchParams.set({json.dumps(TAB_PARAM)}, {json.dumps(concept)});"
        "  window.history.pushState(null, '', url);"
        " }"
        "}"
    )


POPSTATE_HEAD = (
    "<script>"
    "window.addEventListener('popstate', () => window.location.reload());"
    "</script>"
)
