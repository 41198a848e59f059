"""
Configuration for the visualizer app and every panel's controls.

Control ranges, animation defaults and app settings live in configs.yaml
next to this module. Environment variables override the app settings:

    CONCEPTVIZ_PCA_FIXTURE   path or URL of the PCA presets JSON
    CONCEPTVIZ_LOG_LEVEL     logging level name (INFO, DEBUG, ...)
"""
import os
from dataclasses import dataclass
from typing import Optional

import yaml

from conceptviz.routing import DEFAULT_CONCEPT, resolve_concept

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "configs.yaml")
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

ENV_FIXTURE = "CONCEPTVIZ_PCA_FIXTURE"
ENV_LOG_LEVEL = "CONCEPTVIZ_LOG_LEVEL"

_config_cache = {}


def read_config(path=None):
    """Load the YAML config (cached per path)."""
    path = path or CONFIG_PATH
    if path in _config_cache:
        return _config_cache[path]
    with open(path, 'r') as stream:
        config = yaml.safe_load(stream)
    if not config:
        raise ValueError(f"Configuration file {path} is empty.")
    _config_cache[path] = config
    return config


@dataclass(frozen=True)
class ControlSpec:
    """Range of one slider: the only place bounds are enforced."""
    minimum: float
    maximum: float
    step: float
    default: float


@dataclass(frozen=True)
class AnimationSpec:
    """Mount defaults for one animated cursor."""
    start: int
    restart: int
    interval_ms: int
    autoplay: bool


@dataclass(frozen=True)
class Settings:
    title: str
    default_tab: str
    pca_fixture: str
    panel_retry_delay_s: float
    log_level: str


def _resolve_source(source):
    """Relative fixture paths are taken from the project root; URLs pass through."""
    if source.startswith(("http://", "https://")) or os.path.isabs(source):
        return source
    return os.path.join(PROJECT_ROOT, source)


def load_settings(config=None) -> Settings:
    config = config if config is not None else read_config()
    app = config.get('app', {})
    fixture = os.environ.get(ENV_FIXTURE) or app.get('pca_fixture', 'precomputed_results/pca_presets.json')
    return Settings(
        title=app.get('title', 'Deep Learning Concept Visualizer'),
        default_tab=resolve_concept(app.get('default_tab'), DEFAULT_CONCEPT),
        pca_fixture=_resolve_source(fixture),
        panel_retry_delay_s=float(app.get('panel_retry_delay_s', 1.5)),
        log_level=os.environ.get(ENV_LOG_LEVEL) or app.get('log_level', 'INFO'),
    )


def get_controls(panel: str, config: Optional[dict] = None) -> dict:
    """Return {control name: ControlSpec} for a panel id."""
    config = config if config is not None else read_config()
    raw = config['controls'][panel]
    return {
        name: ControlSpec(
            minimum=spec['min'], maximum=spec['max'],
            step=spec['step'], default=spec['default'],
        )
        for name, spec in raw.items()
    }


def get_animation(panel: str, config: Optional[dict] = None) -> dict:
    """Return {cursor name: AnimationSpec} for a panel id."""
    config = config if config is not None else read_config()
    raw = config['animation'][panel]
    return {
        name: AnimationSpec(
            start=int(spec['start']), restart=int(spec['restart']),
            interval_ms=int(spec['interval_ms']), autoplay=bool(spec['autoplay']),
        )
        for name, spec in raw.items()
    }
