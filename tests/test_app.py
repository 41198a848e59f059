"""Tests for the Gradio app shell and its panels."""
import asyncio
import json
from types import SimpleNamespace

import gradio as gr
import pytest

from conceptviz import fixture
from conceptviz.cursor import BoundedCursor
from hf_app import app


def _collect(agen):
    async def run():
        return [update async for update in agen]
    return asyncio.run(run())


class TestCreateApp:

    def test_builds_blocks(self):
        assert isinstance(app.create_app(), gr.Blocks)

    @pytest.mark.parametrize("concept", ["svd", "gd", "cnn", "rnn", "llm", "llmflow"])
    def test_mount_matches_outputs(self, concept):
        with gr.Blocks():
            panel = app.PANEL_BUILDERS[concept]()
        updates = panel.mount()
        assert len(updates) == len(panel.outputs)
        assert isinstance(updates[0], BoundedCursor)
        assert panel.timers

    def test_autoplay_panels_start_playing(self):
        with gr.Blocks():
            gd_panel = app.build_gd_panel()
            flow_panel = app.build_flow_panel()
        assert gd_panel.mount()[0].playing
        assert not flow_panel.mount()[0].playing


class TestPcaMount:

    @pytest.fixture
    def pca_panel(self):
        with gr.Blocks():
            return app.build_pca_panel()

    def test_missing_fixture_shows_error(self, pca_panel, tmp_path):
        fixture.get_default_loader(str(tmp_path / "missing.json"))
        updates = _collect(pca_panel.mount())
        assert len(updates) == 2
        assert all(len(u) == len(pca_panel.outputs) for u in updates)
        assert updates[0][7]['value'] == app.LOADING_TEXT
        assert updates[-1][7]['value'].startswith("Failed to load PCA presets")

    def test_ready(self, pca_panel, tmp_path, tiny_artifact):
        path = tmp_path / "pca_presets.json"
        path.write_text(json.dumps(tiny_artifact))
        fixture.get_default_loader(str(path))
        updates = _collect(pca_panel.mount())
        final = updates[-1]
        assert len(final) == len(pca_panel.outputs)
        assert final[0].upper == 2
        assert final[7]['visible'] is False
        assert final[8]['visible'] is True

    def test_render_before_load_is_noop(self, tmp_path):
        fixture.get_default_loader(str(tmp_path / "never.json"))
        assert len(app.render_pca(app.pca_cursor(), 12, 0)) == 9


class TestRouting:

    def test_on_load_valid_tab(self):
        _, concept = app.on_load(SimpleNamespace(query_params={"tab": "gd"}))
        assert concept == "gd"

    def test_on_load_invalid_tab(self):
        _, concept = app.on_load(SimpleNamespace(query_params={"tab": "nope"}))
        assert concept == app.SETTINGS.default_tab

    def test_inactive_panel_is_not_mounted(self):
        with gr.Blocks():
            panel = app.build_rnn_panel()
        handler = app.when_active(panel)
        assert len(handler("svd")) == len(panel.outputs)
        assert isinstance(handler("rnn")[0], BoundedCursor)

    def test_select_tab_tracks_concept(self):
        handler = app.select_tab("rnn")
        assert handler("svd") == "rnn"
        assert handler("rnn") == "rnn"


class TestRenderers:

    def test_cursor_updates(self):
        cursor = app.gd_cursor().pause()
        state, timer, play, scrub = app.cursor_updates(cursor)
        assert state is cursor
        assert play['value'] == app.PLAY_LABEL
        assert scrub['maximum'] == cursor.upper
        assert app.cursor_updates(cursor.play())[2]['value'] == app.PAUSE_LABEL

    def test_render_outputs(self):
        assert len(app.render_svd_morph(app.svd_morph_cursor(), 1.2, 0.6, -0.3, 1.4)) == 2
        assert len(app.render_svd_rank(app.svd_rank_cursor())) == 4
        assert len(app.render_gd(app.gd_cursor(), 3.0, -2.2, 0.08, 28, -32, 58)) == 3
        assert len(app.render_cnn(app.cnn_scan_cursor(), app.cnn_iteration_cursor(), 0.35)) == 6
        assert len(app.render_rnn(app.rnn_cursor(), 1.0, 1.0)) == 4
        assert len(app.render_llm(app.llm_cursor(), 0.5, 1.0)) == 6
        assert len(app.render_flow(app.flow_cursor())) == 2

    def test_gd_step_beyond_path_is_clamped(self):
        cursor = BoundedCursor(value=70, lower=0, upper=70, restart=0, interval_ms=180)
        _, _, md = app.render_gd(cursor, 3.0, -2.2, 0.08, 8, -32, 58)
        assert "Step 8/8" in md

    def test_flow_sampling_note(self):
        cursor = app.flow_cursor().scrub(5)
        _, md = app.render_flow(cursor)
        assert "only stage where one token is actually chosen" in md
