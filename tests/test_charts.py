"""Tests for the plotly figure builders."""
import numpy as np
import plotly.graph_objects as go
import pytest

from conceptviz import attention, cnn, gradient_descent as gd, svd
from hf_app import charts


class TestSvdCharts:

    def test_morph_chart(self):
        circle, _, _, target = svd.morph_stages([[1.2, 0.6], [-0.3, 1.4]])
        fig = charts.make_svd_morph_chart(circle, circle, target)
        assert isinstance(fig, go.Figure)
        assert [t.name for t in fig.data] == ['Unit circle', 'A applied', 'Current']

    def test_spectrum_highlights_kept(self):
        fig = charts.make_singular_spectrum_chart([3.0, 2.0, 1.0], k=2)
        colors = list(fig.data[0].marker.color)
        assert colors[:2] == [charts.COLORS[0]] * 2
        assert colors[2] == charts.MUTED


class TestDescentCharts:

    def test_surface_reveals_prefix(self):
        path = gd.run_descent((3.0, -2.2), 0.08, 28)
        xs, ys, z = gd.surface_grid()
        eye = gd.camera_eye(-32, 58)
        fig = charts.make_loss_surface_chart(xs, ys, z, path, 5, eye)
        assert len(fig.data) == 3
        assert len(fig.data[1].x) == 6
        assert fig.layout.scene.camera.eye.z == pytest.approx(eye['z'])

    def test_loss_curve(self):
        path = gd.run_descent((1.0, 1.0), 0.05, 10)
        fig = charts.make_loss_curve_chart(path, 3)
        assert len(fig.data[1].x) == 4


class TestGridCharts:

    def test_window_is_drawn(self):
        fig = charts.make_grid_chart(cnn.build_sample_image(), "img", window=(2, 3, 3))
        assert len(fig.layout.shapes) == 1
        assert fig.layout.shapes[0].x0 == pytest.approx(1.5)

    def test_no_window(self):
        fig = charts.make_grid_chart(np.zeros((3, 3)), "zeros")
        assert len(fig.layout.shapes) == 0

    def test_dropout_chart(self):
        mask = np.array([True, False, True, True])
        fig = charts.make_dropout_chart(mask, 7)
        assert len(fig.data[0].x) == 3 and len(fig.data[1].x) == 1
        assert "3/4" in fig.layout.title.text


class TestMaskedCharts:

    def test_attention_mask_layer(self):
        v = attention.attention_view(6, 0.5, 1.0)
        fig = charts.make_attention_chart(v['h1'], v['mask'], v['tokens'], "Head 1", query=5)
        assert len(fig.data) == 2
        mask_layer = np.asarray(fig.data[1].z, dtype=float)
        assert np.array_equal(~np.isnan(mask_layer), v['mask'])
        assert len(fig.layout.shapes) == 1

    def test_influence_mask_layer(self):
        influence = np.array([0.2, 1.0, 0.0])
        mask = np.array([False, False, True])
        fig = charts.make_influence_chart(["a", "b", "c"], influence, mask)
        assert list(fig.data[0].y) == [0.2, 1.0, 0.0]
        assert list(fig.data[1].y) == [0.0, 0.0, 1.0]


class TestBarCharts:

    def test_prob_highlight(self):
        fig = charts.make_prob_chart(["a", "b"], [0.3, 0.7], highlight="b")
        assert list(fig.data[0].marker.color) == [charts.COLORS[0], charts.COLORS[3]]

    def test_hidden_state_sign_colors(self):
        fig = charts.make_hidden_state_chart(np.array([0.5, -0.5]), 2)
        assert list(fig.data[0].marker.color) == [charts.COLORS[4], charts.COLORS[3]]

    def test_merge_chart(self):
        v = attention.attention_view(5, 0.3, 1.0)
        fig = charts.make_merge_chart(v['tokens'], v['active_h1'], v['active_h2'], v['active_merged'], 0.3)
        assert len(fig.data) == 3

    def test_flow_chart_active_stage(self):
        fig = charts.make_flow_chart(["1) a", "2) b", "3) c"], 1)
        colors = list(fig.data[1].marker.color)
        assert colors == [charts.COLORS[0], charts.COLORS[3], charts.MUTED]
        assert list(fig.data[1].text) == ["a", "b", "c"]
