"""Tests for the offline PCA / k-NN precompute job (synthetic data, no download)."""
import asyncio
import json
import os

import numpy as np
import pytest
import torch

from conceptviz import config, pca
from conceptviz.fixture import SCHEMA_VERSION, FixtureLoader
from precompute import precompute_pca as job
from precompute.pca_config import DEFAULT_OUTPUT, MAX_COMPONENTS, PRESET_COMPONENTS

SIDE = 4
DIM = SIDE * SIDE


def _synthetic(n, seed):
    """Digits on a 3D subspace around 0.5, labelled by the dominant coefficient's sign.

    Pixel values stay inside (0, 1) so reconstructions are never clamped.
    """
    gen = torch.Generator().manual_seed(0)
    basis = torch.linalg.qr(torch.randn(DIM, 3, generator=gen, dtype=torch.float64))[0].T
    gen = torch.Generator().manual_seed(seed)
    scales = torch.tensor([0.15, 0.075, 0.025], dtype=torch.float64)
    coeffs = (torch.rand(n, 3, generator=gen, dtype=torch.float64) * 2 - 1) * scales
    noise = torch.randn(n, DIM, generator=gen, dtype=torch.float64) * 0.002
    x = 0.5 + coeffs @ basis + noise
    y = (coeffs[:, 0] > 0).to(torch.int64)
    return x, y


@pytest.fixture
def data():
    train_x, train_y = _synthetic(80, seed=1)
    test_x, test_y = _synthetic(30, seed=2)
    return train_x, train_y, test_x, test_y


@pytest.fixture
def artifact(data):
    return job.build_artifact(*data, presets=(1, 2, 3, 5), max_components=8,
                              eigendigits=4, dataset="synthetic",
                              generated_at="2026-01-01T00:00:00+00:00")


class TestFitPca:

    def test_components_are_orthonormal(self, data):
        model = job.fit_pca(data[0], max_components=5)
        gram = model.components @ model.components.T
        assert torch.allclose(gram, torch.eye(5, dtype=torch.float64), atol=1e-8)

    def test_eigenvalues_descending(self, data):
        model = job.fit_pca(data[0], max_components=6)
        assert torch.all(model.eigenvalues[:-1] >= model.eigenvalues[1:])

    def test_eigenvalue_is_score_variance(self, data):
        model = job.fit_pca(data[0], max_components=3)
        scores = job.project(data[0], model, 3)
        assert torch.allclose(scores.var(dim=0, unbiased=True), model.eigenvalues, rtol=1e-6)
        assert torch.allclose(job.component_std(data[0], model), model.eigenvalues.sqrt(), rtol=1e-6)

    def test_explained_ratio(self, data):
        model = job.fit_pca(data[0], max_components=8)
        ratios = [job.explained_ratio(model, k) for k in range(1, 9)]
        assert all(b >= a for a, b in zip(ratios, ratios[1:]))
        assert ratios[-1] == pytest.approx(1.0)
        assert ratios[2] > 0.95
        assert job.explained_ratio(model, 20) == pytest.approx(1.0)

    def test_explained_ratio_of_flat_data(self):
        flat = torch.full((5, 16), 0.5, dtype=torch.float64)
        assert job.explained_ratio(job.fit_pca(flat, 4), 2) == 0.0

    def test_reconstruction_error_shrinks_with_k(self, data):
        train_x, _, test_x, _ = data
        model = job.fit_pca(train_x, max_components=8)
        errors = [float(torch.linalg.norm(test_x - job.reconstruct(test_x, model, k)))
                  for k in (1, 2, 3, 5, 8)]
        assert all(b <= a + 1e-9 for a, b in zip(errors, errors[1:]))

    def test_reconstruction_is_clamped(self):
        x = torch.tensor([[0.0, 1.0], [1.0, 0.0], [0.0, 0.0], [1.0, 1.0]], dtype=torch.float64)
        model = job.fit_pca(x, max_components=1)
        recon = job.reconstruct(x * 3 - 1, model, 1)
        assert recon.min() >= 0 and recon.max() <= 1


class TestKnn:

    def test_majority_vote(self):
        train = torch.tensor([[0.0], [1.0], [2.0], [3.0]], dtype=torch.float64)
        labels = torch.tensor([7, 3, 3, 7])
        pred = job.classify_knn(train, labels, torch.tensor([[0.4]], dtype=torch.float64), 3)
        assert pred.tolist() == [3]

    def test_tie_goes_to_nearest_label_first_seen(self):
        train = torch.tensor([[0.0], [1.0], [2.0], [3.0]], dtype=torch.float64)
        labels = torch.tensor([7, 3, 3, 7])
        pred = job.classify_knn(train, labels, torch.tensor([[0.4]], dtype=torch.float64), 4)
        assert pred.tolist() == [7]

    def test_k_larger_than_train(self):
        train = torch.tensor([[0.0], [5.0]], dtype=torch.float64)
        pred = job.classify_knn(train, torch.tensor([1, 2]), torch.tensor([[4.0]], dtype=torch.float64), 10)
        # both neighbours vote once; the nearer one wins
        assert pred.tolist() == [2]

    def test_accuracy_on_separable_data(self, data):
        model = job.fit_pca(data[0], max_components=3)
        assert job.knn_accuracy(*data, model, 1) >= 0.8


class TestArtifact:

    def test_schema(self, artifact):
        meta = artifact['meta']
        assert meta['schema_version'] == 1
        assert meta['dim'] == DIM and meta['image_side'] == SIDE
        assert (meta['train_size'], meta['test_size']) == (80, 30)
        assert meta['preset_components'] == [1, 2, 3, 5]
        assert set(artifact['reconstructions']) == {"1", "2", "3", "5"}
        assert len(artifact['test_vectors']) == len(artifact['test_labels']) == 30
        assert len(artifact['scatter']) == 30
        assert len(artifact['eigendigits']) == len(artifact['pc_std']) == 4
        assert len(artifact['explained_cumulative']) == 8

    def test_values_are_rounded(self, artifact):
        values = artifact['mean_vector'] + artifact['reconstructions']['2'][0]
        assert all(round(v, 5) == v for v in values)

    def test_reconstructions_in_pixel_range(self, artifact):
        for rows in artifact['reconstructions'].values():
            arr = np.asarray(rows)
            assert arr.min() >= 0 and arr.max() <= 1

    def test_consumer_reads_written_file(self, artifact, tmp_path):
        path = tmp_path / "out" / "pca_presets.json"
        job.write_artifact(artifact, str(path))
        loaded = asyncio.run(FixtureLoader(str(path)).load())
        assert loaded == json.loads(path.read_text())

        original, recon, label = pca.sample_view(loaded, 3, 0)
        assert original.shape == recon.shape == (DIM,)
        assert label == artifact['test_labels'][0]
        residuals = [pca.residual_error(*pca.sample_view(loaded, k, 0)[:2]) for k in (1, 2, 3)]
        assert residuals[2] <= residuals[0] + 1e-4

    def test_every_sample_improves_with_more_components(self, artifact):
        # stored values are rounded to 5 digits
        for i in range(pca.sample_count(artifact)):
            coarse = pca.residual_error(*pca.sample_view(artifact, 1, i)[:2])
            fine = pca.residual_error(*pca.sample_view(artifact, 5, i)[:2])
            assert fine <= coarse + 1e-4, f"sample {i}"

    def test_explained_reaches_one_at_last_component(self, artifact):
        assert artifact['explained_cumulative'][-1] == pytest.approx(1.0)
        cumulative = artifact['explained_cumulative']
        assert all(b >= a for a, b in zip(cumulative, cumulative[1:]))


SHIPPED_FIXTURE = os.path.join(config.PROJECT_ROOT, DEFAULT_OUTPUT)


@pytest.mark.skipif(not os.path.exists(SHIPPED_FIXTURE),
                    reason="run precompute/precompute_pca.py to generate the presets")
class TestShippedFixture:

    @pytest.fixture(scope="class")
    def shipped(self):
        return asyncio.run(FixtureLoader(SHIPPED_FIXTURE).load())

    def test_schema_version(self, shipped):
        assert shipped['meta']['schema_version'] == SCHEMA_VERSION
        assert shipped['meta']['preset_components'] == list(PRESET_COMPONENTS)

    def test_largest_preset_never_worse_than_smallest(self, shipped):
        for i in range(pca.sample_count(shipped)):
            coarse = pca.residual_error(*pca.sample_view(shipped, 6, i)[:2])
            fine = pca.residual_error(*pca.sample_view(shipped, 30, i)[:2])
            assert fine <= coarse + 1e-4, f"sample {i}"

    def test_explained_variance_is_complete(self, shipped):
        assert shipped['explained'][str(MAX_COMPONENTS)] == pytest.approx(1.0)
        assert shipped['explained_cumulative'][-1] == pytest.approx(1.0)
