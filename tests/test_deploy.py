"""Tests for the Hugging Face Space deploy helper."""
import pytest

import deploy_to_hf


class RecordingApi:

    def __init__(self, readme_path, fail=False):
        self.readme_path = readme_path
        self.fail = fail
        self.kwargs = None
        self.readme_at_upload = None

    def upload_folder(self, **kwargs):
        self.kwargs = kwargs
        self.readme_at_upload = self.readme_path.read_text()
        if self.fail:
            raise RuntimeError("network down")


@pytest.fixture
def project(tmp_path):
    (tmp_path / "README.md").write_text("# Visualizer\n")
    return tmp_path


class TestDeploy:

    def test_frontmatter_only_during_upload(self, project):
        api = RecordingApi(project / "README.md")
        deploy_to_hf.deploy(str(project), "someone/space", "msg", api=api)
        assert api.readme_at_upload.startswith("---\ntitle: Deep Learning Concept Visualizer")
        assert "app_file: hf_app/app.py" in api.readme_at_upload
        assert (project / "README.md").read_text() == "# Visualizer\n"
        assert api.kwargs['repo_id'] == "someone/space"
        assert api.kwargs['repo_type'] == "space"
        assert api.kwargs['commit_message'] == "msg"
        assert not any(p.startswith("precomputed_results") for p in api.kwargs['ignore_patterns'])

    def test_readme_restored_on_failure(self, project):
        api = RecordingApi(project / "README.md", fail=True)
        with pytest.raises(RuntimeError):
            deploy_to_hf.deploy(str(project), "someone/space", api=api)
        assert (project / "README.md").read_text() == "# Visualizer\n"
