"""
Unit tests for configuration template rendering.
"""

from pathlib import Path

import pytest

from discovery_harness.templates import render_config, rendered_config

FIXTURE = Path(__file__).parent.parent / "integration" / "fixtures" / "marathon" / "simple.toml"


class TestRenderConfig:
    def test_substitutes_backend_url(self):
        path = render_config(FIXTURE, marathon_url="http://172.17.0.6:8080")
        try:
            content = path.read_text()
            assert 'endpoint = "http://172.17.0.6:8080"' in content
            assert "${" not in content
            assert path.suffix == ".toml"
        finally:
            path.unlink()

    def test_missing_value(self, tmp_path):
        template = tmp_path / "t.toml"
        template.write_text('endpoint = "${marathon_url}"\n')
        with pytest.raises(KeyError):
            render_config(template)

    def test_rendered_file_removed_afterwards(self):
        with rendered_config(FIXTURE, marathon_url="http://m:8080") as path:
            assert path.exists()
        assert not path.exists()

    def test_removed_even_on_failure(self):
        with pytest.raises(RuntimeError):
            with rendered_config(FIXTURE, marathon_url="http://m:8080") as path:
                raise RuntimeError("test failed")
        assert not path.exists()
