"""Shared test fixtures for toolwrap."""

import pytest


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML override file and return its path as a string."""

    def _write(text: str) -> str:
        path = tmp_path / "toolwrap.yaml"
        path.write_text(text)
        return str(path)

    return _write
