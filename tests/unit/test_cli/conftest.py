"""Shared fixtures for CLI command tests."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Keep user and project config files out of CLI tests."""
    home = tmp_path / "home"
    home.mkdir()
    with patch.object(Path, "home", return_value=home):
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path / "xdg")}, clear=True):
            yield


@pytest.fixture
def prompt_file(tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_text("you debug preview environments carefully")
    return path
