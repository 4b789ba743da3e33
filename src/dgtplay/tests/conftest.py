"""
Pytest configuration and fixtures for dgtplay tests.

This module provides:
- Isolation of dgtplay.ini: every test reads and writes a throwaway copy
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """
    Point Settings at a per-test config file.

    Settings fills missing keys into the user config file, so without this
    a test run would write to the developer's home directory. The packaged
    defaults file stays in place.
    """
    from dgtplay.board.settings import Settings

    path = tmp_path / "dgtplay.ini"
    monkeypatch.setattr(Settings, "configfile", str(path))
    yield path
