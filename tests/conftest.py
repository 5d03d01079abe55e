import pytest


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run in an empty directory with an empty home so no server.conf leaks in."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return work
