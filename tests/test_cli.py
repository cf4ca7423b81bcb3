import pytest
from click.testing import CliRunner

from maintenance.cli import cli


@pytest.fixture
def station_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MUSIC_DIR", str(tmp_path / "music"))
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "data" / "tracks.db"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("DURABLE_STORAGE_PROVIDER", raising=False)
    return tmp_path


def test_status_without_durable(station_env):
    result = CliRunner().invoke(cli, ["status"])
    assert result.exit_code == 0, result.output
    assert "ready" in result.output
    assert "not configured" in result.output


def test_migrate_requires_durable(station_env):
    result = CliRunner().invoke(cli, ["migrate"])
    assert result.exit_code == 1
    assert "not configured" in result.output


def test_migrate_with_directory_store(station_env, monkeypatch):
    monkeypatch.setenv("DURABLE_STORAGE_PROVIDER", "local")
    monkeypatch.setenv("DURABLE_STORAGE_ENDPOINT", str(station_env / "nas"))
    result = CliRunner().invoke(cli, ["migrate", "--limit", "5"])
    assert result.exit_code == 0, result.output
    assert "Migrated" in result.output


def test_reacquire_nothing_missing(station_env, monkeypatch):
    monkeypatch.setenv("DURABLE_STORAGE_PROVIDER", "local")
    monkeypatch.setenv("DURABLE_STORAGE_ENDPOINT", str(station_env / "nas"))
    result = CliRunner().invoke(cli, ["reacquire"])
    assert result.exit_code == 0, result.output
    assert "All tracks are already in storage" in result.output
