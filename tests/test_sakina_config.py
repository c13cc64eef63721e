"""Tests for sakina.config: SakinaConfig, TOML loading, overrides."""

from pathlib import Path

import pytest
from sakina.config import SakinaConfig, load_config, merge_cli_overrides


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Remove env vars that _apply_env_vars reads so tests see TOML values."""
    for key in (
        "SAKINA_DATA_DIR",
        "SAKINA_IMAGE_MODEL",
        "SAKINA_REFRAME_MODEL",
        "SAKINA_STORAGE_CAPACITY",
    ):
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_storage(self):
        cfg = SakinaConfig()
        assert cfg.storage.filename == "store.json"
        assert cfg.storage.capacity == 5_000_000
        assert cfg.storage.path == Path("~/.sakina").expanduser() / "store.json"

    def test_zero_capacity_means_unbounded(self):
        cfg = SakinaConfig.model_validate({"storage": {"capacity_bytes": 0}})
        assert cfg.storage.capacity is None

    def test_models(self):
        cfg = SakinaConfig()
        assert cfg.images.model == "gemini-2.5-flash-image"
        assert cfg.reframe.model == "haiku"


class TestLoadConfig:
    def test_explicit_path(self, tmp_path: Path):
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            '[storage]\ndata_dir = "/data"\n\n[images]\nmodel = "img-x"\n',
            encoding="utf-8",
        )
        cfg = load_config(toml)
        assert cfg.storage.data_dir == "/data"
        assert cfg.images.model == "img-x"
        assert cfg.reframe.model == "haiku"

    def test_missing_path_gives_defaults(self, tmp_path: Path):
        assert load_config(tmp_path / "nope.toml") == SakinaConfig()

    def test_invalid_toml_gives_defaults(self, tmp_path: Path):
        toml = tmp_path / "bad.toml"
        toml.write_text("[storage\n", encoding="utf-8")
        assert load_config(toml) == SakinaConfig()

    def test_finds_file_in_cwd(self, tmp_path: Path, monkeypatch):
        (tmp_path / ".sakina.toml").write_text('[reframe]\nmodel = "sonnet"\n', encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert load_config().reframe.model == "sonnet"


class TestEnvVars:
    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        toml = tmp_path / "cfg.toml"
        toml.write_text('[storage]\ndata_dir = "/from-toml"\n', encoding="utf-8")
        monkeypatch.setenv("SAKINA_DATA_DIR", "/from-env")
        monkeypatch.setenv("SAKINA_STORAGE_CAPACITY", "1234")
        cfg = load_config(toml)
        assert cfg.storage.data_dir == "/from-env"
        assert cfg.storage.capacity_bytes == 1234

    def test_bad_capacity_ignored(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("SAKINA_STORAGE_CAPACITY", "lots")
        cfg = load_config(tmp_path / "nope.toml")
        assert cfg.storage.capacity_bytes == 5_000_000


class TestCliOverrides:
    def test_none_values_ignored(self):
        cfg = merge_cli_overrides(SakinaConfig(), data_dir=None, image_model=None)
        assert cfg == SakinaConfig()

    def test_path_values_stringified(self, tmp_path: Path):
        cfg = merge_cli_overrides(SakinaConfig(), data_dir=tmp_path)
        assert cfg.storage.data_dir == str(tmp_path)
        assert cfg.storage.path == tmp_path / "store.json"
