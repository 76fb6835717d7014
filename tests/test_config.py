"""Unit tests for configuration handling."""

import json
import os
import stat
from pathlib import Path

import pytest

from journalsync.config import CloudConfig, ConfigManager
from journalsync.exceptions import ConfigError

VALID = {
    "aws_access": "AKIAEXAMPLE",
    "aws_secret": "supersecretvalue",
    "aws_region": "eu-west-1",
    "aws_bucket": "journal",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "JOURNALSYNC_BACKEND",
        "JOURNALSYNC_AWS_ACCESS",
        "JOURNALSYNC_AWS_SECRET",
        "JOURNALSYNC_AWS_REGION",
        "JOURNALSYNC_AWS_BUCKET",
        "JOURNALSYNC_HTTP_URL",
        "JOURNALSYNC_HTTP_TOKEN",
        "JOURNALSYNC_DATA_DIR",
        "JOURNALSYNC_CONFIG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def manager(tmp_path):
    return ConfigManager(tmp_path / "config")


class TestCloudConfig:
    """Tests for CloudConfig validation and serialization."""

    def test_valid_s3_config(self):
        CloudConfig(**VALID).validate()

    @pytest.mark.parametrize("missing", sorted(VALID))
    def test_missing_s3_setting(self, missing):
        data = dict(VALID)
        data[missing] = "  "
        with pytest.raises(ConfigError, match=missing):
            CloudConfig(**data).validate()

    def test_unknown_backend(self):
        with pytest.raises(ConfigError, match="Unknown backend"):
            CloudConfig(backend="ftp").validate()

    def test_http_backend_needs_url(self):
        with pytest.raises(ConfigError, match="http_url"):
            CloudConfig(backend="http").validate()
        with pytest.raises(ConfigError, match="Invalid http_url"):
            CloudConfig(backend="http", http_url="store.example").validate()
        CloudConfig(backend="http", http_url="https://store.example").validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"transfer_retries": -1},
            {"retry_delay": -0.5},
            {"lock_timeout": -1},
            {"tombstone_retention_ms": 0},
        ],
    )
    def test_invalid_tuning(self, overrides):
        with pytest.raises(ConfigError):
            CloudConfig(**VALID, **overrides).validate()

    def test_from_dict_ignores_unknown_keys(self):
        config = CloudConfig.from_dict({**VALID, "legacy": True})
        assert config.aws_bucket == "journal"

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ConfigError):
            CloudConfig.from_dict(["not", "a", "dict"])

    def test_to_dict_drops_unset_values(self):
        data = CloudConfig(**VALID).to_dict()
        assert "http_url" not in data
        assert data["backend"] == "s3"
        assert data["heartbeat_write"] is False

    def test_redacted_masks_secrets(self):
        data = CloudConfig(**VALID).redacted()
        assert data["aws_secret"] == "****alue"
        assert data["aws_access"] == "AKIAEXAMPLE"

    def test_data_path_default(self):
        assert CloudConfig().data_path == (
            Path.home() / ".local" / "share" / "journalsync"
        )

    def test_data_path_expands_user(self):
        assert CloudConfig(data_dir="~/journal").data_path == Path.home() / "journal"


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_default_dir_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("JOURNALSYNC_CONFIG_DIR", str(tmp_path))
        assert ConfigManager().get_config_path() == tmp_path / "config.json"

    def test_load_without_file(self, manager):
        config = manager.load()
        assert config == CloudConfig()
        assert manager.is_configured() is False

    def test_save_and_load(self, manager):
        manager.save(CloudConfig(**VALID))

        path = manager.get_config_path()
        assert json.loads(path.read_text())["aws_bucket"] == "journal"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert manager.load() == CloudConfig(**VALID)
        assert manager.is_configured() is True

    def test_save_rejects_invalid(self, manager):
        with pytest.raises(ConfigError):
            manager.save(CloudConfig())
        assert not manager.exists()

    def test_env_overrides_file(self, manager, monkeypatch):
        manager.save(CloudConfig(**VALID))
        monkeypatch.setenv("JOURNALSYNC_AWS_BUCKET", "other-bucket")
        assert manager.load().aws_bucket == "other-bucket"

    def test_env_only_configuration(self, manager, monkeypatch):
        monkeypatch.setenv("JOURNALSYNC_BACKEND", "http")
        monkeypatch.setenv("JOURNALSYNC_HTTP_URL", "https://store.example")
        assert manager.is_configured() is True

    def test_invalid_json(self, manager):
        manager.config_dir.mkdir(parents=True)
        manager.get_config_path().write_text("{broken")
        with pytest.raises(ConfigError, match="not valid JSON"):
            manager.load()

    def test_create_update_delete(self, manager):
        with pytest.raises(ConfigError, match="create one first"):
            manager.update(CloudConfig(**VALID))

        manager.create(CloudConfig(**VALID))
        with pytest.raises(ConfigError, match="already exists"):
            manager.create(CloudConfig(**VALID))

        manager.update(CloudConfig(**{**VALID, "aws_region": "us-east-1"}))
        assert manager.load().aws_region == "us-east-1"

        assert manager.delete() is True
        assert manager.delete() is False
        assert not manager.exists()
