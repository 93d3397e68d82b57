"""
Unit tests for config file handling and resolved settings.
"""

import pytest

from pydantic import ValidationError

from pneumaflow.config import (
    Settings,
    load_config,
    load_settings,
    save_config,
    set_config_value,
)


class TestConfigFile:
    def test_missing_file_reads_empty(self, isolated_config):
        assert not isolated_config.exists()
        assert load_config() == {}

    def test_save_creates_directory(self, isolated_config):
        path = save_config({"ingest": {"batch_size": 10}})

        assert path == isolated_config
        assert load_config() == {"ingest": {"batch_size": 10}}
        assert not isolated_config.with_suffix(".toml.tmp").exists()

    def test_invalid_toml_reads_empty(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("[ingest\nbatch_size = ")
        assert load_config() == {}

    def test_non_table_entries_ignored(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text('stray = 1\n\n[query]\nmax_points = 500\n')
        assert load_config() == {"query": {"max_points": 500}}


class TestSetConfigValue:
    def test_sets_and_preserves_other_keys(self):
        set_config_value("ingest.batch_size", 100)
        set_config_value("storage.compression", "snappy")

        assert load_config() == {
            "ingest": {"batch_size": 100},
            "storage": {"compression": "snappy"},
        }

    @pytest.mark.parametrize(
        "key", ["batch_size", "ingest.", "ingest.unknown", "network.port"]
    )
    def test_unknown_keys_rejected(self, key, isolated_config):
        with pytest.raises(ValueError, match="Unknown config key"):
            set_config_value(key, 1)
        assert not isolated_config.exists()


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings.sample_rate == "auto"
        assert settings.fixed_sample_rate is None
        assert settings.compression == "zstd"

    def test_file_values_and_overrides(self, tmp_path):
        save_config(
            {
                "storage": {"database_path": "/from/config.db", "compression": "LZ4"},
                "ingest": {"batch_size": 500, "sample_rate": 1},
                "query": {"max_scan_rows": 1000},
            }
        )

        settings = load_settings(database_path=str(tmp_path / "cli.db"))

        assert settings.database_path == str(tmp_path / "cli.db")
        assert settings.compression == "lz4"
        assert settings.batch_size == 500
        assert settings.fixed_sample_rate == 1.0
        assert settings.max_scan_rows == 1000

    def test_sample_rate_override(self):
        save_config({"ingest": {"sample_rate": 50}})
        assert load_settings(sample_rate="auto").fixed_sample_rate is None
        assert load_settings(sample_rate="12.5").fixed_sample_rate == 12.5

    @pytest.mark.parametrize("sample_rate", ["fast", "0", "-25"])
    def test_invalid_sample_rate(self, sample_rate):
        with pytest.raises(ValidationError):
            Settings(sample_rate=sample_rate)

    def test_invalid_compression(self):
        with pytest.raises(ValidationError):
            Settings(compression="rar")
