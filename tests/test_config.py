"""Tests for configuration loading/validation and the CLI entry point."""

import json
import logging
from pathlib import Path

import pytest

from pirouette import cli
from pirouette.config import settings
from pirouette.config.settings import (
    CONFIG_ENV_VAR,
    DEFAULT_LOG_LEVEL,
    load_config,
    parse_config,
    parse_log_level,
    resolve_config_path,
)
from pirouette.errors import ConfigError
from pirouette.retention.retention_config import OutputFormat, RetentionPeriod


def minimal_raw(source="/src", target="/dst", **extra):
    raw = {
        "source": {"path": str(source)},
        "target": {"path": str(target)},
        "retention": {"days": 7},
    }
    raw.update(extra)
    return raw


def write_toml(path: Path, source: Path, target: Path, extra: str = "") -> Path:
    path.write_text(
        f'[source]\npath = "{source}"\n\n'
        f'[target]\npath = "{target}"\n\n'
        "[retention]\nhours = 2\ndays = 3\n"
        f"{extra}"
    )
    return path


@pytest.fixture
def source(tmp_path):
    root = tmp_path / "source"
    root.mkdir()
    (root / "file.txt").write_text("content")
    return root


# ---------------------------------------------------------------------------
# Locating the config file
# ---------------------------------------------------------------------------

class TestResolveConfigPath:
    def test_from_environment(self):
        path = resolve_config_path({CONFIG_ENV_VAR: "/test/path.toml"})
        assert path == Path("/test/path.toml")

    def test_unset_uses_default(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "in_container", lambda: False)
        monkeypatch.chdir(tmp_path)
        assert resolve_config_path({}) == tmp_path / "pirouette.toml"

    def test_empty_uses_default(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "in_container", lambda: False)
        monkeypatch.chdir(tmp_path)
        assert resolve_config_path({CONFIG_ENV_VAR: ""}) == tmp_path / "pirouette.toml"

    def test_container_default(self, monkeypatch):
        monkeypatch.setattr(settings, "in_container", lambda: True)
        assert resolve_config_path({}) == Path("/config/pirouette.toml")

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, "/etc/pirouette.toml")
        assert resolve_config_path() == Path("/etc/pirouette.toml")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseConfig:
    def test_minimal_defaults(self):
        config = parse_config(minimal_raw())
        assert config.source == Path("/src")
        assert config.target == Path("/dst")
        assert config.retention == {RetentionPeriod.DAYS: 7}
        assert config.options.output_format is OutputFormat.DIRECTORY
        assert config.options.dry_run is False
        assert config.options.include == []
        assert config.options.exclude == []
        assert config.options.log_level == DEFAULT_LOG_LEVEL

    def test_full_options(self):
        config = parse_config(minimal_raw(options={
            "output_format": "tarball",
            "dry_run": True,
            "include": ["docs/*"],
            "exclude": ["*.tmp"],
            "log_level": "debug",
        }))
        assert config.options.output_format is OutputFormat.TARBALL
        assert config.options.dry_run is True
        assert config.options.include == ["docs/*"]
        assert config.options.exclude == ["*.tmp"]
        assert config.options.log_level == logging.DEBUG

    def test_path_expands_user(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/tester")
        config = parse_config(minimal_raw(source="~/data"))
        assert config.source == Path("/home/tester/data")

    def test_all_periods_accepted(self):
        raw = minimal_raw()
        raw["retention"] = {p.value: 1 for p in RetentionPeriod}
        assert set(parse_config(raw).retention) == set(RetentionPeriod)

    def test_zero_count_allowed(self):
        raw = minimal_raw()
        raw["retention"] = {"hours": 0}
        assert parse_config(raw).retention == {RetentionPeriod.HOURS: 0}

    def test_missing_source(self):
        raw = minimal_raw()
        del raw["source"]
        with pytest.raises(ConfigError, match="source"):
            parse_config(raw)

    def test_empty_retention(self):
        raw = minimal_raw()
        raw["retention"] = {}
        with pytest.raises(ConfigError, match="no retention period"):
            parse_config(raw)

    def test_missing_retention(self):
        raw = minimal_raw()
        del raw["retention"]
        with pytest.raises(ConfigError):
            parse_config(raw)

    def test_unknown_tier_rejected(self):
        raw = minimal_raw()
        raw["retention"] = {"decades": 1}
        with pytest.raises(ConfigError, match="decades"):
            parse_config(raw)

    def test_duplicate_tier_rejected(self):
        raw = minimal_raw()
        raw["retention"] = {"days": 1, "Days": 2}
        with pytest.raises(ConfigError, match="more than once"):
            parse_config(raw)

    def test_negative_count_rejected(self):
        raw = minimal_raw()
        raw["retention"] = {"days": -1}
        with pytest.raises(ConfigError, match="non-negative"):
            parse_config(raw)

    def test_boolean_count_rejected(self):
        raw = minimal_raw()
        raw["retention"] = {"days": True}
        with pytest.raises(ConfigError):
            parse_config(raw)

    def test_unknown_output_format(self):
        with pytest.raises(ConfigError, match="zip"):
            parse_config(minimal_raw(options={"output_format": "zip"}))

    def test_patterns_must_be_lists(self):
        with pytest.raises(ConfigError, match="include"):
            parse_config(minimal_raw(options={"include": "*.txt"}))

    def test_dry_run_must_be_boolean(self):
        with pytest.raises(ConfigError):
            parse_config(minimal_raw(options={"dry_run": "yes"}))


class TestParseLogLevel:
    def test_known_levels(self):
        assert parse_log_level("error") == logging.ERROR
        assert parse_log_level("WARN") == logging.WARNING
        assert parse_log_level("info") == logging.INFO
        assert parse_log_level("trace") == logging.DEBUG
        assert parse_log_level("off") > logging.CRITICAL

    def test_unknown_falls_back_to_default(self):
        assert parse_log_level("chatty") == DEFAULT_LOG_LEVEL
        assert parse_log_level(None) == DEFAULT_LOG_LEVEL


# ---------------------------------------------------------------------------
# Loading and validation
# ---------------------------------------------------------------------------

class TestLoadConfig:
    def test_loads_toml(self, tmp_path, source):
        path = write_toml(tmp_path / "pirouette.toml", source, tmp_path / "target")
        config = load_config(path)
        assert config.retention == {RetentionPeriod.HOURS: 2, RetentionPeriod.DAYS: 3}
        assert (tmp_path / "target").is_dir()

    def test_loads_json(self, tmp_path, source):
        path = tmp_path / "pirouette.json"
        path.write_text(json.dumps(minimal_raw(source, tmp_path / "target")))
        assert load_config(path).source == source

    def test_env_var_location(self, tmp_path, source, monkeypatch):
        path = write_toml(tmp_path / "custom.toml", source, tmp_path / "target")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().source == source

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to read"):
            load_config(tmp_path / "absent.toml")

    def test_malformed_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[source\npath = ")
        with pytest.raises(ConfigError, match="failed to parse"):
            load_config(path)

    def test_source_must_exist(self, tmp_path):
        path = write_toml(tmp_path / "p.toml", tmp_path / "missing", tmp_path / "target")
        with pytest.raises(ConfigError, match="source path does not exist"):
            load_config(path)

    def test_single_file_source_allowed(self, tmp_path, source):
        path = write_toml(tmp_path / "p.toml", source / "file.txt", tmp_path / "target")
        assert load_config(path).source == source / "file.txt"

    def test_target_must_not_be_file(self, tmp_path, source):
        target = tmp_path / "target"
        target.write_text("file")
        path = write_toml(tmp_path / "p.toml", source, target)
        with pytest.raises(ConfigError, match="not a directory"):
            load_config(path)

    def test_dry_run_does_not_create_target(self, tmp_path, source):
        path = write_toml(tmp_path / "p.toml", source, tmp_path / "target",
                          extra="\n[options]\ndry_run = true\n")
        config = load_config(path)
        assert config.options.dry_run is True
        assert not (tmp_path / "target").exists()

    def test_dry_run_override(self, tmp_path, source):
        path = write_toml(tmp_path / "p.toml", source, tmp_path / "target")
        config = load_config(path, dry_run=True)
        assert config.options.dry_run is True
        assert not (tmp_path / "target").exists()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestCli:
    def test_successful_run(self, tmp_path, source):
        path = write_toml(tmp_path / "p.toml", source, tmp_path / "target")
        assert cli.main(["--config", str(path)]) == cli.EXIT_OK
        assert len(list((tmp_path / "target" / "hours").iterdir())) == 1
        assert len(list((tmp_path / "target" / "days").iterdir())) == 1

    def test_dry_run_flag(self, tmp_path, source):
        path = write_toml(tmp_path / "p.toml", source, tmp_path / "target")
        assert cli.main(["--config", str(path), "--dry-run"]) == cli.EXIT_OK
        assert not (tmp_path / "target").exists()

    def test_config_error_exit_status(self, tmp_path, capsys):
        status = cli.main(["--config", str(tmp_path / "absent.toml")])
        assert status == cli.EXIT_CONFIG_ERROR
        assert "configuration error" in capsys.readouterr().err

    def test_tier_failure_exit_status(self, tmp_path, source, capsys):
        target = tmp_path / "target"
        target.mkdir()
        (target / "hours").write_text("blocking file")
        path = write_toml(tmp_path / "p.toml", source, target)

        status = cli.main(["--config", str(path), "--log-level", "error"])

        assert status == cli.EXIT_TIER_FAILED
        assert "hours" in capsys.readouterr().err
        assert len(list((target / "days").iterdir())) == 1

    def test_invalid_log_level_rejected(self):
        with pytest.raises(SystemExit):
            cli.main(["--log-level", "loud"])
