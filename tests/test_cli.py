"""Tests for the command-line entry point."""

import json

import pytest

from remote_config.cli import build_parser, main
from remote_config.services.config.cache import ConfigCache


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        f"cache:\n  data_dir: {tmp_path / 'data'}\n"
        "defaults:\n  cdnUrl: https://old.cdn/\n  retries: 3\n",
        encoding="utf-8",
    )
    return path


def _output(capsys):
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


class TestGet:
    def test_reads_persisted_snapshot(self, tmp_path, settings_file, capsys):
        ConfigCache(tmp_path / "data").save({"cdnUrl": "https://new.cdn/"})

        assert main(["--config", str(settings_file), "get", "cdnUrl"]) == 0
        assert _output(capsys) == {"key": "cdnUrl", "type": "string", "value": "https://new.cdn/"}

    def test_falls_back_to_defaults(self, settings_file, capsys):
        assert main(["--config", str(settings_file), "get", "retries", "--type", "int"]) == 0
        assert _output(capsys) == {"key": "retries", "type": "int", "value": 3}

    def test_bool_type(self, tmp_path, settings_file, capsys):
        ConfigCache(tmp_path / "data").save({"beta": "enabled"})

        assert main(["--config", str(settings_file), "get", "beta", "--type", "bool"]) == 0
        assert _output(capsys)["value"] is True


class TestErrors:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_fetch_without_endpoint(self, settings_file, capsys):
        assert main(["--config", str(settings_file), "fetch"]) == 1
        assert _output(capsys)["success"] is False

    def test_negative_cache_limit(self, settings_file, capsys):
        assert main(["--config", str(settings_file), "--cache-limit", "-1", "get", "cdnUrl"]) == 1
        assert _output(capsys)["success"] is False


class TestParser:
    def test_fetch_keys(self):
        args = build_parser().parse_args(["fetch", "--key", "a", "--key", "b"])
        assert args.command == "fetch"
        assert args.keys == ["a", "b"]

    def test_invalid_type_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["get", "a", "--type", "float"])
