"""Tests for the CLI argument parser and dispatch."""

import argparse
from pathlib import Path

import pytest

from sherpakit.cli.parser import CLI
from sherpakit.cli.utils import OPTION_ENV, environ_with_overrides


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("sherpakit.cli.parser.configure_logging", lambda *args: None)


class TestParseArgs:
    """Tests for argument parsing."""

    def test_build_options(self):
        args = CLI().parse_args(
            ["build", "--target", "aarch64-apple-darwin", "--features", "tts", "--json"]
        )
        assert args.command == "build"
        assert args.target == "aarch64-apple-darwin"
        assert args.features == "tts"
        assert args.json is True
        assert args.from_source is False

    def test_global_options(self, tmp_path):
        args = CLI().parse_args(["-v", "--project-root", str(tmp_path), "resolve"])
        assert args.verbose is True
        assert args.project_root == tmp_path
        assert args.dist is None

    def test_path_options(self):
        args = CLI().parse_args(["build", "--out-dir", "out", "--lib-path", "libs"])
        assert args.out_dir == Path("out")
        assert args.lib_path == Path("libs")

    def test_cache_list_and_clean_exclusive(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["cache", "--list", "--clean"])

    def test_digest_options(self):
        args = CLI().parse_args(["digest", "--tag", "v1.12.10", "--keep-going"])
        assert args.tag == "v1.12.10"
        assert args.keep_going is True


class TestRun:
    """Tests for CLI.run."""

    def test_no_command(self, capsys):
        assert CLI().run([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_sherpakit_error_returns_1(self, tmp_path, capsys, monkeypatch):
        for variable in OPTION_ENV.values():
            monkeypatch.delenv(variable, raising=False)

        code = CLI().run(
            ["--project-root", str(tmp_path), "build", "--features", "download-binaries,bogus"]
        )

        assert code == 1
        assert "ERROR: Unknown feature" in capsys.readouterr().err

    def test_keyboard_interrupt(self, monkeypatch):
        def interrupted(args):
            raise KeyboardInterrupt

        monkeypatch.setattr("sherpakit.cli.commands.cache.run", interrupted)
        assert CLI().run(["cache"]) == 130

    def test_dispatches_to_command_module(self, monkeypatch):
        seen = []
        monkeypatch.setattr(
            "sherpakit.cli.commands.digest.run", lambda args: seen.append(args.tag) or 0
        )

        assert CLI().run(["digest", "--tag", "v2"]) == 0
        assert seen == ["v2"]


class TestEnvironWithOverrides:
    """Tests for mapping command-line options onto the environment."""

    def test_options_override_environment(self, monkeypatch):
        monkeypatch.setenv("SHERPA_TARGET", "x86_64-pc-windows-msvc")
        args = argparse.Namespace(
            target="aarch64-linux-android",
            features=None,
            out_dir=Path("out"),
            from_source=True,
        )

        environ = environ_with_overrides(args)

        assert environ["SHERPA_TARGET"] == "aarch64-linux-android"
        assert environ["SHERPA_OUT_DIR"] == "out"
        assert environ["SHERPA_BUILD_FROM_SOURCE"] == "1"

    def test_missing_options_keep_environment(self, monkeypatch):
        monkeypatch.setenv("SHERPA_FEATURES", "tts")
        monkeypatch.delenv("SHERPA_BUILD_FROM_SOURCE", raising=False)

        environ = environ_with_overrides(argparse.Namespace())

        assert environ["SHERPA_FEATURES"] == "tts"
        assert "SHERPA_BUILD_FROM_SOURCE" not in environ
