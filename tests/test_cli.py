"""
Tests for the command-line entry point.
"""
import json

import pytest

from docskel.cli import build_parser, main


@pytest.fixture
def run(tome_dir):
    """Run the CLI against the sample package in skeleton format."""
    def _run(*argv):
        return main(["--model", str(tome_dir), "--format", "skeleton", *argv])
    return _run


class TestSingleShot:
    """render, search, list and info."""

    def test_render_target(self, run, capsys):
        """render prints the target skeleton."""
        assert run("render", "version") == 0

        assert "pub fn version() -> &'static str {}" in capsys.readouterr().out

    def test_render_with_package_prefix(self, tome_dir, capsys):
        """A package path may prefix the target."""
        code = main(["--format", "skeleton", "render", f"{tome_dir}::Client::status"])

        assert code == 0
        assert "pub fn status(&self) -> u8 {}" in capsys.readouterr().out

    def test_render_unknown_target(self, run, capsys):
        """An unknown target exits 1 with an error."""
        assert run("render", "Nothing") == 1

        assert "Error:" in capsys.readouterr().err

    def test_search_json(self, run, capsys):
        """--json prints the hits as JSON."""
        assert run("search", "status", "--domains", "name", "--json") == 0

        results = json.loads(capsys.readouterr().out)
        assert [r["path"] for r in results] == ["tome::net::Client::status"]
        assert results[0]["matched"] == ["names"]

    def test_search_bad_domain(self, run):
        """An unknown domain is a usage error."""
        with pytest.raises(SystemExit):
            run("search", "status", "--domains", "bogus")

    def test_list(self, run, capsys):
        """list prints modules and types without members."""
        assert run("list") == 0

        out = capsys.readouterr().out
        assert "tome::net::Client" in out
        assert "tome::net::Client::send" not in out

    def test_info(self, run, capsys):
        """info names the package."""
        assert run("info") == 0

        assert "tome" in capsys.readouterr().out


class TestSkelebuild:
    """The skelebuild subcommands share one state file."""

    @pytest.fixture
    def skel(self, tome_dir, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        state = tmp_path / "state.json"

        def _skel(*argv):
            return main(["skelebuild", "--state-file", str(state), *argv])
        return _skel

    def test_add_rebuilds_output(self, skel, tmp_path):
        """add regenerates the output document."""
        assert skel("reset") == 0
        assert skel("add", "./tome::version") == 0

        assert "pub fn version" in (tmp_path / "skelebuild.md").read_text(encoding="utf-8")

    def test_no_rebuild(self, skel, tmp_path):
        """--no-rebuild leaves the output unwritten."""
        assert skel("--no-rebuild", "add", "./tome::version") == 0

        assert not (tmp_path / "skelebuild.md").exists()

    def test_status_keys(self, skel, tmp_path, capsys):
        """status --keys prints one plain line per entry."""
        skel("--no-rebuild", "add", "./tome::version")
        skel("--no-rebuild", "inject", "Intro", "--label", "intro", "--after", "START")
        capsys.readouterr()

        assert skel("status", "--keys") == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "0  injection  intro"
        assert lines[1].startswith("1  target  ")
        assert lines[1].endswith("tome::version")

    def test_bad_reference_exits_nonzero(self, skel, capsys):
        """An unknown entry exits 1 and points at status --keys."""
        skel("--no-rebuild", "add", "./tome::version")

        assert skel("remove", "no-such-entry") == 1
        assert "status --keys" in capsys.readouterr().err

    def test_corrupt_state(self, skel, tmp_path):
        """A corrupt state blocks commands until reset."""
        (tmp_path / "state.json").write_text("{oops", encoding="utf-8")

        assert skel("status") == 1
        assert skel("reset") == 0
        assert skel("status") == 0


class TestParser:
    """Argument parsing."""

    def test_target_flags_default_to_sticky(self):
        """Unset target flags defer to the sticky state."""
        args = build_parser().parse_args(["skelebuild", "add", "x::y"])

        assert args.implementation is None
        assert args.private is None

    def test_target_flags_negated(self):
        """--no-implementation sets the flag to False."""
        args = build_parser().parse_args(["skelebuild", "update", "y", "--no-implementation"])

        assert args.implementation is False
