"""Tests for the reflinker command line."""

from __future__ import annotations

from click.testing import CliRunner

from reflinker.cli import cli
from reflinker.dotnet.solution import SolutionDocument


class TestSwapCommand:
    def test_swap_to_local_project(self, repo):
        runner = CliRunner()

        result = runner.invoke(cli, ["swap", "Widgets", "--slndir", str(repo / "app")])

        assert result.exit_code == 0, result.output
        assert "Swapped" in result.output
        assert "local project" in result.output
        sln = SolutionDocument.load(str(repo / "app" / "App.sln"))
        assert sln.find_project("Widgets") is not None

    def test_swap_back_to_package(self, repo):
        runner = CliRunner()
        runner.invoke(cli, ["swap", "Widgets", "-s", str(repo / "app")])

        result = runner.invoke(cli, ["swap", "Widgets", "-s", str(repo / "app")])

        assert result.exit_code == 0, result.output
        assert "NuGet" in result.output

    def test_unknown_project_fails(self, repo):
        runner = CliRunner()
        before = (repo / "app" / "App.sln").read_bytes()

        result = runner.invoke(cli, ["swap", "Gadgets", "-s", str(repo / "app")])

        assert result.exit_code == 1
        assert "error" in result.output
        assert (repo / "app" / "App.sln").read_bytes() == before

    def test_hidden_test_flag_redirects_writes(self, repo):
        runner = CliRunner()
        before = (repo / "app" / "App.sln").read_bytes()

        result = runner.invoke(cli, ["swap", "Widgets", "-s", str(repo / "app"), "--test"])

        assert result.exit_code == 0, result.output
        assert (repo / "app" / "App.test.sln").is_file()
        assert (repo / "app" / "App.sln").read_bytes() == before

    def test_missing_slndir_rejected(self, tmp_path):
        runner = CliRunner()

        result = runner.invoke(cli, ["swap", "Widgets", "-s", str(tmp_path / "nope")])

        assert result.exit_code == 2

    def test_help_lists_swap(self):
        runner = CliRunner()

        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "swap" in result.output
        assert "--test" not in runner.invoke(cli, ["swap", "--help"]).output
