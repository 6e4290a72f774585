"""Tests for the CLI interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from ctxgraph.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def initialized_project(tmp_project: Path) -> Path:
    runner = CliRunner()
    result = runner.invoke(main, ["init", "--path", str(tmp_project)])
    assert result.exit_code == 0, f"Init failed: {result.output}"
    return tmp_project


@pytest.fixture
def ingested_project(initialized_project: Path) -> Path:
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["ingest", str(initialized_project / "docs"), "--path", str(initialized_project)],
    )
    assert result.exit_code == 0, f"Ingest failed: {result.output}"
    return initialized_project


class TestCLIInit:
    def test_init_creates_config(self, runner: CliRunner, tmp_project: Path):
        result = runner.invoke(main, ["init", "--path", str(tmp_project)])
        assert result.exit_code == 0
        assert "Initializing" in result.output
        assert (tmp_project / ".ctxgraph" / "config.json").exists()

    def test_init_with_scope(self, runner: CliRunner, tmp_project: Path):
        runner.invoke(main, ["init", "--path", str(tmp_project), "--scope", "notes"])
        data = json.loads((tmp_project / ".ctxgraph" / "config.json").read_text())
        assert data["default_scope"] == "notes"

    def test_init_nonexistent_path(self, runner: CliRunner):
        result = runner.invoke(main, ["init", "--path", "/nonexistent/path"])
        assert result.exit_code != 0


class TestCLIIngest:
    def test_ingest_directory(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(
            main, ["ingest", str(initialized_project / "docs"), "--path", str(initialized_project)]
        )
        assert result.exit_code == 0
        assert "Ingested 3 file(s)" in result.output
        assert (initialized_project / ".ctxgraph" / "graph.db").exists()

    def test_ingest_nothing(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(
            main, ["ingest", str(initialized_project / "missing"), "--path", str(initialized_project)]
        )
        assert result.exit_code != 0

    def test_ingest_accumulates_across_runs(self, runner: CliRunner, ingested_project: Path):
        extra = ingested_project / "extra.md"
        extra.write_text("Login tokens are rotated hourly.\n")
        result = runner.invoke(main, ["ingest", str(extra), "--path", str(ingested_project)])
        assert result.exit_code == 0

        result = runner.invoke(main, ["status", "--path", str(ingested_project)])
        assert "default" in result.output


class TestCLIStatus:
    def test_status(self, runner: CliRunner, ingested_project: Path):
        result = runner.invoke(main, ["status", "--path", str(ingested_project)])
        assert result.exit_code == 0
        assert "Nodes" in result.output

    def test_status_before_ingest(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(main, ["status", "--path", str(initialized_project)])
        assert result.exit_code == 0
        assert "Nothing ingested" in result.output


class TestCLISearch:
    def test_search(self, runner: CliRunner, ingested_project: Path):
        result = runner.invoke(main, ["search", "login error", "--path", str(ingested_project)])
        assert result.exit_code == 0
        assert "auth" in result.output

    def test_search_no_results(self, runner: CliRunner, ingested_project: Path):
        result = runner.invoke(main, ["search", "kubernetes", "--path", str(ingested_project)])
        assert result.exit_code == 0
        assert "No results" in result.output


class TestCLIContext:
    def test_context(self, runner: CliRunner, ingested_project: Path):
        result = runner.invoke(
            main, ["context", "login error", "--budget", "2000", "--path", str(ingested_project)]
        )
        assert result.exit_code == 0
        assert "login form" in result.output

    def test_context_all_nodes(self, runner: CliRunner, ingested_project: Path):
        result = runner.invoke(
            main,
            ["context", "backups", "--all-nodes", "--order", "relevance", "--path", str(ingested_project)],
        )
        assert result.exit_code == 0
        assert "cold storage" in result.output

    def test_context_tiny_budget(self, runner: CliRunner, ingested_project: Path):
        result = runner.invoke(
            main, ["context", "login error", "--budget", "1", "--path", str(ingested_project)]
        )
        assert result.exit_code == 0
        assert "No nodes fit" in result.output


class TestCLIChunk:
    def test_chunk(self, runner: CliRunner, tmp_project: Path):
        result = runner.invoke(main, ["chunk", str(tmp_project / "docs" / "auth.md")])
        assert result.exit_code == 0
        assert "fragments" in result.output

    def test_chunk_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, ["chunk", str(tmp_path / "nope.md")])
        assert result.exit_code != 0


class TestCLIConfig:
    def test_show(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(main, ["config", "show", "--path", str(initialized_project)])
        assert result.exit_code == 0
        assert "default_scope" in result.output

    def test_set_and_get(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(
            main, ["config", "set", "search.max_depth", "5", "--path", str(initialized_project)]
        )
        assert result.exit_code == 0

        result = runner.invoke(
            main, ["config", "get", "search.max_depth", "--path", str(initialized_project)]
        )
        assert "search.max_depth = 5" in result.output

    def test_unknown_key(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(
            main, ["config", "set", "search.nope", "1", "--path", str(initialized_project)]
        )
        assert result.exit_code != 0


class TestCLIVersion:
    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "ctxgraph" in result.output
