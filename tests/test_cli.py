"""Smoke tests for the flowforge command line."""

import json
import logging
import sys

import pytest

from flowforge import cli, config
from flowforge.storage.snapshot import export_snapshot

from .conftest import make_graph


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """No user configuration file; root logger restored after each test."""
    monkeypatch.setattr(config, "FLOWFORGE_CONFIG_FILE", tmp_path / "missing.json")
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def run_cli(monkeypatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["flowforge", *args])
    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    return exc_info.value.code


@pytest.fixture
def workflow_file(tmp_path):
    graph = make_graph(
        [
            ("A", "dataSource", {"sourceType": "csv"}),
            ("B", "filter", {"filterConditions": "{}"}),
        ]
    )
    path = tmp_path / "pipeline.json"
    path.write_text(export_snapshot(graph))
    return path


@pytest.fixture
def broken_workflow_file(tmp_path):
    graph = make_graph([("A", "dataSource", {})], with_end=False)
    path = tmp_path / "broken.json"
    path.write_text(export_snapshot(graph))
    return path


class TestValidateCommand:
    def test_valid(self, monkeypatch, capsys, workflow_file):
        assert run_cli(monkeypatch, "validate", str(workflow_file)) == 0
        assert "is valid" in capsys.readouterr().out

    def test_invalid_lists_reasons(self, monkeypatch, capsys, broken_workflow_file):
        assert run_cli(monkeypatch, "validate", str(broken_workflow_file)) == 1
        out = capsys.readouterr().out
        assert "Workflow must have an end node" in out
        assert "1 node(s) need configuration" in out

    def test_missing_file(self, monkeypatch, capsys, tmp_path):
        assert run_cli(monkeypatch, "validate", str(tmp_path / "nope.json")) == 1
        assert "Error" in capsys.readouterr().err


class TestPlanCommand:
    def test_plan_json(self, monkeypatch, capsys, workflow_file):
        assert run_cli(monkeypatch, "plan", str(workflow_file), "--json") == 0
        assert json.loads(capsys.readouterr().out) == ["A", "B", "end-1"]

    def test_plan_text(self, monkeypatch, capsys, workflow_file):
        assert run_cli(monkeypatch, "plan", str(workflow_file)) == 0
        assert "1. A [A]" in capsys.readouterr().out


class TestRunCommand:
    def test_fast_run(self, monkeypatch, capsys, workflow_file):
        assert run_cli(monkeypatch, "run", str(workflow_file), "--fast") == 0
        out = capsys.readouterr().out
        assert "✓ Workflow executed successfully (2 steps)" in out

    def test_refused_run(self, monkeypatch, capsys, broken_workflow_file):
        assert run_cli(monkeypatch, "run", str(broken_workflow_file), "--fast") == 1
        assert "Run refused" in capsys.readouterr().out


class TestTypesCommand:
    def test_lists_builtins(self, monkeypatch, capsys):
        assert run_cli(monkeypatch, "types") == 0
        out = capsys.readouterr().out
        assert "dataSource" in out
        assert "(ports: true, false)" in out

    def test_with_definitions(self, monkeypatch, capsys, tmp_path):
        feed = tmp_path / "nodes.json"
        feed.write_text(
            json.dumps(
                {"nodeDefinitions": [{"id": "sms", "type": "smsAlert", "label": "SMS"}]}
            )
        )
        assert run_cli(monkeypatch, "types", "--definitions", str(feed), "--json") == 0
        exported = json.loads(capsys.readouterr().out)
        assert "smsAlert" in [d["type"] for d in exported["nodeDefinitions"]]

    def test_bad_definitions(self, monkeypatch, capsys, tmp_path):
        feed = tmp_path / "nodes.json"
        feed.write_text("{broken")
        assert run_cli(monkeypatch, "types", "--definitions", str(feed)) == 1
