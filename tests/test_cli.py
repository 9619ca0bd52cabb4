"""Tests for the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from taktak import __version__
from taktak.cli import app

runner = CliRunner()


@pytest.fixture
def write_json(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return path
    return _write


@pytest.mark.unit
class TestCLI:
    """CLI commands."""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_node_types(self):
        result = runner.invoke(app, ["node-types"])
        assert result.exit_code == 0
        assert "http_request" in result.output
        assert "csv_import" in result.output

    def test_config(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Max Loop Iterations" in result.output

    def test_run_node(self, write_json):
        node_file = write_json("node.json", {
            "id": "cond",
            "type": "condition",
            "config": {"leftValue": "{{status}}", "operator": "equals", "rightValue": "active"},
        })
        result = runner.invoke(app, ["run-node", str(node_file), "--input", '{"status": "active"}'])
        assert result.exit_code == 0
        assert '"result": true' in result.output

    def test_run_node_failure(self, write_json):
        node_file = write_json("node.json", {"id": "s", "type": "slack"})
        result = runner.invoke(app, ["run-node", str(node_file)])
        assert result.exit_code == 1
        assert "No handler for node type: slack" in result.output

    def test_run_node_bad_input(self, write_json):
        node_file = write_json("node.json", {"id": "w", "type": "webhook"})
        result = runner.invoke(app, ["run-node", str(node_file), "--input", "[1, 2]"])
        assert result.exit_code == 1
        assert "must be a JSON object" in result.output

    def test_run_workflow(self, write_json):
        workflow_file = write_json("workflow.json", {
            "_id": "wf-cli",
            "name": "CLI",
            "nodes": [
                {"id": "hook", "type": "webhook"},
                {"id": "shape", "type": "transform",
                 "config": {"transformations": [{"outputKey": "name", "expression": "{{name}}"}]}},
            ],
            "connections": [{"from": "hook", "to": "shape"}],
        })
        result = runner.invoke(app, ["run", str(workflow_file), "--input", '{"name": "Ada"}'])
        assert result.exit_code == 0
        assert '"status": "success"' in result.output
        assert '"name": "Ada"' in result.output

    def test_run_workflow_failure_exit_code(self, write_json):
        workflow_file = write_json("workflow.json", {
            "_id": "wf-bad",
            "nodes": [
                {"id": "hook", "type": "webhook"},
                {"id": "bad", "type": "csv_export", "config": {"data": 1}},
            ],
            "connections": [{"from": "hook", "to": "bad"}],
        })
        result = runner.invoke(app, ["run", str(workflow_file)])
        assert result.exit_code == 1
        assert '"status": "failed"' in result.output
