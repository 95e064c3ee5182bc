"""Tests for CLI commands."""

import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from cortexmap.cli import cli
from cortexmap.engine import CortexEngine


runner = CliRunner()

GRAPH = {
    "nodes": [
        {"id": "n1", "text": "root", "role": "plan"},
        {"id": "n2", "text": "child", "role": "evidence", "parent_id": "n1"},
    ],
    "edges": [{"id": "e1", "source": "n1", "target": "n2", "edge_type": "supports"}],
}


def _seed(tmpdir: str, graph: dict = GRAPH, message: str = "initial") -> str:
    engine = CortexEngine(Path(tmpdir))
    engine.save_graph(graph)
    commit_id = engine.create_commit("agentA", message)["id"]
    engine.close()
    return commit_id


def test_init():
    with tempfile.TemporaryDirectory() as tmpdir:
        data_dir = Path(tmpdir) / "store"
        result = runner.invoke(cli, ["--data-path", str(data_dir), "init"])
        assert result.exit_code == 0
        assert "Initialized" in result.output
        assert (data_dir / "cortex_map.db").exists()

        again = runner.invoke(cli, ["--data-path", str(data_dir), "init"])
        assert again.exit_code == 0
        assert "Already initialized" in again.output


def test_status_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(cli, ["--data-path", tmpdir, "status"])
        assert result.exit_code == 0
        assert "No commits yet" in result.output


def test_status_with_data():
    with tempfile.TemporaryDirectory() as tmpdir:
        _seed(tmpdir)
        result = runner.invoke(cli, ["--data-path", tmpdir, "status"])
        assert result.exit_code == 0
        assert "2" in result.output
        assert "initial" in result.output
        assert "Snapshots: 1" in result.output


def test_import_and_show():
    with tempfile.TemporaryDirectory() as tmpdir:
        graph_file = Path(tmpdir) / "graph.json"
        graph_file.write_text(json.dumps(GRAPH))

        result = runner.invoke(cli, ["--data-path", tmpdir, "import", str(graph_file)])
        assert result.exit_code == 0
        assert "Imported 2 nodes, 1 edges" in result.output

        shown = runner.invoke(cli, ["--data-path", tmpdir, "show", "--json"])
        assert shown.exit_code == 0
        data = json.loads(shown.output)
        assert {n["id"] for n in data["nodes"]} == {"n1", "n2"}

        table = runner.invoke(cli, ["--data-path", tmpdir, "show"])
        assert table.exit_code == 0
        assert "Nodes: 2, Edges: 1" in table.output


def test_import_invalid_graph_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        graph_file = Path(tmpdir) / "graph.json"
        graph_file.write_text(json.dumps({"nodes": [{"id": "n", "text": "t", "role": "daydream"}]}))

        result = runner.invoke(cli, ["--data-path", tmpdir, "import", str(graph_file)])
        assert result.exit_code == 1
        assert "validation_failure" in result.output


def test_import_malformed_json_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        graph_file = Path(tmpdir) / "graph.json"
        graph_file.write_text("{nope")

        result = runner.invoke(cli, ["--data-path", tmpdir, "import", str(graph_file)])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output


def test_commit_and_log():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(
            cli, ["--data-path", tmpdir, "commit", "-m", "first commit", "--agent", "planner"]
        )
        assert result.exit_code == 0
        assert "first commit" in result.output

        log = runner.invoke(cli, ["--data-path", tmpdir, "log"])
        assert log.exit_code == 0
        assert "planner" in log.output
        assert "(root)" in log.output

        oneline = runner.invoke(cli, ["--data-path", tmpdir, "log", "--oneline"])
        assert oneline.exit_code == 0
        assert "first commit" in oneline.output


def test_commit_uses_agent_from_environment():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(
            cli, ["--data-path", tmpdir, "commit", "-m", "env agent"],
            env={"CORTEXMAP_AGENT": "env-bot"},
        )
        assert result.exit_code == 0

        log = runner.invoke(cli, ["--data-path", tmpdir, "log", "--json"])
        assert json.loads(log.output)[0]["agent_id"] == "env-bot"


def test_log_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(cli, ["--data-path", tmpdir, "log"])
        assert result.exit_code == 0
        assert "No commits" in result.output


def test_log_json_and_limit():
    with tempfile.TemporaryDirectory() as tmpdir:
        _seed(tmpdir, message="one")
        _seed(tmpdir, message="two")

        result = runner.invoke(cli, ["--data-path", tmpdir, "log", "--json", "-n", "1"])
        assert result.exit_code == 0
        commits = json.loads(result.output)
        assert len(commits) == 1
        assert commits[0]["message"] == "two"


def test_log_since():
    with tempfile.TemporaryDirectory() as tmpdir:
        _seed(tmpdir)
        recent = runner.invoke(cli, ["--data-path", tmpdir, "log", "--json", "--since", "1 hour ago"])
        assert recent.exit_code == 0
        assert len(json.loads(recent.output)) == 1

        future = runner.invoke(cli, ["--data-path", tmpdir, "log", "--json", "--since", "2999-01-01"])
        assert future.exit_code == 0
        assert json.loads(future.output) == []


def test_log_since_unparseable():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(cli, ["--data-path", tmpdir, "log", "--since", "whenever"])
        assert result.exit_code == 1
        assert "Cannot parse time reference" in result.output


def test_restore():
    with tempfile.TemporaryDirectory() as tmpdir:
        commit_id = _seed(tmpdir)
        engine = CortexEngine(Path(tmpdir))
        engine.save_graph({"nodes": [], "edges": []})
        engine.close()

        result = runner.invoke(cli, ["--data-path", tmpdir, "restore", commit_id])
        assert result.exit_code == 0
        assert "2 nodes, 1 edges" in result.output

        engine = CortexEngine(Path(tmpdir))
        assert len(engine.read_graph()["nodes"]) == 2
        engine.close()


def test_restore_unknown_commit():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(cli, ["--data-path", tmpdir, "restore", "nonexistent-id"])
        assert result.exit_code == 1
        assert "not_found" in result.output


def test_show_commit_and_export():
    with tempfile.TemporaryDirectory() as tmpdir:
        commit_id = _seed(tmpdir)
        engine = CortexEngine(Path(tmpdir))
        engine.save_graph({"nodes": [], "edges": []})
        engine.close()

        shown = runner.invoke(cli, ["--data-path", tmpdir, "show", "--commit", commit_id, "--json"])
        assert shown.exit_code == 0
        assert len(json.loads(shown.output)["nodes"]) == 2

        out_file = Path(tmpdir) / "export.json"
        exported = runner.invoke(
            cli, ["--data-path", tmpdir, "export", "--commit", commit_id, "-o", str(out_file)]
        )
        assert exported.exit_code == 0
        assert len(json.loads(out_file.read_text())["edges"]) == 1

        live = runner.invoke(cli, ["--data-path", tmpdir, "export"])
        assert json.loads(live.output) == {"nodes": [], "edges": []}


def test_lineage():
    with tempfile.TemporaryDirectory() as tmpdir:
        _seed(tmpdir, message="first")
        second = _seed(tmpdir, message="second")

        result = runner.invoke(cli, ["--data-path", tmpdir, "lineage", second])
        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if line.strip()]
        assert len(lines) == 2
        assert "second" in lines[0]
        assert "first" in lines[1]
