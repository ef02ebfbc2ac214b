"""Tests for the command line entry point."""

import pytest

from stagerun.src import main as cli

PIPELINE = """
name: cli
stages:
  - name: hello
    commands:
      - echo "hello $BRANCH"
  - name: check
    commands:
      - test "$BRANCH" = "{branch}"
"""

@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level=None: None)

@pytest.fixture
def pipeline_file(tmp_path):
    def write(branch):
        path = tmp_path / "pipeline.yml"
        path.write_text(PIPELINE.format(branch=branch))
        return str(path)
    return write

def test_run_succeeds(pipeline_file, capsys):
    code = cli.main(["run", pipeline_file("main"), "--set", "branch=main"])
    assert code == 0
    assert "succeeded" in capsys.readouterr().out

def test_run_fails_with_exit_code(pipeline_file, capsys):
    code = cli.main(["run", pipeline_file("release"), "--set", "branch=main"])
    assert code == 1
    assert "FAILED: CommandFailure" in capsys.readouterr().out

def test_run_invalid_pipeline(tmp_path):
    path = tmp_path / "pipeline.yml"
    path.write_text("name: empty\n")
    assert cli.main(["run", str(path)]) == cli.EXIT_INVALID

def test_validate_prints_order(tmp_path, capsys):
    path = tmp_path / "pipeline.yml"
    path.write_text(
        "stages:\n"
        "  - {name: deploy, commands: [d], depends_on: [build]}\n"
        "  - {name: build, commands: [b], depends_on: []}\n"
    )
    assert cli.main(["validate", str(path)]) == 0
    out = capsys.readouterr().out
    assert out.index("build") < out.index("deploy")

def test_enqueue(pipeline_file, monkeypatch, capsys):
    queued = []

    def fake_enqueue(pipeline, context):
        queued.append((pipeline, context))
        return "run-42"

    monkeypatch.setattr("stagerun.src.services.queue.enqueue_pipeline_run", fake_enqueue)
    code = cli.main(["enqueue", pipeline_file("main"), "--set", "branch=main"])

    assert code == 0
    assert capsys.readouterr().out.strip() == "run-42"
    assert queued[0][0]["name"] == "cli"
    assert queued[0][1]["branch"] == "main"

def test_status(monkeypatch, capsys):
    monkeypatch.setattr("stagerun.src.services.queue.get_run_status", lambda run_id: "running")
    monkeypatch.setattr("stagerun.src.services.queue.get_queue_length", lambda: 3)

    assert cli.main(["status", "run-42"]) == 0
    assert capsys.readouterr().out.strip() == "run-42: running (queue length 3)"
