"""Shared fixtures for stagerun tests."""

import pytest

from stagerun.src.errors import TransportError
from stagerun.src.models.context import EnvironmentContext
from stagerun.src.models.pipeline import PipelineDefinition
from stagerun.src.models.stage import ExecResult, Target, define

class FakeExecutor:
    """Returns canned exit codes per command and records what ran."""

    def __init__(self, exit_codes=None, raises=None):
        self.exit_codes = exit_codes or {}
        self.raises = raises or {}
        self.calls = []
        self.closed = False

    def execute(self, commands, context, env=None, timeout=None):
        self.calls.append(list(commands))
        for command in commands:
            if command in self.raises:
                raise self.raises[command]
            code = self.exit_codes.get(command, 0)
            if code != 0:
                return ExecResult(exit_code=code, stdout="", stderr=f"{command} broke\n")
        return ExecResult(exit_code=0, stdout=" ".join(commands), stderr="")

    def executed(self):
        return [c for call in self.calls for c in call]

    def close(self):
        self.closed = True

class RecordingNotifier:
    def __init__(self):
        self.results = []

    def notify(self, result):
        self.results.append(result)

@pytest.fixture
def context():
    return EnvironmentContext(
        repo_url="https://example.com/app.git",
        branch="main",
        remote_host="deploy.example.com",
        remote_user="deployer",
        credential_id="deploy-key",
    )

@pytest.fixture
def build_pipeline():
    """clone, install, test run locally; deploy runs remotely."""
    return PipelineDefinition(
        name="webapp",
        stages=[
            define("clone", ["clone"]),
            define("install", ["install"]),
            define("test", ["test"]),
            define("deploy", ["deploy"], Target.REMOTE),
        ],
    )

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def auth_error():
    return TransportError("Authentication rejected: Permission denied (publickey).")
