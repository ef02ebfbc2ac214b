"""
Stage descriptors and runtime records.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from stagerun.src.errors import StagerunError
from stagerun.src.models.context import REMOTE_KEYS, EnvironmentContext
from stagerun.src.remote.deploy import DeploySpec, build_deploy_commands

logger = logging.getLogger(__name__)

class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class Target(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"

class ExecResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

class StageDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    commands: List[str] = []
    target: Target = Target.LOCAL
    depends_on: Optional[List[str]] = None  # None means "the previous stage"
    requires: List[str] = []
    env: Dict[str, str] = {}
    timeout: Optional[int] = None
    deploy: Optional[DeploySpec] = None

    def required_keys(self) -> List[str]:
        keys = list(self.requires)
        if self.target == Target.REMOTE:
            keys.extend(k for k in REMOTE_KEYS if k not in keys)
        return keys

    def all_commands(self) -> List[str]:
        """Deploy script (if any) followed by the stage's own commands."""
        commands = build_deploy_commands(self.deploy) if self.deploy else []
        return commands + list(self.commands)

def define(
    name: str,
    commands: List[str],
    target: Target = Target.LOCAL,
    **options,
) -> StageDefinition:
    return StageDefinition(name=name, commands=commands, target=Target(target), **options)

class StageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ordinal: int
    name: str
    target: Target
    status: StageStatus
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    error_kind: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

class Stage:
    """Runtime record of a stage, driven through its states by the runner."""

    def __init__(self, definition: StageDefinition, ordinal: int):
        self.definition = definition
        self.ordinal = ordinal
        self.status = StageStatus.PENDING
        self.exit_code: Optional[int] = None
        self.stdout = ""
        self.stderr = ""
        self.error_kind: Optional[str] = None
        self.error: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def duration(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def run(self, executor, context: EnvironmentContext) -> StageStatus:
        if self.status != StageStatus.PENDING:
            raise RuntimeError(f"Stage '{self.name}' already {self.status.value}")

        self.status = StageStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

        try:
            result = executor.execute(
                self.definition.all_commands(),
                context,
                env=self.definition.env,
                timeout=self.definition.timeout,
            )
            self.exit_code = result.exit_code
            self.stdout = result.stdout
            self.stderr = result.stderr

            if result.ok:
                self.status = StageStatus.SUCCEEDED
            else:
                self.status = StageStatus.FAILED
                self.error_kind = "CommandFailure"
                self.error = f"Command exited with status {result.exit_code}"
        except StagerunError as e:
            self.status = StageStatus.FAILED
            self.error_kind = e.kind
            self.error = str(e)
            self.exit_code = getattr(e, "exit_code", None)
            partial_stdout = getattr(e, "stdout", "")
            partial_stderr = getattr(e, "stderr", "")
            if partial_stdout:
                self.stdout = partial_stdout
            if partial_stderr and not partial_stderr.endswith("\n"):
                partial_stderr += "\n"
            self.stderr = (partial_stderr or self.stderr) + str(e)
        except Exception as e:
            logger.exception(f"Stage {self.name} failed with unexpected exception")
            self.status = StageStatus.FAILED
            self.error_kind = "InternalError"
            self.error = str(e)
        finally:
            self.finished_at = datetime.now(timezone.utc)

        return self.status

    def to_result(self) -> StageResult:
        return StageResult(
            ordinal=self.ordinal,
            name=self.name,
            target=self.definition.target,
            status=self.status,
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr=self.stderr,
            error_kind=self.error_kind,
            error=self.error,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )
