"""
Run-level results consumed by notifiers and the audit store.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from stagerun.src.models.stage import StageResult

class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class RunResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    pipeline: str
    status: RunStatus
    stages: List[StageResult] = []
    executed: List[str] = []
    failing_stage: Optional[str] = None
    failing_ordinal: Optional[int] = None
    error_kind: Optional[str] = None
    failure_reason: Optional[str] = None
    started_at: datetime
    finished_at: datetime

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def stage(self, name: str) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def stderr_tail(self, lines: int = 20) -> str:
        """Last lines of the failing stage's stderr."""
        if not self.failing_stage:
            return ""
        stage = self.stage(self.failing_stage)
        if stage is None or not stage.stderr:
            return ""
        return "\n".join(stage.stderr.rstrip().splitlines()[-lines:])
