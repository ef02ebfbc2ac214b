from stagerun.src.models.context import (
    EnvironmentContext,
    load_context,
    parse_overrides,
)
from stagerun.src.models.stage import (
    StageStatus,
    Target,
    ExecResult,
    StageDefinition,
    StageResult,
    Stage,
    define,
)
from stagerun.src.models.run import RunStatus, RunResult
from stagerun.src.models.pipeline import NotifyConfig, PipelineDefinition

__all__ = [
    "EnvironmentContext",
    "load_context",
    "parse_overrides",
    "StageStatus",
    "Target",
    "ExecResult",
    "StageDefinition",
    "StageResult",
    "Stage",
    "define",
    "RunStatus",
    "RunResult",
    "NotifyConfig",
    "PipelineDefinition",
]
