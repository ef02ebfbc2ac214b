"""
Pipeline runner - drives stages in dependency order with fail-fast semantics.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from stagerun.src.config import get_settings
from stagerun.src.errors import Cancelled, MissingConfig, NotificationFailure, PipelineConfigError
from stagerun.src.models.context import EnvironmentContext
from stagerun.src.models.pipeline import PipelineDefinition
from stagerun.src.models.run import RunResult, RunStatus
from stagerun.src.models.stage import Stage, StageDefinition, StageStatus, Target
from stagerun.src.services.executor import Executor, LocalExecutor, RemoteExecutor
from stagerun.src.services.notifier import Notifier, build_notifier

logger = logging.getLogger(__name__)

class RunnerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

ExecutorFactory = Callable[[Target], Executor]

def default_executor_factory(target: Target) -> Executor:
    if target == Target.REMOTE:
        return RemoteExecutor()
    return LocalExecutor()

def resolve_order(definition: PipelineDefinition) -> List[StageDefinition]:
    """
    Topologically sort stages. A stage without 'depends_on' depends on the
    stage declared before it. Ties keep declaration order.
    """
    stages = definition.stages
    index = {s.name: i for i, s in enumerate(stages)}
    deps: Dict[str, List[str]] = {}

    for i, stage in enumerate(stages):
        if stage.depends_on is None:
            deps[stage.name] = [stages[i - 1].name] if i > 0 else []
        else:
            for dep in stage.depends_on:
                if dep not in index:
                    raise PipelineConfigError(f"Stage '{stage.name}' depends on unknown stage '{dep}'")
                if dep == stage.name:
                    raise PipelineConfigError(f"Stage '{stage.name}' depends on itself")
            deps[stage.name] = list(stage.depends_on)

    ordered: List[StageDefinition] = []
    done = set()
    remaining = list(stages)

    while remaining:
        ready = next((s for s in remaining if all(d in done for d in deps[s.name])), None)
        if ready is None:
            cycle = ", ".join(s.name for s in remaining)
            raise PipelineConfigError(f"Dependency cycle between stages: {cycle}")
        ordered.append(ready)
        done.add(ready.name)
        remaining.remove(ready)

    return ordered

class PipelineRunner:
    """
    Runs one pipeline once.

    idle -> running -> succeeded | failed. Stages run one at a time; the
    first failed stage ends the run and later stages stay pending. The
    notifier is called exactly once whatever the outcome.
    """

    def __init__(
        self,
        executor_factory: Optional[ExecutorFactory] = None,
        notifier: Optional[Notifier] = None,
        reporter=None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.executor_factory = executor_factory or default_executor_factory
        self.notifier = notifier
        self.reporter = reporter
        self.cancel_event = cancel_event
        self.state = RunnerState.IDLE
        self.stages: List[Stage] = []

    def _plan(self, definition: PipelineDefinition, context: EnvironmentContext) -> List[Stage]:
        stages = [Stage(d, i + 1) for i, d in enumerate(resolve_order(definition))]
        for stage in stages:
            context.require(stage.definition.required_keys(), stage=stage.name)
        return stages

    def run(
        self,
        definition: PipelineDefinition,
        context: EnvironmentContext,
        run_id: Optional[str] = None,
    ) -> RunResult:
        if self.state != RunnerState.IDLE:
            raise RuntimeError(f"Runner already used (state {self.state.value})")

        run_id = run_id or uuid.uuid4().hex[:12]
        started_at = datetime.now(timezone.utc)
        executors: Dict[Target, Executor] = {}
        executed: List[str] = []
        failing: Optional[Stage] = None
        error_kind: Optional[str] = None
        reason: Optional[str] = None

        logger.info(f"Starting pipeline {definition.name} run {run_id} with {len(definition.stages)} stages")

        try:
            self.stages = self._plan(definition, context)
            self.state = RunnerState.RUNNING

            for stage in self.stages:
                if self.cancel_event is not None and self.cancel_event.is_set():
                    error = Cancelled(f"Run cancelled before stage '{stage.name}'")
                    error_kind, reason = error.kind, str(error)
                    logger.warning(reason)
                    break

                if stage.definition.target not in executors:
                    executors[stage.definition.target] = self.executor_factory(stage.definition.target)
                executor = executors[stage.definition.target]

                logger.info(f"Executing stage {stage.ordinal}: {stage.name} ({stage.definition.target.value})")
                status = stage.run(executor, context)
                executed.append(stage.name)

                if status == StageStatus.FAILED:
                    failing = stage
                    error_kind, reason = stage.error_kind, stage.error
                    logger.error(f"Stage {stage.ordinal} ({stage.name}) failed: {error_kind}: {reason}")
                    break

                logger.info(f"Stage {stage.ordinal} ({stage.name}) succeeded in {stage.duration:.2f}s")

        except (PipelineConfigError, MissingConfig) as e:
            error_kind, reason = e.kind, str(e)
            logger.error(f"Pipeline {definition.name} aborted before any stage ran: {e}")
        except Exception as e:
            logger.exception(f"Pipeline {definition.name} run {run_id} aborted")
            error_kind, reason = "InternalError", str(e)
        finally:
            for executor in executors.values():
                try:
                    executor.close()
                except OSError as e:
                    logger.warning(f"Failed to clean up executor: {e}")

        succeeded = error_kind is None
        self.state = RunnerState.SUCCEEDED if succeeded else RunnerState.FAILED

        result = RunResult(
            run_id=run_id,
            pipeline=definition.name,
            status=RunStatus.SUCCEEDED if succeeded else RunStatus.FAILED,
            stages=[s.to_result() for s in self.stages],
            executed=executed,
            failing_stage=failing.name if failing else None,
            failing_ordinal=failing.ordinal if failing else None,
            error_kind=error_kind,
            failure_reason=reason,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

        logger.info(f"Pipeline run {run_id} finished with status: {result.status.value}")

        self._report(result, context)
        self._notify(definition, result)
        return result

    def _report(self, result: RunResult, context: EnvironmentContext):
        reporter = self.reporter
        if reporter is None and get_settings().audit_enabled:
            from stagerun.src.services.status_reporter import get_status_reporter
            reporter = get_status_reporter()
        if reporter is None:
            return

        try:
            reporter.record_run(result, context.to_dict())
        except Exception:
            logger.exception(f"Failed to record run {result.run_id}")

    def _notify(self, definition: PipelineDefinition, result: RunResult):
        notifier = self.notifier or build_notifier(
            definition.notify.recipients,
            definition.notify.webhook_url,
        )
        try:
            notifier.notify(result)
        except NotificationFailure as e:
            logger.error(f"Notification for run {result.run_id} failed: {e}")
        except Exception:
            logger.exception(f"Notification for run {result.run_id} failed")

def run(definition: PipelineDefinition, context: EnvironmentContext, **runner_options) -> int:
    """Run a pipeline and return the process exit code."""
    result = PipelineRunner(**runner_options).run(definition, context)
    return result.exit_code
