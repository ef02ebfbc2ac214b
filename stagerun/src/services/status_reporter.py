"""
Record finished pipeline runs in the audit database.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stagerun.src.config import get_settings
from stagerun.src.models.db import Base, PipelineRun, PipelineStage
from stagerun.src.models.run import RunResult

logger = logging.getLogger(__name__)

class StatusReporter:
    def __init__(self, database_url: Optional[str] = None):
        self.engine = create_engine(database_url or get_settings().database_url)
        self.SessionLocal = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)

    def record_run(self, result: RunResult, context: Optional[Dict[str, str]] = None):
        """Persist a finished run and all of its stages."""
        with self.SessionLocal() as session:
            run = PipelineRun(
                id=result.run_id,
                pipeline=result.pipeline,
                status=result.status.value,
                failing_stage=result.failing_stage,
                error_kind=result.error_kind,
                failure_reason=result.failure_reason,
                context=context,
                started_at=result.started_at,
                finished_at=result.finished_at,
            )
            for stage in result.stages:
                run.stages.append(PipelineStage(
                    name=stage.name,
                    target=stage.target.value,
                    status=stage.status.value,
                    stage_order=stage.ordinal,
                    exit_code=stage.exit_code,
                    error_kind=stage.error_kind,
                    stdout=stage.stdout,
                    stderr=stage.stderr,
                    started_at=stage.started_at,
                    finished_at=stage.finished_at,
                ))
            session.add(run)
            session.commit()
            logger.info(f"Recorded run {result.run_id} with status {result.status.value}")

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self.SessionLocal() as session:
            run = session.get(PipelineRun, run_id)
            if run is None:
                return None
            return {
                "id": run.id,
                "pipeline": run.pipeline,
                "status": run.status,
                "failing_stage": run.failing_stage,
                "error_kind": run.error_kind,
                "stages": [
                    {"order": s.stage_order, "name": s.name, "status": s.status}
                    for s in run.stages
                ],
            }

    def get_run_stages(self, run_id: str) -> List[Dict[str, Any]]:
        with self.SessionLocal() as session:
            stages = session.query(PipelineStage).filter(
                PipelineStage.run_id == run_id
            ).order_by(PipelineStage.stage_order).all()

            return [
                {
                    "order": s.stage_order,
                    "name": s.name,
                    "target": s.target,
                    "status": s.status,
                    "exit_code": s.exit_code,
                }
                for s in stages
            ]

@lru_cache()
def get_status_reporter() -> StatusReporter:
    """Process-wide reporter for the configured audit database."""
    return StatusReporter()
