"""
Queue worker - pulls pipeline runs from Redis and executes them.
"""

import logging
import time
from typing import Any, Dict

from redis.exceptions import RedisError

from stagerun.src.errors import StagerunError
from stagerun.src.models.context import EnvironmentContext
from stagerun.src.models.run import RunResult
from stagerun.src.services.pipeline_parser import parse_pipeline_dict
from stagerun.src.services.queue import dequeue_pipeline_run, update_run_status
from stagerun.src.services.runner import PipelineRunner

logger = logging.getLogger(__name__)

def process_job(job: Dict[str, Any], **runner_options) -> RunResult:
    """Validate and run one queued job, mirroring its status into Redis."""
    run_id = job["run_id"]
    definition = parse_pipeline_dict(job["pipeline"])
    context = EnvironmentContext.from_mapping({**definition.environment, **(job.get("context") or {})})

    update_run_status(run_id, "running")
    result = PipelineRunner(**runner_options).run(definition, context, run_id=run_id)
    update_run_status(run_id, result.status.value)
    return result

def worker_loop(max_jobs: int = 0):
    """Main worker loop. max_jobs=0 runs until interrupted."""
    logger.info("Worker started, waiting for jobs...")
    processed = 0

    while True:
        try:
            job = dequeue_pipeline_run()

            if job:
                run_id = job.get("run_id", "unknown")
                logger.info(f"Received job for run {run_id}")

                try:
                    process_job(job)
                except StagerunError as e:
                    logger.error(f"Rejected job {run_id}: {e}")
                    update_run_status(run_id, "failed")
                except Exception as e:
                    logger.exception(f"Failed to execute pipeline {run_id}: {e}")
                    if "run_id" in job:
                        update_run_status(run_id, "failed")

                processed += 1
                if max_jobs and processed >= max_jobs:
                    break

        except KeyboardInterrupt:
            logger.info("Worker shutting down...")
            break
        except RedisError as e:
            logger.exception(f"Worker error: {e}")
            time.sleep(5)
