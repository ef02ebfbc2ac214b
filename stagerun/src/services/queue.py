"""
Redis queue service for pipeline runs.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis

from stagerun.src.config import get_settings

def get_redis_client() -> redis.Redis:
    """Get Redis client."""
    return redis.from_url(get_settings().redis_url, decode_responses=True)

def enqueue_pipeline_run(pipeline: Dict[str, Any], context: Dict[str, str], run_id: Optional[str] = None) -> str:
    """Add pipeline run to processing queue. Returns the run id."""
    settings = get_settings()
    client = get_redis_client()
    run_id = run_id or uuid.uuid4().hex[:12]

    job = {
        "run_id": run_id,
        "pipeline": pipeline,
        "context": context,
        "queued_at": datetime.now(timezone.utc).isoformat(),
    }

    try:
        client.lpush(settings.queue_name, json.dumps(job))
        client.hset(settings.status_key, run_id, "queued")
    finally:
        client.close()

    return run_id

def dequeue_pipeline_run(timeout: int = 5) -> Optional[Dict[str, Any]]:
    """
    Get next pipeline run from queue.
    Blocks for `timeout` seconds if queue is empty.
    """
    client = get_redis_client()

    try:
        result = client.brpop(get_settings().queue_name, timeout=timeout)
        if result:
            _, job_data = result
            return json.loads(job_data)
        return None
    finally:
        client.close()

def update_run_status(run_id: str, status: str):
    """Update pipeline run status in Redis."""
    client = get_redis_client()

    try:
        client.hset(get_settings().status_key, run_id, status)
    finally:
        client.close()

def get_run_status(run_id: str) -> Optional[str]:
    """Get pipeline run status from Redis."""
    client = get_redis_client()

    try:
        return client.hget(get_settings().status_key, run_id)
    finally:
        client.close()

def get_queue_length() -> int:
    """Get number of jobs in queue."""
    client = get_redis_client()

    try:
        return client.llen(get_settings().queue_name)
    finally:
        client.close()
