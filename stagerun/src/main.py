"""
stagerun - Main entry point.
"""

import argparse
import logging
import sys
from typing import List, Optional

from stagerun.src.config import get_settings
from stagerun.src.errors import StagerunError
from stagerun.src.models.context import load_context, parse_overrides
from stagerun.src.services.pipeline_parser import load_pipeline, read_pipeline_file, validate_config
from stagerun.src.services.runner import PipelineRunner, resolve_order

logger = logging.getLogger(__name__)

EXIT_INVALID = 2

def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

def cmd_run(args: argparse.Namespace) -> int:
    try:
        definition = load_pipeline(args.pipeline)
        context = load_context(
            args.context,
            overrides=parse_overrides(args.set),
            defaults=definition.environment,
        )
    except StagerunError as e:
        logger.error(f"Cannot start pipeline: {e}")
        return EXIT_INVALID

    result = PipelineRunner().run(definition, context)
    for stage in result.stages:
        print(f"{stage.ordinal:>3}  {stage.name:20s} {stage.status.value}")
    if not result.succeeded:
        print(f"FAILED: {result.error_kind}: {result.failure_reason}")
    return result.exit_code

def cmd_validate(args: argparse.Namespace) -> int:
    try:
        definition = load_pipeline(args.pipeline)
        ordered = resolve_order(definition)
    except StagerunError as e:
        print(f"Invalid pipeline: {e}")
        return EXIT_INVALID

    print(f"Pipeline: {definition.name}")
    for i, stage in enumerate(ordered, start=1):
        print(f"{i:>3}  {stage.name:20s} {stage.target.value}")
    return 0

def cmd_enqueue(args: argparse.Namespace) -> int:
    from stagerun.src.services.queue import enqueue_pipeline_run

    try:
        raw = read_pipeline_file(args.pipeline)
        definition = validate_config(raw)
        resolve_order(definition)
        context = load_context(args.context, overrides=parse_overrides(args.set))
    except StagerunError as e:
        print(f"Invalid pipeline: {e}")
        return EXIT_INVALID

    run_id = enqueue_pipeline_run(raw, context.to_dict())
    print(run_id)
    return 0

def cmd_status(args: argparse.Namespace) -> int:
    from stagerun.src.services.queue import get_queue_length, get_run_status

    status = get_run_status(args.run_id)
    print(f"{args.run_id}: {status or 'unknown'} (queue length {get_queue_length()})")
    return 0 if status else 1

def cmd_worker(args: argparse.Namespace) -> int:
    from stagerun.src.worker import worker_loop

    logger.info(f"Redis URL: {get_settings().redis_url}")
    worker_loop(max_jobs=args.max_jobs)
    return 0

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stagerun", description="Run build and deploy pipelines.")
    p.add_argument("--log-level", default=None, help="Override STAGERUN_LOG_LEVEL")
    sub = p.add_subparsers(dest="command", required=True)

    def add_context_args(sp: argparse.ArgumentParser):
        sp.add_argument("--context", default=None, help="YAML file with context values")
        sp.add_argument("--set", action="append", default=[], metavar="KEY=VALUE",
                        help="Context override, may be repeated")

    sp = sub.add_parser("run", help="Run a pipeline now")
    sp.add_argument("pipeline")
    add_context_args(sp)
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("validate", help="Check a pipeline and print its stage order")
    sp.add_argument("pipeline")
    sp.set_defaults(func=cmd_validate)

    sp = sub.add_parser("enqueue", help="Queue a pipeline run for a worker")
    sp.add_argument("pipeline")
    add_context_args(sp)
    sp.set_defaults(func=cmd_enqueue)

    sp = sub.add_parser("status", help="Show the status of a queued run")
    sp.add_argument("run_id")
    sp.set_defaults(func=cmd_status)

    sp = sub.add_parser("worker", help="Process queued runs")
    sp.add_argument("--max-jobs", type=int, default=0)
    sp.set_defaults(func=cmd_worker)

    return p

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
