from stagerun.src.services.executor import Executor, LocalExecutor, RemoteExecutor
from stagerun.src.services.credentials import CredentialStore, DirectoryCredentialStore
from stagerun.src.services.notifier import (
    Notifier,
    LogNotifier,
    EmailNotifier,
    WebhookNotifier,
    CompositeNotifier,
    build_notifier,
    render_message,
)
from stagerun.src.services.pipeline_parser import (
    load_pipeline,
    parse_pipeline_config,
    parse_pipeline_dict,
)
from stagerun.src.services.runner import PipelineRunner, RunnerState, resolve_order, run

__all__ = [
    "Executor",
    "LocalExecutor",
    "RemoteExecutor",
    "CredentialStore",
    "DirectoryCredentialStore",
    "Notifier",
    "LogNotifier",
    "EmailNotifier",
    "WebhookNotifier",
    "CompositeNotifier",
    "build_notifier",
    "render_message",
    "load_pipeline",
    "parse_pipeline_config",
    "parse_pipeline_dict",
    "PipelineRunner",
    "RunnerState",
    "resolve_order",
    "run",
]
