"""
Pipeline YAML parser and validator.
"""

import os
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from stagerun.src.errors import PipelineConfigError
from stagerun.src.models.pipeline import NotifyConfig, PipelineDefinition
from stagerun.src.models.stage import StageDefinition, Target
from stagerun.src.remote.deploy import DeploySpec

def read_pipeline_file(path: str) -> Dict[str, Any]:
    """Read a pipeline file without validating it."""
    if not os.path.exists(path):
        raise PipelineConfigError(f"Pipeline file not found: {path}")

    with open(path, "r") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise PipelineConfigError(f"Invalid YAML: {e}")

def load_pipeline(path: str) -> PipelineDefinition:
    """Read and validate a pipeline file."""
    return validate_config(read_pipeline_file(path))

def parse_pipeline_config(yaml_content: str) -> PipelineDefinition:
    """Parse pipeline YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_pipeline_dict(config: Dict[str, Any]) -> PipelineDefinition:
    """Validate pipeline configuration from dict."""
    return validate_config(config)

def validate_config(config: Optional[Dict[str, Any]]) -> PipelineDefinition:
    """Validate pipeline configuration structure."""
    if not config:
        raise PipelineConfigError("Empty pipeline configuration")

    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")

    name = config.get("name", "Unnamed Pipeline")
    if not isinstance(name, str):
        raise PipelineConfigError("Pipeline 'name' must be a string")

    if "stages" not in config:
        raise PipelineConfigError("Pipeline must have 'stages' defined")

    stages = config["stages"]
    if not isinstance(stages, list):
        raise PipelineConfigError("Pipeline 'stages' must be a list")

    if len(stages) == 0:
        raise PipelineConfigError("Pipeline must have at least one stage")

    validated_stages = []
    seen = set()
    for i, stage in enumerate(stages):
        validated_stage = validate_stage(stage, i)
        if validated_stage.name in seen:
            raise PipelineConfigError(f"Stage {i} duplicates name '{validated_stage.name}'")
        seen.add(validated_stage.name)
        validated_stages.append(validated_stage)

    environment = config.get("environment", {}) or {}
    if not isinstance(environment, dict):
        raise PipelineConfigError("Pipeline 'environment' must be a dictionary")

    return PipelineDefinition(
        name=name,
        stages=validated_stages,
        environment={str(k): str(v) for k, v in environment.items()},
        notify=validate_notify(config.get("notify")),
    )

def validate_stage(stage: Dict[str, Any], index: int) -> StageDefinition:
    """Validate a single pipeline stage."""
    if not isinstance(stage, dict):
        raise PipelineConfigError(f"Stage {index} must be a dictionary")

    if "name" not in stage:
        raise PipelineConfigError(f"Stage {index} missing 'name'")

    if "commands" not in stage and "deploy" not in stage:
        raise PipelineConfigError(f"Stage {index} missing 'commands'")

    if not isinstance(stage["name"], str):
        raise PipelineConfigError(f"Stage {index} 'name' must be a string")

    commands = stage.get("commands", [])
    if not isinstance(commands, list):
        raise PipelineConfigError(f"Stage {index} 'commands' must be a list")

    for j, cmd in enumerate(commands):
        if not isinstance(cmd, str):
            raise PipelineConfigError(f"Stage {index} command {j} must be a string")

    target = stage.get("target", Target.LOCAL.value)
    if target not in (t.value for t in Target):
        raise PipelineConfigError(f"Stage {index} 'target' must be 'local' or 'remote'")

    depends_on = stage.get("depends_on")
    if isinstance(depends_on, str):
        depends_on = [depends_on]
    if depends_on is not None and not isinstance(depends_on, list):
        raise PipelineConfigError(f"Stage {index} 'depends_on' must be a list")

    env = stage.get("env") or {}
    if not isinstance(env, dict):
        raise PipelineConfigError(f"Stage {index} 'env' must be a dictionary")

    deploy = None
    if "deploy" in stage:
        if target != Target.REMOTE.value:
            raise PipelineConfigError(f"Stage {index} 'deploy' requires target 'remote'")
        deploy = validate_deploy(stage["deploy"], index)

    try:
        return StageDefinition(
            name=stage["name"],
            commands=commands,
            target=Target(target),
            depends_on=depends_on,
            requires=stage.get("requires", []),
            env={str(k): str(v) for k, v in env.items()},
            timeout=stage.get("timeout"),
            deploy=deploy,
        )
    except ValidationError as e:
        raise PipelineConfigError(f"Stage {index} is invalid: {e}")

def validate_deploy(deploy: Dict[str, Any], index: int) -> DeploySpec:
    if not isinstance(deploy, dict):
        raise PipelineConfigError(f"Stage {index} 'deploy' must be a dictionary")

    for key in ("app_dir", "start_command"):
        if key not in deploy:
            raise PipelineConfigError(f"Stage {index} deploy missing '{key}'")

    for key in ("app_dir", "log_file", "pid_file"):
        value = deploy.get(key)
        if value is not None and not str(value).startswith("/"):
            raise PipelineConfigError(f"Stage {index} deploy '{key}' must be an absolute path")

    try:
        return DeploySpec(**deploy)
    except ValidationError as e:
        raise PipelineConfigError(f"Stage {index} deploy is invalid: {e}")

def validate_notify(notify: Optional[Dict[str, Any]]) -> NotifyConfig:
    if notify is None:
        return NotifyConfig()

    if not isinstance(notify, dict):
        raise PipelineConfigError("Pipeline 'notify' must be a dictionary")

    recipients = notify.get("recipients", [])
    if isinstance(recipients, str):
        recipients = [recipients]

    try:
        return NotifyConfig(**{**notify, "recipients": recipients})
    except ValidationError as e:
        raise PipelineConfigError(f"Pipeline 'notify' is invalid: {e}")
