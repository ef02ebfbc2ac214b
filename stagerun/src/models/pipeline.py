"""
Pipeline definition models.
"""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict

from stagerun.src.models.stage import StageDefinition

class NotifyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    recipients: List[str] = []
    webhook_url: str = ""

class PipelineDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Unnamed Pipeline"
    stages: List[StageDefinition]
    environment: Dict[str, str] = {}
    notify: NotifyConfig = NotifyConfig()
