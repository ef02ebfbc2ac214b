from stagerun.src.remote.ssh import (
    build_ssh_command,
    build_remote_script,
    classify_transport_failure,
)
from stagerun.src.remote.deploy import (
    DeploySpec,
    build_deploy_commands,
    stop_command,
)

__all__ = [
    "build_ssh_command",
    "build_remote_script",
    "classify_transport_failure",
    "DeploySpec",
    "build_deploy_commands",
    "stop_command",
]
