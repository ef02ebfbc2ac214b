"""
Remote deploy script builder.

Produces the command list a remote stage runs to replace a deployed app:
stage the new artifact next to the live one, install its dependencies,
stop the old process through its PID file, swap directories and launch
the new process detached with its output going to a log file.
"""

import shlex
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

DEFAULT_SOURCE = 'git clone --depth 1 --branch "$BRANCH" "$REPO_URL" {target}'

class DeploySpec(BaseModel):
    """Paths must be absolute; the script changes directory before launching."""

    model_config = ConfigDict(frozen=True)

    app_dir: str
    start_command: str
    source: str = DEFAULT_SOURCE
    install_command: Optional[str] = (
        "python3 -m venv .venv && .venv/bin/pip install -r requirements.txt"
    )
    log_file: Optional[str] = None
    pid_file: Optional[str] = None

    @property
    def staging_dir(self) -> str:
        return f"{self.app_dir}.new"

    @property
    def previous_dir(self) -> str:
        return f"{self.app_dir}.prev"

    @property
    def resolved_log_file(self) -> str:
        return self.log_file or f"{self.app_dir}.log"

    @property
    def resolved_pid_file(self) -> str:
        return self.pid_file or f"{self.app_dir}.pid"

def stop_command(pid_file: str) -> str:
    """Stop the process recorded in pid_file if it is still alive."""
    pid = shlex.quote(pid_file)
    return (
        f"if [ -f {pid} ] && kill -0 \"$(cat {pid})\" 2>/dev/null; "
        f"then kill \"$(cat {pid})\"; fi; rm -f {pid}"
    )

def build_deploy_commands(spec: DeploySpec) -> List[str]:
    app = shlex.quote(spec.app_dir)
    staging = shlex.quote(spec.staging_dir)
    previous = shlex.quote(spec.previous_dir)
    log_file = shlex.quote(spec.resolved_log_file)
    pid_file = shlex.quote(spec.resolved_pid_file)

    commands = [
        f"rm -rf {staging}",
        spec.source.replace("{target}", staging),
    ]
    if spec.install_command:
        commands.append(f"cd {staging} && {spec.install_command}")

    commands.extend([
        stop_command(spec.resolved_pid_file),
        f"rm -rf {previous}",
        f"if [ -d {app} ]; then mv {app} {previous}; fi",
        f"mv {staging} {app}",
        f"cd {app}",
        # Detached; the session only waits for nohup to fork
        f"nohup {spec.start_command} > {log_file} 2>&1 < /dev/null &",
        f"echo $! > {pid_file}",
    ])
    return commands
