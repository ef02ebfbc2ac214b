"""
Stage executors - run a stage's commands locally or over SSH.
"""

import logging
import os
import shutil
import subprocess
import tempfile
import time
import venv
from typing import Dict, List, Optional, Protocol

from stagerun.src.config import get_settings
from stagerun.src.errors import CommandTimeout, TransportError
from stagerun.src.models.context import EnvironmentContext
from stagerun.src.models.stage import ExecResult
from stagerun.src.remote import (
    build_remote_script,
    build_ssh_command,
    classify_transport_failure,
)
from stagerun.src.services.credentials import CredentialStore, DirectoryCredentialStore

logger = logging.getLogger(__name__)

def _partial_output(data) -> str:
    """Output captured before a timeout; bytes even in text mode."""
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data

DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"

class Executor(Protocol):
    def execute(
        self,
        commands: List[str],
        context: EnvironmentContext,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> ExecResult: ...

    def close(self) -> None: ...

class LocalExecutor:
    """
    Runs commands in a workspace created fresh for this executor.
    One executor serves one run; close() removes the workspace.
    """

    def __init__(self, workspace_root: Optional[str] = None, use_venv: Optional[bool] = None):
        settings = get_settings()
        root = workspace_root or settings.workspace_root
        if root:
            os.makedirs(root, exist_ok=True)
        self.workspace = tempfile.mkdtemp(prefix="stagerun_", dir=root)
        self.use_venv = settings.local_venv if use_venv is None else use_venv
        self.default_timeout = settings.command_timeout
        self._venv_bin: Optional[str] = None

        if self.use_venv:
            self._create_venv()

        logger.info(f"Created workspace {self.workspace}")

    def _create_venv(self):
        venv_dir = os.path.join(self.workspace, ".venv")
        venv.create(venv_dir, with_pip=True)
        self._venv_bin = os.path.join(venv_dir, "bin")

    def build_env(self, context: EnvironmentContext, env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Scrubbed environment: nothing leaks in from the host or a prior run."""
        path = os.environ.get("PATH", DEFAULT_PATH)
        if self._venv_bin:
            path = f"{self._venv_bin}{os.pathsep}{path}"

        values = {
            "PATH": path,
            "HOME": self.workspace,
            "TMPDIR": self.workspace,
            "STAGERUN_WORKSPACE": self.workspace,
        }
        if self._venv_bin:
            values["VIRTUAL_ENV"] = os.path.dirname(self._venv_bin)

        values.update(context.as_env())
        values.update(env or {})
        return values

    def execute(
        self,
        commands: List[str],
        context: EnvironmentContext,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> ExecResult:
        run_env = self.build_env(context, env)
        timeout = timeout or self.default_timeout
        stdout: List[str] = []
        stderr: List[str] = []

        for command in commands:
            logger.debug(f"Running: {command}")
            try:
                proc = subprocess.run(
                    ["/bin/sh", "-c", command],
                    cwd=self.workspace,
                    env=run_env,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise CommandTimeout(
                    command,
                    timeout,
                    stdout="".join(stdout) + _partial_output(e.stdout),
                    stderr="".join(stderr) + _partial_output(e.stderr),
                )

            stdout.append(proc.stdout)
            stderr.append(proc.stderr)

            if proc.returncode != 0:
                logger.warning(f"Command exited {proc.returncode}: {command}")
                return ExecResult(
                    exit_code=proc.returncode,
                    stdout="".join(stdout),
                    stderr="".join(stderr),
                )

        return ExecResult(exit_code=0, stdout="".join(stdout), stderr="".join(stderr))

    def close(self):
        shutil.rmtree(self.workspace, ignore_errors=True)
        logger.info(f"Removed workspace {self.workspace}")

class RemoteExecutor:
    """
    Runs commands on remote_host as remote_user over ssh.
    The command list is sent as one batched script on stdin.
    """

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
    ):
        settings = get_settings()
        self.credentials = credentials or DirectoryCredentialStore()
        self.retries = settings.transport_retries if retries is None else retries
        self.backoff = settings.transport_backoff if backoff is None else backoff
        self.ssh_binary = settings.ssh_binary
        self.connect_timeout = settings.ssh_connect_timeout
        self.default_timeout = settings.command_timeout

    def _run_session(self, argv: List[str], script: str, timeout: int) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                argv,
                input=script,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            raise TransportError(f"ssh client not found: {argv[0]}")
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(
                f"ssh {argv[-2]}",
                timeout,
                stdout=_partial_output(e.stdout),
                stderr=_partial_output(e.stderr),
            )

    def execute(
        self,
        commands: List[str],
        context: EnvironmentContext,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> ExecResult:
        host = context.resolve("remote_host")
        user = context.resolve("remote_user")
        credential_id = context.resolve("credential_id")
        port = int(context.get("remote_port", "22"))
        timeout = timeout or self.default_timeout

        script_env = context.as_env()
        script_env.update(env or {})
        script = build_remote_script(commands, script_env)

        attempt = 0
        while True:
            # Resolved per attempt, never cached
            identity = self.credentials.resolve(credential_id)
            argv = build_ssh_command(
                host,
                user,
                identity,
                port=port,
                ssh_binary=self.ssh_binary,
                connect_timeout=self.connect_timeout,
            )

            logger.info(f"Opening ssh session to {user}@{host}:{port}")
            proc = self._run_session(argv, script, timeout)

            error = classify_transport_failure(proc.returncode, proc.stderr)
            if error is None:
                return ExecResult(exit_code=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)

            if not error.retryable or attempt >= self.retries:
                logger.error(f"Transport to {host} failed: {error}")
                raise error

            delay = self.backoff * (2 ** attempt)
            attempt += 1
            logger.warning(f"Transport to {host} failed ({error}), retry {attempt}/{self.retries} in {delay}s")
            time.sleep(delay)

    def close(self):
        pass
