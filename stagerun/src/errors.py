"""
Error kinds raised while loading, running and reporting pipelines.
"""

from typing import Iterable, Optional

class StagerunError(Exception):
    """Base class for all pipeline errors."""
    kind = "InternalError"

class PipelineConfigError(StagerunError):
    """Raised when pipeline configuration is invalid."""
    kind = "PipelineConfigError"

class MissingConfig(StagerunError):
    """Raised when required context keys are absent."""
    kind = "MissingConfig"

    def __init__(self, keys: Iterable[str], stage: Optional[str] = None):
        self.keys = sorted(set(keys))
        self.stage = stage
        message = f"Missing required config: {', '.join(self.keys)}"
        if stage:
            message += f" (needed by stage '{stage}')"
        super().__init__(message)

class CommandFailure(StagerunError):
    """A stage command exited non-zero."""
    kind = "CommandFailure"

    def __init__(self, message: str, exit_code: int = 1):
        self.exit_code = exit_code
        super().__init__(message)

class CommandTimeout(CommandFailure):
    kind = "Timeout"

    def __init__(self, command: str, timeout: float, stdout: str = "", stderr: str = ""):
        self.command = command
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Command timed out after {timeout}s: {command}", exit_code=124)

class TransportError(StagerunError):
    """Remote session could not be established or authenticated."""
    kind = "TransportError"

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)

class NotificationFailure(StagerunError):
    kind = "NotificationFailure"

class Cancelled(StagerunError):
    kind = "Cancelled"
