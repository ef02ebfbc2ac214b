"""
SSH session helpers for remote stages.
"""

import shlex
from typing import Dict, List, Optional

from stagerun.src.errors import TransportError

# ssh exits 255 when the session itself fails
SSH_TRANSPORT_EXIT = 255

AUTH_MARKERS = (
    "permission denied",
    "authentication failed",
    "too many authentication failures",
    "host key verification failed",
    "no such identity",
)

CONNECT_MARKERS = (
    "could not resolve hostname",
    "connection refused",
    "connection timed out",
    "no route to host",
    "network is unreachable",
    "connection closed by",
    "connection reset",
)

def build_ssh_command(
    host: str,
    user: str,
    identity_file: str,
    port: int = 22,
    ssh_binary: str = "ssh",
    connect_timeout: int = 10,
) -> List[str]:
    """Build the ssh argv that reads a script from stdin."""
    return [
        ssh_binary,
        "-i", identity_file,
        "-p", str(port),
        "-o", "BatchMode=yes",
        "-o", "IdentitiesOnly=yes",
        "-o", f"ConnectTimeout={connect_timeout}",
        "-o", "StrictHostKeyChecking=accept-new",
        f"{user}@{host}",
        "/bin/sh -s",
    ]

def build_remote_script(commands: List[str], env: Optional[Dict[str, str]] = None) -> str:
    """
    Batch the command list into one script.
    The script stops at the first failing command. The body is a single
    group so the shell reads all of it before running anything, and its
    stdin is closed so no command can consume the rest of the script.
    """
    lines = ["set -e", "{"]
    for key, value in sorted((env or {}).items()):
        lines.append(f"export {key}={shlex.quote(value)}")
    lines.extend(commands)
    lines.append("} < /dev/null")
    return "\n".join(lines) + "\n"

def classify_transport_failure(exit_code: int, stderr: str) -> Optional[TransportError]:
    """
    Return a TransportError if ssh failed before the script could run,
    None if the exit code belongs to the remote commands.
    """
    if exit_code != SSH_TRANSPORT_EXIT:
        return None

    text = (stderr or "").lower()
    tail = stderr.strip().splitlines()[-1] if stderr and stderr.strip() else ""

    if any(marker in text for marker in AUTH_MARKERS):
        return TransportError(f"Authentication rejected: {tail}", retryable=False)

    retryable = any(marker in text for marker in CONNECT_MARKERS)
    return TransportError(f"SSH session failed: {tail or 'exit 255'}", retryable=retryable)
