"""
Credential resolution for remote transports.

Only credential identifiers live in pipeline data. The store turns an
identifier into an identity file path for ssh at the moment a remote
stage runs; the key material itself is never read here.
"""

import logging
import os
import re
from typing import Optional, Protocol

from stagerun.src.config import get_settings
from stagerun.src.errors import TransportError

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

class CredentialStore(Protocol):
    def resolve(self, credential_id: str) -> str: ...

class DirectoryCredentialStore:
    """Maps credential ids to key files inside a directory."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = os.path.expanduser(directory or get_settings().credentials_dir)

    def resolve(self, credential_id: str) -> str:
        if not _SAFE_ID.match(credential_id or ""):
            raise TransportError(f"Invalid credential id '{credential_id}'")

        path = os.path.join(self.directory, credential_id)
        if not os.path.isfile(path):
            raise TransportError(f"Credential '{credential_id}' not found in store")

        logger.debug(f"Resolved credential {credential_id}")
        return path
