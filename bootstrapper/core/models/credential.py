"""
Credential model — the repository access token for one run.

The token is held as a pydantic ``SecretStr`` so it never appears in
reprs, logs, or ``model_dump`` output. Credentials are never persisted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, SecretStr


class CredentialSource(str, Enum):
    PARAMETER = "parameter"
    ENVIRONMENT = "environment"
    PROMPT = "prompt"


class Credential(BaseModel):
    token: SecretStr
    source: CredentialSource
    valid: bool = False
    identity: str = ""          # repository full name confirmed by the liveness check

    def secret(self) -> str:
        """Plain token value, for the single call site that needs it."""
        return self.token.get_secret_value()
