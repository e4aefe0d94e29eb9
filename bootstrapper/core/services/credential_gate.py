"""
Credential gate — obtain and validate the repository token.

Resolution order:
    explicit parameter  >  environment variable  >  masked prompt

The format check is advisory: a token that does not look like a GitHub
token triggers a warning and, when a human is present, an explicit
confirmation. The liveness check is not advisory: exactly one request
to the repository metadata endpoint, and anything but 2xx is fatal.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping

import click

from bootstrapper.core.models.credential import Credential, CredentialSource
from bootstrapper.core.services.github_api import ApiResponse, get_repository

logger = logging.getLogger(__name__)

TOKEN_PREFIXES = ("ghp_", "github_pat_", "gho_", "ghu_", "ghs_")

Liveness = Callable[[str, str, float], ApiResponse]


class CredentialError(Exception):
    """The credential is missing, rejected, or could not be checked. Always fatal."""


def looks_like_token(token: str) -> bool:
    return token.startswith(TOKEN_PREFIXES)


def _liveness_message(repository: str, response: ApiResponse) -> str:
    status = response.status
    if status == 0:
        return f"Could not reach GitHub to validate the token: {response.error}"
    if status == 401:
        return "GitHub rejected the token (HTTP 401). Check that it is valid and not expired."
    if status == 403:
        return f"Token lacks access to {repository} (HTTP 403)."
    if status == 404:
        return f"Repository {repository} not found, or the token has no access to it (HTTP 404)."
    return f"Unexpected response from GitHub while validating the token (HTTP {status})."


class CredentialGate:
    """Acquire a credential once per run.

    Args:
        repository: ``owner/name`` used for the liveness check.
        token_env: Environment variable consulted after the parameter.
        interactive: Whether prompting and confirmation are allowed.
        prompt, confirm: Click-compatible input functions.
        liveness: Callable doing the single metadata request.
        environ: Environment mapping (defaults to ``os.environ``).
    """

    def __init__(
        self,
        repository: str,
        token_env: str = "GITHUB_TOKEN",
        interactive: bool = True,
        prompt: Callable[..., str] = click.prompt,
        confirm: Callable[..., bool] = click.confirm,
        liveness: Liveness = get_repository,
        environ: Mapping[str, str] | None = None,
        timeout: float = 15.0,
    ):
        self._repository = repository
        self._token_env = token_env
        self._interactive = interactive
        self._prompt = prompt
        self._confirm = confirm
        self._liveness = liveness
        self._environ = os.environ if environ is None else environ
        self._timeout = timeout
        self.liveness_calls = 0

    def obtain(self, presupplied: str | None = None) -> Credential:
        """Resolve, check and validate the token.

        Raises:
            CredentialError: on missing token, declined format, or failed liveness.
        """
        token, source = self._resolve(presupplied)
        credential = Credential(token=token, source=source)

        self.liveness_calls += 1
        logger.info("Validating access to %s", self._repository)
        response = self._liveness(self._repository, token, self._timeout)
        if not response.ok:
            raise CredentialError(_liveness_message(self._repository, response))

        credential.valid = True
        credential.identity = str(response.data.get("full_name") or self._repository)
        logger.info("Token accepted for %s (source: %s)", credential.identity, source.value)
        return credential

    # ── Resolution ──────────────────────────────────────────────

    def _resolve(self, presupplied: str | None) -> tuple[str, CredentialSource]:
        if presupplied and presupplied.strip():
            token = presupplied.strip()
            self._check_format(token, CredentialSource.PARAMETER)
            return token, CredentialSource.PARAMETER

        env_value = self._environ.get(self._token_env, "").strip()
        if env_value:
            self._check_format(env_value, CredentialSource.ENVIRONMENT)
            return env_value, CredentialSource.ENVIRONMENT

        if not self._interactive:
            raise CredentialError(
                f"No GitHub token supplied. Pass --token or set {self._token_env}."
            )
        return self._prompt_loop(), CredentialSource.PROMPT

    def _prompt_loop(self) -> str:
        while True:
            try:
                value = self._prompt(
                    "GitHub token", hide_input=True, default="", show_default=False,
                )
            except click.exceptions.Abort as e:
                raise CredentialError("Token entry aborted.") from e

            value = (value or "").strip()
            if not value:
                logger.warning("Token cannot be empty.")
                continue
            if not looks_like_token(value) and not self._confirm_format():
                continue
            return value

    def _check_format(self, token: str, source: CredentialSource) -> None:
        if looks_like_token(token):
            return
        if not self._interactive:
            logger.warning(
                "Token from %s does not look like a GitHub token; validating anyway.",
                source.value,
            )
            return
        if not self._confirm_format():
            raise CredentialError("Token format not confirmed.")

    def _confirm_format(self) -> bool:
        logger.warning(
            "Token does not match a known GitHub format (%s).", ", ".join(TOKEN_PREFIXES),
        )
        try:
            return bool(self._confirm("Continue anyway?", default=False))
        except click.exceptions.Abort:
            return False
