"""Bot token retrieval from Infisical (universal auth + raw secret read)."""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Optional

import httpx

from .config import ConfigError, InfisicalSettings
from .constants import INFISICAL_SITE_URL, REQUEST_TIMEOUT_S

logger = logging.getLogger(__name__)


def split_key_path(key_path: str) -> tuple[str, str]:
    """Split `/telegram/BOT_TOKEN` into (secret path, secret key)."""
    normalized = "/" + key_path.strip().strip("/")
    secret_path = posixpath.dirname(normalized) or "/"
    secret_key = posixpath.basename(normalized)
    if not secret_key:
        raise ConfigError(f"Invalid Infisical key path: {key_path!r}")
    return secret_path, secret_key


def _json(resp: httpx.Response, what: str) -> dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError as e:
        raise ConfigError(f"{what}: invalid response (HTTP {resp.status_code})") from e
    if resp.is_error:
        message = payload.get("message") if isinstance(payload, dict) else None
        raise ConfigError(f"{what}: HTTP {resp.status_code}: {message or payload}")
    if not isinstance(payload, dict):
        raise ConfigError(f"{what}: unexpected response {payload!r}")
    return payload


def fetch_bot_token(
    settings: InfisicalSettings,
    *,
    site_url: str = INFISICAL_SITE_URL,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    secret_path, secret_key = split_key_path(settings.bot_token_key_path)
    logger.debug(
        "[secrets] fetching %s from project=%s env=%s",
        settings.bot_token_key_path,
        settings.project_id,
        settings.environment,
    )
    try:
        with httpx.Client(
            base_url=site_url, timeout=REQUEST_TIMEOUT_S, transport=transport
        ) as client:
            login = _json(
                client.post(
                    "/api/v1/auth/universal-auth/login",
                    json={
                        "clientId": settings.client_id,
                        "clientSecret": settings.client_secret,
                    },
                ),
                "Failed to authenticate with Infisical",
            )
            access_token = login.get("accessToken")
            if not isinstance(access_token, str) or not access_token:
                raise ConfigError(
                    "Failed to authenticate with Infisical: no access token returned"
                )

            body = _json(
                client.get(
                    f"/api/v3/secrets/raw/{secret_key}",
                    params={
                        "workspaceId": settings.project_id,
                        "environment": settings.environment,
                        "secretPath": secret_path,
                        "type": settings.secret_type,
                    },
                    headers={"Authorization": f"Bearer {access_token}"},
                ),
                "Failed to retrieve telegram bot token from Infisical",
            )
    except httpx.HTTPError as e:
        raise ConfigError(f"Failed to reach Infisical: {e}") from e

    secret = body.get("secret") or {}
    value = secret.get("secretValue") if isinstance(secret, dict) else None
    if not isinstance(value, str) or not value:
        raise ConfigError(
            f"Infisical secret {settings.bot_token_key_path} has no value"
        )
    return value
