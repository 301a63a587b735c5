"""Search credential lookup through the secrets cache sidecar or the secret store."""
import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

import boto3
import httpx
from botocore.exceptions import ClientError
from pydantic import ValidationError

from .config import Settings
from .errors import (
    ConfigurationError,
    CredentialsMalformed,
    CredentialsNotFound,
    InvalidVersionSelector,
)
from .models import Credentials

logger = logging.getLogger(__name__)

SECRETS_TOKEN_HEADER = "X-Aws-Parameters-Secrets-Token"
CACHE_GET_PATH = "/secretsmanager/get"


def version_params(
    version_id: Optional[str] = None, version_stage: Optional[str] = None
) -> Dict[str, str]:
    if version_id and version_stage:
        raise InvalidVersionSelector(
            "Specify either a version id or a version stage, not both"
        )
    if version_id:
        return {"VersionId": version_id}
    if version_stage:
        return {"VersionStage": version_stage}
    return {}


class SecretLookup(Protocol):
    async def get_secret_string(
        self, secret_id: str, version: Dict[str, str]
    ) -> Optional[str]:
        ...


class CachedLookup:
    """Reads secrets from the local secrets cache sidecar over HTTP."""

    def __init__(self, client: httpx.AsyncClient, session_token: str, port: int):
        self.client = client
        self.session_token = session_token
        self.port = port

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}{CACHE_GET_PATH}"

    async def get_secret_string(
        self, secret_id: str, version: Dict[str, str]
    ) -> Optional[str]:
        params = {"secretId": secret_id}
        if "VersionId" in version:
            params["versionId"] = version["VersionId"]
        if "VersionStage" in version:
            params["versionStage"] = version["VersionStage"]
        response = await self.client.get(
            self.url,
            params=params,
            headers={SECRETS_TOKEN_HEADER: self.session_token},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json().get("SecretString")


class DirectLookup:
    """Reads secrets straight from the secret store with ambient credentials."""

    def __init__(self, region: Optional[str] = None, client: Any = None):
        self.region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("secretsmanager", region_name=self.region)
        return self._client

    async def get_secret_string(
        self, secret_id: str, version: Dict[str, str]
    ) -> Optional[str]:
        try:
            response = await asyncio.to_thread(
                self.client.get_secret_value, SecretId=secret_id, **version
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return None
            logger.error("Could not fetch secret id %s", secret_id)
            raise
        return response.get("SecretString")


def create_lookup(
    settings: Settings,
    http_client: httpx.AsyncClient,
    secrets_client: Any = None,
) -> SecretLookup:
    """Pick the sidecar when it is configured, else the direct secret store."""
    token = (settings.aws_session_token or "").strip()
    port = settings.secrets_cache_port
    if token and port:
        return CachedLookup(http_client, token, port)
    reason = "" if port else " (port missing or invalid)"
    logger.warning(
        "Secrets cache sidecar not configured%s, falling back to the secret store API",
        reason,
    )
    return DirectLookup(region=settings.aws_region, client=secrets_client)


class CredentialResolver:
    def __init__(self, lookup: SecretLookup):
        self.lookup = lookup

    async def resolve(
        self,
        secret_id: str,
        version_id: Optional[str] = None,
        version_stage: Optional[str] = None,
    ) -> Credentials:
        if not secret_id:
            raise ConfigurationError("Secret id not provided, cannot look up secret")
        version = version_params(version_id, version_stage)

        secret_string = await self.lookup.get_secret_string(secret_id, version)
        if not secret_string:
            logger.error("Credentials not found for secret id %s", secret_id)
            raise CredentialsNotFound(
                f"Credentials not found for secret id {secret_id}", secret_id
            )
        try:
            return Credentials.model_validate_json(secret_string)
        except ValidationError:
            logger.error("Secret id %s does not hold username/password JSON", secret_id)
            raise CredentialsMalformed(
                f"Secret {secret_id} is not a username/password JSON object",
                secret_id,
            ) from None
