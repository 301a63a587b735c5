import logging
from typing import Optional
from urllib.parse import urlsplit

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Runtime configuration for one pipeline invocation."""

    model_config = SettingsConfigDict(frozen=True, case_sensitive=False)

    opensearch_domain_endpoint: str
    opensearch_master_credentials_secret_id: str
    aws_session_token: Optional[str] = None
    parameters_secrets_extension_http_port: Optional[str] = None
    aws_region: Optional[str] = None
    cdc_log_level: str = "INFO"
    opensearch_request_timeout: float = 10.0
    opensearch_max_concurrency: Optional[int] = None

    @field_validator(
        "opensearch_domain_endpoint", "opensearch_master_credentials_secret_id"
    )
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("opensearch_request_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @field_validator("opensearch_max_concurrency")
    @classmethod
    def _positive_concurrency(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("must be > 0 when set")
        return value

    @field_validator("cdc_log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{value}'")
        return level

    @property
    def search_base_url(self) -> str:
        """Endpoint as a base URL; bare hosts are addressed over https."""
        endpoint = self.opensearch_domain_endpoint.rstrip("/")
        if urlsplit(endpoint).scheme in ("http", "https"):
            return endpoint
        return f"https://{endpoint}"

    @property
    def secrets_cache_port(self) -> Optional[int]:
        """Sidecar port, or None when it is absent or not a usable port."""
        raw = (self.parameters_secrets_extension_http_port or "").strip()
        if not raw.isdigit():
            return None
        port = int(raw)
        if not 0 < port < 65536:
            return None
        return port


def load_settings(**overrides) -> Settings:
    """Read settings from the environment, failing fast on bad values."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = sorted(
            {
                ".".join(str(part) for part in error["loc"]).upper()
                for error in exc.errors()
            }
        )
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(fields)}"
        ) from None


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("cdc_indexer")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
