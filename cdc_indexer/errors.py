from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .models import IndexOperation


class CdcIndexerError(Exception):
    """Base exception for cdc_indexer errors."""


class ConfigurationError(CdcIndexerError):
    """Required configuration is missing or malformed."""


class CredentialsError(CdcIndexerError):
    """Search credentials could not be obtained."""

    def __init__(self, message: str, secret_id: Optional[str] = None):
        super().__init__(message)
        self.secret_id = secret_id


class CredentialsNotFound(CredentialsError):
    """The secret store returned no secret string."""


class CredentialsMalformed(CredentialsError):
    """The secret string is not a JSON object with username and password."""


class InvalidVersionSelector(CredentialsError):
    """Both a version id and a version stage were requested."""


class DecodeError(CdcIndexerError):
    """A single transport record could not be turned into a mutation event."""

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message)
        self.position = position


class OperationFailure(CdcIndexerError):
    """A single index operation did not complete successfully."""

    def __init__(
        self,
        message: str,
        operation: Optional["IndexOperation"] = None,
        status_code: Optional[int] = None,
        response_body: Any = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.response_body = response_body
