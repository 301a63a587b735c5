from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, StrictBool

# Tables replicated into the search engine. Table names double as index names.
RECOGNIZED_TABLES = frozenset(
    {
        "users",
        "projects",
        "hashtags",
        "project_hashtags",
        "user_projects",
    }
)

# JSON request bodies cannot carry NaN or Infinity.
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]

Scalar = Union[StrictBool, int, FiniteFloat, str, None]


class MutationKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class HttpVerb(str, Enum):
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"


class MutationEvent(BaseModel):
    """One decoded change record for a recognized table."""

    model_config = ConfigDict(frozen=True)

    operation: MutationKind
    table_name: str
    record_id: int = Field(gt=0)
    data: Dict[str, Scalar] = Field(default_factory=dict)
    transaction_id: Optional[int] = None
    timestamp: Optional[str] = None


class IndexOperation(BaseModel):
    """A mapped write or delete against one search document."""

    model_config = ConfigDict(frozen=True)

    target_index: str
    document_id: int
    verb: HttpVerb
    payload: Optional[Dict[str, Scalar]] = None

    @property
    def path(self) -> str:
        return f"/{self.target_index}/_doc/{self.document_id}"


class Credentials(BaseModel):
    """Basic-auth credentials for the search engine."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    password: SecretStr

    def as_auth(self) -> tuple:
        return (self.username, self.password.get_secret_value())


class BatchOutcome(BaseModel):
    operation: IndexOperation
    success: bool
    status_code: Optional[int] = None
    response_body: Any = None
    error: Optional[str] = None


class BatchReport(BaseModel):
    """Result of one pipeline invocation."""

    received: int
    retained: int
    outcomes: List[BatchOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded

    def summary(self) -> Dict[str, Any]:
        return {
            "received": self.received,
            "retained": self.retained,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcomes": [
                {
                    "verb": outcome.operation.verb.value,
                    "path": outcome.operation.path,
                    "success": outcome.success,
                    "status_code": outcome.status_code,
                    "error": outcome.error,
                }
                for outcome in self.outcomes
            ],
        }
