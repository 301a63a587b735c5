import base64
import binascii
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from .errors import DecodeError
from .models import RECOGNIZED_TABLES, MutationEvent

logger = logging.getLogger(__name__)

RawRecord = Union[bytes, str]

DATA_RECORD_TYPE = "data"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def decode_envelope(raw: RawRecord, position: Optional[int] = None) -> Dict[str, Any]:
    """Base64-decode and JSON-parse one transport record."""
    try:
        decoded = base64.b64decode(raw, validate=True)
        envelope = json.loads(decoded, parse_constant=_reject_constant)
    except (binascii.Error, ValueError, TypeError, RecursionError) as exc:
        raise DecodeError(f"undecodable payload: {exc}", position) from exc
    if not isinstance(envelope, dict):
        raise DecodeError("envelope is not a JSON object", position)
    metadata = envelope.get("metadata")
    if not isinstance(metadata, dict):
        raise DecodeError("envelope has no metadata object", position)
    return envelope


def is_relevant(metadata: Dict[str, Any], tables: Iterable[str]) -> bool:
    table = metadata.get("table-name")
    return (
        metadata.get("record-type") == DATA_RECORD_TYPE
        and isinstance(table, str)
        and table in tables
    )


def to_event(envelope: Dict[str, Any], position: Optional[int] = None) -> MutationEvent:
    metadata = envelope["metadata"]
    data = envelope.get("data")
    if not isinstance(data, dict):
        raise DecodeError("data record has no data object", position)
    record_id = data.get("id")
    if isinstance(record_id, bool):
        raise DecodeError("record id is not an integer", position)
    try:
        return MutationEvent(
            operation=metadata.get("operation"),
            table_name=metadata["table-name"],
            record_id=record_id,
            data=data,
            transaction_id=metadata.get("transaction-id"),
            timestamp=metadata.get("timestamp"),
        )
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) for error in exc.errors()
        )
        raise DecodeError(f"invalid data record ({fields})", position) from exc


def decode_and_filter(
    raw_batch: Sequence[RawRecord],
    tables: Iterable[str] = RECOGNIZED_TABLES,
) -> List[MutationEvent]:
    """Decode a transport batch, keeping data mutations on recognized tables.

    Records that fail to decode are logged and skipped. The result preserves
    the relative order of the input batch.
    """
    tables = frozenset(tables)
    events: List[MutationEvent] = []
    for position, raw in enumerate(raw_batch):
        try:
            envelope = decode_envelope(raw, position)
            metadata = envelope["metadata"]
            if not is_relevant(metadata, tables):
                logger.debug(
                    "Skipping %s record %d for table %s",
                    metadata.get("record-type"),
                    position,
                    metadata.get("table-name"),
                )
                continue
            events.append(to_event(envelope, position))
        except DecodeError as exc:
            logger.warning("Dropping record %d of batch: %s", position, exc)
    return events
