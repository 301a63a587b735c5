"""Entry point invoked by the event transport with one batch of stream records."""
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .config import Settings, configure_logging, load_settings
from .credentials import CredentialResolver, create_lookup
from .decoder import RawRecord
from .executor import BatchExecutor
from .models import BatchReport
from .pipeline import CDCPipeline

logger = logging.getLogger(__name__)


def extract_payloads(event: Mapping[str, Any]) -> List[RawRecord]:
    """Pull the encoded data of every stream record, keeping batch order."""
    payloads: List[RawRecord] = []
    for record in event.get("Records") or []:
        kinesis = record.get("kinesis") if isinstance(record, Mapping) else None
        data = kinesis.get("data") if isinstance(kinesis, Mapping) else None
        # Missing data is left for the decoder to reject.
        payloads.append(data if isinstance(data, (str, bytes)) else "")
    return payloads


def build_pipeline(
    settings: Settings,
    http_client: httpx.AsyncClient,
    secrets_client: Any = None,
) -> CDCPipeline:
    resolver = CredentialResolver(create_lookup(settings, http_client, secrets_client))
    executor = BatchExecutor(http_client, settings.opensearch_max_concurrency)
    return CDCPipeline(settings, resolver, executor)


async def process_batch(
    settings: Settings,
    raw_batch: List[RawRecord],
    http_client: Optional[httpx.AsyncClient] = None,
    secrets_client: Any = None,
) -> BatchReport:
    if http_client is not None:
        pipeline = build_pipeline(settings, http_client, secrets_client)
        return await pipeline.run(raw_batch)
    async with httpx.AsyncClient(timeout=settings.opensearch_request_timeout) as client:
        pipeline = build_pipeline(settings, client, secrets_client)
        return await pipeline.run(raw_batch)


def main(event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
    settings = load_settings()
    configure_logging(settings.cdc_log_level)
    raw_batch = extract_payloads(event)
    logger.debug("Received stream event with %d record(s)", len(raw_batch))
    report = asyncio.run(process_batch(settings, raw_batch))
    return report.summary()
