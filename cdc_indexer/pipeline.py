import logging
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Sequence

from .config import Settings
from .credentials import CredentialResolver
from .decoder import RawRecord, decode_and_filter
from .executor import BatchExecutor
from .mapper import map_batch
from .models import RECOGNIZED_TABLES, BatchReport

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    RECEIVED = "received"
    DECODED = "decoded"
    CREDENTIALS_RESOLVED = "credentials_resolved"
    MAPPED = "mapped"
    EXECUTED = "executed"
    REPORTED = "reported"


class CDCPipeline:
    """Replays one batch of change records against the search index.

    Each call to ``run`` is independent. Configuration and credential errors
    abort the invocation; per-record and per-operation failures only show up
    in the report.
    """

    def __init__(
        self,
        settings: Settings,
        resolver: CredentialResolver,
        executor: BatchExecutor,
        tables: Iterable[str] = RECOGNIZED_TABLES,
    ):
        self.settings = settings
        self.resolver = resolver
        self.executor = executor
        self.tables = frozenset(tables)
        self.stage: Optional[Stage] = None
        self.last_result: Optional[BatchReport] = None

    def _advance(self, stage: Stage) -> None:
        self.stage = stage
        logger.debug("Pipeline stage: %s", stage.value)

    async def run(self, raw_batch: Sequence[RawRecord]) -> BatchReport:
        started_at = datetime.utcnow()
        self._advance(Stage.RECEIVED)
        logger.info("Received batch with %d record(s)", len(raw_batch))

        events = decode_and_filter(raw_batch, self.tables)
        self._advance(Stage.DECODED)

        report = BatchReport(
            received=len(raw_batch), retained=len(events), started_at=started_at
        )
        if not events:
            logger.info("No search operations to perform")
        else:
            creds = await self.resolver.resolve(
                self.settings.opensearch_master_credentials_secret_id
            )
            self._advance(Stage.CREDENTIALS_RESOLVED)

            ops = map_batch(events)
            self._advance(Stage.MAPPED)

            logger.info("Executing %d operation(s) on the search index", len(ops))
            report.outcomes = await self.executor.execute(
                ops, creds, self.settings.search_base_url
            )
            self._advance(Stage.EXECUTED)

        report.finished_at = datetime.utcnow()
        self._advance(Stage.REPORTED)
        logger.info(
            "Batch done: %d received, %d retained, %d succeeded, %d failed",
            report.received,
            report.retained,
            report.succeeded,
            report.failed,
        )
        self.last_result = report
        return report
