import asyncio
import logging
from typing import Any, List, Optional, Sequence

import httpx

from .errors import OperationFailure
from .models import BatchOutcome, Credentials, HttpVerb, IndexOperation

logger = logging.getLogger(__name__)


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class BatchExecutor:
    """Runs index operations concurrently and reports one outcome per operation.

    A failing operation never cancels its siblings; the batch returns only
    after every operation has settled. ``max_concurrency`` is unbounded
    unless set.
    """

    def __init__(self, client: httpx.AsyncClient, max_concurrency: Optional[int] = None):
        self.client = client
        self.max_concurrency = max_concurrency

    async def execute(
        self,
        ops: Sequence[IndexOperation],
        creds: Credentials,
        endpoint: str,
    ) -> List[BatchOutcome]:
        if not ops:
            return []
        base_url = endpoint.rstrip("/")
        auth = creds.as_auth()
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def run(op: IndexOperation) -> BatchOutcome:
            if semaphore is None:
                return await self._perform(op, auth, base_url)
            async with semaphore:
                return await self._perform(op, auth, base_url)

        results = await asyncio.gather(*(run(op) for op in ops), return_exceptions=True)

        outcomes: List[BatchOutcome] = []
        unexpected: Optional[BaseException] = None
        for op, result in zip(ops, results):
            if isinstance(result, OperationFailure):
                logger.warning(
                    "%s %s failed: %s", op.verb.value, op.path, result
                )
                outcomes.append(
                    BatchOutcome(
                        operation=op,
                        success=False,
                        status_code=result.status_code,
                        response_body=result.response_body,
                        error=str(result),
                    )
                )
            elif isinstance(result, BaseException):
                unexpected = unexpected or result
            else:
                outcomes.append(result)
        if unexpected is not None:
            raise unexpected
        return outcomes

    async def _perform(self, op: IndexOperation, auth: tuple, base_url: str) -> BatchOutcome:
        try:
            request = self.client.build_request(
                op.verb.value, f"{base_url}{op.path}", json=op.payload
            )
        except (ValueError, TypeError) as exc:
            raise OperationFailure(f"unencodable request: {exc}", operation=op) from exc
        try:
            response = await self.client.send(request, auth=auth)
        except httpx.HTTPError as exc:
            raise OperationFailure(f"{type(exc).__name__}: {exc}", operation=op) from exc

        body = _body(response)
        logger.info(
            "Search response for %s %s: HTTP %d",
            op.verb.value,
            op.path,
            response.status_code,
        )
        if response.is_success or op.verb is HttpVerb.DELETE:
            # Deletes are idempotent against replays; a missing document is fine.
            return BatchOutcome(
                operation=op,
                success=True,
                status_code=response.status_code,
                response_body=body,
            )
        raise OperationFailure(
            f"HTTP {response.status_code}",
            operation=op,
            status_code=response.status_code,
            response_body=body,
        )
