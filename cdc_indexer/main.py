import logging
from functools import lru_cache
from typing import Any, AsyncIterator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from .config import Settings, configure_logging, load_settings
from .credentials import CredentialResolver, create_lookup
from .errors import ConfigurationError, CredentialsError
from .handler import process_batch
from .models import BatchReport
from .search import list_documents

logger = logging.getLogger(__name__)

PROJECTS_INDEX = "projects"


class BatchPayload(BaseModel):
    records: list[str]


app = FastAPI(
    title="CDC Search Indexer",
    version="0.1.0",
    description="Replays database change batches into the search index and serves the read path.",
)

last_report: Optional[BatchReport] = None


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    settings = load_settings()
    configure_logging(settings.cdc_log_level)
    return settings


def get_settings() -> Settings:
    try:
        return _cached_settings()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=500, detail="Service is misconfigured") from exc


def get_secrets_client() -> Any:
    return None


async def get_http_client(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.opensearch_request_timeout) as client:
        yield client


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/projects")
async def list_projects(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    secrets_client: Any = Depends(get_secrets_client),
) -> list:
    resolver = CredentialResolver(create_lookup(settings, client, secrets_client))
    try:
        creds = await resolver.resolve(settings.opensearch_master_credentials_secret_id)
    except CredentialsError as exc:
        raise HTTPException(status_code=500, detail="Search credentials unavailable") from exc
    try:
        return await list_documents(client, settings.search_base_url, creds, PROJECTS_INDEX)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Search index unavailable, returning no projects: %s", exc)
        return []


@app.post("/cdc/batch")
async def run_batch(
    payload: BatchPayload,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    secrets_client: Any = Depends(get_secrets_client),
) -> dict:
    global last_report
    try:
        report = await process_batch(settings, payload.records, client, secrets_client)
    except CredentialsError as exc:
        raise HTTPException(status_code=500, detail="Search credentials unavailable") from exc
    last_report = report
    return {"status": "completed", "result": report.summary()}


@app.get("/cdc/status")
async def batch_status() -> dict:
    if last_report is not None:
        return {"last_run": last_report.summary()}
    return {"last_run": None}
