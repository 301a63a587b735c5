from typing import Any, Dict, List

import httpx

from .models import Credentials

MATCH_ALL = "*:*"


async def list_documents(
    client: httpx.AsyncClient,
    base_url: str,
    creds: Credentials,
    index: str,
) -> List[Dict[str, Any]]:
    """Return the source of every document in ``index``."""
    response = await client.get(
        f"{base_url.rstrip('/')}/{index}/_search",
        params={"q": MATCH_ALL},
        auth=creds.as_auth(),
    )
    response.raise_for_status()
    body = response.json()
    outer = body.get("hits") if isinstance(body, dict) else None
    hits = outer.get("hits") if isinstance(outer, dict) else None
    if not isinstance(hits, list):
        return []
    return [hit.get("_source") or {} for hit in hits if isinstance(hit, dict)]
