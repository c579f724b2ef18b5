"""Bulk field fetches for lists of work item ids."""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

log = logging.getLogger(__name__)

# Upper bound on ids per /wit/workitems call.
BATCH_SIZE = 200


def chunked(ids: Sequence[int], size: int = BATCH_SIZE) -> Iterator[List[int]]:
    for i in range(0, len(ids), size):
        yield list(ids[i:i + size])


def batch_path(chunk: Sequence[int], fields: Optional[str] = None, expand: Optional[str] = None) -> str:
    path = "/wit/workitems?ids=" + ",".join(str(i) for i in chunk)
    if fields:
        path += "&fields=" + fields
    if expand:
        path += "&$expand=" + expand
    return path


def iter_items(
    client,
    ids: Sequence[int],
    fields: Optional[str] = None,
    expand: Optional[str] = None,
) -> Iterator[Dict[str, Any]]:
    """Yield work items chunk by chunk, one request at a time.

    Ids the API does not return (deleted in the meantime, no access) are
    simply absent.
    """
    total = (len(ids) + BATCH_SIZE - 1) // BATCH_SIZE
    for n, chunk in enumerate(chunked(ids), start=1):
        log.debug("fetching chunk %d/%d: %d id(s)", n, total, len(chunk))
        result = client.execute(batch_path(chunk, fields, expand))
        for item in result.get("value") or []:
            yield item


def fetch_items(client, ids: Sequence[int], fields: Optional[str] = None, expand: Optional[str] = None) -> List[Dict[str, Any]]:
    return list(iter_items(client, ids, fields, expand))


def fetch_map(client, ids: Sequence[int], fields: Optional[str] = None, expand: Optional[str] = None) -> Dict[int, Dict[str, Any]]:
    return {item["id"]: item for item in iter_items(client, ids, fields, expand)}
