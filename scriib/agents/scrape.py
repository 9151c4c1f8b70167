"""
Apify actor runs.

Runs are started asynchronously and then polled at a fixed interval with a
hard attempt ceiling; running out of attempts raises ApifyTimeout.
"""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import structlog
from apify_client import ApifyClient

from scriib.core.errors import IntegrationError
from scriib.settings import settings

log = structlog.get_logger(__name__)

FINISHED_OK = "SUCCEEDED"
FINISHED_BAD = {"FAILED", "ABORTED", "TIMED-OUT"}


class ApifyError(IntegrationError):
    service = "apify"


class ApifyTimeout(ApifyError):
    pass


def get_client() -> ApifyClient:
    if not settings.apify_api_token:
        raise ApifyError("APIFY_API_TOKEN is not set", kind="network")
    return ApifyClient(settings.apify_api_token)


def start_run(actor_id: str, run_input: Dict[str, Any], client: Optional[ApifyClient] = None) -> Dict[str, Any]:
    client = client or get_client()
    try:
        run = client.actor(actor_id).start(run_input=run_input)
    except Exception as e:
        raise ApifyError(f"could not start actor {actor_id}: {e}", kind="http") from e
    if not run or not run.get("id"):
        raise ApifyError("actor start returned no run id", kind="payload", payload=run)
    log.info("apify_run_started", actor_id=actor_id, run_id=run["id"])
    return run


def get_run_status(run_id: str, client: Optional[ApifyClient] = None) -> Dict[str, Any]:
    client = client or get_client()
    try:
        run = client.run(run_id).get()
    except Exception as e:
        raise ApifyError(f"could not read run {run_id}: {e}", kind="http") from e
    if not run:
        raise ApifyError(f"run {run_id} not found", kind="payload")
    return run


def fetch_dataset_items(dataset_id: str, limit: Optional[int] = None, client: Optional[ApifyClient] = None) -> List[Dict[str, Any]]:
    client = client or get_client()
    try:
        page = client.dataset(dataset_id).list_items(limit=limit)
    except Exception as e:
        raise ApifyError(f"could not read dataset {dataset_id}: {e}", kind="http") from e
    return list(page.items or [])


def wait_for_run(
    run_id: str,
    client: Optional[ApifyClient] = None,
    poll_seconds: Optional[float] = None,
    max_attempts: Optional[int] = None,
) -> Dict[str, Any]:
    client = client or get_client()
    poll_seconds = settings.enrichment_poll_seconds if poll_seconds is None else poll_seconds
    max_attempts = max_attempts or settings.enrichment_max_attempts

    for attempt in range(1, max_attempts + 1):
        run = get_run_status(run_id, client=client)
        status = run.get("status")
        if status == FINISHED_OK:
            log.info("apify_run_succeeded", run_id=run_id, attempts=attempt)
            return run
        if status in FINISHED_BAD:
            raise ApifyError(f"run {run_id} finished with status {status}", kind="payload", payload=run)
        if attempt < max_attempts:
            time.sleep(poll_seconds)

    raise ApifyTimeout(f"Timeout waiting for Apify run {run_id}", kind="network")


def run_actor(
    actor_id: str,
    run_input: Dict[str, Any],
    limit: Optional[int] = None,
    client: Optional[ApifyClient] = None,
    **wait_kwargs,
) -> List[Dict[str, Any]]:
    """start -> poll -> dataset items"""
    client = client or get_client()
    run = start_run(actor_id, run_input, client=client)
    run = wait_for_run(run["id"], client=client, **wait_kwargs)
    dataset_id = run.get("defaultDatasetId")
    if not dataset_id:
        raise ApifyError("finished run has no dataset", kind="payload", payload=run)
    return fetch_dataset_items(dataset_id, limit=limit, client=client)
