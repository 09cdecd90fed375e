import time
import logging
import concurrent.futures
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from .config import Settings
from .errors import ExportError
from .kinds import KindDescriptor, ROLLOUT_IDENTITY_COLUMN, ROLLOUT_OBJECT_KEY
from .kubecost import AllocationClient
from .metrics import (
    kubecost_export_rows_appended_total,
    kubecost_export_failures_total,
    kubecost_export_last_success_timestamp_seconds,
    kubecost_export_duration_seconds,
)
from .models import PipelineResult
from .normalizer import normalize
from .store import DatasetStore

logger = logging.getLogger(__name__)

MAX_WORKERS = 8


def _export(descriptor: KindDescriptor, client: AllocationClient, store: DatasetStore, settings: Settings) -> dict:
    response = client.fetch(settings.window, descriptor.aggregate)
    normalized = normalize(response, descriptor, settings.cluster_name)

    local_name = descriptor.dataset_name if descriptor.local_copy else None
    rows = {
        descriptor.dataset_name: store.merge_and_persist(
            descriptor.object_key, descriptor.header, normalized.rows, local_name=local_name
        )
    }

    if descriptor.has_rollout:
        local_name = ROLLOUT_IDENTITY_COLUMN if descriptor.local_copy else None
        rows[ROLLOUT_IDENTITY_COLUMN] = store.merge_and_persist(
            ROLLOUT_OBJECT_KEY, descriptor.rollout_header, normalized.rollout_rows, local_name=local_name
        )
    return rows


def run_pipeline(
    descriptor: KindDescriptor, client: AllocationClient, store: DatasetStore, settings: Settings
) -> PipelineResult:
    """
    Fetch, normalize and persist one resource kind. Never raises: failures are
    logged and reported in the result.
    """
    started = time.monotonic()
    kind = descriptor.kind
    try:
        rows = _export(descriptor, client, store, settings)
    except ExportError as e:
        if e.kind is None:
            e.kind = kind
        logger.error(f"Error in {e.stage} for {kind}: {e}")
        return _failed(kind, e.stage, str(e), started)
    except Exception as e:
        logger.exception(f"Unexpected error exporting {kind}")
        return _failed(kind, "unexpected", f"{type(e).__name__}: {e}", started)

    duration = time.monotonic() - started
    for dataset, count in rows.items():
        kubecost_export_rows_appended_total.labels(kind=kind, dataset=dataset).inc(count)
    kubecost_export_last_success_timestamp_seconds.labels(kind=kind).set_to_current_time()
    kubecost_export_duration_seconds.labels(kind=kind).set(duration)
    logger.info(f"{descriptor.dataset_name} data successfully written to S3")

    return PipelineResult(kind=kind, success=True, rows=rows, duration_ms=duration * 1000)


def _failed(kind: str, stage: str, error: str, started: float) -> PipelineResult:
    duration = time.monotonic() - started
    kubecost_export_failures_total.labels(kind=kind, stage=stage).inc()
    kubecost_export_duration_seconds.labels(kind=kind).set(duration)
    return PipelineResult(kind=kind, success=False, stage=stage, error=error, duration_ms=duration * 1000)


def run_all(
    descriptors: Sequence[KindDescriptor],
    client: AllocationClient,
    store: DatasetStore,
    settings: Settings,
    max_workers: int = MAX_WORKERS,
) -> List[PipelineResult]:
    """
    Export every kind concurrently and wait for all of them.

    Results are returned in descriptor order; one failing kind never affects the others.
    """
    results = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_kind = {
            executor.submit(run_pipeline, descriptor, client, store, settings): descriptor.kind
            for descriptor in descriptors
        }
        for future in concurrent.futures.as_completed(future_to_kind):
            kind = future_to_kind[future]
            results[kind] = future.result()

    ordered = [results[descriptor.kind] for descriptor in descriptors]
    failed = [result.kind for result in ordered if not result.success]
    logger.info(
        f"Export finished: {len(ordered) - len(failed)}/{len(ordered)} kinds succeeded"
        + (f", failed: {', '.join(failed)}" if failed else "")
    )
    return ordered
