"""
One-shot export: fetch yesterday's allocations for every resource kind and append them to S3.

Usage: python -m app.run
"""
import sys
import logging
from typing import List, Optional, Tuple

import boto3
import requests

from app.modules.config import Settings
from app.modules.errors import ConfigError
from app.modules.kinds import KindDescriptor, build_descriptors
from app.modules.kubecost import AllocationClient
from app.modules.metrics import push_metrics
from app.modules.models import PipelineResult
from app.modules.pipeline import run_all
from app.modules.store import DatasetStore

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_components(
    settings: Settings, kinds: Optional[List[str]] = None
) -> Tuple[AllocationClient, DatasetStore, List[KindDescriptor]]:
    """
    Wire the allocation client, dataset store and kind descriptors for a run
    """
    s3_config = {"region_name": settings.bucket_region}
    if settings.s3_endpoint_url:
        s3_config["endpoint_url"] = settings.s3_endpoint_url
        logger.info(f"Using custom S3 endpoint: {settings.s3_endpoint_url}")
    s3_client = boto3.client("s3", **s3_config)

    client = AllocationClient(
        settings.kubecost_endpoint,
        session=requests.Session(),
        max_attempts=settings.fetch_max_attempts,
        retry_delay=settings.fetch_retry_delay,
        timeout=settings.fetch_timeout,
    )
    store = DatasetStore(s3_client, settings.bucket_name, local_output_dir=settings.local_output_dir)
    descriptors = build_descriptors(
        shared_cost_kinds=settings.shared_cost_kinds,
        local_copy_kinds=settings.local_copy_kinds,
        kinds=kinds,
    )
    return client, store, descriptors


def export(settings: Settings, kinds: Optional[List[str]] = None) -> List[PipelineResult]:
    client, store, descriptors = build_components(settings, kinds)
    return run_all(descriptors, client, store, settings)


def main() -> int:
    setup_logging()
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logging.getLogger().setLevel(settings.log_level)
    results = export(settings)

    for result in results:
        if result.success:
            logger.info(f"{result.kind}: appended {result.rows} in {result.duration_ms:.0f} ms")
        else:
            logger.error(f"{result.kind}: failed during {result.stage}: {result.error}")

    if settings.pushgateway_url:
        push_metrics(settings.pushgateway_url)

    # Per-kind failures are reported in the log only
    return 0


if __name__ == "__main__":
    sys.exit(main())
