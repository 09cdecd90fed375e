import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, List

from pydantic import BaseModel

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_KUBECOST_ENDPOINT = "http://kubecost-cost-analyzer.kubecost.svc.cluster.local:9090"

ALL_KINDS = [
    "cluster",
    "node",
    "pod",
    "namespace",
    "deployment",
    "controller",
    "controllerKind",
    "service",
]

# Controller and Deployment datasets were first written without the Shared Cost column
DEFAULT_SHARED_COST_KINDS = [kind for kind in ALL_KINDS if kind not in ("controller", "deployment")]
DEFAULT_LOCAL_COPY_KINDS = ["controller", "deployment"]

WINDOW_FORMAT = "%Y-%m-%dT00:00:00Z"


def default_window(now: Optional[datetime] = None) -> Tuple[str, str]:
    """
    Window covering yesterday, from 00:00Z to today 00:00Z
    """
    now = now or datetime.now(timezone.utc)
    today = now.astimezone(timezone.utc)
    yesterday = today - timedelta(days=1)
    return yesterday.strftime(WINDOW_FORMAT), today.strftime(WINDOW_FORMAT)


def parse_window(text: str) -> Tuple[str, str]:
    """
    Parse an explicit "start,end" window. Both ends are passed upstream untouched.
    """
    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 2 or not all(parts):
        raise ConfigError(f"Invalid window {text!r}, expected '<start>,<end>'")
    return parts[0], parts[1]


def _split_kinds(value: Optional[str], default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    kinds = [kind.strip() for kind in value.split(",") if kind.strip()]
    unknown = [kind for kind in kinds if kind not in ALL_KINDS]
    if unknown:
        raise ConfigError(f"Unknown resource kinds: {', '.join(unknown)}")
    return kinds


def _number(name: str, default: str, cast=float):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


class Settings(BaseModel):
    """Runtime configuration of an export run"""
    kubecost_endpoint: str = DEFAULT_KUBECOST_ENDPOINT
    cluster_name: str = "cluster"
    bucket_name: str = ""
    bucket_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    window: Tuple[str, str]
    fetch_max_attempts: int = 3
    fetch_retry_delay: float = 2.0
    fetch_timeout: float = 60.0
    local_output_dir: Optional[str] = "Output"
    local_copy_kinds: List[str] = DEFAULT_LOCAL_COPY_KINDS
    shared_cost_kinds: List[str] = DEFAULT_SHARED_COST_KINDS
    pushgateway_url: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, now: Optional[datetime] = None) -> "Settings":
        """
        Build settings from environment variables
        """
        window_text = os.getenv("REPORT_WINDOW")
        window = parse_window(window_text) if window_text else default_window(now)

        settings = cls(
            kubecost_endpoint=os.getenv("KUBECOST_ENDPOINT", DEFAULT_KUBECOST_ENDPOINT),
            cluster_name=os.getenv("CLUSTER_NAME", "cluster"),
            bucket_name=os.getenv("BUCKET_NAME", ""),
            bucket_region=os.getenv("BUCKET_REGION") or None,
            s3_endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
            window=window,
            fetch_max_attempts=_number("FETCH_MAX_ATTEMPTS", "3", int),
            fetch_retry_delay=_number("FETCH_RETRY_DELAY_SECONDS", "2"),
            fetch_timeout=_number("FETCH_TIMEOUT_SECONDS", "60"),
            local_output_dir=os.getenv("LOCAL_OUTPUT_DIR", "Output") or None,
            local_copy_kinds=_split_kinds(os.getenv("LOCAL_COPY_KINDS"), DEFAULT_LOCAL_COPY_KINDS),
            shared_cost_kinds=_split_kinds(os.getenv("SHARED_COST_KINDS"), DEFAULT_SHARED_COST_KINDS),
            pushgateway_url=os.getenv("PUSHGATEWAY_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
        settings.validate_for_run()
        logger.info(
            f"Loaded settings for cluster {settings.cluster_name}, bucket {settings.bucket_name}, "
            f"window {settings.window[0]},{settings.window[1]}"
        )
        return settings

    def validate_for_run(self):
        if not self.bucket_name:
            raise ConfigError("BUCKET_NAME is required")
        if not self.kubecost_endpoint.startswith(("http://", "https://")):
            raise ConfigError(f"KUBECOST_ENDPOINT must be an http(s) URL, got {self.kubecost_endpoint!r}")
        if self.fetch_max_attempts < 1:
            raise ConfigError("FETCH_MAX_ATTEMPTS must be at least 1")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigError(f"Unknown LOG_LEVEL {self.log_level!r}")

    @property
    def window_param(self) -> str:
        return f"{self.window[0]},{self.window[1]}"
