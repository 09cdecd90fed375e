import logging
import time
from typing import Callable, Optional, Tuple

import requests
from pydantic import ValidationError

from .errors import DecodeError, FetchError
from .metrics import kubecost_export_fetch_attempts_total
from .models import AllocationResponse

logger = logging.getLogger(__name__)

ALLOCATION_PATH = "/model/allocation"


class AllocationClient:
    """
    Client for the Kubecost allocation API
    """
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        timeout: Optional[float] = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep

    @property
    def allocation_url(self) -> str:
        return f"{self.base_url}{ALLOCATION_PATH}"

    def fetch(self, window: Tuple[str, str], aggregate: str) -> AllocationResponse:
        """
        Fetch accumulated allocations for one aggregate kind over the window
        """
        params = {
            "window": f"{window[0]},{window[1]}",
            "aggregate": aggregate,
            "accumulate": "true",
        }

        response = None
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            kubecost_export_fetch_attempts_total.labels(kind=aggregate).inc()
            try:
                response = self.session.get(self.allocation_url, params=params, timeout=self.timeout)
                break
            except requests.RequestException as e:
                last_error = e
                logger.error(f"Attempt {attempt}: Error requesting {aggregate} allocations: {e}")
                if attempt < self.max_attempts:
                    self._sleep(self.retry_delay)

        if response is None:
            raise FetchError(
                f"Failed to request allocations after {self.max_attempts} attempts: {last_error}",
                kind=aggregate,
            )

        return self._decode(response, aggregate)

    def _decode(self, response: requests.Response, aggregate: str) -> AllocationResponse:
        try:
            document = response.json()
        except ValueError as e:
            raise DecodeError(
                f"Response body is not valid JSON (HTTP {response.status_code}): {e}", kind=aggregate
            )

        if not isinstance(document, dict):
            raise DecodeError(f"Expected a JSON object, got {type(document).__name__}", kind=aggregate)

        logger.info(f"Status Code for {aggregate}: {document.get('code')}")

        try:
            return AllocationResponse.model_validate(document)
        except ValidationError as e:
            raise DecodeError(f"Unexpected allocation envelope: {e}", kind=aggregate)
