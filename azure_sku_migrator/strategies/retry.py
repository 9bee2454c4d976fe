"""Retry policy for known transient provider conditions"""

import logging
from typing import Any, Callable

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from ..core.errors import ProviderError, ProviderErrorCode


def is_snapshot_limit(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.code == ProviderErrorCode.SNAPSHOT_COUNT_EXCEEDED


def call_with_snapshot_retry(
    func: Callable[[], Any],
    wait_seconds: float,
    logger: logging.Logger
) -> Any:
    """Call ``func``, retrying exactly once after ``wait_seconds`` on a snapshot-limit error"""

    def _log_retry(retry_state):
        logger.warning(
            f"Snapshot limit reached, retrying once in {wait_seconds:.0f}s: "
            f"{retry_state.outcome.exception()}"
        )

    retryer = Retrying(
        retry=retry_if_exception(is_snapshot_limit),
        wait=wait_fixed(wait_seconds),
        stop=stop_after_attempt(2),
        before_sleep=_log_retry,
        reraise=True,
    )
    return retryer(func)
