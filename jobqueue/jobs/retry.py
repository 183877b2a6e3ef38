"""
Retry policy normalization.

Retry timing comes from the queue's visibility timeout; the policy here only
decides how many deliveries a job gets and what happens once they run out.
"""

import math
from collections.abc import Mapping

from jobqueue.config import get_settings
from jobqueue.types.job import RetryConfig, RetrySetting

RETRIES_DISABLED = RetryConfig(max_attempts=None, dead_letter_on_exhaustion=False)


def _with_attempts(count: int | float, dead_letter: bool = True) -> RetryConfig:
    # NaN and negatives disable; infinity falls back to the configured default
    if not count > 0:
        return RETRIES_DISABLED
    if math.isinf(count):
        count = get_settings().default_max_attempts
    attempts = int(count)
    if attempts <= 0:
        return RETRIES_DISABLED
    return RetryConfig(max_attempts=attempts, dead_letter_on_exhaustion=dead_letter)


def normalize_retry_config(config: RetrySetting | RetryConfig) -> RetryConfig:
    """
    Turn a job's declared retry setting into a canonical ``RetryConfig``.

    - ``False`` or a number below 1 after truncation: retries disabled,
      failures are discarded
    - a number >= 1: that many attempts, dead-letter on exhaustion
    - ``None`` (or ``True``): ``settings.default_max_attempts`` (25 unless
      configured), dead-letter on exhaustion
    - a mapping: ``max_attempts`` (default as above) and ``dead`` (default
      True), with a non-positive ``max_attempts`` meaning disabled

    A ``RetryConfig`` passes through unless it carries a non-positive count.
    Never raises.
    """
    if isinstance(config, RetryConfig):
        if config.max_attempts is not None and config.max_attempts <= 0:
            return RETRIES_DISABLED
        return config

    # bool before int: True and False are ints
    if config is False:
        return RETRIES_DISABLED

    if isinstance(config, (int, float)) and not isinstance(config, bool):
        return _with_attempts(config)

    default_attempts = get_settings().default_max_attempts

    if isinstance(config, Mapping):
        max_attempts = config.get("max_attempts")
        if not isinstance(max_attempts, (int, float)) or isinstance(max_attempts, bool):
            max_attempts = default_attempts
        dead = config.get("dead")
        return _with_attempts(max_attempts, True if dead is None else bool(dead))

    # None, True, or anything unrecognised
    return _with_attempts(default_attempts)
