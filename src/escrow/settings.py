"""Runtime settings for the escrow context, read from the environment.

Values are read on every call so tests can flip them with monkeypatch.
"""

import os

DEFAULT_AUTO_RELEASE_DAYS = 7
DEFAULT_CURRENCY = "ZAR"
DEFAULT_SWEEP_BATCH_SIZE = 100


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def auto_release_days() -> int:
    """Grace period between delivery and automatic release of escrowed funds."""
    return _int_env("ESCROW_AUTO_RELEASE_DAYS", DEFAULT_AUTO_RELEASE_DAYS)


def default_currency() -> str:
    return os.getenv("ESCROW_DEFAULT_CURRENCY", DEFAULT_CURRENCY).upper()


def sweep_batch_size() -> int:
    return max(_int_env("ESCROW_SWEEP_BATCH_SIZE", DEFAULT_SWEEP_BATCH_SIZE), 1)


def payment_gateway_name() -> str:
    return os.getenv("PAYMENT_GATEWAY", "fake").lower()


def notifier_name() -> str:
    return os.getenv("NOTIFIER_ADAPTER", "fake").lower()
