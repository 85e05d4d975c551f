from __future__ import annotations
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from .errors import SqsConfigurationError

PROVIDER_MAX_BATCH_SIZE = 10
PROVIDER_MAX_RECEIVE_MESSAGES = 10
PROVIDER_MAX_WAIT_TIME_SECONDS = 20
PROVIDER_MAX_VISIBILITY_TIMEOUT = 43200


def _env_int(name, default):
    return int(os.environ.get(name, str(default)))


def _env_float(name, default):
    return float(os.environ.get(name, str(default)))


def _env_str(name, default=None):
    value = os.environ.get(name)
    return value if value else default


@dataclass(frozen=True)
class SqsSettings:
    """
    Tunables for the orchestration layer and the boto3 client.

    Build with keyword arguments, or with `from_env()` to layer SQS_* environment
    variables under explicit overrides.
    """
    max_batch_size: int = PROVIDER_MAX_BATCH_SIZE
    max_receive_messages: int = PROVIDER_MAX_RECEIVE_MESSAGES
    receive_wait_time_seconds: int = PROVIDER_MAX_WAIT_TIME_SECONDS
    default_queue_url_prefix: str = ""
    visibility_timeout: int = 30
    polling_error_backoff_seconds: float = 5.0
    polling_iteration_timeout_seconds: float = 10.0
    worker_threads: int = 8
    io_threads: int = 8
    shutdown_timeout_seconds: float = 10.0
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    client_kwargs: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _check_range("max_batch_size", self.max_batch_size, 1, PROVIDER_MAX_BATCH_SIZE)
        _check_range("max_receive_messages", self.max_receive_messages, 1, PROVIDER_MAX_RECEIVE_MESSAGES)
        _check_range("receive_wait_time_seconds", self.receive_wait_time_seconds, 0, PROVIDER_MAX_WAIT_TIME_SECONDS)
        _check_range("visibility_timeout", self.visibility_timeout, 0, PROVIDER_MAX_VISIBILITY_TIMEOUT)
        for name in ("worker_threads", "io_threads"):
            if getattr(self, name) < 1:
                raise SqsConfigurationError(f"{name} must be at least 1")
        if self.polling_iteration_timeout_seconds <= 0:
            raise SqsConfigurationError("polling_iteration_timeout_seconds must be positive")
        for name in ("polling_error_backoff_seconds", "shutdown_timeout_seconds"):
            if getattr(self, name) < 0:
                raise SqsConfigurationError(f"{name} cannot be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> "SqsSettings":
        """Defaults with env overrides; explicit keyword arguments take precedence."""
        unknown = set(overrides) - {f.name for f in fields(cls)}
        if unknown:
            raise SqsConfigurationError(f"Unknown settings: {sorted(unknown)}")

        try:
            values: Dict[str, Any] = {
                "max_batch_size": _env_int("SQS_MAX_BATCH_SIZE", PROVIDER_MAX_BATCH_SIZE),
                "max_receive_messages": _env_int("SQS_MAX_RECEIVE_MESSAGES", PROVIDER_MAX_RECEIVE_MESSAGES),
                "receive_wait_time_seconds": _env_int("SQS_WAIT_TIME", PROVIDER_MAX_WAIT_TIME_SECONDS),
                "default_queue_url_prefix": _env_str("SQS_QUEUE_URL_PREFIX", ""),
                "visibility_timeout": _env_int("SQS_VISIBILITY_SECS", 30),
                "polling_error_backoff_seconds": _env_float("SQS_POLL_BACKOFF_SECS", 5.0),
                "polling_iteration_timeout_seconds": _env_float("SQS_POLL_TIMEOUT_SECS", 10.0),
                "worker_threads": _env_int("SQS_WORKER_THREADS", 8),
                "io_threads": _env_int("SQS_IO_THREADS", 8),
                "shutdown_timeout_seconds": _env_float("SQS_SHUTDOWN_TIMEOUT_SECS", 10.0),
                "region_name": _env_str("AWS_REGION", _env_str("AWS_DEFAULT_REGION")),
                "endpoint_url": _env_str("SQS_ENDPOINT_URL"),
            }
        except ValueError as e:
            raise SqsConfigurationError(f"Invalid SQS_* environment value: {e}") from e

        values.update(overrides)
        return cls(**values)

    def boto_client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.region_name:
            kwargs["region_name"] = self.region_name
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        kwargs.update(self.client_kwargs)
        return kwargs


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
        raise SqsConfigurationError(f"{name} must be an integer in [{low}, {high}], got {value!r}")
