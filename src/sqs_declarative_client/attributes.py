from __future__ import annotations
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .errors import SqsConfigurationError

DEFAULT_VISIBILITY_TIMEOUT = "30"
DEFAULT_MESSAGE_RETENTION_PERIOD = "345600"
DEFAULT_WAIT_TIME_SECONDS = "0"

MAX_VISIBILITY_TIMEOUT = 43200
MIN_MESSAGE_RETENTION_PERIOD = 60
MAX_MESSAGE_RETENTION_PERIOD = 1209600
MAX_WAIT_TIME_SECONDS = 20
MAX_DELAY_SECONDS = 900

# attribute name -> inclusive integer range
NUMERIC_RANGES: Dict[str, Tuple[int, int]] = {
    "VisibilityTimeout": (0, MAX_VISIBILITY_TIMEOUT),
    "ReceiveMessageWaitTimeSeconds": (0, MAX_WAIT_TIME_SECONDS),
    "DelaySeconds": (0, MAX_DELAY_SECONDS),
    "MessageRetentionPeriod": (MIN_MESSAGE_RETENTION_PERIOD, MAX_MESSAGE_RETENTION_PERIOD),
}

BOOLEAN_ATTRIBUTES = {"FifoQueue", "ContentBasedDeduplication", "SqsManagedSseEnabled"}

POLICY_ATTRIBUTES = {"Policy", "RedrivePolicy", "RedriveAllowPolicy"}

OTHER_ATTRIBUTES = {
    "MaximumMessageSize",
    "KmsMasterKeyId",
    "KmsDataKeyReusePeriodSeconds",
    "DeduplicationScope",
    "FifoThroughputLimit",
}

KNOWN_ATTRIBUTES = frozenset(NUMERIC_RANGES) | BOOLEAN_ATTRIBUTES | POLICY_ATTRIBUTES | OTHER_ATTRIBUTES


def convert_to_queue_attributes(attributes: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Validate a string-keyed attribute map and return it ready for CreateQueue /
    SetQueueAttributes. Unknown keys and out-of-range values raise
    SqsConfigurationError; nothing is silently dropped.
    """
    if not attributes:
        return {}

    converted: Dict[str, str] = {}
    for key, value in attributes.items():
        if key is None or not str(key).strip():
            raise SqsConfigurationError("Queue attribute key cannot be blank")
        if value is None:
            raise SqsConfigurationError(f"Queue attribute value cannot be None: {key}")
        key = str(key).strip()
        if key not in KNOWN_ATTRIBUTES:
            raise SqsConfigurationError(f"Unsupported queue attribute: '{key}'")
        value = str(value)
        validate_attribute_value(key, value)
        converted[key] = value
    return converted


def validate_attribute_value(name: str, value: str) -> None:
    if name in NUMERIC_RANGES:
        low, high = NUMERIC_RANGES[name]
        try:
            number = int(value.strip())
        except ValueError as e:
            raise SqsConfigurationError(f"{name} is not a valid integer: {value!r}") from e
        if not low <= number <= high:
            raise SqsConfigurationError(f"{name} must be within {low}-{high} seconds (got {number})")
        return

    if not value.strip():
        raise SqsConfigurationError(f"{name} cannot be blank")

    if name in BOOLEAN_ATTRIBUTES and value.strip().lower() not in ("true", "false"):
        raise SqsConfigurationError(f"{name} must be 'true' or 'false' (got {value!r})")


def parse_attribute_pairs(pairs: Iterable[str]) -> Dict[str, str]:
    """Turn ["VisibilityTimeout=60", ...] into a validated attribute map."""
    raw: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = str(pair).partition("=")
        if not sep:
            raise SqsConfigurationError(f"Queue attribute must be 'Key=Value': {pair!r}")
        raw[key.strip()] = value.strip()
    return convert_to_queue_attributes(raw)


def get_default_attributes() -> Dict[str, str]:
    return {
        "VisibilityTimeout": DEFAULT_VISIBILITY_TIMEOUT,
        "ReceiveMessageWaitTimeSeconds": DEFAULT_WAIT_TIME_SECONDS,
    }


def get_long_polling_attributes(wait_time_seconds: int) -> Dict[str, str]:
    if not 1 <= wait_time_seconds <= MAX_WAIT_TIME_SECONDS:
        raise SqsConfigurationError(
            f"Long polling wait time must be within 1-{MAX_WAIT_TIME_SECONDS} seconds: {wait_time_seconds}"
        )
    attributes = get_default_attributes()
    attributes["ReceiveMessageWaitTimeSeconds"] = str(wait_time_seconds)
    return attributes
