# tests/test_config.py
# ---------------------------------------------------------------------------
# Pytest unit tests for settings, env helpers, error wrapping and logging:
# - _env_int / _env_float helpers
# - SqsSettings range checks and from_env() layering
# - SqsServiceError.from_exception for boto errors
# - get_logger configuration
# ---------------------------------------------------------------------------

import logging

import pytest
from botocore.exceptions import EndpointConnectionError

from sqs_declarative_client import config
from sqs_declarative_client.config import SqsSettings
from sqs_declarative_client.errors import SqsConfigurationError, SqsServiceError
from sqs_declarative_client.logging_setup import get_logger

from conftest import client_error


# =========================
# Tests: env helpers
# =========================

def test_env_helpers(monkeypatch):
    monkeypatch.setenv("SQS_WAIT_TIME", "5")
    monkeypatch.setenv("SQS_POLL_BACKOFF_SECS", "1.25")

    assert config._env_int("SQS_WAIT_TIME", 20) == 5
    assert config._env_int("MISSING_INT", 7) == 7
    assert config._env_float("SQS_POLL_BACKOFF_SECS", 2.0) == 1.25
    assert config._env_float("MISSING_FLOAT", 3.5) == 3.5


# =========================
# Tests: SqsSettings
# =========================

def test_defaults_match_provider_limits():
    s = SqsSettings()
    assert s.max_batch_size == 10
    assert s.max_receive_messages == 10
    assert s.receive_wait_time_seconds == 20
    assert s.default_queue_url_prefix == ""


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_batch_size": 11},
        {"max_batch_size": 0},
        {"max_receive_messages": 11},
        {"receive_wait_time_seconds": 21},
        {"visibility_timeout": 43201},
        {"worker_threads": 0},
        {"io_threads": 0},
        {"polling_error_backoff_seconds": -1},
        {"polling_iteration_timeout_seconds": 0},
    ],
)
def test_out_of_range_settings_are_rejected(kwargs):
    with pytest.raises(SqsConfigurationError):
        SqsSettings(**kwargs)


def test_from_env_layers_env_under_overrides(monkeypatch):
    monkeypatch.setenv("SQS_MAX_BATCH_SIZE", "5")
    monkeypatch.setenv("SQS_WAIT_TIME", "10")
    monkeypatch.setenv("SQS_QUEUE_URL_PREFIX", "http://localstack:4566/000000000000/")
    monkeypatch.setenv("SQS_ENDPOINT_URL", "http://localstack:4566")
    monkeypatch.setenv("AWS_REGION", "eu-west-1")

    s = SqsSettings.from_env(receive_wait_time_seconds=3)
    assert s.max_batch_size == 5
    assert s.receive_wait_time_seconds == 3
    assert s.default_queue_url_prefix == "http://localstack:4566/000000000000/"
    assert s.boto_client_kwargs() == {"region_name": "eu-west-1", "endpoint_url": "http://localstack:4566"}


def test_from_env_rejects_bad_values_and_unknown_keys(monkeypatch):
    monkeypatch.setenv("SQS_MAX_BATCH_SIZE", "ten")
    with pytest.raises(SqsConfigurationError):
        SqsSettings.from_env()
    monkeypatch.delenv("SQS_MAX_BATCH_SIZE")
    with pytest.raises(SqsConfigurationError):
        SqsSettings.from_env(not_a_setting=1)


# =========================
# Tests: error wrapping
# =========================

def test_client_error_keeps_provider_code_and_context():
    err = SqsServiceError.from_exception(client_error("InvalidParameterValue"), "send_message", "orders")
    assert err.error_code == "InvalidParameterValue"
    assert err.status_code == 400
    assert err.request_id == "req-1"
    assert err.retryable is False
    assert err.queue_name == "orders"
    assert str(err) == "[sqs:send_message] queue=orders InvalidParameterValue: boom"
    assert isinstance(err.__cause__, Exception)


def test_throttling_and_5xx_are_retryable():
    assert SqsServiceError.from_exception(client_error("ThrottlingException"), "op").retryable
    assert SqsServiceError.from_exception(client_error("Weird", status=503), "op").retryable


def test_transport_error_maps_to_sdk_client_error():
    err = SqsServiceError.from_exception(EndpointConnectionError(endpoint_url="http://x"), "receive_message")
    assert err.error_code == "SDK_CLIENT_ERROR"
    assert err.retryable


def test_missing_queue_codes_are_recognised():
    err = SqsServiceError.from_exception(client_error("AWS.SimpleQueueService.NonExistentQueue"), "get_queue_url")
    assert err.is_queue_missing


def test_existing_service_error_gains_queue_name_only_once():
    original = SqsServiceError("x", operation="send_message")
    assert SqsServiceError.from_exception(original, "outer", "q1") is original
    assert original.queue_name == "q1"
    SqsServiceError.from_exception(original, "outer", "q2")
    assert original.queue_name == "q1"


# =========================
# Tests: logging
# =========================

def test_package_root_logger_owns_the_only_handler():
    root = get_logger()
    assert get_logger("sqs_declarative_client") is root
    assert len(root.handlers) == 1
    assert root.propagate is False


def test_module_loggers_propagate_to_package_root():
    child = get_logger("sqs_declarative_client.test")
    assert get_logger("sqs_declarative_client.test") is child
    assert child.handlers == []
    assert child.propagate is True
    assert child.parent is logging.getLogger("sqs_declarative_client")
    assert child.getEffectiveLevel() == get_logger().level


def test_foreign_logger_gets_its_own_handler_once():
    a = get_logger("orders-app")
    b = get_logger("orders-app")
    assert a is b
    assert len(a.handlers) == 1
    assert a.propagate is False
    assert isinstance(a, logging.Logger)
