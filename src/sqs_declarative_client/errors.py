from __future__ import annotations
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

SERVICE_NAME = "sqs"

RETRYABLE_ERROR_CODES = {
    "Throttling", "ThrottlingException", "RequestThrottled",
    "ServiceUnavailable", "InternalError", "InternalFailure",
    "RequestTimeout", "KmsThrottled",
}

NON_EXISTENT_QUEUE_CODES = {
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
    "NonExistentQueue",
}


class SqsClientError(Exception):
    """Base class for every error raised by this package."""


class SqsConfigurationError(SqsClientError, ValueError):
    """Malformed client declaration, unknown queue attribute or invalid settings."""


class SqsValidationError(SqsClientError, ValueError):
    """A call is missing an argument, or carries one out of range, for its operation."""


class MessageSerializationError(SqsClientError):
    pass


class SqsServiceError(SqsClientError):
    """
    Provider or transport failure.

    Carries the provider error code together with the operation and queue
    that produced it. Built via `from_exception` so every boto error surfaces
    as this one type.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        queue_name: Optional[str] = None,
        error_code: str = "UNKNOWN_ERROR",
        status_code: int = 0,
        request_id: Optional[str] = None,
        retryable: bool = False,
        service: str = SERVICE_NAME,
    ):
        super().__init__(message)
        self.service = service
        self.operation = operation
        self.queue_name = queue_name
        self.error_code = error_code
        self.status_code = status_code
        self.request_id = request_id
        self.retryable = retryable

    def __str__(self) -> str:
        where = f" queue={self.queue_name}" if self.queue_name else ""
        return (
            f"[{self.service}:{self.operation}]{where} "
            f"{self.error_code}: {self.args[0] if self.args else ''}"
        )

    @property
    def is_queue_missing(self) -> bool:
        return self.error_code in NON_EXISTENT_QUEUE_CODES

    @classmethod
    def from_exception(
        cls, exc: BaseException, operation: str, queue_name: Optional[str] = None
    ) -> "SqsServiceError":
        if isinstance(exc, SqsServiceError):
            if exc.queue_name is None:
                exc.queue_name = queue_name
            return exc

        if isinstance(exc, ClientError):
            error = exc.response.get("Error", {})
            meta = exc.response.get("ResponseMetadata", {})
            code = error.get("Code") or "UNKNOWN_ERROR"
            status = int(meta.get("HTTPStatusCode") or 0)
            err = cls(
                error.get("Message") or str(exc),
                operation=operation,
                queue_name=queue_name,
                error_code=code,
                status_code=status,
                request_id=meta.get("RequestId"),
                retryable=code in RETRYABLE_ERROR_CODES or status >= 500,
            )
        elif isinstance(exc, BotoCoreError):
            err = cls(
                str(exc),
                operation=operation,
                queue_name=queue_name,
                error_code="SDK_CLIENT_ERROR",
                retryable=True,
            )
        else:
            err = cls(
                f"Unknown error during {operation}: {exc}",
                operation=operation,
                queue_name=queue_name,
            )
        err.__cause__ = exc
        return err


class MessageProcessingError(SqsClientError):
    """One or more processors failed during a concurrent receive-and-process call."""

    def __init__(self, queue_name: str, errors: List[BaseException]):
        super().__init__(
            f"{len(errors)} message(s) failed processing on queue {queue_name}: {errors[0]!r}"
        )
        self.queue_name = queue_name
        self.errors = list(errors)
