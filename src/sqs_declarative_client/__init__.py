from .client import SqsQueueClient
from .config import SqsSettings
from .decorator import (
    DeduplicationId,
    MaxMessages,
    MessageAttributes,
    MessageBody,
    MessageGroupId,
    MessageProcessor,
    QueueName,
    receive_messages,
    send_batch,
    send_message,
    sqs_client,
    start_polling,
)
from .errors import (
    MessageProcessingError,
    MessageSerializationError,
    SqsClientError,
    SqsConfigurationError,
    SqsServiceError,
    SqsValidationError,
)
from .proxy import SqsClientProxyFactory
from .serialization import JsonMessageSerializer, MessageSerializer
from .service import PollingState, SqsService
from .types import BatchResult, MessageAttribute, SqsMessage

__all__ = [
    "sqs_client", "send_message", "send_batch", "receive_messages", "start_polling",
    "QueueName", "MessageBody", "MessageGroupId", "DeduplicationId",
    "MessageAttributes", "MaxMessages", "MessageProcessor",
    "SqsClientProxyFactory", "SqsService", "SqsQueueClient", "SqsSettings", "PollingState",
    "JsonMessageSerializer", "MessageSerializer",
    "SqsMessage", "MessageAttribute", "BatchResult",
    "SqsClientError", "SqsConfigurationError", "SqsValidationError",
    "SqsServiceError", "MessageSerializationError", "MessageProcessingError",
]
