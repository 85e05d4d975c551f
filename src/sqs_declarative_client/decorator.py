from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import inspect
import typing

from .attributes import MAX_DELAY_SECONDS, MAX_WAIT_TIME_SECONDS
from .config import PROVIDER_MAX_BATCH_SIZE, PROVIDER_MAX_RECEIVE_MESSAGES
from .errors import SqsConfigurationError
from .logging_setup import get_logger
from .types import OperationDescriptor, OperationKind

_logger = get_logger("sqs_declarative_client")

SQS_CLIENT_ATTR = "__sqs_client__"
SQS_OPERATION_ATTR = "__sqs_operation__"


@dataclass(frozen=True)
class ClientOptions:
    name: str
    queue_prefix: str = ""
    auto_create_queues: bool = False
    default_queue_attributes: Tuple[str, ...] = ()


_REGISTRY: List[type] = []


def sqs_client(
    name: Optional[str] = None,
    *,
    queue_prefix: str = "",
    auto_create_queues: bool = False,
    default_queue_attributes: Sequence[str] = (),
):
    """
    Mark a class as a declarative SQS client and register it. Usable bare
    (``@sqs_client``) or with options (``@sqs_client("orders", queue_prefix="dev-")``).

    default_queue_attributes are "Key=Value" strings applied when
    auto_create_queues creates a missing queue.
    """
    if isinstance(name, type):
        return sqs_client()(name)

    def _decorator(cls: type) -> type:
        if not isinstance(cls, type):
            raise SqsConfigurationError("@sqs_client can only decorate a class")
        options = ClientOptions(
            name=name or cls.__name__,
            queue_prefix=queue_prefix or "",
            auto_create_queues=bool(auto_create_queues),
            default_queue_attributes=tuple(default_queue_attributes or ()),
        )
        setattr(cls, SQS_CLIENT_ATTR, options)
        if cls not in _REGISTRY:
            _REGISTRY.append(cls)
        _logger.info("Registered SQS client %s (prefix=%r auto_create=%s)",
                     options.name, options.queue_prefix, options.auto_create_queues)
        return cls

    return _decorator


def registered_clients() -> Tuple[type, ...]:
    return tuple(_REGISTRY)


def client_options(cls: type) -> Optional[ClientOptions]:
    # only the class's own tag counts; a subclass of a client is not itself a client
    options = cls.__dict__.get(SQS_CLIENT_ATTR)
    return options if isinstance(options, ClientOptions) else None


# ----------------------------------------------------------------------
# operation decorators
# ----------------------------------------------------------------------

def _check_range(name: str, value: int, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise SqsConfigurationError(f"{name} must be an integer within {low}-{high}, got {value!r}")


def _operation(descriptor: OperationDescriptor) -> Callable[[Callable], Callable]:
    def _decorator(func: Callable) -> Callable:
        if not callable(func):
            raise SqsConfigurationError("Operation decorators apply to methods only")
        existing = getattr(func, SQS_OPERATION_ATTR, None)
        if existing is not None:
            raise SqsConfigurationError(
                f"{func.__qualname__} already declares a {existing.kind.value} operation"
            )
        setattr(func, SQS_OPERATION_ATTR, descriptor)
        return func
    return _decorator


def _queue(queue_name: Optional[str]) -> Optional[str]:
    if queue_name is not None and not isinstance(queue_name, str):
        raise SqsConfigurationError(f"queue_name must be a string, got {type(queue_name).__name__}")
    return queue_name or None


def send_message(queue_name: Optional[str] = None, *, delay_seconds: int = 0, fifo: bool = False):
    if callable(queue_name):
        return send_message()(queue_name)
    _check_range("delay_seconds", delay_seconds, 0, MAX_DELAY_SECONDS)
    return _operation(OperationDescriptor(
        kind=OperationKind.SEND,
        queue_name=_queue(queue_name),
        delay_seconds=delay_seconds,
        fifo=bool(fifo),
    ))


def send_batch(queue_name: Optional[str] = None, *, batch_size: int = PROVIDER_MAX_BATCH_SIZE):
    if callable(queue_name):
        return send_batch()(queue_name)
    _check_range("batch_size", batch_size, 1, PROVIDER_MAX_BATCH_SIZE)
    return _operation(OperationDescriptor(
        kind=OperationKind.SEND_BATCH,
        queue_name=_queue(queue_name),
        batch_size=batch_size,
    ))


def receive_messages(
    queue_name: Optional[str] = None,
    *,
    max_messages: int = PROVIDER_MAX_RECEIVE_MESSAGES,
    auto_delete: bool = False,
    wait_time_seconds: int = 0,
):
    if callable(queue_name):
        return receive_messages()(queue_name)
    _check_range("max_messages", max_messages, 1, PROVIDER_MAX_RECEIVE_MESSAGES)
    _check_range("wait_time_seconds", wait_time_seconds, 0, MAX_WAIT_TIME_SECONDS)
    return _operation(OperationDescriptor(
        kind=OperationKind.RECEIVE,
        queue_name=_queue(queue_name),
        max_messages=max_messages,
        auto_delete=bool(auto_delete),
        wait_time_seconds=wait_time_seconds,
    ))


def start_polling(
    queue_name: Optional[str] = None,
    *,
    max_messages: int = PROVIDER_MAX_RECEIVE_MESSAGES,
    auto_delete: bool = True,
    wait_time_seconds: Optional[int] = None,
):
    """Declare a continuous poll. Without wait_time_seconds the service's receive_wait_time_seconds applies."""
    if callable(queue_name):
        return start_polling()(queue_name)
    _check_range("max_messages", max_messages, 1, PROVIDER_MAX_RECEIVE_MESSAGES)
    if wait_time_seconds is not None:
        _check_range("wait_time_seconds", wait_time_seconds, 0, MAX_WAIT_TIME_SECONDS)
    return _operation(OperationDescriptor(
        kind=OperationKind.START_POLL,
        queue_name=_queue(queue_name),
        max_messages=max_messages,
        auto_delete=bool(auto_delete),
        wait_time_seconds=wait_time_seconds,
    ))


def operation_of(func: Any) -> Optional[OperationDescriptor]:
    descriptor = getattr(func, SQS_OPERATION_ATTR, None)
    return descriptor if isinstance(descriptor, OperationDescriptor) else None


# ----------------------------------------------------------------------
# parameter roles
# ----------------------------------------------------------------------

class ParameterRole:
    """Base for Annotated markers, e.g. ``queue: Annotated[str, QueueName()]``."""
    field: str = ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self) -> int:
        return hash(type(self))


class QueueName(ParameterRole):
    field = "queue_name"


class MessageBody(ParameterRole):
    """Message body. With json=False the value is sent as str(value) instead of serialized."""
    field = "message_body"

    def __init__(self, json: bool = True):
        self.json = json

    def __repr__(self) -> str:
        return f"MessageBody(json={self.json})"


class MessageGroupId(ParameterRole):
    field = "message_group_id"


class DeduplicationId(ParameterRole):
    field = "deduplication_id"


class MessageAttributes(ParameterRole):
    field = "message_attributes"


class MaxMessages(ParameterRole):
    field = "max_messages"


class MessageProcessor(ParameterRole):
    field = "message_processor"


def _annotated_metadata(hint: Any) -> Tuple[Any, ...]:
    # a None default can wrap the hint in Optional[...]
    if typing.get_origin(hint) is typing.Union:
        hint = next((a for a in typing.get_args(hint) if typing.get_origin(a) is typing.Annotated), None)
    if typing.get_origin(hint) is typing.Annotated:
        return hint.__metadata__
    return ()


def parameter_roles(func: Callable) -> Dict[str, ParameterRole]:
    """Map parameter name -> role for every Annotated parameter carrying a role marker."""
    try:
        hints = typing.get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as e:
        raise SqsConfigurationError(f"Cannot resolve annotations of {func.__qualname__}: {e}") from e

    roles: Dict[str, ParameterRole] = {}
    for param in inspect.signature(func).parameters:
        found = []
        for marker in _annotated_metadata(hints.get(param)):
            if isinstance(marker, type) and issubclass(marker, ParameterRole):
                marker = marker()
            if isinstance(marker, ParameterRole):
                found.append(marker)
        if len(found) > 1:
            raise SqsConfigurationError(f"{func.__qualname__}: parameter {param} declares {len(found)} roles")
        if found:
            roles[param] = found[0]
    return roles
