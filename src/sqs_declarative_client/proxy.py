"""
Dispatch core and proxy factory.

A declared client class is turned into a generated subclass whose operation
methods forward to an SqsClientInvocationHandler. The handler binds call
arguments to their declared roles, validates them for the operation kind and
routes the call to SqsService. Methods whose return annotation is a
concurrent.futures.Future get the future back; every other method blocks on it.
"""
from __future__ import annotations
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import functools
import inspect
import threading
import typing

from .attributes import parse_attribute_pairs
from .decorator import (
    ClientOptions,
    MessageBody,
    ParameterRole,
    client_options,
    operation_of,
    parameter_roles,
    registered_clients,
)
from .errors import SqsConfigurationError, SqsValidationError
from .logging_setup import get_logger
from .serialization import JsonMessageSerializer, MessageSerializer
from .service import SqsService
from .types import CallMetadata, OperationDescriptor, OperationKind

logger = get_logger("sqs_declarative_client.proxy")


@dataclass(frozen=True)
class MethodBinding:
    name: str
    descriptor: OperationDescriptor
    signature: inspect.Signature
    roles: Mapping[str, ParameterRole]
    deferred: bool


def _returns_future(func: Callable) -> bool:
    try:
        hint = typing.get_type_hints(func).get("return")
    except (NameError, TypeError):
        hint = inspect.signature(func).return_annotation
    if isinstance(hint, str):
        return hint.split("[", 1)[0].rsplit(".", 1)[-1] == "Future"
    origin = typing.get_origin(hint) or hint
    return isinstance(origin, type) and issubclass(origin, Future)


def _declared_methods(cls: type) -> Dict[str, Callable]:
    methods: Dict[str, Callable] = {}
    for klass in reversed(cls.__mro__[:-1]):
        for name, value in vars(klass).items():
            if name.startswith("_") or not inspect.isfunction(value):
                continue
            methods[name] = value
    return methods


def build_bindings(cls: type) -> Dict[str, MethodBinding]:
    """Resolve every public method of a client class into a MethodBinding."""
    bindings: Dict[str, MethodBinding] = {}
    for name, func in _declared_methods(cls).items():
        descriptor = operation_of(func)
        if descriptor is None:
            raise SqsConfigurationError(
                f"{cls.__name__}.{name} has no SQS operation "
                f"(@send_message, @send_batch, @receive_messages or @start_polling)"
            )
        signature = inspect.signature(func)
        params = list(signature.parameters.values())[1:]  # drop self
        bindings[name] = MethodBinding(
            name=name,
            descriptor=descriptor,
            signature=signature.replace(parameters=params),
            roles=parameter_roles(func),
            deferred=_returns_future(func),
        )
    return bindings


class SqsClientInvocationHandler:
    def __init__(
        self,
        interface: type,
        options: ClientOptions,
        bindings: Mapping[str, MethodBinding],
        service: SqsService,
        serializer: MessageSerializer,
    ):
        self.interface = interface
        self.options = options
        self.bindings = dict(bindings)
        self.service = service
        self.serializer = serializer
        self._queue_attributes = parse_attribute_pairs(options.default_queue_attributes)

    def __repr__(self) -> str:
        return f"SqsClientProxy[{self.options.name}]"

    def invoke(self, method_name: str, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        binding = self.bindings[method_name]
        bound = binding.signature.bind(*args, **kwargs)
        bound.apply_defaults()

        metadata = self.bind_arguments(binding, bound.arguments)
        self.apply_prefix(metadata)
        self.validate(metadata, method_name)
        self.ensure_queue(metadata.queue_name)

        logger.debug("Dispatching %s.%s as %s on %s",
                     self.options.name, method_name, metadata.kind.value, metadata.queue_name)
        result = self.route(metadata)
        return result if binding.deferred else result.result()

    def bind_arguments(self, binding: MethodBinding, arguments: Mapping[str, Any]) -> CallMetadata:
        descriptor = binding.descriptor
        metadata = CallMetadata(descriptor=descriptor, queue_name=descriptor.queue_name)
        untagged = []
        for param, value in arguments.items():
            role = binding.roles.get(param)
            if role is None:
                untagged.append(value)
            elif isinstance(role, MessageBody):
                if descriptor.kind is OperationKind.SEND_BATCH:
                    metadata.batch_messages = value
                else:
                    metadata.message_body = self._encode(value, role)
            elif role.field == "queue_name":
                if value is not None and str(value).strip():
                    metadata.queue_name = str(value)
            elif value is not None:
                setattr(metadata, role.field, value)

        # convenience fallbacks for untagged parameters
        if descriptor.kind is OperationKind.SEND_BATCH and metadata.batch_messages is None:
            metadata.batch_messages = next((v for v in untagged if isinstance(v, (list, tuple))), None)
        if descriptor.kind is OperationKind.RECEIVE and metadata.message_processor is None:
            metadata.message_processor = next((v for v in untagged if callable(v)), None)

        if metadata.batch_messages is not None:
            role = next((r for r in binding.roles.values() if isinstance(r, MessageBody)), MessageBody())
            metadata.batch_messages = [self._encode(item, role) for item in metadata.batch_messages]
        return metadata

    def _encode(self, value: Any, role: MessageBody) -> Optional[str]:
        if value is None:
            return None
        return self.serializer.serialize(value) if role.json else str(value)

    def apply_prefix(self, metadata: CallMetadata) -> None:
        if self.options.queue_prefix and metadata.queue_name:
            metadata.queue_name = self.options.queue_prefix + metadata.queue_name

    @staticmethod
    def validate(metadata: CallMetadata, method_name: str = "") -> None:
        where = f" for {method_name}" if method_name else ""
        if not metadata.queue_name or not metadata.queue_name.strip():
            raise SqsValidationError(f"Queue name is required{where}")

        kind = metadata.kind
        if kind is OperationKind.SEND and metadata.message_body is None:
            raise SqsValidationError(f"Message body is required for SEND operation{where}")
        if kind is OperationKind.SEND_BATCH and not metadata.batch_messages:
            raise SqsValidationError(f"Batch messages are required for SEND_BATCH operation{where}")
        if kind in (OperationKind.RECEIVE, OperationKind.START_POLL) and not callable(metadata.message_processor):
            raise SqsValidationError(f"Message processor is required for {kind.name} operation{where}")
        if kind is OperationKind.SEND and metadata.descriptor.fifo and not metadata.message_group_id:
            raise SqsValidationError(f"MessageGroupId is required for FIFO queue operations{where}")

    def ensure_queue(self, queue_name: str) -> None:
        # deferred: the first provider call on this name creates the queue
        if self.options.auto_create_queues:
            self.service.create_queue_on_first_use(queue_name, self._queue_attributes)

    def route(self, metadata: CallMetadata) -> Future:
        descriptor = metadata.descriptor
        queue = metadata.queue_name
        kind = metadata.kind

        if kind is OperationKind.SEND:
            if descriptor.fifo:
                return self.service.send_fifo_message(
                    queue, metadata.message_body, metadata.message_group_id, metadata.deduplication_id
                )
            if descriptor.delay_seconds > 0:
                return self.service.send_delayed_message(queue, metadata.message_body, descriptor.delay_seconds)
            if metadata.message_attributes:
                return self.service.send_message_with_attributes(
                    queue, metadata.message_body, metadata.message_attributes
                )
            return self.service.send_message(queue, metadata.message_body)

        if kind is OperationKind.SEND_BATCH:
            return self.service.send_message_batch(queue, metadata.batch_messages, batch_size=descriptor.batch_size)

        max_messages = descriptor.max_messages if metadata.max_messages is None else metadata.max_messages
        if kind is OperationKind.RECEIVE:
            if descriptor.auto_delete:
                return self.service.receive_process_and_delete(
                    queue, metadata.message_processor, max_messages, descriptor.wait_time_seconds
                )
            return self.service.receive_and_process_messages(
                queue, metadata.message_processor, max_messages, descriptor.wait_time_seconds
            )

        if kind is OperationKind.START_POLL:
            started = self.service.start_continuous_polling(
                queue, metadata.message_processor, max_messages,
                descriptor.wait_time_seconds, descriptor.auto_delete,
            )
            done: Future = Future()
            done.set_running_or_notify_cancel()
            done.set_result(started)
            return done

        raise SqsConfigurationError(f"Unsupported operation kind: {kind}")


def _make_method(name: str, original: Callable) -> Callable:
    @functools.wraps(original)
    def method(self, *args, **kwargs):
        return self._sqs_handler.invoke(name, args, kwargs)
    method.__dict__.pop("__isabstractmethod__", None)
    return method


def _proxy_repr(self) -> str:
    return repr(self._sqs_handler)


def _proxy_hash(self) -> int:
    return hash(("SqsClientProxy", self._sqs_handler.options.name))


def _proxy_eq(self, other: object) -> bool:
    return self is other


def generate_proxy(interface: type, handler: SqsClientInvocationHandler) -> Any:
    namespace: Dict[str, Any] = {
        name: _make_method(name, getattr(interface, name)) for name in handler.bindings
    }
    namespace.update(
        __module__=interface.__module__,
        __qualname__=f"{interface.__qualname__}Proxy",
        __repr__=_proxy_repr,
        __str__=_proxy_repr,
        __hash__=_proxy_hash,
        __eq__=_proxy_eq,
    )
    try:
        proxy_cls = type(interface)(f"{interface.__name__}Proxy", (interface,), namespace)
        proxy = object.__new__(proxy_cls)
    except TypeError as e:
        raise SqsConfigurationError(f"Cannot implement {interface.__name__}: {e}") from e
    object.__setattr__(proxy, "_sqs_handler", handler)
    return proxy


class SqsClientProxyFactory:
    """
    Builds one proxy per declared client class and caches it. Construction is
    serialized; a class that failed once fails the same way on every request.
    """

    def __init__(self, service: SqsService, serializer: Optional[MessageSerializer] = None):
        self.service = service
        self.serializer = serializer or JsonMessageSerializer()
        self._proxies: Dict[type, Any] = {}
        self._failures: Dict[type, SqsConfigurationError] = {}
        self._lock = threading.Lock()

    def create_proxy(self, interface: type) -> Any:
        proxy = self._proxies.get(interface)
        if proxy is not None:
            return proxy
        with self._lock:
            proxy = self._proxies.get(interface)
            if proxy is not None:
                return proxy
            failure = self._failures.get(interface)
            if failure is not None:
                raise SqsConfigurationError(str(failure)) from failure
            try:
                proxy = self._build(interface)
            except SqsConfigurationError as e:
                self._failures[interface] = e
                logger.error("Failed to create SQS client proxy for %s: %s",
                             getattr(interface, "__name__", interface), e)
                raise
            self._proxies[interface] = proxy
            return proxy

    def _build(self, interface: Any) -> Any:
        if not isinstance(interface, type):
            raise SqsConfigurationError(f"{interface!r} is not a class")
        options = client_options(interface)
        if options is None:
            raise SqsConfigurationError(f"{interface.__name__} is not decorated with @sqs_client")
        bindings = build_bindings(interface)
        handler = SqsClientInvocationHandler(interface, options, bindings, self.service, self.serializer)
        proxy = generate_proxy(interface, handler)
        logger.info("Created SQS client proxy %s with %d operation(s)", proxy, len(bindings))
        return proxy

    def create_registered_proxies(self) -> Dict[type, Any]:
        return {cls: self.create_proxy(cls) for cls in registered_clients()}

    def is_cached(self, interface: type) -> bool:
        return interface in self._proxies

    def clear_cache(self) -> None:
        with self._lock:
            self._proxies.clear()
            self._failures.clear()
