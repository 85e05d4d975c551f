from __future__ import annotations
import threading
import time
import uuid
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from concurrent.futures import wait
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from . import batch
from .attributes import MAX_DELAY_SECONDS, MAX_VISIBILITY_TIMEOUT, convert_to_queue_attributes
from .client import SqsQueueClient
from .config import PROVIDER_MAX_RECEIVE_MESSAGES, SqsSettings
from .errors import (
    MessageProcessingError,
    SqsClientError,
    SqsServiceError,
    SqsValidationError,
)
from .logging_setup import get_logger
from .types import MessageAttribute, MessageProcessor, SqsMessage

logger = get_logger("sqs_declarative_client.service")

MAX_MESSAGE_ATTRIBUTES = 10
DELAY_ATTRIBUTE = "DelaySeconds"


# ----------------------------------------------------------------------
# future plumbing
# ----------------------------------------------------------------------

def _new_future() -> Future:
    fut: Future = Future()
    fut.set_running_or_notify_cancel()  # promise-style: callers cannot cancel it
    return fut


def _exception_of(fut: Future) -> Optional[BaseException]:
    if fut.cancelled():
        return CancelledError()
    return fut.exception()


def _copy_outcome(source: Future, target: Future) -> None:
    exc = _exception_of(source)
    if exc is not None:
        target.set_exception(exc)
    else:
        target.set_result(source.result())


def _then(source: Future, fn: Callable[[Any], Any]) -> Future:
    """Apply fn to source's result; if fn returns a Future, its outcome is forwarded."""
    out = _new_future()

    def _done(f: Future) -> None:
        exc = _exception_of(f)
        if exc is not None:
            out.set_exception(exc)
            return
        try:
            nxt = fn(f.result())
        except Exception as e:
            out.set_exception(e)
            return
        if isinstance(nxt, Future):
            nxt.add_done_callback(lambda n: _copy_outcome(n, out))
        else:
            out.set_result(nxt)

    source.add_done_callback(_done)
    return out


def _gather(futures: Sequence[Future], aggregate_queue: Optional[str] = None) -> Future:
    """
    Resolve to the list of results in input order once every future is done.
    A failure surfaces only after all siblings finish: the first error in input
    order, or a MessageProcessingError holding all of them when aggregate_queue is set.
    """
    out = _new_future()
    futures = list(futures)
    if not futures:
        out.set_result([])
        return out

    remaining = [len(futures)]
    lock = threading.Lock()

    def _done(_f: Future) -> None:
        with lock:
            remaining[0] -= 1
            if remaining[0]:
                return
        errors = [e for e in (_exception_of(f) for f in futures) if e is not None]
        if not errors:
            out.set_result([f.result() for f in futures])
        elif aggregate_queue is not None:
            out.set_exception(MessageProcessingError(aggregate_queue, errors))
        else:
            out.set_exception(errors[0])

    for f in futures:
        f.add_done_callback(_done)
    return out


def _completed(value: Any) -> Future:
    fut = _new_future()
    fut.set_result(value)
    return fut


def _require_text(value: Optional[str], what: str) -> None:
    if value is None or not str(value).strip():
        raise SqsValidationError(f"{what} is required")


def _delay_seconds(delay: Union[int, float, timedelta]) -> int:
    seconds = int(delay.total_seconds()) if isinstance(delay, timedelta) else int(delay)
    if seconds < 0:
        raise SqsValidationError("Delay cannot be negative")
    if seconds > MAX_DELAY_SECONDS:
        raise SqsValidationError(f"Delay cannot exceed {MAX_DELAY_SECONDS} seconds (15 minutes)")
    return seconds


# ----------------------------------------------------------------------
# polling sessions
# ----------------------------------------------------------------------

class PollingState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PollingSession:
    """One continuous poll loop for one queue name, driven by a daemon thread."""

    def __init__(self, queue_name: str, target: Callable[["PollingSession"], None]):
        self.queue_name = queue_name
        self.stop_event = threading.Event()
        self._state = PollingState.NOT_STARTED
        self._lock = threading.Lock()
        self.thread = threading.Thread(
            target=target, args=(self,), daemon=True, name=f"sqs-poller-{queue_name}"
        )

    @property
    def state(self) -> PollingState:
        return self._state

    @property
    def running(self) -> bool:
        return not self.stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self._state is not PollingState.NOT_STARTED:
                raise RuntimeError(f"Polling session for {self.queue_name} already {self._state.value}")
            self._state = PollingState.RUNNING
        self.thread.start()

    def request_stop(self) -> bool:
        with self._lock:
            if self._state is not PollingState.RUNNING:
                return False
            self._state = PollingState.STOPPING
            self.stop_event.set()
            return True

    def mark_stopped(self) -> None:
        with self._lock:
            self.stop_event.set()
            self._state = PollingState.STOPPED

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on stop. Returns True if stopped."""
        return self.stop_event.wait(seconds)

    def join(self, timeout: Optional[float] = None) -> None:
        if self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout)


# ----------------------------------------------------------------------
# service
# ----------------------------------------------------------------------

class SqsService:
    """
    Queue orchestration: delayed/FIFO/attributed sends, chunked batch sends,
    receive-process(-delete) workflows and continuous polling.

    Every operation returns a concurrent.futures.Future. Argument and
    configuration errors are raised synchronously, before any provider call;
    provider errors fail the returned future with SqsServiceError.
    """

    def __init__(
        self,
        client: Optional[SqsQueueClient] = None,
        settings: Optional[SqsSettings] = None,
    ):
        self.settings = settings or (client.settings if client is not None else SqsSettings())
        self.client = client or SqsQueueClient(settings=self.settings)
        # provider calls and message processors never share a pool: a processor
        # may block on a send of its own
        self._io = ThreadPoolExecutor(max_workers=self.settings.io_threads, thread_name_prefix="sqs-io")
        self._workers = ThreadPoolExecutor(
            max_workers=self.settings.worker_threads, thread_name_prefix="sqs-worker"
        )
        self._sessions: Dict[str, PollingSession] = {}
        self._sessions_lock = threading.Lock()
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        self._unprovisioned: Dict[str, Dict[str, str]] = {}
        self._provisioned: Set[str] = set()
        self._provision_lock = threading.Lock()
        self._closed = False

        logger.info(
            "Configured SQS service: batch=%s receive=%s wait=%ss workers=%s io=%s url_prefix=%s",
            self.settings.max_batch_size, self.settings.max_receive_messages,
            self.settings.receive_wait_time_seconds, self.settings.worker_threads, self.settings.io_threads,
            self.settings.default_queue_url_prefix or "-",
        )

    # -- plumbing -------------------------------------------------------

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run a provider call on the I/O pool."""
        return self._track(self._io, fn, *args)

    def _submit_processing(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run user processing on the worker pool."""
        return self._track(self._workers, fn, *args)

    def _track(self, pool: ThreadPoolExecutor, fn: Callable[..., Any], *args: Any) -> Future:
        if self._closed:
            raise SqsClientError("SqsService has been shut down")
        fut = pool.submit(fn, *args)
        with self._pending_lock:
            self._pending.add(fut)
        fut.add_done_callback(self._forget)
        return fut

    def _forget(self, fut: Future) -> None:
        with self._pending_lock:
            self._pending.discard(fut)

    @staticmethod
    def _guard(source: Future, operation: str, queue_name: Optional[str]) -> Future:
        """Give every failure operation + queue context; package errors other than provider ones pass as-is."""
        out = _new_future()

        def _done(f: Future) -> None:
            exc = _exception_of(f)
            if exc is None:
                out.set_result(f.result())
            elif isinstance(exc, SqsClientError) and not isinstance(exc, SqsServiceError):
                out.set_exception(exc)
            else:
                out.set_exception(SqsServiceError.from_exception(exc, operation, queue_name))

        source.add_done_callback(_done)
        return out

    def _run(self, operation: str, queue_name: Optional[str], fn: Callable[..., Any], *args: Any) -> Future:
        return self._guard(self._submit(fn, *args), operation, queue_name)

    def get_queue_url(self, queue_name: str) -> str:
        """Resolve a queue URL: configured prefix + name, or a provider lookup."""
        if queue_name in self._unprovisioned:
            self._provision(queue_name)
        prefix = self.settings.default_queue_url_prefix
        if prefix:
            return prefix + queue_name
        return self.client.get_queue_url(queue_name)

    def _max_messages(self, max_messages: Optional[int]) -> int:
        if max_messages is None:
            return self.settings.max_receive_messages
        if max_messages < 1:
            raise SqsValidationError(f"max_messages must be at least 1, got {max_messages}")
        return min(int(max_messages), PROVIDER_MAX_RECEIVE_MESSAGES)

    # -- send -----------------------------------------------------------

    def send_message(self, queue_name: str, body: str) -> Future:
        _require_text(queue_name, "Queue name")
        _require_text(body, "Message body")
        return self._run("send_message", queue_name, self._send, queue_name, body, None, None)

    def send_delayed_message(self, queue_name: str, body: str, delay: Union[int, float, timedelta]) -> Future:
        _require_text(queue_name, "Queue name")
        _require_text(body, "Message body")
        seconds = _delay_seconds(delay)
        attributes = {DELAY_ATTRIBUTE: MessageAttribute.number(seconds)}
        return self._run("send_delayed_message", queue_name, self._send, queue_name, body, attributes, seconds)

    def send_message_with_attributes(self, queue_name: str, body: str, attributes: Mapping[str, Any]) -> Future:
        _require_text(queue_name, "Queue name")
        _require_text(body, "Message body")
        typed = self._typed_attributes(attributes)
        return self._run("send_message_with_attributes", queue_name, self._send, queue_name, body, typed, None)

    def send_fifo_message(
        self,
        queue_name: str,
        body: str,
        message_group_id: str,
        deduplication_id: Optional[str] = None,
    ) -> Future:
        _require_text(queue_name, "Queue name")
        _require_text(body, "Message body")
        _require_text(message_group_id, "MessageGroupId for FIFO queue operations")
        dedup = deduplication_id if deduplication_id and deduplication_id.strip() else str(uuid.uuid4())

        def _send_fifo() -> str:
            return self.client.send_fifo_message(self.get_queue_url(queue_name), body, message_group_id, dedup)

        return self._run("send_fifo_message", queue_name, _send_fifo)

    def _send(self, queue_name: str, body: str, attributes: Optional[Dict[str, MessageAttribute]],
              delay_seconds: Optional[int]) -> str:
        return self.client.send_message(self.get_queue_url(queue_name), body, attributes, delay_seconds)

    @staticmethod
    def _typed_attributes(attributes: Optional[Mapping[str, Any]]) -> Dict[str, MessageAttribute]:
        if not attributes:
            return {}
        if len(attributes) > MAX_MESSAGE_ATTRIBUTES:
            raise SqsValidationError(f"A message carries at most {MAX_MESSAGE_ATTRIBUTES} attributes")
        typed: Dict[str, MessageAttribute] = {}
        for key, value in attributes.items():
            _require_text(key, "Message attribute name")
            if value is None:
                raise SqsValidationError(f"Message attribute {key} has no value")
            try:
                typed[key] = MessageAttribute.of(value)
            except ValueError as e:
                raise SqsValidationError(f"Invalid message attribute {key}: {e}") from e
        return typed

    def send_message_batch(
        self,
        queue_name: str,
        messages: Sequence[str],
        entry_ids: Optional[Sequence[str]] = None,
        batch_size: Optional[int] = None,
    ) -> Future:
        """
        Send any number of bodies. Lists above the ceiling are split into chunks
        sent concurrently; the resulting message ids keep the input order.
        """
        _require_text(queue_name, "Queue name")
        ceiling = min(batch_size or self.settings.max_batch_size, self.settings.max_batch_size)
        if batch.is_empty(messages, "send_message_batch"):
            return _completed([])
        messages = list(messages)
        batch.validate_no_null_elements(messages, "send_message_batch")
        if entry_ids is not None:
            batch.create_send_entries(messages, list(entry_ids))
        chunks = batch.chunk(messages, ceiling)
        id_chunks = batch.chunk(list(entry_ids), ceiling) if entry_ids is not None else [None] * len(chunks)
        for c in chunks:
            batch.validate_for_batch_operation(c, ceiling, "send_message_batch")
        if len(chunks) > 1:
            logger.debug("Splitting %d messages into %d chunks for %s", len(messages), len(chunks), queue_name)

        def _fan_out(queue_url: str) -> Future:
            return _gather([
                self._submit(self.client.send_messages, queue_url, c, ids)
                for c, ids in zip(chunks, id_chunks)
            ])

        def _flatten(results) -> List[str]:
            return [message_id for result in results for message_id in result.successful]

        sent = _then(_then(self._submit(self.get_queue_url, queue_name), _fan_out), _flatten)
        return self._guard(sent, "send_message_batch", queue_name)

    # -- receive --------------------------------------------------------

    def _receive(self, queue_name: str, max_messages: int, wait_time_seconds: int) -> Tuple[str, List[SqsMessage]]:
        queue_url = self.get_queue_url(queue_name)
        return queue_url, self.client.receive_messages(
            queue_url, max_messages, wait_time_seconds, self.settings.visibility_timeout
        )

    def receive_and_process_messages(
        self,
        queue_name: str,
        processor: MessageProcessor,
        max_messages: Optional[int] = None,
        wait_time_seconds: int = 0,
    ) -> Future:
        """
        Process every received message concurrently, without deleting. Failures
        are collected into one MessageProcessingError once all processors finish.
        """
        _require_text(queue_name, "Queue name")
        self._require_processor(processor)
        n = self._max_messages(max_messages)

        def _fan_out(received) -> Optional[Future]:
            _url, messages = received
            if not messages:
                return None
            return _gather(
                [self._submit_processing(self._process, queue_name, processor, m) for m in messages],
                aggregate_queue=queue_name,
            )

        done = _then(_then(self._submit(self._receive, queue_name, n, wait_time_seconds), _fan_out),
                     lambda _r: None)
        return self._guard(done, "receive_and_process_messages", queue_name)

    def receive_process_and_delete(
        self,
        queue_name: str,
        processor: MessageProcessor,
        max_messages: Optional[int] = None,
        wait_time_seconds: int = 0,
    ) -> Future:
        """
        Process each received message and delete it only when processing
        succeeds. A failing message is logged and left for redelivery; it never
        fails the call or affects its siblings.
        """
        _require_text(queue_name, "Queue name")
        self._require_processor(processor)
        n = self._max_messages(max_messages)

        def _fan_out(received) -> Optional[Future]:
            queue_url, messages = received
            if not messages:
                return None
            return _gather([
                _then(
                    self._submit_processing(self._process_quietly, queue_name, processor, m),
                    lambda ok, m=m: self._submit(self._delete_received, queue_name, queue_url, m) if ok else False,
                )
                for m in messages
            ])

        def _report(results) -> None:
            if results:
                deleted = sum(1 for ok in results if ok)
                logger.info("Processed from %s: ok=%d failed=%d", queue_name, deleted, len(results) - deleted)

        done = _then(_then(self._submit(self._receive, queue_name, n, wait_time_seconds), _fan_out), _report)
        return self._guard(done, "receive_process_and_delete", queue_name)

    @staticmethod
    def _require_processor(processor: Any) -> None:
        if processor is None or not callable(processor):
            raise SqsValidationError("Message processor is required for receive operations")

    @staticmethod
    def _process(queue_name: str, processor: MessageProcessor, message: SqsMessage) -> None:
        try:
            processor(message)
        except Exception as e:
            logger.error("[handler] error for %s on %s: %s", message.message_id, queue_name, e, exc_info=True)
            raise

    @staticmethod
    def _process_quietly(queue_name: str, processor: MessageProcessor, message: SqsMessage) -> bool:
        try:
            processor(message)
            return True
        except Exception as e:
            logger.error("Failed to process message %s from %s: %s", message.message_id, queue_name, e, exc_info=True)
            return False

    def _delete_received(self, queue_name: str, queue_url: str, message: SqsMessage) -> bool:
        try:
            self.client.delete_message(queue_url, message.receipt_handle)
            return True
        except Exception as e:
            logger.error("Failed to delete message %s from %s: %s", message.message_id, queue_name, e, exc_info=True)
            return False

    # -- continuous polling --------------------------------------------

    def start_continuous_polling(
        self,
        queue_name: str,
        processor: MessageProcessor,
        max_messages: Optional[int] = None,
        wait_time_seconds: Optional[int] = None,
        auto_delete: bool = True,
    ) -> bool:
        """
        Start one background poll loop for queue_name. Returns False (with a
        warning) when a loop for that name is already running.
        """
        _require_text(queue_name, "Queue name")
        self._require_processor(processor)
        n = self._max_messages(max_messages)
        wait_s = self.settings.receive_wait_time_seconds if wait_time_seconds is None else int(wait_time_seconds)

        with self._sessions_lock:
            if self._closed:
                raise SqsClientError("SqsService has been shut down")
            previous = self._sessions.get(queue_name)
            if previous is not None and previous.state is PollingState.RUNNING:
                logger.warning("Polling already started for queue: %s", queue_name)
                return False

        if previous is not None:
            # a stopping loop must finish before a new one owns the name
            previous.join(self._iteration_timeout(wait_s) + self.settings.polling_error_backoff_seconds)
            if previous.thread.is_alive():
                logger.warning("Previous polling session for %s is still draining; not restarting", queue_name)
                return False

        def _target(session: PollingSession) -> None:
            self._poll_loop(session, processor, n, wait_s, auto_delete)

        with self._sessions_lock:
            current = self._sessions.get(queue_name)
            if current is not None and current is not previous:
                logger.warning("Polling already started for queue: %s", queue_name)
                return False
            session = PollingSession(queue_name, _target)
            self._sessions[queue_name] = session
            session.start()
        logger.info("Spawned poller thread for queue %s (max=%d wait=%ds)", queue_name, n, wait_s)
        return True

    def stop_polling(self, queue_name: str) -> bool:
        """Request the loop for queue_name to stop. Returns once the request is made, not once drained."""
        with self._sessions_lock:
            session = self._sessions.get(queue_name)
        if session is None or not session.request_stop():
            return False
        logger.info("Polling stop requested for queue: %s", queue_name)
        return True

    def polling_state(self, queue_name: str) -> PollingState:
        with self._sessions_lock:
            session = self._sessions.get(queue_name)
        return session.state if session is not None else PollingState.NOT_STARTED

    def is_polling(self, queue_name: str) -> bool:
        return self.polling_state(queue_name) is PollingState.RUNNING

    def active_polling_queues(self) -> List[str]:
        with self._sessions_lock:
            return sorted(q for q, s in self._sessions.items() if s.state is PollingState.RUNNING)

    def _iteration_timeout(self, wait_time_seconds: int) -> float:
        # the configured timeout is the allowance on top of the long poll itself
        return wait_time_seconds + self.settings.polling_iteration_timeout_seconds

    def _poll_loop(self, session: PollingSession, processor: MessageProcessor, max_messages: int,
                   wait_time_seconds: int, auto_delete: bool) -> None:
        queue_name = session.queue_name
        backoff = self.settings.polling_error_backoff_seconds
        timeout = self._iteration_timeout(wait_time_seconds)
        logger.info("Starting continuous polling for queue: %s", queue_name)
        try:
            while session.running:
                try:
                    pending = self._submit(self._receive, queue_name, max_messages, wait_time_seconds)
                    try:
                        queue_url, messages = pending.result(timeout=timeout)
                    except FuturesTimeout:
                        pending.cancel()
                        raise
                except FuturesTimeout:
                    logger.warning("Polling iteration timed out for queue %s; retrying in %.1fs", queue_name, backoff)
                    session.wait(backoff)
                    continue
                except Exception as e:
                    logger.error("[loop] error polling %s: %s", queue_name, e, exc_info=True)
                    session.wait(backoff)
                    continue

                if messages:
                    logger.debug("Received %d message(s) from queue: %s", len(messages), queue_name)
                for message in messages:
                    try:
                        processor(message)
                        if auto_delete:
                            self.client.delete_message(queue_url, message.receipt_handle)
                    except Exception as e:
                        logger.error(
                            "[handler] error for %s from queue %s: %s",
                            message.message_id, queue_name, e, exc_info=True,
                        )
        finally:
            session.mark_stopped()
            with self._sessions_lock:
                if self._sessions.get(queue_name) is session:
                    del self._sessions[queue_name]
            logger.info("Stopped continuous polling for queue: %s", queue_name)

    # -- explicit operations -------------------------------------------

    def move_to_dead_letter_queue(
        self,
        source_queue_name: str,
        dlq_name: str,
        receipt_handle: Optional[str] = None,
    ) -> Future:
        """
        Receive one message from the source queue, forward its body (and user
        attributes) to the DLQ, then delete it from the source. Not atomic: a
        failure between send and delete leaves a copy in both queues.
        Resolves to the DLQ message id, or None if the source was empty.
        """
        _require_text(source_queue_name, "Source queue name")
        _require_text(dlq_name, "Dead-letter queue name")

        def _move() -> Optional[str]:
            source_url = self.get_queue_url(source_queue_name)
            dlq_url = self.get_queue_url(dlq_name)
            message = self.client.receive_message(source_url)
            if message is None:
                return None
            message_id = self.client.send_message(dlq_url, message.body, message.message_attributes() or None)
            self.client.delete_message(source_url, receipt_handle or message.receipt_handle)
            logger.info("Moved message %s from %s to %s", message.message_id, source_queue_name, dlq_name)
            return message_id

        return self._run("move_to_dead_letter_queue", source_queue_name, _move)

    def change_message_visibility(self, queue_name: str, receipt_handle: str, visibility_timeout: int) -> Future:
        _require_text(queue_name, "Queue name")
        _require_text(receipt_handle, "Receipt handle")
        if not 0 <= visibility_timeout <= MAX_VISIBILITY_TIMEOUT:
            raise SqsValidationError(f"Visibility timeout must be within 0-{MAX_VISIBILITY_TIMEOUT} seconds")

        def _change() -> None:
            self.client.change_message_visibility(self.get_queue_url(queue_name), receipt_handle, visibility_timeout)

        return self._run("change_message_visibility", queue_name, _change)

    def delete_message(self, queue_name: str, receipt_handle: str) -> Future:
        _require_text(queue_name, "Queue name")
        _require_text(receipt_handle, "Receipt handle")

        def _delete() -> None:
            self.client.delete_message(self.get_queue_url(queue_name), receipt_handle)

        return self._run("delete_message", queue_name, _delete)

    def delete_messages(self, queue_name: str, receipt_handles: Sequence[str]) -> Future:
        """Batch delete in ceiling-sized chunks. Resolves to the number of deleted entries."""
        _require_text(queue_name, "Queue name")
        if batch.is_empty(receipt_handles, "delete_messages"):
            return _completed(0)
        batch.validate_no_blank_strings(receipt_handles, "delete_messages")
        chunks = batch.chunk(list(receipt_handles), self.settings.max_batch_size)

        def _delete_all() -> int:
            queue_url = self.get_queue_url(queue_name)
            return sum(len(self.client.delete_messages(queue_url, c).successful) for c in chunks)

        return self._run("delete_messages", queue_name, _delete_all)

    def get_queue_message_count(self, queue_name: str) -> Future:
        _require_text(queue_name, "Queue name")

        def _count() -> int:
            return self.client.get_approximate_number_of_messages(self.get_queue_url(queue_name))

        return self._run("get_queue_message_count", queue_name, _count)

    def purge_queue(self, queue_name: str) -> Future:
        """
        Receive-and-delete until a receive comes back empty. Not a true purge:
        in-flight messages hidden by their visibility timeout are left behind.
        Resolves to the number of deleted messages.
        """
        _require_text(queue_name, "Queue name")
        logger.warning("Purging all messages from queue: %s", queue_name)

        def _purge() -> int:
            queue_url = self.get_queue_url(queue_name)
            purged = 0
            while True:
                messages = self.client.receive_messages(queue_url, PROVIDER_MAX_RECEIVE_MESSAGES)
                if not messages:
                    return purged
                result = self.client.delete_messages(queue_url, [m.receipt_handle for m in messages])
                purged += len(result.successful)

        return self._run("purge_queue", queue_name, _purge)

    def queue_exists(self, queue_name: str) -> Future:
        _require_text(queue_name, "Queue name")
        return self._run("queue_exists", queue_name, self._queue_exists, queue_name)

    def _queue_exists(self, queue_name: str) -> bool:
        try:
            self.client.get_queue_url(queue_name)
            return True
        except SqsServiceError as e:
            if e.is_queue_missing:
                logger.debug("Queue %s does not exist", queue_name)
                return False
            raise

    def create_queue_if_not_exists(self, queue_name: str, attributes: Optional[Mapping[str, str]] = None) -> Future:
        _require_text(queue_name, "Queue name")
        queue_attributes = convert_to_queue_attributes(attributes)

        def _create() -> str:
            if self._queue_exists(queue_name):
                return self.get_queue_url(queue_name)
            return self._create_queue(queue_name, queue_attributes)

        return self._run("create_queue_if_not_exists", queue_name, _create)

    def create_queue_on_first_use(self, queue_name: str, attributes: Optional[Mapping[str, str]] = None) -> None:
        """
        Mark queue_name for creation by the first operation that resolves its
        URL. Nothing is sent to the provider here, so a call rejected by
        validation afterwards leaves no trace.
        """
        _require_text(queue_name, "Queue name")
        queue_attributes = convert_to_queue_attributes(attributes)
        with self._provision_lock:
            if queue_name not in self._provisioned:
                self._unprovisioned.setdefault(queue_name, queue_attributes)

    def _provision(self, queue_name: str) -> None:
        with self._provision_lock:
            attributes = self._unprovisioned.get(queue_name)
            if attributes is None:
                return
            if not self._queue_exists(queue_name):
                self._create_queue(queue_name, attributes)
            del self._unprovisioned[queue_name]
            self._provisioned.add(queue_name)

    def _create_queue(self, queue_name: str, attributes: Dict[str, str]) -> str:
        logger.info("Creating queue: %s with attributes: %s", queue_name, attributes)
        return self.client.create_queue(queue_name, attributes)

    def delete_queue(self, queue_name: str) -> Future:
        _require_text(queue_name, "Queue name")

        def _delete() -> None:
            self.client.delete_queue(self.get_queue_url(queue_name))

        return self._run("delete_queue", queue_name, _delete)

    # -- lifecycle ------------------------------------------------------

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop every poll loop, then drain outstanding work for up to `timeout`
        seconds before cancelling whatever is still queued.
        """
        with self._sessions_lock:
            if self._closed:
                return
            self._closed = True
            sessions = list(self._sessions.values())

        logger.info("Shutting down SQS service; stopping %d poller(s)…", len(sessions))
        for session in sessions:
            session.request_stop()

        limit = self.settings.shutdown_timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + limit
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            _done, not_done = wait(pending, timeout=max(0.0, deadline - time.monotonic()))
            if not_done:
                logger.warning("%d task(s) still running after %.1fs; cancelling", len(not_done), limit)
        for session in sessions:
            session.join(max(0.0, deadline - time.monotonic()))
        self._workers.shutdown(wait=False, cancel_futures=True)
        self._io.shutdown(wait=False, cancel_futures=True)
        logger.info("SQS service stopped.")

    def __enter__(self) -> "SqsService":
        return self

    def __exit__(self, *_exc) -> None:
        self.shutdown()
