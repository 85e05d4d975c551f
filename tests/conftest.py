# tests/conftest.py
# ---------------------------------------------------------------------------
# Shared test doubles for the sqs_declarative_client test-suite:
# - FakeSQS: in-memory, thread-safe stand-in for the boto3 SQS client that
#   records every call and can be told to fail specific operations
# - fixtures wiring SqsQueueClient / SqsService onto the fake
# ---------------------------------------------------------------------------

import itertools
import threading
import time

import pytest
from botocore.exceptions import ClientError

from sqs_declarative_client import decorator as dec
from sqs_declarative_client.client import SqsQueueClient
from sqs_declarative_client.config import SqsSettings
from sqs_declarative_client.service import SqsService

QUEUE_URL_PREFIX = "https://sqs.local/000000000000/"


def make_raw_message(mid="m1", rh="rh1", body='{"ok":true}', attributes=None, msg_attributes=None):
    return {
        "MessageId": mid,
        "ReceiptHandle": rh,
        "Body": body,
        "Attributes": attributes or {"ApproximateReceiveCount": "1"},
        "MessageAttributes": msg_attributes or {},
    }


def client_error(code, operation="SendMessage", status=400, message="boom"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status, "RequestId": "req-1"},
        },
        operation,
    )


class FakeSQS:
    """
    Minimal in-memory SQS. Queues are keyed by URL; receive pops messages
    (no visibility handling). `fail[op] = exc` makes that operation raise.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.calls = []            # list of (operation, kwargs)
        self.queues = {}           # url -> list of raw messages
        self.missing = set()       # queue names get_queue_url reports as missing
        self.fail = {}             # operation -> exception to raise
        self.failing_bodies = set()
        self.reverse_batch_results = False
        self.empty_receive_sleep = 0.01
        self.receive_gate = None   # threading.Event receive_message blocks on until set
        self._ids = itertools.count(1)

    # -- helpers ---------------------------------------------------------

    def _record(self, op, kwargs):
        with self.lock:
            self.calls.append((op, dict(kwargs)))
            exc = self.fail.get(op)
        if exc is not None:
            raise exc

    def calls_for(self, op):
        with self.lock:
            return [kw for (name, kw) in self.calls if name == op]

    def seed(self, queue_name, *bodies):
        url = QUEUE_URL_PREFIX + queue_name
        with self.lock:
            queue = self.queues.setdefault(url, [])
            for body in bodies:
                n = next(self._ids)
                queue.append(make_raw_message(mid=f"m{n}", rh=f"rh{n}", body=body))

    # -- SQS API -----------------------------------------------------------

    def send_message(self, **kwargs):
        self._record("send_message", kwargs)
        with self.lock:
            n = next(self._ids)
            raw = make_raw_message(mid=f"mid-{n}", rh=f"rh{n}", body=kwargs["MessageBody"],
                                   msg_attributes=kwargs.get("MessageAttributes"))
            self.queues.setdefault(kwargs["QueueUrl"], []).append(raw)
        return {"MessageId": f"mid-{n}"}

    def send_message_batch(self, QueueUrl, Entries):
        self._record("send_message_batch", {"QueueUrl": QueueUrl, "Entries": list(Entries)})
        ok = [
            {"Id": e["Id"], "MessageId": "id-" + e["MessageBody"]}
            for e in Entries if e["MessageBody"] not in self.failing_bodies
        ]
        failed = [
            {"Id": e["Id"], "Code": "InvalidMessageContents", "Message": "bad", "SenderFault": True}
            for e in Entries if e["MessageBody"] in self.failing_bodies
        ]
        if self.reverse_batch_results:
            ok.reverse()
        return {"Successful": ok, "Failed": failed}

    def receive_message(self, **kwargs):
        self._record("receive_message", kwargs)
        gate = self.receive_gate
        if gate is not None:
            gate.wait(timeout=5)
        with self.lock:
            queue = self.queues.get(kwargs["QueueUrl"], [])
            n = kwargs.get("MaxNumberOfMessages", 1)
            taken, queue[:] = queue[:n], queue[n:]
        if not taken:
            if kwargs.get("WaitTimeSeconds"):
                time.sleep(self.empty_receive_sleep)
            return {}
        return {"Messages": taken}

    def delete_message(self, **kwargs):
        self._record("delete_message", kwargs)
        return {}

    def delete_message_batch(self, QueueUrl, Entries):
        self._record("delete_message_batch", {"QueueUrl": QueueUrl, "Entries": list(Entries)})
        return {"Successful": [{"Id": e["Id"]} for e in Entries], "Failed": []}

    def change_message_visibility(self, **kwargs):
        self._record("change_message_visibility", kwargs)
        return {}

    def get_queue_url(self, QueueName):
        self._record("get_queue_url", {"QueueName": QueueName})
        if QueueName in self.missing:
            raise client_error("AWS.SimpleQueueService.NonExistentQueue", "GetQueueUrl")
        return {"QueueUrl": QUEUE_URL_PREFIX + QueueName}

    def get_queue_attributes(self, QueueUrl, AttributeNames):
        self._record("get_queue_attributes", {"QueueUrl": QueueUrl, "AttributeNames": AttributeNames})
        with self.lock:
            count = len(self.queues.get(QueueUrl, []))
        return {"Attributes": {"ApproximateNumberOfMessages": str(count)}}

    def create_queue(self, **kwargs):
        self._record("create_queue", kwargs)
        self.missing.discard(kwargs["QueueName"])
        return {"QueueUrl": QUEUE_URL_PREFIX + kwargs["QueueName"]}

    def delete_queue(self, QueueUrl):
        self._record("delete_queue", {"QueueUrl": QueueUrl})
        return {}


# ---------------------------
# Fixtures
# ---------------------------

@pytest.fixture
def fake_sqs():
    return FakeSQS()


@pytest.fixture
def settings():
    return SqsSettings(
        default_queue_url_prefix=QUEUE_URL_PREFIX,
        polling_error_backoff_seconds=0.05,
        polling_iteration_timeout_seconds=2.0,
        worker_threads=4,
        shutdown_timeout_seconds=2.0,
    )


@pytest.fixture
def queue_client(fake_sqs, settings):
    return SqsQueueClient(sqs=fake_sqs, settings=settings)


@pytest.fixture
def service(queue_client, settings):
    svc = SqsService(queue_client, settings)
    yield svc
    svc.shutdown(timeout=1.0)


@pytest.fixture
def clean_registry():
    """Keep the module-level client registry isolated per test."""
    saved = list(dec._REGISTRY)
    dec._REGISTRY.clear()
    yield dec._REGISTRY
    dec._REGISTRY[:] = saved


def wait_until(predicate, timeout=2.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
