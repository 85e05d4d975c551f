from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from . import batch
from .config import PROVIDER_MAX_BATCH_SIZE, PROVIDER_MAX_RECEIVE_MESSAGES, SqsSettings
from .errors import SqsServiceError
from .logging_setup import get_logger
from .types import BatchEntryFailure, BatchResult, SqsMessage, to_boto_attributes

logger = get_logger("sqs_declarative_client.client")

USER_AGENT = "sqs-declarative-client/0.1"


@contextmanager
def _provider_call(operation: str, target: str) -> Iterator[None]:
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        err = SqsServiceError.from_exception(e, operation)
        logger.error("[%s] failed for %s: %s", operation, target, err)
        raise err from e


def _batch_result(entries, response: Mapping[str, Any]) -> BatchResult:
    order = {entry.id: index for index, entry in enumerate(entries)}
    ok = sorted(response.get("Successful", []), key=lambda r: order.get(r["Id"], len(order)))
    failed = [
        BatchEntryFailure(
            id=f["Id"],
            code=f.get("Code", "UNKNOWN_ERROR"),
            message=f.get("Message", ""),
            sender_fault=bool(f.get("SenderFault", False)),
        )
        for f in response.get("Failed", [])
    ]
    return BatchResult(successful=[r.get("MessageId", r["Id"]) for r in ok], failed=failed)


class SqsQueueClient:
    """
    Primitive queue API over a boto3 SQS client.

    Every method is one provider call (blocking). Provider and transport errors
    surface as SqsServiceError; nothing is retried here beyond botocore's own
    retry configuration.
    """

    def __init__(self, sqs=None, settings: Optional[SqsSettings] = None):
        self.settings = settings or SqsSettings()
        if sqs is None:
            sqs = boto3.client(
                "sqs",
                config=Config(
                    retries={"max_attempts": 10, "mode": "adaptive"},
                    read_timeout=max(60, self.settings.receive_wait_time_seconds + 10),
                    user_agent_extra=USER_AGENT,
                ),
                **self.settings.boto_client_kwargs(),
            )
        self.sqs = sqs

    # ------------------------------------------------------------------
    # send
    # ------------------------------------------------------------------

    def send_message(
        self,
        queue_url: str,
        body: str,
        message_attributes: Optional[Mapping[str, Any]] = None,
        delay_seconds: Optional[int] = None,
    ) -> str:
        params: Dict[str, Any] = {"QueueUrl": queue_url, "MessageBody": body}
        if message_attributes:
            params["MessageAttributes"] = to_boto_attributes(message_attributes)
        if delay_seconds:
            params["DelaySeconds"] = int(delay_seconds)
        with _provider_call("send_message", queue_url):
            resp = self.sqs.send_message(**params)
        logger.debug("Message sent. MessageId=%s queue=%s", resp["MessageId"], queue_url)
        return resp["MessageId"]

    def send_fifo_message(
        self,
        queue_url: str,
        body: str,
        message_group_id: str,
        deduplication_id: str,
        message_attributes: Optional[Mapping[str, Any]] = None,
    ) -> str:
        params: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "MessageBody": body,
            "MessageGroupId": message_group_id,
            "MessageDeduplicationId": deduplication_id,
        }
        if message_attributes:
            params["MessageAttributes"] = to_boto_attributes(message_attributes)
        with _provider_call("send_fifo_message", queue_url):
            resp = self.sqs.send_message(**params)
        logger.debug("FIFO message sent. MessageId=%s group=%s", resp["MessageId"], message_group_id)
        return resp["MessageId"]

    def send_messages(
        self,
        queue_url: str,
        bodies: Sequence[str],
        entry_ids: Optional[Sequence[str]] = None,
    ) -> BatchResult:
        batch.validate_batch_size(bodies, PROVIDER_MAX_BATCH_SIZE, "send_messages")
        entries = batch.create_send_entries(bodies, entry_ids)
        with _provider_call("send_message_batch", queue_url):
            resp = self.sqs.send_message_batch(
                QueueUrl=queue_url,
                Entries=[{"Id": e.id, "MessageBody": e.payload} for e in entries],
            )
        result = _batch_result(entries, resp)
        if result.failed:
            logger.warning(
                "Some messages failed to send: ok=%d failed=%s queue=%s",
                len(result.successful), [(f.id, f.code) for f in result.failed], queue_url,
            )
        return result

    # ------------------------------------------------------------------
    # receive
    # ------------------------------------------------------------------

    def receive_messages(
        self,
        queue_url: str,
        max_messages: int = PROVIDER_MAX_RECEIVE_MESSAGES,
        wait_time_seconds: int = 0,
        visibility_timeout: Optional[int] = None,
    ) -> List[SqsMessage]:
        params: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "MaxNumberOfMessages": max(1, min(int(max_messages), PROVIDER_MAX_RECEIVE_MESSAGES)),
            "WaitTimeSeconds": max(0, int(wait_time_seconds)),
            "AttributeNames": ["All"],
            "MessageAttributeNames": ["All"],
        }
        if visibility_timeout is not None:
            params["VisibilityTimeout"] = int(visibility_timeout)
        with _provider_call("receive_message", queue_url):
            resp = self.sqs.receive_message(**params)
        msgs = resp.get("Messages", [])
        if msgs:
            logger.debug("Received %d message(s) from %s.", len(msgs), queue_url)
        return [SqsMessage.from_boto(m) for m in msgs]

    def receive_message(self, queue_url: str) -> Optional[SqsMessage]:
        messages = self.receive_messages(queue_url, max_messages=1)
        return messages[0] if messages else None

    # ------------------------------------------------------------------
    # delete / visibility
    # ------------------------------------------------------------------

    def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        batch.validate_no_blank_strings([receipt_handle], "delete_message")
        with _provider_call("delete_message", queue_url):
            self.sqs.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt_handle)
        logger.debug("Deleted RH=%s from %s", receipt_handle[:12], queue_url)

    def delete_messages(
        self,
        queue_url: str,
        receipt_handles: Sequence[str],
        entry_ids: Optional[Sequence[str]] = None,
    ) -> BatchResult:
        batch.validate_batch_size(receipt_handles, PROVIDER_MAX_BATCH_SIZE, "delete_messages")
        entries = batch.create_delete_entries(receipt_handles, entry_ids)
        with _provider_call("delete_message_batch", queue_url):
            resp = self.sqs.delete_message_batch(
                QueueUrl=queue_url,
                Entries=[{"Id": e.id, "ReceiptHandle": e.payload} for e in entries],
            )
        result = _batch_result(entries, resp)
        if result.failed:
            logger.warning("Some messages failed to delete: %s", [(f.id, f.code) for f in result.failed])
        logger.debug("Batch deleted %d message(s) from %s", len(result.successful), queue_url)
        return result

    def change_message_visibility(self, queue_url: str, receipt_handle: str, visibility_timeout: int) -> None:
        batch.validate_no_blank_strings([receipt_handle], "change_message_visibility")
        with _provider_call("change_message_visibility", queue_url):
            self.sqs.change_message_visibility(
                QueueUrl=queue_url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=int(visibility_timeout),
            )
        logger.debug("Changed visibility for RH=%s to %ds", receipt_handle[:12], visibility_timeout)

    # ------------------------------------------------------------------
    # queues
    # ------------------------------------------------------------------

    def get_queue_url(self, queue_name: str) -> str:
        with _provider_call("get_queue_url", queue_name):
            resp = self.sqs.get_queue_url(QueueName=queue_name)
        return resp["QueueUrl"]

    def get_queue_attributes(self, queue_url: str, attribute_names: Sequence[str] = ("All",)) -> Dict[str, str]:
        with _provider_call("get_queue_attributes", queue_url):
            resp = self.sqs.get_queue_attributes(QueueUrl=queue_url, AttributeNames=list(attribute_names))
        return dict(resp.get("Attributes", {}))

    def get_approximate_number_of_messages(self, queue_url: str) -> int:
        attrs = self.get_queue_attributes(queue_url, ["ApproximateNumberOfMessages"])
        return int(attrs.get("ApproximateNumberOfMessages") or 0)

    def create_queue(self, queue_name: str, attributes: Optional[Mapping[str, str]] = None) -> str:
        params: Dict[str, Any] = {"QueueName": queue_name}
        if attributes:
            params["Attributes"] = dict(attributes)
        with _provider_call("create_queue", queue_name):
            resp = self.sqs.create_queue(**params)
        logger.info("Queue created: %s", resp["QueueUrl"])
        return resp["QueueUrl"]

    def delete_queue(self, queue_url: str) -> None:
        with _provider_call("delete_queue", queue_url):
            self.sqs.delete_queue(QueueUrl=queue_url)
        logger.info("Queue deleted: %s", queue_url)
