from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
import json
from functools import cached_property

from .serialization import JsonMessageSerializer, MessageSerializer


class AttributeDataType(str, Enum):
    STRING = "String"
    NUMBER = "Number"
    BINARY = "Binary"

    @classmethod
    def from_value(cls, value: str) -> "AttributeDataType":
        # custom suffixes such as "Number.int" or "String.uuid" keep their base type
        base = (value or "").split(".", 1)[0]
        for member in cls:
            if member.value == base:
                return member
        raise ValueError(f"Unknown data type: {value}")


@dataclass(frozen=True)
class MessageAttribute:
    """
    A user message attribute: exactly one of string, number (kept as its string
    form) or binary. Binary input is copied into immutable bytes.
    """
    data_type: AttributeDataType
    string_value: Optional[str] = None
    binary_value: Optional[bytes] = None

    def __post_init__(self):
        if self.data_type is AttributeDataType.BINARY:
            if self.binary_value is None or self.string_value is not None:
                raise ValueError("Binary attribute needs a binary value only")
            object.__setattr__(self, "binary_value", bytes(self.binary_value))
        elif self.string_value is None or self.binary_value is not None:
            raise ValueError(f"{self.data_type.value} attribute needs a string value only")

    @classmethod
    def string(cls, value: str) -> "MessageAttribute":
        if value is None:
            raise ValueError("String value cannot be None")
        return cls(AttributeDataType.STRING, string_value=str(value))

    @classmethod
    def number(cls, value) -> "MessageAttribute":
        if value is None:
            raise ValueError("Number value cannot be None")
        return cls(AttributeDataType.NUMBER, string_value=str(value))

    @classmethod
    def binary(cls, value) -> "MessageAttribute":
        if value is None:
            raise ValueError("Binary value cannot be None")
        return cls(AttributeDataType.BINARY, binary_value=bytes(value))

    @classmethod
    def of(cls, value: Any) -> "MessageAttribute":
        """Infer the attribute type from a plain Python value."""
        if isinstance(value, MessageAttribute):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls.binary(value)
        if isinstance(value, bool):
            return cls.string(str(value).lower())
        if isinstance(value, (int, float, Decimal)):
            return cls.number(value)
        return cls.string(value)

    @classmethod
    def from_boto(cls, raw: Mapping[str, Any]) -> "MessageAttribute":
        data_type = AttributeDataType.from_value(raw.get("DataType", "String"))
        if data_type is AttributeDataType.BINARY:
            return cls(data_type, binary_value=raw.get("BinaryValue", b""))
        return cls(data_type, string_value=raw.get("StringValue", ""))

    def to_boto(self) -> Dict[str, Any]:
        if self.data_type is AttributeDataType.BINARY:
            return {"DataType": self.data_type.value, "BinaryValue": self.binary_value}
        return {"DataType": self.data_type.value, "StringValue": self.string_value}

    @property
    def value(self):
        return self.binary_value if self.data_type is AttributeDataType.BINARY else self.string_value

    def __repr__(self) -> str:
        return (
            f"MessageAttribute(data_type={self.data_type.value}, "
            f"has_string_value={self.string_value is not None}, "
            f"has_binary_value={self.binary_value is not None})"
        )


def to_boto_attributes(attributes: Optional[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    if not attributes:
        return {}
    return {key: MessageAttribute.of(value).to_boto() for key, value in attributes.items()}


def _epoch_millis(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    return datetime.fromtimestamp(int(raw) / 1000.0, tz=timezone.utc)


@dataclass
class SqsMessage:
    message_id: str
    receipt_handle: str
    body: str
    attributes: Dict[str, Any]
    md: Dict[str, Any]  # raw boto fields (includes MessageAttributes when requested)

    @classmethod
    def from_boto(cls, raw: Mapping[str, Any]) -> "SqsMessage":
        return cls(
            message_id=raw["MessageId"],
            receipt_handle=raw["ReceiptHandle"],
            body=raw.get("Body", ""),
            attributes=dict(raw.get("Attributes") or {}),
            md=dict(raw),
        )

    @cached_property
    def json(self) -> Any:
        """
        Parse Body as JSON (cached). Raises json.JSONDecodeError if invalid.
        Usage:
            data = msg.json
        """
        return json.loads(self.body)

    def try_json(self) -> Tuple[Optional[Any], Optional[Exception]]:
        """
        Safe JSON parse. Returns (data, error). Never raises.
        Usage:
            data, err = msg.try_json()
        """
        try:
            return json.loads(self.body), None
        except (TypeError, ValueError) as e:
            return None, e

    def deserialize(self, target_type: type, serializer: Optional[MessageSerializer] = None) -> Any:
        return (serializer or JsonMessageSerializer()).deserialize(self.body, target_type)

    def message_attributes(self) -> Dict[str, MessageAttribute]:
        """
        Typed user attributes. Assumes ReceiveMessage included MessageAttributeNames=["All"].
        """
        raw = self.md.get("MessageAttributes") or {}
        return {k: MessageAttribute.from_boto(v) for k, v in raw.items()}

    def message_attribute(self, name: str) -> Optional[MessageAttribute]:
        return self.message_attributes().get(name)

    @property
    def sent_timestamp(self) -> Optional[datetime]:
        return _epoch_millis(self.attributes.get("SentTimestamp"))

    @property
    def first_receive_timestamp(self) -> Optional[datetime]:
        return _epoch_millis(self.attributes.get("ApproximateFirstReceiveTimestamp"))

    @property
    def receive_count(self) -> int:
        return int(self.attributes.get("ApproximateReceiveCount") or 0)

    @property
    def sender_id(self) -> Optional[str]:
        return self.attributes.get("SenderId")


@dataclass(frozen=True)
class BatchEntry:
    id: str
    payload: str


@dataclass(frozen=True)
class BatchEntryFailure:
    id: str
    code: str
    message: str = ""
    sender_fault: bool = False


@dataclass
class BatchResult:
    """Outcome of one provider batch call: successful message ids in entry order, plus failures."""
    successful: List[str] = field(default_factory=list)
    failed: List[BatchEntryFailure] = field(default_factory=list)


class OperationKind(str, Enum):
    SEND = "send"
    SEND_BATCH = "send_batch"
    RECEIVE = "receive"
    START_POLL = "start_poll"


@dataclass(frozen=True)
class OperationDescriptor:
    kind: OperationKind
    queue_name: Optional[str] = None
    delay_seconds: int = 0
    fifo: bool = False
    max_messages: int = 10
    auto_delete: bool = False
    wait_time_seconds: Optional[int] = 0  # None: the configured receive wait
    batch_size: int = 10


MessageProcessor = Callable[[SqsMessage], Any]


@dataclass
class CallMetadata:
    """Per-invocation view: descriptor defaults merged with the call's bound arguments."""
    descriptor: OperationDescriptor
    queue_name: Optional[str] = None
    message_body: Optional[str] = None
    message_group_id: Optional[str] = None
    deduplication_id: Optional[str] = None
    message_attributes: Optional[Mapping[str, Any]] = None
    batch_messages: Optional[Sequence[Any]] = None
    message_processor: Optional[MessageProcessor] = None
    max_messages: Optional[int] = None

    @property
    def kind(self) -> OperationKind:
        return self.descriptor.kind
