from __future__ import annotations
import dataclasses
import inspect
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol, Type, TypeVar, runtime_checkable
from uuid import UUID

from .errors import MessageSerializationError
from .logging_setup import get_logger

logger = get_logger("sqs_declarative_client.serialization")

T = TypeVar("T")


@runtime_checkable
class MessageSerializer(Protocol):
    def serialize(self, obj: Any) -> Optional[str]:
        ...

    def deserialize(self, content: Optional[str], target_type: Type[T]) -> Optional[T]:
        ...


def _default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if hasattr(obj, "__dict__"):
        return {k: v for k, v in vars(obj).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class JsonMessageSerializer:
    """
    JSON message bodies via the standard json module.

    Strings pass through untouched in both directions, so pre-encoded payloads
    are never double-quoted.
    """

    def __init__(self, **dumps_kwargs: Any):
        self._dumps_kwargs = {"separators": (",", ":"), "ensure_ascii": False, **dumps_kwargs}

    def serialize(self, obj: Any) -> Optional[str]:
        if obj is None:
            return None
        if isinstance(obj, str):
            return obj
        try:
            return json.dumps(obj, default=_default, **self._dumps_kwargs)
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize object to JSON: %s", type(obj).__name__)
            raise MessageSerializationError("Failed to serialize object to JSON") from e

    def deserialize(self, content: Optional[str], target_type: Type[T]) -> Optional[T]:
        if content is None:
            return None
        if target_type is str:
            return content  # type: ignore[return-value]
        try:
            data = json.loads(content)
        except ValueError as e:
            logger.error("Failed to deserialize JSON to %s", getattr(target_type, "__name__", target_type))
            raise MessageSerializationError(
                f"Failed to deserialize JSON to {getattr(target_type, '__name__', target_type)}"
            ) from e

        if target_type is float and isinstance(data, int) and not isinstance(data, bool):
            return float(data)  # type: ignore[return-value]
        if target_type in (object, Any) or target_type in (dict, list, int, float, bool):
            if target_type in (dict, list, int, float, bool) and not isinstance(data, target_type):
                raise MessageSerializationError(
                    f"Expected JSON {target_type.__name__}, got {type(data).__name__}"
                )
            return data
        if inspect.isclass(target_type) and isinstance(data, dict):
            try:
                return target_type(**data)
            except TypeError as e:
                raise MessageSerializationError(
                    f"Cannot build {target_type.__name__} from JSON object"
                ) from e
        raise MessageSerializationError(
            f"Cannot map JSON {type(data).__name__} onto {getattr(target_type, '__name__', target_type)}"
        )
