"""
Batch limits and entry construction for the provider's batch APIs.

All functions are pure: they validate their input and either raise or return
new values, never touching the network.
"""
from __future__ import annotations
from typing import Any, Iterable, List, Optional, Sequence, Sized, TypeVar

from .errors import SqsConfigurationError, SqsValidationError
from .types import BatchEntry

T = TypeVar("T")


def _require_operation(operation_name: str) -> None:
    if not operation_name or not operation_name.strip():
        raise ValueError("operation_name cannot be blank")


def validate_batch_size(collection: Optional[Sized], max_batch_size: int, operation_name: str) -> None:
    _require_operation(operation_name)
    if collection is None:
        return
    if len(collection) > max_batch_size:
        raise SqsValidationError(
            f"{operation_name}: batch size cannot exceed {max_batch_size}, got {len(collection)}"
        )


def is_empty(collection: Optional[Sized], operation_name: str) -> bool:
    _require_operation(operation_name)
    return collection is None or len(collection) == 0


def validate_no_null_elements(collection: Optional[Iterable[Any]], operation_name: str) -> None:
    _require_operation(operation_name)
    if collection is None:
        return
    for index, element in enumerate(collection):
        if element is None:
            raise SqsValidationError(f"{operation_name}: None element at index {index}")


def validate_no_blank_strings(collection: Optional[Iterable[Optional[str]]], operation_name: str) -> None:
    _require_operation(operation_name)
    if collection is None:
        return
    for index, element in enumerate(collection):
        if element is None or not str(element).strip():
            raise SqsValidationError(f"{operation_name}: blank value at index {index}")


def validate_for_batch_operation(
    collection: Optional[Sequence[Any]],
    max_batch_size: int,
    operation_name: str,
    allow_empty: bool = False,
) -> bool:
    """
    Run the full batch check. Returns True when the collection is empty and
    empty is allowed (caller should return early), False to proceed.
    """
    if is_empty(collection, operation_name):
        if not allow_empty:
            raise SqsValidationError(f"{operation_name}: at least one element is required")
        return True
    validate_batch_size(collection, max_batch_size, operation_name)
    validate_no_null_elements(collection, operation_name)
    return False


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def create_send_entries(messages: Sequence[str], custom_ids: Optional[Sequence[str]] = None) -> List[BatchEntry]:
    name = "create_send_entries"
    if is_empty(messages, name):
        raise SqsValidationError(f"{name}: message list cannot be empty")
    validate_no_null_elements(messages, name)
    ids = _entry_ids(len(messages), custom_ids, name)
    return [BatchEntry(id=i, payload=m) for i, m in zip(ids, messages)]


def create_delete_entries(receipt_handles: Sequence[str], custom_ids: Optional[Sequence[str]] = None) -> List[BatchEntry]:
    name = "create_delete_entries"
    if is_empty(receipt_handles, name):
        raise SqsValidationError(f"{name}: receipt handle list cannot be empty")
    validate_no_blank_strings(receipt_handles, name)
    ids = _entry_ids(len(receipt_handles), custom_ids, name)
    return [BatchEntry(id=i, payload=rh) for i, rh in zip(ids, receipt_handles)]


def _entry_ids(count: int, custom_ids: Optional[Sequence[str]], operation_name: str) -> List[str]:
    if custom_ids is None:
        return [str(i) for i in range(count)]
    if len(custom_ids) != count:
        raise SqsConfigurationError(
            f"{operation_name}: {len(custom_ids)} custom ids for {count} entries"
        )
    for index, entry_id in enumerate(custom_ids):
        if entry_id is None or not str(entry_id).strip():
            raise SqsConfigurationError(f"{operation_name}: blank custom id at index {index}")
    if len(set(custom_ids)) != len(custom_ids):
        raise SqsConfigurationError(f"{operation_name}: custom ids must be unique")
    return [str(entry_id) for entry_id in custom_ids]
