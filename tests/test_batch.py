# tests/test_batch.py
# -------------------------------------------------------------------
# Pytest unit tests for sqs_declarative_client.batch:
# - size / null / blank validation
# - the allow-empty policy of validate_for_batch_operation
# - entry construction with sequential or caller-supplied ids
# - chunking keeps input order
# -------------------------------------------------------------------

import pytest

from sqs_declarative_client import batch
from sqs_declarative_client.errors import SqsConfigurationError, SqsValidationError


def test_validate_batch_size_accepts_ceiling_and_rejects_above():
    batch.validate_batch_size(["x"] * 10, 10, "send")
    with pytest.raises(SqsValidationError) as e:
        batch.validate_batch_size(["x"] * 11, 10, "send")
    assert "cannot exceed 10" in str(e.value)


def test_blank_operation_name_is_a_programming_error():
    with pytest.raises(ValueError):
        batch.is_empty([], " ")


def test_null_elements_are_rejected_with_index():
    with pytest.raises(SqsValidationError) as e:
        batch.validate_no_null_elements(["a", None], "send")
    assert "index 1" in str(e.value)


@pytest.mark.parametrize("handles", [["rh1", ""], ["rh1", "   "], [None]])
def test_blank_receipt_handles_are_rejected(handles):
    with pytest.raises(SqsValidationError):
        batch.validate_no_blank_strings(handles, "delete")


def test_empty_collection_policy():
    assert batch.validate_for_batch_operation([], 10, "send", allow_empty=True) is True
    assert batch.validate_for_batch_operation(None, 10, "send", allow_empty=True) is True
    with pytest.raises(SqsValidationError):
        batch.validate_for_batch_operation([], 10, "send")
    assert batch.validate_for_batch_operation(["a"], 10, "send") is False


def test_chunk_preserves_order_and_sizes():
    items = list(range(23))
    chunks = batch.chunk(items, 10)
    assert [len(c) for c in chunks] == [10, 10, 3]
    assert [x for c in chunks for x in c] == items
    with pytest.raises(ValueError):
        batch.chunk(items, 0)


def test_send_entries_get_sequential_ids():
    entries = batch.create_send_entries(["a", "b", "c"])
    assert [(e.id, e.payload) for e in entries] == [("0", "a"), ("1", "b"), ("2", "c")]


def test_send_entries_with_custom_ids():
    entries = batch.create_send_entries(["a", "b"], ["first", "second"])
    assert [e.id for e in entries] == ["first", "second"]


@pytest.mark.parametrize(
    "ids",
    [
        ["only-one"],          # count mismatch
        ["x", "x"],            # duplicates
        ["x", " "],            # blank
    ],
)
def test_malformed_custom_ids_are_configuration_errors(ids):
    with pytest.raises(SqsConfigurationError):
        batch.create_send_entries(["a", "b"], ids)


def test_delete_entries_require_non_blank_handles():
    entries = batch.create_delete_entries(["rh1", "rh2"])
    assert [e.payload for e in entries] == ["rh1", "rh2"]
    with pytest.raises(SqsValidationError):
        batch.create_delete_entries(["rh1", ""])
    with pytest.raises(SqsValidationError):
        batch.create_delete_entries([])
