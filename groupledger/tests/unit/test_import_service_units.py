"""
Unit tests for import_service: storage keys, message parsing, upload
acceptance and rejection records.

The queries module is patched and the collaborators are the in-memory
fakes, so nothing here needs Flask or a database.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.models import user  # noqa: F401  (mapper for Member.user)
from groupledger.app.models.import_batch import ImportStatus
from groupledger.app.services import import_service

from ..fakes import FakeBlobStore, FakeQueue

QUERIES = "groupledger.app.services.import_service.queries"
HEADER = "description,centAmount,paidByMemberId,includedMemberIds\n"


# ── Keys ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "filename, expected",
    [
        ("trip.csv", "trip.csv"),
        ("my trip (1).csv", "my_trip__1_.csv"),
        ("../../etc/passwd", ".._.._etc_passwd"),
        ("", "upload.csv"),
        (None, "upload.csv"),
    ],
)
def test_sanitize_filename(filename, expected):
    assert import_service.sanitize_filename(filename) == expected


def test_build_storage_key_layout():
    key = import_service.build_storage_key("expenses", "g1", "a b.csv", now_millis=1700000000123)

    prefix, suffix, name = key.split("-", 2)
    assert prefix == "expenses/g1/1700000000123"
    assert len(suffix) == import_service.STORAGE_KEY_RANDOM_CHARS
    assert set(suffix) <= set("0123456789abcdef")
    assert name == "a_b.csv"


def test_same_file_in_the_same_millisecond_gets_distinct_keys():
    keys = {
        import_service.build_storage_key("expenses", "g1", "trip.csv", now_millis=1700000000123)
        for _ in range(50)
    }

    assert len(keys) == 50


def test_build_storage_key_uses_current_time():
    key = import_service.build_storage_key("ns", "g1", "x.csv")

    millis = key.split("/")[2].split("-")[0]
    assert millis.isdigit() and len(millis) >= 13


def test_decode_upload_strips_bom():
    assert import_service.decode_upload("\ufeffa,b".encode("utf-8")) == "a,b"


def test_decode_upload_rejects_non_utf8():
    with pytest.raises(AppError) as exc_info:
        import_service.decode_upload(b"\xff\xfe\x00bad")

    err = exc_info.value
    assert err.code == ErrorCode.VALIDATION_FAILED
    assert err.errors[0]["message"] == "Invalid CSV format"


# ── Message parsing ────────────────────────────────────────────────────────

def test_parse_upload_message_returns_fields():
    body = {"storage_key": "k", "group_id": "g", "user_id": "u", "extra": 1}

    assert import_service.parse_upload_message(body) == {
        "storage_key": "k",
        "group_id": "g",
        "user_id": "u",
    }


@pytest.mark.parametrize(
    "body",
    [
        None,
        [],
        "text",
        {"storage_key": "k", "group_id": "g"},
        {"storage_key": "k", "group_id": "g", "user_id": ""},
        {"storage_key": "k", "group_id": 5, "user_id": "u"},
    ],
)
def test_parse_upload_message_rejects_malformed(body):
    assert import_service.parse_upload_message(body) is None


# ── accept_upload ──────────────────────────────────────────────────────────

def _accept(data: bytes, blob_store=None, queue=None, max_bytes=1024):
    return import_service.accept_upload(
        group_id="g1",
        caller_id="u1",
        filename="t.csv",
        data=data,
        session=MagicMock(),
        blob_store=blob_store or FakeBlobStore(),
        queue=queue or FakeQueue(),
        namespace="expenses",
        max_bytes=max_bytes,
    )


@patch(QUERIES)
def test_accept_upload_stores_then_enqueues(mock_queries):
    blob_store, queue = FakeBlobStore(), FakeQueue()
    data = (HEADER + "Dinner,100,,\n").encode()

    result = _accept(data, blob_store, queue)

    key = result["storage_key"]
    assert blob_store.objects == {key: data}
    assert queue.bodies() == [{"storage_key": key, "group_id": "g1", "user_id": "u1"}]
    assert "processed shortly" in result["message"]


@patch(QUERIES)
def test_accept_upload_size_cap(mock_queries):
    blob_store = FakeBlobStore()

    with pytest.raises(AppError) as exc_info:
        _accept(b"x" * 11, blob_store, max_bytes=10)

    assert exc_info.value.code == ErrorCode.FILE_TOO_LARGE
    assert exc_info.value.http_status == 413
    assert blob_store.objects == {}


@patch(QUERIES)
def test_accept_upload_structure_failure_stores_nothing(mock_queries):
    blob_store, queue = FakeBlobStore(), FakeQueue()

    with pytest.raises(AppError) as exc_info:
        _accept(HEADER.encode(), blob_store, queue)

    err = exc_info.value
    assert err.code == ErrorCode.VALIDATION_FAILED
    assert err.http_status == 400
    assert err.errors == [{"row": 0, "field": "csv", "message": "CSV file is empty", "value": ""}]
    assert blob_store.objects == {}
    assert queue.pending == {}


@patch(QUERIES)
def test_accept_upload_store_failure_is_502_and_not_queued(mock_queries):
    blob_store, queue = FakeBlobStore(), FakeQueue()
    blob_store.fail_put = True

    with pytest.raises(AppError) as exc_info:
        _accept((HEADER + "A,1,,\n").encode(), blob_store, queue)

    assert exc_info.value.code == ErrorCode.STORAGE_UNAVAILABLE
    assert exc_info.value.http_status == 502
    assert queue.pending == {}


@patch(QUERIES)
def test_accept_upload_queue_failure_is_502(mock_queries):
    queue = FakeQueue()
    queue.fail_send = True

    with pytest.raises(AppError) as exc_info:
        _accept((HEADER + "A,1,,\n").encode(), queue=queue)

    assert exc_info.value.code == ErrorCode.STORAGE_UNAVAILABLE


@patch(QUERIES)
def test_accept_upload_checks_membership_first(mock_queries):
    mock_queries.require_member.side_effect = AppError(ErrorCode.NOT_A_GROUP_MEMBER, "no", 403)

    with pytest.raises(AppError) as exc_info:
        _accept(b"x" * 5000, max_bytes=10)

    assert exc_info.value.http_status == 403


# ── record_rejection ───────────────────────────────────────────────────────

@patch(QUERIES)
def test_record_rejection_uses_row_errors(mock_queries):
    mock_queries.group_row_exists.return_value = True
    session = MagicMock()
    error = AppError(
        ErrorCode.VALIDATION_FAILED, "bad", 400,
        errors=[{"row": 2, "field": "centAmount", "message": "Must be a valid integer", "value": "x"}],
    )

    batch = import_service.record_rejection("k", "g1", "u1", error, session)

    assert batch.status == ImportStatus.REJECTED
    assert batch.expense_count == 0
    assert batch.errors == error.errors
    session.add.assert_called_once_with(batch)


@patch(QUERIES)
def test_record_rejection_wraps_plain_errors(mock_queries):
    mock_queries.group_row_exists.return_value = True
    error = AppError(ErrorCode.GROUP_NOT_FOUND, "Group g1 does not exist.", 404)

    batch = import_service.record_rejection("k", "g1", "u1", error, MagicMock())

    assert batch.errors == [{"row": 0, "field": "upload", "message": "Group g1 does not exist.", "value": ""}]


@patch(QUERIES)
def test_record_rejection_without_group_row_records_nothing(mock_queries):
    mock_queries.group_row_exists.return_value = False
    session = MagicMock()

    result = import_service.record_rejection(
        "k", "nope", "u1", AppError(ErrorCode.GROUP_NOT_FOUND, "x", 404), session
    )

    assert result is None
    session.add.assert_not_called()


# ── apply_upload ───────────────────────────────────────────────────────────

@patch(QUERIES)
def test_apply_upload_invalid_rows_raise_validation_failed(mock_queries):
    mock_queries.list_members_ordered.return_value = [SimpleNamespace(id="m1")]
    blob_store = FakeBlobStore()
    blob_store.objects["k"] = (HEADER + "Dinner,abc,,\n").encode()

    with pytest.raises(AppError) as exc_info:
        import_service.apply_upload("k", "g1", "u1", blob_store, MagicMock())

    err = exc_info.value
    assert err.is_client_error
    assert err.errors[0]["row"] == 2


@patch(QUERIES)
def test_apply_upload_records_batch_and_expenses(mock_queries):
    mock_queries.list_members_ordered.return_value = [SimpleNamespace(id="m1")]
    blob_store = FakeBlobStore()
    blob_store.objects["k"] = (HEADER + "Dinner,100,,\nTaxi,50,,\n").encode()
    session = MagicMock()

    with patch.object(import_service.expense_service, "create_batch") as mock_create:
        batch = import_service.apply_upload("k", "g1", "u1", blob_store, session)

    assert batch.status == ImportStatus.COMMITTED
    assert batch.expense_count == 2
    assert batch.storage_key == "k"
    args, kwargs = mock_create.call_args
    assert args[0] == "g1" and args[1] == "u1"
    assert [row["description"] for row in args[2]] == ["Dinner", "Taxi"]
    assert kwargs["import_batch_id"] == batch.id
