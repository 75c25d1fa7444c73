"""Tests for the Firestore store adapter against a mocked client."""

from unittest.mock import MagicMock

from missed_checkin.firestore_store import FirestoreStore
from missed_checkin.store import Document


def _snapshot(doc_id: str, path: str, data: dict) -> MagicMock:
    snap = MagicMock()
    snap.id = doc_id
    snap.reference.path = path
    snap.to_dict.return_value = data
    return snap


def test_due_users_query_shape() -> None:
    db = MagicMock()
    query = db.collection.return_value.where.return_value.where.return_value.order_by.return_value.limit.return_value
    query.stream.return_value = [_snapshot("U", "users/U", {"dueAtMin": 10})]

    docs = FirestoreStore(db).due_users(100, 500)

    db.collection.assert_called_once_with("users")
    db.collection.return_value.where.assert_called_once_with("checkinEnabled", "==", True)
    db.collection.return_value.where.return_value.where.assert_called_once_with("dueAtMin", "<=", 100)
    db.collection.return_value.where.return_value.where.return_value.order_by.assert_called_once_with("dueAtMin")
    db.collection.return_value.where.return_value.where.return_value.order_by.return_value.limit.assert_called_once_with(500)
    query.start_after.assert_not_called()
    assert docs[0].id == "U"
    assert docs[0].path == "users/U"
    assert docs[0].data == {"dueAtMin": 10}


def test_due_users_resumes_after_cursor() -> None:
    db = MagicMock()
    query = db.collection.return_value.where.return_value.where.return_value.order_by.return_value.limit.return_value
    query.start_after.return_value.stream.return_value = []
    cursor_snapshot = object()

    FirestoreStore(db).due_users(100, 500, after=Document(id="U", path="users/U", snapshot=cursor_snapshot))

    query.start_after.assert_called_once_with(cursor_snapshot)


def test_contact_identity_missing_returns_none() -> None:
    db = MagicMock()
    db.collection.return_value.document.return_value.get.return_value.exists = False

    assert FirestoreStore(db).contact_identity("abc") is None
    db.collection.assert_called_once_with("emergencyContacts")


def test_merge_writes_and_delete() -> None:
    db = MagicMock()
    store = FirestoreStore(db)

    store.merge_user("U", {"missedNotifiedAt": 1})
    db.collection.return_value.document.return_value.set.assert_called_once_with({"missedNotifiedAt": 1}, merge=True)

    store.delete("users/U/devices/d1")
    db.document.assert_called_once_with("users/U/devices/d1")
    db.document.return_value.delete.assert_called_once_with()
