"""Shared fixtures: in-memory store, push sender and voice caller."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from missed_checkin.push import PushNotification, SendStatus
from missed_checkin.store import Document
from missed_checkin.voice import CallRequest

# 2026-01-01 00:00 UTC
BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)
BASE_MIN = int(BASE_TIME.timestamp() // 60)


def at_minute(minute: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minute - BASE_MIN)


class InMemoryStore:
    """Dict-backed store honouring the same query contract as Firestore."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.identities: Dict[str, Dict[str, Any]] = {}
        self.deleted: List[str] = []
        self.page_calls = 0
        self.fail_on_page: Optional[int] = None
        self.fail_merge_for: set = set()
        self.fail_links_for: set = set()
        self.fail_identities: set = set()

    # seeding helpers
    def add_user(self, uid: str, **fields) -> None:
        self.docs[f"users/{uid}"] = dict(fields)

    def add_device(self, uid: str, device_id: str, token: Optional[str], **fields) -> None:
        data = dict(fields)
        if token is not None:
            data["token"] = token
        self.docs[f"users/{uid}/devices/{device_id}"] = data

    def add_link(self, uid: str, link_id: str, **fields) -> None:
        self.docs[f"users/{uid}/emergency_contact/{link_id}"] = dict(fields)

    def add_legacy_device(self, uid: str, link_id: str, device_id: str, token: str) -> None:
        self.docs[f"users/{uid}/emergency_contact/{link_id}/devices/{device_id}"] = {"token": token}

    def user(self, uid: str) -> Dict[str, Any]:
        return self.docs[f"users/{uid}"]

    def link(self, uid: str, link_id: str) -> Dict[str, Any]:
        return self.docs[f"users/{uid}/emergency_contact/{link_id}"]

    def _children(self, prefix: str) -> List[Document]:
        depth = prefix.count("/") + 1
        out = []
        for path in sorted(self.docs):
            if path.startswith(prefix + "/") and path.count("/") == depth:
                out.append(Document(id=path.rsplit("/", 1)[1], path=path, data=dict(self.docs[path])))
        return out

    # Store port
    def due_users(self, now_min, limit, after=None):
        self.page_calls += 1
        if self.fail_on_page == self.page_calls:
            raise ConnectionError("store unavailable")
        rows = [
            d for d in self._children("users")
            if d.data.get("checkinEnabled") is True
            and isinstance(d.data.get("dueAtMin"), (int, float))
            and d.data["dueAtMin"] <= now_min
        ]
        rows.sort(key=lambda d: (d.data["dueAtMin"], d.id))
        if after is not None:
            key = (after.data["dueAtMin"], after.id)
            rows = [d for d in rows if (d.data["dueAtMin"], d.id) > key]
        return rows[:limit]

    def user_devices(self, uid):
        return self._children(f"users/{uid}/devices")

    def contact_links(self, uid):
        if uid in self.fail_links_for:
            raise ConnectionError(f"contact listing failed for {uid}")
        return self._children(f"users/{uid}/emergency_contact")

    def legacy_contact_devices(self, uid, link_id):
        return self._children(f"users/{uid}/emergency_contact/{link_id}/devices")

    def contact_identity(self, identity_id):
        if identity_id in self.fail_identities:
            raise ConnectionError(f"identity lookup failed for {identity_id}")
        return self.identities.get(identity_id)

    def merge_user(self, uid, fields):
        if uid in self.fail_merge_for:
            raise RuntimeError(f"write rejected for {uid}")
        self.docs.setdefault(f"users/{uid}", {}).update(fields)

    def merge_contact_link(self, uid, link_id, fields):
        self.docs.setdefault(f"users/{uid}/emergency_contact/{link_id}", {}).update(fields)

    def delete(self, path):
        self.deleted.append(path)
        self.docs.pop(path, None)


class FakePushSender:
    def __init__(self):
        self.sent: List[tuple] = []
        self.dead: set = set()
        self.failing: set = set()
        self.raising: set = set()

    def send(self, token: str, notification: PushNotification) -> SendStatus:
        if token in self.raising:
            raise RuntimeError("transport exploded")
        if token in self.dead:
            return SendStatus.DEAD_TOKEN
        if token in self.failing:
            return SendStatus.FAILED
        self.sent.append((token, notification))
        return SendStatus.DELIVERED

    def tokens(self) -> List[str]:
        return [t for t, _ in self.sent]


class FakeCaller:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.calls: List[CallRequest] = []

    def call(self, request: CallRequest) -> bool:
        self.calls.append(request)
        return self.succeed


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sender() -> FakePushSender:
    return FakePushSender()
