"""Firestore implementation of the store port."""

from typing import Any, Dict, List, Optional

from google.cloud.firestore import Client  # type: ignore[import-untyped]

from .store import Document

USERS = "users"
DEVICES = "devices"
CONTACT_LINKS = "emergency_contact"
CONTACT_IDENTITIES = "emergencyContacts"


def _to_document(snapshot: Any) -> Document:
    return Document(
        id=snapshot.id,
        path=snapshot.reference.path,
        data=snapshot.to_dict() or {},
        snapshot=snapshot,
    )


class FirestoreStore:
    """Reads and writes scheduler state in Firestore."""

    def __init__(self, db: Client):
        self._db = db

    def due_users(self, now_min: int, limit: int, after: Optional[Document] = None) -> List[Document]:
        query = (
            self._db.collection(USERS)
            .where("checkinEnabled", "==", True)
            .where("dueAtMin", "<=", now_min)
            .order_by("dueAtMin")
            .limit(limit)
        )
        if after is not None:
            query = query.start_after(after.snapshot)
        return [_to_document(s) for s in query.stream()]

    def user_devices(self, uid: str) -> List[Document]:
        ref = self._db.collection(USERS).document(uid).collection(DEVICES)
        return [_to_document(s) for s in ref.stream()]

    def contact_links(self, uid: str) -> List[Document]:
        ref = self._db.collection(USERS).document(uid).collection(CONTACT_LINKS)
        return [_to_document(s) for s in ref.stream()]

    def legacy_contact_devices(self, uid: str, link_id: str) -> List[Document]:
        ref = (
            self._db.collection(USERS)
            .document(uid)
            .collection(CONTACT_LINKS)
            .document(link_id)
            .collection(DEVICES)
        )
        return [_to_document(s) for s in ref.stream()]

    def contact_identity(self, identity_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._db.collection(CONTACT_IDENTITIES).document(identity_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def merge_user(self, uid: str, fields: Dict[str, Any]) -> None:
        self._db.collection(USERS).document(uid).set(fields, merge=True)

    def merge_contact_link(self, uid: str, link_id: str, fields: Dict[str, Any]) -> None:
        ref = self._db.collection(USERS).document(uid).collection(CONTACT_LINKS).document(link_id)
        ref.set(fields, merge=True)

    def delete(self, path: str) -> None:
        self._db.document(path).delete()
