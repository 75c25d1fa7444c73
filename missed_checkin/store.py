"""Document store port consumed by the scheduler."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


@dataclass
class Document:
    """A fetched document: its id, full slash-separated path and raw fields.

    `snapshot` carries the backend's native object so it can serve as a
    pagination cursor.
    """

    id: str
    path: str
    data: Dict[str, Any] = field(default_factory=dict)
    snapshot: Any = None


class Store(Protocol):
    def due_users(self, now_min: int, limit: int, after: Optional[Document] = None) -> List[Document]:
        """Users with checkinEnabled and dueAtMin <= now_min, ascending by dueAtMin."""
        ...

    def user_devices(self, uid: str) -> List[Document]: ...

    def contact_links(self, uid: str) -> List[Document]: ...

    def legacy_contact_devices(self, uid: str, link_id: str) -> List[Document]: ...

    def contact_identity(self, identity_id: str) -> Optional[Dict[str, Any]]: ...

    def merge_user(self, uid: str, fields: Dict[str, Any]) -> None: ...

    def merge_contact_link(self, uid: str, link_id: str, fields: Dict[str, Any]) -> None: ...

    def delete(self, path: str) -> None: ...
