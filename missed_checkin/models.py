"""Typed views over the loosely-shaped user, device and contact documents.

The `from_document` parsers never raise: missing or malformed fields fall
back to the defaults in `policy`, so the scheduler only ever sees valid values.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .policy import (
    coerce_int,
    normalize_count,
    normalize_delay,
    normalize_interval,
    normalize_max_repeats,
    normalize_policy,
    normalize_repeat_every,
)
from .store import Document
from .timewindow import epoch_minutes, window_start

DEFAULT_DISPLAY_NAME = "your loved one"


def _clean_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class Device(BaseModel):
    """users/{uid}/devices/{deviceId} (or a legacy contact device)"""

    device_id: str
    path: str
    token: Optional[str] = None
    disabled: bool = False

    @property
    def usable(self) -> bool:
        return bool(self.token) and not self.disabled

    @classmethod
    def from_document(cls, doc: Document) -> "Device":
        data = doc.data or {}
        token = _clean_str(data.get("token")) or _clean_str(data.get("fcmToken"))
        return cls(
            device_id=doc.id,
            path=doc.path,
            token=token,
            disabled=data.get("disabled") is True,
        )


class UserRecord(BaseModel):
    """users/{mainUserUid}"""

    uid: str
    checkin_enabled: bool = False
    last_checkin_min: Optional[int] = None
    interval_min: int
    stored_due_at_min: Optional[int] = None
    missed_notified_min: Optional[int] = None
    display_name: str = DEFAULT_DISPLAY_NAME

    @property
    def due_at_min(self) -> Optional[int]:
        # A precomputed dueAtMin wins; otherwise derive from the last check-in.
        if self.stored_due_at_min is not None:
            return self.stored_due_at_min
        if self.last_checkin_min is None:
            return None
        return window_start(self.last_checkin_min, self.interval_min)

    def notified_for(self, due_at_min: int) -> bool:
        """True if missedNotifiedAt already covers the window starting at due_at_min."""
        return self.missed_notified_min is not None and self.missed_notified_min >= due_at_min

    @classmethod
    def from_document(cls, doc: Document) -> "UserRecord":
        data = doc.data or {}
        name = _clean_str(data.get("displayName"))
        if not name:
            parts = [_clean_str(data.get("firstName")), _clean_str(data.get("lastName"))]
            name = " ".join(p for p in parts if p) or DEFAULT_DISPLAY_NAME
        return cls(
            uid=doc.id,
            checkin_enabled=data.get("checkinEnabled") is True,
            last_checkin_min=epoch_minutes(data.get("lastCheckinAt")),
            interval_min=normalize_interval(data.get("checkinInterval")),
            stored_due_at_min=coerce_int(data.get("dueAtMin")),
            missed_notified_min=epoch_minutes(data.get("missedNotifiedAt")),
            display_name=name,
        )


class ContactLink(BaseModel):
    """users/{mainUserUid}/emergency_contact/{linkId}"""

    link_id: str
    emergency_contact_uid: Optional[str] = None
    emergency_contact_id: Optional[str] = None
    tokens: List[str] = []
    phone: Optional[str] = None
    notify_policy: str
    delay_minutes: int = 0
    repeat_every_minutes: int = 0
    max_repeats: int = 1
    last_notified_min: Optional[int] = None
    last_window_start_min: Optional[int] = None
    sent_count_in_window: int = 0

    def window_start_min(self, due_at_min: int) -> int:
        return due_at_min + self.delay_minutes

    @classmethod
    def from_document(cls, doc: Document) -> "ContactLink":
        data = doc.data or {}
        raw_tokens = data.get("tokens")
        tokens: List[str] = []
        if isinstance(raw_tokens, (list, tuple)):
            for raw in raw_tokens:
                token = _clean_str(raw)
                if token and token not in tokens:
                    tokens.append(token)
        policy = normalize_policy(data.get("notifyPolicy"))
        repeat_every = normalize_repeat_every(data.get("repeatEveryMinutes"))
        return cls(
            link_id=doc.id,
            emergency_contact_uid=_clean_str(data.get("emergencyContactUid")) or _clean_str(data.get("uid")),
            emergency_contact_id=_clean_str(data.get("emergencyContactId")),
            tokens=tokens,
            phone=_clean_str(data.get("phone")),
            notify_policy=policy,
            delay_minutes=normalize_delay(policy, data.get("delayMinutes")),
            repeat_every_minutes=repeat_every,
            max_repeats=normalize_max_repeats(data.get("maxRepeatsPerWindow"), repeat_every),
            last_notified_min=epoch_minutes(data.get("lastNotifiedAt")),
            last_window_start_min=coerce_int(data.get("lastWindowStartMin")),
            sent_count_in_window=normalize_count(data.get("sentCountInWindow")),
        )


def bookkeeping_fields(now: Any, window_start_min: int, sent_count: int) -> Dict[str, Any]:
    """Fields merged onto a contact link after a confirmed delivery."""
    return {
        "lastNotifiedAt": now,
        "lastWindowStartMin": window_start_min,
        "sentCountInWindow": sent_count,
    }
