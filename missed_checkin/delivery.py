"""Push dispatch, dead-token cleanup and per-contact channel resolution."""

import logging
from typing import Callable, Iterable, List, Optional

from .models import ContactLink, Device
from .push import PushNotification, PushSender, SendStatus, token_preview
from .store import Store
from .voice import CallRequest, VoiceCaller

logger = logging.getLogger(__name__)

CHANNEL_IDENTITY = "identity_devices"
CHANNEL_TOKENS = "raw_tokens"
CHANNEL_LEGACY = "legacy_devices"
CHANNEL_VOICE = "voice_call"


def send_push(
    sender: PushSender,
    token: str,
    notification: PushNotification,
    on_dead_token: Optional[Callable[[], None]] = None,
) -> bool:
    """Send one push. Never raises; returns True only when delivered."""
    try:
        status = sender.send(token, notification)
    except Exception as e:
        logger.exception(f"Push send raised -> token=...{token_preview(token)}, error={e}")
        return False

    if status is SendStatus.DELIVERED:
        return True
    if status is SendStatus.DEAD_TOKEN:
        logger.warning(f"Dead token reported -> token=...{token_preview(token)}")
        if on_dead_token is not None:
            try:
                on_dead_token()
            except Exception as e:
                logger.exception(f"Dead token cleanup failed -> token=...{token_preview(token)}, error={e}")
        return False
    logger.warning(f"Push not delivered -> token=...{token_preview(token)}, status={status.value}")
    return False


class Dispatcher:
    """Fans a notification out over devices and resolves contact channels."""

    def __init__(self, store: Store, sender: PushSender, caller: Optional[VoiceCaller] = None):
        self._store = store
        self._sender = sender
        self._caller = caller

    def _delete_device(self, device: Device) -> Callable[[], None]:
        def cleanup():
            self._store.delete(device.path)
            logger.info(f"🔧 Removed dead device {device.path}")
        return cleanup

    def send_to_devices(self, devices: Iterable[Device], notification: PushNotification) -> int:
        """Send to every usable device once per token; returns the delivered count."""
        delivered = 0
        seen = set()
        for device in devices:
            if not device.usable:
                logger.debug(f"Skipping device {device.path}: no token or disabled")
                continue
            if device.token in seen:
                continue
            seen.add(device.token)
            if send_push(self._sender, device.token, notification, self._delete_device(device)):
                delivered += 1
        return delivered

    def send_to_tokens(self, tokens: Iterable[str], notification: PushNotification) -> int:
        # Raw link tokens have no device record to clean up
        delivered = 0
        for token in dict.fromkeys(tokens):
            if send_push(self._sender, token, notification):
                delivered += 1
        return delivered

    def user_devices(self, uid: str) -> List[Device]:
        return [Device.from_document(d) for d in self._store.user_devices(uid)]

    def resolve_contact_uid(self, link: ContactLink) -> Optional[str]:
        if link.emergency_contact_uid:
            return link.emergency_contact_uid
        if not link.emergency_contact_id:
            return None
        identity = self._store.contact_identity(link.emergency_contact_id) or {}
        uid = identity.get("emergencyContactUid")
        if isinstance(uid, str) and uid.strip():
            return uid.strip()
        return None

    def deliver_to_contact(self, main_user_uid: str, link: ContactLink, notification: PushNotification) -> Optional[str]:
        """Try each channel in order; returns the channel that delivered, or None."""
        contact_uid = self.resolve_contact_uid(link)

        if contact_uid:
            sent = self.send_to_devices(self.user_devices(contact_uid), notification)
            if sent:
                logger.info(f"Contact {link.link_id} of {main_user_uid}: {sent} push(es) via {CHANNEL_IDENTITY}")
                return CHANNEL_IDENTITY

        if link.tokens:
            sent = self.send_to_tokens(link.tokens, notification)
            if sent:
                logger.info(f"Contact {link.link_id} of {main_user_uid}: {sent} push(es) via {CHANNEL_TOKENS}")
                return CHANNEL_TOKENS

        legacy = [Device.from_document(d) for d in self._store.legacy_contact_devices(main_user_uid, link.link_id)]
        if legacy:
            sent = self.send_to_devices(legacy, notification)
            if sent:
                logger.info(f"Contact {link.link_id} of {main_user_uid}: {sent} push(es) via {CHANNEL_LEGACY}")
                return CHANNEL_LEGACY

        if self._caller is not None and (contact_uid or link.phone):
            request = CallRequest(main_user_uid=main_user_uid, emergency_contact_uid=contact_uid, to=link.phone)
            try:
                placed = self._caller.call(request)
            except Exception as e:
                logger.exception(f"Voice call raised for contact {link.link_id} of {main_user_uid}: {e}")
                placed = False
            if placed:
                return CHANNEL_VOICE

        logger.warning(f"❌ No channel delivered for contact {link.link_id} of {main_user_uid}")
        return None
