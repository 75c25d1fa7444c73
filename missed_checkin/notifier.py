import logging
from datetime import datetime

from .delivery import Dispatcher
from .models import UserRecord
from .push import PushNotification
from .store import Store

logger = logging.getLogger(__name__)


def missed_checkin_notification(user: UserRecord) -> PushNotification:
    return PushNotification(
        title="Missed Check-In",
        body="You missed your last check-in. Please check in now!",
        data={"userId": user.uid, "type": "missed_checkin"},
    )


class MainUserNotifier:
    """Pushes the overdue user's own devices once per miss window."""

    def __init__(self, store: Store, dispatcher: Dispatcher):
        self._store = store
        self._dispatcher = dispatcher

    def notify(self, user: UserRecord, due_at_min: int, now: datetime) -> bool:
        """Returns True if the user was pushed and marked notified on this call."""
        if user.notified_for(due_at_min):
            logger.debug(f"{user.uid} already notified for window {due_at_min}")
            return False

        devices = self._dispatcher.user_devices(user.uid)
        if not devices:
            # No marker: a device registered later still gets this window's push
            logger.info(f"{user.uid} missed check-in but has no registered devices")
            return False

        sent = self._dispatcher.send_to_devices(devices, missed_checkin_notification(user))
        logger.info(f"🔔 Missed check-in push for {user.uid}: {sent}/{len(devices)} device(s) delivered")
        if not sent:
            return False

        self._store.merge_user(user.uid, {"missedNotifiedAt": now})
        return True
