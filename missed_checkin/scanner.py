"""Scan-and-page driver for overdue users.

Pages through every user with checkinEnabled and dueAtMin <= now, oldest miss
first, notifying the user and escalating to their contacts. A failure on one
user is logged and skipped; a failure fetching a page aborts the run, which is
safe because every effect is idempotent within a miss window.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional

from .delivery import Dispatcher
from .errors import ScanAborted
from .escalation import ContactEscalator
from .models import UserRecord
from .notifier import MainUserNotifier
from .push import PushSender
from .store import Document, Store
from .timewindow import epoch_minutes, utcnow
from .voice import VoiceCaller

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


@dataclass
class ScanSummary:
    pages: int = 0
    users_scanned: int = 0
    users_skipped: int = 0
    users_failed: int = 0
    user_pushes: int = 0
    contact_alerts: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class MissedCheckinScanner:
    def __init__(
        self,
        store: Store,
        sender: PushSender,
        caller: Optional[VoiceCaller] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._store = store
        self._page_size = page_size
        self._clock = clock
        dispatcher = Dispatcher(store, sender, caller)
        self._notifier = MainUserNotifier(store, dispatcher)
        self._escalator = ContactEscalator(store, dispatcher)

    def run(self, now: Optional[datetime] = None) -> ScanSummary:
        now = now or self._clock()
        now_min = epoch_minutes(now)
        summary = ScanSummary()
        cursor: Optional[Document] = None
        logger.info(f"Starting missed check-in scan at minute {now_min}")

        while True:
            try:
                page = self._store.due_users(now_min, self._page_size, after=cursor)
            except Exception as e:
                logger.exception(f"Failed to fetch page {summary.pages + 1} of overdue users: {e}")
                raise ScanAborted(f"page fetch failed: {e}", pages_done=summary.pages) from e
            summary.pages += 1
            logger.info(f"Fetched page {summary.pages}: {len(page)} overdue user(s)")

            for doc in page:
                cursor = doc
                summary.users_scanned += 1
                try:
                    self.process_user(doc, now, now_min, summary)
                except Exception as e:
                    summary.users_failed += 1
                    logger.exception(f"Error processing user {doc.id}: {e}")

            if len(page) < self._page_size:
                break

        logger.info(f"Missed check-in scan finished: {summary.as_dict()}")
        return summary

    def process_user(self, doc: Document, now: datetime, now_min: int, summary: ScanSummary) -> None:
        user = UserRecord.from_document(doc)
        due_at_min = user.due_at_min
        if not user.checkin_enabled or due_at_min is None or now_min < due_at_min:
            summary.users_skipped += 1
            logger.debug(f"{user.uid} not due (dueAtMin={due_at_min}, now={now_min})")
            return

        logger.info(f"🚨 {user.uid} overdue: dueAtMin={due_at_min} now={now_min} ({now_min - due_at_min}m late)")
        try:
            if self._notifier.notify(user, due_at_min, now):
                summary.user_pushes += 1
        except Exception as e:
            # Contacts are still escalated when the user push or its marker fails
            logger.exception(f"Error notifying user {user.uid}: {e}")
        summary.contact_alerts += self._escalator.escalate(user, due_at_min, now, now_min)
