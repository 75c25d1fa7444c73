"""Per-contact escalation: delay, bounded repeats and window bookkeeping.

A contact's miss window starts at dueAtMin + delay. Within one window the
contact gets a first send at the window start and, if repeats are enabled,
further sends every repeatEveryMinutes until the cap is reached. Counters are
only written after a confirmed delivery, so a failed attempt never consumes
a repeat slot.

States per (contact, window): NOT_DUE before the window starts,
ELIGIBLE_FIRST_SEND and ELIGIBLE_REPEAT when a send is allowed, CAPPED once the
cap is reached. WAITING_REPEAT is the wait between repeats: at least one send
happened in this window but lastNotifiedAt + repeatEveryMinutes is still ahead.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .delivery import Dispatcher
from .models import ContactLink, UserRecord, bookkeeping_fields
from .push import PushNotification
from .store import Store

logger = logging.getLogger(__name__)


class ContactState(str, Enum):
    NOT_DUE = "not_due"
    ELIGIBLE_FIRST_SEND = "eligible_first_send"
    ELIGIBLE_REPEAT = "eligible_repeat"
    WAITING_REPEAT = "waiting_repeat"
    CAPPED = "capped"


@dataclass(frozen=True)
class ContactDecision:
    state: ContactState
    window_start_min: int
    same_window: bool
    sent_count: int
    next_eligible_min: float

    @property
    def should_send(self) -> bool:
        return self.state in (ContactState.ELIGIBLE_FIRST_SEND, ContactState.ELIGIBLE_REPEAT)

    @property
    def next_sent_count(self) -> int:
        return self.sent_count + 1 if self.same_window else 1


def evaluate_contact(link: ContactLink, due_at_min: int, now_min: int) -> ContactDecision:
    window_start_min = link.window_start_min(due_at_min)
    same_window = link.last_window_start_min == window_start_min
    # Counters stored for another window do not apply here
    sent_count = link.sent_count_in_window if same_window else 0

    if now_min < window_start_min:
        return ContactDecision(ContactState.NOT_DUE, window_start_min, same_window, sent_count, window_start_min)

    if sent_count >= link.max_repeats:
        return ContactDecision(ContactState.CAPPED, window_start_min, same_window, sent_count, math.inf)

    if sent_count == 0:
        return ContactDecision(
            ContactState.ELIGIBLE_FIRST_SEND, window_start_min, same_window, sent_count, window_start_min
        )

    if link.repeat_every_minutes <= 0:
        next_eligible: float = math.inf
    elif link.last_notified_min is None:
        next_eligible = window_start_min
    else:
        next_eligible = link.last_notified_min + link.repeat_every_minutes

    state = ContactState.ELIGIBLE_REPEAT if now_min >= next_eligible else ContactState.WAITING_REPEAT
    return ContactDecision(state, window_start_min, same_window, sent_count, next_eligible)


def contact_alert(user: UserRecord, window_start_min: int) -> PushNotification:
    return PushNotification(
        title="Missed check-in alert",
        body=f"{user.display_name} missed their check-in. Please check on them.",
        data={
            "type": "missed_checkin_contact",
            "mainUserUid": user.uid,
            "windowStartMin": window_start_min,
        },
    )


class ContactEscalator:
    def __init__(self, store: Store, dispatcher: Dispatcher):
        self._store = store
        self._dispatcher = dispatcher

    def escalate(self, user: UserRecord, due_at_min: int, now: datetime, now_min: int) -> int:
        """Evaluate every contact of a user; returns how many were alerted."""
        alerted = 0
        for doc in self._store.contact_links(user.uid):
            link = ContactLink.from_document(doc)
            try:
                if self.escalate_contact(user, link, due_at_min, now, now_min):
                    alerted += 1
            except Exception as e:
                logger.exception(f"Error escalating contact {link.link_id} of {user.uid}: {e}")
        return alerted

    def escalate_contact(
        self, user: UserRecord, link: ContactLink, due_at_min: int, now: datetime, now_min: int
    ) -> Optional[str]:
        decision = evaluate_contact(link, due_at_min, now_min)
        logger.info(
            f"Contact {link.link_id} of {user.uid}: state={decision.state.value} "
            f"policy={link.notify_policy} delay={link.delay_minutes}m repeatEvery={link.repeat_every_minutes}m "
            f"sent={decision.sent_count}/{link.max_repeats} window={decision.window_start_min} now={now_min}"
        )
        if not decision.should_send:
            return None

        channel = self._dispatcher.deliver_to_contact(user.uid, link, contact_alert(user, decision.window_start_min))
        if channel is None:
            return None

        self._store.merge_contact_link(
            user.uid,
            link.link_id,
            bookkeeping_fields(now, decision.window_start_min, decision.next_sent_count),
        )
        logger.info(
            f"📨 Alerted contact {link.link_id} of {user.uid} via {channel} "
            f"({decision.next_sent_count}/{link.max_repeats} in window {decision.window_start_min})"
        )
        return channel
