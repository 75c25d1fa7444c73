"""Push transport port and its Firebase Cloud Messaging implementation."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Protocol

from firebase_admin import exceptions, messaging
from firebase_admin.messaging import UnregisteredError

logger = logging.getLogger(__name__)


class SendStatus(str, Enum):
    DELIVERED = "delivered"
    DEAD_TOKEN = "dead_token"
    FAILED = "failed"


@dataclass(frozen=True)
class PushNotification:
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # FCM only accepts string data values
        object.__setattr__(self, "data", {str(k): str(v) for k, v in self.data.items()})


class PushSender(Protocol):
    def send(self, token: str, notification: PushNotification) -> SendStatus: ...


def token_preview(token: str) -> str:
    return token[-20:] if len(token) > 20 else token


class FcmPushSender:
    """Sends one FCM message per token and classifies the outcome."""

    def __init__(self, app=None):
        self._app = app

    def send(self, token: str, notification: PushNotification) -> SendStatus:
        message = messaging.Message(
            notification=messaging.Notification(title=notification.title, body=notification.body),
            data=dict(notification.data),
            android=messaging.AndroidConfig(priority="high"),
            token=token,
        )
        try:
            response = messaging.send(message, app=self._app)
        except (UnregisteredError, exceptions.InvalidArgumentError) as e:
            logger.warning(f"FCM token rejected -> token=...{token_preview(token)}, error={e}")
            return SendStatus.DEAD_TOKEN
        except Exception as e:
            logger.exception(f"FCM SEND FAILED -> token=...{token_preview(token)}, error={e}")
            return SendStatus.FAILED
        logger.info(f"FCM SEND SUCCESS -> token=...{token_preview(token)}, response={response}")
        return SendStatus.DELIVERED
