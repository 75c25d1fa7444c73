"""Voice-call trigger used as the last-resort contact channel."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallRequest:
    main_user_uid: str
    emergency_contact_uid: Optional[str] = None
    to: Optional[str] = None
    reason: str = "missed_checkin"


class VoiceCaller(Protocol):
    def call(self, request: CallRequest) -> bool: ...


class HttpCallTrigger:
    """POSTs a call request to the deployed call function; 2xx means placed."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    def call(self, request: CallRequest) -> bool:
        body = {
            "reason": request.reason,
            "mainUserUid": request.main_user_uid,
            "emergencyContactUid": request.emergency_contact_uid,
            "to": request.to,
        }
        try:
            response = self._client.post(self._url, json=body)
        except httpx.HTTPError as e:
            logger.exception(f"Call trigger failed for {request.main_user_uid}: {e}")
            return False
        if response.is_success:
            logger.info(f"📞 Call requested for {request.main_user_uid} -> contact={request.emergency_contact_uid}")
            return True
        logger.warning(
            f"Call trigger rejected for {request.main_user_uid}: status={response.status_code} body={response.text[:200]}"
        )
        return False

    def close(self) -> None:
        self._client.close()
