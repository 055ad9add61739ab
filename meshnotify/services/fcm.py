"""Push transport for Firebase Cloud Messaging (HTTP v1 API)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from meshnotify.exceptions import TransportError
from meshnotify.models.notification import (
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
    DeliveryError,
    DeliveryPriority,
    NotificationMessage,
    SendResult,
)
from meshnotify.utils.error_handling import token_suffix

logger = logging.getLogger(__name__)

_ANDROID_PRIORITY = {
    DeliveryPriority.HIGH: "HIGH",
    DeliveryPriority.NORMAL: "NORMAL",
}


class FcmNotification(BaseModel):
    """Visible notification part of an FCM message."""

    title: str
    body: str


def build_payload(token: str, message: NotificationMessage) -> dict[str, Any]:
    """Build the FCM v1 request body for one recipient."""
    android: dict[str, Any] = {"priority": _ANDROID_PRIORITY[message.priority]}
    if message.icon:
        android["notification"] = {"icon": message.icon}

    return {
        "message": {
            "token": token,
            "notification": FcmNotification(title=message.title, body=message.body).model_dump(),
            "android": android,
            "data": {"message_class": message.message_class.value},
        }
    }


_TOKEN_FIELD = "message.token"
_TOKEN_PHRASE = "registration token"


def _names_token(detail: str, fields: list[str]) -> bool:
    return _TOKEN_FIELD in fields or _TOKEN_FIELD in detail or _TOKEN_PHRASE in detail.lower()


def error_from_response(response: httpx.Response) -> DeliveryError:
    """
    Map an FCM error response to a delivery error code.

    Only token-specific causes map to the permanent codes: an UNREGISTERED
    error code, or an INVALID_ARGUMENT that names the token. Payload errors,
    a wrong project or URL (bare 404), quota and auth problems are reported
    under their own code and are not permanent.
    """
    status = ""
    error_code = ""
    detail = response.text
    fields: list[str] = []
    try:
        error = response.json().get("error", {})
        status = str(error.get("status", ""))
        detail = str(error.get("message", detail))
        for item in error.get("details", []):
            if item.get("errorCode") and not error_code:
                error_code = str(item["errorCode"])
            fields.extend(
                str(violation.get("field", ""))
                for violation in item.get("fieldViolations", [])
            )
    except (ValueError, AttributeError):
        pass

    if error_code == "UNREGISTERED":
        return DeliveryError(code=REGISTRATION_TOKEN_NOT_REGISTERED, message=detail)
    if "INVALID_ARGUMENT" in (error_code, status) and _names_token(detail, fields):
        return DeliveryError(code=INVALID_REGISTRATION_TOKEN, message=detail)

    reason = error_code or status
    code = reason.lower().replace("_", "-") if reason else f"http-{response.status_code}"
    return DeliveryError(code=f"messaging/{code}", message=detail)


class FcmTransport:
    """Sends notifications one recipient at a time through FCM HTTP v1."""

    def __init__(
        self,
        project_id: str | None,
        access_token: str | None,
        *,
        base_url: str = "https://fcm.googleapis.com",
        timeout_seconds: int = 10,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the FCM transport.

        Args:
            project_id: Firebase project id
            access_token: OAuth2 bearer token with the firebase.messaging scope
            base_url: FCM API base URL
            timeout_seconds: Timeout for HTTP requests in seconds
            client: Optional shared AsyncClient (owned by the caller)
        """
        self.project_id = project_id
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.project_id and self.access_token)

    @property
    def send_url(self) -> str:
        return f"{self.base_url}/v1/projects/{self.project_id}/messages:send"

    async def send(self, token: str, message: NotificationMessage) -> SendResult:
        """
        Send one notification.

        Returns:
            SendResult with the FCM message name, or a DeliveryError

        Raises:
            TransportError: If the transport is not configured
            httpx.HTTPError: If FCM could not be reached
        """
        if not self.configured:
            raise TransportError(
                "FCM transport is not configured",
                context={"project_id": self.project_id},
            )

        payload = build_payload(token, message)
        headers = {"Authorization": f"Bearer {self.access_token}"}

        if self._client is not None:
            response = await self._client.post(self.send_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.send_url, json=payload, headers=headers)

        if response.is_success:
            message_id = response.json().get("name")
            logger.debug(
                "Push notification sent",
                extra={"token": token_suffix(token), "message_id": message_id},
            )
            return SendResult(message_id=message_id)

        error = error_from_response(response)
        logger.info(
            "FCM rejected notification",
            extra={
                "token": token_suffix(token),
                "status_code": response.status_code,
                "error_code": error.code,
            },
        )
        return SendResult(error=error)
