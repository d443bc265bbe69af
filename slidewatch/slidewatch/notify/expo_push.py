"""Remote push delivery through the Expo push service."""

from __future__ import annotations

import httpx
import structlog

log = structlog.get_logger()

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
ALERT_TYPE = "landslide_alert"


def build_message(token: str, title: str, body: str) -> dict:
    return {
        "to": token,
        "sound": "default",
        "title": title,
        "body": body,
        "data": {"type": ALERT_TYPE},
    }


class ExpoPushTransport:
    """PushTransport posting one message per call. Single attempt, no retry."""

    def __init__(
        self,
        endpoint: str = EXPO_PUSH_URL,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._client = client

    async def send(self, token: str, title: str, body: str) -> bool:
        message = build_message(token, title, body)
        headers = {"Accept": "application/json", "Accept-Encoding": "gzip, deflate"}
        try:
            if self._client is not None:
                resp = await self._client.post(self._endpoint, json=message, headers=headers,
                                               timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._endpoint, json=message, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError:
            log.warning("push_dispatch_failed", endpoint=self._endpoint, exc_info=True)
            return False
        log.info("push_dispatched", status=resp.status_code)
        return True
