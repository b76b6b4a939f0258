"""Automation webhook client (n8n-style workflow trigger).

Posts ``{"event": ..., "data": ...}`` to a single configured webhook URL so
downstream marketing/alerting workflows can react to marketplace events.
With no URL configured the client only logs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from rfqhub.config import settings
from rfqhub.integrations.base import BaseIntegration


class AutomationClient(BaseIntegration):
    def __init__(self, webhook_url: str | None = None, timeout: float | None = None) -> None:
        super().__init__("automation")
        self.webhook_url = settings.AUTOMATION_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT_SECONDS

    @property
    def is_mock(self) -> bool:
        return not self.webhook_url

    async def health_check(self) -> bool:
        if self.is_mock:
            self.logger.info("Automation webhook health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.head(self.webhook_url)
                return resp.status_code < 500
        except Exception as e:
            self.logger.error("Automation webhook health check failed: %s", e)
            return False

    async def notify(self, event_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = {**payload, "timestamp": datetime.now(timezone.utc).isoformat()}

        if self.is_mock:
            self.logger.info("Mock automation webhook | event=%s | keys=%s", event_name, sorted(data))
            return {"status": "sent", "event": event_name}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.webhook_url, json={"event": event_name, "data": data})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Automation webhook failed for event=%s: %s", event_name, e)
            return {"status": "failed", "event": event_name, "error": str(e)}

        self.logger.info("Automation webhook delivered: event=%s", event_name)
        return {"status": "sent", "event": event_name}
