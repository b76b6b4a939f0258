"""AI / LLM integration client.

Uses OpenAI-compatible API when a real key is configured, otherwise
falls back to deterministic template copy. Only used to embellish
notification and email text, never to decide anything.
"""

from __future__ import annotations

from decimal import Decimal

import httpx

from rfqhub.config import settings
from rfqhub.integrations.base import BaseIntegration


def _is_mock() -> bool:
    return settings.AI_API_KEY.startswith("mock_")


def format_inr(amount: Decimal | float | int) -> str:
    return f"₹{Decimal(str(amount)):,.2f}".replace(".00", "")


class AIClient(BaseIntegration):
    """AI client that calls OpenAI (or compatible) API, with template fallback."""

    def __init__(self, timeout: float | None = None) -> None:
        super().__init__("ai")
        self._base_url = settings.AI_BASE_URL
        self._model = settings.AI_MODEL
        self.timeout = timeout or settings.AI_TIMEOUT_SECONDS

    async def health_check(self) -> bool:
        if _is_mock():
            self.logger.info("AI client health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self._base_url}/models",
                    headers={"Authorization": f"Bearer {settings.AI_API_KEY}"},
                )
                return resp.status_code == 200
        except Exception as e:
            self.logger.error("AI health check failed: %s", e)
            return False

    async def _chat(self, system: str, user: str, temperature: float = 0.7, max_tokens: int = 120) -> str:
        if _is_mock():
            return ""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self._base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {settings.AI_API_KEY}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self._model,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            resp.raise_for_status()
            data = resp.json()
            return data["choices"][0]["message"]["content"].strip()

    # ------------------------------------------------------------------
    # Negotiation copy
    # ------------------------------------------------------------------

    async def compose_counter_offer_message(
        self,
        rfq_title: str,
        new_price: Decimal,
        timeline: str,
        previous_price: Decimal | None = None,
    ) -> str:
        self.logger.info("Composing counter-offer message for '%s'", rfq_title)

        if not _is_mock():
            system = (
                "You write short, professional B2B procurement notifications. "
                "Reply with one sentence, no greeting, no markdown."
            )
            prompt = (
                f"A supplier revised their quote for the RFQ \"{rfq_title}\" "
                f"to {format_inr(new_price)} with a timeline of {timeline}"
                + (f", down from {format_inr(previous_price)}" if previous_price is not None else "")
                + ". Tell the buyer and invite them to review."
            )
            try:
                text = await self._chat(system, prompt)
                if text:
                    return text
            except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
                self.logger.warning("LLM counter-offer copy failed, using template: %s", e)

        return counter_offer_template(rfq_title, new_price, timeline)


def counter_offer_template(rfq_title: str, new_price: Decimal, timeline: str) -> str:
    return (
        f"The supplier updated their quote to {format_inr(new_price)} ({timeline}) "
        f"for \"{rfq_title}\". Review and respond."
    )
