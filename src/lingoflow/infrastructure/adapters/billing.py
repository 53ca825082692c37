"""BillingClient adapters."""

import logging
from datetime import datetime

import httpx

from lingoflow.domain.constants import REQUEST_TIMEOUT
from lingoflow.domain.models import Account
from lingoflow.domain.ports import BillingClient


class StubBillingClient(BillingClient):
    """Records every call instead of contacting a provider."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.subscriptions: list[str] = []
        self.metered: list[tuple[str, int, datetime]] = []

    async def ensure_active_subscription(self, account: Account) -> None:
        self.logger.debug(f"[stub] ensure_active_subscription({account.id})")
        self.subscriptions.append(account.id)

    async def send_metered_usage(self, org_id: str, quantity: int, period_start: datetime) -> None:
        self.logger.debug(f"[stub] send_metered_usage({org_id}, {quantity})")
        self.metered.append((org_id, quantity, period_start))


class HttpBillingClient(BillingClient):
    """
    JSON-over-HTTP billing provider.

    Endpoints:
        POST {base_url}/subscriptions/ensure
        POST {base_url}/metering
    """

    def __init__(self, base_url: str, api_key: str | None = None):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def _post(self, path: str, payload: dict) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT, headers=self._headers())
        resp = await self._client.post(f"{self.base_url}{path}", json=payload)
        resp.raise_for_status()

    async def ensure_active_subscription(self, account: Account) -> None:
        await self._post(
            "/subscriptions/ensure",
            {
                "accountId": account.id,
                "email": account.email,
                "tier": account.tier.value,
                "nextBillDate": account.next_bill_date.isoformat()
                if account.next_bill_date
                else None,
            },
        )

    async def send_metered_usage(self, org_id: str, quantity: int, period_start: datetime) -> None:
        await self._post(
            "/metering",
            {"orgId": org_id, "quantity": quantity, "periodStart": period_start.isoformat()},
        )
        self.logger.info(f"Reported {quantity} active seats for {org_id}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
