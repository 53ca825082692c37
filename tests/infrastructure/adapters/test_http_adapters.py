import json
from datetime import datetime, timezone

import httpx
import pytest

from lingoflow.domain.constants import PLACEHOLDER_IMAGE_POOL
from lingoflow.domain.models import Account, Tier
from lingoflow.infrastructure.adapters import (
    HttpBillingClient,
    HttpImageGenerator,
    PlaceholderImageGenerator,
    StubBillingClient,
)

PERIOD = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _mock_client(handler, **kwargs):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)


# --- Images ---


@pytest.mark.asyncio
async def test_placeholder_is_stable_per_term():
    gen = PlaceholderImageGenerator()

    first = await gen.generate("gato")
    assert first == await gen.generate("gato")
    assert first in PLACEHOLDER_IMAGE_POOL


def test_placeholder_rejects_empty_pool():
    with pytest.raises(ValueError):
        PlaceholderImageGenerator(pool=[])


@pytest.mark.asyncio
async def test_http_image_generator_posts_term():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"url": "https://img.example/gato.png"})

    gen = HttpImageGenerator("http://images.local/imagegen")
    gen._client = _mock_client(handler)

    assert await gen.generate("gato") == "https://img.example/gato.png"
    assert seen == {"url": "http://images.local/imagegen", "body": {"term": "gato"}}
    await gen.close()


@pytest.mark.asyncio
async def test_http_image_generator_raises_on_error_status():
    gen = HttpImageGenerator("http://images.local/imagegen")
    gen._client = _mock_client(lambda request: httpx.Response(503))

    with pytest.raises(httpx.HTTPStatusError):
        await gen.generate("gato")


@pytest.mark.asyncio
async def test_http_image_generator_requires_url_field():
    gen = HttpImageGenerator("http://images.local/imagegen")
    gen._client = _mock_client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ValueError):
        await gen.generate("gato")


# --- Billing ---


@pytest.mark.asyncio
async def test_stub_billing_records_calls():
    billing = StubBillingClient()
    await billing.ensure_active_subscription(Account(id="a"))
    await billing.send_metered_usage("org_1", 4, PERIOD)

    assert billing.subscriptions == ["a"]
    assert billing.metered == [("org_1", 4, PERIOD)]


@pytest.mark.asyncio
async def test_http_billing_payloads():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(204)

    billing = HttpBillingClient("https://billing.local/", api_key="secret")
    billing._client = _mock_client(handler, headers=billing._headers())
    account = Account(
        id="a", email="a@example.com", tier=Tier.ACTIVE, next_bill_date=PERIOD
    )

    await billing.ensure_active_subscription(account)
    await billing.send_metered_usage("org_1", 3, PERIOD)

    ensure, metering = requests
    assert str(ensure.url) == "https://billing.local/subscriptions/ensure"
    assert ensure.headers["authorization"] == "Bearer secret"
    assert json.loads(ensure.content) == {
        "accountId": "a",
        "email": "a@example.com",
        "tier": "active",
        "nextBillDate": "2024-03-01T00:00:00+00:00",
    }
    assert str(metering.url) == "https://billing.local/metering"
    assert json.loads(metering.content) == {
        "orgId": "org_1",
        "quantity": 3,
        "periodStart": "2024-03-01T00:00:00+00:00",
    }
    await billing.close()


@pytest.mark.asyncio
async def test_http_billing_surfaces_errors():
    billing = HttpBillingClient("https://billing.local")
    billing._client = _mock_client(lambda request: httpx.Response(500))

    with pytest.raises(httpx.HTTPStatusError):
        await billing.send_metered_usage("org_1", 1, PERIOD)
