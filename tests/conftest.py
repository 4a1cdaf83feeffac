import json

import httpx
import pytest

from services.authorization_service.provider import ProviderClient
from services.order_service.models import Authorization, AuthOutcome, Order, OrderStatus, Settlement, SettlementOutcome
from services.order_service.repository import LedgerRepository
from shared.config.database import LedgerStore
from shared.config.settings import Settings

PROVIDER_URL = "http://provider.test"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
async def store(db_url):
    ledger_store = LedgerStore(db_url)
    await ledger_store.create_all()
    yield ledger_store
    await ledger_store.dispose()


@pytest.fixture
def settings(db_url):
    return Settings(
        database_url=db_url,
        provider_base_url=PROVIDER_URL,
        internal_api_key="test-internal-key",
        metrics_enabled=False,
    )


class FakeProvider:
    """Records provider requests and answers with a canned status/body or raises."""

    def __init__(self, status_code=200, body=None, error: Exception | None = None):
        self.status_code = status_code
        self.body = {"Success": True} if body is None else body
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.error is not None:
            raise self.error
        if isinstance(self.body, str):
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> ProviderClient:
        return ProviderClient(PROVIDER_URL, timeout=1.0, transport=httpx.MockTransport(self))


async def seed_order(
    store: LedgerStore,
    order_id: str = "ORD-1",
    amount: str = "100.00",
    outcome: AuthOutcome | None = AuthOutcome.SUCCESS,
    status: OrderStatus = OrderStatus.AUTHORIZED,
    settlements: tuple = (),
):
    """Writes an order, optionally its authorization, and any prior settlements."""
    async with store.transaction() as db:
        order = await LedgerRepository.create_order(db, Order(
            order_id=order_id,
            status=status.value,
            customer_name="Jane Doe",
            card_last4="4242",
            amount=float(amount),
        ))
        if outcome is not None:
            await LedgerRepository.replace_authorization(db, Authorization(
                order_id=order_id,
                provider_token=f"STATIC_TOKEN_{order_id}",
                amount=float(amount),
                outcome=outcome.value,
            ))
        for settled in settlements:
            await LedgerRepository.append_settlement(db, Settlement(
                order_id=order_id,
                amount=float(settled),
                outcome=SettlementOutcome.SUCCESS.value,
            ))
    return order
