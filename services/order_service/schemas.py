from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shared.money import Money


class OrderResponse(BaseModel):
    order_id: str
    status: str
    customer_name: str | None
    card_last4: str | None
    amount: float
    created_at: datetime

    class Config:
        from_attributes = True


class AuthorizationResponse(BaseModel):
    id: int
    order_id: str
    provider_token: str | None
    amount: float
    outcome: str
    created_at: datetime

    class Config:
        from_attributes = True


class SettlementResponse(BaseModel):
    id: int
    order_id: str
    amount: float
    outcome: str
    created_at: datetime

    class Config:
        from_attributes = True


class OrderDetails(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order: OrderResponse
    authorization: AuthorizationResponse | None
    settlements: list[SettlementResponse]
    available_to_settle: Money


class NextOrder(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    amount: Money
