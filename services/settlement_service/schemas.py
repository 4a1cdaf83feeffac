from datetime import datetime

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from services.order_service.models import OrderStatus
from shared.errors import ErrorCode
from shared.money import Money


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SettlementRequest(_CamelModel):
    order_id: str = ""
    # Parsed by the engine itself so floats keep their shortest decimal form
    amount: StrictInt | StrictFloat | StrictStr | None = None


class SettlementRecord(_CamelModel):
    id: int
    amount: Money
    created_at: datetime


class SettlementAccepted(_CamelModel):
    order_id: str
    status: OrderStatus
    available_to_settle: Money
    settlement: SettlementRecord


class SettlementRejected(_CamelModel):
    order_id: str | None = None
    code: ErrorCode
    available_to_settle: Money | None = None


SettlementResult = SettlementAccepted | SettlementRejected
