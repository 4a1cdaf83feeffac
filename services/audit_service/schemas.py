from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shared.errors import AuditCode


class Violation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: AuditCode
    order_id: str | None = None
    record_type: str
    record_id: str | int | None = None
    message: str
    details: dict[str, Any] = {}


class AuditReport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool
    violations: list[Violation]


@dataclass(frozen=True)
class OrderRow:
    order_id: str
    status: str
    amount: Any


@dataclass(frozen=True)
class AuthorizationRow:
    id: int
    order_id: str
    amount: Any
    outcome: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class SettlementRow:
    id: int
    order_id: str
    amount: Any
    outcome: str


@dataclass
class LedgerSnapshot:
    """Plain rows read from the store; the checks never touch the database."""
    orders: list[OrderRow] = field(default_factory=list)
    authorizations: list[AuthorizationRow] = field(default_factory=list)
    settlements: list[SettlementRow] = field(default_factory=list)
