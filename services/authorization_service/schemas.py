from typing import Literal

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel

from shared.errors import ErrorCode
from shared.money import Money


class _Canonical(BaseModel):
    # One accepted shape: camelCase keys, nothing extra
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CustomerDetails(_Canonical):
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    zip: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CardDetails(_Canonical):
    number: str
    exp_month: str = ""
    exp_year: str = ""
    cvv: str = ""
    name: str = ""

    def __repr__(self) -> str:
        # Keeps PAN/CVV out of tracebacks and log lines
        return f"CardDetails(last4={card_last4(self.number)!r})"

    __str__ = __repr__


class AuthorizeRequest(_Canonical):
    order_id: str
    customer: CustomerDetails | None = None
    card: CardDetails
    requested_amount: StrictInt | StrictFloat


class AuthorizationApproved(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    status: Literal["AUTHORIZED"] = "AUTHORIZED"
    token: str
    masked_card: str
    amount: Money


class AuthorizationDeclined(BaseModel):
    """Provider said no (DECLINED) or could not be reached / made no sense (ERROR)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    status: Literal["DECLINED", "ERROR"]
    code: ErrorCode


class AuthorizationRejected(BaseModel):
    """Request never reached the provider."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: ErrorCode


AuthorizationResult = AuthorizationApproved | AuthorizationDeclined | AuthorizationRejected


def card_last4(number: str | None) -> str:
    digits = "".join(ch for ch in str(number or "") if ch.isdigit())
    return digits[-4:] or "0000"


def masked_card(number: str | None) -> str:
    return f"**** **** **** {card_last4(number)}"
