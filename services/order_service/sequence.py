"""Demo order identifiers (ORD-<n>) and amounts for the checkout screen."""
import random
import re
from decimal import Decimal
from typing import Iterable

from shared.money import quantize

ORDER_PREFIX = "ORD-"
FIRST_ORDER_NUMBER = 1001
MIN_DEMO_AMOUNT = Decimal("19.00")
MAX_DEMO_AMOUNT = Decimal("499.00")

_NUMERIC_ORDER_ID = re.compile(r"^ORD-(\d+)$")


def next_order_id(existing_ids: Iterable[str]) -> str:
    """Highest numeric ORD-<n> plus one. Ids like ORD-WH-DEMO-001 are ignored."""
    highest = FIRST_ORDER_NUMBER - 1
    for order_id in existing_ids:
        match = _NUMERIC_ORDER_ID.match(order_id or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{ORDER_PREFIX}{highest + 1}"


def random_amount(rng: random.Random | None = None) -> Decimal:
    rng = rng or random
    cents = rng.randint(int(MIN_DEMO_AMOUNT * 100), int(MAX_DEMO_AMOUNT * 100))
    return quantize(Decimal(cents) / 100)
