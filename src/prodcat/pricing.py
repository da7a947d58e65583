"""Price/cost defaults and margin helpers."""

import math
from typing import Optional

DEFAULT_COST_RATIO = 0.8


def _round2(value: float) -> float:
    return round(value, 2)


def default_cost(price: float, cost: Optional[float] = None) -> float:
    """Return the known cost, else 80% of a positive price, else 0."""
    if cost is not None and math.isfinite(cost) and cost > 0:
        return cost
    if math.isfinite(price) and price > 0:
        return _round2(price * DEFAULT_COST_RATIO)
    return 0.0


def margin(price: float, cost: float) -> float:
    """Gross margin as a fraction of price (0 when price is not positive)."""
    for value, name in ((price, "price"), (cost, "cost")):
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite")
    if price <= 0:
        return 0.0
    return round((price - cost) / price, 4)


def inventory_value(price: float, stock: int) -> float:
    if price <= 0 or stock <= 0:
        return 0.0
    return _round2(price * stock)
