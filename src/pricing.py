"""
Cart pricing: line items, discount policies and the pricing engine.

The engine sums ``unit_price * quantity`` over a cart snapshot and hands
the subtotal to a discount policy.  Policies only ever see the aggregate
subtotal, so new ones can be registered without touching the engine:

    register_policy("vip", "0.80")
    PricingEngine("vip").calculate_total(items)

All arithmetic uses :class:`decimal.Decimal`.  The discounted amount is
rounded once, at the end, to cents using ROUND_HALF_UP (half away from
zero).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, getcontext, localcontext
from typing import Callable, Dict, Iterable, List, Sequence, Union

CENTS = Decimal("0.01")

# extra digits kept below the smallest input place so a policy factor
# multiplies exactly before the final rounding
_GUARD_DIGITS = 28


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """Coerce a numeric value to Decimal (floats go through ``str``)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _to_quantity(value) -> int:
    """Accept whole numbers only; 2.0 becomes 2, 2.7 is rejected."""
    if isinstance(value, int):
        return value
    try:
        whole = int(value)
    except (TypeError, ValueError, OverflowError):
        whole = None
    if isinstance(value, (float, Decimal)) and whole is not None and whole == value:
        return whole
    raise TypeError(f"quantity must be a whole number, got {value!r}")


class InvalidLineItem(ValueError):
    """Raised by a validating engine for a bad price or a negative quantity."""

    def __init__(self, item: "LineItem", index: int, reason: str) -> None:
        super().__init__(f"Invalid line item #{index}: {reason}")
        self.item = item
        self.index = index
        self.reason = reason


@dataclass(frozen=True)
class LineItem:
    """One product line in a cart snapshot."""
    unit_price: Decimal
    quantity: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "quantity", _to_quantity(self.quantity))

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


# ---------- Discount policies ----------

@dataclass(frozen=True)
class DiscountPolicy:
    """A named flat-rate discount: ``total = subtotal * factor``."""
    name: str
    factor: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.strip().lower())
        object.__setattr__(self, "factor", to_decimal(self.factor))

    def apply(self, subtotal: Decimal) -> Decimal:
        return subtotal * self.factor

    __call__ = apply


REGULAR = DiscountPolicy("regular", Decimal("0.95"))
PREMIUM = DiscountPolicy("premium", Decimal("0.90"))

_POLICIES: Dict[str, DiscountPolicy] = {REGULAR.name: REGULAR, PREMIUM.name: PREMIUM}


def register_policy(name: str, factor: Union[Decimal, int, float, str]) -> DiscountPolicy:
    """Register (or replace) a policy and return it."""
    policy = DiscountPolicy(name, to_decimal(factor))
    _POLICIES[policy.name] = policy
    return policy


def get_policy(name: str) -> DiscountPolicy:
    """Resolve a policy selector such as ``"regular"`` or ``"Premium"``.

    Raises:
        ValueError: If no policy is registered under that name.
    """
    key = name.strip().lower()
    policy = _POLICIES.get(key)
    if policy is None:
        raise ValueError(f"No discount policy registered for '{name}'")
    return policy


def available_policies() -> List[str]:
    return sorted(_POLICIES)


PolicyLike = Union[DiscountPolicy, str, Callable[[Decimal], Decimal]]


def resolve_policy(policy: PolicyLike) -> Callable[[Decimal], Decimal]:
    if isinstance(policy, str):
        return get_policy(policy)
    if not callable(policy):
        raise TypeError(f"Not a discount policy: {policy!r}")
    return policy


# ---------- Engine ----------

def _working_precision(items: Sequence[LineItem]) -> int:
    """Digits needed to carry the subtotal exactly down to its last place."""
    top, bottom = 0, CENTS.as_tuple().exponent
    for item in items:
        if not item.unit_price.is_finite():
            continue
        top = max(top, item.unit_price.adjusted() + len(str(abs(item.quantity))))
        bottom = min(bottom, item.unit_price.as_tuple().exponent)
    needed = top - bottom + len(str(len(items))) + _GUARD_DIGITS
    return max(getcontext().prec, needed)


def _subtotal(items: Sequence[LineItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))


def calculate_subtotal(items: Iterable[LineItem]) -> Decimal:
    items = list(items)
    with localcontext() as ctx:
        ctx.prec = _working_precision(items)
        return _subtotal(items)


def calculate_total(items: Iterable[LineItem], policy: PolicyLike) -> Decimal:
    """Return the discounted cart total rounded to cents.

    No validation is done here; a negative price simply yields a
    negative amount.  Precision grows with the amounts involved, so very
    large carts are priced rather than rejected.
    """
    apply = resolve_policy(policy)
    items = list(items)
    with localcontext() as ctx:
        ctx.prec = _working_precision(items)
        discounted = to_decimal(apply(_subtotal(items)))
        return discounted.quantize(CENTS, rounding=ROUND_HALF_UP)


def validate_items(items: Sequence[LineItem]) -> None:
    """Raise InvalidLineItem for the first non-finite or negative price,
    or negative quantity."""
    for index, item in enumerate(items):
        if not item.unit_price.is_finite():
            raise InvalidLineItem(item, index, f"unit price {item.unit_price} is not a number")
        if item.unit_price < 0:
            raise InvalidLineItem(item, index, f"unit price {item.unit_price} is negative")
        if item.quantity < 0:
            raise InvalidLineItem(item, index, f"quantity {item.quantity} is negative")


class PricingEngine:
    """Computes cart totals with a discount policy fixed at construction.

    Args:
        policy: A DiscountPolicy, a registered policy name or any
            callable mapping a Decimal subtotal to a Decimal total.
        validate: Reject negative prices/quantities with
            InvalidLineItem before computing anything.
    """

    def __init__(self, policy: PolicyLike, validate: bool = False) -> None:
        self.policy = resolve_policy(policy)
        self.validate = validate

    def calculate_subtotal(self, items: Iterable[LineItem]) -> Decimal:
        items = list(items)
        if self.validate:
            validate_items(items)
        return calculate_subtotal(items)

    def calculate_total(self, items: Iterable[LineItem]) -> Decimal:
        items = list(items)
        if self.validate:
            validate_items(items)
        return calculate_total(items, self.policy)
