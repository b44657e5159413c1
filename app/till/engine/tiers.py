"""Sorted-threshold lookup tables.

One primitive serves three places in the till: loyalty tiers keyed by a
customer's cumulative spend, supplier bulk-discount tiers keyed by order
quantity, and batch expiry urgency bands keyed by days until expiry.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Generic, TypeVar

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.engine.discounts import to_money

T = TypeVar("T")


@dataclass(frozen=True)
class TierEntry(Generic[T]):
    threshold: int | float | Decimal
    payload: T


def _is_nan(value) -> bool:
    return value != value


class TierTable(Generic[T]):
    """Resolves a key to the entry with the highest threshold <= key.

    Thresholds are inclusive lower bounds. Keys below every threshold (and
    NaN) resolve to the smallest entry, so ``lookup`` never fails.
    """

    def __init__(self, entries: Iterable[TierEntry[T] | tuple]):
        normalized = [entry if isinstance(entry, TierEntry) else TierEntry(*entry) for entry in entries]
        if not normalized:
            raise AppError(ErrorCatalog.INVALID_CONFIGURATION, details={"message": "tier table must not be empty"})
        thresholds = [entry.threshold for entry in normalized]
        if any(_is_nan(threshold) for threshold in thresholds):
            raise AppError(ErrorCatalog.INVALID_CONFIGURATION, details={"message": "tier threshold must be a number"})
        for previous, current in zip(thresholds, thresholds[1:]):
            if current == previous:
                raise AppError(
                    ErrorCatalog.INVALID_CONFIGURATION,
                    details={"message": "tier thresholds must be unique", "threshold": str(current)},
                )
            if current < previous:
                raise AppError(
                    ErrorCatalog.INVALID_CONFIGURATION,
                    details={"message": "tier thresholds must be ascending", "threshold": str(current)},
                )
        self._entries: tuple[TierEntry[T], ...] = tuple(normalized)
        self._thresholds = thresholds

    def resolve(self, key) -> TierEntry[T]:
        if _is_nan(key):
            return self._entries[0]
        index = bisect_right(self._thresholds, key) - 1
        return self._entries[max(index, 0)]

    def lookup(self, key) -> T:
        return self.resolve(key).payload

    @property
    def entries(self) -> Sequence[TierEntry[T]]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TierEntry[T]]:
        return iter(self._entries)


@dataclass(frozen=True)
class LoyaltyTier:
    name: str
    min_spent: Decimal
    points_multiplier: Decimal
    discount_percent: Decimal
    color: str


LOYALTY_TIERS: TierTable[LoyaltyTier] = TierTable(
    TierEntry(tier.min_spent, tier)
    for tier in (
        LoyaltyTier("Bronze", Decimal("0"), Decimal("1"), Decimal("0"), "#CD7F32"),
        LoyaltyTier("Silver", Decimal("25000"), Decimal("1.5"), Decimal("5"), "#C0C0C0"),
        LoyaltyTier("Gold", Decimal("40000"), Decimal("2"), Decimal("10"), "#FFD700"),
        LoyaltyTier("Platinum", Decimal("75000"), Decimal("3"), Decimal("15"), "#E5E4E2"),
    )
)


def loyalty_tier_for(total_spent: Decimal | int | float) -> LoyaltyTier:
    return LOYALTY_TIERS.lookup(total_spent)


@dataclass(frozen=True)
class SupplierQuote:
    supplier_name: str
    unit_price: Decimal
    discount_tiers: TierTable[Decimal]
    min_order_quantity: int = 1
    lead_time: str | None = None

    @classmethod
    def from_tiers(
        cls,
        supplier_name: str,
        unit_price: Decimal,
        tiers: Iterable[tuple[int, Decimal]],
        *,
        min_order_quantity: int = 1,
        lead_time: str | None = None,
    ) -> "SupplierQuote":
        entries = [TierEntry(min_qty, Decimal(str(percent))) for min_qty, percent in tiers]
        # quantities under the first bulk tier pay the list price
        if not entries or entries[0].threshold > 0:
            entries.insert(0, TierEntry(0, Decimal("0")))
        return cls(
            supplier_name=supplier_name,
            unit_price=Decimal(str(unit_price)),
            discount_tiers=TierTable(entries),
            min_order_quantity=min_order_quantity,
            lead_time=lead_time,
        )


def final_unit_price(quote: SupplierQuote, quantity: int) -> Decimal:
    percent = quote.discount_tiers.lookup(quantity)
    return to_money(quote.unit_price - quote.unit_price * percent / Decimal(100))


def best_quote(quotes: Iterable[SupplierQuote], quantity: int) -> SupplierQuote | None:
    best: SupplierQuote | None = None
    best_price: Decimal | None = None
    for quote in quotes:
        price = final_unit_price(quote, quantity)
        if best_price is None or price < best_price:
            best, best_price = quote, price
    return best


@dataclass(frozen=True)
class ExpiryBand:
    status: str
    color: str


@dataclass(frozen=True)
class ExpiryStatus:
    status: str
    label: str
    color: str
    days_to_expiry: int | None


EXPIRY_BANDS: TierTable[ExpiryBand] = TierTable(
    [
        TierEntry(float("-inf"), ExpiryBand("expired", "red")),
        TierEntry(0, ExpiryBand("expiring-soon", "yellow")),
        TierEntry(8, ExpiryBand("expiring-month", "orange")),
        TierEntry(31, ExpiryBand("fresh", "green")),
    ]
)


def expiry_status(expiry_date: date | None, today: date | None = None) -> ExpiryStatus:
    if expiry_date is None:
        return ExpiryStatus(status="no-expiry", label="No Expiry", color="gray", days_to_expiry=None)
    days = (expiry_date - (today or date.today())).days
    band = EXPIRY_BANDS.lookup(days)
    label = "Expired" if band.status == "expired" else f"{days} days left"
    return ExpiryStatus(status=band.status, label=label, color=band.color, days_to_expiry=days)
