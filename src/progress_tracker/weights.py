from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .dates import coerce_number
from .models import WorkItem

logger = logging.getLogger(__name__)


def weight_of(value: Any) -> float:
    """Return `value` when it is a finite positive number, otherwise 1."""
    number = coerce_number(value)
    if number is None or number <= 0:
        return 1.0
    return number


class WeightResolver:
    """Item id -> aggregation weight; unknown items weigh 1."""

    def __init__(self, weights: Mapping[str, Any] | None = None):
        self._weights = {str(key): weight_of(value) for key, value in (weights or {}).items()}

    @classmethod
    def for_items(cls, items: Iterable[WorkItem]) -> "WeightResolver":
        return cls({item.id: item.weight for item in items})

    def weight_of(self, item_id: str) -> float:
        return self._weights.get(str(item_id), 1.0)

    def total(self, item_ids: Iterable[str]) -> float:
        return sum(self.weight_of(item_id) for item_id in item_ids)


@dataclass(frozen=True)
class QuantityViewEligibility:
    """
    Whether quantities can be aggregated for one scope of items.

    The quantity view requires every item to carry a positive total quantity and a unit,
    and all units to match. When disabled, only percentages are produced.
    """

    enabled: bool
    unit: str | None = None
    quantities: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def for_items(cls, items: Iterable[WorkItem]) -> "QuantityViewEligibility":
        items = list(items)
        if not items:
            return cls(enabled=False)

        unit: str | None = None
        quantities: dict[str, float] = {}
        for item in items:
            quantity = coerce_number(item.quantity)
            if quantity is None or quantity <= 0 or not item.unit:
                logger.debug("Quantity view disabled: item %s lacks quantity or unit", item.id)
                return cls(enabled=False)
            if unit is None:
                unit = item.unit
            elif unit != item.unit:
                logger.debug("Quantity view disabled: mixed units %s / %s", unit, item.unit)
                return cls(enabled=False)
            quantities[item.id] = quantity
        return cls(enabled=True, unit=unit, quantities=quantities)

    def quantity_of(self, item_id: str) -> float | None:
        if not self.enabled:
            return None
        return self.quantities.get(item_id)

    def to_quantity(self, item_id: str, percent: float) -> float | None:
        """Convert a percent of one item into its absolute quantity."""
        quantity = self.quantity_of(item_id)
        if quantity is None:
            return None
        return percent / 100.0 * quantity

    def total(self, item_ids: Iterable[str] | None = None) -> float | None:
        if not self.enabled:
            return None
        ids = self.quantities.keys() if item_ids is None else item_ids
        return sum(self.quantities.get(item_id, 0.0) for item_id in ids)
