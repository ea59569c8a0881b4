"""
Rating distribution for multi-practitioner appointments

One holistic visit rating is split between every practitioner on the
appointment:

1. Base share: total / number of practitioners
2. Lead practitioner: + total * 0.20
3. Called-out practitioner (if not also the lead): + total * 0.10
4. Normalize so the shares add back up to the original total
5. Round points to two decimals (half-up)
6. Percentage = round(points / total * 100, 2)

Rounded sums may be off by a cent; only a drift beyond that (many
practitioners) is moved onto the largest share.

Example, total=5 with practitioners A (lead), B (called out), C:
    A = 1.667 + 1.0 = 2.667, B = 1.667 + 0.5 = 2.167, C = 1.667
    factor = 5 / 6.5  ->  A = 2.05, B = 1.67, C = 1.28
"""

from collections.abc import Hashable, Mapping, Sequence
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

LEAD_BONUS_RATE = 0.20
CALLED_OUT_BONUS_RATE = 0.10

# Allowed drift of rounded sums from the total (points) or 100 (percentages)
ROUNDING_TOLERANCE = Decimal("0.01")


@dataclass
class RatingAllocation:
    practitioner_id: Hashable
    practitioner_name: str
    rating_points: float
    rating_percentage: float
    is_lead_practitioner: bool = False
    is_called_out: bool = False
    bonus_applied: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: float, places: int = 2) -> float:
    """Round like a cashier would (2.675 -> 2.68), not banker's rounding"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _absorb_residual(allocations: list[RatingAllocation], attr: str, target: float) -> None:
    """Move rounding drift beyond ROUNDING_TOLERANCE onto the largest allocation"""
    current = sum(Decimal(repr(getattr(a, attr))) for a in allocations)
    residual = Decimal(repr(target)) - current
    if abs(residual) > ROUNDING_TOLERANCE:
        largest = max(allocations, key=lambda a: getattr(a, attr))
        setattr(largest, attr, float(Decimal(repr(getattr(largest, attr))) + residual))


def distribute_rating(
    total_rating: float,
    practitioner_ids: Sequence[Hashable],
    lead_practitioner_id: Optional[Hashable] = None,
    called_out_practitioner_id: Optional[Hashable] = None,
    practitioner_names: Optional[Mapping[Hashable, str]] = None,
) -> list[RatingAllocation]:
    """Split ``total_rating`` between ``practitioner_ids``.

    When ``practitioner_names`` is given, ids missing from it are skipped
    (they still count toward the base share). Lead/called-out ids that are
    not on the appointment get no bonus. Returns an empty list when there is
    nobody to rate.
    """
    if total_rating <= 0:
        raise ValueError(f"total_rating must be positive, got {total_rating}")

    ids = list(dict.fromkeys(practitioner_ids))
    if not ids:
        return []

    count = len(ids)
    base_points = total_rating / count

    distribution: dict[Hashable, RatingAllocation] = {}
    for practitioner_id in ids:
        if practitioner_names is None:
            name = str(practitioner_id)
        else:
            name = practitioner_names.get(practitioner_id)
            if name is None:
                continue
        distribution[practitioner_id] = RatingAllocation(
            practitioner_id=practitioner_id,
            practitioner_name=name,
            rating_points=base_points,
            rating_percentage=100 / count,
        )

    if not distribution:
        return []

    if lead_practitioner_id is not None and lead_practitioner_id in distribution:
        lead_bonus = total_rating * LEAD_BONUS_RATE
        lead = distribution[lead_practitioner_id]
        lead.rating_points += lead_bonus
        lead.is_lead_practitioner = True
        lead.bonus_applied += lead_bonus

    if (
        called_out_practitioner_id is not None
        and called_out_practitioner_id != lead_practitioner_id
        and called_out_practitioner_id in distribution
    ):
        called_out_bonus = total_rating * CALLED_OUT_BONUS_RATE
        called_out = distribution[called_out_practitioner_id]
        called_out.rating_points += called_out_bonus
        called_out.is_called_out = True
        called_out.bonus_applied += called_out_bonus

    allocations = list(distribution.values())

    provisional_total = sum(a.rating_points for a in allocations)
    adjustment_factor = total_rating / provisional_total
    for allocation in allocations:
        allocation.rating_points = round_half_up(allocation.rating_points * adjustment_factor)
        allocation.bonus_applied = round_half_up(allocation.bonus_applied)
    _absorb_residual(allocations, "rating_points", round_half_up(total_rating))

    for allocation in allocations:
        allocation.rating_percentage = round_half_up(allocation.rating_points / total_rating * 100)
    _absorb_residual(allocations, "rating_percentage", 100.0)

    return allocations
