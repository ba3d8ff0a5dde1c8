"""Disposal Network option buckets and vehicle mapping.

Pure functions — zero browser dependency.

The site exposes ceilings ("Up to £10,000") rather than free-form inputs,
so each criterion is mapped onto the smallest bucket that covers it.
"""

import logging
from dataclasses import dataclass
from typing import Any

from carhunt.sites.disposalnetwork.selectors import VEHICLE_URL

logger = logging.getLogger(__name__)

SOURCE_NAME = "DisposalNetwork"

MILEAGE_BUCKETS: tuple[tuple[int, str], ...] = (
    (10_000, "Up to 10,000"),
    (20_000, "Up to 20,000"),
    (30_000, "Up to 30,000"),
    (40_000, "Up to 40,000"),
    (50_000, "Up to 50,000"),
    (60_000, "Up to 60,000"),
    (70_000, "Up to 70,000"),
    (80_000, "Up to 80,000"),
    (90_000, "Up to 90,000"),
    (100_000, "Up to 100,000"),
)
MILEAGE_UNLIMITED = "100,000 +"

PRICE_BUCKETS: tuple[tuple[int, str], ...] = (
    (2_500, "Up to £2,500"),
    (5_000, "Up to £5,000"),
    (10_000, "Up to £10,000"),
    (15_000, "Up to £15,000"),
    (20_000, "Up to £20,000"),
    (30_000, "Up to £30,000"),
    (50_000, "Up to £50,000"),
)

AGE_BUCKETS: tuple[tuple[int, str], ...] = (
    (1, "Up to 1 year"),
    (2, "Up to 2 years"),
    (3, "Up to 3 years"),
    (4, "Up to 4 years"),
    (5, "Up to 5 years"),
)


@dataclass(frozen=True)
class OptionChoice:
    """Which option to click. ``label=None`` leaves the filter unset."""

    label: str | None = None
    satisfiable: bool = True


SKIP = OptionChoice()
UNSATISFIABLE = OptionChoice(satisfiable=False)


def _target_index(value: int, buckets: tuple[tuple[int, str], ...]) -> int | None:
    for i, (ceiling, _) in enumerate(buckets):
        if value <= ceiling:
            return i
    return None


def choose_mileage(max_mileage: int, enabled: set[str]) -> OptionChoice:
    """Smallest enabled odometer bucket covering ``max_mileage``.

    Falls back to larger buckets when the exact one is disabled, and to the
    open-ended bucket above 100,000. No enabled options at all means the
    site offers no odometer filter, so it is skipped.
    """
    if not enabled:
        return SKIP
    index = _target_index(max_mileage, MILEAGE_BUCKETS)
    if index is None:
        return OptionChoice(MILEAGE_UNLIMITED) if MILEAGE_UNLIMITED in enabled else UNSATISFIABLE
    for _, label in MILEAGE_BUCKETS[index:]:
        if label in enabled:
            return OptionChoice(label)
    return UNSATISFIABLE


def choose_ceiling(
    value: int,
    buckets: tuple[tuple[int, str], ...],
    enabled: set[str],
) -> OptionChoice:
    """Exact covering bucket for price/age; disabled means no stock under it.

    Values above the largest bucket leave the filter unset.
    """
    if not enabled:
        return SKIP
    index = _target_index(value, buckets)
    if index is None:
        return SKIP
    label = buckets[index][1]
    return OptionChoice(label) if label in enabled else UNSATISFIABLE


def enabled_labels(options: list[dict[str, Any]]) -> set[str]:
    """Labels of options the page reports as enabled."""
    return {
        str(opt["text"]).strip()
        for opt in options
        if opt.get("text") and not opt.get("disabled")
    }


def vehicle_to_raw(vehicle: dict[str, Any]) -> dict[str, Any]:
    """Map one search-API vehicle into a raw record."""
    vehicle_id = vehicle.get("vehicleId")
    title = " ".join(
        part for part in (
            vehicle.get("make") or "Unknown",
            vehicle.get("model") or "Unknown",
            vehicle.get("derivative") or "",
        ) if part
    )
    raw: dict[str, Any] = {
        "url": VEHICLE_URL.format(vehicle_id=vehicle_id if vehicle_id is not None else "unknown"),
        "imageUrl": vehicle.get("thumbnail") or "",
        "title": title,
        "make": vehicle.get("make"),
        "model": vehicle.get("model"),
        "price": vehicle.get("buyNowPrice") or 0,
        "location": vehicle.get("vehicleLocationPostCode") or "",
        "registration": vehicle.get("regNo") or "",
        "mileage": vehicle.get("mileage") or 0,
        "source": SOURCE_NAME,
    }
    if vehicle_id is not None:
        raw["id"] = f"disposalnetwork-{vehicle_id}"
    return raw
