"""Result normalizer: reconciles per-site raw records into VehicleRecord.

Each canonical field takes the first non-empty candidate, in priority
order (downstream grouping keys off ``source``, so the order is fixed):

  title         title, primaryVehicleDescription, "make model", "Unknown Vehicle"
  price         price (as given), "0"
  imageUrl      imageUrl, image, placeholder
  location      location, localSaleLocation, dealer, "Unknown"
  registration  registration, reg, vrm, "Unknown"
  source        source, website, "Unknown Source"
  url           url, "#"
  id            id, generated "<ms>-<base36>"
  timestamp     normalization time, never the source's
"""

import logging
import math
import random
import re
import string
import time
from collections.abc import Iterable, Mapping
from typing import Any

from carhunt.core.schemas import VehicleRecord, utc_now_iso

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
UNKNOWN_VEHICLE = "Unknown Vehicle"
UNKNOWN_SOURCE = "Unknown Source"
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/400"
NO_URL = "#"
NO_PRICE = "0"

_MILEAGE_PATTERN = re.compile(r"\d[\d,]*")
_ID_ALPHABET = string.digits + string.ascii_lowercase


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _first(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any | None:
    for key in keys:
        value = raw.get(key)
        if not _is_empty(value):
            return value.strip() if isinstance(value, str) else value
    return None


def _first_text(raw: Mapping[str, Any], keys: tuple[str, ...], fallback: str) -> str:
    value = _first(raw, keys)
    return str(value) if value is not None else fallback


def coerce_mileage(value: Any) -> int | None:
    """Numeric mileage from an int/float or text like "12,345 miles".

    Zero and unparseable values mean unknown.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        miles = int(value)
    elif isinstance(value, str):
        match = _MILEAGE_PATTERN.search(value)
        if match is None:
            return None
        miles = int(match.group().replace(",", ""))
    else:
        return None
    return miles if miles > 0 else None


def _title(raw: Mapping[str, Any]) -> str:
    title = _first(raw, ("title", "primaryVehicleDescription"))
    if title is not None:
        return str(title)
    parts = [str(raw[k]).strip() for k in ("make", "model") if not _is_empty(raw.get(k))]
    return " ".join(parts) if parts else UNKNOWN_VEHICLE


def generate_id() -> str:
    """Millisecond timestamp plus a random base36 suffix."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=10))
    return f"{int(time.time() * 1000)}-{suffix}"


class RecordNormalizer:
    """Run-scoped normalizer; keeps ids unique across every record it emits."""

    def __init__(self) -> None:
        self._seen_ids: set[str] = set()

    def normalize(self, raw: Mapping[str, Any]) -> VehicleRecord:
        price = raw.get("price")
        if _is_empty(price) or not isinstance(price, (int, float, str)):
            price = NO_PRICE
        return VehicleRecord(
            id=self._unique_id(_first(raw, ("id",))),
            title=_title(raw),
            price=price,
            image_url=_first_text(raw, ("imageUrl", "image"), PLACEHOLDER_IMAGE_URL),
            location=_first_text(raw, ("location", "localSaleLocation", "dealer"), UNKNOWN),
            registration=_first_text(raw, ("registration", "reg", "vrm"), UNKNOWN),
            mileage=coerce_mileage(raw.get("mileage")),
            source=_first_text(raw, ("source", "website"), UNKNOWN_SOURCE),
            url=_first_text(raw, ("url",), NO_URL),
            timestamp=utc_now_iso(),
        )

    def normalize_all(self, raws: Iterable[Any]) -> list[VehicleRecord]:
        """Normalize many records, skipping any that are not mappings or fail."""
        records: list[VehicleRecord] = []
        for raw in raws:
            if not isinstance(raw, Mapping):
                logger.debug("Skipping non-mapping raw record: %r", raw)
                continue
            try:
                records.append(self.normalize(raw))
            except Exception:
                logger.warning("Failed to normalize record, skipping: %r", raw, exc_info=True)
        return records

    def _unique_id(self, provided: Any | None) -> str:
        base = str(provided) if provided is not None else generate_id()
        candidate = base
        n = 2
        while candidate in self._seen_ids:
            candidate = f"{base}-{n}"
            n += 1
        self._seen_ids.add(candidate)
        return candidate


def normalize_record(raw: Mapping[str, Any]) -> VehicleRecord:
    """Normalize a single record outside of a run."""
    return RecordNormalizer().normalize(raw)
