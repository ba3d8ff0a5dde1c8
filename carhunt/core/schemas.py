"""Core data models for the car search engine.

Wire shapes are camelCase (the browser client and SSE consumers expect it);
Python attribute names stay snake_case.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Placeholder values the UI's select widgets send for "no preference".
_ANY_SENTINELS = frozenset({"any", "any_make", "any_model", "any_color"})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WireModel(BaseModel):
    """Base for models that cross the API boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SearchCriteria(WireModel):
    """What the user is looking for. Every field is optional (unconstrained).

    Frozen: one instance is shared read-only by every job in a search.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore",
    )

    make: str | None = None
    model: str | None = None
    color: str | None = None
    min_price: int | None = Field(default=None, ge=0)
    max_price: int | None = Field(default=None, ge=0)
    min_mileage: int | None = Field(default=None, ge=0)
    max_mileage: int | None = Field(default=None, ge=0)
    min_age: int | None = Field(default=None, ge=0)
    max_age: int | None = Field(default=None, ge=0)
    vat_qualifying: bool | None = None

    @field_validator("make", "model", "color", mode="before")
    @classmethod
    def blank_means_unset(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v or v.lower() in _ANY_SENTINELS:
                return None
        return v

    @model_validator(mode="after")
    def bounds_ordered(self) -> "SearchCriteria":
        for low, high in (
            ("min_price", "max_price"),
            ("min_mileage", "max_mileage"),
            ("min_age", "max_age"),
        ):
            lo, hi = getattr(self, low), getattr(self, high)
            if lo is not None and hi is not None and lo > hi:
                msg = f"{low} ({lo}) must not exceed {high} ({hi})"
                raise ValueError(msg)
        return self

    def describe(self) -> str:
        """Short human-readable summary for logs and the CLI."""
        parts = [f"{k}={v}" for k, v in self.model_dump(exclude_none=True).items()]
        return ", ".join(parts) or "no filters"


def age_bounds_from_years(
    min_year: int | None,
    max_year: int | None,
    current_year: int | None = None,
) -> tuple[int | None, int | None]:
    """Translate registration-year bounds into (min_age, max_age) in years.

    The oldest allowed year caps the age from above, the newest allowed year
    caps it from below. Ages never go negative.
    """
    if current_year is None:
        current_year = datetime.now().year
    min_age = max(0, current_year - max_year) if max_year is not None else None
    max_age = max(0, current_year - min_year) if min_year is not None else None
    return min_age, max_age


class Credentials(BaseModel):
    """Login for one third-party site."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str = Field(repr=False)


class VehicleRecord(WireModel):
    """Canonical, normalized vehicle listing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    price: int | float | str
    image_url: str
    location: str
    registration: str
    mileage: int | None = None
    source: str
    url: str
    timestamp: str


class JobResult(WireModel):
    """Outcome of one site job. Exactly one per job, failures included."""

    site_id: str
    records: list[VehicleRecord] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, site_id: str, error: str) -> "JobResult":
        return cls(site_id=site_id, records=[], error=error)


class FilterStatus(enum.Enum):
    APPLIED = "applied"
    UNSATISFIABLE = "unsatisfiable"


@dataclass(frozen=True)
class FilterOutcome:
    """Result of applying criteria on a site, threaded into page extraction.

    ``data`` carries whatever the driver captured while filtering (for example
    intercepted API responses) so extraction never reads ad hoc page state.
    """

    status: FilterStatus
    reason: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def applied(cls, **data: Any) -> "FilterOutcome":
        return cls(FilterStatus.APPLIED, data=data)

    @classmethod
    def unsatisfiable(cls, reason: str) -> "FilterOutcome":
        return cls(FilterStatus.UNSATISFIABLE, reason=reason)

    @property
    def is_satisfiable(self) -> bool:
        return self.status is FilterStatus.APPLIED


@dataclass
class PageResult:
    """Raw records from one results page."""

    records: list[dict[str, Any]]
    has_next_page: bool = False


# --- Stream events ---


class ConnectedEvent(WireModel):
    type: Literal["connected"] = "connected"
    total_sites: int
    timestamp: str = Field(default_factory=utc_now_iso)


class ProgressEvent(WireModel):
    type: Literal["progress"] = "progress"
    site_id: str
    records: list[VehicleRecord]
    current_site_index: int
    total_sites: int
    error: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)


class CompleteEvent(WireModel):
    type: Literal["complete"] = "complete"
    total_records: int
    all_records: list[VehicleRecord]
    timestamp: str = Field(default_factory=utc_now_iso)


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str
    timestamp: str = Field(default_factory=utc_now_iso)


StreamEvent = Annotated[
    Union[ConnectedEvent, ProgressEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]
