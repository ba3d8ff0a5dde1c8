"""Abstract base class for site drivers."""

from abc import ABC, abstractmethod
from typing import Any

from carhunt.core.schemas import Credentials, FilterOutcome, PageResult, SearchCriteria


class SiteDriver(ABC):
    """Base class that every site driver must implement.

    One driver instance serves one job. The ``page`` argument is the isolated
    browser context handed out by the resource pool.
    """

    #: Default egress requirement; site settings may override it.
    uses_proxy: bool = False

    #: True if the driver can express criteria as a URL (see build_search_url).
    builds_search_url: bool = False

    @property
    @abstractmethod
    def site_id(self) -> str:
        """Unique identifier for this site (e.g. 'disposalnetwork')."""

    def build_search_url(self, criteria: SearchCriteria) -> str | None:
        """Results URL for the criteria, for drivers that filter by URL."""
        return None

    @abstractmethod
    async def authenticate(self, page: Any, credentials: Credentials) -> None:
        """Log in. Raises AuthError if the site rejects the credentials."""

    @abstractmethod
    async def apply_filters(self, page: Any, criteria: SearchCriteria) -> FilterOutcome:
        """Apply criteria in place.

        Returns ``FilterOutcome.unsatisfiable`` when a required value (a make
        or model) has no matching option on the site.
        """

    @abstractmethod
    async def extract_page(
        self, page: Any, outcome: FilterOutcome, page_number: int,
    ) -> PageResult:
        """Extract raw records from results page ``page_number`` (1-based)."""
