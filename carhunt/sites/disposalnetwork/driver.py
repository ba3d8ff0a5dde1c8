"""Disposal Network driver — UI-driven filters, results read from the search API.

The site renders results from a POST to its vehicles/Search endpoint, so
instead of scraping cards the driver captures that JSON response: the
last one seen while filtering is page 1, and each page button click
yields the next.
"""

import logging
from typing import Any

from patchright.async_api import Error as PlaywrightError

from carhunt.browser.actions import random_sleep
from carhunt.core.errors import AuthError
from carhunt.core.schemas import Credentials, FilterOutcome, PageResult, SearchCriteria
from carhunt.sites.base import SiteDriver
from carhunt.sites.disposalnetwork import selectors as sel
from carhunt.sites.disposalnetwork.options import (
    AGE_BUCKETS,
    PRICE_BUCKETS,
    OptionChoice,
    choose_ceiling,
    choose_mileage,
    enabled_labels,
    vehicle_to_raw,
)

logger = logging.getLogger(__name__)


def is_search_response(response: Any) -> bool:
    """True for a successful vehicles/Search POST (not filter/option lookups)."""
    url = response.url
    return (
        response.request.method == "POST"
        and response.status == 200
        and any(path in url for path in sel.SEARCH_API_PATHS)
        and not any(word in url for word in sel.SEARCH_API_EXCLUDES)
    )


class DisposalNetworkDriver(SiteDriver):
    """Disposal Network trade auction."""

    uses_proxy = False

    @property
    def site_id(self) -> str:
        return "disposalnetwork"

    async def authenticate(self, page: Any, credentials: Credentials) -> None:
        await page.goto(sel.LOGIN_URL)
        await page.wait_for_load_state("networkidle")

        await page.fill(sel.USERNAME_INPUT, credentials.username)
        await page.fill(sel.PASSWORD_INPUT, credentials.password)
        await page.get_by_role("button", name=sel.LOGIN_BUTTON_NAME).click()
        await random_sleep(1.5, 2.5)

        if await page.query_selector(sel.PASSWORD_INPUT) is not None:
            msg = "Disposal Network rejected the login"
            raise AuthError(msg)
        logger.debug("Logged in, now at %s", page.url)

    async def apply_filters(self, page: Any, criteria: SearchCriteria) -> FilterOutcome:
        captured: list[Any] = []

        def _capture(response: Any) -> None:
            if is_search_response(response):
                captured.append(response)

        page.on("response", _capture)
        try:
            outcome = await self._apply(page, criteria)
        finally:
            page.remove_listener("response", _capture)

        if not outcome.is_satisfiable:
            return outcome
        if not captured:
            msg = "No vehicles/Search API response captured while filtering"
            raise RuntimeError(msg)
        return FilterOutcome.applied(first_response=captured[-1])

    async def extract_page(
        self, page: Any, outcome: FilterOutcome, page_number: int,
    ) -> PageResult:
        if page_number == 1:
            response = outcome.data["first_response"]
        else:
            button = await page.query_selector(sel.PAGE_BUTTON.format(page=page_number))
            if button is None:
                logger.info("No button for page %d - stopping", page_number)
                return PageResult(records=[], has_next_page=False)
            async with page.expect_response(is_search_response) as response_info:
                await button.click()
            response = await response_info.value

        data = await response.json()
        vehicles = data.get("vehicles") if isinstance(data, dict) else None
        if not isinstance(vehicles, list):
            msg = f"Search response for page {page_number} has no vehicles array"
            raise ValueError(msg)

        records = [vehicle_to_raw(v) for v in vehicles if isinstance(v, dict)]
        logger.info("Page %d: %d vehicle(s)", page_number, len(records))
        return PageResult(
            records=records,
            has_next_page=len(vehicles) >= sel.RESULTS_PER_PAGE,
        )

    # --- Filter steps ---

    async def _apply(self, page: Any, criteria: SearchCriteria) -> FilterOutcome:
        await page.get_by_role("button", name=sel.SEARCH_BUTTON_NAME).click()
        await page.wait_for_load_state("networkidle")

        # The make panel must be opened even when no make is chosen; it
        # initializes the search form.
        await page.locator(sel.MAKE_SECTION).click()
        await page.wait_for_load_state("networkidle")
        await page.wait_for_selector(sel.MAKE_CHECKBOXES)

        if criteria.make:
            label = await page.query_selector(f'label:has-text("{criteria.make.upper()}")')
            if label is None:
                return FilterOutcome.unsatisfiable(f"make '{criteria.make}' not offered")
            await label.check()
            await random_sleep(0.8, 1.5)

            if criteria.model:
                await page.locator(sel.RANGE_SECTION).click()
                await page.wait_for_load_state("networkidle")
                await page.wait_for_selector(sel.RANGE_CHECKBOXES)
                labels = await page.query_selector_all(
                    f'label:has-text("{criteria.model.upper()}")',
                )
                if not labels:
                    return FilterOutcome.unsatisfiable(f"model '{criteria.model}' not offered")
                for model_label in labels:
                    await model_label.check()
                await random_sleep(0.8, 1.5)

        if criteria.max_mileage is not None:
            choice = await self._choose_mileage(page, criteria.max_mileage)
            if not choice.satisfiable:
                return FilterOutcome.unsatisfiable(
                    f"no odometer option covers {criteria.max_mileage} miles",
                )

        await page.locator(sel.PRIMARY_SEARCH_BUTTON, has_text="Search").click()
        await page.wait_for_load_state("domcontentloaded")
        await random_sleep(2.5, 3.5)

        if criteria.max_price is not None or criteria.max_age is not None:
            reason = await self._apply_dropdown_filters(page, criteria)
            if reason:
                return FilterOutcome.unsatisfiable(reason)

        if criteria.color:
            await self._apply_colour(page, criteria.color)

        await random_sleep(1.5, 2.5)
        return FilterOutcome.applied()

    async def _choose_mileage(self, page: Any, max_mileage: int) -> OptionChoice:
        try:
            await page.click(sel.ODOMETER_SECTION)
            await page.wait_for_selector(sel.ODOMETER_RADIOS, state="attached", timeout=10_000)
            options = await page.eval_on_selector_all(sel.ODOMETER_RADIOS, sel.RADIO_OPTIONS_JS)
        except PlaywrightError as e:
            logger.warning("Odometer filter unavailable, skipping: %s", e)
            return OptionChoice()

        choice = choose_mileage(max_mileage, enabled_labels(options))
        if choice.label:
            await page.click(f'label:has-text("{choice.label}")')
            logger.debug("Selected odometer option %s", choice.label)
        return choice

    async def _apply_dropdown_filters(self, page: Any, criteria: SearchCriteria) -> str | None:
        """Apply price/age ceilings. Returns a reason if one is unsatisfiable."""
        await page.click(sel.FILTER_TAB_CLOSED)
        await random_sleep(0.8, 1.2)

        steps = (
            ("price", criteria.max_price, sel.PRICE_SECTION, PRICE_BUCKETS),
            ("age", criteria.max_age, sel.AGE_SECTION, AGE_BUCKETS),
        )
        for name, value, section, buckets in steps:
            if value is None:
                continue
            try:
                await page.click(section)
                await page.wait_for_selector(sel.DROPDOWN_TRIGGER)
                await page.click(sel.DROPDOWN_TRIGGER)
                await page.wait_for_selector(sel.DROPDOWN_CONTAINER)
                options = await page.eval_on_selector_all(
                    sel.DROPDOWN_OPTIONS, sel.DROPDOWN_OPTIONS_JS,
                )
            except PlaywrightError as e:
                logger.warning("%s filter unavailable, skipping: %s", name, e)
                continue

            choice = choose_ceiling(value, buckets, enabled_labels(options))
            if not choice.satisfiable:
                await page.click(sel.FILTER_TAB_OPEN)
                return f"no {name} option covers {value}"
            if choice.label:
                await page.click(f'{sel.DROPDOWN_OPTIONS}:has-text("{choice.label}")')
                logger.debug("Selected %s option %s", name, choice.label)
                await random_sleep(0.4, 0.8)

        await page.click(sel.FILTER_TAB_OPEN)
        return None

    async def _apply_colour(self, page: Any, color: str) -> None:
        colour = color[:1].upper() + color[1:].lower()
        await page.click(sel.FILTER_TAB_CLOSED)
        await page.click(sel.COLOUR_SECTION)
        label = await page.query_selector(f'label.checkbox__label:text-is("{colour}")')
        if label is None:
            logger.warning("Colour '%s' not offered, skipping colour filter", colour)
        else:
            await label.click()
            await random_sleep(0.8, 1.2)
        await page.click(sel.FILTER_TAB_OPEN)
