"""CarToTrade driver — slider filters, model refinement, card scraping."""

import logging
from typing import Any

from carhunt.browser.actions import random_sleep
from carhunt.core.errors import AuthError
from carhunt.core.schemas import Credentials, FilterOutcome, PageResult, SearchCriteria
from carhunt.sites.base import SiteDriver
from carhunt.sites.cartotrade import selectors as sel
from carhunt.sites.cartotrade.parser import CarToTradeParser, match_model_option

logger = logging.getLogger(__name__)


class CarToTradeDriver(SiteDriver):
    """CarToTrade dealer-to-dealer marketplace.

    Filters are noUiSlider widgets driven through page.evaluate. Colour
    has no filter on this site and is ignored.
    """

    uses_proxy = False

    def __init__(self) -> None:
        self._parser = CarToTradeParser()

    @property
    def site_id(self) -> str:
        return "cartotrade"

    async def authenticate(self, page: Any, credentials: Credentials) -> None:
        await page.goto(sel.LOGIN_URL)
        await page.wait_for_load_state("networkidle")
        await random_sleep(1.5, 2.5)

        await page.fill(sel.USERNAME_INPUT, credentials.username)
        await page.fill(sel.PASSWORD_INPUT, credentials.password)
        await page.click(sel.LOGIN_BUTTON)
        await page.wait_for_load_state("networkidle")

        if await page.query_selector(sel.PASSWORD_INPUT) is not None:
            msg = "CarToTrade rejected the login"
            raise AuthError(msg)

        # Multi-user accounts land on a user picker first.
        picker = await page.query_selector(sel.ACCOUNT_PICKER)
        if picker is not None:
            await picker.click()
            await page.wait_for_load_state("networkidle")
        logger.debug("Logged in, now at %s", page.url)

    async def apply_filters(self, page: Any, criteria: SearchCriteria) -> FilterOutcome:
        if criteria.make:
            checkbox = page.locator(sel.MAKE_CHECKBOX_XPATH.format(make=criteria.make.upper()))
            if await checkbox.count() == 0:
                return FilterOutcome.unsatisfiable(f"make '{criteria.make}' not offered")
            await checkbox.first.check()
            await random_sleep(0.8, 1.2)

        sliders = (
            (sel.PRICE_SLIDER, criteria.min_price, criteria.max_price, sel.PRICE_RANGE),
            (sel.MILEAGE_SLIDER, criteria.min_mileage, criteria.max_mileage, sel.MILEAGE_RANGE),
            (sel.AGE_SLIDER, criteria.min_age, criteria.max_age, sel.AGE_RANGE),
        )
        for selector, low, high, (default_low, default_high) in sliders:
            await self._set_slider(
                page,
                selector,
                low if low is not None else default_low,
                high if high is not None else default_high,
            )

        await page.click(sel.SEARCH_BUTTON)
        await random_sleep(2.5, 3.5)
        await page.wait_for_load_state("domcontentloaded")

        if criteria.model:
            await page.click(sel.REFINE_TOGGLE)
            await page.click(sel.MODEL_SELECT)
            await random_sleep(0.4, 0.8)
            options = await page.eval_on_selector_all(sel.MODEL_OPTIONS, sel.OPTIONS_JS)
            value = match_model_option(criteria.model, options)
            if value is None:
                return FilterOutcome.unsatisfiable(f"model '{criteria.model}' not offered")

            await page.select_option(sel.MODEL_SELECT, value=value)
            await random_sleep(0.8, 1.2)
            await page.locator(sel.REFINE_SEARCH_BUTTON, has_text="Search").nth(0).click()
            logger.debug("Refined by model option %s", value)

        if criteria.color:
            logger.info("CarToTrade has no colour filter, ignoring '%s'", criteria.color)

        logger.debug("Filters applied, now at %s", page.url)
        return FilterOutcome.applied()

    async def extract_page(
        self, page: Any, outcome: FilterOutcome, page_number: int,
    ) -> PageResult:
        if page_number > 1:
            button = await page.query_selector(sel.NEXT_PAGE_BUTTON)
            if button is None:
                return PageResult(records=[], has_next_page=False)
            await button.scroll_into_view_if_needed()
            await button.click()

        await page.wait_for_load_state("domcontentloaded")
        await random_sleep(1.5, 2.5)

        cards = await page.query_selector_all(sel.CARD)
        records = await self._parser.parse_cards(cards)
        logger.info("Page %d: %d card(s), %d listing(s)", page_number, len(cards), len(records))

        next_button = await page.query_selector(sel.NEXT_PAGE_BUTTON)
        has_next = next_button is not None and await next_button.is_visible()
        return PageResult(records=records, has_next_page=has_next)

    async def _set_slider(self, page: Any, selector: str, low: int | float, high: int | float) -> None:
        found = await page.evaluate(
            sel.SET_SLIDER_JS, {"selector": selector, "low": low, "high": high},
        )
        if not found:
            logger.warning("Slider %s not found, range %s-%s not applied", selector, low, high)
