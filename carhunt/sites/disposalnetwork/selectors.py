"""Disposal Network URLs and DOM selectors."""

BASE_URL = "https://disposalnetwork.1link.co.uk"
LOGIN_URL = f"{BASE_URL}/uk/tb/app/login"
VEHICLE_URL = f"{BASE_URL}/uk/tb/app/vehicle/{{vehicle_id}}"

# --- Login ---
USERNAME_INPUT = 'input[placeholder="Username"]'
PASSWORD_INPUT = 'input[placeholder="Password"]'
LOGIN_BUTTON_NAME = "Login"

# --- Primary filters (make / range) ---
SEARCH_BUTTON_NAME = "Search"
MAKE_SECTION = 'label:has-text("Make")'
MAKE_CHECKBOXES = 'div.checkbox input[type="checkbox"]'
RANGE_SECTION = 'label:has-text("Range")'
RANGE_CHECKBOXES = ".rangeGroup__checkboxes .checkbox"
PRIMARY_SEARCH_BUTTON = ".primary-filter__search button"

# --- Odometer radios ---
ODOMETER_SECTION = '.accordion__header-label label:has-text("Odometer")'
ODOMETER_RADIOS = '.radio-input__input[type="radio"]'

# --- Secondary filter panel (price / age / colour dropdowns) ---
FILTER_TAB_CLOSED = 'button[data-active="false"]:has-text("Filter")'
FILTER_TAB_OPEN = 'button[data-active="true"]:has-text("Filter")'
PRICE_SECTION = '.accordion__header-label label:has-text("Price")'
AGE_SECTION = '.accordion__header-label label:has-text("Age")'
COLOUR_SECTION = '.accordion__header-label label:has-text("Colour")'
DROPDOWN_TRIGGER = ".dropdown__trigger"
DROPDOWN_CONTAINER = ".dropdown__container"
DROPDOWN_OPTIONS = ".dropdown__option"

# --- Results ---
SEARCH_API_PATHS: tuple[str, ...] = ("/uk/micro/vehicles/Search", "/vehicles/Search", "/Search")
SEARCH_API_EXCLUDES: tuple[str, ...] = ("filter", "option")
PAGE_BUTTON = 'button[value="{page}"]'
RESULTS_PER_PAGE = 25

# Reads name/value/disabled off each odometer radio.
RADIO_OPTIONS_JS = """
(elements) => elements.map((el) => ({
  text: el.getAttribute("name"),
  disabled: el.disabled || el.getAttribute("aria-disabled") === "true",
}))
"""

# Reads label/disabled off each dropdown option.
DROPDOWN_OPTIONS_JS = """
(elements) => elements.map((el) => ({
  text: el.querySelector(".dropdown__option-name")?.textContent?.trim() ?? null,
  disabled: el.classList.contains("disabled")
    || el.getAttribute("aria-disabled") === "true"
    || el.style.opacity === "0.5",
}))
"""
