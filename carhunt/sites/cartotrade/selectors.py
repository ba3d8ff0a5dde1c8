"""CarToTrade URLs and DOM selectors.

Each results-card field has a fallback tuple; the first match wins.
"""

BASE_URL = "https://www.cartotrade.com"
LOGIN_URL = f"{BASE_URL}/Account/Login?ReturnUrl=%2FHome%2FVehiclesOffered"

# --- Login ---
USERNAME_INPUT = "#Username"
PASSWORD_INPUT = "#Password"
LOGIN_BUTTON = 'button:has-text("Login")'
ACCOUNT_PICKER = "a.user-select"

# --- Filters ---
MAKE_CHECKBOX_XPATH = (
    'xpath=//input[@type="hidden" and contains(@id, "capMan_name")'
    ' and contains(@value, "{make}")]/parent::li//input[@type="checkbox"]'
)
PRICE_SLIDER = "#range-noui-slider-price"
MILEAGE_SLIDER = "#range-noui-slider-mileage"
AGE_SLIDER = "#range-noui-slider-age"
SEARCH_BUTTON = 'button:has-text("Search")'
REFINE_TOGGLE = "#toggleRefine"
MODEL_SELECT = "#vehicleRangeId"
MODEL_OPTIONS = "#vehicleRangeId option"
REFINE_SEARCH_BUTTON = "button.btnSubmit.radius.expand"

# Slider defaults when a bound is unset.
PRICE_RANGE = (0, 100_000)
MILEAGE_RANGE = (0, 100_000)
AGE_RANGE = (0, 25)

# --- Results ---
CARD = ".panel"
TITLE_LINK_SELECTORS: tuple[str, ...] = ("h2.title a",)
IMAGE_SELECTORS: tuple[str, ...] = ("img",)
PRICE_SELECTORS: tuple[str, ...] = (".column.medium-2 span.bold", ".column.medium-2")
LOCATION_SELECTORS: tuple[str, ...] = ("dd.bold span",)
REGISTRATION_INPUT = 'input[name="vrmReg"]'
DETAIL_ITEMS = ".inline-list.pipe-seperated li"
NEXT_PAGE_BUTTON = "button[data-pagination-next]"

# Calls noUiSlider.set on the element if the widget is attached.
SET_SLIDER_JS = """
({selector, low, high}) => {
  const el = document.querySelector(selector);
  if (!el || !el.noUiSlider) return false;
  el.noUiSlider.set([low, high]);
  return true;
}
"""

# Reads value/text off each model option.
OPTIONS_JS = """
(options) => options.map((opt) => ({
  value: opt.value,
  text: opt.textContent ? opt.textContent.trim() : null,
}))
"""
