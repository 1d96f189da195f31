# Per-platform selector chains for the extraction pipeline.
# Order matters: the first strategy that yields a value wins.
from typing import Dict, Sequence

from pricewatch.domain.models.product import Platform
from pricewatch.domain.services.strategies import (
    AttrSelector,
    Constant,
    DynamicImageSelector,
    FieldStrategy,
    TextSelector,
)

# Snapshot field names
FIELD_TITLE = "title"
FIELD_IMAGE = "image_url"
FIELD_PRICE = "price"
FIELD_DISCOUNT = "discount_label"
FIELD_AVAILABILITY = "availability_label"
FIELD_RATING = "rating_avg"
FIELD_RATING_COUNT = "rating_count"

SelectorChains = Dict[str, Sequence[FieldStrategy]]

AMAZON_SELECTORS: SelectorChains = {
    FIELD_TITLE: [TextSelector("#productTitle"), TextSelector("#title")],
    FIELD_IMAGE: [
        DynamicImageSelector("#landingImage"),
        DynamicImageSelector("#imgBlkFront"),
        AttrSelector("#main-image-container img", "src"),
    ],
    FIELD_PRICE: [
        TextSelector(".a-price-whole"),
        TextSelector("#corePrice_feature_div .a-offscreen"),
        TextSelector("#priceblock_dealprice"),
        TextSelector("#priceblock_ourprice"),
    ],
    FIELD_DISCOUNT: [TextSelector(".savingsPercentage")],
    FIELD_AVAILABILITY: [
        TextSelector("#availability .a-size-medium"),
        TextSelector("#availability span"),
    ],
    FIELD_RATING: [
        TextSelector("#acrPopover > span.a-declarative > a > span"),
        TextSelector("#acrPopover span.a-size-base"),
    ],
    FIELD_RATING_COUNT: [TextSelector("#acrCustomerReviewText")],
}

FLIPKART_SELECTORS: SelectorChains = {
    FIELD_TITLE: [TextSelector(".VU-ZEz"), TextSelector("span.B_NuCI"), TextSelector("h1 span")],
    FIELD_IMAGE: [
        AttrSelector("div._8id3KM div._4WELSP._6lpKCl > img", "src"),
        AttrSelector("img.DByuf4", "src"),
        AttrSelector("img._396cs4", "src"),
        AttrSelector("img._2r_T1I", "src"),
    ],
    FIELD_PRICE: [TextSelector(".Nx9bqj"), TextSelector("._30jeq3._16Jk6d")],
    FIELD_DISCOUNT: [TextSelector(".UkUFwK span"), TextSelector("._3Ay6Sb span")],
    FIELD_AVAILABILITY: [Constant("Available")],
    FIELD_RATING: [TextSelector(".XQDdHH"), TextSelector("._3LWZlK")],
    FIELD_RATING_COUNT: [TextSelector(".Wphh3N span span"), TextSelector("._2_R_DZ span span")],
}

PLATFORM_SELECTORS: Dict[Platform, SelectorChains] = {
    Platform.AMAZON: AMAZON_SELECTORS,
    Platform.FLIPKART: FLIPKART_SELECTORS,
}
