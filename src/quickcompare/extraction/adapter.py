"""
Extraction adapter - turns (platform, item, pincode) into canonical products.

Resolves the platform's search URL, builds the extraction request (instruction,
schema, location cookie), calls the backend once and normalizes whatever
shape comes back. Retrying is the orchestrator's decision, never the adapter's.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT, MAX_RESULTS_PER_ITEM
from quickcompare.core.retry_utils import ExtractionError, PermanentError, UnsupportedPlatformError
from quickcompare.extraction.backends import ExtractionBackend
from quickcompare.extraction.normalizer import decode_envelope, normalize_products
from quickcompare.models.api import ExtractionRequest
from quickcompare.models.platform import Platform
from quickcompare.models.product import ExtractedProduct

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

# Platform id -> search page; {query} is URL-encoded
SEARCH_URL_TEMPLATES = {
    "blinkit": "https://blinkit.com/s/?q={query}",
    "zepto": "https://www.zepto.in/search?q={query}",
    "swiggy_instamart": "https://www.swiggy.com/search?query={query}",
    "bigbasket": "https://www.bigbasket.com/ps/?q={query}",
}

PRODUCT_SCHEMA = {
    "type": "object",
    "properties": {
        "products": {
            "type": "array",
            "maxItems": MAX_RESULTS_PER_ITEM,
            "items": {
                "type": "object",
                "properties": {
                    "product_name": {"type": "string"},
                    "price": {"type": "number"},
                    "out_of_stock": {"type": "boolean"},
                    "unit_size": {"type": ["string", "null"]},
                    "special_offer": {"type": ["string", "null"]},
                },
                "required": ["product_name", "price", "out_of_stock"],
            },
        },
    },
    "required": ["products"],
}


def build_search_url(platform_id: str, item: str) -> Optional[str]:
    """Search page for `item` on the platform, or None when unsupported."""
    template = SEARCH_URL_TEMPLATES.get(platform_id)
    if template is None:
        return None
    return template.format(query=quote(item.strip(), safe=""))


def build_instruction(platform_name: str, item: str, limit: int = MAX_RESULTS_PER_ITEM) -> str:
    return f"""Search for {item} on {platform_name} and extract the following information for the top {limit} products:
- Product name
- Price in INR (as a number)
- Whether the product is out of stock (true/false)
- Unit size/weight (if available)
- Any special offer or discount shown (if available)"""


class ExtractionAdapter:
    """Single entry point from the orchestrator to the extraction capability."""

    def __init__(self, backend: ExtractionBackend, limit: int = MAX_RESULTS_PER_ITEM):
        self.backend = backend
        self.limit = limit

    def supports(self, platform_id: str) -> bool:
        return platform_id in SEARCH_URL_TEMPLATES

    def build_request(self, platform: Platform, item: str, pincode: str) -> ExtractionRequest:
        target = build_search_url(platform.id, item)
        if target is None:
            raise UnsupportedPlatformError(f"Unsupported platform: {platform.name}", platform.id)

        return ExtractionRequest(
            platform_id=platform.id,
            grocery_item=item,
            target=target,
            instruction=build_instruction(platform.name, item, self.limit),
            extraction_schema=PRODUCT_SCHEMA,
            location_hint=pincode,
            headers={"Cookie": f"location={pincode}"}
        )

    def extract(self, platform: Platform, item: str, pincode: str) -> List[ExtractedProduct]:
        """
        Extract up to `limit` products for one (platform, item) pair.

        Raises:
            UnsupportedPlatformError: no search target for the platform (backend not called)
            ExtractionError: the backend failed or returned an unrecognizable payload
        """
        request = self.build_request(platform, item, pincode)
        logger.info(f"[ADAPTER] Extracting '{item}' from {platform.name}: {request.target}")

        try:
            payload = self.backend.extract(request)
        except ExtractionError as e:
            e.platform = e.platform or platform.id
            logger.warning(f"[ADAPTER] {platform.name} extraction failed for '{item}': {e.message}")
            raise

        raw_records = decode_envelope(payload)
        if raw_records is None:
            raise PermanentError(
                f"Malformed extraction payload of type {type(payload).__name__}",
                platform.id
            )

        products = normalize_products(raw_records, self.limit)
        logger.info(
            f"[ADAPTER] {platform.name} returned {len(raw_records)} records for '{item}', "
            f"{len(products)} usable"
        )
        return products
