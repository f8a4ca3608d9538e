"""
Normalization of extraction responses into ExtractedProduct records.

The extraction capability returns loosely-typed JSON whose envelope and
field names drift between versions. Everything that knows about those
shapes lives here:
- envelope decoding (bare list, {"products": [...]}, nested "data", single record)
- an explicit alias table from every known field name to the canonical field
- price parsing from numbers or currency-formatted strings into Decimal
- availability from boolean flags or free-text status strings
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT, MAX_RESULTS_PER_ITEM
from quickcompare.models.product import ExtractedProduct

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

# Canonical fields produced by key lookup
PRODUCT_NAME = "product_name"
PRICE = "price"
OUT_OF_STOCK = "out_of_stock"
IN_STOCK = "in_stock"
AVAILABILITY_STATUS = "availability_status"
UNIT_SIZE = "unit_size"
SPECIAL_OFFER = "special_offer"

# Keys are in normalized form (see normalize_key)
FIELD_ALIASES = {
    # product name
    "product_name": PRODUCT_NAME,
    "productname": PRODUCT_NAME,
    "name": PRODUCT_NAME,
    "title": PRODUCT_NAME,
    "product": PRODUCT_NAME,
    "product_title": PRODUCT_NAME,
    "item_name": PRODUCT_NAME,
    # price
    "price": PRICE,
    "price_inr": PRICE,
    "price_in_inr": PRICE,
    "selling_price": PRICE,
    "sale_price": PRICE,
    "offer_price": PRICE,
    "final_price": PRICE,
    "current_price": PRICE,
    "cost": PRICE,
    # availability as an "out of stock" flag
    "out_of_stock": OUT_OF_STOCK,
    "outofstock": OUT_OF_STOCK,
    "is_out_of_stock": OUT_OF_STOCK,
    "sold_out": OUT_OF_STOCK,
    "is_sold_out": OUT_OF_STOCK,
    # availability as an "in stock" flag
    "in_stock": IN_STOCK,
    "instock": IN_STOCK,
    "is_in_stock": IN_STOCK,
    "is_available": IN_STOCK,
    "available": IN_STOCK,
    # availability as a status string
    "availability": AVAILABILITY_STATUS,
    "availability_status": AVAILABILITY_STATUS,
    "stock_status": AVAILABILITY_STATUS,
    "stock": AVAILABILITY_STATUS,
    "status": AVAILABILITY_STATUS,
    # unit size
    "unit_size": UNIT_SIZE,
    "unitsize": UNIT_SIZE,
    "unit_size_weight": UNIT_SIZE,
    "size": UNIT_SIZE,
    "weight": UNIT_SIZE,
    "quantity": UNIT_SIZE,
    "pack_size": UNIT_SIZE,
    "net_quantity": UNIT_SIZE,
    "unit": UNIT_SIZE,
    # special offer
    "special_offer": SPECIAL_OFFER,
    "specialoffer": SPECIAL_OFFER,
    "offer": SPECIAL_OFFER,
    "offers": SPECIAL_OFFER,
    "discount": SPECIAL_OFFER,
    "deal": SPECIAL_OFFER,
    "promotion": SPECIAL_OFFER,
    "promo": SPECIAL_OFFER,
}

# Envelope keys that may wrap the record list
ENVELOPE_KEYS = ("products", "items", "results", "data", "records", "extract", "json")

# Matched against the status with separators collapsed to single spaces
UNAVAILABLE_MARKERS = (
    "out of stock", "outofstock", "sold out", "soldout", "not in stock",
    "unavailable", "not available", "notify me",
)

TRUE_STRINGS = {"true", "yes", "y", "1"}
FALSE_STRINGS = {"false", "no", "n", "0"}

_CURRENCY_RE = re.compile(r"(?i)\b(?:rs|inr|mrp)\b\.?|₹")
_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?|\.\d+")


def normalize_key(key: str) -> str:
    """'Product Name', 'productName' and 'product-name' all become 'product_name'."""
    key = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", str(key))
    key = re.sub(r"[^a-z0-9]+", "_", key.lower())
    return key.strip("_")


def canonical_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a raw record onto canonical field names; unknown keys are ignored."""
    fields: Dict[str, Any] = {}
    for key, value in raw.items():
        canonical = FIELD_ALIASES.get(normalize_key(key))
        if canonical is None:
            continue
        # first alias wins when a payload carries two spellings
        fields.setdefault(canonical, value)
    return fields


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a price into a non-negative Decimal.

    Numbers pass through; strings such as '₹1,299.00' or 'Rs. 45' have their
    currency symbols and thousands separators stripped. Returns None when no
    digits can be extracted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            return None
    else:
        match = _PRICE_RE.search(_CURRENCY_RE.sub(" ", str(value)))
        if not match:
            return None
        try:
            price = Decimal(match.group().replace(",", ""))
        except InvalidOperation:
            return None

    if not price.is_finite() or price < 0:
        return None
    return price


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return None


def parse_availability(fields: Dict[str, Any]) -> bool:
    """Resolve availability from whichever signal is present; default available."""
    if OUT_OF_STOCK in fields:
        flag = _as_bool(fields[OUT_OF_STOCK])
        if flag is not None:
            return not flag

    if IN_STOCK in fields:
        flag = _as_bool(fields[IN_STOCK])
        if flag is not None:
            return flag

    status = fields.get(AVAILABILITY_STATUS)
    if isinstance(status, bool):
        return status
    # stock counts: 0 left means unavailable
    if isinstance(status, (int, float)):
        return status > 0
    if isinstance(status, str) and status.strip():
        lowered = re.sub(r"[\W_]+", " ", status.lower()).strip()
        flag = _as_bool(lowered)
        if flag is not None:
            return flag
        return not any(marker in lowered for marker in UNAVAILABLE_MARKERS)

    return True


def _optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v).strip() for v in value if v not in (None, ""))
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "n/a", "na"):
        return None
    return text


def decode_envelope(payload: Any) -> Optional[List[Any]]:
    """
    Unwrap the response envelope into a list of raw records.

    Returns None when the payload has no recognizable shape. A bare dict
    counts as a single record only if it carries a name or a price, so
    error envelopes such as {"status": "failed"} are malformed.
    """
    if isinstance(payload, list):
        # Some versions return one envelope per URL
        if len(payload) == 1 and isinstance(payload[0], dict) and _envelope_key(payload[0]):
            return decode_envelope(payload[0])
        return payload

    if isinstance(payload, dict):
        key = _envelope_key(payload)
        if key is not None:
            return decode_envelope(payload[key])
        fields = canonical_fields(payload)
        if PRODUCT_NAME in fields or PRICE in fields:
            return [payload]
        return None

    return None


def _envelope_key(payload: Dict[str, Any]) -> Optional[str]:
    for key in ENVELOPE_KEYS:
        if key in payload and isinstance(payload[key], (list, dict)):
            return key
    return None


def normalize_record(raw: Any) -> Optional[ExtractedProduct]:
    """Normalize one raw record; None means the record is dropped."""
    if not isinstance(raw, dict):
        return None

    fields = canonical_fields(raw)
    name = _optional_text(fields.get(PRODUCT_NAME))
    price = parse_price(fields.get(PRICE))

    if name is None or price is None:
        logger.info(f"[NORMALIZER] Dropping record without usable name/price: {raw}")
        return None

    try:
        return ExtractedProduct(
            product_name=name,
            price=price,
            unit_size=_optional_text(fields.get(UNIT_SIZE)),
            special_offer=_optional_text(fields.get(SPECIAL_OFFER)),
            is_available=parse_availability(fields)
        )
    except ValidationError as e:
        logger.warning(f"[NORMALIZER] Record failed validation: {e}")
        return None


def normalize_products(raw_records: List[Any], limit: int = MAX_RESULTS_PER_ITEM) -> List[ExtractedProduct]:
    """Normalize a decoded record list, keeping at most `limit` usable records."""
    products = []
    for raw in raw_records:
        product = normalize_record(raw)
        if product is not None:
            products.append(product)
        if len(products) >= limit:
            break
    return products
