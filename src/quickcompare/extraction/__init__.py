"""
Extraction package - the boundary to the external content-extraction capability.
"""

from .adapter import ExtractionAdapter, SEARCH_URL_TEMPLATES, PRODUCT_SCHEMA, build_search_url
from .backends import ExtractionBackend, FirecrawlBackend, OllamaBackend, get_extraction_backend
from .normalizer import FIELD_ALIASES, decode_envelope, normalize_products, parse_price

__all__ = [
    # Adapter
    "ExtractionAdapter",
    "SEARCH_URL_TEMPLATES",
    "PRODUCT_SCHEMA",
    "build_search_url",
    # Backends
    "ExtractionBackend",
    "FirecrawlBackend",
    "OllamaBackend",
    "get_extraction_backend",
    # Normalization
    "FIELD_ALIASES",
    "decode_envelope",
    "normalize_products",
    "parse_price",
]
