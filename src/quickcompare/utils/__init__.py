"""
Utils module initialization.
"""

from .health_utils import check_database, check_api, check_ollama, check_extraction_backend, health_check

__all__ = [
    # Health checks
    "check_database",
    "check_api",
    "check_ollama",
    "check_extraction_backend",
    "health_check",
]
