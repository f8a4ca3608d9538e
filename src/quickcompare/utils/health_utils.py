"""
Health checks for the database, API service and extraction backends.
"""

import logging

import ollama
import requests

from quickcompare.core.settings import (
    LOG_FORMAT, LOG_DATEFMT, API_BASE_URL, EXTRACTION_BACKEND,
    FIRECRAWL_API_KEY, OLLAMA_HOST, OLLAMA_MODEL
)
from quickcompare.core.db import ComparisonStore, init_database

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)


def check_database() -> bool:
    """Database is reachable and the platform catalogue is seeded."""
    try:
        init_database()
        count = len(ComparisonStore().list_platforms())
        logger.info(f"✅ Database OK: {count} platforms found")
        return count > 0
    except Exception as e:
        logger.error(f"❌ Database failed: {e}")
        return False


def check_api() -> bool:
    """FastAPI service answers /health."""
    try:
        response = requests.get(f"{API_BASE_URL}/health", timeout=5)
        if response.status_code == 200:
            logger.info("✅ FastAPI OK")
            return True
        logger.error(f"❌ FastAPI returned {response.status_code}")
        return False
    except requests.RequestException as e:
        logger.error(f"❌ FastAPI failed: {e}")
        return False


def check_ollama() -> bool:
    """Ollama is running and serves the configured model."""
    try:
        client = ollama.Client(host=OLLAMA_HOST)
        client.show(OLLAMA_MODEL)
        logger.info(f"✅ Ollama OK ({OLLAMA_MODEL})")
        return True
    except Exception as e:
        logger.error(f"❌ Ollama failed: {e}")
        return False


def check_extraction_backend() -> bool:
    """The configured extraction backend is usable."""
    if EXTRACTION_BACKEND == "firecrawl":
        if FIRECRAWL_API_KEY:
            logger.info("✅ Firecrawl API key configured")
            return True
        logger.error("❌ FIRECRAWL_API_KEY is not set")
        return False
    return check_ollama()


def health_check() -> bool:
    """Run all health checks."""
    print("\n" + "="*50)
    print("HEALTH CHECK")
    print("="*50)

    checks = {
        "Database": check_database(),
        "FastAPI": check_api(),
        f"Extraction ({EXTRACTION_BACKEND})": check_extraction_backend(),
    }

    print("\nResults:")
    for name, result in checks.items():
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"  {name}: {status}")

    print("="*50 + "\n")

    return all(checks.values())


def main():
    raise SystemExit(0 if health_check() else 1)


if __name__ == "__main__":
    main()
