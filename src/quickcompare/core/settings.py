"""
Central configuration for the price comparison pipeline.

Values are module-level constants, read once from the environment
(a local .env file is honoured via python-dotenv).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[3]

# Database path
DB_PATH = Path(os.getenv("QUICKCOMPARE_DB_PATH", PROJECT_ROOT / "data" / "quickcompare.db"))

# Logging
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Extraction capability
EXTRACTION_BACKEND = os.getenv("QUICKCOMPARE_EXTRACTION_BACKEND", "firecrawl")
FIRECRAWL_API_KEY = os.getenv("FIRECRAWL_API_KEY")
FIRECRAWL_API_BASE = os.getenv("FIRECRAWL_API_BASE", "https://api.firecrawl.dev/v1")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5:7b")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")

# Per-call deadline for one (platform, item) extraction, in seconds
EXTRACTION_TIMEOUT_SECONDS = float(os.getenv("QUICKCOMPARE_EXTRACTION_TIMEOUT", "120"))
EXTRACTION_POLL_INTERVAL_SECONDS = 2.0
HTTP_TIMEOUT_SECONDS = 30.0
MAX_PAGE_CHARS = 40_000

# Orchestrator
EXTRACTION_MAX_RETRIES = int(os.getenv("QUICKCOMPARE_MAX_RETRIES", "0"))
MAX_WORKERS = int(os.getenv("QUICKCOMPARE_MAX_WORKERS", "1"))

# Business caps
MAX_SELECTED_PLATFORMS = 4
MAX_RESULTS_PER_ITEM = 3
GROUP_LIMIT = 3
PINCODE_PATTERN = r"^[1-9][0-9]{5}$"

# Service used by the Streamlit UI when talking to the API
API_BASE_URL = os.getenv("QUICKCOMPARE_API_BASE", "http://localhost:8000")
