"""
Extraction capability backends.

A backend turns one ExtractionRequest into the raw JSON the capability
returned. It knows nothing about canonical records: decoding and
normalization happen in the adapter.

Two backends are provided:
- FirecrawlBackend: hosted Firecrawl /extract API (job submit + poll)
- OllamaBackend: fetch the page ourselves and ask a local Ollama model
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import ollama
import requests

from quickcompare.core.settings import (
    LOG_FORMAT, LOG_DATEFMT,
    EXTRACTION_BACKEND, FIRECRAWL_API_KEY, FIRECRAWL_API_BASE,
    OLLAMA_MODEL, OLLAMA_HOST,
    EXTRACTION_TIMEOUT_SECONDS, EXTRACTION_POLL_INTERVAL_SECONDS, HTTP_TIMEOUT_SECONDS,
)
from quickcompare.core.retry_utils import TransientError, PermanentError
from quickcompare.core.llm_engine import EXTRACTION_SYSTEM_PROMPT, build_page_prompt, call_ollama, html_to_text
from quickcompare.models.api import ExtractionRequest

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class ExtractionBackend(ABC):
    """Abstract base class for the external content-extraction capability."""

    name = "base"

    @abstractmethod
    def extract(self, request: ExtractionRequest) -> Any:
        """
        Run one extraction.

        Returns:
            The capability's JSON payload, in whatever shape it produced.

        Raises:
            TransientError: timeouts, connection problems, 429/5xx responses
            PermanentError: rejected requests, failed jobs, malformed payloads
        """
        pass


class FirecrawlBackend(ExtractionBackend):
    """Firecrawl /extract client built on requests."""

    name = "firecrawl"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: str = FIRECRAWL_API_BASE,
        timeout: float = EXTRACTION_TIMEOUT_SECONDS,
        poll_interval: float = EXTRACTION_POLL_INTERVAL_SECONDS,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key or FIRECRAWL_API_KEY
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, deadline: float, payload: Optional[Dict] = None) -> Dict:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TransientError(f"Extraction exceeded {self.timeout:.0f}s deadline")

        try:
            response = self.session.request(
                method,
                f"{self.api_base}{path}",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=min(remaining, HTTP_TIMEOUT_SECONDS)
            )
        except requests.RequestException as e:
            logger.error(f"[FIRECRAWL] {method} {path} failed: {e}")
            raise TransientError(f"Firecrawl request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(f"Firecrawl returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise PermanentError(f"Firecrawl returned HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise PermanentError("Firecrawl returned a malformed payload") from e

        if not isinstance(data, dict):
            raise PermanentError("Firecrawl returned a malformed payload")
        return data

    def extract(self, request: ExtractionRequest) -> Any:
        if not self.api_key:
            raise PermanentError("FIRECRAWL_API_KEY is not set", request.platform_id)

        deadline = time.monotonic() + self.timeout
        payload = {
            "urls": [request.target],
            "prompt": request.instruction,
            "schema": request.extraction_schema,
            "scrapeOptions": {"headers": request.headers},
        }

        logger.info(f"[FIRECRAWL] Submitting extract job for {request.target}")
        started = self._request("POST", "/extract", deadline, payload)

        if not started.get("success", False):
            raise PermanentError(f"Failed to scrape: {started.get('error', 'unknown error')}", request.platform_id)

        # Older API versions answer synchronously
        if started.get("data") is not None and started.get("status", "completed") == "completed":
            return started["data"]

        job_id = started.get("id")
        if not job_id:
            raise PermanentError("Firecrawl response had neither data nor job id", request.platform_id)

        while True:
            time.sleep(self.poll_interval)
            status = self._request("GET", f"/extract/{job_id}", deadline)
            state = status.get("status")

            if state == "completed":
                logger.info(f"[FIRECRAWL] Job {job_id} completed")
                return status.get("data")
            if state in ("failed", "cancelled"):
                raise PermanentError(
                    f"Extract job {state}: {status.get('error', 'no reason given')}",
                    request.platform_id
                )
            logger.debug(f"[FIRECRAWL] Job {job_id} status: {state}")


class OllamaBackend(ExtractionBackend):
    """Fetch the search page and let a local Ollama model extract the products."""

    name = "ollama"

    def __init__(
        self,
        model: str = OLLAMA_MODEL,
        host: str = OLLAMA_HOST,
        timeout: float = EXTRACTION_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        client=None
    ):
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.client = client or ollama.Client(host=host, timeout=timeout)

    def fetch_page(self, request: ExtractionRequest) -> str:
        headers = {"User-Agent": BROWSER_USER_AGENT, **request.headers}
        try:
            response = self.session.get(
                request.target,
                headers=headers,
                timeout=min(self.timeout, HTTP_TIMEOUT_SECONDS)
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else 0
            if status == 429 or status >= 500:
                raise TransientError(f"Page fetch returned HTTP {status}", request.platform_id) from e
            raise PermanentError(f"Page fetch returned HTTP {status}", request.platform_id) from e
        except requests.RequestException as e:
            raise TransientError(f"Page fetch failed: {e}", request.platform_id) from e
        return response.text

    def extract(self, request: ExtractionRequest) -> Any:
        logger.info(f"[OLLAMA] Fetching {request.target}")
        page_text = html_to_text(self.fetch_page(request))
        if not page_text:
            raise PermanentError("Search page had no readable text", request.platform_id)

        return call_ollama(
            build_page_prompt(request.instruction, page_text, request.target),
            EXTRACTION_SYSTEM_PROMPT,
            json_schema=request.extraction_schema,
            client=self.client,
            model=self.model
        )


BACKENDS = {
    FirecrawlBackend.name: FirecrawlBackend,
    OllamaBackend.name: OllamaBackend,
}


def get_extraction_backend(name: Optional[str] = None) -> ExtractionBackend:
    """Build the configured extraction backend."""
    name = (name or EXTRACTION_BACKEND).lower()
    if name not in BACKENDS:
        raise ValueError(f"Unknown extraction backend '{name}'. Choose from: {', '.join(BACKENDS)}")
    logger.info(f"Using extraction backend: {name}")
    return BACKENDS[name]()
