"""
Shared fixtures: temporary SQLite store and a scriptable extraction backend.
"""

import pytest

from quickcompare.core.db import ComparisonStore, init_database
from quickcompare.core.retry_utils import RetryConfig
from quickcompare.extraction.adapter import ExtractionAdapter
from quickcompare.extraction.backends import ExtractionBackend
from quickcompare.models.platform import SelectionRequest
from quickcompare.pipeline.orchestrator import ComparisonOrchestrator


def default_payload(item):
    """Firecrawl-style envelope with two products, one priced as a formatted string."""
    return {
        "products": [
            {"product_name": f"{item} regular", "price": 50, "out_of_stock": False, "unit_size": "500 g"},
            {"product_name": f"{item} value pack", "price": "₹30.00", "out_of_stock": False, "unit_size": None},
        ]
    }


class FakeBackend(ExtractionBackend):
    """Extraction backend driven by a handler(request) function."""

    name = "fake"

    def __init__(self, handler=None):
        self.handler = handler or (lambda request: default_payload(request.grocery_item))
        self.calls = []

    def extract(self, request):
        self.calls.append(request)
        return self.handler(request)

    def calls_for(self, platform_id):
        return [c for c in self.calls if c.platform_id == platform_id]


@pytest.fixture
def store(tmp_path):
    db_path = tmp_path / "quickcompare_test.db"
    init_database(db_path)
    return ComparisonStore(db_path)


@pytest.fixture
def platforms(store):
    return store.list_platforms()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_orchestrator(store, platforms):
    def _make(backend, max_workers=1, retry_config=None, run_store=None):
        return ComparisonOrchestrator(
            run_store or store,
            ExtractionAdapter(backend),
            platforms,
            max_workers=max_workers,
            retry_config=retry_config or RetryConfig(max_retries=0)
        )
    return _make


@pytest.fixture
def selection():
    def _make(platform_ids=("blinkit", "zepto"), owner="user-1", pincode="400001"):
        return SelectionRequest(owner=owner, pincode=pincode, platform_ids=list(platform_ids))
    return _make
