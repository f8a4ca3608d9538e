"""
Comparison orchestrator - runs the scrape-and-compare pipeline for one selection.

Flow: persist selection -> clear the owner's previous results -> extract
every (platform, item) pair -> persist each pair's records. A failing pair
is recorded in the RunSummary and the run moves on; nothing raised during
dispatch escapes run().
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT, MAX_WORKERS, EXTRACTION_MAX_RETRIES
from quickcompare.core.db import ComparisonStore
from quickcompare.core.retry_utils import (
    RetryConfig, retry_with_backoff, ExtractionError, StoreWriteError
)
from quickcompare.extraction.adapter import ExtractionAdapter
from quickcompare.models.api import ErrorKind, PairOutcome, PlatformOutcome, RunSummary
from quickcompare.models.platform import Platform, SelectionRequest

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)


def clean_items(items: Iterable[str]) -> List[str]:
    """Trim names, drop blanks and exact duplicates, keep first-seen order."""
    cleaned = (str(item).strip() for item in items if item is not None)
    return list(dict.fromkeys(item for item in cleaned if item))


class ComparisonOrchestrator:
    """
    Dispatches extraction for a selection x item cross-product.

    Platforms are the outer loop, items the inner one. With max_workers > 1
    pairs run on a thread pool; the reset of the owner's results always
    completes before the first pair is submitted.
    """

    def __init__(
        self,
        store: ComparisonStore,
        adapter: ExtractionAdapter,
        platforms: Iterable[Platform],
        max_workers: int = MAX_WORKERS,
        retry_config: Optional[RetryConfig] = None
    ):
        self.store = store
        self.adapter = adapter
        self.platforms: Dict[str, Platform] = {p.id: p for p in platforms}
        self.max_workers = max(1, max_workers)
        self.retry_config = retry_config or RetryConfig(max_retries=EXTRACTION_MAX_RETRIES)

    def _platform(self, platform_id: str) -> Platform:
        # Ids outside the catalogue fall through to the adapter's unsupported path
        return self.platforms.get(platform_id) or Platform(id=platform_id, name=platform_id)

    def run(self, selection: SelectionRequest, items: Iterable[str]) -> RunSummary:
        """
        Execute one comparison run.

        Returns:
            RunSummary with one PlatformOutcome per selected platform. When the
            run is rejected (no items, store reset failed) `started` is False
            and `error` says why.
        """
        items = clean_items(items)
        summary = RunSummary(owner=selection.owner, pincode=selection.pincode, items=items)

        if not items:
            logger.warning(f"[ORCHESTRATOR] No grocery items for {selection.owner}, run not started")
            summary.error = ErrorKind.NO_ITEMS
            summary.cause = "No grocery items found. Please add items to your list first."
            summary.finished_at = datetime.utcnow()
            return summary

        try:
            self.store.insert_selection(selection)
            self.store.delete_results(selection.owner)
        except StoreWriteError as e:
            logger.error(f"[ORCHESTRATOR] Store reset failed for {selection.owner}: {e.message}")
            summary.error = ErrorKind.STORE_WRITE_FAILED
            summary.cause = e.message
            summary.finished_at = datetime.utcnow()
            return summary

        summary.started = True
        for platform_id in selection.platform_ids:
            platform = self._platform(platform_id)
            summary.per_platform[platform_id] = PlatformOutcome(
                platform_id=platform_id,
                platform_name=platform.name
            )

        pairs: List[Tuple[Platform, str]] = [
            (self._platform(platform_id), item)
            for platform_id in selection.platform_ids
            for item in items
        ]
        logger.info(
            f"[ORCHESTRATOR] Run for {selection.owner}: {len(selection.platform_ids)} platforms x "
            f"{len(items)} items, pincode {selection.pincode}, workers={self.max_workers}"
        )

        for outcome in self._dispatch(selection, pairs):
            summary.per_platform[outcome.platform_id].add(outcome)

        summary.finished_at = datetime.utcnow()
        for outcome in summary.per_platform.values():
            if outcome.ok:
                logger.info(f"[ORCHESTRATOR] {outcome.platform_name}: {outcome.records_saved} records")
            else:
                logger.warning(
                    f"[ORCHESTRATOR] {outcome.platform_name}: {outcome.records_saved} records, "
                    f"last error {outcome.error.value} ({outcome.cause})"
                )
        return summary

    def _dispatch(self, selection: SelectionRequest, pairs: List[Tuple[Platform, str]]) -> List[PairOutcome]:
        if self.max_workers == 1:
            return [self._process_pair(selection, platform, item) for platform, item in pairs]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._process_pair, selection, platform, item)
                for platform, item in pairs
            ]
            # _process_pair never raises, so one slot cannot cancel its siblings
            return [future.result() for future in futures]

    def _process_pair(self, selection: SelectionRequest, platform: Platform, item: str) -> PairOutcome:
        """Extract and persist one (platform, item) pair. Never raises."""
        try:
            extract = retry_with_backoff(self.adapter.extract, self.retry_config)
            products = extract(platform, item, selection.pincode)

            records = [p.to_record(selection.owner, platform.id, item) for p in products]
            saved = self.store.insert_results(selection.owner, records)
            logger.info(f"[ORCHESTRATOR] Saved {saved} records for '{item}' from {platform.name}")
            return PairOutcome(platform_id=platform.id, grocery_item=item, ok=True, records_saved=saved)

        except (ExtractionError, StoreWriteError) as e:
            return PairOutcome(
                platform_id=platform.id,
                grocery_item=item,
                ok=False,
                error=e.kind,
                cause=e.message
            )
        except Exception as e:
            logger.error(f"[ORCHESTRATOR] Unexpected error for '{item}' on {platform.name}: {e}", exc_info=True)
            return PairOutcome(
                platform_id=platform.id,
                grocery_item=item,
                ok=False,
                error=ErrorKind.EXTRACTION_FAILED,
                cause=str(e)
            )
