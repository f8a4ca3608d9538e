"""
Aggregator / ranker - builds the comparison view from persisted results.
"""

import logging
from typing import Dict, Iterable, List, Optional

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT, GROUP_LIMIT
from quickcompare.core.db import ComparisonStore
from quickcompare.models.product import CanonicalProductRecord, ComparisonGroup, RankedProduct

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)


def rank_records(
    records: Iterable[CanonicalProductRecord],
    items: Optional[Iterable[str]] = None,
    limit: int = GROUP_LIMIT
) -> List[ComparisonGroup]:
    """
    Group price-sorted records by grocery item.

    Groups appear in first-seen order and keep their first `limit` records,
    which are the cheapest because the input is already sorted. Items listed
    in `items` with no records are appended as empty groups.
    """
    groups: Dict[str, ComparisonGroup] = {}

    for record in records:
        group = groups.setdefault(record.grocery_item, ComparisonGroup(grocery_item=record.grocery_item))
        if len(group.ranked) >= limit:
            continue
        rank = len(group.ranked)
        group.ranked.append(
            RankedProduct(
                record=record,
                rank=rank + 1,
                is_best_price=rank == 0,
                is_out_of_stock=not record.is_available
            )
        )

    for item in items or []:
        if item not in groups:
            groups[item] = ComparisonGroup(grocery_item=item)

    return list(groups.values())


def rank(store: ComparisonStore, owner: str, items: Optional[Iterable[str]] = None) -> List[ComparisonGroup]:
    """Ranked comparison groups for the owner's latest run. Reads only."""
    records = store.list_results(owner)
    groups = rank_records(records, items)
    logger.info(f"[RANKER] {len(records)} records -> {len(groups)} groups for {owner}")
    return groups
