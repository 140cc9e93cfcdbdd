from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from loguru import logger

from hospitality_pricer.models.enums import MergePolicy
from hospitality_pricer.models.match import CanonicalMatchRecord
from hospitality_pricer.models.portal import Portal


class RecordAccumulator:
    """Insertion-ordered buffer of per-portal records for one run.

    Owned by the pipeline, which is its only writer. Records are merged only
    once every portal has been visited.
    """

    def __init__(self) -> None:
        self._entries: List[Tuple[Portal, CanonicalMatchRecord]] = []

    def add(self, portal: Portal, record: CanonicalMatchRecord) -> None:
        if record.base_price is None:
            raise ValueError(
                f"Match {record.match_number} from {portal.name} has no base price; "
                "unpriced matches must not be accumulated."
            )
        self._entries.append((portal, record))

    def records(self) -> List[CanonicalMatchRecord]:
        return [record for _, record in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def reconcile(self, policy: MergePolicy) -> List[CanonicalMatchRecord]:
        return reconcile(self.records(), policy)


def reconcile(
    records: Iterable[CanonicalMatchRecord], policy: MergePolicy
) -> List[CanonicalMatchRecord]:
    """Merges records from all portals into the final canonical set.

    ``records`` must arrive in portal visiting order. ``CONCATENATE`` keeps
    every (match, portal) row. ``LOWEST_PRICE_WINS`` keeps one record per match
    number, the one with the smallest base price; on a tie the portal visited
    first wins. The result is sorted by match number, stably.
    """
    records = list(records)
    policy = MergePolicy(policy)

    if policy == MergePolicy.CONCATENATE:
        merged = records
    else:
        best: Dict[int, CanonicalMatchRecord] = {}
        for record in records:
            current = best.get(record.match_number)
            if current is None or _price_key(record) < _price_key(current):
                if current is not None:
                    logger.debug(
                        f"Match {record.match_number}: {record.portal} ({record.base_price}) "
                        f"beats {current.portal} ({current.base_price})"
                    )
                best[record.match_number] = record
        merged = list(best.values())

    result = sorted(merged, key=lambda r: r.match_number)
    logger.info(
        f"Reconciled {len(records)} portal records into {len(result)} rows ({policy.value})."
    )
    return result


def _price_key(record: CanonicalMatchRecord) -> Decimal:
    # Records without a base price never win against priced ones
    if record.base_price is None:
        return Decimal("Infinity")
    return record.base_price
