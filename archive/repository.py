"""
Data access layer for the archive tree.

The repository keeps the fund list in memory and mirrors it to the
`archiveFunds` key. Every save overwrites the whole collection and then
notifies subscribers with the new list.

Repository methods:
- funds / snapshot: read copies of the tree
- save: persist a new tree (copy-then-swap)
- subscribe: register a listener called after each save
- reload: re-read the tree from storage
"""

import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from archive.models import Fund
from storage.kv_store import FUNDS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

FundsListener = Callable[[List[Fund]], None]


class FundRepository:
    """
    Repository for the fund → inventory → case tree.

    Args:
        store: Key-value store holding the tree
        seed: Funds (as dicts) written when the store has none or holds a
            corrupt value. None means start empty.
    """

    def __init__(self, store: KeyValueStore, seed: Optional[List[dict]] = None):
        self._store = store
        self._seed = seed or []
        self._listeners: List[FundsListener] = []
        self._funds: List[Fund] = []
        self.reload()

    def _seed_funds(self) -> List[Fund]:
        return [Fund.model_validate(entry) for entry in self._seed]

    def reload(self) -> List[Fund]:
        """
        Read the tree from storage.

        A missing key is initialised with the seed funds; a corrupt value is
        logged and replaced with them.
        """
        if self._store.get(FUNDS_KEY) is None:
            logger.info("No stored funds, initialising with %d seed funds", len(self._seed))
            self._write(self._seed_funds())
            return self.funds

        raw = self._store.read_json(FUNDS_KEY)
        try:
            if not isinstance(raw, list):
                raise ValueError(f"expected a list, got {type(raw).__name__}")
            funds = [Fund.model_validate(entry) for entry in raw]
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to parse stored funds, restoring defaults: {e}")
            funds = self._seed_funds()
            self._write(funds)
            return self.funds

        self._funds = funds
        logger.info("Loaded %d funds from storage", len(funds))
        return self.funds

    @property
    def funds(self) -> List[Fund]:
        """Deep copy of the current tree"""
        return [f.model_copy(deep=True) for f in self._funds]

    def snapshot(self) -> List[Fund]:
        """Working copy for a mutation; pass it to save() when done"""
        return self.funds

    def save(self, funds: List[Fund]) -> None:
        """Persist the full collection, then swap it in and notify listeners"""
        self._write(funds)
        current = self.funds
        for listener in list(self._listeners):
            try:
                listener(current)
            except Exception as e:
                logger.error(f"Funds listener {listener!r} failed: {e}")

    def _write(self, funds: List[Fund]) -> None:
        self._store.write_json(FUNDS_KEY, [f.model_dump(mode="json") for f in funds])
        self._funds = [f.model_copy(deep=True) for f in funds]

    def subscribe(self, listener: FundsListener) -> Callable[[], None]:
        """Register listener; returns a function that unsubscribes it"""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def case_exists(self, fund_id: str, inventory_id: str, case_id: str) -> bool:
        for fund in self._funds:
            if fund.id != fund_id:
                continue
            inventory = fund.find_inventory(inventory_id)
            return inventory is not None and inventory.find_case(case_id) is not None
        return False
