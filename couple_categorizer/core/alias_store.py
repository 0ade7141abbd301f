"""
Alias Store

The resolver only talks to the store through `AliasStore`: plain reads for
the lookup path and `run_transaction(fn)` for every read-check-write. A
transaction function receives an `AliasTransaction`, reads through it and
stages writes on it; the store commits the staged writes atomically or
re-runs the function when another writer got there first.

InMemoryAliasStore implements this optimistically (snapshot, then version
check at commit) and is safe to share between threads. The PostgreSQL
implementation lives in postgres_alias_store.py.
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from .errors import StoreUnavailableError
from .models import MerchantAlias

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_ATTEMPTS = 10


class AliasTransaction(ABC):
    """Reads and staged writes inside one atomic unit"""

    @abstractmethod
    def get(self, alias_id: str) -> Optional[MerchantAlias]:
        ...

    @abstractmethod
    def find_by_ocr_merchant(self, couple_id: str, ocr_merchant_normalized: str) -> Optional[MerchantAlias]:
        ...

    @abstractmethod
    def find_by_user_alias(self, couple_id: str, user_alias_normalized: str) -> Optional[MerchantAlias]:
        ...

    @abstractmethod
    def insert(self, alias: MerchantAlias) -> str:
        """Stage a new record and return its id"""
        ...

    @abstractmethod
    def update(self, alias: MerchantAlias) -> None:
        ...

    @abstractmethod
    def delete(self, alias_id: str) -> None:
        ...


class AliasStore(ABC):
    """Persistence capability the MerchantAliasResolver depends on"""

    @abstractmethod
    def run_transaction(self, fn: Callable[[AliasTransaction], T]) -> T:
        """
        Run `fn` atomically.

        Retries `fn` on write-write conflicts; exceptions raised by `fn`
        abort the transaction and propagate unchanged.

        Raises:
            StoreUnavailableError: backend down or retries exhausted
        """
        ...

    @abstractmethod
    def find_by_ocr_merchant(self, couple_id: str, ocr_merchant_normalized: str) -> Optional[MerchantAlias]:
        """Non-transactional lookup used by the read path"""
        ...

    @abstractmethod
    def list_by_couple(self, couple_id: str, limit: int) -> List[MerchantAlias]:
        """Aliases for a couple, usage_count descending"""
        ...


class _InMemoryTransaction(AliasTransaction):
    """Works on a private snapshot; records which couples it observed"""

    def __init__(self, snapshot: Dict[str, Dict[str, Any]]):
        self._snapshot = snapshot
        self.writes: Dict[str, Optional[Dict[str, Any]]] = {}
        self.touched_couples: Set[str] = set()

    def _current(self, alias_id: str) -> Optional[Dict[str, Any]]:
        if alias_id in self.writes:
            return self.writes[alias_id]
        return self._snapshot.get(alias_id)

    def _find(self, couple_id: str, field: str, value: str) -> Optional[MerchantAlias]:
        self.touched_couples.add(couple_id)
        ids = set(self._snapshot) | set(self.writes)
        for alias_id in sorted(ids):
            doc = self._current(alias_id)
            if doc and doc['coupleId'] == couple_id and doc[field] == value:
                return MerchantAlias.from_document(alias_id, doc)
        return None

    def get(self, alias_id: str) -> Optional[MerchantAlias]:
        doc = self._current(alias_id)
        if doc is None:
            return None
        self.touched_couples.add(doc['coupleId'])
        return MerchantAlias.from_document(alias_id, doc)

    def find_by_ocr_merchant(self, couple_id, ocr_merchant_normalized):
        return self._find(couple_id, 'ocrMerchantNormalized', ocr_merchant_normalized)

    def find_by_user_alias(self, couple_id, user_alias_normalized):
        return self._find(couple_id, 'userAliasNormalized', user_alias_normalized)

    def insert(self, alias: MerchantAlias) -> str:
        alias_id = alias.id or uuid.uuid4().hex
        self.touched_couples.add(alias.couple_id)
        self.writes[alias_id] = alias.to_document()
        return alias_id

    def update(self, alias: MerchantAlias) -> None:
        self.touched_couples.add(alias.couple_id)
        self.writes[alias.id] = alias.to_document()

    def delete(self, alias_id: str) -> None:
        doc = self._current(alias_id)
        if doc is not None:
            self.touched_couples.add(doc['coupleId'])
        self.writes[alias_id] = None


class InMemoryAliasStore(AliasStore):
    """
    Thread-safe in-memory store with optimistic transactions.

    Every commit bumps a per-couple version. A transaction that observed a
    couple whose version moved since its snapshot is discarded and re-run.
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.max_attempts = max_attempts
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._versions: Dict[str, int] = {}
        self._lock = threading.Lock()
        self.stats = {
            'commits': 0,
            'retries': 0,
        }

    def _snapshot(self):
        with self._lock:
            documents = {alias_id: dict(doc) for alias_id, doc in self._documents.items()}
            return documents, dict(self._versions)

    def _try_commit(self, txn: _InMemoryTransaction, versions: Dict[str, int]) -> bool:
        with self._lock:
            for couple_id in txn.touched_couples:
                if self._versions.get(couple_id, 0) != versions.get(couple_id, 0):
                    return False

            if not txn.writes:
                return True

            for alias_id, doc in txn.writes.items():
                if doc is None:
                    self._documents.pop(alias_id, None)
                else:
                    self._documents[alias_id] = dict(doc)
            for couple_id in txn.touched_couples:
                self._versions[couple_id] = self._versions.get(couple_id, 0) + 1
            self.stats['commits'] += 1
            return True

    def run_transaction(self, fn: Callable[[AliasTransaction], T]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            documents, versions = self._snapshot()
            txn = _InMemoryTransaction(documents)
            result = fn(txn)

            if self._try_commit(txn, versions):
                return result

            self.stats['retries'] += 1
            logger.debug("Alias transaction conflict, retrying (attempt %d/%d)", attempt, self.max_attempts)

        raise StoreUnavailableError(
            f"Alias transaction aborted after {self.max_attempts} conflicting attempts"
        )

    def find_by_ocr_merchant(self, couple_id, ocr_merchant_normalized):
        with self._lock:
            for alias_id, doc in sorted(self._documents.items()):
                if doc['coupleId'] == couple_id and doc['ocrMerchantNormalized'] == ocr_merchant_normalized:
                    return MerchantAlias.from_document(alias_id, doc)
        return None

    def list_by_couple(self, couple_id, limit):
        with self._lock:
            aliases = [
                MerchantAlias.from_document(alias_id, doc)
                for alias_id, doc in self._documents.items()
                if doc['coupleId'] == couple_id
            ]
        aliases.sort(key=lambda a: (-a.usage_count, a.user_alias_normalized))
        return aliases[:limit]

    def count(self, couple_id: Optional[str] = None) -> int:
        with self._lock:
            if couple_id is None:
                return len(self._documents)
            return sum(1 for doc in self._documents.values() if doc['coupleId'] == couple_id)
