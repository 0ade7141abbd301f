"""
Merchant Alias Resolver

Maps raw OCR/typed merchant strings to the display alias a couple chose
for them, and manages those aliases.

Aliases are a flat mapping: one raw merchant -> one alias, with both the
raw merchant and the alias name unique per couple. An alias is never
re-resolved, so there are no chains.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .alias_store import AliasStore, AliasTransaction
from .errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from .merchant_normalizer import normalize_key
from .models import MerchantAlias

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def _require(value: Optional[str], field: str) -> str:
    """Trimmed value, or ValidationError when blank"""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(field)
    return value.strip()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MerchantAliasResolver:
    """
    Resolves and manages couple-scoped merchant aliases.

    Every mutation (create, rename, delete, usage increment) runs inside
    one store transaction, so concurrent devices cannot create duplicate
    aliases or lose usage-count updates.
    """

    def __init__(self,
                 store: AliasStore,
                 list_limit: int = DEFAULT_LIST_LIMIT,
                 clock: Callable[[], datetime] = _utcnow):
        """
        Args:
            store: Alias persistence capability
            list_limit: Max aliases returned by list_aliases
            clock: Timestamp source (injectable for tests)
        """
        self.store = store
        self.list_limit = list_limit
        self.clock = clock

    def resolve(self, ocr_merchant: str, couple_id: str) -> str:
        """
        Resolve a raw merchant string to its display name.

        Args:
            ocr_merchant: Merchant text from OCR or manual entry
            couple_id: Owning couple

        Returns:
            The alias when one exists (its usage count is bumped), otherwise
            the trimmed original text. Never creates an alias.

        Raises:
            ValidationError: blank merchant or couple id
            StoreUnavailableError: the usage-count write failed
        """
        merchant = _require(ocr_merchant, 'ocr_merchant')
        couple_id = _require(couple_id, 'couple_id')
        lookup_key = normalize_key(merchant)

        # Read path: an unavailable store means "no alias"
        try:
            alias = self.store.find_by_ocr_merchant(couple_id, lookup_key)
        except StoreUnavailableError as e:
            logger.warning("Alias lookup unavailable for couple %s, using raw merchant: %s", couple_id, e)
            return merchant

        if alias is None:
            return merchant

        # Write path: failures propagate
        updated = self._record_usage(alias.id)
        if updated is None:
            # Deleted between lookup and increment
            logger.info("Alias %s disappeared before usage update, using raw merchant", alias.id)
            return merchant

        return updated.user_alias

    def _record_usage(self, alias_id: str) -> Optional[MerchantAlias]:
        """Transactional read-increment-write of usage_count"""
        now = self.clock()

        def increment(txn: AliasTransaction) -> Optional[MerchantAlias]:
            current = txn.get(alias_id)
            if current is None:
                return None
            current.usage_count = max(current.usage_count, 0) + 1
            current.last_used_at = now
            txn.update(current)
            return current

        return self.store.run_transaction(increment)

    def create_alias(self,
                     ocr_merchant: str,
                     user_alias: str,
                     couple_id: str,
                     created_by: Optional[str] = None) -> str:
        """
        Create an alias for a raw merchant string.

        Both uniqueness axes are re-checked inside the transaction that
        writes the record.

        Returns:
            New alias id

        Raises:
            ValidationError: blank input
            ConflictError: axis 'ocr_merchant' or 'user_alias' already taken
            StoreUnavailableError: the write could not be committed
        """
        merchant = _require(ocr_merchant, 'ocr_merchant')
        alias_name = _require(user_alias, 'user_alias')
        couple_id = _require(couple_id, 'couple_id')
        created_by = created_by.strip() if created_by and created_by.strip() else None

        merchant_key = normalize_key(merchant)
        alias_key = normalize_key(alias_name)
        now = self.clock()

        def create(txn: AliasTransaction) -> str:
            if txn.find_by_ocr_merchant(couple_id, merchant_key) is not None:
                raise ConflictError(ConflictError.OCR_MERCHANT)
            if txn.find_by_user_alias(couple_id, alias_key) is not None:
                raise ConflictError(ConflictError.USER_ALIAS)

            return txn.insert(MerchantAlias(
                ocr_merchant=merchant,
                ocr_merchant_normalized=merchant_key,
                user_alias=alias_name,
                user_alias_normalized=alias_key,
                couple_id=couple_id,
                usage_count=1,
                created_at=now,
                last_used_at=now,
                created_by=created_by,
            ))

        alias_id = self.store.run_transaction(create)
        logger.info("Merchant alias created: %s (%r -> %r)", alias_id, merchant, alias_name)
        return alias_id

    def list_aliases(self, couple_id: str) -> List[MerchantAlias]:
        """Couple's aliases, most used first, capped at list_limit"""
        couple_id = _require(couple_id, 'couple_id')
        return self.store.list_by_couple(couple_id, self.list_limit)

    def rename_alias(self, alias_id: str, couple_id: str, user_alias: str) -> MerchantAlias:
        """
        Change the display name of an existing alias.

        Raises:
            NotFoundError: no such alias for this couple
            ConflictError: another alias of the couple already uses the name
        """
        alias_id = _require(alias_id, 'alias_id')
        couple_id = _require(couple_id, 'couple_id')
        alias_name = _require(user_alias, 'user_alias')
        alias_key = normalize_key(alias_name)

        def rename(txn: AliasTransaction) -> MerchantAlias:
            current = self._get_owned(txn, alias_id, couple_id)
            holder = txn.find_by_user_alias(couple_id, alias_key)
            if holder is not None and holder.id != alias_id:
                raise ConflictError(ConflictError.USER_ALIAS)

            current.user_alias = alias_name
            current.user_alias_normalized = alias_key
            txn.update(current)
            return current

        return self.store.run_transaction(rename)

    def delete_alias(self, alias_id: str, couple_id: str) -> None:
        """
        Delete an alias. Already-resolved expenses keep their display text.

        Raises:
            NotFoundError: no such alias for this couple
        """
        alias_id = _require(alias_id, 'alias_id')
        couple_id = _require(couple_id, 'couple_id')

        def delete(txn: AliasTransaction) -> None:
            self._get_owned(txn, alias_id, couple_id)
            txn.delete(alias_id)

        self.store.run_transaction(delete)
        logger.info("Merchant alias deleted: %s", alias_id)

    @staticmethod
    def _get_owned(txn: AliasTransaction, alias_id: str, couple_id: str) -> MerchantAlias:
        alias = txn.get(alias_id)
        if alias is None or alias.couple_id != couple_id:
            raise NotFoundError(f"Alias not found: {alias_id}")
        return alias
