import threading

import pytest

from couple_categorizer.core.alias_store import InMemoryAliasStore
from couple_categorizer.core.errors import (
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from couple_categorizer.core.merchant_alias_resolver import MerchantAliasResolver
from couple_categorizer.core.models import MerchantAlias


def usage_of(resolver, couple_id, user_alias):
    return next(a.usage_count for a in resolver.list_aliases(couple_id) if a.user_alias == user_alias)


class TestResolve:

    def test_unknown_merchant_returns_trimmed_input(self, resolver, store):
        assert resolver.resolve("  Corner Deli ", "c1") == "Corner Deli"
        assert store.count() == 0

    def test_known_merchant_returns_alias(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        assert resolver.resolve("  wlmrt ", "c1") == "Walmart"

    def test_aliases_are_couple_scoped(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        assert resolver.resolve("WLMRT", "c2") == "WLMRT"

    def test_usage_increases_by_one_per_call(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        assert usage_of(resolver, "c1", "Walmart") == 1

        for expected in range(2, 6):
            resolver.resolve("WLMRT", "c1")
            assert usage_of(resolver, "c1", "Walmart") == expected

    def test_last_used_at_moves_forward(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        created = resolver.list_aliases("c1")[0]

        resolver.resolve("WLMRT", "c1")
        used = resolver.list_aliases("c1")[0]

        assert used.created_at == created.created_at
        assert used.last_used_at > created.last_used_at

    def test_alias_is_not_resolved_again(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        resolver.create_alias("Walmart", "Wally World", "c1")

        assert resolver.resolve("WLMRT", "c1") == "Walmart"

    @pytest.mark.parametrize("merchant, couple_id, field", [
        ("", "c1", "ocr_merchant"),
        ("   ", "c1", "ocr_merchant"),
        (None, "c1", "ocr_merchant"),
        ("WLMRT", "", "couple_id"),
        ("WLMRT", None, "couple_id"),
    ])
    def test_blank_input(self, resolver, merchant, couple_id, field):
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(merchant, couple_id)
        assert exc_info.value.field == field


class TestCreateAlias:

    def test_returns_id_and_persists_document(self, resolver, store):
        alias_id = resolver.create_alias(" WLMRT ", " Walmart ", "c1", created_by="sam")

        alias = resolver.list_aliases("c1")[0]
        assert alias.id == alias_id
        assert alias.ocr_merchant == "WLMRT"
        assert alias.ocr_merchant_normalized == "wlmrt"
        assert alias.user_alias == "Walmart"
        assert alias.user_alias_normalized == "walmart"
        assert alias.usage_count == 1
        assert alias.created_by == "sam"
        assert store.count("c1") == 1

    def test_conflict_axes(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")

        with pytest.raises(ConflictError) as exc_info:
            resolver.create_alias("WLMRT", "Walmart", "c1")
        assert exc_info.value.axis == ConflictError.OCR_MERCHANT

        with pytest.raises(ConflictError) as exc_info:
            resolver.create_alias("WAL-MART #22", "walmart", "c1")
        assert exc_info.value.axis == ConflictError.USER_ALIAS
        assert "alias name" in str(exc_info.value)

    def test_ocr_axis_ignores_case(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        with pytest.raises(ConflictError):
            resolver.create_alias("wlmrt", "Walmart Supercenter", "c1")

    def test_other_couple_can_reuse_names(self, resolver, store):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        resolver.create_alias("WLMRT", "Walmart", "c2")
        assert store.count() == 2

    @pytest.mark.parametrize("merchant, alias, couple_id, field", [
        ("", "Walmart", "c1", "ocr_merchant"),
        ("WLMRT", " ", "c1", "user_alias"),
        ("WLMRT", "Walmart", "", "couple_id"),
    ])
    def test_blank_input(self, resolver, merchant, alias, couple_id, field):
        with pytest.raises(ValidationError) as exc_info:
            resolver.create_alias(merchant, alias, couple_id)
        assert exc_info.value.field == field

    def test_concurrent_creates_persist_one_record(self, store):
        resolver = MerchantAliasResolver(store)
        workers = 8
        barrier = threading.Barrier(workers)
        successes, conflicts = [], []

        def create():
            barrier.wait()
            try:
                successes.append(resolver.create_alias("WLMRT", "Walmart", "c1"))
            except ConflictError as e:
                conflicts.append(e)

        threads = [threading.Thread(target=create) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(successes) == 1
        assert len(conflicts) == workers - 1
        assert store.count("c1") == 1

    def test_concurrent_resolves_lose_no_updates(self):
        store = InMemoryAliasStore(max_attempts=1000)
        resolver = MerchantAliasResolver(store)
        resolver.create_alias("WLMRT", "Walmart", "c1")
        workers, calls = 6, 5
        barrier = threading.Barrier(workers)

        def resolve_many():
            barrier.wait()
            for _ in range(calls):
                resolver.resolve("WLMRT", "c1")

        threads = [threading.Thread(target=resolve_many) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert usage_of(resolver, "c1", "Walmart") == 1 + workers * calls


class TestListAliases:

    def test_most_used_first_and_capped(self, store, clock):
        resolver = MerchantAliasResolver(store, list_limit=2, clock=clock)
        resolver.create_alias("A1", "Alpha", "c1")
        resolver.create_alias("B1", "Bravo", "c1")
        resolver.create_alias("C1", "Charlie", "c1")
        resolver.resolve("C1", "c1")
        resolver.resolve("C1", "c1")

        aliases = resolver.list_aliases("c1")
        assert [a.user_alias for a in aliases] == ["Charlie", "Alpha"]

    def test_other_couples_are_hidden(self, resolver):
        resolver.create_alias("A1", "Alpha", "c1")
        assert resolver.list_aliases("c2") == []


class TestRenameAlias:

    def test_rename(self, resolver):
        alias_id = resolver.create_alias("WLMRT", "Walmart", "c1")
        renamed = resolver.rename_alias(alias_id, "c1", "Walmart Supercenter")

        assert renamed.user_alias == "Walmart Supercenter"
        assert resolver.resolve("WLMRT", "c1") == "Walmart Supercenter"

    def test_rename_to_own_name_in_other_case(self, resolver):
        alias_id = resolver.create_alias("WLMRT", "Walmart", "c1")
        assert resolver.rename_alias(alias_id, "c1", "WALMART").user_alias == "WALMART"

    def test_rename_conflict(self, resolver):
        resolver.create_alias("WLMRT", "Walmart", "c1")
        other_id = resolver.create_alias("TGT", "Target", "c1")

        with pytest.raises(ConflictError) as exc_info:
            resolver.rename_alias(other_id, "c1", "walmart")
        assert exc_info.value.axis == ConflictError.USER_ALIAS

    def test_rename_missing(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.rename_alias("nope", "c1", "Walmart")


class TestDeleteAlias:

    def test_delete(self, resolver, store):
        alias_id = resolver.create_alias("WLMRT", "Walmart", "c1")
        resolver.delete_alias(alias_id, "c1")

        assert store.count() == 0
        assert resolver.resolve("WLMRT", "c1") == "WLMRT"

    def test_missing_alias(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.delete_alias("nope", "c1")

    def test_other_couples_alias(self, resolver, store):
        alias_id = resolver.create_alias("WLMRT", "Walmart", "c1")

        with pytest.raises(NotFoundError):
            resolver.delete_alias(alias_id, "c2")
        assert store.count() == 1


class UnreadableStore(InMemoryAliasStore):

    def find_by_ocr_merchant(self, couple_id, ocr_merchant_normalized):
        raise StoreUnavailableError("read timeout")


class UnwritableStore(InMemoryAliasStore):

    def run_transaction(self, fn):
        raise StoreUnavailableError("write timeout")


class VanishingStore(InMemoryAliasStore):
    """Lookup finds an alias that is deleted before the increment runs"""

    def find_by_ocr_merchant(self, couple_id, ocr_merchant_normalized):
        return MerchantAlias(
            id='ghost',
            ocr_merchant='WLMRT',
            ocr_merchant_normalized='wlmrt',
            user_alias='Walmart',
            user_alias_normalized='walmart',
            couple_id=couple_id,
        )


class TestStoreFailures:

    def test_read_failure_degrades_to_raw_merchant(self):
        resolver = MerchantAliasResolver(UnreadableStore())
        assert resolver.resolve(" WLMRT ", "c1") == "WLMRT"

    def test_usage_write_failure_propagates(self):
        store = UnwritableStore()
        # Seed directly through the base implementation
        InMemoryAliasStore.run_transaction(store, lambda txn: txn.insert(MerchantAlias(
            ocr_merchant='WLMRT', ocr_merchant_normalized='wlmrt',
            user_alias='Walmart', user_alias_normalized='walmart', couple_id='c1',
        )))

        with pytest.raises(StoreUnavailableError):
            MerchantAliasResolver(store).resolve("WLMRT", "c1")

    def test_create_failure_propagates(self):
        with pytest.raises(StoreUnavailableError):
            MerchantAliasResolver(UnwritableStore()).create_alias("WLMRT", "Walmart", "c1")

    def test_alias_deleted_during_resolve(self):
        resolver = MerchantAliasResolver(VanishingStore())
        assert resolver.resolve("WLMRT", "c1") == "WLMRT"
