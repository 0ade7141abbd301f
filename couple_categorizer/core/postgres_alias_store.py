"""
PostgreSQL Alias Store

Production AliasStore on the merchant_aliases table (db/alias_schema.sql).

Transactions run at SERIALIZABLE isolation, so the resolver's
read-check-write is a single unit; PostgreSQL aborts one side of a
write-write race with a serialization failure or a deadlock, and the
whole transaction function is re-run here. The two UNIQUE constraints back the same
invariants if anything slips past the in-transaction checks.
"""
import logging
import uuid
from typing import Callable, Dict, List, Optional, TypeVar

import psycopg2
import psycopg2.errors
from psycopg2.extensions import ISOLATION_LEVEL_SERIALIZABLE
from psycopg2.extras import RealDictCursor

from ..utils.db_connection import get_db_connection
from .alias_store import DEFAULT_MAX_ATTEMPTS, AliasStore, AliasTransaction
from .errors import ConflictError, StoreUnavailableError
from .models import MerchantAlias

logger = logging.getLogger(__name__)

T = TypeVar('T')

ALIAS_COLUMNS = """
    alias_id, couple_id, ocr_merchant, ocr_merchant_normalized,
    user_alias, user_alias_normalized, usage_count,
    created_at, last_used_at, created_by
"""

# Unique constraint name -> ConflictError axis
CONSTRAINT_AXES = {
    'merchant_aliases_couple_ocr_key': ConflictError.OCR_MERCHANT,
    'merchant_aliases_couple_alias_key': ConflictError.USER_ALIAS,
}


def row_to_alias(row: Dict) -> MerchantAlias:
    """Convert a merchant_aliases row (RealDictCursor) to a MerchantAlias"""
    return MerchantAlias(
        id=row['alias_id'],
        couple_id=row['couple_id'],
        ocr_merchant=row['ocr_merchant'],
        ocr_merchant_normalized=row['ocr_merchant_normalized'],
        user_alias=row['user_alias'],
        user_alias_normalized=row['user_alias_normalized'],
        usage_count=row['usage_count'],
        created_at=row['created_at'],
        last_used_at=row['last_used_at'],
        created_by=row['created_by'],
    )


def conflict_axis(constraint_name: Optional[str]) -> str:
    """Which uniqueness axis a violated constraint belongs to"""
    return CONSTRAINT_AXES.get(constraint_name or '', ConflictError.OCR_MERCHANT)


class PostgresAliasTransaction(AliasTransaction):
    """Executes directly on the transaction's cursor"""

    def __init__(self, cursor):
        self.cursor = cursor

    def _fetch_one(self, sql: str, params: tuple) -> Optional[MerchantAlias]:
        self.cursor.execute(sql, params)
        row = self.cursor.fetchone()
        return row_to_alias(row) if row else None

    def get(self, alias_id: str) -> Optional[MerchantAlias]:
        return self._fetch_one(
            f"SELECT {ALIAS_COLUMNS} FROM merchant_aliases WHERE alias_id = %s",
            (alias_id,)
        )

    def find_by_ocr_merchant(self, couple_id, ocr_merchant_normalized):
        return self._fetch_one(
            f"""
            SELECT {ALIAS_COLUMNS} FROM merchant_aliases
            WHERE couple_id = %s AND ocr_merchant_normalized = %s
            """,
            (couple_id, ocr_merchant_normalized)
        )

    def find_by_user_alias(self, couple_id, user_alias_normalized):
        return self._fetch_one(
            f"""
            SELECT {ALIAS_COLUMNS} FROM merchant_aliases
            WHERE couple_id = %s AND user_alias_normalized = %s
            """,
            (couple_id, user_alias_normalized)
        )

    def insert(self, alias: MerchantAlias) -> str:
        alias_id = alias.id or uuid.uuid4().hex
        self.cursor.execute("""
            INSERT INTO merchant_aliases (
                alias_id, couple_id, ocr_merchant, ocr_merchant_normalized,
                user_alias, user_alias_normalized, usage_count,
                created_at, last_used_at, created_by
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """, (
            alias_id, alias.couple_id, alias.ocr_merchant, alias.ocr_merchant_normalized,
            alias.user_alias, alias.user_alias_normalized, alias.usage_count,
            alias.created_at, alias.last_used_at, alias.created_by,
        ))
        return alias_id

    def update(self, alias: MerchantAlias) -> None:
        self.cursor.execute("""
            UPDATE merchant_aliases
            SET user_alias = %s,
                user_alias_normalized = %s,
                usage_count = %s,
                last_used_at = %s
            WHERE alias_id = %s
        """, (
            alias.user_alias, alias.user_alias_normalized,
            alias.usage_count, alias.last_used_at, alias.id,
        ))

    def delete(self, alias_id: str) -> None:
        self.cursor.execute("DELETE FROM merchant_aliases WHERE alias_id = %s", (alias_id,))


class PostgresAliasStore(AliasStore):
    """
    AliasStore backed by PostgreSQL.

    Args:
        connection_factory: Zero-arg callable returning a psycopg2 connection
            (default: get_db_connection, configured from DB_* env vars)
        max_attempts: Serialization-failure retries before giving up
    """

    def __init__(self,
                 connection_factory: Optional[Callable] = None,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.connection_factory = connection_factory or get_db_connection
        self.max_attempts = max_attempts

    def _connect(self):
        try:
            return self.connection_factory()
        except psycopg2.OperationalError as e:
            raise StoreUnavailableError(f"Alias store unavailable: {e}") from e

    def run_transaction(self, fn: Callable[[AliasTransaction], T]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            conn = self._connect()
            try:
                conn.set_session(isolation_level=ISOLATION_LEVEL_SERIALIZABLE)
                # Commits on success, rolls back on any exception
                with conn:
                    with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                        return fn(PostgresAliasTransaction(cursor))
            except psycopg2.errors.TransactionRollbackError as e:
                # Serialization failure or deadlock: the whole function is re-run
                logger.debug("Transaction rolled back (%s), retrying (attempt %d/%d)",
                             type(e).__name__, attempt, self.max_attempts)
            except psycopg2.errors.UniqueViolation as e:
                diag = getattr(e, 'diag', None)
                constraint = getattr(diag, 'constraint_name', None)
                raise ConflictError(conflict_axis(constraint)) from e
            except psycopg2.OperationalError as e:
                raise StoreUnavailableError(f"Alias store unavailable: {e}") from e
            finally:
                conn.close()

        raise StoreUnavailableError(
            f"Alias transaction aborted after {self.max_attempts} rolled-back attempts"
        )

    def _query(self, sql: str, params: tuple) -> List[Dict]:
        conn = self._connect()
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(sql, params)
                    return cursor.fetchall()
        except psycopg2.OperationalError as e:
            raise StoreUnavailableError(f"Alias store unavailable: {e}") from e
        finally:
            conn.close()

    def find_by_ocr_merchant(self, couple_id, ocr_merchant_normalized):
        rows = self._query(
            f"""
            SELECT {ALIAS_COLUMNS} FROM merchant_aliases
            WHERE couple_id = %s AND ocr_merchant_normalized = %s
            """,
            (couple_id, ocr_merchant_normalized)
        )
        return row_to_alias(rows[0]) if rows else None

    def list_by_couple(self, couple_id, limit):
        rows = self._query(
            f"""
            SELECT {ALIAS_COLUMNS} FROM merchant_aliases
            WHERE couple_id = %s
            ORDER BY usage_count DESC, user_alias_normalized
            LIMIT %s
            """,
            (couple_id, limit)
        )
        return [row_to_alias(row) for row in rows]
