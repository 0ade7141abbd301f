"""
Database connection utilities for the PostgreSQL alias store
"""
from typing import Callable, Optional

import psycopg2

from .settings import DatabaseSettings


def get_db_connection(settings: Optional[DatabaseSettings] = None):
    """
    Open a connection to the alias database

    Args:
        settings: Connection parameters (default: DB_* env vars / .env)

    Returns:
        psycopg2 connection object
    """
    settings = settings or DatabaseSettings.from_env()
    return psycopg2.connect(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        connect_timeout=settings.connect_timeout,
    )


def connection_factory(settings: Optional[DatabaseSettings] = None) -> Callable:
    """Zero-arg connection factory bound to one set of settings"""
    settings = settings or DatabaseSettings.from_env()
    return lambda: get_db_connection(settings)


def alias_table_exists(conn) -> bool:
    """True once categorizer-init-db has created merchant_aliases"""
    cursor = conn.cursor()
    try:
        cursor.execute("SELECT to_regclass('public.merchant_aliases') IS NOT NULL")
        return bool(cursor.fetchone()[0])
    finally:
        cursor.close()
