#!/usr/bin/env python3
"""
Database initialization script

Creates the merchant_aliases table used by the PostgreSQL alias store.
"""
import sys
from pathlib import Path

from couple_categorizer.utils.db_connection import alias_table_exists, get_db_connection
from couple_categorizer.utils.settings import configure_logging

SCHEMA_FILE = Path(__file__).resolve().parent.parent / "db" / "alias_schema.sql"


def run_sql_file(conn, sql_file: Path, description: str):
    """Execute a SQL file"""
    print(f"\n📄 {description}")
    print(f"   File: {sql_file}")

    sql = sql_file.read_text(encoding='utf-8')

    cursor = conn.cursor()
    try:
        cursor.execute(sql)
        conn.commit()
        print(f"   ✅ Success")
    except Exception as e:
        conn.rollback()
        print(f"   ❌ Error: {e}")
        raise
    finally:
        cursor.close()


def print_summary(conn):
    cursor = conn.cursor()
    try:
        cursor.execute("SELECT COUNT(*), COUNT(DISTINCT couple_id) FROM merchant_aliases")
        alias_count, couple_count = cursor.fetchone()
        print(f"\n📊 merchant_aliases: {alias_count} aliases across {couple_count} couples")
    finally:
        cursor.close()


def main():
    """Main initialization"""
    configure_logging()

    print("=" * 80)
    print("🗄️  ALIAS STORE INITIALIZATION")
    print("=" * 80)

    if not SCHEMA_FILE.exists():
        print(f"\n❌ Missing schema file: {SCHEMA_FILE}")
        sys.exit(1)

    print("\n🔌 Connecting to database...")
    try:
        conn = get_db_connection()
        print("   ✅ Connected")
    except Exception as e:
        print(f"   ❌ Connection failed: {e}")
        print("\nCheck DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD in .env")
        sys.exit(1)

    try:
        if alias_table_exists(conn):
            print("\n♻️  merchant_aliases already exists, re-applying schema (idempotent)")
        run_sql_file(conn, SCHEMA_FILE, "Creating merchant alias schema")
        print_summary(conn)

        print("\n✅ Database initialization complete!")
        print("\nNext steps:")
        print("  1. Add an alias: categorizer-aliases create COUPLE_ID 'WLMRT' 'Walmart'")
        print("  2. Predict: categorizer-predict 'WLMRT' --amount 54.20 --couple-id COUPLE_ID")

    except Exception as e:
        print(f"\n❌ Initialization failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
