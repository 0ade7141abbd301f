#!/usr/bin/env python3
"""
Merchant alias management CLI

    categorizer-aliases list COUPLE_ID
    categorizer-aliases create COUPLE_ID OCR_MERCHANT USER_ALIAS [--created-by USER]
    categorizer-aliases rename COUPLE_ID ALIAS_ID USER_ALIAS
    categorizer-aliases delete COUPLE_ID ALIAS_ID
    categorizer-aliases resolve COUPLE_ID OCR_MERCHANT
"""
import argparse
import sys

from couple_categorizer.core.errors import CategorizerError
from couple_categorizer.core.merchant_alias_resolver import MerchantAliasResolver
from couple_categorizer.core.postgres_alias_store import PostgresAliasStore
from couple_categorizer.utils.db_connection import connection_factory
from couple_categorizer.utils.settings import CategorizerSettings, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Manage couple-scoped merchant aliases')
    commands = parser.add_subparsers(dest='command', required=True)

    list_cmd = commands.add_parser('list', help='List aliases, most used first')
    list_cmd.add_argument('couple_id')

    create_cmd = commands.add_parser('create', help='Create an alias')
    create_cmd.add_argument('couple_id')
    create_cmd.add_argument('ocr_merchant', help='Raw merchant text as it appears on receipts')
    create_cmd.add_argument('user_alias', help='Display name')
    create_cmd.add_argument('--created-by', help='User creating the alias')

    rename_cmd = commands.add_parser('rename', help='Change an alias display name')
    rename_cmd.add_argument('couple_id')
    rename_cmd.add_argument('alias_id')
    rename_cmd.add_argument('user_alias')

    delete_cmd = commands.add_parser('delete', help='Delete an alias')
    delete_cmd.add_argument('couple_id')
    delete_cmd.add_argument('alias_id')

    resolve_cmd = commands.add_parser('resolve', help='Resolve a raw merchant (bumps usage)')
    resolve_cmd.add_argument('couple_id')
    resolve_cmd.add_argument('ocr_merchant')

    return parser


def run(args, resolver: MerchantAliasResolver):
    if args.command == 'list':
        aliases = resolver.list_aliases(args.couple_id)
        if not aliases:
            print("No aliases yet")
            return
        print(f"{'ID':<34} {'OCR MERCHANT':<30} {'ALIAS':<25} {'USES':>5}")
        print("-" * 97)
        for alias in aliases:
            print(f"{alias.id:<34} {alias.ocr_merchant[:30]:<30} {alias.user_alias[:25]:<25} {alias.usage_count:>5}")

    elif args.command == 'create':
        alias_id = resolver.create_alias(args.ocr_merchant, args.user_alias, args.couple_id, args.created_by)
        print(f"✅ Created alias {alias_id}: {args.ocr_merchant} → {args.user_alias}")

    elif args.command == 'rename':
        alias = resolver.rename_alias(args.alias_id, args.couple_id, args.user_alias)
        print(f"✅ Renamed alias {alias.id}: {alias.ocr_merchant} → {alias.user_alias}")

    elif args.command == 'delete':
        resolver.delete_alias(args.alias_id, args.couple_id)
        print(f"🗑️  Deleted alias {args.alias_id}")

    elif args.command == 'resolve':
        print(resolver.resolve(args.ocr_merchant, args.couple_id))


def main():
    args = build_parser().parse_args()
    settings = CategorizerSettings.from_env()
    configure_logging(settings.log_level)

    store = PostgresAliasStore(connection_factory(), max_attempts=settings.store_max_attempts)
    resolver = MerchantAliasResolver(store, list_limit=settings.alias_list_limit)

    try:
        run(args, resolver)
    except CategorizerError as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
