#!/usr/bin/env python3
"""
Category prediction CLI

Predicts a category for one expense against a history CSV
(columns: merchant, category, amount, description).
"""
import argparse
import csv
import json
import sys
from pathlib import Path
from typing import List

from couple_categorizer.core.categorization_orchestrator import CategoryPredictor
from couple_categorizer.core.confidence_aggregator import ConfidenceAggregator
from couple_categorizer.core.merchant_alias_resolver import MerchantAliasResolver
from couple_categorizer.core.models import ExpenseHistoryRecord
from couple_categorizer.core.postgres_alias_store import PostgresAliasStore
from couple_categorizer.core.taxonomy import load_categories
from couple_categorizer.utils.db_connection import connection_factory
from couple_categorizer.utils.settings import CategorizerSettings, configure_logging


def load_history(csv_path: Path) -> List[ExpenseHistoryRecord]:
    """Parse a history CSV; rows without merchant or category are skipped"""
    records = []
    with open(csv_path, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            # Header names are matched case-insensitively
            normalized = {(k or '').strip().lower(): v for k, v in row.items()}
            record = ExpenseHistoryRecord.from_dict(normalized)
            if not record.merchant or not record.category:
                continue
            records.append(record)
    return records


def print_result(merchant: str, result):
    print(f"\nMerchant: {merchant}")
    if result.below_threshold:
        print(f"⚠️  No confident category ({result.confidence:.0%} < threshold)")
    else:
        print(f"✅ {result.category} ({result.confidence:.0%}, {result.source.value})")
    if result.rationale:
        print(f"   Why: {result.rationale}")
    if result.alternatives:
        print("   Alternatives:")
        for alt in result.alternatives:
            print(f"     • {alt.category:<15} {alt.confidence:.0%}")


def main():
    parser = argparse.ArgumentParser(description='Predict an expense category')
    parser.add_argument('merchant', help='Merchant name (raw OCR text or typed)')
    parser.add_argument('--amount', default='0', help='Expense amount')
    parser.add_argument('--description', default='', help='Free-text description')
    parser.add_argument('--history', help='History CSV (merchant,category,amount,description)')
    parser.add_argument('--taxonomy', help='Taxonomy JSON with category keywords')
    parser.add_argument('--couple-id', help='Resolve the merchant alias for this couple first')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')

    args = parser.parse_args()
    settings = CategorizerSettings.from_env()
    configure_logging(settings.log_level)

    history = []
    if args.history:
        history_path = Path(args.history)
        if not history_path.exists():
            print(f"❌ File not found: {history_path}")
            sys.exit(1)
        history = load_history(history_path)

    categories = None
    if args.taxonomy:
        taxonomy_path = Path(args.taxonomy)
        if not taxonomy_path.exists():
            print(f"❌ File not found: {taxonomy_path}")
            sys.exit(1)
        categories = load_categories(taxonomy_path)

    resolver = None
    if args.couple_id:
        store = PostgresAliasStore(connection_factory(), max_attempts=settings.store_max_attempts)
        resolver = MerchantAliasResolver(store, list_limit=settings.alias_list_limit)

    predictor = CategoryPredictor(
        categories=categories,
        aggregator=ConfidenceAggregator(threshold=settings.confidence_threshold),
        resolver=resolver,
        alias_timeout=settings.alias_timeout_seconds,
    )
    merchant, result = predictor.predict_receipt(
        args.merchant, args.couple_id, args.amount, args.description, history
    )

    if args.json:
        print(json.dumps({'merchant': merchant, **result.to_dict()}, indent=2))
    else:
        print(f"📚 History: {len(history)} expenses")
        print_result(merchant, result)


if __name__ == "__main__":
    main()
