"""
Merchant Normalization Module

Two levels of normalization:
- normalize_key(): the lookup key used for alias uniqueness and exact
  history matching (trimmed, lower-cased, single-spaced)
- clean_merchant_name(): strips receipt/bank noise (store numbers, POS
  prefixes, legal suffixes) before generic keyword matching
"""
import re
from typing import Optional

# Common noise patterns to strip
NOISE_PATTERNS = [
    r'\s+\d{10,}',  # Long numeric IDs
    r'\bSTORE\s+#?\d+',  # STORE 123, STORE #456
    r'\bLOCATION\s+#?\d+',
    r'\bBRANCH\s+#?\d+',
    r'#\s*\d+',  # Store numbers like "#123"
    r'\b(?:TXN|REF|INV|ORD)\s*#?\d+',  # Reference numbers
    r'\*{4}\d{4}',  # Masked card numbers
    r'\bCARD\s+\d{4}',
    r'\d{2}/\d{2}/\d{2,4}',  # Dates
    r'\d{4}-\d{2}-\d{2}',
    r'\d{2}:\d{2}(?::\d{2})?',  # Times
    r'&gt;|&lt;|&amp;',  # HTML entities
    r'https?://\S+',  # URLs
    r'\*+',  # Asterisks
]

# Point-of-sale prefixes; the real merchant follows the prefix
POS_PREFIXES = [
    r'^SQ\s*\*\s*',
    r'^TST\s*\*\s*',
    r'^PAYPAL\s*\*\s*',
    r'^SP\s+\*?\s*',
]

# Known merchant spellings (normalize to canonical name)
MERCHANT_ALIASES = {
    r'AMZN.*MKTP': 'AMAZON',
    r'AMAZON.*MKTP': 'AMAZON',
    r'AMAZON\.COM': 'AMAZON',
    r'COSTCO\s+WHSE': 'COSTCO',
    r'TRADER\s+JOE': 'TRADER JOES',
    r'WHOLEFDS|WHOLE\s+FOODS': 'WHOLE FOODS',
    r'WAL-?MART|WLMRT': 'WALMART',
    r'MCDONALD': 'MCDONALDS',
    r'UBER\s+EATS': 'UBER EATS',
    r'UBER.*TRIP': 'UBER',
    r'CVS.*PHARMACY': 'CVS',
}

LEGAL_SUFFIXES = [' INC', ' LLC', ' LTD', ' CO', ' CORP']


def normalize_key(text: Optional[str]) -> str:
    """
    Build the lookup key for a merchant or alias.

    Args:
        text: Raw merchant or alias text

    Returns:
        Trimmed, lower-cased text with internal whitespace collapsed
        ('' for None/blank)
    """
    if not text:
        return ''
    return re.sub(r'\s+', ' ', text).strip().lower()


def clean_merchant_name(raw_merchant: Optional[str]) -> str:
    """
    Strip receipt noise from a merchant name.

    Args:
        raw_merchant: Merchant text from OCR or manual entry

    Returns:
        Upper-cased cleaned merchant name, or '' when nothing meaningful remains
    """
    if not raw_merchant:
        return ''

    text = raw_merchant.upper().strip()

    # Step 1: POS prefixes first (before noise removal strips asterisks)
    for pattern in POS_PREFIXES:
        stripped = re.sub(pattern, '', text)
        if stripped != text and stripped.strip():
            text = stripped.strip()
            break

    # Step 2: Strip noise patterns
    for pattern in NOISE_PATTERNS:
        text = re.sub(pattern, ' ', text)

    # Step 3: Canonical spellings
    for pattern, replacement in MERCHANT_ALIASES.items():
        if re.search(pattern, text):
            return replacement

    text = re.sub(r'\s+', ' ', text).strip()

    # Step 4: Legal suffixes
    for suffix in LEGAL_SUFFIXES:
        if text.endswith(suffix):
            text = text[:-len(suffix)].strip()

    text = text.strip(' -.,')
    if len(text) < 2:
        return ''
    return text
