"""Heuristic parsers for storefront product text.

Storefront products encode several attributes in one string, for example::

    SUPER SKILLS WEEKEND with MAX IVANOV | MIAMI, Florida - USA | February 28 - March 1, 2026 × 1

These functions are pure so markup changes never touch them and vendor
wording changes only touch this module and its tests.
"""
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

MONTH_PATTERN = re.compile(
    r'\b(January|February|March|April|May|June|July|August|September|'
    r'October|November|December)\s+\d',
    re.IGNORECASE
)
YEAR_PATTERN = re.compile(r'\b\d{4}\b')
# "City, Region" optionally followed by " - USA"
LOCATION_PATTERN = re.compile(r'([A-Z][a-zA-Z\s]+),\s*([A-Za-z\s]+?)(?:\s*-\s*[A-Z]{2,3})?$')
QUANTITY_SUFFIX = re.compile(r'(?:\s*×|\s+x)\s*\d+$')
AMOUNT_PATTERN = re.compile(r'\d[\d,]*(?:\.\d+)?|\.\d+')

CURRENCY_SYMBOLS = (
    ('C$', 'CAD'),
    ('CA$', 'CAD'),
    ('€', 'EUR'),
    ('£', 'GBP'),
    ('$', 'USD'),
)
DEFAULT_CURRENCY = 'USD'


@dataclass(frozen=True)
class CompositeDescription:
    name: str
    location: str
    dates: str


def strip_quantity(text: str) -> str:
    """Remove a trailing quantity marker such as " × 1"."""
    return QUANTITY_SUFFIX.sub('', text.strip()).strip()


def looks_like_location(segment: str) -> bool:
    return bool(LOCATION_PATTERN.search(segment))


def looks_like_dates(segment: str) -> bool:
    return bool(MONTH_PATTERN.search(segment) or YEAR_PATTERN.search(segment))


def parse_composite_description(text: Optional[str]) -> CompositeDescription:
    """
    Split a pipe-delimited product description into name, location and dates.

    The first segment is the name. Every other segment is classified as a
    location when it has a "City, Region" shape, or as dates when it holds a
    month name or a four-digit year. The first match of each kind wins; an
    unclassified segment becomes the location if none was found yet.

    Args:
        text: Raw product text

    Returns:
        CompositeDescription with empty strings for missing parts
    """
    if not text:
        return CompositeDescription(name='', location='', dates='')

    segments = [strip_quantity(part) for part in text.split('|')]
    name = segments[0]
    location = ''
    dates = ''

    for segment in segments[1:]:
        if not segment:
            continue
        if looks_like_location(segment):
            location = location or segment
        elif looks_like_dates(segment):
            dates = dates or segment
        elif not location:
            location = segment

    return CompositeDescription(name=name, location=location, dates=dates)


def parse_price_text(text: Optional[str]) -> Tuple[Decimal, str]:
    """
    Extract an amount and currency from money text like "$1,250.00".

    Args:
        text: Rendered price text

    Returns:
        Tuple of (amount, ISO currency code); amount is 0 when absent
    """
    if not text:
        return Decimal('0'), DEFAULT_CURRENCY

    currency = DEFAULT_CURRENCY
    for symbol, code in CURRENCY_SYMBOLS:
        if symbol in text:
            currency = code
            break

    match = AMOUNT_PATTERN.search(text)
    if not match:
        return Decimal('0'), currency
    try:
        amount = Decimal(match.group(0).replace(',', ''))
    except InvalidOperation:
        amount = Decimal('0')
    return amount, currency
