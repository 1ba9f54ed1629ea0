"""
Value parsers for raw entity text
"""
import re
from datetime import date
from typing import Optional

NUMBER_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(k|m)?$", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"^(19\d{2}|20\d{2})$")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

MULTIPLIERS = {
    "k": 1_000,
    "m": 1_000_000,
}


def parse_number(raw: str) -> Optional[float]:
    """
    Parse a price, mileage or engine size

    Accepts currency symbols, thousands separators, a trailing k/m
    multiplier and unit words ("£20,000", "20k", "30,000 miles", "1.6l").

    Args:
        raw: Raw entity value

    Returns:
        Parsed number, or None when the text is not a number
    """
    if raw is None:
        return None

    text = str(raw).strip().lower()
    text = text.replace("£", "").replace("$", "").replace("€", "").replace(",", "")
    text = re.sub(r"\s*(miles|mile|mi|litres|litre|liters|liter|l)$", "", text)
    text = text.strip()

    match = NUMBER_PATTERN.match(text)
    if not match:
        return None

    value = float(match.group(1))
    multiplier = match.group(2)
    if multiplier:
        value *= MULTIPLIERS[multiplier.lower()]

    return value


def parse_year(raw: str) -> Optional[int]:
    """Parse a four-digit registration year"""
    if raw is None:
        return None
    match = YEAR_PATTERN.match(str(raw).strip())
    return int(match.group(1)) if match else None


def parse_date(raw: str, end_of_year: bool = False) -> Optional[date]:
    """
    Parse a year or ISO date into a date

    Args:
        raw: "2018" or "2018-05-01"
        end_of_year: Map a bare year to 31 December instead of 1 January

    Returns:
        Parsed date, or None when the text is neither form
    """
    if raw is None:
        return None

    text = str(raw).strip()
    year = parse_year(text)
    if year is not None:
        return date(year, 12, 31) if end_of_year else date(year, 1, 1)

    match = ISO_DATE_PATTERN.match(text)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None
