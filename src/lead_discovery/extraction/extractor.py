#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Field Extractor

Pattern-based heuristics that pull company, location, project type, budget,
room count, timeline and contact details out of short article text (title
plus snippet). Every heuristic returns a value or ``UNKNOWN``; a missing
signal is a normal outcome, never an exception.
"""

import re
from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from lead_discovery.models.lead import UNKNOWN, Contact, ExtractedFields, is_known
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# A run of one to four capitalised words, e.g. "Hilton Worldwide"
_NAME = r"(?:[A-Z][\w&'.-]*\s){0,3}[A-Z][\w&'.-]*"

COMPANY_PATTERNS = [
    re.compile(
        r"\b(" + _NAME + r")\s+(?i:announces|announced|launches|launched|develops|unveils|unveiled|"
        r"plans|planned|proposes|proposed|opens|opened|breaks ground|expands|expanded|"
        r"acquires|acquired|reveals|revealed)\b"
    ),
    re.compile(
        r"(?i:announced by|developed by|constructed by|built by|launched by|planned by|"
        r"proposed by|owned by|led by)\s+(" + _NAME + r")"
    ),
    re.compile(
        r"\b((?:[A-Z][\w&'.-]*\s){0,3}(?:Inc|LLC|Corp|Corporation|Group|Holdings|Enterprises|Partners|"
        r"Associates|Company|Ltd|Limited|Realty|Properties|Developers|Development|Construction|"
        r"Builders|Hospitality)\b\.?)"
    ),
    re.compile(r"[\"“]([A-Z][\w&'. -]{1,58}?)[\"”]"),
    re.compile(r"\(([A-Z][\w&'. -]{1,58}?)\)"),
]

COMMON_WORDS = {
    "the", "and", "for", "with", "new", "old", "big", "small", "first", "last",
    "a", "an", "this", "that", "it", "its", "report", "news",
}

LOCATION_WORDS = {"downtown", "uptown", "midtown", "north", "south", "east", "west", "central"}

MONTHS_AND_DAYS = {
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december", "monday", "tuesday",
    "wednesday", "thursday", "friday", "saturday", "sunday", "q1", "q2", "q3", "q4",
}

LOCATION_PATTERNS = [
    # City, ST
    re.compile(r"\b([A-Z][a-zA-Z.]+(?:\s[A-Z][a-zA-Z.]+){0,2},\s*[A-Z]{2})\b"),
    # "in Miami Beach", "located in Denver"
    re.compile(r"\b(?i:located in|in|at|near|within)\s+([A-Z][a-zA-Z]+(?:\s[A-Z][a-zA-Z]+){0,2})"),
    # "Orange County", "Financial District"
    re.compile(r"\b((?:[A-Z][a-zA-Z]+\s){1,2}(?:County|District|Borough|Parish))\b"),
    # Street address
    re.compile(
        r"\b(\d+\s(?:[A-Z][a-zA-Z]+\s){1,3}(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|"
        r"Drive|Dr|Lane|Ln|Way|Place|Pl|Court|Ct)\b\.?)"
    ),
]

PROJECT_TYPES = [
    "hotel", "resort", "motel", "apartment", "condominium", "condo", "office", "retail",
    "industrial", "warehouse", "restaurant", "entertainment", "healthcare", "education",
    "residential", "mixed-use", "commercial", "hospitality", "tourism", "infrastructure",
]

COMPOUND_PROJECT_TYPES = [
    "business district",
    "data center",
    "senior living",
]

LODGING_TYPES = {"hotel", "resort", "motel", "hospitality"}

_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d+)?)"
_UNIT = r"(thousand|million|billion|mm|bn|k|m|b)"

BUDGET_PATTERNS = [
    re.compile(r"\$\s?" + _NUMBER + r"(?:\s*" + _UNIT + r"\b)?", re.IGNORECASE),
    re.compile(
        r"\b(?:budget|cost|investment|valued at|value|funding|price)\s*(?:of|:|at)?\s*\$?"
        + _NUMBER + r"(?:\s*" + _UNIT + r"\b)?",
        re.IGNORECASE,
    ),
    re.compile(_NUMBER + r"\s*(thousand|million|billion)\s*(?:dollars?|usd)?\b", re.IGNORECASE),
]

UNIT_MULTIPLIERS = {
    "k": 1_000, "thousand": 1_000,
    "m": 1_000_000, "mm": 1_000_000, "million": 1_000_000,
    "b": 1_000_000_000, "bn": 1_000_000_000, "billion": 1_000_000_000,
}

BUDGET_RANGES = [
    (10_000, "under_10k"),
    (50_000, "10k_50k"),
    (100_000, "50k_100k"),
    (500_000, "100k_500k"),
    (1_000_000, "500k_1m"),
    (5_000_000, "1m_5m"),
    (10_000_000, "5m_10m"),
]

TIMELINE_PATTERNS = [
    re.compile(r"(?:completes?|finish(?:es)?|opens?|opening|launch(?:es)?|deliver(?:s|ed)?)\s+"
               r"(?:in|by|during|by the end of)\s+(\d{4})", re.IGNORECASE),
    re.compile(r"(?:expected|scheduled|planned|target)\s+(?:completion|opening|launch|delivery)\s+"
               r"(?:in|by|during)\s+(\d{4})", re.IGNORECASE),
    re.compile(r"(\d{4})\s+(?:completion|opening|launch|deadline|target date)", re.IGNORECASE),
    re.compile(r"\bQ[1-4]\s+(\d{4})", re.IGNORECASE),
]

ROOM_COUNT_PATTERNS = [
    re.compile(r"\b(\d{1,3}(?:,\d{3})+|\d+)[\s-]*(?:guest[\s-]+)?(?:rooms?|suites?|keys|units?)\b", re.IGNORECASE),
    re.compile(r"\b(?:rooms?|suites?|keys|units?)\s*:?\s*(\d+)\b", re.IGNORECASE),
    re.compile(r"\b(?:capacity|accommodates?)\s*(?:of\s*|up to\s*)?(\d+)\s*(?:guests?|visitors?)", re.IGNORECASE),
]

SQUARE_FOOTAGE_PATTERNS = [
    re.compile(r"(\d+(?:,\d{3})*)[\s-]*(?:sq\.?\s*ft|square[\s-]*feet|square[\s-]*foot|ft²)", re.IGNORECASE),
    re.compile(r"(?:sq\.?\s*ft|square\s*feet|square\s*foot|ft²)\s*:?\s*(\d+(?:,\d{3})*)", re.IGNORECASE),
]

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?1[-.\s]?)?\(?(\d{3})\)?[-.\s]?(\d{3})[-.\s]?(\d{4})(?!\d)")

CONTACT_TITLES = (
    r"Chief Executive Officer|Chief Operating Officer|Vice President|General Manager|"
    r"Project Manager|Development Manager|CEO|CTO|CFO|COO|President|VP|Director|Manager|"
    r"Founder|Principal|Partner|Spokesperson"
)
NAME_TITLE_PATTERN = re.compile(
    r"\b([A-Z][a-z]+(?:\s[A-Z][a-z]+){1,2}),?\s+(?:the\s+)?(" + CONTACT_TITLES + r")\b"
)
TITLE_NAME_PATTERN = re.compile(
    r"\b(" + CONTACT_TITLES + r")\s*:?\s+([A-Z][a-z]+(?:\s[A-Z][a-z]+){1,2})\b"
)
ATTRIBUTION_PATTERN = re.compile(
    r"\b(?i:according to|said|says|per|contact:?|spokesperson)\s+([A-Z][a-z]+(?:\s[A-Z][a-z]+){1,2})\b"
)


def _clean(value: str) -> str:
    value = re.sub(r"^(?:the|a|an)\s+", "", value.strip(), flags=re.IGNORECASE)
    value = re.sub(r"[.,;:]+$", "", value)
    return re.sub(r"\s+", " ", value).strip()


def is_valid_company_name(name: str) -> bool:
    if not name or len(name) < 2 or len(name) > 60:
        return False
    lowered = name.lower()
    if lowered in COMMON_WORDS or lowered in LOCATION_WORDS:
        return False
    if re.fullmatch(r"\d+", name):
        return False
    if re.fullmatch(r"\d{1,2}/\d{1,2}/\d{2,4}|\d{4}|\$\d+.*", name):
        return False
    return True


def is_valid_location(location: str) -> bool:
    if not location or len(location) < 2 or len(location) > 60:
        return False
    lowered = location.lower()
    if lowered in COMMON_WORDS or lowered in MONTHS_AND_DAYS:
        return False
    if re.fullmatch(r"\d+", location):
        return False
    return True


def extract_company(text: str) -> str:
    """Find the announcing or developing company named in the text."""
    if not text:
        return UNKNOWN

    for pattern in COMPANY_PATTERNS:
        for match in pattern.finditer(text):
            candidate = _clean(match.group(1))
            if is_valid_company_name(candidate):
                return candidate

    return UNKNOWN


def extract_location(text: str) -> str:
    """Find a place name: "City, ST", "in X", a county/district or a street address."""
    if not text:
        return UNKNOWN

    for pattern in LOCATION_PATTERNS:
        for match in pattern.finditer(text):
            candidate = _clean(match.group(1))
            if is_valid_location(candidate):
                return candidate

    return UNKNOWN


def extract_project_type(text: str) -> str:
    if not text:
        return UNKNOWN

    lowered = text.lower()
    for project_type in PROJECT_TYPES:
        if re.search(r"\b" + re.escape(project_type), lowered):
            return project_type.capitalize()

    for project_type in COMPOUND_PROJECT_TYPES:
        if project_type in lowered:
            return project_type.title()

    return UNKNOWN


def is_lodging(project_type: str) -> bool:
    """Room counts are only meaningful for lodging projects."""
    return is_known(project_type) and project_type.lower() in LODGING_TYPES


def extract_budget(text: str) -> str:
    """
    Find a currency-like amount and scale it by the unit next to it.

    Returns:
        str: Whole-dollar amount such as ``"120000000"`` or ``UNKNOWN``
    """
    if not text:
        return UNKNOWN

    for pattern in BUDGET_PATTERNS:
        for match in pattern.finditer(text):
            try:
                amount = float(match.group(1).replace(",", ""))
            except ValueError:
                continue
            unit = match.group(2) if match.lastindex and match.lastindex >= 2 else None
            multiplier = UNIT_MULTIPLIERS.get(unit.lower(), 1) if unit else 1
            total = amount * multiplier
            if total > 0:
                return str(int(round(total)))

    return UNKNOWN


def budget_range(budget: str) -> str:
    """Bucket a budget amount into a named range."""
    if not is_known(budget):
        return "not_specified"
    try:
        amount = float(budget)
    except (TypeError, ValueError):
        return "not_specified"

    for ceiling, label in BUDGET_RANGES:
        if amount < ceiling:
            return label
    return "over_10m"


def extract_room_count(text: str) -> str:
    if not text:
        return UNKNOWN

    for pattern in ROOM_COUNT_PATTERNS:
        for match in pattern.finditer(text):
            try:
                count = int(match.group(1).replace(",", ""))
            except ValueError:
                continue
            if 0 < count < 10000:
                return str(count)

    return UNKNOWN


def extract_timeline(text: str, current_year: Optional[int] = None) -> str:
    """Find an expected completion/opening year within the next ten years."""
    if not text:
        return UNKNOWN

    year_now = current_year or datetime.now().year
    for pattern in TIMELINE_PATTERNS:
        for match in pattern.finditer(text):
            year = int(match.group(1))
            if year_now <= year <= year_now + 10:
                return str(year)

    return UNKNOWN


def extract_square_footage(text: str) -> str:
    if not text:
        return UNKNOWN

    for pattern in SQUARE_FOOTAGE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).replace(",", "")

    return UNKNOWN


def format_phone_number(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return phone


def calculate_contact_confidence(contact: Contact) -> int:
    score = 0
    if is_known(contact.name):
        score += 40
    if is_known(contact.email):
        score += 35
    if is_known(contact.phone):
        score += 25
    if is_known(contact.title):
        score += 15

    methods = sum(1 for value in (contact.name, contact.email, contact.phone) if is_known(value))
    if methods >= 2:
        score += 20

    return min(score, 100)


def _find_names(text: str) -> List[tuple]:
    """(name, title) pairs in order of appearance."""
    found = []
    for match in NAME_TITLE_PATTERN.finditer(text):
        found.append((match.start(), match.group(1), match.group(2)))
    for match in TITLE_NAME_PATTERN.finditer(text):
        found.append((match.start(), match.group(2), match.group(1)))
    for match in ATTRIBUTION_PATTERN.finditer(text):
        found.append((match.start(), match.group(1), "Representative"))

    found.sort(key=lambda item: item[0])
    pairs = []
    seen = set()
    for _, name, title in found:
        if name not in seen:
            seen.add(name)
            pairs.append((name, title))
    return pairs


def _find_emails(text: str) -> List[str]:
    emails: List[str] = []
    for match in EMAIL_PATTERN.finditer(text):
        email = match.group(0).lower()
        if email not in emails:
            emails.append(email)
    return emails


def _find_phones(text: str) -> List[str]:
    phones: List[str] = []
    for match in PHONE_PATTERN.finditer(text):
        formatted = format_phone_number(match.group(0))
        if formatted not in phones:
            phones.append(formatted)
    return phones


def extract_contacts(text: str, max_contacts: int = 3) -> List[Contact]:
    """
    Build up to ``max_contacts`` contacts by pairing names, emails and
    phone numbers in order of appearance.
    """
    if not text:
        return []

    names = _find_names(text)
    emails = _find_emails(text)
    phones = _find_phones(text)

    contacts = []
    for i in range(min(max(len(names), len(emails), len(phones)), max_contacts)):
        name, title = names[i] if i < len(names) else (UNKNOWN, UNKNOWN)
        contact = Contact(
            name=name,
            title=title,
            email=emails[i] if i < len(emails) else UNKNOWN,
            phone=phones[i] if i < len(phones) else UNKNOWN,
        )
        contact.confidence = calculate_contact_confidence(contact)
        if not contact.is_empty:
            contacts.append(contact)

    return contacts


def extract_contact(text: str) -> Contact:
    """The primary contact in the text; all fields ``UNKNOWN`` if none."""
    contacts = extract_contacts(text, max_contacts=1)
    return contacts[0] if contacts else Contact()


def generate_description(fields: ExtractedFields, source: str) -> str:
    """Compose a one-sentence summary from the extracted fields."""
    parts = []

    if is_known(fields.company):
        parts.append(f"{fields.company} is developing")
    else:
        parts.append("A new development project involves")

    if is_known(fields.project_type):
        parts.append(f"a {fields.project_type.lower()}")
    else:
        parts.append("a construction project")

    if is_known(fields.location):
        parts.append(f"in {fields.location}")

    if is_known(fields.budget):
        parts.append(f"with a budget of ${int(fields.budget):,}" if fields.budget.isdigit()
                     else f"with a budget of {fields.budget}")

    if is_known(fields.room_count):
        parts.append(f"featuring {fields.room_count} rooms")

    parts.append(f"as reported by {source or 'an unnamed source'}")

    return " ".join(parts) + "."


def _safe(func: Callable[..., T], default: T, *args) -> T:
    try:
        return func(*args)
    except Exception as e:
        logger.warning(f"Extractor {func.__name__} failed: {str(e)}")
        return default


def extract_all(text: str, current_year: Optional[int] = None) -> ExtractedFields:
    """
    Run every heuristic over the text.

    Args:
        text: Concatenated title and snippet
        current_year: Reference year for timeline validation (defaults to now)

    Returns:
        ExtractedFields: One value or ``UNKNOWN`` per field
    """
    project_type = _safe(extract_project_type, UNKNOWN, text)
    budget = _safe(extract_budget, UNKNOWN, text)

    return ExtractedFields(
        company=_safe(extract_company, UNKNOWN, text),
        location=_safe(extract_location, UNKNOWN, text),
        project_type=project_type,
        budget=budget,
        budget_range=budget_range(budget),
        timeline=_safe(extract_timeline, UNKNOWN, text, current_year),
        room_count=_safe(extract_room_count, UNKNOWN, text) if is_lodging(project_type) else UNKNOWN,
        square_footage=_safe(extract_square_footage, UNKNOWN, text),
        contact=_safe(extract_contact, Contact(), text),
    )
