"""Field extraction - turns free-form vision model answers into structured records"""

import logging
import re
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Sequence, Tuple

from smartloan_core.domain.models import DEFAULT_MIN_CONFIDENCE, IdentityRecord, IncomeRecord
from smartloan_core.utils.date_utils import MONTH_NAMES

logger = logging.getLogger(__name__)

# Coarse confidence policy: gates downstream checks, not a calibrated probability
FOUND_CONFIDENCE = 0.8
MISSING_CONFIDENCE = 0.1

_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"
_CURRENCY = r"(?:k\s*sh\.?|kes)?"

IDENTITY_NAME_KEYWORDS = ("full name", "name")
DATE_OF_BIRTH_KEYWORDS = ("date of birth", "birth", "born", "dob")
EXPIRY_KEYWORDS = ("date of expiry", "expiry", "expires", "valid until")
PLACE_OF_BIRTH_KEYWORDS = ("place of birth", "district of birth")

EMPLOYEE_KEYWORDS = ("employee", "name")
EMPLOYER_KEYWORDS = ("employer", "company")
GROSS_KEYWORDS = ("gross", "total")
NET_KEYWORDS = ("net", "take home")
PERIOD_KEYWORDS = ("pay period", "period", "month")

KNOWN_DEDUCTIONS = (
    "co-operative loan",
    "cooperative loan",
    "sacco loan",
    "premier kenya loan",
    "kenya loan",
    "bank loan",
    "kuppet",
    "union",
    "mshwari",
    "support",
    "uwin",
    "personal loan",
    "salary advance",
    "advance",
)

KNOWN_ALLOWANCES = (
    "housing allowance",
    "house allowance",
    "rental",
    "hardship allowance",
    "hardship",
    "commuter allowance",
    "transport allowance",
    "commuter",
    "medical allowance",
    "medical",
)

_MONTH_YEAR = re.compile(r"(?i)(" + "|".join(MONTH_NAMES) + r")[-\s,]*(\d{4})")

_ID_NUMBER_PATTERNS = (
    re.compile(r"(?i)id\s*(?:card\s*)?(?:no\.?|number|#)\s*[:\-]?\**\s*(\d{8})\b"),
    re.compile(r"\b\d{8}\b"),
)


def _section_header(words: str) -> str:
    # "6. **All deductions (with names and amounts):**" - any lead-in words, no amount on the line
    return r"^[^\n:]*?\b(?:" + words + r")\b[^\n:\d]*:?[ \t*]*$"


_SECTION_STOP = r"^[ \t#*\-\d.]*(?:net\b|total\b|gross\b|summary)"
_DEDUCTION_SECTION = re.compile(
    _section_header(r"deductions?")
    + r"(?P<body>[\s\S]*?)(?="
    + _section_header(r"allowances?|earnings")
    + "|" + _SECTION_STOP + r"|\Z)",
    re.IGNORECASE | re.MULTILINE,
)
_ALLOWANCE_SECTION = re.compile(
    _section_header(r"allowances?")
    + r"(?P<body>[\s\S]*?)(?="
    + _section_header(r"deductions?|earnings")
    + "|" + _SECTION_STOP + r"|\Z)",
    re.IGNORECASE | re.MULTILINE,
)
_SECTION_ITEM = re.compile(
    r"^[ \t*\-•]*(?P<name>[A-Za-z][A-Za-z /&().'-]*?)[ \t]*:?\**[ \t]*" + _CURRENCY + r"[ \t]*" + _AMOUNT,
    re.IGNORECASE | re.MULTILINE,
)
_MARKUP = re.compile(r"[*<>]+")


class DocumentKind(str, Enum):
    IDENTITY_FRONT = "identity_front"
    IDENTITY_BACK = "identity_back"
    INCOME = "income"


def _clean(value: str) -> str:
    """Drop markdown emphasis and bullet characters left around a value"""
    return _MARKUP.sub("", value).strip()


def parse_amount(raw: str) -> float:
    """Parse a money string, ignoring thousands separators and currency markers; 0.0 if unparsable"""
    digits = re.sub(r"[^\d.]", "", raw or "")
    try:
        return float(digits)
    except ValueError:
        return 0.0


def _title(keyword: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in keyword.split())


def extract_field(text: str, keywords: Sequence[str]) -> str:
    """
    Find the value labelled by the first matching keyword.

    Two passes: a label-and-colon pattern that tolerates markdown bold
    ("**Employee Name:** Jane"), then a loose "keyword value" fallback
    capped at 50 characters. Returns "" when nothing matches.
    """
    for keyword in keywords:
        pattern = (
            r"(?i)(?:\*+\s*)?(?:employee\s+)?(?:employer/company\s+)?"
            + re.escape(keyword)
            + r"[\s/]*(?:name)?\s*:+\**\s*([^\n\r*]+)"
        )
        match = re.search(pattern, text)
        if match:
            return _clean(match.group(1))

    for keyword in keywords:
        match = re.search(r"(?i)" + re.escape(keyword) + r"[:\s-]*([^\n\r]{1,50})", text)
        if match:
            return _clean(match.group(1))

    return ""


def extract_amount(text: str, keywords: Sequence[str]) -> float:
    """Amount labelled by a keyword ("Gross Salary: KSh 50,000"); 0.0 when absent"""
    for keyword in keywords:
        pattern = (
            r"(?i)" + re.escape(keyword)
            + r"\s+(?:salary|pay|income)(?:\s+amount)?\s*:*\**\s*" + _CURRENCY + r"\s*" + _AMOUNT
        )
        match = re.search(pattern, text)
        if match:
            return parse_amount(match.group(1))

    for keyword in keywords:
        match = re.search(r"(?i)" + re.escape(keyword) + r"[:\s-]*" + _CURRENCY + r"\s*" + _AMOUNT, text)
        if match:
            return parse_amount(match.group(1))

    return 0.0


def extract_id_number(text: str) -> str:
    for pattern in _ID_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(match.lastindex or 0)
    return ""


def extract_date(text: str, keywords: Sequence[str]) -> str:
    """Raw date string following a keyword; formats are resolved later by the rules"""
    for keyword in keywords:
        pattern = (
            r"(?i)" + re.escape(keyword)
            + r"[:\s*-]*(\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[./-]\d{1,2}[./-]\d{2,4})"
        )
        match = re.search(pattern, text)
        if match:
            return match.group(1).strip()
    return ""


def normalize_pay_period(value: str) -> str:
    """
    "March-2025" / "march 2025" -> "2025-03".

    Anything without a month name is returned unchanged and left for
    validation to reject if it is not already YYYY-MM.
    """
    value = (value or "").strip()
    if not value:
        return ""

    match = _MONTH_YEAR.search(value)
    if not match:
        return value

    month = [m.lower() for m in MONTH_NAMES].index(match.group(1).lower()) + 1
    return f"{match.group(2)}-{month:02d}"


def _section_items(body: str) -> Dict[str, float]:
    items: Dict[str, float] = {}
    for match in _SECTION_ITEM.finditer(body):
        name = _clean(match.group("name"))
        amount = parse_amount(match.group(2))
        if name and amount > 0:
            items[name] = amount
    return items


def _keyword_items(text: str, keywords: Sequence[str]) -> Dict[str, float]:
    """Scan the whole text for known item names; overlapping hits count once"""
    items: Dict[str, float] = {}
    claimed: List[Tuple[int, int]] = []
    for keyword in keywords:
        pattern = r"(?i)" + re.escape(keyword) + r"[:\s]*" + _CURRENCY + r"\s*" + _AMOUNT
        match = re.search(pattern, text)
        if not match:
            continue
        start, end = match.span()
        if any(start < c_end and c_start < end for c_start, c_end in claimed):
            continue
        amount = parse_amount(match.group(1))
        if amount > 0:
            items[_title(keyword)] = amount
            claimed.append((start, end))
    return items


def extract_deductions(text: str) -> Dict[str, float]:
    """Items under a "Deductions" header, else known deduction keywords anywhere"""
    match = _DEDUCTION_SECTION.search(text)
    if match:
        return _section_items(match.group("body"))
    return _keyword_items(text, KNOWN_DEDUCTIONS)


def extract_allowances(text: str) -> Dict[str, float]:
    """Items under an "Allowances" header, else known allowance keywords anywhere"""
    match = _ALLOWANCE_SECTION.search(text)
    if match:
        return _section_items(match.group("body"))
    return _keyword_items(text, KNOWN_ALLOWANCES)


class FieldExtractor:
    """
    Parses one inference answer into one record.

    Parsing never raises: unmatched fields stay empty/zero and the record
    receives the low confidence constant.
    """

    def __init__(
        self,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        clock: Callable[[], date] = date.today,
    ):
        self.min_confidence = min_confidence
        self.clock = clock

    def extract(self, text: str, kind: DocumentKind):
        if kind == DocumentKind.INCOME:
            return self.extract_income(text)
        return self.extract_identity(text)

    def extract_identity(self, text: str) -> IdentityRecord:
        text = text or ""
        full_name = extract_field(text, IDENTITY_NAME_KEYWORDS)
        id_number = extract_id_number(text)

        record = IdentityRecord(
            full_name=full_name,
            id_number=id_number,
            date_of_birth=extract_date(text, DATE_OF_BIRTH_KEYWORDS),
            expiry_date=extract_date(text, EXPIRY_KEYWORDS),
            place_of_birth=extract_field(text, PLACE_OF_BIRTH_KEYWORDS),
            confidence=FOUND_CONFIDENCE if full_name and id_number else MISSING_CONFIDENCE,
        ).validate(self.min_confidence)

        logger.debug(
            "Identity extracted",
            extra={
                "text_length": len(text),
                "has_name": bool(full_name),
                "has_id_number": bool(id_number),
                "is_valid": record.is_valid,
            },
        )
        return record

    def extract_income(self, text: str) -> IncomeRecord:
        text = text or ""
        employee_name = extract_field(text, EMPLOYEE_KEYWORDS)
        gross_salary = extract_amount(text, GROSS_KEYWORDS)

        record = IncomeRecord(
            employee_name=employee_name,
            employer_name=extract_field(text, EMPLOYER_KEYWORDS),
            gross_salary=gross_salary,
            net_salary=extract_amount(text, NET_KEYWORDS),
            pay_period=normalize_pay_period(extract_field(text, PERIOD_KEYWORDS)),
            deductions=extract_deductions(text),
            allowances=extract_allowances(text),
            confidence=FOUND_CONFIDENCE if employee_name and gross_salary > 0 else MISSING_CONFIDENCE,
        ).validate(self.min_confidence, as_of=self.clock())

        logger.debug(
            "Income document extracted",
            extra={
                "text_length": len(text),
                "pay_period": record.pay_period,
                "deduction_count": len(record.deductions),
                "allowance_count": len(record.allowances),
                "is_valid": record.is_valid,
            },
        )
        return record

