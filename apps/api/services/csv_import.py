"""
Member CSV Parser & Field Mapper

Turns an owner-supplied roster export (Mindbody, PushPress, spreadsheets...)
into canonical member rows:

    name, email, status, join_date, cancel_date, monthly_rate

Two phases:
  - preview_csv(): detect the column mapping, validate a bounded sample,
    stream-count errors over the rest, and return a compact summary.
  - parse_all_rows(): validate every row with a caller-confirmed mapping
    (used at commit time, no truncation).

Row failures are data (RowError), never exceptions. Only structural
problems raise: EmptyFileError, MissingMappingError.

Quoted fields may contain commas, doubled quotes and line breaks; records
are read with the stdlib csv module rather than split per physical line.
"""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from core.exceptions import EmptyFileError, MissingMappingError


CANONICAL_FIELDS = ("name", "email", "status", "join_date", "cancel_date", "monthly_rate")
REQUIRED_FIELDS = ("name", "join_date")
UNMAPPED = -1

# First entry of each list is the canonical header (exact match -> "high").
FIELD_SYNONYMS: Dict[str, List[str]] = {
    "name": ["name", "member_name", "full_name", "member name", "full name", "client name"],
    "email": ["email", "email_address", "email address", "e-mail"],
    "status": ["status", "membership_status", "member_status", "membership status", "member status"],
    "join_date": ["join_date", "joined", "start_date", "join date", "start date", "member since"],
    "cancel_date": ["cancel_date", "cancelled", "end_date", "cancel date", "end date", "cancellation_date", "cancellation date"],
    "monthly_rate": ["monthly_rate", "rate", "price", "monthly_price", "monthly rate", "amount", "monthly price"],
}

CANCELLED_STATUSES = {
    "cancelled", "canceled", "inactive", "former", "dropped",
    "expired", "terminated", "left", "churned",
}

PREVIEW_SAMPLE_ROWS = 20
PREVIEW_ERRORS_PER_ROW = 3
PREVIEW_MAX_ERRORS = 100

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_STRIP_RE = re.compile(r"[<>{}]")
RATE_STRIP_RE = re.compile(r"[$€£,\s]")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_US_SLASH_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_US_DASH_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_EU_DOT_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_US_SHORT_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$")
_MONTH_FIRST_RE = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$")
_DAY_FIRST_RE = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]+)\.?,?\s+(\d{4})$")

# Last-resort formats, bounded to 1900-2099 like the rest of the cascade.
_FALLBACK_FORMATS = ("%Y/%m/%d", "%Y.%m.%d", "%Y%m%d", "%d %B %Y", "%B %Y")


@dataclass
class RowError:
    row: int
    field: str
    message: str
    value: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ParsedMember:
    """Canonical member shape shared by the CSV pipeline and Wodify sync."""

    name: str
    email: Optional[str]
    status: str
    join_date: str
    cancel_date: Optional[str]
    monthly_rate: str


@dataclass
class ValidationSummary:
    valid_rows: int = 0
    error_rows: int = 0
    error_count: int = 0
    errors: List[RowError] = field(default_factory=list)


@dataclass
class PreviewResult:
    headers: List[str]
    sample_rows: List[List[str]]
    total_rows: int
    mapping: Dict[str, int]
    confidence: Dict[str, str]
    validation: ValidationSummary
    file_hash: str
    duplicate_import: bool = False


@dataclass
class ImportResult:
    members: List[ParsedMember]
    errors: List[RowError]
    total_rows: int

    @property
    def error_count(self) -> int:
        return len(self.errors)


# ---------------------------------------------------------------------------
# Tokenizing
# ---------------------------------------------------------------------------

def read_records(text: str) -> List[Tuple[int, List[str]]]:
    """
    Tokenize CSV text into (line number, cells) pairs.

    The line number is the physical line the record starts on, so errors
    point at the right place even after blank lines. Blank records are
    dropped. Raises EmptyFileError when nothing remains.
    """
    if text is None or not text.strip():
        raise EmptyFileError("CSV file is empty")

    cleaned = text.lstrip("\ufeff").replace("\x00", "")
    reader = csv.reader(io.StringIO(cleaned))
    records = []
    start = 1
    for record in reader:
        if any(cell.strip() for cell in record):
            records.append((start, [cell.strip() for cell in record]))
        start = reader.line_num + 1
    if not records:
        raise EmptyFileError("CSV file is empty")
    return records


def parse_headers(text: str) -> Tuple[List[str], List[List[str]]]:
    """Split CSV text into a header row and data records."""
    records = read_records(text)
    return records[0][1], [cols for _, cols in records[1:]]


def compute_file_hash(text: str) -> str:
    """
    Fast rolling content hash (hash*31 + code point, 32-bit), base-36 with the
    text length appended. Not cryptographic: only used for the per-gym
    duplicate-upload warning.
    """
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return f"{_to_base36(h)}-{len(text)}"


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


# ---------------------------------------------------------------------------
# Mapping detection
# ---------------------------------------------------------------------------

def detect_mapping(headers: List[str]) -> Tuple[Dict[str, int], Dict[str, str]]:
    """
    Map each canonical field to a header index.

    Exact matches are resolved for all fields before any substring match, and
    a column claimed by one field is not offered to another.
    """
    normalized = [h.strip().lower() for h in headers]
    mapping = {f: UNMAPPED for f in CANONICAL_FIELDS}
    confidence = {f: "unmapped" for f in CANONICAL_FIELDS}
    used: set = set()

    for fname in CANONICAL_FIELDS:
        synonyms = FIELD_SYNONYMS[fname]
        for pos, synonym in enumerate(synonyms):
            if synonym in normalized:
                idx = normalized.index(synonym)
                if idx in used:
                    continue
                mapping[fname] = idx
                confidence[fname] = "high" if pos == 0 else "medium"
                used.add(idx)
                break

    for fname in CANONICAL_FIELDS:
        if mapping[fname] != UNMAPPED:
            continue
        for idx, header in enumerate(normalized):
            if idx in used:
                continue
            if any(synonym in header for synonym in FIELD_SYNONYMS[fname]):
                mapping[fname] = idx
                confidence[fname] = "low"
                used.add(idx)
                break

    return mapping, confidence


def merge_mapping(
    detected: Dict[str, int],
    override: Optional[Dict[str, int]],
) -> Dict[str, int]:
    merged = dict(detected)
    for fname, idx in (override or {}).items():
        if fname in CANONICAL_FIELDS and idx is not None:
            merged[fname] = int(idx)
    return merged


# ---------------------------------------------------------------------------
# Value normalization
# ---------------------------------------------------------------------------

def _safe_date(year: int, month: int, day: int) -> Optional[str]:
    if not 1900 <= year <= 2099:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month_number(word: str) -> Optional[int]:
    w = word.lower()
    if w.startswith("sept"):
        return 9
    return MONTHS.get(w[:3])


def parse_date(value: Optional[str]) -> Optional[str]:
    """
    Normalize a date string to YYYY-MM-DD, or None.

    Cascade: ISO, MM/DD/YYYY, MM-DD-YYYY, DD.MM.YYYY, MM/DD/YY (yy > 50 is
    19xx), "Jan 5, 2024", "5 Jan 2024", then a few strptime fallbacks.
    A value that matches a numeric pattern but names an impossible date
    is rejected outright.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    m = _ISO_RE.match(s)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _US_SLASH_RE.match(s) or _US_DASH_RE.match(s)
    if m:
        return _safe_date(int(m.group(3)), int(m.group(1)), int(m.group(2)))

    m = _EU_DOT_RE.match(s)
    if m:
        return _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))

    m = _US_SHORT_RE.match(s)
    if m:
        yy = int(m.group(3))
        year = 1900 + yy if yy > 50 else 2000 + yy
        return _safe_date(year, int(m.group(1)), int(m.group(2)))

    m = _MONTH_FIRST_RE.match(s)
    if m:
        month = _month_number(m.group(1))
        if month:
            return _safe_date(int(m.group(3)), month, int(m.group(2)))

    m = _DAY_FIRST_RE.match(s)
    if m:
        month = _month_number(m.group(2))
        if month:
            return _safe_date(int(m.group(3)), month, int(m.group(1)))

    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
        return _safe_date(parsed.year, parsed.month, parsed.day)
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            parsed = datetime.strptime(s, fmt)
        except ValueError:
            continue
        return _safe_date(parsed.year, parsed.month, parsed.day)

    return None


def normalize_status(value: Optional[str]) -> str:
    # Frozen / paused / on hold stay "active": they still hold a membership.
    if value and value.strip().lower() in CANCELLED_STATUSES:
        return "cancelled"
    return "active"


def parse_rate(value: Optional[str]) -> str:
    """Strip currency noise; never fails (bad input -> "0")."""
    if not value:
        return "0"
    cleaned = RATE_STRIP_RE.sub("", value)
    try:
        rate = float(cleaned)
    except ValueError:
        return "0"
    if rate != rate or rate in (float("inf"), float("-inf")):
        return "0"
    return f"{max(rate, 0.0):.2f}"


def _cell(cols: List[str], idx: int) -> str:
    if idx is None or idx < 0 or idx >= len(cols):
        return ""
    return (cols[idx] or "").strip()


def normalize_and_validate_row(
    cols: List[str],
    mapping: Dict[str, int],
    row_number: int,
) -> Tuple[Optional[ParsedMember], List[RowError]]:
    """Validate one record. Any hard error means no member for this row."""
    errors: List[RowError] = []

    name = NAME_STRIP_RE.sub("", _cell(cols, mapping.get("name", UNMAPPED))).strip()
    if not name:
        errors.append(RowError(row=row_number, field="name", message="Name is required"))

    raw_join = _cell(cols, mapping.get("join_date", UNMAPPED))
    join_date = parse_date(raw_join)
    if not raw_join:
        errors.append(RowError(row=row_number, field="join_date", message="Join date is required"))
    elif join_date is None:
        errors.append(RowError(row=row_number, field="join_date", message="Unrecognized date format", value=raw_join))

    raw_cancel = _cell(cols, mapping.get("cancel_date", UNMAPPED))
    cancel_date = None
    if raw_cancel:
        cancel_date = parse_date(raw_cancel)
        if cancel_date is None:
            errors.append(RowError(row=row_number, field="cancel_date", message="Unrecognized date format", value=raw_cancel))
        elif join_date and cancel_date < join_date:
            errors.append(RowError(row=row_number, field="cancel_date", message="Cancel date is before join date", value=raw_cancel))

    raw_email = _cell(cols, mapping.get("email", UNMAPPED))
    email = None
    if raw_email:
        if EMAIL_RE.match(raw_email):
            email = raw_email.lower()
        else:
            errors.append(RowError(row=row_number, field="email", message="Invalid email address", value=raw_email))

    if errors:
        return None, errors

    status = normalize_status(_cell(cols, mapping.get("status", UNMAPPED)))
    monthly_rate = parse_rate(_cell(cols, mapping.get("monthly_rate", UNMAPPED)))

    return ParsedMember(
        name=name,
        email=email,
        status=status,
        join_date=join_date,
        cancel_date=cancel_date,
        monthly_rate=monthly_rate,
    ), []


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

def preview_csv(
    text: str,
    override_mapping: Optional[Dict[str, int]] = None,
    previous_hashes: Optional[set] = None,
) -> PreviewResult:
    """
    Phase 1. The first PREVIEW_SAMPLE_ROWS rows are returned and fully
    validated; the remainder only keeps the first few errors per row.
    """
    (_, headers), *numbered = read_records(text)
    records = [cols for _, cols in numbered]
    detected, confidence = detect_mapping(headers)
    mapping = merge_mapping(detected, override_mapping)
    for fname, idx in (override_mapping or {}).items():
        if fname in confidence and idx is not None:
            confidence[fname] = "manual" if idx >= 0 else "unmapped"

    summary = ValidationSummary()
    for offset, (row_number, cols) in enumerate(numbered):
        member, errors = normalize_and_validate_row(cols, mapping, row_number)
        if member is not None:
            summary.valid_rows += 1
            continue
        if offset >= PREVIEW_SAMPLE_ROWS:
            errors = errors[:PREVIEW_ERRORS_PER_ROW]
        summary.error_rows += 1
        summary.error_count += len(errors)
        room = PREVIEW_MAX_ERRORS - len(summary.errors)
        if room > 0:
            summary.errors.extend(errors[:room])

    file_hash = compute_file_hash(text)
    return PreviewResult(
        headers=headers,
        sample_rows=records[:PREVIEW_SAMPLE_ROWS],
        total_rows=len(records),
        mapping=mapping,
        confidence=confidence,
        validation=summary,
        file_hash=file_hash,
        duplicate_import=bool(previous_hashes and file_hash in previous_hashes),
    )


def require_complete_mapping(mapping: Dict[str, int]) -> None:
    for fname in REQUIRED_FIELDS:
        idx = mapping.get(fname)
        if idx is None or idx < 0:
            raise MissingMappingError(fname)


def parse_all_rows(text: str, mapping: Dict[str, int]) -> ImportResult:
    """Phase 2. Validates every row; raises before any row work if unusable."""
    require_complete_mapping(mapping)
    records = read_records(text)[1:]

    members: List[ParsedMember] = []
    errors: List[RowError] = []
    for row_number, cols in records:
        member, row_errors = normalize_and_validate_row(cols, mapping, row_number)
        if member is not None:
            members.append(member)
        errors.extend(row_errors)

    return ImportResult(members=members, errors=errors, total_rows=len(records))
