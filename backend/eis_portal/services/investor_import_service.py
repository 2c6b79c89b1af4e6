# Overview: Investor list import; maps free-form spreadsheet headers onto investor records.

"""
Investor Import Normalizer

Ops upload the investor list for a round as CSV or Excel. Every firm names
its columns differently, so each header is lower-cased, trimmed and looked
up in COLUMN_ALIASES. The output is a list of canonical investor dicts that
the deal creation form posts back to POST /api/deals.

RULES:
- Rows with neither name nor amount_subscribed are blank separators: skipped
- Rows missing name or amount_subscribed are rejected with an error naming
  the spreadsheet row (header row is row 1, so data row i is row i + 2)
- Errors are collected for the whole file, never fail-fast
- Nothing is persisted here
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from dateutil import parser as date_parser


class InvestorImportError(ValueError):
    """Raised when an upload cannot be read at all."""


CANONICAL_FIELDS = (
    "name",
    "address_line1",
    "address_line2",
    "city",
    "postcode",
    "country",
    "shares_issued",
    "amount_subscribed",
    "share_issue_date",
    "share_class",
)

COLUMN_ALIASES: dict[str, str] = {
    "investor name": "name",
    "full name": "name",
    "investor": "name",
    "address line 1": "address_line1",
    "address1": "address_line1",
    "address 1": "address_line1",
    "street": "address_line1",
    "address line 2": "address_line2",
    "address2": "address_line2",
    "address 2": "address_line2",
    "apt": "address_line2",
    "unit": "address_line2",
    "town": "city",
    "postal code": "postcode",
    "zip": "postcode",
    "zip code": "postcode",
    "shares": "shares_issued",
    "number of shares": "shares_issued",
    "shares issued": "shares_issued",
    "amount": "amount_subscribed",
    "amount subscribed": "amount_subscribed",
    "subscription": "amount_subscribed",
    "investment": "amount_subscribed",
    "share issue date": "share_issue_date",
    "issue date": "share_issue_date",
    "date": "share_issue_date",
    "share class": "share_class",
    "class": "share_class",
}

# Canonical names written as headers, in either camelCase or snake_case
for _canonical in CANONICAL_FIELDS:
    COLUMN_ALIASES.setdefault(_canonical, _canonical)
    COLUMN_ALIASES.setdefault(_canonical.replace("_", ""), _canonical)

DEFAULT_COUNTRY = "United Kingdom"
DEFAULT_SHARE_CLASS = "Ordinary"

# Spreadsheet day 25569 is 1970-01-01 (serials count days from 1899-12-30)
EXCEL_EPOCH_OFFSET_DAYS = 25569
MAX_REPORTED_ERRORS = 3

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_UK_DATE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
_NUMERIC = re.compile(r"^\d+(\.\d+)?$")


@dataclass
class ImportResult:
    investors: list[dict[str, str]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.investors)

    def summary_message(self) -> str | None:
        """
        Human-readable outcome for the upload form.

        - no errors: None
        - errors and nothing imported: every error, one per line
        - partial success: count imported, first three errors, overflow count
        """
        if not self.errors:
            return None
        if not self.investors:
            return "\n".join(self.errors)

        lines = [f"Imported {self.imported_count} investors. Some rows had issues:"]
        lines.extend(self.errors[:MAX_REPORTED_ERRORS])
        overflow = len(self.errors) - MAX_REPORTED_ERRORS
        if overflow > 0:
            lines.append(f"...and {overflow} more")
        return "\n".join(lines)

    def total_amount_subscribed(self) -> float:
        total = 0.0
        for inv in self.investors:
            try:
                total += float(inv["amount_subscribed"].replace(",", "").replace("£", ""))
            except ValueError:
                continue
        return total

    def to_dict(self) -> dict:
        return {
            "investors": self.investors,
            "errors": self.errors,
            "imported_count": self.imported_count,
            "total_amount_subscribed": self.total_amount_subscribed(),
            "message": self.summary_message(),
        }


def normalize_header(header: Any) -> str:
    """Map a raw header onto its canonical field; unknown headers come back lower-cased."""
    lower = str(header if header is not None else "").strip().lower()
    return COLUMN_ALIASES.get(lower, lower)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _serial_to_iso(serial: float) -> str:
    seconds = (serial - EXCEL_EPOCH_OFFSET_DAYS) * 86400
    moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=seconds)
    return moment.date().isoformat()


def parse_date(value: Any) -> str:
    """
    Best-effort conversion of a spreadsheet date cell to "YYYY-MM-DD".

    Tried in order: ISO pass-through, UK DD/MM/YYYY or DD-MM-YYYY, spreadsheet
    serial number, native date cells, generic dateutil parse. Returns "" when
    nothing parses so the caller can fall back to the deal's investment date.
    """
    if value is None or value == "":
        return ""

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, bool):
        return ""

    if isinstance(value, (int, float)):
        try:
            return _serial_to_iso(float(value))
        except (ValueError, OverflowError):
            return ""

    text = str(value).strip()
    if not text:
        return ""

    if _ISO_DATE.match(text):
        return text

    uk = _UK_DATE.match(text)
    if uk:
        day, month, year = uk.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    if _NUMERIC.match(text):
        try:
            return _serial_to_iso(float(text))
        except (ValueError, OverflowError):
            return ""

    try:
        return date_parser.parse(text, dayfirst=True).date().isoformat()
    except (ValueError, OverflowError):
        return ""


def normalize_rows(rows: Iterable[dict[str, Any]], default_date: str | None = None) -> ImportResult:
    """
    Turn raw spreadsheet rows into canonical investor records.

    Args:
        rows: one mapping per data row, header text -> raw cell value
        default_date: "YYYY-MM-DD" used when a row has no parseable issue date
                      (normally the deal's investment date)
    """
    result = ImportResult()
    fallback_date = default_date or ""

    for index, raw_row in enumerate(rows):
        row_number = index + 2

        normalized: dict[str, str] = {}
        raw_date: Any = None
        for header, value in (raw_row or {}).items():
            key = normalize_header(header)
            normalized[key] = _cell_text(value)
            if key == "share_issue_date":
                raw_date = value

        name = normalized.get("name", "")
        amount = normalized.get("amount_subscribed", "")

        if not name and not amount:
            continue
        if not name:
            result.errors.append(f"Row {row_number}: Missing investor name")
            continue
        if not amount:
            result.errors.append(f"Row {row_number}: Missing amount subscribed")
            continue

        result.investors.append({
            "name": name,
            "address_line1": normalized.get("address_line1", ""),
            "address_line2": normalized.get("address_line2", ""),
            "city": normalized.get("city", ""),
            "postcode": normalized.get("postcode", ""),
            "country": normalized.get("country") or DEFAULT_COUNTRY,
            "shares_issued": normalized.get("shares_issued", ""),
            "amount_subscribed": amount,
            "share_issue_date": parse_date(raw_date) or fallback_date,
            "share_class": normalized.get("share_class") or DEFAULT_SHARE_CLASS,
        })

    return result


def read_upload(filename: str, stream) -> list[dict[str, Any]]:
    """
    Parse an uploaded CSV or Excel workbook into raw rows (active sheet only).

    Raises InvestorImportError for unsupported extensions, unreadable files
    and files without data rows.
    """
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""

    if ext == "csv":
        try:
            text = stream.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise InvestorImportError("Failed to read file: CSV must be UTF-8 encoded")
        reader = csv.DictReader(io.StringIO(text))
        rows = [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]
    elif ext in {"xlsx", "xlsm", "xltx", "xltm"}:
        from openpyxl import load_workbook
        from openpyxl.utils.exceptions import InvalidFileException
        from zipfile import BadZipFile

        try:
            wb = load_workbook(io.BytesIO(stream.read()), data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
            raise InvestorImportError(f"Failed to read file: {e}")
        sheet = wb.active
        data = list(sheet.iter_rows(values_only=True))
        if not data:
            rows = []
        else:
            headers = [str(h) if h is not None else "" for h in data[0]]
            rows = [
                {headers[i]: row[i] for i in range(min(len(headers), len(row))) if headers[i]}
                for row in data[1:]
                if any(cell not in (None, "") for cell in row)
            ]
    else:
        raise InvestorImportError("Please upload a CSV or Excel file (.csv, .xlsx)")

    if not rows:
        raise InvestorImportError("No data found in file")
    return rows
