"""
Investor spreadsheet import tests.

Pure transform tests for header mapping, date parsing and row validation,
plus CSV/Excel reading.
"""

import io
from datetime import date, datetime

import pytest
from openpyxl import Workbook

from eis_portal.services.investor_import_service import (
    ImportResult,
    InvestorImportError,
    normalize_header,
    normalize_rows,
    parse_date,
    read_upload,
)


# =============================================================================
# HEADERS
# =============================================================================


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Investor Name", "name"),
        ("  FULL NAME ", "name"),
        ("Postal Code", "postcode"),
        ("Zip", "postcode"),
        ("Amount", "amount_subscribed"),
        ("Investment", "amount_subscribed"),
        ("Number of Shares", "shares_issued"),
        ("Issue Date", "share_issue_date"),
        ("Class", "share_class"),
        ("Street", "address_line1"),
        ("Apt", "address_line2"),
        ("Town", "city"),
        ("amountSubscribed", "amount_subscribed"),
        ("share_issue_date", "share_issue_date"),
        ("Email", "email"),
    ],
)
def test_normalize_header(header, expected):
    assert normalize_header(header) == expected


# =============================================================================
# DATES
# =============================================================================


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2025-01-15", "2025-01-15"),
        ("15/01/2025", "2025-01-15"),
        ("1-2-2025", "2025-02-01"),
        (45672, "2025-01-15"),
        ("45672", "2025-01-15"),
        (45672.75, "2025-01-15"),
        (date(2025, 3, 1), "2025-03-01"),
        (datetime(2025, 3, 1, 10, 45), "2025-03-01"),
        ("3 March 2025", "2025-03-03"),
        ("not a date", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_parse_date(value, expected):
    assert parse_date(value) == expected


def test_serial_one_is_day_after_excel_epoch():
    # Serial days count from 1899-12-30
    assert parse_date(1) == "1899-12-31"


# =============================================================================
# ROWS
# =============================================================================


def test_minimal_row_gets_defaults():
    rows = [{"Investor Name": "Jane Doe", "Amount": "25000", "Postal Code": "SW1A 1AA"}]

    result = normalize_rows(rows, default_date="2025-01-10")

    assert result.errors == []
    assert result.investors == [{
        "name": "Jane Doe",
        "address_line1": "",
        "address_line2": "",
        "city": "",
        "postcode": "SW1A 1AA",
        "country": "United Kingdom",
        "shares_issued": "",
        "amount_subscribed": "25000",
        "share_issue_date": "2025-01-10",
        "share_class": "Ordinary",
    }]


def test_row_date_overrides_default():
    rows = [{"Name": "Jane Doe", "Amount": "100", "Date": "15/01/2025"}]

    result = normalize_rows(rows, default_date="2025-01-10")

    assert result.investors[0]["share_issue_date"] == "2025-01-15"


def test_unparseable_date_falls_back_to_default():
    rows = [{"Name": "Jane Doe", "Amount": "100", "Date": "sometime"}]

    result = normalize_rows(rows, default_date="2025-01-10")

    assert result.investors[0]["share_issue_date"] == "2025-01-10"


def test_values_are_stringified_and_trimmed():
    rows = [{"Name": "  Jane Doe ", "Amount": 25000.0, "Shares": 500, "Country": " Ireland "}]

    inv = normalize_rows(rows).investors[0]

    assert inv["name"] == "Jane Doe"
    assert inv["amount_subscribed"] == "25000"
    assert inv["shares_issued"] == "500"
    assert inv["country"] == "Ireland"


def test_missing_amount_reports_row_number_and_keeps_valid_rows():
    rows = [
        {"Name": "Jane Doe", "Amount": "25000"},
        {"Name": "John Roe", "Amount": ""},
        {"Name": "Ann Poe", "Amount": "5000"},
    ]

    result = normalize_rows(rows)

    assert [inv["name"] for inv in result.investors] == ["Jane Doe", "Ann Poe"]
    assert result.errors == ["Row 3: Missing amount subscribed"]


def test_missing_name_is_reported():
    result = normalize_rows([{"Name": "", "Amount": "100"}])

    assert result.investors == []
    assert result.errors == ["Row 2: Missing investor name"]


def test_blank_rows_are_skipped_silently():
    rows = [
        {"Name": "", "Amount": "", "City": "Leeds"},
        {"Name": "Jane Doe", "Amount": "100"},
    ]

    result = normalize_rows(rows)

    assert result.errors == []
    assert len(result.investors) == 1


# =============================================================================
# SUMMARY
# =============================================================================


def test_summary_is_none_without_errors():
    assert ImportResult(investors=[{"amount_subscribed": "1"}]).summary_message() is None


def test_summary_lists_every_error_when_nothing_imported():
    result = ImportResult(errors=["Row 2: Missing investor name", "Row 3: Missing investor name"])

    assert result.summary_message() == "Row 2: Missing investor name\nRow 3: Missing investor name"


def test_summary_partial_success_shows_three_errors_and_overflow():
    rows = [{"Name": "Jane Doe", "Amount": "100"}]
    rows += [{"Name": f"Investor {i}", "Amount": ""} for i in range(5)]

    message = normalize_rows(rows).summary_message()

    assert message.splitlines() == [
        "Imported 1 investors. Some rows had issues:",
        "Row 3: Missing amount subscribed",
        "Row 4: Missing amount subscribed",
        "Row 5: Missing amount subscribed",
        "...and 2 more",
    ]


def test_total_amount_subscribed():
    rows = [
        {"Name": "A", "Amount": "25,000"},
        {"Name": "B", "Amount": "£1,500.50"},
    ]

    assert normalize_rows(rows).total_amount_subscribed() == pytest.approx(26500.50)


# =============================================================================
# FILE READING
# =============================================================================


def test_read_csv():
    data = b"Investor Name,Amount,Postal Code\nJane Doe,25000,SW1A 1AA\n"

    rows = read_upload("investors.csv", io.BytesIO(data))

    assert rows == [{"Investor Name": "Jane Doe", "Amount": "25000", "Postal Code": "SW1A 1AA"}]


def test_read_csv_with_bom():
    data = "\ufeffName,Amount\nJane Doe,100\n".encode("utf-8")

    rows = read_upload("investors.CSV", io.BytesIO(data))

    assert rows[0]["Name"] == "Jane Doe"


def test_read_xlsx():
    wb = Workbook()
    ws = wb.active
    ws.append(["Investor Name", "Amount", "Issue Date"])
    ws.append(["Jane Doe", 25000, datetime(2025, 1, 15)])
    ws.append([None, None, None])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)

    rows = read_upload("investors.xlsx", buf)
    result = normalize_rows(rows, default_date="2025-01-10")

    assert len(rows) == 1
    assert result.investors[0]["amount_subscribed"] == "25000"
    assert result.investors[0]["share_issue_date"] == "2025-01-15"


def test_header_only_file_has_no_data():
    with pytest.raises(InvestorImportError, match="No data found in file"):
        read_upload("investors.csv", io.BytesIO(b"Name,Amount\n"))


@pytest.mark.parametrize("filename", ["investors.pdf", "investors", "investors.json"])
def test_unsupported_extension(filename):
    with pytest.raises(InvestorImportError):
        read_upload(filename, io.BytesIO(b"whatever"))


def test_corrupt_workbook():
    with pytest.raises(InvestorImportError, match="Failed to read file"):
        read_upload("investors.xlsx", io.BytesIO(b"not a zip"))
