from io import BytesIO

import pandas as pd
import pytest

from parcel_audit.config import Settings
from parcel_audit.domain.errors import InputFileError
from parcel_audit.domain.models import SourceFile
from parcel_audit.infrastructure.parsing.tabular import (
    HeaderDetection,
    locate_header,
    read_csv_records,
    read_tabular,
    score_header,
)

POSTALMATE_PREAMBLE = [
    "PostalMate Shipment Report",
    "Store 123",
    "",
    "Date Range: 01/01/2024 - 01/31/2024",
    "Printed by: clerk",
    "",
    "Page 1 of 1",
    "Totals, 3",
    "",
]


def test_fixed_offset_skips_nine_preamble_lines():
    text = "\n".join(
        POSTALMATE_PREAMBLE
        + [
            "Date,Tracking #,PostalMate,Customer",
            "01/05/2024,1Z1,15.00,Smith",
            "01/05/2024,1Z2,$7.25,Jones",
            "01/06/2024,1Z3,(2.00),Lee",
        ]
    )

    records = read_csv_records(text, HeaderDetection.FIXED_OFFSET)

    assert len(records) == 3
    assert [r["Tracking #"] for r in records] == ["1Z1", "1Z2", "1Z3"]
    assert records[1]["PostalMate"] == "$7.25"
    assert records[2]["Customer"] == "Lee"


def test_sniff_finds_header_below_title_block():
    text = "\n".join(
        [
            "UPS Billing Detail",
            "Account,12345",
            "",
            "Tracking Number,Service,Ship Date,Delivery Date,Billed Charge",
            "1Z1,UPS Ground,01/02/2024,01/05/2024,10.00",
            "1Z2,UPS Ground,01/02/2024,01/06/2024,12.00",
        ]
    )

    records = read_csv_records(text, HeaderDetection.SNIFF)

    assert [r["Tracking Number"] for r in records] == ["1Z1", "1Z2"]


def test_sniff_falls_back_to_first_line():
    rows = [["Alpha", "Beta"], ["1", "2"]]
    assert locate_header(rows, HeaderDetection.SNIFF) == 0


def test_score_header_counts_distinct_concepts():
    assert score_header(["Tracking #", "Service", "Net Charges"]) == 3
    assert score_header(["Store 123"]) == 0


def test_first_line_skips_leading_blank_lines():
    records = read_csv_records("\n\nTracking Number,Billed Charge\n1Z1,5.00\n")
    assert records == [{"Tracking Number": "1Z1", "Billed Charge": "5.00"}]


def test_blank_rows_are_dropped():
    records = read_csv_records("a,b\n1,2\n,\n\n3,4\n")
    assert [r["a"] for r in records] == ["1", "3"]


def test_ragged_rows_are_skipped_not_fatal():
    text = "Tracking Number,Billed Charge\n1Z1,5.00\n1Z2,1.00,EXTRA,MORE\n1Z3,2.00\n"
    records = read_csv_records(text)
    assert [r["Tracking Number"] for r in records] == ["1Z1", "1Z3"]


def test_stray_quote_inside_cell_does_not_abort():
    text = 'Tracking Number,Description,Billed Charge\n1Z1,12" box,5.00\n1Z2,plain,3.00\n'
    records = read_csv_records(text)
    assert [r["Tracking Number"] for r in records] == ["1Z1", "1Z2"]


def test_unterminated_quote_only_loses_its_own_line():
    text = "\n".join(
        [
            '"Tracking Number","Description","Billed Charge"',
            '"1Z1","Ground","$1,010.00"',
            '"1Z2","12"" box","5.00"',
            '"1Z3","unterminated,3.00',
            '"1Z4","plain","7.00"',
        ]
    )

    records = {r["Tracking Number"]: r for r in read_csv_records(text)}

    assert list(records) == ["1Z1", "1Z2", "1Z4"]
    assert records["1Z1"]["Billed Charge"] == "$1,010.00"
    assert records["1Z2"]["Description"] == '12" box'
    assert records["1Z4"]["Billed Charge"] == "7.00"


def test_headers_are_trimmed():
    records = read_csv_records(" Tracking Number , Billed Charge \n1Z1,5.00\n")
    assert "Tracking Number" in records[0]


def test_empty_file_yields_no_records():
    assert read_csv_records("") == []


def test_custom_preamble_length():
    text = "junk\njunk\nTracking Number,Billed Charge\n1Z1,5.00\n"
    records = read_csv_records(text, HeaderDetection.FIXED_OFFSET, Settings(preamble_lines=2))
    assert records[0]["Tracking Number"] == "1Z1"


def test_workbook_upload_uses_same_header_detection():
    grid = [
        ["Billing Report", ""],
        ["", ""],
        ["Tracking Number", "Billed Charge"],
        ["1Z1", "5.00"],
    ]
    buffer = BytesIO()
    pd.DataFrame(grid).to_excel(buffer, header=False, index=False, engine="openpyxl")

    records = read_tabular(SourceFile("invoice.xlsx", buffer.getvalue()), HeaderDetection.SNIFF)

    assert records == [{"Tracking Number": "1Z1", "Billed Charge": "5.00"}]


def test_unreadable_workbook_raises_input_error():
    with pytest.raises(InputFileError):
        read_tabular(SourceFile("broken.xlsx", b"not a workbook"))


def test_latin1_bytes_are_decoded():
    content = "Tracking Number,Recipient\n1Z1,Jos\xe9\n".encode("latin-1")
    records = read_tabular(SourceFile("ups.csv", content))
    assert records[0]["Recipient"] == "Jos\xe9"
