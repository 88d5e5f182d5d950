import io
import json

import pandas as pd
import pytest

from BatteryHealthEngine.config import Config
from BatteryHealthEngine.core.data_loader import UniversalBatteryLoader
from BatteryHealthEngine.core.exceptions import InvalidFileHandleError, UnsupportedFormatError


RECORDS = [
    {"Cycle": 1, "Voltage": 4.2, "Current": -1.0, "Capacity": 2500},
    {"Cycle": 1, "Voltage": 3.0, "Current": 1.0, "Capacity": 1000},
    {"Cycle": 2, "Voltage": 4.1, "Current": -1.0, "Capacity": 2450},
]


@pytest.fixture
def loader():
    return UniversalBatteryLoader(Config())


def test_comma_separated_with_header(loader, basic_csv):
    warnings = []
    table = loader.load(basic_csv, 'cell.csv', warnings)

    assert table.format_name == 'delimited'
    assert table.delimiter == ','
    assert table.header_row == 0
    assert list(table.frame.columns) == ['Cycle', 'Voltage', 'Current', 'Capacity']
    assert len(table.frame) == 4
    assert table.size_bytes == len(basic_csv)
    assert warnings == []


@pytest.mark.parametrize("delimiter", [';', '\t', '|', ' '])
def test_delimiter_detection(loader, delimiter):
    lines = [
        ['Cycle', 'Voltage', 'Current', 'Capacity'],
        ['1', '4.2', '-1.0', '2500'],
        ['1', '3.0', '1.0', '1000'],
    ]
    text = '\n'.join(delimiter.join(line) for line in lines)

    table = loader.load(text.encode('utf-8'), 'cell.txt', [])

    assert table.delimiter == delimiter
    assert list(table.frame.columns) == ['Cycle', 'Voltage', 'Current', 'Capacity']
    assert table.frame['Capacity'].tolist() == ['2500', '1000']


def test_detect_delimiter_needs_more_than_one_field():
    assert UniversalBatteryLoader.detect_delimiter('a,b;c;d') == ';'
    assert UniversalBatteryLoader.detect_delimiter('a,b') == ','
    assert UniversalBatteryLoader.detect_delimiter('single') is None


def test_preamble_lines_are_skipped(loader):
    text = (
        "Test Name: Cell A\n"
        "Operator: QA Lab\n"
        "Cycle,Voltage,Current,Capacity\n"
        "1,4.2,-1.0,2500\n"
        "1,3.0,1.0,1000\n"
    )
    warnings = []
    table = loader.load(text.encode('utf-8'), 'cell.csv', warnings)

    assert table.header_row == 2
    assert table.delimiter == ','
    assert list(table.frame.columns) == ['Cycle', 'Voltage', 'Current', 'Capacity']
    assert len(table.frame) == 2
    assert "Skipped 2 preamble line(s) before the header row" in warnings


def test_headerless_file_gets_positional_column_names(loader):
    text = "1,4.2,-1.0,2500\n1,3.0,1.0,1000\n2,4.1,-1.0,2450\n"
    warnings = []
    table = loader.load(text, 'raw.csv', warnings)

    assert table.header_row is None
    assert table.delimiter == ','
    assert list(table.frame.columns) == ['column_0', 'column_1', 'column_2', 'column_3']
    assert len(table.frame) == 3
    assert warnings == ["No header row detected; columns named column_0..N"]


def test_json_array(loader):
    table = loader.load(json.dumps(RECORDS).encode('utf-8'), 'cell.json', [])

    assert table.format_name == 'json'
    assert list(table.frame.columns) == ['Cycle', 'Voltage', 'Current', 'Capacity']
    assert len(table.frame) == 3


def test_json_object_with_data_list(loader):
    content = json.dumps({"battery": "A1", "data": RECORDS})
    table = loader.load(content, 'cell.json', [])

    assert table.format_name == 'json'
    assert len(table.frame) == 3
    assert table.frame['Capacity'].tolist() == [2500, 1000, 2450]


def test_json_single_record(loader):
    table = loader.load('{"Cycle": 1, "Voltage": 3.7}', 'one.json', [])

    assert table.format_name == 'json'
    assert len(table.frame) == 1


def test_xml_records(loader):
    rows = ''.join(
        f"<record><Cycle>{r['Cycle']}</Cycle><Voltage>{r['Voltage']}</Voltage>"
        f"<Current>{r['Current']}</Current><Capacity>{r['Capacity']}</Capacity></record>"
        for r in RECORDS
    )
    content = f'<?xml version="1.0"?><data>{rows}</data>'

    table = loader.load(content.encode('utf-8'), 'cell.xml', [])

    assert table.format_name == 'xml'
    assert list(table.frame.columns) == ['Cycle', 'Voltage', 'Current', 'Capacity']
    assert len(table.frame) == 3


def test_excel_picks_largest_sheet(loader):
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        pd.DataFrame({'Key': ['Operator'], 'Value': ['QA']}).to_excel(writer, sheet_name='Info', index=False)
        pd.DataFrame(RECORDS).to_excel(writer, sheet_name='Data', index=False)

    table = loader.load(buffer.getvalue(), 'cell.xlsx', [])

    assert table.format_name == 'excel'
    assert table.header_row == 0
    assert list(table.frame.columns) == ['Cycle', 'Voltage', 'Current', 'Capacity']
    assert len(table.frame) == 3


def test_cp949_content_warns_about_encoding(loader):
    text = "Cycle,Voltage,Current,Capacity,비고\n1,4.2,-1.0,2500,정상\n"
    warnings = []
    table = loader.load(text.encode('cp949'), 'cell.csv', warnings)

    assert len(table.frame) == 1
    assert table.frame.columns[-1] == '비고'
    assert warnings == ["Encoding artifacts: file is not UTF-8, decoded as cp949"]


def test_replacement_characters_are_reported(loader):
    text = "Cycle,Voltage,Current,Capacity\n1,4.2,-1.0,2500\ufffd\n"
    warnings = []
    loader.load(text, 'cell.csv', warnings)

    assert "Encoding artifacts: replacement characters found in text" in warnings


def test_large_file_warning():
    loader = UniversalBatteryLoader(Config(LARGE_FILE_BYTES=16))
    warnings = []
    loader.load(b"Cycle,Voltage,Current\n1,4.2,-1.0\n", 'big.csv', warnings)

    assert any(w.startswith("Large file") for w in warnings)


@pytest.mark.parametrize("content", [None, 42, ['Cycle,Voltage']])
def test_invalid_content_raises(loader, content):
    with pytest.raises(InvalidFileHandleError):
        loader.load(content, 'cell.csv', [])


@pytest.mark.parametrize("content", [b'', b'   \n\n  '])
def test_empty_content_is_unsupported(loader, content):
    with pytest.raises(UnsupportedFormatError):
        loader.load(content, 'empty.csv', [])
