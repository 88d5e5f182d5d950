import json
from pathlib import Path

import numpy as np
import pytest

from BatteryHealthEngine.reports.report_generator import BatteryReportGenerator, deep_convert


def test_deep_convert_numpy_values():
    data = {'a': np.int64(3), 'b': [np.float32(1.5), np.bool_(True)], 'c': np.arange(2)}

    assert deep_convert(data) == {'a': 3, 'b': [1.5, True], 'c': [0, 1]}


def test_json_and_html_reports(parser, basic_csv, tmp_path):
    result = parser.parse(basic_csv, 'cell-01.csv')
    generator = BatteryReportGenerator(output_dir=str(tmp_path))

    paths = generator.generate_report(result, 'both')

    assert [Path(p).name for p in paths] == ['battery_report_BAT-CELL-01.json',
                                             'battery_report_BAT-CELL-01.html']
    with open(paths[0], encoding='utf-8') as f:
        report = json.load(f)
    assert report['summary']['id'] == 'BAT-CELL-01'
    assert report['summary']['sohHistory'] == [{'cycle': 1, 'soh': 100.0}, {'cycle': 2, 'soh': 98.0}]

    html = Path(paths[1]).read_text(encoding='utf-8')
    assert 'BAT-CELL-01' in html
    assert 'plots/battery_report_BAT-CELL-01_soh.png' in html
    assert (tmp_path / 'plots' / 'battery_report_BAT-CELL-01_soh.png').exists()


def test_html_report_lists_issues(parser, tmp_path):
    result = parser.parse(b'', 'broken.csv')
    paths = BatteryReportGenerator(output_dir=str(tmp_path)).generate_report(result, 'html')

    html = Path(paths[0]).read_text(encoding='utf-8')
    assert 'Low Remaining Useful Life' in html
    assert 'synthetic demonstration data' in html


def test_unknown_report_format(parser, basic_csv, tmp_path):
    result = parser.parse(basic_csv, 'cell.csv')

    with pytest.raises(ValueError):
        BatteryReportGenerator(output_dir=str(tmp_path)).generate_report(result, 'pdf')
