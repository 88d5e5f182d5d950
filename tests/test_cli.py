import logging
from dataclasses import asdict

import pytest

import battery_health_analysis
from BatteryHealthEngine.config import Config


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # Keep the CLI from reconfiguring root logging onto captured stdout
    monkeypatch.setattr(battery_health_analysis, 'setup_logging',
                        lambda config: logging.getLogger('BatteryHealthEngine'))


def test_main_prints_summary(basic_csv, tmp_path, capsys):
    path = tmp_path / 'cell-01.csv'
    path.write_bytes(basic_csv)

    assert battery_health_analysis.main([str(path)]) == 0

    out = capsys.readouterr().out
    assert '[HEALTH] BAT-CELL-01' in out
    assert 'SoH: 98.0%  Grade: A  Status: Healthy' in out
    assert 'RUL: 500 cycles' in out


def test_main_writes_reports(basic_csv, tmp_path, capsys):
    path = tmp_path / 'cell-01.csv'
    path.write_bytes(basic_csv)
    output_dir = tmp_path / 'out'

    code = battery_health_analysis.main([str(path), '--report-format', 'json',
                                         '--output-dir', str(output_dir)])

    assert code == 0
    assert (output_dir / 'battery_report_BAT-CELL-01.json').exists()
    assert '[OK] Report:' in capsys.readouterr().out


def test_main_reads_config_overrides(basic_csv, tmp_path, capsys):
    path = tmp_path / 'cell.csv'
    path.write_bytes(basic_csv)
    config_path = tmp_path / 'config.json'
    Config(RUL_DEFAULT=321).to_json(str(config_path))

    assert battery_health_analysis.main([str(path), '--config', str(config_path)]) == 0
    assert 'RUL: 321 cycles' in capsys.readouterr().out


def test_main_reports_missing_file(tmp_path):
    assert battery_health_analysis.main([str(tmp_path / 'missing.csv')]) == 1


def test_config_round_trip(tmp_path):
    config = Config(RUL_WINDOW=10, LOG_LEVEL='DEBUG')
    path = tmp_path / 'config.json'

    config.to_json(str(path))

    assert Config.from_json(str(path)) == config
    assert asdict(Config.from_json(str(path)))['RUL_WINDOW'] == 10
