import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from BatteryHealthEngine.config import Config
from BatteryHealthEngine.pipeline import UniversalBatteryParser


BASIC_CSV = (
    "Cycle,Voltage,Current,Capacity\n"
    "1,4.2,-1.0,2500\n"
    "1,3.0,1.0,1000\n"
    "2,4.1,-1.0,2450\n"
    "2,3.0,1.0,980\n"
)

ARBIN_CSV = (
    "Cycle_Index,Step_Index,Voltage(V),Current(A),Charge_Capacity(Ah),Discharge_Capacity(Ah),Test_Time(s)\n"
    "1,1,3.6,1.0,1.0,0,1800\n"
    "1,1,4.2,1.0,1.02,0,3600\n"
    "1,2,3.9,-1.0,1.02,1.2,5400\n"
    "1,2,3.0,-1.0,1.02,2.5,7200\n"
    "2,1,3.6,1.0,0.5,0,9000\n"
    "2,1,4.2,1.0,1.0,0,10800\n"
    "2,2,3.9,-1.0,1.0,1.2,12600\n"
    "2,2,3.0,-1.0,1.0,2.45,14400\n"
)


@pytest.fixture
def basic_csv() -> bytes:
    """Two cycles with a shared capacity column, already in mAh"""
    return BASIC_CSV.encode('utf-8')


@pytest.fixture
def arbin_csv() -> bytes:
    """Arbin-style export with split charge/discharge capacity columns in Ah"""
    return ARBIN_CSV.encode('utf-8')


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def parser(config) -> UniversalBatteryParser:
    return UniversalBatteryParser(config)
