"""
Synthetic Demonstration Dataset
Deterministic stand-in used when an uploaded file cannot be parsed
"""

import numpy as np
import pandas as pd


SYNTHETIC_CYCLES = 50
POINTS_PER_PHASE = 20
BASE_CAPACITY_MAH = 2500.0
FADE_PER_CYCLE = 0.002
SAMPLE_INTERVAL_S = 300


def generate_synthetic_dataset(n_cycles: int = SYNTHETIC_CYCLES) -> pd.DataFrame:
    """
    Build a CC charge / CC discharge test with slow linear capacity fade

    Every cycle has POINTS_PER_PHASE charge samples (3.0 -> 4.2 V) followed by
    POINTS_PER_PHASE discharge samples (4.2 -> 2.7 V). Values are in canonical
    units (V, A, mAh, degC, s, Wh) and identical on every call.

    Args:
        n_cycles: Number of cycles to generate

    Returns:
        DataFrame with one row per sample
    """
    charge_progress = np.arange(1, POINTS_PER_PHASE + 1) / POINTS_PER_PHASE
    discharge_progress = np.arange(POINTS_PER_PHASE) / (POINTS_PER_PHASE - 1)

    frames = []
    for cycle in range(1, n_cycles + 1):
        base_capacity = BASE_CAPACITY_MAH * (1 - FADE_PER_CYCLE * (cycle - 1))

        charge_voltage = 3.0 + charge_progress * 1.2
        charge_capacity = charge_progress * base_capacity
        charge = pd.DataFrame({
            'step_type': 'charge',
            'voltage': charge_voltage,
            'current': 1.0 * (1 - charge_progress * 0.3),
            'capacity': charge_capacity,
            'temperature': 26.0 + 2.0 * np.sin(np.pi * charge_progress),
            'energy': charge_voltage * charge_capacity / 1000
        })

        discharge_voltage = 4.2 - discharge_progress * 1.5
        discharge_capacity = base_capacity * (1 - discharge_progress)
        discharge = pd.DataFrame({
            'step_type': 'discharge',
            'voltage': discharge_voltage,
            'current': -1.0,
            'capacity': discharge_capacity,
            'temperature': 27.0 + 3.0 * np.sin(np.pi * discharge_progress),
            'energy': discharge_voltage * discharge_capacity / 1000
        })

        frame = pd.concat([charge, discharge], ignore_index=True)
        frame.insert(0, 'cycle', cycle)
        frame.insert(1, 'step', np.arange(1, len(frame) + 1))
        frames.append(frame)

    data = pd.concat(frames, ignore_index=True)
    data['time'] = (np.arange(len(data)) + 1) * SAMPLE_INTERVAL_S
    return data[['cycle', 'step', 'step_type', 'voltage', 'current', 'capacity',
                 'temperature', 'time', 'energy']]
