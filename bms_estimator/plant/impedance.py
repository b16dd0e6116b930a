"""
Electrochemical Impedance Spectroscopy (EIS) Model

This module simulates EIS data of the pack with a Randles equivalent circuit:
- Series resistance Rs
- Charge-transfer resistance Rct in parallel with double-layer capacitance Cdl
- Warburg diffusion element W / sqrt(omega)

Parameters depend on SOC (U-shaped Rct), temperature (Arrhenius-style factor)
and aging (resistances grow, capacitance shrinks with cycle count).

The total impedance combines the Rct || Cdl branch and the Warburg term
component-wise. It is an approximation of the Randles circuit rather than an
exact complex solution (the Warburg element is added in series instead of
inside the faradaic branch).
"""

from typing import NamedTuple

import numpy as np


class ImpedanceParameters(NamedTuple):
    """Randles circuit parameters at one operating point."""
    series_resistance: float           # Rs (Ω)
    charge_transfer_resistance: float  # Rct (Ω)
    double_layer_capacitance: float    # Cdl (F)
    warburg_coefficient: float         # W (Ω·s^-1/2)
    frequency_hz: float = 1000.0       # Reference measurement frequency


# Base parameters at 25°C, mid SOC, fresh pack
BASE_SERIES_RESISTANCE = 0.005  # Ω (pack level)
BASE_CHARGE_TRANSFER_RESISTANCE = 0.02  # Ω
BASE_DOUBLE_LAYER_CAPACITANCE = 1500.0  # F (scaled for pack)
BASE_WARBURG_COEFFICIENT = 0.005

REFERENCE_FREQUENCY_HZ = 1000.0
REFERENCE_TEMP_K = 298.15

# Arrhenius-style coefficients (K): resistance up / capacitance down at low temp
RESISTANCE_TEMP_COEFF = 2000.0
CAPACITANCE_TEMP_COEFF = -500.0

# Aging: slower degradation for EIS parameters than for capacity
CYCLE_DEGRADATION_RATE = 0.0002
RESISTANCE_AGING_GAIN = 1.5
MIN_CAPACITANCE_RETENTION = 0.5

# Lowest temperature the Arrhenius factors are evaluated at (cell operating floor)
MIN_TEMPERATURE_C = -40.0


def _rct_soc_factor(soc_pct: float) -> float:
    if soc_pct < 10.0:
        return 2.5  # Very low SOC, high Rct
    if soc_pct < 20.0:
        return 1.8
    if soc_pct > 90.0:
        return 1.5
    if soc_pct > 80.0:
        return 1.2
    return 1.0


def _cdl_soc_factor(soc_pct: float) -> float:
    return 0.8 if (soc_pct < 20.0 or soc_pct > 80.0) else 1.0


def _arrhenius_factor(temperature_c: float, coefficient: float) -> float:
    temperature_k = max(temperature_c, MIN_TEMPERATURE_C) + 273.15
    return float(np.exp(coefficient * (1.0 / temperature_k - 1.0 / REFERENCE_TEMP_K)))


def compute_impedance_parameters(soc_pct: float, temperature_c: float, cycle_count: int) -> ImpedanceParameters:
    """
    Compute Randles circuit parameters for an operating point.

    Args:
        soc_pct: State of charge in percent (0-100)
        temperature_c: Temperature in °C
        cycle_count: Number of charge/discharge cycles (negative treated as 0)

    Returns:
        ImpedanceParameters at the reference frequency (1 kHz)
    """
    cycles = max(cycle_count, 0)

    temp_factor_r = _arrhenius_factor(temperature_c, RESISTANCE_TEMP_COEFF)
    temp_factor_c = _arrhenius_factor(temperature_c, CAPACITANCE_TEMP_COEFF)

    aging_factor_r = 1.0 + cycles * CYCLE_DEGRADATION_RATE * RESISTANCE_AGING_GAIN
    aging_factor_c = max(MIN_CAPACITANCE_RETENTION, 1.0 - cycles * CYCLE_DEGRADATION_RATE)

    return ImpedanceParameters(
        series_resistance=BASE_SERIES_RESISTANCE * temp_factor_r * aging_factor_r,
        charge_transfer_resistance=(BASE_CHARGE_TRANSFER_RESISTANCE * _rct_soc_factor(soc_pct)
                                    * temp_factor_r * aging_factor_r),
        double_layer_capacitance=(BASE_DOUBLE_LAYER_CAPACITANCE * _cdl_soc_factor(soc_pct)
                                  * temp_factor_c * aging_factor_c),
        # Diffusion is affected by both temperature and age
        warburg_coefficient=BASE_WARBURG_COEFFICIENT * float(np.sqrt(temp_factor_r * aging_factor_r)),
        frequency_hz=REFERENCE_FREQUENCY_HZ,
    )


def impedance_spectrum(params: ImpedanceParameters, frequencies_hz) -> np.ndarray:
    """
    Magnitude |Z| of the (approximate) Randles circuit over a frequency sweep.

        Z_real = Rs + Rct / (1 + (w*Rct*Cdl)^2) + W/sqrt(w)
        Z_imag = -w*Rct^2*Cdl / (1 + (w*Rct*Cdl)^2) - W/sqrt(w)

    Frequencies that are not positive, or a non-positive Cdl, give Rs + Rct.

    Args:
        params: Randles circuit parameters
        frequencies_hz: Array-like of frequencies in Hz

    Returns:
        numpy array of impedance magnitudes (Ω), same shape as frequencies_hz
    """
    rs = params.series_resistance
    rct = params.charge_transfer_resistance
    cdl = params.double_layer_capacitance
    w = params.warburg_coefficient

    freqs = np.asarray(frequencies_hz, dtype=float)
    valid = freqs > 0 if cdl > 0 else np.zeros(freqs.shape, dtype=bool)

    # Placeholder omega for invalid points, overwritten by the fallback below
    omega = 2.0 * np.pi * np.where(valid, freqs, 1.0)
    denom = 1.0 + (omega * rct * cdl) ** 2
    warburg = w / np.sqrt(omega)

    real = rs + rct / denom + warburg
    imag = -(omega * rct ** 2 * cdl) / denom - warburg

    return np.where(valid, np.hypot(real, imag), rs + rct)


def total_impedance_magnitude(params: ImpedanceParameters, frequency_hz: float) -> float:
    """Magnitude |Z| at a single frequency (see impedance_spectrum)."""
    return float(impedance_spectrum(params, frequency_hz))
