"""
Li-ion Pack Equivalent Circuit Model (ECM)

This module implements the static part of the pack model used by the SoC
estimator:
- OCV-SOC relationship (piecewise-linear lookup table)
- Internal resistance R0 as function of SOC, temperature and aging
- Temperature efficiency of the usable charge
- Cycle aging (linear capacity fade, floored at 60% retained capacity)
- Terminal voltage V = OCV - I*R0 within a practical voltage envelope

Sign convention: positive current = discharge, negative current = charge.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from bms_estimator.plant.curves import (
    Curve,
    SOC_OCV_CURVE,
    TEMPERATURE_EFFICIENCY_CURVE,
    interpolate,
    inverse_interpolate,
)


class ConfigurationError(ValueError):
    """Raised for battery parameters that cannot describe a usable pack."""


@dataclass(frozen=True)
class BatteryConfiguration:
    """
    Immutable pack parameters (based on an 18650 Li-ion cell scaled to capacity).

    Parameters:
        capacity_ah: Nominal capacity in Ah (must be > 0)
        nominal_voltage: Nominal voltage in V (default: 3.7V)
        max_voltage: Fully charged voltage in V (default: 4.2V)
        min_voltage: Cut-off voltage in V (default: 2.8V)
        base_resistance_ohm: Base internal resistance of the pack (default: 0.05Ω)
    """

    capacity_ah: float
    nominal_voltage: float = 3.7
    max_voltage: float = 4.2
    min_voltage: float = 2.8
    base_resistance_ohm: float = 0.05

    def __post_init__(self):
        if not self.capacity_ah > 0:
            raise ConfigurationError(f"Capacity must be positive, got {self.capacity_ah}Ah")
        if not self.base_resistance_ohm > 0:
            raise ConfigurationError(
                f"Base resistance must be positive, got {self.base_resistance_ohm}Ω")
        if not self.min_voltage < self.max_voltage:
            raise ConfigurationError(
                f"min_voltage ({self.min_voltage}V) must be below max_voltage ({self.max_voltage}V)")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BatteryConfiguration':
        """
        Build a configuration from a dictionary.

        Accepts either the parameters at top level or nested under a
        'battery' key. Unknown keys are rejected.
        """
        section = data.get('battery', data)
        if not isinstance(section, dict):
            raise ConfigurationError(f"'battery' section must be a mapping, got {type(section).__name__}")
        params = dict(section)
        known = {'capacity_ah', 'nominal_voltage', 'max_voltage', 'min_voltage', 'base_resistance_ohm'}
        unknown = set(params) - known
        if unknown:
            raise ConfigurationError(f"Unknown battery parameters: {sorted(unknown)}")
        if 'capacity_ah' not in params:
            raise ConfigurationError("Battery configuration requires 'capacity_ah'")
        try:
            values = {key: float(value) for key, value in params.items()}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid battery parameter value: {e}") from e
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_file: str) -> 'BatteryConfiguration':
        """Load a configuration from a YAML file."""
        with open(yaml_file, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {yaml_file}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a mapping in {yaml_file}")
        return cls.from_dict(data)


class EquivalentCircuitModel:
    """
    Static equivalent circuit of the pack.

    ECM Structure:
        OCV(SOC) - R0(SOC, T, SoH) - Terminal

    The model holds no dynamic state: every method is a pure function of its
    arguments and the configuration.

    Parameters:
        configuration: BatteryConfiguration of the pack
        ocv_curve: SoC -> OCV curve (default: Li-ion discharge curve)
        efficiency_curve: Temperature -> efficiency curve
    """

    # SOC breakpoints for R0 (resistance rises near depletion/full charge)
    SOC_EXTREME_LOW = 10.0
    SOC_EXTREME_HIGH = 95.0
    SOC_EDGE_LOW = 20.0
    SOC_EDGE_HIGH = 80.0
    SOC_FACTOR_EXTREME = 1.8
    SOC_FACTOR_EDGE = 1.3

    # Aging parameters
    FADE_RATE = 0.0002  # Capacity fade per cycle (20% after 1000 cycles)
    MIN_RETAINED_CAPACITY = 0.6
    MAX_AGING_RESISTANCE_INCREASE = 0.5  # R0 up to 1.5x at 0% SoH

    # Voltage envelope margin around [min_voltage, max_voltage]
    VOLTAGE_MARGIN = 0.5

    # Inverse OCV lookup fallback when no curve is available
    FALLBACK_SOC = 50.0

    def __init__(
        self,
        configuration: BatteryConfiguration,
        ocv_curve: Optional[Curve] = None,
        efficiency_curve: Optional[Curve] = None
    ):
        self._config = configuration
        self._ocv_curve = ocv_curve if ocv_curve is not None else SOC_OCV_CURVE
        self._efficiency_curve = efficiency_curve if efficiency_curve is not None else TEMPERATURE_EFFICIENCY_CURVE

        # Inverse lookup is only well-defined on a non-decreasing curve
        if not self._ocv_curve.is_monotonic():
            raise ConfigurationError("OCV curve must be non-decreasing in SoC")

    @property
    def configuration(self) -> BatteryConfiguration:
        return self._config

    @property
    def ocv_curve(self) -> Curve:
        return self._ocv_curve

    def open_circuit_voltage(self, soc_pct: float) -> float:
        """OCV in volts at the given SoC (nominal voltage if no curve)."""
        return interpolate(self._ocv_curve, soc_pct, self._config.nominal_voltage)

    def temperature_efficiency(self, temperature_c: float) -> float:
        """Efficiency factor of the usable charge at the given temperature."""
        return interpolate(self._efficiency_curve, temperature_c, 1.0)

    def effective_capacity(self, cycle_count: int) -> float:
        """
        Aged capacity in Ah.

        Linear fade of 0.02% per cycle, floored at 60% of nominal capacity.
        """
        retained = max(self.MIN_RETAINED_CAPACITY, 1.0 - max(cycle_count, 0) * self.FADE_RATE)
        return self._config.capacity_ah * retained

    def state_of_health(self, cycle_count: int) -> float:
        """SoH in percent: effective capacity relative to nominal."""
        return self.effective_capacity(cycle_count) / self._config.capacity_ah * 100.0

    def _soc_factor(self, soc_pct: float) -> float:
        if soc_pct < self.SOC_EXTREME_LOW or soc_pct > self.SOC_EXTREME_HIGH:
            return self.SOC_FACTOR_EXTREME
        if soc_pct < self.SOC_EDGE_LOW or soc_pct > self.SOC_EDGE_HIGH:
            return self.SOC_FACTOR_EDGE
        return 1.0

    @staticmethod
    def _temperature_factor(temperature_c: float) -> float:
        if temperature_c < 0.0:
            return 1.7
        if temperature_c < 10.0:
            return 1.4  # Cold
        if temperature_c > 50.0:
            return 1.6  # Very hot
        if temperature_c > 40.0:
            return 1.2  # Hot
        return 1.0  # Optimal range 10-40°C

    def internal_resistance(self, soc_pct: float, temperature_c: float, cycle_count: int) -> float:
        """
        Get internal resistance R0 as function of SOC, temperature and aging.

        Formula: R0 = R0_base * soc_factor * temp_factor * soh_factor
        where soh_factor = 1 + (100 - SoH) / 100 * 0.5

        Args:
            soc_pct: State of charge in percent (0-100)
            temperature_c: Temperature in °C
            cycle_count: Number of charge/discharge cycles

        Returns:
            Internal resistance in Ω
        """
        soh = self.state_of_health(cycle_count)
        soh_factor = 1.0 + (100.0 - max(0.0, soh)) / 100.0 * self.MAX_AGING_RESISTANCE_INCREASE

        return (self._config.base_resistance_ohm
                * self._soc_factor(soc_pct)
                * self._temperature_factor(temperature_c)
                * soh_factor)

    def clamp_voltage(self, voltage: float) -> float:
        """Limit a voltage to [min_voltage - 0.5, max_voltage + 0.5]."""
        low = self._config.min_voltage - self.VOLTAGE_MARGIN
        high = self._config.max_voltage + self.VOLTAGE_MARGIN
        return max(low, min(high, voltage))

    def terminal_voltage(self, soc_pct: float, current_a: float, temperature_c: float, cycle_count: int) -> float:
        """Terminal voltage V = OCV - I*R0, clamped to the practical envelope."""
        resistance = self.internal_resistance(soc_pct, temperature_c, cycle_count)
        return self.clamp_voltage(self.open_circuit_voltage(soc_pct) - current_a * resistance)

    def soc_from_voltage(
        self,
        measured_voltage: float,
        current_a: float,
        soc_hint_pct: float,
        temperature_c: float,
        cycle_count: int
    ) -> float:
        """
        Estimate SoC from a terminal voltage measurement.

        The IR drop is compensated using R0 evaluated at `soc_hint_pct`, then
        the estimated OCV is looked up on the inverse OCV curve.
        """
        resistance = self.internal_resistance(soc_hint_pct, temperature_c, cycle_count)
        estimated_ocv = measured_voltage + current_a * resistance
        return inverse_interpolate(self._ocv_curve, estimated_ocv, self.FALLBACK_SOC)
