"""
Kalman Filter SoC Estimator

This module implements the BMS state-of-charge estimator:
- Prediction by Coulomb counting (temperature efficiency, aged capacity)
- Correction by a voltage-derived SoC (inverse OCV lookup after IR compensation)
- Scalar Kalman gain weighting the two sources by their uncertainty
- Terminal voltage and internal resistance outputs from the ECM

Coulomb counting alone drifts with integration error, and the voltage-based
SoC alone is unreliable on the flat part of the OCV curve. The gain
K = P / (P + R) leans on the voltage estimate while the covariance is high
(after a reset) and on the Coulomb-counted prediction once it has shrunk.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from bms_estimator.plant.circuit_model import (
    BatteryConfiguration,
    ConfigurationError,
    EquivalentCircuitModel,
)


class SoCEstimator:
    """
    Scalar Kalman filter SoC estimator for one battery pack.

    The estimator is synchronous and holds mutable state; callers must not
    invoke update_soc() concurrently on the same instance. Independent packs
    use independent estimators.

    Parameters:
        capacity_ah: Nominal capacity in Ah (ignored if configuration is given)
        configuration: Full BatteryConfiguration (optional)
        initial_soc: Initial state of charge in percent (default: 100%)
        process_noise: Process noise covariance Q (default: 0.01)
        measurement_noise: Measurement noise covariance R (default: 0.1)
        verbose: Enable per-step debug logging (default: False)
    """

    INITIAL_COVARIANCE = 1.0
    RESET_TEMPERATURE_C = 25.0
    SECONDS_PER_HOUR = 3600.0

    def __init__(
        self,
        capacity_ah: Optional[float] = None,
        configuration: Optional[BatteryConfiguration] = None,
        initial_soc: float = 100.0,
        process_noise: float = 0.01,
        measurement_noise: float = 0.1,
        verbose: bool = False
    ):
        if configuration is None:
            if capacity_ah is None:
                raise ConfigurationError("Either capacity_ah or configuration must be provided")
            configuration = BatteryConfiguration(capacity_ah=capacity_ah)

        if process_noise < 0 or measurement_noise <= 0:
            raise ConfigurationError(
                f"Noise covariances must be Q >= 0 and R > 0, got Q={process_noise}, R={measurement_noise}")

        self._model = EquivalentCircuitModel(configuration)
        self._process_noise = process_noise
        self._measurement_noise = measurement_noise

        # Logging
        self._logger = logging.getLogger(__name__)
        if verbose:
            self._logger.setLevel(logging.DEBUG)
        else:
            self._logger.setLevel(logging.INFO)

        # Filter state (set by reset)
        self._soc = 0.0
        self._covariance = self.INITIAL_COVARIANCE
        self._kalman_gain = 0.0
        self._terminal_voltage = configuration.nominal_voltage
        self._last_temperature_c = self.RESET_TEMPERATURE_C
        self._last_cycle_count = 0
        self._step_count = 0

        self.reset(initial_soc)

    @property
    def configuration(self) -> BatteryConfiguration:
        return self._model.configuration

    @property
    def model(self) -> EquivalentCircuitModel:
        return self._model

    @property
    def capacity_ah(self) -> float:
        return self._model.configuration.capacity_ah

    @property
    def soc(self) -> float:
        """Estimated state of charge in percent."""
        return self._soc

    @property
    def terminal_voltage(self) -> float:
        """Estimated terminal voltage in volts after the last update."""
        return self._terminal_voltage

    @property
    def covariance(self) -> float:
        """Estimate-error covariance P."""
        return self._covariance

    @property
    def kalman_gain(self) -> float:
        """Kalman gain used in the last update (0 after reset)."""
        return self._kalman_gain

    @property
    def internal_resistance(self) -> float:
        """R0 in Ω at the current SoC and last known temperature/cycle count."""
        return self._model.internal_resistance(self._soc, self._last_temperature_c, self._last_cycle_count)

    def effective_capacity(self, cycle_count: int) -> float:
        return self._model.effective_capacity(cycle_count)

    def state_of_health(self, cycle_count: int) -> float:
        return self._model.state_of_health(cycle_count)

    def open_circuit_voltage(self, soc_pct: float) -> float:
        return self._model.open_circuit_voltage(soc_pct)

    def reset(self, initial_soc: float = 100.0):
        """
        Reset the filter state.

        SoC is clamped to [0, 100] (out-of-range values are not an error),
        covariance returns to 1.0, operating conditions to 25°C / 0 cycles,
        and the terminal voltage is the OCV (zero current).
        """
        self._soc = float(np.clip(initial_soc, 0.0, 100.0))
        self._covariance = self.INITIAL_COVARIANCE
        self._kalman_gain = 0.0
        self._last_temperature_c = self.RESET_TEMPERATURE_C
        self._last_cycle_count = 0
        self._step_count = 0
        self._terminal_voltage = self._model.terminal_voltage(
            self._soc, 0.0, self._last_temperature_c, self._last_cycle_count)

        self._logger.info(f"Estimator reset: SoC={self._soc:.2f}%, V={self._terminal_voltage:.3f}V")

    def update_soc(
        self,
        current_a: float,
        measured_voltage: float,
        temperature_c: float,
        cycle_count: int,
        dt_sec: float
    ) -> Tuple[float, float]:
        """
        Kalman filter update for SoC estimation.

        Steps:
        1. Predict SoC by Coulomb counting
        2. Grow covariance by the process noise
        3. Derive SoC from the IR-compensated voltage measurement
        4. Compute the Kalman gain
        5. Correct SoC and shrink covariance
        6. Recompute terminal voltage at the corrected SoC
        7. Remember temperature and cycle count for resistance queries

        Args:
            current_a: Current in A (positive = discharge, negative = charge)
            measured_voltage: Measured terminal voltage in V
            temperature_c: Temperature in °C
            cycle_count: Battery cycle count (negative values are clamped to 0)
            dt_sec: Time step in seconds (must be > 0)

        Returns:
            Tuple of (soc_pct, terminal_voltage_v)

        Raises:
            ValueError: If dt_sec is not positive or an input is not finite
        """
        if not np.isfinite(dt_sec) or dt_sec <= 0:
            raise ValueError(f"Time step must be positive, got {dt_sec}s")
        for label, value in (('current', current_a), ('voltage', measured_voltage),
                             ('temperature', temperature_c)):
            if not np.isfinite(value):
                raise ValueError(f"Non-finite {label} measurement: {value}")

        cycles = max(int(cycle_count), 0)
        model = self._model

        # 1. Prediction (Coulomb counting)
        efficiency = model.temperature_efficiency(temperature_c)
        capacity_ah = model.effective_capacity(cycles)
        if capacity_ah <= 0:
            capacity_ah = self.capacity_ah
        delta_ah = current_a * dt_sec / self.SECONDS_PER_HOUR * efficiency
        soc_prediction = float(np.clip(self._soc - delta_ah / capacity_ah * 100.0, 0.0, 100.0))

        # 2. Covariance prediction
        self._covariance += self._process_noise

        # 3. Measurement: SoC from the IR-compensated voltage
        soc_from_voltage = model.soc_from_voltage(
            measured_voltage, current_a, soc_prediction, temperature_c, cycles)

        # 4. Kalman gain
        gain = self._covariance / (self._covariance + self._measurement_noise)

        # 5. Correction (residual expressed in SoC)
        residual = soc_from_voltage - soc_prediction
        self._soc = float(np.clip(soc_prediction + gain * residual, 0.0, 100.0))
        self._covariance = (1.0 - gain) * self._covariance
        self._kalman_gain = gain

        # 6. Terminal voltage at the corrected SoC
        self._terminal_voltage = model.terminal_voltage(self._soc, current_a, temperature_c, cycles)

        # 7. Operating conditions for later resistance queries
        self._last_temperature_c = temperature_c
        self._last_cycle_count = cycles
        self._step_count += 1

        self._logger.debug(
            f"Step {self._step_count}: I={current_a:.3f}A, Vmeas={measured_voltage:.4f}V, "
            f"T={temperature_c:.1f}°C, pred={soc_prediction:.4f}%, meas={soc_from_voltage:.4f}%, "
            f"K={gain:.4f}, SoC={self._soc:.4f}%, P={self._covariance:.5f}")

        return self._soc, self._terminal_voltage

    def get_state(self) -> dict:
        """
        Get current estimator state.

        Returns:
            Dictionary with estimator state variables
        """
        return {
            'soc_pct': self._soc,
            'covariance': self._covariance,
            'kalman_gain': self._kalman_gain,
            'process_noise': self._process_noise,
            'measurement_noise': self._measurement_noise,
            'terminal_voltage_v': self._terminal_voltage,
            'internal_resistance_ohm': self.internal_resistance,
            'temperature_c': self._last_temperature_c,
            'cycle_count': self._last_cycle_count,
            'state_of_health_pct': self.state_of_health(self._last_cycle_count),
            'step_count': self._step_count,
        }
