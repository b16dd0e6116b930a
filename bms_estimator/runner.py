"""
Fixed-Period Battery Simulation

Drives one battery pack tick by tick:
- Environment synthesizer -> load current, ambient temperature
- Voltage noise on the last estimated terminal voltage
- Kalman filter SoC update
- SoH, power, EIS impedance at 1 kHz and threshold alerts

Cycle counting policy: +1 cycle every `ticks_per_cycle` ticks. The run stops
when the estimated SoC reaches the depletion level (0.1%).
"""

import logging
from typing import Dict, List, Optional, Sequence

import pandas as pd

from bms_estimator.diagnostics.alerts import AlertMonitor
from bms_estimator.environment.load_profiles import LoadProfile
from bms_estimator.environment.synthesizer import EnvironmentSynthesizer
from bms_estimator.estimation.soc_estimator import SoCEstimator
from bms_estimator.plant.circuit_model import BatteryConfiguration
from bms_estimator.plant.impedance import (
    REFERENCE_FREQUENCY_HZ,
    compute_impedance_parameters,
    total_impedance_magnitude,
)


class BatterySimulation:
    """
    One simulated pack: estimator + synthesizer + alert monitor.

    Parameters:
        capacity_ah: Nominal capacity in Ah (ignored if configuration is given)
        initial_soc: Initial SoC in percent (default: 100%)
        profile_name: Load profile name (default: 'EV City Driving')
        current_multiplier: Scale of the load profile (default: 1.0)
        base_temperature_c: Mean ambient temperature in °C (default: 25.0)
        dt_sec: Tick period in seconds (default: 1.0)
        ticks_per_cycle: Ticks per simulated charge cycle (default: 30)
        seed: Random seed for the synthesizer (optional)
        configuration: Full BatteryConfiguration (optional)
        alert_monitor: AlertMonitor instance (default: default thresholds)
        profiles: Load profile catalog for the synthesizer (optional)
        verbose: Enable debug logging (default: False)
    """

    DEPLETED_SOC_PCT = 0.1

    COLUMNS = [
        'tick', 'time_s', 'soc_pct', 'voltage_v', 'measured_voltage_v', 'current_a',
        'temperature_c', 'power_w', 'soh_pct', 'cycle_count', 'internal_resistance_ohm',
        'impedance_ohm', 'covariance', 'alerts',
    ]

    def __init__(
        self,
        capacity_ah: float = 100.0,
        initial_soc: float = 100.0,
        profile_name: str = "EV City Driving",
        current_multiplier: float = 1.0,
        base_temperature_c: float = 25.0,
        dt_sec: float = 1.0,
        ticks_per_cycle: int = 30,
        seed: Optional[int] = None,
        configuration: Optional[BatteryConfiguration] = None,
        alert_monitor: Optional[AlertMonitor] = None,
        profiles: Optional[Sequence[LoadProfile]] = None,
        verbose: bool = False
    ):
        if dt_sec <= 0:
            raise ValueError(f"dt_sec must be positive, got {dt_sec}")
        if ticks_per_cycle < 1:
            raise ValueError(f"ticks_per_cycle must be >= 1, got {ticks_per_cycle}")

        self._estimator = SoCEstimator(
            capacity_ah=capacity_ah,
            configuration=configuration,
            initial_soc=initial_soc,
            verbose=verbose
        )
        self._synthesizer = EnvironmentSynthesizer(seed=seed, profiles=profiles, verbose=verbose)
        self._alert_monitor = alert_monitor if alert_monitor is not None else AlertMonitor()

        self._initial_soc = initial_soc
        self._profile_name = profile_name
        self._current_multiplier = current_multiplier
        self._base_temperature_c = base_temperature_c
        self._dt_sec = dt_sec
        self._ticks_per_cycle = ticks_per_cycle

        self._logger = logging.getLogger(__name__)
        if verbose:
            self._logger.setLevel(logging.DEBUG)
        else:
            self._logger.setLevel(logging.INFO)

        self._tick = 0
        self._cycle_count = 0
        self._depleted = False

    @property
    def estimator(self) -> SoCEstimator:
        return self._estimator

    @property
    def synthesizer(self) -> EnvironmentSynthesizer:
        return self._synthesizer

    @property
    def alert_monitor(self) -> AlertMonitor:
        return self._alert_monitor

    @property
    def profile_name(self) -> str:
        return self._profile_name

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def depleted(self) -> bool:
        return self._depleted

    def step(self) -> Dict:
        """
        Advance the simulation by one tick.

        Returns:
            Dictionary record of the tick (time, SoC, voltage, current, ...)

        Raises:
            RuntimeError: If the pack is already depleted
        """
        if self._depleted:
            raise RuntimeError("Battery depleted; reset() the simulation before stepping again")

        self._tick += 1

        # Current first: it advances the synthesizer's time of day
        current_a = self._synthesizer.next_current(self._profile_name, self._current_multiplier)
        temperature_c = self._synthesizer.next_temperature(self._base_temperature_c)

        if self._tick % self._ticks_per_cycle == 0:
            self._cycle_count += 1

        # Measurement = last estimated terminal voltage + ADC noise
        measured_voltage = self._synthesizer.add_voltage_noise(self._estimator.terminal_voltage)

        soc, voltage = self._estimator.update_soc(
            current_a, measured_voltage, temperature_c, self._cycle_count, self._dt_sec)

        soh = self._estimator.state_of_health(self._cycle_count)
        resistance = self._estimator.internal_resistance
        eis = compute_impedance_parameters(soc, temperature_c, self._cycle_count)
        impedance = total_impedance_magnitude(eis, REFERENCE_FREQUENCY_HZ)

        alerts = self._alert_monitor.check(
            self._tick,
            soc_pct=soc,
            voltage_v=voltage,
            temperature_c=temperature_c,
            soh_pct=soh,
            impedance_ohm=impedance,
            resistance_ohm=resistance
        )
        for alert in alerts:
            self._logger.warning(f"[tick {self._tick}] {alert.alert_type.value}: {alert.message}")

        if soc <= self.DEPLETED_SOC_PCT:
            self._depleted = True
            self._logger.info(f"Battery depleted at tick {self._tick} (SoC {soc:.2f}%)")

        return {
            'tick': self._tick,
            'time_s': self._tick * self._dt_sec,
            'soc_pct': soc,
            'voltage_v': voltage,
            'measured_voltage_v': measured_voltage,
            'current_a': current_a,
            'temperature_c': temperature_c,
            'power_w': voltage * current_a,
            'soh_pct': soh,
            'cycle_count': self._cycle_count,
            'internal_resistance_ohm': resistance,
            'impedance_ohm': impedance,
            'covariance': self._estimator.covariance,
            'alerts': [alert.alert_type.value for alert in alerts],
        }

    def run(self, num_steps: int) -> pd.DataFrame:
        """
        Run up to `num_steps` ticks, stopping early on depletion.

        Returns:
            DataFrame with one row per tick
        """
        if num_steps < 0:
            raise ValueError(f"num_steps must be >= 0, got {num_steps}")

        self._logger.info(
            f"Simulation start: profile='{self._profile_name}', SoC={self._estimator.soc:.1f}%, "
            f"steps={num_steps}, dt={self._dt_sec}s")

        records: List[Dict] = []
        while len(records) < num_steps and not self._depleted:
            records.append(self.step())

        self._logger.info(
            f"Simulation stop: ticks={self._tick}, SoC={self._estimator.soc:.2f}%, "
            f"cycles={self._cycle_count}, depleted={self._depleted}")

        return pd.DataFrame.from_records(records, columns=self.COLUMNS)

    def reset(self, initial_soc: Optional[float] = None):
        """Restore the initial state (estimator, synthesizer, counters, alert statistics)."""
        if initial_soc is not None:
            self._initial_soc = initial_soc
        self._estimator.reset(self._initial_soc)
        self._synthesizer.reset()
        self._alert_monitor.reset()
        self._tick = 0
        self._cycle_count = 0
        self._depleted = False
