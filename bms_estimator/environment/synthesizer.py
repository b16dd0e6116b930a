"""
Environment Synthesizer

Stand-in for real sensors. Generates, once per tick:
- Load current from a named load profile (±15% noise, occasional spikes)
- Ambient temperature with a daily cycle (peak at 2 PM) and weather noise
- Voltage measurement noise (ADC noise, drift, interference)

Every instance owns its random generator, so several simulated packs can run
side by side and a fixed seed reproduces the same sequences.

The tick counter is shared by all three generators: next_current() advances
it and next_temperature() reads it. Draw the current first in each tick to get
time-of-day-correlated temperatures.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from bms_estimator.environment.load_profiles import DEFAULT_PROFILES, LoadProfile, get_profile


class EnvironmentSynthesizer:
    """
    Synthetic current / temperature / voltage-noise source.

    Parameters:
        seed: Random seed for reproducibility (optional)
        profiles: Load profile catalog (default: built-in profiles)
        verbose: Enable debug logging (default: False)
    """

    CURRENT_NOISE_SPAN = 0.3  # ±15%
    SPIKE_PROBABILITY = 0.05
    EV_SPIKE_FACTOR = 1.5  # Regenerative braking, sudden acceleration
    DEFAULT_SPIKE_FACTOR = 1.3

    DAILY_TEMP_AMPLITUDE_C = 8.0
    TEMP_NOISE_SPAN_C = 6.0  # ±3°C
    MIN_TEMP_C = -20.0
    MAX_TEMP_C = 50.0

    VOLTAGE_NOISE_SPAN_V = 0.02  # ±10mV

    SECONDS_PER_DAY = 86400
    SECONDS_PER_HOUR = 3600.0

    def __init__(
        self,
        seed: Optional[int] = None,
        profiles: Optional[Sequence[LoadProfile]] = None,
        verbose: bool = False
    ):
        profiles = tuple(profiles) if profiles is not None else DEFAULT_PROFILES
        if len(profiles) == 0:
            raise ValueError("At least one load profile is required")

        self._profiles = profiles
        self._seed = seed
        self._rng = np.random.default_rng(seed)
        self._time_index = 0

        self._logger = logging.getLogger(__name__)
        if verbose:
            self._logger.setLevel(logging.DEBUG)
        else:
            self._logger.setLevel(logging.INFO)

    @property
    def time_index(self) -> int:
        """Number of ticks drawn so far (advanced by next_current)."""
        return self._time_index

    @property
    def profiles(self) -> Sequence[LoadProfile]:
        return self._profiles

    def available_profiles(self) -> List[str]:
        """Profile names in catalog order."""
        return [p.name for p in self._profiles]

    def profile_description(self, profile_name: str) -> str:
        profile = get_profile(profile_name, self._profiles)
        return profile.description if profile is not None else "Unknown profile"

    def _uniform_noise(self, span: float) -> float:
        """Uniform noise in [-span/2, span/2)."""
        return (self._rng.random() - 0.5) * span

    def next_current(self, profile_name: str, multiplier: float = 1.0) -> float:
        """
        Draw the load current for the current tick and advance the tick.

        Unknown profile names fall back to the first profile. The spike
        factor follows the requested name: x1.5 if it contains "EV".

        Args:
            profile_name: Load profile name
            multiplier: Scale applied to the base pattern (default: 1.0)

        Returns:
            Current in A (>= 0, discharge)
        """
        profile = get_profile(profile_name, self._profiles)
        if profile is None:
            self._logger.debug(f"Unknown load profile '{profile_name}', using '{self._profiles[0].name}'")
            profile = self._profiles[0]

        pattern = profile.pattern
        base_current = pattern[self._time_index % len(pattern)] * multiplier

        current = base_current * (1.0 + self._uniform_noise(self.CURRENT_NOISE_SPAN))

        if self._rng.random() < self.SPIKE_PROBABILITY:
            spike = self.EV_SPIKE_FACTOR if 'EV' in profile_name else self.DEFAULT_SPIKE_FACTOR
            current *= spike
            self._logger.debug(f"Current spike x{spike} at tick {self._time_index}")

        self._time_index += 1
        return max(0.0, current)

    def next_temperature(self, base_temperature_c: float = 25.0) -> float:
        """
        Ambient temperature for the current time of day.

        T = base + 8*sin((hour - 6) * pi / 12) + noise(±3°C), clamped to [-20, 50]°C
        where hour = (time_index mod 86400) / 3600.
        """
        hour_of_day = (self._time_index % self.SECONDS_PER_DAY) / self.SECONDS_PER_HOUR
        daily_variation = self.DAILY_TEMP_AMPLITUDE_C * np.sin((hour_of_day - 6.0) * np.pi / 12.0)
        weather_noise = self._uniform_noise(self.TEMP_NOISE_SPAN_C)

        temperature = base_temperature_c + daily_variation + weather_noise
        return float(np.clip(temperature, self.MIN_TEMP_C, self.MAX_TEMP_C))

    def add_voltage_noise(self, ideal_voltage: float) -> float:
        """Ideal voltage plus uniform measurement noise of ±10mV."""
        return ideal_voltage + self._uniform_noise(self.VOLTAGE_NOISE_SPAN_V)

    def reset(self):
        """
        Reset the tick counter for repeatable simulations.

        A seeded synthesizer also restarts its random sequence.
        """
        self._time_index = 0
        if self._seed is not None:
            self._rng = np.random.default_rng(self._seed)
