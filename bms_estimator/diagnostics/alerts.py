"""
Battery Alert Monitor

Threshold checks on the estimator outputs:
- SoC (low / critical)
- Terminal voltage (over / under)
- State of health (capacity fade)
- Ambient temperature (high / low)
- EIS impedance at 1 kHz and internal resistance (aging, damage)

Checks are throttled to one evaluation every `check_interval` ticks so a
persistent condition does not raise an alert on every step.
"""

from enum import Enum
from typing import Dict, List, NamedTuple, Optional


class AlertType(Enum):
    """Alert types."""
    LOW_SOC = "low_soc"
    CRITICAL_SOC = "critical_soc"
    OVERVOLTAGE = "overvoltage"
    UNDERVOLTAGE = "undervoltage"
    LOW_SOH = "low_soh"
    HIGH_TEMPERATURE = "high_temperature"
    LOW_TEMPERATURE = "low_temperature"
    HIGH_IMPEDANCE = "high_impedance"
    HIGH_RESISTANCE = "high_resistance"


class AlertSeverity(Enum):
    WARNING = "warning"
    ERROR = "error"


class Alert(NamedTuple):
    alert_type: AlertType
    severity: AlertSeverity
    value: float
    threshold: float
    message: str


class AlertMonitor:
    """
    Threshold-based alert monitor.

    Parameters:
        thresholds: Overrides for DEFAULT_THRESHOLDS (optional)
        check_interval: Evaluate alerts every N ticks (default: 30)
    """

    DEFAULT_THRESHOLDS = {
        'low_soc_pct': 10.0,
        'critical_soc_pct': 5.0,
        'depleted_soc_pct': 0.1,  # Below this the pack is depleted, not "low"
        'overvoltage_v': 4.25,
        'undervoltage_v': 2.8,
        'low_soh_pct': 80.0,
        'high_temperature_c': 50.0,
        'low_temperature_c': -5.0,
        'high_impedance_ohm': 0.15,  # |Z| at 1 kHz
        'high_resistance_ohm': 0.1,
    }

    def __init__(self, thresholds: Optional[Dict[str, float]] = None, check_interval: int = 30):
        thresholds = thresholds or {}
        unknown = set(thresholds) - set(self.DEFAULT_THRESHOLDS)
        if unknown:
            raise ValueError(f"Unknown alert thresholds: {sorted(unknown)}")
        if check_interval < 1:
            raise ValueError(f"check_interval must be >= 1, got {check_interval}")

        self._thresholds = dict(self.DEFAULT_THRESHOLDS)
        self._thresholds.update(thresholds)
        self._check_interval = check_interval

        # Statistics
        self._alert_counts = {alert_type: 0 for alert_type in AlertType}

    @property
    def thresholds(self) -> Dict[str, float]:
        return dict(self._thresholds)

    @property
    def check_interval(self) -> int:
        return self._check_interval

    def should_check(self, tick: int) -> bool:
        return tick > 0 and tick % self._check_interval == 0

    def evaluate(
        self,
        soc_pct: float,
        voltage_v: float,
        temperature_c: float,
        soh_pct: float,
        impedance_ohm: float,
        resistance_ohm: float
    ) -> List[Alert]:
        """
        Run all threshold checks (no throttling).

        Returns:
            List of alerts raised, in check order
        """
        t = self._thresholds
        alerts = []

        if t['depleted_soc_pct'] < soc_pct < t['low_soc_pct']:
            alerts.append(Alert(AlertType.LOW_SOC, AlertSeverity.WARNING, soc_pct, t['low_soc_pct'],
                                f"Low SoC: {soc_pct:.1f}%, consider charging soon"))
        if t['depleted_soc_pct'] < soc_pct < t['critical_soc_pct']:
            alerts.append(Alert(AlertType.CRITICAL_SOC, AlertSeverity.ERROR, soc_pct, t['critical_soc_pct'],
                                f"Critical SoC: {soc_pct:.1f}%, immediate charging required"))

        if voltage_v > t['overvoltage_v']:
            alerts.append(Alert(AlertType.OVERVOLTAGE, AlertSeverity.ERROR, voltage_v, t['overvoltage_v'],
                                f"Overvoltage: {voltage_v:.3f}V"))
        if voltage_v < t['undervoltage_v']:
            alerts.append(Alert(AlertType.UNDERVOLTAGE, AlertSeverity.ERROR, voltage_v, t['undervoltage_v'],
                                f"Undervoltage: {voltage_v:.3f}V"))

        if soh_pct < t['low_soh_pct']:
            alerts.append(Alert(AlertType.LOW_SOH, AlertSeverity.WARNING, soh_pct, t['low_soh_pct'],
                                f"Capacity fade: SoH {soh_pct:.1f}%"))

        if temperature_c > t['high_temperature_c']:
            alerts.append(Alert(AlertType.HIGH_TEMPERATURE, AlertSeverity.ERROR, temperature_c,
                                t['high_temperature_c'], f"High temperature: {temperature_c:.1f}°C"))
        elif temperature_c < t['low_temperature_c']:
            alerts.append(Alert(AlertType.LOW_TEMPERATURE, AlertSeverity.WARNING, temperature_c,
                                t['low_temperature_c'], f"Low temperature: {temperature_c:.1f}°C"))

        if impedance_ohm > t['high_impedance_ohm']:
            alerts.append(Alert(AlertType.HIGH_IMPEDANCE, AlertSeverity.WARNING, impedance_ohm,
                                t['high_impedance_ohm'], f"EIS impedance {impedance_ohm * 1000:.1f} mΩ at 1 kHz"))

        if resistance_ohm > t['high_resistance_ohm']:
            alerts.append(Alert(AlertType.HIGH_RESISTANCE, AlertSeverity.WARNING, resistance_ohm,
                                t['high_resistance_ohm'], f"Internal resistance {resistance_ohm * 1000:.1f} mΩ"))

        for alert in alerts:
            self._alert_counts[alert.alert_type] += 1

        return alerts

    def check(self, tick: int, **measurements) -> List[Alert]:
        """Throttled evaluate(): returns [] unless `tick` is a check tick."""
        if not self.should_check(tick):
            return []
        return self.evaluate(**measurements)

    def get_statistics(self) -> Dict[str, int]:
        """Number of alerts raised per type."""
        return {alert_type.value: count for alert_type, count in self._alert_counts.items()}

    def reset(self):
        self._alert_counts = {alert_type: 0 for alert_type in AlertType}
