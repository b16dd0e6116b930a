"""
Unit tests for the equivalent circuit model and battery configuration.
"""

import os
import tempfile

import pytest
from bms_estimator.plant.circuit_model import (
    BatteryConfiguration,
    ConfigurationError,
    EquivalentCircuitModel,
)
from bms_estimator.plant.curves import Curve


@pytest.fixture
def model():
    return EquivalentCircuitModel(BatteryConfiguration(capacity_ah=100.0))


class TestBatteryConfiguration:
    """Test suite for BatteryConfiguration."""

    def test_defaults(self):
        """Test default voltage window and resistance."""
        config = BatteryConfiguration(capacity_ah=50.0)

        assert config.capacity_ah == 50.0
        assert config.nominal_voltage == 3.7
        assert config.max_voltage == 4.2
        assert config.min_voltage == 2.8
        assert config.base_resistance_ohm == 0.05

    def test_invalid_capacity(self):
        """Test that non-positive capacity is rejected."""
        with pytest.raises(ConfigurationError):
            BatteryConfiguration(capacity_ah=0.0)
        with pytest.raises(ConfigurationError):
            BatteryConfiguration(capacity_ah=-5.0)

    def test_configuration_error_is_value_error(self):
        """Test ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            BatteryConfiguration(capacity_ah=-1.0)

    def test_invalid_voltage_window(self):
        """Test that min voltage must be below max voltage."""
        with pytest.raises(ConfigurationError):
            BatteryConfiguration(capacity_ah=10.0, min_voltage=4.2, max_voltage=4.2)

    def test_from_dict(self):
        """Test loading from a nested 'battery' mapping."""
        config = BatteryConfiguration.from_dict({'battery': {'capacity_ah': 50, 'max_voltage': 4.1}})

        assert config.capacity_ah == 50.0
        assert config.max_voltage == 4.1
        assert isinstance(config.capacity_ah, float)

    def test_from_dict_errors(self):
        """Test unknown keys and missing capacity are rejected."""
        with pytest.raises(ConfigurationError):
            BatteryConfiguration.from_dict({'capacity_ah': 10, 'chemistry': 'LFP'})
        with pytest.raises(ConfigurationError):
            BatteryConfiguration.from_dict({'max_voltage': 4.2})
        with pytest.raises(ConfigurationError):
            BatteryConfiguration.from_dict({'capacity_ah': 'lots'})

    def test_from_yaml(self):
        """Test loading configuration from a YAML file."""
        yaml_content = """
battery:
  capacity_ah: 75.0
  min_voltage: 3.0
  base_resistance_ohm: 0.04
"""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(yaml_content)
            temp_file = f.name

        try:
            config = BatteryConfiguration.from_yaml(temp_file)
            assert config.capacity_ah == 75.0
            assert config.min_voltage == 3.0
            assert config.base_resistance_ohm == 0.04
        finally:
            os.unlink(temp_file)

    def test_invalid_base_resistance(self):
        """Test that non-positive base resistance is rejected."""
        with pytest.raises(ConfigurationError):
            BatteryConfiguration(capacity_ah=10.0, base_resistance_ohm=0.0)

    def test_from_yaml_malformed(self):
        """Test unparseable YAML raises ConfigurationError."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("battery: [capacity_ah: 10\n")
            temp_file = f.name

        try:
            with pytest.raises(ConfigurationError):
                BatteryConfiguration.from_yaml(temp_file)
        finally:
            os.unlink(temp_file)

    def test_from_yaml_empty_battery_section(self):
        """Test an empty 'battery:' section raises ConfigurationError."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("battery:\n")
            temp_file = f.name

        try:
            with pytest.raises(ConfigurationError):
                BatteryConfiguration.from_yaml(temp_file)
        finally:
            os.unlink(temp_file)

        with pytest.raises(ConfigurationError):
            BatteryConfiguration.from_dict({'battery': [50.0]})

    def test_from_yaml_not_a_mapping(self):
        """Test YAML documents that are not mappings are rejected."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("- 1\n- 2\n")
            temp_file = f.name

        try:
            with pytest.raises(ConfigurationError):
                BatteryConfiguration.from_yaml(temp_file)
        finally:
            os.unlink(temp_file)


class TestEquivalentCircuitModel:
    """Test suite for EquivalentCircuitModel."""

    def test_non_monotonic_ocv_rejected(self):
        """Test that a decreasing OCV curve is refused."""
        bad_curve = Curve({0.0: 4.2, 100.0: 2.8})
        with pytest.raises(ConfigurationError):
            EquivalentCircuitModel(BatteryConfiguration(capacity_ah=1.0), ocv_curve=bad_curve)

    def test_base_resistance(self, model):
        """Test resistance at mid SOC, 25°C, fresh pack."""
        assert model.internal_resistance(50.0, 25.0, 0) == pytest.approx(0.05)

    def test_soc_dependence(self, model):
        """Test U-shaped SOC factor."""
        assert model.internal_resistance(5.0, 25.0, 0) == pytest.approx(0.09)
        assert model.internal_resistance(97.0, 25.0, 0) == pytest.approx(0.09)
        assert model.internal_resistance(15.0, 25.0, 0) == pytest.approx(0.065)
        assert model.internal_resistance(85.0, 25.0, 0) == pytest.approx(0.065)

    def test_soc_band_edges(self, model):
        """Test band boundaries use strict comparisons."""
        assert model.internal_resistance(10.0, 25.0, 0) == pytest.approx(0.065)
        assert model.internal_resistance(95.0, 25.0, 0) == pytest.approx(0.065)
        assert model.internal_resistance(20.0, 25.0, 0) == pytest.approx(0.05)
        assert model.internal_resistance(80.0, 25.0, 0) == pytest.approx(0.05)

    def test_temperature_dependence(self, model):
        """Test temperature factor bands."""
        assert model.internal_resistance(50.0, -5.0, 0) == pytest.approx(0.085)
        assert model.internal_resistance(50.0, 0.0, 0) == pytest.approx(0.07)
        assert model.internal_resistance(50.0, 5.0, 0) == pytest.approx(0.07)
        assert model.internal_resistance(50.0, 10.0, 0) == pytest.approx(0.05)
        assert model.internal_resistance(50.0, 45.0, 0) == pytest.approx(0.06)
        assert model.internal_resistance(50.0, 50.0, 0) == pytest.approx(0.06)
        assert model.internal_resistance(50.0, 55.0, 0) == pytest.approx(0.08)

    def test_capacity_fade(self, model):
        """Test linear capacity fade with a 60% floor."""
        assert model.effective_capacity(0) == pytest.approx(100.0)
        assert model.effective_capacity(1000) == pytest.approx(80.0)
        assert model.effective_capacity(5000) == pytest.approx(60.0)
        assert model.effective_capacity(10 ** 6) == pytest.approx(60.0)

    def test_negative_cycles_clamped(self, model):
        """Test negative cycle counts behave like a fresh pack."""
        assert model.effective_capacity(-10) == pytest.approx(100.0)
        assert model.state_of_health(-10) == pytest.approx(100.0)

    def test_aging_increases_resistance(self, model):
        """Test SoH factor on resistance."""
        # SoH 80% -> x1.1, SoH 60% -> x1.2
        assert model.internal_resistance(50.0, 25.0, 1000) == pytest.approx(0.055)
        assert model.internal_resistance(50.0, 25.0, 5000) == pytest.approx(0.06)

        previous = 0.0
        for cycles in range(0, 3000, 250):
            resistance = model.internal_resistance(50.0, 25.0, cycles)
            assert resistance >= previous, f"Resistance dropped at {cycles} cycles"
            previous = resistance

    def test_terminal_voltage(self, model):
        """Test V = OCV - I*R0."""
        assert model.terminal_voltage(50.0, 10.0, 25.0, 0) == pytest.approx(3.30)
        assert model.terminal_voltage(50.0, 0.0, 25.0, 0) == pytest.approx(3.80)
        assert model.terminal_voltage(50.0, -10.0, 25.0, 0) == pytest.approx(4.30)

    def test_terminal_voltage_clamped(self, model):
        """Test terminal voltage envelope [min - 0.5, max + 0.5]."""
        assert model.terminal_voltage(0.0, 100.0, 25.0, 0) == pytest.approx(2.3)
        assert model.terminal_voltage(100.0, -100.0, 25.0, 0) == pytest.approx(4.7)

    def test_soc_from_voltage(self, model):
        """Test IR-compensated inverse OCV lookup."""
        assert model.soc_from_voltage(3.30, 10.0, 50.0, 25.0, 0) == pytest.approx(50.0)
        assert model.soc_from_voltage(3.80, 0.0, 50.0, 25.0, 0) == pytest.approx(50.0)
        # Below the OCV table clamps to 0%
        assert model.soc_from_voltage(0.0, 0.0, 50.0, 25.0, 0) == pytest.approx(0.0)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
