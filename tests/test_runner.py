"""
Integration tests for the fixed-period simulation and the CLI entry point.
"""

import pytest
from bms_estimator.diagnostics.alerts import AlertMonitor
from bms_estimator.main import main
from bms_estimator.runner import BatterySimulation


class TestBatterySimulation:
    """Test suite for BatterySimulation."""

    def test_invalid_parameters(self):
        """Test constructor and run() validation."""
        with pytest.raises(ValueError):
            BatterySimulation(dt_sec=0.0)
        with pytest.raises(ValueError):
            BatterySimulation(ticks_per_cycle=0)

        sim = BatterySimulation(seed=1)
        with pytest.raises(ValueError):
            sim.run(-1)

    def test_run_dataframe(self):
        """Test run() returns one row per tick with the expected columns."""
        sim = BatterySimulation(seed=1)
        df = sim.run(100)

        assert list(df.columns) == BatterySimulation.COLUMNS
        assert len(df) == 100
        assert df['tick'].tolist() == list(range(1, 101))
        assert df['time_s'].iloc[-1] == pytest.approx(100.0)
        assert df['soc_pct'].between(0.0, 100.0).all()
        assert (df['current_a'] >= 0.0).all()
        assert (df['impedance_ohm'] > 0.0).all()

    def test_empty_run(self):
        """Test run(0) gives an empty frame with the same columns."""
        df = BatterySimulation(seed=1).run(0)

        assert df.empty
        assert list(df.columns) == BatterySimulation.COLUMNS

    def test_cycle_counting(self):
        """Test one cycle is added every ticks_per_cycle ticks."""
        sim = BatterySimulation(seed=2, ticks_per_cycle=30)
        df = sim.run(100).set_index('tick')

        assert df.loc[29, 'cycle_count'] == 0
        assert df.loc[30, 'cycle_count'] == 1
        assert df.loc[90, 'cycle_count'] == 3
        assert df.loc[100, 'cycle_count'] == 3
        assert sim.cycle_count == 3

    def test_reproducible(self):
        """Test the same seed produces the same run."""
        df1 = BatterySimulation(seed=7).run(60).drop(columns='alerts')
        df2 = BatterySimulation(seed=7).run(60).drop(columns='alerts')

        assert df1.equals(df2)

    def test_reset_replays(self):
        """Test reset() restores the initial state and replays a seeded run."""
        sim = BatterySimulation(seed=8, profile_name="Drone Flight")
        first = sim.run(50).drop(columns='alerts')

        sim.reset()
        assert sim.tick == 0
        assert sim.cycle_count == 0
        assert sim.estimator.soc == 100.0

        second = sim.run(50).drop(columns='alerts')
        assert first.equals(second)

    def test_depletion(self):
        """Test a tiny pack depletes, stops early and refuses further steps."""
        sim = BatterySimulation(capacity_ah=0.01, profile_name="Smartphone/Tablet", seed=3)
        df = sim.run(2000)

        assert sim.depleted
        assert len(df) < 2000
        assert df['soc_pct'].iloc[-1] <= BatterySimulation.DEPLETED_SOC_PCT

        with pytest.raises(RuntimeError):
            sim.step()

        sim.reset(initial_soc=50.0)
        assert not sim.depleted
        assert sim.estimator.soc == 50.0

    def test_alerts_recorded(self):
        """Test alerts appear in the record on check ticks."""
        monitor = AlertMonitor(thresholds={'low_soc_pct': 101.0}, check_interval=10)
        sim = BatterySimulation(seed=4, alert_monitor=monitor)
        df = sim.run(20).set_index('tick')

        assert df.loc[9, 'alerts'] == []
        assert 'low_soc' in df.loc[10, 'alerts']
        assert 'low_soc' in df.loc[20, 'alerts']
        assert monitor.get_statistics()['low_soc'] == 2


class TestMain:
    """Test suite for the command-line entry point."""

    def test_list_profiles(self, capsys):
        """Test --list-profiles prints the catalog."""
        assert main(['--list-profiles']) == 0

        out = capsys.readouterr().out
        assert "EV City Driving" in out
        assert "Drone Flight" in out

    def test_short_run(self, capsys):
        """Test a short seeded run completes."""
        assert main(['--duration', '5', '--seed', '1', '--print-every', '1']) == 0

        out = capsys.readouterr().out
        assert "Final Pack State" in out
        assert "Simulation completed!" in out

    def test_invalid_arguments(self, capsys):
        """Test invalid configuration returns exit code 2."""
        assert main(['--capacity', '0']) == 2
        assert main(['--dt', '0']) == 2
        assert main(['--ticks-per-cycle', '0']) == 2

    def test_malformed_yaml_files(self, tmp_path, capsys):
        """Test unreadable profile and battery files return exit code 2."""
        profiles_file = tmp_path / 'profiles.yaml'
        profiles_file.write_text("profiles: [\n  - {name: x")
        config_file = tmp_path / 'battery.yaml'
        config_file.write_text("battery:\n")

        assert main(['--profiles-file', str(profiles_file), '--list-profiles']) == 2
        assert main(['--config', str(config_file), '--duration', '1']) == 2
        assert "[ERROR]" in capsys.readouterr().out


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
