"""
Main Entry Point for the BMS Estimator Simulator

This script integrates:
- Environment Synthesizer (load profile, ambient temperature, voltage noise)
- Kalman filter SoC Estimator
- EIS impedance model and threshold alerts

Runs a fixed-period simulation and prints the pack state.
"""

import argparse
import logging
import sys

from bms_estimator.environment.load_profiles import DEFAULT_PROFILES, load_profiles_from_yaml
from bms_estimator.plant.circuit_model import BatteryConfiguration, ConfigurationError
from bms_estimator.runner import BatterySimulation


def print_profiles(profiles):
    """Print the load profile catalog."""
    print("\nAvailable load profiles:")
    for profile in profiles:
        print(f"  - {profile.name}: {profile.description} ({len(profile.pattern)} steps)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='BMS Kalman filter SoC estimator simulator')
    parser.add_argument('--capacity', type=float, default=100.0,
                        help='Pack capacity in Ah (default: 100.0)')
    parser.add_argument('--soc', type=float, default=100.0,
                        help='Initial SOC in percent (default: 100.0)')
    parser.add_argument('--profile', type=str, default=DEFAULT_PROFILES[0].name,
                        help=f"Load profile name (default: '{DEFAULT_PROFILES[0].name}')")
    parser.add_argument('--profiles-file', type=str, default=None,
                        help='YAML file with additional load profiles')
    parser.add_argument('--multiplier', type=float, default=1.0,
                        help='Load profile current multiplier (default: 1.0)')
    parser.add_argument('--temperature', type=float, default=25.0,
                        help='Base ambient temperature in °C (default: 25.0)')
    parser.add_argument('--duration', type=float, default=600.0,
                        help='Simulated duration in seconds (default: 600.0)')
    parser.add_argument('--dt', type=float, default=1.0,
                        help='Time step in seconds (default: 1.0)')
    parser.add_argument('--ticks-per-cycle', type=int, default=30,
                        help='Ticks per simulated charge cycle (default: 30)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for reproducible runs')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML battery configuration (overrides --capacity)')
    parser.add_argument('--print-every', type=int, default=60,
                        help='Print a status line every N ticks (default: 60, 0 disables)')
    parser.add_argument('--list-profiles', action='store_true',
                        help='List load profiles and exit')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose logging')
    return parser


def main(argv=None) -> int:
    """Main simulation loop."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    profiles = list(DEFAULT_PROFILES)
    try:
        if args.profiles_file:
            profiles.extend(load_profiles_from_yaml(yaml_file=args.profiles_file))
        if args.config:
            configuration = BatteryConfiguration.from_yaml(args.config)
        else:
            configuration = BatteryConfiguration(capacity_ah=args.capacity)
    except (ConfigurationError, ValueError, OSError) as e:
        print(f"  [ERROR] {e}")
        return 2

    if args.list_profiles:
        print_profiles(profiles)
        return 0

    if args.dt <= 0:
        print(f"  [ERROR] Time step must be positive, got {args.dt}s")
        return 2
    if args.ticks_per_cycle < 1:
        print(f"  [ERROR] Ticks per cycle must be >= 1, got {args.ticks_per_cycle}")
        return 2

    print("\n" + "=" * 80)
    print("BMS Estimator Simulator")
    print("=" * 80)
    print("Configuration:")
    print(f"  Capacity: {configuration.capacity_ah} Ah")
    print(f"  Voltage Range: {configuration.min_voltage:.2f}V - {configuration.max_voltage:.2f}V")
    print(f"  Initial SOC: {args.soc}%")
    print(f"  Load Profile: {args.profile} (x{args.multiplier})")
    print(f"  Base Temperature: {args.temperature} °C")
    print(f"  Duration: {args.duration} s (dt = {args.dt} s)")
    print(f"  Seed: {args.seed if args.seed is not None else 'None (random)'}")
    print("=" * 80 + "\n")

    sim = BatterySimulation(
        initial_soc=args.soc,
        profile_name=args.profile,
        current_multiplier=args.multiplier,
        base_temperature_c=args.temperature,
        dt_sec=args.dt,
        ticks_per_cycle=args.ticks_per_cycle,
        seed=args.seed,
        configuration=configuration,
        profiles=profiles,
        verbose=args.verbose
    )

    description = sim.synthesizer.profile_description(args.profile)
    print(f"Profile: {description}")

    num_steps = int(args.duration / args.dt)
    records = []

    try:
        while len(records) < num_steps and not sim.depleted:
            record = sim.step()
            records.append(record)

            if args.print_every > 0 and record['tick'] % args.print_every == 0:
                print(f"[t={record['time_s']:7.0f}s] SoC: {record['soc_pct']:6.2f}% | "
                      f"V: {record['voltage_v']:.3f}V | I: {record['current_a']:6.2f}A | "
                      f"T: {record['temperature_c']:5.1f}°C | SoH: {record['soh_pct']:5.1f}% | "
                      f"Z@1kHz: {record['impedance_ohm'] * 1000:6.1f} mΩ")

    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user")

    finally:
        state = sim.estimator.get_state()
        print("\nFinal Pack State:")
        print(f"  Ticks: {sim.tick}")
        print(f"  SOC: {state['soc_pct']:.2f}%")
        print(f"  Terminal Voltage: {state['terminal_voltage_v']:.3f} V")
        print(f"  Internal Resistance: {state['internal_resistance_ohm'] * 1000:.1f} mΩ")
        print(f"  Cycles: {sim.cycle_count}")
        print(f"  SoH: {sim.estimator.state_of_health(sim.cycle_count):.1f}%")
        print(f"  Covariance: {state['covariance']:.5f}")
        if sim.depleted:
            print("\n  Battery protection: SoC reached minimum safe level (0.1%)")

        print("\n" + "=" * 80)
        print("Simulation completed!")
        print("=" * 80 + "\n")

    return 0


if __name__ == '__main__':
    sys.exit(main())
