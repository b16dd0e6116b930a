"""
Load Profile Catalog

Real-world usage patterns for the environment synthesizer. Each profile is a
cyclic sequence of base-current magnitudes (A) sampled once per tick.

Profiles can also be loaded from YAML:

    profiles:
      - name: "Forklift"
        description: "Warehouse lift-and-drive cycle"
        pattern: [0, 30, 60, 30, 0]
"""

from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import yaml


class LoadProfile(NamedTuple):
    """Named cyclic current pattern."""
    name: str
    description: str
    pattern: Tuple[float, ...]


def make_profile(name: str, description: str, pattern: Sequence[float]) -> LoadProfile:
    """
    Create a validated LoadProfile.

    Raises:
        ValueError: If the name is empty, the pattern is empty, or a pattern
            value is negative or not numeric
    """
    if not name:
        raise ValueError("Load profile name must not be empty")
    try:
        values = tuple(float(v) for v in pattern)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Load profile '{name}' has a non-numeric pattern: {e}") from e
    if len(values) == 0:
        raise ValueError(f"Load profile '{name}' must have at least one pattern value")
    if any(v < 0 for v in values):
        raise ValueError(f"Load profile '{name}' pattern values must be >= 0 (current magnitudes)")
    return LoadProfile(name=name, description=description or '', pattern=values)


DEFAULT_PROFILES: Tuple[LoadProfile, ...] = (
    # Electric vehicle driving pattern
    make_profile(
        "EV City Driving",
        "Urban electric vehicle usage with stop-and-go traffic",
        [15, 25, 35, 45, 30, 20, 15, 10, 20, 40, 35, 25, 15, 10, 5],
    ),
    make_profile(
        "Power Tool",
        "Intermittent high-current power tool operation",
        [0, 0, 45, 50, 55, 45, 0, 0, 35, 40, 30, 0, 0, 25, 20],
    ),
    make_profile(
        "Smartphone/Tablet",
        "Typical consumer device usage pattern",
        [2, 3, 4, 5, 3, 2, 1, 2, 4, 6, 5, 3, 2, 1, 1],
    ),
    make_profile(
        "Grid Storage",
        "Grid energy storage discharge pattern",
        [10, 15, 20, 25, 30, 35, 30, 25, 20, 15, 10, 8, 6, 4, 2],
    ),
    make_profile(
        "Drone Flight",
        "Drone flight mission profile",
        [0, 8, 12, 15, 18, 20, 18, 15, 12, 10, 8, 6, 4, 2, 0],
    ),
)


def get_profile(name: str, profiles: Sequence[LoadProfile] = DEFAULT_PROFILES) -> Optional[LoadProfile]:
    """Find a profile by exact name, or None."""
    for profile in profiles:
        if profile.name == name:
            return profile
    return None


def load_profiles_from_yaml(
    yaml_file: Optional[str] = None,
    yaml_data: Optional[Dict] = None
) -> List[LoadProfile]:
    """
    Load load profiles from a YAML file or already-parsed YAML data.

    Args:
        yaml_file: Path to YAML file
        yaml_data: Parsed YAML mapping with a 'profiles' list

    Returns:
        List of LoadProfile in file order

    Raises:
        ValueError: If neither source is given, the document is malformed, or
            a profile name is duplicated
    """
    if yaml_file is not None:
        with open(yaml_file, 'r') as f:
            try:
                yaml_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Cannot parse profile file {yaml_file}: {e}") from e

    if yaml_data is None:
        raise ValueError("Either yaml_file or yaml_data must be provided")
    if not isinstance(yaml_data, dict) or not isinstance(yaml_data.get('profiles'), list):
        raise ValueError("Profile YAML must contain a 'profiles' list")

    profiles = []
    seen = set()
    for i, entry in enumerate(yaml_data['profiles']):
        if not isinstance(entry, dict):
            raise ValueError(f"Profile entry {i} must be a mapping")
        name = entry.get('name', '')
        if name in seen:
            raise ValueError(f"Duplicate load profile name: '{name}'")
        seen.add(name)
        profiles.append(make_profile(name, entry.get('description', ''), entry.get('pattern', [])))

    return profiles
