"""Configuration utilities for the watchsync CLI.

The configuration file (~/.watchsync/config.json) holds an ordered list of
profiles and an optional auto-start alias:

    {
      "profiles": [{"alias": "web", "remoteUser": "deploy", ...}],
      "autoStartProfile": "web"
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from watchsync.core.config import Profile
from watchsync.core.errors import ConfigurationError, ProfileNotFoundError

PROFILES_KEY = "profiles"
AUTO_START_KEY = "autoStartProfile"


def get_config_dir() -> Path:
    """Get the configuration directory for watchsync.

    Returns:
        Path to ~/.watchsync.
    """
    return Path.home() / ".watchsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file.

    Raises:
        ConfigurationError: If the file is not valid JSON.
    """
    config_file = get_config_file()
    if not config_file.exists():
        return {}
    try:
        data = json.loads(config_file.read_text())
    except json.JSONDecodeError as e:
        raise ConfigurationError("config", f"Invalid config file {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("config", f"Invalid config file {config_file}: expected an object")
    return data


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def load_profiles() -> list[Profile]:
    """Load all profiles in their saved order."""
    return [Profile.from_dict(item) for item in load_config().get(PROFILES_KEY, [])]


def get_profile(alias: str) -> Profile:
    """Get a profile by alias.

    Raises:
        ProfileNotFoundError: If no profile has this alias.
    """
    for profile in load_profiles():
        if profile.alias == alias:
            return profile
    raise ProfileNotFoundError(alias)


def save_profile(profile: Profile) -> None:
    """Insert a profile, or replace the one with the same alias in place."""
    config = load_config()
    profiles = list(config.get(PROFILES_KEY, []))
    data = profile.to_dict()

    for index, item in enumerate(profiles):
        if item.get("alias") == profile.alias:
            profiles[index] = data
            break
    else:
        profiles.append(data)

    config[PROFILES_KEY] = profiles
    save_config(config)


def delete_profile(alias: str) -> bool:
    """Delete a profile (and the auto-start alias if it pointed to it).

    Returns:
        True if a profile was removed.
    """
    config = load_config()
    profiles = list(config.get(PROFILES_KEY, []))
    remaining = [item for item in profiles if item.get("alias") != alias]
    if len(remaining) == len(profiles):
        return False

    config[PROFILES_KEY] = remaining
    if config.get(AUTO_START_KEY) == alias:
        config.pop(AUTO_START_KEY)
    save_config(config)
    return True


def get_auto_start_alias() -> str | None:
    """Get the alias started when `watch` is run without one."""
    value = load_config().get(AUTO_START_KEY)
    return str(value) if value else None


def set_auto_start_alias(alias: str | None) -> None:
    """Set or clear the auto-start alias.

    Raises:
        ProfileNotFoundError: If alias names no existing profile.
    """
    config = load_config()
    if alias is None:
        config.pop(AUTO_START_KEY, None)
    else:
        aliases = {item.get("alias") for item in config.get(PROFILES_KEY, [])}
        if alias not in aliases:
            raise ProfileNotFoundError(alias)
        config[AUTO_START_KEY] = alias
    save_config(config)
