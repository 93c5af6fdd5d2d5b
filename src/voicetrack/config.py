# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for voicetrack.
Handles loading and saving settings from a YAML config file, and the
speaking-pace presets that bundle the tracking tuning values.
"""

import logging
from pathlib import Path
from typing import Any, Literal, TypedDict

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".voicetrack.yaml"

PacePreset = Literal["conservative", "balanced", "responsive", "custom"]


class TrackingSettings(TypedDict):
    """Type definition for tracking configuration settings."""
    confidence_threshold: float
    window_size: int
    max_jump_distance: int
    min_jump_distance: int
    update_frequency_ms: int
    animation_base_ms: int
    animation_per_word_ms: int
    pause_detection: bool
    pause_threshold_ms: int
    scroll_position: float  # Percent of the viewport above the current word
    failed_match_threshold: int
    accumulator_size: int
    max_spread: int
    proximity_weight: float
    position_mode: str  # "estimated" or "measured"
    pace_preset: str


class SpeechSettings(TypedDict):
    """Type definition for speech source settings."""
    language: str
    model_dir: str | None
    audio_device: int | None
    sample_rate: int
    chunk_ms: int


class Config(TypedDict):
    """Type definition for the complete configuration."""
    tracking: TrackingSettings
    speech: SpeechSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    "tracking": {
        "confidence_threshold": 0.35,
        "window_size": 5,
        "max_jump_distance": 2,
        "min_jump_distance": 2,
        "update_frequency_ms": 800,
        "animation_base_ms": 400,
        "animation_per_word_ms": 60,
        "pause_detection": True,
        "pause_threshold_ms": 1200,
        "scroll_position": 20,
        # Local misses before falling back to a whole-script search
        "failed_match_threshold": 8,
        "accumulator_size": 3,
        # Largest max-min of accumulated candidates that still counts as agreement
        "max_spread": 5,
        # Bonus for global matches near the visible part of the script
        "proximity_weight": 0.1,
        "position_mode": "estimated",
        "pace_preset": "custom",
    },
    "speech": {
        "language": "en-US",
        "model_dir": None,
        "audio_device": None,
        "sample_rate": 16000,
        "chunk_ms": 100,
    },
}

# Tuning bundles for different speaking paces
PACE_PRESETS: dict[str, dict[str, Any]] = {
    # Non-native speakers or careful reading: follows closely, small smooth moves
    "conservative": {
        "confidence_threshold": 0.25,
        "max_jump_distance": 2,
        "min_jump_distance": 1,
        "window_size": 4,
        "update_frequency_ms": 600,
        "animation_base_ms": 500,
    },
    "balanced": {
        "confidence_threshold": 0.20,
        "max_jump_distance": 3,
        "min_jump_distance": 2,
        "window_size": 6,
        "update_frequency_ms": 500,
        "animation_base_ms": 400,
    },
    # Fast, fluent speakers: larger jumps, quicker updates
    "responsive": {
        "confidence_threshold": 0.15,
        "max_jump_distance": 5,
        "min_jump_distance": 2,
        "window_size": 8,
        "update_frequency_ms": 400,
        "animation_base_ms": 300,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        elif isinstance(value, dict):
            result[key] = _deep_merge({}, value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    config: dict[str, Any] = _deep_merge({}, DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
                elif file_config is not None:
                    logger.warning("Ignoring config %s: expected a mapping", config_path)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config from %s: %s", config_path, e)

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(dict(config), f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error saving config to %s: %s", config_path, e)
        return False


def get_tracking_settings(config: Config) -> TrackingSettings:
    """Extract tracking settings from config, filling gaps with defaults."""
    return _deep_merge(DEFAULT_CONFIG["tracking"],
                       config.get("tracking") or {})  # type: ignore[return-value]


def get_speech_settings(config: Config) -> SpeechSettings:
    """Extract speech source settings from config, filling gaps with defaults."""
    return _deep_merge(DEFAULT_CONFIG["speech"],
                       config.get("speech") or {})  # type: ignore[return-value]


def apply_pace_preset(settings: TrackingSettings, preset: str) -> TrackingSettings:
    """
    Return a copy of settings with a pace preset's values applied.

    Raises:
        ValueError: If the preset name is unknown.
    """
    if preset == "custom":
        return settings.copy()
    values: dict[str, Any] | None = PACE_PRESETS.get(preset)
    if values is None:
        raise ValueError(
            f"Unknown pace preset: {preset}. "
            f"Choose from: {list(PACE_PRESETS.keys()) + ['custom']}"
        )
    result: dict[str, Any] = {**settings, **values, "pace_preset": preset}
    return result  # type: ignore[return-value]


def resolve_tracking_settings(config: Config) -> TrackingSettings:
    """
    Tracking settings as they should be used: defaults, then the file, then
    the selected pace preset (which overrides the keys it defines).
    """
    settings: TrackingSettings = get_tracking_settings(config)
    return apply_pace_preset(settings, settings.get("pace_preset", "custom"))
