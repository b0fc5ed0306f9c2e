"""Configuration file management for ledgerscope."""

import os
import tomllib
from pathlib import Path
from typing import Any

import tomli_w

from ledgerscope.domain.models import CommoditySymbol
from ledgerscope.domain.scanner import ScanOptions

DEFAULT_QUOTE_URL = "https://api.frankfurter.app/latest?from={source}&to={target}"


def get_xdg_config_home() -> Path:
    """Get XDG config directory, with fallback to ~/.config."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


def get_config_path() -> Path:
    """Get the config file path (XDG compliant).

    Returns:
        Path to the config file.
    """
    return get_xdg_config_home() / "ledgerscope" / "config.toml"


def default_config() -> dict[str, Any]:
    return {
        "ledger_file": str(Path.home() / "ledger.journal"),
        "price_file": "",
        "default_commodity": "",
        "display": {"decimal_mark": ".", "thousands_separator": ","},
        "quotes": {"url": DEFAULT_QUOTE_URL, "target": "USD"},
    }


def create_default_config(config_path: Path | None = None) -> None:
    """Create default config file with secure permissions.

    Args:
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)
    save_config(default_config(), config_path)


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    if config_path is None:
        config_path = get_config_path()

    with open(config_path, "rb") as f:
        return tomllib.load(f)


def load_config_or_default(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration, falling back to defaults when no file exists.

    Settings missing from the file keep their default values.

    Raises:
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    config = default_config()
    try:
        loaded = load_config(config_path)
    except FileNotFoundError:
        return config

    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    return config


def save_config(config: dict[str, Any], config_path: Path | None = None) -> None:
    """Save configuration to TOML file.

    Args:
        config: Configuration dictionary.
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    os.chmod(config_path, 0o600)


def scan_options_from_config(config: dict[str, Any]) -> ScanOptions:
    """Build scanner options from the ``[display]`` table.

    Args:
        config: Configuration dictionary.

    Returns:
        ScanOptions with the configured separators, or the defaults.

    Raises:
        ValueError: If the decimal mark and thousands separator are the same.
    """
    display = config.get("display", {})
    decimal_mark = display.get("decimal_mark", ".")
    thousands_separator = display.get("thousands_separator", ",")
    if decimal_mark == thousands_separator:
        raise ValueError(f"decimal_mark and thousands_separator are both {decimal_mark!r}")
    return ScanOptions(decimal_mark=decimal_mark, thousands_separator=thousands_separator)


def get_default_commodity(config: dict[str, Any]) -> CommoditySymbol | None:
    """Commodity for bare numbers, or None if unset."""
    value = config.get("default_commodity")
    return CommoditySymbol(value) if value else None


def get_path(config: dict[str, Any], key: str) -> Path | None:
    """Expand a file path setting such as ``ledger_file``, or None if unset."""
    value = config.get(key)
    if not value:
        return None
    return Path(value).expanduser()
