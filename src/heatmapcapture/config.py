"""Configuration for heatmap capture.

Settings come from environment variables, optionally overridden by a YAML
file with a ``heatmap_capture`` section::

    heatmap_capture:
      capture:
        settle_delay: 5
        capture_timeout: 10
      api:
        symbol: SUIUSDT
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from src.heatmapcapture.init_script import DEFAULT_SLOT_NAME
from src.heatmapcapture.interceptor import HEATMAP_ENDPOINT_MARKER

CONFIG_SECTION = "heatmap_capture"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class CaptureConfig:
    """Browser capture configuration."""

    page_url_template: str = field(
        default_factory=lambda: os.getenv(
            "HEATMAP_PAGE_URL", "https://coinank.com/liqHeatMapChart/{symbol}/{interval}"
        )
    )
    endpoint_marker: str = field(
        default_factory=lambda: os.getenv("HEATMAP_ENDPOINT_MARKER", HEATMAP_ENDPOINT_MARKER)
    )
    slot_name: str = DEFAULT_SLOT_NAME

    # Seconds before the first check, and total capture budget
    settle_delay: float = field(
        default_factory=lambda: float(os.getenv("HEATMAP_SETTLE_DELAY", "5.0"))
    )
    capture_timeout: float = field(
        default_factory=lambda: float(os.getenv("HEATMAP_CAPTURE_TIMEOUT", "10.0"))
    )
    poll_interval: float = field(
        default_factory=lambda: float(os.getenv("HEATMAP_POLL_INTERVAL", "0.5"))
    )

    # Extra time to keep the page open after capture
    stay_duration: float = field(
        default_factory=lambda: float(os.getenv("HEATMAP_STAY_DURATION", "0.0"))
    )
    headless: bool = field(default_factory=lambda: _env_bool("HEATMAP_HEADLESS", "false"))
    navigation_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("HEATMAP_NAVIGATION_TIMEOUT_MS", "30000"))
    )

    # Skip out-of-range cells instead of failing the conversion
    lenient: bool = field(default_factory=lambda: _env_bool("HEATMAP_LENIENT", "false"))

    def __post_init__(self) -> None:
        """Validate durations."""
        if not self.endpoint_marker:
            raise ValueError("endpoint_marker must not be empty")
        if self.settle_delay < 0:
            raise ValueError(f"settle_delay must be >= 0, got {self.settle_delay}")
        if self.capture_timeout <= 0:
            raise ValueError(f"capture_timeout must be > 0, got {self.capture_timeout}")
        if self.settle_delay > self.capture_timeout:
            raise ValueError(
                f"settle_delay ({self.settle_delay}s) must not exceed "
                f"capture_timeout ({self.capture_timeout}s)"
            )
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.stay_duration < 0:
            raise ValueError(f"stay_duration must be >= 0, got {self.stay_duration}")

    def page_url(self, symbol: str, interval: str) -> str:
        """Heatmap chart page for a symbol (the site expects lowercase symbols)."""
        return self.page_url_template.format(symbol=symbol.lower(), interval=interval)


@dataclass(frozen=True)
class ApiConfig:
    """Direct endpoint configuration."""

    base_url: str = field(
        default_factory=lambda: os.getenv("COINANK_BASE_URL", "https://api.coinank.com")
    )
    exchange: str = field(default_factory=lambda: os.getenv("HEATMAP_EXCHANGE", "Binance"))
    symbol: str = field(default_factory=lambda: os.getenv("HEATMAP_SYMBOL", "BTCUSDT"))
    interval: str = field(default_factory=lambda: os.getenv("HEATMAP_INTERVAL", "3d"))
    timeout: float = field(default_factory=lambda: float(os.getenv("COINANK_TIMEOUT", "10.0")))

    # Static key sent as a header when set; no token lifecycle is handled
    api_key: str | None = field(default_factory=lambda: os.getenv("COINANK_API_KEY"))

    def __post_init__(self) -> None:
        if not self.symbol or not self.symbol.isalnum():
            raise ValueError(f"symbol must be alphanumeric, got '{self.symbol}'")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")


@dataclass(frozen=True)
class HeatmapConfig:
    """Root configuration."""

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def _coerce(section: str, name: str, current: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the field's current value."""
    if current is None:
        return None if value is None else str(value)

    expected = type(current)
    if expected is bool:
        if isinstance(value, bool):
            return value
    elif value is not None and not isinstance(value, bool):
        try:
            return expected(value)
        except (TypeError, ValueError):
            pass
    raise ValueError(f"'{section}.{name}' must be {expected.__name__}, got {value!r}")


def _apply(base: Any, overrides: dict[str, Any] | None, section: str) -> Any:
    """Return ``base`` with YAML overrides applied, rejecting unknown keys."""
    if not overrides:
        return base
    if not isinstance(overrides, dict):
        raise ValueError(f"'{section}' section must be a mapping")

    known = {f.name for f in fields(base)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {sorted(unknown)}")

    coerced = {
        name: _coerce(section, name, getattr(base, name), value)
        for name, value in overrides.items()
    }
    return replace(base, **coerced)


def load_config(config_path: Path) -> HeatmapConfig:
    """Load configuration from a YAML file on top of environment defaults.

    Raises:
        ValueError: If the file lacks the root section or has invalid values
        FileNotFoundError: If the file doesn't exist
    """
    with open(config_path) as f:
        try:
            raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw_config, dict) or CONFIG_SECTION not in raw_config:
        raise ValueError(f"Configuration missing '{CONFIG_SECTION}' section")

    section = raw_config[CONFIG_SECTION] or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{CONFIG_SECTION}' section must be a mapping")
    return HeatmapConfig(
        capture=_apply(CaptureConfig(), section.get("capture"), "capture"),
        api=_apply(ApiConfig(), section.get("api"), "api"),
    )


# Global config instance (lazy initialization)
_config: HeatmapConfig | None = None


def get_config() -> HeatmapConfig:
    """Get configuration (singleton)."""
    global _config
    if _config is None:
        _config = HeatmapConfig()
    return _config


def reset_config() -> None:
    """Reset the singleton (for testing)."""
    global _config
    _config = None
